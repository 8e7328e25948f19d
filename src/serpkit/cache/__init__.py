"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: cache/__init__.py.
"""

from .coalescing import RequestCoalescer
from .helpers import batch_delete, batch_get, batch_set, with_refresh
from .keys import CacheKeys, generate_key, options_fragment
from .manager import CacheManager
from .types import CacheEntry, CacheStats

__all__ = [
    "CacheManager",
    "CacheEntry",
    "CacheStats",
    "CacheKeys",
    "RequestCoalescer",
    "generate_key",
    "options_fragment",
    "with_refresh",
    "batch_get",
    "batch_set",
    "batch_delete",
]
