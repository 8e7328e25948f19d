"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: cache/types.py.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(slots=True)
class CacheEntry:
    """One cached value with expiry and access metadata."""

    value: Any
    created_at: float
    ttl_s: float
    hit_count: int = 0
    last_accessed_at: float = 0.0

    def is_expired(self, now: float) -> bool:
        return now - self.created_at > self.ttl_s

    def age(self, now: float) -> float:
        return now - self.created_at


@dataclass(frozen=True, slots=True)
class CacheStats:
    """Point-in-time snapshot returned by ``CacheManager.get_stats``."""

    size: int
    keys: list[str] = field(default_factory=list)
    approx_memory_bytes: int = 0
    hit_rate: float = 0.0
    total_hits: int = 0
    total_misses: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "size": self.size,
            "keys": list(self.keys),
            "approx_memory_bytes": self.approx_memory_bytes,
            "hit_rate": self.hit_rate,
            "total_hits": self.total_hits,
            "total_misses": self.total_misses,
        }
