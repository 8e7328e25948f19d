"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Client-side cache and request layer for the SEO dashboard backend.

Quick start::

    from serpkit import ClientSettings, SEOClient

    client = SEOClient.from_settings(ClientSettings.from_env())
    client.start()
    projects = await client.get_projects()
    await client.close()
"""

from .api import APIClient, ClientSettings, DateRange, KeywordFilters, SEOClient
from .cache import CacheKeys, CacheManager, CacheStats
from .errors import (
    AuthError,
    ClassifiedError,
    ErrorKind,
    NetworkError,
    RateLimitError,
    UnknownError,
    ValidationError,
    classify_error,
    classify_status,
)
from .reporting import ErrorHandler

__all__ = [
    "APIClient",
    "SEOClient",
    "ClientSettings",
    "DateRange",
    "KeywordFilters",
    "CacheManager",
    "CacheKeys",
    "CacheStats",
    "ErrorHandler",
    "ErrorKind",
    "ClassifiedError",
    "NetworkError",
    "AuthError",
    "RateLimitError",
    "ValidationError",
    "UnknownError",
    "classify_error",
    "classify_status",
]
