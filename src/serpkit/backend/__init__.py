"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Remote backend package.

Provides the ``Backend`` contract (tables and named functions returning
``{data, error}``), HTTP and in-memory implementations, and the real-time
``ChangeFeed`` with in-memory and Redis pub/sub backends.

Quick start::

    from serpkit.backend import InMemoryBackend, Query

    backend = InMemoryBackend()
    await backend.insert("seo_projects", {"name": "Docs"})
    res = await backend.select(Query("seo_projects").order("created_at"))
"""

from .http import HttpBackend, query_params
from .memory import InMemoryBackend, apply_query
from .realtime import InMemoryChangeFeed, InMemorySubscription, dispatch_change
from .types import (
    Backend,
    BackendError,
    BackendResponse,
    ChangeEvent,
    ChangeFeed,
    ChangeHandler,
    Filter,
    Ordering,
    Query,
    Row,
    Subscription,
)

__all__ = [
    "Backend",
    "BackendError",
    "BackendResponse",
    "ChangeEvent",
    "ChangeFeed",
    "ChangeHandler",
    "Filter",
    "Ordering",
    "Query",
    "Row",
    "Subscription",
    "HttpBackend",
    "InMemoryBackend",
    "InMemoryChangeFeed",
    "InMemorySubscription",
    "apply_query",
    "dispatch_change",
    "query_params",
]


# Lazy import for the Redis feed to avoid a hard dependency at import time
def __getattr__(name: str):
    if name == "RedisChangeFeed":
        from .redis_feed import RedisChangeFeed

        return RedisChangeFeed
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
