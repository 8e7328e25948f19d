"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: cache/helpers.py.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from typing import Any, TypeVar

from .manager import CacheManager

logger = logging.getLogger("serpkit.cache")

T = TypeVar("T")

_background_refreshes: set[asyncio.Task[Any]] = set()


async def with_refresh(
    cache: CacheManager,
    key: str,
    producer: Callable[[], Awaitable[T]],
    ttl_s: float | None = None,
    refresh_threshold: float = 0.8,
) -> T:
    """
    Read-through with refresh-ahead.

    When the cached entry has lived past ``refresh_threshold`` of its TTL the
    cached value is returned immediately and the producer re-runs in a
    background task. Background failures are logged; the stale-but-valid
    value stays in place.
    """
    entry = cache.peek_entry(key)
    if entry is not None:
        effective_ttl = ttl_s if ttl_s is not None else entry.ttl_s
        if entry.age(cache.now()) > refresh_threshold * effective_ttl:
            value = cache.get(key)
            _schedule_refresh(cache, key, producer, ttl_s)
            return value
    return await cache.get_or_set(key, producer, ttl_s)


def _schedule_refresh(
    cache: CacheManager,
    key: str,
    producer: Callable[[], Awaitable[Any]],
    ttl_s: float | None,
) -> None:
    async def _refresh() -> None:
        try:
            cache.set(key, await producer(), ttl_s)
        except asyncio.CancelledError:
            raise
        except Exception:  # noqa: BLE001
            logger.exception("Background refresh failed for cache key %s", key)

    task = asyncio.get_running_loop().create_task(_refresh())
    _background_refreshes.add(task)
    task.add_done_callback(_background_refreshes.discard)


def batch_get(cache: CacheManager, keys: Iterable[str]) -> dict[str, Any]:
    return {key: cache.get(key) for key in keys}


def batch_set(
    cache: CacheManager,
    items: Mapping[str, Any],
    ttl_s: float | None = None,
) -> None:
    for key, value in items.items():
        cache.set(key, value, ttl_s)


def batch_delete(cache: CacheManager, keys: Iterable[str]) -> int:
    return sum(1 for key in keys if cache.delete(key))
