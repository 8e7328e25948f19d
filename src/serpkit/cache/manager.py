"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

In-memory TTL cache with bounded size, bulk invalidation and a background
expiry sweep.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import time
from collections.abc import Awaitable, Callable, Iterator, Mapping
from typing import Any, TypeVar

from .coalescing import RequestCoalescer
from .types import CacheEntry, CacheStats

logger = logging.getLogger("serpkit.cache")

T = TypeVar("T")

_MISSING = object()


class CacheManager:
    """
    Process-local key/value store with per-entry TTL.

    All read/write operations are synchronous and never raise for absent or
    expired keys. ``get_or_set`` is the only coroutine; it awaits the
    producer on a miss.

    Args:
        default_ttl_s: TTL used when ``set`` is called without one.
        max_size: Entry count bound. When reached, the least recently
            accessed entry is evicted before the next insert.
        sweep_interval_s: Period of the background expiry sweep started by
            ``start()``.
        clock: Monotonic time source in seconds.
        single_flight: Share one producer call between concurrent
            ``get_or_set`` misses for the same key.
        name: Label used in log lines.
    """

    def __init__(
        self,
        *,
        default_ttl_s: float = 300.0,
        max_size: int = 1000,
        sweep_interval_s: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
        single_flight: bool = False,
        name: str = "default",
    ) -> None:
        if default_ttl_s <= 0:
            raise ValueError("default_ttl_s must be > 0")
        if max_size <= 0:
            raise ValueError("max_size must be > 0")
        if sweep_interval_s <= 0:
            raise ValueError("sweep_interval_s must be > 0")

        self.name = name
        self.default_ttl_s = float(default_ttl_s)
        self.max_size = int(max_size)
        self.sweep_interval_s = float(sweep_interval_s)
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._total_hits = 0
        self._total_misses = 0
        self._coalescer = RequestCoalescer() if single_flight else None
        self._sweeper: asyncio.Task[None] | None = None

    # ------------------------------------------------------------------
    # Core operations
    # ------------------------------------------------------------------

    def set(self, key: str, value: Any, ttl_s: float | None = None) -> None:
        if len(self._entries) >= self.max_size:
            self._evict_oldest()

        now = self._clock()
        # Re-insert so overwritten keys move to the end of iteration order.
        self._entries.pop(key, None)
        self._entries[key] = CacheEntry(
            value=value,
            created_at=now,
            ttl_s=float(ttl_s) if ttl_s is not None else self.default_ttl_s,
            hit_count=0,
            last_accessed_at=now,
        )

    def get(self, key: str, default: Any = None) -> Any:
        entry = self._live_entry(key)
        if entry is None:
            self._total_misses += 1
            return default

        entry.hit_count += 1
        entry.last_accessed_at = self._clock()
        self._total_hits += 1
        return entry.value

    def has(self, key: str) -> bool:
        return self._live_entry(key) is not None

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()
        self._total_hits = 0
        self._total_misses = 0

    async def get_or_set(
        self,
        key: str,
        producer: Callable[[], Awaitable[T]],
        ttl_s: float | None = None,
    ) -> T:
        """
        Return the cached value for ``key`` or produce, store and return it.

        The producer runs at most once per call. If it raises, nothing is
        cached and the error propagates unchanged.
        """
        cached = self.get(key, _MISSING)
        if cached is not _MISSING:
            return cached

        if self._coalescer is None:
            value = await producer()
            self.set(key, value, ttl_s)
            return value

        async def _produce_and_store() -> T:
            produced = await producer()
            self.set(key, produced, ttl_s)
            return produced

        return await self._coalescer.run(key, _produce_and_store)

    # ------------------------------------------------------------------
    # Bulk invalidation
    # ------------------------------------------------------------------

    def invalidate_pattern(self, pattern: str | re.Pattern[str]) -> int:
        """Delete every key in which ``pattern`` matches; return the count."""
        regex = re.compile(pattern) if isinstance(pattern, str) else pattern
        doomed = [key for key in self._entries if regex.search(key)]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    def invalidate_prefix(self, prefix: str) -> int:
        """Delete every key starting with ``prefix``; return the count."""
        doomed = [key for key in self._entries if key.startswith(prefix)]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    def update_ttl(self, key: str, ttl_s: float) -> bool:
        entry = self._live_entry(key)
        if entry is None:
            return False
        entry.ttl_s = float(ttl_s)
        return True

    def purge_expired(self) -> int:
        """Remove every expired entry; return how many were dropped."""
        now = self._clock()
        doomed = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in doomed:
            del self._entries[key]
        if doomed:
            logger.debug("Cache %s swept %d expired entries", self.name, len(doomed))
        return len(doomed)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def get_stats(self) -> CacheStats:
        accesses = self._total_hits + self._total_misses
        hit_rate = self._total_hits / accesses if accesses else 0.0
        return CacheStats(
            size=len(self._entries),
            keys=list(self._entries.keys()),
            approx_memory_bytes=self._approx_memory_bytes(),
            hit_rate=hit_rate,
            total_hits=self._total_hits,
            total_misses=self._total_misses,
        )

    def now(self) -> float:
        return self._clock()

    def peek_entry(self, key: str) -> CacheEntry | None:
        """Return the live entry without touching access stats."""
        return self._live_entry(key)

    def export(self) -> dict[str, Any]:
        """Return unexpired values keyed by cache key."""
        now = self._clock()
        return {
            key: entry.value
            for key, entry in self._entries.items()
            if not entry.is_expired(now)
        }

    def load(self, data: Mapping[str, Any], ttl_s: float | None = None) -> None:
        for key, value in data.items():
            self.set(key, value, ttl_s)

    def keys(self) -> Iterator[str]:
        return iter(list(self._entries.keys()))

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.has(key)

    # ------------------------------------------------------------------
    # Background sweep lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Schedule the periodic expiry sweep on the running event loop."""
        if self._sweeper is not None and not self._sweeper.done():
            return
        loop = asyncio.get_running_loop()
        self._sweeper = loop.create_task(self._sweep_loop())
        logger.info(
            "Cache %s sweeper started (interval=%.1fs, max_size=%d)",
            self.name,
            self.sweep_interval_s,
            self.max_size,
        )

    async def close(self) -> None:
        """Cancel the background sweep. Cached entries are kept."""
        task = self._sweeper
        self._sweeper = None
        if task is None or task.done():
            return
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        logger.info("Cache %s sweeper stopped", self.name)

    @property
    def is_sweeping(self) -> bool:
        return self._sweeper is not None and not self._sweeper.done()

    async def __aenter__(self) -> "CacheManager":
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval_s)
            try:
                self.purge_expired()
            except Exception:  # noqa: BLE001
                logger.exception("Cache %s sweep failed", self.name)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _live_entry(self, key: str) -> CacheEntry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            del self._entries[key]
            return None
        return entry

    def _evict_oldest(self) -> None:
        if not self._entries:
            return
        # min() keeps the first key in iteration order among equal timestamps.
        oldest_key = min(
            self._entries,
            key=lambda k: self._entries[k].last_accessed_at,
        )
        del self._entries[oldest_key]
        logger.debug("Cache %s evicted %s", self.name, oldest_key)

    def _approx_memory_bytes(self) -> int:
        rows = [
            {
                "value": entry.value,
                "created_at": entry.created_at,
                "ttl_s": entry.ttl_s,
                "hit_count": entry.hit_count,
                "last_accessed_at": entry.last_accessed_at,
            }
            for entry in self._entries.values()
        ]
        try:
            return len(json.dumps(rows, default=str, skipkeys=True))
        except (TypeError, ValueError):
            # Circular or otherwise unserializable values.
            return sum(len(repr(entry.value)) for entry in self._entries.values())
