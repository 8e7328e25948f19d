from __future__ import annotations

import asyncio
import re

import pytest

from serpkit.cache import CacheManager


class _Clock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def run_async(coro):
    return asyncio.run(coro)


def _cache(clock: _Clock, **kwargs) -> CacheManager:
    return CacheManager(clock=clock, **kwargs)


def test_get_returns_value_until_ttl_elapses():
    clock = _Clock()
    cache = _cache(clock)
    cache.set("k", "v", ttl_s=0.1)

    clock.advance(0.05)
    assert cache.get("k") == "v"

    clock.advance(0.1)
    assert cache.get("k") is None
    assert cache.has("k") is False
    assert len(cache) == 0


def test_entry_is_still_valid_exactly_at_ttl():
    clock = _Clock()
    cache = _cache(clock)
    cache.set("k", "v", ttl_s=10)
    clock.advance(10)
    assert cache.get("k") == "v"


def test_default_ttl_applies_when_none_given():
    clock = _Clock()
    cache = _cache(clock, default_ttl_s=5)
    cache.set("k", 1)
    clock.advance(4.9)
    assert cache.has("k")
    clock.advance(0.2)
    assert not cache.has("k")


def test_has_deletes_expired_entry_without_touching_stats():
    clock = _Clock()
    cache = _cache(clock)
    cache.set("k", "v", ttl_s=1)
    assert cache.has("k")
    clock.advance(2)
    assert not cache.has("k")
    stats = cache.get_stats()
    assert stats.size == 0
    assert stats.total_hits == 0
    assert stats.total_misses == 0


def test_overwrite_replaces_value_ttl_and_created_at():
    clock = _Clock()
    cache = _cache(clock)
    cache.set("k", "old", ttl_s=1)
    clock.advance(0.9)
    cache.set("k", "new", ttl_s=1)
    clock.advance(0.5)
    assert cache.get("k") == "new"


def test_capacity_eviction_drops_least_recently_accessed():
    clock = _Clock()
    cache = _cache(clock, max_size=3)
    cache.set("a", 1)
    clock.advance(1)
    cache.set("b", 2)
    clock.advance(1)
    cache.set("c", 3)
    clock.advance(1)
    assert cache.get("a") == 1

    clock.advance(1)
    cache.set("d", 4)

    assert len(cache) == 3
    assert not cache.has("b")
    assert {"a", "c", "d"} == set(cache.keys())


def test_inserting_max_size_plus_one_keys_keeps_max_size_entries():
    clock = _Clock()
    cache = _cache(clock, max_size=5)
    for i in range(6):
        cache.set(f"k{i}", i)
    assert len(cache) == 5
    # Equal timestamps: the first inserted key goes.
    assert not cache.has("k0")


def test_get_or_set_invokes_producer_once_within_ttl():
    clock = _Clock()
    cache = _cache(clock)
    calls = {"count": 0}

    async def producer():
        calls["count"] += 1
        return {"value": calls["count"]}

    async def scenario():
        first = await cache.get_or_set("k", producer, ttl_s=60)
        second = await cache.get_or_set("k", producer, ttl_s=60)
        return first, second

    first, second = run_async(scenario())
    assert calls["count"] == 1
    assert first == second == {"value": 1}


def test_get_or_set_caches_none_values():
    cache = _cache(_Clock())
    calls = {"count": 0}

    async def producer():
        calls["count"] += 1
        return None

    async def scenario():
        await cache.get_or_set("k", producer)
        await cache.get_or_set("k", producer)

    run_async(scenario())
    assert calls["count"] == 1


def test_get_or_set_does_not_cache_producer_failure():
    cache = _cache(_Clock())

    async def producer():
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError, match="boom"):
        run_async(cache.get_or_set("k", producer))
    assert not cache.has("k")


def test_concurrent_misses_call_producer_twice_by_default():
    cache = _cache(_Clock())
    calls = {"count": 0}

    async def producer():
        calls["count"] += 1
        await asyncio.sleep(0.01)
        return calls["count"]

    async def scenario():
        return await asyncio.gather(
            cache.get_or_set("k", producer),
            cache.get_or_set("k", producer),
        )

    run_async(scenario())
    assert calls["count"] == 2


def test_single_flight_shares_one_producer_call():
    cache = _cache(_Clock(), single_flight=True)
    calls = {"count": 0}

    async def producer():
        calls["count"] += 1
        await asyncio.sleep(0.01)
        return "shared"

    async def scenario():
        return await asyncio.gather(
            *(cache.get_or_set("k", producer) for _ in range(5))
        )

    results = run_async(scenario())
    assert calls["count"] == 1
    assert results == ["shared"] * 5
    assert cache.get("k") == "shared"


def test_single_flight_propagates_failure_to_every_waiter():
    cache = _cache(_Clock(), single_flight=True)
    calls = {"count": 0}

    async def producer():
        calls["count"] += 1
        await asyncio.sleep(0.01)
        raise ValueError("down")

    async def scenario():
        return await asyncio.gather(
            cache.get_or_set("k", producer),
            cache.get_or_set("k", producer),
            return_exceptions=True,
        )

    results = run_async(scenario())
    assert calls["count"] == 1
    assert all(isinstance(r, ValueError) for r in results)
    assert not cache.has("k")


def test_invalidate_prefix_leaves_other_projects():
    cache = _cache(_Clock())
    cache.set("keywords:p1:a", 1)
    cache.set("keywords:p1:b", 2)
    cache.set("keywords:p2:a", 3)

    removed = cache.invalidate_prefix("keywords:p1")

    assert removed == 2
    assert cache.get("keywords:p1:a") is None
    assert cache.get("keywords:p1:b") is None
    assert cache.get("keywords:p2:a") == 3


def test_invalidate_pattern_uses_search_semantics():
    cache = _cache(_Clock())
    cache.set("serp:shoes:us", 1)
    cache.set("serp:shoes:uk", 2)
    cache.set("serp:boots:us", 3)

    assert cache.invalidate_pattern(r":us$") == 2
    assert list(cache.keys()) == ["serp:shoes:uk"]

    assert cache.invalidate_pattern(re.compile("shoes")) == 1
    assert len(cache) == 0


def test_hit_rate_after_one_miss_and_one_hit():
    cache = _cache(_Clock())
    cache.clear()
    assert cache.get("k") is None
    cache.set("k", "v")
    assert cache.get("k") == "v"

    stats = cache.get_stats()
    assert stats.hit_rate == 0.5
    assert stats.total_hits == 1
    assert stats.total_misses == 1


def test_hit_rate_is_zero_without_accesses_and_clear_resets_counters():
    cache = _cache(_Clock())
    assert cache.get_stats().hit_rate == 0.0
    cache.set("k", 1)
    cache.get("k")
    cache.get("missing")
    cache.clear()
    stats = cache.get_stats()
    assert (stats.size, stats.total_hits, stats.total_misses, stats.hit_rate) == (0, 0, 0, 0.0)


def test_stats_report_keys_and_memory_estimate():
    cache = _cache(_Clock())
    cache.set("a", {"name": "x"})
    cache.set("b", [1, 2, 3])
    stats = cache.get_stats()
    assert stats.size == 2
    assert stats.keys == ["a", "b"]
    assert stats.approx_memory_bytes > 0
    assert stats.to_dict()["size"] == 2


def test_stats_never_fail_on_unserializable_values():
    cache = _cache(_Clock())
    cache.set("tuple_keys", {(1, 2): "x"})
    looped: list = []
    looped.append(looped)
    cache.set("circular", looped)

    stats = cache.get_stats()

    assert stats.size == 2
    assert stats.approx_memory_bytes > 0


def test_get_updates_hit_count_and_last_access():
    clock = _Clock()
    cache = _cache(clock)
    cache.set("k", "v")
    clock.advance(3)
    cache.get("k")
    cache.get("k")
    entry = cache.peek_entry("k")
    assert entry is not None
    assert entry.hit_count == 2
    assert entry.last_accessed_at == clock.now


def test_update_ttl_only_for_live_entries():
    clock = _Clock()
    cache = _cache(clock)
    cache.set("k", "v", ttl_s=1)
    assert cache.update_ttl("k", 100) is True
    clock.advance(50)
    assert cache.get("k") == "v"

    assert cache.update_ttl("missing", 10) is False
    clock.advance(100)
    assert cache.update_ttl("k", 10) is False


def test_delete_reports_whether_key_existed():
    cache = _cache(_Clock())
    cache.set("k", 1)
    assert cache.delete("k") is True
    assert cache.delete("k") is False


def test_purge_expired_removes_unread_entries():
    clock = _Clock()
    cache = _cache(clock)
    cache.set("short", 1, ttl_s=1)
    cache.set("long", 2, ttl_s=100)
    clock.advance(5)
    assert cache.purge_expired() == 1
    assert list(cache.keys()) == ["long"]


def test_background_sweep_runs_and_stops_on_close():
    clock = _Clock()

    async def scenario():
        cache = CacheManager(clock=clock, sweep_interval_s=0.01)
        cache.set("k", 1, ttl_s=1)
        clock.advance(2)
        cache.start()
        assert cache.is_sweeping
        await asyncio.sleep(0.05)
        assert len(cache) == 0
        await cache.close()
        assert not cache.is_sweeping

        cache.set("j", 1, ttl_s=1)
        clock.advance(2)
        await asyncio.sleep(0.05)
        # No sweep after close: entry stays until read.
        assert len(cache) == 1

    run_async(scenario())


def test_async_context_manager_owns_sweeper():
    async def scenario():
        async with CacheManager(sweep_interval_s=0.01) as cache:
            assert cache.is_sweeping
        assert not cache.is_sweeping

    run_async(scenario())


def test_export_and_load_round_live_values():
    clock = _Clock()
    cache = _cache(clock)
    cache.set("a", 1, ttl_s=1)
    cache.set("b", 2, ttl_s=100)
    clock.advance(5)
    assert cache.export() == {"b": 2}

    other = _cache(clock)
    other.load({"x": 1, "y": 2}, ttl_s=10)
    assert other.get("x") == 1 and other.get("y") == 2


def test_invalid_configuration_is_rejected():
    with pytest.raises(ValueError):
        CacheManager(max_size=0)
    with pytest.raises(ValueError):
        CacheManager(default_ttl_s=0)
