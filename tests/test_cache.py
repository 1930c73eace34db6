"""
Tests for the TTL cache and the background sweeper.

Run with: pytest tests/test_cache.py -v
"""

import pytest

from core.cache import CacheSweeper, TTLCache, response_cache_key, search_cache_key


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return TTLCache(max_size=3, default_ttl=60, clock=clock, name="test")


class TestTTLCache:
    """Get/set, expiry and eviction."""

    def test_get_set(self, cache):
        cache.set("a", [1, 2])
        assert cache.get("a") == [1, 2]
        assert cache.get("missing") is None
        assert cache.get("missing", "default") == "default"

    def test_entry_expires(self, cache, clock):
        cache.set("a", 1)
        clock.now += 60
        assert cache.get("a") == 1
        clock.now += 1
        assert cache.get("a") is None
        assert len(cache) == 0

    def test_per_entry_ttl(self, cache, clock):
        cache.set("short", 1, ttl=5)
        cache.set("long", 2)
        clock.now += 10
        assert cache.has("short") is False
        assert cache.has("long") is True

    def test_oldest_evicted_when_full(self, cache):
        for key in ("a", "b", "c", "d"):
            cache.set(key, key)
        assert cache.get("a") is None
        assert cache.get("d") == "d"
        assert len(cache) == 3

    def test_overwrite_refreshes_position(self, cache):
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("c", 3)
        cache.set("a", 10)
        cache.set("d", 4)
        assert cache.get("a") == 10
        assert cache.get("b") is None

    def test_delete_and_clear(self, cache):
        cache.set("a", 1)
        assert cache.delete("a") is True
        assert cache.delete("a") is False
        cache.set("b", 2)
        cache.clear()
        assert len(cache) == 0

    def test_sweep(self, cache, clock):
        cache.set("old", 1, ttl=10)
        cache.set("new", 2)
        clock.now += 30
        assert cache.sweep() == 1
        assert cache.has("new")

    def test_stats(self, cache):
        cache.set("a", 1)
        cache.get("a")
        cache.get("b")
        assert cache.stats() == {"name": "test", "size": 1, "max_size": 3, "hits": 1, "misses": 1}

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            TTLCache(max_size=0)


class TestCacheKeys:
    """Key helpers."""

    def test_search_key(self):
        assert search_cache_key("  Red Tote ", 10) == "search:red tote:10"

    def test_response_key_is_order_independent(self):
        assert response_cache_key("red bag", ["b", "a"]) == response_cache_key("Red Bag", ["a", "b"])
        assert response_cache_key("red bag", ["a", "b"]) == "ai:red bag:a,b"


class TestCacheSweeper:
    """Periodic expiry."""

    def test_run_once_sweeps_all_targets(self, clock):
        first = TTLCache(default_ttl=10, clock=clock)
        second = TTLCache(default_ttl=10, clock=clock)
        first.set("a", 1)
        second.set("b", 2)
        second.set("c", 3)
        clock.now += 11

        assert CacheSweeper(interval=60, targets=[first, second]).run_once() == 3

    def test_uses_sweep_expired(self):
        class Store:
            def sweep_expired(self):
                return 2

        assert CacheSweeper(interval=60, targets=[Store(), object()]).run_once() == 2

    def test_failing_target_does_not_stop_others(self, clock):
        class Broken:
            def sweep(self):
                raise RuntimeError("boom")

        cache = TTLCache(default_ttl=1, clock=clock)
        cache.set("a", 1)
        clock.now += 2
        assert CacheSweeper(interval=60, targets=[Broken(), cache]).run_once() == 1

    def test_start_stop(self):
        sweeper = CacheSweeper(interval=3600, targets=[])
        sweeper.start()
        assert sweeper.running is True
        sweeper.stop()
        assert sweeper.running is False

    def test_disabled_interval(self):
        sweeper = CacheSweeper(interval=0, targets=[])
        sweeper.start()
        assert sweeper.running is False
