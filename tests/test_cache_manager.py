"""Tests for the cache layer."""
import pytest

from edgefinder.data.cache import CacheManager, InMemoryCache


class FakeClock:

    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return CacheManager(InMemoryCache(clock=clock), ttls={"odds": 120})


class TestInMemoryCache:

    async def test_expiry(self, clock):
        backend = InMemoryCache(clock=clock)
        await backend.set("k", "v", ttl_seconds=60)
        assert await backend.get("k") == "v"
        assert await backend.get_ttl("k") == 60

        clock.advance(60)
        assert await backend.get("k") is None
        assert await backend.get_ttl("k") is None

    async def test_no_expiry(self, clock):
        backend = InMemoryCache(clock=clock)
        await backend.set("k", "v", ttl_seconds=0)
        clock.advance(10_000)
        assert await backend.get("k") == "v"
        assert await backend.get_ttl("k") == -1

    async def test_eviction_at_capacity(self, clock):
        backend = InMemoryCache(max_size=10, clock=clock)
        for i in range(10):
            await backend.set(f"k{i}", i, ttl_seconds=60)
        await backend.set("new", 1, ttl_seconds=60)

        assert len(backend) == 10
        assert await backend.get("k0") is None
        assert await backend.get("new") == 1

    async def test_expired_entries_evicted_first(self, clock):
        backend = InMemoryCache(max_size=2, clock=clock)
        await backend.set("old", 1, ttl_seconds=5)
        await backend.set("keep", 2, ttl_seconds=600)
        clock.advance(10)
        await backend.set("new", 3, ttl_seconds=60)
        assert await backend.get("keep") == 2

    async def test_clear_prefix(self, clock):
        backend = InMemoryCache(clock=clock)
        await backend.set("odds:nba", 1, 60)
        await backend.set("odds:nfl", 2, 60)
        await backend.set("espn:nba", 3, 60)
        await backend.clear_prefix("odds:")
        assert len(backend) == 1


class TestCacheManager:

    async def test_ttl_by_data_type(self, cache, clock):
        await cache.set("odds_api:nba", ["e"], data_type="odds")
        clock.advance(119)
        assert await cache.get("odds_api:nba") == ["e"]
        clock.advance(1)
        assert await cache.get("odds_api:nba") is None

    async def test_get_or_set_loads_once(self, cache):
        calls = []

        async def load():
            calls.append(1)
            return ["event"]

        assert await cache.get_or_set("key", load) == ["event"]
        assert await cache.get_or_set("key", load) == ["event"]
        assert len(calls) == 1

    async def test_empty_list_is_a_hit(self, cache):
        calls = []

        async def load():
            calls.append(1)
            return []

        await cache.get_or_set("empty", load)
        assert await cache.get_or_set("empty", load) == []
        assert len(calls) == 1
        assert cache.stats()["hits"] == 1

    async def test_factory_errors_propagate_and_are_not_cached(self, cache):
        async def boom():
            raise RuntimeError("upstream down")

        with pytest.raises(RuntimeError):
            await cache.get_or_set("key", boom)
        assert await cache.get("key") is None

    async def test_backend_errors_are_a_miss(self):
        class BrokenBackend(InMemoryCache):
            async def get(self, key):
                raise ConnectionError("gone")

        cache = CacheManager(BrokenBackend())
        assert await cache.get("key") is None
        assert cache.misses == 0

    async def test_keys_are_namespaced(self, cache):
        await cache.set("a", 1)
        assert await cache.backend.get("edgefinder:a") == 1
        assert await cache.get_ttl("a") == 300

    async def test_reset(self, cache):
        await cache.set("a", 1)
        await cache.get("a")
        await cache.reset()
        assert await cache.get("a") is None
        assert cache.stats() == {"backend": "InMemoryCache", "hits": 0, "misses": 1}

    def test_create_from_settings(self):
        from edgefinder.config.settings import Settings

        cache = CacheManager.create_from_settings(Settings())
        assert cache.ttls["odds"] == Settings().cache.odds_ttl_seconds
