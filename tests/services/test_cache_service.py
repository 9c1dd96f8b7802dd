"""
Tests for the cache service in-process store.
"""

import pytest

from survey_analytics.services.cache_service import TTL, CacheService


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory_cache(clock):
    return CacheService(redis_url=None, clock=clock)


class TestMemoryStore:
    @pytest.mark.asyncio
    async def test_round_trip(self, memory_cache):
        assert await memory_cache.set("sentiment_analysis:1", {"score": 0.4}, ttl=TTL.LONG)
        assert await memory_cache.get("sentiment_analysis:1") == {"score": 0.4}

    @pytest.mark.asyncio
    async def test_entries_expire(self, memory_cache, clock):
        await memory_cache.set("k", "v", ttl=60)
        clock.now += 59
        assert await memory_cache.get("k") == "v"
        clock.now += 1
        assert await memory_cache.get("k") is None

    @pytest.mark.asyncio
    async def test_delete(self, memory_cache):
        await memory_cache.set("k", [1, 2])
        await memory_cache.delete("k")
        assert await memory_cache.get("k") is None

    @pytest.mark.asyncio
    async def test_purge_expired(self, memory_cache, clock):
        await memory_cache.set("short", 1, ttl=10)
        await memory_cache.set("long", 2, ttl=1000)
        clock.now += 11

        assert memory_cache.purge_expired() == 1
        assert memory_cache.get_stats()["memory_keys"] == 1

    @pytest.mark.asyncio
    async def test_non_json_values_are_stringified(self, memory_cache):
        from datetime import date

        await memory_cache.set("k", {"day": date(2026, 1, 2)})
        assert await memory_cache.get("k") == {"day": "2026-01-02"}

    @pytest.mark.asyncio
    async def test_stats(self, memory_cache):
        await memory_cache.set("k", 1)
        await memory_cache.get("k")
        await memory_cache.get("missing")

        stats = memory_cache.get_stats()
        assert stats["backend"] == "memory"
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["hit_rate"] == 50.0
        assert stats["circuit_state"] == "CLOSED"


class TestCircuitBreaker:
    @pytest.mark.asyncio
    async def test_unreachable_redis_opens_circuit_and_memory_keeps_serving(self, clock):
        class BrokenRedis:
            async def get(self, key):
                raise ConnectionError("redis down")

            async def setex(self, key, ttl, value):
                raise ConnectionError("redis down")

            async def delete(self, key):
                raise ConnectionError("redis down")

        cache = CacheService(redis_url="redis://redis.test:6379", failure_threshold=2, clock=clock)
        cache._client = BrokenRedis()

        assert await cache.set("k", {"a": 1}) is False
        assert await cache.get("k") == {"a": 1}
        assert cache.get_stats()["circuit_state"] == "OPEN"

        # open circuit skips redis entirely
        assert await cache.set("k2", 2) is True
        assert await cache.get("k2") == 2

    @pytest.mark.asyncio
    async def test_circuit_probes_again_after_recovery_timeout(self, clock):
        class FlakyRedis:
            def __init__(self):
                self.down = True
                self.store = {}

            async def get(self, key):
                if self.down:
                    raise ConnectionError("redis down")
                return self.store.get(key)

        flaky = FlakyRedis()
        cache = CacheService(redis_url="redis://redis.test:6379", failure_threshold=1, recovery_timeout=30, clock=clock)
        cache._client = flaky

        assert await cache.get("k") is None
        assert cache.get_stats()["circuit_state"] == "OPEN"

        flaky.down = False
        flaky.store["k"] = '{"from": "redis"}'
        clock.now += 29
        assert await cache.get("k") is None

        clock.now += 1
        assert await cache.get("k") == {"from": "redis"}
        assert cache.get_stats()["circuit_state"] == "CLOSED"
        assert cache.get_stats()["failure_count"] == 0
