"""
Cache for time-bounded analysis results (ad-hoc sentiment runs).

Every write lands in an in-process TTL store. When ``REDIS_URL`` is set the
write is mirrored to Redis, and reads prefer Redis. Redis calls go through a
circuit breaker: after ``failure_threshold`` consecutive errors the cache
stops calling Redis for ``recovery_timeout`` seconds and serves from the
in-process store alone.

Usage:
    cache = get_cache_service()
    await cache.set(sentiment_cache_key(survey_id), result, ttl=TTL.LONG)
    result = await cache.get(sentiment_cache_key(survey_id))
"""

import json
import logging
import time
from enum import IntEnum
from typing import Any, Callable, Dict, Optional, Tuple

import redis.asyncio as redis

from survey_analytics.core.metrics import track_cache_hit, track_cache_miss

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class TTL(IntEnum):
    """Cache TTL presets in seconds."""

    SHORT = 60
    MEDIUM = 300
    LONG = 3600  # sentiment results
    DAY = 86400


class CircuitState(IntEnum):
    CLOSED = 0
    OPEN = 1
    HALF_OPEN = 2


class CircuitBreaker:
    """Counts consecutive Redis failures and decides whether to try Redis at all."""

    def __init__(self, failure_threshold: int, recovery_timeout: float, clock: Clock):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.clock = clock
        self.state = CircuitState.CLOSED
        self.failures = 0
        self.opened_at = 0.0

    def allow(self) -> bool:
        if self.state == CircuitState.OPEN and self.clock() - self.opened_at >= self.recovery_timeout:
            self.state = CircuitState.HALF_OPEN
            logger.info("Cache circuit half-open, probing Redis")
        return self.state != CircuitState.OPEN

    def succeeded(self) -> None:
        if self.state == CircuitState.HALF_OPEN:
            logger.info("Cache circuit closed, Redis recovered")
        self.state = CircuitState.CLOSED
        self.failures = 0

    def failed(self) -> None:
        self.failures += 1
        if self.state == CircuitState.HALF_OPEN or self.failures >= self.failure_threshold:
            if self.state != CircuitState.OPEN:
                logger.warning(f"Cache circuit opened after {self.failures} failures")
            self.state = CircuitState.OPEN
            self.opened_at = self.clock()


class CacheService:
    def __init__(
        self,
        redis_url: Optional[str] = None,
        failure_threshold: int = 5,
        recovery_timeout: int = 30,
        clock: Clock = time.monotonic,
    ):
        """
        Args:
            redis_url: Redis connection URL (e.g., redis://localhost:6379); None keeps everything in-process
            failure_threshold: Consecutive Redis failures before the circuit opens
            recovery_timeout: Seconds the circuit stays open before probing Redis again
            clock: Monotonic time source for TTL expiry and the circuit breaker
        """
        self._redis_url = redis_url
        self._client = None
        self._clock = clock
        self.breaker = CircuitBreaker(failure_threshold, recovery_timeout, clock)

        # key -> (expires_at, serialized value)
        self._memory: Dict[str, Tuple[float, str]] = {}

        self._hits = 0
        self._misses = 0

    def _redis(self):
        """Redis client when configured and the circuit allows a call."""
        if not self._redis_url or not self.breaker.allow():
            return None
        if self._client is None:
            self._client = redis.from_url(self._redis_url, encoding="utf-8", decode_responses=True)
        return self._client

    async def _call_redis(self, operation: str, key: str, *args) -> Tuple[bool, Any]:
        """Run one Redis command. Returns ``(attempted_ok, result)``; ``attempted_ok`` is False when skipped or failed."""
        client = self._redis()
        if client is None:
            return False, None
        try:
            result = await getattr(client, operation)(key, *args)
        except Exception as e:
            logger.debug(f"Cache {operation} failed for {key}: {e}")
            self.breaker.failed()
            return False, None
        self.breaker.succeeded()
        return True, result

    def _memory_get(self, key: str) -> Optional[str]:
        entry = self._memory.get(key)
        if entry is None:
            return None
        expires_at, serialized = entry
        if self._clock() >= expires_at:
            del self._memory[key]
            return None
        return serialized

    def purge_expired(self) -> int:
        """Drop expired in-process entries. Returns how many were removed."""
        now = self._clock()
        expired = [key for key, (expires_at, _) in self._memory.items() if now >= expires_at]
        for key in expired:
            del self._memory[key]
        return len(expired)

    async def get(self, key: str) -> Optional[Any]:
        """Cached value, or None if missing or expired."""
        ok, serialized = await self._call_redis("get", key)
        if not ok:
            serialized = self._memory_get(key)

        if serialized is None:
            self._misses += 1
            track_cache_miss()
            return None

        self._hits += 1
        track_cache_hit()
        try:
            return json.loads(serialized)
        except json.JSONDecodeError:
            return serialized

    async def set(self, key: str, value: Any, ttl: int = TTL.MEDIUM) -> bool:
        """
        Store ``value`` as JSON (dates and other non-JSON values are stringified).

        Returns:
            False only when Redis is in use and rejected the write
        """
        serialized = json.dumps(value, default=str)
        self._memory[key] = (self._clock() + int(ttl), serialized)
        if not self._redis_url or self.breaker.state == CircuitState.OPEN:
            return True
        ok, _ = await self._call_redis("setex", key, int(ttl), serialized)
        return ok

    async def delete(self, key: str) -> bool:
        self._memory.pop(key, None)
        if not self._redis_url or self.breaker.state == CircuitState.OPEN:
            return True
        ok, _ = await self._call_redis("delete", key)
        return ok

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def get_stats(self) -> dict:
        total = self._hits + self._misses
        return {
            "backend": "redis" if self._redis_url else "memory",
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / total * 100, 2) if total else 0.0,
            "circuit_state": self.breaker.state.name,
            "failure_count": self.breaker.failures,
            "memory_keys": len(self._memory),
        }


_cache_service: Optional[CacheService] = None


def get_cache_service() -> CacheService:
    """Get or create the global cache service."""
    global _cache_service
    if _cache_service is None:
        from survey_analytics.config import settings

        _cache_service = CacheService(redis_url=settings.REDIS_URL)
    return _cache_service
