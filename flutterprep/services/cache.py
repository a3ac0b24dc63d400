"""Expiring key/value cache in front of topic reads.

Two complementary invalidation strategies:

  1. TTL: every entry is absent once more than ``ttl_seconds`` have elapsed
     since it was set.  This is the safety net for any write path that
     forgets to invalidate.

  2. Explicit invalidation: the admin cache endpoint and the migration
     route drop entries as soon as content changes.

Values are JSON strings.  There is no size bound and no LRU eviction.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Protocol, runtime_checkable

from redis.exceptions import RedisError

from flutterprep.core.metrics import CACHE_OPERATIONS

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 3600


@runtime_checkable
class CacheService(Protocol):
    async def get(self, key: str) -> str | None:
        """Fetch a cached value.  Returns None on a miss or after expiry."""
        ...

    async def set(self, key: str, value: str) -> None:
        """Store a value; it expires ``ttl_seconds`` later."""
        ...

    async def invalidate(self, key: str) -> None:
        """Explicitly drop one entry."""
        ...

    async def invalidate_all(self) -> None:
        """Drop every entry this cache owns."""
        ...


class InMemoryCacheService:
    """Process-local cache.  Expiry is checked lazily on ``get``.

    ``clock`` returns seconds and defaults to ``time.monotonic``; tests pass
    a fake clock to step past the TTL without sleeping.
    """

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._store: dict[str, tuple[str, float]] = {}

    async def get(self, key: str) -> str | None:
        entry = self._store.get(key)
        if entry is None:
            CACHE_OPERATIONS.labels(operation="miss").inc()
            return None
        value, stored_at = entry
        if self._clock() - stored_at > self.ttl_seconds:
            del self._store[key]
            CACHE_OPERATIONS.labels(operation="miss").inc()
            return None
        CACHE_OPERATIONS.labels(operation="hit").inc()
        return value

    async def set(self, key: str, value: str) -> None:
        self._store[key] = (value, self._clock())

    async def invalidate(self, key: str) -> None:
        self._store.pop(key, None)

    async def invalidate_all(self) -> None:
        self._store.clear()

    def __len__(self) -> int:
        return len(self._store)


class RedisCacheService:
    """Redis-backed cache shared by every API instance.  Expiry is SETEX."""

    # Prefix keeps cache keys apart from the document store's keys
    _PREFIX = "cache:"

    def __init__(self, redis_client, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> None:
        self._redis = redis_client
        self.ttl_seconds = ttl_seconds

    async def get(self, key: str) -> str | None:
        try:
            value = await self._redis.get(f"{self._PREFIX}{key}")
        except RedisError:
            # A cache outage degrades to a miss; the backends still answer
            logger.warning("Cache read failed for key=%s", key, exc_info=True)
            value = None
        CACHE_OPERATIONS.labels(operation="miss" if value is None else "hit").inc()
        return value

    async def set(self, key: str, value: str) -> None:
        try:
            await self._redis.setex(f"{self._PREFIX}{key}", self.ttl_seconds, value)
        except RedisError:
            logger.warning("Cache write failed for key=%s", key, exc_info=True)

    async def invalidate(self, key: str) -> None:
        try:
            await self._redis.delete(f"{self._PREFIX}{key}")
        except RedisError:
            logger.warning("Cache invalidation failed for key=%s", key, exc_info=True)

    async def invalidate_all(self) -> None:
        # SCAN is cursor-based, so Redis keeps serving other clients between
        # batches (KEYS would block the server for the whole keyspace).
        cursor = 0
        try:
            while True:
                cursor, keys = await self._redis.scan(
                    cursor, match=f"{self._PREFIX}*", count=100
                )
                if keys:
                    await self._redis.delete(*keys)
                if cursor == 0:
                    break
        except RedisError:
            # Entries left behind still expire through their TTL
            logger.warning("Cache invalidation failed", exc_info=True)
