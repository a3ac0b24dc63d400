"""Redis connection management.

Mirrors the pattern in engine.py: when REDIS_URL is configured the lifespan
yields a connected client, otherwise it yields None and the document store
and topic cache fall back to their in-memory implementations.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from flutterprep.core.config import Settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan_redis(settings: Settings) -> AsyncIterator[aioredis.Redis | None]:
    """Yield a Redis client for REDIS_URL, or None when unset."""
    if not settings.redis_url:
        logger.info("No REDIS_URL configured; document store and cache are in-memory")
        yield None
        return

    client = aioredis.from_url(
        settings.redis_url,
        decode_responses=True,  # str instead of bytes
        max_connections=20,
    )
    # Verify connectivity on startup.  An unreachable Redis is not fatal:
    # the dual-database layer falls back to the relational backend.
    try:
        await client.ping()  # type: ignore[misc]
        logger.info("Redis connected: %s", settings.redis_url)
    except RedisError:
        logger.exception("Redis connection failed on startup")

    try:
        yield client
    finally:
        await client.aclose()
        logger.info("Redis connection pool closed")
