"""Async SQLAlchemy engine lifecycle for the relational backend.

The engine is created inside the application lifespan, not at import time,
and disposed on shutdown.  When DATABASE_URL is not configured the lifespan
yields None and the relational backend runs on an in-memory document store.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from flutterprep.core.config import Settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all table models."""


@asynccontextmanager
async def lifespan_db(
    settings: Settings,
) -> AsyncIterator[async_sessionmaker[AsyncSession] | None]:
    """Yield a session factory for DATABASE_URL, or None when unset."""
    if not settings.database_url:
        logger.info("No DATABASE_URL configured; relational backend is in-memory")
        yield None
        return

    engine = create_async_engine(
        settings.database_url,
        echo=settings.is_dev,  # log SQL in dev only
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
    )
    logger.info("Database engine created: %s", engine.url.render_as_string(hide_password=True))
    try:
        yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    finally:
        await engine.dispose()
        logger.info("Database engine disposed")
