"""Service wiring, built once per application lifespan.

Everything request handlers need hangs off one ``Services`` object stored
on ``app.state``.  Nothing here runs at import time: the engine and Redis
pool come from the lifespan hooks and are passed in.

When DATABASE_URL is unset the relational slot is filled by an in-memory
document backend named "relational"; when REDIS_URL is unset the document
backend and the cache are in-memory too.  Tests rely on this to run the
whole app without external services.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from flutterprep.backends.base import Backend
from flutterprep.backends.document import DocumentBackend
from flutterprep.backends.document_store import InMemoryDocumentStore, RedisDocumentStore
from flutterprep.backends.relational import RelationalBackend
from flutterprep.core.config import Settings
from flutterprep.services.cache import CacheService, InMemoryCacheService, RedisCacheService
from flutterprep.services.content_service import ContentService
from flutterprep.services.dual_database import DatabaseConfig, DualDatabaseService
from flutterprep.services.migration import MigrationRunner
from flutterprep.services.token_service import TokenService

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Services:
    settings: Settings
    relational: Backend
    document: Backend
    db: DualDatabaseService
    cache: CacheService
    content: ContentService
    tokens: TokenService

    def migration_runner(self) -> MigrationRunner:
        """Relational -> document, the direction the content moves in."""
        return MigrationRunner(
            self.relational,
            self.document,
            batch_size=self.settings.migration_batch_size,
        )


def build_services(
    settings: Settings,
    *,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    redis_client=None,
) -> Services:
    if session_factory is not None:
        relational: Backend = RelationalBackend(session_factory)
    else:
        relational = DocumentBackend(InMemoryDocumentStore(), name="relational")

    if redis_client is not None:
        document: Backend = DocumentBackend(RedisDocumentStore(redis_client))
        cache: CacheService = RedisCacheService(redis_client, settings.cache_ttl_seconds)
    else:
        document = DocumentBackend(InMemoryDocumentStore())
        cache = InMemoryCacheService(settings.cache_ttl_seconds)

    db = DualDatabaseService(relational, document, DatabaseConfig.from_settings(settings))
    logger.info(
        "Services built: relational=%s document=%s cache=%s",
        type(relational).__name__,
        "redis" if redis_client is not None else "in-memory",
        type(cache).__name__,
    )
    return Services(
        settings=settings,
        relational=relational,
        document=document,
        db=db,
        cache=cache,
        content=ContentService(db, cache),
        tokens=TokenService(settings.jwt_private_key_pem),
    )
