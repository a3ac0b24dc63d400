"""Read-through cache in front of topic reads.

Flow:  route -> cache -> hit  -> return
       route -> cache -> miss -> DualDatabaseService -> populate -> return

Cache keys:
  topics:all           the ordered topic list
  topics:slug:<slug>   one topic; a missing topic is never cached
"""

from __future__ import annotations

import json
import logging

from flutterprep.backends.records import to_record, topic_from_record
from flutterprep.models.content import Topic
from flutterprep.services.cache import CacheService
from flutterprep.services.dual_database import DualDatabaseService

logger = logging.getLogger(__name__)

ALL_TOPICS_KEY = "topics:all"


def topic_key(slug: str) -> str:
    return f"topics:slug:{slug}"


class ContentService:
    def __init__(self, db: DualDatabaseService, cache: CacheService) -> None:
        self._db = db
        self._cache = cache

    async def get_topics(self) -> list[Topic]:
        cached = await self._cache.get(ALL_TOPICS_KEY)
        if cached is not None:
            return [topic_from_record(r) for r in json.loads(cached)]

        topics = await self._db.get_topics()
        await self._cache.set(ALL_TOPICS_KEY, json.dumps([to_record(t) for t in topics]))
        return topics

    async def get_topic_by_slug(self, slug: str) -> Topic | None:
        key = topic_key(slug)
        cached = await self._cache.get(key)
        if cached is not None:
            return topic_from_record(json.loads(cached))

        topic = await self._db.get_topic_by_slug(slug)
        if topic is not None:
            await self._cache.set(key, json.dumps(to_record(topic)))
        return topic

    async def invalidate_topics(self) -> None:
        await self._cache.invalidate_all()
        logger.info("Topic cache invalidated")
