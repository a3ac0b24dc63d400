"""Read-through topic cache in front of the dual-database service."""

from __future__ import annotations

import asyncio

import pytest

from flutterprep.backends.base import TOPICS
from flutterprep.backends.document import DocumentBackend
from flutterprep.services.cache import InMemoryCacheService
from flutterprep.services.content_service import ALL_TOPICS_KEY, ContentService, topic_key
from flutterprep.services.dual_database import DualDatabaseService
from tests.conftest import seed, topic_record


@pytest.fixture
def cache() -> InMemoryCacheService:
    return InMemoryCacheService()


@pytest.fixture
def content(
    relational: DocumentBackend, document: DocumentBackend, cache: InMemoryCacheService
) -> ContentService:
    return ContentService(DualDatabaseService(relational, document), cache)


def test_topic_list_is_cached(
    content: ContentService, relational: DocumentBackend, cache: InMemoryCacheService
) -> None:
    seed(relational, TOPICS, topic_record("widgets"))
    first = asyncio.run(content.get_topics())

    # A write behind the cache's back is not visible until invalidation
    seed(relational, TOPICS, topic_record("streams"))
    second = asyncio.run(content.get_topics())

    assert [t.slug for t in first] == ["widgets"]
    assert second == first
    assert asyncio.run(cache.get(ALL_TOPICS_KEY)) is not None

    asyncio.run(content.invalidate_topics())
    assert len(asyncio.run(content.get_topics())) == 2


def test_cached_topic_round_trips_sections(
    content: ContentService, relational: DocumentBackend
) -> None:
    seed(
        relational,
        TOPICS,
        topic_record(
            "layout",
            content=[{"title": "Row", "content": "Horizontal", "code": "Row()"}],
        ),
    )
    fresh = asyncio.run(content.get_topic_by_slug("layout"))
    cached = asyncio.run(content.get_topic_by_slug("layout"))
    assert cached == fresh
    assert cached.content[0].code == "Row()"


def test_missing_topic_is_not_cached(
    content: ContentService, cache: InMemoryCacheService
) -> None:
    assert asyncio.run(content.get_topic_by_slug("nope")) is None
    assert asyncio.run(cache.get(topic_key("nope"))) is None
    assert len(cache) == 0
