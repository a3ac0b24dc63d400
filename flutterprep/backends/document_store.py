"""Storage primitives for the document backend.

A document store holds JSON documents grouped by collection and addressed
by id, with equality lookups on a field.  Two implementations:

  InMemoryDocumentStore: a dict of JSON strings.  Used in tests and when
      REDIS_URL is not configured.  Documents go through ``json.dumps`` on
      the way in, so values that Redis would reject are rejected here too.

  RedisDocumentStore: one string key per document plus set-based indexes.

      docs:{collection}:{id}            -> JSON document
      ids:{collection}                  -> set of ids in the collection
      idx:{collection}:{field}:{value}  -> set of ids with field == value

Only the fields in ``INDEXED_FIELDS`` get an index; lookups on any other
field scan the collection.  ``put_many`` runs as one MULTI/EXEC pipeline so
a batch either lands entirely or not at all.
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, Protocol, runtime_checkable

from redis.exceptions import RedisError

from flutterprep.backends.base import (
    DEFINITIONS,
    PROJECTS,
    QUIZ_QUESTIONS,
    QUIZ_RESULTS,
    QUIZZES,
    TOPIC_PROGRESS,
    TOPICS,
    USERS,
    BackendUnavailableError,
)

Document = dict[str, Any]
Write = tuple[str, str, Document]  # (collection, id, document)

INDEXED_FIELDS: dict[str, tuple[str, ...]] = {
    TOPICS: ("slug",),
    DEFINITIONS: ("term",),
    PROJECTS: ("slug",),
    QUIZZES: ("slug",),
    QUIZ_QUESTIONS: ("quiz_id", "quiz_slug"),
    QUIZ_RESULTS: ("user_id",),
    TOPIC_PROGRESS: ("user_id",),
    USERS: ("email",),
}


@runtime_checkable
class DocumentStore(Protocol):
    async def get(self, collection: str, doc_id: str) -> Document | None: ...
    async def all(self, collection: str) -> list[Document]: ...
    async def find(self, collection: str, field: str, value: Any) -> list[Document]: ...
    async def put_many(self, writes: list[Write]) -> None: ...
    async def clear(self, collection: str) -> None: ...
    async def ping(self) -> None: ...


class InMemoryDocumentStore:
    def __init__(self) -> None:
        self._collections: dict[str, dict[str, str]] = {}

    async def get(self, collection: str, doc_id: str) -> Document | None:
        raw = self._collections.get(collection, {}).get(doc_id)
        return None if raw is None else json.loads(raw)

    async def all(self, collection: str) -> list[Document]:
        return [json.loads(raw) for raw in self._collections.get(collection, {}).values()]

    async def find(self, collection: str, field: str, value: Any) -> list[Document]:
        return [doc for doc in await self.all(collection) if doc.get(field) == value]

    async def put_many(self, writes: list[Write]) -> None:
        # Serialize everything first so a bad document leaves no partial batch
        encoded = [(c, doc_id, json.dumps(doc)) for c, doc_id, doc in writes]
        for collection, doc_id, raw in encoded:
            self._collections.setdefault(collection, {})[doc_id] = raw

    async def clear(self, collection: str) -> None:
        self._collections.pop(collection, None)

    async def ping(self) -> None:
        return None


@contextmanager
def _translate_errors() -> Iterator[None]:
    try:
        yield
    except RedisError as exc:
        raise BackendUnavailableError(
            f"document store unavailable: {exc}", backend="document"
        ) from exc


class RedisDocumentStore:
    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    @staticmethod
    def _doc_key(collection: str, doc_id: str) -> str:
        return f"docs:{collection}:{doc_id}"

    @staticmethod
    def _ids_key(collection: str) -> str:
        return f"ids:{collection}"

    @staticmethod
    def _idx_key(collection: str, field: str, value: Any) -> str:
        return f"idx:{collection}:{field}:{value}"

    async def _load(self, collection: str, ids: list[str]) -> list[Document]:
        if not ids:
            return []
        raws = await self._redis.mget([self._doc_key(collection, i) for i in ids])
        return [json.loads(raw) for raw in raws if raw is not None]

    async def get(self, collection: str, doc_id: str) -> Document | None:
        with _translate_errors():
            raw = await self._redis.get(self._doc_key(collection, doc_id))
        return None if raw is None else json.loads(raw)

    async def all(self, collection: str) -> list[Document]:
        with _translate_errors():
            ids = await self._redis.smembers(self._ids_key(collection))
            return await self._load(collection, sorted(ids))

    async def find(self, collection: str, field: str, value: Any) -> list[Document]:
        if field not in INDEXED_FIELDS.get(collection, ()):
            return [doc for doc in await self.all(collection) if doc.get(field) == value]
        with _translate_errors():
            ids = await self._redis.smembers(self._idx_key(collection, field, value))
            return await self._load(collection, sorted(ids))

    async def put_many(self, writes: list[Write]) -> None:
        if not writes:
            return
        encoded = [(c, doc_id, doc, json.dumps(doc)) for c, doc_id, doc in writes]
        with _translate_errors():
            # Previous versions tell us which index entries go stale
            old_raws = await self._redis.mget(
                [self._doc_key(c, doc_id) for c, doc_id, _ in writes]
            )
            async with self._redis.pipeline(transaction=True) as pipe:
                for (collection, doc_id, doc, raw), old_raw in zip(
                    encoded, old_raws, strict=True
                ):
                    old = json.loads(old_raw) if old_raw is not None else {}
                    pipe.set(self._doc_key(collection, doc_id), raw)
                    pipe.sadd(self._ids_key(collection), doc_id)
                    for field in INDEXED_FIELDS.get(collection, ()):
                        old_value = old.get(field)
                        new_value = doc.get(field)
                        if old_value is not None and old_value != new_value:
                            pipe.srem(self._idx_key(collection, field, old_value), doc_id)
                        if new_value is not None:
                            pipe.sadd(self._idx_key(collection, field, new_value), doc_id)
                await pipe.execute()

    async def clear(self, collection: str) -> None:
        with _translate_errors():
            ids = await self._redis.smembers(self._ids_key(collection))
            keys = [self._doc_key(collection, i) for i in ids]
            keys.append(self._ids_key(collection))
            async for key in self._redis.scan_iter(match=f"idx:{collection}:*", count=100):
                keys.append(key)
            # DEL in chunks keeps each command small on large collections
            for start in range(0, len(keys), 500):
                await self._redis.delete(*keys[start : start + 500])

    async def ping(self) -> None:
        with _translate_errors():
            await self._redis.ping()
