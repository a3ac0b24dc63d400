"""Document-style backend: every logical operation over a DocumentStore.

Collections and document shapes:

  users           {id, email, password_hash, email_verified, display_name,
                   github_*, created_at, signed_out_at,
                   password_reset_requested_at}
  topics          {id, title, slug, description, content, level, ...}
  definitions     {id, term, definition, category, ...}
  projects        {id, name, slug, ..., technologies: [...], features: [...]}
  quizzes         {id, slug, title, description, level}
  quiz_questions  {id, quiz_id, quiz_slug, question, options, ...}
  quiz_results    {id, user_id, quiz_id, score, total_questions, completed_at}
  topic_progress  id "{user_id}:{topic_id}", so marking a topic twice upserts
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from flutterprep.backends.base import (
    DEFINITIONS,
    PROJECTS,
    QUIZ_QUESTIONS,
    QUIZ_RESULTS,
    QUIZZES,
    TOPIC_PROGRESS,
    TOPICS,
    USERS,
    BackendName,
    InvalidCredentialsError,
    RecordNotFoundError,
    UserAlreadyExistsError,
    normalize_email,
    validate_credentials,
)
from flutterprep.backends.document_store import Document, DocumentStore, Write
from flutterprep.backends.records import (
    LEVEL_ORDER,
    definition_from_record,
    project_from_record,
    question_from_record,
    quiz_from_record,
    quiz_result_from_record,
    to_record,
    topic_from_record,
    topic_progress_from_record,
    topic_sort_key,
    user_from_record,
)
from flutterprep.models.content import Definition, Project, Quiz, QuizQuestion, Topic
from flutterprep.models.progress import QuizResult, TopicProgress
from flutterprep.models.user import AuthUser, GitHubIdentity
from flutterprep.services.passwords import hash_password, needs_rehash, verify_password

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(UTC).isoformat()


class DocumentWriteBatch:
    """Queues writes and lands them with a single ``put_many``."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store
        self._writes: list[Write] = []

    def add(self, collection: str, record: dict[str, Any]) -> str:
        doc_id = str(record.get("id") or uuid4())
        self._writes.append((collection, doc_id, {**record, "id": doc_id}))
        return doc_id

    def __len__(self) -> int:
        return len(self._writes)

    async def commit(self) -> None:
        writes, self._writes = self._writes, []
        await self._store.put_many(writes)


class DocumentBackend:
    def __init__(self, store: DocumentStore, *, name: BackendName = "document") -> None:
        self._store = store
        self.name = name

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    async def _user_doc_by_email(self, email: str) -> Document | None:
        docs = await self._store.find(USERS, "email", normalize_email(email))
        return docs[0] if docs else None

    async def _put(self, collection: str, doc: Document) -> None:
        await self._store.put_many([(collection, doc["id"], doc)])

    async def sign_up(
        self, email: str, password: str, *, user_id: str | None = None
    ) -> AuthUser:
        email = validate_credentials(email, password)
        if await self._user_doc_by_email(email) is not None:
            raise UserAlreadyExistsError(email, backend=self.name)

        doc = {
            "id": user_id or str(uuid4()),
            "email": email,
            "password_hash": hash_password(password),
            "email_verified": False,
            "display_name": None,
            "github_username": None,
            "github_avatar_url": None,
            "github_access_token": None,
            "created_at": _now(),
        }
        await self._put(USERS, doc)
        logger.info("Created user id=%s email=%s backend=%s", doc["id"], email, self.name)
        return user_from_record(doc)

    async def sign_in(self, email: str, password: str) -> AuthUser:
        doc = await self._user_doc_by_email(email)
        if doc is None or not verify_password(password, doc.get("password_hash")):
            raise InvalidCredentialsError("Invalid email or password", backend=self.name)

        if needs_rehash(doc["password_hash"]):
            await self._put(USERS, {**doc, "password_hash": hash_password(password)})
            logger.info("Rehashed password for user=%s", doc["id"])
        return user_from_record(doc)

    async def sign_out(self, user_id: str) -> None:
        doc = await self._store.get(USERS, user_id)
        if doc is None:
            return
        await self._put(USERS, {**doc, "signed_out_at": _now()})

    async def reset_password(self, email: str) -> None:
        doc = await self._user_doc_by_email(email)
        if doc is None:
            # Unknown emails are not revealed to the caller
            logger.info("Password reset requested for unknown email")
            return
        await self._put(USERS, {**doc, "password_reset_requested_at": _now()})
        logger.info("Password reset requested for user=%s", doc["id"])

    async def link_github_account(
        self, user_id: str, identity: GitHubIdentity
    ) -> AuthUser:
        doc = await self._store.get(USERS, user_id)
        if doc is None:
            raise RecordNotFoundError(f"user {user_id} not found", backend=self.name)
        updated = {
            **doc,
            "github_username": identity.username,
            "github_avatar_url": identity.avatar_url,
            "github_access_token": identity.access_token,
        }
        await self._put(USERS, updated)
        return user_from_record(updated)

    async def get_user(self, user_id: str) -> AuthUser | None:
        doc = await self._store.get(USERS, user_id)
        return None if doc is None else user_from_record(doc)

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------

    async def _find_one(self, collection: str, field: str, value: str) -> Document | None:
        docs = await self._store.find(collection, field, value)
        return docs[0] if docs else None

    async def get_topics(self) -> list[Topic]:
        topics = [topic_from_record(d) for d in await self._store.all(TOPICS)]
        return sorted(topics, key=topic_sort_key)

    async def get_topic_by_slug(self, slug: str) -> Topic | None:
        doc = await self._find_one(TOPICS, "slug", slug)
        return None if doc is None else topic_from_record(doc)

    async def get_definitions(self) -> list[Definition]:
        defs = [definition_from_record(d) for d in await self._store.all(DEFINITIONS)]
        return sorted(defs, key=lambda d: d.term.lower())

    async def get_definition_by_term(self, term: str) -> Definition | None:
        doc = await self._find_one(DEFINITIONS, "term", term)
        return None if doc is None else definition_from_record(doc)

    async def get_projects(self) -> list[Project]:
        projects = [project_from_record(d) for d in await self._store.all(PROJECTS)]
        return sorted(projects, key=lambda p: p.name.lower())

    async def get_project_by_slug(self, slug: str) -> Project | None:
        doc = await self._find_one(PROJECTS, "slug", slug)
        return None if doc is None else project_from_record(doc)

    async def get_quizzes(self) -> list[Quiz]:
        quizzes = [quiz_from_record(d) for d in await self._store.all(QUIZZES)]
        return sorted(
            quizzes, key=lambda q: (LEVEL_ORDER.get(q.level, 99), q.title.lower())
        )

    async def _questions_for(self, quiz_id: str, quiz_slug: str) -> tuple[QuizQuestion, ...]:
        # Older writers tagged questions by slug only, newer ones by id
        by_id: dict[str, Document] = {}
        for doc in await self._store.find(QUIZ_QUESTIONS, "quiz_id", quiz_id):
            by_id[doc["id"]] = doc
        for doc in await self._store.find(QUIZ_QUESTIONS, "quiz_slug", quiz_slug):
            by_id.setdefault(doc["id"], doc)
        docs = sorted(by_id.values(), key=lambda d: (d.get("position", 0), d["id"]))
        return tuple(question_from_record(d) for d in docs)

    async def get_quiz_by_slug(self, slug: str) -> Quiz | None:
        doc = await self._find_one(QUIZZES, "slug", slug)
        if doc is None:
            return None
        return quiz_from_record(doc, await self._questions_for(doc["id"], slug))

    async def get_quiz_by_id(self, quiz_id: str) -> Quiz | None:
        doc = await self._store.get(QUIZZES, quiz_id)
        if doc is None:
            return None
        return quiz_from_record(doc, await self._questions_for(quiz_id, doc.get("slug", "")))

    async def get_questions_by_quiz_slug(self, quiz_slug: str) -> list[QuizQuestion]:
        docs = await self._store.find(QUIZ_QUESTIONS, "quiz_slug", quiz_slug)
        docs.sort(key=lambda d: (d.get("position", 0), d["id"]))
        return [question_from_record(d) for d in docs]

    # ------------------------------------------------------------------
    # Progress
    # ------------------------------------------------------------------

    async def save_quiz_result(
        self, user_id: str, quiz_id: str, score: int, total_questions: int
    ) -> QuizResult:
        result = QuizResult.new(
            user_id=user_id, quiz_id=quiz_id, score=score, total_questions=total_questions
        )
        await self._put(QUIZ_RESULTS, to_record(result))
        return result

    async def get_user_quiz_results(self, user_id: str) -> list[QuizResult]:
        docs = await self._store.find(QUIZ_RESULTS, "user_id", user_id)
        results = [quiz_result_from_record(d) for d in docs]
        return sorted(results, key=lambda r: r.completed_at, reverse=True)

    async def mark_topic_as_read(self, user_id: str, topic_id: str) -> TopicProgress:
        progress = TopicProgress(user_id=user_id, topic_id=topic_id, read_at=datetime.now(UTC))
        await self._put(
            TOPIC_PROGRESS, {"id": f"{user_id}:{topic_id}", **to_record(progress)}
        )
        return progress

    async def get_user_topic_progress(self, user_id: str) -> list[TopicProgress]:
        docs = await self._store.find(TOPIC_PROGRESS, "user_id", user_id)
        progress = [topic_progress_from_record(d) for d in docs]
        return sorted(progress, key=lambda p: p.read_at, reverse=True)

    # ------------------------------------------------------------------
    # Bulk primitives
    # ------------------------------------------------------------------

    async def ping(self) -> None:
        await self._store.ping()

    async def exists(self, collection: str, field: str, value: str) -> bool:
        return bool(await self._store.find(collection, field, value))

    def batch(self) -> DocumentWriteBatch:
        return DocumentWriteBatch(self._store)

    async def clear(self, collections: tuple[str, ...]) -> None:
        for collection in collections:
            await self._store.clear(collection)
            logger.info("Cleared collection=%s backend=%s", collection, self.name)
