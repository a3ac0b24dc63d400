"""PostgreSQL implementation of the Backend protocol via async SQLAlchemy."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager, contextmanager
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import DateTime, delete, select, text, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from flutterprep.backends.base import (
    DEFINITIONS,
    PROJECTS,
    QUIZ_QUESTIONS,
    QUIZ_RESULTS,
    QUIZZES,
    TOPIC_PROGRESS,
    TOPICS,
    USERS,
    BackendError,
    BackendName,
    BackendUnavailableError,
    InvalidCredentialsError,
    RecordNotFoundError,
    UserAlreadyExistsError,
    normalize_email,
    validate_credentials,
)
from flutterprep.backends.records import (
    definition_from_record,
    parse_timestamp,
    project_from_record,
    question_from_record,
    quiz_from_record,
    quiz_result_from_record,
    topic_from_record,
    topic_progress_from_record,
    topic_sort_key,
    user_from_record,
)
from flutterprep.db.engine import Base
from flutterprep.db.tables import (
    DefinitionRow,
    ProjectFeatureRow,
    ProjectRow,
    ProjectTechnologyRow,
    QuizQuestionRow,
    QuizResultRow,
    QuizRow,
    TopicProgressRow,
    TopicRow,
    UserRow,
)
from flutterprep.models.content import Definition, Project, Quiz, QuizQuestion, Topic
from flutterprep.models.progress import QuizResult, TopicProgress
from flutterprep.models.user import AuthUser, GitHubIdentity
from flutterprep.services.passwords import hash_password, needs_rehash, verify_password

logger = logging.getLogger(__name__)

_ROWS: dict[str, type[Base]] = {
    TOPICS: TopicRow,
    DEFINITIONS: DefinitionRow,
    PROJECTS: ProjectRow,
    QUIZZES: QuizRow,
    QUIZ_QUESTIONS: QuizQuestionRow,
    QUIZ_RESULTS: QuizResultRow,
    TOPIC_PROGRESS: TopicProgressRow,
    USERS: UserRow,
}

# Children before parents so FK constraints hold while clearing
_CLEAR_ORDER = (QUIZ_QUESTIONS, QUIZZES, PROJECTS, DEFINITIONS, TOPICS)


def _columns(row: Base) -> dict[str, Any]:
    return {c.key: getattr(row, c.key) for c in row.__table__.columns}


def _project_record(row: ProjectRow) -> dict[str, Any]:
    return {
        **_columns(row),
        "technologies": [_columns(t) for t in row.technologies],
        "features": [_columns(f) for f in row.features],
    }


def _row_for(collection: str, record: dict[str, Any]) -> Base:
    """Build an ORM row from a JSON-style record (ISO timestamps allowed)."""
    row_cls = _ROWS.get(collection)
    if row_cls is None:
        raise ValueError(f"unknown collection {collection!r}")

    values: dict[str, Any] = {}
    for column in row_cls.__table__.columns:
        if column.key not in record:
            continue
        value = record[column.key]
        if isinstance(column.type, DateTime):
            value = parse_timestamp(value)
        values[column.key] = value

    if collection == PROJECTS:
        values["technologies"] = [
            ProjectTechnologyRow(
                position=i,
                name=t["name"],
                explanation=t.get("explanation", ""),
                is_required=bool(t.get("is_required", False)),
                category=t.get("category", "general"),
            )
            for i, t in enumerate(record.get("technologies") or [])
        ]
        values["features"] = [
            ProjectFeatureRow(
                position=i,
                name=f["name"],
                description=f.get("description", ""),
                priority=f.get("priority", "medium"),
            )
            for i, f in enumerate(record.get("features") or [])
        ]
    return row_cls(**values)


@contextmanager
def _translate_errors(backend: str) -> Iterator[None]:
    try:
        yield
    except IntegrityError as exc:
        raise BackendError(f"constraint violation: {exc.orig}", backend=backend) from exc
    except (SQLAlchemyError, OSError) as exc:
        raise BackendUnavailableError(
            f"relational store unavailable: {exc}", backend=backend
        ) from exc


class RelationalWriteBatch:
    def __init__(self, backend: RelationalBackend) -> None:
        self._backend = backend
        self._writes: list[tuple[str, dict[str, Any]]] = []

    def add(self, collection: str, record: dict[str, Any]) -> str:
        row_id = str(record.get("id") or uuid4())
        self._writes.append((collection, {**record, "id": row_id}))
        return row_id

    def __len__(self) -> int:
        return len(self._writes)

    async def commit(self) -> None:
        writes, self._writes = self._writes, []
        async with self._backend.session() as session, session.begin():
            for collection, record in writes:
                session.add(_row_for(collection, record))
                # Flushing per row keeps parent rows ahead of their children
                await session.flush()


class RelationalBackend:
    """Satisfies the Backend Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        name: BackendName = "relational",
    ) -> None:
        self._session_factory = session_factory
        self.name = name

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        with _translate_errors(self.name):
            async with self._session_factory() as session:
                yield session

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    async def sign_up(
        self, email: str, password: str, *, user_id: str | None = None
    ) -> AuthUser:
        email = validate_credentials(email, password)
        async with self.session() as session, session.begin():
            stmt = select(UserRow.id).where(UserRow.email == email)
            if (await session.execute(stmt)).scalar_one_or_none() is not None:
                raise UserAlreadyExistsError(email, backend=self.name)
            row = UserRow(
                id=user_id or str(uuid4()),
                email=email,
                password_hash=hash_password(password),
                email_verified=False,
                created_at=datetime.now(UTC),
            )
            session.add(row)
        logger.info("Created user id=%s email=%s backend=%s", row.id, email, self.name)
        return user_from_record(_columns(row))

    async def sign_in(self, email: str, password: str) -> AuthUser:
        async with self.session() as session, session.begin():
            stmt = select(UserRow).where(UserRow.email == normalize_email(email))
            row = (await session.execute(stmt)).scalar_one_or_none()
            if row is None or not verify_password(password, row.password_hash):
                raise InvalidCredentialsError(
                    "Invalid email or password", backend=self.name
                )
            if needs_rehash(row.password_hash):
                row.password_hash = hash_password(password)
                logger.info("Rehashed password for user=%s", row.id)
        return user_from_record(_columns(row))

    async def sign_out(self, user_id: str) -> None:
        async with self.session() as session, session.begin():
            await session.execute(
                update(UserRow)
                .where(UserRow.id == user_id)
                .values(signed_out_at=datetime.now(UTC))
            )

    async def reset_password(self, email: str) -> None:
        async with self.session() as session, session.begin():
            result = await session.execute(
                update(UserRow)
                .where(UserRow.email == normalize_email(email))
                .values(password_reset_requested_at=datetime.now(UTC))
            )
        if result.rowcount == 0:
            logger.info("Password reset requested for unknown email")
        else:
            logger.info("Password reset requested backend=%s", self.name)

    async def link_github_account(
        self, user_id: str, identity: GitHubIdentity
    ) -> AuthUser:
        async with self.session() as session, session.begin():
            row = await session.get(UserRow, user_id)
            if row is None:
                raise RecordNotFoundError(f"user {user_id} not found", backend=self.name)
            row.github_username = identity.username
            row.github_avatar_url = identity.avatar_url
            row.github_access_token = identity.access_token
        return user_from_record(_columns(row))

    async def get_user(self, user_id: str) -> AuthUser | None:
        async with self.session() as session:
            row = await session.get(UserRow, user_id)
        return None if row is None else user_from_record(_columns(row))

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------

    async def get_topics(self) -> list[Topic]:
        async with self.session() as session:
            rows = (await session.execute(select(TopicRow))).scalars().all()
        return sorted((topic_from_record(_columns(r)) for r in rows), key=topic_sort_key)

    async def get_topic_by_slug(self, slug: str) -> Topic | None:
        async with self.session() as session:
            stmt = select(TopicRow).where(TopicRow.slug == slug)
            row = (await session.execute(stmt)).scalar_one_or_none()
        return None if row is None else topic_from_record(_columns(row))

    async def get_definitions(self) -> list[Definition]:
        async with self.session() as session:
            stmt = select(DefinitionRow).order_by(DefinitionRow.term)
            rows = (await session.execute(stmt)).scalars().all()
        return [definition_from_record(_columns(r)) for r in rows]

    async def get_definition_by_term(self, term: str) -> Definition | None:
        async with self.session() as session:
            stmt = select(DefinitionRow).where(DefinitionRow.term == term)
            row = (await session.execute(stmt)).scalar_one_or_none()
        return None if row is None else definition_from_record(_columns(row))

    async def get_projects(self) -> list[Project]:
        async with self.session() as session:
            stmt = select(ProjectRow).order_by(ProjectRow.name)
            rows = (await session.execute(stmt)).scalars().all()
            return [project_from_record(_project_record(r)) for r in rows]

    async def get_project_by_slug(self, slug: str) -> Project | None:
        async with self.session() as session:
            stmt = select(ProjectRow).where(ProjectRow.slug == slug)
            row = (await session.execute(stmt)).scalar_one_or_none()
            return None if row is None else project_from_record(_project_record(row))

    async def get_quizzes(self) -> list[Quiz]:
        async with self.session() as session:
            stmt = select(QuizRow).order_by(QuizRow.level, QuizRow.title)
            rows = (await session.execute(stmt)).scalars().all()
        return [quiz_from_record(_columns(r)) for r in rows]

    async def _questions(self, session: AsyncSession, where) -> list[QuizQuestion]:
        stmt = select(QuizQuestionRow).where(where).order_by(
            QuizQuestionRow.position, QuizQuestionRow.id
        )
        rows = (await session.execute(stmt)).scalars().all()
        return [question_from_record(_columns(r)) for r in rows]

    async def get_quiz_by_slug(self, slug: str) -> Quiz | None:
        async with self.session() as session:
            stmt = select(QuizRow).where(QuizRow.slug == slug)
            row = (await session.execute(stmt)).scalar_one_or_none()
            if row is None:
                return None
            questions = await self._questions(session, QuizQuestionRow.quiz_id == row.id)
        return quiz_from_record(_columns(row), tuple(questions))

    async def get_quiz_by_id(self, quiz_id: str) -> Quiz | None:
        async with self.session() as session:
            row = await session.get(QuizRow, quiz_id)
            if row is None:
                return None
            questions = await self._questions(session, QuizQuestionRow.quiz_id == quiz_id)
        return quiz_from_record(_columns(row), tuple(questions))

    async def get_questions_by_quiz_slug(self, quiz_slug: str) -> list[QuizQuestion]:
        async with self.session() as session:
            return await self._questions(session, QuizQuestionRow.quiz_slug == quiz_slug)

    # ------------------------------------------------------------------
    # Progress
    # ------------------------------------------------------------------

    async def save_quiz_result(
        self, user_id: str, quiz_id: str, score: int, total_questions: int
    ) -> QuizResult:
        result = QuizResult.new(
            user_id=user_id, quiz_id=quiz_id, score=score, total_questions=total_questions
        )
        async with self.session() as session, session.begin():
            session.add(
                QuizResultRow(
                    id=result.id,
                    user_id=result.user_id,
                    quiz_id=result.quiz_id,
                    score=result.score,
                    total_questions=result.total_questions,
                    completed_at=result.completed_at,
                )
            )
        return result

    async def get_user_quiz_results(self, user_id: str) -> list[QuizResult]:
        async with self.session() as session:
            stmt = (
                select(QuizResultRow)
                .where(QuizResultRow.user_id == user_id)
                .order_by(QuizResultRow.completed_at.desc())
            )
            rows = (await session.execute(stmt)).scalars().all()
        return [quiz_result_from_record(_columns(r)) for r in rows]

    async def mark_topic_as_read(self, user_id: str, topic_id: str) -> TopicProgress:
        progress = TopicProgress(user_id=user_id, topic_id=topic_id, read_at=datetime.now(UTC))
        stmt = pg_insert(TopicProgressRow).values(
            user_id=user_id, topic_id=topic_id, read_at=progress.read_at
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[TopicProgressRow.user_id, TopicProgressRow.topic_id],
            set_={"read_at": stmt.excluded.read_at},
        )
        async with self.session() as session, session.begin():
            await session.execute(stmt)
        return progress

    async def get_user_topic_progress(self, user_id: str) -> list[TopicProgress]:
        async with self.session() as session:
            stmt = (
                select(TopicProgressRow)
                .where(TopicProgressRow.user_id == user_id)
                .order_by(TopicProgressRow.read_at.desc())
            )
            rows = (await session.execute(stmt)).scalars().all()
        return [topic_progress_from_record(_columns(r)) for r in rows]

    # ------------------------------------------------------------------
    # Bulk primitives
    # ------------------------------------------------------------------

    async def ping(self) -> None:
        async with self.session() as session:
            await session.execute(text("SELECT 1"))

    async def exists(self, collection: str, field: str, value: str) -> bool:
        row_cls = _ROWS.get(collection)
        if row_cls is None or field not in row_cls.__table__.columns:
            raise ValueError(f"cannot look up {collection}.{field}")
        column = row_cls.__table__.columns[field]
        async with self.session() as session:
            stmt = select(column).where(column == value).limit(1)
            return (await session.execute(stmt)).first() is not None

    def batch(self) -> RelationalWriteBatch:
        return RelationalWriteBatch(self)

    async def clear(self, collections: tuple[str, ...]) -> None:
        ordered = [c for c in _CLEAR_ORDER if c in collections]
        ordered += [c for c in collections if c not in ordered]
        async with self.session() as session, session.begin():
            for collection in ordered:
                if collection == PROJECTS:
                    await session.execute(delete(ProjectTechnologyRow))
                    await session.execute(delete(ProjectFeatureRow))
                await session.execute(delete(_ROWS[collection]))
                logger.info("Cleared collection=%s backend=%s", collection, self.name)
