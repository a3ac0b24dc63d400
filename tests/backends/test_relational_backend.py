"""RelationalBackend against a file-backed SQLite database (aiosqlite).

The tables only use generic column types, so the same ORM rows that run on
PostgreSQL in production create cleanly here.  ``mark_topic_as_read`` is the
one PostgreSQL-only statement (ON CONFLICT upsert) and is not covered.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterator
from pathlib import Path

import pytest
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from flutterprep.backends.base import (
    CONTENT_COLLECTIONS,
    DEFINITIONS,
    PROJECTS,
    QUIZ_QUESTIONS,
    QUIZZES,
    TOPICS,
    BackendError,
    BackendUnavailableError,
    InvalidCredentialsError,
    RecordNotFoundError,
    UserAlreadyExistsError,
)
from flutterprep.backends.document import DocumentBackend
from flutterprep.backends.relational import RelationalBackend
from flutterprep.db.engine import Base
from flutterprep.models.user import GitHubIdentity
from flutterprep.services.migration import MigrationRunner
from tests.conftest import seed, topic_record


def _backend(url: str) -> tuple[RelationalBackend, AsyncEngine]:
    # NullPool: every asyncio.run() gets fresh connections on its own loop
    engine = create_async_engine(url, poolclass=NullPool)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    return RelationalBackend(factory), engine


@pytest.fixture
def sql(tmp_path: Path) -> Iterator[RelationalBackend]:
    backend, engine = _backend(f"sqlite+aiosqlite:///{tmp_path / 'flutterprep.db'}")

    async def _create() -> None:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(_create())
    yield backend
    asyncio.run(engine.dispose())


# ---- auth ----


def test_sign_up_and_sign_in(sql: RelationalBackend) -> None:
    user = asyncio.run(sql.sign_up(" Dash@Example.com ", "secret1"))
    assert user.email == "dash@example.com"

    signed_in = asyncio.run(sql.sign_in("DASH@example.com", "secret1"))
    assert signed_in.id == user.id
    assert asyncio.run(sql.get_user(user.id)).email == "dash@example.com"
    assert asyncio.run(sql.get_user("missing")) is None


def test_sign_up_rejects_duplicate_email(sql: RelationalBackend) -> None:
    asyncio.run(sql.sign_up("a@example.com", "secret1"))
    with pytest.raises(UserAlreadyExistsError):
        asyncio.run(sql.sign_up("A@example.com", "other-pass"))


def test_sign_in_rejects_bad_credentials(sql: RelationalBackend) -> None:
    asyncio.run(sql.sign_up("a@example.com", "secret1"))
    with pytest.raises(InvalidCredentialsError):
        asyncio.run(sql.sign_in("a@example.com", "wrong-pass"))
    with pytest.raises(InvalidCredentialsError):
        asyncio.run(sql.sign_in("nobody@example.com", "secret1"))


def test_link_github_account(sql: RelationalBackend) -> None:
    user = asyncio.run(sql.sign_up("a@example.com", "secret1"))

    linked = asyncio.run(
        sql.link_github_account(user.id, GitHubIdentity(username="dash", avatar_url="a.png"))
    )

    assert linked.github == GitHubIdentity(username="dash", avatar_url="a.png")
    with pytest.raises(RecordNotFoundError):
        asyncio.run(sql.link_github_account("missing", GitHubIdentity(username="dash")))


def test_sign_out_and_reset_password_do_not_raise(sql: RelationalBackend) -> None:
    user = asyncio.run(sql.sign_up("a@example.com", "secret1"))
    asyncio.run(sql.sign_out(user.id))
    asyncio.run(sql.reset_password("a@example.com"))
    asyncio.run(sql.reset_password("nobody@example.com"))


# ---- content ----


def test_topics_and_lookups(sql: RelationalBackend) -> None:
    seed(
        sql,
        TOPICS,
        topic_record("state", level="middle", title="State"),
        topic_record("widgets", title="Widgets"),
    )
    seed(sql, DEFINITIONS, {"term": "Widget", "definition": "A building block"})

    assert [t.slug for t in asyncio.run(sql.get_topics())] == ["widgets", "state"]
    assert asyncio.run(sql.get_topic_by_slug("state")).title == "State"
    assert asyncio.run(sql.get_topic_by_slug("missing")) is None
    assert asyncio.run(sql.get_definition_by_term("Widget")).category == "general"


def test_project_children_keep_their_order(sql: RelationalBackend) -> None:
    seed(
        sql,
        PROJECTS,
        {
            "name": "Todo",
            "slug": "todo",
            "technologies": [{"name": "Riverpod"}, {"name": "Dio", "is_required": True}],
            "features": [{"name": "Offline", "priority": "high"}],
        },
    )

    (project,) = asyncio.run(sql.get_projects())

    assert [t.name for t in project.technologies] == ["Riverpod", "Dio"]
    assert project.technologies[1].is_required is True
    assert project.features[0].priority == "high"
    assert asyncio.run(sql.get_project_by_slug("todo")).technologies == project.technologies


def test_quiz_with_questions(sql: RelationalBackend) -> None:
    (quiz_id,) = seed(sql, QUIZZES, {"slug": "basics", "title": "Basics"})
    seed(
        sql,
        QUIZ_QUESTIONS,
        {"quiz_id": quiz_id, "quiz_slug": "basics", "position": 1, "question": "Second?",
         "options": {"a": "Yes"}, "correct_answer": "a"},
        {"quiz_id": quiz_id, "quiz_slug": "basics", "position": 0, "question": "First?",
         "options": '{"a": "Yes", "b": "No"}', "correct_answer": "b"},
    )

    quiz = asyncio.run(sql.get_quiz_by_slug("basics"))

    assert [q.question for q in quiz.questions] == ["First?", "Second?"]
    assert quiz.questions[0].options == {"a": "Yes", "b": "No"}
    assert asyncio.run(sql.get_quiz_by_id(quiz_id)).slug == "basics"
    assert len(asyncio.run(sql.get_questions_by_quiz_slug("basics"))) == 2


# ---- progress ----


def test_quiz_results_are_scoped_to_user(sql: RelationalBackend) -> None:
    asyncio.run(sql.save_quiz_result("u1", "q1", 3, 5))
    asyncio.run(sql.save_quiz_result("u1", "q2", 5, 5))
    asyncio.run(sql.save_quiz_result("u2", "q1", 1, 5))

    results = asyncio.run(sql.get_user_quiz_results("u1"))

    assert sorted(r.score for r in results) == [3, 5]
    assert asyncio.run(sql.get_user_topic_progress("u1")) == []


# ---- bulk primitives ----


def test_exists_by_natural_key(sql: RelationalBackend) -> None:
    seed(sql, TOPICS, topic_record("widgets"))

    assert asyncio.run(sql.exists(TOPICS, "slug", "widgets")) is True
    assert asyncio.run(sql.exists(TOPICS, "slug", "state")) is False
    with pytest.raises(ValueError):
        asyncio.run(sql.exists(TOPICS, "colour", "red"))


def test_failed_batch_writes_nothing(sql: RelationalBackend) -> None:
    seed(sql, TOPICS, topic_record("widgets"))

    batch = sql.batch()
    batch.add(TOPICS, topic_record("state"))
    batch.add(TOPICS, topic_record("widgets"))
    with pytest.raises(BackendError, match="constraint violation"):
        asyncio.run(batch.commit())

    assert [t.slug for t in asyncio.run(sql.get_topics())] == ["widgets"]


def test_clear_content_collections(sql: RelationalBackend) -> None:
    seed(sql, TOPICS, topic_record("widgets"))
    seed(sql, PROJECTS, {"name": "Todo", "slug": "todo", "technologies": [{"name": "Dio"}]})
    user = asyncio.run(sql.sign_up("a@example.com", "secret1"))

    asyncio.run(sql.clear(CONTENT_COLLECTIONS))

    assert asyncio.run(sql.get_topics()) == []
    assert asyncio.run(sql.get_projects()) == []
    assert asyncio.run(sql.get_user(user.id)) is not None


def test_ping_and_unreachable_database(sql: RelationalBackend, tmp_path: Path) -> None:
    asyncio.run(sql.ping())

    missing, engine = _backend(f"sqlite+aiosqlite:///{tmp_path / 'no' / 'such' / 'dir.db'}")
    with pytest.raises(BackendUnavailableError):
        asyncio.run(missing.ping())
    asyncio.run(engine.dispose())


# ---- migration into the relational store ----


def test_migration_from_document_store(sql: RelationalBackend, document: DocumentBackend) -> None:
    seed(document, TOPICS, topic_record("widgets"), topic_record("state"))
    seed(document, DEFINITIONS, {"term": "Widget", "definition": "A building block"})
    seed(
        document,
        PROJECTS,
        {
            "name": "Todo",
            "slug": "todo",
            "technologies": {"1": {"name": "Dio"}, "0": {"name": "Riverpod"}},
            "features": {"0": {"name": "Offline"}},
        },
    )
    (quiz_id,) = seed(document, QUIZZES, {"slug": "basics", "title": "Basics"})
    seed(
        document,
        QUIZ_QUESTIONS,
        {"quiz_id": quiz_id, "quiz_slug": "basics", "question": "Q?",
         "options": {"a": "Yes"}, "correct_answer": "a"},
    )
    runner = MigrationRunner(document, sql)

    result = asyncio.run(runner.run())

    assert result.success is True
    assert result.total_migrated == 6
    (project,) = asyncio.run(sql.get_projects())
    assert [t.name for t in project.technologies] == ["Riverpod", "Dio"]
    assert len(asyncio.run(sql.get_quiz_by_slug("basics")).questions) == 1
    assert asyncio.run(runner.validate()).valid is True

    again = asyncio.run(runner.run())
    assert (again.total_migrated, again.total_skipped) == (0, 5)
