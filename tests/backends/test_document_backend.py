"""DocumentBackend over the in-memory store: the contract both stores share."""

from __future__ import annotations

import asyncio

import pytest
from argon2 import PasswordHasher

from flutterprep.backends.base import (
    DEFINITIONS,
    PROJECTS,
    QUIZ_QUESTIONS,
    QUIZZES,
    TOPICS,
    USERS,
    InvalidCredentialsError,
    RecordNotFoundError,
    UserAlreadyExistsError,
    UserValidationError,
)
from flutterprep.backends.document import DocumentBackend
from flutterprep.backends.document_store import InMemoryDocumentStore
from flutterprep.models.user import GitHubIdentity
from tests.conftest import seed, topic_record

# ---- auth ----


def test_sign_up_normalizes_email_and_hashes_password(document: DocumentBackend) -> None:
    user = asyncio.run(document.sign_up("  Dash@Example.COM ", "secret1"))
    assert user.email == "dash@example.com"
    assert user.email_verified is False

    store_doc = asyncio.run(document._store.get(USERS, user.id))
    assert store_doc["password_hash"].startswith("$argon2")
    assert "secret1" not in store_doc["password_hash"]


def test_sign_up_uses_supplied_user_id(document: DocumentBackend) -> None:
    user = asyncio.run(document.sign_up("a@example.com", "secret1", user_id="fixed-id"))
    assert user.id == "fixed-id"


def test_sign_up_rejects_duplicate_email(document: DocumentBackend) -> None:
    asyncio.run(document.sign_up("a@example.com", "secret1"))
    with pytest.raises(UserAlreadyExistsError):
        asyncio.run(document.sign_up("A@example.com", "other-pass"))


@pytest.mark.parametrize(
    ("email", "password"),
    [("   ", "secret1"), ("a@example.com", "short")],
)
def test_sign_up_validates_credentials(
    document: DocumentBackend, email: str, password: str
) -> None:
    with pytest.raises(UserValidationError):
        asyncio.run(document.sign_up(email, password))


def test_sign_in_accepts_correct_password(document: DocumentBackend) -> None:
    created = asyncio.run(document.sign_up("a@example.com", "secret1"))
    user = asyncio.run(document.sign_in("A@EXAMPLE.com", "secret1"))
    assert user.id == created.id


@pytest.mark.parametrize(
    ("email", "password"),
    [("a@example.com", "wrong-pass"), ("nobody@example.com", "secret1")],
)
def test_sign_in_rejects_bad_credentials(
    document: DocumentBackend, email: str, password: str
) -> None:
    asyncio.run(document.sign_up("a@example.com", "secret1"))
    with pytest.raises(InvalidCredentialsError):
        asyncio.run(document.sign_in(email, password))


def test_sign_in_rehashes_outdated_hash() -> None:
    store = InMemoryDocumentStore()
    backend = DocumentBackend(store)
    old_hash = PasswordHasher(time_cost=1, memory_cost=8 * 1024, parallelism=1).hash("pw1234")
    seed(backend, USERS, {"id": "u1", "email": "old@example.com", "password_hash": old_hash})

    asyncio.run(backend.sign_in("old@example.com", "pw1234"))

    stored = asyncio.run(store.get(USERS, "u1"))
    assert stored["password_hash"] != old_hash


def test_sign_out_and_reset_record_timestamps(document: DocumentBackend) -> None:
    user = asyncio.run(document.sign_up("a@example.com", "secret1"))
    asyncio.run(document.sign_out(user.id))
    asyncio.run(document.reset_password("a@example.com"))

    doc = asyncio.run(document._store.get(USERS, user.id))
    assert doc["signed_out_at"]
    assert doc["password_reset_requested_at"]


def test_reset_password_for_unknown_email_is_silent(document: DocumentBackend) -> None:
    asyncio.run(document.reset_password("ghost@example.com"))
    assert asyncio.run(document._store.all(USERS)) == []


def test_link_github_account(document: DocumentBackend) -> None:
    user = asyncio.run(document.sign_up("a@example.com", "secret1"))
    linked = asyncio.run(
        document.link_github_account(user.id, GitHubIdentity(username="octocat"))
    )
    assert linked.github is not None
    assert linked.github.username == "octocat"
    assert asyncio.run(document.get_user(user.id)).github.username == "octocat"


def test_link_github_account_unknown_user(document: DocumentBackend) -> None:
    with pytest.raises(RecordNotFoundError):
        asyncio.run(document.link_github_account("nope", GitHubIdentity(username="x")))


# ---- content ----


def test_topics_sorted_by_level_then_title(document: DocumentBackend) -> None:
    seed(
        document,
        TOPICS,
        topic_record("isolates", title="Isolates", level="senior"),
        topic_record("widgets", title="Widgets", level="junior"),
        topic_record("animations", title="Animations", level="junior"),
        topic_record("keys", title="Keys", level="middle"),
    )
    topics = asyncio.run(document.get_topics())
    assert [t.slug for t in topics] == ["animations", "widgets", "keys", "isolates"]


def test_lookup_by_natural_key(document: DocumentBackend) -> None:
    seed(document, TOPICS, topic_record("widgets"))
    seed(document, DEFINITIONS, {"term": "Widget", "definition": "A UI building block"})
    seed(document, PROJECTS, {"name": "Todo", "slug": "todo", "technologies": ["Dart"]})

    assert asyncio.run(document.get_topic_by_slug("widgets")).title == "Widgets"
    assert asyncio.run(document.get_topic_by_slug("missing")) is None
    assert asyncio.run(document.get_definition_by_term("Widget")).definition == (
        "A UI building block"
    )
    project = asyncio.run(document.get_project_by_slug("todo"))
    assert [t.name for t in project.technologies] == ["Dart"]


def test_quiz_includes_questions_tagged_by_id_or_slug(document: DocumentBackend) -> None:
    (quiz_id,) = seed(document, QUIZZES, {"slug": "basics", "title": "Basics"})
    seed(
        document,
        QUIZ_QUESTIONS,
        {"quiz_id": quiz_id, "quiz_slug": "basics", "question": "Q1", "position": 0},
        # older writers only set the slug
        {"quiz_id": "", "quiz_slug": "basics", "question": "Q2", "position": 1},
    )

    by_slug = asyncio.run(document.get_quiz_by_slug("basics"))
    by_id = asyncio.run(document.get_quiz_by_id(quiz_id))
    assert [q.question for q in by_slug.questions] == ["Q1", "Q2"]
    assert by_id == by_slug
    assert len(asyncio.run(document.get_questions_by_quiz_slug("basics"))) == 2
    assert asyncio.run(document.get_quiz_by_id("missing")) is None


# ---- progress ----


def test_mark_topic_as_read_twice_keeps_one_record(document: DocumentBackend) -> None:
    asyncio.run(document.mark_topic_as_read("u1", "t1"))
    asyncio.run(document.mark_topic_as_read("u1", "t1"))
    asyncio.run(document.mark_topic_as_read("u1", "t2"))

    progress = asyncio.run(document.get_user_topic_progress("u1"))
    assert sorted(p.topic_id for p in progress) == ["t1", "t2"]


def test_quiz_results_are_append_only_newest_first(document: DocumentBackend) -> None:
    first = asyncio.run(document.save_quiz_result("u1", "z1", 3, 5))
    second = asyncio.run(document.save_quiz_result("u1", "z1", 5, 5))
    asyncio.run(document.save_quiz_result("u2", "z1", 1, 5))

    results = asyncio.run(document.get_user_quiz_results("u1"))
    assert [r.id for r in results] == [second.id, first.id]


# ---- bulk primitives ----


def test_batch_allocates_ids_and_commits_together(document: DocumentBackend) -> None:
    batch = document.batch()
    first = batch.add(TOPICS, topic_record("a"))
    kept = batch.add(TOPICS, {**topic_record("b"), "id": "keep-me"})
    assert len(batch) == 2
    assert asyncio.run(document.exists(TOPICS, "slug", "a")) is False

    asyncio.run(batch.commit())

    assert first and kept == "keep-me"
    assert len(batch) == 0
    assert asyncio.run(document.exists(TOPICS, "slug", "a")) is True


def test_clear_removes_only_named_collections(document: DocumentBackend) -> None:
    seed(document, TOPICS, topic_record("a"))
    seed(document, DEFINITIONS, {"term": "t", "definition": "d"})

    asyncio.run(document.clear((TOPICS,)))

    assert asyncio.run(document.get_topics()) == []
    assert len(asyncio.run(document.get_definitions())) == 1


def test_in_memory_batch_with_unserializable_document_writes_nothing() -> None:
    store = InMemoryDocumentStore()
    with pytest.raises(TypeError):
        asyncio.run(
            store.put_many(
                [(TOPICS, "ok", {"slug": "ok"}), (TOPICS, "bad", {"slug": object()})]
            )
        )
    assert asyncio.run(store.all(TOPICS)) == []
