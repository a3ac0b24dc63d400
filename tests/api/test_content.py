from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from flutterprep.backends.base import DEFINITIONS, PROJECTS, QUIZ_QUESTIONS, QUIZZES, TOPICS
from flutterprep.services.container import Services
from tests.conftest import fail_with, seed, topic_record


@pytest.fixture
def quiz_id(services: Services) -> str:
    (qid,) = seed(
        services.relational,
        QUIZZES,
        {"slug": "basics", "title": "Basics", "description": "Warm up", "level": "junior"},
    )
    seed(
        services.relational,
        QUIZ_QUESTIONS,
        {
            "quiz_id": qid,
            "quiz_slug": "basics",
            "question": "Is everything a widget?",
            "options": {"a": "Yes", "b": "No"},
            "correct_answer": "a",
            "position": 0,
        },
    )
    return qid


def test_topics_are_ordered_by_level_then_title(client: TestClient, services: Services) -> None:
    seed(
        services.relational,
        TOPICS,
        topic_record("state", title="State", level="senior"),
        topic_record("widgets", title="Widgets"),
        topic_record("async", title="Async"),
    )
    resp = client.get("/v1/topics")
    assert resp.status_code == 200
    assert [t["slug"] for t in resp.json()] == ["async", "widgets", "state"]


def test_topic_with_sections(client: TestClient, services: Services) -> None:
    sections = [
        {"title": "Intro", "content": "Widgets compose", "code": None},
        {"title": "Example", "content": "A Text widget", "code": "Text('hi')"},
    ]
    seed(services.relational, TOPICS, topic_record("widgets", content=sections))
    resp = client.get("/v1/topics/widgets")
    assert resp.status_code == 200
    assert resp.json()["content"] == sections


def test_unknown_topic_is_404(client: TestClient) -> None:
    resp = client.get("/v1/topics/nope")
    assert resp.status_code == 404
    assert resp.json() == {"detail": {"message": "Topic not found"}}


def test_topic_list_is_served_from_cache_until_invalidated(
    client: TestClient, services: Services
) -> None:
    seed(services.relational, TOPICS, topic_record("widgets"))
    assert len(client.get("/v1/topics").json()) == 1

    seed(services.relational, TOPICS, topic_record("state"))
    assert len(client.get("/v1/topics").json()) == 1


def test_definitions(client: TestClient, services: Services) -> None:
    seed(
        services.relational,
        DEFINITIONS,
        {"term": "Widget", "definition": "A UI building block", "category": "core"},
    )
    assert [d["term"] for d in client.get("/v1/definitions").json()] == ["Widget"]
    assert client.get("/v1/definitions/Widget").json()["category"] == "core"
    assert client.get("/v1/definitions/Gadget").status_code == 404


def test_projects_with_nested_lists(client: TestClient, services: Services) -> None:
    seed(
        services.relational,
        PROJECTS,
        {
            "name": "Todo",
            "slug": "todo",
            "technologies": [{"name": "Riverpod", "is_required": True}],
            "features": [{"name": "Offline", "priority": "high"}],
        },
    )
    project = client.get("/v1/projects/todo").json()
    assert project["technologies"][0]["name"] == "Riverpod"
    assert project["technologies"][0]["is_required"] is True
    assert project["features"] == [{"name": "Offline", "description": "", "priority": "high"}]
    assert client.get("/v1/projects/missing").status_code == 404


def test_quiz_by_slug_includes_questions(client: TestClient, quiz_id: str) -> None:
    quiz = client.get("/v1/quizzes/basics").json()
    assert quiz["id"] == quiz_id
    assert [q["question"] for q in quiz["questions"]] == ["Is everything a widget?"]


def test_quiz_by_id(client: TestClient, quiz_id: str) -> None:
    resp = client.get(f"/v1/quizzes/by-id/{quiz_id}")
    assert resp.status_code == 200
    assert resp.json()["slug"] == "basics"
    assert client.get("/v1/quizzes/by-id/missing").status_code == 404


def test_quiz_questions(client: TestClient, quiz_id: str) -> None:
    questions = client.get("/v1/quizzes/basics/questions").json()
    assert questions[0]["options"] == {"a": "Yes", "b": "No"}
    assert questions[0]["quiz_id"] == quiz_id


def test_quizzes_list_omits_questions(client: TestClient, quiz_id: str) -> None:
    (quiz,) = client.get("/v1/quizzes").json()
    assert quiz["questions"] == []


def test_reads_fall_back_to_document_store(
    client: TestClient, services: Services, monkeypatch: pytest.MonkeyPatch
) -> None:
    seed(services.document, DEFINITIONS, {"term": "Widget", "definition": "From document"})
    monkeypatch.setattr(services.relational, "get_definitions", fail_with("relational"))

    resp = client.get("/v1/definitions")

    assert resp.status_code == 200
    assert resp.json()[0]["definition"] == "From document"


def test_both_stores_down_is_503(
    client: TestClient, services: Services, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(services.relational, "get_projects", fail_with("relational"))
    monkeypatch.setattr(services.document, "get_projects", fail_with("document"))

    resp = client.get("/v1/projects")

    assert resp.status_code == 503
    assert "temporarily unavailable" in resp.json()["detail"]["message"]
