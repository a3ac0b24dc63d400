"""Conversions between stored records and domain models.

Stored shapes drift between the two stores and across older writers:

- ``technologies`` / ``features`` are an ordered list in one writer and a
  key -> item map in another (sometimes plain strings, sometimes objects
  with legacy ``technology_name`` / ``feature_name`` keys).
- question ``options`` are a JSON string in legacy rows and a map elsewhere.
- timestamps are ``datetime`` objects from SQL and ISO strings from JSON.

Everything is normalized here, at the data-access boundary, so callers only
ever see the canonical shapes of ``flutterprep.models``.
"""

from __future__ import annotations

import dataclasses
import json
import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from flutterprep.models.content import (
    DIFFICULTIES,
    LEVELS,
    PRIORITIES,
    Definition,
    Project,
    ProjectFeature,
    ProjectTechnology,
    Quiz,
    QuizQuestion,
    Topic,
    TopicSection,
)
from flutterprep.models.progress import QuizResult, TopicProgress
from flutterprep.models.user import AuthUser, GitHubIdentity

logger = logging.getLogger(__name__)

LEVEL_ORDER = {level: i for i, level in enumerate(LEVELS)}


# ---------------------------------------------------------------------------
# Scalars
# ---------------------------------------------------------------------------


def parse_timestamp(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def _text(value: Any, default: str = "") -> str:
    if value is None:
        return default
    return str(value)


def _optional_text(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def _choice(value: Any, allowed: tuple[str, ...], default: str) -> str:
    text = _text(value).strip().lower()
    return text if text in allowed else default


def _int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _ordered_items(raw: Any) -> list[Any]:
    """List as-is; map values ordered by key (numeric keys numerically)."""
    if raw is None:
        return []
    if isinstance(raw, (list, tuple)):
        return list(raw)
    if isinstance(raw, Mapping):

        def _key(k: Any) -> tuple[int, int, str]:
            s = str(k)
            return (0, int(s), "") if s.isdigit() else (1, 0, s)

        return [raw[k] for k in sorted(raw, key=_key)]
    return []


# ---------------------------------------------------------------------------
# Nested-field adapters
# ---------------------------------------------------------------------------


def normalize_content(raw: Any) -> str | tuple[TopicSection, ...]:
    if isinstance(raw, (list, tuple)):
        return tuple(
            TopicSection(
                title=_text(s.get("title")),
                content=_text(s.get("content")),
                code=_optional_text(s.get("code")),
            )
            for s in raw
            if isinstance(s, Mapping)
        )
    return _text(raw)


def normalize_technologies(raw: Any) -> tuple[ProjectTechnology, ...]:
    techs: list[ProjectTechnology] = []
    for item in _ordered_items(raw):
        if isinstance(item, str):
            item = {"name": item}
        if not isinstance(item, Mapping):
            continue
        name = _text(item.get("name") or item.get("technology_name")).strip()
        if not name:
            continue
        techs.append(
            ProjectTechnology(
                name=name,
                explanation=_text(item.get("explanation")),
                is_required=bool(item.get("is_required", False)),
                category=_text(item.get("category"), "general") or "general",
            )
        )
    return tuple(techs)


def normalize_features(raw: Any) -> tuple[ProjectFeature, ...]:
    features: list[ProjectFeature] = []
    for item in _ordered_items(raw):
        if isinstance(item, str):
            item = {"name": item}
        if not isinstance(item, Mapping):
            continue
        name = _text(item.get("name") or item.get("feature_name")).strip()
        if not name:
            continue
        features.append(
            ProjectFeature(
                name=name,
                description=_text(item.get("description")),
                priority=_choice(item.get("priority"), PRIORITIES, "medium"),  # type: ignore[arg-type]
            )
        )
    return tuple(features)


def parse_options(raw: Any) -> dict[str, str]:
    """Question options as a label -> text map; unparseable input becomes {}."""
    if raw is None or raw == "":
        return {}
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Unparseable question options, defaulting to {}: %.60r", raw)
            return {}
    if not isinstance(raw, Mapping):
        logger.warning("Question options are not a map, defaulting to {}")
        return {}
    return {str(k): _text(v) for k, v in raw.items()}


# ---------------------------------------------------------------------------
# Record -> model
# ---------------------------------------------------------------------------


def topic_from_record(record: Mapping[str, Any]) -> Topic:
    return Topic(
        id=_text(record.get("id")),
        title=_text(record.get("title")),
        slug=_text(record.get("slug")),
        description=_text(record.get("description")),
        content=normalize_content(record.get("content")),
        level=_choice(record.get("level"), LEVELS, "junior"),  # type: ignore[arg-type]
        estimated_time=_int(record.get("estimated_time")),
        created_at=parse_timestamp(record.get("created_at")),
        updated_at=parse_timestamp(record.get("updated_at")),
    )


def definition_from_record(record: Mapping[str, Any]) -> Definition:
    return Definition(
        id=_text(record.get("id")),
        term=_text(record.get("term")),
        definition=_text(record.get("definition")),
        category=_text(record.get("category"), "general") or "general",
        created_at=parse_timestamp(record.get("created_at")),
        updated_at=parse_timestamp(record.get("updated_at")),
    )


def project_from_record(record: Mapping[str, Any]) -> Project:
    return Project(
        id=_text(record.get("id")),
        name=_text(record.get("name")),
        slug=_text(record.get("slug")),
        description=_text(record.get("description")),
        difficulty_level=_choice(  # type: ignore[arg-type]
            record.get("difficulty_level"), DIFFICULTIES, "beginner"
        ),
        estimated_duration=_text(record.get("estimated_duration")),
        category=_text(record.get("category"), "general") or "general",
        github_url=_optional_text(record.get("github_url")),
        demo_url=_optional_text(record.get("demo_url")),
        image_url=_optional_text(record.get("image_url")),
        is_pet_project=bool(record.get("is_pet_project", False)),
        real_world_example=_optional_text(record.get("real_world_example")),
        technologies=normalize_technologies(record.get("technologies")),
        features=normalize_features(record.get("features")),
        created_at=parse_timestamp(record.get("created_at")),
        updated_at=parse_timestamp(record.get("updated_at")),
    )


def question_from_record(record: Mapping[str, Any]) -> QuizQuestion:
    return QuizQuestion(
        id=_text(record.get("id")),
        quiz_id=_text(record.get("quiz_id")),
        quiz_slug=_text(record.get("quiz_slug")),
        question=_text(record.get("question")),
        options=parse_options(record.get("options")),
        correct_answer=_text(record.get("correct_answer")),
        explanation=_text(record.get("explanation")),
        category=_text(record.get("category"), "general") or "general",
    )


def quiz_from_record(
    record: Mapping[str, Any], questions: tuple[QuizQuestion, ...] = ()
) -> Quiz:
    return Quiz(
        id=_text(record.get("id")),
        slug=_text(record.get("slug")),
        title=_text(record.get("title")),
        description=_text(record.get("description")),
        level=_choice(record.get("level"), LEVELS, "junior"),  # type: ignore[arg-type]
        questions=questions,
    )


def quiz_result_from_record(record: Mapping[str, Any]) -> QuizResult:
    return QuizResult(
        id=_text(record.get("id")),
        user_id=_text(record.get("user_id")),
        quiz_id=_text(record.get("quiz_id")),
        score=_int(record.get("score")),
        total_questions=_int(record.get("total_questions")),
        completed_at=parse_timestamp(record.get("completed_at")),  # type: ignore[arg-type]
    )


def topic_progress_from_record(record: Mapping[str, Any]) -> TopicProgress:
    return TopicProgress(
        user_id=_text(record.get("user_id")),
        topic_id=_text(record.get("topic_id")),
        read_at=parse_timestamp(record.get("read_at")),  # type: ignore[arg-type]
    )


def user_from_record(record: Mapping[str, Any]) -> AuthUser:
    github = None
    username = record.get("github_username")
    if username:
        github = GitHubIdentity(
            username=str(username),
            avatar_url=_optional_text(record.get("github_avatar_url")),
            access_token=_optional_text(record.get("github_access_token")),
        )
    return AuthUser(
        id=_text(record.get("id")),
        email=_text(record.get("email")),
        email_verified=bool(record.get("email_verified", False)),
        display_name=_optional_text(record.get("display_name")),
        github=github,
        created_at=parse_timestamp(record.get("created_at")),
    )


# ---------------------------------------------------------------------------
# Model -> record
# ---------------------------------------------------------------------------


def to_record(model: Any) -> dict[str, Any]:
    """JSON-safe dict for any domain dataclass (datetimes become ISO strings)."""
    return _jsonable(dataclasses.asdict(model))


def _jsonable(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def topic_sort_key(topic: Topic) -> tuple[int, str]:
    return (LEVEL_ORDER.get(topic.level, len(LEVEL_ORDER)), topic.title.lower())
