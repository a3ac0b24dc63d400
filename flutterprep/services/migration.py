"""One-shot content migration from one backend to the other.

Entity types run in order: topics, definitions, projects, quizzes (each
quiz cascading to its questions).  For every source record:

  1. skip it when the target already holds the natural key (slug or term),
     or when the same key was already queued earlier in this run
  2. sanitize it (strip strings, drop callables, coerce numbers/booleans,
     fill defaults for missing fields)
  3. queue it in a write batch; the batch commits when it reaches
     ``batch_size`` and once more at the end of the entity type

Only committed records count as migrated.  A failed commit turns every
record in that batch into an error.  A failed fetch of a whole entity type
is one top-level error, and the run moves on to the next type.

The runner is idempotent: a second run over the same data skips everything.
``validate`` compares per-entity record counts on both sides afterwards.
"""

from __future__ import annotations

import dataclasses
import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from flutterprep.backends.base import (
    CONTENT_COLLECTIONS,
    DEFINITIONS,
    PROJECTS,
    QUIZ_QUESTIONS,
    QUIZZES,
    TOPICS,
    Backend,
)
from flutterprep.backends.records import to_record
from flutterprep.core.config import MAX_BATCH_SIZE
from flutterprep.core.metrics import MIGRATION_RECORDS

logger = logging.getLogger(__name__)

QUESTIONS = "questions"


@dataclass(slots=True)
class MigrationDetail:
    attempted: int = 0
    migrated: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass(slots=True)
class MigrationResult:
    success: bool
    total_migrated: int
    total_skipped: int
    total_errors: int
    details: dict[str, MigrationDetail]
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)


@dataclass(slots=True)
class EntityCount:
    source_count: int = 0
    target_count: int = 0
    valid: bool = False
    error: str | None = None


@dataclass(slots=True)
class ValidationResult:
    valid: bool
    entities: dict[str, EntityCount]

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)


@dataclass(frozen=True, slots=True)
class _Entity:
    name: str
    collection: str
    key_field: str
    fetch: str  # Backend method returning every record of this type
    defaults: Mapping[str, Any]
    int_fields: tuple[str, ...] = ()
    bool_fields: tuple[str, ...] = ()


_TOPICS = _Entity(
    name="topics",
    collection=TOPICS,
    key_field="slug",
    fetch="get_topics",
    defaults={"title": "Untitled", "description": "", "content": "", "level": "junior"},
    int_fields=("estimated_time",),
)
_DEFINITIONS = _Entity(
    name="definitions",
    collection=DEFINITIONS,
    key_field="term",
    fetch="get_definitions",
    defaults={"definition": "", "category": "general"},
)
_PROJECTS = _Entity(
    name="projects",
    collection=PROJECTS,
    key_field="slug",
    fetch="get_projects",
    defaults={
        "name": "Untitled Project",
        "description": "",
        "difficulty_level": "beginner",
        "estimated_duration": "",
        "category": "general",
        "technologies": [],
        "features": [],
    },
    bool_fields=("is_pet_project",),
)
_QUIZZES = _Entity(
    name="quizzes",
    collection=QUIZZES,
    key_field="slug",
    fetch="get_quizzes",
    defaults={"title": "Untitled Quiz", "description": "", "level": "junior"},
)

ENTITIES: tuple[_Entity, ...] = (_TOPICS, _DEFINITIONS, _PROJECTS, _QUIZZES)


# ---------------------------------------------------------------------------
# Sanitizing
# ---------------------------------------------------------------------------


def sanitize(value: Any) -> Any:
    """Strip strings and drop callables, recursively."""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, Mapping):
        return {str(k): sanitize(v) for k, v in value.items() if not callable(v)}
    if isinstance(value, (list, tuple)):
        return [sanitize(v) for v in value if not callable(v)]
    return value


def _to_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def prepare_record(entity: _Entity, model: Any) -> dict[str, Any]:
    record = sanitize(to_record(model))
    for name, default in entity.defaults.items():
        if record.get(name) in (None, ""):
            record[name] = default
    for name in entity.int_fields:
        record[name] = _to_int(record.get(name))
    for name in entity.bool_fields:
        record[name] = bool(record.get(name))
    return record


def _options(raw: Any, label: str) -> dict[str, str]:
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError:
            raw = None
    if not isinstance(raw, Mapping):
        logger.warning("Question %s has malformed options, using {}", label)
        return {}
    return {str(k): str(v) for k, v in raw.items()}


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------


class _PendingBatch:
    """A target write batch that knows which records it holds."""

    def __init__(self, target: Backend, entity: str, detail: MigrationDetail) -> None:
        self._batch = target.batch()
        self._entity = entity
        self._detail = detail
        self._labels: list[str] = []

    def add(self, collection: str, record: dict[str, Any], label: str) -> str:
        self._labels.append(label)
        return self._batch.add(collection, record)

    def __len__(self) -> int:
        return len(self._labels)

    async def flush(self) -> bool:
        if not self._labels:
            return True
        labels, self._labels = self._labels, []
        try:
            await self._batch.commit()
        except Exception as exc:
            self._detail.errors.extend(f"{self._entity} {label}: {exc}" for label in labels)
            MIGRATION_RECORDS.labels(entity=self._entity, outcome="error").inc(len(labels))
            logger.error(
                "Batch commit failed for %d %s: %s",
                len(labels),
                self._entity,
                exc,
                extra={"event": "migration_batch_failed", "entity": self._entity},
            )
            return False
        self._detail.migrated += len(labels)
        MIGRATION_RECORDS.labels(entity=self._entity, outcome="migrated").inc(len(labels))
        logger.info(
            "Committed %d %s",
            len(labels),
            self._entity,
            extra={"event": "migration_batch_committed", "entity": self._entity},
        )
        return True


class MigrationRunner:
    def __init__(
        self, source: Backend, target: Backend, *, batch_size: int = MAX_BATCH_SIZE
    ) -> None:
        if not 1 <= batch_size <= MAX_BATCH_SIZE:
            raise ValueError(f"batch_size must be between 1 and {MAX_BATCH_SIZE}")
        self._source = source
        self._target = target
        self._batch_size = batch_size

    async def run(self, *, clear_target: bool = False) -> MigrationResult:
        details = {e.name: MigrationDetail() for e in ENTITIES}
        details[QUESTIONS] = MigrationDetail()
        errors: list[str] = []
        logger.info(
            "Migration started %s -> %s",
            self._source.name,
            self._target.name,
            extra={"event": "migration_started"},
        )

        try:
            await self._target.ping()
            if clear_target:
                await self._target.clear(CONTENT_COLLECTIONS)
        except Exception as exc:
            errors.append(f"Target {self._target.name} unavailable: {exc}")
            logger.error("Migration aborted: %s", exc, extra={"event": "migration_aborted"})
            return self._result(details, errors)

        for entity in ENTITIES:
            try:
                models = await getattr(self._source, entity.fetch)()
            except Exception as exc:
                errors.append(f"Failed to fetch {entity.name}: {exc}")
                logger.error(
                    "Fetching %s from %s failed: %s",
                    entity.name,
                    self._source.name,
                    exc,
                    extra={"event": "migration_fetch_failed", "entity": entity.name},
                )
                continue
            if entity is _QUIZZES:
                await self._migrate_quizzes(models, details[entity.name], details[QUESTIONS])
            else:
                await self._migrate(entity, models, details[entity.name])

        result = self._result(details, errors)
        logger.info(
            "Migration finished: migrated=%d skipped=%d errors=%d",
            result.total_migrated,
            result.total_skipped,
            result.total_errors,
            extra={"event": "migration_finished"},
        )
        return result

    async def validate(self) -> ValidationResult:
        """Compare per-entity record counts between source and target.

        An entity is valid when both sides hold the same number of records.
        A failed read marks that entity invalid and records the error.
        """
        entities: dict[str, EntityCount] = {}
        for entity in ENTITIES:
            count = entities[entity.name] = EntityCount()
            try:
                count.source_count = len(await getattr(self._source, entity.fetch)())
                count.target_count = len(await getattr(self._target, entity.fetch)())
            except Exception as exc:
                count.error = str(exc)
                logger.error(
                    "Validating %s failed: %s",
                    entity.name,
                    exc,
                    extra={"event": "migration_validation_failed", "entity": entity.name},
                )
                continue
            count.valid = count.source_count == count.target_count

        valid = all(c.valid for c in entities.values())
        logger.info(
            "Migration validation %s -> %s: valid=%s",
            self._source.name,
            self._target.name,
            valid,
            extra={"event": "migration_validated"},
        )
        return ValidationResult(valid=valid, entities=entities)

    @staticmethod
    def _result(details: dict[str, MigrationDetail], errors: list[str]) -> MigrationResult:
        total_errors = sum(len(d.errors) for d in details.values()) + len(errors)
        return MigrationResult(
            success=total_errors == 0,
            total_migrated=sum(d.migrated for d in details.values()),
            total_skipped=sum(d.skipped for d in details.values()),
            total_errors=total_errors,
            details=details,
            errors=errors,
        )

    async def _admit(
        self, entity: _Entity, model: Any, seen: set[str], detail: MigrationDetail
    ) -> dict[str, Any] | None:
        """Return the sanitized record, or None if it was skipped or rejected."""
        detail.attempted += 1
        record = prepare_record(entity, model)
        key = record.get(entity.key_field) or ""
        if not key:
            detail.errors.append(f"{entity.name} {record.get('id')}: missing {entity.key_field}")
            MIGRATION_RECORDS.labels(entity=entity.name, outcome="error").inc()
            return None

        try:
            duplicate = key in seen or await self._target.exists(
                entity.collection, entity.key_field, key
            )
        except Exception as exc:
            detail.errors.append(f"{entity.name} {key}: {exc}")
            MIGRATION_RECORDS.labels(entity=entity.name, outcome="error").inc()
            return None
        if duplicate:
            detail.skipped += 1
            MIGRATION_RECORDS.labels(entity=entity.name, outcome="skipped").inc()
            return None

        seen.add(key)
        return record

    async def _migrate(
        self, entity: _Entity, models: list[Any], detail: MigrationDetail
    ) -> None:
        seen: set[str] = set()
        batch = _PendingBatch(self._target, entity.name, detail)
        for model in models:
            record = await self._admit(entity, model, seen, detail)
            if record is None:
                continue
            batch.add(entity.collection, record, record[entity.key_field])
            if len(batch) >= self._batch_size:
                await batch.flush()
        await batch.flush()

    async def _migrate_quizzes(
        self,
        quizzes: list[Any],
        detail: MigrationDetail,
        question_detail: MigrationDetail,
    ) -> None:
        seen: set[str] = set()
        batch = _PendingBatch(self._target, _QUIZZES.name, detail)
        for quiz in quizzes:
            record = await self._admit(_QUIZZES, quiz, seen, detail)
            if record is None:
                continue
            record.pop("questions", None)
            slug = record["slug"]
            quiz_id = batch.add(QUIZZES, record, slug)
            # The quiz must exist on the target before its questions do
            if await batch.flush():
                await self._migrate_questions(quiz_id, slug, question_detail)

    async def _migrate_questions(
        self, quiz_id: str, quiz_slug: str, detail: MigrationDetail
    ) -> None:
        try:
            quiz = await self._source.get_quiz_by_slug(quiz_slug)
        except Exception as exc:
            detail.errors.append(f"Failed to fetch questions for quiz {quiz_slug}: {exc}")
            logger.error(
                "Fetching questions for %s failed: %s",
                quiz_slug,
                exc,
                extra={"event": "migration_fetch_failed", "entity": QUESTIONS},
            )
            return

        batch = _PendingBatch(self._target, QUESTIONS, detail)
        for position, question in enumerate(quiz.questions if quiz else ()):
            detail.attempted += 1
            record = sanitize(to_record(question))
            label = f"{quiz_slug}#{position}"
            if not record.get("question") or not record.get("correct_answer"):
                detail.errors.append(f"{QUESTIONS} {label}: missing question or answer")
                MIGRATION_RECORDS.labels(entity=QUESTIONS, outcome="error").inc()
                continue
            record.update(
                quiz_id=quiz_id,
                quiz_slug=quiz_slug,
                position=position,
                options=_options(record.get("options"), label),
                explanation=record.get("explanation") or "",
                category=record.get("category") or "general",
            )
            batch.add(QUIZ_QUESTIONS, record, label)
            if len(batch) >= self._batch_size:
                await batch.flush()
        await batch.flush()


def summarize(result: MigrationResult) -> dict[str, Any]:
    """Admin-facing summary of a run."""
    return {
        "success": result.success,
        "message": (
            f"Migration completed. {result.total_migrated} items migrated, "
            f"{result.total_skipped} skipped, {result.total_errors} errors."
        ),
        "details": result.to_dict(),
    }
