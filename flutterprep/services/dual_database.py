"""Dual-database orchestration over the relational and document backends.

One store is the primary and answers every call.  The other is the
secondary:

  writes  DualWriteStrategy runs the call on the primary and, once it
          succeeds, mirrors it to the secondary.  A failed mirror is logged
          and counted in ``dual_write_mirror_failures_total`` but never
          reaches the caller, so the two stores may drift.  A failed
          primary call raises and the secondary is never touched.

  reads   FallbackReadStrategy runs the call on the primary and, if it
          raises, retries on the secondary.  When both fail the caller sees
          the primary's original exception.

Strategies are chosen once, in the ``DualDatabaseService`` constructor,
from a ``DatabaseConfig``.  Turning dual write or fallback off swaps in
``PrimaryOnlyStrategy``; the flags are never re-read per call.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Protocol, TypeVar

from flutterprep.backends.base import Backend, BackendName
from flutterprep.core.config import Settings
from flutterprep.core.metrics import BACKEND_OPERATIONS, FALLBACK_READS, MIRROR_FAILURES
from flutterprep.models.content import Definition, Project, Quiz, QuizQuestion, Topic
from flutterprep.models.progress import QuizResult, TopicProgress
from flutterprep.models.user import AuthUser, GitHubIdentity

logger = logging.getLogger(__name__)

T = TypeVar("T")

Call = Callable[[Backend], Awaitable[T]]
Mirror = Callable[[Backend, Any], Awaitable[Any]]


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    primary: BackendName = "relational"
    dual_write_enabled: bool = True
    fallback_enabled: bool = True

    @property
    def secondary(self) -> BackendName:
        return "document" if self.primary == "relational" else "relational"

    @classmethod
    def from_settings(cls, settings: Settings) -> DatabaseConfig:
        return cls(
            primary="document" if settings.use_document_primary else "relational",
            dual_write_enabled=settings.enable_dual_write,
            fallback_enabled=settings.enable_fallback,
        )


async def _run(backend: Backend, operation: str, call: Call[T]) -> T:
    """Run one call on one backend and count its outcome."""
    try:
        result = await call(backend)
    except Exception:
        BACKEND_OPERATIONS.labels(
            backend=backend.name, operation=operation, outcome="error"
        ).inc()
        raise
    BACKEND_OPERATIONS.labels(backend=backend.name, operation=operation, outcome="ok").inc()
    return result


# ---------------------------------------------------------------------------
# Execution strategies
# ---------------------------------------------------------------------------


class ExecutionStrategy(Protocol):
    async def execute(
        self, operation: str, call: Call[T], mirror: Mirror | None = None
    ) -> T: ...


class PrimaryOnlyStrategy:
    def __init__(self, primary: Backend) -> None:
        self.primary = primary

    async def execute(
        self, operation: str, call: Call[T], mirror: Mirror | None = None
    ) -> T:
        return await _run(self.primary, operation, call)


class DualWriteStrategy:
    """Primary first; on success, a best-effort mirror on the secondary.

    ``mirror`` receives the secondary backend and the primary's result, for
    writes whose secondary copy depends on what the primary produced (the
    user id allocated by sign-up).  Without it the same call is replayed.
    """

    def __init__(self, primary: Backend, secondary: Backend) -> None:
        self.primary = primary
        self.secondary = secondary

    async def execute(
        self, operation: str, call: Call[T], mirror: Mirror | None = None
    ) -> T:
        result = await _run(self.primary, operation, call)

        async def _mirror(backend: Backend) -> Any:
            if mirror is None:
                return await call(backend)
            return await mirror(backend, result)

        try:
            await _run(self.secondary, operation, _mirror)
        except Exception as exc:
            MIRROR_FAILURES.labels(operation=operation, backend=self.secondary.name).inc()
            logger.warning(
                "Mirror write failed for %s on %s: %s",
                operation,
                self.secondary.name,
                exc,
                extra={
                    "event": "mirror_failed",
                    "operation": operation,
                    "backend": self.secondary.name,
                },
            )
        else:
            logger.debug("Dual write succeeded for %s", operation)
        return result


class FallbackReadStrategy:
    def __init__(self, primary: Backend, secondary: Backend) -> None:
        self.primary = primary
        self.secondary = secondary

    async def execute(
        self, operation: str, call: Call[T], mirror: Mirror | None = None
    ) -> T:
        try:
            return await _run(self.primary, operation, call)
        except Exception as primary_error:
            logger.warning(
                "Primary %s failed for %s, trying %s: %s",
                self.primary.name,
                operation,
                self.secondary.name,
                primary_error,
                extra={
                    "event": "fallback_read",
                    "operation": operation,
                    "backend": self.primary.name,
                },
            )
            try:
                result = await _run(self.secondary, operation, call)
            except Exception as fallback_error:
                FALLBACK_READS.labels(operation=operation, outcome="failed").inc()
                logger.error(
                    "Both backends failed for %s: primary=%s fallback=%s",
                    operation,
                    primary_error,
                    fallback_error,
                    extra={"event": "fallback_failed", "operation": operation},
                )
                raise primary_error from fallback_error
            FALLBACK_READS.labels(operation=operation, outcome="served").inc()
            logger.info(
                "Fallback to %s succeeded for %s",
                self.secondary.name,
                operation,
                extra={
                    "event": "fallback_served",
                    "operation": operation,
                    "backend": self.secondary.name,
                },
            )
            return result


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class DualDatabaseService:
    """Every logical operation, routed through the configured strategies."""

    def __init__(
        self,
        relational: Backend,
        document: Backend,
        config: DatabaseConfig | None = None,
    ) -> None:
        self.config = config or DatabaseConfig()
        if self.config.primary == "document":
            self.primary, self.secondary = document, relational
        else:
            self.primary, self.secondary = relational, document

        self._writes: ExecutionStrategy = (
            DualWriteStrategy(self.primary, self.secondary)
            if self.config.dual_write_enabled
            else PrimaryOnlyStrategy(self.primary)
        )
        self._reads: ExecutionStrategy = (
            FallbackReadStrategy(self.primary, self.secondary)
            if self.config.fallback_enabled
            else PrimaryOnlyStrategy(self.primary)
        )
        logger.info(
            "Dual database: primary=%s dual_write=%s fallback=%s",
            self.primary.name,
            self.config.dual_write_enabled,
            self.config.fallback_enabled,
        )

    def describe(self) -> dict[str, Any]:
        return {
            "primary_database": self.primary.name,
            "backup_database": self.secondary.name,
            "dual_write_enabled": self.config.dual_write_enabled,
            "fallback_enabled": self.config.fallback_enabled,
        }

    # --- Auth ---

    async def sign_up(self, email: str, password: str) -> AuthUser:
        async def mirror(backend: Backend, user: AuthUser) -> AuthUser:
            return await backend.sign_up(email, password, user_id=user.id)

        return await self._writes.execute(
            "sign_up", lambda b: b.sign_up(email, password), mirror
        )

    async def sign_in(self, email: str, password: str) -> AuthUser:
        return await self._reads.execute("sign_in", lambda b: b.sign_in(email, password))

    async def sign_out(self, user_id: str) -> None:
        await self._writes.execute("sign_out", lambda b: b.sign_out(user_id))

    async def reset_password(self, email: str) -> None:
        await self._writes.execute("reset_password", lambda b: b.reset_password(email))

    async def link_github_account(
        self, user_id: str, identity: GitHubIdentity
    ) -> AuthUser:
        return await self._writes.execute(
            "link_github_account", lambda b: b.link_github_account(user_id, identity)
        )

    async def get_user(self, user_id: str) -> AuthUser | None:
        return await self._reads.execute("get_user", lambda b: b.get_user(user_id))

    # --- Content ---

    async def get_topics(self) -> list[Topic]:
        return await self._reads.execute("get_topics", lambda b: b.get_topics())

    async def get_topic_by_slug(self, slug: str) -> Topic | None:
        return await self._reads.execute(
            "get_topic_by_slug", lambda b: b.get_topic_by_slug(slug)
        )

    async def get_definitions(self) -> list[Definition]:
        return await self._reads.execute("get_definitions", lambda b: b.get_definitions())

    async def get_definition_by_term(self, term: str) -> Definition | None:
        return await self._reads.execute(
            "get_definition_by_term", lambda b: b.get_definition_by_term(term)
        )

    async def get_projects(self) -> list[Project]:
        return await self._reads.execute("get_projects", lambda b: b.get_projects())

    async def get_project_by_slug(self, slug: str) -> Project | None:
        return await self._reads.execute(
            "get_project_by_slug", lambda b: b.get_project_by_slug(slug)
        )

    async def get_quizzes(self) -> list[Quiz]:
        return await self._reads.execute("get_quizzes", lambda b: b.get_quizzes())

    async def get_quiz_by_slug(self, slug: str) -> Quiz | None:
        return await self._reads.execute(
            "get_quiz_by_slug", lambda b: b.get_quiz_by_slug(slug)
        )

    async def get_quiz_by_id(self, quiz_id: str) -> Quiz | None:
        return await self._reads.execute(
            "get_quiz_by_id", lambda b: b.get_quiz_by_id(quiz_id)
        )

    async def get_questions_by_quiz_slug(self, quiz_slug: str) -> list[QuizQuestion]:
        return await self._reads.execute(
            "get_questions_by_quiz_slug",
            lambda b: b.get_questions_by_quiz_slug(quiz_slug),
        )

    # --- Progress ---

    async def save_quiz_result(
        self, user_id: str, quiz_id: str, score: int, total_questions: int
    ) -> QuizResult:
        return await self._writes.execute(
            "save_quiz_result",
            lambda b: b.save_quiz_result(user_id, quiz_id, score, total_questions),
        )

    async def get_user_quiz_results(self, user_id: str) -> list[QuizResult]:
        return await self._reads.execute(
            "get_user_quiz_results", lambda b: b.get_user_quiz_results(user_id)
        )

    async def mark_topic_as_read(self, user_id: str, topic_id: str) -> TopicProgress:
        return await self._writes.execute(
            "mark_topic_as_read", lambda b: b.mark_topic_as_read(user_id, topic_id)
        )

    async def get_user_topic_progress(self, user_id: str) -> list[TopicProgress]:
        return await self._reads.execute(
            "get_user_topic_progress", lambda b: b.get_user_topic_progress(user_id)
        )

