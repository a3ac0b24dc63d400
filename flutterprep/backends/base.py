"""Backend client contract shared by the relational and document stores.

Both stores answer the same logical operations over their own schema.  The
dual-database orchestrator only ever talks to this Protocol, so either
store can be primary.  The migration runner additionally uses the bulk
primitives at the bottom (ping / exists / batch / clear).
"""

from __future__ import annotations

from typing import Any, Literal, Protocol, runtime_checkable

from flutterprep.models.content import Definition, Project, Quiz, QuizQuestion, Topic
from flutterprep.models.progress import QuizResult, TopicProgress
from flutterprep.models.user import AuthUser, GitHubIdentity

BackendName = Literal["relational", "document"]

# Collection names are shared by both stores (table names / key prefixes).
TOPICS = "topics"
DEFINITIONS = "definitions"
PROJECTS = "projects"
QUIZZES = "quizzes"
QUIZ_QUESTIONS = "quiz_questions"
QUIZ_RESULTS = "quiz_results"
TOPIC_PROGRESS = "topic_progress"
USERS = "users"

CONTENT_COLLECTIONS: tuple[str, ...] = (
    TOPICS,
    DEFINITIONS,
    PROJECTS,
    QUIZZES,
    QUIZ_QUESTIONS,
)

MIN_PASSWORD_LENGTH = 6


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class BackendError(Exception):
    """A backend call failed.  ``backend`` names the store that failed."""

    def __init__(self, message: str, *, backend: str | None = None) -> None:
        super().__init__(message)
        self.backend = backend


class BackendUnavailableError(BackendError):
    pass


class RecordNotFoundError(BackendError):
    pass


class UserAlreadyExistsError(BackendError):
    pass


class InvalidCredentialsError(BackendError):
    pass


class UserValidationError(ValueError):
    pass


# ---------------------------------------------------------------------------
# Protocols
# ---------------------------------------------------------------------------


@runtime_checkable
class WriteBatch(Protocol):
    """Buffered writes committed atomically by the store's own primitive."""

    def add(self, collection: str, record: dict[str, Any]) -> str:
        """Queue a record and return the id it will be stored under."""
        ...

    def __len__(self) -> int: ...

    async def commit(self) -> None: ...


@runtime_checkable
class Backend(Protocol):
    name: BackendName

    # --- auth ---
    async def sign_up(
        self, email: str, password: str, *, user_id: str | None = None
    ) -> AuthUser: ...
    async def sign_in(self, email: str, password: str) -> AuthUser: ...
    async def sign_out(self, user_id: str) -> None: ...
    async def reset_password(self, email: str) -> None: ...
    async def link_github_account(
        self, user_id: str, identity: GitHubIdentity
    ) -> AuthUser: ...
    async def get_user(self, user_id: str) -> AuthUser | None: ...

    # --- content ---
    async def get_topics(self) -> list[Topic]: ...
    async def get_topic_by_slug(self, slug: str) -> Topic | None: ...
    async def get_definitions(self) -> list[Definition]: ...
    async def get_definition_by_term(self, term: str) -> Definition | None: ...
    async def get_projects(self) -> list[Project]: ...
    async def get_project_by_slug(self, slug: str) -> Project | None: ...
    async def get_quizzes(self) -> list[Quiz]: ...
    async def get_quiz_by_slug(self, slug: str) -> Quiz | None: ...
    async def get_quiz_by_id(self, quiz_id: str) -> Quiz | None: ...
    async def get_questions_by_quiz_slug(self, quiz_slug: str) -> list[QuizQuestion]: ...

    # --- progress ---
    async def save_quiz_result(
        self, user_id: str, quiz_id: str, score: int, total_questions: int
    ) -> QuizResult: ...
    async def get_user_quiz_results(self, user_id: str) -> list[QuizResult]: ...
    async def mark_topic_as_read(self, user_id: str, topic_id: str) -> TopicProgress: ...
    async def get_user_topic_progress(self, user_id: str) -> list[TopicProgress]: ...

    # --- bulk primitives (migration) ---
    async def ping(self) -> None: ...
    async def exists(self, collection: str, field: str, value: str) -> bool: ...
    def batch(self) -> WriteBatch: ...
    async def clear(self, collections: tuple[str, ...]) -> None: ...


def normalize_email(email: str) -> str:
    return email.strip().lower()


def validate_credentials(email: str, password: str) -> str:
    """Return the normalized email or raise UserValidationError."""
    email = normalize_email(email)
    if not email:
        raise UserValidationError("email must be non-empty")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise UserValidationError(
            f"password must be at least {MIN_PASSWORD_LENGTH} characters long"
        )
    return email
