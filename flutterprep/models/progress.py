from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import uuid4


@dataclass(frozen=True, slots=True)
class QuizResult:
    """One quiz attempt.  Append-only: a retake is a new row."""

    id: str
    user_id: str
    quiz_id: str
    score: int
    total_questions: int
    completed_at: datetime

    @staticmethod
    def new(
        *, user_id: str, quiz_id: str, score: int, total_questions: int
    ) -> QuizResult:
        return QuizResult(
            id=str(uuid4()),
            user_id=user_id,
            quiz_id=quiz_id,
            score=score,
            total_questions=total_questions,
            completed_at=datetime.now(UTC),
        )


@dataclass(frozen=True, slots=True)
class TopicProgress:
    """Read marker, one per (user, topic).  Re-reading moves read_at forward."""

    user_id: str
    topic_id: str
    read_at: datetime
