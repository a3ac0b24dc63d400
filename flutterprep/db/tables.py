"""SQLAlchemy table definitions for the relational backend.

Rows map onto the frozen dataclasses in flutterprep/models through the
record converters in flutterprep/backends/records.py.  Ids are UUID strings
so that records keep their identity when copied to the document store.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from flutterprep.db.engine import Base

_ID = String(36)


class UserRow(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(_ID, primary_key=True)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)
    email_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    display_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    github_username: Mapped[str | None] = mapped_column(String(255), nullable=True)
    github_avatar_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    github_access_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    signed_out_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    password_reset_requested_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )


# --- Content ---


class TopicRow(Base):
    __tablename__ = "topics"

    id: Mapped[str] = mapped_column(_ID, primary_key=True)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    # markdown string or list of {title, content, code} sections
    content: Mapped[Any] = mapped_column(JSON, nullable=False, default="")
    level: Mapped[str] = mapped_column(
        String(16), nullable=False, default="junior"
    )  # junior|middle|senior
    estimated_time: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


class DefinitionRow(Base):
    __tablename__ = "definitions"

    id: Mapped[str] = mapped_column(_ID, primary_key=True)
    term: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    definition: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(64), nullable=False, default="general")
    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


class ProjectRow(Base):
    __tablename__ = "projects"

    id: Mapped[str] = mapped_column(_ID, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    difficulty_level: Mapped[str] = mapped_column(
        String(16), nullable=False, default="beginner"
    )  # beginner|intermediate|advanced
    estimated_duration: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    category: Mapped[str] = mapped_column(String(64), nullable=False, default="general")
    github_url: Mapped[str | None] = mapped_column(Text)
    demo_url: Mapped[str | None] = mapped_column(Text)
    image_url: Mapped[str | None] = mapped_column(Text)
    is_pet_project: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    real_world_example: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    technologies: Mapped[list[ProjectTechnologyRow]] = relationship(
        order_by="ProjectTechnologyRow.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    features: Mapped[list[ProjectFeatureRow]] = relationship(
        order_by="ProjectFeatureRow.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class ProjectTechnologyRow(Base):
    __tablename__ = "project_technologies"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[str] = mapped_column(
        _ID, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    explanation: Mapped[str] = mapped_column(Text, nullable=False, default="")
    is_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    category: Mapped[str] = mapped_column(String(64), nullable=False, default="general")


class ProjectFeatureRow(Base):
    __tablename__ = "project_features"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    project_id: Mapped[str] = mapped_column(
        _ID, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    priority: Mapped[str] = mapped_column(
        String(8), nullable=False, default="medium"
    )  # low|medium|high


class QuizRow(Base):
    __tablename__ = "quizzes"

    id: Mapped[str] = mapped_column(_ID, primary_key=True)
    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    level: Mapped[str] = mapped_column(String(16), nullable=False, default="junior")


class QuizQuestionRow(Base):
    __tablename__ = "quiz_questions"

    id: Mapped[str] = mapped_column(_ID, primary_key=True)
    quiz_id: Mapped[str] = mapped_column(
        _ID, ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    quiz_slug: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    question: Mapped[str] = mapped_column(Text, nullable=False)
    # Legacy rows hold a JSON-encoded string here; readers parse either form
    options: Mapped[Any] = mapped_column(JSON, nullable=False, default=dict)
    correct_answer: Mapped[str] = mapped_column(String(32), nullable=False)
    explanation: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category: Mapped[str] = mapped_column(String(64), nullable=False, default="general")


# --- Progress ---


class QuizResultRow(Base):
    __tablename__ = "quiz_results"

    id: Mapped[str] = mapped_column(_ID, primary_key=True)
    user_id: Mapped[str] = mapped_column(_ID, nullable=False, index=True)
    quiz_id: Mapped[str] = mapped_column(_ID, nullable=False)
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    total_questions: Mapped[int] = mapped_column(Integer, nullable=False)
    completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class TopicProgressRow(Base):
    __tablename__ = "topic_progress"

    user_id: Mapped[str] = mapped_column(_ID, primary_key=True)
    topic_id: Mapped[str] = mapped_column(_ID, primary_key=True)
    read_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
