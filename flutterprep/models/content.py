from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

Level = Literal["junior", "middle", "senior"]
Difficulty = Literal["beginner", "intermediate", "advanced"]
Priority = Literal["low", "medium", "high"]

LEVELS: tuple[str, ...] = ("junior", "middle", "senior")
DIFFICULTIES: tuple[str, ...] = ("beginner", "intermediate", "advanced")
PRIORITIES: tuple[str, ...] = ("low", "medium", "high")


@dataclass(frozen=True, slots=True)
class TopicSection:
    title: str
    content: str
    code: str | None = None


@dataclass(frozen=True, slots=True)
class Topic:
    id: str
    title: str
    slug: str
    description: str = ""
    # Either a markdown body or an ordered list of sections
    content: str | tuple[TopicSection, ...] = ""
    level: Level = "junior"
    estimated_time: int = 0  # minutes
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class Definition:
    id: str
    term: str
    definition: str
    category: str = "general"
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class ProjectTechnology:
    name: str
    explanation: str = ""
    is_required: bool = False
    category: str = "general"


@dataclass(frozen=True, slots=True)
class ProjectFeature:
    name: str
    description: str = ""
    priority: Priority = "medium"


@dataclass(frozen=True, slots=True)
class Project:
    id: str
    name: str
    slug: str
    description: str = ""
    difficulty_level: Difficulty = "beginner"
    estimated_duration: str = ""
    category: str = "general"
    github_url: str | None = None
    demo_url: str | None = None
    image_url: str | None = None
    is_pet_project: bool = False
    real_world_example: str | None = None
    technologies: tuple[ProjectTechnology, ...] = ()
    features: tuple[ProjectFeature, ...] = ()
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class QuizQuestion:
    id: str
    quiz_id: str
    quiz_slug: str
    question: str
    options: dict[str, str] = field(default_factory=dict)  # label -> text
    correct_answer: str = ""
    explanation: str = ""
    category: str = "general"


@dataclass(frozen=True, slots=True)
class Quiz:
    id: str
    slug: str
    title: str
    description: str = ""
    level: Level = "junior"
    questions: tuple[QuizQuestion, ...] = ()
