"""Read-only content endpoints: topics, definitions, projects and quizzes.

Topic reads go through the cached ContentService; everything else goes
straight to the dual-database service (primary with fallback).
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict

from flutterprep.api.dependencies import get_services
from flutterprep.services.container import Services

router = APIRouter(prefix="/v1", tags=["content"])


# --- Response schemas -----------------------------------------------------


class _Out(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class TopicSectionOut(_Out):
    title: str
    content: str
    code: str | None = None


class TopicOut(_Out):
    id: str
    title: str
    slug: str
    description: str
    content: str | list[TopicSectionOut]
    level: str
    estimated_time: int
    created_at: datetime | None = None
    updated_at: datetime | None = None


class DefinitionOut(_Out):
    id: str
    term: str
    definition: str
    category: str


class TechnologyOut(_Out):
    name: str
    explanation: str
    is_required: bool
    category: str


class FeatureOut(_Out):
    name: str
    description: str
    priority: str


class ProjectOut(_Out):
    id: str
    name: str
    slug: str
    description: str
    difficulty_level: str
    estimated_duration: str
    category: str
    github_url: str | None = None
    demo_url: str | None = None
    image_url: str | None = None
    is_pet_project: bool
    real_world_example: str | None = None
    technologies: list[TechnologyOut]
    features: list[FeatureOut]


class QuestionOut(_Out):
    id: str
    quiz_id: str
    quiz_slug: str
    question: str
    options: dict[str, str]
    correct_answer: str
    explanation: str
    category: str


class QuizOut(_Out):
    id: str
    slug: str
    title: str
    description: str
    level: str
    questions: list[QuestionOut]


def _not_found(what: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"message": f"{what} not found"},
    )


# --- Topics (cached) -------------------------------------------------------


@router.get("/topics", response_model=list[TopicOut])
async def list_topics(services: Annotated[Services, Depends(get_services)]) -> list[TopicOut]:
    return [TopicOut.model_validate(t) for t in await services.content.get_topics()]


@router.get("/topics/{slug}", response_model=TopicOut)
async def get_topic(
    slug: str, services: Annotated[Services, Depends(get_services)]
) -> TopicOut:
    topic = await services.content.get_topic_by_slug(slug)
    if topic is None:
        raise _not_found("Topic")
    return TopicOut.model_validate(topic)


# --- Definitions -----------------------------------------------------------


@router.get("/definitions", response_model=list[DefinitionOut])
async def list_definitions(
    services: Annotated[Services, Depends(get_services)],
) -> list[DefinitionOut]:
    return [DefinitionOut.model_validate(d) for d in await services.db.get_definitions()]


@router.get("/definitions/{term}", response_model=DefinitionOut)
async def get_definition(
    term: str, services: Annotated[Services, Depends(get_services)]
) -> DefinitionOut:
    definition = await services.db.get_definition_by_term(term)
    if definition is None:
        raise _not_found("Definition")
    return DefinitionOut.model_validate(definition)


# --- Projects --------------------------------------------------------------


@router.get("/projects", response_model=list[ProjectOut])
async def list_projects(
    services: Annotated[Services, Depends(get_services)],
) -> list[ProjectOut]:
    return [ProjectOut.model_validate(p) for p in await services.db.get_projects()]


@router.get("/projects/{slug}", response_model=ProjectOut)
async def get_project(
    slug: str, services: Annotated[Services, Depends(get_services)]
) -> ProjectOut:
    project = await services.db.get_project_by_slug(slug)
    if project is None:
        raise _not_found("Project")
    return ProjectOut.model_validate(project)


# --- Quizzes ---------------------------------------------------------------
# /by-id/{quiz_id} is registered before /{slug} so it is not read as a slug.


@router.get("/quizzes", response_model=list[QuizOut])
async def list_quizzes(services: Annotated[Services, Depends(get_services)]) -> list[QuizOut]:
    return [QuizOut.model_validate(q) for q in await services.db.get_quizzes()]


@router.get("/quizzes/by-id/{quiz_id}", response_model=QuizOut)
async def get_quiz_by_id(
    quiz_id: str, services: Annotated[Services, Depends(get_services)]
) -> QuizOut:
    quiz = await services.db.get_quiz_by_id(quiz_id)
    if quiz is None:
        raise _not_found("Quiz")
    return QuizOut.model_validate(quiz)


@router.get("/quizzes/{slug}", response_model=QuizOut)
async def get_quiz(slug: str, services: Annotated[Services, Depends(get_services)]) -> QuizOut:
    quiz = await services.db.get_quiz_by_slug(slug)
    if quiz is None:
        raise _not_found("Quiz")
    return QuizOut.model_validate(quiz)


@router.get("/quizzes/{slug}/questions", response_model=list[QuestionOut])
async def list_quiz_questions(
    slug: str, services: Annotated[Services, Depends(get_services)]
) -> list[QuestionOut]:
    questions = await services.db.get_questions_by_quiz_slug(slug)
    return [QuestionOut.model_validate(q) for q in questions]
