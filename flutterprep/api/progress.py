"""Per-user learning progress: quiz results and topics read.

Every route acts on the authenticated user; the user id always comes from
the access token, never from the request body.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field

from flutterprep.api.dependencies import get_services, require_user
from flutterprep.models.principal import Principal
from flutterprep.services.container import Services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/progress", tags=["progress"])


class QuizResultIn(BaseModel):
    quiz_id: str
    score: int = Field(ge=0)
    total_questions: int = Field(ge=0)


class QuizResultOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    quiz_id: str
    score: int
    total_questions: int
    completed_at: datetime


class TopicProgressOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    topic_id: str
    read_at: datetime


@router.post(
    "/quiz-results",
    response_model=QuizResultOut,
    status_code=status.HTTP_201_CREATED,
)
async def save_quiz_result(
    payload: QuizResultIn,
    principal: Annotated[Principal, Depends(require_user)],
    services: Annotated[Services, Depends(get_services)],
) -> QuizResultOut:
    if payload.score > payload.total_questions:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": "score cannot exceed total_questions"},
        )
    result = await services.db.save_quiz_result(
        principal.user_id, payload.quiz_id, payload.score, payload.total_questions
    )
    logger.info(
        "Quiz result saved  user_id=%s quiz_id=%s score=%d/%d",
        principal.user_id,
        payload.quiz_id,
        payload.score,
        payload.total_questions,
    )
    return QuizResultOut.model_validate(result)


@router.get("/quiz-results", response_model=list[QuizResultOut])
async def list_quiz_results(
    principal: Annotated[Principal, Depends(require_user)],
    services: Annotated[Services, Depends(get_services)],
) -> list[QuizResultOut]:
    results = await services.db.get_user_quiz_results(principal.user_id)
    return [QuizResultOut.model_validate(r) for r in results]


@router.put("/topics/{topic_id}", response_model=TopicProgressOut)
async def mark_topic_as_read(
    topic_id: str,
    principal: Annotated[Principal, Depends(require_user)],
    services: Annotated[Services, Depends(get_services)],
) -> TopicProgressOut:
    progress = await services.db.mark_topic_as_read(principal.user_id, topic_id)
    return TopicProgressOut.model_validate(progress)


@router.get("/topics", response_model=list[TopicProgressOut])
async def list_topic_progress(
    principal: Annotated[Principal, Depends(require_user)],
    services: Annotated[Services, Depends(get_services)],
) -> list[TopicProgressOut]:
    progress = await services.db.get_user_topic_progress(principal.user_id)
    return [TopicProgressOut.model_validate(p) for p in progress]
