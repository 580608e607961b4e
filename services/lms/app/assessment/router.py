"""Assessment router — quiz management and attempts.

Instructors attach one quiz per lesson; enrolled students take it.
Grading happens on the server.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.assessment import controller
from app.assessment.schemas import (
    CreateQuizRequest,
    QuizAttemptRequest,
    QuizAttemptResponse,
    QuizAttemptResultResponse,
    QuizResponse,
    QuizStudentResponse,
)
from app.database import get_db
from app.dependencies import get_current_user, require_role
from shared.constants import Role
from shared.models.envelope import ApiResponse
from shared.models.user import Principal

router = APIRouter(prefix="/lms", tags=["Assessment"])


@router.post(
    "/lessons/{lesson_id}/quiz",
    response_model=ApiResponse[QuizResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create quiz for a lesson",
    description="Course owner or admin. One quiz per lesson.",
)
async def create_quiz(
    lesson_id: UUID,
    body: CreateQuizRequest,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_role(Role.INSTRUCTOR)),
) -> ApiResponse[QuizResponse]:
    return await controller.create_quiz(db, principal, lesson_id, body)


@router.get(
    "/quizzes/{quiz_id}",
    response_model=ApiResponse[QuizStudentResponse],
    summary="Get quiz (student view)",
    description="Questions without correct answers, plus the caller's attempt summary.",
)
async def get_quiz(
    quiz_id: UUID,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_user),
) -> ApiResponse[QuizStudentResponse]:
    return await controller.get_quiz(db, principal, quiz_id)


@router.get(
    "/quizzes/{quiz_id}/answers",
    response_model=ApiResponse[QuizResponse],
    summary="Get quiz with answers (course owner or admin)",
)
async def get_quiz_with_answers(
    quiz_id: UUID,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_role(Role.INSTRUCTOR)),
) -> ApiResponse[QuizResponse]:
    return await controller.get_quiz_with_answers(db, principal, quiz_id)


@router.post(
    "/quizzes/{quiz_id}/attempts",
    response_model=ApiResponse[QuizAttemptResultResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Submit a quiz attempt",
    description="A passing attempt completes the lesson.",
)
async def submit_attempt(
    quiz_id: UUID,
    body: QuizAttemptRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_user),
) -> ApiResponse[QuizAttemptResultResponse]:
    return await controller.submit_attempt(db, principal, quiz_id, body, background_tasks)


@router.get(
    "/quizzes/{quiz_id}/attempts",
    response_model=ApiResponse[list[QuizAttemptResponse]],
    summary="My attempts on a quiz",
)
async def list_my_attempts(
    quiz_id: UUID,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_user),
) -> ApiResponse[list[QuizAttemptResponse]]:
    return await controller.list_my_attempts(db, principal, quiz_id)
