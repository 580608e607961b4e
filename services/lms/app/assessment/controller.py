"""Assessment controller — maps service results to HTTP responses."""

from __future__ import annotations

from uuid import UUID

from fastapi import BackgroundTasks, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.assessment import service
from app.assessment.grading import strip_answers
from app.assessment.schemas import (
    CreateQuizRequest,
    QuizAttemptRequest,
    QuizAttemptResponse,
    QuizAttemptResultResponse,
    QuizResponse,
    QuizStudentResponse,
)
from app.exceptions import (
    CourseNotFoundError,
    InvalidSubmissionError,
    LessonNotFoundError,
    MaxAttemptsReachedError,
    ModuleNotFoundError,
    NotCourseOwnerError,
    NotEnrolledError,
    QuizAlreadyExistsError,
    QuizNotFoundError,
)
from app.models.enums import NotificationCategory, NotificationType
from app.notifications.dispatch import dispatch_notification
from shared.models.envelope import ApiResponse
from shared.models.user import Principal


def _handle_domain_error(exc: Exception) -> HTTPException:
    if isinstance(exc, QuizNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Quiz not found")
    if isinstance(exc, (LessonNotFoundError, ModuleNotFoundError, CourseNotFoundError)):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lesson not found")
    if isinstance(exc, NotCourseOwnerError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not the course instructor")
    if isinstance(exc, NotEnrolledError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not enrolled in this course")
    if isinstance(exc, QuizAlreadyExistsError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Quiz already exists for this lesson")
    if isinstance(exc, IntegrityError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Concurrent submission, please retry")
    if isinstance(exc, MaxAttemptsReachedError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Maximum attempts exceeded")
    if isinstance(exc, InvalidSubmissionError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.detail)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal error.")


async def create_quiz(
    db: AsyncSession,
    principal: Principal,
    lesson_id: UUID,
    body: CreateQuizRequest,
) -> ApiResponse[QuizResponse]:
    try:
        quiz = await service.create_quiz(
            db,
            principal,
            lesson_id,
            title=body.title,
            questions=[q.model_dump(mode="json") for q in body.questions],
            passing_score=body.passing_score,
            max_attempts=body.max_attempts,
        )
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    return ApiResponse(data=QuizResponse.model_validate(quiz), message="Quiz created")


async def get_quiz(
    db: AsyncSession,
    principal: Principal,
    quiz_id: UUID,
) -> ApiResponse[QuizStudentResponse]:
    try:
        quiz, _, summary = await service.get_quiz(db, principal, quiz_id)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    questions = strip_answers(quiz.questions or [])
    return ApiResponse(
        data=QuizStudentResponse(
            quiz_id=quiz.quiz_id,
            lesson_id=quiz.lesson_id,
            title=quiz.title,
            questions=questions,
            total_points=sum(q["points"] for q in questions),
            passing_score=quiz.passing_score,
            max_attempts=quiz.max_attempts,
            **summary,
        )
    )


async def get_quiz_with_answers(
    db: AsyncSession,
    principal: Principal,
    quiz_id: UUID,
) -> ApiResponse[QuizResponse]:
    try:
        quiz, can_manage, _ = await service.get_quiz(db, principal, quiz_id)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    if not can_manage:
        raise _handle_domain_error(NotCourseOwnerError())
    return ApiResponse(data=QuizResponse.model_validate(quiz))


async def submit_attempt(
    db: AsyncSession,
    principal: Principal,
    quiz_id: UUID,
    body: QuizAttemptRequest,
    background_tasks: BackgroundTasks,
) -> ApiResponse[QuizAttemptResultResponse]:
    try:
        attempt, result, newly_completed = await service.submit_attempt(
            db, principal, quiz_id, body.answers
        )
    except Exception as exc:
        raise _handle_domain_error(exc) from exc

    outcome = "passed" if result.passed else "did not pass"
    background_tasks.add_task(
        dispatch_notification,
        principal.id,
        NotificationType.QUIZ_GRADED,
        "Quiz graded",
        f"You scored {result.score}% and {outcome}.",
        category=NotificationCategory.ACADEMIC,
        action_url=f"/quizzes/{quiz_id}",
        payload={"quiz_id": str(quiz_id), "score": result.score, "passed": result.passed},
    )
    return ApiResponse(
        data=QuizAttemptResultResponse(
            attempt=QuizAttemptResponse.model_validate(attempt),
            correct_count=result.correct_count,
            total_questions=len(result.results),
            results=result.results,
            lesson_completed=newly_completed,
        ),
        message="Quiz submitted",
    )


async def list_my_attempts(
    db: AsyncSession,
    principal: Principal,
    quiz_id: UUID,
) -> ApiResponse[list[QuizAttemptResponse]]:
    try:
        attempts = await service.list_my_attempts(db, principal, quiz_id)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    return ApiResponse(data=[QuizAttemptResponse.model_validate(a) for a in attempts])
