"""Assessment service — quiz CRUD, attempt scoring and grading.

Grading always happens on the server from the stored questions; the
client only sends answers. A passing attempt completes the quiz lesson
through the same one-way path as video progress.

Pure business logic, no FastAPI imports.
"""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.assessment.grading import GradeResult, grade
from app.exceptions import (
    InvalidSubmissionError,
    MaxAttemptsReachedError,
    NotEnrolledError,
    QuizAlreadyExistsError,
    QuizNotFoundError,
)
from app.lms import service as lms_service
from app.models.enrollment import Enrollment
from app.models.lesson import Lesson
from app.models.quiz import Quiz
from app.models.quiz_attempt import QuizAttempt
from app.models.user import User
from shared.models.user import Principal

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Quiz CRUD
# ---------------------------------------------------------------------------


async def create_quiz(
    db: AsyncSession,
    principal: Principal,
    lesson_id: UUID,
    *,
    title: str,
    questions: list[dict[str, Any]],
    passing_score: int,
    max_attempts: int | None,
) -> Quiz:
    lesson = await lms_service.get_lesson_by_id(db, lesson_id)
    course_id = await lms_service.get_lesson_course_id(db, lesson)
    course = await lms_service.get_course_by_id(db, course_id)
    lms_service._ensure_can_manage(principal, course)

    existing = await db.scalar(select(Quiz.quiz_id).where(Quiz.lesson_id == lesson_id))
    if existing is not None:
        raise QuizAlreadyExistsError()

    quiz = Quiz(
        lesson_id=lesson_id,
        title=title,
        questions=questions,
        passing_score=passing_score,
        max_attempts=max_attempts,
    )
    db.add(quiz)
    await db.flush()
    await db.refresh(quiz)
    logger.info("Quiz %s created for lesson %s", quiz.quiz_id, lesson_id)
    return quiz


async def get_quiz_by_id(db: AsyncSession, quiz_id: UUID) -> Quiz:
    quiz = await db.get(Quiz, quiz_id)
    if quiz is None:
        raise QuizNotFoundError(str(quiz_id))
    return quiz


async def _quiz_context(
    db: AsyncSession,
    quiz: Quiz,
    principal: Principal,
) -> tuple[Lesson, UUID, Enrollment | None, bool]:
    """Return (lesson, course_id, caller's enrollment, caller can manage the course)."""
    lesson = await lms_service.get_lesson_by_id(db, quiz.lesson_id)
    course_id = await lms_service.get_lesson_course_id(db, lesson)
    course = await lms_service.get_course_by_id(db, course_id)
    enrollment = await lms_service._get_enrollment(db, principal.id, course_id)
    return lesson, course_id, enrollment, lms_service._can_manage(principal, course)


async def _count_attempts(db: AsyncSession, quiz_id: UUID, user_id: UUID) -> int:
    return await db.scalar(
        select(func.count())
        .select_from(QuizAttempt)
        .where(QuizAttempt.quiz_id == quiz_id, QuizAttempt.user_id == user_id)
    ) or 0


async def get_quiz(
    db: AsyncSession,
    principal: Principal,
    quiz_id: UUID,
) -> tuple[Quiz, bool, dict[str, Any]]:
    """Return (quiz, can_manage, caller's attempt summary).

    Readable by enrolled students, the course owner and admins, and anyone
    signed in when the lesson is a free preview.
    """
    quiz = await get_quiz_by_id(db, quiz_id)
    lesson, _, enrollment, can_manage = await _quiz_context(db, quiz, principal)
    if enrollment is None and not can_manage and not lesson.is_free:
        raise NotEnrolledError()

    result = await db.execute(
        select(func.count(QuizAttempt.attempt_id), func.max(QuizAttempt.score)).where(
            QuizAttempt.quiz_id == quiz_id, QuizAttempt.user_id == principal.id
        )
    )
    attempt_count, best_score = result.one()
    remaining = None if quiz.max_attempts is None else max(quiz.max_attempts - attempt_count, 0)
    summary = {
        "attempt_count": attempt_count,
        "best_score": best_score,
        "remaining_attempts": remaining,
        "can_retake": remaining is None or remaining > 0,
    }
    return quiz, can_manage, summary


# ---------------------------------------------------------------------------
# Attempts
# ---------------------------------------------------------------------------


async def submit_attempt(
    db: AsyncSession,
    principal: Principal,
    quiz_id: UUID,
    answers: list[Any],
) -> tuple[QuizAttempt, GradeResult, bool]:
    """Grade and store an attempt. Returns (attempt, grade, lesson newly completed)."""
    quiz = await get_quiz_by_id(db, quiz_id)
    _, _, enrollment, _ = await _quiz_context(db, quiz, principal)
    if enrollment is None:
        raise NotEnrolledError()

    questions = quiz.questions if isinstance(quiz.questions, list) else []
    if len(answers) > len(questions):
        raise InvalidSubmissionError(
            f"Expected at most {len(questions)} answers, got {len(answers)}"
        )

    attempt_count = await _count_attempts(db, quiz_id, principal.id)
    if quiz.max_attempts is not None and attempt_count >= quiz.max_attempts:
        raise MaxAttemptsReachedError()

    result = grade(questions, answers, quiz.passing_score)
    attempt = QuizAttempt(
        quiz_id=quiz_id,
        user_id=principal.id,
        attempt_number=attempt_count + 1,
        answers=answers,
        score=result.score,
        passed=result.passed,
        points_earned=result.points_earned,
        points_possible=result.points_possible,
    )
    db.add(attempt)
    await db.flush()

    newly_completed = False
    if result.passed:
        _, _, newly_completed = await lms_service.mark_lesson_completed(db, principal.id, quiz.lesson_id)
        if newly_completed:
            user = await db.get(User, principal.id)
            if user is not None:
                user.total_points += result.points_earned
                await db.flush()

    await db.refresh(attempt)
    logger.info(
        "Quiz %s attempt %d by %s scored %d (passed=%s)",
        quiz_id, attempt.attempt_number, principal.id, result.score, result.passed,
    )
    return attempt, result, newly_completed


async def list_my_attempts(
    db: AsyncSession,
    principal: Principal,
    quiz_id: UUID,
) -> list[QuizAttempt]:
    await get_quiz_by_id(db, quiz_id)
    result = await db.execute(
        select(QuizAttempt)
        .where(QuizAttempt.quiz_id == quiz_id, QuizAttempt.user_id == principal.id)
        .order_by(QuizAttempt.attempt_number.desc())
    )
    return list(result.scalars().all())
