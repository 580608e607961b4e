import pytest

from app.assessment import service
from app.exceptions import (
    InvalidSubmissionError,
    MaxAttemptsReachedError,
    NotCourseOwnerError,
    NotEnrolledError,
    QuizAlreadyExistsError,
)
from app.lms import service as lms_service
from app.models.enums import EnrollmentStatus, PaymentMethod
from app.models.user import User
from conftest import course_lessons, principal_for
from shared.constants import Role

QUESTIONS = [
    {"question_type": "MULTIPLE_CHOICE", "question": "Pick B", "options": ["A", "B"], "correct_answer": 1, "points": 3},
    {"question_type": "TRUE_FALSE", "question": "Sky is blue", "options": [], "correct_answer": True, "points": 1},
]


@pytest.fixture
def quiz_setup(make_user, make_course, db_session):
    async def _make(max_attempts: int | None = None, lessons: int = 2):
        instructor = await make_user(Role.INSTRUCTOR)
        student = await make_user(Role.STUDENT)
        course = await make_course(instructor, lessons=lessons)
        lesson = (await course_lessons(db_session, course))[0]
        quiz = await service.create_quiz(
            db_session,
            principal_for(instructor),
            lesson.lesson_id,
            title="Checkpoint",
            questions=QUESTIONS,
            passing_score=70,
            max_attempts=max_attempts,
        )
        await lms_service.enroll(db_session, principal_for(student), course.course_id, PaymentMethod.FREE)
        return instructor, student, course, lesson, quiz

    return _make


async def test_only_course_owner_creates_quiz(make_user, make_course, db_session) -> None:
    owner = await make_user(Role.INSTRUCTOR)
    other = await make_user(Role.INSTRUCTOR)
    course = await make_course(owner)
    lesson = (await course_lessons(db_session, course))[0]

    with pytest.raises(NotCourseOwnerError):
        await service.create_quiz(
            db_session, principal_for(other), lesson.lesson_id,
            title="Quiz", questions=QUESTIONS, passing_score=70, max_attempts=None,
        )


async def test_one_quiz_per_lesson(quiz_setup, db_session) -> None:
    instructor, _, _, lesson, _ = await quiz_setup()
    with pytest.raises(QuizAlreadyExistsError):
        await service.create_quiz(
            db_session, principal_for(instructor), lesson.lesson_id,
            title="Again", questions=QUESTIONS, passing_score=70, max_attempts=None,
        )


async def test_failed_attempt_does_not_complete_lesson(quiz_setup, db_session) -> None:
    _, student, _, _, quiz = await quiz_setup()
    attempt, result, newly_completed = await service.submit_attempt(
        db_session, principal_for(student), quiz.quiz_id, [0, True]
    )
    assert attempt.attempt_number == 1
    assert result.score == 25
    assert not attempt.passed
    assert not newly_completed


async def test_passing_attempt_completes_lesson_and_awards_points(quiz_setup, db_session) -> None:
    _, student, course, _, quiz = await quiz_setup(lessons=1)
    attempt, result, newly_completed = await service.submit_attempt(
        db_session, principal_for(student), quiz.quiz_id, [1, True]
    )
    assert attempt.passed
    assert result.score == 100
    assert newly_completed

    user = await db_session.get(User, student.user_id)
    await db_session.refresh(user)
    assert user.total_points == 4

    enrollment, _ = await lms_service.get_course_progress(db_session, principal_for(student), course.course_id)
    assert enrollment.progress == 100
    assert enrollment.status == EnrollmentStatus.COMPLETED

    # A second pass neither re-completes nor re-awards
    _, _, again = await service.submit_attempt(db_session, principal_for(student), quiz.quiz_id, [1, True])
    assert not again
    await db_session.refresh(user)
    assert user.total_points == 4


async def test_max_attempts_enforced(quiz_setup, db_session) -> None:
    _, student, _, _, quiz = await quiz_setup(max_attempts=2)
    principal = principal_for(student)
    await service.submit_attempt(db_session, principal, quiz.quiz_id, [0, False])
    await service.submit_attempt(db_session, principal, quiz.quiz_id, [0, False])

    with pytest.raises(MaxAttemptsReachedError):
        await service.submit_attempt(db_session, principal, quiz.quiz_id, [1, True])

    _, _, summary = await service.get_quiz(db_session, principal, quiz.quiz_id)
    assert summary["attempt_count"] == 2
    assert summary["remaining_attempts"] == 0
    assert not summary["can_retake"]

    attempts = await service.list_my_attempts(db_session, principal, quiz.quiz_id)
    assert [a.attempt_number for a in attempts] == [2, 1]


async def test_too_many_answers_rejected(quiz_setup, db_session) -> None:
    _, student, _, _, quiz = await quiz_setup()
    with pytest.raises(InvalidSubmissionError):
        await service.submit_attempt(db_session, principal_for(student), quiz.quiz_id, [1, True, "extra"])


async def test_quiz_requires_enrollment(quiz_setup, make_user, db_session) -> None:
    _, _, _, _, quiz = await quiz_setup()
    outsider = await make_user(Role.STUDENT)
    with pytest.raises(NotEnrolledError):
        await service.submit_attempt(db_session, principal_for(outsider), quiz.quiz_id, [1, True])


async def test_owner_reads_quiz_as_manager(quiz_setup, db_session) -> None:
    instructor, _, _, _, quiz = await quiz_setup()
    _, can_manage, summary = await service.get_quiz(db_session, principal_for(instructor), quiz.quiz_id)
    assert can_manage
    assert summary["attempt_count"] == 0
    assert summary["best_score"] is None
