from decimal import Decimal

import pytest
from sqlalchemy import func, select

from app.exceptions import (
    AlreadyEnrolledError,
    CourseNotFoundError,
    CourseNotPublishedError,
    InsufficientRoleError,
    InvalidStatusTransitionError,
    LessonNotManuallyCompletableError,
    NotCourseOwnerError,
    NotEnrolledError,
    PaymentMethodMismatchError,
)
from app.lms import service
from app.models.enums import (
    CourseStatus,
    EnrollmentStatus,
    LessonProgressStatus,
    LessonType,
    PaymentMethod,
    PaymentStatus,
)
from app.models.lesson_progress import LessonProgress
from conftest import course_lessons, principal_for
from shared.constants import Role


async def test_create_course_requires_instructor(make_user, db_session) -> None:
    student = await make_user(Role.STUDENT)
    with pytest.raises(InsufficientRoleError):
        await service.create_course(db_session, principal_for(student), title="Nope")


async def test_create_course_builds_default_outline(make_user, db_session) -> None:
    instructor = await make_user(Role.INSTRUCTOR)
    course = await service.create_course(db_session, principal_for(instructor), title="Intro to Go")
    assert course.slug == "intro-to-go"
    assert course.status == CourseStatus.DRAFT
    assert course.is_free

    lessons = await course_lessons(db_session, course)
    assert len(lessons) == 1
    assert lessons[0].is_free


async def test_slugs_are_unique(make_user, db_session) -> None:
    instructor = await make_user(Role.INSTRUCTOR)
    first = await service.create_course(db_session, principal_for(instructor), title="Data Science")
    second = await service.create_course(db_session, principal_for(instructor), title="Data Science")
    assert first.slug != second.slug
    assert second.slug.startswith("data-science")


async def test_draft_is_hidden_from_students(make_user, make_course, db_session) -> None:
    instructor = await make_user(Role.INSTRUCTOR)
    student = await make_user(Role.STUDENT)
    course = await make_course(instructor, publish=False)

    with pytest.raises(CourseNotFoundError):
        await service.get_course_detail(db_session, course.course_id, principal_for(student))

    _, outline, can_manage = await service.get_course_detail(
        db_session, course.course_id, principal_for(instructor)
    )
    assert can_manage
    assert len(outline[0][1]) == 4


async def test_only_owner_can_publish(make_user, make_course, db_session) -> None:
    owner = await make_user(Role.INSTRUCTOR)
    other = await make_user(Role.INSTRUCTOR)
    course = await make_course(owner, publish=False)

    with pytest.raises(NotCourseOwnerError):
        await service.publish_course(db_session, principal_for(other), course.course_id)

    published = await service.publish_course(db_session, principal_for(owner), course.course_id)
    assert published.status == CourseStatus.PUBLISHED
    assert published.published_at is not None

    with pytest.raises(InvalidStatusTransitionError):
        await service.publish_course(db_session, principal_for(owner), course.course_id)


async def test_admin_can_manage_any_course(make_user, make_course, db_session) -> None:
    owner = await make_user(Role.INSTRUCTOR)
    admin = await make_user(Role.ADMIN)
    course = await make_course(owner)
    archived = await service.archive_course(db_session, principal_for(admin), course.course_id)
    assert archived.status == CourseStatus.ARCHIVED


async def test_list_courses_shows_only_published(make_user, make_course, db_session) -> None:
    instructor = await make_user(Role.INSTRUCTOR)
    await make_course(instructor, title="Visible")
    await make_course(instructor, title="Hidden", publish=False)
    await make_course(instructor, title="Paid Visible", price=Decimal("5000"))

    courses, total = await service.list_courses(db_session)
    assert total == 2
    assert {c.title for c in courses} == {"Visible", "Paid Visible"}

    free_only, free_total = await service.list_courses(db_session, free=True)
    assert free_total == 1
    assert free_only[0].title == "Visible"


async def test_free_enrollment(make_user, make_course, db_session) -> None:
    instructor = await make_user(Role.INSTRUCTOR)
    student = await make_user(Role.STUDENT)
    course = await make_course(instructor)

    enrollment, course = await service.enroll(
        db_session, principal_for(student), course.course_id, PaymentMethod.FREE
    )
    assert enrollment.status == EnrollmentStatus.ACTIVE
    assert enrollment.payment_status == PaymentStatus.FREE
    assert enrollment.progress == 0
    assert course.enrollment_count == 1


async def test_duplicate_enrollment_rejected(make_user, make_course, db_session) -> None:
    instructor = await make_user(Role.INSTRUCTOR)
    student = await make_user(Role.STUDENT)
    course = await make_course(instructor)
    await service.enroll(db_session, principal_for(student), course.course_id, PaymentMethod.FREE)

    with pytest.raises(AlreadyEnrolledError):
        await service.enroll(db_session, principal_for(student), course.course_id, PaymentMethod.FREE)


async def test_enrollment_guards(make_user, make_course, db_session) -> None:
    instructor = await make_user(Role.INSTRUCTOR)
    student = await make_user(Role.STUDENT)
    plain = await make_user(Role.USER)
    draft = await make_course(instructor, publish=False)
    paid = await make_course(instructor, price=Decimal("15000"))

    with pytest.raises(InsufficientRoleError):
        await service.enroll(db_session, principal_for(plain), paid.course_id, PaymentMethod.FREE)
    with pytest.raises(CourseNotPublishedError):
        await service.enroll(db_session, principal_for(student), draft.course_id, PaymentMethod.FREE)
    with pytest.raises(PaymentMethodMismatchError):
        await service.enroll(db_session, principal_for(student), paid.course_id, PaymentMethod.FREE)
    with pytest.raises(PaymentMethodMismatchError):
        await service.enroll(db_session, principal_for(student), paid.course_id, PaymentMethod.PAYSTACK)


async def test_progress_requires_enrollment(make_user, make_course, db_session) -> None:
    instructor = await make_user(Role.INSTRUCTOR)
    student = await make_user(Role.STUDENT)
    course = await make_course(instructor)
    lesson = (await course_lessons(db_session, course))[0]

    with pytest.raises(NotEnrolledError):
        await service.record_lesson_progress(
            db_session,
            principal_for(student),
            lesson.lesson_id,
            current_time=10,
            watch_percentage=Decimal("10"),
            time_spent=10,
        )


async def test_three_of_four_lessons_is_seventy_five_percent(make_user, make_course, db_session) -> None:
    instructor = await make_user(Role.INSTRUCTOR)
    student = await make_user(Role.STUDENT)
    principal = principal_for(student)
    course = await make_course(instructor, lessons=4)
    await service.enroll(db_session, principal, course.course_id, PaymentMethod.FREE)
    lessons = await course_lessons(db_session, course)

    for lesson in lessons[:3]:
        progress, enrollment, newly_completed = await service.record_lesson_progress(
            db_session,
            principal,
            lesson.lesson_id,
            current_time=560,
            watch_percentage=Decimal("93.5"),
            time_spent=600,
        )
        assert newly_completed
        assert progress.status == LessonProgressStatus.COMPLETED

    assert enrollment.progress == 75
    assert enrollment.status == EnrollmentStatus.ACTIVE

    _, enrollment, _ = await service.record_lesson_progress(
        db_session,
        principal,
        lessons[3].lesson_id,
        current_time=600,
        watch_percentage=Decimal("100"),
        time_spent=600,
    )
    assert enrollment.progress == 100
    assert enrollment.status == EnrollmentStatus.COMPLETED
    assert enrollment.completed_at is not None


async def test_partial_watch_keeps_lesson_in_progress(make_user, make_course, db_session) -> None:
    instructor = await make_user(Role.INSTRUCTOR)
    student = await make_user(Role.STUDENT)
    principal = principal_for(student)
    course = await make_course(instructor)
    await service.enroll(db_session, principal, course.course_id, PaymentMethod.FREE)
    lesson = (await course_lessons(db_session, course))[0]

    progress, enrollment, newly_completed = await service.record_lesson_progress(
        db_session,
        principal,
        lesson.lesson_id,
        current_time=300,
        watch_percentage=Decimal("50"),
        time_spent=300,
    )
    assert not newly_completed
    assert progress.status == LessonProgressStatus.IN_PROGRESS
    assert enrollment.progress == 0


async def test_completion_is_one_way(make_user, make_course, db_session) -> None:
    instructor = await make_user(Role.INSTRUCTOR)
    student = await make_user(Role.STUDENT)
    principal = principal_for(student)
    course = await make_course(instructor, lessons=2)
    await service.enroll(db_session, principal, course.course_id, PaymentMethod.FREE)
    lesson = (await course_lessons(db_session, course))[0]

    await service.record_lesson_progress(
        db_session, principal, lesson.lesson_id,
        current_time=600, watch_percentage=Decimal("95"), time_spent=600,
    )
    progress, enrollment, newly_completed = await service.record_lesson_progress(
        db_session, principal, lesson.lesson_id,
        current_time=30, watch_percentage=Decimal("5"), time_spent=700,
    )
    assert not newly_completed
    assert progress.status == LessonProgressStatus.COMPLETED
    assert progress.current_time_secs == 30
    assert enrollment.progress == 50

    _, _, again = await service.mark_lesson_completed(db_session, student.user_id, lesson.lesson_id)
    assert not again


async def test_completed_enrollment_survives_new_lessons(make_user, make_course, db_session) -> None:
    instructor = await make_user(Role.INSTRUCTOR)
    student = await make_user(Role.STUDENT)
    principal = principal_for(student)
    course = await make_course(instructor, lessons=1)
    await service.enroll(db_session, principal, course.course_id, PaymentMethod.FREE)
    lesson = (await course_lessons(db_session, course))[0]
    _, enrollment, _ = await service.mark_lesson_completed(db_session, student.user_id, lesson.lesson_id)
    assert enrollment.status == EnrollmentStatus.COMPLETED

    await service.create_lesson(
        db_session, principal_for(instructor), lesson.module_id, title="Bonus", is_published=True
    )
    await db_session.refresh(enrollment)
    assert enrollment.progress == 50
    assert enrollment.status == EnrollmentStatus.COMPLETED


async def test_unpublished_lessons_do_not_count(make_user, make_course, db_session) -> None:
    instructor = await make_user(Role.INSTRUCTOR)
    student = await make_user(Role.STUDENT)
    principal = principal_for(student)
    course = await make_course(instructor, lessons=2)
    await service.enroll(db_session, principal, course.course_id, PaymentMethod.FREE)
    first, second = await course_lessons(db_session, course)

    await service.mark_lesson_completed(db_session, student.user_id, first.lesson_id)
    await service.update_lesson(db_session, principal_for(instructor), second.lesson_id, is_published=False)

    enrollment, records = await service.get_course_progress(db_session, principal, course.course_id)
    assert enrollment.progress == 100
    assert len(records) == 1


async def test_repeated_completion_keeps_first_completed_at(make_user, make_course, db_session) -> None:
    instructor = await make_user(Role.INSTRUCTOR)
    student = await make_user(Role.STUDENT)
    principal = principal_for(student)
    course = await make_course(instructor, lessons=2)
    await service.enroll(db_session, principal, course.course_id, PaymentMethod.FREE)
    lesson = (await course_lessons(db_session, course))[0]

    first, _, newly_completed = await service.record_lesson_progress(
        db_session, principal, lesson.lesson_id,
        current_time=570, watch_percentage=Decimal("95"), time_spent=570,
    )
    completed_at = first.completed_at
    assert newly_completed
    assert completed_at is not None

    second, enrollment, newly_completed = await service.record_lesson_progress(
        db_session, principal, lesson.lesson_id,
        current_time=600, watch_percentage=Decimal("100"), time_spent=640,
    )
    assert not newly_completed
    assert second.completed_at == completed_at
    assert enrollment.progress == 50


async def test_only_text_and_document_lessons_complete_directly(make_user, make_course, db_session) -> None:
    instructor = await make_user(Role.INSTRUCTOR)
    student = await make_user(Role.STUDENT)
    principal = principal_for(student)
    course = await make_course(instructor, lessons=1)
    await service.enroll(db_session, principal, course.course_id, PaymentMethod.FREE)
    video = (await course_lessons(db_session, course))[0]
    owner = principal_for(instructor)
    quiz = await service.create_lesson(
        db_session, owner, video.module_id, title="Checkpoint", lesson_type=LessonType.QUIZ, is_published=True
    )
    reading = await service.create_lesson(
        db_session, owner, video.module_id, title="Notes", lesson_type=LessonType.TEXT, is_published=True
    )

    with pytest.raises(LessonNotManuallyCompletableError):
        await service.complete_lesson(db_session, student.user_id, video.lesson_id)
    with pytest.raises(LessonNotManuallyCompletableError):
        await service.complete_lesson(db_session, student.user_id, quiz.lesson_id)
    assert await service.get_lesson_progress(db_session, principal, video.lesson_id) is None

    progress, enrollment, newly_completed = await service.complete_lesson(
        db_session, student.user_id, reading.lesson_id
    )
    assert newly_completed
    assert progress.status == LessonProgressStatus.COMPLETED
    assert enrollment.progress == 33


async def test_first_report_race_reuses_existing_row(make_user, make_course, db_session, monkeypatch) -> None:
    instructor = await make_user(Role.INSTRUCTOR)
    student = await make_user(Role.STUDENT)
    principal = principal_for(student)
    course = await make_course(instructor, lessons=1)
    await service.enroll(db_session, principal, course.course_id, PaymentMethod.FREE)
    lesson = (await course_lessons(db_session, course))[0]
    await service.record_lesson_progress(
        db_session, principal, lesson.lesson_id,
        current_time=60, watch_percentage=Decimal("10"), time_spent=60,
    )

    # The first lookup misses the row another request just inserted.
    lookup = service._get_progress_record
    calls = []

    async def _stale_once(db, user_id, lesson_id):
        calls.append(lesson_id)
        if len(calls) == 1:
            return None
        return await lookup(db, user_id, lesson_id)

    monkeypatch.setattr(service, "_get_progress_record", _stale_once)
    progress, enrollment, newly_completed = await service.record_lesson_progress(
        db_session, principal, lesson.lesson_id,
        current_time=590, watch_percentage=Decimal("98"), time_spent=650,
    )

    assert len(calls) == 2
    assert newly_completed
    assert progress.time_spent_secs == 650
    assert enrollment.progress == 100
    rows = await db_session.scalar(
        select(func.count()).select_from(LessonProgress).where(LessonProgress.lesson_id == lesson.lesson_id)
    )
    assert rows == 1
