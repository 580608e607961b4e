"""LMS service — pure business logic, no FastAPI imports.

Handles course CRUD, module/lesson management, enrollment flows,
and lesson progress tracking.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.exceptions import (
    AlreadyEnrolledError,
    CourseNotFoundError,
    CourseNotPublishedError,
    InsufficientRoleError,
    InvalidStatusTransitionError,
    LessonNotFoundError,
    LessonNotManuallyCompletableError,
    ModuleNotFoundError,
    NotCourseOwnerError,
    NotEnrolledError,
    PaymentMethodMismatchError,
)
from app.lms.progress import progress_percentage, reaches_completion
from app.models.course import Course
from app.models.course_module import CourseModule
from app.models.enrollment import Enrollment
from app.models.enums import (
    CourseLevel,
    CourseStatus,
    EnrollmentStatus,
    LessonProgressStatus,
    LessonType,
    PaymentMethod,
    PaymentStatus,
)
from app.models.lesson import Lesson
from app.models.lesson_progress import LessonProgress
from app.models.quiz import Quiz
from app.models.quiz_attempt import QuizAttempt
from shared.constants import Role, has_permission
from shared.models.user import Principal

logger = logging.getLogger(__name__)

# Lesson types whose completion is derived, never set directly
_SELF_COMPLETING_TYPES = frozenset({LessonType.VIDEO, LessonType.QUIZ})


# ---------------------------------------------------------------------------
# Slug generation
# ---------------------------------------------------------------------------

def _slugify(title: str) -> str:
    slug = title.lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[\s_]+", "-", slug)
    return slug.strip("-") or "course"


async def _unique_slug(db: AsyncSession, base_slug: str) -> str:
    slug = base_slug
    counter = 1
    while True:
        exists = await db.scalar(select(func.count()).where(Course.slug == slug))
        if not exists:
            return slug
        slug = f"{base_slug}-{counter}"
        counter += 1


# ---------------------------------------------------------------------------
# Ownership
# ---------------------------------------------------------------------------


def _can_manage(principal: Principal, course: Course) -> bool:
    return course.instructor_id == principal.id or has_permission(principal.role, Role.ADMIN)


def _ensure_can_manage(principal: Principal, course: Course) -> None:
    if not _can_manage(principal, course):
        raise NotCourseOwnerError()


# ---------------------------------------------------------------------------
# Course CRUD
# ---------------------------------------------------------------------------


async def create_course(
    db: AsyncSession,
    principal: Principal,
    *,
    title: str,
    description: str | None = None,
    short_description: str | None = None,
    price: Decimal = Decimal("0"),
    currency: str = "NGN",
    level: CourseLevel = CourseLevel.BEGINNER,
    thumbnail_url: str | None = None,
    publish: bool = False,
    modules: list[dict] | None = None,
) -> Course:
    """Create a course with its initial outline.

    Without an explicit outline the course gets an "Introduction" module
    holding a single welcome lesson so the player always has something to show.
    """
    if not has_permission(principal.role, Role.INSTRUCTOR):
        raise InsufficientRoleError(Role.INSTRUCTOR.value)

    slug = await _unique_slug(db, _slugify(title))
    now = datetime.now(timezone.utc)
    course = Course(
        title=title,
        slug=slug,
        description=description,
        short_description=short_description,
        instructor_id=principal.id,
        price=price,
        currency=currency,
        level=level,
        thumbnail_url=thumbnail_url,
        status=CourseStatus.PUBLISHED if publish else CourseStatus.DRAFT,
        published_at=now if publish else None,
    )
    db.add(course)
    await db.flush()

    outline = modules or [
        {
            "title": "Introduction",
            "description": "Getting started with the course",
            "lessons": [
                {
                    "title": f"Welcome to {title}",
                    "lesson_type": LessonType.TEXT,
                    "content": description or f"Welcome to {title}.",
                    "is_free": True,
                }
            ],
        }
    ]
    for module_index, module_data in enumerate(outline):
        module = CourseModule(
            course_id=course.course_id,
            title=module_data["title"],
            description=module_data.get("description"),
            sort_order=module_data.get("sort_order", module_index),
        )
        db.add(module)
        await db.flush()
        for lesson_index, lesson_data in enumerate(module_data.get("lessons") or []):
            db.add(
                Lesson(
                    module_id=module.module_id,
                    title=lesson_data["title"],
                    description=lesson_data.get("description"),
                    lesson_type=lesson_data.get("lesson_type", LessonType.VIDEO),
                    video_url=lesson_data.get("video_url"),
                    content=lesson_data.get("content"),
                    duration_secs=lesson_data.get("duration_secs"),
                    sort_order=lesson_data.get("sort_order", lesson_index),
                    is_published=lesson_data.get("is_published", True),
                    is_free=lesson_data.get("is_free", False),
                )
            )

    await db.flush()
    await db.refresh(course)
    logger.info("Course %s created by %s (%s)", course.course_id, principal.id, course.status.value)
    return course


async def get_course_by_id(db: AsyncSession, course_id: UUID) -> Course:
    course = await db.get(Course, course_id)
    if course is None:
        raise CourseNotFoundError(str(course_id))
    return course


async def get_course_detail(
    db: AsyncSession,
    course_id: UUID,
    principal: Principal | None,
) -> tuple[Course, list[tuple[CourseModule, list[Lesson]]], bool]:
    """Course with its modules and lessons.

    Returns (course, [(module, lessons)], can_manage). Drafts and archived
    courses, and unpublished lessons, are visible only to the owner and admins.
    """
    course = await get_course_by_id(db, course_id)
    can_manage = principal is not None and _can_manage(principal, course)
    if course.status != CourseStatus.PUBLISHED and not can_manage:
        raise CourseNotFoundError(str(course_id))

    stmt = (
        select(CourseModule)
        .where(CourseModule.course_id == course_id)
        .options(selectinload(CourseModule.lessons))
        .order_by(CourseModule.sort_order)
    )
    result = await db.execute(stmt)
    outline = []
    for module in result.scalars().all():
        lessons = sorted(module.lessons, key=lambda l: l.sort_order)
        if not can_manage:
            lessons = [lesson for lesson in lessons if lesson.is_published]
        outline.append((module, lessons))
    return course, outline, can_manage


async def list_courses(
    db: AsyncSession,
    *,
    search: str | None = None,
    level: CourseLevel | None = None,
    free: bool | None = None,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[Course], int]:
    base = select(Course)
    count_base = select(func.count()).select_from(Course)

    filters = [Course.status == CourseStatus.PUBLISHED]
    if search:
        pattern = f"%{search.lower()}%"
        filters.append(
            or_(func.lower(Course.title).like(pattern), func.lower(Course.description).like(pattern))
        )
    if level is not None:
        filters.append(Course.level == level)
    if free is True:
        filters.append(Course.price <= 0)
    elif free is False:
        filters.append(Course.price > 0)

    for f in filters:
        base = base.where(f)
        count_base = count_base.where(f)

    total = await db.scalar(count_base) or 0
    stmt = base.order_by(Course.published_at.desc(), Course.created_at.desc()).limit(limit).offset(offset)
    result = await db.execute(stmt)
    return list(result.scalars().all()), total


async def list_instructor_courses(db: AsyncSession, principal: Principal) -> list[Course]:
    if not has_permission(principal.role, Role.INSTRUCTOR):
        raise InsufficientRoleError(Role.INSTRUCTOR.value)
    result = await db.execute(
        select(Course)
        .where(Course.instructor_id == principal.id)
        .order_by(Course.created_at.desc())
    )
    return list(result.scalars().all())


async def update_course(
    db: AsyncSession,
    principal: Principal,
    course_id: UUID,
    **fields: object,
) -> Course:
    course = await get_course_by_id(db, course_id)
    _ensure_can_manage(principal, course)
    for key, value in fields.items():
        if value is not None:
            setattr(course, key, value)
    await db.flush()
    await db.refresh(course)
    return course


async def publish_course(db: AsyncSession, principal: Principal, course_id: UUID) -> Course:
    course = await get_course_by_id(db, course_id)
    _ensure_can_manage(principal, course)
    if course.status == CourseStatus.PUBLISHED:
        raise InvalidStatusTransitionError(course.status.value, CourseStatus.PUBLISHED.value)
    course.status = CourseStatus.PUBLISHED
    if course.published_at is None:
        course.published_at = datetime.now(timezone.utc)
    await db.flush()
    await db.refresh(course)
    return course


async def archive_course(db: AsyncSession, principal: Principal, course_id: UUID) -> Course:
    course = await get_course_by_id(db, course_id)
    _ensure_can_manage(principal, course)
    if course.status == CourseStatus.ARCHIVED:
        raise InvalidStatusTransitionError(course.status.value, CourseStatus.ARCHIVED.value)
    course.status = CourseStatus.ARCHIVED
    await db.flush()
    await db.refresh(course)
    return course


# ---------------------------------------------------------------------------
# Module / lesson CRUD
# ---------------------------------------------------------------------------


async def get_module_by_id(db: AsyncSession, module_id: UUID) -> CourseModule:
    module = await db.get(CourseModule, module_id)
    if module is None:
        raise ModuleNotFoundError(str(module_id))
    return module


async def create_module(
    db: AsyncSession,
    principal: Principal,
    course_id: UUID,
    *,
    title: str,
    description: str | None = None,
    sort_order: int | None = None,
) -> CourseModule:
    course = await get_course_by_id(db, course_id)
    _ensure_can_manage(principal, course)
    if sort_order is None:
        sort_order = await db.scalar(
            select(func.count()).select_from(CourseModule).where(CourseModule.course_id == course_id)
        ) or 0
    module = CourseModule(
        course_id=course_id, title=title, description=description, sort_order=sort_order
    )
    db.add(module)
    await db.flush()
    await db.refresh(module)
    return module


async def get_lesson_by_id(db: AsyncSession, lesson_id: UUID) -> Lesson:
    lesson = await db.get(Lesson, lesson_id)
    if lesson is None:
        raise LessonNotFoundError(str(lesson_id))
    return lesson


async def get_lesson_course_id(db: AsyncSession, lesson: Lesson) -> UUID:
    module = await get_module_by_id(db, lesson.module_id)
    return module.course_id


async def create_lesson(
    db: AsyncSession,
    principal: Principal,
    module_id: UUID,
    **fields: object,
) -> Lesson:
    module = await get_module_by_id(db, module_id)
    course = await get_course_by_id(db, module.course_id)
    _ensure_can_manage(principal, course)

    if fields.get("sort_order") is None:
        fields["sort_order"] = await db.scalar(
            select(func.count()).select_from(Lesson).where(Lesson.module_id == module_id)
        ) or 0
    lesson = Lesson(module_id=module_id, **fields)
    db.add(lesson)
    await db.flush()
    await db.refresh(lesson)
    if lesson.is_published:
        await recalculate_course_enrollments(db, course.course_id)
    return lesson


async def update_lesson(
    db: AsyncSession,
    principal: Principal,
    lesson_id: UUID,
    **fields: object,
) -> Lesson:
    lesson = await get_lesson_by_id(db, lesson_id)
    course_id = await get_lesson_course_id(db, lesson)
    course = await get_course_by_id(db, course_id)
    _ensure_can_manage(principal, course)

    was_published = lesson.is_published
    for key, value in fields.items():
        if value is not None:
            setattr(lesson, key, value)
    await db.flush()
    await db.refresh(lesson)
    if lesson.is_published != was_published:
        await recalculate_course_enrollments(db, course_id)
    return lesson


async def delete_lesson(db: AsyncSession, principal: Principal, lesson_id: UUID) -> None:
    lesson = await get_lesson_by_id(db, lesson_id)
    course_id = await get_lesson_course_id(db, lesson)
    course = await get_course_by_id(db, course_id)
    _ensure_can_manage(principal, course)

    quiz_ids = select(Quiz.quiz_id).where(Quiz.lesson_id == lesson_id)
    await db.execute(delete(QuizAttempt).where(QuizAttempt.quiz_id.in_(quiz_ids)))
    await db.execute(delete(Quiz).where(Quiz.lesson_id == lesson_id))
    await db.execute(delete(LessonProgress).where(LessonProgress.lesson_id == lesson_id))
    await db.delete(lesson)
    await db.flush()
    await recalculate_course_enrollments(db, course_id)


# ---------------------------------------------------------------------------
# Enrollment
# ---------------------------------------------------------------------------


async def _get_enrollment(
    db: AsyncSession,
    user_id: UUID,
    course_id: UUID,
) -> Enrollment | None:
    stmt = select(Enrollment).where(
        Enrollment.user_id == user_id,
        Enrollment.course_id == course_id,
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def enroll(
    db: AsyncSession,
    principal: Principal,
    course_id: UUID,
    payment_method: PaymentMethod,
) -> tuple[Enrollment, Course]:
    """Free-path enrollment.

    Guards, in order: role, course exists and is published, not already
    enrolled, payment method fits the price. Paid courses are enrolled only
    through payment confirmation.
    """
    if not has_permission(principal.role, Role.STUDENT):
        raise InsufficientRoleError(Role.STUDENT.value)

    course = await get_course_by_id(db, course_id)
    if course.status != CourseStatus.PUBLISHED:
        raise CourseNotPublishedError()

    if await _get_enrollment(db, principal.id, course_id) is not None:
        raise AlreadyEnrolledError()

    if not course.is_free and payment_method == PaymentMethod.FREE:
        raise PaymentMethodMismatchError("This course requires payment")
    if course.is_free and payment_method != PaymentMethod.FREE:
        raise PaymentMethodMismatchError("Invalid payment method for free course")
    if not course.is_free:
        raise PaymentMethodMismatchError("Paid courses must use payment flow")

    enrollment = Enrollment(
        user_id=principal.id,
        course_id=course_id,
        status=EnrollmentStatus.ACTIVE,
        payment_status=PaymentStatus.FREE,
        progress=0,
        amount_paid=Decimal("0.00"),
    )
    db.add(enrollment)
    course.enrollment_count += 1
    await db.flush()
    await db.refresh(enrollment)
    logger.info("User %s enrolled in course %s (free)", principal.id, course_id)
    return enrollment, course


async def create_paid_enrollment(
    db: AsyncSession,
    user_id: UUID,
    course: Course,
    *,
    reference: str,
    amount: Decimal,
) -> Enrollment:
    """Enrollment created by a confirmed payment. Reuses an existing row for the same user/course."""
    existing = await _get_enrollment(db, user_id, course.course_id)
    if existing is not None:
        if existing.payment_status != PaymentStatus.PAID:
            existing.payment_status = PaymentStatus.PAID
            existing.payment_reference = reference
            existing.amount_paid = amount
            await db.flush()
            await db.refresh(existing)
        return existing

    enrollment = Enrollment(
        user_id=user_id,
        course_id=course.course_id,
        status=EnrollmentStatus.ACTIVE,
        payment_status=PaymentStatus.PAID,
        payment_reference=reference,
        amount_paid=amount,
        progress=0,
    )
    db.add(enrollment)
    course.enrollment_count += 1
    await db.flush()
    await db.refresh(enrollment)
    return enrollment


async def get_my_enrollments(
    db: AsyncSession,
    principal: Principal,
    *,
    status: EnrollmentStatus | None = None,
) -> list[Enrollment]:
    stmt = (
        select(Enrollment)
        .where(Enrollment.user_id == principal.id)
        .options(selectinload(Enrollment.course))
        .order_by(Enrollment.enrolled_at.desc())
    )
    if status is not None:
        stmt = stmt.where(Enrollment.status == status)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_course_progress(
    db: AsyncSession,
    principal: Principal,
    course_id: UUID,
) -> tuple[Enrollment, list[LessonProgress]]:
    enrollment = await _get_enrollment(db, principal.id, course_id)
    if enrollment is None:
        raise NotEnrolledError()

    result = await db.execute(
        select(LessonProgress)
        .where(LessonProgress.user_id == principal.id, LessonProgress.course_id == course_id)
        .order_by(LessonProgress.last_watched_at)
    )
    return enrollment, list(result.scalars().all())


# ---------------------------------------------------------------------------
# Progress tracking
# ---------------------------------------------------------------------------


async def _count_published_lessons(db: AsyncSession, course_id: UUID) -> int:
    return await db.scalar(
        select(func.count())
        .select_from(Lesson)
        .join(CourseModule, Lesson.module_id == CourseModule.module_id)
        .where(CourseModule.course_id == course_id, Lesson.is_published.is_(True))
    ) or 0


async def _count_completed_lessons(db: AsyncSession, user_id: UUID, course_id: UUID) -> int:
    return await db.scalar(
        select(func.count())
        .select_from(LessonProgress)
        .join(Lesson, LessonProgress.lesson_id == Lesson.lesson_id)
        .join(CourseModule, Lesson.module_id == CourseModule.module_id)
        .where(
            LessonProgress.user_id == user_id,
            LessonProgress.status == LessonProgressStatus.COMPLETED,
            CourseModule.course_id == course_id,
            Lesson.is_published.is_(True),
        )
    ) or 0


async def recalculate_progress(db: AsyncSession, enrollment: Enrollment) -> Enrollment:
    """Recompute ``progress`` from completed published lessons.

    Reaching 100 marks the enrollment COMPLETED. A completed enrollment
    stays completed if lessons are added later.
    """
    total = await _count_published_lessons(db, enrollment.course_id)
    completed = await _count_completed_lessons(db, enrollment.user_id, enrollment.course_id)
    enrollment.progress = progress_percentage(completed, total)

    now = datetime.now(timezone.utc)
    enrollment.last_accessed_at = now
    if enrollment.progress >= 100 and enrollment.status != EnrollmentStatus.COMPLETED:
        enrollment.status = EnrollmentStatus.COMPLETED
        enrollment.completed_at = now
    await db.flush()
    return enrollment


async def recalculate_course_enrollments(db: AsyncSession, course_id: UUID) -> int:
    """Refresh every enrollment of a course after its published-lesson set changed."""
    result = await db.execute(select(Enrollment).where(Enrollment.course_id == course_id))
    enrollments = list(result.scalars().all())
    for enrollment in enrollments:
        await recalculate_progress(db, enrollment)
    return len(enrollments)


async def _get_progress_record(db: AsyncSession, user_id: UUID, lesson_id: UUID) -> LessonProgress | None:
    return await db.scalar(
        select(LessonProgress).where(
            LessonProgress.user_id == user_id,
            LessonProgress.lesson_id == lesson_id,
        )
    )


async def _get_or_create_progress(
    db: AsyncSession,
    user_id: UUID,
    lesson_id: UUID,
    course_id: UUID,
) -> LessonProgress:
    progress = await _get_progress_record(db, user_id, lesson_id)
    if progress is not None:
        return progress

    progress = LessonProgress(
        user_id=user_id,
        lesson_id=lesson_id,
        course_id=course_id,
        status=LessonProgressStatus.IN_PROGRESS,
    )
    try:
        async with db.begin_nested():
            db.add(progress)
            await db.flush()
    except IntegrityError:
        # A concurrent report inserted the row first; carry on as an update.
        progress = await _get_progress_record(db, user_id, lesson_id)
        if progress is None:
            raise
    return progress


async def _mark_completed(
    db: AsyncSession,
    progress: LessonProgress,
    enrollment: Enrollment,
) -> bool:
    """One-way transition to COMPLETED. Returns True only on the first transition."""
    if progress.status == LessonProgressStatus.COMPLETED:
        return False
    progress.status = LessonProgressStatus.COMPLETED
    progress.completed_at = datetime.now(timezone.utc)
    await db.flush()
    await recalculate_progress(db, enrollment)
    return True


async def record_lesson_progress(
    db: AsyncSession,
    principal: Principal,
    lesson_id: UUID,
    *,
    current_time: int,
    watch_percentage: Decimal,
    time_spent: int,
) -> tuple[LessonProgress, Enrollment, bool]:
    """Upsert the caller's progress on a lesson.

    Returns (progress, enrollment, newly_completed). Watching 90% or more
    completes the lesson once; later calls only refresh the playback fields.
    """
    lesson = await get_lesson_by_id(db, lesson_id)
    course_id = await get_lesson_course_id(db, lesson)

    enrollment = await _get_enrollment(db, principal.id, course_id)
    if enrollment is None:
        raise NotEnrolledError()

    now = datetime.now(timezone.utc)
    progress = await _get_or_create_progress(db, principal.id, lesson_id, course_id)
    if progress.status == LessonProgressStatus.NOT_STARTED:
        progress.status = LessonProgressStatus.IN_PROGRESS

    progress.current_time_secs = current_time
    progress.watch_percentage = watch_percentage
    progress.time_spent_secs = time_spent
    progress.last_watched_at = now
    enrollment.last_accessed_at = now
    await db.flush()

    newly_completed = False
    if reaches_completion(watch_percentage):
        newly_completed = await _mark_completed(db, progress, enrollment)

    await db.refresh(progress)
    await db.refresh(enrollment)
    return progress, enrollment, newly_completed


async def mark_lesson_completed(
    db: AsyncSession,
    user_id: UUID,
    lesson_id: UUID,
) -> tuple[LessonProgress, Enrollment, bool]:
    """Complete a lesson regardless of its type. Used by quiz grading."""
    lesson = await get_lesson_by_id(db, lesson_id)
    course_id = await get_lesson_course_id(db, lesson)

    enrollment = await _get_enrollment(db, user_id, course_id)
    if enrollment is None:
        raise NotEnrolledError()

    progress = await _get_or_create_progress(db, user_id, lesson_id, course_id)
    newly_completed = await _mark_completed(db, progress, enrollment)
    await db.refresh(progress)
    await db.refresh(enrollment)
    return progress, enrollment, newly_completed


async def complete_lesson(
    db: AsyncSession,
    user_id: UUID,
    lesson_id: UUID,
) -> tuple[LessonProgress, Enrollment, bool]:
    """Mark a text or document lesson completed.

    Video lessons complete through watch progress and quiz lessons
    through a passing attempt.
    """
    lesson = await get_lesson_by_id(db, lesson_id)
    if lesson.lesson_type in _SELF_COMPLETING_TYPES:
        raise LessonNotManuallyCompletableError(lesson.lesson_type.value)
    return await mark_lesson_completed(db, user_id, lesson_id)


async def get_lesson_progress(
    db: AsyncSession,
    principal: Principal,
    lesson_id: UUID,
) -> LessonProgress | None:
    await get_lesson_by_id(db, lesson_id)
    return await _get_progress_record(db, principal.id, lesson_id)
