"""LMS controller — maps service results to HTTP responses, catches domain exceptions."""

from __future__ import annotations

from uuid import UUID

from fastapi import BackgroundTasks, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

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
from app.lms import service
from app.lms.schemas import (
    CourseDetailResponse,
    CourseListResponse,
    CourseProgressResponse,
    CourseResponse,
    CreateCourseRequest,
    CreateEnrollmentRequest,
    CreateLessonRequest,
    CreateModuleRequest,
    EnrollmentResponse,
    EnrollmentWithCourseResponse,
    LessonProgressResponse,
    LessonProgressUpdateResponse,
    LessonResponse,
    ModuleResponse,
    ModuleWithLessonsResponse,
    UpdateCourseRequest,
    UpdateLessonProgressRequest,
    UpdateLessonRequest,
)
from app.models.enums import (
    CourseLevel,
    EnrollmentStatus,
    LessonProgressStatus,
    NotificationCategory,
    NotificationType,
)
from app.models.lesson_progress import LessonProgress
from app.notifications.dispatch import dispatch_notification
from app.pagination import PageParams
from shared.models.envelope import ApiResponse
from shared.models.user import Principal


def _handle_domain_error(exc: Exception) -> HTTPException:
    if isinstance(exc, CourseNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Course not found")
    if isinstance(exc, ModuleNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Module not found")
    if isinstance(exc, LessonNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Lesson not found")
    if isinstance(exc, InsufficientRoleError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
    if isinstance(exc, NotCourseOwnerError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not the course instructor")
    if isinstance(exc, NotEnrolledError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not enrolled in this course")
    if isinstance(exc, AlreadyEnrolledError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Already enrolled in this course")
    if isinstance(exc, CourseNotPublishedError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Course is not available for enrollment")
    if isinstance(exc, PaymentMethodMismatchError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message)
    if isinstance(exc, InvalidStatusTransitionError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, LessonNotManuallyCompletableError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal error.")


def _progress_response(progress: LessonProgress) -> LessonProgressResponse:
    return LessonProgressResponse(
        lesson_id=progress.lesson_id,
        status=progress.status,
        is_completed=progress.status == LessonProgressStatus.COMPLETED,
        current_time_secs=progress.current_time_secs,
        watch_percentage=progress.watch_percentage,
        time_spent_secs=progress.time_spent_secs,
        completed_at=progress.completed_at,
        last_watched_at=progress.last_watched_at,
    )


# ---------------------------------------------------------------------------
# Course
# ---------------------------------------------------------------------------


async def create_course(
    db: AsyncSession,
    principal: Principal,
    body: CreateCourseRequest,
) -> ApiResponse[CourseResponse]:
    try:
        fields = body.model_dump(exclude={"modules"})
        modules = [m.model_dump() for m in body.modules] if body.modules else None
        course = await service.create_course(db, principal, modules=modules, **fields)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    return ApiResponse(data=CourseResponse.model_validate(course), message="Course created")


async def get_course_detail(
    db: AsyncSession,
    course_id: UUID,
    principal: Principal | None,
) -> ApiResponse[CourseDetailResponse]:
    try:
        course, outline, can_manage = await service.get_course_detail(db, course_id, principal)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    modules = [
        ModuleWithLessonsResponse(
            module_id=m.module_id,
            course_id=m.course_id,
            title=m.title,
            description=m.description,
            sort_order=m.sort_order,
            lessons=[LessonResponse.model_validate(lesson) for lesson in lessons],
        )
        for m, lessons in outline
    ]
    return ApiResponse(
        data=CourseDetailResponse(
            course=CourseResponse.model_validate(course),
            modules=modules,
            can_manage=can_manage,
        )
    )


async def list_courses(
    db: AsyncSession,
    *,
    search: str | None,
    level: CourseLevel | None,
    free: bool | None,
    page: PageParams,
) -> ApiResponse[CourseListResponse]:
    courses, total = await service.list_courses(
        db, search=search, level=level, free=free, limit=page.limit, offset=page.offset
    )
    return ApiResponse(
        data=CourseListResponse(
            items=[CourseResponse.model_validate(c) for c in courses],
            total=total,
            page=page.page,
            limit=page.limit,
        )
    )


async def list_instructor_courses(
    db: AsyncSession, principal: Principal
) -> ApiResponse[list[CourseResponse]]:
    try:
        courses = await service.list_instructor_courses(db, principal)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    return ApiResponse(data=[CourseResponse.model_validate(c) for c in courses])


async def update_course(
    db: AsyncSession,
    principal: Principal,
    course_id: UUID,
    body: UpdateCourseRequest,
) -> ApiResponse[CourseResponse]:
    try:
        course = await service.update_course(
            db, principal, course_id, **body.model_dump(exclude_unset=True)
        )
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    return ApiResponse(data=CourseResponse.model_validate(course), message="Course updated")


async def publish_course(
    db: AsyncSession, principal: Principal, course_id: UUID
) -> ApiResponse[CourseResponse]:
    try:
        course = await service.publish_course(db, principal, course_id)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    return ApiResponse(data=CourseResponse.model_validate(course), message="Course published")


async def archive_course(
    db: AsyncSession, principal: Principal, course_id: UUID
) -> ApiResponse[CourseResponse]:
    try:
        course = await service.archive_course(db, principal, course_id)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    return ApiResponse(data=CourseResponse.model_validate(course), message="Course archived")


# ---------------------------------------------------------------------------
# Modules / lessons
# ---------------------------------------------------------------------------


async def create_module(
    db: AsyncSession,
    principal: Principal,
    course_id: UUID,
    body: CreateModuleRequest,
) -> ApiResponse[ModuleResponse]:
    try:
        module = await service.create_module(db, principal, course_id, **body.model_dump())
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    return ApiResponse(data=ModuleResponse.model_validate(module), message="Module created")


async def create_lesson(
    db: AsyncSession,
    principal: Principal,
    module_id: UUID,
    body: CreateLessonRequest,
) -> ApiResponse[LessonResponse]:
    try:
        lesson = await service.create_lesson(db, principal, module_id, **body.model_dump())
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    return ApiResponse(data=LessonResponse.model_validate(lesson), message="Lesson created")


async def update_lesson(
    db: AsyncSession,
    principal: Principal,
    lesson_id: UUID,
    body: UpdateLessonRequest,
) -> ApiResponse[LessonResponse]:
    try:
        lesson = await service.update_lesson(
            db, principal, lesson_id, **body.model_dump(exclude_unset=True)
        )
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    return ApiResponse(data=LessonResponse.model_validate(lesson), message="Lesson updated")


async def delete_lesson(db: AsyncSession, principal: Principal, lesson_id: UUID) -> ApiResponse[None]:
    try:
        await service.delete_lesson(db, principal, lesson_id)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    return ApiResponse(message="Lesson deleted")


# ---------------------------------------------------------------------------
# Enrollment
# ---------------------------------------------------------------------------


async def enroll(
    db: AsyncSession,
    principal: Principal,
    body: CreateEnrollmentRequest,
    background_tasks: BackgroundTasks,
) -> ApiResponse[EnrollmentResponse]:
    try:
        enrollment, course = await service.enroll(db, principal, body.course_id, body.payment_method)
    except IntegrityError as exc:
        # Concurrent duplicate enrollment lost the unique-constraint race
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Already enrolled in this course") from exc
    except Exception as exc:
        raise _handle_domain_error(exc) from exc

    background_tasks.add_task(
        dispatch_notification,
        principal.id,
        NotificationType.ENROLLMENT,
        "Enrollment confirmed",
        f"You are now enrolled in {course.title}. Happy learning!",
        category=NotificationCategory.ACADEMIC,
        action_url=f"/courses/{course.course_id}",
        payload={"course_id": str(course.course_id)},
    )
    return ApiResponse(
        data=EnrollmentResponse.model_validate(enrollment),
        message="Successfully enrolled in course",
    )


async def list_my_enrollments(
    db: AsyncSession,
    principal: Principal,
    status_filter: EnrollmentStatus | None,
) -> ApiResponse[list[EnrollmentWithCourseResponse]]:
    enrollments = await service.get_my_enrollments(db, principal, status=status_filter)
    return ApiResponse(data=[EnrollmentWithCourseResponse.model_validate(e) for e in enrollments])


async def get_course_progress(
    db: AsyncSession, principal: Principal, course_id: UUID
) -> ApiResponse[CourseProgressResponse]:
    try:
        enrollment, records = await service.get_course_progress(db, principal, course_id)
    except NotEnrolledError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Enrollment not found") from exc
    return ApiResponse(
        data=CourseProgressResponse(
            enrollment=EnrollmentResponse.model_validate(enrollment),
            lessons=[_progress_response(p) for p in records],
        )
    )


# ---------------------------------------------------------------------------
# Progress
# ---------------------------------------------------------------------------


async def record_lesson_progress(
    db: AsyncSession,
    principal: Principal,
    lesson_id: UUID,
    body: UpdateLessonProgressRequest,
) -> ApiResponse[LessonProgressUpdateResponse]:
    try:
        progress, enrollment, newly_completed = await service.record_lesson_progress(
            db,
            principal,
            lesson_id,
            current_time=body.current_time,
            watch_percentage=body.watch_percentage,
            time_spent=body.time_spent,
        )
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    return ApiResponse(
        data=LessonProgressUpdateResponse(
            progress=_progress_response(progress),
            course_progress=enrollment.progress,
            lesson_completed=progress.status == LessonProgressStatus.COMPLETED,
            newly_completed=newly_completed,
        )
    )


async def complete_lesson(
    db: AsyncSession, principal: Principal, lesson_id: UUID
) -> ApiResponse[LessonProgressUpdateResponse]:
    try:
        progress, enrollment, newly_completed = await service.complete_lesson(
            db, principal.id, lesson_id
        )
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    return ApiResponse(
        data=LessonProgressUpdateResponse(
            progress=_progress_response(progress),
            course_progress=enrollment.progress,
            lesson_completed=True,
            newly_completed=newly_completed,
        ),
        message="Lesson completed",
    )


async def get_lesson_progress(
    db: AsyncSession, principal: Principal, lesson_id: UUID
) -> ApiResponse[LessonProgressResponse]:
    try:
        progress = await service.get_lesson_progress(db, principal, lesson_id)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    if progress is None:
        return ApiResponse(data=LessonProgressResponse(lesson_id=lesson_id))
    return ApiResponse(data=_progress_response(progress))
