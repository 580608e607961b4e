"""LMS router — HTTP layer only.

Defines all endpoints for course, module, lesson, enrollment, and progress management.
Delegates to controller for business logic orchestration.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_current_user, get_optional_user, require_role
from app.lms import controller
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
    UpdateCourseRequest,
    UpdateLessonProgressRequest,
    UpdateLessonRequest,
)
from app.models.enums import CourseLevel, EnrollmentStatus
from app.pagination import PageParams, page_params
from shared.constants import Role
from shared.models.envelope import ApiResponse
from shared.models.user import Principal

router = APIRouter(prefix="/lms", tags=["LMS"])


# ======================================================================
# Course endpoints
# ======================================================================


@router.post(
    "/courses",
    response_model=ApiResponse[CourseResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create a new course",
    description="Instructors and admins only. Defaults to DRAFT; the slug is generated from the title.",
)
async def create_course(
    body: CreateCourseRequest,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_role(Role.INSTRUCTOR)),
) -> ApiResponse[CourseResponse]:
    return await controller.create_course(db, principal, body)


@router.get(
    "/courses",
    response_model=ApiResponse[CourseListResponse],
    summary="Course catalog",
    description="Published courses only, newest first.",
)
async def list_courses(
    search: str | None = Query(None, max_length=200, description="Match on title or description."),
    level: CourseLevel | None = Query(None, description="Filter by level."),
    free: bool | None = Query(None, description="true for free courses, false for paid."),
    page: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[CourseListResponse]:
    return await controller.list_courses(db, search=search, level=level, free=free, page=page)


@router.get(
    "/courses/{course_id}",
    response_model=ApiResponse[CourseDetailResponse],
    summary="Course detail with modules and lessons",
)
async def get_course_detail(
    course_id: UUID,
    db: AsyncSession = Depends(get_db),
    principal: Principal | None = Depends(get_optional_user),
) -> ApiResponse[CourseDetailResponse]:
    return await controller.get_course_detail(db, course_id, principal)


@router.patch(
    "/courses/{course_id}",
    response_model=ApiResponse[CourseResponse],
    summary="Update course (owner or admin)",
)
async def update_course(
    course_id: UUID,
    body: UpdateCourseRequest,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_role(Role.INSTRUCTOR)),
) -> ApiResponse[CourseResponse]:
    return await controller.update_course(db, principal, course_id, body)


@router.post(
    "/courses/{course_id}/publish",
    response_model=ApiResponse[CourseResponse],
    summary="Publish a course",
)
async def publish_course(
    course_id: UUID,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_role(Role.INSTRUCTOR)),
) -> ApiResponse[CourseResponse]:
    return await controller.publish_course(db, principal, course_id)


@router.post(
    "/courses/{course_id}/archive",
    response_model=ApiResponse[CourseResponse],
    summary="Archive a course",
)
async def archive_course(
    course_id: UUID,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_role(Role.INSTRUCTOR)),
) -> ApiResponse[CourseResponse]:
    return await controller.archive_course(db, principal, course_id)


@router.get(
    "/instructor/courses",
    response_model=ApiResponse[list[CourseResponse]],
    summary="My courses (instructor)",
)
async def list_instructor_courses(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_role(Role.INSTRUCTOR)),
) -> ApiResponse[list[CourseResponse]]:
    return await controller.list_instructor_courses(db, principal)


# ======================================================================
# Module / lesson endpoints
# ======================================================================


@router.post(
    "/courses/{course_id}/modules",
    response_model=ApiResponse[ModuleResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Add a module to a course",
)
async def create_module(
    course_id: UUID,
    body: CreateModuleRequest,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_role(Role.INSTRUCTOR)),
) -> ApiResponse[ModuleResponse]:
    return await controller.create_module(db, principal, course_id, body)


@router.post(
    "/modules/{module_id}/lessons",
    response_model=ApiResponse[LessonResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Add a lesson to a module",
    description="A published lesson joins the progress denominator; enrollments are recomputed.",
)
async def create_lesson(
    module_id: UUID,
    body: CreateLessonRequest,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_role(Role.INSTRUCTOR)),
) -> ApiResponse[LessonResponse]:
    return await controller.create_lesson(db, principal, module_id, body)


@router.patch(
    "/lessons/{lesson_id}",
    response_model=ApiResponse[LessonResponse],
    summary="Update a lesson",
)
async def update_lesson(
    lesson_id: UUID,
    body: UpdateLessonRequest,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_role(Role.INSTRUCTOR)),
) -> ApiResponse[LessonResponse]:
    return await controller.update_lesson(db, principal, lesson_id, body)


@router.delete(
    "/lessons/{lesson_id}",
    response_model=ApiResponse[None],
    summary="Delete a lesson",
)
async def delete_lesson(
    lesson_id: UUID,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_role(Role.INSTRUCTOR)),
) -> ApiResponse[None]:
    return await controller.delete_lesson(db, principal, lesson_id)


# ======================================================================
# Enrollment endpoints
# ======================================================================


@router.post(
    "/enrollments",
    response_model=ApiResponse[EnrollmentResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Enroll in a free course",
    description="Paid courses are enrolled through /payments/initialize and payment confirmation.",
)
async def enroll(
    body: CreateEnrollmentRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_user),
) -> ApiResponse[EnrollmentResponse]:
    return await controller.enroll(db, principal, body, background_tasks)


@router.get(
    "/enrollments",
    response_model=ApiResponse[list[EnrollmentWithCourseResponse]],
    summary="My enrollments",
)
async def list_my_enrollments(
    status_filter: EnrollmentStatus | None = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_user),
) -> ApiResponse[list[EnrollmentWithCourseResponse]]:
    return await controller.list_my_enrollments(db, principal, status_filter)


@router.get(
    "/courses/{course_id}/enrollment",
    response_model=ApiResponse[CourseProgressResponse],
    summary="My enrollment and per-lesson progress for a course",
)
async def get_course_progress(
    course_id: UUID,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_user),
) -> ApiResponse[CourseProgressResponse]:
    return await controller.get_course_progress(db, principal, course_id)


# ======================================================================
# Progress endpoints
# ======================================================================


@router.post(
    "/lessons/{lesson_id}/progress",
    response_model=ApiResponse[LessonProgressUpdateResponse],
    summary="Record playback progress",
    description="Watching 90% or more completes the lesson once; completion is never reverted.",
)
async def record_lesson_progress(
    lesson_id: UUID,
    body: UpdateLessonProgressRequest,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_user),
) -> ApiResponse[LessonProgressUpdateResponse]:
    return await controller.record_lesson_progress(db, principal, lesson_id, body)


@router.get(
    "/lessons/{lesson_id}/progress",
    response_model=ApiResponse[LessonProgressResponse],
    summary="My progress on a lesson",
    description="Returns zeroed defaults when nothing has been recorded yet.",
)
async def get_lesson_progress(
    lesson_id: UUID,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_user),
) -> ApiResponse[LessonProgressResponse]:
    return await controller.get_lesson_progress(db, principal, lesson_id)


@router.post(
    "/lessons/{lesson_id}/complete",
    response_model=ApiResponse[LessonProgressUpdateResponse],
    summary="Mark a lesson complete",
    description="For lessons without playback (text, documents).",
)
async def complete_lesson(
    lesson_id: UUID,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_user),
) -> ApiResponse[LessonProgressUpdateResponse]:
    return await controller.complete_lesson(db, principal, lesson_id)
