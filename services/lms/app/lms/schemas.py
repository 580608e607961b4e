"""LMS domain Pydantic V2 schemas.

Covers Course, CourseModule, Lesson, Enrollment and LessonProgress.
Follows RORO: separate request models from response models.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from shared.models.pagination import PaginatedResponse

from app.models.enums import (
    CourseLevel,
    CourseStatus,
    EnrollmentStatus,
    LessonProgressStatus,
    LessonType,
    PaymentMethod,
    PaymentStatus,
)


# ---------------------------------------------------------------------------
# Course request schemas
# ---------------------------------------------------------------------------


class LessonOutline(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=300)
    description: str | None = None
    lesson_type: LessonType = LessonType.VIDEO
    video_url: str | None = Field(default=None, max_length=500)
    content: str | None = None
    duration_secs: int | None = Field(default=None, ge=0)
    is_published: bool = True
    is_free: bool = False


class ModuleOutline(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=300)
    description: str | None = None
    lessons: list[LessonOutline] = Field(default_factory=list)


class CreateCourseRequest(BaseModel):
    """Request body for creating a new course.

    Instructors and admins only. The slug is derived from the title.
    Omitting ``modules`` creates a default introduction module.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=300, description="Course title.")
    description: str | None = Field(default=None, description="Course landing page body.")
    short_description: str | None = Field(default=None, max_length=500)
    price: Decimal = Field(default=Decimal("0"), ge=0, description="0 for a free course.")
    currency: str = Field(default="NGN", min_length=3, max_length=3, description="ISO 4217 code.")
    level: CourseLevel = CourseLevel.BEGINNER
    thumbnail_url: str | None = Field(default=None, max_length=500)
    publish: bool = Field(default=False, description="Publish immediately instead of saving a draft.")
    modules: list[ModuleOutline] | None = None


class UpdateCourseRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str | None = Field(default=None, min_length=1, max_length=300)
    description: str | None = None
    short_description: str | None = Field(default=None, max_length=500)
    price: Decimal | None = Field(default=None, ge=0)
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    level: CourseLevel | None = None
    thumbnail_url: str | None = Field(default=None, max_length=500)


class CreateModuleRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=300)
    description: str | None = None
    sort_order: int | None = Field(default=None, ge=0)


class CreateLessonRequest(LessonOutline):
    sort_order: int | None = Field(default=None, ge=0)


class UpdateLessonRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str | None = Field(default=None, min_length=1, max_length=300)
    description: str | None = None
    lesson_type: LessonType | None = None
    video_url: str | None = Field(default=None, max_length=500)
    content: str | None = None
    duration_secs: int | None = Field(default=None, ge=0)
    sort_order: int | None = Field(default=None, ge=0)
    is_published: bool | None = None
    is_free: bool | None = None


# ---------------------------------------------------------------------------
# Course response schemas
# ---------------------------------------------------------------------------


class CourseResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    course_id: UUID
    title: str
    slug: str
    description: str | None = None
    short_description: str | None = None
    instructor_id: UUID
    price: Decimal
    currency: str
    is_free: bool
    level: CourseLevel
    status: CourseStatus
    thumbnail_url: str | None = None
    average_rating: Decimal
    total_reviews: int
    enrollment_count: int
    published_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class CourseListResponse(PaginatedResponse[CourseResponse]):
    pass


class LessonResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    lesson_id: UUID
    module_id: UUID
    title: str
    description: str | None = None
    lesson_type: LessonType
    video_url: str | None = None
    content: str | None = None
    duration_secs: int | None = None
    sort_order: int
    is_published: bool
    is_free: bool


class ModuleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    module_id: UUID
    course_id: UUID
    title: str
    description: str | None = None
    sort_order: int


class ModuleWithLessonsResponse(ModuleResponse):
    lessons: list[LessonResponse] = Field(default_factory=list)


class CourseDetailResponse(BaseModel):
    course: CourseResponse
    modules: list[ModuleWithLessonsResponse]
    can_manage: bool = Field(description="True for the owning instructor and admins.")


# ---------------------------------------------------------------------------
# Enrollment / progress
# ---------------------------------------------------------------------------


class CreateEnrollmentRequest(BaseModel):
    course_id: UUID
    payment_method: PaymentMethod = Field(
        default=PaymentMethod.FREE,
        description="FREE for free courses. Paid courses go through /payments/initialize.",
    )


class EnrollmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    enrollment_id: UUID
    user_id: UUID
    course_id: UUID
    status: EnrollmentStatus
    payment_status: PaymentStatus
    payment_reference: str | None = None
    amount_paid: Decimal
    progress: int
    enrolled_at: datetime
    last_accessed_at: datetime | None = None
    completed_at: datetime | None = None


class EnrollmentWithCourseResponse(EnrollmentResponse):
    course: CourseResponse


class UpdateLessonProgressRequest(BaseModel):
    """Playback heartbeat from the video player."""

    current_time: int = Field(ge=0, description="Playback position in seconds.")
    watch_percentage: Decimal = Field(ge=0, le=100, description="Share of the lesson watched.")
    time_spent: int = Field(default=0, ge=0, description="Total seconds spent on the lesson.")


class LessonProgressResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    lesson_id: UUID
    status: LessonProgressStatus = LessonProgressStatus.NOT_STARTED
    is_completed: bool = False
    current_time_secs: int = 0
    watch_percentage: Decimal = Decimal("0")
    time_spent_secs: int = 0
    completed_at: datetime | None = None
    last_watched_at: datetime | None = None


class LessonProgressUpdateResponse(BaseModel):
    progress: LessonProgressResponse
    course_progress: int
    lesson_completed: bool
    newly_completed: bool


class CourseProgressResponse(BaseModel):
    enrollment: EnrollmentResponse
    lessons: list[LessonProgressResponse]
