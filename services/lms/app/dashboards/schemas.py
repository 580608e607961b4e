from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel

from app.lms.schemas import CourseResponse, EnrollmentWithCourseResponse
from app.users.schemas import UserSummary


class StudentDashboardResponse(BaseModel):
    enrolled_courses: int
    completed_courses: int
    average_progress: int
    current_streak: int
    longest_streak: int
    total_points: int
    recent_enrollments: list[EnrollmentWithCourseResponse]


class InstructorDashboardResponse(BaseModel):
    total_courses: int
    total_students: int
    total_revenue: Decimal
    average_rating: Decimal
    recent_courses: list[CourseResponse]


class AdminDashboardResponse(BaseModel):
    total_users: int
    total_courses: int
    total_enrollments: int
    active_users: int
    total_revenue: Decimal
    role_distribution: dict[str, int]
    recent_users: list[UserSummary]
