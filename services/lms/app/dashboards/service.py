"""Dashboard aggregates — read-only, pure business logic, no FastAPI imports."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.exceptions import UserNotFoundError
from app.models.course import Course
from app.models.enrollment import Enrollment
from app.models.enums import EnrollmentStatus, PaymentStatus
from app.models.user import User
from shared.constants import Role
from shared.models.user import Principal

ACTIVE_USER_WINDOW = timedelta(days=30)


def _whole_percent(value: Decimal | float | None) -> int:
    if value is None:
        return 0
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


async def student_dashboard(db: AsyncSession, principal: Principal) -> dict[str, Any]:
    user = await db.get(User, principal.id)
    if user is None:
        raise UserNotFoundError(str(principal.id))

    counts = (
        await db.execute(
            select(
                func.count(Enrollment.enrollment_id),
                func.count(Enrollment.enrollment_id).filter(
                    Enrollment.status == EnrollmentStatus.COMPLETED
                ),
                func.avg(Enrollment.progress),
            ).where(Enrollment.user_id == principal.id)
        )
    ).one()

    recent = await db.execute(
        select(Enrollment)
        .where(Enrollment.user_id == principal.id)
        .options(selectinload(Enrollment.course))
        .order_by(
            func.coalesce(Enrollment.last_accessed_at, Enrollment.enrolled_at).desc()
        )
        .limit(5)
    )
    return {
        "enrolled_courses": counts[0],
        "completed_courses": counts[1],
        "average_progress": _whole_percent(counts[2]),
        "current_streak": user.current_streak,
        "longest_streak": user.longest_streak,
        "total_points": user.total_points,
        "recent_enrollments": list(recent.scalars().all()),
    }


async def instructor_dashboard(db: AsyncSession, principal: Principal) -> dict[str, Any]:
    own_courses = select(Course.course_id).where(Course.instructor_id == principal.id)

    total_courses = await db.scalar(
        select(func.count()).select_from(Course).where(Course.instructor_id == principal.id)
    ) or 0
    total_students = await db.scalar(
        select(func.count(func.distinct(Enrollment.user_id))).where(
            Enrollment.course_id.in_(own_courses)
        )
    ) or 0
    revenue = await db.scalar(
        select(func.coalesce(func.sum(Enrollment.amount_paid), 0)).where(
            Enrollment.course_id.in_(own_courses),
            Enrollment.payment_status == PaymentStatus.PAID,
        )
    )
    # Unrated courses do not drag the average down
    average_rating = await db.scalar(
        select(func.avg(Course.average_rating)).where(
            Course.instructor_id == principal.id, Course.total_reviews > 0
        )
    )
    recent = await db.execute(
        select(Course)
        .where(Course.instructor_id == principal.id)
        .order_by(Course.created_at.desc())
        .limit(5)
    )
    return {
        "total_courses": total_courses,
        "total_students": total_students,
        "total_revenue": Decimal(str(revenue or 0)).quantize(Decimal("0.01")),
        "average_rating": (
            Decimal(str(average_rating)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
            if average_rating is not None
            else Decimal("0.0")
        ),
        "recent_courses": list(recent.scalars().all()),
    }


async def admin_dashboard(db: AsyncSession) -> dict[str, Any]:
    since = datetime.now(timezone.utc) - ACTIVE_USER_WINDOW

    total_users = await db.scalar(select(func.count()).select_from(User)) or 0
    total_courses = await db.scalar(select(func.count()).select_from(Course)) or 0
    total_enrollments = await db.scalar(select(func.count()).select_from(Enrollment)) or 0
    active_users = await db.scalar(
        select(func.count()).select_from(User).where(User.updated_at >= since)
    ) or 0
    revenue = await db.scalar(
        select(func.coalesce(func.sum(Enrollment.amount_paid), 0)).where(
            Enrollment.payment_status == PaymentStatus.PAID
        )
    )
    role_rows = await db.execute(select(User.role, func.count()).group_by(User.role))
    role_distribution = {role.value: 0 for role in Role}
    for role, count in role_rows.all():
        role_distribution[Role(role).value] = count

    recent = await db.execute(select(User).order_by(User.created_at.desc()).limit(10))
    return {
        "total_users": total_users,
        "total_courses": total_courses,
        "total_enrollments": total_enrollments,
        "active_users": active_users,
        "total_revenue": Decimal(str(revenue or 0)).quantize(Decimal("0.01")),
        "role_distribution": role_distribution,
        "recent_users": list(recent.scalars().all()),
    }
