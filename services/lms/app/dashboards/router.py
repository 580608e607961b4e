"""Role dashboards.

Each section opens for its own role and every role ranked above it.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.dashboards import controller
from app.dashboards.schemas import (
    AdminDashboardResponse,
    InstructorDashboardResponse,
    StudentDashboardResponse,
)
from app.database import get_db
from app.dependencies import get_current_user
from shared.constants import can_access_section
from shared.models.envelope import ApiResponse
from shared.models.user import Principal

router = APIRouter(prefix="/dashboard", tags=["Dashboards"])


def require_section(section: str) -> Callable[..., Awaitable[Principal]]:
    async def _checker(principal: Principal = Depends(get_current_user)) -> Principal:
        if not can_access_section(principal.role, section):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"No access to the {section} dashboard",
            )
        return principal

    return _checker


@router.get(
    "/student",
    response_model=ApiResponse[StudentDashboardResponse],
    summary="Student dashboard",
)
async def student_dashboard(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_section("student")),
) -> ApiResponse[StudentDashboardResponse]:
    return await controller.student_dashboard(db, principal)


@router.get(
    "/instructor",
    response_model=ApiResponse[InstructorDashboardResponse],
    summary="Instructor dashboard",
)
async def instructor_dashboard(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_section("instructor")),
) -> ApiResponse[InstructorDashboardResponse]:
    return await controller.instructor_dashboard(db, principal)


@router.get(
    "/admin",
    response_model=ApiResponse[AdminDashboardResponse],
    summary="Platform dashboard",
)
async def admin_dashboard(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_section("admin")),
) -> ApiResponse[AdminDashboardResponse]:
    return await controller.admin_dashboard(db)
