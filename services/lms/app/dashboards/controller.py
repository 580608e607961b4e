"""Dashboards controller — maps service results to HTTP responses."""

from __future__ import annotations

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.dashboards import service
from app.dashboards.schemas import (
    AdminDashboardResponse,
    InstructorDashboardResponse,
    StudentDashboardResponse,
)
from app.exceptions import UserNotFoundError
from shared.models.envelope import ApiResponse
from shared.models.user import Principal


def _handle_domain_error(exc: Exception) -> HTTPException:
    if isinstance(exc, UserNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal error.")


async def student_dashboard(db: AsyncSession, principal: Principal) -> ApiResponse[StudentDashboardResponse]:
    try:
        data = await service.student_dashboard(db, principal)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    return ApiResponse(data=StudentDashboardResponse.model_validate(data, from_attributes=True))


async def instructor_dashboard(db: AsyncSession, principal: Principal) -> ApiResponse[InstructorDashboardResponse]:
    data = await service.instructor_dashboard(db, principal)
    return ApiResponse(data=InstructorDashboardResponse.model_validate(data, from_attributes=True))


async def admin_dashboard(db: AsyncSession) -> ApiResponse[AdminDashboardResponse]:
    data = await service.admin_dashboard(db)
    return ApiResponse(data=AdminDashboardResponse.model_validate(data, from_attributes=True))
