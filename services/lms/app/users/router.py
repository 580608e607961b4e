"""Users router — profile self-service and admin user management."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.database import get_db
from app.dependencies import get_current_user, get_settings, require_role
from app.pagination import PageParams, page_params
from app.users import controller
from app.users.schemas import (
    ChangeRoleRequest,
    SyncResultResponse,
    UpdateProfileRequest,
    UserListResponse,
    UserResponse,
    UserSummary,
)
from shared.constants import Role
from shared.models.envelope import ApiResponse
from shared.models.user import Principal

router = APIRouter(prefix="/users", tags=["Users"])
admin_router = APIRouter(prefix="/admin/users", tags=["Admin"])


@router.get("/me", response_model=ApiResponse[UserResponse], summary="Get my profile")
async def get_me(
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[UserResponse]:
    return await controller.get_me(db, principal)


@router.patch("/me", response_model=ApiResponse[UserResponse], summary="Update my profile")
async def update_me(
    body: UpdateProfileRequest,
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[UserResponse]:
    return await controller.update_me(db, principal, body)


@router.post(
    "/me/student-role",
    response_model=ApiResponse[UserResponse],
    summary="Upgrade USER to STUDENT",
    description="Idempotent. Users who already hold STUDENT or a higher role are left unchanged.",
)
async def assign_student_role(
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[UserResponse]:
    return await controller.assign_student_role(db, principal)


@admin_router.get("", response_model=ApiResponse[UserListResponse], summary="List users")
async def list_users(
    role: Role | None = Query(None, description="Filter by role."),
    search: str | None = Query(None, max_length=100, description="Match on name or email."),
    page: PageParams = Depends(page_params),
    principal: Principal = Depends(require_role(Role.ADMIN)),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[UserListResponse]:
    return await controller.list_users(db, role=role, search=search, page=page)


@admin_router.patch(
    "/{user_id}/role",
    response_model=ApiResponse[UserSummary],
    summary="Change a user's role",
)
async def change_role(
    user_id: UUID,
    body: ChangeRoleRequest,
    principal: Principal = Depends(require_role(Role.ADMIN)),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[UserSummary]:
    return await controller.change_role(db, principal, user_id, body)


@admin_router.post(
    "/sync",
    response_model=ApiResponse[SyncResultResponse],
    summary="Import users from the identity provider",
    description="Creates missing local users and refreshes profile fields. Roles are never changed.",
)
async def sync_users(
    principal: Principal = Depends(require_role(Role.ADMIN)),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> ApiResponse[SyncResultResponse]:
    return await controller.sync_users(db, principal, settings)
