"""Users controller — maps service results to HTTP responses, catches domain exceptions."""

from __future__ import annotations

from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.exceptions import (
    CannotChangeOwnRoleError,
    IdentityServiceError,
    InsufficientRoleError,
    UserNotFoundError,
)
from app.pagination import PageParams
from app.users import service
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


def _handle_domain_error(exc: Exception) -> HTTPException:
    if isinstance(exc, UserNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if isinstance(exc, InsufficientRoleError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
    if isinstance(exc, CannotChangeOwnRoleError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot change your own role")
    if isinstance(exc, IdentityServiceError):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Identity provider is unavailable")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal error.")


async def get_me(db: AsyncSession, principal: Principal) -> ApiResponse[UserResponse]:
    try:
        user = await service.get_user(db, principal.id)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    return ApiResponse(data=UserResponse.model_validate(user))


async def update_me(
    db: AsyncSession, principal: Principal, body: UpdateProfileRequest
) -> ApiResponse[UserResponse]:
    try:
        user = await service.update_profile(db, principal, **body.model_dump(exclude_unset=True))
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    return ApiResponse(data=UserResponse.model_validate(user), message="Profile updated")


async def assign_student_role(db: AsyncSession, principal: Principal) -> ApiResponse[UserResponse]:
    try:
        user, changed = await service.assign_student_role(db, principal)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    message = "Student role assigned" if changed else "Role already grants student access"
    return ApiResponse(data=UserResponse.model_validate(user), message=message)


async def list_users(
    db: AsyncSession,
    *,
    role: Role | None,
    search: str | None,
    page: PageParams,
) -> ApiResponse[UserListResponse]:
    users, total = await service.list_users(
        db, role=role, search=search, limit=page.limit, offset=page.offset
    )
    return ApiResponse(
        data=UserListResponse(
            items=[UserSummary.model_validate(u) for u in users],
            total=total,
            page=page.page,
            limit=page.limit,
        )
    )


async def change_role(
    db: AsyncSession, principal: Principal, user_id: UUID, body: ChangeRoleRequest
) -> ApiResponse[UserSummary]:
    try:
        user = await service.change_role(db, principal, user_id, body.role)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    return ApiResponse(data=UserSummary.model_validate(user), message=f"Role set to {body.role.value}")


async def sync_users(
    db: AsyncSession, principal: Principal, settings: Settings
) -> ApiResponse[SyncResultResponse]:
    try:
        result = await service.sync_from_identity_provider(db, principal, settings)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    return ApiResponse(
        data=SyncResultResponse(**result),
        message=f"Sync completed: {result['created']} created, {result['updated']} updated",
    )
