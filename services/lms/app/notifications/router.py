from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_current_user, require_role
from app.models.enums import NotificationCategory, NotificationType
from app.notifications import controller
from app.notifications.schemas import (
    BulkNotificationResponse,
    CreateNotificationRequest,
    MarkAllReadResponse,
    NotificationListResponse,
    NotificationResponse,
    NotificationStatsResponse,
)
from app.pagination import PageParams, page_params
from shared.constants import Role
from shared.models.envelope import ApiResponse
from shared.models.user import Principal

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get(
    "",
    response_model=ApiResponse[NotificationListResponse],
    summary="List my notifications",
    description="Returns notifications for the authenticated user, newest first.",
)
async def list_notifications(
    type_filter: NotificationType | None = Query(None, alias="type", description="Filter by type."),
    category: NotificationCategory | None = Query(None, description="Filter by category."),
    unread: bool = Query(False, description="When true, return only unread notifications."),
    page: PageParams = Depends(page_params),
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[NotificationListResponse]:
    return await controller.list_notifications(
        db,
        principal,
        type_=type_filter,
        category=category,
        only_unread=unread,
        page=page,
    )


@router.post(
    "",
    response_model=ApiResponse[BulkNotificationResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Send a notification to several users",
    description="Instructors and admins only.",
)
async def send_notifications(
    body: CreateNotificationRequest,
    principal: Principal = Depends(require_role(Role.INSTRUCTOR)),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[BulkNotificationResponse]:
    return await controller.send_bulk(db, principal, body)


@router.get(
    "/stats",
    response_model=ApiResponse[NotificationStatsResponse],
    summary="Notification counters by type and priority",
)
async def get_stats(
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[NotificationStatsResponse]:
    return await controller.get_stats(db, principal)


@router.post(
    "/mark-all-read",
    response_model=ApiResponse[MarkAllReadResponse],
    summary="Mark all my notifications as read",
)
async def mark_all_read(
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[MarkAllReadResponse]:
    return await controller.mark_all_read(db, principal)


@router.post(
    "/{notification_id}/read",
    response_model=ApiResponse[NotificationResponse],
    summary="Mark a single notification as read",
)
async def mark_read(
    notification_id: UUID,
    principal: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[NotificationResponse]:
    return await controller.mark_read(db, principal, notification_id)
