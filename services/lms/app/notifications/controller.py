"""Notifications controller — maps service results to HTTP responses."""

from __future__ import annotations

from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import InsufficientRoleError, NotificationNotFoundError
from app.models.enums import NotificationCategory, NotificationType
from app.notifications import service
from app.notifications.schemas import (
    BulkNotificationResponse,
    CreateNotificationRequest,
    MarkAllReadResponse,
    NotificationListResponse,
    NotificationResponse,
    NotificationStatsResponse,
)
from app.pagination import PageParams
from shared.models.envelope import ApiResponse
from shared.models.user import Principal


def _handle_domain_error(exc: Exception) -> HTTPException:
    if isinstance(exc, NotificationNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    if isinstance(exc, InsufficientRoleError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal error.")


async def list_notifications(
    db: AsyncSession,
    principal: Principal,
    *,
    type_: NotificationType | None,
    category: NotificationCategory | None,
    only_unread: bool,
    page: PageParams,
) -> ApiResponse[NotificationListResponse]:
    items, total, unread = await service.list_notifications(
        db,
        principal.id,
        type_=type_,
        category=category,
        only_unread=only_unread,
        limit=page.limit,
        offset=page.offset,
    )
    return ApiResponse(
        data=NotificationListResponse(
            items=[NotificationResponse.model_validate(n) for n in items],
            total=total,
            page=page.page,
            limit=page.limit,
            unread_count=unread,
        )
    )


async def send_bulk(
    db: AsyncSession,
    principal: Principal,
    body: CreateNotificationRequest,
) -> ApiResponse[BulkNotificationResponse]:
    try:
        created = await service.send_bulk(
            db,
            principal,
            body.recipient_ids,
            body.type,
            body.title,
            body.message,
            category=body.category,
            priority=body.priority,
            action_url=body.action_url,
            payload=body.payload,
        )
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    return ApiResponse(
        data=BulkNotificationResponse(created=len(created)),
        message=f"Sent {len(created)} notification(s)",
    )


async def mark_read(
    db: AsyncSession, principal: Principal, notification_id: UUID
) -> ApiResponse[NotificationResponse]:
    try:
        notification = await service.mark_read(db, principal.id, notification_id)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    return ApiResponse(data=NotificationResponse.model_validate(notification))


async def mark_all_read(db: AsyncSession, principal: Principal) -> ApiResponse[MarkAllReadResponse]:
    updated = await service.mark_all_read(db, principal.id)
    return ApiResponse(
        data=MarkAllReadResponse(updated=updated),
        message="All notifications marked as read",
    )


async def get_stats(db: AsyncSession, principal: Principal) -> ApiResponse[NotificationStatsResponse]:
    stats = await service.get_stats(db, principal.id)
    return ApiResponse(data=NotificationStatsResponse(**stats))
