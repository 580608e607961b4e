"""Notification service — pure business logic, no FastAPI imports."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import InsufficientRoleError, NotificationNotFoundError
from app.models.enums import NotificationCategory, NotificationPriority, NotificationType
from app.models.notification import Notification
from app.models.user import User
from shared.constants import Role, has_permission
from shared.models.user import Principal


async def create_notification(
    db: AsyncSession,
    user_id: UUID,
    type_: NotificationType,
    title: str,
    message: str,
    *,
    category: NotificationCategory = NotificationCategory.SYSTEM,
    priority: NotificationPriority = NotificationPriority.MEDIUM,
    action_url: str | None = None,
    payload: dict[str, Any] | None = None,
) -> Notification:
    notification = Notification(
        user_id=user_id,
        type=type_,
        category=category,
        priority=priority,
        title=title,
        message=message,
        action_url=action_url,
        payload=payload,
        is_read=False,
    )
    db.add(notification)
    await db.flush()
    await db.refresh(notification)
    return notification


async def send_bulk(
    db: AsyncSession,
    principal: Principal,
    recipient_ids: list[UUID],
    type_: NotificationType,
    title: str,
    message: str,
    *,
    category: NotificationCategory = NotificationCategory.SYSTEM,
    priority: NotificationPriority = NotificationPriority.MEDIUM,
    action_url: str | None = None,
    payload: dict[str, Any] | None = None,
) -> list[Notification]:
    """Create one notification per existing recipient.

    Instructors and admins only. Unknown recipient ids are dropped.
    """
    if not has_permission(principal.role, Role.INSTRUCTOR):
        raise InsufficientRoleError(Role.INSTRUCTOR.value)

    unique_ids = list(dict.fromkeys(recipient_ids))
    existing = (
        await db.execute(select(User.user_id).where(User.user_id.in_(unique_ids)))
    ).scalars().all()
    known = set(existing)

    created: list[Notification] = []
    for recipient_id in unique_ids:
        if recipient_id not in known:
            continue
        notification = Notification(
            user_id=recipient_id,
            type=type_,
            category=category,
            priority=priority,
            title=title,
            message=message,
            action_url=action_url,
            payload=payload,
            is_read=False,
        )
        db.add(notification)
        created.append(notification)
    await db.flush()
    return created


async def list_notifications(
    db: AsyncSession,
    user_id: UUID,
    *,
    type_: NotificationType | None = None,
    category: NotificationCategory | None = None,
    only_unread: bool = False,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[Notification], int, int]:
    """Return (page, total matching, unread count for the user)."""
    base = select(Notification).where(Notification.user_id == user_id)
    if type_ is not None:
        base = base.where(Notification.type == type_)
    if category is not None:
        base = base.where(Notification.category == category)
    if only_unread:
        base = base.where(Notification.is_read.is_(False))

    count_query = select(func.count()).select_from(base.subquery())
    total = (await db.execute(count_query)).scalar_one()

    unread = await db.scalar(
        select(func.count())
        .select_from(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
    )

    rows = await db.execute(
        base.order_by(Notification.created_at.desc())
        .offset(offset)
        .limit(limit)
    )
    items = list(rows.scalars().all())
    return items, total, unread or 0


async def mark_read(db: AsyncSession, user_id: UUID, notification_id: UUID) -> Notification:
    notification = await db.scalar(
        select(Notification).where(
            Notification.notification_id == notification_id,
            Notification.user_id == user_id,
        )
    )
    # Someone else's notification is indistinguishable from a missing one
    if notification is None:
        raise NotificationNotFoundError(str(notification_id))
    if not notification.is_read:
        notification.is_read = True
        notification.read_at = datetime.now(timezone.utc)
        await db.flush()
        await db.refresh(notification)
    return notification


async def mark_all_read(db: AsyncSession, user_id: UUID) -> int:
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        .values(is_read=True, read_at=datetime.now(timezone.utc))
    )
    return result.rowcount or 0


async def get_stats(db: AsyncSession, user_id: UUID) -> dict[str, Any]:
    total = await db.scalar(
        select(func.count()).select_from(Notification).where(Notification.user_id == user_id)
    )
    unread = await db.scalar(
        select(func.count())
        .select_from(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
    )
    by_type_rows = await db.execute(
        select(Notification.type, func.count())
        .where(Notification.user_id == user_id)
        .group_by(Notification.type)
    )
    by_priority_rows = await db.execute(
        select(Notification.priority, func.count())
        .where(Notification.user_id == user_id)
        .group_by(Notification.priority)
    )
    return {
        "total": total or 0,
        "unread": unread or 0,
        "by_type": {t.value: c for t, c in by_type_rows.all()},
        "by_priority": {p.value: c for p, c in by_priority_rows.all()},
    }
