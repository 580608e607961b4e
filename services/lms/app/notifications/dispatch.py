"""Best-effort notification delivery.

Runs after the response in its own session (scheduled as a background
task). A failure is logged and reported as FAILED_IGNORED; it never
reaches the caller and is never retried.
"""

from __future__ import annotations

import enum
import logging
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.database import get_session_factory
from app.models.enums import NotificationCategory, NotificationPriority, NotificationType
from app.models.user import User
from app.notifications import service

logger = logging.getLogger(__name__)


class DispatchOutcome(str, enum.Enum):
    SENT = "SENT"
    SKIPPED = "SKIPPED"
    FAILED_IGNORED = "FAILED_IGNORED"


async def dispatch_notification(
    user_id: UUID,
    type_: NotificationType,
    title: str,
    message: str,
    *,
    category: NotificationCategory = NotificationCategory.SYSTEM,
    priority: NotificationPriority = NotificationPriority.MEDIUM,
    action_url: str | None = None,
    payload: dict[str, Any] | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> DispatchOutcome:
    try:
        factory = session_factory or get_session_factory()
        async with factory() as session:
            if await session.get(User, user_id) is None:
                logger.info("Skipping %s notification: unknown recipient %s", type_.value, user_id)
                return DispatchOutcome.SKIPPED
            await service.create_notification(
                session,
                user_id,
                type_,
                title,
                message,
                category=category,
                priority=priority,
                action_url=action_url,
                payload=payload,
            )
            await session.commit()
    except Exception:  # noqa: BLE001
        logger.warning(
            "Notification dispatch failed (type=%s, user=%s)", type_.value, user_id, exc_info=True
        )
        return DispatchOutcome.FAILED_IGNORED
    return DispatchOutcome.SENT
