from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from shared.models.pagination import PaginatedResponse

from app.models.enums import NotificationCategory, NotificationPriority, NotificationType


class CreateNotificationRequest(BaseModel):
    """Instructor/admin broadcast to a list of users."""

    model_config = ConfigDict(str_strip_whitespace=True)

    recipient_ids: list[UUID] = Field(min_length=1, max_length=1000)
    type: NotificationType
    title: str = Field(min_length=1, max_length=200)
    message: str = Field(min_length=1, max_length=5000)
    category: NotificationCategory = NotificationCategory.SYSTEM
    priority: NotificationPriority = NotificationPriority.MEDIUM
    action_url: str | None = Field(default=None, max_length=500)
    payload: dict[str, Any] | None = Field(
        default=None, description="Free-form context stored with each notification."
    )


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    notification_id: UUID
    type: NotificationType
    category: NotificationCategory
    priority: NotificationPriority
    title: str
    message: str
    action_url: str | None = None
    payload: dict[str, Any] | None = None
    is_read: bool
    read_at: datetime | None = None
    created_at: datetime


class NotificationListResponse(PaginatedResponse[NotificationResponse]):
    unread_count: int


class BulkNotificationResponse(BaseModel):
    created: int


class MarkAllReadResponse(BaseModel):
    updated: int


class NotificationStatsResponse(BaseModel):
    total: int
    unread: int
    by_type: dict[str, int]
    by_priority: dict[str, int]
