import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from shared.database.postgres import Base

from .enums import (
    NotificationCategory,
    NotificationPriority,
    NotificationType,
    notification_category_enum,
    notification_priority_enum,
    notification_type_enum,
)
from .types import JSONType


class Notification(Base):
    __tablename__ = "notifications"

    notification_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[NotificationType] = mapped_column(notification_type_enum, nullable=False)
    category: Mapped[NotificationCategory] = mapped_column(
        notification_category_enum, nullable=False, default=NotificationCategory.SYSTEM
    )
    priority: Mapped[NotificationPriority] = mapped_column(
        notification_priority_enum, nullable=False, default=NotificationPriority.MEDIUM
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    action_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    # Free-form context, e.g. {"course_id": ..., "score": ...}
    payload: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    __table_args__ = (
        Index("ix_notifications_user_created", "user_id", "created_at"),
        Index("ix_notifications_user_is_read", "user_id", "is_read"),
    )
