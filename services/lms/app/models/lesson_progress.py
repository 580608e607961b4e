import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Numeric, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.database.postgres import Base

from .enums import LessonProgressStatus, lesson_progress_status_enum


class LessonProgress(Base):
    __tablename__ = "lesson_progress"

    progress_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False
    )
    lesson_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("lessons.lesson_id", ondelete="CASCADE"), nullable=False
    )
    course_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("courses.course_id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[LessonProgressStatus] = mapped_column(
        lesson_progress_status_enum, nullable=False, default=LessonProgressStatus.NOT_STARTED
    )
    current_time_secs: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    watch_percentage: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("0.00")
    )
    time_spent_secs: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # Set once on the first transition to COMPLETED, never overwritten
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_watched_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    lesson = relationship("Lesson", lazy="noload")

    __table_args__ = (
        UniqueConstraint("user_id", "lesson_id", name="uq_lesson_progress_user_lesson"),
        Index("ix_lesson_progress_user_course", "user_id", "course_id"),
    )
