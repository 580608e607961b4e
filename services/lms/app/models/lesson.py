import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.database.postgres import Base

from .enums import LessonType, lesson_type_enum


class Lesson(Base):
    __tablename__ = "lessons"

    lesson_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    module_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("course_modules.module_id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    lesson_type: Mapped[LessonType] = mapped_column(
        lesson_type_enum, nullable=False, default=LessonType.VIDEO
    )
    video_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    duration_secs: Mapped[int | None] = mapped_column(Integer, nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # Only published lessons count towards enrollment progress
    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_free: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    module = relationship("CourseModule", back_populates="lessons", lazy="select")
    quiz = relationship(
        "Quiz", back_populates="lesson", uselist=False, lazy="noload", passive_deletes=True
    )

    __table_args__ = (
        Index("ix_lessons_module_id", "module_id"),
    )
