import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, ForeignKey, Index, SmallInteger, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.database.postgres import Base

from .types import JSONType


class Quiz(Base):
    __tablename__ = "quizzes"

    quiz_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    lesson_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("lessons.lesson_id", ondelete="CASCADE"), unique=True, nullable=False
    )
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    # Array of {question_type, question, options, correct_answer, points}
    questions: Mapped[list] = mapped_column(JSONType, nullable=False)
    passing_score: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=70)
    max_attempts: Mapped[int | None] = mapped_column(SmallInteger, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )

    lesson = relationship("Lesson", back_populates="quiz", lazy="select")

    __table_args__ = (
        Index("ix_quizzes_lesson_id", "lesson_id"),
    )
