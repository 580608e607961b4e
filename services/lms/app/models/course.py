import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shared.database.postgres import Base

from .enums import CourseLevel, CourseStatus, course_level_enum, course_status_enum


class Course(Base):
    __tablename__ = "courses"

    course_id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    slug: Mapped[str] = mapped_column(String(300), unique=True, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    short_description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    instructor_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.user_id", ondelete="RESTRICT"), nullable=False
    )
    # 0 means free
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="NGN")
    level: Mapped[CourseLevel] = mapped_column(
        course_level_enum, nullable=False, default=CourseLevel.BEGINNER
    )
    status: Mapped[CourseStatus] = mapped_column(
        course_status_enum, nullable=False, default=CourseStatus.DRAFT
    )
    thumbnail_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    # Denormalized review aggregate, recomputed on every review write
    average_rating: Mapped[Decimal] = mapped_column(
        Numeric(2, 1), nullable=False, default=Decimal("0.0")
    )
    total_reviews: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    enrollment_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    @property
    def is_free(self) -> bool:
        return (self.price or Decimal("0")) <= 0

    instructor = relationship("User", lazy="noload")
    modules = relationship(
        "CourseModule", back_populates="course", lazy="noload", order_by="CourseModule.sort_order"
    )
    enrollments = relationship("Enrollment", back_populates="course", lazy="noload")

    __table_args__ = (
        Index("ix_courses_instructor_id", "instructor_id"),
        Index("ix_courses_status", "status"),
        Index("ix_courses_created_at", "created_at"),
    )
