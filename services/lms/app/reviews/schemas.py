"""Reviews domain Pydantic V2 schemas."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from shared.models.pagination import PaginatedResponse

from app.models.enums import ReportStatus, VoteType
from app.reviews.aggregate import VoteAction
from app.users.schemas import UserSummary


class CreateReviewRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    rating: int = Field(ge=1, le=5, description="Star rating, 1 to 5.")
    review_text: str | None = Field(default=None, max_length=5000)
    is_anonymous: bool = Field(default=False, description="Hide the author from other readers.")


class UpdateReviewRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    rating: int | None = Field(default=None, ge=1, le=5)
    review_text: str | None = Field(default=None, max_length=5000)
    is_anonymous: bool | None = None


class VoteRequest(BaseModel):
    vote_type: VoteType


class ReportRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    reason: str = Field(min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=2000)


class ReviewResponse(BaseModel):
    review_id: UUID
    course_id: UUID
    rating: int
    review_text: str | None = None
    is_anonymous: bool
    helpful_count: int
    unhelpful_count: int
    is_reported: bool
    created_at: datetime
    updated_at: datetime
    # None when the review is anonymous and the reader is not its author
    author: UserSummary | None = None
    user_vote: VoteType | None = None
    is_own: bool = False
    can_edit: bool = False
    can_delete: bool = False
    can_report: bool = False


class ReviewListResponse(PaginatedResponse[ReviewResponse]):
    pass


class ReviewStatsResponse(BaseModel):
    average_rating: Decimal
    total_reviews: int
    distribution: dict[int, int] = Field(description="Review count per star, 1 to 5.")


class VoteResponse(BaseModel):
    review_id: UUID
    helpful_count: int
    unhelpful_count: int
    user_vote: VoteType | None = None
    action: VoteAction


class ReportResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    report_id: UUID
    review_id: UUID
    reason: str
    description: str | None = None
    status: ReportStatus
    created_at: datetime
