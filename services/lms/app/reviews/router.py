"""Reviews router — HTTP layer only.

Routes:
  GET    /lms/courses/{course_id}/reviews         Course reviews (public)
  POST   /lms/courses/{course_id}/reviews         Review a course (enrolled students)
  GET    /lms/courses/{course_id}/reviews/stats   Average, count and star distribution
  PUT    /lms/reviews/{review_id}                 Edit own review
  DELETE /lms/reviews/{review_id}                 Delete (author or admin)
  POST   /lms/reviews/{review_id}/vote            Toggle helpful / unhelpful (30/minute)
  POST   /lms/reviews/{review_id}/report          Report for moderation (10/hour)
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_current_user, get_optional_user
from app.pagination import PageParams, page_params
from app.rate_limit import limiter
from app.reviews import controller
from app.reviews.schemas import (
    CreateReviewRequest,
    ReportRequest,
    ReportResponse,
    ReviewListResponse,
    ReviewResponse,
    ReviewStatsResponse,
    UpdateReviewRequest,
    VoteRequest,
    VoteResponse,
)
from app.reviews.service import ReviewSort
from shared.models.envelope import ApiResponse
from shared.models.user import Principal

router = APIRouter(prefix="/lms", tags=["Reviews"])


@router.get(
    "/courses/{course_id}/reviews",
    response_model=ApiResponse[ReviewListResponse],
    summary="List course reviews",
)
async def list_reviews(
    course_id: UUID,
    rating: int | None = Query(None, ge=1, le=5, description="Only reviews with this star rating."),
    sort_by: ReviewSort = Query(ReviewSort.NEWEST),
    page: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    principal: Principal | None = Depends(get_optional_user),
) -> ApiResponse[ReviewListResponse]:
    return await controller.list_reviews(
        db, course_id, principal, rating=rating, sort_by=sort_by, page=page
    )


@router.post(
    "/courses/{course_id}/reviews",
    response_model=ApiResponse[ReviewResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Review a course",
    description="Enrolled students only, one review per course.",
)
async def create_review(
    course_id: UUID,
    body: CreateReviewRequest,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_user),
) -> ApiResponse[ReviewResponse]:
    return await controller.create_review(db, principal, course_id, body)


@router.get(
    "/courses/{course_id}/reviews/stats",
    response_model=ApiResponse[ReviewStatsResponse],
    summary="Review statistics for a course",
)
async def get_review_stats(
    course_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[ReviewStatsResponse]:
    return await controller.get_review_stats(db, course_id)


@router.put(
    "/reviews/{review_id}",
    response_model=ApiResponse[ReviewResponse],
    summary="Edit own review",
)
async def update_review(
    review_id: UUID,
    body: UpdateReviewRequest,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_user),
) -> ApiResponse[ReviewResponse]:
    return await controller.update_review(db, principal, review_id, body)


@router.delete(
    "/reviews/{review_id}",
    response_model=ApiResponse[None],
    summary="Delete a review",
    description="Author or admin. Votes and reports on the review are removed with it.",
)
async def delete_review(
    review_id: UUID,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_user),
) -> ApiResponse[None]:
    return await controller.delete_review(db, principal, review_id)


@router.post(
    "/reviews/{review_id}/vote",
    response_model=ApiResponse[VoteResponse],
    summary="Vote a review helpful or unhelpful",
    description="Repeating the same vote removes it; the other vote switches it.",
)
@limiter.limit("30/minute")
async def vote_review(
    request: Request,
    review_id: UUID,
    body: VoteRequest,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_user),
) -> ApiResponse[VoteResponse]:
    return await controller.vote(db, principal, review_id, body)


@router.post(
    "/reviews/{review_id}/report",
    response_model=ApiResponse[ReportResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Report a review",
)
@limiter.limit("10/hour")
async def report_review(
    request: Request,
    review_id: UUID,
    body: ReportRequest,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_user),
) -> ApiResponse[ReportResponse]:
    return await controller.report(db, principal, review_id, body)
