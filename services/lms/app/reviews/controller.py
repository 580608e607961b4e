"""Reviews controller — maps service results to HTTP responses, catches domain exceptions."""

from __future__ import annotations

from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import (
    AlreadyReportedError,
    AlreadyReviewedError,
    CourseNotFoundError,
    InsufficientRoleError,
    NotEnrolledError,
    NotReviewAuthorError,
    ReviewNotFoundError,
    SelfReportError,
    SelfVoteError,
    VoteConflictError,
)
from app.models.enums import VoteType
from app.models.review import Review
from app.models.user import User
from app.pagination import PageParams
from app.reviews import service
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
from app.users.schemas import UserSummary
from shared.constants import Role, has_permission
from shared.models.envelope import ApiResponse
from shared.models.user import Principal


def _handle_domain_error(exc: Exception) -> HTTPException:
    if isinstance(exc, ReviewNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Review not found")
    if isinstance(exc, CourseNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Course not found")
    if isinstance(exc, SelfVoteError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot vote on your own review")
    if isinstance(exc, SelfReportError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot report your own review")
    if isinstance(exc, AlreadyReportedError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail="You have already reported this review")
    if isinstance(exc, AlreadyReviewedError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail="You have already reviewed this course")
    if isinstance(exc, VoteConflictError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT, detail="Your vote changed in another request; refresh and retry"
        )
    if isinstance(exc, NotReviewAuthorError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not the author of this review")
    if isinstance(exc, NotEnrolledError):
        return HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Only enrolled students can review this course"
        )
    if isinstance(exc, InsufficientRoleError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal error.")


def _review_response(
    review: Review,
    author: User | None,
    principal: Principal | None,
    user_vote: VoteType | None = None,
) -> ReviewResponse:
    is_own = principal is not None and review.user_id == principal.id
    is_admin = principal is not None and has_permission(principal.role, Role.ADMIN)
    show_author = author is not None and (not review.is_anonymous or is_own)
    return ReviewResponse(
        review_id=review.review_id,
        course_id=review.course_id,
        rating=review.rating,
        review_text=review.review_text,
        is_anonymous=review.is_anonymous,
        helpful_count=review.helpful_count,
        unhelpful_count=review.unhelpful_count,
        is_reported=review.is_reported,
        created_at=review.created_at,
        updated_at=review.updated_at,
        author=UserSummary.model_validate(author) if show_author else None,
        user_vote=user_vote,
        is_own=is_own,
        can_edit=is_own,
        can_delete=is_own or is_admin,
        can_report=principal is not None and not is_own,
    )


async def list_reviews(
    db: AsyncSession,
    course_id: UUID,
    principal: Principal | None,
    *,
    rating: int | None,
    sort_by: ReviewSort,
    page: PageParams,
) -> ApiResponse[ReviewListResponse]:
    try:
        rows, total = await service.list_reviews(
            db,
            course_id,
            principal,
            rating=rating,
            sort_by=sort_by,
            limit=page.limit,
            offset=page.offset,
        )
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    return ApiResponse(
        data=ReviewListResponse(
            items=[_review_response(r, author, principal, vote) for r, author, vote in rows],
            total=total,
            page=page.page,
            limit=page.limit,
        )
    )


async def get_review_stats(db: AsyncSession, course_id: UUID) -> ApiResponse[ReviewStatsResponse]:
    try:
        stats = await service.get_review_stats(db, course_id)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    return ApiResponse(data=ReviewStatsResponse(**stats))


async def create_review(
    db: AsyncSession,
    principal: Principal,
    course_id: UUID,
    body: CreateReviewRequest,
) -> ApiResponse[ReviewResponse]:
    try:
        review = await service.create_review(db, principal, course_id, **body.model_dump())
        author = await db.get(User, principal.id)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    return ApiResponse(data=_review_response(review, author, principal), message="Review created")


async def update_review(
    db: AsyncSession,
    principal: Principal,
    review_id: UUID,
    body: UpdateReviewRequest,
) -> ApiResponse[ReviewResponse]:
    try:
        review = await service.update_review(db, principal, review_id, **body.model_dump(exclude_unset=True))
        author = await db.get(User, principal.id)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    return ApiResponse(data=_review_response(review, author, principal), message="Review updated")


async def delete_review(
    db: AsyncSession,
    principal: Principal,
    review_id: UUID,
) -> ApiResponse[None]:
    try:
        await service.delete_review(db, principal, review_id)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    return ApiResponse(data=None, message="Review deleted")


async def vote(
    db: AsyncSession,
    principal: Principal,
    review_id: UUID,
    body: VoteRequest,
) -> ApiResponse[VoteResponse]:
    try:
        review, current, action = await service.vote(db, principal, review_id, body.vote_type)
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    return ApiResponse(
        data=VoteResponse(
            review_id=review.review_id,
            helpful_count=review.helpful_count,
            unhelpful_count=review.unhelpful_count,
            user_vote=current,
            action=action,
        )
    )


async def report(
    db: AsyncSession,
    principal: Principal,
    review_id: UUID,
    body: ReportRequest,
) -> ApiResponse[ReportResponse]:
    try:
        report_row = await service.report(
            db, principal, review_id, reason=body.reason, description=body.description
        )
    except Exception as exc:
        raise _handle_domain_error(exc) from exc
    return ApiResponse(data=ReportResponse.model_validate(report_row), message="Review reported")
