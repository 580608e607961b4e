"""Reviews service — pure business logic, no FastAPI imports.

Review rows carry denormalized helpful/unhelpful counters. Every vote write
adjusts them with a single ``UPDATE ... SET n = n + delta`` in the same
transaction as the vote row, so concurrent voters never lose increments.
The course's ``average_rating``/``total_reviews`` are recomputed from the
review table after every review create, update and delete.
"""

from __future__ import annotations

import enum
import logging
from typing import Any
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
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
from app.models.course import Course
from app.models.enrollment import Enrollment
from app.models.enums import ReportStatus, VoteType
from app.models.review import Review, ReviewReport, ReviewVote
from app.models.user import User
from app.reviews.aggregate import VoteAction, mean_rating, vote_change
from shared.constants import Role, has_permission
from shared.models.user import Principal

logger = logging.getLogger(__name__)


class ReviewSort(str, enum.Enum):
    NEWEST = "newest"
    OLDEST = "oldest"
    HELPFUL = "helpful"
    RATING = "rating"


_ORDERING = {
    ReviewSort.NEWEST: (Review.created_at.desc(),),
    ReviewSort.OLDEST: (Review.created_at.asc(),),
    ReviewSort.HELPFUL: (Review.helpful_count.desc(), Review.created_at.desc()),
    ReviewSort.RATING: (Review.rating.desc(), Review.created_at.desc()),
}


async def _get_review(db: AsyncSession, review_id: UUID) -> Review:
    review = await db.get(Review, review_id)
    if review is None:
        raise ReviewNotFoundError(str(review_id))
    return review


async def _get_course(db: AsyncSession, course_id: UUID) -> Course:
    course = await db.get(Course, course_id)
    if course is None:
        raise CourseNotFoundError(str(course_id))
    return course


# ---------------------------------------------------------------------------
# Rating aggregate
# ---------------------------------------------------------------------------


async def recompute_course_rating(db: AsyncSession, course_id: UUID) -> Course:
    """Set the course's average (1 dp) and review count from the review table."""
    course = await _get_course(db, course_id)
    row = (
        await db.execute(
            select(func.count(Review.review_id), func.coalesce(func.sum(Review.rating), 0))
            .where(Review.course_id == course_id)
        )
    ).one()
    count, rating_sum = int(row[0]), int(row[1])
    course.average_rating = mean_rating(rating_sum, count)
    course.total_reviews = count
    await db.flush()
    return course


async def get_review_stats(db: AsyncSession, course_id: UUID) -> dict[str, Any]:
    await _get_course(db, course_id)
    rows = await db.execute(
        select(Review.rating, func.count())
        .where(Review.course_id == course_id)
        .group_by(Review.rating)
    )
    distribution = {star: 0 for star in range(1, 6)}
    for rating, count in rows.all():
        distribution[int(rating)] = count
    total = sum(distribution.values())
    rating_sum = sum(star * count for star, count in distribution.items())
    return {
        "average_rating": mean_rating(rating_sum, total),
        "total_reviews": total,
        "distribution": distribution,
    }


# ---------------------------------------------------------------------------
# Review CRUD
# ---------------------------------------------------------------------------


async def list_reviews(
    db: AsyncSession,
    course_id: UUID,
    principal: Principal | None,
    *,
    rating: int | None = None,
    sort_by: ReviewSort = ReviewSort.NEWEST,
    limit: int = 10,
    offset: int = 0,
) -> tuple[list[tuple[Review, User | None, VoteType | None]], int]:
    """Return ([(review, author, caller's vote)], total)."""
    await _get_course(db, course_id)

    filters = [Review.course_id == course_id]
    if rating is not None:
        filters.append(Review.rating == rating)

    total = await db.scalar(select(func.count()).select_from(Review).where(*filters)) or 0
    result = await db.execute(
        select(Review, User)
        .outerjoin(User, Review.user_id == User.user_id)
        .where(*filters)
        .order_by(*_ORDERING[sort_by])
        .offset(offset)
        .limit(limit)
    )
    rows = result.all()

    votes: dict[UUID, VoteType] = {}
    if principal is not None and rows:
        vote_rows = await db.execute(
            select(ReviewVote.review_id, ReviewVote.vote_type).where(
                ReviewVote.user_id == principal.id,
                ReviewVote.review_id.in_([r.review_id for r, _ in rows]),
            )
        )
        votes = {review_id: vote_type for review_id, vote_type in vote_rows.all()}

    return [(review, author, votes.get(review.review_id)) for review, author in rows], total


async def create_review(
    db: AsyncSession,
    principal: Principal,
    course_id: UUID,
    *,
    rating: int,
    review_text: str | None = None,
    is_anonymous: bool = False,
) -> Review:
    """Students review courses they are enrolled in, once per course."""
    if not has_permission(principal.role, Role.STUDENT):
        raise InsufficientRoleError(Role.STUDENT.value)
    await _get_course(db, course_id)

    enrolled = await db.scalar(
        select(func.count())
        .select_from(Enrollment)
        .where(Enrollment.user_id == principal.id, Enrollment.course_id == course_id)
    )
    if not enrolled:
        raise NotEnrolledError()

    existing = await db.scalar(
        select(Review.review_id).where(Review.user_id == principal.id, Review.course_id == course_id)
    )
    if existing is not None:
        raise AlreadyReviewedError()

    review = Review(
        user_id=principal.id,
        course_id=course_id,
        rating=rating,
        review_text=review_text,
        is_anonymous=is_anonymous,
    )
    try:
        async with db.begin_nested():
            db.add(review)
            await db.flush()
    except IntegrityError as exc:
        raise AlreadyReviewedError() from exc
    await recompute_course_rating(db, course_id)
    await db.refresh(review)
    return review


async def update_review(
    db: AsyncSession,
    principal: Principal,
    review_id: UUID,
    **fields: object,
) -> Review:
    review = await _get_review(db, review_id)
    if review.user_id != principal.id:
        raise NotReviewAuthorError()
    for key, value in fields.items():
        if value is not None:
            setattr(review, key, value)
    await db.flush()
    await recompute_course_rating(db, review.course_id)
    await db.refresh(review)
    return review


async def delete_review(db: AsyncSession, principal: Principal, review_id: UUID) -> Course:
    """Author or admin. Votes, then reports, then the review go in one transaction."""
    review = await _get_review(db, review_id)
    if review.user_id != principal.id and not has_permission(principal.role, Role.ADMIN):
        raise NotReviewAuthorError()

    course_id = review.course_id
    await db.execute(delete(ReviewVote).where(ReviewVote.review_id == review_id))
    await db.execute(delete(ReviewReport).where(ReviewReport.review_id == review_id))
    await db.delete(review)
    await db.flush()
    logger.info("Review %s deleted by %s", review_id, principal.id)
    return await recompute_course_rating(db, course_id)


# ---------------------------------------------------------------------------
# Votes / reports
# ---------------------------------------------------------------------------


async def _get_vote(db: AsyncSession, user_id: UUID, review_id: UUID) -> ReviewVote | None:
    return await db.scalar(
        select(ReviewVote).where(
            ReviewVote.user_id == user_id,
            ReviewVote.review_id == review_id,
        )
    )


async def vote(
    db: AsyncSession,
    principal: Principal,
    review_id: UUID,
    vote_type: VoteType,
) -> tuple[Review, VoteType | None, VoteAction]:
    """Toggle the caller's vote. Returns (review with fresh counters, current vote, action).

    The vote row is written first and the counters move only if that write
    matched exactly the row that was read. Anything else means a concurrent
    request changed the vote and raises VoteConflictError.
    """
    review = await _get_review(db, review_id)
    if review.user_id == principal.id:
        raise SelfVoteError()

    existing = await _get_vote(db, principal.id, review_id)
    previous = existing.vote_type if existing else None
    change = vote_change(previous, vote_type)

    if change.action == VoteAction.CREATED:
        try:
            async with db.begin_nested():
                db.add(ReviewVote(user_id=principal.id, review_id=review_id, vote_type=vote_type))
                await db.flush()
        except IntegrityError as exc:
            raise VoteConflictError() from exc
    else:
        same_row = (
            (ReviewVote.user_id == principal.id)
            & (ReviewVote.review_id == review_id)
            & (ReviewVote.vote_type == previous)
        )
        if change.action == VoteAction.REMOVED:
            stmt = delete(ReviewVote).where(same_row)
        else:
            stmt = update(ReviewVote).where(same_row).values(vote_type=vote_type)
        result = await db.execute(stmt)
        if result.rowcount != 1:
            raise VoteConflictError()

    await db.execute(
        update(Review)
        .where(Review.review_id == review_id)
        .values(
            helpful_count=Review.helpful_count + change.helpful_delta,
            unhelpful_count=Review.unhelpful_count + change.unhelpful_delta,
        )
    )
    await db.refresh(review)
    return review, change.current, change.action


async def report(
    db: AsyncSession,
    principal: Principal,
    review_id: UUID,
    *,
    reason: str,
    description: str | None = None,
) -> ReviewReport:
    """File a report. The review stays visible; it is only flagged for moderation."""
    review = await _get_review(db, review_id)
    if review.user_id == principal.id:
        raise SelfReportError()

    existing = await db.scalar(
        select(ReviewReport.report_id).where(
            ReviewReport.user_id == principal.id,
            ReviewReport.review_id == review_id,
        )
    )
    if existing is not None:
        raise AlreadyReportedError()

    report_row = ReviewReport(
        user_id=principal.id,
        review_id=review_id,
        reason=reason,
        description=description,
        status=ReportStatus.PENDING,
    )
    try:
        async with db.begin_nested():
            db.add(report_row)
            await db.flush()
    except IntegrityError as exc:
        raise AlreadyReportedError() from exc
    review.is_reported = True
    await db.flush()
    await db.refresh(report_row)
    logger.info("Review %s reported by %s (%s)", review_id, principal.id, reason)
    return report_row
