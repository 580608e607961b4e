from decimal import Decimal

import pytest
from sqlalchemy import func, select

from app.exceptions import (
    AlreadyReportedError,
    AlreadyReviewedError,
    NotEnrolledError,
    NotReviewAuthorError,
    SelfReportError,
    SelfVoteError,
    VoteConflictError,
)
from app.lms import service as lms_service
from app.models.enums import PaymentMethod, VoteType
from app.models.review import ReviewReport, ReviewVote
from app.reviews import service
from app.reviews.aggregate import VoteAction
from conftest import principal_for
from shared.constants import Role


@pytest.fixture
def enrolled_student(make_user, db_session):
    async def _make(course):
        student = await make_user(Role.STUDENT)
        await lms_service.enroll(db_session, principal_for(student), course.course_id, PaymentMethod.FREE)
        return student

    return _make


async def test_review_requires_enrollment(make_user, make_course, db_session) -> None:
    instructor = await make_user(Role.INSTRUCTOR)
    student = await make_user(Role.STUDENT)
    course = await make_course(instructor)
    with pytest.raises(NotEnrolledError):
        await service.create_review(db_session, principal_for(student), course.course_id, rating=5)


async def test_one_review_per_course(make_user, make_course, enrolled_student, db_session) -> None:
    instructor = await make_user(Role.INSTRUCTOR)
    course = await make_course(instructor)
    student = await enrolled_student(course)
    await service.create_review(db_session, principal_for(student), course.course_id, rating=4)
    with pytest.raises(AlreadyReviewedError):
        await service.create_review(db_session, principal_for(student), course.course_id, rating=5)


async def test_course_rating_tracks_reviews(make_user, make_course, enrolled_student, db_session) -> None:
    instructor = await make_user(Role.INSTRUCTOR)
    course = await make_course(instructor)
    ratings = [5, 5, 4]
    reviews = []
    for rating in ratings:
        student = await enrolled_student(course)
        reviews.append(
            (student, await service.create_review(db_session, principal_for(student), course.course_id, rating=rating))
        )

    await db_session.refresh(course)
    assert course.average_rating == Decimal("4.7")
    assert course.total_reviews == 3

    author, review = reviews[2]
    await service.update_review(db_session, principal_for(author), review.review_id, rating=2)
    await db_session.refresh(course)
    assert course.average_rating == Decimal("4.0")

    course = await service.delete_review(db_session, principal_for(author), review.review_id)
    assert course.average_rating == Decimal("5.0")
    assert course.total_reviews == 2

    stats = await service.get_review_stats(db_session, course.course_id)
    assert stats["total_reviews"] == 2
    assert stats["distribution"] == {1: 0, 2: 0, 3: 0, 4: 0, 5: 2}


async def test_only_author_can_edit(make_user, make_course, enrolled_student, db_session) -> None:
    instructor = await make_user(Role.INSTRUCTOR)
    course = await make_course(instructor)
    author = await enrolled_student(course)
    other = await enrolled_student(course)
    review = await service.create_review(db_session, principal_for(author), course.course_id, rating=3)

    with pytest.raises(NotReviewAuthorError):
        await service.update_review(db_session, principal_for(other), review.review_id, rating=1)
    with pytest.raises(NotReviewAuthorError):
        await service.delete_review(db_session, principal_for(other), review.review_id)


async def test_vote_toggle(make_user, make_course, enrolled_student, db_session) -> None:
    instructor = await make_user(Role.INSTRUCTOR)
    course = await make_course(instructor)
    author = await enrolled_student(course)
    voter = await make_user(Role.USER)
    review = await service.create_review(db_session, principal_for(author), course.course_id, rating=5)

    review, current, action = await service.vote(db_session, principal_for(voter), review.review_id, VoteType.HELPFUL)
    assert (review.helpful_count, review.unhelpful_count, current, action) == (1, 0, VoteType.HELPFUL, VoteAction.CREATED)

    review, current, action = await service.vote(db_session, principal_for(voter), review.review_id, VoteType.UNHELPFUL)
    assert (review.helpful_count, review.unhelpful_count, current, action) == (0, 1, VoteType.UNHELPFUL, VoteAction.SWITCHED)

    review, current, action = await service.vote(db_session, principal_for(voter), review.review_id, VoteType.UNHELPFUL)
    assert (review.helpful_count, review.unhelpful_count, current, action) == (0, 0, None, VoteAction.REMOVED)


async def test_cannot_vote_or_report_own_review(make_user, make_course, enrolled_student, db_session) -> None:
    instructor = await make_user(Role.INSTRUCTOR)
    course = await make_course(instructor)
    author = await enrolled_student(course)
    review = await service.create_review(db_session, principal_for(author), course.course_id, rating=5)

    with pytest.raises(SelfVoteError):
        await service.vote(db_session, principal_for(author), review.review_id, VoteType.HELPFUL)
    with pytest.raises(SelfReportError):
        await service.report(db_session, principal_for(author), review.review_id, reason="spam")


async def test_report_once_and_flag(make_user, make_course, enrolled_student, db_session) -> None:
    instructor = await make_user(Role.INSTRUCTOR)
    course = await make_course(instructor)
    author = await enrolled_student(course)
    reporter = await make_user(Role.USER)
    review = await service.create_review(db_session, principal_for(author), course.course_id, rating=1)

    report = await service.report(db_session, principal_for(reporter), review.review_id, reason="offensive")
    assert report.reason == "offensive"
    await db_session.refresh(review)
    assert review.is_reported

    with pytest.raises(AlreadyReportedError):
        await service.report(db_session, principal_for(reporter), review.review_id, reason="offensive")


async def test_admin_delete_removes_votes_and_reports(make_user, make_course, enrolled_student, db_session) -> None:
    instructor = await make_user(Role.INSTRUCTOR)
    admin = await make_user(Role.ADMIN)
    course = await make_course(instructor)
    author = await enrolled_student(course)
    other = await make_user(Role.USER)
    review = await service.create_review(db_session, principal_for(author), course.course_id, rating=2)
    await service.vote(db_session, principal_for(other), review.review_id, VoteType.HELPFUL)
    await service.report(db_session, principal_for(other), review.review_id, reason="spam")

    await service.delete_review(db_session, principal_for(admin), review.review_id)

    votes = await db_session.scalar(select(func.count()).select_from(ReviewVote))
    reports = await db_session.scalar(select(func.count()).select_from(ReviewReport))
    assert votes == 0
    assert reports == 0


async def test_list_reviews_carries_caller_vote(make_user, make_course, enrolled_student, db_session) -> None:
    instructor = await make_user(Role.INSTRUCTOR)
    course = await make_course(instructor)
    first = await enrolled_student(course)
    second = await enrolled_student(course)
    review_a = await service.create_review(db_session, principal_for(first), course.course_id, rating=5)
    await service.create_review(db_session, principal_for(second), course.course_id, rating=3)
    await service.vote(db_session, principal_for(second), review_a.review_id, VoteType.HELPFUL)

    rows, total = await service.list_reviews(
        db_session, course.course_id, principal_for(second), sort_by=service.ReviewSort.RATING
    )
    assert total == 2
    assert [review.rating for review, _, _ in rows] == [5, 3]
    assert rows[0][2] == VoteType.HELPFUL
    assert rows[1][2] is None

    five_star, five_total = await service.list_reviews(db_session, course.course_id, None, rating=5)
    assert five_total == 1
    assert five_star[0][0].review_id == review_a.review_id


async def test_stale_unvote_leaves_counters_alone(
    make_user, make_course, enrolled_student, db_session, monkeypatch
) -> None:
    instructor = await make_user(Role.INSTRUCTOR)
    course = await make_course(instructor)
    author = await enrolled_student(course)
    voter = await make_user(Role.STUDENT)
    review = await service.create_review(db_session, principal_for(author), course.course_id, rating=5)

    await service.vote(db_session, principal_for(voter), review.review_id, VoteType.HELPFUL)
    await service.vote(db_session, principal_for(voter), review.review_id, VoteType.HELPFUL)

    # A second un-vote that read the row before the first one deleted it.
    async def _stale_vote(db, user_id, review_id):
        return ReviewVote(user_id=user_id, review_id=review_id, vote_type=VoteType.HELPFUL)

    monkeypatch.setattr(service, "_get_vote", _stale_vote)
    with pytest.raises(VoteConflictError):
        await service.vote(db_session, principal_for(voter), review.review_id, VoteType.HELPFUL)

    await db_session.refresh(review)
    assert review.helpful_count == 0
    assert review.unhelpful_count == 0


async def test_lost_first_vote_race_is_a_conflict(
    make_user, make_course, enrolled_student, db_session, monkeypatch
) -> None:
    instructor = await make_user(Role.INSTRUCTOR)
    course = await make_course(instructor)
    author = await enrolled_student(course)
    voter = await make_user(Role.STUDENT)
    review = await service.create_review(db_session, principal_for(author), course.course_id, rating=3)
    await service.vote(db_session, principal_for(voter), review.review_id, VoteType.UNHELPFUL)

    async def _no_vote_yet(db, user_id, review_id):
        return None

    monkeypatch.setattr(service, "_get_vote", _no_vote_yet)
    with pytest.raises(VoteConflictError):
        await service.vote(db_session, principal_for(voter), review.review_id, VoteType.HELPFUL)

    await db_session.refresh(review)
    assert (review.helpful_count, review.unhelpful_count) == (0, 1)
    votes = await db_session.scalar(
        select(func.count()).select_from(ReviewVote).where(ReviewVote.review_id == review.review_id)
    )
    assert votes == 1
