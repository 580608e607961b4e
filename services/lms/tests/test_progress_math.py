from decimal import Decimal

import pytest

from app.lms.progress import progress_percentage, reaches_completion
from app.reviews.aggregate import VoteAction, mean_rating, vote_change
from app.models.enums import VoteType


@pytest.mark.parametrize(
    ("completed", "total", "expected"),
    [
        (0, 4, 0),
        (3, 4, 75),
        (4, 4, 100),
        (1, 3, 33),
        (2, 3, 67),
        (1, 8, 13),
        (0, 0, 0),
    ],
)
def test_progress_percentage(completed: int, total: int, expected: int) -> None:
    assert progress_percentage(completed, total) == expected


def test_progress_percentage_is_clamped() -> None:
    assert progress_percentage(5, 4) == 100


@pytest.mark.parametrize(
    ("watched", "expected"),
    [(Decimal("89.99"), False), (Decimal("90"), True), (95, True), (0, False), (90.0, True)],
)
def test_completion_threshold(watched: Decimal | int | float, expected: bool) -> None:
    assert reaches_completion(watched) is expected


def test_mean_rating_rounds_to_one_decimal() -> None:
    # 5, 5, 4 -> 4.666..
    assert mean_rating(14, 3) == Decimal("4.7")
    assert mean_rating(9, 2) == Decimal("4.5")


def test_mean_rating_without_reviews_is_zero() -> None:
    assert mean_rating(0, 0) == Decimal("0.0")


def test_vote_toggle_creates_removes_and_switches() -> None:
    created = vote_change(None, VoteType.HELPFUL)
    assert created == (1, 0, VoteAction.CREATED, VoteType.HELPFUL)

    removed = vote_change(VoteType.HELPFUL, VoteType.HELPFUL)
    assert removed == (-1, 0, VoteAction.REMOVED, None)

    switched = vote_change(VoteType.HELPFUL, VoteType.UNHELPFUL)
    assert switched == (-1, 1, VoteAction.SWITCHED, VoteType.UNHELPFUL)
