"""Review vote toggling and course rating arithmetic."""

from __future__ import annotations

import enum
from decimal import ROUND_HALF_UP, Decimal
from typing import NamedTuple

from app.models.enums import VoteType


class VoteAction(str, enum.Enum):
    CREATED = "created"
    REMOVED = "removed"
    SWITCHED = "switched"


class VoteChange(NamedTuple):
    helpful_delta: int
    unhelpful_delta: int
    action: VoteAction
    # The caller's vote after the change, None when removed
    current: VoteType | None


def _delta(vote_type: VoteType) -> tuple[int, int]:
    return (1, 0) if vote_type == VoteType.HELPFUL else (0, 1)


def vote_change(existing: VoteType | None, requested: VoteType) -> VoteChange:
    """Tri-state toggle: no vote -> vote, same vote -> no vote, other vote -> switch."""
    new_h, new_u = _delta(requested)
    if existing is None:
        return VoteChange(new_h, new_u, VoteAction.CREATED, requested)
    if existing == requested:
        return VoteChange(-new_h, -new_u, VoteAction.REMOVED, None)
    old_h, old_u = _delta(existing)
    return VoteChange(new_h - old_h, new_u - old_u, VoteAction.SWITCHED, requested)


def mean_rating(rating_sum: int, count: int) -> Decimal:
    """Average rating to one decimal place, halves rounded up. 0.0 for no reviews."""
    if count <= 0:
        return Decimal("0.0")
    return (Decimal(rating_sum) / Decimal(count)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
