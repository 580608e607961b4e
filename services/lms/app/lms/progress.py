"""Progress arithmetic shared by lesson tracking, quizzes and dashboards."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

# A lesson counts as completed once this much of it has been watched.
COMPLETION_THRESHOLD = Decimal("90")


def reaches_completion(watch_percentage: Decimal | float | int) -> bool:
    return Decimal(str(watch_percentage)) >= COMPLETION_THRESHOLD


def progress_percentage(completed: int, total: int) -> int:
    """Whole percent of ``total`` that ``completed`` represents, halves rounded up.

    A course with no published lessons reports 0.
    """
    if total <= 0:
        return 0
    pct = (Decimal(completed) * 100 / Decimal(total)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return max(0, min(100, int(pct)))
