"""Quiz grading arithmetic.

Questions are stored as dicts with ``question_type``, ``question``,
``options``, ``correct_answer`` and ``points``. Answers are positional,
one per question; a missing or null answer scores nothing.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, NamedTuple

from app.models.enums import QuestionType


class GradeResult(NamedTuple):
    points_earned: int
    points_possible: int
    correct_count: int
    score: int
    passed: bool
    results: list[dict[str, Any]]


def is_correct(question: dict[str, Any], answer: Any) -> bool:
    if answer is None:
        return False
    expected = question.get("correct_answer")
    q_type = question.get("question_type", QuestionType.MULTIPLE_CHOICE.value)
    if q_type == QuestionType.SHORT_ANSWER.value:
        return str(answer).strip().lower() == str(expected or "").strip().lower()
    if q_type == QuestionType.TRUE_FALSE.value:
        return isinstance(answer, bool) and answer is expected
    # bool is an int subclass; True must not match option index 1
    return not isinstance(answer, bool) and answer == expected


def grade(questions: list[dict[str, Any]], answers: list[Any], passing_score: int) -> GradeResult:
    """Score is earned / possible * 100 rounded half up; passed when score >= passing_score."""
    earned = possible = correct_count = 0
    results: list[dict[str, Any]] = []
    for index, question in enumerate(questions):
        points = int(question.get("points", 1))
        possible += points
        answer = answers[index] if index < len(answers) else None
        correct = is_correct(question, answer)
        if correct:
            earned += points
            correct_count += 1
        results.append({"question_index": index, "correct": correct, "points": points if correct else 0})

    score = 0
    if possible > 0:
        score = int((Decimal(earned) * 100 / Decimal(possible)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return GradeResult(earned, possible, correct_count, score, score >= passing_score, results)


def strip_answers(questions: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Student-safe view: everything except the correct answer."""
    return [
        {
            "question_index": index,
            "question_type": q.get("question_type", QuestionType.MULTIPLE_CHOICE.value),
            "question": q.get("question", ""),
            "options": q.get("options") or [],
            "points": int(q.get("points", 1)),
        }
        for index, q in enumerate(questions)
    ]
