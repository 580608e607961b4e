"""Assessment domain Pydantic V2 schemas.

Covers quiz creation, the student view, and attempt submission.
Supports MULTIPLE_CHOICE, TRUE_FALSE and SHORT_ANSWER questions.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.models.enums import QuestionType


class QuizQuestion(BaseModel):
    """One question. ``correct_answer`` is an option index, a bool or the expected text."""

    model_config = ConfigDict(str_strip_whitespace=True)

    question_type: QuestionType = QuestionType.MULTIPLE_CHOICE
    question: str = Field(min_length=1)
    options: list[str] = Field(default_factory=list, max_length=10)
    correct_answer: int | bool | str
    points: int = Field(default=1, ge=1, le=100)

    @model_validator(mode="after")
    def _validate_correct_answer(self) -> QuizQuestion:
        answer = self.correct_answer
        if self.question_type == QuestionType.MULTIPLE_CHOICE:
            if len(self.options) < 2:
                raise ValueError("MULTIPLE_CHOICE requires at least two options.")
            if isinstance(answer, bool) or not isinstance(answer, int):
                raise ValueError("MULTIPLE_CHOICE correct_answer must be an option index.")
            if not 0 <= answer < len(self.options):
                raise ValueError("correct_answer out of range.")
        elif self.question_type == QuestionType.TRUE_FALSE:
            if not isinstance(answer, bool):
                raise ValueError("TRUE_FALSE correct_answer must be true or false.")
        elif not isinstance(answer, str) or not answer.strip():
            raise ValueError("SHORT_ANSWER correct_answer must be non-empty text.")
        return self


class CreateQuizRequest(BaseModel):
    """Request body for attaching a quiz to a lesson. One quiz per lesson."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=300)
    questions: list[QuizQuestion] = Field(min_length=1)
    passing_score: int = Field(default=70, ge=0, le=100, description="Minimum percentage to pass.")
    max_attempts: int | None = Field(default=None, ge=1, description="Null means unlimited.")


class QuizAttemptRequest(BaseModel):
    """``answers`` follows question order: an option index, a bool, or text."""

    answers: list[int | bool | str | None] = Field(min_length=1)


class QuizResponse(BaseModel):
    """Instructor view, correct answers included."""

    model_config = ConfigDict(from_attributes=True)

    quiz_id: UUID
    lesson_id: UUID
    title: str
    questions: list[dict[str, Any]]
    passing_score: int
    max_attempts: int | None = None
    created_at: datetime


class QuizStudentResponse(BaseModel):
    """Quiz as a student sees it, correct answers stripped."""

    quiz_id: UUID
    lesson_id: UUID
    title: str
    questions: list[dict[str, Any]]
    total_points: int
    passing_score: int
    max_attempts: int | None = None
    attempt_count: int
    best_score: int | None = None
    remaining_attempts: int | None = None
    can_retake: bool


class QuizAttemptResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    attempt_id: UUID
    quiz_id: UUID
    attempt_number: int
    score: int = Field(description="Percentage, 0-100.")
    passed: bool
    points_earned: int
    points_possible: int
    submitted_at: datetime


class QuizAttemptResultResponse(BaseModel):
    attempt: QuizAttemptResponse
    correct_count: int
    total_questions: int
    results: list[dict[str, Any]]
    lesson_completed: bool
