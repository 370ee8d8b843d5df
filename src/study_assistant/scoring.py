"""Answer checking and quiz scoring.

Everything here is pure: the same quiz and answers always give the same
report, so it is safe for live previews as well as final submission.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Mapping

from .models import (
    MCQQuestion,
    Question,
    Quiz,
    ShortAnswerQuestion,
    TrueFalseQuestion,
)

__all__ = [
    "QuestionOutcome",
    "ScoreReport",
    "is_correct",
    "keyword_matches",
    "score",
    "percentage",
    "grade_label",
]


@dataclass(frozen=True)
class QuestionOutcome:
    question_id: str
    is_correct: bool


@dataclass(frozen=True)
class ScoreReport:
    score: int
    per_question: tuple[QuestionOutcome, ...]

    @property
    def total_questions(self) -> int:
        return len(self.per_question)

    def outcome_for(self, question_id: str) -> QuestionOutcome | None:
        for outcome in self.per_question:
            if outcome.question_id == question_id:
                return outcome
        return None


def keyword_matches(reference: str, answer: Any) -> tuple[int, int]:
    """Return ``(matched, total)`` keywords of ``reference`` found in ``answer``.

    Keywords are the whitespace-separated words of ``reference``; a keyword
    matches when it occurs anywhere in the answer, case-insensitively.
    """

    keywords = reference.lower().split()
    text = answer.lower() if isinstance(answer, str) else ""
    return sum(1 for keyword in keywords if keyword in text), len(keywords)


def is_correct(question: Question, answer: Any) -> bool:
    if isinstance(question, MCQQuestion):
        return isinstance(answer, str) and answer == question.correct_answer
    if isinstance(question, TrueFalseQuestion):
        return type(answer) is bool and answer is question.correct_answer
    if isinstance(question, ShortAnswerQuestion):
        matched, total = keyword_matches(question.correct_answer, answer)
        # Half of an odd keyword count is fractional: 3 keywords need 2 hits.
        return matched >= total / 2
    raise TypeError(f"Unsupported question type: {type(question).__name__}")


def score(quiz: Quiz, answers: Mapping[str, Any]) -> ScoreReport:
    """Score ``answers`` against ``quiz``; unanswered questions are wrong."""

    outcomes = tuple(
        QuestionOutcome(
            question_id=question.id,
            is_correct=question.id in answers
            and is_correct(question, answers[question.id]),
        )
        for question in quiz.questions
    )
    return ScoreReport(
        score=sum(1 for outcome in outcomes if outcome.is_correct),
        per_question=outcomes,
    )


def percentage(correct: int, total: int) -> int:
    """Whole-number percentage, halves rounded up."""
    if total <= 0:
        return 0
    return math.floor(correct / total * 100 + 0.5)


def grade_label(pct: int) -> str:
    if pct >= 90:
        return "Excellent!"
    if pct >= 70:
        return "Great Job!"
    if pct >= 50:
        return "Good Effort!"
    return "Keep Studying!"
