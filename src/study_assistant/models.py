"""Study material, plan and quiz artifacts.

Plans and quizzes come back from the model as loosely-typed JSON. The
``parse_*`` functions here are the only place that JSON is trusted: they turn
it into frozen dataclasses and raise :class:`ArtifactError` for anything that
does not match one of the known shapes, so the session code downstream can
rely on the types.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Mapping, MutableMapping, Optional, Sequence, Union

from .errors import ArtifactError, InputError

__all__ = [
    "Material",
    "Day",
    "StudyPlan",
    "MCQQuestion",
    "TrueFalseQuestion",
    "ShortAnswerQuestion",
    "Question",
    "Quiz",
    "QuizResult",
    "QUESTION_TYPES",
    "parse_study_plan",
    "parse_quiz",
    "parse_question",
]


@dataclass(frozen=True)
class Material:
    """A titled block of study text from one upload or paste."""

    title: str
    content: str
    id: Optional[str] = None

    @classmethod
    def create(cls, title: str, content: str) -> "Material":
        title = (title or "").strip()
        content = (content or "").strip()
        if not content:
            raise InputError("Please provide some study material")
        if not title:
            raise InputError("Please provide a title for your material")
        return cls(title=title, content=content)

    def with_id(self, material_id: str) -> "Material":
        return replace(self, id=material_id)


@dataclass(frozen=True)
class Day:
    day: int
    title: str
    topics: tuple[str, ...] = ()
    objectives: tuple[str, ...] = ()
    activities: tuple[str, ...] = ()
    duration: str = ""

    def to_dict(self) -> MutableMapping[str, Any]:
        return {
            "day": self.day,
            "title": self.title,
            "topics": list(self.topics),
            "objectives": list(self.objectives),
            "activities": list(self.activities),
            "duration": self.duration,
        }


@dataclass(frozen=True)
class StudyPlan:
    title: str
    overview: str
    days: tuple[Day, ...]
    tips: tuple[str, ...] = ()

    @property
    def day_numbers(self) -> tuple[int, ...]:
        return tuple(day.day for day in self.days)

    def to_dict(self) -> MutableMapping[str, Any]:
        return {
            "title": self.title,
            "overview": self.overview,
            "days": [day.to_dict() for day in self.days],
            "tips": list(self.tips),
        }


@dataclass(frozen=True)
class MCQQuestion:
    id: str
    question: str
    options: tuple[str, ...]
    correct_answer: str
    explanation: str = ""
    type: str = field(default="mcq", init=False)

    def to_dict(self) -> MutableMapping[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "question": self.question,
            "options": list(self.options),
            "correctAnswer": self.correct_answer,
            "explanation": self.explanation,
        }


@dataclass(frozen=True)
class TrueFalseQuestion:
    id: str
    question: str
    correct_answer: bool
    explanation: str = ""
    type: str = field(default="true-false", init=False)

    def to_dict(self) -> MutableMapping[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "question": self.question,
            "correctAnswer": self.correct_answer,
            "explanation": self.explanation,
        }


@dataclass(frozen=True)
class ShortAnswerQuestion:
    id: str
    question: str
    correct_answer: str
    explanation: str = ""
    type: str = field(default="short-answer", init=False)

    def to_dict(self) -> MutableMapping[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "question": self.question,
            "correctAnswer": self.correct_answer,
            "explanation": self.explanation,
        }


Question = Union[MCQQuestion, TrueFalseQuestion, ShortAnswerQuestion]

QUESTION_TYPES = ("mcq", "true-false", "short-answer")


@dataclass(frozen=True)
class Quiz:
    title: str
    questions: tuple[Question, ...]

    @property
    def question_ids(self) -> tuple[str, ...]:
        return tuple(question.id for question in self.questions)

    def question_for(self, question_id: str) -> Optional[Question]:
        for question in self.questions:
            if question.id == question_id:
                return question
        return None

    def to_dict(self) -> MutableMapping[str, Any]:
        return {
            "title": self.title,
            "questions": [question.to_dict() for question in self.questions],
        }


@dataclass(frozen=True)
class QuizResult:
    """Frozen outcome of a submitted quiz."""

    score: int
    total_questions: int
    answers: Mapping[str, Any]
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    @property
    def percentage(self) -> int:
        if self.total_questions == 0:
            return 0
        return math.floor(self.score / self.total_questions * 100 + 0.5)

    def to_dict(self) -> MutableMapping[str, Any]:
        return {
            "score": self.score,
            "totalQuestions": self.total_questions,
            "answers": dict(self.answers),
            "timestamp": self.timestamp,
        }


def parse_study_plan(payload: Any) -> StudyPlan:
    """Validate a generated study plan payload."""

    data = _require_mapping(payload, "study plan")
    raw_days = data.get("days")
    if not isinstance(raw_days, list):
        raise ArtifactError("Study plan 'days' must be a list.")

    days: list[Day] = []
    for index, raw in enumerate(raw_days):
        entry = _require_mapping(raw, f"day #{index + 1}")
        number = entry.get("day")
        if isinstance(number, bool) or not isinstance(number, int):
            raise ArtifactError(f"Day #{index + 1} has no integer 'day'.")
        if number < 1:
            raise ArtifactError(f"Day numbers must be positive, got {number}.")
        if days and number <= days[-1].day:
            raise ArtifactError(
                f"Day numbers must be unique and increasing, got {number} "
                f"after {days[-1].day}."
            )
        days.append(
            Day(
                day=number,
                title=_text(entry.get("title"), default=f"Day {number}"),
                topics=_text_list(entry.get("topics"), "topics"),
                objectives=_text_list(entry.get("objectives"), "objectives"),
                activities=_text_list(entry.get("activities"), "activities"),
                duration=_text(entry.get("duration")),
            )
        )

    return StudyPlan(
        title=_text(data.get("title"), default="Study Plan"),
        overview=_text(data.get("overview")),
        days=tuple(days),
        tips=_text_list(data.get("tips"), "tips"),
    )


def parse_quiz(payload: Any) -> Quiz:
    """Validate a generated quiz payload."""

    data = _require_mapping(payload, "quiz")
    raw_questions = data.get("questions")
    if not isinstance(raw_questions, list) or not raw_questions:
        raise ArtifactError("Quiz 'questions' must be a non-empty list.")

    questions: list[Question] = []
    seen: set[str] = set()
    for index, raw in enumerate(raw_questions):
        question = parse_question(raw, index)
        if question.id in seen:
            raise ArtifactError(f"Duplicate question id '{question.id}'.")
        seen.add(question.id)
        questions.append(question)

    return Quiz(
        title=_text(data.get("title"), default="Quiz"),
        questions=tuple(questions),
    )


def parse_question(payload: Any, index: int = 0) -> Question:
    """Build one question variant from its ``type`` discriminator.

    A missing ``id`` falls back to the 1-based position; numeric ids are
    normalised to strings.
    """

    data = _require_mapping(payload, f"question #{index + 1}")
    raw_id = data.get("id")
    qid = str(raw_id).strip() if raw_id is not None else str(index + 1)
    if not qid:
        qid = str(index + 1)
    text = _text(data.get("question"))
    if not text:
        raise ArtifactError(f"Question {qid} has no text.")
    explanation = _text(data.get("explanation"))
    kind = data.get("type")
    answer = data.get("correctAnswer")

    if kind == "mcq":
        options = _text_list(data.get("options"), f"question {qid} options")
        if len(options) < 2:
            raise ArtifactError(f"Question {qid} needs at least two options.")
        if not isinstance(answer, str) or answer.strip() not in options:
            raise ArtifactError(
                f"Question {qid} correctAnswer must match one of its options."
            )
        return MCQQuestion(
            id=qid,
            question=text,
            options=options,
            correct_answer=answer.strip(),
            explanation=explanation,
        )
    if kind == "true-false":
        if not isinstance(answer, bool):
            raise ArtifactError(
                f"Question {qid} correctAnswer must be true or false."
            )
        return TrueFalseQuestion(
            id=qid,
            question=text,
            correct_answer=answer,
            explanation=explanation,
        )
    if kind == "short-answer":
        if not isinstance(answer, str):
            raise ArtifactError(
                f"Question {qid} correctAnswer must be a string."
            )
        return ShortAnswerQuestion(
            id=qid,
            question=text,
            correct_answer=answer,
            explanation=explanation,
        )
    expected = ", ".join(QUESTION_TYPES)
    raise ArtifactError(
        f"Question {qid} has unknown type {kind!r}; expected one of {expected}."
    )


def _require_mapping(value: Any, label: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ArtifactError(
            f"Expected an object for {label}, got {type(value).__name__}."
        )
    return value


def _text(value: Any, *, default: str = "") -> str:
    if value is None:
        return default
    return str(value).strip() or default


def _text_list(value: Any, label: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
        raise ArtifactError(f"Expected a list for {label}.")
    return tuple(str(item).strip() for item in value if str(item).strip())
