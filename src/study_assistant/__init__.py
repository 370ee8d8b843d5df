"""Turn study material into AI-generated study plans and scored quizzes."""

from __future__ import annotations

from .errors import (
    ArtifactError,
    ExtractionError,
    GenerationError,
    InputError,
    PersistenceError,
    SessionStateError,
    StudyAssistantError,
)
from .host import HostStep, SessionHost
from .models import (
    Day,
    MCQQuestion,
    Material,
    Quiz,
    QuizResult,
    ShortAnswerQuestion,
    StudyPlan,
    TrueFalseQuestion,
    parse_quiz,
    parse_study_plan,
)
from .plan_tracker import PlanProgressTracker
from .quiz_session import QuizSession, QuizStatus
from .scoring import QuestionOutcome, ScoreReport, is_correct, score

__all__ = [
    "StudyAssistantError",
    "InputError",
    "ExtractionError",
    "GenerationError",
    "ArtifactError",
    "PersistenceError",
    "SessionStateError",
    "Material",
    "Day",
    "StudyPlan",
    "MCQQuestion",
    "TrueFalseQuestion",
    "ShortAnswerQuestion",
    "Quiz",
    "QuizResult",
    "parse_quiz",
    "parse_study_plan",
    "score",
    "is_correct",
    "ScoreReport",
    "QuestionOutcome",
    "QuizSession",
    "QuizStatus",
    "PlanProgressTracker",
    "SessionHost",
    "HostStep",
]
