"""Interactive quiz session over a generated quiz.

A session moves ``configuring -> in_progress -> completed``. It is created
for one piece of material, asks the generator for a quiz, records answers
while the learner moves around the questions, and freezes a
:class:`QuizResult` on submission. ``reset`` drops the quiz and returns to
``configuring``.

Store writes (the quiz itself, then the result) are handed to a
:class:`BackgroundWriter`; they never block the session or undo a
transition when they fail. Save callbacks arrive on the writer thread, so
the quiz id and result hand-off is guarded by a lock.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional, Protocol, Sequence

from .background import BackgroundWriter
from .errors import GenerationError, InputError, SessionStateError
from .models import Material, Question, Quiz, QuizResult
from .scoring import ScoreReport, score
from .store import DocumentStore

__all__ = [
    "DEFAULT_NUM_QUESTIONS",
    "DEFAULT_QUESTION_OPTIONS",
    "GENERATION_FAILED_MESSAGE",
    "QuizGenerator",
    "QuizSession",
    "QuizStatus",
]

logger = logging.getLogger(__name__)

DEFAULT_NUM_QUESTIONS = 10
DEFAULT_QUESTION_OPTIONS: tuple[int, ...] = (5, 10, 15, 20)
GENERATION_FAILED_MESSAGE = (
    "Failed to generate quiz. Please check your API key and try again."
)


class QuizGenerator(Protocol):
    def generate_quiz(self, content: str, num_questions: int) -> Quiz: ...


class QuizStatus(Enum):
    CONFIGURING = "configuring"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


@dataclass
class _QuizState:
    """Everything owned by one generated quiz; rebuilt on every generation."""

    quiz: Quiz
    index: int = 0
    answers: dict[str, Any] = field(default_factory=dict)
    quiz_id: Optional[str] = None
    result: Optional[QuizResult] = None


class QuizSession:
    def __init__(
        self,
        material: Material,
        generator: QuizGenerator,
        *,
        store: Optional[DocumentStore] = None,
        writer: Optional[BackgroundWriter] = None,
        user_id: Optional[str] = None,
        question_options: Sequence[int] = DEFAULT_QUESTION_OPTIONS,
        num_questions: int = DEFAULT_NUM_QUESTIONS,
    ) -> None:
        self.material = material
        self.question_options = tuple(question_options)
        self.error: Optional[str] = None
        self._generator = generator
        self._store = store
        self._owns_writer = writer is None and store is not None
        self._writer = writer or (BackgroundWriter() if store else None)
        self._user_id = user_id
        self._lock = threading.Lock()
        self._num_questions = _positive_int(num_questions)
        self._state: Optional[_QuizState] = None
        self._pending = False

    @property
    def status(self) -> QuizStatus:
        if self._state is None:
            return QuizStatus.CONFIGURING
        if self._state.result is None:
            return QuizStatus.IN_PROGRESS
        return QuizStatus.COMPLETED

    @property
    def num_questions(self) -> int:
        return self._num_questions

    @property
    def is_generating(self) -> bool:
        return self._pending

    @property
    def quiz(self) -> Optional[Quiz]:
        return self._state.quiz if self._state else None

    @property
    def quiz_id(self) -> Optional[str]:
        return self._state.quiz_id if self._state else None

    @property
    def index(self) -> int:
        return self._state.index if self._state else 0

    @property
    def answers(self) -> Mapping[str, Any]:
        if self._state is None:
            return MappingProxyType({})
        return MappingProxyType(self._state.answers)

    @property
    def result(self) -> Optional[QuizResult]:
        return self._state.result if self._state else None

    @property
    def current_question(self) -> Question:
        state = self._require(QuizStatus.IN_PROGRESS, QuizStatus.COMPLETED)
        return state.quiz.questions[state.index]

    def select_num_questions(self, num_questions: int) -> None:
        self._require(QuizStatus.CONFIGURING)
        self._num_questions = _positive_int(num_questions)

    def generate(self) -> Quiz:
        """Request a quiz; on failure the session stays in ``configuring``."""

        self._require(QuizStatus.CONFIGURING)
        if self._pending:
            raise SessionStateError("A quiz is already being generated.")
        self.error = None
        self._pending = True
        try:
            quiz = self._generator.generate_quiz(
                self.material.content, self._num_questions
            )
        except GenerationError:
            self.error = GENERATION_FAILED_MESSAGE
            logger.warning(
                "Quiz generation failed",
                exc_info=True,
                extra={"num_questions": self._num_questions},
            )
            raise
        finally:
            self._pending = False

        state = _QuizState(quiz=quiz)
        self._state = state
        logger.info(
            "Quiz started",
            extra={"title": quiz.title, "questions": len(quiz.questions)},
        )
        if self._store is not None and self._user_id:
            self._writer.submit(
                "save quiz",
                self._store_quiz,
                quiz,
                on_success=lambda quiz_id: self._attach_quiz_id(
                    state, quiz_id
                ),
            )
        return quiz

    def answer(self, question_id: Any, value: Any) -> None:
        """Record ``value`` for ``question_id``, replacing any earlier answer.

        The value is not checked against the question type; a mismatch is
        simply scored as wrong.
        """

        state = self._require(QuizStatus.IN_PROGRESS)
        qid = str(question_id)
        if state.quiz.question_for(qid) is None:
            raise SessionStateError(f"Quiz has no question '{qid}'.")
        state.answers[qid] = value

    def answer_current(self, value: Any) -> None:
        self.answer(self.current_question.id, value)

    def go_to(self, index: int) -> None:
        state = self._require(QuizStatus.IN_PROGRESS)
        if not 0 <= index < len(state.quiz.questions):
            raise SessionStateError(
                f"Question index {index} is out of range."
            )
        state.index = index

    def can_advance(self) -> bool:
        if self.status is not QuizStatus.IN_PROGRESS:
            return False
        state = self._state
        last = len(state.quiz.questions) - 1
        current = state.quiz.questions[state.index]
        return state.index < last and current.id in state.answers

    def next(self) -> None:
        state = self._require(QuizStatus.IN_PROGRESS)
        if state.index >= len(state.quiz.questions) - 1:
            raise SessionStateError("Already at the last question.")
        if state.quiz.questions[state.index].id not in state.answers:
            raise SessionStateError(
                "Answer the current question before moving on."
            )
        state.index += 1

    def previous(self) -> None:
        state = self._require(QuizStatus.IN_PROGRESS)
        if state.index == 0:
            raise SessionStateError("Already at the first question.")
        state.index -= 1

    def unanswered(self) -> tuple[str, ...]:
        if self._state is None:
            return ()
        return tuple(
            qid
            for qid in self._state.quiz.question_ids
            if qid not in self._state.answers
        )

    def can_submit(self) -> bool:
        return self.status is QuizStatus.IN_PROGRESS and not self.unanswered()

    def submit(self) -> QuizResult:
        state = self._require(QuizStatus.IN_PROGRESS)
        missing = self.unanswered()
        if missing:
            raise SessionStateError(
                f"{len(missing)} question(s) still need an answer."
            )
        report = score(state.quiz, state.answers)
        result = QuizResult(
            score=report.score,
            total_questions=len(state.quiz.questions),
            answers=MappingProxyType(dict(state.answers)),
        )
        with self._lock:
            state.result = result
            save_now = state.quiz_id is not None
        logger.info(
            "Quiz submitted",
            extra={
                "score": result.score,
                "total_questions": result.total_questions,
                "quiz_id": state.quiz_id,
            },
        )
        if save_now:
            self._save_result(state)
        return result

    def live_score(self) -> ScoreReport:
        """Score the answers recorded so far without changing state."""

        state = self._require(QuizStatus.IN_PROGRESS, QuizStatus.COMPLETED)
        return score(state.quiz, state.answers)

    def reset(self) -> None:
        self._state = None
        self.error = None

    def close(self) -> None:
        """Wait for pending saves and stop a writer this session created."""

        if self._owns_writer:
            self._writer.close()

    def _store_quiz(self, quiz: Quiz) -> str:
        # Material id is read at write time; it may arrive after generation.
        return self._store.save_quiz(self._user_id, self.material.id, quiz)

    def _attach_quiz_id(self, state: _QuizState, quiz_id: str) -> None:
        with self._lock:
            if self._state is not state:
                return
            state.quiz_id = quiz_id
            # Submitted before the quiz save finished.
            save_now = state.result is not None
        if save_now:
            self._save_result(state)

    def _save_result(self, state: _QuizState) -> None:
        if self._store is None or not self._user_id:
            return
        self._writer.submit(
            "save quiz result",
            self._store.save_quiz_result,
            self._user_id,
            state.quiz_id,
            state.result,
        )

    def _require(self, *allowed: QuizStatus) -> _QuizState:
        status = self.status
        if status not in allowed:
            expected = " or ".join(item.value for item in allowed)
            raise SessionStateError(
                f"Quiz session is {status.value}; expected {expected}."
            )
        return self._state  # type: ignore[return-value]


def _positive_int(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise InputError(
            f"Number of questions must be a positive integer, got {value!r}."
        )
    return value
