"""Study plan generation and per-day completion tracking.

The plan save completes on the writer thread. Progress changes and the
mirrored writes they queue share one lock, so the store sees days in the
order they were toggled.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional, Protocol

from .background import BackgroundWriter
from .errors import GenerationError, InputError, SessionStateError
from .models import Material, StudyPlan
from .store import DocumentStore

__all__ = [
    "DEFAULT_DAY_OPTIONS",
    "DEFAULT_DAYS",
    "MAX_PLAN_DAYS",
    "PLAN_FAILED_MESSAGE",
    "PlanGenerator",
    "PlanProgressTracker",
    "clamp_days",
]

logger = logging.getLogger(__name__)

DEFAULT_DAYS = 7
DEFAULT_DAY_OPTIONS: tuple[int, ...] = (3, 5, 7, 14, 21, 30)
MAX_PLAN_DAYS = 90
PLAN_FAILED_MESSAGE = (
    "Failed to generate study plan. Please check your API key and try again."
)


class PlanGenerator(Protocol):
    def generate_plan(self, content: str, days: int) -> StudyPlan: ...


@dataclass
class _PlanState:
    plan: StudyPlan
    plan_id: Optional[str] = None
    progress: dict[int, bool] = field(default_factory=dict)


def clamp_days(days: Any, max_days: int = MAX_PLAN_DAYS) -> int:
    if isinstance(days, bool) or not isinstance(days, int):
        raise InputError(f"Number of days must be an integer, got {days!r}.")
    return max(1, min(max_days, days))


class PlanProgressTracker:
    """Owns at most one generated plan and the learner's progress on it.

    Progress is sparse: a day missing from ``progress`` has not been
    completed. Generating a new plan starts from empty progress.
    """

    def __init__(
        self,
        material: Material,
        generator: PlanGenerator,
        *,
        store: Optional[DocumentStore] = None,
        writer: Optional[BackgroundWriter] = None,
        user_id: Optional[str] = None,
        max_days: int = MAX_PLAN_DAYS,
    ) -> None:
        self.material = material
        self.max_days = max_days
        self.error: Optional[str] = None
        self._generator = generator
        self._store = store
        self._owns_writer = writer is None and store is not None
        self._writer = writer or (BackgroundWriter() if store else None)
        self._user_id = user_id
        self._lock = threading.Lock()
        self._state: Optional[_PlanState] = None
        self._pending = False

    @property
    def plan(self) -> Optional[StudyPlan]:
        return self._state.plan if self._state else None

    @property
    def plan_id(self) -> Optional[str]:
        return self._state.plan_id if self._state else None

    @property
    def progress(self) -> Mapping[int, bool]:
        if self._state is None:
            return MappingProxyType({})
        return MappingProxyType(self._state.progress)

    @property
    def is_generating(self) -> bool:
        return self._pending

    def generate(self, days: int) -> StudyPlan:
        """Replace the current plan with a freshly generated one.

        ``days`` is clamped to ``[1, max_days]``. When generation fails the
        previous plan and its progress are kept.
        """

        if self._pending:
            raise SessionStateError("A study plan is already being generated.")
        requested = clamp_days(days, self.max_days)
        self.error = None
        self._pending = True
        try:
            plan = self._generator.generate_plan(
                self.material.content, requested
            )
        except GenerationError:
            self.error = PLAN_FAILED_MESSAGE
            logger.warning(
                "Study plan generation failed",
                exc_info=True,
                extra={"days": requested},
            )
            raise
        finally:
            self._pending = False

        state = _PlanState(plan=plan)
        self._state = state
        logger.info(
            "Study plan ready",
            extra={"title": plan.title, "days": len(plan.days)},
        )
        if self._store is not None and self._user_id:
            self._writer.submit(
                "save study plan",
                self._store_plan,
                plan,
                on_success=lambda plan_id: self._attach_plan_id(
                    state, plan_id
                ),
            )
        return plan

    def toggle_day(self, day: int) -> bool:
        """Flip completion for ``day`` and return the new flag."""

        state = self._require_plan()
        if day not in state.plan.day_numbers:
            raise SessionStateError(f"Plan has no day {day}.")
        with self._lock:
            completed = not state.progress.get(day, False)
            state.progress[day] = completed
            if state.plan_id is not None:
                self._mirror_day(state, day, completed)
        logger.debug(
            "Day %d marked %s", day, "complete" if completed else "incomplete"
        )
        return completed

    def is_complete(self, day: int) -> bool:
        if self._state is None:
            return False
        return self._state.progress.get(day, False)

    def completed_count(self) -> int:
        if self._state is None:
            return 0
        return sum(1 for done in self._state.progress.values() if done)

    def completion_ratio(self) -> float:
        if self._state is None or not self._state.plan.days:
            return 0.0
        return self.completed_count() / len(self._state.plan.days)

    def reset(self) -> None:
        self._state = None
        self.error = None

    def close(self) -> None:
        """Wait for pending saves and stop a writer this tracker created."""

        if self._owns_writer:
            self._writer.close()

    def _store_plan(self, plan: StudyPlan) -> str:
        # Material id is read at write time; it may arrive after generation.
        return self._store.save_plan(self._user_id, self.material.id, plan)

    def _attach_plan_id(self, state: _PlanState, plan_id: str) -> None:
        with self._lock:
            if self._state is not state:
                return
            state.plan_id = plan_id
            logger.debug("Study plan saved", extra={"plan_id": plan_id})
            # Days toggled before the plan save finished.
            for day, completed in state.progress.items():
                self._mirror_day(state, day, completed)

    def _mirror_day(
        self, state: _PlanState, day: int, completed: bool
    ) -> None:
        if self._store is None or not self._user_id:
            return
        self._writer.submit(
            f"update day {day} progress",
            self._store.update_plan_progress,
            self._user_id,
            state.plan_id,
            day,
            completed,
        )

    def _require_plan(self) -> _PlanState:
        if self._state is None:
            raise SessionStateError("No study plan has been generated yet.")
        return self._state
