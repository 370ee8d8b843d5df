"""Top-level flow: upload material, choose a workflow, run it."""

from __future__ import annotations

import logging
import threading
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional

from .background import BackgroundWriter
from .errors import SessionStateError
from .extraction import Converter, material_from_file
from .models import Material
from .plan_tracker import PlanProgressTracker
from .quiz_session import QuizSession
from .settings import Settings
from .store import DocumentStore

__all__ = ["HostStep", "SessionHost"]

logger = logging.getLogger(__name__)


class HostStep(Enum):
    UPLOAD = "upload"
    CHOOSE = "choose"
    PLAN = "plan"
    QUIZ = "quiz"


class SessionHost:
    """Move one learner through ``upload -> choose -> plan | quiz``.

    ``back`` from ``choose`` forgets the material; ``back`` from a workflow
    discards that workflow but keeps the material for the next choice. The
    material id arrives when its background save finishes and is handed to
    whichever workflow is running on that material.
    """

    def __init__(
        self,
        generator: Any,
        *,
        store: Optional[DocumentStore] = None,
        writer: Optional[BackgroundWriter] = None,
        user_id: Optional[str] = None,
        settings: Optional[Settings] = None,
        converter: Optional[Converter] = None,
    ) -> None:
        self.settings = settings or Settings()
        self.step = HostStep.UPLOAD
        self.material: Optional[Material] = None
        self.quiz_session: Optional[QuizSession] = None
        self.plan_tracker: Optional[PlanProgressTracker] = None
        self._generator = generator
        self._store = store
        self._owns_writer = writer is None and store is not None
        self._writer = writer or (BackgroundWriter() if store else None)
        self._user_id = user_id
        self._converter = converter
        self._lock = threading.Lock()

    def upload_text(self, title: str, content: str) -> Material:
        self._require(HostStep.UPLOAD)
        return self.accept_material(Material.create(title, content))

    def upload_file(
        self, path: Path, *, title: Optional[str] = None
    ) -> Material:
        """Extract ``path``; the step only advances on success."""

        self._require(HostStep.UPLOAD)
        material = material_from_file(
            path,
            title=title,
            max_chars=self.settings.limits.extract_max_chars,
            converter=self._converter,
        )
        return self.accept_material(material)

    def accept_material(self, material: Material) -> Material:
        self._require(HostStep.UPLOAD)
        with self._lock:
            self.material = material
            self.step = HostStep.CHOOSE
        logger.info(
            "Material ready",
            extra={
                "title": material.title,
                "characters": len(material.content),
            },
        )
        if self._store is not None and self._user_id and material.id is None:
            self._writer.submit(
                "save material",
                self._store.save_material,
                self._user_id,
                material,
                on_success=self._attach_material_id(material),
            )
        return material

    def choose_plan(self) -> PlanProgressTracker:
        self._require(HostStep.CHOOSE)
        with self._lock:
            self.plan_tracker = PlanProgressTracker(
                self.material,
                self._generator,
                store=self._store,
                writer=self._writer,
                user_id=self._user_id,
            )
        self.step = HostStep.PLAN
        return self.plan_tracker

    def choose_quiz(self) -> QuizSession:
        self._require(HostStep.CHOOSE)
        with self._lock:
            self.quiz_session = QuizSession(
                self.material,
                self._generator,
                store=self._store,
                writer=self._writer,
                user_id=self._user_id,
                question_options=self.settings.quiz.question_options,
                num_questions=self.settings.quiz.default_questions,
            )
        self.step = HostStep.QUIZ
        return self.quiz_session

    def back(self) -> HostStep:
        if self.step is HostStep.UPLOAD:
            raise SessionStateError("Already at the upload step.")
        with self._lock:
            if self.step is HostStep.CHOOSE:
                self.material = None
                self.step = HostStep.UPLOAD
            else:
                self.quiz_session = None
                self.plan_tracker = None
                self.step = HostStep.CHOOSE
        return self.step

    def close(self) -> None:
        """Wait for pending saves and stop a writer this host created."""

        if self._owns_writer:
            self._writer.close()

    def _attach_material_id(
        self, material: Material
    ) -> Callable[[str], None]:
        def attach(material_id: str) -> None:
            with self._lock:
                if self.material is not material:
                    return
                saved = material.with_id(material_id)
                self.material = saved
                for workflow in (self.quiz_session, self.plan_tracker):
                    if workflow is not None and workflow.material is material:
                        workflow.material = saved

        return attach

    def _require(self, *allowed: HostStep) -> None:
        if self.step not in allowed:
            expected = " or ".join(step.value for step in allowed)
            raise SessionStateError(
                f"Host is at '{self.step.value}'; expected {expected}."
            )
