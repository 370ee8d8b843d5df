"""Error taxonomy shared by the study assistant workflows."""

from __future__ import annotations

__all__ = [
    "StudyAssistantError",
    "InputError",
    "ExtractionError",
    "GenerationError",
    "ArtifactError",
    "PersistenceError",
    "SessionStateError",
]


class StudyAssistantError(RuntimeError):
    """Base class for every error raised by this package."""


class InputError(StudyAssistantError):
    """Material is missing a title or content."""


class ExtractionError(StudyAssistantError):
    """A document could not be turned into text."""


class GenerationError(StudyAssistantError):
    """The model call failed or returned something unusable."""


class ArtifactError(GenerationError):
    """A generated plan or quiz does not have the expected shape."""


class PersistenceError(StudyAssistantError):
    """A document store write or read failed."""


class SessionStateError(StudyAssistantError):
    """An operation is not allowed in the session's current state."""
