"""Shared test helpers."""

from .artifacts import (
    PLAN_PAYLOAD,
    QUIZ_PAYLOAD,
    StubGenerator,
    make_plan,
    make_quiz,
)
from .chat import FakeChatClient
from .executors import DeferredExecutor

__all__ = [
    "DeferredExecutor",
    "FakeChatClient",
    "PLAN_PAYLOAD",
    "QUIZ_PAYLOAD",
    "StubGenerator",
    "make_plan",
    "make_quiz",
]
