from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Iterator

import pytest

TESTS_DIR = Path(__file__).resolve().parent
if str(TESTS_DIR) not in sys.path:
    sys.path.insert(0, str(TESTS_DIR))

from fixtures import FakeChatClient, StubGenerator  # noqa: E402

from study_assistant.background import (  # noqa: E402
    BackgroundWriter,
    InlineExecutor,
)
from study_assistant.models import Material  # noqa: E402
from study_assistant.store import DocumentStore  # noqa: E402

USER_ID = "learner01"


@pytest.fixture(autouse=True)
def _isolate_environment(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> Iterator[None]:
    monkeypatch.setenv("STUDY_ASSISTANT_DATA_HOME", str(tmp_path / "data"))
    for key in (
        "STUDY_ASSISTANT_CONFIG",
        "STUDY_ASSISTANT_MODEL",
        "STUDY_ASSISTANT_LOG_LEVEL",
    ):
        monkeypatch.delenv(key, raising=False)
    yield
    # The CLI attaches file handlers and stops propagation; undo that so
    # caplog keeps working in later tests.
    package_logger = logging.getLogger("study_assistant")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()
    package_logger.propagate = True
    package_logger.setLevel(logging.NOTSET)


@pytest.fixture
def user_id() -> str:
    return USER_ID


@pytest.fixture
def store(tmp_path: Path) -> DocumentStore:
    return DocumentStore(tmp_path / "store")


@pytest.fixture
def writer() -> BackgroundWriter:
    return BackgroundWriter(InlineExecutor())


@pytest.fixture
def generator() -> StubGenerator:
    return StubGenerator()


@pytest.fixture
def chat_client() -> FakeChatClient:
    return FakeChatClient()


@pytest.fixture
def material() -> Material:
    return Material.create(
        "Cell Biology", "Mitochondria are the powerhouse of the cell."
    )
