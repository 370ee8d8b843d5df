"""Local JSON document store for materials, plans, quizzes and results.

Documents live under ``<root>/<user_id>/<collection>/<doc_id>.json``. Writes
go through a temp file and ``os.replace`` while holding a per-user lock file,
so a crashed write never leaves a half-written document behind.
"""

from __future__ import annotations

import json
import os
import re
import tempfile
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping, MutableMapping, Optional

from .errors import PersistenceError
from .models import Material, Quiz, QuizResult, StudyPlan

__all__ = [
    "COLLECTIONS",
    "DocumentStore",
]

COLLECTIONS = ("materials", "studyPlans", "quizzes", "quizResults")

_LOCK_FILENAME = ".lock"
_LOCK_TIMEOUT_SECONDS = 5.0
_PREVIEW_CHARS = 500
_SAFE_ID = re.compile(r"^[A-Za-z0-9_-]+$")


class DocumentStore:
    """Append-or-update document store keyed by an opaque user id."""

    def __init__(self, root: Path) -> None:
        self._root = root

    @property
    def root(self) -> Path:
        return self._root

    def save_material(self, user_id: str, material: Material) -> str:
        return self._insert(
            user_id,
            "materials",
            {
                "userId": user_id,
                "title": material.title,
                "content": material.content,
                "contentPreview": material.content[:_PREVIEW_CHARS],
                "createdAt": _timestamp(),
            },
        )

    def save_plan(
        self, user_id: str, material_id: Optional[str], plan: StudyPlan
    ) -> str:
        payload = {"userId": user_id, "materialId": material_id}
        payload.update(plan.to_dict())
        payload["progress"] = {}
        payload["createdAt"] = _timestamp()
        return self._insert(user_id, "studyPlans", payload)

    def update_plan_progress(
        self, user_id: str, plan_id: str, day: int, completed: bool
    ) -> None:
        with self._locked(user_id):
            document = self._read(user_id, "studyPlans", plan_id)
            progress = document.setdefault("progress", {})
            progress[f"day{day}"] = bool(completed)
            document["updatedAt"] = _timestamp()
            self._write(user_id, "studyPlans", plan_id, document)

    def save_quiz(
        self, user_id: str, material_id: Optional[str], quiz: Quiz
    ) -> str:
        payload = {"userId": user_id, "materialId": material_id}
        payload.update(quiz.to_dict())
        payload["createdAt"] = _timestamp()
        return self._insert(user_id, "quizzes", payload)

    def save_quiz_result(
        self, user_id: str, quiz_id: str, result: QuizResult
    ) -> str:
        return self._insert(
            user_id,
            "quizResults",
            {
                "userId": user_id,
                "quizId": quiz_id,
                "score": result.score,
                "totalQuestions": result.total_questions,
                "answers": dict(result.answers),
                "completedAt": result.timestamp,
            },
        )

    def load(
        self, user_id: str, collection: str, doc_id: str
    ) -> MutableMapping[str, Any]:
        return self._read(user_id, collection, doc_id)

    def list_materials(self, user_id: str) -> list[MutableMapping[str, Any]]:
        return self._list(user_id, "materials", "createdAt")

    def list_plans(self, user_id: str) -> list[MutableMapping[str, Any]]:
        return self._list(user_id, "studyPlans", "createdAt")

    def list_quizzes(self, user_id: str) -> list[MutableMapping[str, Any]]:
        return self._list(user_id, "quizzes", "createdAt")

    def list_quiz_results(
        self, user_id: str
    ) -> list[MutableMapping[str, Any]]:
        return self._list(user_id, "quizResults", "completedAt")

    def _insert(
        self, user_id: str, collection: str, payload: Mapping[str, Any]
    ) -> str:
        doc_id = uuid.uuid4().hex
        with self._locked(user_id):
            self._write(user_id, collection, doc_id, payload)
        return doc_id

    def _list(
        self, user_id: str, collection: str, order_key: str
    ) -> list[MutableMapping[str, Any]]:
        directory = self._collection_dir(user_id, collection)
        if not directory.is_dir():
            return []
        documents = [
            self._read(user_id, collection, path.stem)
            for path in directory.glob("*.json")
        ]
        documents.sort(key=lambda doc: str(doc.get(order_key, "")), reverse=True)
        return documents

    def _read(
        self, user_id: str, collection: str, doc_id: str
    ) -> MutableMapping[str, Any]:
        path = self._document_path(user_id, collection, doc_id)
        try:
            document = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise PersistenceError(
                f"No {collection} document '{doc_id}' for user {user_id}."
            ) from exc
        except (OSError, json.JSONDecodeError) as exc:
            raise PersistenceError(f"Failed to read {path}: {exc}") from exc
        document["id"] = doc_id
        return document

    def _write(
        self,
        user_id: str,
        collection: str,
        doc_id: str,
        payload: Mapping[str, Any],
    ) -> None:
        path = self._document_path(user_id, collection, doc_id)
        body = {key: value for key, value in payload.items() if key != "id"}
        try:
            _atomic_write_json(path, body)
        except (OSError, TypeError, ValueError) as exc:
            raise PersistenceError(f"Failed to write {path}: {exc}") from exc

    def _locked(self, user_id: str) -> "_StoreLock":
        return _StoreLock(self._user_dir(user_id) / _LOCK_FILENAME)

    def _user_dir(self, user_id: str) -> Path:
        return self._root / _checked_id(user_id, "user id")

    def _collection_dir(self, user_id: str, collection: str) -> Path:
        if collection not in COLLECTIONS:
            raise PersistenceError(f"Unknown collection '{collection}'.")
        return self._user_dir(user_id) / collection

    def _document_path(
        self, user_id: str, collection: str, doc_id: str
    ) -> Path:
        directory = self._collection_dir(user_id, collection)
        return directory / f"{_checked_id(doc_id, 'document id')}.json"


class _StoreLock:
    """Exclusive-create lock file guarding one user's documents."""

    def __init__(self, path: Path) -> None:
        self._path = path

    def __enter__(self) -> "_StoreLock":
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise PersistenceError(
                f"Cannot create store directory {self._path.parent}: {exc}"
            ) from exc
        deadline = time.monotonic() + _LOCK_TIMEOUT_SECONDS
        while True:
            try:
                fd = os.open(self._path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
                os.close(fd)
                return self
            except FileExistsError:
                if time.monotonic() > deadline:
                    raise PersistenceError(
                        f"Timed out waiting for store lock: {self._path}"
                    )
                time.sleep(0.05)

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: D401
        self._path.unlink(missing_ok=True)


def _atomic_write_json(path: Path, payload: Mapping[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    handle = tempfile.NamedTemporaryFile(
        "w",
        delete=False,
        encoding="utf-8",
        dir=str(path.parent),
        suffix=".tmp",
    )
    try:
        json.dump(payload, handle, indent=2, sort_keys=True)
        handle.flush()
        os.fsync(handle.fileno())
    except BaseException:
        handle.close()
        os.unlink(handle.name)
        raise
    handle.close()
    os.replace(handle.name, path)


def _checked_id(value: str, label: str) -> str:
    if not value or not _SAFE_ID.match(value):
        raise PersistenceError(f"Invalid {label}: {value!r}")
    return value


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()
