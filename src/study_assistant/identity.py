"""Anonymous per-workspace user identity."""

from __future__ import annotations

import logging
import uuid
from pathlib import Path

from .errors import PersistenceError

__all__ = ["IDENTITY_FILENAME", "load_or_create_identity"]

IDENTITY_FILENAME = "identity"

logger = logging.getLogger(__name__)


def load_or_create_identity(path: Path) -> str:
    """Return the user id stored at ``path``, minting one on first use."""

    try:
        existing = path.read_text(encoding="utf-8").strip()
    except FileNotFoundError:
        existing = ""
    except OSError as exc:
        raise PersistenceError(f"Cannot read identity file {path}") from exc
    if existing:
        return existing

    user_id = uuid.uuid4().hex
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(user_id + "\n", encoding="utf-8")
    except OSError as exc:
        raise PersistenceError(f"Cannot write identity file {path}") from exc
    logger.info("Created anonymous identity", extra={"user_id": user_id})
    return user_id
