"""JSON-lines logging for the study assistant."""

from __future__ import annotations

import json
import logging
import sys
import tempfile
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

__all__ = [
    "JsonLogFormatter",
    "configure_logger",
]

_FILE_MARKER = "_study_assistant_file"
_CONSOLE_MARKER = "_study_assistant_console"

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))
) | {"message", "asctime", "taskName"}


class JsonLogFormatter(logging.Formatter):
    """Render each record as a single JSON object."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        extras = {
            key: _jsonable(value)
            for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRS
        }
        if extras:
            payload["extra"] = extras
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack"] = record.stack_info
        return json.dumps(payload, ensure_ascii=True)


def configure_logger(
    name: str,
    *,
    log_dir: Path,
    level: str = "INFO",
    verbose: bool = False,
    max_bytes: int = 2 * 1024 * 1024,
    backup_count: int = 3,
) -> tuple[logging.Logger, Path]:
    """Attach a rotating JSON file handler (and optionally stderr) to ``name``.

    Calling this again for the same logger re-targets the existing handlers
    rather than stacking new ones.
    """

    logger = logging.getLogger(name)
    logger.propagate = False
    logger.setLevel(logging.DEBUG)

    file_level = logging.DEBUG if verbose else _coerce_level(level)
    log_path = _log_path(log_dir, f"{name.rsplit('.', 1)[-1]}.log")

    handler = _find_handler(logger, _FILE_MARKER)
    if handler is not None and Path(handler.baseFilename) != log_path:  # type: ignore[attr-defined]
        logger.removeHandler(handler)
        handler.close()
        handler = None
    if handler is None:
        handler = RotatingFileHandler(
            log_path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        handler.setFormatter(JsonLogFormatter())
        setattr(handler, _FILE_MARKER, True)
        logger.addHandler(handler)
    handler.setLevel(file_level)

    console = _find_handler(logger, _CONSOLE_MARKER)
    if verbose and console is None:
        console = logging.StreamHandler(stream=sys.stderr)
        console.setLevel(logging.DEBUG)
        console.setFormatter(logging.Formatter("%(levelname)s %(message)s"))
        setattr(console, _CONSOLE_MARKER, True)
        logger.addHandler(console)
    elif not verbose and console is not None:
        logger.removeHandler(console)
        console.close()

    return logger, log_path


def _find_handler(
    logger: logging.Logger, marker: str
) -> logging.Handler | None:
    for handler in logger.handlers:
        if getattr(handler, marker, False):
            return handler
    return None


def _coerce_level(level: str) -> int:
    numeric = logging.getLevelName(level.upper())
    if isinstance(numeric, int):
        return numeric
    return logging.INFO


def _log_path(log_dir: Path, filename: str) -> Path:
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        path = log_dir / filename
        path.touch(exist_ok=True)
    except PermissionError:
        fallback = Path(tempfile.gettempdir()) / "study-assistant-logs"
        fallback.mkdir(parents=True, exist_ok=True)
        path = fallback / filename
        path.touch(exist_ok=True)
    return path.resolve()


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, dict):
        return {str(key): _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_jsonable(item) for item in value]
    return repr(value)
