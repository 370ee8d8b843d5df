"""Settings for the study assistant.

Values resolve with the precedence CLI overrides > ``STUDY_ASSISTANT_*``
environment variables > ``study_assistant.toml`` > built-in defaults.
"""

from __future__ import annotations

import copy
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, MutableMapping, Optional

from .core import config as core_config
from .core import workspace as workspace_mod

__all__ = [
    "CONFIG_ENV",
    "CONFIG_FILENAME",
    "ENV_PREFIX",
    "SETTINGS_TEMPLATE",
    "AISettings",
    "LimitSettings",
    "LoadResult",
    "PlanSettings",
    "QuizSettings",
    "Settings",
    "SettingsError",
    "SettingsOverrides",
    "load_settings",
]

CONFIG_FILENAME = "study_assistant.toml"
CONFIG_ENV = "STUDY_ASSISTANT_CONFIG"
ENV_PREFIX = "STUDY_ASSISTANT_"

SETTINGS_TEMPLATE = """\
# Study assistant configuration

[ai]
# Chat model used to generate plans and quizzes.
model = "gpt-4o-mini"
temperature = 0.2
max_tokens = 4096

[limits]
# Extracted documents are cut to this many characters.
extract_max_chars = 30000
# Material sent to the model is cut again to this many characters.
prompt_max_chars = 15000

[quiz]
default_questions = 10
question_options = [5, 10, 15, 20]

[plan]
default_days = 7
day_options = [3, 5, 7, 14, 21, 30]

[logging]
level = "INFO"
"""


class SettingsError(RuntimeError):
    """Raised when settings cannot be loaded or are invalid."""


@dataclass(frozen=True)
class AISettings:
    model: str = "gpt-4o-mini"
    temperature: float = 0.2
    max_tokens: int = 4096


@dataclass(frozen=True)
class LimitSettings:
    extract_max_chars: int = 30000
    prompt_max_chars: int = 15000


@dataclass(frozen=True)
class QuizSettings:
    default_questions: int = 10
    question_options: tuple[int, ...] = (5, 10, 15, 20)


@dataclass(frozen=True)
class PlanSettings:
    default_days: int = 7
    day_options: tuple[int, ...] = (3, 5, 7, 14, 21, 30)


@dataclass(frozen=True)
class Settings:
    ai: AISettings = field(default_factory=AISettings)
    limits: LimitSettings = field(default_factory=LimitSettings)
    quiz: QuizSettings = field(default_factory=QuizSettings)
    plan: PlanSettings = field(default_factory=PlanSettings)
    log_level: str = "INFO"


@dataclass(frozen=True)
class SettingsOverrides:
    model: Optional[str] = None
    log_level: Optional[str] = None


@dataclass(frozen=True)
class LoadResult:
    settings: Settings
    layout: workspace_mod.WorkspaceLayout
    config_path: Optional[Path]


_DEFAULTS: Mapping[str, Mapping[str, Any]] = {
    "ai": {"model": "gpt-4o-mini", "temperature": 0.2, "max_tokens": 4096},
    "limits": {"extract_max_chars": 30000, "prompt_max_chars": 15000},
    "quiz": {"default_questions": 10, "question_options": [5, 10, 15, 20]},
    "plan": {"default_days": 7, "day_options": [3, 5, 7, 14, 21, 30]},
    "logging": {"level": "INFO"},
}


def load_settings(
    *,
    config_path: Optional[Path] = None,
    overrides: Optional[SettingsOverrides] = None,
    env: Optional[Mapping[str, str]] = None,
    workspace_path: Optional[Path] = None,
) -> LoadResult:
    overrides = overrides or SettingsOverrides()
    env_map = os.environ if env is None else env

    try:
        layout = workspace_mod.ensure_workspace(env=env_map, path=workspace_path)
    except workspace_mod.WorkspaceError as exc:
        raise SettingsError(str(exc)) from exc

    explicit = config_path or _env_path(env_map)
    target = explicit or layout.path_for("config") / CONFIG_FILENAME

    table: MutableMapping[str, Any] = copy.deepcopy(dict(_DEFAULTS))
    loaded: Optional[Path] = None
    if target.exists():
        try:
            core_config.merge_defaults(table, core_config.load_toml(target))
        except core_config.TomlConfigError as exc:
            raise SettingsError(str(exc)) from exc
        loaded = target
    elif explicit is not None:
        raise SettingsError(f"Config file not found: {target}")

    model = _first(
        overrides.model, _env(env_map, "MODEL"), table["ai"]["model"]
    )
    level = _first(
        overrides.log_level,
        _env(env_map, "LOG_LEVEL"),
        table["logging"]["level"],
    )

    settings = Settings(
        ai=AISettings(
            model=_string(model, "ai.model"),
            temperature=_number(table["ai"]["temperature"], "ai.temperature"),
            max_tokens=_positive(table["ai"]["max_tokens"], "ai.max_tokens"),
        ),
        limits=LimitSettings(
            extract_max_chars=_positive(
                table["limits"]["extract_max_chars"], "limits.extract_max_chars"
            ),
            prompt_max_chars=_positive(
                table["limits"]["prompt_max_chars"], "limits.prompt_max_chars"
            ),
        ),
        quiz=QuizSettings(
            default_questions=_positive(
                table["quiz"]["default_questions"], "quiz.default_questions"
            ),
            question_options=_options(
                table["quiz"]["question_options"], "quiz.question_options"
            ),
        ),
        plan=PlanSettings(
            default_days=_positive(
                table["plan"]["default_days"], "plan.default_days"
            ),
            day_options=_options(
                table["plan"]["day_options"], "plan.day_options"
            ),
        ),
        log_level=_string(level, "logging.level").upper(),
    )
    return LoadResult(settings=settings, layout=layout, config_path=loaded)


def _env_path(env_map: Mapping[str, str]) -> Optional[Path]:
    raw = (env_map.get(CONFIG_ENV) or "").strip()
    return Path(raw).expanduser() if raw else None


def _env(env_map: Mapping[str, str], key: str) -> Optional[str]:
    raw = (env_map.get(f"{ENV_PREFIX}{key}") or "").strip()
    return raw or None


def _first(*candidates: Any) -> Any:
    for candidate in candidates:
        if candidate is not None:
            return candidate
    return None


def _string(value: Any, key: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise SettingsError(f"{key} must be a non-empty string.")
    return value.strip()


def _number(value: Any, key: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise SettingsError(f"{key} must be a number.")
    return float(value)


def _positive(value: Any, key: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise SettingsError(f"{key} must be a positive integer.")
    return value


def _options(value: Any, key: str) -> tuple[int, ...]:
    if not isinstance(value, list) or not value:
        raise SettingsError(f"{key} must be a non-empty list of integers.")
    return tuple(_positive(item, key) for item in value)
