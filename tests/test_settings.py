from __future__ import annotations

import tomllib

import pytest

from study_assistant.settings import (
    CONFIG_FILENAME,
    SETTINGS_TEMPLATE,
    Settings,
    SettingsError,
    SettingsOverrides,
    load_settings,
)


def _write_config(layout_home, body: str):
    path = layout_home / "config" / CONFIG_FILENAME
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(body, encoding="utf-8")
    return path


def test_defaults_without_config(tmp_path):
    result = load_settings(workspace_path=tmp_path / "ws", env={})

    assert result.settings == Settings()
    assert result.config_path is None
    assert result.layout.home == tmp_path / "ws"


def test_template_matches_defaults(tmp_path):
    home = tmp_path / "ws"
    path = _write_config(home, SETTINGS_TEMPLATE)

    result = load_settings(workspace_path=home, env={})

    assert result.config_path == path
    assert result.settings == Settings()
    assert tomllib.loads(SETTINGS_TEMPLATE)["quiz"]["question_options"] == [
        5,
        10,
        15,
        20,
    ]


def test_toml_values_are_applied(tmp_path):
    home = tmp_path / "ws"
    _write_config(
        home,
        '[ai]\nmodel = "gpt-4.1"\n\n[quiz]\ndefault_questions = 5\n'
        "question_options = [5, 25]\n\n[logging]\nlevel = \"debug\"\n",
    )

    settings = load_settings(workspace_path=home, env={}).settings

    assert settings.ai.model == "gpt-4.1"
    assert settings.ai.temperature == 0.2
    assert settings.quiz.default_questions == 5
    assert settings.quiz.question_options == (5, 25)
    assert settings.log_level == "DEBUG"


def test_precedence_cli_over_env_over_toml(tmp_path):
    home = tmp_path / "ws"
    _write_config(home, '[ai]\nmodel = "from-toml"\n')
    env = {"STUDY_ASSISTANT_MODEL": "from-env"}

    from_env = load_settings(workspace_path=home, env=env).settings
    from_cli = load_settings(
        workspace_path=home,
        env=env,
        overrides=SettingsOverrides(model="from-cli", log_level="warning"),
    ).settings

    assert from_env.ai.model == "from-env"
    assert from_cli.ai.model == "from-cli"
    assert from_cli.log_level == "WARNING"


def test_config_path_from_env(tmp_path):
    custom = tmp_path / "elsewhere.toml"
    custom.write_text("[plan]\ndefault_days = 14\n", encoding="utf-8")

    result = load_settings(
        workspace_path=tmp_path / "ws",
        env={"STUDY_ASSISTANT_CONFIG": str(custom)},
    )

    assert result.config_path == custom
    assert result.settings.plan.default_days == 14


def test_explicit_missing_config_is_an_error(tmp_path):
    with pytest.raises(SettingsError, match="not found"):
        load_settings(
            config_path=tmp_path / "missing.toml",
            workspace_path=tmp_path / "ws",
            env={},
        )


@pytest.mark.parametrize(
    "body",
    [
        "[ai]\nmodle = \"typo\"\n",
        "[unknown]\nkey = 1\n",
        "[ai]\nmax_tokens = 0\n",
        "[ai]\ntemperature = \"hot\"\n",
        "[quiz]\nquestion_options = []\n",
        "[plan]\nday_options = [3, \"five\"]\n",
        "[limits]\nprompt_max_chars = true\n",
        "ai = 3\n",
        "not toml at all [",
    ],
)
def test_invalid_config_raises_settings_error(tmp_path, body):
    home = tmp_path / "ws"
    _write_config(home, body)

    with pytest.raises(SettingsError):
        load_settings(workspace_path=home, env={})
