from __future__ import annotations

import pytest

from study_assistant.core import workspace


def test_ensure_workspace_creates_directories(tmp_path, monkeypatch):
    root = tmp_path / "data-root"
    monkeypatch.setenv(workspace.WORKSPACE_ENV, str(root))

    layout = workspace.ensure_workspace()

    assert layout.home == root
    for name in ("config", "logs", "store"):
        assert layout.path_for(name) == root / name
        assert layout.path_for(name).is_dir()


def test_ensure_workspace_is_idempotent(tmp_path):
    first = workspace.ensure_workspace(path=tmp_path / "ws")
    second = workspace.ensure_workspace(path=tmp_path / "ws")

    assert first == second


def test_explicit_path_wins_over_env(tmp_path, monkeypatch):
    monkeypatch.setenv(workspace.WORKSPACE_ENV, str(tmp_path / "from-env"))

    layout = workspace.ensure_workspace(path=tmp_path / "explicit")

    assert layout.home == tmp_path / "explicit"
    assert not (tmp_path / "from-env").exists()


def test_env_mapping_can_be_injected(tmp_path):
    layout = workspace.ensure_workspace(
        env={workspace.WORKSPACE_ENV: str(tmp_path / "mapped")}
    )

    assert layout.home == tmp_path / "mapped"


def test_file_in_place_of_workspace_is_rejected(tmp_path):
    blocker = tmp_path / "occupied"
    blocker.write_text("not a directory", encoding="utf-8")

    with pytest.raises(workspace.WorkspaceError):
        workspace.ensure_workspace(path=blocker)


def test_file_in_place_of_subdirectory_is_rejected(tmp_path):
    root = tmp_path / "ws"
    root.mkdir()
    (root / "logs").write_text("oops", encoding="utf-8")

    with pytest.raises(workspace.WorkspaceError):
        workspace.ensure_workspace(path=root)


def test_unknown_directory_key(tmp_path):
    layout = workspace.ensure_workspace(path=tmp_path / "ws")

    with pytest.raises(KeyError):
        layout.path_for("cache")
