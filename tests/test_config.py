# tests/test_config.py

from __future__ import annotations

from pathlib import Path

import pytest

from tasklines.config import Settings, get_settings

_VARS = (
    "APP_NAME",
    "LOG_LEVEL",
    "DATA_DIR",
    "VAULT_DIR",
    "DEFAULT_PATH",
    "DEFAULT_HEADING",
    "FETCH_INTERVAL_SECONDS",
    "MAX_SYNC_RETRIES",
    "RETRY_DELAY_SECONDS",
)


@pytest.fixture()
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for name in _VARS:
        monkeypatch.delenv(f"TASKLINES_{name}", raising=False)
    return monkeypatch


def test_defaults(clean_env: pytest.MonkeyPatch) -> None:
    s = Settings.from_env()
    assert s.app_name == "tasklines"
    assert s.log_level == "INFO"
    assert s.data_dir == Path(".local/tasklines")
    assert s.vault_dir == Path(".")
    assert s.default_path == "Tasks.md"
    assert s.default_heading == "# Tasks"
    assert s.fetch_interval_seconds == 5.0
    assert s.max_sync_retries == 3
    assert s.retry_delay_seconds == 1.0


def test_overrides_from_env(clean_env: pytest.MonkeyPatch, tmp_path: Path) -> None:
    clean_env.setenv("TASKLINES_LOG_LEVEL", "debug")
    clean_env.setenv("TASKLINES_VAULT_DIR", str(tmp_path))
    clean_env.setenv("TASKLINES_DEFAULT_PATH", "inbox/Todo.md")
    clean_env.setenv("TASKLINES_DEFAULT_HEADING", "## Inbox")
    clean_env.setenv("TASKLINES_FETCH_INTERVAL_SECONDS", "0.5")
    clean_env.setenv("TASKLINES_MAX_SYNC_RETRIES", "5")

    s = Settings.from_env()

    assert s.log_level == "DEBUG"
    assert s.vault_dir == tmp_path
    assert s.default_path == "inbox/Todo.md"
    assert s.default_heading == "## Inbox"
    assert s.fetch_interval_seconds == 0.5
    assert s.max_sync_retries == 5


def test_unparseable_numbers_fall_back(clean_env: pytest.MonkeyPatch) -> None:
    clean_env.setenv("TASKLINES_MAX_SYNC_RETRIES", "three")
    clean_env.setenv("TASKLINES_RETRY_DELAY_SECONDS", "soon")
    clean_env.setenv("TASKLINES_FETCH_INTERVAL_SECONDS", " ")

    s = Settings.from_env()

    assert s.max_sync_retries == 3
    assert s.retry_delay_seconds == 1.0
    assert s.fetch_interval_seconds == 5.0


def test_settings_are_frozen() -> None:
    s = get_settings()
    with pytest.raises(AttributeError):
        s.app_name = "other"  # type: ignore[misc]
