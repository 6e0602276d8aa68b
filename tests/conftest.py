# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from tasklines.core.state import AppState
from tasklines.tasks.task_dispatcher import SyncDispatcher
from tasklines.tasks.task_store import TaskStore
from tasklines.vault.markdown_vault import MarkdownVault

from .fakes import FakeClock


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the dispatcher.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="tasklines-test",
        log_level="DEBUG",
        data_dir=tmp_path / "data",
        vault_dir=tmp_path / "vault",
        default_path="Tasks.md",
        default_heading="# Tasks",
        fetch_interval_seconds=0.01,
        max_sync_retries=3,
        retry_delay_seconds=0.0,
    )


@pytest.fixture()
def store() -> TaskStore:
    # Every apply() sees a strictly later timestamp.
    return TaskStore(clock=FakeClock())


@pytest.fixture()
def vault(settings: SimpleNamespace) -> MarkdownVault:
    settings.vault_dir.mkdir(parents=True, exist_ok=True)
    return MarkdownVault(settings.vault_dir)


@pytest.fixture()
def state(settings: SimpleNamespace, store: TaskStore, vault: MarkdownVault) -> AppState:
    """AppState wired with a real store and a vault in tmp_path (dispatcher not attached)."""
    return AppState(
        settings=settings,
        store=store,
        vault=vault,
        dispatcher=SyncDispatcher.from_settings(store, vault, settings),
    )
