# src/tasklines/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the vault, store and dispatcher into AppState.
"""

from __future__ import annotations

import logging
from pathlib import Path

from ..config import get_settings
from ..core.state import AppState
from ..tasks.task_dispatcher import SyncDispatcher
from ..tasks.task_store import TaskStore
from ..vault.markdown_vault import MarkdownVault

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    Path(settings.data_dir).mkdir(parents=True, exist_ok=True)
    Path(settings.vault_dir).mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().

    The dispatcher is built but not attached; attach() needs a running event loop.
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    store = TaskStore()
    vault = MarkdownVault(settings.vault_dir)
    dispatcher = SyncDispatcher.from_settings(store, vault, settings)

    logger.info("Vault root: %s", vault.root)
    return AppState(settings=settings, store=store, vault=vault, dispatcher=dispatcher)
