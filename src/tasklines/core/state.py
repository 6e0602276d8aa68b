# src/tasklines/core/state.py

from __future__ import annotations

from dataclasses import dataclass

from ..tasks.task_dispatcher import SyncDispatcher
from ..tasks.task_store import TaskStore
from ..vault.markdown_vault import MarkdownVault


@dataclass
class AppState:
    """
    Runtime state shared by the CLI and background loops.

    `vault` plays both ports: it is the index provider for the fetch loop and the
    document writer behind `dispatcher`.
    """

    settings: object
    store: TaskStore
    vault: MarkdownVault
    dispatcher: SyncDispatcher
