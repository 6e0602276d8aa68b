# src/tasklines/tasks/task_models.py

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date
from enum import StrEnum


def new_task_id() -> str:
    return uuid.uuid4().hex[:10]


class TaskStatus(StrEnum):
    """
    Checklist status.

    Each status has a one-character checkbox marker in the line format:
    todo -> " ", in-progress -> "/", done -> "x", cancelled -> "-".
    """

    TODO = "todo"
    IN_PROGRESS = "in-progress"
    DONE = "done"
    CANCELLED = "cancelled"

    @property
    def marker(self) -> str:
        return _STATUS_TO_MARKER[self]

    @classmethod
    def from_marker(cls, raw: str | None) -> TaskStatus:
        if not raw:
            return cls.TODO
        return _MARKER_TO_STATUS.get(raw, cls.TODO)


_STATUS_TO_MARKER = {
    TaskStatus.TODO: " ",
    TaskStatus.IN_PROGRESS: "/",
    TaskStatus.DONE: "x",
    TaskStatus.CANCELLED: "-",
}

_MARKER_TO_STATUS = {
    " ": TaskStatus.TODO,
    "/": TaskStatus.IN_PROGRESS,
    "x": TaskStatus.DONE,
    "X": TaskStatus.DONE,
    "-": TaskStatus.CANCELLED,
}


class TaskPriority(StrEnum):
    LOWEST = "lowest"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    HIGHEST = "highest"

    @property
    def rank(self) -> int:
        return _PRIORITY_ORDER.index(self)

    @classmethod
    def from_text(cls, raw: str | None) -> TaskPriority:
        if not raw:
            return cls.MEDIUM
        try:
            return cls(raw.strip().lower())
        except ValueError:
            return cls.MEDIUM


_PRIORITY_ORDER = (
    TaskPriority.LOWEST,
    TaskPriority.LOW,
    TaskPriority.MEDIUM,
    TaskPriority.HIGH,
    TaskPriority.HIGHEST,
)


class TaskSource(StrEnum):
    MARKDOWN = "markdown"
    TODOIST = "todoist"


class SyncAction(StrEnum):
    ADD = "add"
    EDIT = "edit"
    DELETE = "delete"
    NONE = "none"


class TaskValidationError(ValueError):
    """Raised when a task record fails validation."""


class SyncError(RuntimeError):
    """A dispatch to the document writer failed (returned failure or raised)."""

    def __init__(self, message: str, *, task_id: str, action: SyncAction) -> None:
        super().__init__(message)
        self.task_id = task_id
        self.action = action


@dataclass(frozen=True, slots=True)
class Task:
    id: str
    description: str
    priority: TaskPriority = TaskPriority.MEDIUM
    status: TaskStatus = TaskStatus.TODO
    recurs: str | None = None

    created_date: date | None = None
    start_date: date | None = None
    scheduled_date: date | None = None
    due_date: date | None = None
    done_date: date | None = None

    blocks: tuple[str, ...] = ()
    path: str = ""
    symbol: str = ""
    source: TaskSource = TaskSource.MARKDOWN
    tags: tuple[str, ...] = ()
    subtasks: tuple[Task, ...] = ()

    # Exact text this record was last decoded from or rendered to.
    raw_line: str = ""


@dataclass(frozen=True, slots=True)
class SyncMetadata:
    last_updated: float
    last_synced: float | None = None
    needs_sync: bool = False
    to_be_synced_action: SyncAction = SyncAction.NONE
    previous_version: Task | None = None
    is_editing: bool = False  # UI hint only
    retry_count: int = 0
    sync_failed: bool = False
    error_message: str | None = None


@dataclass(frozen=True, slots=True)
class OverlayEntry:
    task: Task
    meta: SyncMetadata


@dataclass(frozen=True, slots=True)
class IndexEntry:
    """
    One task snapshot as reported by the index provider.

    `text` is the body of the line WITHOUT the leading "- [c]" marker;
    `status` is the checkbox character and is authoritative.
    """

    status: str
    text: str
    path: str
    line: int = 0
    subtasks: tuple[IndexEntry, ...] = field(default_factory=tuple)
