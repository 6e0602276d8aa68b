# src/tasklines/tasks/task_api.py

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from typing import Any

from .line_codec import decode_line
from .task_builder import DEFAULT_PATH, TaskBuilder
from .task_models import Task, TaskPriority, TaskStatus
from .task_store import StoreOperation, TaskStore

logger = logging.getLogger(__name__)


def _require(store: TaskStore, task_id: str) -> Task:
    entry = store.find_entry(task_id)
    if entry is None:
        raise KeyError(f"No task with id={task_id!r}")
    return entry.task


def add_task(
    store: TaskStore,
    *,
    description: str,
    priority: TaskPriority | str = TaskPriority.MEDIUM,
    due_date: date | str | None = None,
    tags: list[str] | None = None,
    path: str = DEFAULT_PATH,
) -> Task:
    """
    Convenience helper: build a new task and queue it for writing.
    Raises TaskValidationError when the fields do not form a valid task.
    """
    builder = (
        TaskBuilder(default_path=path)
        .set_description(description)
        .set_priority(priority)
        .set_due_date(due_date)
        .set_created_date(date.today())
    )
    if tags:
        builder.set_tags(tags)

    task = builder.build().unwrap()
    store.apply(StoreOperation.local_add([task]))
    logger.info("Queued new task id=%s path=%s", task.id, task.path)
    return task


def add_from_line(store: TaskStore, text: str, *, path: str = DEFAULT_PATH) -> Task:
    """
    Add a task typed as free text or as a full "- [ ] ... [due:: ...]" line.

    Attributes the model does not know are kept: the typed text becomes the
    raw_line that the add is merged over.
    """
    stripped = text.strip()
    line = stripped if stripped.startswith("- [") else f"- [ ] {stripped}"
    parsed = decode_line(line, path=path)

    builder = TaskBuilder(parsed).set_path(path)
    if parsed.created_date is None:
        builder.set_created_date(date.today())

    task = replace(builder.build().unwrap(), raw_line=line)
    store.apply(StoreOperation.local_add([task]))
    logger.info("Queued typed task id=%s", task.id)
    return task


def edit_task(store: TaskStore, task_id: str, **changes: Any) -> Task:
    """
    Apply field changes to an existing task, e.g. edit_task(store, "abc", description="x").

    Each keyword maps to the builder setter of the same name (set_<name>).
    Raises KeyError for an unknown id or field, TaskValidationError on invalid input.
    """
    builder = TaskBuilder(_require(store, task_id))
    if "description" in changes and "tags" not in changes:
        # Tags live in the description; re-derive them from the new text.
        builder.set_tags(())
    for name, value in changes.items():
        setter = getattr(builder, f"set_{name}", None)
        if setter is None:
            raise KeyError(f"Unknown task field: {name}")
        setter(value)

    task = builder.build().unwrap()
    store.apply(StoreOperation.local_update([task]))
    logger.info("Queued edit task_id=%s fields=%s", task_id, ",".join(sorted(changes)))
    return task


def set_status(store: TaskStore, task_id: str, status: TaskStatus | str) -> Task:
    """Change status; done stamps the completion date, anything else clears it."""
    new_status = TaskStatus(status)
    done = date.today() if new_status == TaskStatus.DONE else None
    return edit_task(store, task_id, status=new_status, done_date=done)


def delete_task(store: TaskStore, task_id: str) -> Task:
    task = _require(store, task_id)
    store.apply(StoreOperation.local_delete([task]))
    logger.info("Queued delete task_id=%s", task_id)
    return task


def retry_task(store: TaskStore, task_id: str) -> bool:
    """Clear a sync failure so the dispatcher picks the entry up again. False if nothing to retry."""
    entry = store.find_entry(task_id)
    if entry is None or not entry.meta.sync_failed:
        return False
    store.apply(StoreOperation.clear_sync_failure(task_id))
    logger.info("Cleared sync failure task_id=%s", task_id)
    return True

