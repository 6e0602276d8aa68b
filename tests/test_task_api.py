# tests/test_task_api.py

from __future__ import annotations

from datetime import date

import pytest

from tasklines.tasks import task_api
from tasklines.tasks.task_models import SyncAction, TaskPriority, TaskStatus, TaskValidationError
from tasklines.tasks.task_store import StoreOperation, TaskStore


def test_add_task_builds_and_queues(store: TaskStore) -> None:
    task = task_api.add_task(
        store, description="Renew passport", priority="high", due_date="2024-09-01", tags=["admin"]
    )

    assert task.description == "Renew passport #admin"
    assert task.priority == TaskPriority.HIGH
    assert task.due_date == date(2024, 9, 1)
    assert task.created_date == date.today()

    entry = store.find_entry(task.id)
    assert entry is not None
    assert entry.meta.to_be_synced_action == SyncAction.ADD


def test_add_task_rejects_invalid_input(store: TaskStore) -> None:
    with pytest.raises(TaskValidationError):
        task_api.add_task(store, description="  ")
    assert store.overlay == ()


def test_add_from_line_keeps_typed_status_and_dates(store: TaskStore) -> None:
    task = task_api.add_from_line(store, "- [/] Draft report [created:: 2024-01-02] [due:: 2024-01-09]")
    assert task.status == TaskStatus.IN_PROGRESS
    assert task.created_date == date(2024, 1, 2)
    assert task.raw_line == "- [/] Draft report [created:: 2024-01-02] [due:: 2024-01-09]"


def test_edit_task_rederives_tags_from_new_description(store: TaskStore) -> None:
    task = task_api.add_task(store, description="Buy paint #home")

    edited = task_api.edit_task(store, task.id, description="Buy brushes #diy")

    assert edited.tags == ("diy",)
    assert edited.description == "Buy brushes #diy"


def test_edit_task_unknown_field_or_id(store: TaskStore) -> None:
    task = task_api.add_task(store, description="x")
    with pytest.raises(KeyError):
        task_api.edit_task(store, task.id, colour="red")
    with pytest.raises(KeyError):
        task_api.edit_task(store, "missing", description="y")


def test_set_status_stamps_and_clears_completion(store: TaskStore) -> None:
    task = task_api.add_task(store, description="Run")

    done = task_api.set_status(store, task.id, "done")
    assert done.done_date == date.today()

    reopened = task_api.set_status(store, task.id, TaskStatus.TODO)
    assert reopened.done_date is None


def test_delete_and_retry(store: TaskStore) -> None:
    task = task_api.add_task(store, description="Gone soon")
    assert task_api.retry_task(store, task.id) is False

    store.apply(StoreOperation.sync_failed(task.id, "nope", max_retries=1))
    assert task_api.retry_task(store, task.id) is True

    task_api.delete_task(store, task.id)
    entry = store.find_entry(task.id)
    assert entry is not None
    assert entry.meta.to_be_synced_action == SyncAction.DELETE

    with pytest.raises(KeyError):
        task_api.delete_task(store, "missing")
