# src/tasklines/tasks/task_store.py

"""
Reconciliation store.

State is one immutable overlay: a tuple of (Task, SyncMetadata) entries.
Every change goes through reduce_overlay(overlay, operation, now), a pure function,
and TaskStore.apply() swaps the whole value at once, so readers never observe a
half-applied operation.

Rules worth keeping in mind:
- a pending local change (needs_sync=True) is never overwritten by a remote snapshot
- entries that the remote snapshot no longer reports are dropped only when nothing
  local is pending for them
- a local delete keeps the entry until the delete has been written to storage
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, replace
from datetime import date
from enum import StrEnum

from .dates import DateCategory, date_category, ordered_date_categories
from .task_models import OverlayEntry, SyncAction, SyncMetadata, Task, TaskStatus

logger = logging.getLogger(__name__)

Overlay = tuple[OverlayEntry, ...]
OverlayListener = Callable[[Overlay], None]

DEFAULT_MAX_RETRIES = 3


class OperationKind(StrEnum):
    LOCAL_ADD = "local_add"
    LOCAL_UPDATE = "local_update"
    LOCAL_DELETE = "local_delete"
    REMOTE_UPDATE = "remote_update"
    RESET = "reset"

    # Dispatch outcomes
    SYNC_CONFIRMED = "sync_confirmed"
    SYNC_FAILED = "sync_failed"
    SYNC_REMOVED = "sync_removed"
    CLEAR_SYNC_FAILURE = "clear_sync_failure"


@dataclass(frozen=True, slots=True)
class StoreOperation:
    kind: OperationKind
    tasks: tuple[Task, ...] = ()
    task_id: str | None = None
    error: str | None = None
    based_on: float | None = None
    max_retries: int = DEFAULT_MAX_RETRIES

    # ---- constructors ----

    @classmethod
    def local_add(cls, tasks: Iterable[Task]) -> StoreOperation:
        return cls(OperationKind.LOCAL_ADD, tasks=tuple(tasks))

    @classmethod
    def local_update(cls, tasks: Iterable[Task]) -> StoreOperation:
        return cls(OperationKind.LOCAL_UPDATE, tasks=tuple(tasks))

    @classmethod
    def local_delete(cls, tasks: Iterable[Task]) -> StoreOperation:
        return cls(OperationKind.LOCAL_DELETE, tasks=tuple(tasks))

    @classmethod
    def remote_update(cls, tasks: Iterable[Task]) -> StoreOperation:
        return cls(OperationKind.REMOTE_UPDATE, tasks=tuple(tasks))

    @classmethod
    def reset(cls) -> StoreOperation:
        return cls(OperationKind.RESET)

    @classmethod
    def sync_confirmed(cls, task: Task, *, based_on: float) -> StoreOperation:
        return cls(OperationKind.SYNC_CONFIRMED, tasks=(task,), task_id=task.id, based_on=based_on)

    @classmethod
    def sync_failed(
        cls, task_id: str, error: str, *, max_retries: int = DEFAULT_MAX_RETRIES
    ) -> StoreOperation:
        return cls(OperationKind.SYNC_FAILED, task_id=task_id, error=error, max_retries=max_retries)

    @classmethod
    def sync_removed(cls, task_id: str) -> StoreOperation:
        return cls(OperationKind.SYNC_REMOVED, task_id=task_id)

    @classmethod
    def clear_sync_failure(cls, task_id: str) -> StoreOperation:
        return cls(OperationKind.CLEAR_SYNC_FAILURE, task_id=task_id)


@dataclass(frozen=True, slots=True)
class TagOption:
    value: str
    label: str


# ---- transitions ----


def _index_by_id(entries: list[OverlayEntry], task_id: str) -> int:
    for i, e in enumerate(entries):
        if e.task.id == task_id:
            return i
    return -1


def _local_add(entries: list[OverlayEntry], tasks: tuple[Task, ...], now: float) -> None:
    for task in tasks:
        if _index_by_id(entries, task.id) != -1:
            logger.warning("LOCAL_ADD skipped: id=%s is already in the overlay", task.id)
            continue
        meta = SyncMetadata(
            last_updated=now,
            needs_sync=True,
            to_be_synced_action=SyncAction.ADD,
        )
        entries.append(OverlayEntry(task=task, meta=meta))


def _local_update(entries: list[OverlayEntry], tasks: tuple[Task, ...], now: float) -> None:
    for task in tasks:
        i = _index_by_id(entries, task.id)
        if i == -1:
            logger.debug("LOCAL_UPDATE ignored: id=%s not in overlay", task.id)
            continue
        existing = entries[i]
        if not task.raw_line:
            task = replace(task, raw_line=existing.task.raw_line)

        # Never written yet: the pending add will write the new content.
        if existing.meta.needs_sync and existing.meta.to_be_synced_action == SyncAction.ADD:
            meta = replace(existing.meta, last_updated=now)
        else:
            # previous_version is what the document holds; stacked edits keep the first one.
            previous = existing.task
            if (
                existing.meta.needs_sync
                and existing.meta.to_be_synced_action == SyncAction.EDIT
                and existing.meta.previous_version is not None
            ):
                previous = existing.meta.previous_version
            meta = replace(
                existing.meta,
                previous_version=previous,
                needs_sync=True,
                to_be_synced_action=SyncAction.EDIT,
                last_updated=now,
            )
        entries[i] = OverlayEntry(task=task, meta=meta)


def _local_delete(entries: list[OverlayEntry], tasks: tuple[Task, ...], now: float) -> None:
    for task in tasks:
        i = _index_by_id(entries, task.id)
        if i == -1:
            logger.debug("LOCAL_DELETE ignored: id=%s not in overlay", task.id)
            continue
        existing = entries[i]
        # A pending edit was never written: the document still holds previous_version.
        pending = existing.meta.to_be_synced_action
        keeps_previous = existing.meta.needs_sync and pending in (SyncAction.EDIT, SyncAction.DELETE)
        meta = replace(
            existing.meta,
            needs_sync=True,
            to_be_synced_action=SyncAction.DELETE,
            previous_version=existing.meta.previous_version if keeps_previous else None,
            last_updated=now,
        )
        entries[i] = OverlayEntry(task=existing.task, meta=meta)


def _remote_update(entries: list[OverlayEntry], tasks: tuple[Task, ...], now: float) -> None:
    remote_ids = {t.id for t in tasks}
    matched: set[int] = set()

    for remote in tasks:
        i = _index_by_id(entries, remote.id)
        if i == -1:
            # Fingerprint fallback: same (description, status), not claimed by another remote task.
            for j, e in enumerate(entries):
                if j in matched or e.task.id in remote_ids:
                    continue
                if e.task.description == remote.description and e.task.status == remote.status:
                    i = j
                    break

        if i == -1:
            entries.append(
                OverlayEntry(
                    task=remote,
                    meta=SyncMetadata(last_updated=now, last_synced=now),
                )
            )
            matched.add(len(entries) - 1)
            continue

        matched.add(i)
        local = entries[i]
        if local.meta.needs_sync:
            # Pending local change wins; the entry (id included) is left as it is.
            continue

        entries[i] = OverlayEntry(
            task=remote,
            meta=replace(
                local.meta,
                last_synced=now,
                needs_sync=False,
                to_be_synced_action=SyncAction.NONE,
                previous_version=local.task,
            ),
        )

    kept = [e for e in entries if e.meta.needs_sync or e.task.id in remote_ids]
    dropped = len(entries) - len(kept)
    if dropped:
        logger.debug("REMOTE_UPDATE dropped %d entries absent upstream", dropped)
    entries[:] = kept


def _sync_confirmed(entries: list[OverlayEntry], op: StoreOperation, now: float) -> None:
    if not op.tasks:
        return
    synced = op.tasks[0]
    i = _index_by_id(entries, synced.id)
    if i == -1:
        logger.debug("SYNC_CONFIRMED discarded: id=%s no longer in overlay", synced.id)
        return
    current = entries[i]

    if op.based_on is not None and current.meta.last_updated > op.based_on:
        # A newer local change arrived while this one was being written: it stays pending,
        # based on what is now in the document.
        action = current.meta.to_be_synced_action
        if action == SyncAction.ADD:
            action = SyncAction.EDIT
        task = current.task
        previous = current.meta.previous_version
        if action == SyncAction.EDIT:
            previous = synced
        elif action == SyncAction.DELETE:
            task = replace(task, raw_line=synced.raw_line)
            previous = None
        entries[i] = OverlayEntry(
            task=task,
            meta=replace(
                current.meta,
                last_synced=now,
                to_be_synced_action=action,
                previous_version=previous,
                retry_count=0,
                sync_failed=False,
                error_message=None,
            ),
        )
        return

    entries[i] = OverlayEntry(
        task=synced,
        meta=replace(
            current.meta,
            last_synced=now,
            needs_sync=False,
            to_be_synced_action=SyncAction.NONE,
            retry_count=0,
            sync_failed=False,
            error_message=None,
        ),
    )


def _sync_failed(entries: list[OverlayEntry], op: StoreOperation) -> None:
    i = _index_by_id(entries, op.task_id or "")
    if i == -1:
        return
    current = entries[i]
    retry_count = current.meta.retry_count + 1
    entries[i] = OverlayEntry(
        task=current.task,
        meta=replace(
            current.meta,
            retry_count=retry_count,
            sync_failed=current.meta.sync_failed or retry_count >= op.max_retries,
            error_message=op.error,
        ),
    )


def reduce_overlay(overlay: Overlay, op: StoreOperation, now: float | None = None) -> Overlay:
    """Pure transition: (overlay, operation) -> new overlay. Never raises on bad input."""
    if now is None:
        now = time.time()

    kind = op.kind
    if kind == OperationKind.RESET:
        return ()

    entries = list(overlay)

    if kind == OperationKind.LOCAL_ADD:
        _local_add(entries, op.tasks, now)
    elif kind == OperationKind.LOCAL_UPDATE:
        _local_update(entries, op.tasks, now)
    elif kind == OperationKind.LOCAL_DELETE:
        _local_delete(entries, op.tasks, now)
    elif kind == OperationKind.REMOTE_UPDATE:
        _remote_update(entries, op.tasks, now)
    elif kind == OperationKind.SYNC_CONFIRMED:
        _sync_confirmed(entries, op, now)
    elif kind == OperationKind.SYNC_FAILED:
        _sync_failed(entries, op)
    elif kind == OperationKind.SYNC_REMOVED:
        i = _index_by_id(entries, op.task_id or "")
        if i != -1:
            del entries[i]
    elif kind == OperationKind.CLEAR_SYNC_FAILURE:
        i = _index_by_id(entries, op.task_id or "")
        if i != -1:
            e = entries[i]
            entries[i] = OverlayEntry(
                task=e.task, meta=replace(e.meta, retry_count=0, sync_failed=False)
            )
    else:
        logger.warning("Unknown store operation: %s", kind)

    return tuple(entries)


# ---- read views ----


def all_tasks(overlay: Overlay) -> list[Task]:
    return [e.task for e in overlay]


def entries_needing_sync(overlay: Overlay) -> list[OverlayEntry]:
    return [e for e in overlay if e.meta.needs_sync]


def failed_entries(overlay: Overlay) -> list[OverlayEntry]:
    return [e for e in overlay if e.meta.sync_failed]


def tasks_by_status(overlay: Overlay, *statuses: TaskStatus) -> list[Task]:
    wanted = set(statuses)
    return [e.task for e in overlay if e.task.status in wanted]


def find_entry(overlay: Overlay, task_id: str) -> OverlayEntry | None:
    for e in overlay:
        if e.task.id == task_id:
            return e
    return None


def available_tags(overlay: Overlay) -> list[TagOption]:
    """Distinct tags across all entries, case-insensitive; the first spelling seen is the label."""
    seen: dict[str, TagOption] = {}
    for e in overlay:
        for tag in e.task.tags:
            value = tag.strip().lstrip("#").lower()
            if value and value not in seen:
                seen[value] = TagOption(value=value, label=tag.strip().lstrip("#"))
    return list(seen.values())


def tasks_by_date_category(
    overlay: Overlay, today: date | None = None
) -> dict[DateCategory, list[Task]]:
    """Group tasks by due date bucket (every category present, in display order)."""
    groups: dict[DateCategory, list[Task]] = {c: [] for c in ordered_date_categories()}
    for e in overlay:
        groups[date_category(e.task.due_date, today)].append(e.task)
    return groups


class TaskStore:
    """
    Owner of the overlay value.

    apply() is the only write path. Subscribers are notified synchronously with the
    new overlay after every operation that changed it.
    """

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        self._overlay: Overlay = ()
        self._clock = clock
        self._listeners: list[OverlayListener] = []

    @property
    def overlay(self) -> Overlay:
        return self._overlay

    def apply(self, op: StoreOperation) -> Overlay:
        before = self._overlay
        after = reduce_overlay(before, op, self._clock())
        self._overlay = after
        logger.debug("Store %s: %d -> %d entries", op.kind.value, len(before), len(after))

        if after != before:
            for listener in list(self._listeners):
                try:
                    listener(after)
                except Exception:
                    logger.exception("Overlay listener failed")
        return after

    def subscribe(self, listener: OverlayListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # ---- views ----

    def all_tasks(self) -> list[Task]:
        return all_tasks(self._overlay)

    def entries_needing_sync(self) -> list[OverlayEntry]:
        return entries_needing_sync(self._overlay)

    def failed_entries(self) -> list[OverlayEntry]:
        return failed_entries(self._overlay)

    def tasks_by_status(self, *statuses: TaskStatus) -> list[Task]:
        return tasks_by_status(self._overlay, *statuses)

    def find_entry(self, task_id: str) -> OverlayEntry | None:
        return find_entry(self._overlay, task_id)

    def available_tags(self) -> list[TagOption]:
        return available_tags(self._overlay)

    def tasks_by_date_category(self, today: date | None = None) -> dict[DateCategory, list[Task]]:
        return tasks_by_date_category(self._overlay, today)
