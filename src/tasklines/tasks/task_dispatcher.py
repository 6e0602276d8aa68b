# src/tasklines/tasks/task_dispatcher.py

from __future__ import annotations

"""
Sync dispatcher.

Pushes pending overlay entries out to the document writer:
- add    -> writer.create_line(...)
- edit   -> writer.edit_line(merged line, previous line, path)
- delete -> writer.delete_line(previous line, path)

Outcomes go back into the store as SYNC_* operations. Failures are counted; after
max_retries consecutive failures the entry is flagged sync_failed and left alone
until someone clears the flag.

Also hosts the periodic remote fetch loop that feeds REMOTE_UPDATE.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import replace

from ..core.ports import DocumentWriter, IndexProvider
from .line_codec import decode_index_entry, encode_task, merge_line
from .task_builder import DEFAULT_PATH
from .task_models import OverlayEntry, SyncAction, SyncError, Task, TaskSource
from .task_store import DEFAULT_MAX_RETRIES, Overlay, StoreOperation, TaskStore

logger = logging.getLogger(__name__)

DEFAULT_HEADING = "# Tasks"

_EntrySignature = tuple[SyncAction, float, int, bool]


def _first_line(text: str) -> str:
    return text.split("\n", 1)[0]


def _signature(entry: OverlayEntry) -> _EntrySignature:
    m = entry.meta
    return (m.to_be_synced_action, m.last_updated, m.retry_count, m.sync_failed)


def render_for_create(task: Task) -> str:
    """
    Line(s) written for a new task.

    The head line is merged over the task's own raw_line (if it was typed by hand it
    may carry extra attributes); subtask lines come from the canonical rendering.
    """
    canonical = encode_task(task).split("\n")
    head = merge_line(task, task.raw_line) if task.raw_line else canonical[0]
    return "\n".join([head, *canonical[1:]])


class SyncDispatcher:
    """
    Event-driven dispatcher bound to one TaskStore.

    attach() subscribes to the store; whenever a pending entry appears or changes,
    a dispatch is scheduled for it. Dispatches for the same id never overlap
    (one asyncio.Lock per id) and always re-read the entry before acting, so a stale
    trigger is a no-op.
    """

    def __init__(
        self,
        store: TaskStore,
        writer: DocumentWriter,
        *,
        default_path: str = DEFAULT_PATH,
        default_heading: str = DEFAULT_HEADING,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay_seconds: float = 1.0,
    ) -> None:
        self._store = store
        self._writer = writer
        self._default_path = default_path
        self._default_heading = default_heading
        self._max_retries = max(1, int(max_retries))
        self._retry_delay = max(0.0, float(retry_delay_seconds))

        # Per-id lock, dropped once no dispatch holds or waits for it.
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}
        self._seen: dict[str, _EntrySignature] = {}
        self._inflight: set[asyncio.Task[None]] = set()
        self._unsubscribe: Callable[[], None] | None = None

    @classmethod
    def from_settings(cls, store: TaskStore, writer: DocumentWriter, settings) -> SyncDispatcher:
        return cls(
            store,
            writer,
            default_path=str(getattr(settings, "default_path", DEFAULT_PATH)),
            default_heading=str(getattr(settings, "default_heading", DEFAULT_HEADING)),
            max_retries=int(getattr(settings, "max_sync_retries", DEFAULT_MAX_RETRIES)),
            retry_delay_seconds=float(getattr(settings, "retry_delay_seconds", 1.0)),
        )

    # ---- lifecycle ----

    def attach(self) -> None:
        """Start reacting to store changes. Must be called from a running event loop."""
        if self._unsubscribe is not None:
            return
        self._unsubscribe = self._store.subscribe(self._on_overlay_changed)
        self._on_overlay_changed(self._store.overlay)
        logger.info("Sync dispatcher attached")

    def close(self) -> None:
        """Stop scheduling new dispatches. In-flight ones run to completion."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
            logger.info("Sync dispatcher detached (%d in flight)", len(self._inflight))

    async def wait_idle(self) -> None:
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    # ---- scheduling ----

    def _on_overlay_changed(self, overlay: Overlay) -> None:
        pending = {e.task.id: e for e in overlay if e.meta.needs_sync}

        for task_id in list(self._seen):
            if task_id not in pending:
                del self._seen[task_id]

        for task_id, entry in pending.items():
            sig = _signature(entry)
            if self._seen.get(task_id) == sig:
                continue
            self._seen[task_id] = sig
            if entry.meta.sync_failed:
                continue
            self._schedule(task_id)

    def _schedule(self, task_id: str) -> None:
        loop = asyncio.get_running_loop()
        t = loop.create_task(self._run(task_id))
        self._inflight.add(t)
        t.add_done_callback(self._inflight.discard)

    async def _run(self, task_id: str) -> None:
        lock = self._locks.setdefault(task_id, asyncio.Lock())
        self._lock_users[task_id] = self._lock_users.get(task_id, 0) + 1
        try:
            async with lock:
                await self._run_locked(task_id)
        finally:
            self._lock_users[task_id] -= 1
            if self._lock_users[task_id] == 0:
                del self._lock_users[task_id]
                self._locks.pop(task_id, None)

    async def _run_locked(self, task_id: str) -> None:
        entry = self._store.find_entry(task_id)
        if entry is None or not entry.meta.needs_sync or entry.meta.sync_failed:
            return

        if entry.meta.retry_count > 0 and self._retry_delay > 0:
            await asyncio.sleep(self._retry_delay * entry.meta.retry_count)
            entry = self._store.find_entry(task_id)
            if entry is None or not entry.meta.needs_sync or entry.meta.sync_failed:
                return

        try:
            await self.dispatch(entry)
        except SyncError as e:
            logger.warning("Sync %s failed task_id=%s: %s", e.action.value, e.task_id, e)
        except Exception:
            logger.exception("Dispatch crashed task_id=%s", task_id)

    # ---- dispatch ----

    async def dispatch(self, entry: OverlayEntry) -> None:
        """
        One attempt to push `entry` out.

        Raises SyncError after recording the failure on the entry. A missing previous
        version for an edit is logged and leaves the entry pending (not retried).
        """
        if not entry.meta.needs_sync:
            return

        action = entry.meta.to_be_synced_action
        if action == SyncAction.ADD:
            await self._dispatch_add(entry)
        elif action == SyncAction.EDIT:
            await self._dispatch_edit(entry)
        elif action == SyncAction.DELETE:
            await self._dispatch_delete(entry)
        else:
            logger.error(
                "Entry task_id=%s needs sync but has no action; leaving it as is", entry.task.id
            )

    async def _dispatch_add(self, entry: OverlayEntry) -> None:
        task = entry.task
        line = render_for_create(task)
        path = task.path or self._default_path

        try:
            written = await self._writer.create_line(line, path, self._default_heading)
        except Exception as e:
            raise self._failure(task.id, SyncAction.ADD, f"{type(e).__name__}: {e}") from e

        if not written:
            raise self._failure(task.id, SyncAction.ADD, f"create_line returned no line for path={path}")

        synced = replace(task, path=path, raw_line=written)
        self._store.apply(StoreOperation.sync_confirmed(synced, based_on=entry.meta.last_updated))
        logger.info("Task %s created in %s", task.id, path)

    async def _dispatch_edit(self, entry: OverlayEntry) -> None:
        task = entry.task
        previous = entry.meta.previous_version
        if previous is None:
            logger.error(
                "Cannot sync edit task_id=%s: no previous version recorded; entry stays pending",
                task.id,
            )
            return

        base = previous.raw_line or encode_task(previous)
        new_line = merge_line(task, base)
        lookup = _first_line(base)
        path = previous.path or task.path or self._default_path

        try:
            written = await self._writer.edit_line(new_line, lookup, path)
        except Exception as e:
            raise self._failure(task.id, SyncAction.EDIT, f"{type(e).__name__}: {e}") from e

        if not written:
            raise self._failure(task.id, SyncAction.EDIT, f"edit_line found no matching line in {path}")

        synced = replace(task, raw_line=written)
        self._store.apply(StoreOperation.sync_confirmed(synced, based_on=entry.meta.last_updated))
        logger.info("Task %s updated in %s", task.id, path)

    async def _dispatch_delete(self, entry: OverlayEntry) -> None:
        task = entry.task

        if entry.meta.last_synced is None:
            # Never written to any document: nothing to delete there.
            self._store.apply(StoreOperation.sync_removed(task.id))
            logger.info("Task %s removed (was never written)", task.id)
            return

        # An unwritten edit leaves the document holding previous_version.
        on_disk = entry.meta.previous_version or task
        lookup = _first_line(on_disk.raw_line or encode_task(on_disk))
        path = on_disk.path or task.path or self._default_path

        try:
            deleted = await self._writer.delete_line(lookup, path)
        except Exception as e:
            raise self._failure(task.id, SyncAction.DELETE, f"{type(e).__name__}: {e}") from e

        if not deleted:
            raise self._failure(task.id, SyncAction.DELETE, f"delete_line found no matching line in {path}")

        self._store.apply(StoreOperation.sync_removed(task.id))
        logger.info("Task %s deleted from %s", task.id, path)

    def _failure(self, task_id: str, action: SyncAction, detail: str) -> SyncError:
        """Record one failed attempt on the entry and return the error to raise."""
        self._store.apply(
            StoreOperation.sync_failed(task_id, detail, max_retries=self._max_retries)
        )
        entry = self._store.find_entry(task_id)
        if entry is not None and entry.meta.sync_failed:
            logger.error(
                "Task %s gave up after %d attempts (%s): %s",
                task_id,
                entry.meta.retry_count,
                action.value,
                detail,
            )
        return SyncError(detail, task_id=task_id, action=action)


# ---- remote fetch ----


async def refresh_once(
    store: TaskStore,
    index: IndexProvider,
    *,
    source: TaskSource = TaskSource.MARKDOWN,
) -> int:
    """Fetch one full snapshot and merge it into the store. Returns the number of top-level tasks."""
    entries = await index.fetch_entries()
    tasks = [decode_index_entry(e, source=source) for e in entries]
    store.apply(StoreOperation.remote_update(tasks))
    return len(tasks)


async def run_remote_fetch_loop(
    store: TaskStore,
    index: IndexProvider,
    *,
    interval_seconds: float = 5.0,
) -> None:
    """
    Polling loop: every interval_seconds pull a snapshot and apply REMOTE_UPDATE.

    A failed fetch is logged and skipped; it never empties the overlay.
    To stop the loop, cancel the coroutine/task.
    """
    sleep_s = max(0.01, float(interval_seconds))

    while True:
        try:
            n = await refresh_once(store, index)
            logger.debug("Remote fetch merged %d tasks", n)
        except Exception:
            logger.exception("Remote fetch failed")

        await asyncio.sleep(sleep_s)
