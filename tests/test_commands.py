# tests/test_commands.py

from __future__ import annotations

import pytest

from tasklines.cli.commands import CommandRegistry, registry
from tasklines.connectors.console_connector import handle_console_line
from tasklines.tasks.task_models import SyncAction, TaskStatus
from tasklines.tasks.task_store import StoreOperation


def test_command_registry_routes_2_and_3_params(state) -> None:
    reg = CommandRegistry()
    called = {"h2": 0, "h3": 0}

    def h2(state, args):
        called["h2"] += 1
        return "h2:" + ",".join(args)

    def h3(state, args, emit):
        called["h3"] += 1
        if emit is not None:
            emit("note")
        return "h3"

    reg.register("a", h2, "a")
    reg.register("b", h3, "b", aliases=["bee"])

    notes: list[str] = []
    assert reg.handle(state, "/a x y") == "h2:x,y"
    assert reg.handle(state, "/BEE", emit=notes.append) == "h3"
    assert called == {"h2": 1, "h3": 1}
    assert notes == ["note"]


def test_command_registry_unknown_and_non_command(state) -> None:
    reg = CommandRegistry()
    assert reg.handle(state, "hello") is None
    assert "Unknown command" in (reg.handle(state, "/nope") or "")
    assert "Empty command" in (reg.handle(state, "/") or "")


def test_help_lists_every_command(state) -> None:
    text = registry.handle(state, "/help")
    assert isinstance(text, str)
    for name in ("list", "add", "edit", "start", "done", "cancel", "todo", "delete", "retry", "tags", "refresh"):
        assert f"/{name} " in text


@pytest.mark.asyncio
async def test_free_text_adds_a_task(state) -> None:
    reply = await handle_console_line(state, "Buy milk #shop [due:: 2024-10-25] [where:: corner store]")

    assert reply.startswith("Added ")
    tasks = state.store.all_tasks()
    assert len(tasks) == 1
    task = tasks[0]
    assert task.description == "Buy milk #shop"
    assert task.tags == ("shop",)
    assert task.path == "Tasks.md"
    # Typed text is kept so unknown attributes reach the document.
    assert "[where:: corner store]" in task.raw_line

    entry = state.store.find_entry(task.id)
    assert entry is not None
    assert entry.meta.to_be_synced_action == SyncAction.ADD


@pytest.mark.asyncio
async def test_status_edit_and_delete_commands(state) -> None:
    await handle_console_line(state, "/add Water plants")
    task_id = state.store.all_tasks()[0].id

    assert "in-progress" in await handle_console_line(state, f"/start {task_id}")
    assert state.store.all_tasks()[0].status == TaskStatus.IN_PROGRESS

    assert "done" in await handle_console_line(state, f"/done {task_id}")
    done = state.store.all_tasks()[0]
    assert done.status == TaskStatus.DONE
    assert done.done_date is not None

    assert "Updated" in await handle_console_line(state, f"/edit {task_id} Water all plants")
    assert state.store.all_tasks()[0].description == "Water all plants"

    assert "Deleting" in await handle_console_line(state, f"/delete {task_id}")
    entry = state.store.find_entry(task_id)
    assert entry is not None
    assert entry.meta.to_be_synced_action == SyncAction.DELETE

    assert "No task" in await handle_console_line(state, "/done nope")


@pytest.mark.asyncio
async def test_list_tags_and_retry(state) -> None:
    await handle_console_line(state, "Paint fence #Home")
    await handle_console_line(state, "Fix sink #home #diy")
    task_id = state.store.all_tasks()[0].id

    listing = await handle_console_line(state, "/list")
    assert "Paint fence" in listing and "Fix sink" in listing
    assert "No tasks." == await handle_console_line(state, "/list done")
    assert "Unknown status" in await handle_console_line(state, "/list someday")

    assert await handle_console_line(state, "/tags") == "Tags: #Home, #diy"

    assert "no failed sync" in await handle_console_line(state, f"/retry {task_id}")
    for _ in range(3):
        state.store.apply(StoreOperation.sync_failed(task_id, "boom", max_retries=3))
    assert "!" in await handle_console_line(state, "/list")
    assert await handle_console_line(state, f"/retry {task_id}") == f"Retrying {task_id}."
    entry = state.store.find_entry(task_id)
    assert entry is not None and not entry.meta.sync_failed


@pytest.mark.asyncio
async def test_refresh_reads_the_vault(state) -> None:
    (state.vault.root / "Tasks.md").write_text("# Tasks\n- [x] from disk [id:: d1]\n", encoding="utf-8")

    reply = await handle_console_line(state, "/refresh")

    assert reply == "Refreshed: 1 task(s) in the vault."
    assert [t.id for t in state.store.all_tasks()] == ["d1"]
    status = await handle_console_line(state, "/status")
    assert "Tasks: 1 (pending sync: 0, failed: 0)" in status
