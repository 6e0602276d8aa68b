# tests/test_markdown_vault.py

from __future__ import annotations

from pathlib import Path

import pytest

from tasklines.tasks.line_codec import decode_index_entry
from tasklines.tasks.task_api import add_task, delete_task, edit_task, set_status
from tasklines.tasks.task_dispatcher import SyncDispatcher, refresh_once
from tasklines.tasks.task_models import TaskStatus
from tasklines.tasks.task_store import TaskStore
from tasklines.vault.markdown_vault import MarkdownVault, find_task_line_index, parse_document


def _write(root: Path, rel: str, text: str) -> Path:
    p = root / rel
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(text, encoding="utf-8")
    return p


def test_find_task_line_index_three_stages() -> None:
    lines = [
        "# Tasks",
        "- [ ] Exact [id:: a]",
        "  - [x] Indented [id:: b] [note:: kept]",
        "* [/] Starred body",
    ]
    assert find_task_line_index(lines, "- [ ] Exact [id:: a]") == 1
    # Same id, different text.
    assert find_task_line_index(lines, "- [ ] Renamed meanwhile [id:: b]") == 2
    # Same body, different marker.
    assert find_task_line_index(lines, "- [ ] Starred body") == 3
    assert find_task_line_index(lines, "- [ ] missing [id:: zzz]") == -1
    assert find_task_line_index(lines, "   ") == -1


def test_parse_document_nests_by_indent() -> None:
    content = "\n".join(
        [
            "# Project",
            "- [ ] top [id:: t]",
            "\t- [x] child tab [id:: c1]",
            "    - [ ] child spaces [id:: c2]",
            "\t\t- [-] grandchild [id:: g]",
            "some prose",
            "- [/] second top [id:: s]",
        ]
    )
    entries = parse_document(content, "proj.md")

    assert [e.text for e in entries] == ["top [id:: t]", "second top [id:: s]"]
    top = entries[0]
    assert top.line == 1
    assert [c.text for c in top.subtasks] == ["child tab [id:: c1]", "child spaces [id:: c2]"]
    assert top.subtasks[0].status == "x"
    assert [g.text for g in top.subtasks[1].subtasks] == ["grandchild [id:: g]"]
    assert entries[1].status == "/"


@pytest.mark.asyncio
async def test_fetch_entries_scans_all_markdown(tmp_path: Path) -> None:
    _write(tmp_path, "a.md", "- [ ] one [id:: 1]\n")
    _write(tmp_path, "notes/b.md", "text\n- [x] two [id:: 2]\n")
    _write(tmp_path, "c.txt", "- [ ] not markdown [id:: 3]\n")

    entries = await MarkdownVault(tmp_path).fetch_entries()

    assert sorted((e.path, e.text) for e in entries) == [
        ("a.md", "one [id:: 1]"),
        ("notes/b.md", "two [id:: 2]"),
    ]
    done = next(e for e in entries if e.path == "notes/b.md")
    assert decode_index_entry(done).status == TaskStatus.DONE


@pytest.mark.asyncio
async def test_create_line_makes_file_with_heading(tmp_path: Path) -> None:
    vault = MarkdownVault(tmp_path)

    written = await vault.create_line("- [ ] first [id:: f]", "inbox/Tasks.md", "# Tasks")

    assert written == "- [ ] first [id:: f]"
    assert (tmp_path / "inbox/Tasks.md").read_text(encoding="utf-8") == "# Tasks\n- [ ] first [id:: f]"


@pytest.mark.asyncio
async def test_create_line_inserts_under_heading_or_appends_it(tmp_path: Path) -> None:
    _write(tmp_path, "with.md", "intro\n# Tasks\n- [ ] old [id:: o]\n")
    _write(tmp_path, "without.md", "just prose")
    vault = MarkdownVault(tmp_path)

    await vault.create_line("- [ ] new [id:: n]", "with.md", "# Tasks")
    await vault.create_line("- [ ] new [id:: n]", "without.md", "# Tasks")

    assert (tmp_path / "with.md").read_text(encoding="utf-8").split("\n") == [
        "intro",
        "# Tasks",
        "- [ ] new [id:: n]",
        "- [ ] old [id:: o]",
        "",
    ]
    assert (tmp_path / "without.md").read_text(encoding="utf-8") == "just prose\n# Tasks\n- [ ] new [id:: n]"


@pytest.mark.asyncio
async def test_edit_line_keeps_indentation_and_other_lines(tmp_path: Path) -> None:
    _write(tmp_path, "t.md", "# Tasks\n- [ ] parent [id:: p]\n\t- [ ] child [id:: c] [x:: 1]\n")
    vault = MarkdownVault(tmp_path)

    written = await vault.edit_line("- [x] child done [id:: c] [x:: 1]", "- [ ] child [id:: c] [x:: 1]", "t.md")

    assert written == "- [x] child done [id:: c] [x:: 1]"
    assert (tmp_path / "t.md").read_text(encoding="utf-8") == (
        "# Tasks\n- [ ] parent [id:: p]\n\t- [x] child done [id:: c] [x:: 1]\n"
    )


@pytest.mark.asyncio
async def test_edit_and_delete_report_missing_targets(tmp_path: Path) -> None:
    _write(tmp_path, "t.md", "- [ ] only [id:: o]\n")
    vault = MarkdownVault(tmp_path)

    assert await vault.edit_line("- [ ] x [id:: q]", "- [ ] gone [id:: q]", "t.md") is None
    assert await vault.edit_line("- [ ] x", "- [ ] only [id:: o]", "nope.md") is None
    assert await vault.delete_line("- [ ] gone [id:: q]", "t.md") is False
    assert await vault.delete_line("- [ ] only [id:: o]", "nope.md") is False


@pytest.mark.asyncio
async def test_delete_line_by_id(tmp_path: Path) -> None:
    _write(tmp_path, "t.md", "# Tasks\n- [ ] keep [id:: k]\n- [x] drop, edited by hand [id:: d]\n")
    vault = MarkdownVault(tmp_path)

    assert await vault.delete_line("- [ ] drop [id:: d]", "t.md") is True
    assert (tmp_path / "t.md").read_text(encoding="utf-8") == "# Tasks\n- [ ] keep [id:: k]\n"


@pytest.mark.asyncio
async def test_paths_outside_the_vault_are_rejected(tmp_path: Path) -> None:
    root = tmp_path / "vault"
    root.mkdir()
    vault = MarkdownVault(root)

    assert await vault.create_line("- [ ] x", "../escape.md", "# Tasks") is None
    assert await vault.delete_line("- [ ] x", "../escape.md") is False
    assert not (tmp_path / "escape.md").exists()


@pytest.mark.asyncio
async def test_end_to_end_add_edit_delete(tmp_path: Path) -> None:
    vault = MarkdownVault(tmp_path)
    _write(tmp_path, "Tasks.md", "# Tasks\n- [ ] existing [id:: e1] [owner:: sam]\n")
    store = TaskStore()
    dispatcher = SyncDispatcher(store, vault, retry_delay_seconds=0.0)
    dispatcher.attach()
    try:
        await refresh_once(store, vault)
        entry = store.find_entry("e1")
        assert entry is not None

        new = add_task(store, description="fresh one")
        set_status(store, "e1", TaskStatus.DONE)
        await dispatcher.wait_idle()

        text = (tmp_path / "Tasks.md").read_text(encoding="utf-8")
        assert f"[id:: {new.id}]" in text
        assert "- [x] existing [id:: e1] [priority:: medium] [completion:: " in text
        assert "[owner:: sam]" in text

        delete_task(store, new.id)
        await dispatcher.wait_idle()
    finally:
        dispatcher.close()

    text = (tmp_path / "Tasks.md").read_text(encoding="utf-8")
    assert "fresh one" not in text
    await refresh_once(store, vault)
    assert [t.id for t in store.all_tasks()] == ["e1"]
    assert store.entries_needing_sync() == []


@pytest.mark.asyncio
async def test_delete_after_unwritten_edit_finds_the_line_on_disk(tmp_path: Path) -> None:
    _write(tmp_path, "Tasks.md", "# Tasks\n- [ ] Buy milk\n")
    vault = MarkdownVault(tmp_path)
    store = TaskStore()
    dispatcher = SyncDispatcher(store, vault, retry_delay_seconds=0.0)

    await refresh_once(store, vault)
    (task,) = store.all_tasks()
    edit_task(store, task.id, description="Buy oat milk")
    delete_task(store, task.id)

    entry = store.find_entry(task.id)
    assert entry is not None
    await dispatcher.dispatch(entry)

    assert (tmp_path / "Tasks.md").read_text(encoding="utf-8") == "# Tasks\n"
    assert store.find_entry(task.id) is None
