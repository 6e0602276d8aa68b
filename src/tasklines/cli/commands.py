# src/tasklines/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from datetime import date
from typing import cast

from ..core.state import AppState
from ..tasks import task_api
from ..tasks.dates import format_display_date
from ..tasks.task_dispatcher import refresh_once
from ..tasks.task_models import OverlayEntry, TaskPriority, TaskStatus, TaskValidationError

CommandEmitter = Callable[[str], None]
CommandReply = str | Awaitable[str]
CommandHandler2 = Callable[[AppState, list[str]], CommandReply]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], CommandReply]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /list, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> CommandReply | None:
        """
        Handle a string like "/command args".
        Returns a reply (a string, or an awaitable for async handlers) or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        if nparams >= 3:
            h3 = cast(CommandHandler3, handler)
            return h3(state, args, emit)

        h2 = cast(CommandHandler2, handler)
        return h2(state, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def format_entry(entry: OverlayEntry) -> str:
    t = entry.task
    m = entry.meta
    flag = "!" if m.sync_failed else ("*" if m.needs_sync else " ")
    parts = [f"{flag} {t.id}  [{t.status.marker}] {t.description}"]
    if t.priority != TaskPriority.MEDIUM:
        parts.append(f"({t.priority.value})")
    if t.due_date is not None:
        parts.append(f"due {format_display_date(t.due_date)}")
    if m.sync_failed and m.error_message:
        parts.append(f"<sync failed: {m.error_message}>")
    return "  ".join(parts)


def _sorted_entries(entries: list[OverlayEntry]) -> list[OverlayEntry]:
    return sorted(
        entries,
        key=lambda e: (-e.task.priority.rank, e.task.due_date or date.max, e.task.description.lower()),
    )


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    store = state.store
    total = len(store.overlay)
    pending = len(store.entries_needing_sync())
    failed = len(store.failed_entries())
    s = state.settings
    return (
        "Status:\n"
        f"  Vault: {state.vault.root}\n"
        f"  New tasks go to: {getattr(s, 'default_path', '?')} under {getattr(s, 'default_heading', '?')!r}\n"
        f"  Tasks: {total} (pending sync: {pending}, failed: {failed})"
    )


def cmd_list(state: AppState, args: list[str]) -> str:
    """
    /list            -> open tasks (todo + in-progress)
    /list all        -> every task
    /list <status>   -> todo | in-progress | done | cancelled
    /list due        -> open tasks grouped by due date
    """
    overlay = state.store.overlay
    sub = args[0].lower() if args else "open"

    if sub == "due":
        open_entries = {
            e.task.id: e for e in overlay if e.task.status in (TaskStatus.TODO, TaskStatus.IN_PROGRESS)
        }
        lines: list[str] = []
        for category, tasks in state.store.tasks_by_date_category().items():
            group = [open_entries[t.id] for t in tasks if t.id in open_entries]
            if not group:
                continue
            lines.append(f"{category.value}:")
            lines.extend(f"  {format_entry(e)}" for e in _sorted_entries(group))
        return "\n".join(lines) if lines else "No open tasks."

    if sub == "all":
        entries = list(overlay)
    elif sub == "open":
        entries = [e for e in overlay if e.task.status in (TaskStatus.TODO, TaskStatus.IN_PROGRESS)]
    else:
        try:
            status = TaskStatus(sub)
        except ValueError:
            allowed = ", ".join(s.value for s in TaskStatus)
            return f"Unknown status {sub!r}. Use one of: all, open, due, {allowed}."
        entries = [e for e in overlay if e.task.status == status]

    if not entries:
        return "No tasks."
    return "\n".join(format_entry(e) for e in _sorted_entries(entries))


def cmd_add(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /add <description> [#tag] [due:: yyyy-mm-dd] ..."
    return add_free_text(state, " ".join(args))


def add_free_text(state: AppState, text: str) -> str:
    """Free text (or a full task line) typed at the prompt becomes a new task."""
    try:
        task = task_api.add_from_line(
            state.store, text, path=str(getattr(state.settings, "default_path", "Tasks.md"))
        )
    except TaskValidationError as e:
        return f"Not added: {e}"
    return f"Added {task.id}: {task.description}"


def cmd_edit(state: AppState, args: list[str]) -> str:
    if len(args) < 2:
        return "Usage: /edit <id> <new description>"
    task_id, text = args[0], " ".join(args[1:])
    try:
        task = task_api.edit_task(state.store, task_id, description=text)
    except KeyError:
        return f"No task with id {task_id}."
    except TaskValidationError as e:
        return f"Not changed: {e}"
    return f"Updated {task.id}: {task.description}"


def _status_command(status: TaskStatus) -> CommandHandler2:
    def handler(state: AppState, args: list[str]) -> str:
        if not args:
            return "Usage: /<command> <id>"
        task_id = args[0]
        try:
            task = task_api.set_status(state.store, task_id, status)
        except KeyError:
            return f"No task with id {task_id}."
        except TaskValidationError as e:
            return f"Not changed: {e}"
        return f"{task.id} is now {task.status.value}."

    return handler


def cmd_delete(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /delete <id>"
    try:
        task = task_api.delete_task(state.store, args[0])
    except KeyError:
        return f"No task with id {args[0]}."
    return f"Deleting {task.id}: {task.description}"


def cmd_retry(state: AppState, args: list[str]) -> str:
    if not args:
        failed = state.store.failed_entries()
        if not failed:
            return "Nothing to retry."
        for e in failed:
            task_api.retry_task(state.store, e.task.id)
        return f"Retrying {len(failed)} task(s)."
    if task_api.retry_task(state.store, args[0]):
        return f"Retrying {args[0]}."
    return f"Task {args[0]} has no failed sync."


def cmd_tags(state: AppState, args: list[str]) -> str:
    tags = state.store.available_tags()
    if not tags:
        return "No tags."
    return "Tags: " + ", ".join(f"#{t.label}" for t in tags)


async def cmd_refresh(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if emit is not None:
        emit("Reading the vault...")
    n = await refresh_once(state.store, state.vault)
    return f"Refreshed: {n} task(s) in the vault."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show vault / sync status.")
registry.register("list", cmd_list, help_text="List tasks: /list [all|open|due|<status>].", aliases=["ls"])
registry.register("add", cmd_add, help_text="Add a task: /add <text>. Plain text works too.")
registry.register("edit", cmd_edit, help_text="Change description: /edit <id> <text>.")
registry.register("start", _status_command(TaskStatus.IN_PROGRESS), help_text="Mark in progress: /start <id>.")
registry.register("done", _status_command(TaskStatus.DONE), help_text="Mark done: /done <id>.")
registry.register("cancel", _status_command(TaskStatus.CANCELLED), help_text="Cancel: /cancel <id>.")
registry.register("todo", _status_command(TaskStatus.TODO), help_text="Reopen: /todo <id>.")
registry.register("delete", cmd_delete, help_text="Delete a task: /delete <id>.", aliases=["rm"])
registry.register("retry", cmd_retry, help_text="Retry failed syncs: /retry [id].")
registry.register("tags", cmd_tags, help_text="List known tags.")
registry.register("refresh", cmd_refresh, help_text="Re-read the vault now.")
