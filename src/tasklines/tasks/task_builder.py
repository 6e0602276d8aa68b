# src/tasklines/tasks/task_builder.py

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, fields, replace
from datetime import date, datetime
from typing import Any

from .dates import parse_date
from .line_codec import encode_task, extract_attributes, extract_tags
from .task_models import (
    Task,
    TaskPriority,
    TaskSource,
    TaskStatus,
    TaskValidationError,
    new_task_id,
)

logger = logging.getLogger(__name__)

DEFAULT_PATH = "Tasks.md"

_REQUIRED_FIELDS = ("id", "description", "priority", "status", "path", "source")
_DATE_FIELDS = ("created_date", "start_date", "scheduled_date", "due_date", "done_date")
_ENUM_FIELDS: tuple[tuple[str, type[Any]], ...] = (
    ("priority", TaskPriority),
    ("status", TaskStatus),
    ("source", TaskSource),
)


@dataclass(frozen=True, slots=True)
class FinalizeResult:
    is_valid: bool
    message: str
    task: Task | None = None


@dataclass(frozen=True, slots=True)
class Built:
    task: Task

    def unwrap(self) -> Task:
        return self.task


@dataclass(frozen=True, slots=True)
class Invalid:
    message: str

    def unwrap(self) -> Task:
        raise TaskValidationError(self.message)


BuildResult = Built | Invalid


def _coerce_date(value: date | str | None) -> Any:
    """Accept date/datetime/str; an unparseable string is kept as-is so validation reports it."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    parsed = parse_date(value)
    return parsed if parsed is not None else value


def _with_tags(description: str, tags: Iterable[str]) -> str:
    """Append #tags the description does not already carry."""
    present = set(extract_tags(description))
    missing: list[str] = []
    for tag in tags:
        t = str(tag).strip().lstrip("#")
        if t and t not in present and t not in missing:
            missing.append(t)
    if not missing:
        return description
    return " ".join([description.rstrip(), *(f"#{t}" for t in missing)])


class TaskBuilder:
    """
    Staged, fluent construction of a Task.

        result = TaskBuilder().set_description("Buy milk").set_due_date("2024-10-25").build()
        match result:
            case Built(task): ...
            case Invalid(message): ...

    Nothing is validated until finalize()/build(). Only a valid record gets its
    canonical raw_line (encode_task) attached.
    """

    def __init__(
        self,
        existing: Task | None = None,
        *,
        default_path: str = DEFAULT_PATH,
        default_source: TaskSource = TaskSource.MARKDOWN,
    ) -> None:
        if existing is not None:
            self._fields: dict[str, Any] = {f.name: getattr(existing, f.name) for f in fields(Task)}
        else:
            self._fields = {
                "id": new_task_id(),
                "path": default_path,
                "source": default_source,
                "status": TaskStatus.TODO,
                "priority": TaskPriority.MEDIUM,
            }

    @classmethod
    def create(cls, existing: Task | None = None, **kwargs: Any) -> TaskBuilder:
        return cls(existing, **kwargs)

    def _set(self, name: str, value: Any) -> TaskBuilder:
        self._fields[name] = value
        return self

    # ---- setters ----

    def set_id(self, task_id: str) -> TaskBuilder:
        return self._set("id", task_id)

    def set_description(self, description: str) -> TaskBuilder:
        return self._set("description", description)

    def set_priority(self, priority: TaskPriority | str) -> TaskBuilder:
        return self._set("priority", priority)

    def set_status(self, status: TaskStatus | str) -> TaskBuilder:
        return self._set("status", status)

    def set_recurs(self, recurs: str | None) -> TaskBuilder:
        return self._set("recurs", recurs or None)

    def set_created_date(self, value: date | str | None) -> TaskBuilder:
        return self._set("created_date", _coerce_date(value))

    def set_start_date(self, value: date | str | None) -> TaskBuilder:
        return self._set("start_date", _coerce_date(value))

    def set_scheduled_date(self, value: date | str | None) -> TaskBuilder:
        return self._set("scheduled_date", _coerce_date(value))

    def set_due_date(self, value: date | str | None) -> TaskBuilder:
        return self._set("due_date", _coerce_date(value))

    def set_done_date(self, value: date | str | None) -> TaskBuilder:
        return self._set("done_date", _coerce_date(value))

    def set_blocks(self, blocks: Iterable[str]) -> TaskBuilder:
        return self._set("blocks", tuple(blocks))

    def set_path(self, path: str) -> TaskBuilder:
        return self._set("path", path)

    def set_symbol(self, symbol: str) -> TaskBuilder:
        return self._set("symbol", symbol)

    def set_source(self, source: TaskSource | str) -> TaskBuilder:
        return self._set("source", source)

    def set_tags(self, tags: Iterable[str]) -> TaskBuilder:
        return self._set("tags", tuple(tags))

    def set_subtasks(self, subtasks: Iterable[Task]) -> TaskBuilder:
        return self._set("subtasks", tuple(subtasks))

    # ---- finalize / build ----

    def validate(self) -> tuple[bool, str]:
        f = self._fields

        for name in _REQUIRED_FIELDS:
            value = f.get(name)
            if value is None or (isinstance(value, str) and not value.strip()):
                return False, f"Field {name} is missing or empty"

        description = f["description"]
        if not isinstance(description, str):
            return False, "Field description must be a string"
        # Encodes to exactly one line carrying no attribute blocks of its own.
        if "\n" in description or "\r" in description or extract_attributes(description):
            return False, "Field description must be a single line without [key:: value] blocks"

        for name, enum_cls in _ENUM_FIELDS:
            try:
                enum_cls(f[name])
            except ValueError:
                allowed = ", ".join(m.value for m in enum_cls)
                return False, f"Invalid value for {name}: {f[name]!r}. Allowed values are: {allowed}"

        for name in _DATE_FIELDS:
            value = f.get(name)
            if value is not None and not isinstance(value, date):
                return False, f"Invalid date for {name}: {value!r}"

        recurs = f.get("recurs")
        if recurs is not None and not isinstance(recurs, str):
            return False, f"Invalid value for recurs: {recurs!r}"

        for name in ("blocks", "tags"):
            if not all(isinstance(v, str) for v in f.get(name, ())):
                return False, f"Field {name} must contain only strings"

        if not all(isinstance(s, Task) for s in f.get("subtasks", ())):
            return False, "Field subtasks must contain only Task records"

        if not isinstance(f.get("symbol", ""), str):
            return False, "Field symbol must be a string"

        return True, ""

    def finalize(self) -> FinalizeResult:
        is_valid, message = self.validate()
        if not is_valid:
            return FinalizeResult(is_valid=False, message=message)

        f = self._fields
        description = _with_tags(str(f["description"]).strip(), f.get("tags", ()))

        task = Task(
            id=str(f["id"]).strip(),
            description=description,
            priority=TaskPriority(f["priority"]),
            status=TaskStatus(f["status"]),
            recurs=f.get("recurs"),
            created_date=f.get("created_date"),
            start_date=f.get("start_date"),
            scheduled_date=f.get("scheduled_date"),
            due_date=f.get("due_date"),
            done_date=f.get("done_date"),
            blocks=tuple(b for b in f.get("blocks", ()) if b),
            path=str(f["path"]),
            symbol=f.get("symbol", ""),
            source=TaskSource(f["source"]),
            tags=extract_tags(description),
            subtasks=tuple(f.get("subtasks", ())),
        )
        task = replace(task, raw_line=encode_task(task))
        return FinalizeResult(is_valid=True, message="", task=task)

    def build(self) -> BuildResult:
        result = self.finalize()
        if not result.is_valid or result.task is None:
            logger.info("Task validation failed: %s", result.message)
            return Invalid(result.message)
        return Built(result.task)
