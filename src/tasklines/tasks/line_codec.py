# src/tasklines/tasks/line_codec.py

"""
Line codec: Task <-> one annotated markdown checklist line.

Line format:
    - [<c>] <description> [id:: ...] [dependsOn:: ...] [priority:: ...] ...

Subtasks follow the head line, one tab deeper per level.

Three entry points:
- encode_task(): canonical rendering of a Task
- decode_line(): lenient parse (never raises, unknown values fall back to defaults)
- merge_line(): re-render an edited Task on top of its original line, keeping every
  attribute the Task model does not know about
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import replace

from .dates import format_date, parse_date
from .task_models import IndexEntry, Task, TaskPriority, TaskSource, TaskStatus, new_task_id

logger = logging.getLogger(__name__)

# Preferred attribute order; also the set of keys the Task model owns.
ATTRIBUTE_ORDER: tuple[str, ...] = (
    "id",
    "dependsOn",
    "priority",
    "repeat",
    "created",
    "start",
    "scheduled",
    "due",
    "completion",
)
TRACKED_KEYS = frozenset(ATTRIBUTE_ORDER)

_STATUS_MARKER_RE = re.compile(r"^\s*-\s*\[(.)\]\s?")
_ATTR_RE = re.compile(r"\[([A-Za-z][\w-]*)::\s*([^\]]*?)\s*\]")
_ATTR_WITH_LEADING_WS_RE = re.compile(r"\s*\[[A-Za-z][\w-]*::[^\]]*\]")
_TAG_RE = re.compile(r"(?<![\w#])#([A-Za-z0-9_][\w/-]*)")


# ---- helpers ----


def _first_line(text: str | None) -> str:
    return (text or "").split("\n", 1)[0].rstrip("\r")


def _attribute_tokens(line: str) -> list[tuple[str, str, str]]:
    """(key, value, exact token text) for every [key:: value] block, in order."""
    return [(m.group(1), m.group(2), m.group(0)) for m in _ATTR_RE.finditer(line)]


def extract_attributes(line: str | None) -> dict[str, str]:
    """Ordered key -> value map of the attribute blocks in the first line (first wins)."""
    out: dict[str, str] = {}
    for key, value, _token in _attribute_tokens(_first_line(line)):
        out.setdefault(key, value)
    return out


def extract_tags(description: str) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for m in _TAG_RE.finditer(description or ""):
        seen.setdefault(m.group(1), None)
    return tuple(seen)


def status_marker(line: str | None) -> str | None:
    """The checkbox character of a "- [c]" line, or None when the line has no marker."""
    m = _STATUS_MARKER_RE.match(_first_line(line))
    return m.group(1) if m else None


def _dedent_once(line: str) -> str:
    if line.startswith("\t"):
        return line[1:]
    stripped = line.lstrip(" ")
    removed = len(line) - len(stripped)
    return line[min(removed, 4):]


def _split_children(lines: list[str]) -> list[str]:
    """Group indented lines below a head line into one text block per direct child."""
    blocks: list[list[str]] = []
    for raw in lines:
        if not raw.strip():
            continue
        line = _dedent_once(raw.rstrip("\r"))
        if blocks and line[:1] in (" ", "\t"):
            blocks[-1].append(line)
        else:
            blocks.append([line])
    return ["\n".join(b) for b in blocks]


def _attribute_pairs(task: Task) -> list[tuple[str, str]]:
    values = {
        "id": task.id or "",
        "dependsOn": " ".join(b for b in task.blocks if b),
        "priority": str(task.priority) if task.priority else "",
        "repeat": task.recurs or "",
        "created": format_date(task.created_date),
        "start": format_date(task.start_date),
        "scheduled": format_date(task.scheduled_date),
        "due": format_date(task.due_date),
        "completion": format_date(task.done_date),
    }
    return [(key, values[key]) for key in ATTRIBUTE_ORDER if values[key]]


# ---- encode ----


def encode_task(task: Task) -> str:
    status = TaskStatus(task.status)
    parts = [f"- [{status.marker}]"]
    if task.description:
        parts.append(task.description)
    parts.extend(f"[{key}:: {value}]" for key, value in _attribute_pairs(task))
    line = " ".join(parts)

    if not task.subtasks:
        return line

    sub_lines: list[str] = []
    for sub in task.subtasks:
        sub_lines.extend("\t" + s for s in encode_task(sub).split("\n"))
    return line + "\n" + "\n".join(sub_lines)


# ---- decode ----


def decode_line(
    text: str | None,
    *,
    path: str = "",
    source: TaskSource = TaskSource.MARKDOWN,
    id_factory: Callable[[], str] = new_task_id,
) -> Task:
    """
    Parse a task line (plus indented subtask lines).

    Never raises. A line without an [id:: ...] block gets a freshly generated id,
    so decoding the same id-less line twice gives two different identities.
    """
    raw = text or ""
    lines = raw.split("\n")
    head = lines[0].rstrip("\r")

    m = _STATUS_MARKER_RE.match(head)
    status = TaskStatus.from_marker(m.group(1)) if m else TaskStatus.TODO
    body = head[m.end():] if m else head

    attrs = extract_attributes(body)
    description = _ATTR_WITH_LEADING_WS_RE.sub("", body).strip()

    task_id = attrs.get("id", "").strip()
    if not task_id:
        task_id = id_factory()
        logger.warning("Decoded a line without an id; synthesized id=%s line=%r", task_id, head)

    depends_on = attrs.get("dependsOn", "")

    subtasks = tuple(
        decode_line(child, path=path, source=source, id_factory=id_factory)
        for child in _split_children(lines[1:])
    )

    return Task(
        id=task_id,
        description=description,
        priority=TaskPriority.from_text(attrs.get("priority")),
        status=status,
        recurs=attrs.get("repeat") or None,
        created_date=parse_date(attrs.get("created")),
        start_date=parse_date(attrs.get("start")),
        scheduled_date=parse_date(attrs.get("scheduled")),
        due_date=parse_date(attrs.get("due")),
        done_date=parse_date(attrs.get("completion")),
        blocks=tuple(depends_on.split()),
        path=path,
        symbol="",
        source=source,
        tags=extract_tags(description),
        subtasks=subtasks,
        raw_line=raw,
    )


def decode_index_entry(entry: IndexEntry, *, source: TaskSource = TaskSource.MARKDOWN) -> Task:
    """
    Decode a snapshot from the index provider.

    The index body never includes the "- [c]" marker, so the first pass always
    reads status as todo. The second pass takes the authoritative status from the
    entry and rebuilds raw_line with the correct marker in front of the body.
    """
    task = decode_line(entry.text, path=entry.path, source=source)
    marker = entry.status or " "
    return replace(
        task,
        status=TaskStatus.from_marker(marker),
        raw_line=f"- [{marker}] {entry.text}",
        subtasks=tuple(decode_index_entry(s, source=source) for s in entry.subtasks),
    )


# ---- merge ----


def merge_line(new_task: Task, original_raw_line: str | None) -> str:
    """
    Render `new_task` over `original_raw_line` (first line of each).

    - attributes the model owns come from new_task (dropped when new_task leaves them empty);
      id falls back to the original one only when new_task has none
    - any other attribute block is carried over verbatim, after the known ones,
      in its original order
    - checkbox + description come from the canonical rendering
    """
    original = _first_line(original_raw_line)
    original_tokens = _attribute_tokens(original)

    ideal = _first_line(encode_task(new_task))
    ideal_pairs = {key: value for key, value, _token in _attribute_tokens(ideal)}

    original_id = next((v for k, v, _t in original_tokens if k == "id" and v), None)

    merged = dict(ideal_pairs)
    if "id" not in merged and original_id:
        merged["id"] = original_id

    first = _ATTR_RE.search(ideal)
    prefix = (ideal[: first.start()] if first else ideal).rstrip()
    if not _STATUS_MARKER_RE.match(prefix):
        marker = status_marker(original)
        prefix = f"- [{marker if marker is not None else ' '}]"
        logger.debug("Canonical line had no checkbox prefix; reused marker from original line")

    parts = [prefix]
    parts.extend(f"[{key}:: {merged[key]}]" for key in ATTRIBUTE_ORDER if key in merged)
    parts.extend(token for key, _value, token in original_tokens if key not in TRACKED_KEYS)
    return " ".join(parts)
