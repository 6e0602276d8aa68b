# src/tasklines/vault/markdown_vault.py

"""
Markdown vault: a directory of .md files used as task storage.

Implements both ports:
- IndexProvider: fetch_entries() scans every **/*.md file for "- [c] ..." lines
- DocumentWriter: create_line / edit_line / delete_line rewrite one file in place

File IO is blocking and runs via asyncio.to_thread. Writes go through a temp file
plus os.replace so a crash never leaves a half-written document.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
import threading
from dataclasses import dataclass, field
from pathlib import Path

from ..tasks.line_codec import extract_attributes
from ..tasks.task_models import IndexEntry

logger = logging.getLogger(__name__)

_TASK_LINE_RE = re.compile(r"^(?P<indent>[ \t]*)[-*+]\s+\[(?P<status>.)\]\s?(?P<body>.*)$")
_MARKER_PREFIX_RE = re.compile(r"^\s*[-*+]\s+\[.\]\s?")

TAB_WIDTH = 4


def _indent_width(indent: str) -> int:
    return sum(TAB_WIDTH if ch == "\t" else 1 for ch in indent)


def _strip_marker(line: str) -> str:
    return _MARKER_PREFIX_RE.sub("", line, count=1).strip()


def find_task_line_index(lines: list[str], lookup: str) -> int:
    """
    Locate `lookup` in `lines`; -1 when absent.

    1) exact match (surrounding whitespace ignored)
    2) same [id:: X] attribute
    3) same body once the "- [c]" marker is removed
    """
    target = lookup.strip()
    if not target:
        return -1

    for i, line in enumerate(lines):
        if line.strip() == target:
            return i

    task_id = extract_attributes(target).get("id", "").strip()
    if task_id:
        for i, line in enumerate(lines):
            if _TASK_LINE_RE.match(line) and extract_attributes(line.strip()).get("id", "").strip() == task_id:
                return i

    body = _strip_marker(target)
    if body:
        for i, line in enumerate(lines):
            if _TASK_LINE_RE.match(line) and _strip_marker(line) == body:
                return i

    return -1


@dataclass(slots=True)
class _Node:
    indent: int
    status: str
    text: str
    line: int
    children: list[_Node] = field(default_factory=list)

    def freeze(self, path: str) -> IndexEntry:
        return IndexEntry(
            status=self.status,
            text=self.text,
            path=path,
            line=self.line,
            subtasks=tuple(c.freeze(path) for c in self.children),
        )


def parse_document(content: str, path: str) -> list[IndexEntry]:
    """Top-level task entries of one document; deeper-indented tasks nest under the previous shallower one."""
    roots: list[_Node] = []
    stack: list[_Node] = []

    for lineno, raw in enumerate(content.splitlines()):
        m = _TASK_LINE_RE.match(raw)
        if not m:
            continue
        node = _Node(
            indent=_indent_width(m.group("indent")),
            status=m.group("status"),
            text=m.group("body").rstrip(),
            line=lineno,
        )
        while stack and stack[-1].indent >= node.indent:
            stack.pop()
        if stack:
            stack[-1].children.append(node)
        else:
            roots.append(node)
        stack.append(node)

    return [n.freeze(path) for n in roots]


class MarkdownVault:
    """File-backed IndexProvider + DocumentWriter rooted at one directory."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).expanduser().resolve()
        # Writes run in worker threads; each one is read-modify-write on a whole file.
        self._write_lock = threading.Lock()

    def _resolve(self, path: str) -> Path | None:
        target = (self.root / path).resolve()
        if target != self.root and self.root not in target.parents:
            logger.error("Refusing path outside the vault: %s", path)
            return None
        return target

    @staticmethod
    def _read_lines(file: Path) -> list[str]:
        return file.read_text(encoding="utf-8").split("\n")

    @staticmethod
    def _write_lines(file: Path, lines: list[str]) -> None:
        file.parent.mkdir(parents=True, exist_ok=True)
        tmp = file.with_name(file.name + ".tmp")
        tmp.write_text("\n".join(lines), encoding="utf-8")
        os.replace(tmp, file)

    # ---- IndexProvider ----

    async def fetch_entries(self) -> list[IndexEntry]:
        return await asyncio.to_thread(self._fetch_entries_sync)

    def _fetch_entries_sync(self) -> list[IndexEntry]:
        if not self.root.is_dir():
            logger.warning("Vault root does not exist: %s", self.root)
            return []

        out: list[IndexEntry] = []
        for file in sorted(self.root.glob("**/*.md")):
            if not file.is_file():
                continue
            rel = file.relative_to(self.root).as_posix()
            try:
                content = file.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError):
                logger.exception("Failed to read %s", rel)
                continue
            out.extend(parse_document(content, rel))
        return out

    # ---- DocumentWriter ----

    async def create_line(self, line: str, path: str, heading: str) -> str | None:
        return await asyncio.to_thread(self._create_line_sync, line, path, heading)

    def _create_line_sync(self, line: str, path: str, heading: str) -> str | None:
        file = self._resolve(path)
        if file is None:
            return None

        with self._write_lock:
            return self._insert_under_heading(file, line, path, heading)

    def _insert_under_heading(self, file: Path, line: str, path: str, heading: str) -> str:
        if not file.exists():
            self._write_lines(file, [heading, line])
            logger.info("Created %s with heading %r", path, heading)
            return line

        lines = self._read_lines(file)
        idx = next((i for i, cur in enumerate(lines) if cur.strip() == heading.strip()), -1)
        if idx == -1:
            lines.append(heading)
            idx = len(lines) - 1
        lines[idx + 1 : idx + 1] = line.split("\n")
        self._write_lines(file, lines)
        return line

    async def edit_line(self, new_line: str, lookup: str, path: str) -> str | None:
        return await asyncio.to_thread(self._edit_line_sync, new_line, lookup, path)

    def _edit_line_sync(self, new_line: str, lookup: str, path: str) -> str | None:
        with self._write_lock:
            return self._replace_line(new_line, lookup, path)

    def _replace_line(self, new_line: str, lookup: str, path: str) -> str | None:
        file = self._resolve(path)
        if file is None or not file.is_file():
            logger.warning("edit_line: no such document %s", path)
            return None

        lines = self._read_lines(file)
        idx = find_task_line_index(lines, lookup)
        if idx == -1:
            logger.warning("edit_line: task line not found in %s: %r", path, lookup)
            return None

        # Keep the indentation the line had in the document.
        m = _TASK_LINE_RE.match(lines[idx])
        indent = m.group("indent") if m else ""
        lines[idx] = indent + new_line.strip()
        self._write_lines(file, lines)
        return new_line

    async def delete_line(self, lookup: str, path: str) -> bool:
        return await asyncio.to_thread(self._delete_line_sync, lookup, path)

    def _delete_line_sync(self, lookup: str, path: str) -> bool:
        with self._write_lock:
            return self._remove_line(lookup, path)

    def _remove_line(self, lookup: str, path: str) -> bool:
        file = self._resolve(path)
        if file is None or not file.is_file():
            logger.warning("delete_line: no such document %s", path)
            return False

        lines = self._read_lines(file)
        idx = find_task_line_index(lines, lookup)
        if idx == -1:
            logger.warning("delete_line: task line not found in %s: %r", path, lookup)
            return False

        del lines[idx]
        self._write_lines(file, lines)
        return True
