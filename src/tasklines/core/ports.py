# src/tasklines/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The store and dispatcher depend on Protocols instead of concrete implementations.
This keeps the document backend swappable and makes testing easier.
"""

from typing import Awaitable, Protocol

from ..tasks.task_models import IndexEntry


class IndexProvider(Protocol):
    """
    Source of full task snapshots.

    Every call returns ALL top-level task entries currently found in the documents;
    nested entries hang off IndexEntry.subtasks.
    """

    def fetch_entries(self) -> Awaitable[list[IndexEntry]]: ...


class DocumentWriter(Protocol):
    """
    Writes task lines into documents.

    Failure is reported as None/False. Exceptions are reserved for truly
    unexpected conditions; callers treat both the same way.
    """

    def create_line(self, line: str, path: str, heading: str) -> Awaitable[str | None]: ...

    def edit_line(self, new_line: str, lookup: str, path: str) -> Awaitable[str | None]: ...

    def delete_line(self, lookup: str, path: str) -> Awaitable[bool]: ...
