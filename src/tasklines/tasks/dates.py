# src/tasklines/tasks/dates.py

"""
Date helpers for the line format.

Storage dates are always `yyyy-MM-dd`. Parsing is lenient and never raises:
anything that does not look like a date becomes None.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta
from enum import StrEnum

STORAGE_FORMAT = "%Y-%m-%d"
DISPLAY_FORMAT = "%b %d, %Y"

_ISO_DATE_PREFIX = re.compile(r"^\s*(\d{4}-\d{2}-\d{2})")


def parse_date(text: str | None) -> date | None:
    if text is None:
        return None
    s = str(text).strip()
    if not s:
        return None

    m = _ISO_DATE_PREFIX.match(s)
    if m:
        try:
            return datetime.strptime(m.group(1), STORAGE_FORMAT).date()
        except ValueError:
            return None

    try:
        return datetime.fromisoformat(s).date()
    except ValueError:
        return None


def format_date(d: date | None) -> str:
    if d is None:
        return ""
    return d.strftime(STORAGE_FORMAT)


def format_display_date(d: date | None) -> str:
    """Human-friendly date for read-only output (never written to documents)."""
    if d is None:
        return ""
    return d.strftime(DISPLAY_FORMAT)


class DateCategory(StrEnum):
    OVERDUE = "Overdue"
    TODAY = "Today"
    TOMORROW = "Tomorrow"
    NEXT_7_DAYS = "Next 7 days"
    NEXT_30_DAYS = "Next 30 days"
    FUTURE = "Future"
    NO_DATE = "No date"


def date_category(d: date | None, today: date | None = None) -> DateCategory:
    """Bucket a date relative to `today` (checked from most to least urgent)."""
    if d is None:
        return DateCategory.NO_DATE

    today = today or date.today()
    if d < today:
        return DateCategory.OVERDUE
    if d == today:
        return DateCategory.TODAY
    if d == today + timedelta(days=1):
        return DateCategory.TOMORROW
    if d < today + timedelta(days=7):
        return DateCategory.NEXT_7_DAYS
    if d < today + timedelta(days=30):
        return DateCategory.NEXT_30_DAYS
    return DateCategory.FUTURE


def ordered_date_categories() -> list[DateCategory]:
    return [
        DateCategory.OVERDUE,
        DateCategory.TODAY,
        DateCategory.TOMORROW,
        DateCategory.NEXT_7_DAYS,
        DateCategory.NEXT_30_DAYS,
        DateCategory.FUTURE,
        DateCategory.NO_DATE,
    ]
