"""Date and period helpers.

All periods are calendar months addressed by a zero-indexed month and a
year, so ``(0, 2025)`` is January 2025.  Every helper is timezone agnostic:
values are plain :class:`datetime.date` objects.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Optional, Tuple


@dataclass(frozen=True)
class Period:
    start: date
    end: date

    @property
    def label(self) -> str:
        return period_label(self.start)

    def contains(self, value: Any) -> bool:
        return is_date_in_range(value, self.start, self.end)


def parse_date(value: Any) -> Optional[date]:
    """Convert ``value`` into a ``date`` or return ``None``.

    Accepts ``date``/``datetime`` objects and ISO strings (``YYYY-MM-DD``,
    optionally followed by a time component).  Anything unparseable yields
    ``None`` so callers can exclude the record instead of failing.
    """
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip()[:10]
    try:
        return date.fromisoformat(text)
    except ValueError:
        return None


def format_date(value: Any) -> str:
    parsed = parse_date(value)
    return parsed.isoformat() if parsed else ''


def shift_month(month: int, year: int, delta: int) -> Tuple[int, int]:
    """Move a zero-indexed ``(month, year)`` pair by ``delta`` months."""
    total = year * 12 + month + delta
    return total % 12, total // 12


def first_day_of_month(month: int, year: int) -> date:
    month, year = shift_month(month, year, 0)
    return date(year, month + 1, 1)


def last_day_of_month(month: int, year: int) -> date:
    month, year = shift_month(month, year, 0)
    return date(year, month + 1, calendar.monthrange(year, month + 1)[1])


def month_boundaries(month: int, year: int) -> Period:
    return Period(first_day_of_month(month, year), last_day_of_month(month, year))


def month_of(value: Any) -> Optional[Period]:
    parsed = parse_date(value)
    if parsed is None:
        return None
    return month_boundaries(parsed.month - 1, parsed.year)


def is_date_in_range(value: Any, start: Any, end: Any) -> bool:
    """Inclusive range check; any unparseable side means "not in range"."""
    d = parse_date(value)
    s = parse_date(start)
    e = parse_date(end)
    if d is None or s is None or e is None:
        return False
    return s <= d <= e


def period_label(value: Any) -> str:
    """Short month label such as ``'Jan 2025'``."""
    parsed = parse_date(value)
    if parsed is None:
        return ''
    return f"{calendar.month_abbr[parsed.month]} {parsed.year}"
