"""Calendar helpers for leave day counting.

Leave is charged per working day: Monday to Friday, both ends of the range
inclusive. Weekends inside a range are free.
"""

from __future__ import annotations

from datetime import date
from typing import Optional

# date.weekday(): Monday == 0 … Sunday == 6
WEEKEND_DAYS = frozenset({5, 6})
WORKING_DAYS_PER_WEEK = 7 - len(WEEKEND_DAYS)


def is_working_day(day: date) -> bool:
    return day.weekday() not in WEEKEND_DAYS


def count_working_days(from_date: date, to_date: date) -> int:
    """Inclusive Mon–Fri count of ``[from_date, to_date]``.

    Whole weeks count five days each; only the trailing partial week is
    walked day by day, so the cost does not grow with the range length.
    Returns 0 when the range is reversed or holds only weekend days.
    """
    if to_date < from_date:
        return 0
    full_weeks, remainder = divmod((to_date - from_date).days + 1, 7)
    start = from_date.weekday()
    tail = sum(
        1 for offset in range(remainder) if (start + offset) % 7 not in WEEKEND_DAYS
    )
    return full_weeks * WORKING_DAYS_PER_WEEK + tail


def resolve_today(today: Optional[date] = None) -> date:
    """Return *today* if given, else the current local date."""
    return today if today is not None else date.today()
