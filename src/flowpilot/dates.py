"""
Calendar-date helpers shared by the analyzers.

All engine dates are calendar dates with no time-of-day component.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime
from typing import Any

from flowpilot.exceptions import DataError

WEEKDAY_NAMES = ("sunday", "monday", "tuesday", "wednesday", "thursday", "friday", "saturday")

MONTH_NAMES = (
    "january",
    "february",
    "march",
    "april",
    "may",
    "june",
    "july",
    "august",
    "september",
    "october",
    "november",
    "december",
)


def parse_date(raw: Any) -> date:
    """Coerce a date, datetime, or ISO-8601 string into a ``date``.

    Raises:
        DataError: If the value cannot be interpreted as a calendar date.
    """
    if isinstance(raw, datetime):
        # pandas NaT subclasses datetime and is the only value unequal to itself
        if raw != raw:
            raise DataError("Missing date")
        return raw.date()
    if isinstance(raw, date):
        return raw
    if isinstance(raw, str):
        text = raw.strip()
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            raise DataError(f"Unparseable date: {raw!r}") from None
    raise DataError(f"Unsupported date value: {raw!r}")


def weekday_index(d: date) -> int:
    """Day of week with Sunday = 0 … Saturday = 6."""
    return d.isoweekday() % 7


def weekday_name(d: date) -> str:
    return WEEKDAY_NAMES[weekday_index(d)]


def week_of_month(d: date) -> str:
    if d.day <= 7:
        return "week_1"
    if d.day <= 14:
        return "week_2"
    if d.day <= 21:
        return "week_3"
    return "week_4"


def month_name(d: date) -> str:
    return MONTH_NAMES[d.month - 1]


def season(d: date) -> str:
    """Northern-hemisphere meteorological season."""
    if 3 <= d.month <= 5:
        return "spring"
    if 6 <= d.month <= 8:
        return "summer"
    if 9 <= d.month <= 11:
        return "fall"
    return "winter"


def add_months(d: date, months: int) -> date:
    """Add calendar months, clamping the day to the target month's length."""
    month_index = d.month - 1 + months
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(d.day, last_day))


def is_weekend(d: date) -> bool:
    return d.weekday() >= 5
