"""Clock and calendar helpers shared by the timer, stats and time-tree code.

All timestamps are naive local datetimes truncated to whole seconds.
Date ranges are inclusive ``[first, last]`` calendar dates; queries turn
them into half-open instant windows ``[first 00:00, (last + 1) 00:00)``.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, time, timedelta
from typing import Optional

from tempo.errors import InvalidArgumentError


def now() -> datetime:
    """Current local time, truncated to the second."""
    return datetime.now().replace(microsecond=0)


def normalize(value: datetime) -> datetime:
    """Bring a caller-supplied timestamp into storage form.

    Aware values are converted to local time and made naive.
    """
    if value.tzinfo is not None:
        value = value.astimezone().replace(tzinfo=None)
    return value.replace(microsecond=0)


def day_window(first: date, last: Optional[date] = None) -> tuple[datetime, datetime]:
    """Half-open instant window covering the inclusive dates *first*..*last*."""
    last = last or first
    start = datetime.combine(first, time.min)
    end = datetime.combine(last + timedelta(days=1), time.min)
    return start, end


def week_bounds(day: date) -> tuple[date, date]:
    """Monday and Sunday of the ISO week containing *day*."""
    monday = day - timedelta(days=day.weekday())
    return monday, monday + timedelta(days=6)


def month_bounds(day: date) -> tuple[date, date]:
    """First and last day of the calendar month containing *day*."""
    last_day = calendar.monthrange(day.year, day.month)[1]
    return day.replace(day=1), day.replace(day=last_day)


def custom_bounds(first: date, last: date) -> tuple[date, date]:
    if first > last:
        raise InvalidArgumentError(
            f"Start date {first.isoformat()} is after end date {last.isoformat()}"
        )
    return first, last


def parse_month(value: str) -> date:
    """Parse ``YYYY-MM`` into the first day of that month."""
    try:
        return datetime.strptime(value, "%Y-%m").date()
    except ValueError:
        raise InvalidArgumentError(f"Month must be formatted as YYYY-MM, got {value!r}")


def daterange(first: date, last: date) -> list[date]:
    """Every date from *first* to *last* inclusive."""
    return [first + timedelta(days=i) for i in range((last - first).days + 1)]
