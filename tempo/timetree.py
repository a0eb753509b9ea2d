"""Calendar projections of the activity log (daily, weekly, monthly).

Logs are placed on the day they started.
"""

from __future__ import annotations

import sqlite3
from collections import defaultdict
from datetime import date

from tempo import db, periods
from tempo.models import (
    ActivityLog,
    DailySummary,
    DailyTimeTree,
    MonthlyDayEntry,
    MonthlyTaskBreakdown,
    MonthlyTimeTree,
    TimeTreeBlock,
    WeeklyDayEntry,
    WeeklyTimeTree,
)


def _logs_by_start_date(
    conn: sqlite3.Connection, first: date, last: date
) -> dict[date, list[ActivityLog]]:
    start, end = periods.day_window(first, last)
    grouped: dict[date, list[ActivityLog]] = defaultdict(list)
    for entry in db.list_logs_started_between(conn, start, end):
        grouped[entry.started_at.date()].append(entry)
    return grouped


def get_daily(conn: sqlite3.Connection, day: date) -> DailyTimeTree:
    """Blocks for one day in start order, with the day's total."""
    logs = _logs_by_start_date(conn, day, day).get(day, [])
    return DailyTimeTree(
        date=day,
        blocks=[TimeTreeBlock.from_log(entry) for entry in logs],
        summary=DailySummary(total_seconds=sum(e.duration_seconds for e in logs)),
    )


def get_weekly(conn: sqlite3.Connection, day: date) -> WeeklyTimeTree:
    """Seven day entries, Monday through Sunday, for the week containing *day*."""
    monday, sunday = periods.week_bounds(day)
    grouped = _logs_by_start_date(conn, monday, sunday)
    days = []
    for d in periods.daterange(monday, sunday):
        logs = grouped.get(d, [])
        days.append(
            WeeklyDayEntry(
                date=d,
                blocks=[TimeTreeBlock.from_log(entry) for entry in logs],
                total_seconds=sum(e.duration_seconds for e in logs),
            )
        )
    return WeeklyTimeTree(week_start=monday, week_end=sunday, days=days)


def _task_breakdown(logs: list[ActivityLog]) -> list[MonthlyTaskBreakdown]:
    by_task: dict[int, list[ActivityLog]] = defaultdict(list)
    for entry in logs:
        by_task[entry.task_id].append(entry)
    breakdown = [
        MonthlyTaskBreakdown(
            task_id=task_id,
            task_name=group[0].task_name,
            color_code=group[0].color_code,
            total_seconds=sum(e.duration_seconds for e in group),
        )
        for task_id, group in by_task.items()
    ]
    breakdown.sort(key=lambda b: (-b.total_seconds, b.task_id))
    return breakdown


def get_monthly(conn: sqlite3.Connection, day: date) -> MonthlyTimeTree:
    """One heat-map entry per day of the month containing *day*."""
    first, last = periods.month_bounds(day)
    grouped = _logs_by_start_date(conn, first, last)
    days = []
    for d in periods.daterange(first, last):
        logs = grouped.get(d, [])
        days.append(
            MonthlyDayEntry(
                date=d,
                total_seconds=sum(e.duration_seconds for e in logs),
                task_breakdown=_task_breakdown(logs),
            )
        )
    return MonthlyTimeTree(month=first.strftime("%Y-%m"), days=days)
