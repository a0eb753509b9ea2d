"""Period statistics over activity logs.

A log belongs to a period when its end instant falls inside it. Per-task
totals are sorted by time spent (ties by task id); the daily trend is
sorted by date, then task name.
"""

from __future__ import annotations

import sqlite3
from collections import defaultdict
from datetime import date
from typing import Optional

from tempo import db, periods
from tempo.models import (
    ActivityLog,
    ActivitySource,
    DailyTrend,
    SourceStatsItem,
    SourceStatsResponse,
    StatsResponse,
    TaskStatsItem,
)

PERIODS = ("daily", "weekly", "monthly")


def _percentage(part: int, total: int) -> float:
    return part / total * 100 if total > 0 else 0.0


def _logs_ending_in(conn: sqlite3.Connection, date_from: date, date_to: date) -> list[ActivityLog]:
    start, end = periods.day_window(date_from, date_to)
    return db.list_logs_ended_between(conn, start, end)


def build_stats(logs: list[ActivityLog], date_from: date, date_to: date) -> StatsResponse:
    """Aggregate already-selected logs into a StatsResponse."""
    grand_total = sum(entry.duration_seconds for entry in logs)

    by_task: dict[int, list[ActivityLog]] = defaultdict(list)
    by_day_task: dict[tuple[date, int], list[ActivityLog]] = defaultdict(list)
    for entry in logs:
        by_task[entry.task_id].append(entry)
        by_day_task[(entry.ended_at.date(), entry.task_id)].append(entry)

    task_stats = []
    for task_id, group in by_task.items():
        total = sum(e.duration_seconds for e in group)
        task_stats.append(
            TaskStatsItem(
                task_id=task_id,
                task_name=group[0].task_name,
                color_code=group[0].color_code,
                total_seconds=total,
                session_count=len(group),
                percentage=_percentage(total, grand_total),
            )
        )
    task_stats.sort(key=lambda item: (-item.total_seconds, item.task_id))

    daily_trend = [
        DailyTrend(
            date=day,
            task_id=task_id,
            task_name=group[0].task_name,
            total_seconds=sum(e.duration_seconds for e in group),
        )
        for (day, task_id), group in by_day_task.items()
    ]
    daily_trend.sort(key=lambda t: (t.date, t.task_name, t.task_id))

    return StatsResponse(
        date_from=date_from,
        date_to=date_to,
        total_seconds=grand_total,
        task_stats=task_stats,
        daily_trend=daily_trend,
    )


def get_custom(conn: sqlite3.Connection, date_from: date, date_to: date) -> StatsResponse:
    periods.custom_bounds(date_from, date_to)
    return build_stats(_logs_ending_in(conn, date_from, date_to), date_from, date_to)


def get_daily(conn: sqlite3.Connection, day: date) -> StatsResponse:
    return get_custom(conn, day, day)


def get_weekly(conn: sqlite3.Connection, day: date) -> StatsResponse:
    """Stats for the Monday-to-Sunday week containing *day*."""
    return get_custom(conn, *periods.week_bounds(day))


def get_monthly(conn: sqlite3.Connection, day: date) -> StatsResponse:
    return get_custom(conn, *periods.month_bounds(day))


def get_for_period(
    conn: sqlite3.Connection, period: Optional[str], day: Optional[date] = None
) -> StatsResponse:
    """Dispatch on a period name; unknown or missing names mean weekly."""
    day = day or periods.now().date()
    name = (period or "weekly").lower()
    if name == "daily":
        return get_daily(conn, day)
    if name == "monthly":
        return get_monthly(conn, day)
    return get_weekly(conn, day)


def get_by_source(conn: sqlite3.Connection, date_from: date, date_to: date) -> SourceStatsResponse:
    """Totals split by TIMER and MANUAL, always listed in that order."""
    periods.custom_bounds(date_from, date_to)
    logs = _logs_ending_in(conn, date_from, date_to)
    grand_total = sum(entry.duration_seconds for entry in logs)

    sources = []
    for source in ActivitySource:
        group = [e for e in logs if e.source == source]
        total = sum(e.duration_seconds for e in group)
        sources.append(
            SourceStatsItem(
                source=source,
                total_seconds=total,
                log_count=len(group),
                percentage=_percentage(total, grand_total),
            )
        )
    return SourceStatsResponse(
        date_from=date_from,
        date_to=date_to,
        total_seconds=grand_total,
        sources=sources,
    )
