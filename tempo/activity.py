"""Activity log store: finished time intervals from timers or manual entry.

Overlapping intervals are allowed. Writes report them through a
non-fatal ``warning`` on the returned log instead of failing.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import date, datetime
from typing import Optional

from tempo import db, periods
from tempo.errors import InvalidArgumentError, NotFoundError
from tempo.models import (
    ActivityLog,
    ActivityLogCreate,
    ActivityLogResponse,
    ActivityLogUpdate,
    ActivitySource,
    TimerStatus,
)
from tempo.tasks import get_task

log = logging.getLogger(__name__)


def list_for_date(conn: sqlite3.Connection, day: date) -> list[ActivityLog]:
    """Logs that started on *day*, ordered by start time."""
    start, end = periods.day_window(day)
    return db.list_logs_started_between(conn, start, end)


def list_for_range(
    conn: sqlite3.Connection, date_from: date, date_to: date
) -> list[ActivityLog]:
    """Logs that started between the two dates (inclusive)."""
    periods.custom_bounds(date_from, date_to)
    start, end = periods.day_window(date_from, date_to)
    return db.list_logs_started_between(conn, start, end)


def get_log(conn: sqlite3.Connection, log_id: int) -> ActivityLog:
    found = db.get_log(conn, log_id)
    if found is None:
        raise NotFoundError("Activity log", log_id)
    return found


def count_overlapping(
    conn: sqlite3.Connection,
    start: datetime,
    end: datetime,
    exclude_id: Optional[int] = None,
) -> int:
    """How many stored logs intersect ``[start, end)``, ignoring *exclude_id*."""
    return db.count_overlapping(conn, start, end, exclude_id)


def _validate_range(started_at: datetime, ended_at: datetime, now: datetime) -> None:
    if ended_at <= started_at:
        raise InvalidArgumentError("End time must be after start time")
    if ended_at > now:
        raise InvalidArgumentError("End time cannot be in the future")


def _overlap_warning(conn: sqlite3.Connection, entry: ActivityLog) -> Optional[str]:
    count = db.count_overlapping(conn, entry.started_at, entry.ended_at, entry.id)
    if count == 0:
        return None
    log.warning("Activity log %d overlaps %d existing log(s)", entry.id, count)
    return f"Overlaps with {count} existing record(s)"


def create_manual(
    conn: sqlite3.Connection,
    log_in: ActivityLogCreate,
    now: Optional[datetime] = None,
) -> ActivityLogResponse:
    """Record a manually entered interval."""
    now = now or periods.now()
    started_at = periods.normalize(log_in.started_at)
    ended_at = periods.normalize(log_in.ended_at)
    _validate_range(started_at, ended_at, now)

    with db.transaction(conn):
        get_task(conn, log_in.task_id)
        entry = db.insert_log(
            conn,
            task_id=log_in.task_id,
            started_at=started_at,
            ended_at=ended_at,
            duration_seconds=int((ended_at - started_at).total_seconds()),
            source=ActivitySource.MANUAL,
            memo=log_in.memo,
            now=now,
        )
        warning = _overlap_warning(conn, entry)
    return ActivityLogResponse(**entry.model_dump(), warning=warning)


def record_timer_completion(
    conn: sqlite3.Connection,
    task_id: int,
    started_at: datetime,
    ended_at: datetime,
    duration_seconds: int,
    now: Optional[datetime] = None,
) -> ActivityLogResponse:
    """Store the interval of a completed timer session.

    ``duration_seconds`` is the session's running time, which excludes
    paused gaps and so may be shorter than ``ended_at - started_at``.
    """
    now = now or periods.now()
    with db.transaction(conn):
        entry = db.insert_log(
            conn,
            task_id=task_id,
            started_at=started_at,
            ended_at=ended_at,
            duration_seconds=duration_seconds,
            source=ActivitySource.TIMER,
            memo=None,
            now=now,
        )
        warning = _overlap_warning(conn, entry)
    return ActivityLogResponse(**entry.model_dump(), warning=warning)


def update_log(
    conn: sqlite3.Connection,
    log_id: int,
    log_in: ActivityLogUpdate,
    now: Optional[datetime] = None,
) -> ActivityLogResponse:
    """Change the task, time range, or memo of a log."""
    now = now or periods.now()
    with db.transaction(conn):
        entry = get_log(conn, log_id)
        if log_in.task_id is not None:
            get_task(conn, log_in.task_id)
            entry.task_id = log_in.task_id

        if log_in.started_at is not None or log_in.ended_at is not None:
            started_at = entry.started_at
            ended_at = entry.ended_at
            if log_in.started_at is not None:
                started_at = periods.normalize(log_in.started_at)
            if log_in.ended_at is not None:
                ended_at = periods.normalize(log_in.ended_at)
            _validate_range(started_at, ended_at, now)
            entry.started_at = started_at
            entry.ended_at = ended_at
            entry.duration_seconds = int((ended_at - started_at).total_seconds())

        if log_in.memo is not None:
            entry.memo = log_in.memo
        entry.date_updated = now

        updated = db.update_log(conn, entry)
        warning = _overlap_warning(conn, updated)
    return ActivityLogResponse(**updated.model_dump(), warning=warning)


def delete_log(conn: sqlite3.Connection, log_id: int) -> None:
    with db.transaction(conn):
        get_log(conn, log_id)
        db.delete_log(conn, log_id)


def backfill_timer_logs(conn: sqlite3.Connection, now: Optional[datetime] = None) -> int:
    """Create TIMER logs for completed sessions that have none.

    A session counts as recorded when a TIMER log exists for the same task
    and start instant. Returns the number of logs created.
    """
    now = now or periods.now()
    created = 0
    with db.transaction(conn):
        for session in db.list_sessions_by_status(conn, TimerStatus.COMPLETED):
            if session.ended_at is None or session.ended_at <= session.started_at:
                continue
            if db.timer_log_exists(conn, session.task_id, session.started_at):
                continue
            db.insert_log(
                conn,
                task_id=session.task_id,
                started_at=session.started_at,
                ended_at=session.ended_at,
                duration_seconds=session.elapsed,
                source=ActivitySource.TIMER,
                memo=None,
                now=now,
            )
            created += 1
    if created:
        log.info("Backfilled %d activity log(s) from completed timer sessions", created)
    return created
