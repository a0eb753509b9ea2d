"""Timer engine: start/pause/resume/stop of countdown sessions.

Nothing ticks on the server side. A session stores an elapsed baseline
plus the instant it last resumed, so its current elapsed time can be
derived at any moment. At most one session is RUNNING: starting or
resuming a timer first pauses whatever else is running, all inside one
write-locked transaction.
"""

from __future__ import annotations

import logging
import sqlite3
import time
from datetime import datetime
from typing import Optional

from tempo import activity, db, periods
from tempo.display import console, create_timer_progress, print_success, print_warning
from tempo.errors import ConflictError, InvalidArgumentError, NotFoundError
from tempo.models import TimerSession, TimerSessionResponse, TimerStatus
from tempo.tasks import get_task

log = logging.getLogger(__name__)


def _get_session(conn: sqlite3.Connection, session_id: int) -> TimerSession:
    session = db.get_session(conn, session_id)
    if session is None:
        raise NotFoundError("Timer session", session_id)
    return session


def _pause_running(
    conn: sqlite3.Connection, now: datetime, keep_id: Optional[int] = None
) -> None:
    """Pause every RUNNING session except *keep_id*."""
    for running in db.list_sessions_by_status(conn, TimerStatus.RUNNING):
        if running.id == keep_id:
            continue
        running.pause(now)
        db.update_session(conn, running)
        log.info("Auto-paused timer session %d (%s)", running.id, running.task_name)


def get_active_session(
    conn: sqlite3.Connection, now: Optional[datetime] = None
) -> Optional[TimerSessionResponse]:
    """The RUNNING session, else the most recently paused one, else None."""
    now = now or periods.now()
    for status in (TimerStatus.RUNNING, TimerStatus.PAUSED):
        sessions = db.list_sessions_by_status(conn, status)
        if sessions:
            return TimerSessionResponse.from_session(sessions[0], now)
    return None


def get_session(
    conn: sqlite3.Connection, session_id: int, now: Optional[datetime] = None
) -> TimerSessionResponse:
    now = now or periods.now()
    return TimerSessionResponse.from_session(_get_session(conn, session_id), now)


def start(
    conn: sqlite3.Connection,
    task_id: int,
    duration: int,
    now: Optional[datetime] = None,
) -> TimerSessionResponse:
    """Start a new session of *duration* seconds against a task."""
    now = now or periods.now()
    with db.transaction(conn):
        task = get_task(conn, task_id)
        if duration <= 0:
            raise InvalidArgumentError("Timer duration must be greater than 0 seconds")
        _pause_running(conn, now)
        session = db.insert_session(conn, task.id, duration, now)
    log.info("Started timer session %d for %r (%ds)", session.id, task.name, duration)
    return TimerSessionResponse.from_session(session, now)


def pause(
    conn: sqlite3.Connection, session_id: int, now: Optional[datetime] = None
) -> TimerSessionResponse:
    now = now or periods.now()
    with db.transaction(conn):
        session = _get_session(conn, session_id)
        session.pause(now)
        db.update_session(conn, session)
    log.info("Paused timer session %d at %ds", session.id, session.elapsed)
    return TimerSessionResponse.from_session(session, now)


def resume(
    conn: sqlite3.Connection, session_id: int, now: Optional[datetime] = None
) -> TimerSessionResponse:
    now = now or periods.now()
    with db.transaction(conn):
        session = _get_session(conn, session_id)
        if session.status != TimerStatus.PAUSED:
            raise ConflictError(
                f"Only a paused timer can be resumed "
                f"(session {session.id} is {session.status.value})"
            )
        _pause_running(conn, now, keep_id=session.id)
        session.resume(now)
        db.update_session(conn, session)
    log.info("Resumed timer session %d", session.id)
    return TimerSessionResponse.from_session(session, now)


def stop(
    conn: sqlite3.Connection,
    session_id: int,
    completed: bool = True,
    now: Optional[datetime] = None,
) -> TimerSessionResponse:
    """End a session as COMPLETED or CANCELLED.

    Completing a session records a TIMER activity log in the same
    transaction: if the log cannot be written the stop is rolled back too.
    A session stopped within the second it started spans no time and gets
    no log.
    """
    now = now or periods.now()
    final_status = TimerStatus.COMPLETED if completed else TimerStatus.CANCELLED
    log_id = None
    warning = None
    with db.transaction(conn):
        session = _get_session(conn, session_id)
        session.stop(final_status, now)
        db.update_session(conn, session)
        if completed and now > session.started_at:
            entry = activity.record_timer_completion(
                conn,
                task_id=session.task_id,
                started_at=session.started_at,
                ended_at=now,
                duration_seconds=session.elapsed,
                now=now,
            )
            log_id = entry.id
            warning = entry.warning
        elif completed:
            log.info("Timer session %d ended where it started; no log recorded", session.id)
    log.info(
        "Stopped timer session %d as %s after %ds",
        session.id,
        final_status.value,
        session.elapsed,
    )
    return TimerSessionResponse.from_session(
        session, now, activity_log_id=log_id, warning=warning
    )


def watch(conn: sqlite3.Connection, session_id: int, poll_seconds: float = 1.0) -> bool:
    """Show a live countdown for a session until it ends.

    The bar is re-derived from the stored session on each poll, so pausing
    or stopping from elsewhere is picked up. When the countdown reaches zero
    the session is stopped as completed. Returns True if this call completed
    the session, False if it ended otherwise or the user pressed Ctrl-C.
    """
    current = get_session(conn, session_id)
    progress = create_timer_progress()

    try:
        with progress:
            bar = progress.add_task(current.task_name, total=current.duration)
            while True:
                current = get_session(conn, session_id)
                progress.update(bar, completed=current.elapsed)
                if current.status.is_terminal:
                    return False
                if current.status == TimerStatus.RUNNING and current.remaining == 0:
                    break
                time.sleep(poll_seconds)
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped watching; the timer keeps its state.[/yellow]")
        return False

    result = stop(conn, session_id, completed=True)
    # Bell notification
    console.print("\a", end="")
    print_success(f"Timer for {result.task_name} completed ({result.elapsed}s logged).")
    if result.warning:
        print_warning(result.warning)
    return True
