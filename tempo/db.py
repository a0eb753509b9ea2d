"""SQLite database layer. All public functions return Pydantic models.

Connections run in autocommit mode. Writes that must be atomic go through
:func:`transaction`, which takes the database write lock up front
(``BEGIN IMMEDIATE``) so read-then-write sequences are serialised across
connections.
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional

from tempo.config import get_db_path as _config_get_db_path
from tempo.models import (
    ActivityLog,
    ActivitySource,
    Task,
    TimerSession,
    TimerStatus,
    UserProfile,
)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS tasks (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    name        TEXT    NOT NULL UNIQUE,
    description TEXT,
    color_code  TEXT,
    is_active   INTEGER NOT NULL DEFAULT 1,
    is_favorite INTEGER NOT NULL DEFAULT 0,
    created_at  TEXT    NOT NULL,
    updated_at  TEXT    NOT NULL
);

CREATE TABLE IF NOT EXISTS timer_sessions (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    task_id         INTEGER NOT NULL REFERENCES tasks(id) ON DELETE RESTRICT,
    duration        INTEGER NOT NULL CHECK (duration > 0),
    elapsed         INTEGER NOT NULL DEFAULT 0,
    status          TEXT    NOT NULL,
    started_at      TEXT    NOT NULL,
    ended_at        TEXT,
    last_resumed_at TEXT    NOT NULL,
    created_at      TEXT    NOT NULL,
    updated_at      TEXT    NOT NULL
);

-- At most one RUNNING session system-wide.
CREATE UNIQUE INDEX IF NOT EXISTS ux_timer_sessions_running
    ON timer_sessions(status) WHERE status = 'RUNNING';

CREATE TABLE IF NOT EXISTS activity_logs (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    task_id          INTEGER NOT NULL REFERENCES tasks(id) ON DELETE RESTRICT,
    started_at       TEXT    NOT NULL,
    ended_at         TEXT    NOT NULL,
    duration_seconds INTEGER NOT NULL,
    source           TEXT    NOT NULL,
    memo             TEXT,
    created_at       TEXT    NOT NULL,
    updated_at       TEXT    NOT NULL,
    CHECK (ended_at > started_at)
);

CREATE INDEX IF NOT EXISTS ix_activity_logs_started_at ON activity_logs(started_at);
CREATE INDEX IF NOT EXISTS ix_activity_logs_ended_at ON activity_logs(ended_at);

CREATE TABLE IF NOT EXISTS user_profile (
    id          INTEGER PRIMARY KEY CHECK (id = 1),
    nickname    TEXT    NOT NULL,
    created_at  TEXT    NOT NULL,
    updated_at  TEXT    NOT NULL
);
"""

_SESSION_SELECT = """
SELECT s.*, t.name AS task_name
FROM timer_sessions s JOIN tasks t ON t.id = s.task_id
"""

_LOG_SELECT = """
SELECT a.*, t.name AS task_name, t.color_code AS color_code
FROM activity_logs a JOIN tasks t ON t.id = a.task_id
"""


def _get_db_path() -> Path:
    """Return the database file path from config (or default)."""
    return _config_get_db_path()


def get_connection(db_path: Optional[Path] = None) -> sqlite3.Connection:
    """Open a connection and ensure the schema exists."""
    path = db_path or _get_db_path()
    conn = sqlite3.connect(str(path), isolation_level=None, timeout=10.0)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    conn.executescript(_SCHEMA)
    return conn


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """Run the enclosed statements as one atomic unit.

    Re-entrant: inside an open transaction this simply joins it.
    """
    if conn.in_transaction:
        yield conn
        return
    conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
    except BaseException:
        conn.execute("ROLLBACK")
        raise
    conn.execute("COMMIT")


def _ts(value: datetime) -> str:
    return value.isoformat(timespec="seconds")


def _parse_ts(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


def _row_to_task(row: sqlite3.Row) -> Task:
    """Convert a database row to a Task model."""
    return Task(
        id=row["id"],
        name=row["name"],
        description=row["description"],
        color_code=row["color_code"],
        is_active=bool(row["is_active"]),
        is_favorite=bool(row["is_favorite"]),
        date_created=datetime.fromisoformat(row["created_at"]),
        date_updated=datetime.fromisoformat(row["updated_at"]),
    )


def insert_task(
    conn: sqlite3.Connection,
    name: str,
    description: Optional[str],
    color_code: Optional[str],
    now: datetime,
) -> Task:
    cur = conn.execute(
        "INSERT INTO tasks (name, description, color_code, created_at, updated_at) "
        "VALUES (?, ?, ?, ?, ?)",
        (name, description, color_code, _ts(now), _ts(now)),
    )
    row = conn.execute("SELECT * FROM tasks WHERE id = ?", (cur.lastrowid,)).fetchone()
    return _row_to_task(row)


def get_task(conn: sqlite3.Connection, task_id: int) -> Optional[Task]:
    """Fetch a single task by ID."""
    row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
    return _row_to_task(row) if row else None


def list_tasks(conn: sqlite3.Connection, active_only: bool = False) -> list[Task]:
    """List tasks in creation order."""
    query = "SELECT * FROM tasks"
    if active_only:
        query += " WHERE is_active = 1"
    query += " ORDER BY id ASC"
    return [_row_to_task(r) for r in conn.execute(query).fetchall()]


def task_name_exists(
    conn: sqlite3.Connection, name: str, exclude_id: Optional[int] = None
) -> bool:
    """Case-sensitive name lookup, optionally ignoring one task."""
    row = conn.execute(
        "SELECT 1 FROM tasks WHERE name = ? AND (? IS NULL OR id <> ?)",
        (name, exclude_id, exclude_id),
    ).fetchone()
    return row is not None


def update_task(conn: sqlite3.Connection, task: Task) -> Task:
    conn.execute(
        "UPDATE tasks SET name = ?, description = ?, color_code = ?, is_active = ?, "
        "is_favorite = ?, updated_at = ? WHERE id = ?",
        (
            task.name,
            task.description,
            task.color_code,
            int(task.is_active),
            int(task.is_favorite),
            _ts(task.date_updated),
            task.id,
        ),
    )
    return task


def delete_task(conn: sqlite3.Connection, task_id: int) -> None:
    conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))


def count_task_references(conn: sqlite3.Connection, task_id: int) -> int:
    """Number of sessions and logs pointing at a task."""
    row = conn.execute(
        "SELECT (SELECT COUNT(*) FROM timer_sessions WHERE task_id = ?) "
        "     + (SELECT COUNT(*) FROM activity_logs WHERE task_id = ?) AS n",
        (task_id, task_id),
    ).fetchone()
    return row["n"]


# ---------------------------------------------------------------------------
# Timer sessions
# ---------------------------------------------------------------------------


def _row_to_session(row: sqlite3.Row) -> TimerSession:
    """Convert a database row to a TimerSession model."""
    return TimerSession(
        id=row["id"],
        task_id=row["task_id"],
        task_name=row["task_name"],
        duration=row["duration"],
        elapsed=row["elapsed"],
        status=TimerStatus(row["status"]),
        started_at=datetime.fromisoformat(row["started_at"]),
        ended_at=_parse_ts(row["ended_at"]),
        last_resumed_at=datetime.fromisoformat(row["last_resumed_at"]),
        date_created=datetime.fromisoformat(row["created_at"]),
        date_updated=datetime.fromisoformat(row["updated_at"]),
    )


def insert_session(
    conn: sqlite3.Connection, task_id: int, duration: int, now: datetime
) -> TimerSession:
    """Create a RUNNING session that starts at *now*."""
    cur = conn.execute(
        "INSERT INTO timer_sessions (task_id, duration, elapsed, status, started_at, "
        "last_resumed_at, created_at, updated_at) VALUES (?, ?, 0, ?, ?, ?, ?, ?)",
        (task_id, duration, TimerStatus.RUNNING.value, _ts(now), _ts(now), _ts(now), _ts(now)),
    )
    row = conn.execute(_SESSION_SELECT + " WHERE s.id = ?", (cur.lastrowid,)).fetchone()
    return _row_to_session(row)


def get_session(conn: sqlite3.Connection, session_id: int) -> Optional[TimerSession]:
    row = conn.execute(_SESSION_SELECT + " WHERE s.id = ?", (session_id,)).fetchone()
    return _row_to_session(row) if row else None


def list_sessions_by_status(
    conn: sqlite3.Connection, status: TimerStatus
) -> list[TimerSession]:
    """Sessions in *status*, most recently resumed first."""
    rows = conn.execute(
        _SESSION_SELECT + " WHERE s.status = ? ORDER BY s.last_resumed_at DESC, s.id DESC",
        (status.value,),
    ).fetchall()
    return [_row_to_session(r) for r in rows]


def update_session(conn: sqlite3.Connection, session: TimerSession) -> TimerSession:
    """Persist the mutable state of a session."""
    conn.execute(
        "UPDATE timer_sessions SET elapsed = ?, status = ?, ended_at = ?, "
        "last_resumed_at = ?, updated_at = ? WHERE id = ?",
        (
            session.elapsed,
            session.status.value,
            _ts(session.ended_at) if session.ended_at else None,
            _ts(session.last_resumed_at),
            _ts(session.date_updated),
            session.id,
        ),
    )
    return session


# ---------------------------------------------------------------------------
# Activity logs
# ---------------------------------------------------------------------------


def _row_to_log(row: sqlite3.Row) -> ActivityLog:
    """Convert a database row to an ActivityLog model."""
    return ActivityLog(
        id=row["id"],
        task_id=row["task_id"],
        task_name=row["task_name"],
        color_code=row["color_code"],
        started_at=datetime.fromisoformat(row["started_at"]),
        ended_at=datetime.fromisoformat(row["ended_at"]),
        duration_seconds=row["duration_seconds"],
        source=ActivitySource(row["source"]),
        memo=row["memo"],
        date_created=datetime.fromisoformat(row["created_at"]),
        date_updated=datetime.fromisoformat(row["updated_at"]),
    )


def insert_log(
    conn: sqlite3.Connection,
    task_id: int,
    started_at: datetime,
    ended_at: datetime,
    duration_seconds: int,
    source: ActivitySource,
    memo: Optional[str],
    now: datetime,
) -> ActivityLog:
    cur = conn.execute(
        "INSERT INTO activity_logs (task_id, started_at, ended_at, duration_seconds, "
        "source, memo, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
        (
            task_id,
            _ts(started_at),
            _ts(ended_at),
            duration_seconds,
            source.value,
            memo,
            _ts(now),
            _ts(now),
        ),
    )
    row = conn.execute(_LOG_SELECT + " WHERE a.id = ?", (cur.lastrowid,)).fetchone()
    return _row_to_log(row)


def get_log(conn: sqlite3.Connection, log_id: int) -> Optional[ActivityLog]:
    row = conn.execute(_LOG_SELECT + " WHERE a.id = ?", (log_id,)).fetchone()
    return _row_to_log(row) if row else None


def update_log(conn: sqlite3.Connection, log: ActivityLog) -> ActivityLog:
    conn.execute(
        "UPDATE activity_logs SET task_id = ?, started_at = ?, ended_at = ?, "
        "duration_seconds = ?, memo = ?, updated_at = ? WHERE id = ?",
        (
            log.task_id,
            _ts(log.started_at),
            _ts(log.ended_at),
            log.duration_seconds,
            log.memo,
            _ts(log.date_updated),
            log.id,
        ),
    )
    row = conn.execute(_LOG_SELECT + " WHERE a.id = ?", (log.id,)).fetchone()
    return _row_to_log(row)


def delete_log(conn: sqlite3.Connection, log_id: int) -> None:
    conn.execute("DELETE FROM activity_logs WHERE id = ?", (log_id,))


def list_logs_started_between(
    conn: sqlite3.Connection, start: datetime, end: datetime
) -> list[ActivityLog]:
    """Logs whose start instant lies in ``[start, end)``, by start time."""
    rows = conn.execute(
        _LOG_SELECT + " WHERE a.started_at >= ? AND a.started_at < ? "
        "ORDER BY a.started_at, a.id",
        (_ts(start), _ts(end)),
    ).fetchall()
    return [_row_to_log(r) for r in rows]


def list_logs_ended_between(
    conn: sqlite3.Connection, start: datetime, end: datetime
) -> list[ActivityLog]:
    """Logs whose end instant lies in ``[start, end)``, by end time."""
    rows = conn.execute(
        _LOG_SELECT + " WHERE a.ended_at >= ? AND a.ended_at < ? "
        "ORDER BY a.ended_at, a.id",
        (_ts(start), _ts(end)),
    ).fetchall()
    return [_row_to_log(r) for r in rows]


def count_overlapping(
    conn: sqlite3.Connection,
    start: datetime,
    end: datetime,
    exclude_id: Optional[int] = None,
) -> int:
    """Count logs intersecting the half-open interval ``[start, end)``."""
    row = conn.execute(
        "SELECT COUNT(*) AS n FROM activity_logs "
        "WHERE started_at < ? AND ended_at > ? AND (? IS NULL OR id <> ?)",
        (_ts(end), _ts(start), exclude_id, exclude_id),
    ).fetchone()
    return row["n"]


def timer_log_exists(conn: sqlite3.Connection, task_id: int, started_at: datetime) -> bool:
    row = conn.execute(
        "SELECT 1 FROM activity_logs WHERE task_id = ? AND started_at = ? AND source = ?",
        (task_id, _ts(started_at), ActivitySource.TIMER.value),
    ).fetchone()
    return row is not None


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------


def _row_to_profile(row: sqlite3.Row) -> UserProfile:
    return UserProfile(
        id=row["id"],
        nickname=row["nickname"],
        date_created=datetime.fromisoformat(row["created_at"]),
        date_updated=datetime.fromisoformat(row["updated_at"]),
    )


def get_profile(conn: sqlite3.Connection) -> Optional[UserProfile]:
    row = conn.execute("SELECT * FROM user_profile WHERE id = 1").fetchone()
    return _row_to_profile(row) if row else None


def upsert_profile(conn: sqlite3.Connection, nickname: str, now: datetime) -> UserProfile:
    """Create the profile row or overwrite its nickname."""
    conn.execute(
        """INSERT INTO user_profile (id, nickname, created_at, updated_at)
           VALUES (1, ?, ?, ?)
           ON CONFLICT(id) DO UPDATE SET nickname = excluded.nickname,
                                         updated_at = excluded.updated_at""",
        (nickname, _ts(now), _ts(now)),
    )
    row = conn.execute("SELECT * FROM user_profile WHERE id = 1").fetchone()
    return _row_to_profile(row)
