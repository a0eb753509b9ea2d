"""Task registry: named, coloured, favouritable activities."""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from typing import Optional

from tempo import db, periods
from tempo.errors import ConflictError, InvalidArgumentError, NotFoundError
from tempo.models import Task, TaskCreate, TaskUpdate

log = logging.getLogger(__name__)


def list_tasks(conn: sqlite3.Connection, active_only: bool = False) -> list[Task]:
    return db.list_tasks(conn, active_only=active_only)


def get_task(conn: sqlite3.Connection, task_id: int) -> Task:
    """Fetch a task or raise NotFoundError."""
    task = db.get_task(conn, task_id)
    if task is None:
        raise NotFoundError("Task", task_id)
    return task


def create_task(
    conn: sqlite3.Connection, task_in: TaskCreate, now: Optional[datetime] = None
) -> Task:
    """Create a task. Names are unique (case-sensitive)."""
    now = now or periods.now()
    with db.transaction(conn):
        if db.task_name_exists(conn, task_in.name):
            raise InvalidArgumentError(f"A task named {task_in.name!r} already exists")
        return db.insert_task(conn, task_in.name, task_in.description, task_in.color_code, now)


def update_task(
    conn: sqlite3.Connection,
    task_id: int,
    task_in: TaskUpdate,
    now: Optional[datetime] = None,
) -> Task:
    """Apply a partial update; None fields are left unchanged."""
    now = now or periods.now()
    with db.transaction(conn):
        task = get_task(conn, task_id)
        if task_in.name is not None:
            if db.task_name_exists(conn, task_in.name, exclude_id=task_id):
                raise InvalidArgumentError(f"A task named {task_in.name!r} already exists")
            task.name = task_in.name
        if task_in.description is not None:
            task.description = task_in.description
        if task_in.color_code is not None:
            task.color_code = task_in.color_code
        if task_in.is_active is not None:
            task.is_active = task_in.is_active
        if task_in.is_favorite is not None:
            task.is_favorite = task_in.is_favorite
        task.date_updated = now
        return db.update_task(conn, task)


def delete_task(conn: sqlite3.Connection, task_id: int) -> None:
    """Delete a task that nothing refers to.

    Tasks with timer sessions or activity logs are kept; deactivate them
    instead so their history stays attributable.
    """
    with db.transaction(conn):
        task = get_task(conn, task_id)
        refs = db.count_task_references(conn, task_id)
        if refs:
            log.info("Refusing to delete task %d with %d references", task_id, refs)
            raise ConflictError(
                f"Task {task.name!r} has {refs} timer session(s) or log(s); "
                "deactivate it instead of deleting it"
            )
        db.delete_task(conn, task_id)
