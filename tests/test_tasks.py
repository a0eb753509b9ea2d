"""Tests for the task registry."""

from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path

import pytest

from tempo import activity, db, tasks, timer
from tempo.errors import ConflictError, InvalidArgumentError, NotFoundError
from tempo.models import ActivityLogCreate, TaskCreate, TaskUpdate

T0 = datetime(2024, 5, 15, 9, 0, 0)


@pytest.fixture()
def conn(tmp_path: Path):
    connection = db.get_connection(db_path=tmp_path / "test.db")
    yield connection
    connection.close()


class TestCreate:
    def test_create(self, conn) -> None:
        task = tasks.create_task(conn, TaskCreate(name="Read", color_code="#00ff00"), now=T0)
        assert task.id == 1
        assert task.color_code == "#00FF00"
        assert task.date_created == T0

    def test_duplicate_name(self, conn) -> None:
        tasks.create_task(conn, TaskCreate(name="Read"))
        with pytest.raises(InvalidArgumentError):
            tasks.create_task(conn, TaskCreate(name="Read"))

    def test_get_missing(self, conn) -> None:
        with pytest.raises(NotFoundError) as exc_info:
            tasks.get_task(conn, 42)
        assert exc_info.value.http_status == 404


class TestUpdate:
    def test_partial_update(self, conn) -> None:
        task = tasks.create_task(conn, TaskCreate(name="Read", description="novels"), now=T0)
        later = T0 + timedelta(hours=1)
        updated = tasks.update_task(conn, task.id, TaskUpdate(is_favorite=True), now=later)
        assert updated.is_favorite
        assert updated.name == "Read"
        assert updated.description == "novels"
        assert updated.date_updated == later
        assert tasks.get_task(conn, task.id).is_favorite

    def test_rename_to_taken_name(self, conn) -> None:
        tasks.create_task(conn, TaskCreate(name="Read"))
        other = tasks.create_task(conn, TaskCreate(name="Write"))
        with pytest.raises(InvalidArgumentError):
            tasks.update_task(conn, other.id, TaskUpdate(name="Read"))

    def test_rename_to_own_name(self, conn) -> None:
        task = tasks.create_task(conn, TaskCreate(name="Read"))
        assert tasks.update_task(conn, task.id, TaskUpdate(name="Read")).name == "Read"

    def test_deactivate_hides_from_active_list(self, conn) -> None:
        task = tasks.create_task(conn, TaskCreate(name="Read"))
        tasks.update_task(conn, task.id, TaskUpdate(is_active=False))
        assert tasks.list_tasks(conn, active_only=True) == []
        assert len(tasks.list_tasks(conn)) == 1

    def test_update_missing(self, conn) -> None:
        with pytest.raises(NotFoundError):
            tasks.update_task(conn, 7, TaskUpdate(name="x"))


class TestDelete:
    def test_delete_unused(self, conn) -> None:
        task = tasks.create_task(conn, TaskCreate(name="Read"))
        tasks.delete_task(conn, task.id)
        assert tasks.list_tasks(conn) == []

    def test_delete_with_log_conflicts(self, conn) -> None:
        task = tasks.create_task(conn, TaskCreate(name="Read"))
        activity.create_manual(
            conn,
            ActivityLogCreate(task_id=task.id, started_at=T0, ended_at=T0 + timedelta(minutes=5)),
            now=T0 + timedelta(hours=1),
        )
        with pytest.raises(ConflictError):
            tasks.delete_task(conn, task.id)
        assert tasks.get_task(conn, task.id).name == "Read"

    def test_delete_with_session_conflicts(self, conn) -> None:
        task = tasks.create_task(conn, TaskCreate(name="Read"))
        timer.start(conn, task.id, 60, now=T0)
        with pytest.raises(ConflictError):
            tasks.delete_task(conn, task.id)

    def test_delete_missing(self, conn) -> None:
        with pytest.raises(NotFoundError):
            tasks.delete_task(conn, 3)
