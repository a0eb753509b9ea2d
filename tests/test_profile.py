"""Tests for the user profile."""

from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path

import pytest

from tempo import db, profile
from tempo.errors import InvalidArgumentError

T0 = datetime(2024, 5, 15, 9, 0, 0)


@pytest.fixture()
def conn(tmp_path: Path):
    connection = db.get_connection(db_path=tmp_path / "test.db")
    yield connection
    connection.close()


class TestProfile:
    def test_absent_by_default(self, conn) -> None:
        assert profile.get_profile(conn) is None

    def test_save_trims(self, conn) -> None:
        saved = profile.save_profile(conn, "  Ada  ", now=T0)
        assert saved.nickname == "Ada"
        assert saved.id == 1
        assert profile.get_profile(conn).nickname == "Ada"

    def test_update_keeps_created(self, conn) -> None:
        profile.save_profile(conn, "Ada", now=T0)
        later = T0 + timedelta(days=3)
        saved = profile.save_profile(conn, "Grace", now=later)
        assert saved.nickname == "Grace"
        assert saved.date_created == T0
        assert saved.date_updated == later

    def test_blank_rejected(self, conn) -> None:
        with pytest.raises(InvalidArgumentError):
            profile.save_profile(conn, "   ")
        assert profile.get_profile(conn) is None

    def test_length_limit(self, conn) -> None:
        assert profile.save_profile(conn, "x" * 50).nickname == "x" * 50
        with pytest.raises(InvalidArgumentError):
            profile.save_profile(conn, "x" * 51)
