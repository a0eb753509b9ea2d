"""The single user profile."""

from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Optional

from tempo import db, periods
from tempo.errors import InvalidArgumentError
from tempo.models import UserProfile

MAX_NICKNAME_LENGTH = 50


def get_profile(conn: sqlite3.Connection) -> Optional[UserProfile]:
    """Return the profile, or None if it has never been saved."""
    return db.get_profile(conn)


def save_profile(
    conn: sqlite3.Connection, nickname: str, now: Optional[datetime] = None
) -> UserProfile:
    """Create or update the profile's nickname (trimmed, 1-50 chars)."""
    trimmed = nickname.strip()
    if not trimmed:
        raise InvalidArgumentError("Nickname cannot be blank")
    if len(trimmed) > MAX_NICKNAME_LENGTH:
        raise InvalidArgumentError(
            f"Nickname must be at most {MAX_NICKNAME_LENGTH} characters"
        )
    with db.transaction(conn):
        return db.upsert_profile(conn, trimmed, now or periods.now())
