"""Pydantic models: single source of truth for all data types.

Records and API payloads serialise with camelCase field names
(``model_dump(by_alias=True)``); Python code uses the snake_case names.
"""

from __future__ import annotations

import enum
import re
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from tempo.errors import ConflictError

_COLOR_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")

DEFAULT_PRESETS: list[int] = [5, 15, 25, 50]
DEFAULT_CORS_ORIGINS: list[str] = [
    "http://localhost:5173",
    "http://localhost:80",
    "http://localhost",
]

MAX_TASK_NAME_LENGTH = 100


class CamelModel(BaseModel):
    """Base for everything that crosses the REST boundary."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _seconds_between(start: datetime, end: datetime) -> int:
    """Whole seconds from *start* to *end*, never negative."""
    return max(0, int((end - start).total_seconds()))


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


class Task(CamelModel):
    """A user-defined activity that timers and logs attach to."""

    id: int
    name: str
    description: Optional[str] = None
    color_code: Optional[str] = None
    is_active: bool = True
    is_favorite: bool = False
    date_created: datetime = Field(default_factory=datetime.now)
    date_updated: datetime = Field(default_factory=datetime.now)


def _clean_name(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    if not value:
        raise ValueError("name must not be blank")
    if len(value) > MAX_TASK_NAME_LENGTH:
        raise ValueError(f"name must be at most {MAX_TASK_NAME_LENGTH} characters")
    return value


def _clean_color(value: Optional[str]) -> Optional[str]:
    if value is None or value == "":
        return None
    if not _COLOR_RE.match(value):
        raise ValueError("color code must look like #RRGGBB")
    return value.upper()


class TaskCreate(CamelModel):
    """Input model for creating a new task."""

    name: str
    description: Optional[str] = None
    color_code: Optional[str] = None

    @field_validator("name")
    @classmethod
    def check_name(cls, value: Optional[str]) -> Optional[str]:
        return _clean_name(value)

    @field_validator("color_code")
    @classmethod
    def check_color(cls, value: Optional[str]) -> Optional[str]:
        return _clean_color(value)


class TaskUpdate(CamelModel):
    """Partial update; fields left as None are unchanged."""

    name: Optional[str] = None
    description: Optional[str] = None
    color_code: Optional[str] = None
    is_active: Optional[bool] = None
    is_favorite: Optional[bool] = None

    @field_validator("name")
    @classmethod
    def check_name(cls, value: Optional[str]) -> Optional[str]:
        return _clean_name(value)

    @field_validator("color_code")
    @classmethod
    def check_color(cls, value: Optional[str]) -> Optional[str]:
        return _clean_color(value)


# ---------------------------------------------------------------------------
# Timer sessions
# ---------------------------------------------------------------------------


class TimerStatus(str, enum.Enum):
    """Timer session lifecycle states."""

    RUNNING = "RUNNING"
    PAUSED = "PAUSED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in (TimerStatus.COMPLETED, TimerStatus.CANCELLED)


class TimerSession(CamelModel):
    """One run of the countdown against a task.

    ``elapsed`` is the baseline folded in from closed running intervals.
    While RUNNING, the open interval started at ``last_resumed_at`` is
    added on read by :meth:`current_elapsed`.
    """

    id: int
    task_id: int
    task_name: str = ""
    duration: int = Field(gt=0)
    elapsed: int = Field(default=0, ge=0)
    status: TimerStatus = TimerStatus.RUNNING
    started_at: datetime
    ended_at: Optional[datetime] = None
    last_resumed_at: datetime
    date_created: datetime = Field(default_factory=datetime.now)
    date_updated: datetime = Field(default_factory=datetime.now)

    def current_elapsed(self, now: datetime) -> int:
        if self.status == TimerStatus.RUNNING:
            return self.elapsed + _seconds_between(self.last_resumed_at, now)
        return self.elapsed

    def remaining(self, now: datetime) -> int:
        return max(0, self.duration - self.current_elapsed(now))

    def pause(self, now: datetime) -> None:
        if self.status != TimerStatus.RUNNING:
            raise ConflictError(
                f"Only a running timer can be paused (session {self.id} is {self.status.value})"
            )
        self.elapsed += _seconds_between(self.last_resumed_at, now)
        self.status = TimerStatus.PAUSED
        self.date_updated = now

    def resume(self, now: datetime) -> None:
        if self.status != TimerStatus.PAUSED:
            raise ConflictError(
                f"Only a paused timer can be resumed (session {self.id} is {self.status.value})"
            )
        self.last_resumed_at = now
        self.status = TimerStatus.RUNNING
        self.date_updated = now

    def stop(self, final_status: TimerStatus, now: datetime) -> None:
        if not final_status.is_terminal:
            raise ValueError(f"{final_status.value} is not a terminal status")
        if self.status.is_terminal:
            raise ConflictError(
                f"Timer session {self.id} has already ended ({self.status.value})"
            )
        if self.status == TimerStatus.RUNNING:
            self.elapsed += _seconds_between(self.last_resumed_at, now)
        self.status = final_status
        self.ended_at = now
        self.date_updated = now


class TimerStartRequest(CamelModel):
    """Input model for starting a timer. ``duration`` is in seconds."""

    task_id: int
    duration: int


class TimerSessionResponse(CamelModel):
    """A session as seen by a caller at a specific instant."""

    id: int
    task_id: int
    task_name: str
    duration: int
    elapsed: int
    remaining: int
    status: TimerStatus
    started_at: datetime
    ended_at: Optional[datetime] = None
    activity_log_id: Optional[int] = None
    warning: Optional[str] = None

    @classmethod
    def from_session(
        cls,
        session: TimerSession,
        now: datetime,
        activity_log_id: Optional[int] = None,
        warning: Optional[str] = None,
    ) -> TimerSessionResponse:
        return cls(
            id=session.id,
            task_id=session.task_id,
            task_name=session.task_name,
            duration=session.duration,
            elapsed=session.current_elapsed(now),
            remaining=session.remaining(now),
            status=session.status,
            started_at=session.started_at,
            ended_at=session.ended_at,
            activity_log_id=activity_log_id,
            warning=warning,
        )


# ---------------------------------------------------------------------------
# Activity logs
# ---------------------------------------------------------------------------


class ActivitySource(str, enum.Enum):
    """Where an activity log came from."""

    TIMER = "TIMER"
    MANUAL = "MANUAL"


class ActivityLog(CamelModel):
    """A finalised time interval attributed to a task."""

    id: int
    task_id: int
    task_name: str = ""
    color_code: Optional[str] = None
    started_at: datetime
    ended_at: datetime
    duration_seconds: int = Field(ge=0)
    source: ActivitySource
    memo: Optional[str] = None
    date_created: datetime = Field(default_factory=datetime.now)
    date_updated: datetime = Field(default_factory=datetime.now)


class ActivityLogResponse(ActivityLog):
    """An activity log plus the overlap warning computed on write."""

    warning: Optional[str] = None


class ActivityLogCreate(CamelModel):
    """Input model for a manual activity log."""

    task_id: int
    started_at: datetime
    ended_at: datetime
    memo: Optional[str] = Field(default=None, max_length=500)


class ActivityLogUpdate(CamelModel):
    """Partial update of an activity log."""

    task_id: Optional[int] = None
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    memo: Optional[str] = Field(default=None, max_length=500)


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------


class TaskStatsItem(CamelModel):
    """Per-task totals within a stats period."""

    task_id: int
    task_name: str
    color_code: Optional[str] = None
    total_seconds: int = Field(ge=0)
    session_count: int = Field(ge=0)
    percentage: float = Field(ge=0)


class DailyTrend(CamelModel):
    """Seconds spent on one task on one day."""

    date: date
    task_id: int
    task_name: str
    total_seconds: int = Field(ge=0)


class StatsResponse(CamelModel):
    date_from: date = Field(alias="from")
    date_to: date = Field(alias="to")
    total_seconds: int = Field(default=0, ge=0)
    task_stats: list[TaskStatsItem] = Field(default_factory=list)
    daily_trend: list[DailyTrend] = Field(default_factory=list)


class SourceStatsItem(CamelModel):
    source: ActivitySource
    total_seconds: int = Field(ge=0)
    log_count: int = Field(ge=0)
    percentage: float = Field(ge=0)


class SourceStatsResponse(CamelModel):
    date_from: date = Field(alias="from")
    date_to: date = Field(alias="to")
    total_seconds: int = Field(default=0, ge=0)
    sources: list[SourceStatsItem] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Time tree
# ---------------------------------------------------------------------------


class TimeTreeBlock(CamelModel):
    """One activity log placed on the calendar."""

    activity_log_id: int
    task_id: int
    task_name: str
    color_code: Optional[str] = None
    started_at: datetime
    ended_at: datetime
    duration_seconds: int
    source: ActivitySource
    memo: Optional[str] = None

    @classmethod
    def from_log(cls, log: ActivityLog) -> TimeTreeBlock:
        return cls(
            activity_log_id=log.id,
            task_id=log.task_id,
            task_name=log.task_name,
            color_code=log.color_code,
            started_at=log.started_at,
            ended_at=log.ended_at,
            duration_seconds=log.duration_seconds,
            source=log.source,
            memo=log.memo,
        )


class DailySummary(CamelModel):
    total_seconds: int = Field(default=0, ge=0)


class DailyTimeTree(CamelModel):
    date: date
    blocks: list[TimeTreeBlock] = Field(default_factory=list)
    summary: DailySummary = Field(default_factory=DailySummary)


class WeeklyDayEntry(CamelModel):
    date: date
    blocks: list[TimeTreeBlock] = Field(default_factory=list)
    total_seconds: int = Field(default=0, ge=0)


class WeeklyTimeTree(CamelModel):
    week_start: date
    week_end: date
    days: list[WeeklyDayEntry] = Field(default_factory=list)


class MonthlyTaskBreakdown(CamelModel):
    task_id: int
    task_name: str
    color_code: Optional[str] = None
    total_seconds: int = Field(ge=0)


class MonthlyDayEntry(CamelModel):
    date: date
    total_seconds: int = Field(default=0, ge=0)
    task_breakdown: list[MonthlyTaskBreakdown] = Field(default_factory=list)


class MonthlyTimeTree(CamelModel):
    month: str
    days: list[MonthlyDayEntry] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Profile & configuration
# ---------------------------------------------------------------------------


class UserProfile(CamelModel):
    """The single user's profile."""

    id: int = 1
    nickname: str
    date_created: datetime = Field(default_factory=datetime.now)
    date_updated: datetime = Field(default_factory=datetime.now)


class UserProfileRequest(CamelModel):
    nickname: str


class AppConfig(BaseModel):
    """Application configuration (persisted to ~/.config/tempo/config.json)."""

    db_path: Optional[str] = None  # None = use default (~/.local/share/tempo/)
    host: str = "127.0.0.1"
    port: int = Field(default=8080, gt=0, lt=65536)
    log_level: str = "WARNING"
    timer_presets: list[int] = Field(default_factory=lambda: list(DEFAULT_PRESETS))
    cors_origins: list[str] = Field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))
