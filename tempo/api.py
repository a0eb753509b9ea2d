"""REST API for the single-page client.

Every endpoint lives under ``/api`` and speaks camelCase JSON. Errors are
rendered as ``{"message": ...}`` with 404 (not found), 400 (bad argument)
or 409 (state conflict). Anything unexpected is logged and answered
with 500; unknown routes and oversized ids answer 404.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import date
from pathlib import Path
from typing import Any, Optional

from flask import Flask, Response, g, jsonify, request
from flask_cors import CORS
from pydantic import BaseModel, ValidationError
from werkzeug.exceptions import HTTPException
from werkzeug.routing import IntegerConverter

from tempo import activity, db, periods, profile, stats, tasks, timer, timetree
from tempo import config as cfg
from tempo.errors import InvalidArgumentError, TempoError, from_validation_error
from tempo.models import (
    ActivityLogCreate,
    ActivityLogUpdate,
    TaskCreate,
    TaskUpdate,
    TimerStartRequest,
    UserProfileRequest,
)

log = logging.getLogger(__name__)

# Largest value an SQLite INTEGER column can hold.
_MAX_ROW_ID = 2**63 - 1

_CORS_METHODS = ["GET", "POST", "PUT", "DELETE", "OPTIONS"]


class RowIdConverter(IntegerConverter):
    """Path ids limited to the SQLite INTEGER range; larger ids do not match."""

    def __init__(self, url_map, *args, **kwargs):
        kwargs.setdefault("max", _MAX_ROW_ID)
        super().__init__(url_map, *args, **kwargs)


def _dump(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    if isinstance(value, list):
        return [_dump(v) for v in value]
    return value


def _json(value: Any, status: int = 200) -> tuple[Response, int]:
    return jsonify(_dump(value)), status


def _no_content() -> tuple[str, int]:
    return "", 204


def _body(model: type[BaseModel]) -> Any:
    """Parse the JSON request body into *model*."""
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise InvalidArgumentError("Request body must be a JSON object")
    return model.model_validate(payload)


def _query_date(name: str) -> Optional[date]:
    raw = request.args.get(name)
    if not raw:
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError:
        raise InvalidArgumentError(f"{name} must be an ISO date (YYYY-MM-DD), got {raw!r}")


def _query_range() -> Optional[tuple[date, date]]:
    """The ``from``/``to`` pair, or None when neither is given."""
    date_from, date_to = _query_date("from"), _query_date("to")
    if date_from is None and date_to is None:
        return None
    if date_from is None or date_to is None:
        raise InvalidArgumentError("from and to must be given together")
    return date_from, date_to


def _query_bool(name: str, default: bool) -> bool:
    raw = request.args.get(name)
    if raw is None:
        return default
    lowered = raw.lower()
    if lowered in ("true", "1", "yes"):
        return True
    if lowered in ("false", "0", "no"):
        return False
    raise InvalidArgumentError(f"{name} must be true or false, got {raw!r}")


def create_app(
    db_path: Optional[Path] = None, cors_origins: Optional[list[str]] = None
) -> Flask:
    app = Flask(__name__)
    app.config["TEMPO_DB_PATH"] = db_path
    app.url_map.converters["id"] = RowIdConverter
    if cors_origins is None:
        cors_origins = cfg.load_config().cors_origins
    CORS(app, resources={r"/api/*": {"origins": cors_origins, "methods": _CORS_METHODS}})

    def conn() -> sqlite3.Connection:
        if "conn" not in g:
            g.conn = db.get_connection(app.config["TEMPO_DB_PATH"])
        return g.conn

    @app.teardown_appcontext
    def close_conn(exc: Optional[BaseException]) -> None:
        c = g.pop("conn", None)
        if c is not None:
            c.close()

    # -- errors -----------------------------------------------------------

    @app.errorhandler(TempoError)
    def handle_tempo_error(exc: TempoError):
        return jsonify({"message": exc.message}), exc.http_status

    @app.errorhandler(ValidationError)
    def handle_validation_error(exc: ValidationError):
        err = from_validation_error(exc)
        return jsonify({"message": err.message}), err.http_status

    @app.errorhandler(OverflowError)
    def handle_overflow(exc: OverflowError):
        return jsonify({"message": "Numeric value out of range"}), 400

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        return jsonify({"message": exc.description}), exc.code

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception):
        log.exception("Unhandled error while handling %s %s", request.method, request.path)
        if isinstance(exc, sqlite3.Error):
            return jsonify({"message": "Internal database error"}), 500
        return jsonify({"message": "Internal server error"}), 500

    # -- tasks ------------------------------------------------------------

    @app.get("/api/tasks")
    def list_tasks():
        return _json(tasks.list_tasks(conn()))

    @app.get("/api/tasks/<id:task_id>")
    def get_task(task_id: int):
        return _json(tasks.get_task(conn(), task_id))

    @app.post("/api/tasks")
    def create_task():
        return _json(tasks.create_task(conn(), _body(TaskCreate)), 201)

    @app.put("/api/tasks/<id:task_id>")
    def update_task(task_id: int):
        return _json(tasks.update_task(conn(), task_id, _body(TaskUpdate)))

    @app.delete("/api/tasks/<id:task_id>")
    def delete_task(task_id: int):
        tasks.delete_task(conn(), task_id)
        return _no_content()

    # -- timer ------------------------------------------------------------

    @app.get("/api/timer/active")
    def active_timer():
        return _json(timer.get_active_session(conn()))

    @app.post("/api/timer/start")
    def start_timer():
        req = _body(TimerStartRequest)
        return _json(timer.start(conn(), req.task_id, req.duration), 201)

    @app.post("/api/timer/<id:session_id>/pause")
    def pause_timer(session_id: int):
        return _json(timer.pause(conn(), session_id))

    @app.post("/api/timer/<id:session_id>/resume")
    def resume_timer(session_id: int):
        return _json(timer.resume(conn(), session_id))

    @app.post("/api/timer/<id:session_id>/stop")
    def stop_timer(session_id: int):
        completed = _query_bool("completed", default=True)
        return _json(timer.stop(conn(), session_id, completed=completed))

    # -- activity logs ----------------------------------------------------

    @app.get("/api/activity-logs")
    def list_logs():
        span = _query_range()
        if span is not None:
            return _json(activity.list_for_range(conn(), *span))
        day = _query_date("date") or periods.now().date()
        return _json(activity.list_for_date(conn(), day))

    @app.get("/api/activity-logs/<id:log_id>")
    def get_log(log_id: int):
        return _json(activity.get_log(conn(), log_id))

    @app.post("/api/activity-logs")
    def create_log():
        return _json(activity.create_manual(conn(), _body(ActivityLogCreate)), 201)

    @app.put("/api/activity-logs/<id:log_id>")
    def update_log(log_id: int):
        return _json(activity.update_log(conn(), log_id, _body(ActivityLogUpdate)))

    @app.delete("/api/activity-logs/<id:log_id>")
    def delete_log(log_id: int):
        activity.delete_log(conn(), log_id)
        return _no_content()

    # -- stats ------------------------------------------------------------

    @app.get("/api/stats")
    def get_stats():
        span = _query_range()
        if span is not None:
            return _json(stats.get_custom(conn(), *span))
        return _json(
            stats.get_for_period(conn(), request.args.get("period"), _query_date("date"))
        )

    @app.get("/api/stats/by-source")
    def get_stats_by_source():
        span = _query_range() or periods.week_bounds(periods.now().date())
        return _json(stats.get_by_source(conn(), *span))

    # -- profile ----------------------------------------------------------

    @app.get("/api/profile")
    def get_profile():
        found = profile.get_profile(conn())
        if found is None:
            return _no_content()
        return _json(found)

    @app.put("/api/profile")
    def save_profile():
        req = _body(UserProfileRequest)
        return _json(profile.save_profile(conn(), req.nickname))

    # -- time tree --------------------------------------------------------

    @app.get("/api/timetree/daily")
    def timetree_daily():
        day = _query_date("date") or periods.now().date()
        return _json(timetree.get_daily(conn(), day))

    @app.get("/api/timetree/weekly")
    def timetree_weekly():
        day = _query_date("date") or periods.now().date()
        return _json(timetree.get_weekly(conn(), day))

    @app.get("/api/timetree/monthly")
    def timetree_monthly():
        month = request.args.get("month")
        day = periods.parse_month(month) if month else periods.now().date()
        return _json(timetree.get_monthly(conn(), day))

    return app
