"""Tempo CLI -- track where your time goes, one task at a time."""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Iterator, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler

from tempo import activity, db, display, stats, timer, timetree
from tempo import config as cfg
from tempo import profile as profile_store
from tempo import tasks as task_registry
from tempo.errors import TempoError, from_validation_error
from tempo.models import ActivityLogCreate, ActivityLogUpdate, TaskCreate, TaskUpdate

app = typer.Typer(
    name="tempo",
    help="Time your tasks, log what you did, and see where the hours went.",
    no_args_is_help=True,
)
task_app = typer.Typer(help="Manage tasks.", no_args_is_help=True)
timer_app = typer.Typer(help="Run the countdown timer.", no_args_is_help=True)
log_app = typer.Typer(help="View and edit the activity log.", no_args_is_help=True)
app.add_typer(task_app, name="task")
app.add_typer(timer_app, name="timer")
app.add_typer(log_app, name="log")

_DATE_FORMATS = ["%Y-%m-%d"]
_DATETIME_FORMATS = ["%Y-%m-%dT%H:%M:%S", "%Y-%m-%dT%H:%M", "%Y-%m-%d %H:%M:%S", "%Y-%m-%d %H:%M"]


def _setup_logging(verbose: bool) -> None:
    if verbose:
        level = logging.DEBUG
    else:
        level = getattr(logging, cfg.load_config().log_level.upper(), logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    """Time your tasks, log what you did, and see where the hours went."""
    _setup_logging(verbose)


@contextmanager
def _conn() -> Iterator[sqlite3.Connection]:
    """Open a database connection; report service errors and exit 1."""
    conn = db.get_connection()
    try:
        yield conn
    except TempoError as exc:
        display.print_warning(exc.message)
        raise typer.Exit(1)
    except ValidationError as exc:
        display.print_warning(from_validation_error(exc).message)
        raise typer.Exit(1)
    except OverflowError:
        display.print_warning("Numeric value out of range")
        raise typer.Exit(1)
    finally:
        conn.close()


def _as_date(value: Optional[datetime]) -> Optional[date]:
    return value.date() if value is not None else None


def _save_image(image, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    image.save(path)
    display.print_success(f"Chart saved to {path}")


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


@task_app.command("add")
def task_add(
    name: str = typer.Argument(..., help="Task name (must be unique)"),
    description: Optional[str] = typer.Option(None, "--description", "-d"),
    color: Optional[str] = typer.Option(None, "--color", "-c", help="Colour as #RRGGBB"),
) -> None:
    """Add a new task."""
    with _conn() as conn:
        task = task_registry.create_task(
            conn, TaskCreate(name=name, description=description, color_code=color)
        )
        display.print_success(f"Added task #{task.id}: {task.name}")


@task_app.command("list")
def task_list(
    all_tasks: bool = typer.Option(False, "--all", "-a", help="Include inactive tasks"),
) -> None:
    """List your tasks."""
    with _conn() as conn:
        found = task_registry.list_tasks(conn, active_only=not all_tasks)
        display.print_task_list(found)


@task_app.command("edit")
def task_edit(
    task_id: int = typer.Argument(..., help="ID of the task to change"),
    name: Optional[str] = typer.Option(None, "--name", "-n"),
    description: Optional[str] = typer.Option(None, "--description", "-d"),
    color: Optional[str] = typer.Option(None, "--color", "-c"),
    active: Optional[bool] = typer.Option(None, "--active/--inactive"),
    favorite: Optional[bool] = typer.Option(None, "--favorite/--no-favorite"),
) -> None:
    """Change a task's name, description, colour, or flags."""
    with _conn() as conn:
        task = task_registry.update_task(
            conn,
            task_id,
            TaskUpdate(
                name=name,
                description=description,
                color_code=color,
                is_active=active,
                is_favorite=favorite,
            ),
        )
        display.print_success(f"Updated task #{task.id}: {task.name}")


@task_app.command("rm")
def task_rm(task_id: int = typer.Argument(..., help="ID of the task to delete")) -> None:
    """Delete a task that has no timer sessions or logs."""
    with _conn() as conn:
        task_registry.delete_task(conn, task_id)
        display.print_success(f"Deleted task #{task_id}.")


# ---------------------------------------------------------------------------
# Timer
# ---------------------------------------------------------------------------


def _session_id(conn: sqlite3.Connection, session_id: Optional[int]) -> int:
    if session_id is not None:
        return session_id
    active = timer.get_active_session(conn)
    if active is None:
        display.print_warning("No running or paused timer.")
        raise typer.Exit(1)
    return active.id


@timer_app.command("start")
def timer_start(
    task_id: int = typer.Argument(..., help="Task to time"),
    minutes: Optional[int] = typer.Option(
        None, "--minutes", "-m", help="Duration in minutes (default: first preset)"
    ),
    seconds: Optional[int] = typer.Option(None, "--seconds", "-s", help="Duration in seconds"),
    watch: bool = typer.Option(False, "--watch", "-w", help="Show a live countdown"),
) -> None:
    """Start a timer. Any running timer is paused first."""
    if seconds is not None:
        duration = seconds
    elif minutes is not None:
        duration = minutes * 60
    else:
        presets = cfg.load_config().timer_presets
        duration = (presets[0] if presets else 25) * 60
    with _conn() as conn:
        session = timer.start(conn, task_id, duration)
        display.print_session(session)
        if watch:
            timer.watch(conn, session.id)


@timer_app.command("status")
def timer_status() -> None:
    """Show the running (or most recently paused) timer."""
    with _conn() as conn:
        active = timer.get_active_session(conn)
        if active is None:
            display.print_info("No running or paused timer.")
            return
        display.print_session(active)


@timer_app.command("pause")
def timer_pause(
    session_id: Optional[int] = typer.Argument(None, help="Session ID (default: active)"),
) -> None:
    """Pause a running timer."""
    with _conn() as conn:
        display.print_session(timer.pause(conn, _session_id(conn, session_id)))


@timer_app.command("resume")
def timer_resume(
    session_id: Optional[int] = typer.Argument(None, help="Session ID (default: active)"),
) -> None:
    """Resume a paused timer."""
    with _conn() as conn:
        display.print_session(timer.resume(conn, _session_id(conn, session_id)))


@timer_app.command("stop")
def timer_stop(
    session_id: Optional[int] = typer.Argument(None, help="Session ID (default: active)"),
    cancel: bool = typer.Option(False, "--cancel", help="Discard instead of logging it"),
) -> None:
    """Stop a timer. Completed timers are added to the activity log."""
    with _conn() as conn:
        session = timer.stop(conn, _session_id(conn, session_id), completed=not cancel)
        display.print_session(session)
        if session.activity_log_id is not None:
            display.print_success("Logged to your activity.")


@timer_app.command("watch")
def timer_watch(
    session_id: Optional[int] = typer.Argument(None, help="Session ID (default: active)"),
) -> None:
    """Follow a timer with a live countdown; completes it at zero."""
    with _conn() as conn:
        timer.watch(conn, _session_id(conn, session_id))


# ---------------------------------------------------------------------------
# Activity log
# ---------------------------------------------------------------------------


@log_app.command("add")
def log_add(
    task_id: int = typer.Argument(..., help="Task the time was spent on"),
    started_at: datetime = typer.Argument(..., formats=_DATETIME_FORMATS, help="Start"),
    ended_at: datetime = typer.Argument(..., formats=_DATETIME_FORMATS, help="End"),
    memo: Optional[str] = typer.Option(None, "--memo", "-m"),
) -> None:
    """Log time you spent without running the timer."""
    with _conn() as conn:
        entry = activity.create_manual(
            conn,
            ActivityLogCreate(task_id=task_id, started_at=started_at, ended_at=ended_at, memo=memo),
        )
        display.print_success(
            f"Logged #{entry.id}: {entry.task_name} "
            f"({display.format_duration(entry.duration_seconds)})"
        )
        if entry.warning:
            display.print_warning(entry.warning)


@log_app.command("list")
def log_list(
    on: Optional[datetime] = typer.Option(None, "--date", formats=_DATE_FORMATS),
    date_from: Optional[datetime] = typer.Option(None, "--from", formats=_DATE_FORMATS),
    date_to: Optional[datetime] = typer.Option(None, "--to", formats=_DATE_FORMATS),
) -> None:
    """List logs for a day (default today) or a date range."""
    with _conn() as conn:
        if date_from is not None and date_to is not None:
            found = activity.list_for_range(conn, date_from.date(), date_to.date())
            title = f"Activity {date_from:%Y-%m-%d} .. {date_to:%Y-%m-%d}"
        else:
            day = _as_date(on) or date.today()
            found = activity.list_for_date(conn, day)
            title = f"Activity {day.isoformat()}"
        display.print_logs(found, title=title)


@log_app.command("edit")
def log_edit(
    log_id: int = typer.Argument(...),
    task_id: Optional[int] = typer.Option(None, "--task", "-t"),
    started_at: Optional[datetime] = typer.Option(None, "--start", formats=_DATETIME_FORMATS),
    ended_at: Optional[datetime] = typer.Option(None, "--end", formats=_DATETIME_FORMATS),
    memo: Optional[str] = typer.Option(None, "--memo", "-m"),
) -> None:
    """Change a log's task, time range, or memo."""
    with _conn() as conn:
        entry = activity.update_log(
            conn,
            log_id,
            ActivityLogUpdate(task_id=task_id, started_at=started_at, ended_at=ended_at, memo=memo),
        )
        display.print_success(f"Updated log #{entry.id}.")
        if entry.warning:
            display.print_warning(entry.warning)


@log_app.command("rm")
def log_rm(log_id: int = typer.Argument(...)) -> None:
    """Delete a log."""
    with _conn() as conn:
        activity.delete_log(conn, log_id)
        display.print_success(f"Deleted log #{log_id}.")


@app.command()
def backfill() -> None:
    """Create logs for completed timers that are missing from the activity log."""
    with _conn() as conn:
        created = activity.backfill_timer_logs(conn)
        display.print_success(f"Backfilled {created} log{'s' if created != 1 else ''}.")


# ---------------------------------------------------------------------------
# Stats & time tree
# ---------------------------------------------------------------------------


@app.command(name="stats")
def show_stats(
    period: str = typer.Option("weekly", "--period", "-p", help="daily, weekly or monthly"),
    on: Optional[datetime] = typer.Option(None, "--date", formats=_DATE_FORMATS),
    date_from: Optional[datetime] = typer.Option(None, "--from", formats=_DATE_FORMATS),
    date_to: Optional[datetime] = typer.Option(None, "--to", formats=_DATE_FORMATS),
    by_source: bool = typer.Option(False, "--by-source", help="Split timer vs manual"),
    chart: Optional[Path] = typer.Option(None, "--chart", help="Save a PNG bar chart here"),
) -> None:
    """Show how your time was spent in a period."""
    if period.lower() not in stats.PERIODS:
        display.print_warning(f"Unknown period '{period}'. Use daily, weekly or monthly.")
        raise typer.Exit(1)
    with _conn() as conn:
        if date_from is not None and date_to is not None:
            result = stats.get_custom(conn, date_from.date(), date_to.date())
        else:
            result = stats.get_for_period(conn, period, _as_date(on))
        display.print_stats(result)

        if by_source:
            display.print_source_stats(
                stats.get_by_source(conn, result.date_from, result.date_to)
            )

    if chart is not None:
        from tempo.charts import stats_breakdown_chart

        image = stats_breakdown_chart(result)
        if image is None:
            display.print_info("Nothing to chart.")
        else:
            _save_image(image, chart)


@app.command(name="tree")
def show_tree(
    view: str = typer.Argument("daily", help="daily, weekly or monthly"),
    on: Optional[datetime] = typer.Option(None, "--date", formats=_DATE_FORMATS),
    chart: Optional[Path] = typer.Option(None, "--chart", help="Save the weekly view as PNG"),
) -> None:
    """Show the time tree calendar."""
    day = _as_date(on) or date.today()
    with _conn() as conn:
        if view == "daily":
            display.print_daily_tree(timetree.get_daily(conn, day))
        elif view == "weekly":
            weekly = timetree.get_weekly(conn, day)
            display.print_weekly_tree(weekly)
            if chart is not None:
                from tempo.charts import weekly_timetree_chart

                _save_image(weekly_timetree_chart(weekly), chart)
        elif view == "monthly":
            display.print_monthly_tree(timetree.get_monthly(conn, day))
        else:
            display.print_warning(f"Unknown view '{view}'. Use daily, weekly or monthly.")
            raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Profile, configuration & server
# ---------------------------------------------------------------------------


@app.command()
def profile(
    nickname: Optional[str] = typer.Option(None, "--nickname", "-n", help="Set your nickname"),
) -> None:
    """Show or set your nickname."""
    with _conn() as conn:
        if nickname is not None:
            saved = profile_store.save_profile(conn, nickname)
            display.print_success(f"Nickname set to {saved.nickname}.")
        else:
            display.print_profile(profile_store.get_profile(conn))


@app.command()
def config(
    db_path: Optional[str] = typer.Option(
        None, "--db-path",
        help="Set a custom database file path",
    ),
    reset: bool = typer.Option(False, "--reset", help="Reset to default local DB"),
    add_preset: Optional[int] = typer.Option(None, "--add-preset", help="Add a timer preset (minutes)"),
    remove_preset: Optional[int] = typer.Option(None, "--remove-preset", help="Remove a timer preset"),
    reset_presets: bool = typer.Option(False, "--reset-presets", help="Restore default presets"),
    show: bool = typer.Option(False, "--show", help="Show current config"),
) -> None:
    """Configure the database location and timer presets."""
    try:
        if db_path:
            result = cfg.set_db_path(db_path)
            display.print_success(f"Database path set to: {result.db_path}")
        elif reset:
            cfg.reset_db_path()
            display.print_success("Reset to default local database.")
        elif add_preset is not None:
            result = cfg.add_preset(add_preset)
            display.print_success(f"Presets: {', '.join(map(str, result.timer_presets))} min")
        elif remove_preset is not None:
            result = cfg.remove_preset(remove_preset)
            display.print_success(f"Presets: {', '.join(map(str, result.timer_presets))} min")
        elif reset_presets:
            result = cfg.reset_presets()
            display.print_success(f"Presets: {', '.join(map(str, result.timer_presets))} min")
        elif show:
            current = cfg.load_config()
            resolved = cfg.get_db_path()
            if current.db_path:
                display.print_info(f"Database: {current.db_path}")
            else:
                display.print_info(f"Database: {resolved} (default)")
            display.print_info(f"Server: http://{current.host}:{current.port}")
            display.print_info(f"Presets: {', '.join(map(str, current.timer_presets))} min")
        else:
            display.print_info(
                "Use --db-path, --reset, --add-preset, --remove-preset, --reset-presets, or --show."
            )
    except TempoError as exc:
        display.print_warning(exc.message)
        raise typer.Exit(1)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address (default from config)"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port (default from config)"),
    debug: bool = typer.Option(False, "--debug", help="Enable the Flask debugger"),
) -> None:
    """Serve the REST API."""
    from tempo.api import create_app

    current = cfg.load_config()
    bind_host = host or current.host
    bind_port = port or current.port
    logging.getLogger(__name__).info("Serving API on http://%s:%d", bind_host, bind_port)
    server = create_app(cors_origins=current.cors_origins)
    server.run(host=bind_host, port=bind_port, debug=debug)
