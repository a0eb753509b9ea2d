"""Rich terminal formatting helpers."""

from __future__ import annotations

from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, TextColumn, TimeRemainingColumn
from rich.table import Table

from tempo.models import (
    ActivityLog,
    DailyTimeTree,
    MonthlyTimeTree,
    SourceStatsResponse,
    StatsResponse,
    Task,
    TimerSessionResponse,
    TimerStatus,
    UserProfile,
    WeeklyTimeTree,
)

console = Console()

_STATUS_STYLE: dict[TimerStatus, str] = {
    TimerStatus.RUNNING: "bold cyan",
    TimerStatus.PAUSED: "yellow",
    TimerStatus.COMPLETED: "green",
    TimerStatus.CANCELLED: "dim",
}


def format_duration(seconds: int) -> str:
    """Render seconds as ``1h 05m``, ``12m 30s`` or ``45s``."""
    hours, rest = divmod(max(0, seconds), 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}h {minutes:02d}m"
    if minutes:
        return f"{minutes}m {secs:02d}s"
    return f"{secs}s"


def _swatch(color_code: Optional[str]) -> str:
    return f"[{color_code}]■[/{color_code}]" if color_code else " "


def print_task_list(tasks: list[Task], title: str = "Tasks") -> None:
    """Print a list of tasks in a panel."""
    if not tasks:
        console.print(Panel("No tasks.", title=title, border_style="dim"))
        return

    table = Table(show_header=False, box=None, pad_edge=False)
    table.add_column("fav", width=2)
    table.add_column("id", width=5)
    table.add_column("color", width=2)
    table.add_column("name")
    table.add_column("description", style="dim")

    for task in tasks:
        table.add_row(
            "★" if task.is_favorite else "",
            f"#{task.id}",
            _swatch(task.color_code),
            task.name,
            task.description or "",
            style=None if task.is_active else "dim strike",
        )

    console.print(Panel(table, title=title, border_style="blue"))


def print_session(session: TimerSessionResponse) -> None:
    """Print one timer session with elapsed and remaining time."""
    style = _STATUS_STYLE[session.status]
    lines = [
        f"Task: {session.task_name} (#{session.task_id})",
        f"Status: [{style}]{session.status.value}[/{style}]",
        f"Elapsed: {format_duration(session.elapsed)} of {format_duration(session.duration)}",
        f"Remaining: {format_duration(session.remaining)}",
        f"Started: {session.started_at:%Y-%m-%d %H:%M:%S}",
    ]
    if session.ended_at:
        lines.append(f"Ended: {session.ended_at:%Y-%m-%d %H:%M:%S}")
    console.print(Panel("\n".join(lines), title=f"Timer #{session.id}", border_style="cyan"))
    if session.warning:
        print_warning(session.warning)


def print_logs(logs: list[ActivityLog], title: str = "Activity") -> None:
    if not logs:
        console.print(Panel("No activity recorded.", title=title, border_style="dim"))
        return

    table = Table(box=None, pad_edge=False)
    table.add_column("id", justify="right")
    table.add_column("")
    table.add_column("task")
    table.add_column("start")
    table.add_column("end")
    table.add_column("duration", justify="right")
    table.add_column("source")
    table.add_column("memo", style="dim")
    for entry in logs:
        table.add_row(
            f"#{entry.id}",
            _swatch(entry.color_code),
            entry.task_name,
            f"{entry.started_at:%Y-%m-%d %H:%M}",
            f"{entry.ended_at:%H:%M}",
            format_duration(entry.duration_seconds),
            entry.source.value.lower(),
            entry.memo or "",
        )
    console.print(Panel(table, title=title, border_style="blue"))


def print_stats(stats: StatsResponse) -> None:
    """Print per-task totals and the daily trend for a period."""
    title = f"Stats {stats.date_from.isoformat()} .. {stats.date_to.isoformat()}"
    if stats.total_seconds == 0:
        console.print(Panel("Nothing logged in this period.", title=title, border_style="dim"))
        return

    table = Table(box=None, pad_edge=False)
    table.add_column("")
    table.add_column("task")
    table.add_column("time", justify="right")
    table.add_column("logs", justify="right")
    table.add_column("share", justify="right")
    for item in stats.task_stats:
        table.add_row(
            _swatch(item.color_code),
            item.task_name,
            format_duration(item.total_seconds),
            str(item.session_count),
            f"{item.percentage:.1f}%",
        )
    console.print(Panel(table, title=title, border_style="green"))
    console.print(f"Total: [bold]{format_duration(stats.total_seconds)}[/bold]")

    if len({t.date for t in stats.daily_trend}) > 1:
        trend = Table(title="Daily trend", box=None, pad_edge=False)
        trend.add_column("date")
        trend.add_column("task")
        trend.add_column("time", justify="right")
        for t in stats.daily_trend:
            trend.add_row(t.date.isoformat(), t.task_name, format_duration(t.total_seconds))
        console.print(trend)


def print_source_stats(stats: SourceStatsResponse) -> None:
    lines = [
        f"{item.source.value.lower():<7} {format_duration(item.total_seconds):>9}  "
        f"{item.log_count:>3} logs  {item.percentage:5.1f}%"
        for item in stats.sources
    ]
    lines.append(f"total   {format_duration(stats.total_seconds):>9}")
    title = f"By source {stats.date_from.isoformat()} .. {stats.date_to.isoformat()}"
    console.print(Panel("\n".join(lines), title=title, border_style="green"))


def print_daily_tree(tree: DailyTimeTree) -> None:
    if not tree.blocks:
        console.print(Panel("Nothing logged.", title=tree.date.isoformat(), border_style="dim"))
        return
    lines = [
        f"{b.started_at:%H:%M}-{b.ended_at:%H:%M} {_swatch(b.color_code)} {b.task_name}"
        f"  [dim]{format_duration(b.duration_seconds)}[/dim]"
        for b in tree.blocks
    ]
    lines.append("")
    lines.append(f"Total: {format_duration(tree.summary.total_seconds)}")
    console.print(Panel("\n".join(lines), title=tree.date.isoformat(), border_style="blue"))


def print_weekly_tree(tree: WeeklyTimeTree) -> None:
    table = Table(box=None, pad_edge=False)
    table.add_column("day")
    table.add_column("blocks")
    table.add_column("total", justify="right")
    for day in tree.days:
        blocks = " ".join(_swatch(b.color_code) for b in day.blocks)
        table.add_row(f"{day.date:%a %m-%d}", blocks, format_duration(day.total_seconds))
    title = f"Week {tree.week_start.isoformat()} .. {tree.week_end.isoformat()}"
    console.print(Panel(table, title=title, border_style="blue"))


def print_monthly_tree(tree: MonthlyTimeTree) -> None:
    table = Table(box=None, pad_edge=False)
    table.add_column("date")
    table.add_column("total", justify="right")
    table.add_column("top task")
    for day in tree.days:
        if day.total_seconds == 0:
            continue
        top = day.task_breakdown[0]
        table.add_row(
            day.date.isoformat(),
            format_duration(day.total_seconds),
            f"{_swatch(top.color_code)} {top.task_name}",
        )
    if not table.rows:
        console.print(Panel("Nothing logged.", title=tree.month, border_style="dim"))
        return
    console.print(Panel(table, title=tree.month, border_style="blue"))


def print_profile(profile: Optional[UserProfile]) -> None:
    if profile is None:
        print_info("No profile yet. Set one with: tempo profile --nickname NAME")
        return
    console.print(f"Hello, [bold]{profile.nickname}[/bold].")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]{message}[/green]")


def print_info(message: str) -> None:
    """Print an informational message."""
    console.print(f"[blue]{message}[/blue]")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow]{message}[/yellow]")


def create_timer_progress() -> Progress:
    """Create a Rich progress bar for the timer."""
    return Progress(
        TextColumn("[bold blue]{task.description}"),
        BarColumn(bar_width=40),
        TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
        TimeRemainingColumn(),
        console=console,
    )
