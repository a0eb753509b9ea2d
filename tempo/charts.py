"""Matplotlib charts for stats and the weekly time tree.

All figures use the same dark theme and are returned as PIL images.
"""

from __future__ import annotations

import io
from typing import Optional

import matplotlib
matplotlib.use("Agg")  # non-interactive backend -- render to image buffers
import matplotlib.pyplot as plt
import numpy as np
from matplotlib.figure import Figure
from PIL import Image

from tempo.models import StatsResponse, WeeklyTimeTree

# -- Palette ---------------------------------------------------------------
_BG = "#2b2b2b"
_FG = "#e0e0e0"
_ACCENT = "#6a9fb5"
_GRID = "#444444"


# -----------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------

def _fig_to_pil(fig: Figure, dpi: int = 100) -> Image.Image:
    """Render a matplotlib Figure to a PIL Image and close it."""
    buf = io.BytesIO()
    fig.savefig(buf, format="png", dpi=dpi, bbox_inches="tight",
                facecolor=fig.get_facecolor(), edgecolor="none")
    plt.close(fig)
    buf.seek(0)
    return Image.open(buf)


def _style_axes(ax) -> None:
    ax.set_facecolor(_BG)
    ax.tick_params(colors=_FG, labelsize=8)
    ax.spines["bottom"].set_color(_GRID)
    ax.spines["left"].set_color(_GRID)
    ax.spines["top"].set_visible(False)
    ax.spines["right"].set_visible(False)


# -----------------------------------------------------------------------
# Per-task breakdown
# -----------------------------------------------------------------------

def stats_breakdown_chart(
    stats: StatsResponse,
    *,
    size: tuple[int, int] = (560, 320),
    dpi: int = 100,
) -> Optional[Image.Image]:
    """Horizontal bar chart of hours per task, largest on top.

    Returns *None* when nothing was logged in the period.
    """
    if stats.total_seconds == 0:
        return None

    items = stats.task_stats
    names = [item.task_name for item in items]
    hours = np.array([item.total_seconds / 3600 for item in items])
    colours = [item.color_code or _ACCENT for item in items]
    y = np.arange(len(items))

    fig = Figure(figsize=(size[0] / dpi, size[1] / dpi), dpi=dpi, facecolor=_BG)
    ax = fig.add_subplot(111)
    _style_axes(ax)

    ax.barh(y, hours, color=colours)
    ax.set_yticks(y)
    ax.set_yticklabels(names, color=_FG, fontsize=8)
    ax.invert_yaxis()
    for yi, h, item in zip(y, hours, items):
        ax.text(h, yi, f" {item.percentage:.0f}%", va="center", color=_FG, fontsize=7)

    ax.set_xlabel("Hours", color=_FG, fontsize=9)
    ax.xaxis.grid(color=_GRID, linewidth=0.5)
    title = f"{stats.date_from.isoformat()} .. {stats.date_to.isoformat()}"
    ax.set_title(title, color=_FG, fontsize=11, fontweight="bold")

    return _fig_to_pil(fig, dpi=dpi)


# -----------------------------------------------------------------------
# Weekly time tree
# -----------------------------------------------------------------------

def weekly_timetree_chart(
    tree: WeeklyTimeTree,
    *,
    size: tuple[int, int] = (640, 480),
    dpi: int = 100,
) -> Image.Image:
    """One column per weekday with each log drawn at its time of day."""
    fig = Figure(figsize=(size[0] / dpi, size[1] / dpi), dpi=dpi, facecolor=_BG)
    ax = fig.add_subplot(111)
    _style_axes(ax)

    for x, day in enumerate(tree.days):
        for block in day.blocks:
            start = block.started_at.hour + block.started_at.minute / 60
            span = (block.ended_at - block.started_at).total_seconds() / 3600
            # Blocks running past midnight are clipped to their start day.
            span = min(span, 24 - start)
            ax.bar(x, span, bottom=start, width=0.8,
                   color=block.color_code or _ACCENT, edgecolor=_BG, linewidth=0.5)

    ax.set_xticks(np.arange(len(tree.days)))
    ax.set_xticklabels([f"{d.date:%a}\n{d.date:%m-%d}" for d in tree.days],
                       color=_FG, fontsize=8)
    ax.set_ylim(24, 0)
    ax.set_yticks(range(0, 25, 3))
    ax.set_ylabel("Hour of day", color=_FG, fontsize=9)
    ax.yaxis.grid(color=_GRID, linewidth=0.5)
    title = f"Week of {tree.week_start.isoformat()}"
    ax.set_title(title, color=_FG, fontsize=11, fontweight="bold")

    return _fig_to_pil(fig, dpi=dpi)
