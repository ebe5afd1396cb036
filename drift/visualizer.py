"""Matplotlib charts for a batch of simulated paths."""

from __future__ import annotations

from pathlib import Path
from typing import Sequence

import matplotlib
matplotlib.use("Agg")  # non-interactive backend for CI / headless
import matplotlib.pyplot as plt
import matplotlib.ticker as mticker
import numpy as np

from drift.paths import SimulatedPath
from drift.stats import ResultStats


COLORS = {
    "primary": "#1a73e8",
    "secondary": "#34a853",
    "danger": "#ea4335",
    "warning": "#fbbc05",
    "bg": "#fafafa",
}

_DOLLARS = mticker.FuncFormatter(lambda x, _: f"${x:,.0f}")


def _apply_style(ax: plt.Axes) -> None:
    ax.set_facecolor(COLORS["bg"])
    ax.spines["top"].set_visible(False)
    ax.spines["right"].set_visible(False)
    ax.tick_params(labelsize=9)


def _save(fig: plt.Figure, output: str | Path | None) -> plt.Figure:
    fig.tight_layout()
    if output:
        fig.savefig(str(output), dpi=150, bbox_inches="tight")
    return fig


def plot_simulation_paths(
    paths: Sequence[SimulatedPath],
    start_value: float,
    n_paths: int = 200,
    output: str | Path | None = None,
) -> plt.Figure:
    """Plot a sample of paths with the median and the 5th-95th percentile band."""
    matrix = np.vstack([p.values for p in paths])
    fig, ax = plt.subplots(figsize=(10, 5))
    _apply_style(ax)

    idx = np.linspace(0, len(matrix) - 1, min(n_paths, len(matrix)), dtype=int)
    for i in idx:
        ax.plot(matrix[i], alpha=0.08, color=COLORS["primary"], linewidth=0.6)

    median = np.median(matrix, axis=0)
    p5 = np.percentile(matrix, 5, axis=0)
    p95 = np.percentile(matrix, 95, axis=0)
    ax.plot(median, color=COLORS["secondary"], linewidth=2, label="Median")
    ax.fill_between(
        range(len(median)), p5, p95,
        alpha=0.15, color=COLORS["warning"], label="5th-95th percentile",
    )
    ax.axhline(start_value, linestyle="--", color=COLORS["danger"], linewidth=1, label="Start Value")

    ax.set_title("Simulated Portfolio Value Paths", fontsize=13, fontweight="bold")
    ax.set_xlabel("Trading Days")
    ax.set_ylabel("Portfolio Value ($)")
    ax.yaxis.set_major_formatter(_DOLLARS)
    ax.legend(fontsize=9)
    return _save(fig, output)


def plot_terminal_distribution(
    paths: Sequence[SimulatedPath],
    stats: ResultStats,
    start_value: float,
    output: str | Path | None = None,
) -> plt.Figure:
    """Histogram of terminal values with the start value and P5/P50/P95 marked."""
    finals = np.array([p.final for p in paths])
    fig, ax = plt.subplots(figsize=(9, 5))
    _apply_style(ax)

    ax.hist(finals, bins=100, color=COLORS["primary"], alpha=0.7, edgecolor="white", linewidth=0.3)
    ax.axvline(start_value, color=COLORS["danger"], linewidth=2, linestyle="--", label="Start Value")
    for value, label in ((stats.p5, "P5"), (stats.p50, "P50"), (stats.p95, "P95")):
        ax.axvline(value, color=COLORS["secondary"], linewidth=1, label=f"{label} (${value:,.0f})")

    ax.set_title("Distribution of Terminal Portfolio Values", fontsize=13, fontweight="bold")
    ax.set_xlabel("Terminal Value ($)")
    ax.set_ylabel("Frequency")
    ax.xaxis.set_major_formatter(_DOLLARS)
    ax.legend(fontsize=9)
    return _save(fig, output)


def generate_charts(
    paths: Sequence[SimulatedPath],
    stats: ResultStats,
    start_value: float,
    output_dir: str | Path = "output",
) -> list[Path]:
    """Render every chart into output_dir. Returns the saved file paths."""
    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)

    charts = [
        ("simulation_paths.png", lambda p: plot_simulation_paths(paths, start_value, output=p)),
        ("terminal_distribution.png", lambda p: plot_terminal_distribution(paths, stats, start_value, output=p)),
    ]
    saved: list[Path] = []
    for name, fn in charts:
        fn(out / name)
        plt.close("all")
        saved.append(out / name)
    return saved
