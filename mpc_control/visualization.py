"""
Visualization utilities for logged MPC runs.

This module loads the per-cycle CSV written by DataCollector and plots:
- Tracking errors (cte, epsi) over time
- Issued commands (steering, throttle) and speed over time
- Solver time per cycle, with skipped cycles marked
- Vehicle path in the map frame
"""

import csv
from pathlib import Path
from typing import Dict, List, Optional

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.axes import Axes
from matplotlib.figure import Figure

from .config import (
    PLOT_BLUE,
    PLOT_CREAM,
    PLOT_DARK_BLUE,
    PLOT_ORANGE,
    PLOT_TAUPE,
    PLOT_YELLOW_ORANGE,
)


def load_csv_to_dict(csv_path: Path) -> Dict[str, np.ndarray]:
    """Load CSV file into dictionary of numpy arrays.

    Numeric values become floats; text columns (such as status) are kept as
    string arrays. Empty numeric cells become NaN.

    Args:
        csv_path: Path to CSV file.

    Returns:
        Dictionary mapping column names to numpy arrays.

    Raises:
        FileNotFoundError: If the CSV file does not exist.
    """
    if not csv_path.exists():
        raise FileNotFoundError(f"CSV file not found: {csv_path}")

    with open(csv_path, newline="") as f:
        reader = csv.DictReader(f)
        columns: Dict[str, List[str]] = {name: [] for name in reader.fieldnames or []}
        for row in reader:
            for key, value in row.items():
                columns[key].append(value)

    data: Dict[str, np.ndarray] = {}
    for key, values in columns.items():
        try:
            data[key] = np.array([float(v) if v != "" else np.nan for v in values])
        except ValueError:
            data[key] = np.array(values)
    return data


def load_run_data(run_dir: Path) -> Dict[str, np.ndarray]:
    """Load cycle_data.csv of a run with time normalized to start at 0."""
    data = load_csv_to_dict(run_dir / "cycle_data.csv")
    if data.get("timestamp") is not None and data["timestamp"].size > 0:
        data["time"] = data["timestamp"] - data["timestamp"][0]
    else:
        data["time"] = np.array([])
    return data


def skipped_mask(data: Dict[str, np.ndarray]) -> np.ndarray:
    """Boolean mask of cycles that produced no command."""
    return np.isnan(data["steering"]) if "steering" in data else np.array([], dtype=bool)


def style_axis(ax: Axes, title: str = "", xlabel: str = "", ylabel: str = "") -> None:
    """Apply the dark plot styling to an axis."""
    ax.set_facecolor(PLOT_DARK_BLUE)
    if title:
        ax.set_title(title, fontweight="bold", color=PLOT_CREAM)
    if xlabel:
        ax.set_xlabel(xlabel, color=PLOT_CREAM)
    if ylabel:
        ax.set_ylabel(ylabel, color=PLOT_CREAM)
    ax.grid(True, alpha=0.2, color=PLOT_CREAM, linestyle="--", linewidth=0.5)
    ax.tick_params(colors=PLOT_CREAM, which="both")
    for spine in ax.spines.values():
        spine.set_edgecolor(PLOT_TAUPE)


def add_legend(ax: Axes) -> None:
    legend = ax.legend(facecolor=PLOT_DARK_BLUE, edgecolor=PLOT_TAUPE)
    plt.setp(legend.get_texts(), color=PLOT_CREAM)


def plot_tracking(data: Dict[str, np.ndarray], title: str = "", save_path: Optional[Path] = None) -> Figure:
    """Plot tracking errors, commands and speed over time.

    Args:
        data: Run data from load_run_data().
        title: Figure title prefix.
        save_path: Optional path to save the figure.

    Returns:
        Matplotlib figure object.
    """
    fig, (ax1, ax2, ax3) = plt.subplots(3, 1, figsize=(12, 10), sharex=True, facecolor=PLOT_DARK_BLUE)
    t = data["time"]

    ax1.plot(t, data["cte"], color=PLOT_ORANGE, label="CTE")
    ax1.plot(t, data["epsi"], color=PLOT_BLUE, label="Heading error (rad)")
    style_axis(ax1, title=f"{title} Tracking Errors".strip(), ylabel="Error")
    add_legend(ax1)

    ax2.plot(t, data["steering"], color=PLOT_ORANGE, label="Steering (rad)")
    ax2.plot(t, data["throttle"], color=PLOT_BLUE, label="Throttle")
    skipped = skipped_mask(data)
    if np.any(skipped):
        ax2.scatter(
            t[skipped],
            np.zeros(int(np.sum(skipped))),
            color=PLOT_YELLOW_ORANGE,
            marker="x",
            label="Skipped cycle",
            zorder=5,
        )
    style_axis(ax2, title="Commands", ylabel="Actuator")
    add_legend(ax2)

    ax3.plot(t, data["speed"], color=PLOT_ORANGE, label="Speed")
    style_axis(ax3, title="Speed", xlabel="Time (s)", ylabel="Speed")
    add_legend(ax3)

    plt.tight_layout()
    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches="tight")
    return fig


def plot_solver(data: Dict[str, np.ndarray], save_path: Optional[Path] = None) -> Figure:
    """Plot solve time and cost per cycle."""
    fig, (ax1, ax2) = plt.subplots(2, 1, figsize=(12, 7), sharex=True, facecolor=PLOT_DARK_BLUE)
    t = data["time"]

    ax1.plot(t, data["solve_time_ms"], color=PLOT_ORANGE, label="Solve time")
    style_axis(ax1, title="Solver", ylabel="Time (ms)")
    add_legend(ax1)

    ax2.plot(t, data["cost"], color=PLOT_BLUE, label="Cost")
    ax2.set_yscale("log")
    style_axis(ax2, xlabel="Time (s)", ylabel="Cost")
    add_legend(ax2)

    plt.tight_layout()
    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches="tight")
    return fig


def plot_map_path(data: Dict[str, np.ndarray], save_path: Optional[Path] = None) -> Figure:
    """Plot the vehicle path in the map frame, colored by time."""
    fig, ax = plt.subplots(figsize=(10, 8), facecolor=PLOT_DARK_BLUE)
    px = data["px"]
    py = data["py"]

    ax.plot(px, py, "-", color=PLOT_ORANGE, linewidth=1.5, alpha=0.6, label="Vehicle path")
    if px.size > 0:
        ax.plot(px[0], py[0], "o", color=PLOT_BLUE, markersize=8, label="Start")
        ax.plot(px[-1], py[-1], "o", color=PLOT_ORANGE, markersize=8, label="End")
    skipped = skipped_mask(data)
    if np.any(skipped):
        ax.scatter(px[skipped], py[skipped], color=PLOT_YELLOW_ORANGE, marker="x", label="Skipped cycle")

    style_axis(ax, title="Map Frame Path", xlabel="X (m)", ylabel="Y (m)")
    ax.set_aspect("equal")
    add_legend(ax)

    plt.tight_layout()
    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches="tight")
    return fig


def plot_run_summary(run_dir: Path, save_plots: bool = False, show_plots: bool = True) -> None:
    """Generate summary plots for a complete run.

    Args:
        run_dir: Directory containing cycle_data.csv.
        save_plots: If True, save plots to run directory.
        show_plots: If True, display plots interactively.

    Raises:
        FileNotFoundError: If cycle_data.csv is not found.
    """
    data = load_run_data(run_dir)
    run_name = run_dir.name

    figures = [
        plot_tracking(data, title=run_name, save_path=run_dir / "tracking.png" if save_plots else None),
        plot_solver(data, save_path=run_dir / "solver.png" if save_plots else None),
        plot_map_path(data, save_path=run_dir / "map_path.png" if save_plots else None),
    ]

    if show_plots:
        plt.show()
    for fig in figures:
        plt.close(fig)
