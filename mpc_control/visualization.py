"""
Visualization utilities for recorded MPC runs.

This module loads the CSV files written by DataCollector and plots the driven
trajectory with the MPC predictions, the tracking errors, the commands and the
solver statistics of a run.
"""

import csv
from pathlib import Path
from typing import Dict, Optional

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.figure import Figure

from .plot_styles import (
    COLOR_BLUE,
    COLOR_CREAM,
    COLOR_DARK_BLUE,
    COLOR_ORANGE,
    COLOR_TAUPE,
    TIME_CMAP,
    add_branded_legend,
    load_csv_to_dict,
    style_axis,
)
from .transform import to_world_frame

REQUIRED_CYCLE_COLUMNS = ("timestamp", "x", "y", "psi", "cte", "epsi", "steering", "throttle")


def parse_cycles(filepath: Path) -> Dict[str, np.ndarray]:
    """Load cycles.csv into numpy arrays.

    Args:
        filepath: Path to the cycles CSV file.

    Returns:
        Dictionary mapping column names to arrays. Non-numeric columns (status)
        are NaN; 'fallback' is added as a boolean mask of fallback cycles.

    Raises:
        FileNotFoundError: If the CSV file does not exist.
        ValueError: If a required column is missing.
    """
    data = load_csv_to_dict(filepath)

    missing = [name for name in REQUIRED_CYCLE_COLUMNS if name not in data]
    if missing:
        raise ValueError(f"Cycles CSV is missing columns: {missing}")

    # Status is text, so read it separately
    with open(filepath, newline="") as f:
        statuses = [row.get("status") or "" for row in csv.DictReader(f)]
    data["fallback"] = np.array([s.startswith("fallback") for s in statuses], dtype=bool)

    return data


def parse_predictions(filepath: Path) -> Dict[int, np.ndarray]:
    """Load predictions.csv grouped by cycle.

    Args:
        filepath: Path to the predictions CSV file.

    Returns:
        Dictionary mapping cycle index to an (n, 2) array of body-frame points.
    """
    data = load_csv_to_dict(filepath)
    predictions: Dict[int, np.ndarray] = {}
    if len(data.get("cycle", [])) == 0:
        return predictions

    cycles = data["cycle"].astype(int)
    for cycle in np.unique(cycles):
        mask = cycles == cycle
        predictions[int(cycle)] = np.column_stack([data["x"][mask], data["y"][mask]])
    return predictions


def plot_trajectory(
    cycles: Dict[str, np.ndarray],
    predictions: Optional[Dict[int, np.ndarray]] = None,
    prediction_every: int = 10,
    title: str = "Trajectory",
    save_path: Optional[Path] = None,
) -> Figure:
    """Plot the driven trajectory with every n-th predicted horizon.

    Args:
        cycles: Parsed cycles data.
        predictions: Parsed predictions, body frame. Mapped to world frame with
            the pose of their cycle.
        prediction_every: Draw the prediction of every n-th cycle.
        title: Plot title.
        save_path: Optional path to save the figure.

    Returns:
        Matplotlib figure object.
    """
    fig, ax = plt.subplots(figsize=(10, 8), facecolor=COLOR_DARK_BLUE)
    style_axis(ax, title=title, xlabel="X Position (m)", ylabel="Y Position (m)", dark_mode=True)

    x = cycles["x"]
    y = cycles["y"]
    timestamps = cycles["timestamp"]

    if len(x) > 0:
        ax.plot(x, y, "-", color=COLOR_ORANGE, linewidth=1.5, alpha=0.6, label="Driven path", zorder=1)
        scatter = ax.scatter(
            x, y, c=timestamps - timestamps[0], cmap=TIME_CMAP, s=12, alpha=0.8, zorder=3
        )
        colorbar = plt.colorbar(scatter, ax=ax)
        colorbar.set_label("Time (s)", color=COLOR_CREAM)
        colorbar.ax.tick_params(colors=COLOR_CREAM)

    if predictions:
        labelled = False
        for cycle, points in sorted(predictions.items()):
            if cycle % max(prediction_every, 1) != 0 or cycle >= len(x):
                continue
            world_x, world_y = to_world_frame(
                x[cycle], y[cycle], cycles["psi"][cycle], points[:, 0], points[:, 1]
            )
            ax.plot(
                world_x,
                world_y,
                "-",
                color=COLOR_BLUE,
                linewidth=1.0,
                alpha=0.8,
                label=None if labelled else "MPC prediction",
                zorder=2,
            )
            labelled = True

    ax.set_aspect("equal", adjustable="datalim")
    add_branded_legend(ax, dark_mode=True)
    fig.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches="tight")

    return fig


def plot_tracking(
    cycles: Dict[str, np.ndarray], title: str = "Tracking", save_path: Optional[Path] = None
) -> Figure:
    """Plot tracking errors and commands over time.

    Args:
        cycles: Parsed cycles data.
        title: Plot title prefix.
        save_path: Optional path to save the figure.

    Returns:
        Matplotlib figure object.
    """
    fig, axes = plt.subplots(4, 1, figsize=(12, 12), sharex=True, facecolor=COLOR_DARK_BLUE)
    ax_cte, ax_epsi, ax_steer, ax_throttle = axes

    timestamps = cycles["timestamp"]
    t = timestamps - timestamps[0] if len(timestamps) > 0 else timestamps
    fallback = cycles.get("fallback", np.zeros(len(t), dtype=bool))

    ax_cte.plot(t, cycles["cte"], color=COLOR_ORANGE, label="cte")
    ax_cte.axhline(0.0, color=COLOR_TAUPE, linewidth=0.8)
    style_axis(ax_cte, title=f"{title} - Cross-Track Error", ylabel="cte (m)", dark_mode=True)

    ax_epsi.plot(t, np.degrees(cycles["epsi"]), color=COLOR_ORANGE, label="epsi")
    ax_epsi.axhline(0.0, color=COLOR_TAUPE, linewidth=0.8)
    style_axis(ax_epsi, title=f"{title} - Heading Error", ylabel="epsi (deg)", dark_mode=True)

    ax_steer.plot(t, np.degrees(cycles["steering"]), color=COLOR_BLUE, label="steering")
    style_axis(ax_steer, title=f"{title} - Steering", ylabel="Steering (deg)", dark_mode=True)

    ax_throttle.plot(t, cycles["throttle"], color=COLOR_BLUE, label="throttle")
    style_axis(
        ax_throttle, title=f"{title} - Throttle", xlabel="Time (s)", ylabel="Throttle", dark_mode=True
    )

    if np.any(fallback):
        for ax in axes:
            ax.scatter(
                t[fallback],
                np.zeros(np.count_nonzero(fallback)),
                marker="x",
                color=COLOR_CREAM,
                s=20,
                label="fallback",
                zorder=4,
            )

    for ax in axes:
        add_branded_legend(ax, loc="upper right", dark_mode=True)

    fig.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches="tight")

    return fig


def plot_solver_stats(
    cycles: Dict[str, np.ndarray],
    control_period: Optional[float] = None,
    title: str = "Solver",
    save_path: Optional[Path] = None,
) -> Figure:
    """Plot solve time and iteration count per cycle.

    Args:
        cycles: Parsed cycles data.
        control_period: If given, draw the cycle budget (seconds) on the time plot.
        title: Plot title prefix.
        save_path: Optional path to save the figure.

    Returns:
        Matplotlib figure object.
    """
    fig, (ax_time, ax_iter) = plt.subplots(2, 1, figsize=(12, 8), sharex=True, facecolor=COLOR_DARK_BLUE)

    cycle_index = np.arange(len(cycles["timestamp"]))
    solve_ms = cycles.get("solve_time_ms", np.full(len(cycle_index), np.nan))
    iterations = cycles.get("iterations", np.full(len(cycle_index), np.nan))

    ax_time.plot(cycle_index, solve_ms, color=COLOR_ORANGE, label="solve time")
    if control_period is not None:
        ax_time.axhline(control_period * 1000.0, color=COLOR_CREAM, linestyle="--", label="cycle budget")
    style_axis(ax_time, title=f"{title} - Solve Time", ylabel="Time (ms)", dark_mode=True)
    add_branded_legend(ax_time, loc="upper right", dark_mode=True)

    ax_iter.plot(cycle_index, iterations, color=COLOR_BLUE, label="iterations")
    style_axis(ax_iter, title=f"{title} - Iterations", xlabel="Cycle", ylabel="Iterations", dark_mode=True)
    add_branded_legend(ax_iter, loc="upper right", dark_mode=True)

    fig.tight_layout()

    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches="tight")

    return fig


def summarize_run(cycles: Dict[str, np.ndarray]) -> Dict[str, float]:
    """Aggregate statistics of a recorded run.

    Returns:
        Dictionary with keys 'cycles', 'rms_cte', 'max_abs_cte', 'rms_epsi',
        'fallbacks', 'mean_solve_ms', 'max_solve_ms'.
    """
    cte = cycles["cte"]
    epsi = cycles["epsi"]
    solve_ms = cycles.get("solve_time_ms", np.array([]))
    n = len(cte)
    return {
        "cycles": float(n),
        "rms_cte": float(np.sqrt(np.nanmean(cte**2))) if n else float("nan"),
        "max_abs_cte": float(np.nanmax(np.abs(cte))) if n else float("nan"),
        "rms_epsi": float(np.sqrt(np.nanmean(epsi**2))) if n else float("nan"),
        "fallbacks": float(np.count_nonzero(cycles.get("fallback", []))),
        "mean_solve_ms": float(np.nanmean(solve_ms)) if len(solve_ms) else float("nan"),
        "max_solve_ms": float(np.nanmax(solve_ms)) if len(solve_ms) else float("nan"),
    }


def plot_run_summary(
    run_dir: Path,
    save_plots: bool = False,
    show_plots: bool = True,
    control_period: Optional[float] = None,
) -> Dict[str, float]:
    """Generate summary plots for a complete run.

    Args:
        run_dir: Directory containing cycles.csv and predictions.csv.
        save_plots: If True, save plots to run directory.
        show_plots: If True, display plots interactively.
        control_period: Cycle budget (seconds) drawn on the solve time plot.

    Returns:
        Run statistics from summarize_run().

    Raises:
        FileNotFoundError: If cycles.csv is not found.
    """
    cycles = parse_cycles(run_dir / "cycles.csv")

    predictions_path = run_dir / "predictions.csv"
    predictions = parse_predictions(predictions_path) if predictions_path.exists() else None

    run_name = run_dir.name
    figures = [
        plot_trajectory(
            cycles,
            predictions,
            title=f"{run_name} - Trajectory",
            save_path=run_dir / "trajectory.png" if save_plots else None,
        ),
        plot_tracking(
            cycles,
            title=run_name,
            save_path=run_dir / "tracking.png" if save_plots else None,
        ),
        plot_solver_stats(
            cycles,
            control_period=control_period,
            title=run_name,
            save_path=run_dir / "solver.png" if save_plots else None,
        ),
    ]

    if show_plots:
        plt.show()
    else:
        for fig in figures:
            plt.close(fig)

    return summarize_run(cycles)
