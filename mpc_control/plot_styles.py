"""Shared plotting utilities and styles for MPC run visualizations.

This module provides:
- Color scheme and colormap
- CSV data loading
- Common axis and legend styling

All visualization code should import from this module to ensure consistency.
"""

import csv
from pathlib import Path
from typing import Dict, List

import numpy as np
from matplotlib.axes import Axes
from matplotlib.colors import LinearSegmentedColormap

from .config import COLOR_BLUE, COLOR_CREAM, COLOR_DARK_BLUE, COLOR_ORANGE, COLOR_TAUPE

__all__ = [
    "COLOR_ORANGE",
    "COLOR_BLUE",
    "COLOR_CREAM",
    "COLOR_TAUPE",
    "COLOR_DARK_BLUE",
    "TIME_CMAP",
    "load_csv_to_dict",
    "style_axis",
    "add_branded_legend",
]

# ============================================================================
# Colormaps
# ============================================================================

TIME_CMAP = LinearSegmentedColormap.from_list("mpc_time", [COLOR_ORANGE, COLOR_BLUE])
"""Colormap for time progression, orange (start) to blue (end)."""


# ============================================================================
# CSV Data Loading
# ============================================================================


def load_csv_to_dict(csv_path: Path) -> Dict[str, np.ndarray]:
    """Load CSV file into dictionary of numpy arrays.

    Numeric values are converted to floats; non-numeric or empty values
    become NaN.

    Args:
        csv_path: Path to CSV file.

    Returns:
        Dictionary mapping column names to numpy arrays.

    Raises:
        FileNotFoundError: If the CSV file does not exist.

    Example:
        >>> data = load_csv_to_dict(Path("cycles.csv"))
        >>> data["cte"].shape
        (500,)
    """
    if not csv_path.exists():
        raise FileNotFoundError(f"CSV file not found: {csv_path}")

    with open(csv_path, newline="") as f:
        reader = csv.DictReader(f)
        data: Dict[str, List[float]] = {name: [] for name in (reader.fieldnames or [])}
        for row in reader:
            for key, value in row.items():
                try:
                    data[key].append(float(value))
                except (ValueError, TypeError):
                    data[key].append(np.nan)

    return {key: np.array(values) for key, values in data.items()}


# ============================================================================
# Plot Styling Functions
# ============================================================================


def style_axis(
    ax: Axes,
    title: str = "",
    xlabel: str = "",
    ylabel: str = "",
    grid: bool = True,
    dark_mode: bool = False,
) -> None:
    """Apply consistent styling to a matplotlib axis.

    Args:
        ax: Matplotlib axis to style.
        title: Plot title (optional).
        xlabel: X-axis label (optional).
        ylabel: Y-axis label (optional).
        grid: Whether to show grid lines (default: True).
        dark_mode: Whether to use dark mode styling (default: False).
    """
    text_kwargs = {"color": COLOR_CREAM} if dark_mode else {}

    if title:
        ax.set_title(title, fontweight="bold", **text_kwargs)
    if xlabel:
        ax.set_xlabel(xlabel, **text_kwargs)
    if ylabel:
        ax.set_ylabel(ylabel, **text_kwargs)

    if grid:
        ax.grid(True, alpha=0.3, linestyle="--", linewidth=0.5)

    if dark_mode:
        ax.set_facecolor(COLOR_DARK_BLUE)
        ax.tick_params(colors=COLOR_CREAM)
        for spine in ax.spines.values():
            spine.set_edgecolor(COLOR_TAUPE)


def add_branded_legend(ax: Axes, loc: str = "best", dark_mode: bool = False, **kwargs) -> None:
    """Add a legend with the project's styling.

    Args:
        ax: Matplotlib axis to add legend to.
        loc: Legend location (default: "best").
        dark_mode: Whether to use dark mode styling (default: False).
        **kwargs: Additional keyword arguments passed to ax.legend().
    """
    legend_kwargs = {
        "loc": loc,
        "framealpha": 0.9,
        "edgecolor": COLOR_TAUPE,
    }
    if dark_mode:
        legend_kwargs["facecolor"] = COLOR_DARK_BLUE
        legend_kwargs["labelcolor"] = COLOR_CREAM

    legend_kwargs.update(kwargs)
    ax.legend(**legend_kwargs)
