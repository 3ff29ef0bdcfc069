#!/usr/bin/env python3
"""
Standalone script to visualize recorded MPC runs.

This script loads the cycle and prediction logs from a run directory and
generates the trajectory, tracking and solver plots, then prints the run's
summary statistics.
"""

import argparse
import logging
import sys
from pathlib import Path

import numpy as np

from .config import CONTROL_PERIOD, TERM_BLUE, TERM_RESET
from .visualization import plot_run_summary


def find_latest_run(results_dir: Path) -> Path:
    """Find the most recent run directory.

    Args:
        results_dir: Path to the results directory.

    Returns:
        Path to the most recent run directory.

    Raises:
        FileNotFoundError: If no run directories are found.
    """
    if not results_dir.exists():
        raise FileNotFoundError(f"Results directory not found: {results_dir}")

    run_dirs = sorted(d for d in results_dir.iterdir() if d.is_dir() and d.name.startswith("run_"))
    if not run_dirs:
        raise FileNotFoundError(f"No run directories found in {results_dir}")

    return run_dirs[-1]


def list_available_runs(results_dir: Path) -> None:
    """List all available run directories.

    Args:
        results_dir: Path to the results directory.
    """
    if not results_dir.exists():
        logging.error(f"Results directory not found: {results_dir}")
        return

    run_dirs = sorted(d for d in results_dir.iterdir() if d.is_dir() and d.name.startswith("run_"))
    if not run_dirs:
        logging.info(f"No run directories found in {results_dir}")
        return

    logging.info("Available runs:")
    for i, run_dir in enumerate(run_dirs, 1):
        logging.info(f"  {i}. {run_dir.name}")


def main() -> None:
    """Main entry point for the plotting script."""
    logging.basicConfig(level=logging.INFO, format="%(message)s")

    parser = argparse.ArgumentParser(
        description="Visualize recorded MPC control runs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Plot the most recent run
  python -m mpc_control.plot_results

  # Plot a specific run by name
  python -m mpc_control.plot_results --run run_20251114_184704

  # Save figures to the run directory without opening windows
  python -m mpc_control.plot_results --save --no-show

  # List all available runs
  python -m mpc_control.plot_results --list
        """,
    )
    parser.add_argument(
        "--run",
        type=str,
        default=None,
        help="Name of the run directory to plot (e.g., run_20251114_184704). "
        "If not specified, plots the most recent run.",
    )
    parser.add_argument(
        "--results-dir",
        type=str,
        default="results",
        help="Path to the results directory (default: results)",
    )
    parser.add_argument(
        "--save", action="store_true", help="Save plots as PNG files in the run directory"
    )
    parser.add_argument(
        "--no-show",
        action="store_true",
        help="Do not display plots interactively (useful with --save)",
    )
    parser.add_argument("--list", action="store_true", help="List all available runs and exit")

    args = parser.parse_args()
    results_dir = Path(args.results_dir)

    if args.list:
        list_available_runs(results_dir)
        return

    if args.run:
        run_dir = results_dir / args.run
        if not run_dir.exists():
            logging.error(f"Error: Run directory not found: {run_dir}")
            logging.info("\nAvailable runs:")
            list_available_runs(results_dir)
            sys.exit(1)
    else:
        try:
            run_dir = find_latest_run(results_dir)
            logging.info(f"{TERM_BLUE}Plotting most recent run: {results_dir}/{run_dir.name}{TERM_RESET}")
        except FileNotFoundError as e:
            logging.error(f"Error: {e}")
            sys.exit(1)

    try:
        stats = plot_run_summary(
            run_dir=run_dir,
            save_plots=args.save,
            show_plots=not args.no_show,
            control_period=CONTROL_PERIOD,
        )
    except FileNotFoundError as e:
        logging.error(f"Error: {e}")
        logging.info(f"Make sure {run_dir} contains cycles.csv")
        sys.exit(1)
    except ValueError as e:
        logging.error(f"Error reading run data: {e}")
        sys.exit(1)

    logging.info(
        f"{TERM_BLUE}→ cycles: {stats['cycles']:.0f}  RMS cte: {stats['rms_cte']:.3f}m  "
        f"max |cte|: {stats['max_abs_cte']:.3f}m  RMS epsi: {np.degrees(stats['rms_epsi']):.2f}deg{TERM_RESET}"
    )
    logging.info(
        f"{TERM_BLUE}→ fallbacks: {stats['fallbacks']:.0f}  solve time: "
        f"mean {stats['mean_solve_ms']:.1f}ms  max {stats['max_solve_ms']:.1f}ms{TERM_RESET}"
    )
    if args.save:
        logging.info(f"{TERM_BLUE}✓ Saved plots to {results_dir}/{run_dir.name}/{TERM_RESET}")


if __name__ == "__main__":
    main()
