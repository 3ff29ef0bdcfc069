"""Data collection and CSV logging for MPC control cycles.

This module provides CSV data logging for:
- Control cycles (pose, tracking errors, commands, solver statistics)
- Predicted trajectories (body-frame horizon of every cycle)
"""

import csv
import math
import os
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, TextIO

from .config import TERM_BLUE, TERM_RESET
from .telemetry import ControlOutput, Telemetry

CYCLE_COLUMNS = [
    "timestamp",
    "x",
    "y",
    "psi",
    "speed",
    "cte",
    "epsi",
    "steering",
    "throttle",
    "steering_command",
    "throttle_command",
    "status",
    "fit_failed",
    "iterations",
    "solve_time_ms",
    "objective",
]

PREDICTION_COLUMNS = ["cycle", "step", "x", "y"]


class DataCollector:
    """Manages CSV file creation and logging for control cycles.

    Attributes:
        run_dir: Directory path for this run's output files.
        cycles_csv_file: File handle for the per-cycle CSV.
        predictions_csv_file: File handle for the predicted trajectory CSV.
        cycle_count: Number of cycles logged so far.
    """

    def __init__(self, output_dir: str = ".", run_dir: Optional[str] = None) -> None:
        """Initialize the data collector.

        Args:
            output_dir: Base directory for output files (default: current directory).
            run_dir: Optional specific run directory. If None, creates timestamped
                directory. Can also be set via RUN_DIR environment variable.

        Raises:
            ValueError: If output_dir is not a valid directory.
        """
        output_path = Path(output_dir)
        if output_path.exists() and not output_path.is_dir():
            raise ValueError(f"Output path exists but is not a directory: {output_dir}")

        self.cycles_csv_file: Optional[TextIO] = None
        self.cycles_csv_writer: Any = None
        self.predictions_csv_file: Optional[TextIO] = None
        self.predictions_csv_writer: Any = None
        self.cycle_count: int = 0

        if run_dir:
            self.run_dir: Path = Path(run_dir)
        elif env_run_dir := os.environ.get("RUN_DIR"):
            self.run_dir = Path(env_run_dir)
        else:
            # Timestamped directory: results/run_YYYYMMDD_HHMMSS/
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            self.run_dir = output_path / "results" / f"run_{timestamp}"

        self.run_dir.mkdir(parents=True, exist_ok=True)

        self.cycles_output_path: Path = self.run_dir / "cycles.csv"
        self.predictions_output_path: Path = self.run_dir / "predictions.csv"

    def setup(self) -> None:
        """Initialize CSV files with headers.

        Must be called before writing data.
        """
        self.cycles_csv_file = open(self.cycles_output_path, "w", newline="")
        self.cycles_csv_writer = csv.writer(self.cycles_csv_file)
        self.cycles_csv_writer.writerow(CYCLE_COLUMNS)
        self.cycles_csv_file.flush()

        self.predictions_csv_file = open(self.predictions_output_path, "w", newline="")
        self.predictions_csv_writer = csv.writer(self.predictions_csv_file)
        self.predictions_csv_writer.writerow(PREDICTION_COLUMNS)
        self.predictions_csv_file.flush()

        print(f"{TERM_BLUE}✓ Initialized data collection to results/{self.run_dir.name}/{TERM_RESET}")

    def log_cycle(
        self, telemetry: Telemetry, output: ControlOutput, timestamp: Optional[float] = None
    ) -> None:
        """Log one completed control cycle.

        Args:
            telemetry: Telemetry the cycle was computed from.
            output: Controller output of the cycle.
            timestamp: Cycle time (seconds). Defaults to the current time.
        """
        if timestamp is None:
            timestamp = time.time()

        self.cycles_csv_writer.writerow(
            [
                timestamp,
                telemetry.x,
                telemetry.y,
                telemetry.psi,
                telemetry.speed,
                output.cte,
                output.epsi,
                output.steering,
                output.acceleration,
                output.steering_command,
                output.throttle_command,
                output.status,
                int(output.fit_failed),
                output.iterations if output.iterations is not None else "",
                output.solve_time * 1000.0,
                output.objective if math.isfinite(output.objective) else "",
            ]
        )
        if self.cycles_csv_file:
            self.cycles_csv_file.flush()

        for step, (x, y) in enumerate(zip(output.predicted_x, output.predicted_y)):
            self.predictions_csv_writer.writerow([self.cycle_count, step, x, y])
        if self.predictions_csv_file:
            self.predictions_csv_file.flush()

        self.cycle_count += 1

    def cleanup(self) -> None:
        """Close all CSV files and log final output location."""
        if self.cycles_csv_file:
            self.cycles_csv_file.close()
        if self.predictions_csv_file:
            self.predictions_csv_file.close()

        print(
            f"{TERM_BLUE}✓ Saved {self.cycle_count} control cycles to results/{self.run_dir.name}/{TERM_RESET}"
        )

    def __enter__(self) -> "DataCollector":
        """Context manager entry point.

        Returns:
            Self reference for use in with statement.
        """
        self.setup()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Context manager exit point - ensures cleanup is called.

        Args:
            exc_type: Exception type if an exception occurred.
            exc_val: Exception value if an exception occurred.
            exc_tb: Exception traceback if an exception occurred.
        """
        self.cleanup()
