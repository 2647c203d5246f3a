"""Data collection and CSV logging for MPC control cycles.

This module provides CSV data logging for:
- Control cycles (telemetry, tracking errors, issued command, solver cost/time)
- Skipped cycles (error kind in the status column, empty command)
- Trajectories (predicted MPC path and reference waypoints, map frame)
"""

import csv
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Sequence, TextIO

from .config import TERM_BLUE, TERM_RESET

CYCLE_COLUMNS = [
    "timestamp",
    "px",
    "py",
    "psi",
    "speed",
    "cte",
    "epsi",
    "steering",
    "throttle",
    "cost",
    "solve_time_ms",
    "status",
]

TRAJECTORY_COLUMNS = ["timestamp", "kind", "index", "x", "y"]


class DataCollector:
    """Manages CSV file creation and logging for one controller session.

    Attributes:
        run_dir: Directory path for this run's output files.
        cycle_output_path: Path of the per-cycle CSV.
        trajectory_output_path: Path of the trajectory CSV.
    """

    def __init__(
        self, output_dir: str = ".", run_dir: Optional[str] = None, session_name: str = ""
    ) -> None:
        """Initialize the data collector.

        Args:
            output_dir: Base directory for output files (default: current directory).
            run_dir: Optional specific run directory. If None, creates timestamped
                directory. Can also be set via RUN_DIR environment variable, in
                which case each session writes to its own subdirectory.
            session_name: Suffix distinguishing concurrent sessions of one run.

        Raises:
            ValueError: If output_dir is not a valid directory.
        """
        output_path = Path(output_dir)
        if output_path.exists() and not output_path.is_dir():
            raise ValueError(f"Output path exists but is not a directory: {output_dir}")

        self.cycle_csv_file: Optional[TextIO] = None
        self.cycle_csv_writer: Any = None
        self.trajectory_csv_file: Optional[TextIO] = None
        self.trajectory_csv_writer: Any = None

        if run_dir:
            self.run_dir: Path = Path(run_dir)
        elif env_run_dir := os.environ.get("RUN_DIR"):
            # RUN_DIR/<session>/
            self.run_dir = Path(env_run_dir) / session_name if session_name else Path(env_run_dir)
        else:
            # results/run_YYYYMMDD_HHMMSS[_session]/
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            suffix = f"_{session_name}" if session_name else ""
            self.run_dir = output_path / "results" / f"run_{timestamp}{suffix}"

        self.run_dir.mkdir(parents=True, exist_ok=True)

        self.cycle_output_path: Path = self.run_dir / "cycle_data.csv"
        self.trajectory_output_path: Path = self.run_dir / "trajectory_data.csv"

    def setup(self) -> None:
        """Create the CSV files and write their headers. Must precede logging."""
        self.cycle_csv_file = open(self.cycle_output_path, "w", newline="")
        self.cycle_csv_writer = csv.writer(self.cycle_csv_file)
        self.cycle_csv_writer.writerow(CYCLE_COLUMNS)
        self.cycle_csv_file.flush()

        self.trajectory_csv_file = open(self.trajectory_output_path, "w", newline="")
        self.trajectory_csv_writer = csv.writer(self.trajectory_csv_file)
        self.trajectory_csv_writer.writerow(TRAJECTORY_COLUMNS)
        self.trajectory_csv_file.flush()

        logging.info(
            f"{TERM_BLUE}✓ Initialized data collection to {self.run_dir}{TERM_RESET}"
        )

    def log_cycle(
        self,
        timestamp: float,
        px: float,
        py: float,
        psi: float,
        speed: float,
        cte: Optional[float] = None,
        epsi: Optional[float] = None,
        steering: Optional[float] = None,
        throttle: Optional[float] = None,
        cost: Optional[float] = None,
        solve_time_ms: Optional[float] = None,
        status: str = "",
    ) -> None:
        """Log one control cycle. Missing values (skipped cycles) are left empty.

        Args:
            timestamp: Wall-clock time of the cycle (seconds).
            px, py, psi, speed: Telemetry pose and speed (map frame).
            cte, epsi: Tracking errors of the planning state.
            steering, throttle: Emitted command.
            cost: Optimizer objective value.
            solve_time_ms: Time spent in the optimizer (milliseconds).
            status: Solver status, or the error kind of a skipped cycle.
        """
        if self.cycle_csv_writer is None:
            return
        optional = [cte, epsi, steering, throttle, cost, solve_time_ms]
        row = [timestamp, px, py, psi, speed]
        row.extend("" if value is None else value for value in optional)
        row.append(status)
        self.cycle_csv_writer.writerow(row)
        if self.cycle_csv_file:
            self.cycle_csv_file.flush()

    def log_trajectory(
        self, timestamp: float, kind: str, xs: Sequence[float], ys: Sequence[float]
    ) -> None:
        """Log a trajectory (e.g. "mpc" or "reference") as one row per point."""
        if self.trajectory_csv_writer is None:
            return
        for index, (x, y) in enumerate(zip(xs, ys)):
            self.trajectory_csv_writer.writerow([timestamp, kind, index, float(x), float(y)])
        if self.trajectory_csv_file:
            self.trajectory_csv_file.flush()

    def cleanup(self) -> None:
        """Close all CSV files and log final output location."""
        if self.cycle_csv_file:
            self.cycle_csv_file.close()
            self.cycle_csv_file = None
            self.cycle_csv_writer = None
        if self.trajectory_csv_file:
            self.trajectory_csv_file.close()
            self.trajectory_csv_file = None
            self.trajectory_csv_writer = None

        logging.info(f"{TERM_BLUE}✓ Saved cycle data to {self.run_dir}{TERM_RESET}")

    def __enter__(self) -> "DataCollector":
        self.setup()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.cleanup()
