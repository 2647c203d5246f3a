"""
Smoke tests for run plots and the plotting CLI.
"""

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pytest

from mpc_control.data_collector import DataCollector
from mpc_control.plot_results import find_latest_run, main
from mpc_control.visualization import load_run_data, plot_run_summary


@pytest.fixture
def run_dir(tmp_path):
    run = tmp_path / "results" / "run_20250101_120000_session1"
    with DataCollector(run_dir=str(run)) as collector:
        for i in range(5):
            collector.log_cycle(
                100.0 + 0.1 * i, float(i), 0.0, 0.0, 10.0 + i,
                cte=0.1, epsi=0.01, steering=-0.02, throttle=0.5,
                cost=5.0, solve_time_ms=7.5, status="Solve_Succeeded",
            )
        collector.log_cycle(100.5, 5.0, 0.0, 0.0, 15.0, status="solver_non_convergence")
    return run


def test_load_run_data(run_dir):
    data = load_run_data(run_dir)

    assert data["time"][0] == 0.0
    assert data["time"][-1] == pytest.approx(0.5)
    assert np.isnan(data["steering"][-1])
    assert data["status"][-1] == "solver_non_convergence"


def test_plot_run_summary_saves_figures(run_dir):
    plot_run_summary(run_dir, save_plots=True, show_plots=False)

    assert (run_dir / "tracking.png").exists()
    assert (run_dir / "solver.png").exists()
    assert (run_dir / "map_path.png").exists()


def test_missing_run_data(tmp_path):
    with pytest.raises(FileNotFoundError):
        plot_run_summary(tmp_path, save_plots=False, show_plots=False)


def test_find_latest_run(run_dir):
    older = run_dir.parent / "run_20240101_000000"
    older.mkdir()

    assert find_latest_run(run_dir.parent) == run_dir


def test_find_latest_run_empty(tmp_path):
    with pytest.raises(FileNotFoundError):
        find_latest_run(tmp_path)


def test_cli_saves_plots(run_dir):
    main(["--results-dir", str(run_dir.parent), "--save", "--no-show"])

    assert (run_dir / "tracking.png").exists()


def test_cli_unknown_run_exits(run_dir):
    with pytest.raises(SystemExit):
        main(["--results-dir", str(run_dir.parent), "--run", "run_missing", "--no-show"])
