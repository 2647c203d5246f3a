"""
Tests for CSV logging of control cycles.
"""

import csv

import pytest

from mpc_control.data_collector import CYCLE_COLUMNS, TRAJECTORY_COLUMNS, DataCollector


def read_rows(path):
    with open(path, newline="") as f:
        return list(csv.reader(f))


def test_headers_written_on_setup(tmp_path):
    with DataCollector(run_dir=str(tmp_path)) as collector:
        pass

    assert read_rows(collector.cycle_output_path) == [CYCLE_COLUMNS]
    assert read_rows(collector.trajectory_output_path) == [TRAJECTORY_COLUMNS]


def test_skipped_cycle_leaves_empty_cells(tmp_path):
    with DataCollector(run_dir=str(tmp_path)) as collector:
        collector.log_cycle(1.0, 2.0, 3.0, 0.5, 10.0, status="solver_non_convergence")

    row = read_rows(collector.cycle_output_path)[1]
    assert row[:5] == ["1.0", "2.0", "3.0", "0.5", "10.0"]
    assert row[5:11] == [""] * 6
    assert row[11] == "solver_non_convergence"


def test_full_cycle_row(tmp_path):
    with DataCollector(run_dir=str(tmp_path)) as collector:
        collector.log_cycle(
            1.0, 2.0, 3.0, 0.5, 10.0,
            cte=0.1, epsi=-0.2, steering=0.05, throttle=0.7,
            cost=12.5, solve_time_ms=8.0, status="Solve_Succeeded",
        )

    row = dict(zip(CYCLE_COLUMNS, read_rows(collector.cycle_output_path)[1]))
    assert float(row["steering"]) == pytest.approx(0.05)
    assert float(row["solve_time_ms"]) == pytest.approx(8.0)
    assert row["status"] == "Solve_Succeeded"


def test_trajectory_rows(tmp_path):
    with DataCollector(run_dir=str(tmp_path)) as collector:
        collector.log_trajectory(1.0, "mpc", [1.0, 2.0, 3.0], [0.0, 0.1, 0.2])

    rows = read_rows(collector.trajectory_output_path)[1:]
    assert [row[1] for row in rows] == ["mpc"] * 3
    assert [int(row[2]) for row in rows] == [0, 1, 2]
    assert float(rows[2][4]) == pytest.approx(0.2)


def test_logging_before_setup_is_noop(tmp_path):
    collector = DataCollector(run_dir=str(tmp_path))

    collector.log_cycle(1.0, 0.0, 0.0, 0.0, 0.0)

    assert not collector.cycle_output_path.exists()


def test_run_dir_from_environment(tmp_path, monkeypatch):
    target = tmp_path / "from_env"
    monkeypatch.setenv("RUN_DIR", str(target))

    collector = DataCollector(output_dir=str(tmp_path))

    assert collector.run_dir == target
    assert target.is_dir()


def test_sessions_under_run_dir_keep_their_rows(tmp_path, monkeypatch):
    """A second session starting under the same RUN_DIR must not truncate the first."""
    monkeypatch.setenv("RUN_DIR", str(tmp_path / "shared"))

    first = DataCollector(session_name="session1")
    first.setup()
    first.log_cycle(1.0, 0.0, 0.0, 0.0, 10.0)

    second = DataCollector(session_name="session2")
    second.setup()
    second.log_cycle(2.0, 0.0, 0.0, 0.0, 10.0)
    first.log_cycle(3.0, 0.0, 0.0, 0.0, 10.0)

    first.cleanup()
    second.cleanup()

    assert first.run_dir != second.run_dir
    assert first.run_dir == tmp_path / "shared" / "session1"
    assert [row[0] for row in read_rows(first.cycle_output_path)[1:]] == ["1.0", "3.0"]
    assert [row[0] for row in read_rows(second.cycle_output_path)[1:]] == ["2.0"]


def test_timestamped_run_dir(tmp_path, monkeypatch):
    monkeypatch.delenv("RUN_DIR", raising=False)

    collector = DataCollector(output_dir=str(tmp_path), session_name="session1")

    assert collector.run_dir.parent == tmp_path / "results"
    assert collector.run_dir.name.startswith("run_")
    assert collector.run_dir.name.endswith("_session1")


def test_output_dir_must_be_directory(tmp_path):
    not_a_dir = tmp_path / "file.txt"
    not_a_dir.write_text("x")

    with pytest.raises(ValueError):
        DataCollector(output_dir=str(not_a_dir))
