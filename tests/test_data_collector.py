"""Tests for CSV run recording and the post-run plots."""

import csv

import numpy as np
import pytest

from mpc_control.data_collector import CYCLE_COLUMNS, PREDICTION_COLUMNS, DataCollector
from mpc_control.plot_results import find_latest_run
from mpc_control.telemetry import ControlOutput, Telemetry
from mpc_control.visualization import parse_cycles, parse_predictions, plot_run_summary, summarize_run


def make_cycle(cte, status="converged", predicted=True):
    telemetry = Telemetry(x=cte, y=1.0, psi=0.1, speed=10.0, ptsx=[], ptsy=[])
    output = ControlOutput(
        steering=0.02,
        acceleration=0.3,
        steering_command=0.05,
        throttle_command=0.3,
        cte=cte,
        epsi=-0.01,
        predicted_x=[0.0, 1.0, 2.0] if predicted else [],
        predicted_y=[0.0, 0.01, 0.03] if predicted else [],
        status=status,
        solve_failed=status != "converged",
        iterations=12 if predicted else None,
        solve_time=0.008,
        objective=3.5 if predicted else float("nan"),
    )
    return telemetry, output


def record_run(run_dir):
    with DataCollector(run_dir=str(run_dir)) as collector:
        collector.log_cycle(*make_cycle(0.4), timestamp=100.0)
        collector.log_cycle(*make_cycle(-0.2, status="fallback:hold", predicted=False), timestamp=100.1)
        collector.log_cycle(*make_cycle(0.1), timestamp=100.2)
    return collector


def read_rows(path):
    with open(path, newline="") as f:
        return list(csv.reader(f))


def test_files_have_headers(tmp_path):
    collector = record_run(tmp_path / "run")

    cycles = read_rows(collector.cycles_output_path)
    predictions = read_rows(collector.predictions_output_path)

    assert cycles[0] == CYCLE_COLUMNS
    assert predictions[0] == PREDICTION_COLUMNS
    assert collector.cycle_count == 3


def test_cycle_rows(tmp_path):
    collector = record_run(tmp_path / "run")
    header, *rows = read_rows(collector.cycles_output_path)
    first = dict(zip(header, rows[0]))
    fallback = dict(zip(header, rows[1]))

    assert len(rows) == 3
    assert float(first["cte"]) == pytest.approx(0.4)
    assert float(first["solve_time_ms"]) == pytest.approx(8.0)
    assert first["iterations"] == "12"
    assert fallback["status"] == "fallback:hold"
    assert fallback["iterations"] == ""
    assert fallback["objective"] == ""


def test_prediction_rows_are_indexed_by_cycle(tmp_path):
    collector = record_run(tmp_path / "run")
    _, *rows = read_rows(collector.predictions_output_path)

    cycles = sorted({int(row[0]) for row in rows})
    assert cycles == [0, 2]
    assert len(rows) == 6


def test_timestamped_run_directory(tmp_path, monkeypatch):
    monkeypatch.delenv("RUN_DIR", raising=False)
    collector = DataCollector(output_dir=str(tmp_path))

    assert collector.run_dir.parent == tmp_path / "results"
    assert collector.run_dir.name.startswith("run_")
    assert collector.run_dir.is_dir()


def test_run_dir_from_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("RUN_DIR", str(tmp_path / "live"))
    collector = DataCollector(output_dir=str(tmp_path))
    assert collector.run_dir == tmp_path / "live"


def test_output_path_must_be_directory(tmp_path):
    not_a_dir = tmp_path / "file.txt"
    not_a_dir.write_text("x")
    with pytest.raises(ValueError):
        DataCollector(output_dir=str(not_a_dir))


def test_parse_and_summarize(tmp_path):
    record_run(tmp_path / "run")

    cycles = parse_cycles(tmp_path / "run" / "cycles.csv")
    predictions = parse_predictions(tmp_path / "run" / "predictions.csv")
    stats = summarize_run(cycles)

    assert list(cycles["fallback"]) == [False, True, False]
    assert np.isnan(cycles["iterations"][1])
    assert set(predictions) == {0, 2}
    assert predictions[2].shape == (3, 2)
    assert stats["cycles"] == 3
    assert stats["fallbacks"] == 1
    assert stats["max_abs_cte"] == pytest.approx(0.4)
    assert stats["rms_cte"] == pytest.approx(np.sqrt((0.16 + 0.04 + 0.01) / 3))


def test_plot_run_summary_saves_figures(tmp_path):
    run_dir = tmp_path / "run_20250101_000000"
    record_run(run_dir)

    stats = plot_run_summary(run_dir, save_plots=True, show_plots=False, control_period=0.1)

    assert (run_dir / "trajectory.png").exists()
    assert (run_dir / "tracking.png").exists()
    assert (run_dir / "solver.png").exists()
    assert stats["mean_solve_ms"] == pytest.approx(8.0)


def test_find_latest_run(tmp_path):
    for name in ["run_20250101_000000", "run_20250102_000000", "notes"]:
        (tmp_path / name).mkdir()
    assert find_latest_run(tmp_path).name == "run_20250102_000000"

    with pytest.raises(FileNotFoundError):
        find_latest_run(tmp_path / "missing")
