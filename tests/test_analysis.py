"""End-to-end tests for the analysis runs."""

import csv
import logging
from pathlib import Path

import pytest

from conftest import manifest_row, write_emg_csv, write_manifest
from myophase.analysis import (
    analyze_phase_sync,
    build_backpressure,
    export_results,
    find_data_files,
    load_trial,
    resolve_data_path,
    resolve_input_path,
    run_max_mean,
    run_normalize,
    run_phase_analysis,
    validate_data_files,
)
from myophase.backpressure import BackpressureController, NullBackpressure
from myophase.config import default_config
from myophase.errors import InputValidationError, PhaseLookupError
from myophase.manifest import parse_manifest
from myophase.numeric import descale
from myophase.schema import Request


def _read_csv(path):
    with open(path, encoding="utf-8-sig", newline="") as f:
        return list(csv.reader(f))


def _request(folder, start="S", end="D", subject_index=0):
    return Request(str(folder / "manifest.csv"), str(folder), start, end, subject_index)


# ── Phase-synchronized statistics ────────────────────────────────────────


def test_analyze_phase_sync(trial_dir):
    stats = analyze_phase_sync(_request(trial_dir))
    assert stats.subject == "S01"
    assert stats.start_time == pytest.approx(0.5)
    assert stats.end_time == pytest.approx(1.0)
    assert stats.channels == ["Ch1", "Ch2"]
    # Ch1 holds the sample index, 0.50 s to 1.00 s covers samples 50..100
    assert descale(stats.means["Ch1"], 10) == pytest.approx(75.0)
    assert descale(stats.maxes["Ch1"], 10) == pytest.approx(100.0)
    assert descale(stats.means["Ch2"], 10) == pytest.approx(2.0)


def test_analyze_phase_sync_with_sync_check(trial_dir):
    stats = analyze_phase_sync(_request(trial_dir), check_sync=True)
    assert descale(stats.means["Ch1"], 10) == pytest.approx(75.0)


def test_export_results(trial_dir, tmp_path):
    stats = analyze_phase_sync(_request(trial_dir))
    path = export_results(stats, tmp_path / "out")
    assert path.endswith("S01_S-D_statistics.csv")
    rows = _read_csv(path)
    assert rows[0] == ["", "Ch1", "Ch2"]
    assert rows[2] == ["開始時間", "0.5000000000", "0.5000000000"]
    assert rows[5] == ["平均值", "75.0000000000", "2.0000000000"]
    assert rows[6] == ["最大值", "100.0000000000", "2.0000000000"]


def test_export_results_json(trial_dir, tmp_path):
    cfg = default_config()
    cfg["output"]["format"] = "json"
    stats = analyze_phase_sync(_request(trial_dir), cfg)
    path = export_results(stats, tmp_path, cfg)
    assert path.endswith("S01_S-D_statistics.json")


def test_analyze_phase_sync_invalid_subject(trial_dir):
    with pytest.raises(InputValidationError) as e:
        analyze_phase_sync(_request(trial_dir, subject_index=3))
    assert e.value.field == "subject_index"


def test_analyze_phase_sync_phase_order(trial_dir):
    with pytest.raises(PhaseLookupError):
        analyze_phase_sync(_request(trial_dir, start="D", end="S"))


def test_analyze_phase_sync_unset_landmark(trial_dir):
    with pytest.raises(PhaseLookupError, match="value not set"):
        analyze_phase_sync(_request(trial_dir, start="S", end="L"))


def test_analyze_phase_sync_absolute_emg_path(tmp_path):
    data = tmp_path / "elsewhere"
    data.mkdir()
    emg = write_emg_csv(data / "emg.csv")
    write_manifest(tmp_path / "manifest.csv", [manifest_row(emg=str(emg))])
    stats = analyze_phase_sync(_request(tmp_path))
    assert descale(stats.maxes["Ch1"], 10) == pytest.approx(100.0)


def test_missing_recordings(tmp_path):
    write_manifest(tmp_path / "manifest.csv", [manifest_row()])
    write_emg_csv(tmp_path / "emg.csv")
    [m] = parse_manifest(tmp_path / "manifest.csv")
    with pytest.raises(FileNotFoundError, match="motion file not found"):
        validate_data_files(tmp_path, m)
    with pytest.raises(FileNotFoundError):
        analyze_phase_sync(_request(tmp_path), check_sync=True)


def test_load_trial(trial_dir):
    [m] = parse_manifest(trial_dir / "manifest.csv")
    motion, force, emg = load_trial(trial_dir, m)
    assert motion.n_frames == 600
    assert force.channels == ["Fx", "Fy"]
    assert emg.n_samples == 201


def test_resolve_data_path(tmp_path):
    assert resolve_data_path(tmp_path, "a.csv") == tmp_path / "a.csv"
    assert resolve_data_path(tmp_path, str(tmp_path / "b.csv")) == tmp_path / "b.csv"


def test_find_data_files(tmp_path):
    for name in ("a.csv", "b.csv", "c.anc", "d.txt"):
        (tmp_path / name).write_text("x", encoding="utf-8")
    files = find_data_files(tmp_path, ["*.csv", "a.*", "*.anc"])
    assert [f.rsplit("/", 1)[-1] for f in files] == ["a.csv", "b.csv", "c.anc"]


def test_build_backpressure():
    cfg = default_config()
    assert isinstance(build_backpressure(cfg), BackpressureController)
    cfg["backpressure"]["enabled"] = False
    assert isinstance(build_backpressure(cfg), NullBackpressure)


# ── Single-file analyses ─────────────────────────────────────────────────


def test_run_max_mean(tmp_path, caplog):
    emg = write_emg_csv(tmp_path / "trial.csv")
    progress = []
    with caplog.at_level(logging.INFO, logger="myophase.window"):
        results, path = run_max_mean(emg, window_size=10, start_range=0.5, end_range=1.0,
                                     output_dir=tmp_path / "out", progress=progress.append)
    assert path.endswith("trial_最大平均值計算.csv")
    assert [r.channel_name for r in results] == ["Ch1", "Ch2"]
    assert len(progress) == 2
    rows = _read_csv(path)
    assert len(rows) == 6
    assert rows[0] == ["time", "Ch1", "Ch2"]
    assert rows[3][0] == "開始計算秒數"
    assert rows[3][1] == "0.9100000000"
    assert rows[4][1] == "1.0000000000"
    assert rows[5][1] == "95.5000000000"
    assert "Max-mean finished" in caplog.text


def test_run_max_mean_uses_config_defaults(tmp_path):
    emg = write_emg_csv(tmp_path / "trial.csv")
    cfg = default_config()
    cfg["window"]["size"] = 201
    cfg["backpressure"]["enabled"] = False
    [r, _], _ = run_max_mean(emg, config=cfg, output_dir=tmp_path)
    assert descale(r.max_mean, 10) == pytest.approx(100.0)


def test_run_max_mean_large_file_threshold(tmp_path, caplog):
    emg = write_emg_csv(tmp_path / "trial.csv")
    cfg = default_config()
    cfg["files"]["large_file_mb"] = 0
    cfg["backpressure"]["enabled"] = False
    with caplog.at_level(logging.INFO, logger="myophase.parsers"):
        run_max_mean(emg, window_size=5, config=cfg, output_dir=tmp_path)
    assert "Large file trial.csv" in caplog.text


def test_resolve_input_path(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "in").mkdir()
    write_emg_csv(tmp_path / "in" / "trial.csv")
    assert resolve_input_path("trial.csv", tmp_path / "in") == tmp_path / "in" / "trial.csv"
    assert resolve_input_path("other.csv", tmp_path / "in") == Path("other.csv")
    assert resolve_input_path("trial.csv", None) == Path("trial.csv")
    absolute = tmp_path / "trial.csv"
    assert resolve_input_path(absolute, tmp_path / "in") == absolute


def test_runs_read_from_input_directories(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "in").mkdir()
    (tmp_path / "ref").mkdir()
    write_emg_csv(tmp_path / "in" / "trial.csv", n_samples=3)
    (tmp_path / "ref" / "mvc.csv").write_text("name,Ch1,Ch2\nMVC,2,4\n", encoding="utf-8")
    cfg = default_config()
    cfg["input"]["directory"] = str(tmp_path / "in")
    cfg["input"]["reference_directory"] = str(tmp_path / "ref")
    cfg["backpressure"]["enabled"] = False

    _, path = run_max_mean("trial.csv", window_size=2, config=cfg, output_dir=tmp_path / "out")
    assert path.endswith("trial_最大平均值計算.csv")
    stream, _ = run_normalize("trial.csv", "mvc.csv", config=cfg, output_dir=tmp_path / "out")
    assert stream.n_samples == 3


def test_run_normalize(tmp_path):
    emg = write_emg_csv(tmp_path / "trial.csv", n_samples=3)
    ref = tmp_path / "mvc.csv"
    ref.write_text("name,Ch1,Ch2\nMVC,2,4\n", encoding="utf-8")
    stream, path = run_normalize(emg, ref, output_dir=tmp_path / "out")
    assert path.endswith("trial_標準化.csv")
    rows = _read_csv(path)
    assert rows[0] == ["time", "Ch1", "Ch2"]
    assert rows[2] == ["0.01", "0.5000000000", "0.5000000000"]
    assert stream.n_samples == 3


def test_run_phase_analysis(tmp_path):
    emg = write_emg_csv(tmp_path / "trial.csv")
    analysis, path = run_phase_analysis(
        emg, ["0.10", "0.20", "0.30", "0.40", "0.50"], output_dir=tmp_path
    )
    assert path.endswith("trial_分期分析.csv")
    assert len(analysis.phases) == 4
    rows = _read_csv(path)
    assert rows[0] == ["time", "Ch1", "Ch2"]
    assert rows[1][0] == "啟跳下蹲階段 最大值"
    assert rows[1][1] == "19.0000000000"
    assert rows[2][1] == "15.0000000000"
    assert rows[-1][0] == "整個階段最大值出現在_秒"
    assert rows[-1][1] == "2.0000000000"
