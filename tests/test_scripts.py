import json
import sys

import numpy as np
import pandas as pd
import pytest

import run_hrv_correction
import run_pulse_detection


@pytest.fixture
def recording_dir(tmp_path):
    fs = 100.0
    t = np.arange(int(60 * fs)) / fs
    ppg = -np.cos(2 * np.pi * t / 0.8)
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    pd.DataFrame({"time": t, "PPG": ppg}).to_csv(data_dir / "subject01.csv", index=False)
    return data_dir


def test_detection_then_correction(tmp_path, recording_dir, monkeypatch):
    results = tmp_path / "Results"

    monkeypatch.setattr(sys, "argv", [
        "run_pulse_detection.py", str(recording_dir), "-o", str(results), "--no-report", "-q",
    ])
    assert run_pulse_detection.main() == 0

    events_path = results / "events_subject01.json"
    detected = json.loads(events_path.read_text(encoding="utf-8"))
    assert detected["signal_type"] == "ppg"
    assert detected["fs"] == pytest.approx(100.0)
    assert len(detected["event_times"]) > 60

    monkeypatch.setattr(sys, "argv", ["run_hrv_correction.py", "-r", str(results), "-q"])
    assert run_hrv_correction.main() == 0

    corrected = json.loads(events_path.read_text(encoding="utf-8"))
    assert corrected["corrected"] is True
    summary = pd.read_csv(results / "hrv_summary.csv")
    assert list(summary["recording_name"]) == ["subject01"]
    assert summary.loc[0, "mhr"] == pytest.approx(75.0, abs=1.0)


def test_detection_writes_report(tmp_path, recording_dir, monkeypatch):
    results = tmp_path / "Results"
    monkeypatch.setattr(sys, "argv", [
        "run_pulse_detection.py", str(recording_dir / "subject01.csv"), "-o", str(results), "-q",
    ])
    assert run_pulse_detection.main() == 0
    assert (results / "detection_subject01.html").exists()


def test_detection_missing_input(tmp_path, monkeypatch):
    monkeypatch.setattr(sys, "argv", ["run_pulse_detection.py", str(tmp_path / "none")])
    assert run_pulse_detection.main() == 1


def test_correction_without_events(tmp_path, monkeypatch):
    monkeypatch.setattr(sys, "argv", ["run_hrv_correction.py", "-r", str(tmp_path), "-q"])
    assert run_hrv_correction.main() == 1


def test_detection_with_artifact_blanking(tmp_path, recording_dir, monkeypatch):
    csv_path = recording_dir / "subject01.csv"
    frame = pd.read_csv(csv_path)
    burst = slice(3000, 3400)
    frame.loc[burst, "PPG"] += np.random.default_rng(0).normal(scale=10.0, size=400)
    frame.to_csv(csv_path, index=False)

    results = tmp_path / "Results"
    monkeypatch.setattr(sys, "argv", [
        "run_pulse_detection.py", str(csv_path), "-o", str(results), "--no-report", "-q", "--artifacts",
    ])
    assert run_pulse_detection.main() == 0

    events = json.loads((results / "events_subject01.json").read_text(encoding="utf-8"))
    times = np.asarray(events["event_times"])
    assert not np.any((times > 30.5) & (times < 33.5))


def test_ecg_detection_with_baseline_removal(tmp_path, ecg_signal, monkeypatch):
    ecg, fs, r_samples = ecg_signal
    t = np.arange(len(ecg)) / fs
    csv_path = tmp_path / "ecg01.csv"
    pd.DataFrame({"time": t, "ECG": ecg + np.sin(2 * np.pi * 0.1 * t)}).to_csv(csv_path, index=False)

    results = tmp_path / "Results"
    monkeypatch.setattr(sys, "argv", [
        "run_pulse_detection.py", str(csv_path), "-t", "ecg", "-c", "ECG", "--fs", "250",
        "-o", str(results), "-q", "--remove-baseline",
    ])
    assert run_pulse_detection.main() == 0
    assert (results / "detection_ecg01.html").exists()
    events = json.loads((results / "events_ecg01.json").read_text(encoding="utf-8"))
    assert abs(len(events["event_times"]) - len(r_samples)) <= 1
