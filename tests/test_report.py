import numpy as np

from biosignal_pipeline.debug_plots import GapFillPlotter
from biosignal_pipeline.gap_filling import fill_gaps
from biosignal_pipeline.report import create_detection_report


def test_detection_report_html():
    fs = 50.0
    t = np.arange(1000) / fs
    x = np.sin(2 * np.pi * t / 0.8)
    peaks = np.round((0.2 + 0.8 * np.arange(20)) * fs).astype(int)

    html = create_detection_report(
        signal_raw=x,
        enhanced=x,
        threshold=np.full(len(x), 0.5),
        time=t,
        peak_indices=peaks,
        recording_name="subject42",
        fs=fs,
        event_times_corrected=peaks / fs,
        quality_notes=["✓ Detection rate reasonable"],
    )

    assert html.startswith("<html>")
    assert "subject42" in html
    assert "Corrected intervals" in html


def test_report_without_threshold():
    x = np.zeros(100)
    html = create_detection_report(
        x, x, np.array([]), np.arange(100) / 10.0, np.array([], dtype=int), "empty", 10.0,
        signal_type="ecg",
    )
    assert "ECG" in html


def test_gap_fill_plotter_writes_one_png_per_attempt(tmp_path, regular_events):
    tk = np.delete(regular_events, np.r_[19:22])
    attempts = []

    plotter = GapFillPlotter(output_dir=tmp_path)

    def record(attempt):
        attempts.append(attempt)
        plotter(attempt)

    fill_gaps(tk, on_attempt=record)
    plotter.close()

    assert plotter.n_drawn == len(attempts) == 3
    assert len(list(tmp_path.glob("gapfill_pass*_gap*.png"))) == 3
