#!/usr/bin/env python3
"""
Step 1: Beat/Pulse Detection

This script detects beats or pulses in signal recordings:
1. Load signal from CSV (invalid samples kept as NaN)
2. Optionally blank PPG artifacts (Hjorth parameters)
3. Enhance the signal (PPG: LPD filter; ECG: Pan-Tompkins envelope)
4. Detect events with the segmented adaptive threshold detector
5. Optionally remove ECG baseline wander for the report
6. Save event series to JSON
7. Generate interactive HTML detection report

Usage:
    python src/run_pulse_detection.py data/ppg_recording.csv
    python src/run_pulse_detection.py data/ --signal-type ecg --fs 500
Output:
    Results/events_{recording}.json     - Detected event times
    Results/detection_{recording}.html  - Interactive detection report
"""

import argparse
import logging
import sys
from dataclasses import replace
from datetime import datetime
from pathlib import Path

import numpy as np

# Ensure this script works when executed from any CWD.
sys.path.insert(0, str(Path(__file__).resolve().parent))

from biosignal_pipeline.config import Config
from biosignal_pipeline.io_utils import (
    load_signal_csv,
    save_events_json,
    list_signal_files,
    EventSeries,
)
from biosignal_pipeline.artifacts import hjorth_artifacts
from biosignal_pipeline.preprocess import lpd_filter, baseline_remove
from biosignal_pipeline.pulse_detection import detect_pulses
from biosignal_pipeline.rpeak import pan_tompkins
from biosignal_pipeline.report import create_detection_report


def process_recording(
    csv_path: Path,
    output_dir: Path,
    signal_type: str,
    config: Config,
    column: str = None,
    fs: float = None,
    make_report: bool = True,
    verbose: bool = True,
    remove_artifacts: bool = False,
    remove_baseline: bool = False,
) -> EventSeries:
    """
    Detect events in a single recording.

    Parameters
    ----------
    csv_path : Path
        Path to the recording CSV.
    output_dir : Path
        Directory for JSON and HTML outputs.
    signal_type : str
        'ppg' or 'ecg'.
    config : Config
        Pipeline configuration.
    column : str, optional
        Signal column in the CSV.
    fs : float, optional
        Sampling rate override.
    make_report : bool
        Write the HTML report.
    verbose : bool
        Print progress messages.
    remove_artifacts : bool
        PPG only: set Hjorth artifact samples to NaN before detection.
    remove_baseline : bool
        ECG only: plot the baseline-corrected signal in the report.

    Returns
    -------
    EventSeries
        Saved event series.
    """
    data = load_signal_csv(csv_path, column=column, fs=fs, config=config)

    if verbose:
        print(f"\n  Recording: {data.recording_name}")
        print(f"    Column: {data.column} | Fs: {data.fs:g} Hz | Duration: {data.duration_seconds:.1f}s")
        if data.n_nan:
            print(f"    ⚠ {data.n_nan} invalid samples ({data.n_nan / data.n_samples:.1%})")

    signal_raw = data.signal
    if signal_type == "ecg":
        result = pan_tompkins(data.signal, data.fs, config=config)
        enhanced = result.decg_envelope
        threshold = np.array([])
        peak_indices = result.peak_indices
        method = f"pan_tompkins/{result.method_used}"
        quality_notes = list(result.quality_notes)
        if remove_baseline:
            offset = int(round(config.BASELINE_OFFSET_SEC * data.fs))
            signal_raw, _ = baseline_remove(data.signal, peak_indices, offset, config=config)
            if verbose:
                print("    ✓ Baseline wander removed")
    else:
        if remove_artifacts and data.duration_seconds >= config.HJORTH_SEGMENT_SEC:
            artifacts = hjorth_artifacts(data.signal, data.fs, config=config)
            if artifacts.n_artifacts:
                signal_raw = data.signal.copy()
                signal_raw[artifacts.mask] = np.nan
                if verbose:
                    print(f"    ⚠ {artifacts.n_artifacts} artifact interval(s) blanked "
                          f"({artifacts.artifact_fraction:.1%} of samples)")
        enhanced, _ = lpd_filter(signal_raw, data.fs, config=config)
        result = detect_pulses(enhanced, data.fs, config=config)
        threshold = result.threshold
        peak_indices = result.peak_indices
        method = "lpd/adaptive_threshold"
        quality_notes = list(result.quality_notes)

    events = EventSeries(
        recording_name=data.recording_name,
        event_times=(peak_indices / data.fs).tolist(),
        fs=data.fs,
        n_samples=data.n_samples,
        signal_type=signal_type,
        detection_method=method,
        processed_at=datetime.now().isoformat(timespec="seconds"),
        quality_notes=quality_notes,
    )

    events_path = config.get_events_path(output_dir, data.recording_name)
    save_events_json(events, events_path)

    if verbose:
        print(f"    ✓ {len(peak_indices)} events detected")
        for note in quality_notes:
            print(f"      {note}")
        print(f"    Saved: {events_path}")

    if make_report:
        html = create_detection_report(
            signal_raw=signal_raw,
            enhanced=enhanced,
            threshold=threshold,
            time=np.arange(data.n_samples) / data.fs,
            peak_indices=peak_indices,
            recording_name=data.recording_name,
            fs=data.fs,
            signal_type=signal_type,
            quality_notes=quality_notes,
            config=config,
        )
        report_path = config.get_report_path(output_dir, data.recording_name)
        report_path.write_text(html, encoding="utf-8")
        if verbose:
            print(f"    Report: {report_path}")

    return events


def main():
    parser = argparse.ArgumentParser(
        description="Step 1: Beat/Pulse Detection",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Detect pulses in one PPG recording
    python src/run_pulse_detection.py data/ppg_recording.csv

    # Detect R-peaks in every CSV of a directory
    python src/run_pulse_detection.py data/ --signal-type ecg --column ECG
        """
    )

    parser.add_argument("input", type=Path, help="CSV file or directory of CSV files")
    parser.add_argument(
        "--signal-type", "-t",
        choices=["ppg", "ecg"],
        default="ppg",
        help="Signal type (default: ppg)"
    )
    parser.add_argument("--column", "-c", type=str, default=None, help="Signal column name")
    parser.add_argument("--fs", type=float, default=None, help="Sampling rate in Hz")
    parser.add_argument("--output-dir", "-o", type=Path, default=None, help="Output directory")
    parser.add_argument("--segment-length", type=int, default=None, help="Samples per detection segment")
    parser.add_argument("--workers", "-j", type=int, default=None, help="Threads for segment detection")
    parser.add_argument(
        "--rpeak-method",
        choices=["findpeaks", "adaptive_threshold"],
        default=None,
        help="Peak picking on the ECG envelope"
    )
    parser.add_argument("--artifacts", action="store_true", help="Blank Hjorth artifacts before PPG detection")
    parser.add_argument("--remove-baseline", action="store_true", help="Remove ECG baseline wander in the report")
    parser.add_argument("--no-report", action="store_true", help="Skip HTML reports")
    parser.add_argument("--quiet", "-q", action="store_true", help="Suppress progress messages")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    config = Config()
    overrides = {}
    if args.segment_length is not None:
        overrides["SEGMENT_LENGTH"] = args.segment_length
    if args.workers is not None:
        overrides["N_WORKERS"] = args.workers
    if args.rpeak_method is not None:
        overrides["RPEAK_METHOD"] = args.rpeak_method
    if overrides:
        config = replace(config, **overrides)

    verbose = not args.quiet
    output_dir = args.output_dir if args.output_dir is not None else config.get_results_dir()
    output_dir.mkdir(parents=True, exist_ok=True)

    try:
        signal_files = list_signal_files(args.input)
    except FileNotFoundError as e:
        print(f"Error: {e}")
        return 1

    if verbose:
        print("=" * 60)
        print(f"Detection Pipeline - Step 1 ({args.signal_type.upper()})")
        print("=" * 60)
        print(f"Recordings to process: {len(signal_files)}")

    n_success = 0
    for csv_path in signal_files:
        try:
            process_recording(
                csv_path, output_dir, args.signal_type, config,
                column=args.column,
                fs=args.fs,
                make_report=not args.no_report,
                verbose=verbose,
                remove_artifacts=args.artifacts,
                remove_baseline=args.remove_baseline,
            )
            n_success += 1
        except (FileNotFoundError, ValueError) as e:
            print(f"  ✗ ERROR processing {csv_path.stem}: {e}")

    if verbose:
        print("\n" + "=" * 60)
        print(f"Processed {n_success}/{len(signal_files)} recordings")
        print(f"Output directory: {output_dir}")

    return 0 if n_success > 0 else 1


if __name__ == "__main__":
    sys.exit(main())
