#!/usr/bin/env python3
"""
Step 2: HRV Event-Series Correction & Metrics

This script corrects event series detected in Step 1:
1. Load event series from JSON files
2. Remove false-positive detections
3. Fill gaps left by missed detections
4. Compute time-domain HRV metrics (mean HR, SDNN, SDSD, RMSSD, pNN50)
5. Export summary to CSV

Prerequisites:
    Run run_pulse_detection.py first to generate events_*.json files

Usage:
    python src/run_hrv_correction.py
    python src/run_hrv_correction.py --results-dir Results --debug-plots Results/gapfill
Output:
    Results/events_{recording}.json  - Updated with the corrected series
    Results/hrv_summary.csv          - Time-domain HRV metrics for all recordings
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List

import numpy as np
import pandas as pd

# Ensure this script works when executed from any CWD.
sys.path.insert(0, str(Path(__file__).resolve().parent))

from biosignal_pipeline.config import Config
from biosignal_pipeline.io_utils import load_events_json, save_events_json, list_events_files
from biosignal_pipeline.hrv import remove_false_positives, td_metrics
from biosignal_pipeline.gap_filling import fill_gaps


def process_events_file(
    events_path: Path,
    config: Config,
    plot_dir: Path = None,
    verbose: bool = True,
) -> Dict[str, Any]:
    """
    Correct a single event series and compute its HRV metrics.

    Parameters
    ----------
    events_path : Path
        Path to events JSON file.
    config : Config
        Pipeline configuration.
    plot_dir : Path, optional
        Save gap-filling step plots here.
    verbose : bool
        Print progress messages.

    Returns
    -------
    Dict[str, Any]
        One summary row.
    """
    events = load_events_json(events_path)
    tk = events.times

    if verbose:
        print(f"\n  Recording: {events.recording_name}")
        print(f"    Events: {len(tk)}")

    if len(tk) == 0:
        raise ValueError("event series is empty")

    cleaned = remove_false_positives(tk, config=config)
    n_removed = len(tk) - len(cleaned)

    plotter = None
    if plot_dir is not None:
        from biosignal_pipeline.debug_plots import GapFillPlotter
        plotter = GapFillPlotter(output_dir=plot_dir / events.recording_name)

    try:
        result = fill_gaps(cleaned, on_attempt=plotter, config=config)
    finally:
        if plotter is not None:
            plotter.close()

    metrics = td_metrics(result.intervals, config=config)

    events.event_times = result.event_times.tolist()
    events.corrected = True
    events.n_inserted = result.n_inserted
    events.n_removed = n_removed + result.n_edge_removed
    events.quality_notes = list(events.quality_notes) + result.quality_notes
    save_events_json(events, events_path)

    if verbose:
        print(f"    False positives removed: {n_removed}")
        print(f"    Edge events removed: {result.n_edge_removed}")
        print(f"    Events inserted: {result.n_inserted} ({result.n_passes} passes)")
        if not result.converged:
            print(f"    ⚠ Unfilled gaps: {len(result.unfilled_gaps)}")
        if not np.isnan(metrics.mhr):
            print(f"    Mean HR: {metrics.mhr:.1f} bpm")
            print(f"    SDNN: {metrics.sdnn:.1f} ms")
            print(f"    RMSSD: {metrics.rmssd:.1f} ms")
            print(f"    pNN50: {metrics.pnn50:.1f}%")

    row = {
        "recording_name": events.recording_name,
        "signal_type": events.signal_type,
        "n_detected": len(tk),
        "n_false_positives": n_removed,
        "n_edge_removed": result.n_edge_removed,
        "n_inserted": result.n_inserted,
        "n_events": len(result.event_times),
        "n_passes": result.n_passes,
        "n_unfilled_gaps": len(result.unfilled_gaps),
    }
    row.update(metrics.to_dict())
    row["quality_notes"] = "; ".join(events.quality_notes)
    return row


def main():
    parser = argparse.ArgumentParser(
        description="Step 2: HRV Event-Series Correction",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Correct all event series in the default results directory
    python src/run_hrv_correction.py

    # Correct one recording and save gap-filling plots
    python src/run_hrv_correction.py --recording subject01 --debug-plots Results/gapfill
        """
    )

    parser.add_argument("--results-dir", "-r", type=Path, default=None, help="Directory with events_*.json")
    parser.add_argument(
        "--recording", "-g",
        type=str,
        default=None,
        help="Specific recording to process (without events_ prefix and .json extension)"
    )
    parser.add_argument("--debug-plots", type=Path, default=None, help="Save gap-filling step plots here")
    parser.add_argument("--quiet", "-q", action="store_true", help="Suppress progress messages")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    config = Config()
    verbose = not args.quiet
    results_dir = args.results_dir if args.results_dir is not None else config.get_results_dir()

    events_files = list_events_files(results_dir, config)
    if not events_files:
        print(f"Error: No events files found in '{results_dir}'.")
        print("Please run Step 1 first:")
        print("  python src/run_pulse_detection.py <input>")
        return 1

    if args.recording:
        target_name = f"{config.EVENTS_PREFIX}{args.recording}.json"
        events_files = [f for f in events_files if f.name == target_name]
        if not events_files:
            print(f"Error: Events file for recording '{args.recording}' not found.")
            return 1

    if verbose:
        print("=" * 60)
        print("HRV Correction Pipeline - Step 2")
        print("=" * 60)
        print(f"Recordings to correct: {len(events_files)}")

    rows: List[Dict[str, Any]] = []
    for events_path in events_files:
        try:
            rows.append(process_events_file(events_path, config, args.debug_plots, verbose))
        except (FileNotFoundError, ValueError) as e:
            name = events_path.stem.replace(config.EVENTS_PREFIX, "")
            print(f"  ✗ ERROR processing {name}: {e}")

    if not rows:
        print("Error: No recordings were successfully processed.")
        return 1

    df = pd.DataFrame(rows)
    summary_path = config.get_hrv_summary_path(results_dir)
    df.to_csv(summary_path, index=False)

    if verbose:
        print("\n" + "=" * 60)
        print(f"Processed {len(rows)}/{len(events_files)} recordings")
        print(f"Summary: {summary_path}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
