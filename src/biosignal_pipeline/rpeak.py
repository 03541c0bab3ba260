"""R-peak detection.
Uses the Pan–Tompkins energy envelope (band-pass, derivative, squaring,
moving-window integration)
"""

import logging
from typing import Tuple, List, Optional
from dataclasses import dataclass, field

import numpy as np
from scipy import signal

from .config import Config, default_config
from .preprocess import bandpass_filter
from .pulse_detection import detect_pulses
from .refinement import snap_to_peak
from .validation import as_signal, require_positive, warn_data_quality

logger = logging.getLogger(__name__)

RPEAK_METHODS = ("findpeaks", "adaptive_threshold")


@dataclass
class RPeakResult:
    """Result of R-peak detection."""
    peak_indices: np.ndarray    # Sample indices of detected R-peaks
    peak_times: np.ndarray      # Times in seconds
    ecg_filtered: np.ndarray    # Band-passed ECG
    decg: np.ndarray            # Squared derivative
    decg_envelope: np.ndarray   # Moving-window integrated energy
    method_used: str            # Peak picking method that was used
    quality_score: float        # 0-1 quality estimate
    quality_notes: List[str] = field(default_factory=list)

    @property
    def n_peaks(self) -> int:
        """Number of detected peaks."""
        return len(self.peak_indices)

    def get_rr_intervals_ms(self) -> np.ndarray:
        """Get RR intervals in milliseconds."""
        if len(self.peak_times) < 2:
            return np.array([])
        return np.diff(self.peak_times) * 1000


def _empty_result(method: str, notes: List[str]) -> RPeakResult:
    empty = np.array([])
    return RPeakResult(
        peak_indices=np.array([], dtype=int),
        peak_times=empty,
        ecg_filtered=empty,
        decg=empty,
        decg_envelope=empty,
        method_used=method,
        quality_score=0.0,
        quality_notes=notes,
    )


def pan_tompkins(
    ecg: np.ndarray,
    fs: Optional[float] = None,
    method: Optional[str] = None,
    config: Config = default_config,
) -> RPeakResult:
    """Detect R-peaks with the Pan–Tompkins envelope.

    Parameters
    ----------
    ecg : np.ndarray
        Raw ECG signal. NaN samples are allowed.
    fs : float, optional
        Sampling frequency in Hz. Defaults to config.SAMPLING_RATE.
    method : str, optional
        Peak picking on the envelope: 'findpeaks' (local maxima at least
        PT_MIN_PEAK_DISTANCE apart) or 'adaptive_threshold' (segmented
        adaptive threshold detector). Defaults to config.RPEAK_METHOD.
    config : Config
        Pipeline configuration.

    Returns
    -------
    RPeakResult
        Detection results with intermediate signals and quality metrics.
    """
    fs = require_positive(config.SAMPLING_RATE if fs is None else fs, "fs")
    method = config.RPEAK_METHOD if method is None else method
    if method not in RPEAK_METHODS:
        raise ValueError(f"'method' must be one of {RPEAK_METHODS}, got {method!r}")

    ecg = as_signal(ecg, "ecg", allow_empty=True)
    if len(ecg) < 2:
        warn_data_quality("ECG has fewer than two samples; no R-peaks detected")
        return _empty_result(method, ["✗ ECG too short"])
    if np.all(np.isnan(ecg)):
        warn_data_quality("ECG has no valid samples; no R-peaks detected")
        return _empty_result(method, ["✗ ECG has no valid samples"])

    ecg_filtered = bandpass_filter(
        ecg, fs,
        lowcut=config.PT_BANDPASS_LOW,
        highcut=config.PT_BANDPASS_HIGH,
        order=config.PT_FILTER_ORDER,
        config=config,
    )

    decg = np.diff(ecg_filtered)
    decg = np.concatenate([decg[:1], decg]) ** 2

    # Clamped so the envelope keeps the ECG length
    window = min(max(1, int(round(fs * config.PT_WINDOW_SIZE))), len(decg))
    decg_envelope = np.convolve(decg, np.ones(window) / window, mode='same')

    if method == "adaptive_threshold":
        peak_indices = detect_pulses(decg_envelope, fs, config=config).peak_indices
    else:
        distance = max(1, int(round(fs * config.PT_MIN_PEAK_DISTANCE)))
        peak_indices, _ = signal.find_peaks(np.nan_to_num(decg_envelope), distance=distance)

    peak_indices = np.unique(np.asarray(peak_indices, dtype=int))

    if config.PT_USE_SNAP_TO_PEAK and len(peak_indices) > 0:
        peak_indices = np.unique(snap_to_peak(ecg, peak_indices, config.PT_SNAP_WINDOW_SIZE))

    if len(peak_indices) == 0:
        warn_data_quality("No R-peaks detected")

    peak_times = peak_indices / fs
    logger.debug("Pan-Tompkins (%s): %d R-peaks", method, len(peak_indices))

    quality_score, quality_notes = _assess_detection_quality(peak_indices, ecg, fs, config)

    return RPeakResult(
        peak_indices=peak_indices,
        peak_times=peak_times,
        ecg_filtered=ecg_filtered,
        decg=decg,
        decg_envelope=decg_envelope,
        method_used=method,
        quality_score=quality_score,
        quality_notes=quality_notes,
    )


def _assess_detection_quality(
    peak_indices: np.ndarray,
    x: np.ndarray,
    fs: float,
    config: Config,
) -> Tuple[float, List[str]]:
    """
    Assess quality of beat/pulse detection.

    Parameters
    ----------
    peak_indices : np.ndarray
        Detected peak indices.
    x : np.ndarray
        Signal the peaks were detected on.
    fs : float
        Sampling frequency.
    config : Config
        Pipeline configuration.

    Returns
    -------
    Tuple[float, List[str]]
        (quality_score, quality_notes)
    """
    quality_score = 1.0
    notes = []

    if len(peak_indices) == 0:
        return 0.0, ["✗ No peaks detected"]

    # Only valid samples count towards the expected number of beats
    duration_sec = np.count_nonzero(~np.isnan(x)) / fs

    # Expected HR range: 40-180 bpm
    min_expected = int(duration_sec * 40 / 60)
    max_expected = int(duration_sec * 180 / 60)

    n_peaks = len(peak_indices)

    if n_peaks < min_expected:
        quality_score -= 0.3
        notes.append(f"⚠ Too few peaks detected ({n_peaks} < {min_expected} expected for 40bpm)")
    elif n_peaks > max_expected:
        quality_score -= 0.2
        notes.append(f"⚠ Too many peaks detected ({n_peaks} > {max_expected} expected for 180bpm)")
    else:
        estimated_hr = n_peaks / duration_sec * 60 if duration_sec > 0 else 0.0
        notes.append(f"✓ Peak count reasonable (estimated HR: {estimated_hr:.0f} bpm)")

    if len(peak_indices) >= 2:
        rr_intervals = np.diff(peak_indices) / fs * 1000  # in ms

        # Physiologically implausible intervals
        too_short = np.sum(rr_intervals < config.RR_MIN_MS)
        too_long = np.sum(rr_intervals > config.RR_MAX_MS)

        if too_short > 0:
            quality_score -= 0.1 * (too_short / len(rr_intervals))
            notes.append(f"⚠ {too_short} RR intervals < {config.RR_MIN_MS}ms (too short)")

        if too_long > 0:
            quality_score -= 0.1 * (too_long / len(rr_intervals))
            notes.append(f"⚠ {too_long} RR intervals > {config.RR_MAX_MS}ms (too long)")

        cv = np.std(rr_intervals) / np.mean(rr_intervals)
        if cv > 0.5:
            quality_score -= 0.1
            notes.append(f"⚠ High RR variability (CV={cv:.2f}). May indicate detection errors.")

    return max(0.0, quality_score), notes
