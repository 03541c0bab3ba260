"""
Segmented pulse detection.

Runs the adaptive threshold detector on consecutive segments of a long
enhanced signal, each padded with context from its neighbours, and merges
the per-segment results back into one detection set and threshold trace.
"""

import logging
from typing import List, Optional, Tuple
from dataclasses import dataclass, field
from concurrent.futures import ThreadPoolExecutor

import numpy as np

from .config import Config, default_config
from .refinement import snap_to_peak
from .segmentation import slice_signal
from .threshold import adaptive_threshold
from .validation import (
    as_signal,
    require_positive,
    require_positive_int,
    require_fraction,
    warn_data_quality,
)

logger = logging.getLogger(__name__)


@dataclass
class PulseDetectionResult:
    """Result of segmented pulse detection."""
    peak_indices: np.ndarray  # 0-based sample indices on the full signal
    peak_times: np.ndarray    # Times in seconds (index / fs)
    threshold: np.ndarray     # Threshold trace, same length as the signal
    n_segments: int           # Number of core segments processed
    quality_notes: List[str] = field(default_factory=list)

    @property
    def n_peaks(self) -> int:
        """Number of detected pulses."""
        return len(self.peak_indices)


def _padded_segment(
    slices: np.ndarray,
    ii: int,
    pad: int,
) -> Tuple[np.ndarray, int]:
    """Return segment ``ii`` with neighbour context and its left padding length."""
    n_segments = slices.shape[1]
    parts = []
    left = 0
    if ii > 0 and pad > 0:
        parts.append(slices[-pad:, ii - 1])
        left = pad
    parts.append(slices[:, ii])
    if ii < n_segments - 1 and pad > 0:
        parts.append(slices[:pad, ii + 1])
    return np.concatenate(parts), left


def detect_pulses(
    dppg: np.ndarray,
    fs: float,
    alpha_amp: Optional[float] = None,
    refract_period: Optional[float] = None,
    tau_rr: Optional[float] = None,
    segment_length: Optional[int] = None,
    config: Config = default_config,
) -> PulseDetectionResult:
    """
    Detect pulses in an enhanced signal, segment by segment.

    Parameters
    ----------
    dppg : np.ndarray
        Enhanced signal, e.g. LPD-filtered PPG or an ECG energy envelope.
        NaN marks invalid samples.
    fs : float
        Sampling frequency in Hz.
    alpha_amp, refract_period, tau_rr : float, optional
        Adaptive threshold parameters; default to the config values.
    segment_length : int, optional
        Core segment length in samples. Defaults to config.SEGMENT_LENGTH.
    config : Config
        Pipeline configuration.

    Returns
    -------
    PulseDetectionResult
        Deduplicated, sorted detections and the full-length threshold trace.

    Notes
    -----
    Every segment except the first borrows SEGMENT_PADDING_SEC of signal from
    the previous one, and every segment except the last borrows the same from
    the next one. Detections and threshold samples inside borrowed context
    are discarded before merging.
    """
    x = as_signal(dppg, "dppg")
    fs = require_positive(fs, "fs")
    alpha_amp = require_fraction(
        config.PULSE_ALPHA_AMP if alpha_amp is None else alpha_amp, "alpha_amp"
    )
    refract_period = require_positive(
        config.PULSE_REFRACT_PERIOD if refract_period is None else refract_period,
        "refract_period",
    )
    tau_rr = require_positive(config.PULSE_TAU_RR if tau_rr is None else tau_rr, "tau_rr")
    segment_length = require_positive_int(
        config.SEGMENT_LENGTH if segment_length is None else segment_length, "segment_length"
    )

    n = len(x)
    if segment_length < n:
        slices = slice_signal(x, segment_length, 0, use_last=True).slices
    else:
        segment_length = n
        slices = x[:, np.newaxis]
    n_segments = slices.shape[1]
    pad = min(int(round(config.SEGMENT_PADDING_SEC * fs)), segment_length)

    segments = [_padded_segment(slices, ii, pad) for ii in range(n_segments)]
    logger.debug(
        "Detecting pulses in %d segment(s) of %d samples (padding %d)",
        n_segments, segment_length, pad,
    )

    def _run(segment: np.ndarray):
        return adaptive_threshold(
            segment, fs,
            alpha_amp=alpha_amp,
            refract_period=refract_period,
            tau_rr=tau_rr,
            config=config,
        )

    if config.N_WORKERS > 1 and n_segments > 1:
        with ThreadPoolExecutor(max_workers=int(config.N_WORKERS)) as ex:
            results = list(ex.map(_run, [seg for seg, _ in segments]))
    else:
        results = [_run(seg) for seg, _ in segments]

    peak_parts = []
    threshold_parts = []
    for ii, ((_, left), result) in enumerate(zip(segments, results)):
        idx = result.peak_indices
        idx = idx[(idx >= left) & (idx < left + segment_length)] - left
        peak_parts.append(idx + ii * segment_length)
        threshold_parts.append(result.threshold[left:left + segment_length])

    threshold = np.concatenate(threshold_parts)[:n]
    peak_indices = np.unique(np.concatenate(peak_parts)).astype(int)
    peak_indices = peak_indices[peak_indices < n]

    quality_notes: List[str] = []
    if len(peak_indices) > 0:
        snap = int(round(config.PULSE_SNAP_WINDOW_SEC * fs))
        peak_indices = np.unique(snap_to_peak(x, peak_indices, snap))
    else:
        warn_data_quality("No pulses detected")
        quality_notes.append("⚠ No pulses detected")

    return PulseDetectionResult(
        peak_indices=peak_indices,
        peak_times=peak_indices / fs,
        threshold=threshold,
        n_segments=n_segments,
        quality_notes=quality_notes,
    )
