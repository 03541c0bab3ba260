"""
PPG pulse delineation.

Locates the fiducial points of each detected pulse:
- nA: pulse apex, largest local maximum after the upslope point nD
- nB: pulse onset, largest local minimum before nD
- nM: mid-amplitude point between onset and apex
"""

from typing import Optional
from dataclasses import dataclass

import numpy as np
from scipy import signal

from .config import Config, default_config
from .refinement import refine_peak_positions
from .validation import as_signal, require_positive


@dataclass
class DelineationResult:
    """Fiducial points in seconds, NaN where undefined."""
    n_a: np.ndarray  # Pulse apex
    n_b: np.ndarray  # Pulse onset
    n_m: np.ndarray  # Mid-amplitude point

    @property
    def n_pulses(self) -> int:
        return len(self.n_a)


def _largest_local_max(x: np.ndarray, start: int, end: int) -> float:
    """Index of the largest local maximum of ``x[start:end + 1]``, NaN if none."""
    window = x[start:end + 1]
    if len(window) < 3:
        return np.nan
    locs, _ = signal.find_peaks(window)
    if len(locs) == 0:
        return np.nan
    return float(start + locs[np.argmax(window[locs])])


def pulse_delineation(
    ppg: np.ndarray,
    fs: float,
    n_d: np.ndarray,
    window_a: Optional[float] = None,
    window_b: Optional[float] = None,
    config: Config = default_config,
) -> DelineationResult:
    """
    Delineate PPG pulses around their upslope points.

    Parameters
    ----------
    ppg : np.ndarray
        PPG signal.
    fs : float
        Sampling frequency in Hz.
    n_d : np.ndarray
        Pulse detection times in seconds (e.g. from detect_pulses on the
        LPD-filtered signal). NaN entries are dropped.
    window_a : float, optional
        Apex search window after nD in seconds. Defaults to
        config.DELINEATION_WINDOW_A.
    window_b : float, optional
        Onset search window before nD in seconds. Defaults to
        config.DELINEATION_WINDOW_B.
    config : Config
        Pipeline configuration.

    Returns
    -------
    DelineationResult
        Apex and onset refined on a spline-interpolated signal; mid-point on
        the sample grid.
    """
    ppg = as_signal(ppg, "ppg")
    fs = require_positive(fs, "fs")
    window_a = require_positive(config.DELINEATION_WINDOW_A if window_a is None else window_a, "window_a")
    window_b = require_positive(config.DELINEATION_WINDOW_B if window_b is None else window_b, "window_b")

    n_d = np.asarray(n_d, dtype=float).ravel()
    n_d = n_d[~np.isnan(n_d)]
    if n_d.size == 0:
        nan = np.array([np.nan])
        return DelineationResult(n_a=nan, n_b=nan.copy(), n_m=nan.copy())

    n = len(ppg)
    last = n - 1
    len_a = int(round(window_a * fs))
    len_b = int(round(window_b * fs))
    d_samples = np.round(n_d * fs).astype(int)

    a_locs = np.full(len(n_d), np.nan)
    b_locs = np.full(len(n_d), np.nan)
    for i, d in enumerate(d_samples):
        a_locs[i] = _largest_local_max(ppg, min(max(d, 0), last), min(max(d + len_a, 0), last))
        b_locs[i] = _largest_local_max(-ppg, min(max(d - len_b, 0), last), min(max(d, 0), last))

    n_a = np.full(len(n_d), np.nan)
    n_b = np.full(len(n_d), np.nan)
    has_a = ~np.isnan(a_locs)
    has_b = ~np.isnan(b_locs)
    if has_a.any():
        n_a[has_a] = refine_peak_positions(ppg, fs, a_locs[has_a] / fs, search_type="max", config=config)
    if has_b.any():
        n_b[has_b] = refine_peak_positions(ppg, fs, b_locs[has_b] / fs, search_type="min", config=config)

    n_m = np.full(len(n_d), np.nan)
    for i in np.flatnonzero(has_a & has_b):
        onset, apex = int(b_locs[i]), int(a_locs[i])
        if apex < onset:
            continue
        level = (ppg[onset] + ppg[apex]) / 2
        distance = np.abs(ppg[onset:apex + 1] - level)
        if np.all(np.isnan(distance)):
            continue
        n_m[i] = (onset + int(np.nanargmin(distance))) / fs

    return DelineationResult(n_a=n_a, n_b=n_b, n_m=n_m)
