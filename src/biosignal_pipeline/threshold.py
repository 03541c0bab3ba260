"""
Adaptive threshold pulse detection.

Works on an enhanced (derivative-like) signal. The threshold starts high,
is held at the detected amplitude for a refractory period after each pulse
and then decays linearly towards a fraction of that amplitude over a
fraction of the running RR-interval estimate.
"""

import logging
from typing import List, Optional
from dataclasses import dataclass

import numpy as np

from .config import Config, default_config
from .validation import as_signal, require_positive, require_fraction, warn_data_quality

logger = logging.getLogger(__name__)


@dataclass
class ThresholdResult:
    """Result of adaptive threshold detection."""
    peak_indices: np.ndarray  # 0-based sample indices of detected pulses
    threshold: np.ndarray     # Time-varying threshold, same length as the signal

    @property
    def n_peaks(self) -> int:
        """Number of detected pulses."""
        return len(self.peak_indices)


def _linear_fall(start: float, end: float, length: int, n: int) -> np.ndarray:
    """First ``n`` samples of a ramp from ``start`` reaching ``end`` after ``length`` samples."""
    return start - (start - end) / length * np.arange(n)


def adaptive_threshold(
    signal: np.ndarray,
    fs: float,
    alpha_amp: Optional[float] = None,
    refract_period: Optional[float] = None,
    tau_rr: Optional[float] = None,
    config: Config = default_config,
) -> ThresholdResult:
    """
    Detect pulses in an enhanced signal with a time-varying threshold.

    Parameters
    ----------
    signal : np.ndarray
        Enhanced signal (e.g. LPD-filtered PPG). NaN marks invalid samples,
        which never cross the threshold.
    fs : float
        Sampling frequency in Hz.
    alpha_amp : float, optional
        Threshold floor as a fraction of the detected amplitude, in (0, 1).
        Defaults to config.PULSE_ALPHA_AMP.
    refract_period : float, optional
        Refractory period in seconds. Defaults to config.PULSE_REFRACT_PERIOD.
    tau_rr : float, optional
        Fraction of the RR estimate over which the threshold reaches its
        floor. Defaults to config.PULSE_TAU_RR.
    config : Config
        Pipeline configuration.

    Returns
    -------
    ThresholdResult
        Detected pulse indices and the threshold trace.

    Notes
    -----
    - Pulse amplitude uses the raw maximum for the first detections and the
      median of the last detected amplitudes plus the candidate afterwards.
    - An amplitude at least AMPLITUDE_OUTLIER_FACTOR times the median of the
      previous amplitudes is replaced by that median for the hold and fall.
    """
    x = as_signal(signal, "signal")
    fs = require_positive(fs, "fs")
    alpha = require_fraction(
        config.PULSE_ALPHA_AMP if alpha_amp is None else alpha_amp, "alpha_amp"
    )
    refract_period = require_positive(
        config.PULSE_REFRACT_PERIOD if refract_period is None else refract_period,
        "refract_period",
    )
    tau_rr = require_positive(config.PULSE_TAU_RR if tau_rr is None else tau_rr, "tau_rr")

    n = len(x)
    threshold = np.full(n, np.nan)
    refract = max(1, int(round(refract_period * fs)))

    valid = np.flatnonzero(~np.isnan(x))
    if valid.size == 0:
        warn_data_quality("Signal has no valid samples; no pulses detected")
        return ThresholdResult(peak_indices=np.array([], dtype=int), threshold=threshold)

    # Initial threshold from the first seconds of valid data
    w_start = valid[0]
    w_end = min(w_start + int(round(config.THRESHOLD_INIT_WINDOW_SEC * fs)), n - 1)
    window = x[w_start:w_end + 1]
    positive = window[window >= 0]
    if positive.size == 0:
        warn_data_quality("No non-negative samples to initialize the threshold; no pulses detected")
        return ThresholdResult(peak_indices=np.array([], dtype=int), threshold=threshold)
    thres_ini = config.THRESHOLD_AMPLITUDE_FACTOR * float(np.mean(positive))

    rr = max(1, int(round(60.0 / config.INITIAL_HR_BPM * fs)))
    if rr + 1 < n:
        threshold[:rr + 1] = _linear_fall(thres_ini, alpha * thres_ini, rr, rr + 1)
        threshold[rr:] = alpha * thres_ini
    else:
        threshold[:] = _linear_fall(thres_ini, alpha * thres_ini, rr, n)

    n_rr = config.N_RR_ESTIMATION
    n_amp = config.N_AMPLITUDE_ESTIMATION
    n_median = config.AMPLITUDE_MEDIAN_WINDOW

    peaks: List[int] = []
    kk = 0
    while True:
        # Next point to cross the threshold (down -> up)
        above = x[kk:] > threshold[kk:]
        if not above.any():
            break
        cross_up = kk + int(np.argmax(above))

        # Next point to cross the threshold (up -> down)
        below = x[cross_up:] < threshold[cross_up:]
        if not below.any():
            break
        cross_down = cross_up + int(np.argmax(below))

        segment = x[cross_up:cross_down + 1]
        p = cross_up + int(np.nanargmax(segment))
        candidate = x[p]

        if len(peaks) <= n_median:
            vmax = candidate
        else:
            vmax = float(np.median(np.append(x[peaks[-n_median:]], candidate)))

        peaks.append(p)
        n_peaks = len(peaks)

        # RR estimate in samples
        if n_peaks >= n_rr + 1:
            rr = int(round(np.median(np.diff(peaks[-(n_rr + 1):]))))
        elif n_peaks >= 2:
            rr = int(round(np.mean(np.diff(peaks))))

        # Hold during the refractory period
        kk = min(p + refract, n - 1)
        threshold[p:kk + 1] = vmax

        vfall = vmax * alpha
        if n_peaks >= n_amp + 1:
            ampli_est = float(np.median(x[peaks[-(n_amp + 1):-1]]))
            if vmax >= config.AMPLITUDE_OUTLIER_FACTOR * ampli_est:
                vfall = alpha * ampli_est
                vmax = ampli_est

        fall_end = max(1, int(round(tau_rr * rr)))
        if kk + fall_end < n - 1:
            threshold[kk:kk + fall_end + 1] = _linear_fall(vmax, vfall, fall_end, fall_end + 1)
            threshold[kk + fall_end:] = vfall
        else:
            threshold[kk:] = _linear_fall(vmax, vfall, fall_end, n - kk)

    logger.debug("Adaptive threshold: %d pulses in %d samples", len(peaks), n)

    return ThresholdResult(
        peak_indices=np.unique(np.asarray(peaks, dtype=int)),
        threshold=threshold,
    )
