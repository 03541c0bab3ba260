"""
Signal enhancement module.

Provides:
- NaN-aware zero-phase filtering
- Zero-phase Butterworth bandpass filtering
- LPD (low-pass differentiator) FIR filter used to enhance PPG upslopes
- ECG baseline wander removal through fiducial points before each R-peak
"""

import logging
from typing import Optional, Tuple

import numpy as np
from scipy import interpolate, signal, linalg

from .config import Config, default_config
from .interpolation import find_runs
from .validation import (
    as_signal, require_positive, require_positive_int, require_non_negative_int, warn_data_quality,
)

logger = logging.getLogger(__name__)


def _fill_linear(x: np.ndarray) -> np.ndarray:
    """Fill NaN samples by linear interpolation, holding the edge values."""
    nan_mask = np.isnan(x)
    if not nan_mask.any():
        return x.copy()
    idx = np.arange(len(x))
    return np.interp(idx, idx[~nan_mask], x[~nan_mask])


def _filtfilt(b: np.ndarray, a: np.ndarray, x: np.ndarray) -> np.ndarray:
    """filtfilt with the padding reduced for short inputs."""
    padlen = min(3 * max(len(a), len(b)), len(x) - 1)
    try:
        return signal.filtfilt(b, a, x, padlen=padlen)
    except ValueError as e:
        logger.warning("Filter warning: %s. Using minimum padding.", e)
        return signal.filtfilt(b, a, x, padlen=min(10, len(x) - 1))


def nan_filtfilt(
    b: np.ndarray,
    a: np.ndarray,
    x: np.ndarray,
    max_gap: int = 0,
) -> np.ndarray:
    """
    Zero-phase filtering of a signal with NaN samples.

    Parameters
    ----------
    b, a : np.ndarray
        Filter coefficients.
    x : np.ndarray
        Input signal.
    max_gap : int
        NaN runs up to this many samples are bridged by linear interpolation
        and filtered through. Longer runs split the signal into independently
        filtered stretches and stay NaN in the output.

    Returns
    -------
    np.ndarray
        Filtered signal, same length as ``x``.
    """
    x = as_signal(x, "x")
    max_gap = require_non_negative_int(max_gap, "max_gap")
    b = np.atleast_1d(np.asarray(b, dtype=float))
    a = np.atleast_1d(np.asarray(a, dtype=float))

    nan_mask = np.isnan(x)
    if nan_mask.all():
        return x.copy()

    long_runs = [(s, e) for s, e in find_runs(nan_mask) if e - s + 1 > max_gap]
    y = np.full(len(x), np.nan)

    # Stretches between long NaN runs
    bounds = []
    cursor = 0
    for s, e in long_runs:
        if s > cursor:
            bounds.append((cursor, s))
        cursor = e + 1
    if cursor < len(x):
        bounds.append((cursor, len(x)))

    for start, end in bounds:
        stretch = _fill_linear(x[start:end])
        if len(stretch) > 3 * max(len(a), len(b)):
            y[start:end] = _filtfilt(b, a, stretch)
        else:
            logger.debug("Stretch %d-%d too short to filter; left unfiltered", start, end)
            y[start:end] = stretch

    return y


def bandpass_filter(
    x: np.ndarray,
    fs: float = None,
    lowcut: float = None,
    highcut: float = None,
    order: int = None,
    max_gap: int = 0,
    config: Config = default_config,
) -> np.ndarray:
    """
    Apply zero-phase Butterworth bandpass filter.

    Parameters
    ----------
    x : np.ndarray
        Raw signal. NaN samples are handled as in nan_filtfilt.
    fs : float, optional
        Sampling frequency in Hz. Defaults to config.SAMPLING_RATE.
    lowcut, highcut : float, optional
        Cutoff frequencies in Hz. Default to the Pan-Tompkins band.
    order : int, optional
        Filter order. Defaults to config.PT_FILTER_ORDER.
    max_gap : int
        Longest NaN run bridged before filtering.
    config : Config
        Pipeline configuration.

    Returns
    -------
    np.ndarray
        Filtered signal.
    """
    fs = require_positive(config.SAMPLING_RATE if fs is None else fs, "fs")
    lowcut = require_positive(config.PT_BANDPASS_LOW if lowcut is None else lowcut, "lowcut")
    highcut = require_positive(config.PT_BANDPASS_HIGH if highcut is None else highcut, "highcut")
    order = config.PT_FILTER_ORDER if order is None else order
    if lowcut >= highcut:
        raise ValueError(f"'lowcut' must be below 'highcut', got {lowcut} >= {highcut}")

    nyquist = fs / 2.0
    low = lowcut / nyquist
    high = highcut / nyquist

    # Ensure valid frequency range
    if low <= 0:
        low = 0.001
    if high >= 1:
        high = 0.999

    b, a = signal.butter(order, [low, high], btype='band')
    return nan_filtfilt(b, a, x, max_gap=max_gap)


def highpass_filter(
    x: np.ndarray,
    fs: float,
    cutoff: float,
    order: int = 4,
) -> np.ndarray:
    """Zero-phase Butterworth highpass filter for a NaN-free stretch."""
    normalized_cutoff = cutoff / (fs / 2.0)
    if normalized_cutoff <= 0:
        normalized_cutoff = 0.001
    b, a = signal.butter(order, normalized_cutoff, btype='high')
    return _filtfilt(b, a, np.asarray(x, dtype=float))


def _estimate_lpd_order(pass_freq: float, stop_freq: float, fs: float, config: Config) -> int:
    """Even FIR order from the transition width and the tightest ripple."""
    ripple_db = -20 * np.log10(min(config.LPD_PASS_RIPPLE, config.LPD_STOP_RIPPLE))
    width = (stop_freq - pass_freq) / (fs / 2.0)
    numtaps, _ = signal.kaiserord(ripple_db, width)
    order = numtaps - 1
    return order + order % 2


def design_lpd(
    fs: float,
    stop_freq: float,
    pass_freq: float,
    order: int,
) -> np.ndarray:
    """
    Least-squares linear-phase FIR low-pass differentiator.

    Type III (even order, antisymmetric) design with amplitude response
    ``w`` in the passband ``[0, wp]`` and zero in the stopband ``[ws, pi]``.
    Coefficients are scaled by ``fs / (2*pi)``.
    """
    m = order // 2
    wp = np.pi * pass_freq / (fs / 2.0)
    ws = np.pi * stop_freq / (fs / 2.0)
    k = np.arange(1, m + 1)

    def cos_integral(n, lo, hi):
        out = np.empty(n.shape)
        zero = n == 0
        out[zero] = hi - lo
        nz = n[~zero]
        out[~zero] = (np.sin(nz * hi) - np.sin(nz * lo)) / nz
        return out

    diff = (k[:, None] - k[None, :]).astype(float)
    summ = (k[:, None] + k[None, :]).astype(float)
    q = np.zeros((m, m))
    for lo, hi in ((0.0, wp), (ws, np.pi)):
        q += 0.5 * (
            cos_integral(diff.ravel(), lo, hi) - cos_integral(summ.ravel(), lo, hi)
        ).reshape(m, m)
    rhs = np.sin(k * wp) / k ** 2 - wp * np.cos(k * wp) / k

    c = linalg.solve(q, rhs, assume_a='sym')

    h = np.zeros(order + 1)
    h[m - k] = c / 2
    h[m + k] = -c / 2
    return h * fs / (2 * np.pi)


def lpd_filter(
    x: np.ndarray,
    fs: float,
    stop_freq: Optional[float] = None,
    pass_freq: Optional[float] = None,
    order: Optional[int] = None,
    coefficients: Optional[np.ndarray] = None,
    config: Config = default_config,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Apply the LPD (low-pass differentiator) filter.

    Parameters
    ----------
    x : np.ndarray
        Input signal (e.g. PPG). NaN samples are bridged for filtering and
        restored afterwards.
    fs : float
        Sampling frequency in Hz.
    stop_freq : float, optional
        Stopband edge in Hz. Defaults to config.LPD_STOP_FREQ.
    pass_freq : float, optional
        Passband edge in Hz. Defaults to config.LPD_PASS_FREQ.
    order : int, optional
        Even filter order. Defaults to config.LPD_ORDER, estimated from the
        band edges when 0.
    coefficients : np.ndarray, optional
        Precomputed coefficients; skips the design step.
    config : Config
        Pipeline configuration.

    Returns
    -------
    filtered : np.ndarray
        Delay-compensated derivative, same length as ``x``.
    coefficients : np.ndarray
        FIR coefficients used.
    """
    x = as_signal(x, "x")
    fs = require_positive(fs, "fs")

    if coefficients is None:
        stop_freq = require_positive(config.LPD_STOP_FREQ if stop_freq is None else stop_freq, "stop_freq")
        pass_freq = require_positive(config.LPD_PASS_FREQ if pass_freq is None else pass_freq, "pass_freq")
        if pass_freq >= stop_freq:
            raise ValueError(f"'pass_freq' must be less than 'stop_freq', got {pass_freq} >= {stop_freq}")
        if stop_freq >= fs / 2:
            raise ValueError(f"'stop_freq' must be below the Nyquist frequency ({fs / 2} Hz), got {stop_freq}")

        order = config.LPD_ORDER if order is None else order
        if not order:
            order = _estimate_lpd_order(pass_freq, stop_freq, fs, config)
            logger.debug("Estimated LPD order %d", order)
        order = require_non_negative_int(order, "order")
        if order == 0 or order % 2:
            raise ValueError(f"'order' must be a positive even integer, got {order}")
        coefficients = design_lpd(fs, stop_freq, pass_freq, order)
    else:
        coefficients = as_signal(coefficients, "coefficients")

    nan_mask = np.isnan(x)
    if nan_mask.all():
        return x.copy(), coefficients

    filled = _fill_linear(x)
    delay = int(round((len(coefficients) - 1) / 2))
    filtered = signal.lfilter(coefficients, 1.0, np.concatenate([filled, np.zeros(delay)]))
    filtered = filtered[delay:]
    filtered[nan_mask] = np.nan

    return filtered, coefficients


def _finite_mean(x: np.ndarray) -> float:
    finite = x[np.isfinite(x)]
    return float(finite.mean()) if len(finite) else np.nan


def baseline_remove(
    ecg: np.ndarray,
    tk: np.ndarray,
    offset: int,
    window: Optional[int] = None,
    config: Config = default_config,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Remove baseline wander from an ECG.

    A fiducial point is taken ``offset`` samples before each R-peak, in the
    isoelectric PR segment. The mean of ``window`` samples around each point
    is interpolated with a cubic spline over the whole recording and
    subtracted.

    Parameters
    ----------
    ecg : np.ndarray
        ECG signal.
    tk : np.ndarray
        R-peak sample indices (0-based).
    offset : int
        Samples between each R-peak and its fiducial point.
    window : int, optional
        Samples averaged around each fiducial point. Defaults to
        config.BASELINE_WINDOW.
    config : Config
        Pipeline configuration.

    Returns
    -------
    detrended : np.ndarray
        ECG with the baseline subtracted.
    baseline : np.ndarray
        Estimated baseline, same length as ``ecg``.
    """
    ecg = as_signal(ecg, "ecg")
    tk = as_signal(tk, "tk", allow_empty=True)
    if not np.all(np.isfinite(tk)) or np.any(tk < 0):
        raise ValueError("'tk' must contain non-negative sample indices")
    offset = require_non_negative_int(offset, "offset")
    window = require_positive_int(config.BASELINE_WINDOW if window is None else window, "window")

    fiducial = np.round(tk - offset).astype(int)
    fiducial = np.unique(fiducial[(fiducial >= 0) & (fiducial < len(ecg))])

    half = window // 2
    values = np.array([_finite_mean(ecg[max(0, k - half):k + half + 1]) for k in fiducial])
    finite = np.isfinite(values)
    fiducial, values = fiducial[finite], values[finite]

    if len(fiducial) == 0:
        warn_data_quality("No valid fiducial points; baseline left at zero")
        return ecg.copy(), np.zeros(len(ecg))

    if len(fiducial) == 1:
        baseline = np.full(len(ecg), values[0])
    else:
        spline = interpolate.CubicSpline(fiducial, values, extrapolate=True)
        baseline = spline(np.arange(len(ecg)))

    logger.debug("Baseline estimated from %d fiducial point(s)", len(fiducial))
    return ecg - baseline, baseline
