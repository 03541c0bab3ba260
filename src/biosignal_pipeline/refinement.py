"""
Peak refinement.

Moves coarse detections onto the true local extremum, either on the sample
grid (snap-to-peak) or with sub-sample precision on a spline-upsampled copy
of the signal.
"""

from typing import Optional

import numpy as np
from scipy import interpolate

from .config import Config, default_config
from .validation import as_signal, require_positive, require_non_negative_int


def snap_to_peak(
    signal: np.ndarray,
    detections: np.ndarray,
    window_size: int = 20,
) -> np.ndarray:
    """
    Refine detections to the local maximum within a window.

    Parameters
    ----------
    signal : np.ndarray
        Signal used for refinement (e.g. raw ECG).
    detections : np.ndarray
        Approximate 0-based sample positions.
    window_size : int
        Half-width of the search window in samples.

    Returns
    -------
    np.ndarray
        Refined positions, one per detection, in the input order.

    Raises
    ------
    ValueError
        If any detection lies outside the signal.
    """
    x = as_signal(signal, "signal")
    window_size = require_non_negative_int(int(round(window_size)), "window_size")
    detections = np.asarray(detections).ravel()
    if detections.size == 0:
        return np.array([], dtype=int)
    detections = np.round(detections).astype(int)

    if np.any(detections < 0) or np.any(detections >= len(x)):
        raise ValueError(
            f"'detections' must lie within the signal bounds (0 to {len(x) - 1})"
        )

    refined = np.empty_like(detections)
    for i, idx in enumerate(detections):
        start = max(0, idx - window_size)
        end = min(len(x), idx + window_size + 1)
        window = x[start:end]
        if np.all(np.isnan(window)):
            refined[i] = idx
            continue
        refined[i] = start + int(np.nanargmax(window))

    return refined


def refine_peak_positions(
    signal: np.ndarray,
    fs: float,
    candidates: np.ndarray,
    fs_interp: Optional[float] = None,
    window_width: Optional[float] = None,
    search_type: str = "max",
    config: Config = default_config,
) -> np.ndarray:
    """
    Refine peak times with sub-sample precision.

    The signal is modelled with a not-a-knot cubic spline and evaluated on a
    ``fs_interp`` grid around each candidate; the extremum of that local
    grid is returned.

    Parameters
    ----------
    signal : np.ndarray
        Input signal. Non-finite samples are left out of the spline fit.
    fs : float
        Sampling frequency in Hz.
    candidates : np.ndarray
        Candidate peak times in seconds. NaN entries are dropped.
    fs_interp : float, optional
        Interpolation rate in Hz. Defaults to config.REFINE_FS_INTERP.
    window_width : float, optional
        Search half-width in seconds. Defaults to config.REFINE_WINDOW_WIDTH.
    search_type : str
        'max' or 'min'.
    config : Config
        Pipeline configuration.

    Returns
    -------
    np.ndarray
        Refined times in seconds.
    """
    x = as_signal(signal, "signal")
    fs = require_positive(fs, "fs")
    fs_interp = require_positive(
        config.REFINE_FS_INTERP if fs_interp is None else fs_interp, "fs_interp"
    )
    window_width = require_positive(
        config.REFINE_WINDOW_WIDTH if window_width is None else window_width, "window_width"
    )
    search_type = str(search_type).lower()
    if search_type not in ("max", "min"):
        raise ValueError(f"'search_type' must be 'max' or 'min', got {search_type!r}")

    candidates = np.asarray(candidates, dtype=float).ravel()
    candidates = candidates[~np.isnan(candidates)]
    if candidates.size == 0:
        return np.array([])

    t = np.arange(len(x)) / fs
    finite = np.isfinite(x)
    if finite.sum() < 2:
        return candidates.copy()
    spline = interpolate.CubicSpline(t[finite], x[finite])

    n_interp = int(np.floor(len(x) * fs_interp / fs))
    half = int(round(window_width * fs_interp))
    pick = np.argmax if search_type == "max" else np.argmin

    refined = np.empty_like(candidates)
    for i, candidate in enumerate(candidates):
        center = int(round(candidate * fs_interp))
        start = max(0, center - half)
        end = min(n_interp - 1, center + half)
        if start > end:
            refined[i] = candidate
            continue
        grid = np.arange(start, end + 1) / fs_interp
        refined[i] = grid[pick(spline(grid))]

    return refined
