"""
Interpolation and NaN-run helpers.

Provides:
- PCHIP interpolation with an explicit policy for non-finite inputs
- Sliding median filter with fixed-order windows
- Short-gap interpolation of NaN runs
- NaN trimming and run finding
"""

from typing import List, Tuple

import numpy as np
from scipy import interpolate, ndimage, signal

from .validation import as_signal, require_positive_int

NAN_POLICIES = ("omit", "propagate", "raise")
GAP_METHODS = ("linear", "nearest", "pchip", "spline")


def pchip_interpolate(
    x: np.ndarray,
    y: np.ndarray,
    xq: np.ndarray,
    nan_policy: str = "omit",
) -> np.ndarray:
    """
    Shape-preserving piecewise cubic (PCHIP) interpolation.

    Parameters
    ----------
    x, y : np.ndarray
        Known positions and values.
    xq : np.ndarray
        Query positions. Points outside the known range are extrapolated.
    nan_policy : str
        'omit' drops non-finite known pairs, 'propagate' returns all-NaN
        output when any are present, 'raise' raises ValueError.

    Returns
    -------
    np.ndarray
        Interpolated values at ``xq``; all-NaN if fewer than two known
        points remain.
    """
    if nan_policy not in NAN_POLICIES:
        raise ValueError(f"'nan_policy' must be one of {NAN_POLICIES}, got {nan_policy!r}")

    x = np.asarray(x, dtype=float).ravel()
    y = np.asarray(y, dtype=float).ravel()
    xq = np.asarray(xq, dtype=float).ravel()
    if len(x) != len(y):
        raise ValueError(f"'x' and 'y' lengths differ ({len(x)} != {len(y)})")

    finite = np.isfinite(x) & np.isfinite(y)
    if not finite.all():
        if nan_policy == "raise":
            raise ValueError("'y' contains non-finite values")
        if nan_policy == "propagate":
            return np.full(len(xq), np.nan)
        x, y = x[finite], y[finite]

    if len(x) < 2:
        return np.full(len(xq), np.nan)

    order = np.argsort(x)
    pchip = interpolate.PchipInterpolator(x[order], y[order], extrapolate=True)
    return pchip(xq)


def median_filter(x: np.ndarray, order: int) -> np.ndarray:
    """
    Sliding median of the given order with zero-padded edges.

    For an even order the window at sample k spans k-order/2 ... k+order/2-1
    and the median averages the two middle values.
    """
    x = np.asarray(x, dtype=float).ravel()
    order = require_positive_int(order, "order")
    if len(x) == 0:
        return x.copy()
    if order % 2:
        return signal.medfilt(x, order)
    return ndimage.generic_filter(x, np.median, size=order, mode="constant", cval=0.0)


def find_runs(mask: np.ndarray) -> List[Tuple[int, int]]:
    """
    Find runs of True values.

    Returns
    -------
    List[Tuple[int, int]]
        (start, end) index pairs, end inclusive.
    """
    mask = np.asarray(mask, dtype=bool).ravel()
    if mask.size == 0:
        return []
    edges = np.diff(np.concatenate([[0], mask.astype(np.int8), [0]]))
    starts = np.flatnonzero(edges == 1)
    ends = np.flatnonzero(edges == -1) - 1
    return list(zip(starts.tolist(), ends.tolist()))


def trim_nans(signal: np.ndarray) -> np.ndarray:
    """Remove leading and trailing NaN samples."""
    x = as_signal(signal, "signal", allow_empty=True)
    valid = np.flatnonzero(~np.isnan(x))
    if valid.size == 0:
        return np.array([])
    return x[valid[0]:valid[-1] + 1]


def interp_gap(signal: np.ndarray, max_gap: int, method: str = "linear") -> np.ndarray:
    """
    Interpolate NaN runs no longer than ``max_gap`` samples.

    Each run is filled from its two bounding valid samples; longer runs and
    runs touching the signal edges stay NaN.

    Parameters
    ----------
    signal : np.ndarray
        Input signal with NaN gaps.
    max_gap : int
        Longest run (in samples) that will be filled.
    method : str
        'linear', 'nearest', 'pchip' or 'spline'.

    Returns
    -------
    np.ndarray
        Copy of the signal with short gaps filled.
    """
    x = as_signal(signal, "signal")
    if max_gap < 0:
        raise ValueError(f"'max_gap' must be >= 0, got {max_gap!r}")
    if method not in GAP_METHODS:
        raise ValueError(f"'method' must be one of {GAP_METHODS}, got {method!r}")

    out = x.copy()
    for start, end in find_runs(np.isnan(x)):
        if end - start + 1 > max_gap:
            continue
        lo = max(0, start - 1)
        hi = min(len(out) - 1, end + 1)
        positions = np.arange(lo, hi + 1)
        values = out[lo:hi + 1]
        known = ~np.isnan(values)
        if known.sum() < 2:
            continue

        if method == "pchip":
            filled = pchip_interpolate(positions[known], values[known], positions)
        elif method == "spline":
            filled = interpolate.CubicSpline(positions[known], values[known])(positions)
        else:
            filled = interpolate.interp1d(
                positions[known], values[known], kind=method
            )(positions)
        out[lo:hi + 1] = filled

    return out
