"""
Artifact detection with Hjorth parameters.

The signal is cut into overlapping windows and the Hjorth activity (H0),
mobility (H1) and complexity (H2) of each window are compared with their
median-filtered baselines. Windows outside the margins are artifacts;
detections in them should be discarded before HRV correction.
"""

import logging
from typing import Optional, Sequence, Tuple
from dataclasses import dataclass

import numpy as np
import pandas as pd

from .config import Config, default_config
from .validation import as_signal, require_positive, require_positive_int, require_non_negative_int

logger = logging.getLogger(__name__)


@dataclass
class ArtifactResult:
    """Result of Hjorth artifact detection."""
    mask: np.ndarray       # True on artifact samples, same length as the signal
    intervals: np.ndarray  # (n, 2) onset/offset of merged artifact runs (s)
    segments: np.ndarray   # (n_segments, 2) onset/offset of each window (s)
    flagged: np.ndarray    # Artifact flag per window
    h0: np.ndarray         # Activity per window
    h1: np.ndarray         # Mobility per window (Hz)
    h2: np.ndarray         # Complexity per window (Hz)

    @property
    def n_artifacts(self) -> int:
        """Number of merged artifact runs."""
        return len(self.intervals)

    @property
    def artifact_fraction(self) -> float:
        """Fraction of samples marked as artifact."""
        return float(np.mean(self.mask)) if len(self.mask) else 0.0


def hjorth(x: np.ndarray, fs: float) -> Tuple[float, float, float]:
    """
    Hjorth activity, mobility and complexity of a signal.

    Mobility and complexity come from the spectral moments of the signal and
    its first and second differences, scaled to Hz.
    """
    x = as_signal(x, "x")
    fs = require_positive(fs, "fs")

    dx = np.diff(x)
    ddx = np.diff(dx)
    scale = 2 * np.pi / len(x)
    w0 = scale * np.sum(x ** 2)
    w2 = scale * np.sum(dx ** 2)
    w4 = scale * np.sum(ddx ** 2)

    h0 = float(np.var(x, ddof=1)) if len(x) > 1 else np.nan
    with np.errstate(divide="ignore", invalid="ignore"):
        h1 = float(np.sqrt(w2 / w0) * fs / (2 * np.pi))
        h2 = float(np.sqrt(np.abs(w4 / w2 - w2 / w0)) * fs / (2 * np.pi))
    return h0, h1, h2


def _truncated_median(values: np.ndarray, order: int) -> np.ndarray:
    """Sliding median that shrinks at the edges and skips NaN."""
    return pd.Series(values).rolling(order, center=True, min_periods=1).median().to_numpy()


def hjorth_artifacts(
    signal: np.ndarray,
    fs: float,
    seg: Optional[float] = None,
    step: Optional[float] = None,
    margins: Optional[Sequence[Sequence[float]]] = None,
    min_segment_separation: Optional[int] = None,
    medfilt_order: Optional[int] = None,
    negative: bool = False,
    config: Config = default_config,
) -> ArtifactResult:
    """
    Detect artifacts with Hjorth parameters.

    Parameters
    ----------
    signal : np.ndarray
        Signal, typically a PPG. Its mean is removed (NaN ignored).
    fs : float
        Sampling frequency in Hz.
    seg : float, optional
        Window length in seconds. Defaults to config.HJORTH_SEGMENT_SEC.
    step : float, optional
        Window shift in seconds. Defaults to config.HJORTH_STEP_SEC.
    margins : array-like, optional
        3x2 (low, up) margins for H0, H1 and H2. A window is an artifact when
        a parameter falls below its baseline minus ``low`` or above its
        baseline plus ``up``. Defaults to config.HJORTH_MARGINS.
    min_segment_separation : int, optional
        Flagged windows whose indices differ by less than this are merged
        into one interval. Defaults to config.HJORTH_MIN_SEGMENT_SEPARATION.
    medfilt_order : int, optional
        Order of the baseline median filter, in windows. Defaults to
        config.HJORTH_MEDFILT_ORDER.
    negative : bool
        Flag the windows inside the margins instead.
    config : Config
        Pipeline configuration.

    Returns
    -------
    ArtifactResult
        Sample mask, merged intervals and per-window parameters. Samples
        after the last full window are never flagged.

    Raises
    ------
    ValueError
        If an argument is invalid or the signal is shorter than one window.
    """
    x = as_signal(signal, "signal")
    fs = require_positive(fs, "fs")
    seg = require_positive(config.HJORTH_SEGMENT_SEC if seg is None else seg, "seg")
    step = require_positive(config.HJORTH_STEP_SEC if step is None else step, "step")
    margins = np.asarray(config.HJORTH_MARGINS if margins is None else margins, dtype=float)
    if margins.shape != (3, 2):
        raise ValueError(f"'margins' must be a 3x2 array, got shape {margins.shape}")
    min_segment_separation = require_non_negative_int(
        config.HJORTH_MIN_SEGMENT_SEPARATION if min_segment_separation is None else min_segment_separation,
        "min_segment_separation",
    )
    medfilt_order = require_positive_int(
        config.HJORTH_MEDFILT_ORDER if medfilt_order is None else medfilt_order, "medfilt_order"
    )

    n_window = int(np.floor(seg * fs))
    n_step = max(1, int(np.floor(step * fs)))
    if n_window < 3:
        raise ValueError(f"'seg' must span at least 3 samples, got {n_window}")
    if len(x) < n_window:
        raise ValueError(f"'signal' is shorter than one analysis window ({len(x)} < {n_window} samples)")

    n_segments = (len(x) - n_window) // n_step + 1
    centred = x - np.nanmean(x)

    params = np.full((n_segments, 3), np.nan)
    starts = np.arange(n_segments) * n_step
    for kk, start in enumerate(starts):
        params[kk] = hjorth(centred[start:start + n_window], fs)
    segments = np.column_stack([starts, starts + n_window - 1]) / fs

    flagged = np.zeros(n_segments, dtype=bool)
    for column, (low, up) in enumerate(margins):
        values = params[:, column]
        baseline = _truncated_median(values, medfilt_order)
        lower = baseline - low
        if column == 0:
            lower[lower <= 0] = 0.0001
        flagged |= (values > baseline + up) | (values < lower)
    if negative:
        flagged = ~flagged

    mask = np.zeros(len(x), dtype=bool)
    intervals = np.empty((0, 2))
    hits = np.flatnonzero(flagged)
    if len(hits):
        breaks = np.flatnonzero(np.diff(hits) >= min_segment_separation) + 1
        groups = np.split(hits, breaks)
        onsets = np.array([g[0] * n_step for g in groups])
        offsets = np.array([g[-1] * n_step + n_window - 1 for g in groups])
        for onset, offset in zip(onsets, offsets):
            mask[onset:offset + 1] = True
        intervals = np.column_stack([onsets, offsets]) / fs

    logger.debug(
        "Hjorth artifacts: %d of %d window(s) flagged, %d interval(s)",
        int(flagged.sum()), n_segments, len(intervals),
    )

    return ArtifactResult(
        mask=mask,
        intervals=intervals,
        segments=segments,
        flagged=flagged,
        h0=params[:, 0],
        h1=params[:, 1],
        h2=params[:, 2],
    )
