"""
HRV (Heart Rate Variability) event-series module.

Provides:
- Adaptive interval baseline (median-filter threshold)
- False-positive removal for beat/pulse event series
- Time-domain HRV metrics (mean HR, SDNN, SDSD, RMSSD, pNN50)
"""

import logging
from typing import Dict, Optional
from dataclasses import dataclass, asdict

import numpy as np

from .config import Config, default_config
from .interpolation import median_filter
from .validation import (
    as_signal,
    as_event_series,
    require_positive,
    require_positive_int,
    warn_data_quality,
)

logger = logging.getLogger(__name__)


@dataclass
class TimeDomainMetrics:
    """Time-domain HRV metrics."""
    mhr: float    # Mean heart rate (bpm)
    sdnn: float   # Standard deviation of NN intervals (ms)
    sdsd: float   # Standard deviation of successive differences (ms)
    rmssd: float  # Root mean square of successive differences (ms)
    pnn50: float  # Percentage of successive differences > 50 ms (%)

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


def medfilt_threshold(
    dtk: np.ndarray,
    window: Optional[int] = None,
    factor: Optional[float] = None,
    max_threshold: Optional[float] = None,
    config: Config = default_config,
) -> np.ndarray:
    """
    Compute an adaptive baseline for an interval series.

    The series is padded at both ends with its own mirrored edges, median
    filtered with order ``window - 1``, scaled by ``factor`` and capped at
    ``max_threshold``.

    Parameters
    ----------
    dtk : np.ndarray
        Interval series in seconds.
    window : int, optional
        Median window. Shrinks to the series length for short series.
        Defaults to config.MEDFILT_WINDOW.
    factor : float, optional
        Multiplicative factor. Defaults to config.MEDFILT_FACTOR.
    max_threshold : float, optional
        Upper cap in seconds. Defaults to config.MEDFILT_MAX_THRESHOLD.
    config : Config
        Pipeline configuration.

    Returns
    -------
    np.ndarray
        Baseline, same length as ``dtk``.
    """
    dtk = as_signal(dtk, "dtk")
    window = require_positive_int(config.MEDFILT_WINDOW if window is None else window, "window")
    factor = require_positive(config.MEDFILT_FACTOR if factor is None else factor, "factor")
    max_threshold = require_positive(
        config.MEDFILT_MAX_THRESHOLD if max_threshold is None else max_threshold,
        "max_threshold",
    )

    window = min(window, len(dtk))
    half = window // 2

    head = dtk[:half][::-1]
    tail = dtk[len(dtk) - half:][::-1]
    padded = np.concatenate([head, dtk, tail])

    mf = median_filter(padded, max(window - 1, 1))
    threshold = factor * mf[half:len(padded) - half]
    return np.minimum(threshold, max_threshold)


def remove_false_positives(
    tk: np.ndarray,
    config: Config = default_config,
) -> np.ndarray:
    """
    Remove false-positive detections from an event series.

    An interval shorter than FP_RATIO times the adaptive baseline marks the
    later event of the pair as spurious. Events are scanned left to right
    against the last kept event, so removing one event lengthens the next
    interval before it is judged. Passes repeat, with the baseline
    recomputed, until a pass removes nothing.

    Parameters
    ----------
    tk : np.ndarray
        Event times in seconds.
    config : Config
        Pipeline configuration.

    Returns
    -------
    np.ndarray
        Sorted copy of the series with false positives removed.
    """
    tk = as_event_series(tk, "tk")

    n_pass = 0
    while len(tk) >= 3:
        baseline = medfilt_threshold(np.diff(tk), config=config)
        limit = config.FP_RATIO * baseline

        keep = np.ones(len(tk), dtype=bool)
        last_kept = tk[0]
        for i in range(1, len(tk)):
            if tk[i] - last_kept < limit[i - 1]:
                keep[i] = False
            else:
                last_kept = tk[i]

        n_pass += 1
        if keep.all():
            break
        logger.debug("False-positive pass %d removed %d event(s)", n_pass, int((~keep).sum()))
        tk = tk[keep]

    return tk


def td_metrics(dtk: np.ndarray, config: Config = default_config) -> TimeDomainMetrics:
    """
    Compute time-domain HRV metrics.

    Parameters
    ----------
    dtk : np.ndarray
        Inter-beat intervals in seconds. NaN intervals are ignored.
    config : Config
        Pipeline configuration (PNN50_THRESHOLD).

    Returns
    -------
    TimeDomainMetrics
        Metrics; NaN where the series is too short.
    """
    dtk = as_signal(dtk, "dtk", allow_empty=True)
    ddtk = np.diff(dtk)
    valid = dtk[~np.isnan(dtk)]
    valid_diff = ddtk[~np.isnan(ddtk)]

    if len(valid) < 2:
        warn_data_quality("Fewer than two valid intervals; time-domain metrics undefined")

    mhr = float(np.mean(60.0 / valid)) if len(valid) else np.nan
    sdnn = 1000 * float(np.std(valid, ddof=1)) if len(valid) > 1 else np.nan

    if len(valid_diff):
        rmssd = 1000 * float(np.sqrt(np.mean(valid_diff ** 2)))
        pnn50 = 100 * float(np.sum(np.abs(valid_diff) > config.PNN50_THRESHOLD)) / len(valid_diff)
    else:
        rmssd = np.nan
        pnn50 = np.nan
    sdsd = 1000 * float(np.std(valid_diff, ddof=1)) if len(valid_diff) > 1 else np.nan

    return TimeDomainMetrics(mhr=mhr, sdnn=sdnn, sdsd=sdsd, rmssd=rmssd, pnn50=pnn50)
