"""
Iterative gap filling for beat/pulse event series.

Long inter-event intervals (gaps) are filled with interpolated events. The
first pass tries one insertion per gap, the next pass two, and so on, so
simple gaps settle early and give a cleaner reference for complex ones.
Original events are never moved; new events are only inserted between them.
"""

import math
import logging
from typing import Callable, List, Optional, Tuple
from dataclasses import dataclass, field

import numpy as np

from .config import Config, default_config
from .hrv import medfilt_threshold, remove_false_positives
from .interpolation import pchip_interpolate
from .validation import as_event_series, warn_data_quality

logger = logging.getLogger(__name__)

STATUS_ACCEPTED = "accepted"
STATUS_OVER_CORRECTED = "over_corrected"
STATUS_DEFERRED = "deferred"


@dataclass
class GapFillAttempt:
    """One attempt to fill a gap with ``n_fill`` events."""
    pass_index: int                  # 1-based outer pass number
    gap_index: int                   # Interval index of the gap in the pass snapshot
    n_fill: int                      # Events tried in this attempt
    n_inserted: int                  # Events actually kept (0 when deferred)
    status: str                      # accepted / over_corrected / deferred
    upper_threshold: float           # Every new interval must be below this
    lower_threshold: float           # Any new interval below this is over-correction
    snapshot_intervals: np.ndarray   # Intervals of the series at the start of the pass
    candidate_intervals: np.ndarray  # Intervals with the n_fill candidate inserted


@dataclass
class GapFillResult:
    """Result of gap filling."""
    event_times: np.ndarray          # Corrected event series (s)
    n_passes: int                    # Outer passes performed
    n_inserted: int                  # Events inserted in total
    n_edge_removed: int              # Events dropped at the series edges
    unfilled_gaps: np.ndarray        # Interval indices of gaps left unfilled
    quality_notes: List[str] = field(default_factory=list)

    @property
    def intervals(self) -> np.ndarray:
        """Inter-event intervals of the corrected series."""
        return np.diff(self.event_times)

    @property
    def converged(self) -> bool:
        return len(self.unfilled_gaps) == 0


def _detect_gaps(tn: np.ndarray, config: Config) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Return (intervals, baseline, gap indices) for an event series."""
    dtn = np.diff(tn)
    if len(dtn) == 0:
        return dtn, dtn.copy(), np.array([], dtype=int)
    baseline = medfilt_threshold(dtn, config=config)
    gaps = np.flatnonzero(
        (dtn > baseline * config.GAP_K_UPPER) & (dtn > config.GAP_MIN_INTERVAL)
    )
    return dtn, baseline, gaps


def _trim_edges(tn: np.ndarray, config: Config) -> Tuple[np.ndarray, int]:
    """Drop leading/trailing events until no gap touches the series edges."""
    dtn, baseline, _ = _detect_gaps(tn, config)

    def gaps_of(dtn, baseline):
        return np.flatnonzero(
            (dtn > baseline * config.GAP_K_UPPER) & (dtn > config.GAP_MIN_INTERVAL)
        )

    start, end = 0, len(tn)
    gaps = gaps_of(dtn, baseline)
    while len(gaps) and gaps[0] == 0:
        start += 1
        dtn, baseline = dtn[1:], baseline[1:]
        gaps = gaps_of(dtn, baseline)
    while len(gaps) and gaps[-1] == len(dtn) - 1:
        end -= 1
        dtn, baseline = dtn[:-1], baseline[:-1]
        gaps = gaps_of(dtn, baseline)

    n_removed = start + (len(tn) - end)
    if n_removed:
        logger.debug("Edge trimming removed %d event(s)", n_removed)
    return tn[start:end], n_removed


def _split_edge_gaps(gaps: np.ndarray, n_intervals: int) -> Tuple[np.ndarray, np.ndarray]:
    """Split gap indices into (interior, edge) gaps."""
    at_edge = (gaps == 0) | (gaps == n_intervals - 1)
    return gaps[~at_edge], gaps[at_edge]


def _context_intervals(
    dtn: np.ndarray,
    gap: int,
    config: Config,
) -> Tuple[np.ndarray, np.ndarray]:
    """Valid intervals before and after ``gap``, expanding the window if needed."""
    n_neighbors = config.GAP_N_NEIGHBORS
    min_valid = config.GAP_MIN_VALID_NEIGHBORS
    max_neighbors = min(gap, len(dtn) - 1 - gap)

    while True:
        previous = dtn[max(0, gap - n_neighbors):gap]
        following = dtn[gap + 1:gap + 1 + n_neighbors]
        previous = previous[~np.isnan(previous)]
        following = following[~np.isnan(following)]
        if (len(previous) >= min_valid and len(following) >= min_valid) \
                or n_neighbors >= max_neighbors:
            return previous, following
        n_neighbors += 1


def _interpolate_gap(
    tn: np.ndarray,
    gaps: np.ndarray,
    gap: int,
    n_fill: int,
    config: Config,
) -> np.ndarray:
    """
    Event times to insert inside ``gap``.

    Neighbouring intervals (other gaps masked out) are interpolated with PCHIP
    at the ``n_fill + 1`` positions of the gap and scaled so they add up to
    the gap duration.
    """
    if n_fill <= 0:
        return np.array([])

    dtn = np.diff(tn)
    duration = dtn[gap]
    masked = dtn.copy()
    masked[gaps[gaps != gap]] = np.nan

    previous, following = _context_intervals(masked, gap, config)
    n_pre, n_next = len(previous), len(following)

    intervals = None
    if n_pre > 0 and n_next > 0:
        known_positions = np.concatenate([
            np.arange(1, n_pre + 1),
            np.arange(n_fill + n_pre + 2, n_fill + n_pre + n_next + 2),
        ])
        known_intervals = np.concatenate([previous, following])
        target_positions = np.arange(n_pre + 1, n_pre + n_fill + 2)
        fitted = pchip_interpolate(known_positions, known_intervals, target_positions)
        if np.all(np.isfinite(fitted)) and np.all(fitted > 0):
            intervals = fitted[:-1] * duration / np.sum(fitted)

    if intervals is None:
        # Not enough context on both sides: evenly spaced insertions
        logger.debug("Gap %d lacks context (%d before, %d after); spacing evenly", gap, n_pre, n_next)
        intervals = np.full(n_fill, duration / (n_fill + 1))

    return tn[gap] + np.cumsum(intervals)


def fill_gaps(
    tk: np.ndarray,
    debug: bool = False,
    on_attempt: Optional[Callable[[GapFillAttempt], None]] = None,
    config: Config = default_config,
) -> GapFillResult:
    """
    Fill gaps in an event series by iterative interpolation.

    Parameters
    ----------
    tk : np.ndarray
        Event times in seconds. Must be finite; sorted internally.
    debug : bool
        Log every attempt at DEBUG level when no ``on_attempt`` is given.
    on_attempt : callable, optional
        Called with a GapFillAttempt for every attempt, in order.
    config : Config
        Pipeline configuration (GAP_* and MEDFILT_* fields).

    Returns
    -------
    GapFillResult
        Corrected series and bookkeeping.

    Notes
    -----
    Validation thresholds for a gap are ``GAP_K_UPPER_FINE * baseline`` and
    ``GAP_K_LOWER * baseline`` with the baseline taken at the gap, plus the
    absolute floor GAP_MIN_INTERVAL. An over-corrected attempt falls back to
    ``n_fill - 1`` insertions, which are kept without further checks.

    Each pass reads one snapshot of the series. Accepted insertions are
    collected and committed together when the pass ends, and gaps are
    detected again from scratch on the new series. Gaps touching either end
    of the series are never filled, in any pass; they are reported in
    ``unfilled_gaps`` together with interior gaps left after the last pass.
    """
    tk = as_event_series(tk, "tk")
    if debug and on_attempt is None:
        on_attempt = _log_attempt

    tn = remove_false_positives(tk, config=config)
    quality_notes: List[str] = []

    if len(tn) < 3:
        warn_data_quality("Fewer than three events; gaps cannot be filled")
        return GapFillResult(
            event_times=tn, n_passes=0, n_inserted=0, n_edge_removed=0,
            unfilled_gaps=np.array([], dtype=int), quality_notes=["⚠ Too few events"],
        )

    _, _, gaps = _detect_gaps(tn, config)
    if len(gaps) == 0:
        return GapFillResult(
            event_times=tn, n_passes=0, n_inserted=0, n_edge_removed=0,
            unfilled_gaps=np.array([], dtype=int),
        )

    tn, n_edge_removed = _trim_edges(tn, config)
    if n_edge_removed:
        quality_notes.append(f"⚠ {n_edge_removed} event(s) removed at edge gaps")
    n_trimmed = len(tn)

    dtn, baseline, gaps = _detect_gaps(tn, config)
    gaps, edge_gaps = _split_edge_gaps(gaps, len(dtn))
    max_passes = max(1, math.ceil(np.max(dtn[gaps]) / config.GAP_MIN_INTERVAL)) if len(gaps) else 0

    n_fill = 0
    while len(gaps) and n_fill < max_passes:
        n_fill += 1
        snapshot = tn
        detected = np.concatenate([gaps, edge_gaps])
        positions: List[np.ndarray] = []
        insertions: List[np.ndarray] = []

        for gap in gaps:
            upper = config.GAP_K_UPPER_FINE * baseline[gap]
            lower = config.GAP_K_LOWER * baseline[gap]

            inserted = _interpolate_gap(snapshot, detected, gap, n_fill, config)
            new_intervals = np.diff(np.concatenate([[snapshot[gap]], inserted, [snapshot[gap + 1]]]))

            over_corrected = np.any(
                (new_intervals < lower) | (new_intervals < config.GAP_MIN_INTERVAL)
            )
            correct = np.all(new_intervals < upper)

            if over_corrected:
                status = STATUS_OVER_CORRECTED
                kept = _interpolate_gap(snapshot, detected, gap, n_fill - 1, config)
            elif correct:
                status = STATUS_ACCEPTED
                kept = inserted
            else:
                status = STATUS_DEFERRED
                kept = np.array([])

            if on_attempt is not None:
                on_attempt(GapFillAttempt(
                    pass_index=n_fill,
                    gap_index=int(gap),
                    n_fill=n_fill,
                    n_inserted=len(kept),
                    status=status,
                    upper_threshold=float(upper),
                    lower_threshold=float(lower),
                    snapshot_intervals=dtn,
                    candidate_intervals=np.diff(np.insert(snapshot, gap + 1, inserted)),
                ))

            if len(kept):
                positions.append(np.full(len(kept), gap + 1))
                insertions.append(kept)

        if insertions:
            tn = np.insert(snapshot, np.concatenate(positions), np.concatenate(insertions))
        logger.debug(
            "Gap-fill pass %d: %d gap(s), %d event(s) inserted",
            n_fill, len(gaps), sum(len(v) for v in insertions),
        )

        dtn, baseline, gaps = _detect_gaps(tn, config)
        gaps, edge_gaps = _split_edge_gaps(gaps, len(dtn))

    if len(edge_gaps):
        logger.debug("Edge gap(s) at interval(s) %s left unfilled", edge_gaps.tolist())
        quality_notes.append(f"⚠ {len(edge_gaps)} gap(s) at the series edges left unfilled")
    if len(gaps):
        quality_notes.append(f"⚠ {len(gaps)} gap(s) left unfilled")
    unfilled = np.sort(np.concatenate([gaps, edge_gaps])).astype(int)
    if len(unfilled):
        warn_data_quality(f"{len(unfilled)} gap(s) left unfilled after {n_fill} pass(es)")

    n_inserted = len(tn) - n_trimmed
    logger.info("Gap filling inserted %d event(s) in %d pass(es)", n_inserted, n_fill)

    return GapFillResult(
        event_times=tn,
        n_passes=n_fill,
        n_inserted=n_inserted,
        n_edge_removed=n_edge_removed,
        unfilled_gaps=unfilled,
        quality_notes=quality_notes,
    )


def _log_attempt(attempt: GapFillAttempt) -> None:
    new = attempt.candidate_intervals[attempt.gap_index:attempt.gap_index + attempt.n_fill + 1]
    logger.debug(
        "pass %d gap %d: n_fill=%d -> %s (new intervals %s, bounds %.3f-%.3f s)",
        attempt.pass_index, attempt.gap_index, attempt.n_fill, attempt.status,
        np.round(new, 3), attempt.lower_threshold, attempt.upper_threshold,
    )
