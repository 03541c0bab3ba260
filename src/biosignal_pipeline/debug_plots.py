"""
Step-through plots for gap filling.

GapFillPlotter is an ``on_attempt`` callback for fill_gaps: it draws the
interval series at the start of the pass (gaps in red, detection threshold
dashed) above the candidate series for the attempt (new intervals green if
kept, red otherwise, with the validation bounds).
"""

from pathlib import Path
from typing import Optional

import numpy as np
import matplotlib.pyplot as plt

from .gap_filling import GapFillAttempt, STATUS_DEFERRED


class GapFillPlotter:
    """Render every gap-filling attempt with matplotlib.

    Parameters
    ----------
    output_dir : Path, optional
        Save one PNG per attempt here.
    pause : float
        Seconds to pause after drawing (interactive backends only).
    span : int
        Intervals shown on each side of the gap.
    """

    def __init__(self, output_dir: Optional[Path] = None, pause: float = 0.0, span: int = 50):
        self.output_dir = Path(output_dir) if output_dir is not None else None
        self.pause = pause
        self.span = span
        self.n_drawn = 0
        self._fig = None
        if self.output_dir is not None:
            self.output_dir.mkdir(parents=True, exist_ok=True)

    def __call__(self, attempt: GapFillAttempt) -> None:
        if self._fig is None:
            self._fig, _ = plt.subplots(2, 1, figsize=(12, 7), dpi=100)
        ax_top, ax_bottom = self._fig.axes
        ax_top.clear()
        ax_bottom.clear()

        gap = attempt.gap_index
        original = attempt.snapshot_intervals
        ax_top.stem(np.arange(len(original)), original, linefmt="C0-", markerfmt="C0.", basefmt=" ")
        ax_top.stem([gap], [original[gap]], linefmt="r-", markerfmt="ro", basefmt=" ")
        ax_top.set_ylabel("Original interval [s]")
        ax_top.set_title(f"Pass {attempt.pass_index}, gap {gap}: n_fill={attempt.n_fill} ({attempt.status})")

        candidate = attempt.candidate_intervals
        filled = np.arange(gap, min(gap + attempt.n_fill + 1, len(candidate)))
        color = "r" if attempt.status == STATUS_DEFERRED or attempt.n_inserted != attempt.n_fill else "g"
        ax_bottom.stem(np.arange(len(candidate)), candidate, linefmt="C0-", markerfmt="C0.", basefmt=" ")
        ax_bottom.stem(filled, candidate[filled], linefmt=f"{color}-", markerfmt=f"{color}o", basefmt=" ")

        lo, hi = max(0, gap - self.span), min(gap + self.span, len(candidate))
        ax_bottom.set_xlim(lo, hi)
        ax_bottom.set_ylim(0, 1.1 * max(np.max(candidate[filled]), attempt.upper_threshold))
        ax_bottom.axhline(attempt.upper_threshold, color="k", linewidth=1)
        ax_bottom.axhline(attempt.lower_threshold, color="k", linewidth=1)
        ax_bottom.set_ylabel("Corrected interval [s]")
        ax_bottom.set_xlabel("Interval index")

        self._fig.tight_layout()
        if self.output_dir is not None:
            name = f"gapfill_pass{attempt.pass_index:02d}_gap{gap:05d}.png"
            self._fig.savefig(self.output_dir / name)
        if self.pause > 0:
            plt.pause(self.pause)
        self.n_drawn += 1

    def close(self) -> None:
        if self._fig is not None:
            plt.close(self._fig)
            self._fig = None
