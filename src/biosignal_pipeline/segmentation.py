"""
Signal windowing.

Slices long recordings into fixed-length, optionally overlapping blocks so
that detection can run on bounded memory.
"""

from typing import Optional
from dataclasses import dataclass

import numpy as np

from .validation import as_signal, require_positive, require_positive_int, require_non_negative_int


@dataclass
class SlicedSignal:
    """Result of slicing a signal."""
    slices: np.ndarray              # (slice_length, n_slices), one block per column
    t_center: Optional[np.ndarray]  # Centre time of each slice (s), None without fs

    @property
    def n_slices(self) -> int:
        """Number of slices."""
        return self.slices.shape[1]

    @property
    def slice_length(self) -> int:
        """Samples per slice."""
        return self.slices.shape[0]


def slice_signal(
    x: np.ndarray,
    slice_length: int,
    overlap: int = 0,
    fs: Optional[float] = None,
    use_last: bool = False,
) -> SlicedSignal:
    """
    Slice a signal into fixed-length blocks.

    Parameters
    ----------
    x : np.ndarray
        Input signal (vector).
    slice_length : int
        Samples per slice.
    overlap : int
        Samples shared by consecutive slices. Must be < slice_length.
    fs : float, optional
        Sampling rate in Hz. When given, slice centre times are returned.
    use_last : bool
        Keep the final partial slice, padding it with NaN to full length.

    Returns
    -------
    SlicedSignal
        Slices stored column-wise and optional centre times.

    Raises
    ------
    ValueError
        If overlap >= slice_length, or the signal is too short for a single
        slice and ``use_last`` is False.
    """
    x = as_signal(x, "x")
    slice_length = require_positive_int(slice_length, "slice_length")
    overlap = require_non_negative_int(overlap, "overlap")
    if fs is not None:
        fs = require_positive(fs, "fs")

    if overlap >= slice_length:
        raise ValueError(
            f"'overlap' ({overlap}) must be less than 'slice_length' ({slice_length})"
        )

    step = slice_length - overlap
    if use_last:
        n_slices = int(np.ceil((len(x) - overlap) / step))
    else:
        n_slices = int(np.floor((len(x) - overlap) / step))

    if n_slices < 1:
        raise ValueError(
            f"Signal length ({len(x)}) is too short for 'slice_length' ({slice_length}); "
            "use use_last=True to pad the last slice"
        )

    sliced = np.full((slice_length, n_slices), np.nan)
    for i in range(n_slices):
        start = i * step
        block = x[start:start + slice_length]
        sliced[:len(block), i] = block

    t_center = None
    if fs is not None:
        t_center = np.arange(n_slices) * step / fs + (slice_length - 1) / (2 * fs)

    return SlicedSignal(slices=sliced, t_center=t_center)
