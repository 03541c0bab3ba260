"""
Argument validation shared by the public API.

Invalid arguments raise ``ValueError`` naming the offending parameter before
any algorithmic work starts. Data-quality problems (all-NaN input, nothing
detected) are not errors; they are reported with ``DataQualityWarning``.
"""

import warnings
from typing import Any

import numpy as np


class DataQualityWarning(UserWarning):
    """Recording is degenerate but the call could still return a result."""


def warn_data_quality(message: str, stacklevel: int = 3) -> None:
    """Emit a non-fatal data-quality warning."""
    warnings.warn(message, DataQualityWarning, stacklevel=stacklevel)


def as_signal(x: Any, name: str = "signal", allow_empty: bool = False) -> np.ndarray:
    """
    Convert input to a 1-D float array.

    Row or column vectors stored as 2-D arrays are flattened. Anything with
    more than one non-singleton dimension is rejected.

    Parameters
    ----------
    x : array-like
        Input samples.
    name : str
        Parameter name used in error messages.
    allow_empty : bool
        Accept zero-length input.

    Returns
    -------
    np.ndarray
        Float copy of the input.
    """
    arr = np.asarray(x)
    if arr.dtype == object or not (
        np.issubdtype(arr.dtype, np.number) or np.issubdtype(arr.dtype, np.bool_)
    ):
        raise ValueError(f"'{name}' must be numeric, got dtype {arr.dtype}")
    if arr.ndim > 1:
        if sum(d != 1 for d in arr.shape) > 1:
            raise ValueError(f"'{name}' must be a vector, got shape {arr.shape}")
    arr = arr.astype(np.float64).ravel()
    if arr.size == 0 and not allow_empty:
        raise ValueError(f"'{name}' must not be empty")
    return arr


def as_event_series(tk: Any, name: str = "tk") -> np.ndarray:
    """Validate an event-time series (seconds) and return it sorted."""
    arr = as_signal(tk, name)
    if not np.all(np.isfinite(arr)):
        raise ValueError(f"'{name}' must contain only finite values")
    return np.sort(arr)


def require_positive(value: Any, name: str) -> float:
    """Check that a scalar is a finite number > 0."""
    if isinstance(value, bool) or not np.isscalar(value):
        raise ValueError(f"'{name}' must be a positive scalar, got {value!r}")
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"'{name}' must be a positive scalar, got {value!r}") from None
    if not np.isfinite(value) or value <= 0:
        raise ValueError(f"'{name}' must be a positive scalar, got {value!r}")
    return value


def require_positive_int(value: Any, name: str) -> int:
    """Check that a scalar is an integer > 0."""
    value = require_positive(value, name)
    if value != round(value):
        raise ValueError(f"'{name}' must be an integer, got {value!r}")
    return int(value)


def require_non_negative_int(value: Any, name: str) -> int:
    """Check that a scalar is an integer >= 0."""
    if value == 0:
        return 0
    return require_positive_int(value, name)


def require_fraction(value: Any, name: str) -> float:
    """Check that a scalar lies in the open interval (0, 1)."""
    value = require_positive(value, name)
    if value >= 1:
        raise ValueError(f"'{name}' must lie in (0, 1), got {value!r}")
    return value
