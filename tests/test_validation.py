import warnings

import numpy as np
import pytest

from biosignal_pipeline.validation import (
    DataQualityWarning,
    warn_data_quality,
    as_signal,
    as_event_series,
    require_positive,
    require_positive_int,
    require_non_negative_int,
    require_fraction,
)


def test_column_vector_flattened():
    x = as_signal(np.ones((5, 1), dtype=int), "x")
    assert x.shape == (5,)
    assert x.dtype == np.float64


@pytest.mark.parametrize("value", [np.ones((3, 3)), np.array(["a", "b"]), [None, 1.0]])
def test_bad_signals_rejected(value):
    with pytest.raises(ValueError, match="'x'"):
        as_signal(value, "x")


def test_empty_signal():
    with pytest.raises(ValueError, match="empty"):
        as_signal([], "x")
    assert as_signal([], "x", allow_empty=True).size == 0


def test_event_series_sorted():
    np.testing.assert_array_equal(as_event_series([2.0, 0.5, 1.0]), [0.5, 1.0, 2.0])


@pytest.mark.parametrize("value", [0, -1.0, np.nan, np.inf, True, [1.0]])
def test_require_positive_rejects(value):
    with pytest.raises(ValueError, match="fs"):
        require_positive(value, "fs")


def test_integer_checks():
    assert require_positive_int(4.0, "n") == 4
    assert require_non_negative_int(0, "n") == 0
    with pytest.raises(ValueError, match="integer"):
        require_positive_int(2.5, "n")


@pytest.mark.parametrize("value", [0.0, 1.0, 1.5])
def test_require_fraction_open_interval(value):
    with pytest.raises(ValueError, match="alpha"):
        require_fraction(value, "alpha")


def test_data_quality_warning_is_user_warning():
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        warn_data_quality("nothing detected")
    assert issubclass(caught[0].category, DataQualityWarning)
    assert issubclass(DataQualityWarning, UserWarning)
