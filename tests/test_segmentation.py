import numpy as np
import pytest

from biosignal_pipeline.segmentation import slice_signal


def test_full_slices_only():
    result = slice_signal(np.arange(10), 4)
    assert result.n_slices == 2
    assert result.slice_length == 4
    np.testing.assert_array_equal(result.slices[:, 1], [4, 5, 6, 7])
    assert result.t_center is None


def test_use_last_pads_with_nan():
    result = slice_signal(np.arange(10), 4, use_last=True)
    assert result.n_slices == 3
    np.testing.assert_array_equal(result.slices[:2, 2], [8, 9])
    assert np.all(np.isnan(result.slices[2:, 2]))


def test_overlap_and_centre_times():
    result = slice_signal(np.arange(10), 4, overlap=2, fs=2.0)
    assert result.n_slices == 4
    np.testing.assert_array_equal(result.slices[:, 1], [2, 3, 4, 5])
    np.testing.assert_allclose(result.t_center, np.arange(4) * 1.0 + 0.75)


def test_overlap_too_large():
    with pytest.raises(ValueError, match="overlap"):
        slice_signal(np.arange(10), 4, overlap=4)


def test_too_short_without_use_last():
    with pytest.raises(ValueError):
        slice_signal(np.arange(3), 4)
    assert slice_signal(np.arange(3), 4, use_last=True).n_slices == 1
