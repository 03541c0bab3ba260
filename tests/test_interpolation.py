import numpy as np
import pytest
from scipy.signal import medfilt

from biosignal_pipeline.interpolation import (
    pchip_interpolate,
    median_filter,
    find_runs,
    trim_nans,
    interp_gap,
)


class TestPchip:
    def test_interpolates_known_points(self):
        x = np.array([0, 1, 2, 3], dtype=float)
        y = x ** 2
        np.testing.assert_allclose(pchip_interpolate(x, y, x), y)

    def test_omit_drops_nan(self):
        x = np.array([0, 1, 2, 3], dtype=float)
        y = np.array([0, np.nan, 2, 3])
        result = pchip_interpolate(x, y, [1.0])
        assert np.isfinite(result[0])

    def test_propagate_returns_nan(self):
        result = pchip_interpolate([0, 1, 2], [0, np.nan, 2], [0.5, 1.5], nan_policy="propagate")
        assert np.all(np.isnan(result))

    def test_raise_policy(self):
        with pytest.raises(ValueError):
            pchip_interpolate([0, 1, 2], [0, np.nan, 2], [0.5], nan_policy="raise")

    def test_too_few_points(self):
        assert np.all(np.isnan(pchip_interpolate([0.0], [1.0], [0.5, 1.0])))

    def test_unknown_policy(self):
        with pytest.raises(ValueError, match="nan_policy"):
            pchip_interpolate([0, 1], [0, 1], [0.5], nan_policy="ignore")


class TestMedianFilter:
    @pytest.mark.parametrize("order", [1, 3, 5, 7])
    def test_odd_order_matches_scipy(self, order):
        rng = np.random.default_rng(0)
        x = rng.normal(size=50)
        np.testing.assert_allclose(median_filter(x, order), medfilt(x, order))

    def test_even_order_window(self):
        x = np.arange(1, 7, dtype=float)
        # order 4 at k spans k-2 ... k+1
        np.testing.assert_allclose(median_filter(x, 4), [0.5, 1.5, 2.5, 3.5, 4.5, 4.5])

    def test_same_length(self):
        assert len(median_filter(np.ones(7), 29)) == 7

    def test_even_order_averages_middle_values(self):
        rng = np.random.default_rng(3)
        x = rng.normal(size=40)
        padded = np.concatenate([np.zeros(3), x, np.zeros(2)])
        # order 6 at k spans k-3 ... k+2
        expected = [np.median(padded[k:k + 6]) for k in range(len(x))]
        np.testing.assert_allclose(median_filter(x, 6), expected)

    def test_even_order_longer_than_series(self):
        np.testing.assert_allclose(median_filter(np.ones(3), 8), [0.0, 0.0, 0.0])


def test_find_runs():
    mask = np.array([0, 1, 1, 0, 0, 1, 0, 1], dtype=bool)
    assert find_runs(mask) == [(1, 2), (5, 5), (7, 7)]
    assert find_runs(np.zeros(4, dtype=bool)) == []


def test_trim_nans():
    x = np.array([np.nan, 1, np.nan, 2, np.nan, np.nan])
    np.testing.assert_array_equal(trim_nans(x), [1, np.nan, 2])
    assert trim_nans(np.full(3, np.nan)).size == 0


class TestInterpGap:
    def test_fills_short_gaps_only(self):
        x = np.arange(20, dtype=float)
        x[3:5] = np.nan
        x[10:16] = np.nan
        filled = interp_gap(x, max_gap=3)
        np.testing.assert_allclose(filled[3:5], [3, 4])
        assert np.all(np.isnan(filled[10:16]))

    def test_edge_runs_stay_nan(self):
        x = np.array([np.nan, 1.0, 2.0, np.nan])
        filled = interp_gap(x, max_gap=5)
        assert np.isnan(filled[0]) and np.isnan(filled[-1])

    @pytest.mark.parametrize("method", ["nearest", "pchip", "spline"])
    def test_methods(self, method):
        x = np.arange(10, dtype=float)
        x[5] = np.nan
        assert np.isfinite(interp_gap(x, 1, method=method)[5])

    def test_unknown_method(self):
        with pytest.raises(ValueError, match="method"):
            interp_gap(np.ones(5), 1, method="cubic")
