import numpy as np
import pytest

from biosignal_pipeline.spectral import nan_welch, peakedness, is_peaky


@pytest.fixture
def respiration():
    fs = 4.0
    t = np.arange(int(600 * fs)) / fs
    return np.sin(2 * np.pi * 0.3 * t), fs


class TestNanWelch:
    def test_peak_at_signal_frequency(self, respiration):
        x, fs = respiration
        x = x.copy()
        x[1000:1100] = np.nan
        f, pxx = nan_welch(x, fs, 256, 128, 512)

        assert len(f) == len(pxx) == 257
        assert f[np.argmax(pxx)] == pytest.approx(0.3, abs=0.01)

    def test_too_short_returns_nan(self):
        f, pxx = nan_welch(np.ones(100), 4.0, 256, 128, 512)
        assert len(f) == 257
        assert np.all(np.isnan(pxx))

    def test_short_gaps_merged(self, respiration):
        x, fs = respiration
        x = x[:300].copy()
        x[150:153] = np.nan
        # Neither half is a full window long on its own
        _, separate = nan_welch(x, fs, 256, 128, 512)
        _, merged = nan_welch(x, fs, 256, 128, 512, min_distance=10)
        assert np.all(np.isnan(separate))
        assert np.all(np.isfinite(merged))

    def test_invalid_overlap(self, respiration):
        x, fs = respiration
        with pytest.raises(ValueError, match="noverlap"):
            nan_welch(x, fs, 256, 256, 512)


class TestPeakedness:
    @pytest.fixture
    def freqs(self):
        return np.linspace(0, 2, 513)

    def test_narrow_peak(self, freqs):
        pxx = np.exp(-0.5 * ((freqs - 0.3) / 0.005) ** 2)
        result = peakedness(pxx, freqs)
        assert result.pkl[0] > 95
        assert result.akl[0] == pytest.approx(100)

    def test_flat_spectrum(self, freqs):
        result = peakedness(np.ones_like(freqs), freqs, reference_freq=0.3)
        assert result.pkl[0] == pytest.approx(40, abs=5)
        assert result.akl[0] == pytest.approx(100)

    def test_reference_away_from_maximum(self, freqs):
        pxx = np.exp(-0.5 * ((freqs - 1.0) / 0.01) ** 2) + 0.01
        result = peakedness(pxx, freqs, reference_freq=0.3)
        assert result.akl[0] < 5

    def test_zero_spectrum(self, freqs):
        result = peakedness(np.zeros_like(freqs), freqs)
        assert result.pkl[0] == 0 and result.akl[0] == 0

    def test_nan_spectrum(self, freqs):
        pxx = np.ones((len(freqs), 2))
        pxx[3, 1] = np.nan
        result = peakedness(pxx, freqs)
        assert np.all(np.isnan(result.pkl))

    def test_matrix_input(self, freqs):
        pxx = np.column_stack([
            np.exp(-0.5 * ((freqs - 0.3) / 0.005) ** 2),
            np.exp(-0.5 * ((freqs - 0.5) / 0.2) ** 2),
        ])
        result = peakedness(pxx, freqs)
        assert result.pkl.shape == (2,)
        assert result.pkl[0] > result.pkl[1]

    def test_shape_mismatch(self, freqs):
        with pytest.raises(ValueError, match="pxx"):
            peakedness(np.ones(10), freqs)


class TestIsPeaky:
    def test_both_thresholds_required(self):
        np.testing.assert_array_equal(
            is_peaky([90, 30, 90], [95, 99, 20], 50, 50), [True, False, False]
        )

    def test_shape_mismatch(self):
        with pytest.raises(ValueError, match="same shape"):
            is_peaky([1, 2], [1], 50, 50)

    def test_threshold_range(self):
        with pytest.raises(ValueError, match="akl_threshold"):
            is_peaky([1], [1], 50, 150)
