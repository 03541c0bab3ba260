import numpy as np
import pytest

from biosignal_pipeline.config import Config
from biosignal_pipeline.threshold import adaptive_threshold
from biosignal_pipeline.validation import DataQualityWarning

from conftest import FS, true_peaks


def test_detects_every_pulse_of_regular_train(sine_pulses):
    result = adaptive_threshold(sine_pulses, FS)
    expected = true_peaks(len(sine_pulses))

    assert abs(result.n_peaks - len(expected)) <= 1
    for idx in result.peak_indices:
        assert np.min(np.abs(expected - idx)) <= 1


def test_detections_strictly_increasing(sine_pulses):
    result = adaptive_threshold(sine_pulses, FS)
    assert np.all(np.diff(result.peak_indices) > 0)


def test_threshold_trace_complete(sine_pulses):
    result = adaptive_threshold(sine_pulses, FS)
    assert len(result.threshold) == len(sine_pulses)
    assert not np.any(np.isnan(result.threshold))


def test_all_nan_signal_returns_empty():
    x = np.full(1000, np.nan)
    with pytest.warns(DataQualityWarning):
        result = adaptive_threshold(x, 256)
    assert result.n_peaks == 0
    assert len(result.threshold) == 1000
    assert np.all(np.isnan(result.threshold))


def test_signal_one_rr_long_decays_linearly():
    # 80 bpm at 100 Hz -> 75 samples
    x = np.full(75, 0.1)
    result = adaptive_threshold(x, 100)

    thres_ini = 3 * 0.1
    expected = thres_ini - (thres_ini - 0.2 * thres_ini) / 75 * np.arange(75)
    assert result.n_peaks == 0
    np.testing.assert_allclose(result.threshold, expected)


def test_leading_nan_is_skipped(sine_pulses):
    x = sine_pulses.copy()
    x[:300] = np.nan
    result = adaptive_threshold(x, FS)
    assert result.n_peaks > 60
    assert np.all(result.peak_indices >= 300)


def test_nan_samples_never_detected(sine_pulses):
    x = sine_pulses.copy()
    x[2000:2400] = np.nan
    result = adaptive_threshold(x, FS)
    assert not np.any((result.peak_indices >= 2000) & (result.peak_indices < 2400))


def test_outlier_amplitude_is_damped(sine_pulses):
    x = sine_pulses.copy()
    # Large artefact on one pulse must not hide the following ones
    x[1780] = 10.0
    result = adaptive_threshold(x, FS)
    following = result.peak_indices[(result.peak_indices > 1780) & (result.peak_indices < 2300)]
    assert len(following) >= 5


def test_config_override_changes_refractory():
    config = Config(PULSE_REFRACT_PERIOD=0.05)
    x = np.sin(2 * np.pi * np.arange(3000) / 80)
    result = adaptive_threshold(x, 100, config=config)
    assert result.n_peaks > 30


@pytest.mark.parametrize("kwargs", [
    {"fs": 0},
    {"fs": -10},
    {"fs": 100, "alpha_amp": 1.5},
    {"fs": 100, "alpha_amp": 0},
    {"fs": 100, "refract_period": 0},
    {"fs": 100, "tau_rr": -1},
])
def test_invalid_arguments_raise(kwargs):
    with pytest.raises(ValueError):
        adaptive_threshold(np.zeros(100), **kwargs)


def test_matrix_input_rejected():
    with pytest.raises(ValueError, match="signal"):
        adaptive_threshold(np.zeros((10, 10)), 100)


def test_column_vector_accepted(sine_pulses):
    flat = adaptive_threshold(sine_pulses, FS)
    column = adaptive_threshold(sine_pulses[:, np.newaxis], FS)
    np.testing.assert_array_equal(flat.peak_indices, column.peak_indices)
