import numpy as np
import pytest

from biosignal_pipeline.rpeak import pan_tompkins, RPeakResult
from biosignal_pipeline.validation import DataQualityWarning


def _matched(detected, expected, tolerance):
    return np.array([np.min(np.abs(detected - r)) <= tolerance for r in expected])


def test_detects_every_r_wave(ecg_signal):
    ecg, fs, r_samples = ecg_signal
    result = pan_tompkins(ecg, fs)

    assert isinstance(result, RPeakResult)
    assert result.method_used == "findpeaks"
    assert np.all(_matched(result.peak_indices, r_samples, 2))
    assert abs(result.n_peaks - len(r_samples)) <= 1
    assert result.quality_score > 0.8


def test_intermediate_signals_same_length(ecg_signal):
    ecg, fs, _ = ecg_signal
    result = pan_tompkins(ecg, fs)
    assert len(result.ecg_filtered) == len(ecg)
    assert len(result.decg) == len(ecg)
    assert len(result.decg_envelope) == len(ecg)


def test_rr_intervals(ecg_signal):
    ecg, fs, _ = ecg_signal
    rr = pan_tompkins(ecg, fs).get_rr_intervals_ms()
    assert np.median(rr) == pytest.approx(800, abs=8)


def test_adaptive_threshold_method(ecg_signal):
    ecg, fs, r_samples = ecg_signal
    result = pan_tompkins(ecg, fs, method="adaptive_threshold")
    assert result.method_used == "adaptive_threshold"
    assert result.n_peaks > 0


def test_nan_samples_tolerated(ecg_signal):
    ecg, fs, r_samples = ecg_signal
    ecg = ecg.copy()
    ecg[2000:2500] = np.nan
    result = pan_tompkins(ecg, fs)
    outside = r_samples[(r_samples < 1900) | (r_samples > 2600)]
    assert np.all(_matched(result.peak_indices, outside, 2))


def test_empty_input_warns():
    with pytest.warns(DataQualityWarning):
        result = pan_tompkins(np.array([]), 250)
    assert result.n_peaks == 0
    assert result.quality_score == 0.0


def test_all_nan_warns():
    with pytest.warns(DataQualityWarning):
        result = pan_tompkins(np.full(1000, np.nan), 250)
    assert result.n_peaks == 0


def test_invalid_method():
    with pytest.raises(ValueError, match="method"):
        pan_tompkins(np.zeros(1000), 250, method="wavelet")


def test_recording_shorter_than_envelope_window():
    ecg = np.random.default_rng(0).normal(size=20)
    result = pan_tompkins(ecg, 250)
    assert len(result.ecg_filtered) == 20
    assert len(result.decg) == 20
    assert len(result.decg_envelope) == 20
    assert np.all(result.peak_indices < 20)


def test_short_recording_adaptive_threshold_envelope_length():
    ecg = np.random.default_rng(1).normal(size=30)
    result = pan_tompkins(ecg, 250, method="adaptive_threshold")
    assert len(result.decg_envelope) == 30
    assert np.all(result.peak_indices < 30)
