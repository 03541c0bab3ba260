"""Shared synthetic recordings for the test suite."""

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pytest

from biosignal_pipeline.config import Config


FS = 100.0
BEAT_PERIOD = 0.8  # 75 bpm


def pulse_train(duration: float, fs: float = FS, period: float = BEAT_PERIOD) -> np.ndarray:
    """Sine pulse train with maxima at 0.2 s + k * period."""
    t = np.arange(int(round(duration * fs))) / fs
    return np.sin(2 * np.pi * t / period)


def true_peaks(n_samples: int, fs: float = FS, period: float = BEAT_PERIOD) -> np.ndarray:
    first = period / 4
    return np.round((first + np.arange(0, n_samples / fs, period)) * fs).astype(int)


@pytest.fixture
def config():
    return Config()


@pytest.fixture
def sine_pulses():
    """60 s of a 75 bpm sine pulse train at 100 Hz."""
    return pulse_train(60.0)


@pytest.fixture
def ppg_signal():
    """PPG-like wave: troughs (onsets) at k * 0.8 s, apexes at 0.4 + k * 0.8 s."""
    t = np.arange(int(60 * FS)) / FS
    return -np.cos(2 * np.pi * t / BEAT_PERIOD)


@pytest.fixture
def ecg_signal():
    """30 s synthetic ECG at 250 Hz: narrow R waves every 0.8 s, first at 0.5 s."""
    fs = 250.0
    t = np.arange(int(30 * fs)) / fs
    r_times = 0.5 + np.arange(0, 30, BEAT_PERIOD)
    r_times = r_times[r_times < 30 - 0.1]
    ecg = np.zeros_like(t)
    for r in r_times:
        ecg += np.exp(-0.5 * ((t - r) / 0.008) ** 2)
        ecg -= 0.15 * np.exp(-0.5 * ((t - r - 0.03) / 0.01) ** 2)
    ecg += 0.05 * np.sin(2 * np.pi * 0.3 * t)
    return ecg, fs, np.round(r_times * fs).astype(int)


@pytest.fixture
def regular_events():
    """Regular 75 bpm event series 0:0.8:60 (76 events)."""
    return np.arange(76) * BEAT_PERIOD
