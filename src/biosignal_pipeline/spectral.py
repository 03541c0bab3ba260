"""
Spectral analysis helpers.

Provides:
- Welch periodogram for signals with NaN gaps
- Spectral peakedness (power and amplitude concentration around a peak)
- Peaky-spectrum classification
"""

import logging
from typing import Optional, Tuple, Union
from dataclasses import dataclass

import numpy as np
from scipy import signal, interpolate

from .config import Config, default_config
from .interpolation import find_runs
from .preprocess import highpass_filter
from .validation import as_signal, require_positive, require_positive_int, require_non_negative_int

logger = logging.getLogger(__name__)


@dataclass
class PeakednessResult:
    """Peakedness of one or more spectra, in percent."""
    pkl: np.ndarray  # Power in the narrow window / power in the wide window
    akl: np.ndarray  # Max in the wide window / global max


def nan_welch(
    x: np.ndarray,
    fs: float,
    window: Union[int, np.ndarray],
    noverlap: int,
    nfft: int,
    min_distance: Optional[int] = None,
    config: Config = default_config,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Welch power spectral density of a signal with NaN gaps.

    The signal is split into NaN-free stretches. Stretches separated by
    fewer than ``min_distance`` NaN samples are merged and the NaN samples
    in between filled by cubic spline. Each stretch at least one window long
    is high-pass filtered (config.WELCH_HIGHPASS_FREQ) and its Welch
    periodogram computed; the result is the mean over stretches.

    Parameters
    ----------
    x : np.ndarray
        Input signal.
    fs : float
        Sampling frequency in Hz.
    window : int or np.ndarray
        Window length (Hamming window) or window samples.
    noverlap : int
        Overlapping samples between Welch segments.
    nfft : int
        FFT length.
    min_distance : int, optional
        Merge stretches closer than this many samples.
    config : Config
        Pipeline configuration.

    Returns
    -------
    f : np.ndarray
        Frequencies in Hz.
    pxx : np.ndarray
        One-sided PSD; all-NaN if no stretch is long enough.
    """
    x = as_signal(x, "x")
    fs = require_positive(fs, "fs")
    noverlap = require_non_negative_int(noverlap, "noverlap")
    nfft = require_positive_int(nfft, "nfft")

    if np.isscalar(window):
        window_length = require_positive_int(window, "window")
        win = signal.get_window('hamming', window_length, fftbins=False)
    else:
        win = as_signal(window, "window")
        window_length = len(win)
    if noverlap >= window_length:
        raise ValueError(f"'noverlap' must be smaller than the window length ({window_length})")
    if nfft < window_length:
        raise ValueError(f"'nfft' must be at least the window length ({window_length})")

    f = np.fft.rfftfreq(nfft, 1.0 / fs)

    stretches = find_runs(~np.isnan(x))
    if min_distance is not None and len(stretches) > 1:
        merged = [list(stretches[0])]
        for start, end in stretches[1:]:
            if start - merged[-1][1] < min_distance:
                merged[-1][1] = end
            else:
                merged.append([start, end])
        stretches = [tuple(s) for s in merged]

    spectra = []
    for start, end in stretches:
        segment = x[start:end + 1]
        valid = ~np.isnan(segment)
        if len(segment) < window_length or valid.sum() < window_length:
            continue
        if not valid.all():
            idx = np.arange(len(segment))
            segment = interpolate.CubicSpline(idx[valid], segment[valid])(idx)
        filtered = highpass_filter(segment, fs, config.WELCH_HIGHPASS_FREQ, order=4)
        _, pxx = signal.welch(
            filtered, fs=fs, window=win, noverlap=noverlap, nfft=nfft, detrend=False,
        )
        spectra.append(pxx)

    if not spectra:
        logger.debug("No NaN-free stretch of at least %d samples", window_length)
        return f, np.full(len(f), np.nan)

    logger.debug("Welch PSD averaged over %d stretch(es)", len(spectra))
    return f, np.mean(spectra, axis=0)


def peakedness(
    pxx: np.ndarray,
    f: np.ndarray,
    reference_freq: Optional[float] = None,
    window: Optional[float] = None,
    config: Config = default_config,
) -> PeakednessResult:
    """
    Peakedness of power spectra.

    Parameters
    ----------
    pxx : np.ndarray
        Spectrum (len(f),) or spectra (len(f), n_spectra), one per column.
    f : np.ndarray
        Frequencies in Hz.
    reference_freq : float, optional
        Centre frequency. When omitted each spectrum is centred on its own
        maximum and the narrow window is clipped to config.PEAKEDNESS_BAND.
    window : float, optional
        Wide window width in Hz. Defaults to config.PEAKEDNESS_WINDOW; the
        narrow window is PEAKEDNESS_NARROW_RATIO times as wide.
    config : Config
        Pipeline configuration.

    Returns
    -------
    PeakednessResult
        pkl and akl per spectrum, clipped to [0, 100]. Zero for an all-zero
        spectrum; NaN for every spectrum if any value is NaN.
    """
    f = as_signal(f, "f")
    pxx = np.asarray(pxx, dtype=float)
    if pxx.ndim == 1:
        pxx = pxx[:, np.newaxis]
    if pxx.ndim != 2 or pxx.size == 0:
        raise ValueError(f"'pxx' must be a non-empty vector or matrix, got shape {pxx.shape}")
    if pxx.shape[0] != len(f):
        raise ValueError(
            f"First dimension of 'pxx' must match length of 'f' ({pxx.shape[0]} != {len(f)})"
        )
    window = require_positive(config.PEAKEDNESS_WINDOW if window is None else window, "window")
    adaptive = reference_freq is None
    if not adaptive and not np.isfinite(reference_freq):
        raise ValueError(f"'reference_freq' must be finite, got {reference_freq!r}")

    n_spectra = pxx.shape[1]
    if np.any(np.isnan(pxx)):
        nan = np.full(n_spectra, np.nan)
        return PeakednessResult(pkl=nan, akl=nan.copy())

    pkl = np.zeros(n_spectra)
    akl = np.zeros(n_spectra)
    narrow = config.PEAKEDNESS_NARROW_RATIO * window
    band_low, band_high = config.PEAKEDNESS_BAND

    for i in range(n_spectra):
        spectrum = pxx[:, i]
        if np.all(spectrum == 0):
            continue

        center = f[np.argmax(spectrum)] if adaptive else reference_freq
        wide_mask = (f >= center - window / 2) & (f <= center + window / 2)
        if adaptive:
            narrow_mask = (f >= max(center - narrow / 2, band_low)) & (f <= min(center + narrow / 2, band_high))
        else:
            narrow_mask = (f >= center - narrow / 2) & (f <= center + narrow / 2)
        if not wide_mask.any() or not narrow_mask.any():
            continue

        wide_power = spectrum[wide_mask].sum()
        if wide_power > 0:
            pkl[i] = 100 * spectrum[narrow_mask].sum() / wide_power
        global_max = spectrum.max()
        if global_max > 0:
            akl[i] = 100 * spectrum[wide_mask].max() / global_max

    return PeakednessResult(pkl=np.clip(pkl, 0, 100), akl=np.clip(akl, 0, 100))


def is_peaky(
    pkl: np.ndarray,
    akl: np.ndarray,
    pkl_threshold: float,
    akl_threshold: float,
) -> np.ndarray:
    """Spectra whose peakedness meets both thresholds (percent, 0-100)."""
    pkl = np.asarray(pkl, dtype=float)
    akl = np.asarray(akl, dtype=float)
    if pkl.shape != akl.shape:
        raise ValueError(f"'pkl' and 'akl' must have the same shape ({pkl.shape} != {akl.shape})")
    if pkl.size == 0:
        raise ValueError("'pkl' must not be empty")
    for name, value in (("pkl_threshold", pkl_threshold), ("akl_threshold", akl_threshold)):
        if not np.isscalar(value) or not 0 <= value <= 100:
            raise ValueError(f"'{name}' must be a scalar in [0, 100], got {value!r}")
    return (pkl >= pkl_threshold) & (akl >= akl_threshold)
