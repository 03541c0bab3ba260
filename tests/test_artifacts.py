import numpy as np
import pytest

from biosignal_pipeline.artifacts import hjorth, hjorth_artifacts, ArtifactResult

MARGINS = [[5, 1], [0.8, 2], [6, 6]]


@pytest.fixture
def ppg_with_burst():
    """60 s of a 1 Hz wave at 125 Hz with a noise burst over 30-34 s."""
    fs = 125.0
    rng = np.random.default_rng(0)
    t = np.arange(int(60 * fs)) / fs
    x = np.sin(2 * np.pi * t) + rng.normal(scale=0.005, size=len(t))
    burst = slice(int(30 * fs), int(34 * fs))
    x[burst] += rng.normal(scale=10.0, size=burst.stop - burst.start)
    return x, fs


def test_hjorth_of_sine():
    fs = 250.0
    t = np.arange(int(10 * fs)) / fs
    h0, h1, h2 = hjorth(np.sin(2 * np.pi * 2.0 * t), fs)
    assert h0 == pytest.approx(0.5, rel=0.01)
    assert h1 == pytest.approx(2.0, rel=0.01)
    assert h2 < 0.5


def test_output_shapes(ppg_with_burst):
    x, fs = ppg_with_burst
    result = hjorth_artifacts(x, fs, seg=4, step=3, margins=MARGINS, medfilt_order=15)

    assert isinstance(result, ArtifactResult)
    assert len(result.mask) == len(x)
    assert result.mask.dtype == bool
    assert len(result.segments) == len(result.flagged) == len(result.h0) == 19
    assert np.all(result.intervals[:, 0] <= result.intervals[:, 1])
    assert np.all(result.intervals >= 0)
    assert np.all(result.segments[:, 0] <= result.segments[:, 1])


def test_burst_flagged(ppg_with_burst):
    x, fs = ppg_with_burst
    result = hjorth_artifacts(x, fs, seg=4, step=3, margins=MARGINS, medfilt_order=15)

    np.testing.assert_array_equal(np.flatnonzero(result.flagged), [9, 10, 11])
    assert np.all(result.mask[int(31 * fs):int(33 * fs)])
    assert not np.any(result.mask[:int(20 * fs)])
    assert not np.any(result.mask[int(45 * fs):int(56 * fs)])


def test_adjacent_segments_merged(ppg_with_burst):
    x, fs = ppg_with_burst
    separate = hjorth_artifacts(x, fs, seg=4, step=3, margins=MARGINS, medfilt_order=15)
    merged = hjorth_artifacts(
        x, fs, seg=4, step=3, margins=MARGINS, medfilt_order=15, min_segment_separation=2,
    )

    assert separate.n_artifacts == 3
    assert merged.n_artifacts == 1
    np.testing.assert_allclose(merged.intervals[0], [27.0, 37.0 - 1 / fs])
    np.testing.assert_array_equal(merged.mask, separate.mask)


def test_negative_inverts_flags(ppg_with_burst):
    x, fs = ppg_with_burst
    result = hjorth_artifacts(x, fs, seg=4, step=3, margins=MARGINS, medfilt_order=15)
    inverted = hjorth_artifacts(x, fs, seg=4, step=3, margins=MARGINS, medfilt_order=15, negative=True)
    np.testing.assert_array_equal(inverted.flagged, ~result.flagged)


def test_tail_after_last_window_unflagged():
    fs = 100.0
    x = np.random.default_rng(2).normal(size=int(10.5 * fs))
    result = hjorth_artifacts(x, fs, seg=4, step=3, margins=MARGINS, medfilt_order=3, negative=True)
    # Windows cover 0-4, 3-7 and 6-10 s
    assert len(result.segments) == 3
    assert not np.any(result.mask[int(10 * fs):])


def test_defaults_accepted(ppg_with_burst):
    x, fs = ppg_with_burst
    result = hjorth_artifacts(x, fs)
    assert len(result.mask) == len(x)


@pytest.mark.parametrize("signal, fs, kwargs, name", [
    (np.array([]), 125.0, {}, "signal"),
    (np.zeros(1000), 0, {}, "fs"),
    (np.zeros(1000), 125.0, {"margins": [[5, 1], [0.8, 2]]}, "margins"),
    (np.zeros(100), 125.0, {}, "signal"),
    (np.zeros(1000), 125.0, {"medfilt_order": 0}, "medfilt_order"),
])
def test_invalid_arguments(signal, fs, kwargs, name):
    with pytest.raises(ValueError, match=name):
        hjorth_artifacts(signal, fs, **kwargs)
