# Biosignal Pipeline
# Adaptive-threshold pulse/R-peak detection and HRV event-series correction

from .config import Config, default_config
from .validation import DataQualityWarning
from .threshold import adaptive_threshold, ThresholdResult
from .refinement import snap_to_peak, refine_peak_positions
from .pulse_detection import detect_pulses, PulseDetectionResult
from .hrv import medfilt_threshold, remove_false_positives, td_metrics, TimeDomainMetrics
from .gap_filling import fill_gaps, GapFillResult, GapFillAttempt
from .preprocess import nan_filtfilt, bandpass_filter, lpd_filter, baseline_remove
from .artifacts import hjorth, hjorth_artifacts, ArtifactResult
from .rpeak import pan_tompkins, RPeakResult
from .delineation import pulse_delineation, DelineationResult
from .spectral import nan_welch, peakedness, is_peaky
from .io_utils import load_signal_csv, save_events_json, load_events_json, EventSeries

__all__ = [
    "Config",
    "default_config",
    "DataQualityWarning",
    "adaptive_threshold",
    "ThresholdResult",
    "snap_to_peak",
    "refine_peak_positions",
    "detect_pulses",
    "PulseDetectionResult",
    "medfilt_threshold",
    "remove_false_positives",
    "td_metrics",
    "TimeDomainMetrics",
    "fill_gaps",
    "GapFillResult",
    "GapFillAttempt",
    "nan_filtfilt",
    "bandpass_filter",
    "lpd_filter",
    "baseline_remove",
    "hjorth",
    "hjorth_artifacts",
    "ArtifactResult",
    "pan_tompkins",
    "RPeakResult",
    "pulse_delineation",
    "DelineationResult",
    "nan_welch",
    "peakedness",
    "is_peaky",
    "load_signal_csv",
    "save_events_json",
    "load_events_json",
    "EventSeries",
]
