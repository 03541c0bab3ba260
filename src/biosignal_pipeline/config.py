"""biosignal_pipeline configuration.

Centralizes configurable parameters for pulse/R-peak detection, peak
refinement and HRV event-series correction.
"""

from pathlib import Path
from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class Config:
    """Pipeline configuration parameters."""

    # ==========================================================================
    # Signal Acquisition Parameters
    # ==========================================================================
    SAMPLING_RATE: int = 250  # Hz, used when a recording carries no rate

    # ==========================================================================
    # Adaptive Threshold Detector
    # ==========================================================================
    PULSE_ALPHA_AMP: float = 0.2        # threshold floor as fraction of amplitude
    PULSE_REFRACT_PERIOD: float = 0.15  # seconds the threshold is held high
    PULSE_TAU_RR: float = 1.0           # fraction of RR over which it decays

    # Initial threshold: AMPLITUDE_FACTOR x mean of non-negative samples
    # in the first THRESHOLD_INIT_WINDOW_SEC seconds
    THRESHOLD_INIT_WINDOW_SEC: float = 10.0
    THRESHOLD_AMPLITUDE_FACTOR: float = 3.0
    INITIAL_HR_BPM: float = 80.0

    # Number of intervals/amplitudes used for running estimates
    N_RR_ESTIMATION: int = 3
    N_AMPLITUDE_ESTIMATION: int = 3
    AMPLITUDE_MEDIAN_WINDOW: int = 4
    # A detection this many times the running amplitude is treated as outlier
    AMPLITUDE_OUTLIER_FACTOR: float = 2.0

    # ==========================================================================
    # Segmented Detection
    # ==========================================================================
    SEGMENT_LENGTH: int = 10000       # samples per core segment
    SEGMENT_PADDING_SEC: float = 5.0  # context borrowed from each neighbour
    PULSE_SNAP_WINDOW_SEC: float = 0.02
    N_WORKERS: int = 1                # >1 runs segments on a thread pool

    # ==========================================================================
    # LPD (low-pass differentiator) enhancement filter
    # ==========================================================================
    LPD_STOP_FREQ: float = 8.0  # Hz
    LPD_PASS_FREQ: float = 7.8  # Hz
    LPD_ORDER: int = 0          # 0 -> estimated from the band edges
    LPD_PASS_RIPPLE: float = 0.01
    LPD_STOP_RIPPLE: float = 0.1

    # ==========================================================================
    # Hjorth Artifact Detection
    # ==========================================================================
    HJORTH_SEGMENT_SEC: float = 4.0  # analysis window
    HJORTH_STEP_SEC: float = 3.0     # window shift
    # (low, up) margins around the median-filtered H0, H1, H2 baselines
    HJORTH_MARGINS: Tuple[Tuple[float, float], ...] = ((5.0, 1.0), (0.8, 2.0), (6.0, 6.0))
    HJORTH_MEDFILT_ORDER: int = 300         # in segments
    HJORTH_MIN_SEGMENT_SEPARATION: int = 1  # in segments

    # ==========================================================================
    # Pan-Tompkins R-peak Detection
    # ==========================================================================
    PT_BANDPASS_LOW: float = 5.0    # Hz
    PT_BANDPASS_HIGH: float = 12.0  # Hz
    PT_FILTER_ORDER: int = 4
    PT_WINDOW_SIZE: float = 0.15        # seconds, moving integration window
    PT_MIN_PEAK_DISTANCE: float = 0.5   # seconds
    PT_USE_SNAP_TO_PEAK: bool = True
    PT_SNAP_WINDOW_SIZE: int = 20       # samples
    RPEAK_METHOD: str = "findpeaks"     # or "adaptive_threshold"
    BASELINE_OFFSET_SEC: float = 0.15   # fiducial point before each R-peak
    BASELINE_WINDOW: int = 5            # samples averaged per fiducial point

    @property
    def PT_BANDPASS(self) -> Tuple[float, float]:
        """Return Pan-Tompkins band-pass range as tuple."""
        return (self.PT_BANDPASS_LOW, self.PT_BANDPASS_HIGH)

    # ==========================================================================
    # Pulse Delineation and Peak Refinement
    # ==========================================================================
    DELINEATION_WINDOW_A: float = 0.25  # seconds after nD to search the apex
    DELINEATION_WINDOW_B: float = 0.15  # seconds before nD to search the onset
    REFINE_FS_INTERP: float = 1000.0    # Hz
    REFINE_WINDOW_WIDTH: float = 0.030  # seconds

    # ==========================================================================
    # HRV Event-Series Correction
    # ==========================================================================
    MEDFILT_WINDOW: int = 30
    MEDFILT_FACTOR: float = 1.0
    MEDFILT_MAX_THRESHOLD: float = 1.5  # seconds

    # Intervals shorter than FP_RATIO x baseline mark a false positive
    FP_RATIO: float = 0.7

    # Gap detection uses GAP_K_UPPER x baseline; fills are validated
    # against GAP_K_UPPER_FINE x baseline and GAP_K_LOWER x baseline
    GAP_K_UPPER: float = 1.5
    GAP_K_UPPER_FINE: float = 1.15
    GAP_K_LOWER: float = 0.75
    GAP_MIN_INTERVAL: float = 0.5  # seconds
    GAP_N_NEIGHBORS: int = 4
    GAP_MIN_VALID_NEIGHBORS: int = 2

    PNN50_THRESHOLD: float = 0.05  # seconds

    # Physiological range used for quality notes (milliseconds)
    RR_MIN_MS: float = 300.0   # ~200 bpm max
    RR_MAX_MS: float = 2000.0  # ~30 bpm min

    # ==========================================================================
    # Spectral Analysis
    # ==========================================================================
    WELCH_HIGHPASS_FREQ: float = 0.04  # Hz
    PEAKEDNESS_WINDOW: float = 0.125   # Hz, wide window around the peak
    PEAKEDNESS_NARROW_RATIO: float = 0.4
    PEAKEDNESS_BAND: Tuple[float, float] = (0.15, 0.8)  # Hz, adaptive search

    # ==========================================================================
    # Directory Structure / Output File Naming
    # ==========================================================================
    RESULTS_DIR: str = "Results"
    EVENTS_PREFIX: str = "events_"
    REPORT_PREFIX: str = "detection_"
    HRV_SUMMARY_FILE: str = "hrv_summary.csv"

    # ==========================================================================
    # Visualization Parameters
    # ==========================================================================
    WAVEFORM_ZOOM_SECONDS: float = 10.0

    def get_project_root(self) -> Path:
        """Get project root directory."""
        return Path(__file__).parent.parent.parent

    def get_results_dir(self) -> Path:
        """Get results directory path."""
        return self.get_project_root() / self.RESULTS_DIR

    def get_events_path(self, output_dir: Path, recording_name: str) -> Path:
        """Get path for an events JSON file."""
        return output_dir / f"{self.EVENTS_PREFIX}{recording_name}.json"

    def get_report_path(self, output_dir: Path, recording_name: str) -> Path:
        """Get path for a detection HTML report."""
        return output_dir / f"{self.REPORT_PREFIX}{recording_name}.html"

    def get_hrv_summary_path(self, output_dir: Path) -> Path:
        """Get path for the HRV summary CSV."""
        return output_dir / self.HRV_SUMMARY_FILE


# Default configuration instance
default_config = Config()
