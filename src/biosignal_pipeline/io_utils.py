"""
I/O utilities for the detection pipeline.

Handles:
- CSV signal loading (NaN samples preserved as invalid markers)
- Event series JSON save/load
- Input/output file listing
"""

import json
import logging
from pathlib import Path
from typing import Dict, Any, List, Optional
from dataclasses import dataclass, asdict, fields, field

import numpy as np
import pandas as pd

from .config import Config, default_config

logger = logging.getLogger(__name__)


@dataclass
class SignalData:
    """Container for a loaded recording."""
    signal: np.ndarray        # Samples, NaN where invalid
    time: np.ndarray          # Time in seconds
    fs: float                 # Sampling rate
    recording_name: str       # Recording identifier
    column: str               # Source column in the CSV
    n_nan: int = 0            # Number of invalid samples

    @property
    def duration_seconds(self) -> float:
        """Total duration in seconds."""
        return len(self.signal) / self.fs

    @property
    def n_samples(self) -> int:
        """Number of samples."""
        return len(self.signal)


@dataclass
class EventSeries:
    """Container for a detected (and optionally corrected) event series."""
    recording_name: str
    event_times: List[float]         # Event times in seconds
    fs: float                        # Sampling rate of the source signal
    n_samples: int                   # Samples in the source signal
    signal_type: str                 # "ppg" or "ecg"
    detection_method: str            # Detection algorithm used
    processed_at: str                # ISO timestamp
    quality_notes: List[str] = field(default_factory=list)

    # Filled by the HRV correction step
    corrected: bool = False
    n_inserted: int = 0
    n_removed: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EventSeries":
        """Create EventSeries from dictionary.

        Missing optional keys fall back to dataclass defaults; unknown keys
        are ignored.
        """
        allowed = {f.name for f in fields(cls)}
        filtered = {k: v for k, v in data.items() if k in allowed}
        return cls(**filtered)

    @property
    def times(self) -> np.ndarray:
        return np.asarray(self.event_times, dtype=float)


def _find_time_column(df: pd.DataFrame) -> Optional[str]:
    for col in df.columns:
        if "time" in col.lower() and "stamp" not in col.lower():
            return col
    return None


def load_signal_csv(
    csv_path: Path,
    column: Optional[str] = None,
    fs: Optional[float] = None,
    config: Config = default_config,
) -> SignalData:
    """
    Load a signal from CSV.

    Parameters
    ----------
    csv_path : Path
        Path to the CSV file.
    column : str, optional
        Signal column. Defaults to the first numeric column that is not a
        time column.
    fs : float, optional
        Sampling rate in Hz. When omitted it is derived from a time column
        if present, otherwise config.SAMPLING_RATE is used.
    config : Config
        Pipeline configuration.

    Returns
    -------
    SignalData
        Loaded signal. Missing values stay NaN.

    Raises
    ------
    FileNotFoundError
        If the CSV file does not exist.
    ValueError
        If the signal column cannot be found.
    """
    csv_path = Path(csv_path)
    if not csv_path.exists():
        raise FileNotFoundError(f"Signal file not found: {csv_path}")

    df = pd.read_csv(csv_path)
    time_column = _find_time_column(df)

    if column is None:
        for col in df.columns:
            if col != time_column and pd.api.types.is_numeric_dtype(df[col]):
                column = col
                break
        if column is None:
            raise ValueError(f"No numeric signal column found in {csv_path}. Columns: {list(df.columns)}")
    elif column not in df.columns:
        raise ValueError(f"Column '{column}' not found in {csv_path}. Columns: {list(df.columns)}")

    x = pd.to_numeric(df[column], errors="coerce").to_numpy(dtype=np.float64, copy=True)
    n_nan = int(np.sum(np.isnan(x)))
    if n_nan:
        logger.info("%s: %d invalid sample(s) kept as NaN", csv_path.name, n_nan)

    if fs is None and time_column is not None:
        t = df[time_column].to_numpy(dtype=np.float64, copy=True)
        dt = np.diff(t)
        dt = dt[np.isfinite(dt) & (dt > 0)]
        if dt.size:
            fs = 1.0 / float(np.median(dt))
    if fs is None:
        fs = float(config.SAMPLING_RATE)

    if time_column is not None:
        time = df[time_column].to_numpy(dtype=np.float64, copy=True)
    else:
        time = np.arange(len(x), dtype=np.float64) / fs

    return SignalData(
        signal=x,
        time=time,
        fs=float(fs),
        recording_name=csv_path.stem,
        column=str(column),
        n_nan=n_nan,
    )


def save_events_json(
    events: EventSeries,
    output_path: Path,
) -> None:
    """
    Save an event series to JSON file.

    Parameters
    ----------
    events : EventSeries
        Event series and metadata.
    output_path : Path
        Path for output JSON file.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(events.to_dict(), f, indent=2, ensure_ascii=False)


def load_events_json(json_path: Path) -> EventSeries:
    """
    Load an event series from JSON file.

    Raises
    ------
    FileNotFoundError
        If JSON file does not exist.
    """
    json_path = Path(json_path)
    if not json_path.exists():
        raise FileNotFoundError(f"Events file not found: {json_path}")

    with open(json_path, 'r', encoding='utf-8') as f:
        data = json.load(f)

    return EventSeries.from_dict(data)


def list_signal_files(input_path: Path) -> List[Path]:
    """
    List signal CSV files.

    ``input_path`` may be a single CSV file or a directory of them.
    """
    input_path = Path(input_path)
    if input_path.is_file():
        return [input_path]
    if not input_path.exists():
        raise FileNotFoundError(f"Input not found: {input_path}")

    signal_files = sorted(input_path.glob("*.csv"))
    if not signal_files:
        raise FileNotFoundError(f"No CSV files found in: {input_path}")
    return signal_files


def list_events_files(
    results_dir: Path,
    config: Config = default_config,
) -> List[Path]:
    """List event JSON files in a results directory."""
    return sorted(Path(results_dir).glob(f"{config.EVENTS_PREFIX}*.json"))
