"""
Interactive detection reports.

Builds a Plotly HTML page per recording showing:
- Raw signal with detected beats/pulses
- Enhanced signal with the adaptive threshold trace
- Inter-event intervals before and after HRV correction
"""

from typing import List, Optional

import numpy as np
import plotly.graph_objects as go
from plotly.subplots import make_subplots

from .config import Config, default_config


def create_detection_report(
    signal_raw: np.ndarray,
    enhanced: np.ndarray,
    threshold: np.ndarray,
    time: np.ndarray,
    peak_indices: np.ndarray,
    recording_name: str,
    fs: float,
    signal_type: str = "ppg",
    event_times_corrected: Optional[np.ndarray] = None,
    quality_notes: Optional[List[str]] = None,
    config: Config = default_config,
) -> str:
    """
    Create interactive HTML detection report using Plotly.

    Parameters
    ----------
    signal_raw : np.ndarray
        Raw signal.
    enhanced : np.ndarray
        Enhanced signal the detector ran on (LPD output or ECG envelope).
    threshold : np.ndarray
        Adaptive threshold trace, same length as ``enhanced``. May be empty
        when detection did not use the adaptive threshold.
    time : np.ndarray
        Time array in seconds.
    peak_indices : np.ndarray
        Sample indices of detections.
    recording_name : str
        Name of the recording.
    fs : float
        Sampling frequency.
    signal_type : str
        'ppg' or 'ecg', used in titles.
    event_times_corrected : np.ndarray, optional
        Event series after false-positive removal and gap filling.
    quality_notes : List[str], optional
        Notes shown in the summary.
    config : Config
        Pipeline configuration.

    Returns
    -------
    str
        HTML string of the report.
    """
    label = signal_type.upper()
    fig = make_subplots(
        rows=3, cols=2,
        specs=[[{}, {}], [{}, {}], [{"colspan": 2}, None]],
        subplot_titles=(
            f"{label} with Detections (Full)",
            f"{label} with Detections (Zoomed {config.WAVEFORM_ZOOM_SECONDS:g}s)",
            "Enhanced Signal and Threshold (Full)",
            f"Enhanced Signal and Threshold (Zoomed {config.WAVEFORM_ZOOM_SECONDS:g}s)",
            "Inter-event Intervals",
        ),
        vertical_spacing=0.08,
        horizontal_spacing=0.08,
    )

    color_raw = "rgb(0, 100, 200)"
    color_enhanced = "rgba(100, 100, 100, 0.8)"
    color_threshold = "rgb(255, 140, 0)"
    color_peaks = "rgb(255, 0, 0)"
    color_corrected = "rgb(0, 160, 0)"

    peak_indices = np.asarray(peak_indices, dtype=int)
    zoom_end = min(int(config.WAVEFORM_ZOOM_SECONDS * fs), len(time))
    zoom_peaks = peak_indices[peak_indices < zoom_end]

    for col, end, peaks in ((1, len(time), peak_indices), (2, zoom_end, zoom_peaks)):
        first = col == 1
        fig.add_trace(
            go.Scatter(
                x=time[:end], y=signal_raw[:end],
                mode='lines', name=label,
                line=dict(color=color_raw, width=1),
                legendgroup="raw", showlegend=first,
            ),
            row=1, col=col
        )
        if len(peaks) > 0:
            fig.add_trace(
                go.Scatter(
                    x=time[peaks], y=signal_raw[peaks],
                    mode='markers', name='Detections',
                    marker=dict(color=color_peaks, size=6 if first else 8, symbol='x'),
                    legendgroup="peaks", showlegend=first,
                ),
                row=1, col=col
            )

        fig.add_trace(
            go.Scatter(
                x=time[:end], y=enhanced[:end],
                mode='lines', name='Enhanced',
                line=dict(color=color_enhanced, width=1),
                legendgroup="enhanced", showlegend=first,
            ),
            row=2, col=col
        )
        if len(threshold) == len(enhanced):
            fig.add_trace(
                go.Scatter(
                    x=time[:end], y=threshold[:end],
                    mode='lines', name='Threshold',
                    line=dict(color=color_threshold, width=1.5),
                    legendgroup="threshold", showlegend=first,
                ),
                row=2, col=col
            )

    # Row 3: intervals
    detected_times = peak_indices / fs
    if len(detected_times) > 1:
        fig.add_trace(
            go.Scatter(
                x=detected_times[1:], y=np.diff(detected_times),
                mode='lines+markers', name='Detected intervals',
                line=dict(color=color_peaks, width=1),
                marker=dict(size=4),
            ),
            row=3, col=1
        )
    if event_times_corrected is not None and len(event_times_corrected) > 1:
        fig.add_trace(
            go.Scatter(
                x=event_times_corrected[1:], y=np.diff(event_times_corrected),
                mode='lines+markers', name='Corrected intervals',
                line=dict(color=color_corrected, width=1),
                marker=dict(size=4),
            ),
            row=3, col=1
        )

    n_peaks = len(peak_indices)
    duration = len(signal_raw) / fs if fs > 0 else 0
    avg_hr = (n_peaks / duration * 60) if duration > 0 else 0

    summary_lines = [
        f"<b>Recording:</b> {recording_name} | <b>Signal:</b> {label}",
        f"<b>Duration:</b> {duration:.1f}s | <b>Samples:</b> {len(signal_raw):,} | <b>Fs:</b> {fs:g}Hz",
        f"<b>Detections:</b> {n_peaks} | <b>Avg rate:</b> {avg_hr:.1f} bpm",
    ]
    if event_times_corrected is not None:
        summary_lines.append(f"<b>Corrected events:</b> {len(event_times_corrected)}")
    if quality_notes:
        summary_lines.append("<b>Quality:</b> " + " | ".join(quality_notes))

    fig.update_layout(
        title=dict(
            text="<br>".join(summary_lines),
            x=0.5,
            xanchor='center',
            font=dict(size=12),
        ),
        height=1000,
        showlegend=True,
        legend=dict(
            orientation="h",
            yanchor="bottom",
            y=1.02,
            xanchor="right",
            x=1
        ),
        template="plotly_white",
    )

    for row in (1, 2):
        for col in (1, 2):
            fig.update_xaxes(title_text="Time (s)", row=row, col=col)
    fig.update_xaxes(title_text="Time (s)", row=3, col=1)
    fig.update_yaxes(title_text="Amplitude", row=1, col=1)
    fig.update_yaxes(title_text="Amplitude", row=1, col=2)
    fig.update_yaxes(title_text="Enhanced (a.u.)", row=2, col=1)
    fig.update_yaxes(title_text="Enhanced (a.u.)", row=2, col=2)
    fig.update_yaxes(title_text="Interval (s)", row=3, col=1)

    html_content = fig.to_html(
        full_html=True,
        include_plotlyjs=True,
        config={
            'displayModeBar': True,
            'scrollZoom': True,
        }
    )

    return html_content
