"""Heart-rate estimation from the green channel.

The conditioning chain is detrend -> band-pass (0.7-4.0 Hz) -> normalize,
followed by either a spectral peak (``detect_heart_rate``) or time-domain
peak picking (``analyze_pulse_signal``).
"""

from __future__ import annotations

import logging
import time
from typing import Optional, Sequence

import numpy as np

from .measurements import (
    HeartRateMeasurement,
    PPGSignal,
    ProcessedSignal,
    Trend,
    round_half_up,
)
from .peaks import calculate_ibi, detect_peaks
from .preprocess import bandpass_filter, detrend, moving_average, normalize
from .quality import SignalQuality, assess_signal_quality
from .spectrum import find_dominant_frequency

logger = logging.getLogger(__name__)

MIN_SAMPLES = 60  # 2 s at 30 fps
HR_FMIN = 0.7  # Hz (42 BPM)
HR_FMAX = 4.0  # Hz (240 BPM)
HR_VALID_MIN = 40
HR_VALID_MAX = 200
WAVEFORM_SAMPLES = 300
TREND_SLOPE_BPM = 0.5
IRREGULAR_CV_PERCENT = 20.0


def condition_pulse(green, sample_rate: float = 30.0) -> np.ndarray:
    """Detrend, band-pass and normalize a raw green trace."""
    x = detrend(green)
    x = bandpass_filter(x, HR_FMIN, HR_FMAX, sample_rate)
    return normalize(x)


def detect_heart_rate(signal: PPGSignal, sample_rate: float = 30.0) -> HeartRateMeasurement:
    """Estimate BPM from the dominant spectral component of the green channel."""
    if len(signal.green) < MIN_SAMPLES:
        return HeartRateMeasurement(heart_rate=0, confidence=0)

    x = moving_average(condition_pulse(signal.green, sample_rate), 3)
    dom = find_dominant_frequency(x, sample_rate, HR_FMIN, HR_FMAX)
    bpm = round_half_up(dom.frequency * 60.0)
    if HR_VALID_MIN <= bpm <= HR_VALID_MAX:
        confidence = round_half_up(dom.confidence)
    else:
        logger.debug("Heart rate %d BPM outside valid range, discarded", bpm)
        bpm = 0
        confidence = 0
    waveform = x[-min(WAVEFORM_SAMPLES, x.size) :].copy()
    return HeartRateMeasurement(heart_rate=bpm, confidence=confidence, waveform=waveform)


def analyze_pulse_signal(signal: PPGSignal, sample_rate: float = 30.0) -> ProcessedSignal:
    """Condition the green channel, pick beats and score signal quality.

    Peaks must be at least 0.4 s apart (150 BPM ceiling).
    """
    if len(signal.green) < MIN_SAMPLES:
        return ProcessedSignal(
            filtered=np.zeros(0, dtype=np.float64),
            peak_indices=[],
            peaks=[],
            heart_rate=0,
            quality=SignalQuality(0.0, 0.0, False, ["Insufficient data"]),
        )

    y = condition_pulse(signal.green, sample_rate)
    min_distance = int(np.floor(sample_rate * 0.4))
    peak_indices = detect_peaks(y, min_distance, 0.5)

    heart_rate = 0
    if len(peak_indices) >= 2:
        avg_interval = (peak_indices[-1] - peak_indices[0]) / (len(peak_indices) - 1)
        if avg_interval > 0:
            heart_rate = round_half_up(sample_rate / avg_interval * 60.0)

    return ProcessedSignal(
        filtered=y,
        peak_indices=peak_indices,
        peaks=[float(y[i]) for i in peak_indices],
        heart_rate=heart_rate,
        quality=assess_signal_quality(y),
    )


def _recent(
    history: Sequence[HeartRateMeasurement],
    window_seconds: float,
    now: Optional[float],
) -> list:
    now = time.time() if now is None else now
    return [m for m in history if now - m.timestamp < window_seconds]


def average_heart_rate(
    history: Sequence[HeartRateMeasurement],
    window_seconds: float = 30.0,
    now: Optional[float] = None,
) -> int:
    """Confidence- and recency-weighted mean over the trailing window.

    Weight of the i-th measurement in the window is ``confidence/100 * (i+1)``
    so later entries count more.
    """
    recent = _recent(history, window_seconds, now)
    total_weight = 0.0
    weighted_sum = 0.0
    for i, m in enumerate(recent):
        w = (m.confidence / 100.0) * (i + 1)
        weighted_sum += m.heart_rate * w
        total_weight += w
    if total_weight <= 0.0:
        return 0
    return round_half_up(weighted_sum / total_weight)


def heart_rate_trend(
    history: Sequence[HeartRateMeasurement],
    window_seconds: float = 60.0,
    now: Optional[float] = None,
) -> Trend:
    """Classify the regression slope of BPM against measurement index."""
    if len(history) < 3:
        return Trend.STABLE
    recent = sorted(_recent(history, window_seconds, now), key=lambda m: m.timestamp)
    if len(recent) < 3:
        return Trend.STABLE
    hr = np.array([m.heart_rate for m in recent], dtype=np.float64)
    slope = float(np.polyfit(np.arange(hr.size, dtype=np.float64), hr, 1)[0])
    if slope > TREND_SLOPE_BPM:
        return Trend.INCREASING
    if slope < -TREND_SLOPE_BPM:
        return Trend.DECREASING
    return Trend.STABLE


def detect_irregular_heartbeat(
    peak_indices: Sequence[int],
    sample_rate: float = 30.0,
) -> tuple[bool, int]:
    """Flag irregular rhythm when the IBI coefficient of variation exceeds 20%.

    Returns (irregular, variability_percent).
    """
    if len(peak_indices) < 5:
        return False, 0
    ibi = calculate_ibi(peak_indices, sample_rate)
    mean = float(ibi.mean())
    cv = float(ibi.std()) / mean * 100.0 if mean > 0 else 0.0
    return cv > IRREGULAR_CV_PERCENT, round_half_up(cv)
