"""Respiration rate (RR) estimation from the rPPG green channel.

Breathing modulates the PPG baseline; the slow component is isolated with a
0.1-0.5 Hz band-pass (6-30 breaths/min) and breaths are counted as peaks at
least two seconds apart.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence

import numpy as np

from .measurements import BreathingPattern, PPGSignal, RespiratoryRateMeasurement, round_half_up
from .peaks import detect_peaks
from .preprocess import bandpass_filter, detrend, normalize

logger = logging.getLogger(__name__)

MIN_SAMPLES = 180  # 6 s at 30 fps
RR_MIN_HZ = 0.1
RR_MAX_HZ = 0.5
RR_VALID = (6, 30)
REGULAR_CV = 0.2


class RespiratoryLevel(str, Enum):
    NORMAL = "normal"
    BRADYPNEA = "bradypnea"
    TACHYPNEA = "tachypnea"


@dataclass(frozen=True)
class RespiratoryAssessment:
    level: RespiratoryLevel
    description: str
    action: str


@dataclass(frozen=True)
class BreathingAbnormalities:
    has_abnormality: bool
    abnormalities: List[str] = field(default_factory=list)


def breathing_pattern(peak_indices: Sequence[int]) -> BreathingPattern:
    """Regular when the breath-interval coefficient of variation is below 0.2."""
    if len(peak_indices) < 3:
        return BreathingPattern.IRREGULAR
    intervals = np.diff(np.asarray(peak_indices, dtype=np.float64))
    mean = float(intervals.mean())
    cv = float(intervals.std()) / mean if mean > 0 else 1.0
    return BreathingPattern.REGULAR if cv < REGULAR_CV else BreathingPattern.IRREGULAR


def detect_respiratory_rate(
    signal: PPGSignal, sample_rate: float = 30.0
) -> RespiratoryRateMeasurement:
    """Estimate breaths per minute.

    Args:
        signal: buffered PPG channels; only green is used.
        sample_rate: sampling rate (Hz).

    Returns:
        Measurement with rate 0 when fewer than 180 samples or 3 breaths are
        available, or when the rate falls outside 6-30 breaths/min.
    """
    if len(signal.green) < MIN_SAMPLES:
        return RespiratoryRateMeasurement(0, BreathingPattern.REGULAR)

    x = detrend(signal.green)
    x = bandpass_filter(x, RR_MIN_HZ, RR_MAX_HZ, sample_rate)
    x = normalize(x)
    peaks = detect_peaks(x, int(sample_rate * 2), 0.3)
    if len(peaks) < 3:
        return RespiratoryRateMeasurement(0, BreathingPattern.IRREGULAR)

    avg_interval = (peaks[-1] - peaks[0]) / (len(peaks) - 1)
    rate = round_half_up(sample_rate / avg_interval * 60.0)
    if not RR_VALID[0] <= rate <= RR_VALID[1]:
        logger.debug("Respiratory rate %d outside valid range, discarded", rate)
        rate = 0
    return RespiratoryRateMeasurement(rate, breathing_pattern(peaks))


def assess_respiratory_rate(rate: float, age: int) -> RespiratoryAssessment:
    # Adults 18-64 have a narrower upper bound
    normal_min, normal_max = (12, 18) if 18 <= age < 65 else (12, 20)
    if normal_min <= rate <= normal_max:
        return RespiratoryAssessment(
            RespiratoryLevel.NORMAL, "Normal respiratory rate", "No action needed"
        )
    action = "Monitor - consult doctor if persistent or symptomatic"
    if rate < normal_min:
        return RespiratoryAssessment(RespiratoryLevel.BRADYPNEA, "Slow breathing rate", action)
    return RespiratoryAssessment(RespiratoryLevel.TACHYPNEA, "Fast breathing rate", action)


def average_respiratory_rate(
    history: Sequence[RespiratoryRateMeasurement],
    window_seconds: float = 60.0,
    now: Optional[float] = None,
) -> int:
    now = time.time() if now is None else now
    recent = [m.respiratory_rate for m in history if now - m.timestamp < window_seconds]
    if not recent:
        return 0
    return round_half_up(sum(recent) / len(recent))


def detect_breathing_abnormalities(
    history: Sequence[RespiratoryRateMeasurement],
) -> BreathingAbnormalities:
    """Look for irregularity, rate variability and sustained abnormal rates.

    At least five measurements are required.
    """
    if len(history) < 5:
        return BreathingAbnormalities(False, [])

    found: List[str] = []
    irregular = sum(1 for m in history if m.pattern is BreathingPattern.IRREGULAR)
    if irregular / len(history) > 0.5:
        found.append("Irregular breathing pattern detected")

    rates = np.array([m.respiratory_rate for m in history], dtype=np.float64)
    if float(rates.std()) > 5.0:
        found.append("High variability in breathing rate")

    abnormal = int(np.count_nonzero((rates < 10) | (rates > 25)))
    if abnormal / rates.size > 0.3:
        found.append("Sustained abnormal breathing rate")

    return BreathingAbnormalities(bool(found), found)
