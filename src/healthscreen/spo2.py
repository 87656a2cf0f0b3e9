"""Blood oxygen saturation from the red/blue ratio of ratios.

``SpO2 = 110 - 25 R`` is an empirical curve; results are clamped to
90-100 % so readings below 90 are never reported from camera data.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

import numpy as np

from .measurements import PPGSignal, SpO2Measurement, Trend, round_half_up
from .preprocess import bandpass_filter, detrend, normalize

logger = logging.getLogger(__name__)

MIN_SAMPLES = 60
TREND_SAMPLES = 180
SPO2_MIN = 90.0
SPO2_MAX = 100.0
R_REFERENCE = 0.8


class SpO2Level(str, Enum):
    NORMAL = "normal"
    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"


@dataclass(frozen=True)
class SpO2Assessment:
    level: SpO2Level
    description: str
    action: str


def _pulsatile(channel: np.ndarray, sample_rate: float) -> np.ndarray:
    x = detrend(channel)
    x = bandpass_filter(x, 0.7, 4.0, sample_rate)
    return normalize(x)


def estimate_spo2(signal: PPGSignal, sample_rate: float = 30.0) -> SpO2Measurement:
    """Estimate SpO2 from red and blue channels.

    AC is the standard deviation of the conditioned channel, DC the mean of
    the raw channel.
    """
    if len(signal.red) < MIN_SAMPLES or len(signal.blue) < MIN_SAMPLES:
        return SpO2Measurement(spo2=0, confidence=0)

    red_ac = float(_pulsatile(signal.red, sample_rate).std())
    blue_ac = float(_pulsatile(signal.blue, sample_rate).std())
    red_dc = float(np.mean(signal.red))
    blue_dc = float(np.mean(signal.blue))
    if red_dc == 0.0 or blue_dc == 0.0 or blue_ac == 0.0:
        logger.debug("Degenerate red/blue components, SpO2 not computed")
        return SpO2Measurement(spo2=0, confidence=0)

    r = (red_ac / red_dc) / (blue_ac / blue_dc)
    spo2 = float(np.clip(110.0 - 25.0 * r, SPO2_MIN, SPO2_MAX))
    confidence = float(np.clip(100.0 - abs(r - R_REFERENCE) * 100.0, 0.0, 100.0))
    return SpO2Measurement(spo2=round_half_up(spo2), confidence=round_half_up(confidence))


def estimate_spo2_with_trend(signal: PPGSignal, sample_rate: float = 30.0) -> SpO2Measurement:
    """Estimate SpO2 and compare the first and last thirds of the last 6 s."""
    basic = estimate_spo2(signal, sample_rate)
    if len(signal.red) < TREND_SAMPLES:
        return SpO2Measurement(basic.spo2, basic.confidence, basic.timestamp, Trend.STABLE)

    recent = signal.tail(TREND_SAMPLES)
    seg = TREND_SAMPLES // 3
    readings = []
    for i in range(3):
        part = PPGSignal(
            recent.red[i * seg : (i + 1) * seg],
            recent.green[i * seg : (i + 1) * seg],
            recent.blue[i * seg : (i + 1) * seg],
            recent.timestamps[i * seg : (i + 1) * seg],
        )
        readings.append(estimate_spo2(part, sample_rate).spo2)

    trend = Trend.STABLE
    if readings[2] > readings[0] + 1:
        trend = Trend.INCREASING
    elif readings[2] < readings[0] - 1:
        trend = Trend.DECREASING
    return SpO2Measurement(basic.spo2, basic.confidence, basic.timestamp, trend)


def assess_spo2_level(spo2: float) -> SpO2Assessment:
    if spo2 >= 95:
        return SpO2Assessment(SpO2Level.NORMAL, "Normal oxygen saturation", "No action needed")
    if spo2 >= 90:
        return SpO2Assessment(
            SpO2Level.MILD,
            "Mildly low oxygen saturation",
            "Monitor and consult doctor if persistent",
        )
    if spo2 >= 85:
        return SpO2Assessment(
            SpO2Level.MODERATE, "Moderately low oxygen saturation", "Consult doctor soon"
        )
    return SpO2Assessment(
        SpO2Level.SEVERE, "Severely low oxygen saturation", "Seek immediate medical attention"
    )


def average_spo2(
    history: Sequence[SpO2Measurement],
    window_seconds: float = 30.0,
    now: Optional[float] = None,
) -> int:
    """Confidence-weighted mean of the measurements in the trailing window."""
    now = time.time() if now is None else now
    recent = [m for m in history if now - m.timestamp < window_seconds]
    total = sum(m.confidence / 100.0 for m in recent)
    if total <= 0.0:
        return 0
    return round_half_up(sum(m.spo2 * m.confidence / 100.0 for m in recent) / total)
