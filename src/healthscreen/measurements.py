"""Measurement records produced by the vital-sign extractors.

Every record is created fresh per extraction call and never mutated. Times
are epoch seconds. ``to_dict`` gives JSON-ready values for the persistence
layer.
"""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import List, Optional

import numpy as np

from .quality import SignalQuality


class StressLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class BreathingPattern(str, Enum):
    REGULAR = "regular"
    IRREGULAR = "irregular"


class Trend(str, Enum):
    INCREASING = "increasing"
    STABLE = "stable"
    DECREASING = "decreasing"


def _jsonable(value):
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


class _Record:
    def to_dict(self) -> dict:
        return _jsonable(asdict(self))  # type: ignore[call-overload]


@dataclass(frozen=True)
class PPGSignal:
    """Snapshot of the multi-channel sample buffer."""

    red: np.ndarray
    green: np.ndarray
    blue: np.ndarray
    timestamps: np.ndarray

    @classmethod
    def from_sequences(cls, red, green, blue, timestamps=None) -> "PPGSignal":
        r = np.asarray(red, dtype=np.float64).reshape(-1)
        g = np.asarray(green, dtype=np.float64).reshape(-1)
        b = np.asarray(blue, dtype=np.float64).reshape(-1)
        if timestamps is None:
            t = np.arange(g.size, dtype=np.float64)
        else:
            t = np.asarray(timestamps, dtype=np.float64).reshape(-1)
        if not r.size == g.size == b.size == t.size:
            raise ValueError("red, green, blue and timestamps must have equal lengths")
        return cls(r, g, b, t)

    def __len__(self) -> int:
        return int(self.green.size)

    def tail(self, count: int) -> "PPGSignal":
        count = max(int(count), 0)
        if count == 0:
            empty = np.zeros(0, dtype=np.float64)
            return PPGSignal(empty, empty, empty, empty)
        return PPGSignal(
            self.red[-count:], self.green[-count:], self.blue[-count:], self.timestamps[-count:]
        )


@dataclass(frozen=True)
class HeartRateMeasurement(_Record):
    heart_rate: int  # BPM, 0 when invalid
    confidence: int  # 0..100
    timestamp: float = field(default_factory=time.time)
    waveform: Optional[np.ndarray] = None


@dataclass(frozen=True)
class ProcessedSignal(_Record):
    filtered: np.ndarray
    peak_indices: List[int]
    peaks: List[float]
    heart_rate: int
    quality: SignalQuality


@dataclass(frozen=True)
class HRVMeasurement(_Record):
    sdnn: int  # ms
    rmssd: int  # ms
    pnn50: int  # percent
    stress_level: StressLevel
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class SpO2Measurement(_Record):
    spo2: int  # percent, 0 when unavailable
    confidence: int
    timestamp: float = field(default_factory=time.time)
    trend: Optional[Trend] = None


@dataclass(frozen=True)
class BloodPressureMeasurement(_Record):
    systolic: int  # mmHg
    diastolic: int  # mmHg
    confidence: int
    calibrated: bool
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class RespiratoryRateMeasurement(_Record):
    respiratory_rate: int  # breaths per minute
    pattern: BreathingPattern
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class VitalSignsResult(_Record):
    heart_rate: HeartRateMeasurement
    hrv: HRVMeasurement
    spo2: SpO2Measurement
    blood_pressure: BloodPressureMeasurement
    respiratory_rate: RespiratoryRateMeasurement
    overall_quality: int  # 0..100
    health_score: int  # 0..100


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves rounded up (2.5 -> 3, -2.5 -> -2)."""
    return int(np.floor(float(value) + 0.5))
