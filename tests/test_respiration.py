from __future__ import annotations

import numpy as np

from healthscreen.measurements import BreathingPattern, PPGSignal, RespiratoryRateMeasurement
from healthscreen.respiration import (
    RespiratoryLevel,
    assess_respiratory_rate,
    breathing_pattern,
    detect_breathing_abnormalities,
    detect_respiratory_rate,
)


def _breathing(f_rr: float, dur: float, fs: float = 30.0) -> PPGSignal:
    t = np.arange(int(dur * fs)) / fs
    g = 100.0 + np.sin(2 * np.pi * f_rr * t)
    return PPGSignal.from_sequences(g, g, g, t)


def test_respiratory_rate_from_baseline_wander() -> None:
    rr = detect_respiratory_rate(_breathing(0.25, 30.0), 30.0)
    assert 12 <= rr.respiratory_rate <= 18


def test_respiratory_rate_needs_six_seconds() -> None:
    rr = detect_respiratory_rate(_breathing(0.25, 5.0), 30.0)
    assert rr.respiratory_rate == 0
    assert rr.pattern is BreathingPattern.REGULAR


def test_breathing_pattern_cv() -> None:
    assert breathing_pattern([0, 100, 200, 300]) is BreathingPattern.REGULAR
    assert breathing_pattern([0, 60, 200, 230]) is BreathingPattern.IRREGULAR
    assert breathing_pattern([0, 100]) is BreathingPattern.IRREGULAR


def test_assess_respiratory_rate_by_age() -> None:
    assert assess_respiratory_rate(15, 30).level is RespiratoryLevel.NORMAL
    assert assess_respiratory_rate(19, 30).level is RespiratoryLevel.TACHYPNEA
    assert assess_respiratory_rate(19, 70).level is RespiratoryLevel.NORMAL
    assert assess_respiratory_rate(8, 70).level is RespiratoryLevel.BRADYPNEA


def test_breathing_abnormalities() -> None:
    steady = [RespiratoryRateMeasurement(15, BreathingPattern.REGULAR) for _ in range(6)]
    assert not detect_breathing_abnormalities(steady).has_abnormality
    assert not detect_breathing_abnormalities(steady[:4]).has_abnormality

    erratic = [
        RespiratoryRateMeasurement(rate, BreathingPattern.IRREGULAR)
        for rate in (6, 28, 8, 30, 7, 26)
    ]
    found = detect_breathing_abnormalities(erratic)
    assert found.has_abnormality
    assert "Irregular breathing pattern detected" in found.abnormalities
    assert "High variability in breathing rate" in found.abnormalities
    assert "Sustained abnormal breathing rate" in found.abnormalities
