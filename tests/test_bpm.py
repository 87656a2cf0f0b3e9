from __future__ import annotations

import numpy as np

from healthscreen.heart_rate import (
    analyze_pulse_signal,
    average_heart_rate,
    detect_heart_rate,
    detect_irregular_heartbeat,
    heart_rate_trend,
)
from healthscreen.measurements import HeartRateMeasurement, PPGSignal, Trend


def _pulse(f: float, dur: float, fs: float = 30.0, noise: float = 0.0) -> PPGSignal:
    t = np.arange(int(dur * fs)) / fs
    g = 100.0 + np.sin(2 * np.pi * f * t)
    if noise:
        g += noise * np.random.RandomState(0).randn(t.size)
    return PPGSignal.from_sequences(g + 20.0, g, g - 20.0, t)


def test_detect_heart_rate_on_sine() -> None:
    hr = detect_heart_rate(_pulse(1.2, 10.0), 30.0)
    assert 66 <= hr.heart_rate <= 78
    assert hr.confidence > 0
    assert hr.waveform is not None and hr.waveform.size == 300


def test_detect_heart_rate_needs_two_seconds() -> None:
    hr = detect_heart_rate(_pulse(1.2, 1.9), 30.0)
    assert hr.heart_rate == 0
    assert hr.confidence == 0


def test_analyze_pulse_signal_peaks() -> None:
    p = analyze_pulse_signal(_pulse(1.5, 12.0, noise=0.05), 30.0)
    assert 80 <= p.heart_rate <= 100
    assert np.all(np.diff(p.peak_indices) >= 12)
    assert len(p.peaks) == len(p.peak_indices)


def test_analyze_pulse_signal_insufficient() -> None:
    p = analyze_pulse_signal(_pulse(1.2, 1.0), 30.0)
    assert p.peak_indices == []
    assert p.quality.issues == ["Insufficient data"]


def test_average_heart_rate_weights_recent() -> None:
    history = [
        HeartRateMeasurement(60, 100, timestamp=990.0),
        HeartRateMeasurement(90, 100, timestamp=995.0),
    ]
    # weights 1 and 2
    assert average_heart_rate(history, 30.0, now=1000.0) == 80
    assert average_heart_rate(history, 30.0, now=2000.0) == 0


def test_heart_rate_trend() -> None:
    rising = [HeartRateMeasurement(60 + 5 * i, 90, timestamp=100.0 + i) for i in range(5)]
    assert heart_rate_trend(rising, 60.0, now=106.0) is Trend.INCREASING
    falling = [HeartRateMeasurement(80 - 5 * i, 90, timestamp=100.0 + i) for i in range(5)]
    assert heart_rate_trend(falling, 60.0, now=106.0) is Trend.DECREASING
    flat = [HeartRateMeasurement(70, 90, timestamp=100.0 + i) for i in range(5)]
    assert heart_rate_trend(flat, 60.0, now=106.0) is Trend.STABLE


def test_irregular_heartbeat() -> None:
    regular = list(range(0, 300, 25))
    assert detect_irregular_heartbeat(regular, 30.0) == (False, 0)
    irregular = [0, 10, 40, 50, 90, 100, 150]
    flagged, variability = detect_irregular_heartbeat(irregular, 30.0)
    assert flagged
    assert variability > 20
