from __future__ import annotations

import math

import numpy as np

from healthscreen.quality import assess_signal_quality, calculate_snr


def test_snr_flat_and_empty() -> None:
    assert math.isinf(calculate_snr(np.full(10, 3.0)))
    assert calculate_snr([]) == 0.0


def test_quality_of_offset_signal_is_acceptable() -> None:
    x = 0.5 + 0.05 * np.sin(np.linspace(0, 20, 300))
    q = assess_signal_quality(x)
    assert q.acceptable
    assert q.snr > 5.0
    assert q.stability > 50.0
    assert q.issues == []


def test_quality_of_zero_mean_noise_lists_both_issues() -> None:
    x = np.random.RandomState(0).randn(300)
    q = assess_signal_quality(x)
    assert not q.acceptable
    assert "Low signal quality - improve lighting" in q.issues
    assert "Unstable signal - stay still" in q.issues


def test_quality_empty() -> None:
    q = assess_signal_quality([])
    assert q.issues == ["Insufficient data"]
    assert not q.acceptable
