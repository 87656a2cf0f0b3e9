"""Quality metrics for rPPG signals.

SNR is the ratio of total power to variance about the mean, stability is
derived from the coefficient of variation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

import numpy as np

MIN_SNR_DB = 5.0
MIN_STABILITY = 50.0


@dataclass(frozen=True)
class SignalQuality:
    snr: float  # dB
    stability: float  # 0..100
    acceptable: bool
    issues: List[str] = field(default_factory=list)


def calculate_snr(signal) -> float:
    """``10 * log10(mean(x^2) / var(x))``; infinite for a flat signal."""
    x = np.asarray(signal, dtype=np.float64).reshape(-1)
    if x.size == 0:
        return 0.0
    signal_power = float(np.mean(x * x))
    noise_power = float(np.var(x))
    if noise_power == 0.0:
        return float("inf")
    if signal_power == 0.0:
        return float("-inf")
    return 10.0 * float(np.log10(signal_power / noise_power))


def assess_signal_quality(signal) -> SignalQuality:
    """Score SNR and stability and list the user-facing issues."""
    x = np.asarray(signal, dtype=np.float64).reshape(-1)
    if x.size == 0:
        return SignalQuality(0.0, 0.0, False, ["Insufficient data"])
    snr = calculate_snr(x)
    mean = float(x.mean())
    std = float(x.std())
    cv = std / abs(mean) if mean != 0.0 else 1.0
    stability = float(np.clip(100.0 * (1.0 - cv), 0.0, 100.0))

    issues: List[str] = []
    if snr < MIN_SNR_DB:
        issues.append("Low signal quality - improve lighting")
    if stability < MIN_STABILITY:
        issues.append("Unstable signal - stay still")
    acceptable = snr >= MIN_SNR_DB and stability >= MIN_STABILITY
    return SignalQuality(snr, stability, acceptable, issues)
