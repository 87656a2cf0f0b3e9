"""Peak detection and inter-beat interval utilities."""

from __future__ import annotations

from typing import List, Sequence

import numpy as np

from .preprocess import normalize


def detect_peaks(
    signal,
    min_distance: int = 10,
    threshold: float = 0.5,
) -> List[int]:
    """Return indices of local maxima of the min-max normalized signal.

    A sample qualifies when it is strictly greater than both neighbours,
    above ``threshold`` (0..1 scale) and at least ``min_distance`` samples
    after the previously accepted peak. The scan is greedy left-to-right, so
    the first of two nearby candidates wins.
    """
    y = normalize(signal)
    if y.size < 3:
        return []
    mid = y[1:-1]
    candidates = np.flatnonzero((mid > y[:-2]) & (mid > y[2:]) & (mid > threshold)) + 1
    peaks: List[int] = []
    for i in candidates:
        if not peaks or i - peaks[-1] >= min_distance:
            peaks.append(int(i))
    return peaks


def calculate_ibi(peak_indices: Sequence[int], sample_rate: float = 30.0) -> np.ndarray:
    """Inter-beat intervals in milliseconds from consecutive peak indices."""
    idx = np.asarray(peak_indices, dtype=np.float64)
    if idx.size < 2 or sample_rate <= 0:
        return np.zeros(0, dtype=np.float64)
    return np.diff(idx) / float(sample_rate) * 1000.0
