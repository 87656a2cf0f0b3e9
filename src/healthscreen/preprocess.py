"""Signal conditioning for rPPG channel traces.

All functions are stateless array -> array transforms that return a new
float64 array of the same length as the input (``remove_outliers`` may
shorten it).
"""

from __future__ import annotations

import numpy as np
from scipy.signal import lfilter

# Smoothing factor shared by both stages of ``bandpass_filter``
FILTER_ALPHA = 0.1


def _as_array(x) -> np.ndarray:
    return np.asarray(x, dtype=np.float64).reshape(-1)


def detrend(signal) -> np.ndarray:
    """Remove the DC component and the least-squares linear trend."""
    x = _as_array(signal)
    n = x.size
    if n == 0:
        return np.zeros(0, dtype=np.float64)
    x = x - x.mean()
    if n == 1:
        return x
    idx = np.arange(n, dtype=np.float64)
    sum_x = idx.sum()
    sum_y = x.sum()
    slope = (n * np.dot(idx, x) - sum_x * sum_y) / (n * np.dot(idx, idx) - sum_x * sum_x)
    intercept = (sum_y - slope * sum_x) / n
    return x - (slope * idx + intercept)


def bandpass_filter(
    signal,
    low_hz: float,
    high_hz: float,
    sample_rate: float = 30.0,
) -> np.ndarray:
    """Two-stage exponential IIR: high-pass followed by low-pass.

    This is an approximation of a band-pass, not a precision filter. The
    response depends only on ``FILTER_ALPHA``; ``low_hz``, ``high_hz`` and
    ``sample_rate`` are accepted so call sites document the intended band.
    Downstream thresholds (SNR, peak thresholds) are tuned against this exact
    response, so it must not be swapped for a Butterworth design.

    High-pass: ``y[i] = a * (y[i-1] + x[i] - x[i-1])`` with the sample before
    the first taken as ``x[0]`` for both ``x`` and ``y``.
    Low-pass: ``z[i] = a * y[i] + (1 - a) * z[i-1]`` seeded with ``y[0]``.
    """
    x = _as_array(signal)
    if x.size == 0:
        return np.zeros(0, dtype=np.float64)
    a = FILTER_ALPHA
    # Zero filter state equals seeding both histories with x[0]: y[0] = a * x[0]
    high = lfilter([a, -a], [1.0, -a], x)
    zi = np.array([(1.0 - a) * high[0]])
    low, _ = lfilter([a], [1.0, -(1.0 - a)], high, zi=zi)
    return np.asarray(low, dtype=np.float64)


def normalize(signal) -> np.ndarray:
    """Min-max scale to [0, 1]; a flat signal maps to 0.5."""
    x = _as_array(signal)
    if x.size == 0:
        return x.copy()
    lo = float(x.min())
    rng = float(x.max()) - lo
    if rng == 0.0:
        return np.full(x.size, 0.5, dtype=np.float64)
    return (x - lo) / rng


def standardize(signal) -> np.ndarray:
    """Z-score with population standard deviation; zero std gives zeros."""
    x = _as_array(signal)
    if x.size == 0:
        return x.copy()
    std = float(x.std())
    if std == 0.0:
        return np.zeros(x.size, dtype=np.float64)
    return (x - x.mean()) / std


def moving_average(signal, window_size: int = 5) -> np.ndarray:
    """Centred moving average, window truncated at the signal boundaries.

    Args:
        signal: 1D array.
        window_size: nominal window length; the half-width is
            ``window_size // 2`` on each side.
    """
    x = _as_array(signal)
    n = x.size
    if n == 0:
        return x.copy()
    half = max(int(window_size), 1) // 2
    csum = np.concatenate(([0.0], np.cumsum(x)))
    idx = np.arange(n)
    start = np.maximum(0, idx - half)
    end = np.minimum(n, idx + half + 1)
    return (csum[end] - csum[start]) / (end - start)


def remove_outliers(values) -> np.ndarray:
    """Drop values outside [Q1 - 1.5 IQR, Q3 + 1.5 IQR], keeping order.

    Quartiles are read at sorted positions ``floor(0.25 n)`` and
    ``floor(0.75 n)``. Fewer than four values are returned unchanged.
    """
    x = _as_array(values)
    if x.size < 4:
        return x.copy()
    s = np.sort(x)
    q1 = s[int(np.floor(s.size * 0.25))]
    q3 = s[int(np.floor(s.size * 0.75))]
    iqr = q3 - q1
    keep = (x >= q1 - 1.5 * iqr) & (x <= q3 + 1.5 * iqr)
    return x[keep]


def interpolate(signal, target_length: int) -> np.ndarray:
    """Linearly resample ``signal`` to ``target_length`` samples."""
    x = _as_array(signal)
    target_length = int(target_length)
    if target_length <= 0 or x.size == 0:
        return np.zeros(max(target_length, 0), dtype=np.float64)
    if x.size == target_length:
        return x.copy()
    if target_length == 1:
        return x[:1].copy()
    positions = np.linspace(0.0, x.size - 1, target_length)
    return np.interp(positions, np.arange(x.size, dtype=np.float64), x)
