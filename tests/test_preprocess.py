from __future__ import annotations

import numpy as np

from healthscreen.preprocess import (
    FILTER_ALPHA,
    bandpass_filter,
    detrend,
    interpolate,
    moving_average,
    normalize,
    remove_outliers,
    standardize,
)


def _reference_bandpass(x: np.ndarray) -> np.ndarray:
    a = FILTER_ALPHA
    high = np.zeros_like(x)
    # Both histories start at x[0]
    prev_x = x[0]
    y = x[0]
    for i, v in enumerate(x):
        y = a * (y + v - prev_x)
        prev_x = v
        high[i] = y
    low = np.zeros_like(x)
    z = high[0]
    for i, v in enumerate(high):
        z = a * v + (1 - a) * z
        low[i] = z
    return low


def test_bandpass_matches_explicit_recurrence() -> None:
    x = 100.0 + np.random.RandomState(0).randn(200)
    y = bandpass_filter(x, 0.7, 4.0, 30.0)
    assert y.shape == x.shape
    assert np.allclose(y, _reference_bandpass(x), atol=1e-9)


def test_bandpass_first_output_is_alpha_times_first_sample() -> None:
    y = bandpass_filter([50.0, 52.0, 49.0], 0.7, 4.0, 30.0)
    assert np.isclose(y[0], FILTER_ALPHA * 50.0)


def test_bandpass_empty() -> None:
    assert bandpass_filter([], 0.7, 4.0).size == 0


def test_detrend_removes_line() -> None:
    x = 3.0 + 2.0 * np.arange(50)
    assert np.allclose(detrend(x), 0.0, atol=1e-9)
    assert detrend([]).size == 0


def test_normalize_flat_signal_is_half() -> None:
    y = normalize(np.full(20, 7.0))
    assert np.all(y == 0.5)
    assert not np.any(np.isnan(y))


def test_normalize_range() -> None:
    y = normalize([2.0, 4.0, 6.0])
    assert np.allclose(y, [0.0, 0.5, 1.0])


def test_standardize_zero_std() -> None:
    assert np.all(standardize(np.ones(10)) == 0.0)
    z = standardize([1.0, 2.0, 3.0])
    assert np.isclose(z.mean(), 0.0)
    assert np.isclose(z.std(), 1.0)


def test_moving_average_truncates_at_edges() -> None:
    y = moving_average([1.0, 2.0, 3.0, 4.0, 5.0], 3)
    assert np.allclose(y, [1.5, 2.0, 3.0, 4.0, 4.5])


def test_remove_outliers_iqr() -> None:
    assert list(remove_outliers([1.0, 2.0, 3.0, 4.0, 100.0])) == [1.0, 2.0, 3.0, 4.0]
    # Fewer than four values are left alone
    assert list(remove_outliers([1.0, 2.0, 500.0])) == [1.0, 2.0, 500.0]


def test_interpolate_linear() -> None:
    assert np.allclose(interpolate([0.0, 10.0], 3), [0.0, 5.0, 10.0])
    assert interpolate([1.0, 2.0], 0).size == 0
