from __future__ import annotations

import numpy as np

from healthscreen.peaks import calculate_ibi, detect_peaks
from healthscreen.spectrum import fft, find_dominant_frequency, hanning, welch_psd


def test_detect_peaks_respects_min_distance() -> None:
    x = np.random.RandomState(1).randn(500)
    for min_distance in (1, 5, 13):
        peaks = detect_peaks(x, min_distance, 0.2)
        assert peaks
        assert np.all(np.diff(peaks) >= min_distance)


def test_detect_peaks_on_sine() -> None:
    fs = 30.0
    t = np.arange(0, 10.0, 1 / fs)
    x = np.sin(2 * np.pi * 1.2 * t)
    peaks = detect_peaks(x, 10, 0.5)
    d = np.diff(peaks)
    assert len(peaks) >= 11
    assert np.all((d >= 24) & (d <= 26))


def test_detect_peaks_short_or_flat() -> None:
    assert detect_peaks([1.0, 2.0]) == []
    assert detect_peaks(np.ones(50)) == []


def test_calculate_ibi_ms() -> None:
    assert np.allclose(calculate_ibi([0, 30, 60], 30.0), [1000.0, 1000.0])
    assert calculate_ibi([5], 30.0).size == 0


def test_fft_bins_and_scaling() -> None:
    n = 64
    x = np.cos(2 * np.pi * 4 * np.arange(n) / n)
    spec = fft(x)
    assert spec.magnitudes.size == 32
    assert np.isclose(spec.magnitudes[4], n / 2)
    assert fft(np.ones(5)).magnitudes.size == 3


def test_find_dominant_frequency() -> None:
    fs = 30.0
    t = np.arange(300) / fs
    dom = find_dominant_frequency(np.sin(2 * np.pi * 1.2 * t), fs, 0.7, 4.0)
    assert np.isclose(dom.frequency, 1.2)
    assert dom.confidence == 100.0


def test_find_dominant_frequency_degenerate() -> None:
    dom = find_dominant_frequency(np.zeros(100), 30.0)
    assert dom.frequency == 0.0
    assert dom.confidence == 0.0


def test_hanning_endpoints() -> None:
    w = hanning(9)
    assert np.isclose(w[0], 0.0) and np.isclose(w[-1], 0.0)
    assert np.isclose(w[4], 1.0)


def test_welch_psd_segments() -> None:
    x = np.random.RandomState(0).randn(512)
    psd = welch_psd(x, 256, 128)
    assert psd.magnitudes.size == 128
    assert welch_psd(x[:100], 256, 128).magnitudes.size == 0
