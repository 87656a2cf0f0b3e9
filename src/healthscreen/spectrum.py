"""Frequency-domain analysis: DFT magnitudes, dominant frequency, Welch PSD.

Magnitudes are unnormalized DFT magnitudes for bins ``0 .. ceil(n/2) - 1``,
the same values a direct O(n^2) DFT produces. ``numpy.fft.rfft`` is used for
speed; bin indexing and scaling are kept so downstream thresholds still hold.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class Spectrum:
    bins: np.ndarray  # bin index k
    magnitudes: np.ndarray


@dataclass(frozen=True)
class DominantFrequency:
    frequency: float  # Hz, 0.0 when nothing found in band
    magnitude: float
    confidence: float  # 0..100


def fft(signal) -> Spectrum:
    """Magnitude spectrum for bins 0..ceil(n/2)-1."""
    x = np.asarray(signal, dtype=np.float64).reshape(-1)
    n = x.size
    if n == 0:
        return Spectrum(np.zeros(0, dtype=np.int64), np.zeros(0, dtype=np.float64))
    n_bins = (n + 1) // 2
    mag = np.abs(np.fft.rfft(x))[:n_bins]
    return Spectrum(np.arange(n_bins), mag.astype(np.float64))


def find_dominant_frequency(
    signal,
    sample_rate: float = 30.0,
    min_freq: float = 0.7,
    max_freq: float = 4.0,
) -> DominantFrequency:
    """Pick the strongest bin inside [min_freq, max_freq].

    Confidence is ``min(100, peak / mean * 10)`` where the mean is taken over
    every bin of the spectrum, in band or not.
    """
    x = np.asarray(signal, dtype=np.float64).reshape(-1)
    spec = fft(x)
    if spec.magnitudes.size == 0 or sample_rate <= 0:
        return DominantFrequency(0.0, 0.0, 0.0)
    freqs = spec.bins * float(sample_rate) / x.size
    band = (freqs >= min_freq) & (freqs <= max_freq)
    peak_mag = 0.0
    peak_freq = 0.0
    if np.any(band):
        band_mag = spec.magnitudes[band]
        k = int(np.argmax(band_mag))
        if band_mag[k] > 0.0:
            peak_mag = float(band_mag[k])
            peak_freq = float(freqs[band][k])
    mean_mag = float(spec.magnitudes.mean())
    if mean_mag <= 0.0:
        return DominantFrequency(peak_freq, peak_mag, 0.0)
    confidence = min(100.0, peak_mag / mean_mag * 10.0)
    return DominantFrequency(peak_freq, peak_mag, confidence)


def hanning(length: int) -> np.ndarray:
    """Symmetric Hann taper ``0.5 * (1 - cos(2 pi i / (N - 1)))``."""
    if length <= 1:
        return np.ones(max(length, 0), dtype=np.float64)
    return np.hanning(length)


def welch_psd(signal, window_size: int = 256, overlap: int = 128) -> Spectrum:
    """Average Hann-tapered DFT magnitudes over overlapping segments.

    Returns an empty spectrum when the signal is shorter than one window.
    """
    x = np.asarray(signal, dtype=np.float64).reshape(-1)
    window_size = int(window_size)
    step = window_size - int(overlap)
    if window_size <= 0 or step <= 0 or x.size < window_size:
        return Spectrum(np.zeros(0, dtype=np.int64), np.zeros(0, dtype=np.float64))
    taper = hanning(window_size)
    segments = [
        fft(x[i : i + window_size] * taper).magnitudes
        for i in range(0, x.size - window_size + 1, step)
    ]
    psd = np.mean(np.vstack(segments), axis=0)
    return Spectrum(np.arange(psd.size), psd)
