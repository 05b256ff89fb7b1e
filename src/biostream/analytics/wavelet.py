"""Morlet wavelet power spectrum and EEG band powers.

Power at frequency f is the mean squared magnitude of the valid correlation
between the signal and a complex Morlet wavelet, in decibels:

    w[i] = norm * exp(-t^2 / (2 sigma^2)) * exp(j 2 pi f t),  t = (i - c) / fs
    norm = pi^-0.25 * sqrt(2 / sigma)
    P(f) = 10 * log10(mean |<x, w>|^2)       (-100 dB when zero)

Wavelet length is ``floor(sigma * fs / f)`` clamped to
``[max(32, floor(fs / f)), min(n, floor(2 fs / f))]``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, asdict

import numpy as np

SIGMA = 7.0
MIN_SAMPLES = 125
FLOOR_DB = -100.0

# (lo, hi) Hz, half-open
BANDS: dict[str, tuple[float, float]] = {
    "delta": (0.5, 4.0),
    "theta": (4.0, 8.0),
    "alpha": (8.0, 13.0),
    "beta": (13.0, 30.0),
    "gamma": (30.0, 50.0),
}

DEFAULT_FREQUENCIES = np.arange(1.0, 46.0)  # 1..45 Hz


@dataclass
class BandPowers:
    """Summed spectrum per canonical EEG band."""

    delta: float = 0.0
    theta: float = 0.0
    alpha: float = 0.0
    beta: float = 0.0
    gamma: float = 0.0

    @property
    def total(self) -> float:
        return self.delta + self.theta + self.alpha + self.beta + self.gamma

    def absolute(self) -> BandPowers:
        return BandPowers(
            delta=abs(self.delta),
            theta=abs(self.theta),
            alpha=abs(self.alpha),
            beta=abs(self.beta),
            gamma=abs(self.gamma),
        )

    def to_dict(self) -> dict[str, float]:
        return {k: round(v, 3) for k, v in asdict(self).items()}


def wavelet_length(freq: float, fs: float, n: int, sigma: float = SIGMA) -> int:
    natural = int(math.floor(sigma * fs / freq))
    lower = max(32, int(math.floor(fs / freq)))
    upper = min(n, int(math.floor(2 * fs / freq)))
    return max(lower, min(upper, natural))


def morlet_wavelet(length: int, freq: float, fs: float, sigma: float = SIGMA) -> np.ndarray:
    """Complex Morlet wavelet of *length* samples centred on the middle sample."""
    center = (length - 1) / 2.0
    t = (np.arange(length) - center) / fs
    norm = math.pi ** -0.25 * math.sqrt(2.0 / sigma)
    gauss = np.exp(-(t * t) / (2.0 * sigma * sigma))
    return norm * gauss * np.exp(1j * 2.0 * math.pi * freq * t)


def wavelet_power(data: np.ndarray, freq: float, fs: float, sigma: float = SIGMA) -> float:
    """Mean wavelet power at *freq*, in dB."""
    x = np.asarray(data, dtype=np.float64)
    length = wavelet_length(freq, fs, len(x), sigma)
    if length > len(x):
        return FLOOR_DB
    w = morlet_wavelet(length, freq, fs, sigma)
    real = np.correlate(x, w.real, mode="valid")
    imag = np.correlate(x, w.imag, mode="valid")
    avg = float(np.mean(real * real + imag * imag))
    return 10.0 * math.log10(avg) if avg > 0 else FLOOR_DB


def power_spectrum(
    data: np.ndarray,
    fs: float,
    frequencies: np.ndarray = DEFAULT_FREQUENCIES,
    min_samples: int = MIN_SAMPLES,
) -> np.ndarray:
    """Wavelet power (dB) at each frequency; zeros when *data* is too short."""
    x = np.asarray(data, dtype=np.float64)
    if len(x) < min_samples:
        return np.zeros(len(frequencies))
    return np.array([wavelet_power(x, float(f), fs) for f in frequencies])


def band_powers(
    spectrum: np.ndarray,
    frequencies: np.ndarray,
    bands: dict[str, tuple[float, float]] = BANDS,
) -> BandPowers:
    """Sum spectrum bins into the canonical bands."""
    if len(spectrum) == 0 or len(frequencies) == 0:
        return BandPowers()
    power = np.asarray(spectrum, dtype=np.float64)
    freqs = np.asarray(frequencies, dtype=np.float64)
    sums = {}
    for name, (lo, hi) in bands.items():
        mask = (freqs >= lo) & (freqs < hi)
        sums[name] = float(power[mask].sum())
    return BandPowers(**sums)
