"""Frequency-domain HRV (LF / HF power) from a buffer of RR intervals.

Algorithm:
1. Screen the buffer: at least 75% of intervals must lie in [300, 2000] ms,
   and at least 75% of successive valid intervals must change by <= 25%.
2. Interpolate the (irregularly sampled) RR series onto a uniform 4 Hz grid
   over cumulative beat time.
3. Welch periodogram: Hamming window, segment ``clamp(n // 2, 64, 256)``
   (never longer than the series), 50% overlap, FFT length the next power of
   two, constant detrend, density scaling.
4. Integrate the PSD over LF (0.04-0.15 Hz) and HF (0.15-0.4 Hz) with linear
   interpolation at the band edges and convert s^2 to ms^2.

A buffer that fails any check raises :class:`UnstableSpectrum`; callers keep
their previous values.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np
from scipy import signal as sig

from biostream.errors import UnstableSpectrum


# Interpolation target sample rate
INTERP_FS = 4.0  # Hz

LF_BAND = (0.04, 0.15)
HF_BAND = (0.15, 0.40)
HF_EXTENDED_BAND = (0.12, 0.50)

# Screening
VALID_RR_MIN_MS = 300.0
VALID_RR_MAX_MS = 2000.0
MIN_VALIDITY = 0.75
MAX_CHANGE = 0.25
MIN_STABILITY = 0.75

MIN_INTERVALS = 30
MIN_RESAMPLED = 16

SEGMENT_MIN = 64
SEGMENT_MAX = 256

S2_TO_MS2 = 1e6


@dataclass
class LFHFResult:
    """Band powers (ms^2) and screening ratios for one spectral pass."""

    lf_power: float
    hf_power: float
    validity: float
    stability: float
    used_extended_hf: bool = False

    @property
    def ratio(self) -> float:
        return self.lf_power / self.hf_power if self.hf_power > 0 else 0.0

    def __repr__(self) -> str:
        return (
            f"LFHFResult(lf={self.lf_power:.1f}ms², hf={self.hf_power:.1f}ms², "
            f"ratio={self.ratio:.2f})"
        )


# ---------------------------------------------------------------------------
# Screening
# ---------------------------------------------------------------------------


def screen_rr(rr_intervals_ms: Sequence[float]) -> tuple[float, float]:
    """Return (validity, stability) ratios, raising if either is too low."""
    rr = np.asarray(rr_intervals_ms, dtype=np.float64)
    if len(rr) == 0:
        raise UnstableSpectrum("empty RR buffer", validity=0.0, stability=0.0)

    valid = rr[(rr >= VALID_RR_MIN_MS) & (rr <= VALID_RR_MAX_MS)]
    validity = len(valid) / len(rr)
    if validity < MIN_VALIDITY:
        raise UnstableSpectrum(
            f"RR validity {validity:.2f} below {MIN_VALIDITY}",
            validity=validity,
            stability=0.0,
        )

    if len(valid) < 2:
        stability = 1.0
    else:
        change = np.abs(np.diff(valid)) / valid[:-1]
        stability = 1.0 - float(np.sum(change > MAX_CHANGE)) / (len(valid) - 1)
    if stability < MIN_STABILITY:
        raise UnstableSpectrum(
            f"RR stability {stability:.2f} below {MIN_STABILITY}",
            validity=validity,
            stability=stability,
        )
    return validity, stability


# ---------------------------------------------------------------------------
# Resampling and spectrum
# ---------------------------------------------------------------------------


def _interpolate_rr(
    rr_intervals_ms: Sequence[float],
    fs: float = INTERP_FS,
) -> np.ndarray:
    """Interpolate RR intervals (in seconds) onto a uniform grid.

    Each interval is placed at the cumulative time its beat starts; the grid
    spans the total duration of the buffer, holding the last value past the
    final beat.
    """
    rr_sec = np.asarray(rr_intervals_ms, dtype=np.float64) / 1000.0
    if len(rr_sec) < 2:
        return np.array([], dtype=np.float64)
    t_vals = np.concatenate(([0.0], np.cumsum(rr_sec)[:-1]))
    total = float(np.sum(rr_sec))
    n = int(np.floor(total * fs))
    t_uniform = np.arange(n) / fs
    return np.interp(t_uniform, t_vals, rr_sec)


def _next_pow2(n: int) -> int:
    return 1 << (max(1, n) - 1).bit_length()


def welch_psd(data: np.ndarray, fs: float = INTERP_FS) -> tuple[np.ndarray, np.ndarray]:
    """Welch periodogram with the segment rules described above."""
    x = np.asarray(data, dtype=np.float64)
    nperseg = max(SEGMENT_MIN, min(SEGMENT_MAX, len(x) // 2))
    nperseg = min(nperseg, len(x))
    freqs, psd = sig.welch(
        x,
        fs=fs,
        window=np.hamming(nperseg),
        nperseg=nperseg,
        noverlap=nperseg // 2,
        nfft=_next_pow2(nperseg),
        detrend="constant",
        scaling="density",
    )
    return freqs, psd


def integrate_band(
    freqs: np.ndarray,
    psd: np.ndarray,
    lo: float,
    hi: float,
) -> float:
    """Trapezoid integral of *psd* over [lo, hi] with interpolated edges."""
    total = 0.0
    for i in range(len(freqs) - 1):
        f0, f1 = float(freqs[i]), float(freqs[i + 1])
        a, b = max(f0, lo), min(f1, hi)
        if b <= a:
            continue
        p0, p1 = float(psd[i]), float(psd[i + 1])
        slope = (p1 - p0) / (f1 - f0)
        pa = p0 + slope * (a - f0)
        pb = p0 + slope * (b - f0)
        total += (pa + pb) / 2.0 * (b - a)
    return total


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def compute_lf_hf(rr_intervals_ms: Sequence[float]) -> LFHFResult:
    """Compute LF and HF power (ms^2) for an RR buffer.

    Raises:
        UnstableSpectrum: the buffer is too short, too noisy or too erratic.
    """
    validity, stability = screen_rr(rr_intervals_ms)
    if len(rr_intervals_ms) < MIN_INTERVALS:
        raise UnstableSpectrum(
            f"{len(rr_intervals_ms)} RR intervals, need {MIN_INTERVALS}",
            validity=validity,
            stability=stability,
        )

    resampled = _interpolate_rr(rr_intervals_ms)
    if len(resampled) < MIN_RESAMPLED:
        raise UnstableSpectrum(
            f"{len(resampled)} resampled points, need {MIN_RESAMPLED}",
            validity=validity,
            stability=stability,
        )

    freqs, psd = welch_psd(resampled)
    lf = integrate_band(freqs, psd, *LF_BAND) * S2_TO_MS2
    hf = integrate_band(freqs, psd, *HF_BAND) * S2_TO_MS2

    extended = False
    if hf < 1.0 and lf > 10.0:
        hf_ext = integrate_band(freqs, psd, *HF_EXTENDED_BAND) * S2_TO_MS2
        if hf_ext > hf * 1.5:
            hf = hf_ext
            extended = True

    return LFHFResult(
        lf_power=lf,
        hf_power=hf,
        validity=validity,
        stability=stability,
        used_extended_hf=extended,
    )
