"""EEG (bio-electrical) channel processor.

Turns a buffer of two-channel EEG samples (>= 2 s at 250 Hz) into a
:class:`BioWindow`:

    notch 60 Hz -> band-pass 1-45 Hz -> drop 250-sample transient
    -> per-sample SQI -> quality mask -> Morlet spectrum -> band powers
    -> ratio indices
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

import numpy as np

from biostream.analytics.filters import bandpass_filter, notch_filter
from biostream.analytics.sqi import EEG_WINDOW, eeg_sqi
from biostream.analytics.wavelet import (
    DEFAULT_FREQUENCIES,
    BandPowers,
    band_powers,
    power_spectrum,
)
from biostream.decoders.bio import BioSample
from biostream.errors import InsufficientData, check_invariant
from biostream.protocol import EEG_SAMPLE_RATE

logger = logging.getLogger(__name__)

MIN_SAMPLES = 500
TRANSIENT_SAMPLES = 250
MIN_MASKED_SAMPLES = 100
MAINS_HZ = 60.0
BAND_LO = 1.0
BAND_HI = 45.0

# Quick check
QUICK_MIN_SAMPLES = 50
QUICK_DETAIL_SAMPLES = 125
LEAD_OFF_FRACTION = 0.1
SATURATION_UV = 200.0
WEAK_UV = 5.0
GOOD_SCORE = 0.7


@dataclass
class BioIndices:
    """Ratio indices derived from absolute ch1 band powers."""

    focus: float = 0.0
    relaxation: float = 0.0
    stress: float = 0.0
    hemispheric_balance: float = 0.0
    cognitive_load: float = 0.0
    emotional_stability: float = 0.0
    total_power: float = 0.0

    @property
    def attention_level(self) -> float:
        return self.focus

    @property
    def meditation_level(self) -> float:
        return self.relaxation

    def to_dict(self) -> dict[str, float]:
        return {
            "focus": round(self.focus, 4),
            "relaxation": round(self.relaxation, 4),
            "stress": round(self.stress, 4),
            "hemispheric_balance": round(self.hemispheric_balance, 4),
            "cognitive_load": round(self.cognitive_load, 4),
            "emotional_stability": round(self.emotional_stability, 4),
            "total_power": round(self.total_power, 3),
            "attention_level": round(self.attention_level, 4),
            "meditation_level": round(self.meditation_level, 4),
        }


@dataclass
class BioWindow:
    """Result of one EEG processing pass."""

    timestamps_ms: np.ndarray
    ch1: np.ndarray
    ch2: np.ndarray
    ch1_sqi: np.ndarray
    ch2_sqi: np.ndarray
    overall_sqi: np.ndarray
    ch1_quality: float
    ch2_quality: float
    overall: float  # % of samples passing the quality mask on both channels
    frequencies: np.ndarray
    ch1_power: np.ndarray
    ch2_power: np.ndarray
    ch1_bands: BandPowers = field(default_factory=BandPowers)
    ch2_bands: BandPowers = field(default_factory=BandPowers)
    indices: BioIndices = field(default_factory=BioIndices)

    @property
    def band_powers(self) -> BandPowers:
        return self.ch1_bands

    def __repr__(self) -> str:
        return (
            f"BioWindow(n={len(self.ch1)}, quality={self.overall:.0f}%, "
            f"alpha={self.ch1_bands.alpha:.1f}, focus={self.indices.focus:.2f})"
        )

    def to_dict(self) -> dict:
        return {
            "samples": len(self.ch1),
            "start_ms": float(self.timestamps_ms[0]) if len(self.timestamps_ms) else None,
            "quality": {
                "overall": round(self.overall, 2),
                "ch1": round(self.ch1_quality, 2),
                "ch2": round(self.ch2_quality, 2),
            },
            "band_powers": self.ch1_bands.to_dict(),
            "band_powers_ch2": self.ch2_bands.to_dict(),
            "indices": self.indices.to_dict(),
        }


@dataclass
class QualityCheck:
    """Fast pre-screen of a raw buffer."""

    is_good: bool
    score: float
    issues: list[str] = field(default_factory=list)
    ch1_quality: float | None = None
    ch2_quality: float | None = None

    def __repr__(self) -> str:
        flag = "good" if self.is_good else "poor"
        return f"QualityCheck({flag}, score={self.score:.2f}, issues={self.issues})"


# ---------------------------------------------------------------------------
# Index math
# ---------------------------------------------------------------------------


def _ratio(num: float, den: float) -> float:
    if den <= 0:
        return 0.0
    value = num / den
    return value if np.isfinite(value) else 0.0


def hemispheric_balance(left_alpha: float, right_alpha: float) -> float:
    """(L - R) / (L + R) on absolute alpha, clamped to [-1, 1]."""
    left, right = abs(left_alpha), abs(right_alpha)
    total = left + right
    if total > 0.001:
        balance = (left - right) / total
    elif left > 0 or right > 0:
        balance = 1.0 if left > right else -1.0
    else:
        balance = 0.0
    return max(-1.0, min(1.0, balance))


def compute_indices(ch1: BandPowers, ch2: BandPowers) -> BioIndices:
    a = ch1.absolute()
    return BioIndices(
        focus=_ratio(a.beta, a.alpha + a.theta),
        relaxation=_ratio(a.alpha, a.alpha + a.beta),
        stress=_ratio(a.beta + a.gamma, a.alpha + a.theta),
        hemispheric_balance=hemispheric_balance(ch1.alpha, ch2.alpha),
        cognitive_load=_ratio(a.theta, a.alpha),
        emotional_stability=_ratio(a.alpha + a.theta, a.gamma),
        total_power=ch1.total,
    )


def channel_quality(data: np.ndarray) -> float:
    """Heuristic 0-100 channel quality from spread and range."""
    x = np.asarray(data, dtype=np.float64)
    if len(x) == 0:
        return 0.0
    std = float(np.std(x))
    spread = float(x.max() - x.min())

    quality = 100.0
    if std < 5:
        quality -= 30
    elif std < 10:
        quality -= 15
    if spread > 500:
        quality -= 40
    elif spread > 300:
        quality -= 20
    if spread < 10:
        quality -= 50
    return max(0.0, min(100.0, quality))


# ---------------------------------------------------------------------------
# Processor
# ---------------------------------------------------------------------------


class BioProcessor:
    """Stateless EEG window processor."""

    def __init__(
        self,
        fs: float = EEG_SAMPLE_RATE,
        quality_threshold: float = 15.0,
        mains_hz: float = MAINS_HZ,
    ):
        self.fs = fs
        self.quality_threshold = quality_threshold
        self.mains_hz = mains_hz

    def _filter(self, data: np.ndarray) -> np.ndarray:
        notched = notch_filter(data, self.fs, freq=self.mains_hz)
        return bandpass_filter(notched, self.fs, BAND_LO, BAND_HI, order=4)

    def process(self, samples: Sequence[BioSample]) -> BioWindow:
        """Process a buffer of EEG samples.

        Raises:
            InsufficientData: fewer than 500 samples.
        """
        n_in = len(samples)
        if n_in < MIN_SAMPLES:
            raise InsufficientData(n_in, MIN_SAMPLES)

        ts = np.array([s.timestamp_ms for s in samples], dtype=np.float64)
        raw1 = np.array([s.ch1_uv for s in samples], dtype=np.float64)
        raw2 = np.array([s.ch2_uv for s in samples], dtype=np.float64)
        off1 = np.array([s.lead_off[0] for s in samples], dtype=bool)
        off2 = np.array([s.lead_off[1] for s in samples], dtype=bool)

        ch1 = self._filter(raw1)[TRANSIENT_SAMPLES:]
        ch2 = self._filter(raw2)[TRANSIENT_SAMPLES:]
        ts = ts[TRANSIENT_SAMPLES:]
        off1 = off1[TRANSIENT_SAMPLES:]
        off2 = off2[TRANSIENT_SAMPLES:]
        check_invariant(len(ch1) == len(ch2) == len(ts), "EEG channel lengths diverged")
        n = len(ch1)

        ch1_sqi = eeg_sqi(ch1, window=EEG_WINDOW)
        ch2_sqi = eeg_sqi(ch2, window=EEG_WINDOW)
        ch1_sqi[off1] = 0.0
        ch2_sqi[off2] = 0.0
        overall_sqi = (ch1_sqi + ch2_sqi) / 2.0

        mask1 = ch1_sqi >= self.quality_threshold
        mask2 = ch2_sqi >= self.quality_threshold
        good = int(np.sum(mask1 & mask2))

        if good > MIN_MASKED_SAMPLES:
            q1, q2 = ch1[mask1], ch2[mask2]
            m = min(len(q1), len(q2))
            data1, data2 = q1[:m], q2[:m]
        else:
            data1, data2 = ch1, ch2

        if len(data1) >= EEG_WINDOW:
            freqs = DEFAULT_FREQUENCIES.copy()
            p1 = power_spectrum(data1, self.fs, freqs)
            p2 = power_spectrum(data2, self.fs, freqs)
        else:
            logger.debug("EEG spectrum skipped: %d analysable samples", len(data1))
            freqs = np.array([], dtype=np.float64)
            p1 = np.array([], dtype=np.float64)
            p2 = np.array([], dtype=np.float64)

        bands1 = band_powers(p1, freqs)
        bands2 = band_powers(p2, freqs)

        return BioWindow(
            timestamps_ms=ts,
            ch1=ch1,
            ch2=ch2,
            ch1_sqi=ch1_sqi,
            ch2_sqi=ch2_sqi,
            overall_sqi=overall_sqi,
            ch1_quality=float(ch1_sqi.mean()),
            ch2_quality=float(ch2_sqi.mean()),
            overall=good / n * 100.0,
            frequencies=freqs,
            ch1_power=p1,
            ch2_power=p2,
            ch1_bands=bands1,
            ch2_bands=bands2,
            indices=compute_indices(bands1, bands2),
        )

    def quick_quality_check(self, samples: Sequence[BioSample]) -> QualityCheck:
        """Cheap contact / saturation screen of a raw buffer."""
        n = len(samples)
        if n < QUICK_MIN_SAMPLES:
            return QualityCheck(is_good=False, score=0.0, issues=["insufficient data"])

        issues: list[str] = []
        score = 1.0

        lead_off = sum(1 for s in samples if s.any_lead_off)
        if lead_off > n * LEAD_OFF_FRACTION:
            issues.append("electrode contact")
            score *= 0.5

        raw1 = np.array([s.ch1_uv for s in samples], dtype=np.float64)
        raw2 = np.array([s.ch2_uv for s in samples], dtype=np.float64)
        peak1, peak2 = float(np.abs(raw1).max()), float(np.abs(raw2).max())

        if peak1 > SATURATION_UV or peak2 > SATURATION_UV:
            issues.append("saturation")
            score *= 0.3
        if peak1 < WEAK_UV or peak2 < WEAK_UV:
            issues.append("weak signal")
            score *= 0.6

        q1 = q2 = None
        if n >= QUICK_DETAIL_SAMPLES:
            q1 = channel_quality(notch_filter(raw1, self.fs, freq=self.mains_hz))
            q2 = channel_quality(notch_filter(raw2, self.fs, freq=self.mains_hz))
            score *= (q1 + q2) / 2.0 / 100.0

        return QualityCheck(
            is_good=score >= GOOD_SCORE,
            score=score,
            issues=issues,
            ch1_quality=q1,
            ch2_quality=q2,
        )
