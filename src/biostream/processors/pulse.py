"""PPG (optical-pulse) channel processor.

Turns a buffer of red/IR samples into a :class:`PulseWindow` carrying the
filtered channels, per-sample SQI, heart rate, a single-window RMSSD, SpO2 and
the RR intervals the aggregator accumulates for longer-horizon HRV.

The processor keeps no state between windows.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

import numpy as np

from biostream.analytics import features
from biostream.analytics.filters import bandpass_filter, moving_average, remove_dc
from biostream.analytics.peaks import (
    adaptive_threshold_peaks,
    coefficient_of_variation,
    derivative_peaks,
    filter_rr,
    rr_intervals_ms,
    select_best_peaks,
    threshold_peaks,
    validate_heart_rate,
    weighted_heart_rate,
)
from biostream.analytics.spo2 import estimate_spo2
from biostream.analytics.sqi import PPG_WINDOW, ppg_sqi
from biostream.decoders.pulse import PulseSample
from biostream.errors import InsufficientData, check_invariant
from biostream.protocol import PPG_SAMPLE_RATE

logger = logging.getLogger(__name__)

MIN_SAMPLES = 50
EDGE_TRIM = 100
TRIM_EXACT = 500

BAND_LO = 0.5
BAND_HI = 5.0
FILTER_ORDER = 2

MIN_HR_STD = 10.0

# RR intervals handed to the aggregator
AGG_PEAK_FRACTION = 0.5
AGG_MIN_DISTANCE = 20
AGG_RR_MIN_MS = 300.0
AGG_RR_MAX_MS = 1200.0

# Peak summary on filtered red
INFO_PEAK_FRACTION = 0.4
INFO_MIN_DISTANCE = 10

GATE_TAIL = 10

# Quick check
QUICK_MIN_SAMPLES = 10
SATURATION = 500.0
WEAK = 10.0
MIN_VARIANCE = 1.0
GOOD_SCORE = 0.7


@dataclass
class PeakInfo:
    count: int = 0
    mean_interval: float = 0.0  # samples
    quality: float = 0.0

    def to_dict(self) -> dict[str, float]:
        return {
            "count": self.count,
            "mean_interval": round(self.mean_interval, 2),
            "quality": round(self.quality, 3),
        }


@dataclass
class WindowHRV:
    """Short-horizon HRV over one window's heart-rate peak set."""

    rmssd: float = 0.0
    sdnn: float = 0.0
    sdsd: float = 0.0
    avnn: float = 0.0
    pnn50: float = 0.0
    pnn20: float = 0.0
    stress_index: float = 0.0
    hr_max: float = 0.0
    hr_min: float = 0.0

    @classmethod
    def from_rr(cls, rr: np.ndarray) -> WindowHRV:
        if len(rr) < 2:
            return cls()
        mean_rr = features.avnn(rr)
        sd = features.sdnn(rr)
        rm = features.compute_rmssd(rr)
        rates = 60000.0 / np.asarray(rr, dtype=np.float64)
        return cls(
            rmssd=rm,
            sdnn=sd,
            sdsd=features.sdsd(rr),
            avnn=mean_rr,
            pnn50=features.pnn50(rr),
            pnn20=features.pnn20(rr),
            stress_index=features.stress_index(sd, rm, mean_rr),
            hr_max=float(rates.max()),
            hr_min=float(rates.min()),
        )


@dataclass
class PulseWindow:
    """Result of one PPG processing pass."""

    timestamps_ms: np.ndarray
    red: np.ndarray
    ir: np.ndarray
    red_sqi: np.ndarray
    ir_sqi: np.ndarray
    overall_sqi: np.ndarray
    sqi: float
    heart_rate: int
    rmssd: float
    spo2: int
    rr_intervals: list[float] = field(default_factory=list)
    hrv: WindowHRV = field(default_factory=WindowHRV)
    peak_info: PeakInfo = field(default_factory=PeakInfo)

    @property
    def gate_sqi(self) -> float:
        """Mean of the most recent overall SQI values."""
        if len(self.overall_sqi) == 0:
            return 0.0
        return float(np.mean(self.overall_sqi[-GATE_TAIL:]))

    def __repr__(self) -> str:
        return (
            f"PulseWindow(n={len(self.ir)}, hr={self.heart_rate}bpm, "
            f"rmssd={self.rmssd:.1f}ms, spo2={self.spo2}%, sqi={self.sqi:.0f})"
        )

    def to_dict(self) -> dict:
        return {
            "samples": len(self.ir),
            "start_ms": float(self.timestamps_ms[0]) if len(self.timestamps_ms) else None,
            "sqi": round(self.sqi, 2),
            "gate_sqi": round(self.gate_sqi, 2),
            "heart_rate": self.heart_rate,
            "rmssd": round(self.rmssd, 2),
            "spo2": self.spo2,
            "rr_intervals": [round(rr, 1) for rr in self.rr_intervals],
            "peaks": self.peak_info.to_dict(),
        }


@dataclass
class PulseQualityCheck:
    is_good: bool
    score: float
    issues: list[str] = field(default_factory=list)


def trim_edges(n: int) -> slice:
    """Slice that drops the filter-transient edges of an *n*-sample buffer."""
    if n == TRIM_EXACT:
        return slice(EDGE_TRIM, TRIM_EXACT)
    if n > TRIM_EXACT:
        return slice(EDGE_TRIM, n - EDGE_TRIM)
    return slice(0, n)


class PulseProcessor:
    """Stateless PPG window processor."""

    def __init__(self, fs: float = PPG_SAMPLE_RATE):
        self.fs = fs

    def _filter(self, data: np.ndarray) -> np.ndarray:
        return bandpass_filter(
            remove_dc(data), self.fs, BAND_LO, BAND_HI,
            order=FILTER_ORDER, zero_phase=True,
        )

    # -- heart rate ---------------------------------------------------------

    def heart_rate_peaks(self, ir_filtered: np.ndarray) -> list[int]:
        """Best-scoring peak set on the smoothed, zero-mean IR signal."""
        smoothed = moving_average(ir_filtered, 3)
        centered = smoothed - smoothed.mean()
        if float(np.std(centered)) < MIN_HR_STD:
            logger.debug("PPG heart rate skipped: signal too flat")
            return []
        candidates = [
            adaptive_threshold_peaks(centered, self.fs),
            derivative_peaks(centered, self.fs),
        ]
        return select_best_peaks(candidates, centered, self.fs)

    def heart_rate(self, peaks: Sequence[int]) -> tuple[int, np.ndarray]:
        """(bpm, cleaned RR) from a peak set; bpm is 0 when rejected."""
        if len(peaks) < 2:
            return 0, np.array([], dtype=np.float64)
        rr = filter_rr(rr_intervals_ms(peaks, self.fs))
        if len(rr) == 0:
            return 0, rr
        return validate_heart_rate(weighted_heart_rate(rr), rr), rr

    # -- auxiliary outputs --------------------------------------------------

    def aggregator_rr(self, ir_raw: np.ndarray) -> list[float]:
        """RR intervals from the unfiltered IR channel for long-horizon HRV."""
        peaks = threshold_peaks(ir_raw, AGG_PEAK_FRACTION, AGG_MIN_DISTANCE)
        rr = rr_intervals_ms(peaks, self.fs)
        return [float(v) for v in rr if AGG_RR_MIN_MS <= v <= AGG_RR_MAX_MS]

    def peak_info(self, red_filtered: np.ndarray) -> PeakInfo:
        peaks = threshold_peaks(red_filtered, INFO_PEAK_FRACTION, INFO_MIN_DISTANCE)
        if len(peaks) < 2:
            return PeakInfo(count=len(peaks))
        spacing = np.diff(np.asarray(peaks, dtype=np.float64))
        cv = coefficient_of_variation(spacing)
        return PeakInfo(
            count=len(peaks),
            mean_interval=float(spacing.mean()),
            quality=max(0.0, min(1.0, 1.0 - cv)),
        )

    # -- entry points -------------------------------------------------------

    def process(self, samples: Sequence[PulseSample]) -> PulseWindow:
        """Process a buffer of PPG samples.

        Raises:
            InsufficientData: fewer than 50 samples.
        """
        n_in = len(samples)
        if n_in < MIN_SAMPLES:
            raise InsufficientData(n_in, MIN_SAMPLES)

        kept = list(samples)[trim_edges(n_in)]
        ts = np.array([s.timestamp_ms for s in kept], dtype=np.float64)
        red_raw = np.array([s.red for s in kept], dtype=np.float64)
        ir_raw = np.array([s.ir for s in kept], dtype=np.float64)

        red = self._filter(red_raw)
        ir = self._filter(ir_raw)
        check_invariant(len(red) == len(ir) == len(ts), "PPG channel lengths diverged")

        red_sqi = ppg_sqi(red, window=PPG_WINDOW)
        ir_sqi = ppg_sqi(ir, window=PPG_WINDOW)
        overall_sqi = (red_sqi + ir_sqi) / 2.0

        peaks = self.heart_rate_peaks(ir)
        bpm, peak_rr = self.heart_rate(peaks)
        window_hrv = WindowHRV.from_rr(peak_rr)

        return PulseWindow(
            timestamps_ms=ts,
            red=red,
            ir=ir,
            red_sqi=red_sqi,
            ir_sqi=ir_sqi,
            overall_sqi=overall_sqi,
            sqi=float(overall_sqi.mean()) if len(overall_sqi) else 0.0,
            heart_rate=bpm,
            rmssd=window_hrv.rmssd,
            spo2=estimate_spo2(red_raw, ir_raw),
            rr_intervals=self.aggregator_rr(ir_raw),
            hrv=window_hrv,
            peak_info=self.peak_info(red),
        )

    def quick_quality_check(self, samples: Sequence[PulseSample]) -> PulseQualityCheck:
        """Cheap saturation / flatness screen of a raw buffer."""
        if len(samples) < QUICK_MIN_SAMPLES:
            return PulseQualityCheck(is_good=False, score=0.0, issues=["insufficient data"])

        red = np.array([s.red for s in samples], dtype=np.float64)
        ir = np.array([s.ir for s in samples], dtype=np.float64)
        issues: list[str] = []
        score = 1.0

        peak_red, peak_ir = float(np.abs(red).max()), float(np.abs(ir).max())
        if peak_red > SATURATION or peak_ir > SATURATION:
            issues.append("saturation")
            score *= 0.3
        if peak_red < WEAK or peak_ir < WEAK:
            issues.append("weak signal")
            score *= 0.6
        if float(np.var(red)) < MIN_VARIANCE and float(np.var(ir)) < MIN_VARIANCE:
            issues.append("flat signal")
            score *= 0.4

        return PulseQualityCheck(is_good=score >= GOOD_SCORE, score=score, issues=issues)
