"""Cross-window analysis-metrics aggregator.

Accumulates quality-gated per-window metrics into bounded queues and keeps a
ring of beat-to-beat (RR) intervals long enough for time- and
frequency-domain HRV.  Each ``ingest_*`` call updates the relevant state and
:meth:`MetricsAggregator.snapshot` returns a fresh copy for sinks.

Spectral state machine::

    COLD --(ring >= 30)--> WARMING --(accepted)--> STABLE
                                                   |   ^
                                          (failure)|   |(accepted)
                                                   v   |
                                                  DEGRADED

A failed spectral pass never resets LF/HF to zero; the previous values stay
in place and the failure is reported through ``on_error``.
"""

from __future__ import annotations

import logging
import math
import time
from collections import Counter, deque
from dataclasses import dataclass, field, fields, asdict, replace
from enum import Enum
from typing import Callable, Deque, Generic, Iterable, TypeVar

from biostream.analytics.features import TimeDomainHRV, time_domain_hrv
from biostream.analytics.lfhf import LFHFResult, compute_lf_hf
from biostream.buffers import RingBuffer
from biostream.config import PipelineConfig
from biostream.errors import AggregationError, UnstableSpectrum
from biostream.processors.bio import BioWindow
from biostream.processors.inertial import InertialWindow
from biostream.processors.pulse import PulseWindow

logger = logging.getLogger(__name__)

M = TypeVar("M")

# Minimum accepted value per pulse field when averaging; pnn fields take any
# finite value.
PULSE_FIELD_MINIMUMS: dict[str, float | None] = {
    "bpm": 30.0,
    "sdnn": 1.0,
    "rmssd": 1.0,
    "pnn50": None,
    "lf_power": 0.1,
    "hf_power": 0.1,
    "lf_hf_ratio": 0.1,
    "stress_index": 0.01,
    "spo2": 70.0,
    "avnn": 100.0,
    "pnn20": None,
    "sdsd": 1.0,
    "hr_max": 50.0,
    "hr_min": 30.0,
}

# Spectral values at or below this are treated as invalid
SPECTRAL_MIN_VALUE = 0.1

BPM_LO = 40.0
BPM_HI = 200.0


# ---------------------------------------------------------------------------
# Bounded stores
# ---------------------------------------------------------------------------


class QualityGatedQueue(Generic[M]):
    """FIFO of metric samples that admits only entries with ``sqi >= gate``."""

    def __init__(self, gate: float, capacity: int = 120):
        self.gate = gate
        self._items: Deque[M] = deque(maxlen=capacity)

    def offer(self, item: M, sqi: float) -> bool:
        """Append *item* if *sqi* clears the gate; return whether it did."""
        if sqi < self.gate:
            return False
        self._items.append(item)
        return True

    def items(self) -> list[M]:
        return list(self._items)

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)


class BeatIntervalRing:
    """Ring of RR intervals restricted to a physiological range (ms)."""

    def __init__(self, capacity: int = 120, lo_ms: float = 300.0, hi_ms: float = 1200.0):
        self.lo_ms = lo_ms
        self.hi_ms = hi_ms
        self._ring: RingBuffer[float] = RingBuffer(capacity)

    def extend(self, intervals: Iterable[float]) -> int:
        """Add every in-range interval; return how many were accepted."""
        added = 0
        for rr in intervals:
            if self.lo_ms <= rr <= self.hi_ms:
                self._ring.push(float(rr))
                added += 1
        return added

    def values(self) -> list[float]:
        return self._ring.to_list()

    @property
    def is_full(self) -> bool:
        return self._ring.is_full

    def clear(self) -> None:
        self._ring.clear()

    def __len__(self) -> int:
        return len(self._ring)


# ---------------------------------------------------------------------------
# Spectral state
# ---------------------------------------------------------------------------


class SpectralPhase(str, Enum):
    COLD = "cold"
    WARMING = "warming"
    STABLE = "stable"
    DEGRADED = "degraded"


def _valid_or_previous(value: float, previous: float, minimum: float = SPECTRAL_MIN_VALUE) -> float:
    if math.isfinite(value) and value > minimum:
        return value
    return previous


@dataclass
class SpectralState:
    """Latest accepted LF/HF values and the phase of the spectral estimator."""

    lf_power: float = 0.0
    hf_power: float = 0.0
    lf_hf_ratio: float = 0.0
    phase: SpectralPhase = SpectralPhase.COLD
    accepted: int = 0

    def warm(self) -> None:
        if self.phase is SpectralPhase.COLD:
            self.phase = SpectralPhase.WARMING

    def accept(self, result: LFHFResult) -> None:
        lf = _valid_or_previous(result.lf_power, self.lf_power)
        hf = _valid_or_previous(result.hf_power, self.hf_power)
        ratio = lf / hf if hf > 0 else self.lf_hf_ratio
        self.lf_power = lf
        self.hf_power = hf
        self.lf_hf_ratio = _valid_or_previous(ratio, self.lf_hf_ratio)
        self.accepted += 1
        self.phase = SpectralPhase.STABLE

    def reject(self) -> None:
        if self.phase is SpectralPhase.STABLE:
            self.phase = SpectralPhase.DEGRADED

    def to_dict(self) -> dict:
        return {
            "lf_power": round(self.lf_power, 3),
            "hf_power": round(self.hf_power, 3),
            "lf_hf_ratio": round(self.lf_hf_ratio, 3),
            "phase": self.phase.value,
        }


# ---------------------------------------------------------------------------
# Metric samples
# ---------------------------------------------------------------------------


@dataclass
class BioMetrics:
    total_power: float = 0.0
    emotional_balance: float = 0.0
    attention: float = 0.0
    cognitive_load: float = 0.0
    focus: float = 0.0
    relaxation: float = 0.0
    stress: float = 0.0
    hemispheric_balance: float = 0.0
    emotional_stability: float = 0.0
    attention_level: float = 0.0
    meditation_level: float = 0.0

    @classmethod
    def from_window(cls, window: BioWindow) -> BioMetrics:
        bands = window.ch1_bands.absolute()
        idx = window.indices
        return cls(
            total_power=window.ch1_bands.total,
            emotional_balance=max(0.0, min(2.0, bands.alpha / (bands.beta + 0.001))),
            attention=idx.attention_level,
            cognitive_load=idx.cognitive_load,
            focus=idx.focus,
            relaxation=idx.relaxation,
            stress=idx.stress,
            hemispheric_balance=idx.hemispheric_balance,
            emotional_stability=idx.emotional_stability,
            attention_level=idx.attention_level,
            meditation_level=idx.meditation_level,
        )


@dataclass
class PulseMetrics:
    bpm: float = 0.0
    sdnn: float = 0.0
    rmssd: float = 0.0
    pnn50: float = 0.0
    lf_power: float = 0.0
    hf_power: float = 0.0
    lf_hf_ratio: float = 0.0
    stress_index: float = 0.0
    spo2: float = 0.0
    avnn: float = 0.0
    pnn20: float = 0.0
    sdsd: float = 0.0
    hr_max: float = 0.0
    hr_min: float = 0.0


@dataclass
class InertialMetrics:
    intensity: float = 0.0
    stability: float = 0.0
    avg_movement: float = 0.0
    max_movement: float = 0.0
    activity: str = "stationary"

    @classmethod
    def from_window(cls, window: InertialWindow) -> InertialMetrics:
        return cls(
            intensity=float(window.activity.intensity),
            stability=float(window.posture.stability),
            avg_movement=window.movement.avg,
            max_movement=window.movement.max,
            activity=window.activity.type.value,
        )


def _bio_average(items: list[BioMetrics]) -> BioMetrics | None:
    """Plain per-field mean."""
    if not items:
        return None
    n = len(items)
    return BioMetrics(**{
        f.name: sum(getattr(it, f.name) for it in items) / n
        for f in fields(BioMetrics)
    })


def _pulse_average(items: list[PulseMetrics]) -> PulseMetrics | None:
    """Per-field mean over valid values only."""
    if not items:
        return None
    averaged = {}
    for name, minimum in PULSE_FIELD_MINIMUMS.items():
        vals = [getattr(it, name) for it in items]
        if minimum is None:
            valid = [v for v in vals if math.isfinite(v)]
        else:
            valid = [v for v in vals if math.isfinite(v) and v > minimum]
        averaged[name] = sum(valid) / len(valid) if valid else 0.0
    return PulseMetrics(**averaged)


def _inertial_average(items: list[InertialMetrics]) -> InertialMetrics | None:
    if not items:
        return None
    n = len(items)
    dominant = Counter(it.activity for it in items).most_common(1)[0][0]
    return InertialMetrics(
        intensity=sum(it.intensity for it in items) / n,
        stability=sum(it.stability for it in items) / n,
        avg_movement=sum(it.avg_movement for it in items) / n,
        max_movement=sum(it.max_movement for it in items) / n,
        activity=dominant,
    )


@dataclass
class AggregatedMetrics:
    """Snapshot handed to sinks after each aggregator update."""

    bio: BioMetrics | None = None
    pulse: PulseMetrics | None = None
    inertial: InertialMetrics | None = None
    time_domain: TimeDomainHRV | None = None
    hr_max: float = 0.0
    hr_min: float = 0.0
    spectral: SpectralState = field(default_factory=SpectralState)
    bio_queue: int = 0
    pulse_queue: int = 0
    inertial_queue: int = 0
    rr_count: int = 0

    def __repr__(self) -> str:
        bpm = f"{self.pulse.bpm:.0f}" if self.pulse else "-"
        return (
            f"AggregatedMetrics(bpm={bpm}, rr={self.rr_count}, "
            f"lf/hf={self.spectral.lf_hf_ratio:.2f} [{self.spectral.phase.value}], "
            f"queues={self.bio_queue}/{self.pulse_queue}/{self.inertial_queue})"
        )

    def to_dict(self) -> dict:
        def rounded(obj):
            if obj is None:
                return None
            return {
                k: round(v, 4) if isinstance(v, float) else v
                for k, v in asdict(obj).items()
            }

        return {
            "bio": rounded(self.bio),
            "pulse": rounded(self.pulse),
            "inertial": rounded(self.inertial),
            "time_domain": self.time_domain.to_dict() if self.time_domain else None,
            "hr_max": self.hr_max,
            "hr_min": self.hr_min,
            "spectral": self.spectral.to_dict(),
            "queues": {
                "bio": self.bio_queue,
                "pulse": self.pulse_queue,
                "inertial": self.inertial_queue,
                "rr": self.rr_count,
            },
        }


# ---------------------------------------------------------------------------
# Aggregator
# ---------------------------------------------------------------------------


class MetricsAggregator:
    """Quality-gated moving averages and long-horizon HRV.

    Args:
        config: Pipeline configuration (gates, capacities, RR bounds).
        clock: Monotonic seconds source used to rate-limit spectral passes.
        on_error: Called with each :class:`AggregationError` (e.g. an
            unstable spectrum).  The aggregator never raises these.
    """

    def __init__(
        self,
        config: PipelineConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
        on_error: Callable[[AggregationError], None] | None = None,
    ):
        self.config = config or PipelineConfig.default()
        self.clock = clock
        self.on_error = on_error
        cfg = self.config
        self._bio: QualityGatedQueue[BioMetrics] = QualityGatedQueue(cfg.bio_gate, cfg.queue_capacity)
        self._pulse: QualityGatedQueue[PulseMetrics] = QualityGatedQueue(cfg.pulse_gate, cfg.queue_capacity)
        self._inertial: QualityGatedQueue[InertialMetrics] = QualityGatedQueue(
            cfg.inertial_gate, cfg.queue_capacity
        )
        self._rr = BeatIntervalRing(cfg.rr_capacity, cfg.rr_min_ms, cfg.rr_max_ms)
        self._bpm: Deque[float] = deque(maxlen=cfg.bpm_capacity)
        self._spectral = SpectralState()
        self._time_domain: TimeDomainHRV | None = None
        self._hr_max = 0.0
        self._hr_min = 0.0
        self._last_recompute: float | None = None
        self.spectral_failures = 0

    # -- ingestion ----------------------------------------------------------

    def ingest_bio(self, window: BioWindow, sqi: float | None = None) -> bool:
        """Queue the window's metrics if its quality clears the bio gate."""
        score = window.overall if sqi is None else sqi
        return self._bio.offer(BioMetrics.from_window(window), score)

    def ingest_pulse(
        self,
        window: PulseWindow,
        sqi: float | None = None,
        rr_intervals: Iterable[float] | None = None,
    ) -> bool:
        """Update HRV state from a pulse window and queue its metrics if gated in."""
        score = window.gate_sqi if sqi is None else sqi
        intervals = window.rr_intervals if rr_intervals is None else rr_intervals

        # only gated-in windows count towards HR max/min
        accepted = score >= self._pulse.gate
        if accepted and BPM_LO < window.heart_rate < BPM_HI:
            self._bpm.append(float(window.heart_rate))

        self._rr.extend(intervals)
        if len(self._rr) >= self.config.rr_min_count:
            self._spectral.warm()
            now = self.clock()
            due = (
                not self._rr.is_full
                or self._last_recompute is None
                or now - self._last_recompute >= self.config.spectral_interval_s
            )
            if due:
                self._recompute()
                self._last_recompute = now

        return self._pulse.offer(self._pulse_sample(window), score)

    def ingest_inertial(self, window: InertialWindow) -> bool:
        """Queue the window's metrics if its quality clears the inertial gate."""
        return self._inertial.offer(InertialMetrics.from_window(window), window.quality)

    # -- HRV ----------------------------------------------------------------

    def _recompute(self) -> None:
        rr = self._rr.values()

        td = time_domain_hrv(rr)
        if td is not None:
            self._time_domain = td

        valid_bpm = [b for b in self._bpm if BPM_LO < b < BPM_HI]
        if valid_bpm:
            self._hr_max = max(valid_bpm)
            self._hr_min = min(valid_bpm)
        else:
            self._hr_max = self._hr_min = 0.0

        try:
            result = compute_lf_hf(rr)
        except UnstableSpectrum as exc:
            self._spectral.reject()
            self.spectral_failures += 1
            logger.debug("Spectral pass rejected, keeping previous values: %s", exc)
            if self.on_error is not None:
                self.on_error(exc)
            return
        self._spectral.accept(result)

    def _pulse_sample(self, window: PulseWindow) -> PulseMetrics:
        td = self._time_domain
        hrv = window.hrv
        spectral = self._spectral

        def pick(current: float, fallback: float) -> float:
            return current if current > 0 else fallback

        return PulseMetrics(
            bpm=float(window.heart_rate),
            sdnn=pick(td.sdnn if td else 0.0, hrv.sdnn),
            rmssd=pick(td.rmssd if td else 0.0, window.rmssd),
            pnn50=pick(td.pnn50 if td else 0.0, hrv.pnn50),
            lf_power=spectral.lf_power,
            hf_power=spectral.hf_power,
            lf_hf_ratio=spectral.lf_hf_ratio,
            stress_index=pick(td.stress_index if td else 0.0, hrv.stress_index),
            spo2=float(window.spo2),
            avnn=pick(td.avnn if td else 0.0, hrv.avnn),
            pnn20=pick(td.pnn20 if td else 0.0, hrv.pnn20),
            sdsd=pick(td.sdsd if td else 0.0, hrv.sdsd),
            hr_max=pick(self._hr_max, hrv.hr_max),
            hr_min=pick(self._hr_min, hrv.hr_min),
        )

    # -- accessors ----------------------------------------------------------

    @property
    def spectral(self) -> SpectralState:
        return replace(self._spectral)

    @property
    def rr_intervals(self) -> list[float]:
        return self._rr.values()

    def snapshot(self) -> AggregatedMetrics:
        """Fresh copy of the current aggregate state."""
        return AggregatedMetrics(
            bio=_bio_average(self._bio.items()),
            pulse=_pulse_average(self._pulse.items()),
            inertial=_inertial_average(self._inertial.items()),
            time_domain=replace(self._time_domain) if self._time_domain else None,
            hr_max=self._hr_max,
            hr_min=self._hr_min,
            spectral=replace(self._spectral),
            bio_queue=len(self._bio),
            pulse_queue=len(self._pulse),
            inertial_queue=len(self._inertial),
            rr_count=len(self._rr),
        )

    def reset(self) -> None:
        """Clear all queues, buffers and derived state."""
        self._bio.clear()
        self._pulse.clear()
        self._inertial.clear()
        self._rr.clear()
        self._bpm.clear()
        self._spectral = SpectralState()
        self._time_domain = None
        self._hr_max = self._hr_min = 0.0
        self._last_recompute = None
        self.spectral_failures = 0
