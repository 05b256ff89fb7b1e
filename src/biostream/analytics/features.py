"""Time-domain HRV features over a buffer of RR intervals.

All spreads are population statistics (divide by n).  Successive-difference
metrics use the n-1 differences of the series.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Sequence

import numpy as np

MIN_INTERVALS = 10


# ---------------------------------------------------------------------------
# Individual metrics
# ---------------------------------------------------------------------------


def avnn(rr_intervals: Sequence[float]) -> float:
    """Mean RR interval (ms)."""
    if len(rr_intervals) == 0:
        return 0.0
    return float(np.mean(np.asarray(rr_intervals, dtype=np.float64)))


def sdnn(rr_intervals: Sequence[float]) -> float:
    """Population standard deviation of RR intervals (ms)."""
    if len(rr_intervals) == 0:
        return 0.0
    return float(np.std(np.asarray(rr_intervals, dtype=np.float64), ddof=0))


def compute_rmssd(rr_intervals: Sequence[float]) -> float:
    """Root mean square of successive RR-interval differences (ms).

    Returns 0 if fewer than 2 intervals are provided.
    """
    if len(rr_intervals) < 2:
        return 0.0
    diffs = np.diff(np.asarray(rr_intervals, dtype=np.float64))
    return float(np.sqrt(np.mean(diffs ** 2)))


def sdsd(rr_intervals: Sequence[float]) -> float:
    """Population standard deviation of successive differences (ms)."""
    if len(rr_intervals) < 2:
        return 0.0
    diffs = np.diff(np.asarray(rr_intervals, dtype=np.float64))
    return float(np.std(diffs, ddof=0))


def pnn(rr_intervals: Sequence[float], threshold_ms: float) -> float:
    """Percentage of successive RR differences strictly above *threshold_ms*."""
    if len(rr_intervals) < 2:
        return 0.0
    diffs = np.abs(np.diff(np.asarray(rr_intervals, dtype=np.float64)))
    return float(np.sum(diffs > threshold_ms) / len(diffs) * 100.0)


def pnn50(rr_intervals: Sequence[float]) -> float:
    return pnn(rr_intervals, 50.0)


def pnn20(rr_intervals: Sequence[float]) -> float:
    return pnn(rr_intervals, 20.0)


def _unit(x: float) -> float:
    return max(0.0, min(1.0, x))


def stress_index(sdnn_ms: float, rmssd_ms: float, avnn_ms: float) -> float:
    """HRV stress index in [0, 1].

    ``0.4 * clamp((100 - SDNN) / 70) + 0.4 * clamp((50 - RMSSD) / 30)
    + 0.2 * clamp(|HR - 80| / 40)`` with ``HR = 60000 / AVNN``.
    """
    sdnn_term = _unit((100.0 - sdnn_ms) / 70.0)
    rmssd_term = _unit((50.0 - rmssd_ms) / 30.0)
    hr = 60000.0 / avnn_ms if avnn_ms > 0 else 0.0
    hr_term = _unit(abs(hr - 80.0) / 40.0)
    return _unit(sdnn_term * 0.4 + rmssd_term * 0.4 + hr_term * 0.2)


# ---------------------------------------------------------------------------
# Bundle
# ---------------------------------------------------------------------------


@dataclass
class TimeDomainHRV:
    """Time-domain HRV summary of an RR buffer."""

    avnn: float
    sdnn: float
    rmssd: float
    sdsd: float
    pnn50: float
    pnn20: float
    stress_index: float

    def __repr__(self) -> str:
        return (
            f"TimeDomainHRV(avnn={self.avnn:.0f}ms, sdnn={self.sdnn:.1f}, "
            f"rmssd={self.rmssd:.1f}, pnn50={self.pnn50:.1f}%, "
            f"stress={self.stress_index:.2f})"
        )

    def to_dict(self) -> dict[str, float]:
        return {k: round(v, 3) for k, v in asdict(self).items()}


def time_domain_hrv(
    rr_intervals: Sequence[float],
    min_intervals: int = MIN_INTERVALS,
) -> TimeDomainHRV | None:
    """Compute every time-domain metric, or None below *min_intervals*."""
    if len(rr_intervals) < min_intervals:
        return None
    mean_rr = avnn(rr_intervals)
    sd = sdnn(rr_intervals)
    rm = compute_rmssd(rr_intervals)
    return TimeDomainHRV(
        avnn=mean_rr,
        sdnn=sd,
        rmssd=rm,
        sdsd=sdsd(rr_intervals),
        pnn50=pnn50(rr_intervals),
        pnn20=pnn20(rr_intervals),
        stress_index=stress_index(sd, rm, mean_rr),
    )
