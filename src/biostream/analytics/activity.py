"""Activity classification and posture from accelerometer windows.

Movement is the gravity-removed magnitude ``max(0, |a| - 1g) * 100``.  A
window is classified into one of four activity types from the mean and peak
movement; posture is estimated from the mean gravity vector.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Sequence

import numpy as np


class ActivityType(str, Enum):
    """Coarse activity classification."""

    STATIONARY = "stationary"
    SITTING = "sitting"
    WALKING = "walking"
    RUNNING = "running"


# ---------------------------------------------------------------------------
# Thresholds (movement units: g above 1, x100)
# ---------------------------------------------------------------------------

# (type, max avg movement, max peak movement, confidence)
ACTIVITY_RULES = [
    (ActivityType.STATIONARY, 3.0, 10.0, 0.9),
    (ActivityType.SITTING, 8.0, 20.0, 0.8),
    (ActivityType.WALKING, 20.0, 40.0, 0.7),
]
RUNNING_CONFIDENCE = 0.6

# Confidence penalty when movement is erratic (std > 0.8 * avg)
ERRATIC_RATIO = 0.8
ERRATIC_PENALTY = 0.8

# Timestamp gaps within this fraction of nominal count as consistent
GAP_TOLERANCE = 0.5
RELIABILITY = 100.0
RELIABILITY_WEIGHT = 0.6
CONSISTENCY_WEIGHT = 0.4


@dataclass
class MovementStats:
    """Summary of per-sample movement over a window."""

    avg: float
    std: float
    max: float
    total: float


@dataclass
class ActivityClassification:
    type: ActivityType
    confidence: float
    intensity: int

    def __repr__(self) -> str:
        return (
            f"ActivityClassification({self.type.value}, "
            f"conf={self.confidence:.2f}, intensity={self.intensity})"
        )


@dataclass
class Posture:
    tilt_deg: float
    stability: int
    balance: int


def movement_values(magnitudes: Sequence[float]) -> np.ndarray:
    """Gravity-removed movement per sample."""
    mags = np.asarray(magnitudes, dtype=np.float64)
    return np.maximum(0.0, mags - 1.0) * 100.0


def movement_stats(magnitudes: Sequence[float]) -> MovementStats:
    values = movement_values(magnitudes)
    if len(values) == 0:
        return MovementStats(avg=0.0, std=0.0, max=0.0, total=0.0)
    return MovementStats(
        avg=float(values.mean()),
        std=float(values.std()),
        max=float(values.max()),
        total=float(values.sum()),
    )


def activity_intensity(avg_movement: float) -> int:
    """Intensity 0-100 from mean movement (piecewise linear)."""
    if avg_movement <= 5:
        intensity = avg_movement * 4
    elif avg_movement <= 15:
        intensity = 20 + (avg_movement - 5) * 4
    else:
        intensity = 60 + min(40.0, (avg_movement - 15) * 2)
    return int(round(intensity))


def classify_activity(stats: MovementStats) -> ActivityClassification:
    """Classify a window from its movement statistics."""
    activity, confidence = ActivityType.RUNNING, RUNNING_CONFIDENCE
    for kind, max_avg, max_peak, conf in ACTIVITY_RULES:
        if stats.avg < max_avg and stats.max < max_peak:
            activity, confidence = kind, conf
            break

    if stats.std > stats.avg * ERRATIC_RATIO:
        confidence *= ERRATIC_PENALTY

    return ActivityClassification(
        type=activity,
        confidence=confidence,
        intensity=activity_intensity(stats.avg),
    )


def analyze_posture(xyz: np.ndarray) -> Posture:
    """Tilt, stability and balance from an (N, 3) array of g values."""
    arr = np.asarray(xyz, dtype=np.float64)
    if arr.size == 0:
        return Posture(tilt_deg=0.0, stability=0, balance=0)
    mx, my, mz = arr.mean(axis=0)
    tilt = math.degrees(math.atan2(math.sqrt(mx * mx + my * my), abs(mz)))
    total_var = float(arr.var(axis=0).sum())
    stability = max(0.0, 100.0 - total_var * 50.0)
    balance = max(0.0, 100.0 - (abs(mx) + abs(my)) * 50.0)
    return Posture(
        tilt_deg=round(tilt, 1),
        stability=int(round(stability)),
        balance=int(round(balance)),
    )


def timestamp_consistency(timestamps_ms: Sequence[float], rate_hz: float) -> float:
    """Percentage of successive gaps within 50% of the nominal interval."""
    ts = np.asarray(timestamps_ms, dtype=np.float64)
    if len(ts) < 2:
        return 100.0
    expected = 1000.0 / rate_hz
    gaps = np.diff(ts)
    consistent = np.abs(gaps - expected) < expected * GAP_TOLERANCE
    return float(consistent.sum() / len(gaps) * 100.0)


def inertial_quality(consistency: float) -> float:
    """Overall inertial signal quality, 0-100, from timestamp consistency."""
    return RELIABILITY * RELIABILITY_WEIGHT + consistency * CONSISTENCY_WEIGHT
