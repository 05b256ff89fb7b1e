"""Accelerometer (inertial) channel processor."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np

from biostream.analytics.activity import (
    ActivityClassification,
    MovementStats,
    Posture,
    analyze_posture,
    classify_activity,
    movement_stats,
    inertial_quality,
    timestamp_consistency,
)
from biostream.decoders.inertial import InertialSample
from biostream.errors import InsufficientData
from biostream.protocol import ACC_SAMPLE_RATE

MIN_SAMPLES = 30


@dataclass
class InertialWindow:
    """Result of one accelerometer processing pass."""

    timestamps_ms: np.ndarray
    magnitude: np.ndarray
    movement: MovementStats
    activity: ActivityClassification
    posture: Posture
    consistency: float
    quality: float  # gate SQI, 0-100

    def __repr__(self) -> str:
        return (
            f"InertialWindow(n={len(self.magnitude)}, {self.activity.type.value}, "
            f"intensity={self.activity.intensity}, quality={self.quality:.0f})"
        )

    def to_dict(self) -> dict:
        return {
            "samples": len(self.magnitude),
            "activity": self.activity.type.value,
            "confidence": round(self.activity.confidence, 2),
            "intensity": self.activity.intensity,
            "avg_movement": round(self.movement.avg, 3),
            "max_movement": round(self.movement.max, 3),
            "tilt_deg": self.posture.tilt_deg,
            "stability": self.posture.stability,
            "balance": self.posture.balance,
            "quality": round(self.quality, 1),
        }


class InertialProcessor:
    """Stateless accelerometer window processor."""

    def __init__(self, fs: float = ACC_SAMPLE_RATE):
        self.fs = fs

    def process(self, samples: Sequence[InertialSample]) -> InertialWindow:
        """Classify activity and posture over a buffer of samples.

        Raises:
            InsufficientData: fewer than 30 samples.
        """
        if len(samples) < MIN_SAMPLES:
            raise InsufficientData(len(samples), MIN_SAMPLES)

        ts = np.array([s.timestamp_ms for s in samples], dtype=np.float64)
        xyz = np.array([(s.x, s.y, s.z) for s in samples], dtype=np.float64)
        mags = np.array([s.magnitude for s in samples], dtype=np.float64)

        stats = movement_stats(mags)
        consistency = timestamp_consistency(ts, self.fs)

        return InertialWindow(
            timestamps_ms=ts,
            magnitude=mags,
            movement=stats,
            activity=classify_activity(stats),
            posture=analyze_posture(xyz),
            consistency=consistency,
            quality=inertial_quality(consistency),
        )
