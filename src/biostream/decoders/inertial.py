"""Accelerometer (inertial) frame decoder.

Payload layout:
    [0:4]   Device timestamp, uint32 LE (not used for sample timing)
    [4:]    6-byte records at 30 Hz: x, y, z as int16 LE, +-2 g full scale

The accelerometer's header clock drifts against the notification cadence, so
per-sample timestamps are laid down continuously from the previous frame's
last emitted timestamp.  If the receive clock has moved on by more than three
frame durations (missed notifications), the decoder resynchronizes to it.
"""

from __future__ import annotations

import logging
import math
import struct
import time
from dataclasses import dataclass

from biostream.errors import DecodeError
from biostream.protocol import (
    ACC_G_PER_COUNT,
    ACC_MIN_PAYLOAD,
    ACC_RECORD_SIZE,
    ACC_RESYNC_FACTOR,
    ACC_SAMPLE_RATE,
    HEADER_SIZE,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InertialSample:
    """A single accelerometer reading in g."""

    timestamp_ms: float
    x: float
    y: float
    z: float
    magnitude: float

    def __repr__(self) -> str:
        return (
            f"Inertial(t={self.timestamp_ms:.1f}ms, x={self.x:.3f}g, y={self.y:.3f}g, "
            f"z={self.z:.3f}g, mag={self.magnitude:.3f}g)"
        )


class InertialDecoder:
    """Decode accelerometer notifications with continuity-preserving timestamps.

    Unlike the EEG and PPG decoders this one is stateful: it remembers the
    last timestamp it emitted.  Use one instance per session and call
    :meth:`reset` when the session restarts.
    """

    def __init__(self, rate_hz: float = ACC_SAMPLE_RATE, scale: float = ACC_G_PER_COUNT):
        self.rate_hz = rate_hz
        self.scale = scale
        self.interval_ms = 1000.0 / rate_hz
        self.last_timestamp_ms: float | None = None
        self.resync_count = 0

    def reset(self) -> None:
        self.last_timestamp_ms = None
        self.resync_count = 0

    def decode(self, payload: bytes, received_at_ms: float | None = None) -> list[InertialSample]:
        """Decode one accelerometer notification.

        Args:
            payload: Raw notification bytes.
            received_at_ms: Wall-clock receive time in ms; defaults to now.
        """
        if len(payload) < ACC_MIN_PAYLOAD:
            raise DecodeError.truncated("inertial", len(payload), ACC_MIN_PAYLOAD)

        if received_at_ms is None:
            received_at_ms = time.time() * 1000.0

        raw: list[tuple[int, int, int]] = []
        offset = HEADER_SIZE
        while offset + ACC_RECORD_SIZE <= len(payload):
            raw.append(struct.unpack_from("<hhh", payload, offset))
            offset += ACC_RECORD_SIZE

        n = len(raw)
        start_ms = self._frame_start(n, received_at_ms)

        samples: list[InertialSample] = []
        for i, (x_raw, y_raw, z_raw) in enumerate(raw):
            x = x_raw * self.scale
            y = y_raw * self.scale
            z = z_raw * self.scale
            samples.append(InertialSample(
                timestamp_ms=start_ms + i * self.interval_ms,
                x=x,
                y=y,
                z=z,
                magnitude=math.sqrt(x * x + y * y + z * z),
            ))

        self.last_timestamp_ms = samples[-1].timestamp_ms
        return samples

    def _frame_start(self, n: int, received_at_ms: float) -> float:
        """Timestamp for the first sample of an *n*-sample frame."""
        anchored = received_at_ms - (n - 1) * self.interval_ms
        if self.last_timestamp_ms is None:
            return anchored

        elapsed = received_at_ms - self.last_timestamp_ms
        if elapsed > ACC_RESYNC_FACTOR * n * self.interval_ms:
            self.resync_count += 1
            logger.warning(
                "inertial stream gap of %.0f ms, resyncing to receive clock", elapsed
            )
            return anchored

        return self.last_timestamp_ms + self.interval_ms
