"""PPG (optical-pulse) frame decoder.

Payload layout:
    [0:4]   Device timestamp, uint32 LE, 1/32.768 ms ticks
    [4:]    6-byte records at 50 Hz:
              [0:3]  red LED photodiode count, unsigned 24-bit big-endian
              [3:6]  IR LED photodiode count, unsigned 24-bit big-endian
"""

from __future__ import annotations

import struct
from dataclasses import dataclass

from biostream.errors import DecodeError
from biostream.protocol import (
    HEADER_SIZE,
    PPG_CLOCK_DIVISOR,
    PPG_MIN_PAYLOAD,
    PPG_RECORD_SIZE,
    PPG_SAMPLE_RATE,
    u24_be,
)


@dataclass(frozen=True)
class PulseSample:
    """One red/IR photodiode sample."""

    timestamp_ms: float
    red: int
    ir: int

    def __repr__(self) -> str:
        return f"Pulse(t={self.timestamp_ms:.1f}ms, red={self.red}, ir={self.ir})"


class PulseDecoder:
    """Decode PPG notification payloads into :class:`PulseSample` lists."""

    @staticmethod
    def decode(payload: bytes, rate_hz: float = PPG_SAMPLE_RATE) -> list[PulseSample]:
        """Decode one PPG notification. Raises DecodeError on short payloads."""
        if len(payload) < PPG_MIN_PAYLOAD:
            raise DecodeError.truncated("pulse", len(payload), PPG_MIN_PAYLOAD)

        base_s = struct.unpack_from("<I", payload, 0)[0] / PPG_CLOCK_DIVISOR

        samples: list[PulseSample] = []
        offset = HEADER_SIZE
        i = 0
        while offset + PPG_RECORD_SIZE <= len(payload):
            red = u24_be(payload[offset], payload[offset + 1], payload[offset + 2])
            ir = u24_be(payload[offset + 3], payload[offset + 4], payload[offset + 5])
            samples.append(PulseSample(
                timestamp_ms=(base_s + i / rate_hz) * 1000.0,
                red=red,
                ir=ir,
            ))
            offset += PPG_RECORD_SIZE
            i += 1

        if not samples:
            raise DecodeError.truncated("pulse", len(payload), HEADER_SIZE + PPG_RECORD_SIZE)

        return samples
