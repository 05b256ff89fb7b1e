"""EEG (bio-electrical) frame decoder.

Payload layout:
    [0:4]   Device timestamp, uint32 LE, 32.768 kHz ticks
    [4:]    7-byte records at 250 Hz:
              [0]    Status byte (bit0 = ch1 lead-off, bit2 = ch2 lead-off)
              [1:4]  ch1, signed 24-bit big-endian ADC counts
              [4:7]  ch2, signed 24-bit big-endian ADC counts

ADC counts convert to microvolts through the analog front end's reference
voltage and gain (see ``protocol.EEG_UV_PER_COUNT``).
"""

from __future__ import annotations

import struct
from dataclasses import dataclass

from biostream.errors import DecodeError
from biostream.protocol import (
    EEG_CLOCK_DIVISOR,
    EEG_LEAD_OFF_CH1,
    EEG_LEAD_OFF_CH2,
    EEG_MIN_PAYLOAD,
    EEG_RECORD_SIZE,
    EEG_SAMPLE_RATE,
    EEG_UV_PER_COUNT,
    HEADER_SIZE,
    s24_be,
)


@dataclass(frozen=True)
class BioSample:
    """One two-channel EEG sample."""

    timestamp_ms: float
    ch1_uv: float
    ch2_uv: float
    lead_off: tuple[bool, bool] = (False, False)

    @property
    def any_lead_off(self) -> bool:
        return self.lead_off[0] or self.lead_off[1]

    def __repr__(self) -> str:
        flags = "" if not self.any_lead_off else f", lead_off={self.lead_off}"
        return f"Bio(t={self.timestamp_ms:.1f}ms, ch1={self.ch1_uv:.2f}uV, ch2={self.ch2_uv:.2f}uV{flags})"


class BioDecoder:
    """Decode EEG notification payloads into :class:`BioSample` lists."""

    @staticmethod
    def decode(payload: bytes, rate_hz: float = EEG_SAMPLE_RATE) -> list[BioSample]:
        """Decode one EEG notification.

        Raises DecodeError if the payload cannot hold the header plus a record.
        A trailing partial record is ignored.
        """
        if len(payload) < EEG_MIN_PAYLOAD:
            raise DecodeError.truncated("bio", len(payload), EEG_MIN_PAYLOAD)

        base_s = struct.unpack_from("<I", payload, 0)[0] / EEG_CLOCK_DIVISOR

        samples: list[BioSample] = []
        offset = HEADER_SIZE
        i = 0
        while offset + EEG_RECORD_SIZE <= len(payload):
            status = payload[offset]
            ch1_raw = s24_be(payload[offset + 1], payload[offset + 2], payload[offset + 3])
            ch2_raw = s24_be(payload[offset + 4], payload[offset + 5], payload[offset + 6])
            samples.append(BioSample(
                timestamp_ms=(base_s + i / rate_hz) * 1000.0,
                ch1_uv=ch1_raw * EEG_UV_PER_COUNT,
                ch2_uv=ch2_raw * EEG_UV_PER_COUNT,
                lead_off=(bool(status & EEG_LEAD_OFF_CH1), bool(status & EEG_LEAD_OFF_CH2)),
            ))
            offset += EEG_RECORD_SIZE
            i += 1

        if not samples:
            raise DecodeError.truncated("bio", len(payload), HEADER_SIZE + EEG_RECORD_SIZE)

        return samples
