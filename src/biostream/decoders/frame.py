"""Raw notification frames and the per-channel decoder dispatch."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from biostream.decoders.bio import BioDecoder, BioSample
from biostream.decoders.inertial import InertialDecoder, InertialSample
from biostream.decoders.pulse import PulseDecoder, PulseSample
from biostream.errors import DecodeError
from biostream.protocol import (
    ACC_SAMPLE_RATE,
    EEG_SAMPLE_RATE,
    PPG_SAMPLE_RATE,
    ChannelTag,
    battery_status,
)

Sample = Union[BioSample, PulseSample, InertialSample]


@dataclass(frozen=True)
class RawFrame:
    """One notification payload as handed over by the transport layer."""

    channel: ChannelTag
    payload: bytes
    received_at_ms: float | None = None

    @property
    def hex(self) -> str:
        return self.payload.hex()

    def __repr__(self) -> str:
        return f"RawFrame({self.channel.value}, {len(self.payload)}B)"


@dataclass(frozen=True)
class BatteryReading:
    """Battery level from the standard 0x2A19 characteristic."""

    level: int
    status: str
    timestamp_ms: float | None = None

    def __repr__(self) -> str:
        return f"Battery({self.level}%, {self.status})"


def decode_battery(payload: bytes, received_at_ms: float | None = None) -> BatteryReading:
    """Decode a battery-level notification (single uint8 percentage)."""
    if len(payload) < 1:
        raise DecodeError.truncated("battery", len(payload), 1)
    level = min(100, payload[0])
    return BatteryReading(level=level, status=battery_status(level), timestamp_ms=received_at_ms)


class FrameDecoder:
    """Route raw frames to the decoder for their channel.

    Holds the stateful inertial decoder, so a session should use a single
    instance for all of its frames.
    """

    def __init__(
        self,
        bio_rate_hz: float = EEG_SAMPLE_RATE,
        pulse_rate_hz: float = PPG_SAMPLE_RATE,
        inertial_rate_hz: float = ACC_SAMPLE_RATE,
    ):
        self.bio_rate_hz = bio_rate_hz
        self.pulse_rate_hz = pulse_rate_hz
        self.inertial = InertialDecoder(rate_hz=inertial_rate_hz)

    def decode(self, raw: RawFrame) -> list[Sample]:
        """Decode a sensor frame into typed samples.

        Raises DecodeError for short payloads and ValueError for channels that
        do not carry samples (battery frames go through :func:`decode_battery`).
        """
        if raw.channel is ChannelTag.BIO:
            return BioDecoder.decode(raw.payload, self.bio_rate_hz)
        if raw.channel is ChannelTag.PULSE:
            return PulseDecoder.decode(raw.payload, self.pulse_rate_hz)
        if raw.channel is ChannelTag.INERTIAL:
            return self.inertial.decode(raw.payload, raw.received_at_ms)
        raise ValueError(f"channel {raw.channel.value!r} does not carry samples")

    def reset(self) -> None:
        self.inertial.reset()
