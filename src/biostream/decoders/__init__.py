"""Frame decoders for the headband's EEG, PPG, and accelerometer notifications."""

from biostream.decoders.bio import BioDecoder, BioSample
from biostream.decoders.pulse import PulseDecoder, PulseSample
from biostream.decoders.inertial import InertialDecoder, InertialSample
from biostream.decoders.frame import (
    BatteryReading,
    FrameDecoder,
    RawFrame,
    Sample,
    decode_battery,
)

__all__ = [
    "BioDecoder",
    "BioSample",
    "PulseDecoder",
    "PulseSample",
    "InertialDecoder",
    "InertialSample",
    "FrameDecoder",
    "RawFrame",
    "Sample",
    "BatteryReading",
    "decode_battery",
]
