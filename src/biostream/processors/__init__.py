"""Per-channel window processors (EEG, PPG, accelerometer)."""

from typing import Union

from biostream.processors.bio import BioProcessor, BioWindow, QualityCheck
from biostream.processors.pulse import PulseProcessor, PulseWindow
from biostream.processors.inertial import InertialProcessor, InertialWindow

ProcessedWindow = Union[BioWindow, PulseWindow, InertialWindow]

__all__ = [
    "BioProcessor",
    "BioWindow",
    "QualityCheck",
    "PulseProcessor",
    "PulseWindow",
    "InertialProcessor",
    "InertialWindow",
    "ProcessedWindow",
]
