"""Exception hierarchy for the streaming pipeline.

Data conditions (short frames, not enough samples, unstable spectra) are
recoverable: the pipeline reports them through ``Sink.on_error`` and carries
on with the next frame or window.  ``InvariantViolation`` marks a bug and only
aborts the processing pass that hit it.
"""

from __future__ import annotations


class BiostreamError(Exception):
    """Base class for all recoverable pipeline errors."""

    kind = "error"


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


class DecodeError(BiostreamError):
    """A notification payload could not be decoded; the frame is dropped."""

    kind = "truncated"

    def __init__(self, message: str, channel: str | None = None, length: int = 0):
        super().__init__(message)
        self.channel = channel
        self.length = length

    @classmethod
    def truncated(cls, channel: str, length: int, minimum: int) -> "DecodeError":
        return cls(
            f"{channel} frame too short: {length} bytes (need >= {minimum})",
            channel=channel,
            length=length,
        )


# ---------------------------------------------------------------------------
# Per-window processing
# ---------------------------------------------------------------------------


class ProcessingError(BiostreamError):
    """A processing pass over a buffer snapshot did not produce a window."""

    kind = "processing"


class InsufficientData(ProcessingError):
    """The buffer holds fewer samples than the processor's minimum window."""

    kind = "insufficient_data"

    def __init__(self, have: int, need: int):
        super().__init__(f"need at least {need} samples, have {have}")
        self.have = have
        self.need = need


class InvalidQuality(ProcessingError):
    """Every sample in the window fell below the quality floor."""

    kind = "invalid_quality"


class ProcessingTimeout(ProcessingError):
    """A processing pass exceeded the watchdog timeout and was abandoned."""

    kind = "timeout"


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


class AggregationError(BiostreamError):
    """Cross-window aggregation could not update its state."""

    kind = "aggregation"


class UnstableSpectrum(AggregationError):
    """RR intervals failed the validity/stability checks; last LF/HF is retained."""

    kind = "unstable"

    def __init__(self, message: str, validity: float = 0.0, stability: float = 0.0):
        super().__init__(message)
        self.validity = validity
        self.stability = stability


class InvariantViolation(AssertionError):
    """A programming invariant was broken (e.g. mismatched channel lengths)."""


def check_invariant(condition: bool, message: str) -> None:
    """Raise InvariantViolation if *condition* does not hold."""
    if not condition:
        raise InvariantViolation(message)
