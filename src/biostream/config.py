"""Configuration surface supplied by the host application.

All tunables of the pipeline live here: per-channel sampling rates and buffer
durations, quality gates for the aggregator, the RR ring, and the spectral
recomputation interval.  Defaults mirror the headband's firmware settings.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace

from biostream.protocol import (
    ACC_SAMPLE_RATE,
    EEG_SAMPLE_RATE,
    PPG_SAMPLE_RATE,
    ChannelTag,
)


@dataclass(frozen=True)
class ChannelConfig:
    """Buffering and scheduling parameters for one sensor channel."""

    rate_hz: float
    buffer_seconds: float
    min_samples: int  # buffer fill needed before a processing pass runs
    enabled: bool = True

    @property
    def capacity(self) -> int:
        return int(round(self.buffer_seconds * self.rate_hz))


def _default_channels() -> dict[ChannelTag, ChannelConfig]:
    return {
        ChannelTag.BIO: ChannelConfig(rate_hz=EEG_SAMPLE_RATE, buffer_seconds=5.0, min_samples=500),
        ChannelTag.PULSE: ChannelConfig(rate_hz=PPG_SAMPLE_RATE, buffer_seconds=10.0, min_samples=50),
        ChannelTag.INERTIAL: ChannelConfig(rate_hz=ACC_SAMPLE_RATE, buffer_seconds=5.0, min_samples=30),
    }


@dataclass
class PipelineConfig:
    """Top-level configuration for a :class:`~biostream.pipeline.StreamPipeline`."""

    channels: dict[ChannelTag, ChannelConfig] = field(default_factory=_default_channels)

    # Quality gates (SQI, 0-100) for the aggregator's moving-average queues
    bio_gate: float = 80.0
    pulse_gate: float = 80.0
    inertial_gate: float = 80.0
    queue_capacity: int = 120

    # Bio processor: per-sample SQI needed to count as a quality sample
    bio_quality_threshold: float = 15.0

    # Beat-interval ring feeding the LF/HF computation
    rr_capacity: int = 120
    rr_min_ms: float = 300.0
    rr_max_ms: float = 1200.0
    rr_min_count: int = 30
    spectral_interval_s: float = 1.0
    bpm_capacity: int = 120

    # Scheduling
    watchdog_timeout_s: float = 1.0

    # Ring buffers may grow once under sustained near-full pressure
    allow_buffer_growth: bool = False
    growth_factor: float = 1.5

    @classmethod
    def default(cls) -> "PipelineConfig":
        return cls()

    def channel(self, tag: ChannelTag) -> ChannelConfig:
        return self.channels[tag]

    def is_enabled(self, tag: ChannelTag) -> bool:
        cfg = self.channels.get(tag)
        return cfg is not None and cfg.enabled

    def with_channel(self, tag: ChannelTag, **changes) -> "PipelineConfig":
        """Return a copy with one channel's settings replaced."""
        channels = dict(self.channels)
        channels[tag] = replace(channels[tag], **changes)
        return replace(self, channels=channels)
