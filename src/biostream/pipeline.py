"""Real-time streaming pipeline.

One :class:`StreamPipeline` owns everything for a session: the frame
decoder, a :class:`ChannelWorker` per enabled channel (ring buffer, processor,
in-flight guard), the metrics aggregator, and the sink it reports to.

Data flow per notification::

    RawFrame -> FrameDecoder -> RingBuffer -> (worker thread) Processor
             -> Sink.on_*_processed -> MetricsAggregator -> Sink.on_metrics_updated

Each channel runs at most one processing pass at a time.  A request that
arrives while a pass is in flight is dropped and counted, except on the pulse
channel, which remembers a single pending rerun instead.  Passes run in a
worker thread under a watchdog timeout so a slow pass never stalls ingestion.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Sequence

from biostream.aggregator import MetricsAggregator
from biostream.buffers import RingBuffer
from biostream.config import ChannelConfig, PipelineConfig
from biostream.decoders.frame import FrameDecoder, RawFrame, Sample, decode_battery
from biostream.errors import (
    BiostreamError,
    DecodeError,
    InvalidQuality,
    InvariantViolation,
    ProcessingTimeout,
)
from biostream.processors import (
    BioProcessor,
    BioWindow,
    InertialProcessor,
    InertialWindow,
    PulseProcessor,
    PulseWindow,
)
from biostream.protocol import ChannelTag
from biostream.sink import Sink

logger = logging.getLogger(__name__)

RATE_WINDOW_MS = 1000.0


@dataclass
class PerformanceMetrics:
    """Per-channel counters and timings for the running session."""

    processing_ms: dict[str, float] = field(default_factory=dict)
    buffer_sizes: dict[str, int] = field(default_factory=dict)
    dropped_packets: dict[str, int] = field(default_factory=dict)
    frames: dict[str, int] = field(default_factory=dict)
    sampling_rates: dict[str, float] = field(default_factory=dict)
    decode_errors: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "processing_ms": {k: round(v, 2) for k, v in self.processing_ms.items()},
            "buffer_sizes": dict(self.buffer_sizes),
            "dropped_packets": dict(self.dropped_packets),
            "frames": dict(self.frames),
            "sampling_rates": {k: round(v, 1) for k, v in self.sampling_rates.items()},
            "decode_errors": self.decode_errors,
        }


class ChannelWorker:
    """Ring buffer, processor and in-flight guard for one channel.

    Args:
        tag: Channel served by this worker.
        config: Buffer size and minimum fill for a pass.
        processor: Object with a ``process(samples)`` method.
        on_result: Called on the event loop with each produced window.
        on_error: Called with ``(error, channel)`` for failed passes.
        watchdog_s: Timeout for a single pass.
        coalesce: Keep one pending rerun instead of dropping busy requests.
    """

    def __init__(
        self,
        tag: ChannelTag,
        config: ChannelConfig,
        processor: Any,
        on_result: Callable[[Any], None],
        on_error: Callable[[BaseException, str], None],
        watchdog_s: float = 1.0,
        coalesce: bool = False,
        allow_growth: bool = False,
        growth_factor: float = 1.5,
    ):
        self.tag = tag
        self.config = config
        self.processor = processor
        self.on_result = on_result
        self.on_error = on_error
        self.watchdog_s = watchdog_s
        self.coalesce = coalesce
        self.buffer: RingBuffer[Sample] = RingBuffer(
            config.capacity, allow_growth=allow_growth, growth_factor=growth_factor
        )
        self.frames = 0
        self.dropped_packets = 0
        self.passes = 0
        self.last_processing_ms = 0.0
        self._task: asyncio.Task | None = None
        self._pending = False

    @property
    def busy(self) -> bool:
        return self._task is not None

    def push(self, samples: Sequence[Sample]) -> None:
        """Store decoded samples and schedule a pass once the buffer is primed."""
        self.frames += 1
        self.buffer.extend(samples)
        if len(self.buffer) >= self.config.min_samples:
            self.request()

    def request(self) -> bool:
        """Start a processing pass unless one is already in flight."""
        if self._task is not None:
            if self.coalesce:
                self._pending = True
            else:
                self.dropped_packets += 1
                logger.debug("%s busy, dropped request (%d total)", self.tag.value, self.dropped_packets)
            return False
        snapshot = self.buffer.to_list()
        self._task = asyncio.get_running_loop().create_task(self._run(snapshot))
        return True

    async def _run(self, snapshot: list[Sample]) -> None:
        start = time.perf_counter()
        try:
            window = await asyncio.wait_for(
                asyncio.to_thread(self.processor.process, snapshot),
                timeout=self.watchdog_s,
            )
            self.passes += 1
            self.on_result(window)
        except asyncio.TimeoutError:
            logger.warning("%s pass exceeded %.1fs watchdog", self.tag.value, self.watchdog_s)
            self.on_error(
                ProcessingTimeout(f"{self.tag.value} pass exceeded {self.watchdog_s}s"),
                self.tag.value,
            )
        except (BiostreamError, InvariantViolation) as exc:
            self.on_error(exc, self.tag.value)
        except Exception as exc:
            # processor or sink bug; report it and keep the channel alive
            logger.exception("%s pass failed", self.tag.value)
            self.on_error(exc, self.tag.value)
        finally:
            self.last_processing_ms = (time.perf_counter() - start) * 1000.0
            self._task = None

        if self._pending:
            self._pending = False
            self.request()

    async def drain(self) -> None:
        """Wait for the in-flight pass (and any pending rerun) to finish."""
        while self._task is not None:
            await self._task

    def measured_rate(self) -> float:
        """Samples per second over the last second of device timestamps."""
        samples = self.buffer.to_list()
        if not samples:
            return 0.0
        newest = samples[-1].timestamp_ms
        cutoff = newest - RATE_WINDOW_MS
        return float(sum(1 for s in samples if s.timestamp_ms > cutoff))

    def reset(self) -> None:
        self.buffer.clear()
        self._pending = False


class StreamPipeline:
    """Decode, buffer, process and aggregate one device session.

    Must be fed from a running asyncio event loop.
    """

    def __init__(
        self,
        config: PipelineConfig | None = None,
        sink: Sink | None = None,
        aggregator: MetricsAggregator | None = None,
    ):
        self.config = config or PipelineConfig.default()
        self.sink = sink or Sink()
        self.aggregator = aggregator or MetricsAggregator(
            self.config, on_error=lambda err: self.sink.on_error(err, "aggregator")
        )
        cfg = self.config
        self.decoder = FrameDecoder(
            bio_rate_hz=cfg.channel(ChannelTag.BIO).rate_hz,
            pulse_rate_hz=cfg.channel(ChannelTag.PULSE).rate_hz,
            inertial_rate_hz=cfg.channel(ChannelTag.INERTIAL).rate_hz,
        )
        self.decode_errors = 0
        self.workers: dict[ChannelTag, ChannelWorker] = {}

        processors = {
            ChannelTag.BIO: (
                BioProcessor(cfg.channel(ChannelTag.BIO).rate_hz, cfg.bio_quality_threshold),
                self._on_bio,
            ),
            ChannelTag.PULSE: (PulseProcessor(cfg.channel(ChannelTag.PULSE).rate_hz), self._on_pulse),
            ChannelTag.INERTIAL: (
                InertialProcessor(cfg.channel(ChannelTag.INERTIAL).rate_hz),
                self._on_inertial,
            ),
        }
        for tag, (processor, handler) in processors.items():
            if not cfg.is_enabled(tag):
                continue
            self.workers[tag] = ChannelWorker(
                tag,
                cfg.channel(tag),
                processor,
                on_result=handler,
                on_error=self.sink.on_error,
                watchdog_s=cfg.watchdog_timeout_s,
                coalesce=tag is ChannelTag.PULSE,
                allow_growth=cfg.allow_buffer_growth,
                growth_factor=cfg.growth_factor,
            )

    # -- ingestion ----------------------------------------------------------

    def feed(self, raw: RawFrame) -> None:
        """Handle one notification frame."""
        if raw.channel is ChannelTag.BATTERY:
            try:
                self.sink.on_battery(decode_battery(raw.payload, raw.received_at_ms))
            except DecodeError as exc:
                self._decode_failed(exc, raw)
            return

        worker = self.workers.get(raw.channel)
        if worker is None:
            return
        try:
            samples = self.decoder.decode(raw)
        except DecodeError as exc:
            self._decode_failed(exc, raw)
            return
        worker.push(samples)

    def _decode_failed(self, exc: DecodeError, raw: RawFrame) -> None:
        self.decode_errors += 1
        logger.debug("Dropped %r: %s", raw, exc)
        self.sink.on_error(exc, raw.channel.value)

    # -- window handlers ----------------------------------------------------

    def _on_bio(self, window: BioWindow) -> None:
        self.sink.on_bio_processed(window)
        if window.overall == 0:
            self.sink.on_error(InvalidQuality("no EEG sample passed the quality mask"), ChannelTag.BIO.value)
        self.aggregator.ingest_bio(window, window.overall)
        self._publish()

    def _on_pulse(self, window: PulseWindow) -> None:
        self.sink.on_pulse_processed(window)
        if window.sqi == 0:
            self.sink.on_error(InvalidQuality("PPG window has zero signal quality"), ChannelTag.PULSE.value)
        self.aggregator.ingest_pulse(window, window.gate_sqi, window.rr_intervals)
        self._publish()

    def _on_inertial(self, window: InertialWindow) -> None:
        self.sink.on_inertial_processed(window)
        self.aggregator.ingest_inertial(window)
        self._publish()

    def _publish(self) -> None:
        self.sink.on_metrics_updated(self.aggregator.snapshot())
        self.sink.on_performance(self.performance())

    # -- lifecycle ----------------------------------------------------------

    async def drain(self) -> None:
        """Wait for every in-flight processing pass to complete."""
        for worker in self.workers.values():
            await worker.drain()

    def reset(self) -> None:
        """Clear buffers, decoder continuity and aggregate state."""
        for worker in self.workers.values():
            worker.reset()
        self.decoder.reset()
        self.aggregator.reset()

    def performance(self) -> PerformanceMetrics:
        return PerformanceMetrics(
            processing_ms={t.value: w.last_processing_ms for t, w in self.workers.items()},
            buffer_sizes={t.value: len(w.buffer) for t, w in self.workers.items()},
            dropped_packets={t.value: w.dropped_packets for t, w in self.workers.items()},
            frames={t.value: w.frames for t, w in self.workers.items()},
            sampling_rates={t.value: w.measured_rate() for t, w in self.workers.items()},
            decode_errors=self.decode_errors,
        )
