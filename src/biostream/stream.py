"""Live streaming from a headband into the pipeline.

Connects with bleak, subscribes to the EEG, PPG, accelerometer and battery
characteristics, and feeds every notification to a :class:`StreamPipeline`.
A console sink prints the aggregate metrics once a second.  Optionally each
notification is also appended to a ``.jsonl`` capture that
:mod:`biostream.replay` can read back.
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import IO

from bleak import BleakClient
from bleak.backends.characteristic import BleakGATTCharacteristic

from biostream.aggregator import AggregatedMetrics
from biostream.config import PipelineConfig
from biostream.decoders.frame import BatteryReading, RawFrame
from biostream.pipeline import StreamPipeline
from biostream.protocol import CHARACTERISTIC_CHANNELS, ChannelTag
from biostream.scanner import find_device
from biostream.sink import Sink

logger = logging.getLogger(__name__)

PRINT_INTERVAL_S = 1.0


def format_metrics(metrics: AggregatedMetrics) -> str:
    """One console line summarising an aggregate snapshot."""
    parts = []
    if metrics.pulse is not None:
        parts.append(f"HR {metrics.pulse.bpm:.0f} bpm")
        if metrics.pulse.spo2:
            parts.append(f"SpO2 {metrics.pulse.spo2:.0f}%")
    if metrics.time_domain is not None:
        parts.append(f"RMSSD {metrics.time_domain.rmssd:.1f} ms")
    spectral = metrics.spectral
    if spectral.accepted:
        parts.append(f"LF/HF {spectral.lf_hf_ratio:.2f}")
    if metrics.bio is not None:
        parts.append(
            f"attention {metrics.bio.attention_level:.2f} meditation {metrics.bio.meditation_level:.2f}"
        )
    if metrics.inertial is not None:
        parts.append(f"{metrics.inertial.activity}")
    return "  ".join(parts) if parts else "waiting for data..."


class ConsoleSink(Sink):
    """Print aggregate metrics at most once per interval."""

    def __init__(self, interval_s: float = PRINT_INTERVAL_S):
        self.interval_s = interval_s
        self._last_print = 0.0
        self.battery: BatteryReading | None = None
        self.errors = 0

    def on_metrics_updated(self, metrics: AggregatedMetrics) -> None:
        now = time.monotonic()
        if now - self._last_print < self.interval_s:
            return
        self._last_print = now
        stamp = datetime.now(timezone.utc).strftime("%H:%M:%S")
        battery = f"  [battery {self.battery.level}%]" if self.battery else ""
        print(f"[{stamp}] {format_metrics(metrics)}{battery}", flush=True)

    def on_battery(self, reading: BatteryReading) -> None:
        self.battery = reading

    def on_error(self, error: BaseException, source: str) -> None:
        self.errors += 1
        logger.debug("%s: %s", source, error)


def capture_record(char_uuid: str, data: bytes, received_ms: float) -> dict:
    """Capture line for one notification, in the format the replayer reads."""
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uuid": char_uuid,
        "hex_data": data.hex(),
        "raw_bytes_b64": base64.b64encode(data).decode("ascii"),
        "received_ms": received_ms,
        "length": len(data),
    }


async def stream_device(
    address: str | None = None,
    duration: float | None = None,
    capture_path: str | None = None,
    config: PipelineConfig | None = None,
) -> None:
    """Connect to a headband and run the pipeline on its live data.

    Args:
        address: BLE address. If None, scans for a headband.
        duration: Streaming duration in seconds. None = run until Ctrl+C.
        capture_path: Optional .jsonl file to append raw notifications to.
        config: Pipeline configuration; defaults to the device settings.
    """
    if address is None:
        device = await find_device()
        if device is None:
            print("No headband found.")
            return
        address = device.address

    sink = ConsoleSink()
    pipeline = StreamPipeline(config, sink)
    capture: IO[str] | None = None
    if capture_path:
        out = Path(capture_path)
        out.parent.mkdir(parents=True, exist_ok=True)
        capture = open(out, "a")

    count = 0
    start = time.monotonic()

    print(f"Connecting to {address}...")

    try:
        async with BleakClient(address) as client:
            print(f"Connected. MTU={client.mtu_size}")

            def make_handler(char_uuid: str, channel: ChannelTag):
                def handler(_char: BleakGATTCharacteristic, data: bytearray) -> None:
                    nonlocal count
                    count += 1
                    received_ms = (time.monotonic() - start) * 1000.0
                    payload = bytes(data)
                    if capture is not None:
                        capture.write(json.dumps(capture_record(char_uuid, payload, received_ms)) + "\n")
                        capture.flush()
                    pipeline.feed(RawFrame(channel, payload, received_ms))
                return handler

            subscribed = []
            for char_uuid, channel in CHARACTERISTIC_CHANNELS.items():
                if channel is not ChannelTag.BATTERY and not pipeline.config.is_enabled(channel):
                    continue
                char = client.services.get_characteristic(char_uuid)
                if char is None:
                    print(f"  Warning: {channel.value} characteristic {char_uuid} not found")
                    continue
                await client.start_notify(char, make_handler(char_uuid, channel))
                subscribed.append(channel.value)

            if not subscribed:
                print("Error: no sensor characteristics found on device.")
                return

            print(f"Subscribed to {', '.join(subscribed)}.")
            print("\nStreaming (Ctrl+C to stop):\n")

            try:
                if duration:
                    await asyncio.sleep(duration)
                else:
                    while True:
                        await asyncio.sleep(1)
            except asyncio.CancelledError:
                pass
            finally:
                await pipeline.drain()
                perf = pipeline.performance()
                print(f"\n  {count} notifications, {perf.decode_errors} decode errors, "
                      f"dropped {perf.dropped_packets}")
    finally:
        if capture is not None:
            capture.close()
            print(f"  Capture written to {capture_path}")
