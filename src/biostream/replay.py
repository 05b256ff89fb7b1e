"""Replay captured notification logs through the streaming pipeline.

A capture is a ``.jsonl`` file with one notification per line::

    {"timestamp": "2026-03-01T10:00:00.120+00:00", "uuid": "...",
     "hex_data": "...", "raw_bytes_b64": "...", "received_ms": 120.0}

``raw_bytes_b64`` takes precedence over ``hex_data``.  ``received_ms`` is
optional; when it is missing the ISO ``timestamp`` is used as the host
receive time.  Lines for characteristics that are not sensor streams are
skipped.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Iterable, Iterator

from biostream.config import PipelineConfig
from biostream.decoders.frame import RawFrame
from biostream.pipeline import StreamPipeline
from biostream.protocol import channel_for_uuid
from biostream.sink import RecordingSink

logger = logging.getLogger(__name__)


def _received_ms(entry: dict) -> float | None:
    if entry.get("received_ms") is not None:
        return float(entry["received_ms"])
    stamp = entry.get("timestamp")
    if not isinstance(stamp, str):
        return None
    try:
        return datetime.fromisoformat(stamp).timestamp() * 1000.0
    except ValueError:
        return None


def frame_from_entry(entry: dict) -> RawFrame | None:
    """Build a RawFrame from one capture record, or None if it is not a sensor frame."""
    channel = channel_for_uuid(entry.get("uuid", ""))
    if channel is None:
        return None

    if "raw_bytes_b64" in entry:
        raw = base64.b64decode(entry["raw_bytes_b64"])
    elif "hex_data" in entry:
        raw = bytes.fromhex(entry["hex_data"])
    else:
        return None

    return RawFrame(channel=channel, payload=raw, received_at_ms=_received_ms(entry))


def read_capture(capture_path: str | Path, verbose: bool = False) -> Iterator[RawFrame]:
    """Yield sensor frames from a capture file in file order."""
    with open(capture_path) as f:
        for line_num, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue

            try:
                entry = json.loads(line)
            except json.JSONDecodeError:
                if verbose:
                    print(f"  [line {line_num}] Invalid JSON, skipping")
                continue

            try:
                frame = frame_from_entry(entry)
            except (binascii.Error, ValueError):
                if verbose:
                    print(f"  [line {line_num}] Undecodable payload, skipping")
                continue

            if frame is None:
                if verbose:
                    print(f"  [line {line_num}] {entry.get('uuid', '?')[:12]}... (not a sensor stream)")
                continue
            yield frame


async def replay_frames(
    frames: Iterable[RawFrame],
    config: PipelineConfig | None = None,
    sink: RecordingSink | None = None,
) -> RecordingSink:
    """Feed frames through a fresh pipeline, letting each pass finish before the next frame."""
    sink = sink if sink is not None else RecordingSink()
    pipeline = StreamPipeline(config, sink)
    for frame in frames:
        pipeline.feed(frame)
        await pipeline.drain()
    await pipeline.drain()
    logger.debug("Replay finished: %r", sink)
    sink.on_performance(pipeline.performance())
    return sink


def replay_file(
    capture_path: str,
    output_path: str | None = None,
    verbose: bool = False,
    config: PipelineConfig | None = None,
) -> RecordingSink | None:
    """Replay a .jsonl capture file through the pipeline.

    Args:
        capture_path: Path to the .jsonl capture file.
        output_path: Optional path to write the final metrics as JSON.
        verbose: If True, report skipped lines and every error.
        config: Pipeline configuration; defaults to the device settings.

    Returns:
        The sink holding every window, snapshot and error, or None if the
        file does not exist.
    """
    path = Path(capture_path)
    if not path.exists():
        print(f"File not found: {capture_path}")
        return None

    print(f"Replaying {path.name}...\n")
    frames = list(read_capture(path, verbose))
    sink = asyncio.run(replay_frames(frames, config))

    if verbose:
        for error, source in sink.errors:
            print(f"  [{source}] {type(error).__name__}: {error}")

    perf = sink.performance[-1] if sink.performance else None
    print(
        f"Summary: {len(frames)} sensor frames, {len(sink.bio)} EEG / "
        f"{len(sink.pulse)} PPG / {len(sink.inertial)} ACC windows, "
        f"{len(sink.battery)} battery readings, {len(sink.errors)} errors"
    )
    if perf is not None and perf.decode_errors:
        print(f"  {perf.decode_errors} frame(s) failed to decode")

    metrics = sink.latest_metrics
    if metrics is not None:
        print(f"  Final: {metrics}")

    if output_path:
        report = {
            "capture": path.name,
            "frames": len(frames),
            "windows": {
                "bio": len(sink.bio),
                "pulse": len(sink.pulse),
                "inertial": len(sink.inertial),
            },
            "errors": [
                {"source": source, "kind": getattr(error, "kind", type(error).__name__), "message": str(error)}
                for error, source in sink.errors
            ],
            "battery": sink.battery[-1].level if sink.battery else None,
            "metrics": metrics.to_dict() if metrics is not None else None,
            "performance": perf.to_dict() if perf is not None else None,
        }
        with open(output_path, "w") as out:
            json.dump(report, out, indent=2)
        print(f"Output written to {output_path}")

    return sink


def main() -> None:
    if len(sys.argv) < 2:
        print("Usage: python -m biostream.replay <capture_file.jsonl> [output.json]")
        sys.exit(1)

    capture_path = sys.argv[1]
    output_path = sys.argv[2] if len(sys.argv) > 2 and not sys.argv[2].startswith("-") else None
    verbose = "--verbose" in sys.argv or "-v" in sys.argv

    replay_file(capture_path, output_path, verbose)


if __name__ == "__main__":
    main()
