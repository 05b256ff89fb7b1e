"""Shared builders and helpers for the biostream test suite."""

from __future__ import annotations

import json
import math
import struct
from pathlib import Path
from typing import Sequence

import numpy as np

from biostream.decoders.bio import BioSample
from biostream.decoders.inertial import InertialSample
from biostream.decoders.pulse import PulseSample
from biostream.protocol import (
    EEG_CLOCK_DIVISOR,
    EEG_LEAD_OFF_CH1,
    EEG_LEAD_OFF_CH2,
    EEG_UV_PER_COUNT,
    PPG_CLOCK_DIVISOR,
)


# ---------------------------------------------------------------------------
# Wire-frame builders
# ---------------------------------------------------------------------------


def s24_bytes(value: int) -> bytes:
    """Encode a signed 24-bit big-endian integer."""
    return (value & 0xFFFFFF).to_bytes(3, "big")


def u24_bytes(value: int) -> bytes:
    """Encode an unsigned 24-bit big-endian integer."""
    return value.to_bytes(3, "big")


def uv_to_counts(uv: float) -> int:
    return int(round(uv / EEG_UV_PER_COUNT))


def make_bio_frame(
    records: Sequence[tuple[int, int]],
    ticks: int = 0,
    lead_off: Sequence[tuple[bool, bool]] | None = None,
) -> bytes:
    """Build an EEG notification from (ch1, ch2) ADC count pairs."""
    buf = bytearray(struct.pack("<I", ticks))
    for i, (ch1, ch2) in enumerate(records):
        status = 0
        if lead_off is not None:
            off1, off2 = lead_off[i]
            status = (EEG_LEAD_OFF_CH1 if off1 else 0) | (EEG_LEAD_OFF_CH2 if off2 else 0)
        buf.append(status)
        buf += s24_bytes(ch1) + s24_bytes(ch2)
    return bytes(buf)


def make_pulse_frame(records: Sequence[tuple[int, int]], ticks: int = 0) -> bytes:
    """Build a PPG notification from (red, ir) count pairs."""
    buf = bytearray(struct.pack("<I", ticks))
    for red, ir in records:
        buf += u24_bytes(red) + u24_bytes(ir)
    return bytes(buf)


def make_inertial_frame(records: Sequence[tuple[int, int, int]], ticks: int = 0) -> bytes:
    """Build an accelerometer notification from int16 (x, y, z) triples."""
    buf = bytearray(struct.pack("<I", ticks))
    for x, y, z in records:
        buf += struct.pack("<hhh", x, y, z)
    return bytes(buf)


def eeg_ticks(seconds: float) -> int:
    return int(round(seconds * EEG_CLOCK_DIVISOR))


def ppg_ticks(seconds: float) -> int:
    return int(round(seconds * PPG_CLOCK_DIVISOR))


# ---------------------------------------------------------------------------
# Synthetic signals
# ---------------------------------------------------------------------------


def sine(freq: float, fs: float, n: int, amplitude: float = 1.0, offset: float = 0.0) -> np.ndarray:
    t = np.arange(n) / fs
    return offset + amplitude * np.sin(2 * np.pi * freq * t)


def pulse_wave(bpm: float = 60.0, fs: float = 50.0, n: int = 500,
               dc: float = 1000.0, amplitude: float = 200.0) -> np.ndarray:
    """Cosine pulse train: peaks land exactly on multiples of the beat period."""
    t = np.arange(n) / fs
    return dc + amplitude * np.cos(2 * np.pi * (bpm / 60.0) * t)


def modulated_rr(n: int = 120, base: float = 800.0) -> list[float]:
    """RR series with a 0.1 Hz (LF) and a 0.25 Hz (HF) oscillation."""
    rr: list[float] = []
    t = 0.0
    for _ in range(n):
        value = (
            base
            + 40.0 * math.sin(2 * math.pi * 0.25 * t)
            + 30.0 * math.sin(2 * math.pi * 0.1 * t)
        )
        rr.append(value)
        t += value / 1000.0
    return rr


# ---------------------------------------------------------------------------
# Sample builders (bypass the wire format)
# ---------------------------------------------------------------------------


def bio_samples(
    ch1: Sequence[float],
    ch2: Sequence[float] | None = None,
    fs: float = 250.0,
    lead_off: Sequence[tuple[bool, bool]] | None = None,
) -> list[BioSample]:
    ch2 = ch1 if ch2 is None else ch2
    return [
        BioSample(
            timestamp_ms=i * 1000.0 / fs,
            ch1_uv=float(a),
            ch2_uv=float(b),
            lead_off=lead_off[i] if lead_off is not None else (False, False),
        )
        for i, (a, b) in enumerate(zip(ch1, ch2))
    ]


def pulse_samples(red: Sequence[float], ir: Sequence[float] | None = None,
                  fs: float = 50.0) -> list[PulseSample]:
    ir = red if ir is None else ir
    return [
        PulseSample(timestamp_ms=i * 1000.0 / fs, red=int(round(r)), ir=int(round(v)))
        for i, (r, v) in enumerate(zip(red, ir))
    ]


def inertial_samples(xyz: Sequence[tuple[float, float, float]], fs: float = 30.0,
                     start_ms: float = 0.0) -> list[InertialSample]:
    return [
        InertialSample(
            timestamp_ms=start_ms + i * 1000.0 / fs,
            x=x, y=y, z=z,
            magnitude=math.sqrt(x * x + y * y + z * z),
        )
        for i, (x, y, z) in enumerate(xyz)
    ]


# ---------------------------------------------------------------------------
# JSONL capture file helpers
# ---------------------------------------------------------------------------


def write_jsonl(path: Path, entries: list[dict]) -> Path:
    """Write a list of dicts as JSONL to the given path."""
    with open(path, "w") as f:
        for entry in entries:
            f.write(json.dumps(entry) + "\n")
    return path


def make_capture_entry(
    uuid: str,
    hex_data: str,
    timestamp: str = "2026-02-13T12:00:00+00:00",
    received_ms: float | None = None,
) -> dict:
    """Create a single JSONL capture entry."""
    entry = {
        "uuid": uuid,
        "hex_data": hex_data,
        "timestamp": timestamp,
    }
    if received_ms is not None:
        entry["received_ms"] = received_ms
    return entry
