"""Tests for the EEG, PPG, accelerometer and battery frame decoders."""

import math

import pytest

from biostream.decoders import (
    BioDecoder,
    FrameDecoder,
    InertialDecoder,
    PulseDecoder,
    RawFrame,
    decode_battery,
)
from biostream.errors import DecodeError
from biostream.protocol import EEG_UV_PER_COUNT, ChannelTag

from tests.conftest import (
    eeg_ticks,
    make_bio_frame,
    make_inertial_frame,
    make_pulse_frame,
    ppg_ticks,
)


# ===================================================================
# BioDecoder
# ===================================================================


class TestBioDecoder:
    def test_two_records(self):
        frame = make_bio_frame([(1000, -1000), (0, 2 ** 23 - 1)], ticks=eeg_ticks(1.0))
        samples = BioDecoder.decode(frame)
        assert len(samples) == 2
        assert samples[0].ch1_uv == pytest.approx(1000 * EEG_UV_PER_COUNT)
        assert samples[0].ch2_uv == pytest.approx(-1000 * EEG_UV_PER_COUNT)
        assert samples[1].ch2_uv == pytest.approx((2 ** 23 - 1) * EEG_UV_PER_COUNT)

    def test_timestamps_advance_at_sample_rate(self):
        frame = make_bio_frame([(0, 0)] * 3, ticks=eeg_ticks(1.0))
        samples = BioDecoder.decode(frame)
        assert [s.timestamp_ms for s in samples] == pytest.approx([1000.0, 1004.0, 1008.0])

    def test_lead_off_flags(self):
        frame = make_bio_frame(
            [(0, 0), (0, 0), (0, 0)],
            lead_off=[(True, False), (False, True), (False, False)],
        )
        samples = BioDecoder.decode(frame)
        assert samples[0].lead_off == (True, False)
        assert samples[1].lead_off == (False, True)
        assert not samples[2].any_lead_off

    def test_trailing_partial_record_ignored(self):
        frame = make_bio_frame([(5, 5)]) + b"\x00\x01\x02"
        assert len(BioDecoder.decode(frame)) == 1

    def test_short_payload_raises(self):
        with pytest.raises(DecodeError) as exc:
            BioDecoder.decode(b"\x00" * 7)
        assert exc.value.kind == "truncated"
        assert exc.value.channel == "bio"
        assert exc.value.length == 7

    def test_header_without_full_record_raises(self):
        with pytest.raises(DecodeError):
            BioDecoder.decode(b"\x00" * 10)


# ===================================================================
# PulseDecoder
# ===================================================================


class TestPulseDecoder:
    def test_records(self):
        frame = make_pulse_frame([(0x010203, 0x040506), (0xFFFFFF, 0)], ticks=ppg_ticks(1.0))
        samples = PulseDecoder.decode(frame)
        assert len(samples) == 2
        assert samples[0].red == 0x010203
        assert samples[0].ir == 0x040506
        assert samples[1].red == 0xFFFFFF
        assert samples[1].ir == 0

    def test_timestamps(self):
        frame = make_pulse_frame([(1, 1)] * 3, ticks=ppg_ticks(2.0))
        samples = PulseDecoder.decode(frame)
        assert [s.timestamp_ms for s in samples] == pytest.approx([2000.0, 2020.0, 2040.0])

    def test_short_payload_raises(self):
        with pytest.raises(DecodeError) as exc:
            PulseDecoder.decode(b"\x00" * 7)
        assert exc.value.channel == "pulse"


# ===================================================================
# InertialDecoder
# ===================================================================


class TestInertialDecoder:
    def test_scaling(self):
        decoder = InertialDecoder()
        samples = decoder.decode(make_inertial_frame([(16384, 0, -16384)]), received_at_ms=1000.0)
        assert samples[0].x == pytest.approx(1.0)
        assert samples[0].y == 0.0
        assert samples[0].z == pytest.approx(-1.0)
        assert samples[0].magnitude == pytest.approx(math.sqrt(2.0))

    def test_first_frame_anchored_to_receive_time(self):
        decoder = InertialDecoder(rate_hz=30.0)
        samples = decoder.decode(make_inertial_frame([(0, 0, 16384)] * 3), received_at_ms=1000.0)
        assert samples[-1].timestamp_ms == pytest.approx(1000.0)
        assert samples[0].timestamp_ms == pytest.approx(1000.0 - 2 * 1000.0 / 30.0)

    def test_continuity_across_frames(self):
        """The next frame continues from the last emitted timestamp."""
        decoder = InertialDecoder(rate_hz=30.0)
        first = decoder.decode(make_inertial_frame([(0, 0, 16384)] * 3), received_at_ms=1000.0)
        second = decoder.decode(make_inertial_frame([(0, 0, 16384)] * 3), received_at_ms=1120.0)
        stamps = [s.timestamp_ms for s in first + second]
        gaps = [b - a for a, b in zip(stamps, stamps[1:])]
        assert gaps == pytest.approx([1000.0 / 30.0] * 5)
        assert decoder.resync_count == 0

    def test_resync_after_gap(self):
        decoder = InertialDecoder(rate_hz=30.0)
        decoder.decode(make_inertial_frame([(0, 0, 16384)] * 3), received_at_ms=1000.0)
        samples = decoder.decode(make_inertial_frame([(0, 0, 16384)] * 3), received_at_ms=5000.0)
        assert decoder.resync_count == 1
        assert samples[-1].timestamp_ms == pytest.approx(5000.0)

    def test_reset_forgets_continuity(self):
        decoder = InertialDecoder()
        decoder.decode(make_inertial_frame([(0, 0, 0)]), received_at_ms=1000.0)
        decoder.reset()
        assert decoder.last_timestamp_ms is None

    def test_short_payload_raises(self):
        with pytest.raises(DecodeError) as exc:
            InertialDecoder().decode(b"\x00" * 9, received_at_ms=0.0)
        assert exc.value.channel == "inertial"


# ===================================================================
# Battery and dispatch
# ===================================================================


class TestBattery:
    def test_level_and_status(self):
        reading = decode_battery(b"\x55", received_at_ms=12.0)
        assert reading.level == 85
        assert reading.status == "high"
        assert reading.timestamp_ms == 12.0

    def test_level_capped(self):
        assert decode_battery(b"\xc8").level == 100

    def test_empty_payload_raises(self):
        with pytest.raises(DecodeError):
            decode_battery(b"")


class TestFrameDecoder:
    def test_dispatch_by_channel(self):
        decoder = FrameDecoder()
        bio = decoder.decode(RawFrame(ChannelTag.BIO, make_bio_frame([(1, 2)])))
        pulse = decoder.decode(RawFrame(ChannelTag.PULSE, make_pulse_frame([(1, 2)])))
        acc = decoder.decode(RawFrame(ChannelTag.INERTIAL, make_inertial_frame([(1, 2, 3)]), 100.0))
        assert len(bio) == len(pulse) == len(acc) == 1
        assert acc[0].timestamp_ms == pytest.approx(100.0)

    def test_battery_frames_rejected(self):
        with pytest.raises(ValueError):
            FrameDecoder().decode(RawFrame(ChannelTag.BATTERY, b"\x50"))

    def test_custom_rate(self):
        decoder = FrameDecoder(bio_rate_hz=500.0)
        samples = decoder.decode(RawFrame(ChannelTag.BIO, make_bio_frame([(0, 0)] * 2)))
        assert samples[1].timestamp_ms - samples[0].timestamp_ms == pytest.approx(2.0)
