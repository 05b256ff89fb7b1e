"""Tests for the console side of live streaming (no BLE connection)."""

from biostream.aggregator import AggregatedMetrics, BioMetrics, PulseMetrics
from biostream.decoders.frame import BatteryReading
from biostream.protocol import PPG_CHAR_UUID, ChannelTag
from biostream.replay import frame_from_entry
from biostream.stream import ConsoleSink, capture_record, format_metrics


class TestFormatMetrics:
    def test_empty(self):
        assert format_metrics(AggregatedMetrics()) == "waiting for data..."

    def test_pulse(self):
        line = format_metrics(AggregatedMetrics(pulse=PulseMetrics(bpm=72.4, spo2=97.0)))
        assert "HR 72 bpm" in line
        assert "SpO2 97%" in line
        assert "LF/HF" not in line

    def test_bio_levels_keep_two_decimals(self):
        line = format_metrics(AggregatedMetrics(bio=BioMetrics(attention_level=0.42, meditation_level=1.37)))
        assert "attention 0.42 meditation 1.37" in line


class TestConsoleSink:
    def test_prints_with_battery(self, capsys):
        sink = ConsoleSink(interval_s=0.0)
        sink.on_battery(BatteryReading(level=55, status="medium"))
        sink.on_metrics_updated(AggregatedMetrics(pulse=PulseMetrics(bpm=60.0)))
        out = capsys.readouterr().out
        assert "HR 60 bpm" in out
        assert "[battery 55%]" in out

    def test_throttled(self, capsys):
        sink = ConsoleSink(interval_s=1e9)
        sink.on_metrics_updated(AggregatedMetrics())
        assert capsys.readouterr().out == ""

    def test_counts_errors(self):
        sink = ConsoleSink()
        sink.on_error(ValueError("x"), "pulse")
        assert sink.errors == 1


class TestCaptureRecord:
    def test_readable_by_replay(self):
        payload = bytes(range(10))
        record = capture_record(PPG_CHAR_UUID, payload, 250.0)
        assert record["length"] == 10
        frame = frame_from_entry(record)
        assert frame.channel is ChannelTag.PULSE
        assert frame.payload == payload
        assert frame.received_at_ms == 250.0
