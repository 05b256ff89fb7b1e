"""Tests for biostream.analytics.spo2 -- ratio-of-ratios SpO2 estimation."""

import numpy as np
import pytest

from biostream.analytics.spo2 import (
    estimate_spo2,
    estimate_spo2_from_ratio,
    pulsatile_component,
)

from tests.conftest import pulse_wave


class TestCalibrationCurve:
    @pytest.mark.parametrize("r,expected", [
        (0.4, 100.0),
        (0.6, 104.0 - 17.0 * 0.6),
        (0.8, 92.0),
        (1.5, 120.0 - 35.0 * 1.5),
        (3.0, 70.0),
    ])
    def test_segments(self, r, expected):
        assert estimate_spo2_from_ratio(r) == pytest.approx(expected)


class TestPulsatileComponent:
    def test_too_short(self):
        assert pulsatile_component(np.arange(9, dtype=float)) == 0.0

    def test_peak_to_valley(self):
        x = pulse_wave(60.0, 50.0, 500, dc=1000.0, amplitude=20.0)
        # 3-point smoothing shrinks a 50-sample period only slightly
        assert pulsatile_component(x) == pytest.approx(40.0, rel=0.01)

    def test_monotonic_uses_range(self):
        x = np.arange(20, dtype=float)
        assert pulsatile_component(x) == pytest.approx(18.0, abs=1.0)


class TestEstimateSpO2:
    def test_empty_or_mismatched(self):
        assert estimate_spo2(np.array([]), np.array([])) == 0
        assert estimate_spo2(np.ones(10), np.ones(11)) == 0

    def test_flat_channel(self):
        ir = pulse_wave(60.0, 50.0, 500, amplitude=40.0)
        assert estimate_spo2(np.full(500, 1000.0), ir) == 0

    def test_known_ratio(self):
        red = pulse_wave(60.0, 50.0, 500, dc=1000.0, amplitude=20.0)
        ir = pulse_wave(60.0, 50.0, 500, dc=1000.0, amplitude=30.0)
        # R = 2/3 -> 104 - 17 * 2/3 = 92.67
        assert estimate_spo2(red, ir) == 93

    def test_clamped_to_floor(self):
        red = pulse_wave(60.0, 50.0, 500, dc=1000.0, amplitude=100.0)
        ir = pulse_wave(60.0, 50.0, 500, dc=1000.0, amplitude=20.0)
        assert estimate_spo2(red, ir) == 85

    def test_result_in_range(self):
        rng = np.random.default_rng(3)
        red = 50000 + rng.normal(0, 200, 500)
        ir = 60000 + rng.normal(0, 300, 500)
        assert 85 <= estimate_spo2(red, ir) <= 100
