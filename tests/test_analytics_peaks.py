"""Tests for biostream.analytics.peaks -- detectors, scoring, RR and heart rate."""

import numpy as np
import pytest

from biostream.analytics.peaks import (
    adaptive_threshold_peaks,
    coefficient_of_variation,
    derivative_peaks,
    filter_rr,
    rr_intervals_ms,
    score_peak_set,
    select_best_peaks,
    threshold_peaks,
    validate_heart_rate,
    weighted_heart_rate,
)

from tests.conftest import pulse_wave

FS = 50.0
EXPECTED = [50, 100, 150, 200, 250, 300, 350]


@pytest.fixture
def wave():
    """Zero-mean 60 BPM pulse, 8 s at 50 Hz."""
    return pulse_wave(60.0, FS, 400, dc=0.0, amplitude=200.0)


# ========================== detectors ==========================


class TestAdaptiveThreshold:
    def test_finds_every_beat(self, wave):
        assert adaptive_threshold_peaks(wave, FS) == EXPECTED

    def test_flat_signal(self):
        assert adaptive_threshold_peaks(np.zeros(200), FS) == []

    def test_minimum_distance(self):
        x = np.zeros(200)
        x[[60, 65, 130]] = [100.0, 90.0, 100.0]
        # 65 is only 5 samples after 60 (< 0.4 s)
        assert adaptive_threshold_peaks(x, FS) == [60, 130]


class TestDerivative:
    def test_finds_every_beat(self, wave):
        assert derivative_peaks(wave, FS) == EXPECTED

    def test_monotonic_signal(self):
        assert derivative_peaks(np.arange(100, dtype=float), FS) == []


class TestThresholdPeaks:
    def test_on_raw_channel(self):
        x = pulse_wave(60.0, FS, 400)
        assert threshold_peaks(x, 0.5, 20) == EXPECTED

    def test_too_short(self):
        assert threshold_peaks(np.array([1.0, 2.0]), 0.5, 1) == []


# ========================== scoring ==========================


class TestScorePeakSet:
    def test_regular_peaks_score_one(self, wave):
        assert score_peak_set(EXPECTED, wave, FS) == pytest.approx(1.0)

    def test_fewer_than_two(self, wave):
        assert score_peak_set([50], wave, FS) == 0.0

    def test_implausible_rate_loses_plausibility(self, wave):
        # 5-sample spacing at 50 Hz is 600 BPM
        # consistency 0.5 + amplitude 0.3, no plausibility term
        assert score_peak_set([50, 55, 60], wave, FS) == pytest.approx(0.8)

    def test_select_best(self, wave):
        best = select_best_peaks([[50, 55, 60], EXPECTED], wave, FS)
        assert best == EXPECTED

    def test_select_first_on_tie(self, wave):
        shorter = [100, 150, 200, 250, 300]
        assert select_best_peaks([EXPECTED, shorter], wave, FS) == EXPECTED
        assert select_best_peaks([shorter, EXPECTED], wave, FS) == shorter

    def test_select_nothing(self, wave):
        assert select_best_peaks([[], [10]], wave, FS) == []


# ========================== RR and heart rate ==========================


class TestRRIntervals:
    def test_spacing_in_ms(self):
        assert rr_intervals_ms([0, 50, 100], FS).tolist() == [1000.0, 1000.0]

    def test_single_peak(self):
        assert len(rr_intervals_ms([10], FS)) == 0


class TestFilterRR:
    def test_range(self):
        out = filter_rr(np.array([200.0, 800.0, 820.0, 2000.0]))
        assert out.tolist() == [800.0, 820.0]

    def test_iqr_outlier_removed(self):
        rr = np.array([800.0] * 10 + [1400.0])
        assert filter_rr(rr).tolist() == [800.0] * 10

    def test_keeps_order(self):
        rr = np.array([820.0, 800.0, 810.0, 790.0])
        assert filter_rr(rr).tolist() == [820.0, 800.0, 810.0, 790.0]


class TestHeartRate:
    def test_weighted_mean_favours_recent(self):
        # weights 0.5 and 1.0 on 60 and 120 BPM
        assert weighted_heart_rate(np.array([1000.0, 500.0])) == pytest.approx(100.0)

    def test_single_interval(self):
        assert weighted_heart_rate(np.array([750.0])) == pytest.approx(80.0)

    def test_empty(self):
        assert weighted_heart_rate(np.array([])) == 0.0

    @pytest.mark.parametrize("bpm", [39.9, 200.1])
    def test_out_of_range_rejected(self, bpm):
        assert validate_heart_rate(bpm, np.array([800.0] * 5)) == 0

    def test_steady_accepted(self):
        assert validate_heart_rate(72.4, np.array([830.0] * 5)) == 72

    def test_erratic_penalised(self):
        rr = np.array([300.0, 1400.0, 300.0, 1400.0])
        assert coefficient_of_variation(rr) > 0.5
        assert validate_heart_rate(100.0, rr) == 90

    def test_cv_empty(self):
        assert coefficient_of_variation([]) == 0.0
