"""Tests for biostream.analytics.features -- time-domain HRV."""

import numpy as np
import pytest

from biostream.analytics.features import (
    TimeDomainHRV,
    avnn,
    compute_rmssd,
    pnn,
    pnn20,
    pnn50,
    sdnn,
    sdsd,
    stress_index,
    time_domain_hrv,
)


class TestComputeRMSSD:
    def test_empty_and_single(self):
        assert compute_rmssd([]) == 0.0
        assert compute_rmssd([800.0]) == 0.0

    def test_two_intervals(self):
        assert compute_rmssd([800.0, 900.0]) == 100.0

    def test_constant_intervals(self):
        assert compute_rmssd([800.0] * 4) == 0.0

    def test_known_values(self):
        # diffs: 10, -20, 30 -> mean square 466.67 -> ~21.6
        assert compute_rmssd([800.0, 810.0, 790.0, 820.0]) == pytest.approx(21.60, abs=0.01)

    def test_numpy_compatible(self):
        assert compute_rmssd(np.array([800.0, 810.0, 790.0, 820.0])) > 0


class TestSpreads:
    def test_avnn(self):
        assert avnn([800.0, 900.0]) == 850.0
        assert avnn([]) == 0.0

    def test_sdnn_is_population(self):
        assert sdnn([800.0, 900.0]) == pytest.approx(50.0)

    def test_sdsd(self):
        # diffs 10, -20, 30
        assert sdsd([800.0, 810.0, 790.0, 820.0]) == pytest.approx(np.std([10.0, -20.0, 30.0]))

    def test_sdsd_single(self):
        assert sdsd([800.0]) == 0.0


class TestPNN:
    def test_pnn50(self):
        # |diffs|: 100, 10, 70
        assert pnn50([800.0, 900.0, 890.0, 960.0]) == pytest.approx(200.0 / 3.0)

    def test_pnn20(self):
        assert pnn20([800.0, 825.0, 830.0]) == pytest.approx(50.0)
        assert pnn50([800.0, 825.0, 830.0]) == 0.0

    def test_strictly_above_threshold(self):
        assert pnn([800.0, 850.0], 50.0) == 0.0


class TestStressIndex:
    def test_relaxed(self):
        # SDNN 100, RMSSD 50, HR 80
        assert stress_index(100.0, 50.0, 750.0) == 0.0

    def test_maximal(self):
        assert stress_index(30.0, 20.0, 500.0) == pytest.approx(1.0)

    def test_zero_avnn(self):
        assert stress_index(100.0, 50.0, 0.0) == pytest.approx(0.2)

    def test_bounded(self):
        assert 0.0 <= stress_index(-50.0, -50.0, 10.0) <= 1.0


class TestTimeDomainHRV:
    def test_too_few(self):
        assert time_domain_hrv([800.0] * 9) is None

    def test_steady_rhythm(self):
        td = time_domain_hrv([800.0] * 10)
        assert isinstance(td, TimeDomainHRV)
        assert td.avnn == 800.0
        assert td.sdnn == 0.0
        assert td.rmssd == 0.0
        # 0.4 + 0.4 + 0.2 * |75 - 80| / 40
        assert td.stress_index == pytest.approx(0.825)

    def test_to_dict(self):
        td = time_domain_hrv([800.0, 810.0] * 6)
        d = td.to_dict()
        assert set(d) == {"avnn", "sdnn", "rmssd", "sdsd", "pnn50", "pnn20", "stress_index"}
        assert d["rmssd"] == pytest.approx(10.0)
