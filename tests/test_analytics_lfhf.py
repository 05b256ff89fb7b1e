"""Tests for biostream.analytics.lfhf -- RR screening and Welch LF/HF power."""

import numpy as np
import pytest

from biostream.analytics.lfhf import (
    LFHFResult,
    _interpolate_rr,
    compute_lf_hf,
    integrate_band,
    screen_rr,
    welch_psd,
)
from biostream.errors import AggregationError, UnstableSpectrum

from tests.conftest import modulated_rr


class TestScreening:
    def test_empty(self):
        with pytest.raises(UnstableSpectrum):
            screen_rr([])

    def test_low_validity(self):
        with pytest.raises(UnstableSpectrum) as exc:
            screen_rr([100.0] * 10 + [800.0] * 20)
        assert exc.value.validity == pytest.approx(2.0 / 3.0)
        assert exc.value.kind == "unstable"

    def test_erratic(self):
        with pytest.raises(UnstableSpectrum) as exc:
            screen_rr([400.0, 900.0] * 20)
        assert exc.value.stability == 0.0

    def test_steady(self):
        assert screen_rr([800.0] * 40) == (1.0, 1.0)

    def test_is_aggregation_error(self):
        assert issubclass(UnstableSpectrum, AggregationError)


class TestResampling:
    def test_constant_series(self):
        out = _interpolate_rr([1000.0] * 4)
        # 4 s at 4 Hz
        assert len(out) == 16
        assert np.allclose(out, 1.0)

    def test_single_interval(self):
        assert len(_interpolate_rr([800.0])) == 0


class TestIntegrateBand:
    def test_flat(self):
        freqs = np.array([0.0, 1.0, 2.0])
        assert integrate_band(freqs, np.ones(3), 0.5, 1.5) == pytest.approx(1.0)

    def test_linear(self):
        freqs = np.array([0.0, 1.0, 2.0])
        assert integrate_band(freqs, freqs.copy(), 0.0, 2.0) == pytest.approx(2.0)

    def test_outside(self):
        freqs = np.array([0.0, 1.0])
        assert integrate_band(freqs, np.ones(2), 3.0, 4.0) == 0.0


class TestWelch:
    def test_short_series_segment_clamped(self):
        freqs, psd = welch_psd(np.random.default_rng(0).normal(size=40))
        assert len(freqs) == len(psd)
        assert freqs[-1] == pytest.approx(2.0)


class TestComputeLFHF:
    def test_modulated_rhythm(self):
        result = compute_lf_hf(modulated_rr(120))
        assert isinstance(result, LFHFResult)
        assert result.lf_power > 10.0
        assert result.hf_power > 10.0
        # 30 ms at 0.1 Hz vs 40 ms at 0.25 Hz
        assert 0.2 < result.ratio < 1.5
        assert result.validity == 1.0
        assert not result.used_extended_hf

    def test_too_few_intervals(self):
        with pytest.raises(UnstableSpectrum):
            compute_lf_hf([800.0] * 20)

    def test_erratic_rejected(self):
        with pytest.raises(UnstableSpectrum):
            compute_lf_hf([400.0, 900.0] * 30)

    def test_ratio_zero_hf(self):
        assert LFHFResult(5.0, 0.0, 1.0, 1.0).ratio == 0.0
