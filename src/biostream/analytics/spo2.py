"""SpO2 estimation from red/IR pulsatile ratios with signal quality correction.

Uses the ratio of ratios R = (AC_red / DC_red) / (AC_ir / DC_ir), where AC is
the peak-to-valley amplitude of the lightly smoothed signal and DC its mean,
mapped through a piecewise calibration curve.
"""

from __future__ import annotations

import numpy as np

from biostream.analytics.filters import moving_average


# ---------------------------------------------------------------------------
# Core estimation
# ---------------------------------------------------------------------------

SPO2_FLOOR = 85.0
SPO2_CEIL = 100.0

# Minimum per-channel std (ADC counts) to attempt an estimate
MIN_STD = 10.0

# Below this std ratio between channels, pull the estimate toward 95%
QUALITY_RATIO_MIN = 0.5
QUALITY_TARGET = 95.0
QUALITY_PULL = 0.05


def estimate_spo2_from_ratio(r: float) -> float:
    """Map the red/IR ratio of ratios to an (unclamped) SpO2 percentage.

    Piecewise calibration curve:
        R < 0.5  -> 100
        R < 0.7  -> 104 - 17 R
        R < 1.0  -> 112 - 25 R
        R < 2.0  -> 120 - 35 R
        else     -> max(70, 100 - 15 R)
    """
    if r < 0.5:
        return 100.0
    if r < 0.7:
        return 104.0 - 17.0 * r
    if r < 1.0:
        return 112.0 - 25.0 * r
    if r < 2.0:
        return 120.0 - 35.0 * r
    return max(70.0, 100.0 - 15.0 * r)


def pulsatile_component(data: np.ndarray) -> float:
    """Peak-to-valley amplitude of the 3-point smoothed signal.

    Mean of local maxima minus mean of local minima; falls back to the
    signal range when either set is empty.  0 below 10 samples.
    """
    x = np.asarray(data, dtype=np.float64)
    if len(x) < 10:
        return 0.0
    s = moving_average(x, 3)
    mid = s[1:-1]
    is_peak = (mid > s[:-2]) & (mid > s[2:])
    is_valley = (mid < s[:-2]) & (mid < s[2:])
    if not is_peak.any() or not is_valley.any():
        return float(s.max() - s.min())
    return abs(float(mid[is_peak].mean()) - float(mid[is_valley].mean()))


def estimate_spo2(red: np.ndarray, ir: np.ndarray) -> int:
    """Estimate SpO2 (%) from raw red and IR channels.

    Returns 0 when the channels are empty, mismatched, too flat, or have a
    zero AC/DC component.  Otherwise the result is clamped to [85, 100].
    """
    red = np.asarray(red, dtype=np.float64)
    ir = np.asarray(ir, dtype=np.float64)
    if len(red) == 0 or len(red) != len(ir):
        return 0

    red_std = float(np.std(red))
    ir_std = float(np.std(ir))
    if red_std < MIN_STD or ir_std < MIN_STD:
        return 0

    red_ac = pulsatile_component(red)
    ir_ac = pulsatile_component(ir)
    red_dc = float(np.mean(red))
    ir_dc = float(np.mean(ir))
    if red_ac == 0 or ir_ac == 0 or red_dc == 0 or ir_dc == 0:
        return 0

    r = (red_ac / red_dc) / (ir_ac / ir_dc)
    spo2 = estimate_spo2_from_ratio(r)

    quality = min(red_std, ir_std) / max(red_std, ir_std)
    if quality < QUALITY_RATIO_MIN:
        spo2 = spo2 * (1.0 - QUALITY_PULL) + QUALITY_TARGET * QUALITY_PULL

    return int(round(max(SPO2_FLOOR, min(SPO2_CEIL, spo2))))
