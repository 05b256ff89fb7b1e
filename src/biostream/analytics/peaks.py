"""Pulse peak detection and heart-rate estimation.

Two detectors run on a smoothed, zero-mean pulse signal:

- adaptive: a sample is a peak when it beats its two neighbours on each side
  and exceeds ``mean + 0.6 * (max - mean)`` of the surrounding 1 s window.
- derivative: the first difference turns from positive to non-positive with a
  negative second difference, and the sample clears ``0.3`` of its local
  ``max - mean`` range.

Each candidate set is scored on RR consistency, peak strength and
physiological plausibility; the best one feeds the RR / heart-rate stage.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np

# RR bounds used by the heart-rate stage (ms)
HR_RR_MIN_MS = 300.0
HR_RR_MAX_MS = 1500.0

HR_MIN_BPM = 40.0
HR_MAX_BPM = 200.0

IQR_FACTOR = 1.5
CV_PENALTY_THRESHOLD = 0.5
CV_PENALTY = 0.9


# ---------------------------------------------------------------------------
# Detectors
# ---------------------------------------------------------------------------


def _accept(peaks: list[int], i: int, min_distance: int) -> None:
    if not peaks or i - peaks[-1] >= min_distance:
        peaks.append(i)


def adaptive_threshold_peaks(
    data: np.ndarray,
    fs: float,
    window_s: float = 0.5,
    factor: float = 0.6,
    min_distance_s: float = 0.4,
) -> list[int]:
    """Local-threshold detector (primary)."""
    x = np.asarray(data, dtype=np.float64)
    half = int(fs * window_s)
    min_distance = int(fs * min_distance_s)
    peaks: list[int] = []
    for i in range(max(half, 2), len(x) - max(half, 2)):
        window = x[i - half:i + half]
        local_mean = float(window.mean())
        threshold = local_mean + (float(window.max()) - local_mean) * factor
        v = x[i]
        if (
            v > threshold
            and v > x[i - 1] and v > x[i + 1]
            and v > x[i - 2] and v > x[i + 2]
        ):
            _accept(peaks, i, min_distance)
    return peaks


def derivative_peaks(
    data: np.ndarray,
    fs: float,
    local: int = 10,
    factor: float = 0.3,
    min_distance_s: float = 0.4,
) -> list[int]:
    """First/second-derivative detector (fallback)."""
    x = np.asarray(data, dtype=np.float64)
    n = len(x)
    min_distance = int(fs * min_distance_s)
    peaks: list[int] = []
    for i in range(2, n - 2):
        rising = x[i] - x[i - 1]
        falling = x[i + 1] - x[i]
        if rising > 0 and falling <= 0:
            window = x[max(0, i - local):min(n, i + local)]
            local_mean = float(window.mean())
            if x[i] > local_mean + (float(window.max()) - local_mean) * factor:
                _accept(peaks, i, min_distance)
    return peaks


def threshold_peaks(
    data: np.ndarray,
    fraction: float,
    min_distance: int,
) -> list[int]:
    """Simple global detector: zero-mean, local maximum above ``fraction * max``."""
    x = np.asarray(data, dtype=np.float64)
    if len(x) < 3:
        return []
    x = x - x.mean()
    threshold = float(x.max()) * fraction
    peaks: list[int] = []
    for i in range(1, len(x) - 1):
        if x[i] > threshold and x[i] > x[i - 1] and x[i] > x[i + 1]:
            _accept(peaks, i, min_distance)
    return peaks


# ---------------------------------------------------------------------------
# Peak-set scoring
# ---------------------------------------------------------------------------


def score_peak_set(peaks: Sequence[int], data: np.ndarray, fs: float) -> float:
    """Score a candidate peak set in [0, 1].

    0.5 x spacing consistency (1 - CV) + 0.3 x amplitude strength
    + 0.2 x plausibility of the implied rate.
    """
    if len(peaks) < 2:
        return 0.0
    x = np.asarray(data, dtype=np.float64)
    spacing = np.diff(np.asarray(peaks, dtype=np.float64))
    mean_spacing = float(spacing.mean())
    if mean_spacing <= 0:
        return 0.0
    consistency = max(0.0, 1.0 - float(spacing.std()) / mean_spacing)

    peak_max = float(x.max())
    mean_amp = float(np.mean(x[list(peaks)]))
    amplitude = min(1.0, mean_amp / (peak_max * 0.5)) if peak_max > 0 else 0.0

    bpm = 60.0 / (mean_spacing / fs)
    plausible = 1.0 if HR_MIN_BPM <= bpm <= HR_MAX_BPM else 0.0

    return consistency * 0.5 + amplitude * 0.3 + plausible * 0.2


def select_best_peaks(
    candidates: Sequence[Sequence[int]],
    data: np.ndarray,
    fs: float,
) -> list[int]:
    """Return the highest-scoring candidate set (first wins on ties)."""
    best: list[int] = []
    best_score = 0.0
    for peaks in candidates:
        score = score_peak_set(peaks, data, fs)
        if score > best_score:
            best_score = score
            best = list(peaks)
    return best


# ---------------------------------------------------------------------------
# RR intervals and heart rate
# ---------------------------------------------------------------------------


def rr_intervals_ms(peaks: Sequence[int], fs: float) -> np.ndarray:
    """Successive peak spacing in milliseconds."""
    if len(peaks) < 2:
        return np.array([], dtype=np.float64)
    return np.diff(np.asarray(peaks, dtype=np.float64)) * (1000.0 / fs)


def filter_rr(
    rr: np.ndarray,
    lo: float = HR_RR_MIN_MS,
    hi: float = HR_RR_MAX_MS,
    iqr_factor: float = IQR_FACTOR,
) -> np.ndarray:
    """Keep RR in ``[lo, hi]``, then trim IQR outliers.

    Quartiles are taken by index into the sorted values
    (``sorted[floor(n * 0.25)]``, ``sorted[floor(n * 0.75)]``).
    """
    arr = np.asarray(rr, dtype=np.float64)
    valid = arr[(arr >= lo) & (arr <= hi)]
    if len(valid) < 2:
        return valid
    ordered = np.sort(valid)
    q1 = ordered[int(len(ordered) * 0.25)]
    q3 = ordered[int(len(ordered) * 0.75)]
    iqr = q3 - q1
    lower = q1 - iqr_factor * iqr
    upper = q3 + iqr_factor * iqr
    return valid[(valid >= lower) & (valid <= upper)]


def weighted_heart_rate(rr: np.ndarray) -> float:
    """Weighted mean of ``60000 / RR``; later intervals weigh more."""
    arr = np.asarray(rr, dtype=np.float64)
    if len(arr) == 0:
        return 0.0
    if len(arr) == 1:
        return 60000.0 / float(arr[0])
    weights = np.arange(1, len(arr) + 1, dtype=np.float64) / len(arr)
    return float(np.sum((60000.0 / arr) * weights) / np.sum(weights))


def coefficient_of_variation(values: Sequence[float]) -> float:
    """Population std / mean, or 0 for empty or zero-mean input."""
    arr = np.asarray(values, dtype=np.float64)
    if len(arr) == 0:
        return 0.0
    mean = float(arr.mean())
    if mean == 0:
        return 0.0
    return float(arr.std()) / mean


def validate_heart_rate(bpm: float, rr: np.ndarray) -> int:
    """Reject implausible rates and penalise erratic RR series.

    Returns 0 outside [40, 200] BPM.  With three or more intervals and a CV
    above 0.5, the rate is scaled by 0.9.
    """
    if bpm < HR_MIN_BPM or bpm > HR_MAX_BPM:
        return 0
    if len(rr) >= 3 and coefficient_of_variation(rr) > CV_PENALTY_THRESHOLD:
        return int(round(bpm * CV_PENALTY))
    return int(round(bpm))
