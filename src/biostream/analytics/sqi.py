"""Per-sample signal quality index (SQI) scoring.

Both the EEG and PPG processors score quality the same way: slide a fixed
window over the filtered signal, score each window, and hand every sample the
score of the window that starts at it (the tail, where no full window starts,
keeps the last window's score).  Signals shorter than one window score 0.

Amplitude score: 1.0 while |x| <= threshold, falling linearly to 0 at twice the
threshold, averaged over the window.
Variance score: 1 - var / max_variance, clipped to [0, 1].
"""

from __future__ import annotations

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view

# EEG defaults (uV)
EEG_WINDOW = 125  # 0.5 s at 250 Hz
EEG_AMPLITUDE_THRESHOLD = 150.0
EEG_MAX_VARIANCE = 1000.0
EEG_AMPLITUDE_WEIGHT = 0.7

# PPG defaults (filtered ADC counts)
PPG_WINDOW = 25  # 0.5 s at 50 Hz
PPG_AMPLITUDE_THRESHOLD = 250.0


def _spread(window_scores: np.ndarray, n: int, window: int) -> np.ndarray:
    sqi = np.zeros(n, dtype=np.float64)
    if n < window or len(window_scores) == 0:
        return sqi
    m = n - window + 1
    sqi[:m] = window_scores
    sqi[m:] = window_scores[-1]
    return sqi


def amplitude_scores(data: np.ndarray, threshold: float) -> np.ndarray:
    """Per-sample amplitude quality in [0, 1]."""
    mag = np.abs(np.asarray(data, dtype=np.float64))
    excess = np.clip((mag - threshold) / threshold, 0.0, 1.0)
    return 1.0 - excess


def amplitude_sqi(data: np.ndarray, window: int, threshold: float) -> np.ndarray:
    """Windowed amplitude SQI in [0, 1] for every sample."""
    arr = np.asarray(data, dtype=np.float64)
    if len(arr) < window:
        return np.zeros(len(arr))
    scores = amplitude_scores(arr, threshold)
    means = np.convolve(scores, np.ones(window) / window, mode="valid")
    return _spread(means, len(arr), window)


def variance_sqi(data: np.ndarray, window: int, max_variance: float) -> np.ndarray:
    """Windowed variance SQI in [0, 1] for every sample."""
    arr = np.asarray(data, dtype=np.float64)
    if len(arr) < window:
        return np.zeros(len(arr))
    variances = sliding_window_view(arr, window).var(axis=1)
    scores = np.clip(1.0 - variances / max_variance, 0.0, 1.0)
    return _spread(scores, len(arr), window)


def eeg_sqi(
    data: np.ndarray,
    window: int = EEG_WINDOW,
    threshold: float = EEG_AMPLITUDE_THRESHOLD,
    max_variance: float = EEG_MAX_VARIANCE,
    amplitude_weight: float = EEG_AMPLITUDE_WEIGHT,
) -> np.ndarray:
    """Combined amplitude/variance SQI for an EEG channel, as a percentage."""
    amp = amplitude_sqi(data, window, threshold)
    var = variance_sqi(data, window, max_variance)
    return (amplitude_weight * amp + (1.0 - amplitude_weight) * var) * 100.0


def ppg_sqi(
    data: np.ndarray,
    window: int = PPG_WINDOW,
    threshold: float = PPG_AMPLITUDE_THRESHOLD,
) -> np.ndarray:
    """Amplitude SQI for a filtered PPG channel, as a percentage."""
    return amplitude_sqi(data, window, threshold) * 100.0
