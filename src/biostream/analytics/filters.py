"""IIR filtering helpers shared by the channel processors."""

from __future__ import annotations

import numpy as np
from scipy import signal as sig


def remove_dc(data: np.ndarray) -> np.ndarray:
    """Subtract the mean."""
    arr = np.asarray(data, dtype=np.float64)
    if len(arr) == 0:
        return arr
    return arr - np.mean(arr)


def notch_filter(
    data: np.ndarray,
    fs: float,
    freq: float = 60.0,
    bandwidth: float = 2.0,
) -> np.ndarray:
    """Causal IIR notch at *freq* Hz with the given -3 dB bandwidth."""
    arr = np.asarray(data, dtype=np.float64)
    if freq >= fs / 2.0:
        return arr
    b, a = sig.iirnotch(freq, freq / bandwidth, fs=fs)
    return sig.lfilter(b, a, arr)


def bandpass_filter(
    data: np.ndarray,
    fs: float,
    lo: float,
    hi: float,
    order: int = 4,
    zero_phase: bool = False,
) -> np.ndarray:
    """Apply a Butterworth bandpass filter.

    Args:
        data: Input signal.
        fs: Sample rate in Hz.
        lo: Lower cutoff in Hz.
        hi: Upper cutoff in Hz.
        order: Filter order.
        zero_phase: Run forward-backward (``sosfiltfilt``) instead of causal.
    """
    arr = np.asarray(data, dtype=np.float64)
    nyq = fs / 2.0
    # Clamp to avoid invalid Wn values
    lo_n = max(lo / nyq, 0.001)
    hi_n = min(hi / nyq, 0.999)
    if lo_n >= hi_n:
        return arr
    sos = sig.butter(order, [lo_n, hi_n], btype="band", output="sos")
    if zero_phase:
        padlen = 3 * (2 * len(sos) + 1)
        if len(arr) <= padlen:
            return sig.sosfilt(sos, arr)
        return sig.sosfiltfilt(sos, arr)
    return sig.sosfilt(sos, arr)


def moving_average(data: np.ndarray, window: int = 3) -> np.ndarray:
    """Centred moving average; edge samples average over the part of the window that exists."""
    arr = np.asarray(data, dtype=np.float64)
    if window <= 1 or len(arr) == 0:
        return arr.copy()
    kernel = np.ones(window)
    sums = np.convolve(arr, kernel, mode="same")
    counts = np.convolve(np.ones(len(arr)), kernel, mode="same")
    return sums / counts
