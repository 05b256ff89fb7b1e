"""Signal processing building blocks for the channel processors and aggregator.

Modules:
    filters  -- notch / Butterworth band-pass / smoothing
    sqi      -- sliding-window signal quality index
    peaks    -- pulse peak detection and heart rate
    wavelet  -- Morlet power spectrum and EEG band powers
    features -- time-domain HRV (AVNN, SDNN, RMSSD, SDSD, pNN50/20, stress)
    spo2     -- SpO2 from red/IR pulsatile ratios
    activity -- activity type, intensity and posture from acceleration
    lfhf     -- LF/HF power via Welch periodogram of resampled RR
"""

from biostream.analytics.filters import (
    bandpass_filter,
    moving_average,
    notch_filter,
    remove_dc,
)
from biostream.analytics.sqi import eeg_sqi, ppg_sqi
from biostream.analytics.peaks import (
    adaptive_threshold_peaks,
    derivative_peaks,
    select_best_peaks,
    threshold_peaks,
)
from biostream.analytics.wavelet import BandPowers, band_powers, power_spectrum
from biostream.analytics.features import TimeDomainHRV, compute_rmssd, time_domain_hrv
from biostream.analytics.spo2 import estimate_spo2, estimate_spo2_from_ratio
from biostream.analytics.activity import ActivityType, classify_activity, movement_stats
from biostream.analytics.lfhf import LFHFResult, compute_lf_hf

__all__ = [
    # filters
    "bandpass_filter",
    "moving_average",
    "notch_filter",
    "remove_dc",
    # sqi
    "eeg_sqi",
    "ppg_sqi",
    # peaks
    "adaptive_threshold_peaks",
    "derivative_peaks",
    "select_best_peaks",
    "threshold_peaks",
    # wavelet
    "BandPowers",
    "band_powers",
    "power_spectrum",
    # features
    "TimeDomainHRV",
    "compute_rmssd",
    "time_domain_hrv",
    # spo2
    "estimate_spo2",
    "estimate_spo2_from_ratio",
    # activity
    "ActivityType",
    "classify_activity",
    "movement_stats",
    # lfhf
    "LFHFResult",
    "compute_lf_hf",
]
