"""Time-domain heart-rate variability.

SDNN, RMSSD and pNN50 are computed from inter-beat intervals after IQR
outlier removal. Short rPPG windows give high-variance estimates; the stress
tier is a screening heuristic, not a clinical measure.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Sequence

import numpy as np

from .measurements import HRVMeasurement, StressLevel, round_half_up
from .peaks import calculate_ibi
from .preprocess import remove_outliers

logger = logging.getLogger(__name__)

MIN_CLEAN_INTERVALS = 5


class AutonomicBalance(str, Enum):
    SYMPATHETIC = "sympathetic"
    BALANCED = "balanced"
    PARASYMPATHETIC = "parasympathetic"


_BALANCE_DESCRIPTIONS = {
    AutonomicBalance.PARASYMPATHETIC: "Relaxed state, good recovery",
    AutonomicBalance.BALANCED: "Healthy autonomic balance",
    AutonomicBalance.SYMPATHETIC: "Active or stressed state",
}


@dataclass(frozen=True)
class AdvancedHRV:
    sdnn: int
    rmssd: int
    pnn50: int
    mean_hr: int
    min_hr: int
    max_hr: int
    hrv_index: int  # 0..100


def _clean_intervals(peak_indices: Sequence[int], sample_rate: float) -> np.ndarray:
    return remove_outliers(calculate_ibi(peak_indices, sample_rate))


def _time_domain(ibi: np.ndarray) -> tuple[float, float, float]:
    sdnn = float(ibi.std())
    diffs = np.diff(ibi)
    rmssd = float(np.sqrt(np.mean(diffs * diffs)))
    pnn50 = float(np.count_nonzero(np.abs(diffs) > 50.0)) / diffs.size * 100.0
    return sdnn, rmssd, pnn50


def stress_level(sdnn: float, rmssd: float) -> StressLevel:
    """Higher variability means lower stress."""
    if sdnn > 50 and rmssd > 40:
        return StressLevel.LOW
    if sdnn > 25 or rmssd > 20:
        return StressLevel.MEDIUM
    return StressLevel.HIGH


def calculate_hrv(peak_indices: Sequence[int], sample_rate: float = 30.0) -> HRVMeasurement:
    """Compute SDNN, RMSSD (ms) and pNN50 (%) from beat positions.

    Fewer than five intervals surviving outlier removal gives a zeroed result
    with the medium stress default.
    """
    ibi = _clean_intervals(peak_indices, sample_rate)
    if ibi.size < MIN_CLEAN_INTERVALS:
        logger.debug("Only %d clean intervals, HRV not computed", ibi.size)
        return HRVMeasurement(sdnn=0, rmssd=0, pnn50=0, stress_level=StressLevel.MEDIUM)

    sdnn, rmssd, pnn50 = _time_domain(ibi)
    return HRVMeasurement(
        sdnn=round_half_up(sdnn),
        rmssd=round_half_up(rmssd),
        pnn50=round_half_up(pnn50),
        stress_level=stress_level(sdnn, rmssd),
    )


def calculate_advanced_hrv(peak_indices: Sequence[int], sample_rate: float = 30.0) -> AdvancedHRV:
    ibi = _clean_intervals(peak_indices, sample_rate)
    if ibi.size < MIN_CLEAN_INTERVALS:
        return AdvancedHRV(0, 0, 0, 0, 0, 0, 0)

    sdnn, rmssd, pnn50 = _time_domain(ibi)
    hr = 60000.0 / ibi
    return AdvancedHRV(
        sdnn=round_half_up(sdnn),
        rmssd=round_half_up(rmssd),
        pnn50=round_half_up(pnn50),
        mean_hr=round_half_up(hr.mean()),
        min_hr=round_half_up(hr.min()),
        max_hr=round_half_up(hr.max()),
        hrv_index=round_half_up(min(100.0, max(0.0, sdnn))),
    )


def assess_autonomic_balance(hrv: HRVMeasurement) -> tuple[AutonomicBalance, str]:
    """Use RMSSD/SDNN as a parasympathetic share proxy."""
    ratio = hrv.rmssd / hrv.sdnn if hrv.sdnn > 0 else 0.0
    if ratio > 0.7:
        balance = AutonomicBalance.PARASYMPATHETIC
    elif ratio > 0.4:
        balance = AutonomicBalance.BALANCED
    else:
        balance = AutonomicBalance.SYMPATHETIC
    return balance, _BALANCE_DESCRIPTIONS[balance]
