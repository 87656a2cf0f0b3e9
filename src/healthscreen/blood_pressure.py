"""Calibrated blood-pressure estimation from pulse transit time.

PTT is approximated by the mean interval between green-channel peaks and
mapped linearly around a 0.3 s baseline onto the user's cuff reference.
Without a valid calibration no estimate is produced.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

import numpy as np

from .calibration import BloodPressureCalibration, is_calibration_valid
from .measurements import BloodPressureMeasurement, PPGSignal, round_half_up
from .peaks import detect_peaks

logger = logging.getLogger(__name__)

MIN_SAMPLES = 90
BASELINE_PTT = 0.3  # s
SYSTOLIC_RANGE = (90, 180)
DIASTOLIC_RANGE = (60, 110)
MAX_CONFIDENCE = 70.0
CONFIDENCE_LOSS_PER_DAY = 2.0


class BloodPressureCategory(str, Enum):
    NORMAL = "normal"
    ELEVATED = "elevated"
    HIGH_STAGE1 = "high_stage1"
    HIGH_STAGE2 = "high_stage2"
    CRISIS = "crisis"


class CardiovascularRisk(str, Enum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    VERY_HIGH = "very_high"


@dataclass(frozen=True)
class BloodPressureAssessment:
    category: BloodPressureCategory
    description: str
    action: str


def estimate_blood_pressure(
    signal: PPGSignal,
    calibration: Optional[BloodPressureCalibration],
    sample_rate: float = 30.0,
    now: Optional[datetime] = None,
) -> BloodPressureMeasurement:
    """Estimate systolic/diastolic pressure in mmHg."""
    if calibration is None:
        return BloodPressureMeasurement(0, 0, 0, calibrated=False)
    if not is_calibration_valid(calibration, now):
        logger.warning("Blood-pressure calibration for %s has expired", calibration.user_id)
        return BloodPressureMeasurement(0, 0, 0, calibrated=False)

    if len(signal.green) < MIN_SAMPLES:
        return BloodPressureMeasurement(0, 0, 0, calibrated=True)
    peaks = detect_peaks(signal.green, 10, 0.5)
    if len(peaks) < 2:
        return BloodPressureMeasurement(0, 0, 0, calibrated=True)

    ptt = float(np.mean(np.diff(peaks))) / sample_rate
    delta = ptt - BASELINE_PTT
    systolic = round_half_up(calibration.systolic_reference - delta * 100.0)
    diastolic = round_half_up(calibration.diastolic_reference - delta * 60.0)
    systolic = int(np.clip(systolic, *SYSTOLIC_RANGE))
    diastolic = int(np.clip(diastolic, *DIASTOLIC_RANGE))

    age_confidence = max(0.0, 100.0 - calibration.age_days(now) * CONFIDENCE_LOSS_PER_DAY)
    confidence = round_half_up(min(MAX_CONFIDENCE, age_confidence))
    return BloodPressureMeasurement(systolic, diastolic, confidence, calibrated=True)


def assess_blood_pressure(systolic: float, diastolic: float) -> BloodPressureAssessment:
    """AHA category for a reading."""
    if systolic > 180 or diastolic > 120:
        return BloodPressureAssessment(
            BloodPressureCategory.CRISIS,
            "Hypertensive Crisis",
            "Seek immediate medical attention",
        )
    if systolic < 120 and diastolic < 80:
        return BloodPressureAssessment(
            BloodPressureCategory.NORMAL, "Normal blood pressure", "Maintain healthy lifestyle"
        )
    if systolic < 130 and diastolic < 80:
        return BloodPressureAssessment(
            BloodPressureCategory.ELEVATED,
            "Elevated blood pressure",
            "Adopt healthier lifestyle to prevent hypertension",
        )
    if systolic < 140 and diastolic < 90:
        return BloodPressureAssessment(
            BloodPressureCategory.HIGH_STAGE1,
            "High Blood Pressure (Stage 1)",
            "Consult doctor about lifestyle changes and possible medication",
        )
    return BloodPressureAssessment(
        BloodPressureCategory.HIGH_STAGE2,
        "High Blood Pressure (Stage 2)",
        "Consult doctor soon - medication likely needed",
    )


def mean_arterial_pressure(systolic: float, diastolic: float) -> int:
    return round_half_up(diastolic + (systolic - diastolic) / 3.0)


def pulse_pressure(systolic: float, diastolic: float) -> float:
    return systolic - diastolic


def estimate_cardiovascular_risk(
    systolic: float, diastolic: float, age: int
) -> tuple[CardiovascularRisk, str]:
    category = assess_blood_pressure(systolic, diastolic).category
    if category is BloodPressureCategory.NORMAL:
        return CardiovascularRisk.LOW, "Low cardiovascular risk"
    if category is BloodPressureCategory.ELEVATED:
        risk = CardiovascularRisk.MODERATE if age > 50 else CardiovascularRisk.LOW
        return risk, "Monitor blood pressure regularly"
    if category is BloodPressureCategory.HIGH_STAGE1:
        return CardiovascularRisk.MODERATE, "Moderate cardiovascular risk"
    if category is BloodPressureCategory.HIGH_STAGE2:
        return CardiovascularRisk.HIGH, "High cardiovascular risk"
    return CardiovascularRisk.VERY_HIGH, "Very high cardiovascular risk"
