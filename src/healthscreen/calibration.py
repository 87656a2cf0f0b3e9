"""Blood-pressure calibration records.

A calibration pairs a cuff reference reading with the time it was taken.
Records are immutable and expire after ``BP_CALIBRATION_VALID_DAYS``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

BP_CALIBRATION_VALID_DAYS = 7.0
_SECONDS_PER_DAY = 86400.0


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def age_in_days(then: datetime, now: Optional[datetime] = None) -> float:
    """Days elapsed between ``then`` and ``now`` (naive times are taken as UTC)."""
    now = now or utc_now()
    if then.tzinfo is None:
        then = then.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return (now - then).total_seconds() / _SECONDS_PER_DAY


class BloodPressureCalibration(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    systolic_reference: float = Field(..., gt=0, le=300)
    diastolic_reference: float = Field(..., gt=0, le=200)
    calibration_date: datetime = Field(default_factory=utc_now)
    device_used: str = "Manual Cuff"

    def age_days(self, now: Optional[datetime] = None) -> float:
        return age_in_days(self.calibration_date, now)


def create_calibration(
    user_id: str,
    systolic_reference: float,
    diastolic_reference: float,
    device_used: str = "Manual Cuff",
    calibration_date: Optional[datetime] = None,
) -> BloodPressureCalibration:
    """Create a calibration from a reference cuff measurement."""
    return BloodPressureCalibration(
        user_id=user_id,
        systolic_reference=systolic_reference,
        diastolic_reference=diastolic_reference,
        calibration_date=calibration_date or utc_now(),
        device_used=device_used,
    )


def is_calibration_valid(
    calibration: Optional[BloodPressureCalibration],
    now: Optional[datetime] = None,
) -> bool:
    if calibration is None:
        return False
    return calibration.age_days(now) < BP_CALIBRATION_VALID_DAYS
