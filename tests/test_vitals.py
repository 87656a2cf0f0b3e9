from __future__ import annotations

from datetime import datetime, timedelta, timezone

import numpy as np
import pytest
from pydantic import ValidationError

from healthscreen.blood_pressure import (
    BloodPressureCategory,
    CardiovascularRisk,
    assess_blood_pressure,
    estimate_blood_pressure,
    estimate_cardiovascular_risk,
    mean_arterial_pressure,
)
from healthscreen.calibration import (
    BloodPressureCalibration,
    create_calibration,
    is_calibration_valid,
)
from healthscreen.hrv import (
    AutonomicBalance,
    assess_autonomic_balance,
    calculate_advanced_hrv,
    calculate_hrv,
)
from healthscreen.measurements import PPGSignal, SpO2Measurement, StressLevel, Trend
from healthscreen.spo2 import (
    SpO2Level,
    assess_spo2_level,
    average_spo2,
    estimate_spo2,
    estimate_spo2_with_trend,
)

T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _periodic(period: int, n: int) -> PPGSignal:
    g = 100.0 + np.sin(2 * np.pi * np.arange(n) / period)
    return PPGSignal.from_sequences(g, g, g)


def test_hrv_alternating_intervals() -> None:
    peaks = [0]
    for i in range(10):
        peaks.append(peaks[-1] + (27 if i % 2 == 0 else 33))
    hrv = calculate_hrv(peaks, 30.0)
    assert hrv.sdnn == 100
    assert hrv.rmssd == 200
    assert hrv.pnn50 == 100
    assert hrv.stress_level is StressLevel.LOW
    balance, _ = assess_autonomic_balance(hrv)
    assert balance is AutonomicBalance.PARASYMPATHETIC


def test_hrv_too_few_intervals() -> None:
    hrv = calculate_hrv([0, 30, 60, 90], 30.0)
    assert (hrv.sdnn, hrv.rmssd, hrv.pnn50) == (0, 0, 0)
    assert hrv.stress_level is StressLevel.MEDIUM


def test_hrv_to_dict_is_plain() -> None:
    d = calculate_hrv(list(range(0, 300, 30)), 30.0).to_dict()
    assert d["stress_level"] == "high"
    assert d["sdnn"] == 0


def test_spo2_requires_sixty_samples() -> None:
    m = estimate_spo2(_periodic(30, 59), 30.0)
    assert (m.spo2, m.confidence) == (0, 0)


def test_spo2_equal_channels() -> None:
    # R = 1 gives 85 %, clamped to 90
    m = estimate_spo2(_periodic(30, 120), 30.0)
    assert m.spo2 == 90
    assert m.confidence == 80


def test_spo2_zero_dc() -> None:
    g = 100.0 + np.sin(np.arange(90))
    m = estimate_spo2(PPGSignal.from_sequences(g, g, np.zeros(90)), 30.0)
    assert (m.spo2, m.confidence) == (0, 0)


def test_spo2_interpretation_and_average() -> None:
    assert assess_spo2_level(96).level is SpO2Level.NORMAL
    assert assess_spo2_level(87).level is SpO2Level.MODERATE
    history = [SpO2Measurement(96, 100, timestamp=95.0), SpO2Measurement(98, 0, timestamp=99.0)]
    assert average_spo2(history, 30.0, now=100.0) == 96


def test_calibration_validity_window() -> None:
    cal = create_calibration("u1", 120, 80, calibration_date=T0)
    assert is_calibration_valid(cal, T0 + timedelta(days=6))
    assert not is_calibration_valid(cal, T0 + timedelta(days=8))
    assert not is_calibration_valid(None)


def test_calibration_rejects_bad_reference() -> None:
    with pytest.raises(ValidationError):
        BloodPressureCalibration(user_id="u1", systolic_reference=0, diastolic_reference=80)


def test_blood_pressure_without_calibration() -> None:
    m = estimate_blood_pressure(_periodic(12, 120), None, 30.0)
    assert not m.calibrated
    assert (m.systolic, m.diastolic, m.confidence) == (0, 0, 0)


def test_blood_pressure_expired_calibration() -> None:
    cal = create_calibration("u1", 120, 80, calibration_date=T0)
    m = estimate_blood_pressure(_periodic(12, 120), cal, 30.0, now=T0 + timedelta(days=8))
    assert not m.calibrated
    assert m.systolic == 0


def test_blood_pressure_from_ptt() -> None:
    cal = create_calibration("u1", 120, 80, calibration_date=T0)
    # 12-sample beat spacing -> PTT 0.4 s, 0.1 s above baseline
    m = estimate_blood_pressure(_periodic(12, 120), cal, 30.0, now=T0 + timedelta(days=1))
    assert m.calibrated
    assert (m.systolic, m.diastolic) == (110, 74)
    assert m.confidence == 70


def test_blood_pressure_short_signal_is_calibrated_zero() -> None:
    cal = create_calibration("u1", 120, 80, calibration_date=T0)
    m = estimate_blood_pressure(_periodic(12, 60), cal, 30.0, now=T0)
    assert m.calibrated
    assert m.systolic == 0 and m.confidence == 0


def test_blood_pressure_categories() -> None:
    assert assess_blood_pressure(118, 78).category is BloodPressureCategory.NORMAL
    assert assess_blood_pressure(125, 75).category is BloodPressureCategory.ELEVATED
    assert assess_blood_pressure(135, 85).category is BloodPressureCategory.HIGH_STAGE1
    assert assess_blood_pressure(150, 95).category is BloodPressureCategory.HIGH_STAGE2
    # Either reading in a higher band wins
    assert assess_blood_pressure(150, 85).category is BloodPressureCategory.HIGH_STAGE2
    assert assess_blood_pressure(135, 95).category is BloodPressureCategory.HIGH_STAGE2
    assert assess_blood_pressure(185, 90).category is BloodPressureCategory.CRISIS
    assert mean_arterial_pressure(120, 80) == 93


def test_cardiovascular_risk() -> None:
    assert estimate_cardiovascular_risk(118, 78, 70)[0] is CardiovascularRisk.LOW
    # Elevated readings count for more past fifty
    assert estimate_cardiovascular_risk(125, 75, 50)[0] is CardiovascularRisk.LOW
    assert estimate_cardiovascular_risk(125, 75, 51)[0] is CardiovascularRisk.MODERATE
    assert estimate_cardiovascular_risk(135, 85, 30)[0] is CardiovascularRisk.MODERATE
    assert estimate_cardiovascular_risk(150, 85, 30)[0] is CardiovascularRisk.HIGH
    risk, text = estimate_cardiovascular_risk(185, 90, 30)
    assert risk is CardiovascularRisk.VERY_HIGH
    assert "Very high" in text


def _peak_train(spacings) -> list:
    peaks = [0]
    for s in spacings:
        peaks.append(peaks[-1] + s)
    return peaks


def test_advanced_hrv_alternating_intervals() -> None:
    hrv = calculate_advanced_hrv(_peak_train([27, 33] * 5), 30.0)
    assert (hrv.sdnn, hrv.rmssd, hrv.pnn50) == (100, 200, 100)
    # 900 ms and 1100 ms beats
    assert (hrv.mean_hr, hrv.min_hr, hrv.max_hr) == (61, 55, 67)
    assert hrv.hrv_index == 100


def test_advanced_hrv_partial_pnn50() -> None:
    # 1000 ms and 1067 ms beats; two of five successive differences exceed 50 ms
    hrv = calculate_advanced_hrv(_peak_train([30, 30, 32, 32, 30, 30]), 30.0)
    assert hrv.pnn50 == 40
    assert (hrv.sdnn, hrv.rmssd) == (31, 42)
    assert hrv.hrv_index == hrv.sdnn
    assert (hrv.mean_hr, hrv.min_hr, hrv.max_hr) == (59, 56, 60)


def test_advanced_hrv_too_few_intervals() -> None:
    hrv = calculate_advanced_hrv([0, 30, 60, 90], 30.0)
    assert hrv.mean_hr == 0 and hrv.hrv_index == 0


def _shifting_red(red_levels) -> PPGSignal:
    # Red DC changes per 60-sample third while blue stays put
    wave = np.sin(2 * np.pi * np.arange(60) / 10.0)
    red = np.concatenate([level + wave for level in red_levels])
    blue = np.tile(100.0 + wave, len(red_levels))
    return PPGSignal.from_sequences(red, blue, blue)


def test_spo2_trend_follows_thirds() -> None:
    rising = _shifting_red([100.0, 175.0, 250.0])
    m = estimate_spo2_with_trend(rising, 30.0)
    assert m.trend is Trend.INCREASING
    plain = estimate_spo2(rising, 30.0)
    assert (m.spo2, m.confidence) == (plain.spo2, plain.confidence)

    falling = _shifting_red([250.0, 175.0, 100.0])
    assert estimate_spo2_with_trend(falling, 30.0).trend is Trend.DECREASING


def test_spo2_trend_needs_six_seconds() -> None:
    short = _periodic(30, 120)
    m = estimate_spo2_with_trend(short, 30.0)
    assert m.trend is Trend.STABLE
    assert m.spo2 == estimate_spo2(short, 30.0).spo2


def test_ppg_signal_rejects_unequal_channels() -> None:
    with pytest.raises(ValueError):
        PPGSignal.from_sequences(np.ones(10), np.ones(10), np.ones(9))
    with pytest.raises(ValueError):
        PPGSignal.from_sequences(np.ones(10), np.ones(10), np.ones(10), np.arange(11))
