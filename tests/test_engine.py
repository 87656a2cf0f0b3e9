from __future__ import annotations

import sys
import threading
from typing import List

import numpy as np
import pytest

from healthscreen.calibration import create_calibration
from healthscreen.engine import (
    EngineConfig,
    RPPGEngine,
    calculate_health_score,
    format_vital_signs,
)
from healthscreen.measurements import (
    HeartRateMeasurement,
    HRVMeasurement,
    SpO2Measurement,
    StressLevel,
)
from healthscreen.roi import ROI, FrameBuffer


class _FixedProvider:
    def __init__(self, rois: List[ROI]) -> None:
        self.rois = rois

    def detect(self, frame: FrameBuffer) -> List[ROI]:
        return list(self.rois)


class _BlockingProvider:
    def __init__(self) -> None:
        self.entered = threading.Event()
        self.release = threading.Event()

    def detect(self, frame: FrameBuffer) -> List[ROI]:
        self.entered.set()
        self.release.wait(timeout=5.0)
        return [ROI(0, 0, 2, 2)]


def _uniform_frame(rgb=(10, 20, 30)) -> FrameBuffer:
    return FrameBuffer.from_array(np.full((4, 4, 3), rgb, dtype=np.uint8))


def _feed(engine: RPPGEngine, n: int) -> None:
    fs = engine.sample_rate
    rs = np.random.RandomState(0)
    for i in range(n):
        pulse = np.sin(2 * np.pi * 1.2 * i / fs)
        breath = 0.5 * np.sin(2 * np.pi * 0.25 * i / fs)
        noise = 0.05 * rs.randn(3)
        engine.add_sample(
            150.0 + pulse + breath + noise[0],
            100.0 + 2.0 * pulse + breath + noise[1],
            80.0 + 0.8 * pulse + noise[2],
            timestamp=i / fs,
        )


def test_measurements_appear_at_ten_seconds() -> None:
    engine = RPPGEngine(_FixedProvider([]))
    _feed(engine, 299)
    assert not engine.has_enough_data()
    assert engine.get_current_measurements() is None

    snapshot = engine.get_raw_signal()
    assert len(snapshot) == 299
    engine.add_sample(150.0, 100.0, 80.0, timestamp=10.0)
    assert engine.has_enough_data()
    result = engine.get_current_measurements()
    assert result is not None
    assert 0 <= result.health_score <= 100
    assert result.overall_quality in (50, 80)
    assert not result.blood_pressure.calibrated


def test_calibration_reaches_blood_pressure() -> None:
    engine = RPPGEngine(_FixedProvider([]))
    cal = create_calibration("u1", 120, 80)
    engine.set_calibration(cal)
    assert engine.get_calibration() is cal
    _feed(engine, 300)
    result = engine.get_current_measurements()
    assert result is not None
    assert result.blood_pressure.calibrated


def test_buffer_is_bounded() -> None:
    engine = RPPGEngine(_FixedProvider([]), EngineConfig(max_samples=10))
    for i in range(15):
        engine.add_sample(i, i, i, timestamp=float(i))
    sig = engine.get_raw_signal()
    assert engine.buffer_size == 10
    assert sig.green[0] == 5.0
    assert sig.timestamps[-1] == 14.0


def test_process_frame_uses_first_roi() -> None:
    engine = RPPGEngine(_FixedProvider([ROI(0, 0, 2, 2), ROI(2, 2, 2, 2)]))
    assert engine.process_frame(_uniform_frame(), timestamp=1.0)
    sig = engine.get_raw_signal()
    assert (sig.red[0], sig.green[0], sig.blue[0]) == (10.0, 20.0, 30.0)


def test_process_frame_without_face_is_noop() -> None:
    engine = RPPGEngine(_FixedProvider([]))
    assert not engine.process_frame(_uniform_frame())
    assert engine.buffer_size == 0


def test_concurrent_frame_is_dropped() -> None:
    provider = _BlockingProvider()
    engine = RPPGEngine(provider)
    worker = threading.Thread(target=engine.process_frame, args=(_uniform_frame(),))
    worker.start()
    assert provider.entered.wait(timeout=5.0)

    assert not engine.process_frame(_uniform_frame())

    provider.release.set()
    worker.join(timeout=5.0)
    assert engine.buffer_size == 1
    # Guard is free again
    assert engine.process_frame(_uniform_frame())
    assert engine.buffer_size == 2


def test_reset_during_frame_keeps_busy_flag() -> None:
    provider = _BlockingProvider()
    engine = RPPGEngine(provider)
    worker = threading.Thread(target=engine.process_frame, args=(_uniform_frame(),))
    worker.start()
    assert provider.entered.wait(timeout=5.0)

    engine.reset()
    assert not engine.process_frame(_uniform_frame())

    provider.release.set()
    worker.join(timeout=5.0)
    assert engine.process_frame(_uniform_frame())
    assert engine.buffer_size == 2


def test_snapshots_stay_aligned_under_concurrent_writes() -> None:
    engine = RPPGEngine(_FixedProvider([]), EngineConfig(max_samples=300))
    stop = threading.Event()

    def feed() -> None:
        i = 0
        while not stop.is_set():
            engine.add_sample(i, i, i, timestamp=float(i))
            i += 1
            if i % 500 == 0:
                engine.reset()

    old_interval = sys.getswitchinterval()
    sys.setswitchinterval(1e-6)
    feeder = threading.Thread(target=feed)
    feeder.start()
    try:
        torn = []
        for _ in range(5000):
            sig = engine.get_raw_signal()
            sizes = (sig.red.size, sig.green.size, sig.blue.size, sig.timestamps.size)
            if len(set(sizes)) != 1:
                torn.append(sizes)
    finally:
        stop.set()
        feeder.join(timeout=5.0)
        sys.setswitchinterval(old_interval)
    assert not torn


def test_reset_clears_buffer_keeps_calibration() -> None:
    engine = RPPGEngine(_FixedProvider([]))
    engine.set_calibration(create_calibration("u1", 120, 80))
    _feed(engine, 50)
    engine.reset()
    assert engine.buffer_size == 0
    assert engine.get_calibration() is not None


def test_signal_quality_needs_sixty_samples() -> None:
    engine = RPPGEngine(_FixedProvider([]))
    _feed(engine, 59)
    assert engine.get_signal_quality() == (0.0, ["Insufficient data"])
    _feed(engine, 1)
    stability, issues = engine.get_signal_quality()
    assert 0.0 <= stability <= 100.0
    assert isinstance(issues, list)


def test_engine_config_validation() -> None:
    with pytest.raises(ValueError):
        EngineConfig(max_samples=0)
    with pytest.raises(ValueError):
        EngineConfig(sample_rate=0)


def test_health_score_deductions() -> None:
    ideal = calculate_health_score(
        HeartRateMeasurement(70, 90),
        HRVMeasurement(60, 50, 20, StressLevel.LOW),
        SpO2Measurement(98, 90),
    )
    assert ideal == 100
    mid = calculate_health_score(
        HeartRateMeasurement(105, 90),
        HRVMeasurement(20, 15, 5, StressLevel.MEDIUM),
        SpO2Measurement(93, 90),
    )
    assert mid == 100 - 10 - 15 - 5 - 15
    worst = calculate_health_score(
        HeartRateMeasurement(30, 90),
        HRVMeasurement(10, 5, 0, StressLevel.HIGH),
        SpO2Measurement(80, 90),
    )
    assert worst == 0


def test_format_vital_signs_placeholders() -> None:
    out = format_vital_signs(None)
    assert set(out.values()) == {"--"}
    assert "blood_pressure" in out
