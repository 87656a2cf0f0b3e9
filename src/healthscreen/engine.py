"""rPPG engine: rolling RGB buffer plus vital-sign orchestration.

One engine instance owns one buffer. ``process_frame`` is the only writer;
a frame submitted while another is still being processed is dropped rather
than queued.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, List, Optional, Tuple

import numpy as np

from .blood_pressure import estimate_blood_pressure
from .calibration import BloodPressureCalibration
from .heart_rate import analyze_pulse_signal, detect_heart_rate
from .hrv import calculate_hrv
from .measurements import (
    HeartRateMeasurement,
    HRVMeasurement,
    PPGSignal,
    SpO2Measurement,
    StressLevel,
    VitalSignsResult,
)
from .respiration import detect_respiratory_rate
from .roi import FrameBuffer, RoiProvider, mean_rgb
from .spo2 import estimate_spo2

logger = logging.getLogger(__name__)


@dataclass
class EngineConfig:
    sample_rate: float = 30.0  # fps
    max_samples: int = 900  # 30 s rolling window
    min_measurement_samples: int = 300  # 10 s
    min_quality_samples: int = 60

    def __post_init__(self) -> None:
        if self.sample_rate <= 0:
            raise ValueError("sample_rate must be positive")
        if self.max_samples <= 0:
            raise ValueError("max_samples must be positive")


def calculate_health_score(
    hr: HeartRateMeasurement,
    hrv: HRVMeasurement,
    spo2: SpO2Measurement,
) -> int:
    """Deduct from 100 for heart rate, HRV and SpO2 outside healthy ranges."""
    score = 100
    bpm = hr.heart_rate
    # 60-100 BPM is ideal; deductions widen with the deviation band
    if bpm < 60 or bpm > 100:
        score -= 10
    if bpm < 50 or bpm > 110:
        score -= 10
    if bpm < 40 or bpm > 120:
        score -= 15

    if hrv.sdnn < 25:
        score -= 15
    if hrv.sdnn < 15:
        score -= 10
    if hrv.stress_level is StressLevel.HIGH:
        score -= 10
    elif hrv.stress_level is StressLevel.MEDIUM:
        score -= 5

    if spo2.spo2 < 95:
        score -= 15
    if spo2.spo2 < 90:
        score -= 20
    if spo2.spo2 < 85:
        score -= 25
    return max(0, min(100, score))


class RPPGEngine:
    """Process video frames and extract vital signs from the forehead ROI."""

    def __init__(self, roi_provider: RoiProvider, config: Optional[EngineConfig] = None) -> None:
        self.roi_provider = roi_provider
        self.cfg = config or EngineConfig()
        n = self.cfg.max_samples
        self._R: Deque[float] = deque(maxlen=n)
        self._G: Deque[float] = deque(maxlen=n)
        self._B: Deque[float] = deque(maxlen=n)
        self._T: Deque[float] = deque(maxlen=n)
        self._calibration: Optional[BloodPressureCalibration] = None
        # Busy flag for process_frame; the buffer lock guards the four deques together
        self._processing = threading.Lock()
        self._buffer_lock = threading.Lock()

    @property
    def buffer_size(self) -> int:
        with self._buffer_lock:
            return len(self._G)

    @property
    def sample_rate(self) -> float:
        return self.cfg.sample_rate

    def process_frame(self, frame: FrameBuffer, timestamp: Optional[float] = None) -> bool:
        """Append the forehead mean RGB of ``frame`` to the buffer.

        Returns False when the frame was dropped (already processing) or no
        face was found.
        """
        if not self._processing.acquire(blocking=False):
            logger.debug("Frame dropped: engine busy")
            return False
        try:
            rois = self.roi_provider.detect(frame)
            if not rois:
                return False
            r, g, b = mean_rgb(frame, rois[0])
            self.add_sample(r, g, b, timestamp)
            return True
        finally:
            self._processing.release()

    def add_sample(
        self, red: float, green: float, blue: float, timestamp: Optional[float] = None
    ) -> None:
        """Append one RGB sample; the oldest is evicted once the buffer is full."""
        t = time.time() if timestamp is None else float(timestamp)
        with self._buffer_lock:
            self._R.append(float(red))
            self._G.append(float(green))
            self._B.append(float(blue))
            self._T.append(t)

    def has_enough_data(self) -> bool:
        return self.buffer_size >= self.cfg.min_measurement_samples

    def get_raw_signal(self) -> PPGSignal:
        """Consistent copy of the buffer; all four arrays have equal length."""
        with self._buffer_lock:
            return PPGSignal(
                np.array(self._R, dtype=np.float64),
                np.array(self._G, dtype=np.float64),
                np.array(self._B, dtype=np.float64),
                np.array(self._T, dtype=np.float64),
            )

    def get_current_measurements(self) -> Optional[VitalSignsResult]:
        """Run every extractor over the buffer; None until 10 s are buffered."""
        sig = self.get_raw_signal()
        if len(sig) < self.cfg.min_measurement_samples:
            return None
        fs = self.cfg.sample_rate

        processed = analyze_pulse_signal(sig, fs)
        heart_rate = detect_heart_rate(sig, fs)
        hrv = calculate_hrv(processed.peak_indices, fs)
        spo2 = estimate_spo2(sig, fs)
        blood_pressure = estimate_blood_pressure(sig, self._calibration, fs)
        respiratory_rate = detect_respiratory_rate(sig, fs)

        result = VitalSignsResult(
            heart_rate=heart_rate,
            hrv=hrv,
            spo2=spo2,
            blood_pressure=blood_pressure,
            respiratory_rate=respiratory_rate,
            overall_quality=80 if processed.quality.acceptable else 50,
            health_score=calculate_health_score(heart_rate, hrv, spo2),
        )
        logger.debug(
            "Measurements: hr=%d spo2=%d rr=%d score=%d",
            heart_rate.heart_rate,
            spo2.spo2,
            respiratory_rate.respiratory_rate,
            result.health_score,
        )
        return result

    def get_signal_quality(self) -> Tuple[float, List[str]]:
        """(stability 0..100, issues) of the conditioned green channel."""
        sig = self.get_raw_signal()
        if len(sig) < self.cfg.min_quality_samples:
            return 0.0, ["Insufficient data"]
        quality = analyze_pulse_signal(sig, self.cfg.sample_rate).quality
        return quality.stability, list(quality.issues)

    def set_calibration(self, calibration: BloodPressureCalibration) -> None:
        self._calibration = calibration
        logger.info("Blood-pressure calibration set for %s", calibration.user_id)

    def get_calibration(self) -> Optional[BloodPressureCalibration]:
        return self._calibration

    def reset(self) -> None:
        """Clear all buffered samples; the calibration is kept."""
        with self._buffer_lock:
            self._R.clear()
            self._G.clear()
            self._B.clear()
            self._T.clear()


def format_vital_signs(result: Optional[VitalSignsResult]) -> Dict[str, str]:
    """Display strings for each vital sign; "--" where no value is available."""
    out = dict.fromkeys(
        ("heart_rate", "hrv", "stress", "spo2", "blood_pressure", "respiratory_rate", "health_score"),
        "--",
    )
    if result is None:
        return out
    if result.heart_rate.heart_rate:
        out["heart_rate"] = f"{result.heart_rate.heart_rate} BPM"
    if result.hrv.sdnn:
        out["hrv"] = f"{result.hrv.sdnn} ms"
    out["stress"] = result.hrv.stress_level.value.capitalize()
    if result.spo2.spo2:
        out["spo2"] = f"{result.spo2.spo2}%"
    bp = result.blood_pressure
    if bp.systolic and bp.diastolic:
        out["blood_pressure"] = f"{bp.systolic}/{bp.diastolic}"
    if result.respiratory_rate.respiratory_rate:
        out["respiratory_rate"] = f"{result.respiratory_rate.respiratory_rate} /min"
    if result.health_score:
        out["health_score"] = f"{result.health_score}/100"
    return out
