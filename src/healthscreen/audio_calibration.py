"""Per-device audio calibration for dB HL tone presentation.

``CalibrationWizard`` walks the listener through four steps (reference
volume, per-frequency sweep, ear balance, validation) one confirmation at a
time and produces an ``AudioCalibrationProfile``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from .audiometry import Ear
from .calibration import age_in_days, utc_now
from .hearing import AUDIOMETRIC_FREQUENCIES

logger = logging.getLogger(__name__)

AUDIO_CALIBRATION_VALID_DAYS = 30.0
VOLUME_MIN_DB = -10.0
VOLUME_MAX_DB = 100.0
VOLUME_CAP = 0.8  # headroom against distortion

REFERENCE_FREQUENCY = 1000
REFERENCE_VOLUME = 0.5
SWEEP_START_DB = -10
SWEEP_STEP_DB = 5
SWEEP_MAX_DB = 60
VALIDATION_LEVEL_DB = 20
EXPECTED_THRESHOLD_DB = 0
BALANCE_GAIN_LOW = 0.9
BALANCE_GAIN_HIGH = 1.1


def db_hl_to_volume(db_hl: float) -> float:
    """Map dB HL onto a 0..1 output volume (capped at 0.8)."""
    normalized = (db_hl - VOLUME_MIN_DB) / (VOLUME_MAX_DB - VOLUME_MIN_DB)
    return max(0.0, min(1.0, normalized * VOLUME_CAP))


class AudioCalibrationProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    device_id: str = "default"
    device_name: str = "Default Audio Device"
    calibration_date: datetime = Field(default_factory=utc_now)
    frequency_corrections: Dict[int, float] = Field(default_factory=dict)
    left_ear_gain: float = Field(1.0, gt=0)
    right_ear_gain: float = Field(1.0, gt=0)
    validated: bool = False
    user_notes: Optional[str] = None

    def export_json(self) -> str:
        return self.model_dump_json(indent=2)

    @classmethod
    def import_json(cls, text: str) -> "AudioCalibrationProfile":
        """Parse an exported profile; raises ``pydantic.ValidationError`` if malformed."""
        return cls.model_validate_json(text)

    def is_valid(self, now: Optional[datetime] = None) -> bool:
        """Validated and younger than 30 days."""
        return self.validated and age_in_days(self.calibration_date, now) < AUDIO_CALIBRATION_VALID_DAYS


def apply_calibration(
    profile: Optional[AudioCalibrationProfile],
    frequency: int,
    db_hl: float,
    ear: Ear,
) -> float:
    """Output volume for a tone, corrected by a validated profile."""
    if profile is None or not profile.validated:
        return db_hl_to_volume(db_hl)
    corrected = db_hl + profile.frequency_corrections.get(frequency, 0.0)
    ear = Ear(ear)
    if ear is Ear.LEFT:
        gain = profile.left_ear_gain
    elif ear is Ear.RIGHT:
        gain = profile.right_ear_gain
    else:
        gain = (profile.left_ear_gain + profile.right_ear_gain) / 2.0
    return db_hl_to_volume(corrected) * gain


class WizardStep(str, Enum):
    REFERENCE = "reference"
    FREQUENCY_SWEEP = "frequency_sweep"
    EAR_BALANCE = "ear_balance"
    LOUDER_EAR = "louder_ear"
    VALIDATION = "validation"
    COMPLETE = "complete"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class WizardPrompt:
    """One tone to play and the yes/no question to ask afterwards."""

    step: WizardStep
    message: str
    frequency: int
    volume: float
    ear: Ear
    step_number: int
    total_steps: int = 4


class CalibrationWizard:
    """Caller-driven calibration state machine.

    Loop: play ``instruction()``, ask its question, then ``advance(answer)``.
    ``cancel()`` stops at the current step boundary. A failed validation
    restarts from the reference step until ``max_attempts`` is used up.
    """

    def __init__(
        self,
        device_id: str = "default",
        device_name: str = "Default Audio Device",
        frequencies: Sequence[int] = AUDIOMETRIC_FREQUENCIES,
        max_attempts: int = 3,
    ) -> None:
        if max_attempts <= 0:
            raise ValueError("max_attempts must be positive")
        self.device_id = device_id
        self.device_name = device_name
        self.frequencies = tuple(int(f) for f in frequencies)
        self.max_attempts = max_attempts
        self.attempt = 1
        self._profile: Optional[AudioCalibrationProfile] = None
        self._restart()

    def _restart(self) -> None:
        self.step = WizardStep.REFERENCE
        self._freq_index = 0
        self._level = SWEEP_START_DB
        self._corrections: Dict[int, float] = {}
        self._left_gain = 1.0
        self._right_gain = 1.0

    @property
    def finished(self) -> bool:
        return self.step in (WizardStep.COMPLETE, WizardStep.CANCELLED)

    @property
    def profile(self) -> Optional[AudioCalibrationProfile]:
        """The validated profile once the wizard is complete."""
        return self._profile

    @property
    def corrections(self) -> Dict[int, float]:
        return dict(self._corrections)

    def _draft(self, validated: bool) -> AudioCalibrationProfile:
        return AudioCalibrationProfile(
            device_id=self.device_id,
            device_name=self.device_name,
            frequency_corrections=dict(self._corrections),
            left_ear_gain=self._left_gain,
            right_ear_gain=self._right_gain,
            validated=validated,
        )

    def instruction(self) -> WizardPrompt:
        if self.finished:
            raise RuntimeError(f"calibration wizard is {self.step.value}")
        if self.step is WizardStep.REFERENCE:
            return WizardPrompt(
                self.step,
                "Adjust your device volume to a comfortable level. "
                "Can you hear the tone clearly in both ears?",
                REFERENCE_FREQUENCY, REFERENCE_VOLUME, Ear.BOTH, 1,
            )
        if self.step is WizardStep.FREQUENCY_SWEEP:
            freq = self.frequencies[self._freq_index]
            return WizardPrompt(
                self.step,
                f"Did you hear the {freq} Hz tone? "
                f"({self._freq_index + 1}/{len(self.frequencies)})",
                freq, db_hl_to_volume(self._level), Ear.BOTH, 2,
            )
        if self.step is WizardStep.EAR_BALANCE:
            return WizardPrompt(
                self.step,
                "You heard a tone in your left ear, then your right ear. "
                "Did they sound equally loud?",
                REFERENCE_FREQUENCY, REFERENCE_VOLUME, Ear.BOTH, 3,
            )
        if self.step is WizardStep.LOUDER_EAR:
            return WizardPrompt(
                self.step,
                "Was the LEFT ear louder? Answer no if the right ear was louder.",
                REFERENCE_FREQUENCY, REFERENCE_VOLUME, Ear.BOTH, 3,
            )
        # VALIDATION: the tone carries the corrections just measured; a stored
        # profile would be absent on a first calibration and stale otherwise
        volume = apply_calibration(self._draft(True), REFERENCE_FREQUENCY, VALIDATION_LEVEL_DB, Ear.BOTH)
        return WizardPrompt(
            self.step,
            "Does the tone sound clear, balanced and at a comfortable volume?",
            REFERENCE_FREQUENCY, volume, Ear.BOTH, 4,
        )

    def advance(self, confirmed: bool) -> WizardStep:
        """Feed the answer to the current question; returns the new step."""
        if self.finished:
            raise RuntimeError(f"calibration wizard is {self.step.value}")
        confirmed = bool(confirmed)

        if self.step is WizardStep.REFERENCE:
            if confirmed:
                self.step = WizardStep.FREQUENCY_SWEEP
            else:
                logger.info("Calibration cancelled: reference tone not confirmed")
                self.step = WizardStep.CANCELLED
        elif self.step is WizardStep.FREQUENCY_SWEEP:
            self._sweep(confirmed)
        elif self.step is WizardStep.EAR_BALANCE:
            self.step = WizardStep.VALIDATION if confirmed else WizardStep.LOUDER_EAR
        elif self.step is WizardStep.LOUDER_EAR:
            # Turn the louder side down
            if confirmed:
                self._left_gain, self._right_gain = BALANCE_GAIN_LOW, BALANCE_GAIN_HIGH
            else:
                self._left_gain, self._right_gain = BALANCE_GAIN_HIGH, BALANCE_GAIN_LOW
            self.step = WizardStep.VALIDATION
        elif self.step is WizardStep.VALIDATION:
            self._validate(confirmed)
        return self.step

    def _sweep(self, heard: bool) -> None:
        freq = self.frequencies[self._freq_index]
        if not heard:
            self._level += SWEEP_STEP_DB
            if self._level <= SWEEP_MAX_DB:
                return
        # First heard level, or one step past the top when never heard
        self._corrections[freq] = float(EXPECTED_THRESHOLD_DB - self._level)
        logger.debug("Calibration %d Hz: correction %+.0f dB", freq, self._corrections[freq])
        self._freq_index += 1
        self._level = SWEEP_START_DB
        if self._freq_index >= len(self.frequencies):
            self.step = WizardStep.EAR_BALANCE

    def _validate(self, confirmed: bool) -> None:
        if confirmed:
            self._profile = self._draft(True)
            self.step = WizardStep.COMPLETE
            logger.info("Audio calibration complete for %s", self.device_name)
            return
        if self.attempt >= self.max_attempts:
            logger.warning("Audio calibration failed validation %d times", self.attempt)
            self.step = WizardStep.CANCELLED
            return
        self.attempt += 1
        logger.warning("Audio calibration validation failed, restarting (attempt %d)", self.attempt)
        self._restart()

    def cancel(self) -> None:
        if not self.finished:
            logger.info("Calibration cancelled at %s", self.step.value)
            self.step = WizardStep.CANCELLED
