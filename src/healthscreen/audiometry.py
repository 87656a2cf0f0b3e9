"""Adaptive pure-tone audiometry (modified Hughson-Westlake).

The tests are caller-driven state machines: ask for ``instruction()``, play
the tone, then feed the listener's answer to ``present_tone(heard)``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from .hearing import (
    AUDIOMETRIC_FREQUENCIES,
    MAX_LEVEL_DB,
    MIN_LEVEL_DB,
    HearingLossBand,
    PatternAssessment,
    ThresholdMap,
    assess_audiogram_pattern,
    calculate_hfa,
    calculate_pta,
    classify_hearing_loss,
)

logger = logging.getLogger(__name__)

START_LEVEL_DB = 40
STEP_DOWN_DB = 10
STEP_UP_DB = 5
MIN_PRESENTATIONS = 6
LIMIT_REPEATS = 3  # identical responses at a level limit that end the test


class Ear(str, Enum):
    LEFT = "left"
    RIGHT = "right"
    BOTH = "both"


@dataclass(frozen=True)
class ToneInstruction:
    """What the external tone player should present next."""

    frequency: int
    level_db: float
    ear: Ear


@dataclass(frozen=True)
class Presentation:
    level_db: float
    heard: bool
    ascending: bool  # phase in which the tone was presented


def _clamp_level(level: float) -> float:
    return max(float(MIN_LEVEL_DB), min(float(MAX_LEVEL_DB), level))


class PureToneTest:
    """Threshold search for one frequency in one ear.

    Ascending phase: heard -> down 10 dB and switch to descending;
    not heard -> up 5 dB. Descending phase: not heard -> up 5 dB and switch to
    ascending; heard -> down 10 dB. Levels stay within [-10, 120] dB HL.
    """

    def __init__(self, frequency: int, ear: Ear, start_level: float = START_LEVEL_DB) -> None:
        if frequency not in AUDIOMETRIC_FREQUENCIES:
            raise ValueError(f"{frequency} Hz is not an audiometric frequency")
        self.frequency = int(frequency)
        self.ear = Ear(ear)
        self._level = _clamp_level(float(start_level))
        self._ascending = True
        self._history: List[Presentation] = []
        self._no_response = False
        self._floor_response = False

    @property
    def current_level(self) -> float:
        return self._level

    @property
    def history(self) -> Tuple[Presentation, ...]:
        return tuple(self._history)

    @property
    def no_response(self) -> bool:
        """True when the tone was missed repeatedly at the maximum level."""
        return self._no_response

    def instruction(self) -> ToneInstruction:
        return ToneInstruction(self.frequency, self._level, self.ear)

    def present_tone(self, heard: bool) -> None:
        if self.is_threshold_found():
            raise RuntimeError("threshold already found; start a new test")
        heard = bool(heard)
        self._history.append(Presentation(self._level, heard, self._ascending))

        if self._ascending:
            if heard:
                self._ascending = False
                self._level -= STEP_DOWN_DB
            else:
                self._level += STEP_UP_DB
        elif heard:
            self._level -= STEP_DOWN_DB
        else:
            self._ascending = True
            self._level += STEP_UP_DB
        self._level = _clamp_level(self._level)

        tail = self._history[-LIMIT_REPEATS:]
        if len(tail) == LIMIT_REPEATS:
            if all(p.level_db >= MAX_LEVEL_DB and not p.heard for p in tail):
                self._no_response = True
                logger.info("%d Hz %s: no response at %d dB HL",
                            self.frequency, self.ear.value, MAX_LEVEL_DB)
            elif all(p.level_db <= MIN_LEVEL_DB and p.heard for p in tail):
                self._floor_response = True

        if self.is_threshold_found():
            logger.info("%d Hz %s: threshold %.0f dB HL after %d presentations",
                        self.frequency, self.ear.value, self.threshold, len(self._history))

    def _ascending_responses(self) -> List[Presentation]:
        return [p for p in self._history if p.ascending]

    def is_threshold_found(self) -> bool:
        """Found once >= 6 tones were presented and >= 2 of the last 3
        ascending-phase tones were heard (or a level limit was reached)."""
        if self._no_response or self._floor_response:
            return True
        if len(self._history) < MIN_PRESENTATIONS:
            return False
        recent = self._ascending_responses()[-3:]
        return sum(1 for p in recent if p.heard) >= 2

    @property
    def threshold(self) -> Optional[float]:
        """Level of the most recent tone heard on an ascending run.

        None while the search is still running.
        """
        if not self.is_threshold_found():
            return None
        if self._no_response:
            return float(MAX_LEVEL_DB)
        if self._floor_response:
            return float(MIN_LEVEL_DB)
        for p in reversed(self._history):
            if p.ascending and p.heard:
                return p.level_db
        return self._level


@dataclass(frozen=True)
class EarResult:
    ear: Ear
    thresholds: Dict[int, float]
    pta: float
    hfa: float
    classification: HearingLossBand
    pattern: PatternAssessment


class AudiometrySession:
    """Run one ``PureToneTest`` per (ear, frequency) in order.

    Ears are tested one after the other; within an ear the frequencies are
    presented in the given order.
    """

    def __init__(
        self,
        ears: Sequence[Ear] = (Ear.RIGHT, Ear.LEFT),
        frequencies: Sequence[int] = AUDIOMETRIC_FREQUENCIES,
        start_level: float = START_LEVEL_DB,
    ) -> None:
        if not ears or not frequencies:
            raise ValueError("at least one ear and one frequency are required")
        self.start_level = start_level
        self._plan: List[Tuple[Ear, int]] = [(Ear(e), int(f)) for e in ears for f in frequencies]
        # Validates every frequency up front
        for ear, freq in self._plan:
            PureToneTest(freq, ear, start_level)
        self._index = 0
        self._thresholds: Dict[Ear, ThresholdMap] = {Ear(e): {} for e in ears}
        self._test: Optional[PureToneTest] = self._new_test()

    def _new_test(self) -> Optional[PureToneTest]:
        if self._index >= len(self._plan):
            return None
        ear, freq = self._plan[self._index]
        return PureToneTest(freq, ear, self.start_level)

    @property
    def current_test(self) -> Optional[PureToneTest]:
        return self._test

    @property
    def progress(self) -> Tuple[int, int]:
        """(completed tests, total tests)."""
        return self._index, len(self._plan)

    def is_complete(self) -> bool:
        return self._test is None

    def instruction(self) -> ToneInstruction:
        if self._test is None:
            raise RuntimeError("audiometry session is complete")
        return self._test.instruction()

    def respond(self, heard: bool) -> None:
        if self._test is None:
            raise RuntimeError("audiometry session is complete")
        test = self._test
        test.present_tone(heard)
        if test.is_threshold_found():
            self._thresholds[test.ear][test.frequency] = test.threshold  # type: ignore[assignment]
            self._index += 1
            self._test = self._new_test()
            if self._test is None:
                logger.info("Audiometry session complete")

    def thresholds(self, ear: Ear) -> ThresholdMap:
        return dict(self._thresholds[Ear(ear)])

    def ear_result(self, ear: Ear) -> EarResult:
        t = self.thresholds(ear)
        pta = calculate_pta(t)
        return EarResult(
            ear=Ear(ear),
            thresholds=t,
            pta=pta,
            hfa=calculate_hfa(t),
            classification=classify_hearing_loss(pta),
            pattern=assess_audiogram_pattern(t),
        )

    def results(self) -> Dict[Ear, EarResult]:
        return {ear: self.ear_result(ear) for ear in self._thresholds}
