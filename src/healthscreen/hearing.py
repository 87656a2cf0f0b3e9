"""Hearing screening scores and classifications.

Pure-tone summaries (PTA/HFA), WHO-style severity grading, audiogram shape
recognition, speech-in-noise scoring and the overall pass/refer verdict.
Threshold maps are ``{frequency_hz: dB HL}`` dictionaries.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

AUDIOMETRIC_FREQUENCIES: Tuple[int, ...] = (250, 500, 1000, 2000, 4000, 8000)
PTA_FREQUENCIES = (500, 1000, 2000)
HFA_FREQUENCIES = (2000, 4000, 8000)
MIN_LEVEL_DB = -10
MAX_LEVEL_DB = 120

ThresholdMap = Dict[int, float]


class HearingLossCategory(str, Enum):
    NORMAL = "normal"
    MILD = "mild"
    MODERATE = "moderate"
    MODERATELY_SEVERE = "moderately_severe"
    SEVERE = "severe"
    PROFOUND = "profound"


class Severity(str, Enum):
    NORMAL = "normal"
    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"


class AudiogramPattern(str, Enum):
    FLAT = "flat"
    SLOPING = "sloping"
    RISING = "rising"
    NOTCHED = "notched"
    COOKIE_BITE = "cookie_bite"
    IRREGULAR = "irregular"


class ScreeningStatus(str, Enum):
    PASS = "pass"
    REFER = "refer"
    INCONCLUSIVE = "inconclusive"


class SpeechInNoiseStatus(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    VERY_POOR = "very_poor"


@dataclass(frozen=True)
class HearingLossBand:
    category: HearingLossCategory
    low: int
    high: int
    severity: Severity
    label: str
    description: str
    recommendation: str


# Inclusive dB HL ranges; a value between two integer bands belongs to the higher one
WHO_HEARING_LOSS_CATEGORIES: Tuple[HearingLossBand, ...] = (
    HearingLossBand(
        HearingLossCategory.NORMAL, -10, 25, Severity.NORMAL,
        "Normal Hearing",
        "No hearing loss. Hearing thresholds are within normal limits.",
        "No intervention needed. Continue routine hearing screenings.",
    ),
    HearingLossBand(
        HearingLossCategory.MILD, 26, 40, Severity.MILD,
        "Mild Hearing Loss",
        "Soft speech may be hard to hear, especially in noise.",
        "Hearing evaluation recommended. Preferential seating or assistive listening may help.",
    ),
    HearingLossBand(
        HearingLossCategory.MODERATE, 41, 60, Severity.MODERATE,
        "Moderate Hearing Loss",
        "Conversational speech is difficult to follow without amplification.",
        "Audiological evaluation and hearing aid fitting recommended.",
    ),
    HearingLossBand(
        HearingLossCategory.MODERATELY_SEVERE, 61, 80, Severity.SEVERE,
        "Moderately Severe Hearing Loss",
        "Most speech is inaudible at normal conversational levels.",
        "Refer to an audiologist for hearing aid fitting and communication support.",
    ),
    HearingLossBand(
        HearingLossCategory.SEVERE, 81, 90, Severity.SEVERE,
        "Severe Hearing Loss",
        "Only very loud sounds are audible.",
        "Urgent referral to an audiologist; powerful hearing aids or cochlear implant candidacy assessment.",
    ),
    HearingLossBand(
        HearingLossCategory.PROFOUND, 91, MAX_LEVEL_DB, Severity.SEVERE,
        "Profound Hearing Loss",
        "Sound is perceived mainly as vibration.",
        "Urgent referral to an audiologist for cochlear implant evaluation.",
    ),
)


@dataclass(frozen=True)
class PatternAssessment:
    pattern: AudiogramPattern
    description: str
    likely_causes: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class SpeechInNoiseAssessment:
    status: SpeechInNoiseStatus
    percent_correct: float
    performance: float  # percent of the expected score at this SNR
    recommendation: str


@dataclass(frozen=True)
class SpeechTrial:
    snr: float
    percent_correct: float


@dataclass(frozen=True)
class HearingScreeningResult:
    status: ScreeningStatus
    recommendation: str
    concerns: List[str]
    left_ear_status: str
    right_ear_status: str


def _mean_of_present(thresholds: Mapping[int, float], frequencies: Sequence[int]) -> float:
    values = [thresholds[f] for f in frequencies if f in thresholds and thresholds[f] is not None]
    if not values:
        return 0.0
    return float(np.mean(values))


def calculate_pta(thresholds: Mapping[int, float]) -> float:
    """Pure-tone average of 500/1000/2000 Hz; absent frequencies are skipped."""
    return _mean_of_present(thresholds, PTA_FREQUENCIES)


def calculate_hfa(thresholds: Mapping[int, float]) -> float:
    """High-frequency average of 2000/4000/8000 Hz."""
    return _mean_of_present(thresholds, HFA_FREQUENCIES)


def classify_hearing_loss(pta: float) -> HearingLossBand:
    for band in WHO_HEARING_LOSS_CATEGORIES:
        if pta <= band.high:
            return band
    return WHO_HEARING_LOSS_CATEGORIES[-1]


_PATTERN_TEXT = {
    AudiogramPattern.NOTCHED: (
        "Notched audiogram with loss at 4000 Hz, typical of noise-induced hearing loss",
        ["noise exposure", "noise-induced hearing loss"],
    ),
    AudiogramPattern.COOKIE_BITE: (
        "Cookie bite audiogram with mid-frequency hearing loss, may indicate genetic hearing loss",
        ["genetic hearing loss"],
    ),
    AudiogramPattern.SLOPING: (
        "Sloping audiogram with high-frequency hearing loss, common with ageing",
        ["age-related hearing loss", "noise exposure", "ototoxic medication"],
    ),
    AudiogramPattern.RISING: (
        "Rising audiogram with low-frequency hearing loss, a less common configuration",
        ["Meniere's disease", "conductive hearing loss"],
    ),
    AudiogramPattern.FLAT: (
        "Flat audiogram with consistent thresholds across frequencies",
        ["conductive hearing loss", "sensorineural hearing loss"],
    ),
    AudiogramPattern.IRREGULAR: (
        "Irregular audiogram pattern",
        [],
    ),
}


def assess_audiogram_pattern(thresholds: Mapping[int, float]) -> PatternAssessment:
    """Recognise the audiogram shape; missing frequencies read as 0 dB HL.

    Checked in priority order: 4 kHz notch, cookie bite, sloping, rising,
    flat, irregular.
    """
    t = {f: float(thresholds.get(f) or 0.0) for f in AUDIOMETRIC_FREQUENCIES}
    low_avg = (t[250] + t[500]) / 2.0
    high_avg = (t[4000] + t[8000]) / 2.0
    slope = high_avg - low_avg
    notch_depth = t[4000] - (t[2000] + t[8000]) / 2.0
    mid_avg = (t[1000] + t[2000]) / 2.0
    cookie_bite = mid_avg - (low_avg + high_avg) / 2.0

    if notch_depth > 10:
        pattern = AudiogramPattern.NOTCHED
    elif cookie_bite > 15:
        pattern = AudiogramPattern.COOKIE_BITE
    elif slope > 20:
        pattern = AudiogramPattern.SLOPING
    elif slope < -20:
        pattern = AudiogramPattern.RISING
    elif abs(slope) < 10:
        pattern = AudiogramPattern.FLAT
    else:
        pattern = AudiogramPattern.IRREGULAR
    description, causes = _PATTERN_TEXT[pattern]
    return PatternAssessment(pattern, description, list(causes))


_SPEECH_TIERS = (
    (100.0, SpeechInNoiseStatus.EXCELLENT,
     "Excellent speech understanding in noise. No concerns."),
    (80.0, SpeechInNoiseStatus.GOOD,
     "Good speech understanding in noise. Within normal limits."),
    (60.0, SpeechInNoiseStatus.FAIR,
     "Fair speech understanding in noise. May have difficulty in noisy environments. "
     "Consider comprehensive hearing evaluation."),
    (40.0, SpeechInNoiseStatus.POOR,
     "Poor speech understanding in noise. Likely to have significant difficulty in noisy "
     "environments. Comprehensive hearing evaluation recommended."),
)
_VERY_POOR_RECOMMENDATION = (
    "Very poor speech understanding in noise. Significant communication difficulties expected. "
    "Urgent comprehensive hearing evaluation by an audiologist recommended."
)


def assess_speech_in_noise(percent_correct: float, snr: float) -> SpeechInNoiseAssessment:
    """Grade a speech-in-noise score against the expected score at ``snr``.

    The expected score is ``80 - (5 - snr) * 4`` percent (80 % at +5 dB).
    """
    expected = 80.0 - (5.0 - snr) * 4.0
    performance = percent_correct / expected * 100.0 if expected > 0 else float("inf")
    for cutoff, status, text in _SPEECH_TIERS:
        if performance >= cutoff:
            return SpeechInNoiseAssessment(status, percent_correct, performance, text)
    return SpeechInNoiseAssessment(
        SpeechInNoiseStatus.VERY_POOR, percent_correct, performance, _VERY_POOR_RECOMMENDATION
    )


def calculate_srt(results: Sequence[SpeechTrial]) -> float:
    """SNR at which 50 % of speech is understood, linearly interpolated.

    Without a crossing the highest SNR is returned when it reaches 50 %,
    otherwise the lowest.
    """
    if not results:
        return 0.0
    trials = sorted(results, key=lambda r: r.snr)
    for cur, nxt in zip(trials, trials[1:]):
        if cur.percent_correct <= 50 and nxt.percent_correct >= 50:
            span = nxt.percent_correct - cur.percent_correct
            if span == 0:
                return cur.snr
            return cur.snr + (50 - cur.percent_correct) / span * (nxt.snr - cur.snr)
    if trials[-1].percent_correct >= 50:
        return trials[-1].snr
    return trials[0].snr


PEDIATRIC_AGE_GROUPS = ("0-2", "3-5")


def assess_hearing_screening(
    left_ear_pta: float,
    right_ear_pta: float,
    speech_in_noise_percent: float,
    age_group: str,
) -> HearingScreeningResult:
    """Combine both ears and the speech-in-noise score into a verdict.

    Every triggered rule adds a concern; any rule refers.
    """
    concerns: List[str] = []
    status = ScreeningStatus.PASS

    if left_ear_pta > 25 or right_ear_pta > 25:
        concerns.append("Hearing thresholds exceed normal limits")
        status = ScreeningStatus.REFER
    if abs(left_ear_pta - right_ear_pta) > 15:
        concerns.append("Significant asymmetry between ears detected")
        status = ScreeningStatus.REFER
    if speech_in_noise_percent < 60:
        concerns.append("Difficulty understanding speech in noise")
        status = ScreeningStatus.REFER
    if age_group in PEDIATRIC_AGE_GROUPS and (left_ear_pta > 20 or right_ear_pta > 20):
        concerns.append(
            "Even mild hearing loss in children can affect speech and language development"
        )
        status = ScreeningStatus.REFER

    if status is ScreeningStatus.PASS:
        recommendation = (
            "Hearing screening results are within normal limits. "
            "Continue regular hearing screenings as recommended for age."
        )
    else:
        recommendation = (
            "Hearing screening indicates potential concerns. "
            "Comprehensive audiological evaluation by an audiologist is recommended."
        )
    return HearingScreeningResult(
        status=status,
        recommendation=recommendation,
        concerns=concerns,
        left_ear_status=classify_hearing_loss(left_ear_pta).label,
        right_ear_status=classify_hearing_loss(right_ear_pta).label,
    )


# Speech material
SPEECH_WORD_LISTS: Dict[str, Tuple[str, ...]] = {
    "monosyllables": (
        "cat", "dog", "hat", "pen", "cup", "book", "shoe", "key", "car", "tree",
        "fish", "bird", "hand", "foot", "door", "ball", "cake", "milk", "rain", "snow",
    ),
    "spondees": (
        "baseball", "hotdog", "airplane", "birthday", "cowboy", "doorbell",
        "football", "greenhouse", "hardware", "icecream", "mushroom", "northwest",
        "oatmeal", "pancake", "railroad", "sidewalk", "toothbrush", "whitewash",
    ),
    "sentences": (
        "The boy ran down the street",
        "She wore a pretty blue dress",
        "The dog chased the cat",
        "We went to the store today",
        "The sun is shining bright",
    ),
}


def generate_word_list(
    list_type: str,
    count: int,
    rng: Optional[np.random.Generator] = None,
) -> List[str]:
    """Draw ``count`` distinct items from a speech list (fewer if it runs out)."""
    if list_type not in SPEECH_WORD_LISTS:
        raise ValueError(f"unknown speech list: {list_type}")
    words = SPEECH_WORD_LISTS[list_type]
    rng = rng or np.random.default_rng()
    n = min(max(int(count), 0), len(words))
    return [words[i] for i in rng.permutation(len(words))[:n]]


def score_speech_trial(presented: Sequence[str], responses: Sequence[str]) -> float:
    """Percent of presented items repeated correctly (case-insensitive)."""
    if not presented:
        return 0.0
    correct = sum(
        1
        for word, answer in zip(presented, responses)
        if answer is not None and word.strip().lower() == answer.strip().lower()
    )
    return correct / len(presented) * 100.0


# Middle-ear and cochlear screens
class TympanogramType(str, Enum):
    A = "A"
    AS = "As"
    AD = "Ad"
    B = "B"
    C = "C"


_TYMPANOGRAM_INTERPRETATION = {
    TympanogramType.A: "Normal middle ear function. Peak pressure and compliance within normal limits.",
    TympanogramType.AS: "Reduced compliance (stiff system). May indicate otosclerosis or ossicular fixation.",
    TympanogramType.AD: "Increased compliance (hypermobile system). May indicate ossicular discontinuity.",
    TympanogramType.B: "Flat tympanogram. May indicate middle ear fluid or tympanic membrane perforation.",
    TympanogramType.C: "Negative pressure. May indicate Eustachian tube dysfunction.",
}


def assess_tympanometry(tympanogram: TympanogramType) -> Tuple[bool, str]:
    """Return (normal, interpretation) for a tympanogram type."""
    tympanogram = TympanogramType(tympanogram)
    return tympanogram is TympanogramType.A, _TYMPANOGRAM_INTERPRETATION[tympanogram]


@dataclass(frozen=True)
class OAEResult:
    frequency: int
    snr: float  # dB
    present: bool


def assess_oae(results: Sequence[OAEResult]) -> Tuple[ScreeningStatus, str]:
    """Pass when at least 80 % of frequencies show an emission with SNR >= 6 dB."""
    if not results:
        return ScreeningStatus.INCONCLUSIVE, "No OAE measurements available. Repeat screening."
    passed = sum(1 for r in results if r.present and r.snr >= 6)
    if passed / len(results) >= 0.8:
        return (
            ScreeningStatus.PASS,
            "OAEs present at most frequencies. Cochlear function appears normal.",
        )
    return (
        ScreeningStatus.REFER,
        "OAEs absent or weak at multiple frequencies. May indicate cochlear dysfunction. "
        "Comprehensive audiological evaluation recommended.",
    )


def calculate_hearing_age(pta: float, chronological_age: float) -> float:
    """Age implied by the PTA assuming 0.75 dB/year presbycusis after 60."""
    expected = (chronological_age - 60) * 0.75 if chronological_age > 60 else 0.0
    excess = pta - expected
    if excess <= 0:
        return float(chronological_age)
    return chronological_age + excess / 0.75


class NoiseRisk(str, Enum):
    SAFE = "safe"
    CAUTION = "caution"
    HAZARDOUS = "hazardous"
    DANGEROUS = "dangerous"


def assess_noise_exposure(
    exposure_level_db: float, hours_per_day: float
) -> Tuple[NoiseRisk, str, float]:
    """NIOSH 85 dB / 8 h criterion with a 3 dB exchange rate.

    Returns (risk, recommendation, max_safe_hours).
    """
    max_safe = 8.0 / 2.0 ** ((exposure_level_db - 85.0) / 3.0)
    if hours_per_day <= max_safe:
        return NoiseRisk.SAFE, "Current noise exposure is within safe limits.", max_safe
    if hours_per_day <= max_safe * 1.5:
        return (
            NoiseRisk.CAUTION,
            "Noise exposure is approaching hazardous levels. Consider hearing protection.",
            max_safe,
        )
    if hours_per_day <= max_safe * 2:
        return (
            NoiseRisk.HAZARDOUS,
            "Noise exposure is hazardous. Hearing protection strongly recommended.",
            max_safe,
        )
    return (
        NoiseRisk.DANGEROUS,
        "Noise exposure is dangerous. Immediate hearing protection required. "
        "Risk of permanent hearing damage.",
        max_safe,
    )
