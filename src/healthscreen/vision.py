"""Vision screening scores.

Snellen acuity from optotype trials, age-normed pass/refer grading, the
photoscreening verdict and the colour-vision and contrast-sensitivity tiers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np


@dataclass(frozen=True)
class SnellenLine:
    decimal: float
    log_mar: float
    size: int  # denominator at 20 ft


# Chart order matters: the first line wins a tie when snapping
SNELLEN_CHART: Dict[str, SnellenLine] = {
    "20/200": SnellenLine(0.1, 1.0, 200),
    "20/100": SnellenLine(0.2, 0.7, 100),
    "20/70": SnellenLine(0.29, 0.54, 70),
    "20/50": SnellenLine(0.4, 0.4, 50),
    "20/40": SnellenLine(0.5, 0.3, 40),
    "20/30": SnellenLine(0.67, 0.18, 30),
    "20/25": SnellenLine(0.8, 0.1, 25),
    "20/20": SnellenLine(1.0, 0.0, 20),
    "20/15": SnellenLine(1.33, -0.12, 15),
    "20/10": SnellenLine(2.0, -0.3, 10),
}


@dataclass(frozen=True)
class AgeNorm:
    min_acceptable: str
    typical: str


AGE_NORMS: Dict[str, AgeNorm] = {
    "0-2": AgeNorm("20/200", "20/100"),
    "3-5": AgeNorm("20/40", "20/30"),
    "6-12": AgeNorm("20/30", "20/20"),
    "13-18": AgeNorm("20/25", "20/20"),
    "18+": AgeNorm("20/25", "20/20"),
}
DEFAULT_AGE_GROUP = "18+"

OPTOTYPES: Dict[str, Tuple[str, ...]] = {
    "snellen": ("C", "D", "E", "F", "L", "O", "P", "T", "Z"),
    "tumbling_e": ("up", "down", "left", "right"),
    "lea_symbols": ("circle", "square", "house", "apple"),
    "picture_matching": ("cat", "dog", "car", "tree", "star", "heart"),
}

STANDARD_DISTANCE_M = 6.0  # 20 ft
ARCMIN_PER_LINE = 5.0


class ScreeningStatus(str, Enum):
    PASS = "pass"
    REFER = "refer"
    INCONCLUSIVE = "inconclusive"


class AcuitySeverity(str, Enum):
    NORMAL = "normal"
    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"


class Urgency(str, Enum):
    NONE = "none"
    ROUTINE = "routine"
    URGENT = "urgent"


class RedReflex(str, Enum):
    NORMAL = "normal"
    ABNORMAL = "abnormal"
    UNCLEAR = "unclear"


class EyeAlignment(str, Enum):
    NORMAL = "normal"
    ESOTROPIA = "esotropia"
    EXOTROPIA = "exotropia"
    HYPERTROPIA = "hypertropia"
    HYPOTROPIA = "hypotropia"
    UNCLEAR = "unclear"


class PupilSymmetry(str, Enum):
    SYMMETRIC = "symmetric"
    ASYMMETRIC = "asymmetric"
    UNCLEAR = "unclear"


class ColorDeficiency(str, Enum):
    NONE = "none"
    MILD = "mild"
    SEVERE = "severe"


class ContrastSensitivity(str, Enum):
    NORMAL = "normal"
    REDUCED = "reduced"
    SEVERELY_REDUCED = "severely_reduced"


@dataclass(frozen=True)
class VisualAcuityResult:
    acuity: str
    decimal: float
    log_mar: float
    percent_correct: float


@dataclass(frozen=True)
class AcuityAssessment:
    status: ScreeningStatus
    severity: AcuitySeverity
    urgency: Urgency
    recommendation: str


def closest_snellen_rating(decimal: float) -> str:
    best = "20/200"
    best_diff = float("inf")
    for rating, line in SNELLEN_CHART.items():
        diff = abs(line.decimal - decimal)
        if diff < best_diff:
            best, best_diff = rating, diff
    return best


def _performance_multiplier(percent_correct: float) -> float:
    if percent_correct >= 80:
        return 1.0
    if percent_correct >= 60:
        return 0.8
    if percent_correct >= 40:
        return 0.6
    return 0.4


def calculate_visual_acuity(correct: int, total: int, starting_size: str) -> VisualAcuityResult:
    """Snellen rating achieved on a line of ``total`` optotypes.

    The starting line's decimal acuity is scaled by how well the line was
    read and snapped back onto the chart.
    """
    if starting_size not in SNELLEN_CHART:
        raise ValueError(f"unknown Snellen rating: {starting_size}")
    percent = correct / total * 100.0 if total > 0 else 0.0
    adjusted = SNELLEN_CHART[starting_size].decimal * _performance_multiplier(percent)
    acuity = closest_snellen_rating(adjusted)
    line = SNELLEN_CHART[acuity]
    return VisualAcuityResult(acuity, line.decimal, line.log_mar, percent)


def _subject(eye_side: str) -> Tuple[str, str]:
    if eye_side == "both":
        return "Both eyes show", "Visual acuity is"
    return f"{eye_side.capitalize()} eye shows", f"{eye_side.capitalize()} eye visual acuity is"


def assess_visual_acuity(acuity: str, age_group: str, eye_side: str = "both") -> AcuityAssessment:
    """Grade an acuity against the norms of an age group.

    Unknown age groups are graded against the adult norms.
    """
    norms = AGE_NORMS.get(age_group, AGE_NORMS[DEFAULT_AGE_GROUP])
    value = SNELLEN_CHART[acuity].decimal
    minimum = SNELLEN_CHART[norms.min_acceptable].decimal
    typical = SNELLEN_CHART[norms.typical].decimal
    shows, subject = _subject(eye_side)

    if value >= typical:
        return AcuityAssessment(
            ScreeningStatus.PASS, AcuitySeverity.NORMAL, Urgency.NONE,
            f"{shows} normal visual acuity for age group. Continue regular eye exams.",
        )
    if value >= minimum:
        return AcuityAssessment(
            ScreeningStatus.PASS, AcuitySeverity.MILD, Urgency.NONE,
            f"{subject} slightly below typical for age but within acceptable range. "
            "Consider comprehensive eye exam if symptoms present.",
        )
    if value >= minimum * 0.7:
        return AcuityAssessment(
            ScreeningStatus.REFER, AcuitySeverity.MODERATE, Urgency.ROUTINE,
            f"{subject} below expected for age. Recommend comprehensive eye examination "
            "by an optometrist or ophthalmologist.",
        )
    return AcuityAssessment(
        ScreeningStatus.REFER, AcuitySeverity.SEVERE, Urgency.URGENT,
        f"{subject} significantly reduced. Urgent comprehensive eye examination recommended. "
        "May require corrective lenses or further evaluation.",
    )


@dataclass(frozen=True)
class PhotoscreeningFindings:
    red_reflex_left: RedReflex
    red_reflex_right: RedReflex
    eye_alignment: EyeAlignment
    pupil_symmetry: PupilSymmetry
    confidence: float  # 0..100


@dataclass(frozen=True)
class PhotoscreeningAssessment:
    status: ScreeningStatus
    urgency: Urgency
    concerns: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)


LOW_CONFIDENCE = 70
_STRABISMUS = (
    EyeAlignment.ESOTROPIA,
    EyeAlignment.EXOTROPIA,
    EyeAlignment.HYPERTROPIA,
    EyeAlignment.HYPOTROPIA,
)


def assess_photoscreening(findings: PhotoscreeningFindings) -> PhotoscreeningAssessment:
    """Aggregate red-reflex, alignment, pupil and confidence findings.

    Every finding is checked; concerns accumulate. An abnormal red reflex is
    the only urgent referral.
    """
    concerns: List[str] = []
    recommendations: List[str] = []
    status = ScreeningStatus.PASS
    urgency = Urgency.NONE
    reflexes = (findings.red_reflex_left, findings.red_reflex_right)

    if RedReflex.ABNORMAL in reflexes:
        concerns.append(
            "Abnormal red reflex detected - may indicate cataracts, retinoblastoma, "
            "or other serious conditions"
        )
        recommendations.append(
            "Immediate referral to an ophthalmologist for dilated eye examination"
        )
        status = ScreeningStatus.REFER
        urgency = Urgency.URGENT
    if RedReflex.UNCLEAR in reflexes:
        concerns.append("Unable to clearly assess red reflex")
        if status is not ScreeningStatus.REFER:
            status = ScreeningStatus.INCONCLUSIVE

    if findings.eye_alignment in _STRABISMUS:
        concerns.append(
            f"Eye misalignment detected ({findings.eye_alignment.value}) - may indicate strabismus"
        )
        status = ScreeningStatus.REFER
    elif findings.eye_alignment is EyeAlignment.UNCLEAR:
        concerns.append("Unable to clearly assess eye alignment")
        if status is not ScreeningStatus.REFER:
            status = ScreeningStatus.INCONCLUSIVE

    if findings.pupil_symmetry is PupilSymmetry.ASYMMETRIC:
        concerns.append(
            "Asymmetric pupils detected - may indicate neurological or ocular issues"
        )
        status = ScreeningStatus.REFER
    elif findings.pupil_symmetry is PupilSymmetry.UNCLEAR:
        concerns.append("Unable to clearly assess pupil symmetry")
        if status is not ScreeningStatus.REFER:
            status = ScreeningStatus.INCONCLUSIVE

    if findings.confidence < LOW_CONFIDENCE:
        concerns.append("Low confidence in screening results")
        if status is ScreeningStatus.PASS:
            status = ScreeningStatus.INCONCLUSIVE

    if status is ScreeningStatus.REFER:
        if urgency is Urgency.NONE:
            urgency = Urgency.ROUTINE
        recommendations.append(
            "Comprehensive eye examination by an eye care professional is strongly recommended"
        )
    elif status is ScreeningStatus.INCONCLUSIVE:
        recommendations.append("Repeat photoscreening in good lighting or seek professional evaluation")
    else:
        recommendations.append("Continue regular eye exams as recommended for age")
    return PhotoscreeningAssessment(status, urgency, concerns, recommendations)


@dataclass(frozen=True)
class ColorVisionAssessment:
    status: ScreeningStatus
    color_deficiency: ColorDeficiency
    percent_correct: float
    recommendation: str


# Ishihara-style plates: (number shown, deficiency the plate screens for)
COLOR_VISION_PLATES: Tuple[Tuple[int, str], ...] = (
    (12, "normal"),
    (8, "protan"),
    (3, "deutan"),
    (29, "normal"),
    (5, "protan"),
    (2, "deutan"),
    (74, "normal"),
    (6, "normal"),
)


def assess_color_vision(
    responses: Sequence[Optional[int]], correct_answers: Sequence[int]
) -> ColorVisionAssessment:
    correct = sum(1 for r, a in zip(responses, correct_answers) if r == a)
    percent = correct / len(correct_answers) * 100.0 if correct_answers else 0.0
    if percent >= 80:
        return ColorVisionAssessment(
            ScreeningStatus.PASS, ColorDeficiency.NONE, percent, "Color vision appears normal."
        )
    if percent >= 60:
        return ColorVisionAssessment(
            ScreeningStatus.REFER, ColorDeficiency.MILD, percent,
            "Possible color vision deficiency detected. Comprehensive color vision testing recommended.",
        )
    return ColorVisionAssessment(
        ScreeningStatus.REFER, ColorDeficiency.SEVERE, percent,
        "Significant color vision deficiency detected. Professional evaluation recommended.",
    )


@dataclass(frozen=True)
class ContrastAssessment:
    status: ScreeningStatus
    contrast_sensitivity: ContrastSensitivity
    recommendation: str


def assess_contrast_sensitivity(lowest_detected_contrast: float) -> ContrastAssessment:
    """Grade the lowest contrast (percent) the subject could still detect."""
    if lowest_detected_contrast <= 2:
        return ContrastAssessment(
            ScreeningStatus.PASS, ContrastSensitivity.NORMAL, "Contrast sensitivity is normal."
        )
    if lowest_detected_contrast <= 5:
        return ContrastAssessment(
            ScreeningStatus.REFER, ContrastSensitivity.REDUCED,
            "Mildly reduced contrast sensitivity. Consider comprehensive eye exam if symptoms present.",
        )
    return ContrastAssessment(
        ScreeningStatus.REFER, ContrastSensitivity.SEVERELY_REDUCED,
        "Significantly reduced contrast sensitivity. Comprehensive eye examination recommended.",
    )


def calculate_optotype_size(target_acuity: str, test_distance_m: float) -> float:
    """Optotype size in arcminutes at 6 m, rescaled to the test distance."""
    arcmin = SNELLEN_CHART[target_acuity].size / 20.0 * ARCMIN_PER_LINE
    return arcmin * test_distance_m / STANDARD_DISTANCE_M


def generate_optotype(
    optotype_type: str,
    exclude_recent: Sequence[str] = (),
    rng: Optional[np.random.Generator] = None,
) -> str:
    """Random optotype, avoiding recently shown ones while any remain."""
    if optotype_type not in OPTOTYPES:
        raise ValueError(f"unknown optotype set: {optotype_type}")
    options = [o for o in OPTOTYPES[optotype_type] if o not in exclude_recent]
    if not options:
        options = list(OPTOTYPES[optotype_type])
    rng = rng or np.random.default_rng()
    return options[int(rng.integers(len(options)))]
