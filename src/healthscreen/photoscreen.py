"""Frame-level photoscreening heuristics.

Works on ``FrameBuffer`` pixels and eye regions supplied by a detector:
red-reflex sampling over the pupil, the Hirschberg corneal-reflex test,
capture quality and operator guidance. ``build_findings`` turns the
per-eye analyses into ``PhotoscreeningFindings`` for
``vision.assess_photoscreening``.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

import numpy as np

from .roi import ROI, FrameBuffer
from .vision import EyeAlignment, PhotoscreeningFindings, PupilSymmetry, RedReflex

logger = logging.getLogger(__name__)

SAMPLE_STEP = 2  # px between red-reflex samples
WHITE_REFLEX_LEVEL = 200
PRISM_PER_IPD_FRACTION = 700.0  # 1 % of the IPD ~ 7 prism dioptres
STRABISMUS_PRISM = 10.0
PUPIL_SYMMETRY_MIN = 0.75


class ReflexQuality(str, Enum):
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


_QUALITY_CONFIDENCE = {ReflexQuality.GOOD: 90.0, ReflexQuality.FAIR: 70.0, ReflexQuality.POOR: 30.0}


@dataclass(frozen=True)
class EyeRegion:
    """Eye bounding box plus pupil centre in frame pixels.

    The corneal light reflex defaults to the pupil centre when not located.
    """

    x: float
    y: float
    width: float
    height: float
    pupil_x: float
    pupil_y: float
    reflex_x: Optional[float] = None
    reflex_y: Optional[float] = None

    @property
    def reflex(self) -> Tuple[float, float]:
        rx = self.pupil_x if self.reflex_x is None else self.reflex_x
        ry = self.pupil_y if self.reflex_y is None else self.reflex_y
        return rx, ry


@dataclass(frozen=True)
class RedReflexAnalysis:
    brightness: float  # 0..255
    color: Tuple[float, float, float]
    quality: ReflexQuality
    white_reflex: bool
    samples: int

    @property
    def status(self) -> RedReflex:
        if self.white_reflex:
            return RedReflex.ABNORMAL
        if self.quality is ReflexQuality.POOR:
            return RedReflex.UNCLEAR
        return RedReflex.NORMAL


def _pupil_disc(frame: FrameBuffer, eye: EyeRegion) -> np.ndarray:
    """RGB samples on a 2 px grid inside a disc of 0.3 x the eye's short side."""
    radius = min(eye.width, eye.height) * 0.3
    offsets = np.arange(-radius, radius + 1e-9, SAMPLE_STEP)
    dx, dy = np.meshgrid(offsets, offsets)
    inside = np.hypot(dx, dy) <= radius
    xs = np.floor(eye.pupil_x + dx[inside] + 0.5).astype(int)
    ys = np.floor(eye.pupil_y + dy[inside] + 0.5).astype(int)
    valid = (xs >= 0) & (xs < frame.width) & (ys >= 0) & (ys < frame.height)
    return frame.rgb()[ys[valid], xs[valid]].astype(np.float64)


def analyze_red_reflex(frame: FrameBuffer, eye: EyeRegion) -> RedReflexAnalysis:
    """Mean pupil colour, leukocoria flag and capture quality for one eye."""
    samples = _pupil_disc(frame, eye)
    if samples.size == 0:
        return RedReflexAnalysis(0.0, (0.0, 0.0, 0.0), ReflexQuality.POOR, False, 0)
    r, g, b = (float(v) for v in samples.mean(axis=0))
    brightness = (r + g + b) / 3.0
    white = r > WHITE_REFLEX_LEVEL and g > WHITE_REFLEX_LEVEL and b > WHITE_REFLEX_LEVEL
    if brightness > 100 and not white:
        quality = ReflexQuality.GOOD
    elif brightness > 50:
        quality = ReflexQuality.FAIR
    else:
        quality = ReflexQuality.POOR
    return RedReflexAnalysis(brightness, (r, g, b), quality, white, int(samples.shape[0]))


def locate_corneal_reflex(frame: FrameBuffer, eye: EyeRegion) -> EyeRegion:
    """Return ``eye`` with its reflex set to the brightest pixel of the eye box."""
    rows, cols = ROI(eye.x, eye.y, eye.width, eye.height).clip(frame.width, frame.height)
    patch = frame.rgb()[rows, cols].astype(np.float64).mean(axis=2)
    if patch.size == 0:
        return eye
    py, px = np.unravel_index(int(np.argmax(patch)), patch.shape)
    return EyeRegion(
        eye.x, eye.y, eye.width, eye.height, eye.pupil_x, eye.pupil_y,
        reflex_x=float(cols.start + px), reflex_y=float(rows.start + py),
    )


@dataclass(frozen=True)
class HirschbergAnalysis:
    alignment: EyeAlignment
    prism_diopters: float
    deviation_angle: float  # degrees, 0 = purely horizontal
    horizontal_deviation: float  # px, left offset minus right offset
    vertical_deviation: float


def analyze_eye_alignment(left: EyeRegion, right: EyeRegion) -> HirschbergAnalysis:
    """Hirschberg test from corneal reflex offsets relative to the pupils.

    ``left`` is the eye with the smaller image x. Equal offsets in both eyes
    mean the eyes are aligned; the residual is converted to prism dioptres
    against the interpupillary distance.
    """
    ipd = abs(right.pupil_x - left.pupil_x)
    if ipd == 0:
        return HirschbergAnalysis(EyeAlignment.UNCLEAR, 0.0, 0.0, 0.0, 0.0)
    lrx, lry = left.reflex
    rrx, rry = right.reflex
    dx = (lrx - left.pupil_x) - (rrx - right.pupil_x)
    dy = (lry - left.pupil_y) - (rry - right.pupil_y)
    prism = max(abs(dx), abs(dy)) / ipd * PRISM_PER_IPD_FRACTION
    angle = math.degrees(math.atan2(abs(dy), abs(dx)))

    alignment = EyeAlignment.NORMAL
    if prism > STRABISMUS_PRISM:
        if abs(dx) >= abs(dy):
            # Reflexes pushed apart when the eyes turn in
            alignment = EyeAlignment.ESOTROPIA if dx < 0 else EyeAlignment.EXOTROPIA
        else:
            alignment = EyeAlignment.HYPERTROPIA if dy < 0 else EyeAlignment.HYPOTROPIA
        logger.debug("Hirschberg deviation %.1f prism dioptres (%s)", prism, alignment.value)
    return HirschbergAnalysis(alignment, prism, angle, dx, dy)


def build_findings(
    left: RedReflexAnalysis,
    right: RedReflexAnalysis,
    alignment: HirschbergAnalysis,
) -> PhotoscreeningFindings:
    """Combine per-eye analyses into findings for the photoscreening verdict."""
    if left.quality is ReflexQuality.POOR or right.quality is ReflexQuality.POOR:
        symmetry = PupilSymmetry.UNCLEAR
    else:
        ratio = min(left.brightness, right.brightness) / max(left.brightness, right.brightness)
        symmetry = PupilSymmetry.SYMMETRIC if ratio >= PUPIL_SYMMETRY_MIN else PupilSymmetry.ASYMMETRIC
    confidence = (_QUALITY_CONFIDENCE[left.quality] + _QUALITY_CONFIDENCE[right.quality]) / 2.0
    if alignment.alignment is EyeAlignment.UNCLEAR:
        confidence = min(confidence, 50.0)
    return PhotoscreeningFindings(
        red_reflex_left=left.status,
        red_reflex_right=right.status,
        eye_alignment=alignment.alignment,
        pupil_symmetry=symmetry,
        confidence=confidence,
    )


@dataclass(frozen=True)
class ImageQuality:
    sharpness: float  # 0..100
    brightness: float  # 0..100
    contrast: float  # 0..100
    acceptable: bool
    issues: List[str] = field(default_factory=list)


def assess_image_quality(frame: FrameBuffer) -> ImageQuality:
    """Brightness, contrast and gradient sharpness of a captured frame."""
    rgb = frame.rgb().astype(np.float64)
    luma = rgb.mean(axis=2)
    issues: List[str] = []

    brightness = float(luma.mean()) / 255.0 * 100.0
    if brightness < 30:
        issues.append("Image too dark")
    if brightness > 80:
        issues.append("Image too bright")

    contrast = float(luma.max() - luma.min()) / 255.0 * 100.0
    if contrast < 20:
        issues.append("Low contrast")

    # Forward differences of the red channel over interior pixels
    red = rgb[:, :, 0]
    if frame.width > 2 and frame.height > 2:
        core = red[1:-1, 1:-1]
        gx = np.abs(core - red[1:-1, 2:])
        gy = np.abs(core - red[2:, 1:-1])
        edge = float(np.hypot(gx, gy).sum())
    else:
        edge = 0.0
    sharpness = min(100.0, edge / (frame.width * frame.height) * 10.0)
    if sharpness < 30:
        issues.append("Image blurry")

    return ImageQuality(sharpness, brightness, contrast, not issues, issues)


@dataclass(frozen=True)
class CaptureGuidance:
    distance_ok: bool
    lighting_ok: bool
    alignment_ok: bool
    message: str


def provide_capture_guidance(
    face: Optional[ROI],
    quality: ImageQuality,
    frame_width: int = 1920,
) -> CaptureGuidance:
    """Next instruction for the person being photographed.

    Face width between 200 and 600 px and a face centre within 200 px of
    the frame centre are expected.
    """
    if face is None:
        return CaptureGuidance(
            False, False, False,
            "No face detected. Please position yourself in front of the camera.",
        )
    distance_ok = 200 < face.width < 600
    lighting_ok = 30 < quality.brightness < 80
    alignment_ok = abs(face.x + face.width / 2.0 - frame_width / 2.0) < 200

    if not distance_ok:
        message = "Move closer to the camera" if face.width <= 200 else "Move further from the camera"
    elif not lighting_ok:
        message = "Increase lighting" if quality.brightness <= 30 else "Reduce lighting"
    elif not alignment_ok:
        message = "Center your face in the frame"
    else:
        message = "Perfect! Hold still..."
    return CaptureGuidance(distance_ok, lighting_ok, alignment_ok, message)
