"""Frame buffers, facial ROI geometry and mean RGB extraction.

Face/landmark detection is an external collaborator behind ``RoiProvider``.
Two adapters are provided:
- FaceCascadeRoiProvider: OpenCV Haar-cascade face box (no ML runtime)
- FaceMeshRoiProvider: MediaPipe Face Detection eye keypoints (CPU/TFLite)

Both are imported lazily so the core never depends on them at import time.
The first ROI returned is always the forehead.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence, Tuple

import numpy as np


@dataclass(frozen=True)
class FrameBuffer:
    """Row-major RGBA pixels of one video frame."""

    width: int
    height: int
    data: bytes

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError("frame dimensions must be positive")
        if len(self.data) != self.width * self.height * 4:
            raise ValueError("data length must equal width * height * 4")

    @classmethod
    def from_array(cls, pixels: np.ndarray) -> "FrameBuffer":
        """Build from an HxWx3 (RGB) or HxWx4 (RGBA) uint8 array."""
        arr = np.asarray(pixels)
        if arr.ndim != 3 or arr.shape[2] not in (3, 4):
            raise ValueError("pixels must be an HxWx3 or HxWx4 array")
        h, w = arr.shape[:2]
        if arr.shape[2] == 3:
            alpha = np.full((h, w, 1), 255, dtype=np.uint8)
            arr = np.concatenate([arr.astype(np.uint8), alpha], axis=2)
        return cls(width=int(w), height=int(h), data=arr.astype(np.uint8).tobytes())

    def rgba(self) -> np.ndarray:
        return np.frombuffer(self.data, dtype=np.uint8).reshape(self.height, self.width, 4)

    def rgb(self) -> np.ndarray:
        return self.rgba()[:, :, :3]


@dataclass(frozen=True)
class ROI:
    x: float
    y: float
    width: float
    height: float

    def clip(self, frame_width: int, frame_height: int) -> Tuple[slice, slice]:
        """Integer pixel slices (rows, cols) of the ROI inside the frame."""
        x0 = max(0, int(math.floor(self.x)))
        y0 = max(0, int(math.floor(self.y)))
        x1 = min(frame_width, int(math.floor(self.x)) + int(math.floor(self.width)))
        y1 = min(frame_height, int(math.floor(self.y)) + int(math.floor(self.height)))
        return slice(y0, max(y0, y1)), slice(x0, max(x0, x1))


class RoiProvider(Protocol):
    def detect(self, frame: FrameBuffer) -> List[ROI]:
        """Return facial ROIs, forehead first; empty when no face is found."""
        ...


def mean_rgb(frame: FrameBuffer, roi: Optional[ROI] = None) -> Tuple[float, float, float]:
    """Mean (R, G, B) over an ROI, or over the whole frame.

    An ROI lying entirely outside the frame yields (0, 0, 0).
    """
    rgb = frame.rgb()
    if roi is not None:
        rows, cols = roi.clip(frame.width, frame.height)
        rgb = rgb[rows, cols]
    if rgb.size == 0:
        return 0.0, 0.0, 0.0
    r, g, b = rgb.reshape(-1, 3).astype(np.float64).mean(axis=0)
    return float(r), float(g), float(b)


def mean_rgb_multi(frame: FrameBuffer, rois: Sequence[ROI]) -> Tuple[float, float, float]:
    """Average of per-ROI means (each ROI weighs equally)."""
    if not rois:
        return 0.0, 0.0, 0.0
    means = np.array([mean_rgb(frame, roi) for roi in rois], dtype=np.float64)
    r, g, b = means.mean(axis=0)
    return float(r), float(g), float(b)


def rois_from_eye_centers(
    left_eye: Tuple[float, float],
    right_eye: Tuple[float, float],
) -> List[ROI]:
    """Forehead, left cheek and right cheek ROIs from image-space eye centres.

    ``left_eye`` is the eye with the smaller x coordinate. Sizes scale with
    the inter-eye distance.
    """
    lx, ly = left_eye
    rx, ry = right_eye
    d = rx - lx
    if d <= 0:
        return []
    forehead = ROI(lx - d * 0.1, ly - d * 0.6, d * 1.2, d * 0.4)
    left_cheek = ROI(lx - d * 0.3, ly + d * 0.4, d * 0.5, d * 0.5)
    right_cheek = ROI(rx - d * 0.2, ry + d * 0.4, d * 0.5, d * 0.5)
    return [forehead, left_cheek, right_cheek]


def rois_from_face_box(x: float, y: float, w: float, h: float) -> List[ROI]:
    """Forehead (upper quarter, middle third) and lower-half cheek ROIs."""
    if w <= 0 or h <= 0:
        return []
    w_third = w // 3
    h_quarter = h // 4
    forehead = ROI(x + w_third, y, w - 2 * w_third, h_quarter)
    left_cheek = ROI(x, y + h // 2, w_third, h - h // 2)
    right_cheek = ROI(x + w - w_third, y + h // 2, w_third, h - h // 2)
    return [forehead, left_cheek, right_cheek]


@dataclass
class FaceRoiConfig:
    downscale: int = 2  # speed-up for detection
    min_confidence: float = 0.5


class FaceCascadeRoiProvider:
    """OpenCV Haar-cascade face box -> forehead/cheek ROIs."""

    def __init__(self, cfg: Optional[FaceRoiConfig] = None) -> None:
        self.cfg = cfg or FaceRoiConfig()
        self._clf = None

    def _ensure_model(self) -> None:  # pragma: no cover - needs OpenCV data files
        if self._clf is None:
            import cv2

            cascade_path = cv2.data.haarcascades + "haarcascade_frontalface_default.xml"
            self._clf = cv2.CascadeClassifier(cascade_path)

    def detect(self, frame: FrameBuffer) -> List[ROI]:  # pragma: no cover - integration
        import cv2

        self._ensure_model()
        ds = max(1, int(self.cfg.downscale))
        small = np.ascontiguousarray(frame.rgb()[::ds, ::ds])
        gray = cv2.cvtColor(small, cv2.COLOR_RGB2GRAY)
        faces = self._clf.detectMultiScale(  # type: ignore[union-attr]
            gray, scaleFactor=1.1, minNeighbors=5, flags=cv2.CASCADE_SCALE_IMAGE
        )
        if len(faces) == 0:
            return []
        # Pick the largest face and scale back to full-res
        x, y, bw, bh = (int(v) * ds for v in max(faces, key=lambda r: r[2] * r[3]))
        return rois_from_face_box(x, y, bw, bh)


class FaceMeshRoiProvider:
    """MediaPipe Face Detection eye keypoints -> forehead/cheek ROIs."""

    def __init__(self, cfg: Optional[FaceRoiConfig] = None) -> None:
        self.cfg = cfg or FaceRoiConfig()
        self._fd = None

    def _ensure_model(self) -> None:  # pragma: no cover - optional path
        if self._fd is None:
            try:
                import mediapipe as mp  # type: ignore

                self._fd = mp.solutions.face_detection.FaceDetection(
                    model_selection=0,
                    min_detection_confidence=self.cfg.min_confidence,
                )
            except Exception as exc:
                raise RuntimeError(
                    f"Failed to initialize MediaPipe FaceDetection: {exc}"
                ) from exc

    def detect(self, frame: FrameBuffer) -> List[ROI]:  # pragma: no cover - integration
        self._ensure_model()
        ds = max(1, int(self.cfg.downscale))
        small = np.ascontiguousarray(frame.rgb()[::ds, ::ds])
        result = self._fd.process(small)  # type: ignore[union-attr]
        if not result.detections:
            return []
        kps = result.detections[0].location_data.relative_keypoints
        # Keypoints 0/1 are the two eyes; order them by image x
        eyes = sorted(
            ((kps[0].x * frame.width, kps[0].y * frame.height),
             (kps[1].x * frame.width, kps[1].y * frame.height)),
        )
        return rois_from_eye_centers(eyes[0], eyes[1])
