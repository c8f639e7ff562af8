from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

try:
    import cv2
    import mediapipe as mp
except Exception as e:  # pragma: no cover - environment import guard
    cv2 = None  # type: ignore
    mp = None  # type: ignore

from .types import BBox, DetectionResult, Face

logger = logging.getLogger(__name__)


@dataclass
class FaceMeshConfig:
    static_image_mode: bool = True
    refine_landmarks: bool = False
    max_faces: int = 2
    min_detection_confidence: float = 0.5

    @classmethod
    def from_cfg(cls, cfg: Optional[dict] = None) -> "FaceMeshConfig":
        mp_cfg = (cfg or {}).get("mediapipe", {})
        return cls(
            static_image_mode=bool(mp_cfg.get("static_image_mode", True)),
            refine_landmarks=bool(mp_cfg.get("refine_landmarks", False)),
            max_faces=int(mp_cfg.get("max_faces", 2)),
            min_detection_confidence=float(mp_cfg.get("min_detection_confidence", 0.5)),
        )


def _landmarks_to_pixels(lms, width: int, height: int) -> np.ndarray:
    """Normalized MediaPipe landmarks -> float pixel coordinates (N, 3).

    Points are not clipped; off-canvas landmarks are left for validation to drop.
    """
    pts = [(pt.x * width, pt.y * height, getattr(pt, "z", 0.0) * width) for pt in lms.landmark]
    return np.asarray(pts, dtype=np.float64).reshape(-1, 3)


def _bbox_from_pixels(pixel: np.ndarray) -> BBox:
    x_min, y_min = float(np.min(pixel[:, 0])), float(np.min(pixel[:, 1]))
    x_max, y_max = float(np.max(pixel[:, 0])), float(np.max(pixel[:, 1]))
    return BBox(x=x_min, y=y_min, w=x_max - x_min, h=y_max - y_min)


def _iou(a: BBox, b: BBox) -> float:
    ix = max(0.0, min(a.x + a.w, b.x + b.w) - max(a.x, b.x))
    iy = max(0.0, min(a.y + a.h, b.y + b.h) - max(a.y, b.y))
    inter = ix * iy
    union = a.w * a.h + b.w * b.h - inter
    return inter / union if union > 0 else 0.0


def _detection_boxes(results, width: int, height: int) -> List[Tuple[BBox, float]]:
    out: List[Tuple[BBox, float]] = []
    for det in (getattr(results, "detections", None) or []):
        rb = det.location_data.relative_bounding_box
        # Scores arrive as float32; round so 0.7 is not read as 0.69999999
        score = round(float(det.score[0]), 6) if det.score else 0.0
        out.append((BBox(x=rb.xmin * width, y=rb.ymin * height, w=rb.width * width, h=rb.height * height), score))
    return out


class FaceMeshDetector:
    """MediaPipe FaceMesh wrapper producing a DetectionResult.

    FaceMesh reports no per-face score, so each mesh is paired with the
    best-overlapping MediaPipe face detection and takes its score (0.0 when
    nothing overlaps). Faces are ordered largest first.

    Usage:
        with FaceMeshDetector(FaceMeshConfig()) as det:
            result = det.detect(rgba)
    """

    def __init__(self, cfg: Optional[FaceMeshConfig] = None):
        if mp is None or cv2 is None:
            raise ImportError("mediapipe and opencv-python must be installed to use FaceMeshDetector")
        self.cfg = cfg or FaceMeshConfig()
        self._mesh = None
        self._scorer = None

    def __enter__(self):
        self._mesh = mp.solutions.face_mesh.FaceMesh(
            static_image_mode=self.cfg.static_image_mode,
            refine_landmarks=self.cfg.refine_landmarks,
            max_num_faces=self.cfg.max_faces,
            min_detection_confidence=self.cfg.min_detection_confidence,
        )
        self._scorer = mp.solutions.face_detection.FaceDetection(
            model_selection=1,
            min_detection_confidence=self.cfg.min_detection_confidence,
        )
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def close(self) -> None:
        if self._mesh is not None:
            self._mesh.close()
            self._mesh = None
        if self._scorer is not None:
            self._scorer.close()
            self._scorer = None

    def _ensure_open(self):
        if self._mesh is None:
            # Allow use without context manager by lazy init
            self.__enter__()

    def detect(self, image: np.ndarray) -> DetectionResult:
        """Detect faces in an RGBA (or RGB) uint8 image."""
        self._ensure_open()
        assert self._mesh is not None and self._scorer is not None

        img_rgb = cv2.cvtColor(image, cv2.COLOR_RGBA2RGB) if image.shape[2] == 4 else image
        height, width = img_rgb.shape[:2]
        results = self._mesh.process(img_rgb)
        if not results or not results.multi_face_landmarks:
            return DetectionResult(faces=[])

        scored = _detection_boxes(self._scorer.process(img_rgb), width, height)

        faces: List[Face] = []
        for flm in results.multi_face_landmarks:
            pix = _landmarks_to_pixels(flm, width, height)
            bbox = _bbox_from_pixels(pix)
            overlaps = [(_iou(bbox, box), score) for box, score in scored]
            best = max(overlaps, default=(0.0, 0.0))
            confidence = best[1] if best[0] > 0 else 0.0
            faces.append(Face(confidence=confidence, landmarks=pix, bbox=bbox))

        faces.sort(key=lambda f: f.bbox.w * f.bbox.h if f.bbox else 0.0, reverse=True)
        logger.debug("Detected %d face(s), confidences=%s", len(faces), [round(f.confidence, 3) for f in faces])
        return DetectionResult(faces=faces)


__all__ = ["FaceMeshDetector", "FaceMeshConfig"]
