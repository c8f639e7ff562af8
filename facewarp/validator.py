"""Landmark validation and feature extraction.

Turns a raw detection result into named, validated feature point sets.
Rules are evaluated in order and the first failure wins:

  1. no faces                       -> NoFaceDetected
  2. several faces                  -> first face used, warning recorded
  3. confidence below threshold     -> LowConfidence (threshold inclusive)
  4. landmarks missing/short        -> IncompleteLandmarks
  5. all points of a feature bad    -> FeatureNotDetected(name)

Individually invalid points are dropped and logged, never fatal.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any, Dict, List, Optional

import numpy as np

from .config import section
from .errors import FeatureNotDetected, IncompleteLandmarks, LowConfidence, NoFaceDetected
from .keypoints import FEATURE_LANDMARKS
from .types import DetectionResult, FeatureSet, Point, ValidatedFace
from .utils import is_finite_number

logger = logging.getLogger(__name__)


def _is_sequence(obj: Any) -> bool:
    if isinstance(obj, np.ndarray):
        return obj.ndim >= 1
    return isinstance(obj, Sequence) and not isinstance(obj, (str, bytes, bytearray))


def _as_point(raw: Any) -> Optional[Point]:
    if raw is None or not _is_sequence(raw) or len(raw) < 2:
        return None
    x, y = raw[0], raw[1]
    if not (is_finite_number(x) and is_finite_number(y)):
        return None
    x, y = float(x), float(y)
    if x < 0 or y < 0:
        return None
    return (x, y)


def extract_feature(landmarks: Any, indices: Sequence[int], name: str) -> FeatureSet:
    """Collect the valid points of one feature, preserving index order.

    Raises FeatureNotDetected when none of the requested points is usable.
    """
    points: List[Point] = []
    dropped: List[int] = []
    for idx in indices:
        raw = landmarks[idx] if 0 <= idx < len(landmarks) else None
        pt = _as_point(raw)
        if pt is None:
            dropped.append(idx)
            continue
        points.append(pt)

    if dropped:
        logger.warning(
            "%s: dropped %d of %d landmark(s) with missing, non-finite or negative coordinates: %s",
            name, len(dropped), len(indices), dropped,
        )
    logger.debug("%s validation: requested=%d valid=%d", name, len(indices), len(points))

    if not points:
        raise FeatureNotDetected(name)
    return FeatureSet(name=name, points=points)


def validate_detection(
    result: DetectionResult,
    feature_indices: Optional[Mapping[str, Sequence[int]]] = None,
    cfg: Optional[Dict] = None,
) -> ValidatedFace:
    val = section(cfg, "validation")
    min_conf = float(val["min_confidence"])
    min_landmarks = int(val["min_landmarks"])
    feature_indices = feature_indices or FEATURE_LANDMARKS

    faces = list(getattr(result, "faces", None) or [])
    if not faces:
        raise NoFaceDetected()

    warnings: List[str] = []
    if len(faces) > 1:
        msg = f"Multiple faces detected ({len(faces)}), using the first face"
        logger.warning(msg)
        warnings.append(msg)

    face = faces[0]
    conf = getattr(face, "confidence", None)
    if not is_finite_number(conf) or float(conf) < min_conf:
        raise LowConfidence(conf, min_conf)

    landmarks = getattr(face, "landmarks", None)
    if landmarks is None or not _is_sequence(landmarks):
        raise IncompleteLandmarks(None, min_landmarks)
    if len(landmarks) < min_landmarks:
        logger.error("Unexpected number of mesh points: expected=%d found=%d", min_landmarks, len(landmarks))
        raise IncompleteLandmarks(len(landmarks), min_landmarks)

    features = {name: extract_feature(landmarks, idxs, name) for name, idxs in feature_indices.items()}
    return ValidatedFace(face=face, features=features, warnings=warnings)


__all__ = ["extract_feature", "validate_detection"]
