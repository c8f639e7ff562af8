from __future__ import annotations

from typing import Dict, List, Tuple


# MediaPipe FaceMesh landmark indices per warped feature.
# Eyes: the lower lid contour from outer to inner corner.
LEFT_EYE: List[int] = [33, 7, 163, 144, 145, 153, 154, 155, 133]
RIGHT_EYE: List[int] = [263, 249, 390, 373, 374, 380, 381, 382, 362]
# Jaw contour; order encodes adjacency along the outline
JAWLINE: List[int] = list(range(0, 17))

FEATURE_LANDMARKS: Dict[str, List[int]] = {
    "leftEye": LEFT_EYE,
    "rightEye": RIGHT_EYE,
    "jawline": JAWLINE,
}

# Processing order of the compositor; eyes strictly before the jaw
FEATURE_ORDER: Tuple[str, ...] = ("leftEye", "rightEye", "jawline")

# Minimum landmark count of a full FaceMesh (without iris refinement)
MESH_SIZE = 468


__all__ = [
    "LEFT_EYE",
    "RIGHT_EYE",
    "JAWLINE",
    "FEATURE_LANDMARKS",
    "FEATURE_ORDER",
    "MESH_SIZE",
]
