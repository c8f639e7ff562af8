from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

# (x, y) in image-space pixels
Point = Tuple[float, float]


@dataclass
class BBox:
    x: float
    y: float
    w: float
    h: float

    @property
    def center(self) -> Point:
        return (self.x + self.w / 2.0, self.y + self.h / 2.0)

    def inside(self, width: int, height: int) -> bool:
        return self.x >= 0 and self.y >= 0 and self.x + self.w <= width and self.y + self.h <= height

    def edges(self) -> Tuple[int, int, int, int]:
        """Integer pixel edges (x0, y0, x1, y1), half-open on the far side."""
        x0, y0 = _round_half_up(self.x), _round_half_up(self.y)
        x1, y1 = _round_half_up(self.x + self.w), _round_half_up(self.y + self.h)
        return x0, y0, max(x1, x0 + 1), max(y1, y0 + 1)


def _round_half_up(v: float) -> int:
    return int(v + 0.5) if v >= 0 else -int(-v + 0.5)


@dataclass
class ImageMeta:
    path: str
    width: int
    height: int
    channels: Optional[int] = None
    ext: Optional[str] = None


@dataclass
class FeatureSet:
    name: str
    points: List[Point]

    def __len__(self) -> int:
        return len(self.points)


@dataclass
class Face:
    confidence: float
    # Sequence of (x, y[, z]) in pixel space, MediaPipe FaceMesh ordering
    landmarks: Any
    bbox: Optional[BBox] = None


@dataclass
class DetectionResult:
    faces: List[Face] = field(default_factory=list)


@dataclass(frozen=True)
class DrawOptions:
    # Gaussian blur radius in pixels applied to colour channels; 0 disables
    blur_radius: float = 0.0
    # Multiplier for the alpha channel
    alpha: float = 1.0

    @property
    def is_identity(self) -> bool:
        return self.blur_radius <= 0 and self.alpha >= 1.0


@dataclass
class ValidatedFace:
    face: Face
    features: Dict[str, FeatureSet]
    warnings: List[str] = field(default_factory=list)

    def feature(self, name: str) -> FeatureSet:
        return self.features[name]


@dataclass
class ModifyResult:
    success: bool
    stage: str
    image: Optional[bytes] = None
    error: Optional[Exception] = None
    jawline: Optional[FeatureSet] = None
    warnings: Sequence[str] = ()
    # Stage that was running when the pass failed
    failed_at: Optional[str] = None
    generation: Optional[int] = None

    @property
    def reason(self) -> Optional[str]:
        return str(self.error) if self.error is not None else None
