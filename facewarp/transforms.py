"""Region transforms driven by feature landmarks.

Two operations over a RasterSurface:

- `enlarge_feature` copies the padded bounding box of a feature, clears it and
  resamples the copy into a box scaled about the same centre. All bounds
  checks and the resample run before the first write, so a failure leaves the
  surface byte-identical.
- `shrink_face` contracts jaw landmarks toward the surface centre. It is pure:
  it returns new points plus the soft-focus DrawOptions for the caller to
  apply, and never reshapes pixels itself.
"""

from __future__ import annotations

import logging
import math
from typing import Dict, Optional, Sequence, Tuple

from .config import section
from .errors import BoundsExceeded, FeatureNotDetected, InvalidScale
from .surface import RasterSurface, resample
from .types import BBox, DrawOptions, FeatureSet, Point
from .utils import is_finite_number

logger = logging.getLogger(__name__)

# Tolerance for treating a scale factor as identity
IDENTITY_EPS = 1e-9


def _check_scale(scale: float, name: str = "scale") -> float:
    if not is_finite_number(scale) or float(scale) <= 0:
        raise InvalidScale(scale, name)
    return float(scale)


def _points_of(points: FeatureSet | Sequence[Point]) -> Tuple[str, Sequence[Point]]:
    if isinstance(points, FeatureSet):
        return points.name, points.points
    return "feature", points


def feature_bbox(points: Sequence[Point], cfg: Optional[Dict] = None) -> BBox:
    """Axis-aligned box around `points` with symmetric padding.

    padding = max(min_padding, ratio * w, ratio * h); origin clamped at 0.
    """
    if not points:
        raise ValueError("No points provided for bounding box calculation")
    enl = section(cfg, "enlarge")
    xs = [p[0] for p in points]
    ys = [p[1] for p in points]
    min_x, max_x = min(xs), max(xs)
    min_y, max_y = min(ys), max(ys)
    bw, bh = max_x - min_x, max_y - min_y
    ratio = float(enl["padding_ratio"])
    padding = max(float(enl["min_padding"]), bw * ratio, bh * ratio)
    return BBox(
        x=max(0.0, min_x - padding),
        y=max(0.0, min_y - padding),
        w=max(1.0, bw + padding * 2),
        h=max(1.0, bh + padding * 2),
    )


def scaled_bbox(box: BBox, scale: float) -> BBox:
    """Scale `box` about its own centre."""
    return BBox(
        x=box.x - box.w * (scale - 1) / 2,
        y=box.y - box.h * (scale - 1) / 2,
        w=box.w * scale,
        h=box.h * scale,
    )


def enlarge_feature(
    surface: RasterSurface,
    points: FeatureSet | Sequence[Point],
    scale: float,
    cfg: Optional[Dict] = None,
) -> BBox:
    """Enlarge (or shrink) the region around a feature in place.

    Returns the destination box. Raises InvalidScale or BoundsExceeded with
    the surface untouched.
    """
    name, pts = _points_of(points)
    if not pts:
        raise FeatureNotDetected(name)
    scale = _check_scale(scale)

    width, height = surface.size
    box = feature_bbox(pts, cfg)
    if not box.inside(width, height):
        raise BoundsExceeded(f"{name}:source", (box.x, box.y, box.w, box.h), (width, height))

    target = scaled_bbox(box, scale)
    if not target.inside(width, height):
        raise BoundsExceeded(f"{name}:target", (target.x, target.y, target.w, target.h), (width, height))

    sx0, sy0, sx1, sy1 = box.edges()
    tx0, ty0, tx1, ty1 = target.edges()
    # Rounding may push a far edge one pixel past a box that sits flush with the canvas
    sx1, sy1 = min(sx1, width), min(sy1, height)
    tx1, ty1 = min(tx1, width), min(ty1, height)

    feature = surface.get_region(sx0, sy0, sx1, sy1)
    resampled = resample(feature, tx1 - tx0, ty1 - ty0)

    # Commit: nothing below can fail on validated rects
    surface.clear_region(sx0, sy0, sx1, sy1)
    surface.put_region(resampled, tx0, ty0)

    logger.debug(
        "%s: enlarged %s -> %s (scale=%.3f)", name, (sx0, sy0, sx1, sy1), (tx0, ty0, tx1, ty1), scale,
    )
    return target


def shrink_face(
    surface: RasterSurface,
    jawline: FeatureSet | Sequence[Point],
    scale: float,
    cfg: Optional[Dict] = None,
) -> Tuple[FeatureSet, DrawOptions]:
    """Contract jaw landmarks toward the surface centre.

    Returns a new FeatureSet and the soft-focus DrawOptions; the input points
    are not modified. Identity options are returned for scale == 1.
    """
    name, pts = _points_of(jawline)
    if not pts:
        raise FeatureNotDetected("jawline" if name == "feature" else name)
    scale = _check_scale(scale)

    width, height = surface.size
    cx, cy = width / 2.0, height / 2.0
    moved = []
    for x, y in ((p[0], p[1]) for p in pts):
        nx = x * scale + (1 - scale) * cx
        ny = y * scale + (1 - scale) * cy
        if not (0 <= nx <= width and 0 <= ny <= height) or not (math.isfinite(nx) and math.isfinite(ny)):
            raise BoundsExceeded("shrink", (nx, ny), (width, height))
        moved.append((nx, ny))

    if abs(scale - 1.0) <= IDENTITY_EPS:
        options = DrawOptions()
    else:
        jaw = section(cfg, "jaw")
        options = DrawOptions(blur_radius=float(jaw["blur_radius"]), alpha=float(jaw["alpha"]))

    logger.debug("jawline: remapped %d point(s) about (%.1f, %.1f) scale=%.3f", len(moved), cx, cy, scale)
    return FeatureSet(name="jawline" if name == "feature" else name, points=moved), options


__all__ = ["feature_bbox", "scaled_bbox", "enlarge_feature", "shrink_face"]
