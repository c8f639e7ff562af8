from __future__ import annotations

from typing import Tuple

import cv2
import numpy as np

from .types import DrawOptions


class RasterSurface:
    """Mutable RGBA pixel buffer (height x width x 4, uint8) edited by one pass.

    Pixel rectangles are given as half-open integer edges (x0, y0, x1, y1).
    """

    def __init__(self, pixels: np.ndarray):
        pixels = np.asarray(pixels)
        if pixels.dtype != np.uint8 or pixels.ndim != 3 or pixels.shape[2] != 4:
            raise ValueError(f"RasterSurface expects an HxWx4 uint8 array, got {pixels.dtype} {pixels.shape}")
        if pixels.shape[0] < 1 or pixels.shape[1] < 1:
            raise ValueError("RasterSurface must be at least 1x1")
        self.pixels = np.ascontiguousarray(pixels)

    @classmethod
    def from_image(cls, image: np.ndarray) -> "RasterSurface":
        """Build a surface from a gray, RGB or RGBA array (the input is copied)."""
        img = np.asarray(image)
        if img.dtype != np.uint8:
            raise ValueError(f"Expected uint8 image, got {img.dtype}")
        if img.ndim == 2:
            rgba = cv2.cvtColor(img, cv2.COLOR_GRAY2RGBA)
        elif img.ndim == 3 and img.shape[2] == 3:
            rgba = cv2.cvtColor(img, cv2.COLOR_RGB2RGBA)
        elif img.ndim == 3 and img.shape[2] == 4:
            rgba = img.copy()
        else:
            raise ValueError(f"Unsupported image shape: {img.shape}")
        return cls(rgba)

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def size(self) -> Tuple[int, int]:
        return self.width, self.height

    def copy(self) -> "RasterSurface":
        return RasterSurface(self.pixels.copy())

    def _check_rect(self, x0: int, y0: int, x1: int, y1: int) -> None:
        if x0 < 0 or y0 < 0 or x1 > self.width or y1 > self.height or x1 <= x0 or y1 <= y0:
            raise ValueError(f"Rect {(x0, y0, x1, y1)} outside surface {self.size}")

    def get_region(self, x0: int, y0: int, x1: int, y1: int) -> np.ndarray:
        """Return an isolated copy of the pixels inside the rect."""
        self._check_rect(x0, y0, x1, y1)
        return self.pixels[y0:y1, x0:x1].copy()

    def clear_region(self, x0: int, y0: int, x1: int, y1: int) -> None:
        """Paint the rect fully transparent."""
        self._check_rect(x0, y0, x1, y1)
        self.pixels[y0:y1, x0:x1] = 0

    def put_region(self, buffer: np.ndarray, x0: int, y0: int) -> None:
        """Overwrite pixels with `buffer`, top-left corner at (x0, y0)."""
        h, w = buffer.shape[:2]
        self._check_rect(x0, y0, x0 + w, y0 + h)
        self.pixels[y0:y0 + h, x0:x0 + w] = buffer

    def apply_draw_options(self, options: DrawOptions) -> None:
        """Apply blur (colour channels) and alpha scaling to the whole surface."""
        if options.is_identity:
            return
        if options.blur_radius > 0:
            rgb = np.ascontiguousarray(self.pixels[:, :, :3])
            self.pixels[:, :, :3] = cv2.GaussianBlur(rgb, (0, 0), sigmaX=float(options.blur_radius))
        if options.alpha < 1.0:
            a = self.pixels[:, :, 3].astype(np.float64) * max(0.0, float(options.alpha))
            self.pixels[:, :, 3] = np.clip(np.round(a), 0, 255).astype(np.uint8)


def resample(buffer: np.ndarray, width: int, height: int) -> np.ndarray:
    """Bilinear resize of an HxWxC buffer to (height, width); same size is a copy."""
    h, w = buffer.shape[:2]
    if (w, h) == (width, height):
        return buffer.copy()
    return cv2.resize(buffer, (int(width), int(height)), interpolation=cv2.INTER_LINEAR)


__all__ = ["RasterSurface", "resample"]
