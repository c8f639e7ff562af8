"""Image enumeration and decoding.

- Recursive image enumeration with extension whitelist and optional `max_files`.
- Unicode-safe image reading via OpenCV (imdecode) with fallback.
- Every decoded image is normalized to an RGBA uint8 array.
"""

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Generator, Iterable, Optional, Tuple

import numpy as np
import cv2

from .types import ImageMeta
from .utils import is_image_file

logger = logging.getLogger(__name__)


def to_rgba(img: np.ndarray) -> np.ndarray:
    """Convert an OpenCV-decoded (BGR/BGRA/gray) image to RGBA uint8."""
    if img.dtype == np.uint16:
        # 16-bit PNG/TIFF
        img = (img >> 8).astype(np.uint8)
    elif img.dtype != np.uint8:
        raise ValueError(f"Unsupported image dtype: {img.dtype}")
    if img.ndim == 2:
        return cv2.cvtColor(img, cv2.COLOR_GRAY2RGBA)
    if img.shape[2] == 3:
        return cv2.cvtColor(img, cv2.COLOR_BGR2RGBA)
    if img.shape[2] == 4:
        return cv2.cvtColor(img, cv2.COLOR_BGRA2RGBA)
    raise ValueError(f"Unsupported channel count: {img.shape[2]}")


def decode_image(data: bytes) -> np.ndarray:
    """Decode encoded image bytes into an RGBA uint8 array.

    Raises ValueError when the bytes are empty or not a decodable image.
    """
    buf = np.frombuffer(data, dtype=np.uint8)
    if buf.size == 0:
        raise ValueError("No image data provided")
    img = cv2.imdecode(buf, cv2.IMREAD_UNCHANGED)
    if img is None:
        raise ValueError("Could not decode image data")
    return to_rgba(img)


def fit_within(rgba: np.ndarray, max_width: Optional[int] = None, max_height: Optional[int] = None) -> np.ndarray:
    """Downscale so the image fits max_width x max_height, keeping the aspect ratio.

    Images already inside the limits are returned as-is. A limit of None is
    unbounded on that axis.
    """
    h, w = rgba.shape[:2]
    ratio = min(
        max_width / w if max_width else 1.0,
        max_height / h if max_height else 1.0,
    )
    if ratio >= 1.0:
        return rgba
    new_w = max(1, math.floor(w * ratio))
    new_h = max(1, math.floor(h * ratio))
    logger.debug("Downscaling input %dx%d -> %dx%d", w, h, new_w, new_h)
    return cv2.resize(rgba, (new_w, new_h), interpolation=cv2.INTER_AREA)


class ImageLoader:
    def __init__(
        self,
        input_dir: str | Path,
        exts: Optional[Iterable[str]] = None,
        max_files: Optional[int] = None,
    ):
        self.input_dir = Path(input_dir)
        self.exts = set(e.lower() for e in (exts or {".png", ".jpg", ".jpeg", ".bmp", ".webp", ".tiff"}))
        self.max_files = max_files

    def enumerate(self) -> Generator[Path, None, None]:
        count = 0
        if not self.input_dir.exists():
            logger.warning("Input directory does not exist: %s", self.input_dir)
            return
        for p in sorted(self.input_dir.rglob("*")):
            if p.is_file() and is_image_file(p, self.exts):
                yield p
                count += 1
                if self.max_files is not None and count >= self.max_files:
                    return

    @staticmethod
    def _imread_unicode(path: Path) -> Optional[np.ndarray]:
        try:
            data = np.fromfile(str(path), dtype=np.uint8)
        except OSError as e:
            logger.warning("Failed to read %s (%s)", path, e)
            return None
        if data.size == 0:
            return None
        img = cv2.imdecode(data, cv2.IMREAD_UNCHANGED)
        if img is None:
            # Fallback to standard imread
            img = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
        return img

    def read_image(self, path: str | Path) -> Tuple[Optional[np.ndarray], Optional[ImageMeta], Optional[str]]:
        """Return (rgba, meta, error); error is a short reason string or None."""
        p = Path(path)
        img = self._imread_unicode(p)
        if img is None:
            return None, None, "unreadable"
        try:
            rgba = to_rgba(img)
        except ValueError as e:
            logger.warning("Skipping %s: %s", p, e)
            return None, None, "unsupported_format"
        h, w = rgba.shape[:2]
        ch = 1 if img.ndim == 2 else img.shape[2]
        meta = ImageMeta(path=str(p), width=w, height=h, channels=ch, ext=p.suffix.lower())
        return rgba, meta, None


__all__ = ["ImageLoader", "decode_image", "fit_within", "to_rgba"]
