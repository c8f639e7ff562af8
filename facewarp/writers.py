"""Output encoding and batch writers.

`encode_image` turns a finished RGBA surface into compressed bytes via
OpenCV. `ResultsWriter` collects per-image records in batch mode and writes
the output images, a JSON index and a summary YAML.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import cv2
import numpy as np
import yaml

from .config import section
from .types import ImageMeta, ModifyResult
from .utils import ensure_dir

logger = logging.getLogger(__name__)

# Formats that keep the alpha channel when encoded by OpenCV
_ALPHA_EXTS = {".png", ".webp", ".tiff", ".tif"}


def _flatten(rgba: np.ndarray, background) -> np.ndarray:
    """Composite RGBA over an opaque BGR background, returning BGR."""
    bgra = cv2.cvtColor(rgba, cv2.COLOR_RGBA2BGRA)
    alpha = bgra[:, :, 3:4].astype(np.float32) / 255.0
    bg = np.asarray(background, dtype=np.float32).reshape(1, 1, 3)
    out = bgra[:, :, :3].astype(np.float32) * alpha + bg * (1.0 - alpha)
    return np.clip(np.round(out), 0, 255).astype(np.uint8)


def encode_image(rgba: np.ndarray, ext: Optional[str] = None, cfg: Optional[Dict] = None) -> bytes:
    """Encode an RGBA array to `ext` (".png", ".jpg", ...).

    Raises ValueError when OpenCV cannot encode to the requested format.
    """
    out_cfg = section(cfg, "output")
    ext = (ext or out_cfg["ext"]).lower()
    if not ext.startswith("."):
        ext = "." + ext

    params: List[int] = []
    if ext in _ALPHA_EXTS:
        img = cv2.cvtColor(rgba, cv2.COLOR_RGBA2BGRA)
    else:
        img = _flatten(rgba, out_cfg["background"])
        if ext in (".jpg", ".jpeg"):
            params = [int(cv2.IMWRITE_JPEG_QUALITY), int(out_cfg["jpeg_quality"])]

    ok, buf = cv2.imencode(ext, img, params)
    if not ok:
        raise ValueError(f"Failed to encode image as {ext}")
    return buf.tobytes()


def build_record(
    meta: ImageMeta,
    result: ModifyResult,
    output_path: Optional[str] = None,
    extra: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    err = result.error
    rec: Dict[str, Any] = {
        "file": meta.path,
        "width": meta.width,
        "height": meta.height,
        "success": result.success,
        "stage": result.stage,
        "error": getattr(err, "code", None) if err is not None else None,
        "reason": result.reason,
        "warnings": list(result.warnings),
        "output": output_path,
    }
    if extra:
        rec.update(extra)
    return rec


class ResultsWriter:
    def __init__(self, output_dir: str | Path, cfg: Optional[Dict[str, Any]] = None):
        self.output_dir = Path(output_dir)
        ensure_dir(self.output_dir)
        self.cfg = cfg or {}
        self.succeeded: List[Dict[str, Any]] = []
        self.failed: List[Dict[str, Any]] = []

    def output_path_for(self, src_path: str | Path) -> Path:
        ext = section(self.cfg, "output")["ext"]
        return self.output_dir / "images" / (Path(src_path).stem + ext)

    def write_image(self, src_path: str | Path, data: bytes) -> str:
        dest = self.output_path_for(src_path)
        ensure_dir(dest.parent)
        dest.write_bytes(data)
        return str(dest)

    def add(self, record: Dict[str, Any]) -> None:
        if record.get("success"):
            self.succeeded.append(record)
        else:
            self.failed.append(record)

    def _write_json(self, path: Path, data: List[Dict[str, Any]]):
        with path.open("w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)

    def finalize(self) -> Dict[str, Any]:
        out_dir = self.output_dir
        ensure_dir(out_dir)

        self._write_json(out_dir / "results.json", self.succeeded + self.failed)

        errors: Dict[str, int] = {}
        for rec in self.failed:
            key = rec.get("error") or "unknown"
            errors[key] = errors.get(key, 0) + 1

        summary = {
            "counts": {
                "succeeded": len(self.succeeded),
                "failed": len(self.failed),
                "total": len(self.succeeded) + len(self.failed),
            },
            "errors": errors,
            "scales": (self.cfg or {}).get("scales", {}),
            "paths": (self.cfg or {}).get("paths", {}),
        }
        with (out_dir / "summary.yaml").open("w", encoding="utf-8") as f:
            yaml.safe_dump(summary, f, sort_keys=False, allow_unicode=True)
        logger.info("Wrote %d result(s) to %s", summary["counts"]["total"], out_dir)
        return summary


__all__ = [
    "encode_image",
    "build_record",
    "ResultsWriter",
]
