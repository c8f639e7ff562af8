"""Tests for decoding, encoding and the batch results writer."""

from __future__ import annotations

import json
from pathlib import Path

import cv2
import numpy as np
import pytest
import yaml

from facewarp.errors import NoFaceDetected
from facewarp.loader import ImageLoader, decode_image, fit_within
from facewarp.types import ImageMeta, ModifyResult
from facewarp.writers import ResultsWriter, build_record, encode_image


def _png_bytes(bgr: np.ndarray) -> bytes:
    ok, buf = cv2.imencode(".png", bgr)
    assert ok
    return buf.tobytes()


class TestDecode:
    def test_bgr_becomes_rgba(self) -> None:
        bgr = np.zeros((4, 6, 3), dtype=np.uint8)
        bgr[:, :] = (255, 0, 0)  # blue
        rgba = decode_image(_png_bytes(bgr))
        assert rgba.shape == (4, 6, 4)
        assert tuple(rgba[0, 0]) == (0, 0, 255, 255)

    def test_gray(self) -> None:
        gray = np.full((3, 3), 9, dtype=np.uint8)
        rgba = decode_image(_png_bytes(gray))
        assert tuple(rgba[1, 1]) == (9, 9, 9, 255)

    def test_empty(self) -> None:
        with pytest.raises(ValueError):
            decode_image(b"")

    def test_garbage(self) -> None:
        with pytest.raises(ValueError):
            decode_image(b"\x00\x01\x02")


class TestEncode:
    def test_png_keeps_alpha(self, gradient_image) -> None:
        img = gradient_image.copy()
        img[0, 0, 3] = 17
        assert np.array_equal(decode_image(encode_image(img, ".png")), img)

    def test_jpeg_flattens_over_background(self) -> None:
        img = np.zeros((8, 8, 4), dtype=np.uint8)  # fully transparent
        data = encode_image(img, "jpg", {"output": {"background": [255, 255, 255]}})
        assert data[:2] == b"\xff\xd8"
        out = decode_image(data)
        assert (out[:, :, :3] > 245).all()

    def test_default_format_from_config(self, gradient_image) -> None:
        assert encode_image(gradient_image)[:4] == b"\x89PNG"

    def test_unknown_format(self, gradient_image) -> None:
        with pytest.raises((ValueError, cv2.error)):
            encode_image(gradient_image, ".nope")


class TestImageLoader:
    def test_read_and_enumerate(self, tmp_path: Path) -> None:
        bgr = np.zeros((5, 7, 3), dtype=np.uint8)
        for name in ("b.png", "a.png", "c.png"):
            cv2.imwrite(str(tmp_path / name), bgr)
        (tmp_path / "notes.txt").write_text("x")

        loader = ImageLoader(tmp_path, max_files=2)
        paths = list(loader.enumerate())
        assert [p.name for p in paths] == ["a.png", "b.png"]

        rgba, meta, err = loader.read_image(paths[0])
        assert err is None
        assert rgba.shape == (5, 7, 4)
        assert (meta.width, meta.height, meta.channels, meta.ext) == (7, 5, 3, ".png")

    def test_unreadable(self, tmp_path: Path) -> None:
        bad = tmp_path / "bad.jpg"
        bad.write_bytes(b"nope")
        img, meta, err = ImageLoader(tmp_path).read_image(bad)
        assert img is None and meta is None
        assert err == "unreadable"

    def test_missing_dir(self, tmp_path: Path) -> None:
        assert list(ImageLoader(tmp_path / "missing").enumerate()) == []

    def test_float_image_reported_not_raised(self, tmp_path: Path) -> None:
        path = tmp_path / "float.tiff"
        assert cv2.imwrite(str(path), np.full((8, 8, 3), 0.5, dtype=np.float32))
        img, meta, err = ImageLoader(tmp_path).read_image(path)
        assert img is None and meta is None
        assert err == "unsupported_format"

    def test_extension_match_ignores_case(self, tmp_path: Path) -> None:
        cv2.imwrite(str(tmp_path / "upper.png"), np.zeros((2, 2, 3), dtype=np.uint8))
        (tmp_path / "upper.png").rename(tmp_path / "UPPER.PNG")
        assert [p.name for p in ImageLoader(tmp_path).enumerate()] == ["UPPER.PNG"]


class TestFitWithin:
    def test_downscales_keeping_aspect(self) -> None:
        img = np.zeros((800, 1280, 4), dtype=np.uint8)
        out = fit_within(img, 640, 480)
        assert out.shape == (400, 640, 4)

    def test_tall_image_limited_by_height(self) -> None:
        out = fit_within(np.zeros((960, 300, 4), dtype=np.uint8), 640, 480)
        assert out.shape == (480, 150, 4)

    def test_small_image_untouched(self, gradient_image) -> None:
        assert fit_within(gradient_image, 640, 480) is gradient_image

    def test_no_limits(self) -> None:
        img = np.zeros((900, 1200, 4), dtype=np.uint8)
        assert fit_within(img, None, None) is img


class TestResultsWriter:
    def test_finalize(self, tmp_path: Path) -> None:
        cfg = {"output": {"ext": ".png"}}
        writer = ResultsWriter(tmp_path / "out", cfg)

        meta = ImageMeta(path="in/face.jpg", width=10, height=10)
        out_path = writer.write_image(meta.path, b"data")
        assert Path(out_path) == tmp_path / "out" / "images" / "face.png"
        writer.add(build_record(meta, ModifyResult(success=True, stage="done", image=b"data"), output_path=out_path))

        failed = ModifyResult(success=False, stage="failed", error=NoFaceDetected(), failed_at="validate")
        writer.add(build_record(ImageMeta(path="in/empty.jpg", width=4, height=4), failed))

        summary = writer.finalize()
        assert summary["counts"] == {"succeeded": 1, "failed": 1, "total": 2}
        assert summary["errors"] == {"no_face": 1}

        records = json.loads((tmp_path / "out" / "results.json").read_text(encoding="utf-8"))
        assert [r["success"] for r in records] == [True, False]
        assert records[1]["reason"].startswith("No face detected")
        on_disk = yaml.safe_load((tmp_path / "out" / "summary.yaml").read_text(encoding="utf-8"))
        assert on_disk["counts"]["total"] == 2
