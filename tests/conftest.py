"""Shared fixtures: synthetic images and 468-point detections."""

from __future__ import annotations

from typing import Callable

import numpy as np
import pytest

from facewarp.keypoints import JAWLINE, LEFT_EYE, RIGHT_EYE
from facewarp.types import DetectionResult, Face

SIZE = 200
LEFT_EYE_CENTER = (60.0, 80.0)
RIGHT_EYE_CENTER = (140.0, 80.0)


def _ring(center: tuple[float, float], half: float, count: int) -> np.ndarray:
    """`count` points on the border of a square of side 2*half around `center`."""
    cx, cy = center
    corners = [(-half, -half), (half, -half), (half, half), (-half, half)]
    pts = [corners[i % 4] for i in range(count)]
    return np.asarray([(cx + dx, cy + dy) for dx, dy in pts], dtype=np.float64)


def build_landmarks(
    n: int = 468,
    left_eye: tuple[float, float] = LEFT_EYE_CENTER,
    right_eye: tuple[float, float] = RIGHT_EYE_CENTER,
    eye_half: float = 5.0,
) -> np.ndarray:
    """An (n, 3) mesh with eyes spanning a 2*eye_half square and a U-shaped jaw."""
    mesh = np.zeros((n, 3), dtype=np.float64)
    mesh[:, 0] = 100.0
    mesh[:, 1] = 100.0
    if n > max(JAWLINE):
        t = np.linspace(0.0, np.pi, len(JAWLINE))
        mesh[JAWLINE, 0] = 100.0 - 70.0 * np.cos(t)
        mesh[JAWLINE, 1] = 100.0 + 60.0 * np.sin(t)
    # Index 7 is shared by the jaw range and the left eye; the eye wins
    if n > max(RIGHT_EYE):
        mesh[LEFT_EYE, :2] = _ring(left_eye, eye_half, len(LEFT_EYE))
        mesh[RIGHT_EYE, :2] = _ring(right_eye, eye_half, len(RIGHT_EYE))
    return mesh


@pytest.fixture()
def gradient_image() -> np.ndarray:
    """200x200 opaque RGBA image where R=x and G=y, so every pixel is distinct."""
    ys, xs = np.mgrid[0:SIZE, 0:SIZE]
    img = np.zeros((SIZE, SIZE, 4), dtype=np.uint8)
    img[:, :, 0] = xs
    img[:, :, 1] = ys
    img[:, :, 2] = (xs + ys) % 256
    img[:, :, 3] = 255
    return img


@pytest.fixture()
def make_detection() -> Callable[..., DetectionResult]:
    def _make(confidence: float = 0.95, faces: int = 1, **kwargs) -> DetectionResult:
        return DetectionResult(
            faces=[Face(confidence=confidence, landmarks=build_landmarks(**kwargs)) for _ in range(faces)]
        )

    return _make


@pytest.fixture()
def detection(make_detection) -> DetectionResult:
    return make_detection()


class FakeDetector:
    """Returns a canned detection and records every image it was given."""

    def __init__(self, result=None, error: Exception | None = None):
        self.result = result
        self.error = error
        self.calls: list[np.ndarray] = []

    def detect(self, image: np.ndarray):
        self.calls.append(image)
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture()
def fake_detector(detection) -> FakeDetector:
    return FakeDetector(detection)


@pytest.fixture()
def detector_cls() -> type[FakeDetector]:
    return FakeDetector
