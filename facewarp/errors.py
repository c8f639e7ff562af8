"""Error taxonomy for a modification pass.

Every error is terminal for the current request and carries enough context
(feature name, offending coordinates or scale) to build a user-facing message.
"""

from __future__ import annotations

from typing import Optional, Sequence, Tuple


class ModifyError(Exception):
    """Base class for all failures of a modification pass."""

    code = "modify_error"


class NoFaceDetected(ModifyError):
    code = "no_face"

    def __init__(self) -> None:
        super().__init__("No face detected in the image. Please ensure your face is clearly visible.")


class LowConfidence(ModifyError):
    code = "low_confidence"

    def __init__(self, confidence: Optional[float], threshold: float) -> None:
        self.confidence = confidence
        self.threshold = threshold
        super().__init__(
            f"Face detection confidence {confidence} is below {threshold}. "
            "Please ensure better lighting and face visibility."
        )


class IncompleteLandmarks(ModifyError):
    code = "incomplete_landmarks"

    def __init__(self, count: Optional[int], required: int) -> None:
        self.count = count
        self.required = required
        found = "no landmark sequence" if count is None else f"{count} landmarks"
        super().__init__(f"Incomplete facial feature detection: expected {required}, found {found}.")


class FeatureNotDetected(ModifyError):
    code = "feature_not_detected"

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"{name} landmarks not properly detected.")


class BoundsExceeded(ModifyError):
    code = "bounds_exceeded"

    def __init__(self, stage: str, coords: Sequence[float] = (), size: Optional[Tuple[int, int]] = None) -> None:
        self.stage = stage
        self.coords = tuple(float(c) for c in coords)
        self.size = size
        where = f" at {self.coords}" if self.coords else ""
        canvas = f" (canvas {size[0]}x{size[1]})" if size else ""
        super().__init__(f"{stage}: region would exceed canvas bounds{where}{canvas}")


class InvalidScale(ModifyError):
    code = "invalid_scale"

    def __init__(self, value: object, name: str = "scale", bounds: Optional[Tuple[float, float]] = None) -> None:
        self.value = value
        self.name = name
        self.bounds = bounds
        allowed = f"; expected {bounds[0]}..{bounds[1]}" if bounds else ""
        super().__init__(f"Invalid {name} value: {value!r}{allowed}")


class ProcessingFailed(ModifyError):
    code = "processing_failed"

    def __init__(self, stage: str, cause: BaseException) -> None:
        self.stage = stage
        self.cause = cause
        super().__init__(f"Processing failed during {stage}: {cause}")


__all__ = [
    "ModifyError",
    "NoFaceDetected",
    "LowConfidence",
    "IncompleteLandmarks",
    "FeatureNotDetected",
    "BoundsExceeded",
    "InvalidScale",
    "ProcessingFailed",
]
