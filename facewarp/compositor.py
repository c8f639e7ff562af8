"""Modification pass: validate landmarks, warp eyes then jaw, encode.

Stages run strictly in order:

    init -> validate -> leftEye -> rightEye -> jaw -> encode -> done

Any failure ends the pass in `failed` with the error attached. The working
surface is private to the pass and is never returned, so a half-drawn image
cannot leak to the caller.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from enum import Enum
from typing import Any, Callable, Dict, Optional, Protocol, Tuple, Union

import numpy as np

from .config import scale_bounds, section
from .errors import InvalidScale, ModifyError, ProcessingFailed
from .loader import decode_image, fit_within
from .surface import RasterSurface
from .transforms import enlarge_feature, shrink_face
from .types import DetectionResult, FeatureSet, ModifyResult, ValidatedFace
from .utils import is_finite_number
from .validator import validate_detection
from .writers import encode_image

logger = logging.getLogger(__name__)

ImageSource = Union[bytes, bytearray, np.ndarray, RasterSurface]


class Stage(str, Enum):
    INIT = "init"
    VALIDATE = "validate"
    LEFT_EYE = "leftEye"
    RIGHT_EYE = "rightEye"
    JAW = "jaw"
    ENCODE = "encode"
    DONE = "done"
    FAILED = "failed"


class Detector(Protocol):
    def detect(self, image: np.ndarray) -> Any:
        """Return a DetectionResult, or an awaitable of one."""
        ...


def check_scale(value: object, name: str, cfg: Optional[Dict] = None) -> float:
    """Validate a user-supplied scale factor against the configured range."""
    lo, hi = scale_bounds(cfg)
    if not is_finite_number(value) or not (lo <= float(value) <= hi):
        raise InvalidScale(value, name, (lo, hi))
    return float(value)


def _to_surface(image: ImageSource) -> RasterSurface:
    if isinstance(image, RasterSurface):
        return image.copy()
    if isinstance(image, (bytes, bytearray)):
        return RasterSurface(decode_image(bytes(image)))
    return RasterSurface.from_image(image)


class Compositor:
    """Runs one modification pass per call; holds no per-request state."""

    def __init__(self, detector: Optional[Detector] = None, cfg: Optional[Dict] = None, encoder: Optional[Callable[[np.ndarray], bytes]] = None):
        self.detector = detector
        self.cfg = cfg or {}
        self._encoder = encoder or (lambda rgba: encode_image(rgba, cfg=self.cfg))

    # -- drawing ------------------------------------------------------------

    def modify_surface(
        self,
        surface: RasterSurface,
        detection: DetectionResult,
        eye_scale: float,
        face_scale: float,
        on_stage: Optional[Callable[[Stage], None]] = None,
    ) -> Tuple[ValidatedFace, FeatureSet]:
        """Validate and draw every stage onto `surface` in place.

        Returns the validated face and the remapped jawline. Raises ModifyError
        subclasses; the surface may be partially drawn on failure, so callers
        must discard it.
        """
        def enter(stage: Stage) -> None:
            logger.debug("stage -> %s", stage.value)
            if on_stage is not None:
                on_stage(stage)

        enter(Stage.VALIDATE)
        validated = validate_detection(detection, cfg=self.cfg)

        enter(Stage.LEFT_EYE)
        enlarge_feature(surface, validated.feature("leftEye"), eye_scale, self.cfg)
        enter(Stage.RIGHT_EYE)
        enlarge_feature(surface, validated.feature("rightEye"), eye_scale, self.cfg)

        enter(Stage.JAW)
        jawline, options = shrink_face(surface, validated.feature("jawline"), face_scale, self.cfg)
        if section(self.cfg, "jaw")["soft_focus"]:
            surface.apply_draw_options(options)
        return validated, jawline

    # -- passes -------------------------------------------------------------

    def _prepare(self, image: ImageSource, eye_scale: float, face_scale: float) -> Tuple[float, float, RasterSurface]:
        eye = check_scale(eye_scale, "eyeSize", self.cfg)
        face = check_scale(face_scale, "faceSize", self.cfg)
        try:
            surface = _to_surface(image)
            limits = section(self.cfg, "input")
            pixels = fit_within(surface.pixels, limits["max_width"], limits["max_height"])
            if pixels is not surface.pixels:
                surface = RasterSurface(pixels)
        except (ValueError, TypeError) as e:
            raise ProcessingFailed("decode", e) from e
        return eye, face, surface

    def _finish(self, surface: RasterSurface, detection: Any, eye: float, face: float, state: Dict[str, Stage]) -> ModifyResult:
        def track(stage: Stage) -> None:
            state["stage"] = stage

        if not isinstance(detection, DetectionResult):
            raise ProcessingFailed("detect", TypeError(f"Detector returned {type(detection).__name__}"))
        validated, jawline = self.modify_surface(surface, detection, eye, face, on_stage=track)

        track(Stage.ENCODE)
        try:
            data = self._encoder(surface.pixels)
        except Exception as e:
            raise ProcessingFailed("encode", e) from e

        return ModifyResult(success=True, stage=Stage.DONE.value, image=data, jawline=jawline, warnings=tuple(validated.warnings))

    def _failed(self, error: ModifyError, stage: Stage) -> ModifyResult:
        logger.warning("Modification failed at %s: %s", stage.value, error)
        return ModifyResult(success=False, stage=Stage.FAILED.value, error=error, failed_at=stage.value)

    def _detect(self, surface: RasterSurface) -> Any:
        if self.detector is None:
            raise ProcessingFailed("detect", RuntimeError("No face detector configured"))
        try:
            return self.detector.detect(surface.pixels.copy())
        except Exception as e:
            raise ProcessingFailed("detect", e) from e

    async def _detect_async(self, surface: RasterSurface) -> Any:
        """Await a coroutine detector; run a blocking one in the default executor."""
        if self.detector is None:
            raise ProcessingFailed("detect", RuntimeError("No face detector configured"))
        detect = self.detector.detect
        pixels = surface.pixels.copy()
        try:
            if inspect.iscoroutinefunction(detect):
                return await detect(pixels)
            loop = asyncio.get_running_loop()
            detection = await loop.run_in_executor(None, detect, pixels)
            if inspect.isawaitable(detection):
                detection = await detection
            return detection
        except Exception as e:
            raise ProcessingFailed("detect", e) from e

    def modify(self, image: ImageSource, eye_scale: float, face_scale: float) -> ModifyResult:
        """Run a full pass with a synchronous detector."""
        state: Dict[str, Stage] = {"stage": Stage.INIT}
        try:
            eye, face, surface = self._prepare(image, eye_scale, face_scale)
            detection = self._detect(surface)
            if inspect.isawaitable(detection):
                close = getattr(detection, "close", None)
                if close is not None:
                    close()
                raise ProcessingFailed("detect", TypeError("Detector is asynchronous; use modify_async"))
            return self._finish(surface, detection, eye, face, state)
        except ModifyError as e:
            return self._failed(e, state["stage"])
        except Exception as e:
            return self._failed(ProcessingFailed(state["stage"].value, e), state["stage"])

    async def modify_async(self, image: ImageSource, eye_scale: float, face_scale: float) -> ModifyResult:
        """Run a full pass without blocking the event loop during detection."""
        state: Dict[str, Stage] = {"stage": Stage.INIT}
        try:
            eye, face, surface = self._prepare(image, eye_scale, face_scale)
            detection = await self._detect_async(surface)
            return self._finish(surface, detection, eye, face, state)
        except ModifyError as e:
            return self._failed(e, state["stage"])
        except Exception as e:
            return self._failed(ProcessingFailed(state["stage"].value, e), state["stage"])


def modify(image: ImageSource, eye_scale: float, face_scale: float, detector: Detector, cfg: Optional[Dict] = None) -> ModifyResult:
    return Compositor(detector, cfg).modify(image, eye_scale, face_scale)


__all__ = ["Stage", "Detector", "Compositor", "check_scale", "modify"]
