"""Per-session request supersession.

A slider can fire several requests before the first completes. Each submit
takes a new generation number; when a pass finishes after a newer one has
begun, its result is dropped instead of being applied out of order.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .compositor import Compositor, ImageSource
    from .types import ModifyResult

logger = logging.getLogger(__name__)


class ModifySession:
    """Generation counter wrapped around a Compositor."""

    def __init__(self, compositor: Compositor) -> None:
        self.compositor = compositor
        self._generation: int = 0
        self._lock = threading.Lock()

    @property
    def generation(self) -> int:
        """Most recently started generation (0 before the first request)."""
        with self._lock:
            return self._generation

    def begin(self) -> int:
        """Start a new generation, superseding any request still running."""
        with self._lock:
            self._generation += 1
            return self._generation

    def is_current(self, generation: int) -> bool:
        with self._lock:
            return generation == self._generation

    def _deliver(self, generation: int, result: ModifyResult) -> Optional[ModifyResult]:
        if not self.is_current(generation):
            logger.info("Dropping superseded result (generation %d, current %d)", generation, self.generation)
            return None
        result.generation = generation
        return result

    def submit(self, image: ImageSource, eye_scale: float, face_scale: float) -> Optional[ModifyResult]:
        """Run a pass; returns None when a newer request began meanwhile."""
        gen = self.begin()
        result = self.compositor.modify(image, eye_scale, face_scale)
        return self._deliver(gen, result)

    async def submit_async(self, image: ImageSource, eye_scale: float, face_scale: float) -> Optional[ModifyResult]:
        gen = self.begin()
        result = await self.compositor.modify_async(image, eye_scale, face_scale)
        return self._deliver(gen, result)


__all__ = ["ModifySession"]
