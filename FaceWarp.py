"""Convenience wrapper for facewarp.

Re-exports the Compositor, the MediaPipe detector and the one-shot `modify`
helper so user code can `import FaceWarp` directly.
"""

from facewarp.compositor import Compositor, modify
from facewarp.facemesh import FaceMeshDetector, FaceMeshConfig

__all__ = ["Compositor", "modify", "FaceMeshDetector", "FaceMeshConfig"]
