"""Face warp package.

Landmark-driven portrait warping: validate FaceMesh landmarks, enlarge the
eye regions and contract the jawline on an RGBA raster surface, then encode
the result. Detection, decoding and encoding are thin, replaceable adapters.
"""

from . import config as config
from . import errors as errors
from . import types as types
from . import utils as utils
from . import keypoints as keypoints
from .compositor import Compositor, Stage, modify
from .session import ModifySession
from .surface import RasterSurface

__all__ = [
    "config",
    "errors",
    "types",
    "utils",
    "keypoints",
    "Compositor",
    "ModifySession",
    "RasterSurface",
    "Stage",
    "modify",
]
