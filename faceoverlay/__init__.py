"""Face-locked overlay package.

Resolves per-face overlay poses from landmarks, composites overlay images
onto a mirrored camera feed each frame, and runs the 3-2-1 capture
countdown that hands a still to the save/upload step.
"""

from . import config as config
from . import types as types
from . import utils as utils
from . import keypoints as keypoints
from . import overlays as overlays
from . import pose as pose
from . import compositor as compositor
from . import capture as capture
from . import scheduler as scheduler

__all__ = [
    "config",
    "types",
    "utils",
    "keypoints",
    "overlays",
    "pose",
    "compositor",
    "capture",
    "scheduler",
]
