"""
Veta: calibrated camera geometry and SfM scene container.

A Python package describing how cameras in a structure-from-motion
reconstruction map 3D points to pixels, where they sit in space, and how
views, poses, camera models and 3D structure reference each other.

Geometry Chain:
    Point (reference frame) → Pose → Camera frame → Distortion → Image (u,v)

Conventions:
    - Pose stored as rotation and camera center: X_cam = R @ (X - C)
    - Camera frame: X-right, Y-down, Z-forward
    - Image frame: origin at top-left corner, u-right, v-down

Supported Camera Models:
    - pinhole, pinhole_radial_k1, pinhole_radial_k3
    - pinhole_brown_t2, pinhole_fisheye
    - spherical (equirectangular)
"""

from .pose import Pose
from .intrinsics import (
    EIntrinsic,
    IntrinsicBase,
    IntrinsicParamType,
    is_pinhole,
    is_spherical,
    is_valid,
)
from .camera import (
    PinholeIntrinsic,
    PinholeIntrinsicRadialK1,
    PinholeIntrinsicRadialK3,
    PinholeIntrinsicBrownT2,
    PinholeIntrinsicFisheye,
)
from .spherical import IntrinsicSpherical
from .view import View, UNDEFINED_INDEX, UNDEFINED_TIME
from .landmark import Observation, Landmark
from .scene import Veta, VetaParts, ValidationResult, IndexGenerator, valid_ids
from .io import load, save, INTRINSIC_TYPES
from .config import Config, CameraIntrinsics

__version__ = "0.3.0"
__all__ = [
    "Pose",
    "EIntrinsic",
    "IntrinsicBase",
    "IntrinsicParamType",
    "is_pinhole",
    "is_spherical",
    "is_valid",
    "PinholeIntrinsic",
    "PinholeIntrinsicRadialK1",
    "PinholeIntrinsicRadialK3",
    "PinholeIntrinsicBrownT2",
    "PinholeIntrinsicFisheye",
    "IntrinsicSpherical",
    "View",
    "UNDEFINED_INDEX",
    "UNDEFINED_TIME",
    "Observation",
    "Landmark",
    "Veta",
    "VetaParts",
    "ValidationResult",
    "IndexGenerator",
    "valid_ids",
    "load",
    "save",
    "INTRINSIC_TYPES",
    "Config",
    "CameraIntrinsics",
]
