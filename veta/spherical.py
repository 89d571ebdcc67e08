"""
Spherical (equirectangular) camera model.

A 360 degree image where columns span longitude and rows span latitude:

    lon = atan2(X, Z)
    lat = atan2(-Y, sqrt(X² + Z²))
    (x, y) = (lon / 2π, -lat / 2π)
    (u, v) = (x * size + w/2, y * size + h/2),  size = max(w, h)

The model has no free parameters and no distortion field.
"""

import numpy as np
from typing import Any, Dict, List, Sequence, Tuple
import logging

from .intrinsics import EIntrinsic, IntrinsicBase, IntrinsicParamType, image_points
from .pose import Pose

logger = logging.getLogger(__name__)


class IntrinsicSpherical(IntrinsicBase):
    """Equirectangular camera; project() maps any direction, including Z <= 0."""

    TYPE_NAME = 'spherical'

    def __init__(self, width: int = 0, height: int = 0):
        super().__init__(width, height)
        logger.debug(f"spherical initialized: {self.width}x{self.height}")

    def get_type(self) -> EIntrinsic:
        return EIntrinsic.CAMERA_SPHERICAL

    @property
    def size(self) -> int:
        return max(self.width, self.height)

    def cam_to_img(self, p: np.ndarray) -> np.ndarray:
        p = np.asarray(p, dtype=np.float64)
        size = self.size
        return np.array([p[0] * size + self.width / 2.0, p[1] * size + self.height / 2.0])

    def img_to_cam(self, p: np.ndarray) -> np.ndarray:
        p = np.asarray(p, dtype=np.float64)
        size = self.size
        return np.array([(p[0] - self.width / 2.0) / size, (p[1] - self.height / 2.0) / size])

    def project(self, X: np.ndarray, ignore_distortion: bool = False) -> np.ndarray:
        """
        Project a camera frame direction onto the equirectangular image.

        Args:
            X: 3D point in the camera frame
            ignore_distortion: Unused, the model has no distortion

        Returns:
            Pixel coordinates (u, v)
        """
        X = np.asarray(X, dtype=np.float64)
        lon = np.arctan2(X[0], X[2])
        lat = np.arctan2(-X[1], np.hypot(X[0], X[2]))
        return self.cam_to_img(np.array([lon / (2 * np.pi), -lat / (2 * np.pi)]))

    def bearing(self, points: np.ndarray) -> np.ndarray:
        points = image_points(points)
        rays = np.zeros((3, points.shape[1]))
        for i in range(points.shape[1]):
            uv = self.img_to_cam(points[:, i])
            lon = uv[0] * 2 * np.pi
            lat = -uv[1] * 2 * np.pi
            rays[:, i] = [np.cos(lat) * np.sin(lon), -np.sin(lat), np.cos(lat) * np.cos(lon)]
        return rays

    def image_plane_to_camera_plane_error(self, value: float) -> float:
        return value / self.size

    def get_projective_equivalent(self, pose: Pose) -> np.ndarray:
        """No linear projection exists for this model; returns [R|t]."""
        return pose.as_matrix()

    def get_params(self) -> List[float]:
        return []

    @classmethod
    def _from_params(cls, width: int, height: int, params: Sequence[float]) -> "IntrinsicSpherical":
        return cls(width, height)

    def _parameter_groups(self) -> List[Tuple[IntrinsicParamType, List[int]]]:
        return []

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IntrinsicSpherical":
        return cls(data['width'], data['height'])
