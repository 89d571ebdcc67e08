"""
Rigid camera pose.

A pose is stored as a rotation and the camera center in the reference
frame:

    X_camera = R @ (X_reference - C)

The equivalent translation form is X_camera = R @ X_reference + t with
t = -R @ C. Composition and inversion are defined on the center form.
"""

import numpy as np
from typing import Dict, Any, Optional, Sequence
from scipy.spatial.transform import Rotation
import logging

from .transforms import is_rotation, orthonormalize_rotation, rotation_drift

logger = logging.getLogger(__name__)

# Rotations further than this from SO(3) are reported
ROTATION_TOLERANCE = 1e-6


def _frozen(array: np.ndarray) -> np.ndarray:
    array = np.array(array, dtype=np.float64)
    array.setflags(write=False)
    return array


class Pose:
    """
    Rigid transform from the reference frame to the camera frame.

    Poses are values: the rotation and center arrays are read-only, and
    composition or inversion always returns a new Pose.

    Example usage:
        pose = Pose.from_rt(R, t)
        X_cam = pose(X_world)
        relative = pose_b * pose_a.inverse()
    """

    __slots__ = ('_rotation', '_center')

    def __init__(
        self,
        rotation: Optional[np.ndarray] = None,
        center: Optional[np.ndarray] = None,
        orthonormalize: bool = False,
    ):
        """
        Initialize a pose.

        Args:
            rotation: 3x3 rotation matrix (identity if omitted)
            center: Camera center in the reference frame (origin if omitted)
            orthonormalize: Project the rotation onto the nearest proper
                rotation before storing it
        """
        R = np.eye(3) if rotation is None else np.asarray(rotation, dtype=np.float64)
        C = np.zeros(3) if center is None else np.asarray(center, dtype=np.float64).ravel()

        if R.shape != (3, 3):
            raise ValueError(f"Rotation must be 3x3, got shape {R.shape}")
        if C.shape != (3,):
            raise ValueError(f"Center must have 3 elements, got shape {C.shape}")

        if orthonormalize:
            R = orthonormalize_rotation(R)
        elif not is_rotation(R, ROTATION_TOLERANCE):
            logger.warning(
                f"Pose rotation is {rotation_drift(R):.3e} away from a proper rotation, "
                f"use orthonormalize=True to repair it"
            )

        self._rotation = _frozen(R)
        self._center = _frozen(C)

    @classmethod
    def identity(cls) -> "Pose":
        """Camera at the origin, aligned with the reference axes."""
        return cls()

    @classmethod
    def from_rc(cls, rotation: np.ndarray, center: np.ndarray) -> "Pose":
        """Create a pose from rotation and camera center."""
        return cls(rotation, center)

    @classmethod
    def from_rt(cls, rotation: np.ndarray, translation: np.ndarray) -> "Pose":
        """
        Create a pose from rotation and translation (X_cam = R @ X + t).

        Args:
            rotation: 3x3 rotation matrix
            translation: Translation vector t

        Returns:
            Pose with center C = -R^T @ t
        """
        R = np.asarray(rotation, dtype=np.float64)
        t = np.asarray(translation, dtype=np.float64).ravel()
        return cls(R, -R.T @ t)

    @classmethod
    def from_euler(
        cls,
        angles: Sequence[float],
        center: Optional[np.ndarray] = None,
        order: str = 'xyz',
        degrees: bool = True,
    ) -> "Pose":
        """
        Create a pose from Euler angles.

        Args:
            angles: Rotation angles, one per axis in `order`
            center: Camera center (origin if omitted)
            order: Axis sequence understood by scipy Rotation.from_euler
            degrees: Whether the angles are in degrees

        Returns:
            Pose
        """
        R = Rotation.from_euler(order, angles, degrees=degrees).as_matrix()
        return cls(R, center)

    @classmethod
    def from_rotvec(
        cls,
        rotvec: Sequence[float],
        center: Optional[np.ndarray] = None,
    ) -> "Pose":
        """Create a pose from an axis-angle rotation vector (radians)."""
        return cls(Rotation.from_rotvec(rotvec).as_matrix(), center)

    @property
    def rotation(self) -> np.ndarray:
        """3x3 rotation matrix (read-only)."""
        return self._rotation

    @property
    def center(self) -> np.ndarray:
        """Camera center in the reference frame (read-only)."""
        return self._center

    @property
    def translation(self) -> np.ndarray:
        """Translation vector t = -R @ C."""
        return -(self._rotation @ self._center)

    def apply(self, points: np.ndarray) -> np.ndarray:
        """
        Transform points into the camera frame.

        Args:
            points: A 3-vector or an Nx3 array of reference-frame points

        Returns:
            Points in the camera frame, same shape as the input
        """
        points = np.asarray(points, dtype=np.float64)
        if points.ndim == 1:
            return self._rotation @ (points - self._center)
        return (points - self._center) @ self._rotation.T

    def __call__(self, points: np.ndarray) -> np.ndarray:
        return self.apply(points)

    def compose(self, other: "Pose") -> "Pose":
        """
        Compose two poses.

        The result applies `other` first, then this pose:
            (self * other)(X) == self(other(X)) expressed as a single pose.

        Args:
            other: Pose applied first

        Returns:
            Composed pose
        """
        return Pose(
            self._rotation @ other._rotation,
            other._center + other._rotation.T @ self._center,
        )

    def __mul__(self, other: "Pose") -> "Pose":
        if not isinstance(other, Pose):
            return NotImplemented
        return self.compose(other)

    def inverse(self) -> "Pose":
        """
        Inverse transform.

        Returns:
            Pose with rotation R^T and center -R @ C
        """
        return Pose(self._rotation.T, -(self._rotation @ self._center))

    def as_matrix(self) -> np.ndarray:
        """Return the pose as a single 3x4 matrix [R|t]."""
        return np.hstack([self._rotation, self.translation.reshape(3, 1)])

    def as_quaternion(self) -> np.ndarray:
        """Rotation as a scalar-last unit quaternion (x, y, z, w)."""
        return Rotation.from_matrix(self._rotation).as_quat()

    def orthonormalized(self) -> "Pose":
        """Copy of this pose with its rotation projected onto SO(3)."""
        return Pose(self._rotation, self._center, orthonormalize=True)

    def is_close(self, other: "Pose", atol: float = 1e-9) -> bool:
        """Compare rotation and center within an absolute tolerance."""
        return (
            np.allclose(self._rotation, other._rotation, atol=atol)
            and np.allclose(self._center, other._center, atol=atol)
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serializable fields: rotation rows and center."""
        return {
            'rotation': self._rotation.tolist(),
            'center': self._center.tolist(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Pose":
        """
        Rebuild a pose from its serialized fields.

        The rotation is re-orthonormalized since stored values are rounded.
        """
        return cls(data['rotation'], data['center'], orthonormalize=True)

    def __repr__(self) -> str:
        return f"Pose(rotation={self._rotation.tolist()}, center={self._center.tolist()})"
