"""
Camera intrinsic model contract.

Every camera model maps points expressed in the camera frame to pixels in
three steps:

    1. Perspective division: x = X/Z, y = Y/Z (normalized camera plane)
    2. Distortion (optional): model specific, see camera.py
    3. Pixel mapping (cam_to_img): model specific affine map

The reverse direction (pixel -> normalized point -> bearing) requires
removing the distortion, which each model does with its own numerical
strategy.

Models also expose their free numeric state as a flat parameter vector for
non-linear refinement, together with the list of indices to hold constant
for a given IntrinsicParamType selection.
"""

import copy
import enum
import numpy as np
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Sequence, Tuple
import logging

from .pose import Pose

logger = logging.getLogger(__name__)

_HASH_MASK = (1 << 64) - 1


class EIntrinsic(enum.IntEnum):
    """Camera model type tags."""
    PINHOLE_CAMERA_START = 0
    PINHOLE_CAMERA = 1            # No distortion
    PINHOLE_CAMERA_RADIAL_K1 = 2  # radial distortion K1
    PINHOLE_CAMERA_RADIAL_K3 = 3  # radial distortion K1,K2,K3
    PINHOLE_CAMERA_BROWN_T2 = 4   # radial distortion K1,K2,K3, tangential distortion T1,T2
    PINHOLE_CAMERA_FISHEYE = 5    # fisheye distortion with 4 coefficients
    PINHOLE_CAMERA_END = 6
    CAMERA_SPHERICAL = 7


def is_pinhole(eintrinsic: EIntrinsic) -> bool:
    """True if the type tag belongs to the pinhole family."""
    return EIntrinsic.PINHOLE_CAMERA_START < eintrinsic < EIntrinsic.PINHOLE_CAMERA_END


def is_spherical(eintrinsic: EIntrinsic) -> bool:
    return eintrinsic == EIntrinsic.CAMERA_SPHERICAL


def is_valid(eintrinsic: EIntrinsic) -> bool:
    return is_pinhole(eintrinsic) or is_spherical(eintrinsic)


class IntrinsicParamType(enum.IntFlag):
    """
    Parameter groups to refine during non-linear optimization.

    Values are powers of two so they can be combined with `|`. NONE holds
    every group constant whatever other bits are set.
    """
    NONE = 1
    ADJUST_FOCAL_LENGTH = 2
    ADJUST_PRINCIPAL_POINT = 4
    ADJUST_DISTORTION = 8
    ADJUST_ALL = ADJUST_FOCAL_LENGTH | ADJUST_PRINCIPAL_POINT | ADJUST_DISTORTION


def image_points(points: np.ndarray) -> np.ndarray:
    """
    Pixel coordinates as a 2xN array.

    A single 2-vector becomes one column. Any other shape must already
    have two rows.

    Raises:
        ValueError: If the points are not laid out as 2xN
    """
    points = np.asarray(points, dtype=np.float64)
    if points.shape == (2,):
        return points.reshape(2, 1)
    if points.ndim != 2 or points.shape[0] != 2:
        raise ValueError(f"Expected a 2-vector or a 2xN array of pixels, got shape {points.shape}")
    return points


def hash_combine(seed: int, value: Any) -> int:
    """
    Mix the hash of `value` into `seed` (order sensitive).

    Args:
        seed: Current 64-bit hash state
        value: Hashable value

    Returns:
        Updated 64-bit hash state
    """
    h = hash(value) & _HASH_MASK
    seed ^= (h + 0x9E3779B9 + ((seed << 6) & _HASH_MASK) + (seed >> 2)) & _HASH_MASK
    return seed & _HASH_MASK


class IntrinsicBase(ABC):
    """
    Base class for camera intrinsic models.

    Subclasses define the pixel mapping, the parameter layout and, when the
    model has one, the distortion field and its inverse.

    Attributes:
        width: Image width in pixels
        height: Image height in pixels
    """

    # Persisted type name, set by each concrete model
    TYPE_NAME: str = ''

    def __init__(self, width: int = 0, height: int = 0):
        """
        Initialize image dimensions.

        Args:
            width: Width of the image
            height: Height of the image
        """
        if width < 0 or height < 0:
            raise ValueError(f"Image dimensions must be non-negative, got {width}x{height}")
        self.width = int(width)
        self.height = int(height)

    # ------------------------------------------------------------------
    # Model specific members
    # ------------------------------------------------------------------

    @abstractmethod
    def get_type(self) -> EIntrinsic:
        """Type tag of the model."""

    @abstractmethod
    def get_params(self) -> List[float]:
        """Flat parameter vector of the model."""

    @classmethod
    @abstractmethod
    def _from_params(cls, width: int, height: int, params: Sequence[float]) -> "IntrinsicBase":
        """Build a new instance from dimensions and a full parameter vector."""

    @abstractmethod
    def _parameter_groups(self) -> List[Tuple[IntrinsicParamType, List[int]]]:
        """Parameter indices grouped by the flag that makes them adjustable."""

    @abstractmethod
    def cam_to_img(self, p: np.ndarray) -> np.ndarray:
        """Transform a point from the camera plane to the image plane."""

    @abstractmethod
    def img_to_cam(self, p: np.ndarray) -> np.ndarray:
        """Transform a point from the image plane to the camera plane."""

    @abstractmethod
    def bearing(self, points: np.ndarray) -> np.ndarray:
        """
        Bearing vectors of image points.

        Args:
            points: 2xN array of pixel coordinates

        Returns:
            3xN array of unit vectors in the camera frame
        """

    @abstractmethod
    def image_plane_to_camera_plane_error(self, value: float) -> float:
        """Express a pixel error in camera plane units."""

    @abstractmethod
    def get_projective_equivalent(self, pose: Pose) -> np.ndarray:
        """3x4 linear projection equivalent to this model and pose (no distortion)."""

    # ------------------------------------------------------------------
    # Distortion field (none by default)
    # ------------------------------------------------------------------

    def have_disto(self) -> bool:
        """Does the camera model handle a distortion field?"""
        return False

    def add_disto(self, p: np.ndarray) -> np.ndarray:
        """Add the distortion field to a normalized camera plane point."""
        return np.array(p, dtype=np.float64)

    def remove_disto(self, p: np.ndarray) -> np.ndarray:
        """Remove the distortion field from a normalized camera plane point."""
        return np.array(p, dtype=np.float64)

    def get_undisto_pixel(self, p: np.ndarray) -> np.ndarray:
        """Return the pixel with its distortion removed."""
        if not self.have_disto():
            return np.array(p, dtype=np.float64)
        return self.cam_to_img(self.remove_disto(self.img_to_cam(p)))

    def get_disto_pixel(self, p: np.ndarray) -> np.ndarray:
        """Return the pixel with the distortion field applied."""
        if not self.have_disto():
            return np.array(p, dtype=np.float64)
        return self.cam_to_img(self.add_disto(self.img_to_cam(p)))

    # ------------------------------------------------------------------
    # Projection
    # ------------------------------------------------------------------

    def project(self, X: np.ndarray, ignore_distortion: bool = False) -> np.ndarray:
        """
        Project a 3D point expressed in the camera frame to the image plane.

        Points on the camera plane (Z == 0) are not guarded against; callers
        check depth before projecting.

        Args:
            X: 3D point in the camera frame
            ignore_distortion: Skip the distortion field even if the model has one

        Returns:
            Pixel coordinates (u, v)
        """
        X = np.asarray(X, dtype=np.float64)
        p = X[:2] / X[2]
        if self.have_disto() and not ignore_distortion:
            p = self.add_disto(p)
        return self.cam_to_img(p)

    def project_points(self, points: np.ndarray, ignore_distortion: bool = False) -> np.ndarray:
        """
        Project multiple camera frame points.

        Args:
            points: Nx3 array of camera frame coordinates
            ignore_distortion: Skip the distortion field

        Returns:
            Nx2 array of pixel coordinates
        """
        points = np.atleast_2d(np.asarray(points, dtype=np.float64))
        results = np.zeros((len(points), 2))
        for i, point in enumerate(points):
            results[i] = self.project(point, ignore_distortion)
        return results

    def residual(
        self,
        X: np.ndarray,
        x: np.ndarray,
        ignore_distortion: bool = False,
    ) -> np.ndarray:
        """
        Residual between an image observation and the projected point.

        Args:
            X: 3D point in the camera frame
            x: Observed pixel
            ignore_distortion: Skip the distortion field in the projection

        Returns:
            observed - projected
        """
        return np.asarray(x, dtype=np.float64) - self.project(X, ignore_distortion)

    # ------------------------------------------------------------------
    # Optimizer interface
    # ------------------------------------------------------------------

    def num_params(self) -> int:
        return len(self.get_params())

    def update_from_params(self, params: Sequence[float]) -> bool:
        """
        Replace the model state with a parameter vector.

        The vector must have exactly the model's arity; otherwise nothing
        changes and False is returned.

        Args:
            params: Full parameter vector, same layout as get_params()

        Returns:
            True if the update was applied
        """
        params = [float(v) for v in params]
        expected = self.num_params()
        if len(params) != expected:
            logger.debug(
                f"{self.TYPE_NAME}: expected {expected} parameters, got {len(params)}"
            )
            return False

        replacement = self._from_params(self.width, self.height, params)
        self.__dict__.update(replacement.__dict__)
        return True

    def subset_parameterization(self, parametrization: IntrinsicParamType) -> List[int]:
        """
        Indices of the parameter vector that must be held constant.

        A group is held constant when its ADJUST_* bit is absent, or when
        the NONE bit is present.

        Args:
            parametrization: Combination of IntrinsicParamType flags

        Returns:
            Sorted list of constant parameter indices
        """
        param = int(parametrization)
        constant_index: List[int] = []
        for flag, indices in self._parameter_groups():
            if not (param & flag) or (param & IntrinsicParamType.NONE):
                constant_index.extend(indices)
        return constant_index

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    def hash_value(self) -> int:
        """
        Hash of type, dimensions and parameters, used to group identical cameras.
        """
        seed = 0
        seed = hash_combine(seed, int(self.get_type()))
        seed = hash_combine(seed, self.width)
        seed = hash_combine(seed, self.height)
        for param in self.get_params():
            seed = hash_combine(seed, float(param))
        return seed

    def clone(self) -> "IntrinsicBase":
        """Independent copy of this model."""
        return copy.deepcopy(self)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, IntrinsicBase):
            return NotImplemented
        return (
            self.get_type() == other.get_type()
            and self.width == other.width
            and self.height == other.height
            and self.get_params() == other.get_params()
        )

    # ------------------------------------------------------------------
    # Serialization fields
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {'width': self.width, 'height': self.height}

    @classmethod
    @abstractmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IntrinsicBase":
        """Rebuild a camera model from its serialized fields."""

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(width={self.width}, height={self.height}, "
            f"params={self.get_params()})"
        )
