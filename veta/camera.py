"""
Pinhole camera models with optional lens distortion.

Coordinate System:
    - Camera frame: X-right, Y-down, Z-forward (looking along +Z)
    - Image frame: u-right, v-down (origin at top-left corner)

Projection Model:
    1. Perspective projection: x' = X/Z, y' = Y/Z
    2. Distortion (optional): model specific, applied to (x', y')
    3. Pixel mapping: u = fx*x' + ppx, v = fy*y' + ppy

Parameter Layout (order used by get_params / update_from_params):
    Pinhole:          fx, fy, ppx, ppy
    Radial K1:        fx, fy, ppx, ppy, k1
    Radial K3:        fx, fy, ppx, ppy, k1, k2, k3
    Brown T2:         fx, fy, ppx, ppy, k1, k2, k3, t1, t2
    Fisheye:          fx, fy, ppx, ppy, k1, k2, k3, k4
"""

import numpy as np
from typing import Any, Dict, List, Sequence, Tuple
import logging

from .intrinsics import EIntrinsic, IntrinsicBase, IntrinsicParamType, image_points
from .pose import Pose
from .solvers import bisection_radius_solve, fixed_point_undistort

logger = logging.getLogger(__name__)

FISHEYE_EPSILON = 1e-8
FISHEYE_ITERATIONS = 10


class PinholeIntrinsic(IntrinsicBase):
    """
    Ideal pinhole camera (no skew, no distortion).

    Intrinsic matrix:
        [fx  0  ppx]
        [0  fy  ppy]
        [0   0    1]
    """

    TYPE_NAME = 'pinhole'
    # Names of the distortion coefficients appended to the parameter vector
    DISTO_NAMES: Tuple[str, ...] = ()

    def __init__(
        self,
        width: int = 0,
        height: int = 0,
        fx: float = 0.0,
        fy: float = 0.0,
        ppx: float = 0.0,
        ppy: float = 0.0,
    ):
        """
        Initialize pinhole intrinsics.

        Args:
            width: Width of the image plane
            height: Height of the image plane
            fx: Focal length in x (pixels)
            fy: Focal length in y (pixels)
            ppx: Principal point x (pixels)
            ppy: Principal point y (pixels)
        """
        super().__init__(width, height)
        self.fx = float(fx)
        self.fy = float(fy)
        self.ppx = float(ppx)
        self.ppy = float(ppy)

        logger.debug(
            f"{self.TYPE_NAME} initialized: {self.width}x{self.height}, "
            f"fx={self.fx}, fy={self.fy}, pp=({self.ppx}, {self.ppy})"
        )

    @classmethod
    def from_K(cls, width: int, height: int, K: np.ndarray, *disto: float) -> "PinholeIntrinsic":
        """
        Create a camera from a 3x3 intrinsic matrix.

        Args:
            width: Width of the image plane
            height: Height of the image plane
            K: Intrinsic matrix {fx,0,ppx; 0,fy,ppy; 0,0,1}
            disto: Distortion coefficients of the model, if any

        Returns:
            Camera of type `cls`
        """
        K = np.asarray(K, dtype=np.float64)
        return cls(width, height, K[0, 0], K[1, 1], K[0, 2], K[1, 2], *disto)

    def get_type(self) -> EIntrinsic:
        return EIntrinsic.PINHOLE_CAMERA

    @property
    def K(self) -> np.ndarray:
        """3x3 intrinsic matrix."""
        return np.array([
            [self.fx, 0, self.ppx],
            [0, self.fy, self.ppy],
            [0, 0, 1]
        ])

    @property
    def K_inv(self) -> np.ndarray:
        """Inverse of the intrinsic matrix."""
        return np.linalg.inv(self.K)

    @property
    def focal(self) -> float:
        """Mean focal length in pixels."""
        return 0.5 * (self.fx + self.fy)

    @property
    def principal_point(self) -> np.ndarray:
        return np.array([self.ppx, self.ppy])

    def cam_to_img(self, p: np.ndarray) -> np.ndarray:
        p = np.asarray(p, dtype=np.float64)
        return np.array([self.fx * p[0] + self.ppx, self.fy * p[1] + self.ppy])

    def img_to_cam(self, p: np.ndarray) -> np.ndarray:
        p = np.asarray(p, dtype=np.float64)
        return np.array([(p[0] - self.ppx) / self.fx, (p[1] - self.ppy) / self.fy])

    def bearing(self, points: np.ndarray) -> np.ndarray:
        """
        Bearing vectors of image points, with distortion removed.

        Args:
            points: 2xN array of pixel coordinates

        Returns:
            3xN array of unit vectors in the camera frame
        """
        points = image_points(points)
        rays = np.ones((3, points.shape[1]))
        for i in range(points.shape[1]):
            rays[:2, i] = self.remove_disto(self.img_to_cam(points[:, i]))
        return rays / np.linalg.norm(rays, axis=0)

    def image_plane_to_camera_plane_error(self, value: float) -> float:
        return value / self.focal

    def get_projective_equivalent(self, pose: Pose) -> np.ndarray:
        """
        Linear projection matrix P = K @ [R|t].

        Args:
            pose: Camera pose

        Returns:
            3x4 projection matrix
        """
        return self.K @ pose.as_matrix()

    def get_params(self) -> List[float]:
        return [self.fx, self.fy, self.ppx, self.ppy]

    @classmethod
    def _from_params(cls, width: int, height: int, params: Sequence[float]) -> "PinholeIntrinsic":
        return cls(width, height, *params)

    def _parameter_groups(self) -> List[Tuple[IntrinsicParamType, List[int]]]:
        groups = [
            (IntrinsicParamType.ADJUST_FOCAL_LENGTH, [0, 1]),
            (IntrinsicParamType.ADJUST_PRINCIPAL_POINT, [2, 3]),
        ]
        if self.DISTO_NAMES:
            groups.append(
                (IntrinsicParamType.ADJUST_DISTORTION, list(range(4, 4 + len(self.DISTO_NAMES))))
            )
        return groups

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data['focal_length'] = [self.fx, self.fy]
        data['principal_point'] = [self.ppx, self.ppy]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PinholeIntrinsic":
        """
        Rebuild a camera from its serialized fields.

        A scalar focal_length is accepted and used for both axes.

        Raises:
            ValueError: If the number of distortion coefficients does not
                match the model
        """
        focal = np.atleast_1d(np.asarray(data['focal_length'], dtype=np.float64))
        fx, fy = (focal[0], focal[0]) if focal.size == 1 else (focal[0], focal[1])
        ppx, ppy = data['principal_point']

        disto: List[float] = []
        if cls.DISTO_NAMES:
            disto = [float(v) for v in data.get('disto_param', [])]
            if len(disto) != len(cls.DISTO_NAMES):
                raise ValueError(
                    f"camera model '{cls.TYPE_NAME}' should maintain "
                    f"{len(cls.DISTO_NAMES)} distortion parameter(s) "
                    f"({', '.join(cls.DISTO_NAMES)}), got {len(disto)}"
                )

        return cls(data['width'], data['height'], fx, fy, ppx, ppy, *disto)


class _DistortedPinhole(PinholeIntrinsic):
    """Pinhole camera carrying a vector of distortion coefficients."""

    def __init__(
        self,
        width: int,
        height: int,
        fx: float,
        fy: float,
        ppx: float,
        ppy: float,
        disto: Sequence[float],
    ):
        super().__init__(width, height, fx, fy, ppx, ppy)
        self.disto = [float(v) for v in disto]

    def have_disto(self) -> bool:
        return True

    def get_params(self) -> List[float]:
        return super().get_params() + list(self.disto)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data['disto_param'] = list(self.disto)
        return data


class PinholeIntrinsicRadialK1(_DistortedPinhole):
    """
    Pinhole camera with one radial distortion coefficient.

        x_d = x_u * (1 + k1*r²)
    """

    TYPE_NAME = 'pinhole_radial_k1'
    DISTO_NAMES = ('k1',)

    def __init__(
        self,
        width: int = 0,
        height: int = 0,
        fx: float = 0.0,
        fy: float = 0.0,
        ppx: float = 0.0,
        ppy: float = 0.0,
        k1: float = 0.0,
    ):
        super().__init__(width, height, fx, fy, ppx, ppy, [k1])

    def get_type(self) -> EIntrinsic:
        return EIntrinsic.PINHOLE_CAMERA_RADIAL_K1

    def add_disto(self, p: np.ndarray) -> np.ndarray:
        p = np.asarray(p, dtype=np.float64)
        k1 = self.disto[0]
        r2 = p[0] ** 2 + p[1] ** 2
        return p * (1.0 + k1 * r2)

    def remove_disto(self, p: np.ndarray) -> np.ndarray:
        """
        Remove radial distortion.

        Solves by bisection for the undistorted squared radius whose image
        through the distortion law matches the squared radius of `p`, then
        rescales `p`.
        """
        p = np.asarray(p, dtype=np.float64)
        r2 = p[0] ** 2 + p[1] ** 2
        if r2 == 0:
            return p.copy()
        radius = np.sqrt(bisection_radius_solve(self._disto_functor, r2) / r2)
        return radius * p

    def _disto_functor(self, r2: float) -> float:
        k1 = self.disto[0]
        return r2 * (1.0 + r2 * k1) ** 2


class PinholeIntrinsicRadialK3(_DistortedPinhole):
    """
    Pinhole camera with three radial distortion coefficients.

        x_d = x_u * (1 + k1*r² + k2*r⁴ + k3*r⁶)
    """

    TYPE_NAME = 'pinhole_radial_k3'
    DISTO_NAMES = ('k1', 'k2', 'k3')

    def __init__(
        self,
        width: int = 0,
        height: int = 0,
        fx: float = 0.0,
        fy: float = 0.0,
        ppx: float = 0.0,
        ppy: float = 0.0,
        k1: float = 0.0,
        k2: float = 0.0,
        k3: float = 0.0,
    ):
        super().__init__(width, height, fx, fy, ppx, ppy, [k1, k2, k3])

    def get_type(self) -> EIntrinsic:
        return EIntrinsic.PINHOLE_CAMERA_RADIAL_K3

    def add_disto(self, p: np.ndarray) -> np.ndarray:
        p = np.asarray(p, dtype=np.float64)
        k1, k2, k3 = self.disto
        r2 = p[0] ** 2 + p[1] ** 2
        r4 = r2 ** 2
        r6 = r2 ** 3
        return p * (1.0 + k1 * r2 + k2 * r4 + k3 * r6)

    def remove_disto(self, p: np.ndarray) -> np.ndarray:
        p = np.asarray(p, dtype=np.float64)
        r2 = p[0] ** 2 + p[1] ** 2
        if r2 == 0:
            return p.copy()
        radius = np.sqrt(bisection_radius_solve(self._disto_functor, r2) / r2)
        return radius * p

    def _disto_functor(self, r2: float) -> float:
        k1, k2, k3 = self.disto
        return r2 * (1.0 + r2 * (k1 + r2 * (k2 + r2 * k3))) ** 2


class PinholeIntrinsicBrownT2(_DistortedPinhole):
    """
    Pinhole camera with Brown-Conrady distortion (3 radial, 2 tangential).

    Distortion equations (applied to normalized coordinates x, y):
        r² = x² + y²
        x_d = x(1 + k1*r² + k2*r⁴ + k3*r⁶) + t2*(r² + 2*x²) + 2*t1*x*y
        y_d = y(1 + k1*r² + k2*r⁴ + k3*r⁶) + t1*(r² + 2*y²) + 2*t2*x*y
    """

    TYPE_NAME = 'pinhole_brown_t2'
    DISTO_NAMES = ('k1', 'k2', 'k3', 't1', 't2')

    def __init__(
        self,
        width: int = 0,
        height: int = 0,
        fx: float = 0.0,
        fy: float = 0.0,
        ppx: float = 0.0,
        ppy: float = 0.0,
        k1: float = 0.0,
        k2: float = 0.0,
        k3: float = 0.0,
        t1: float = 0.0,
        t2: float = 0.0,
    ):
        super().__init__(width, height, fx, fy, ppx, ppy, [k1, k2, k3, t1, t2])

    def get_type(self) -> EIntrinsic:
        return EIntrinsic.PINHOLE_CAMERA_BROWN_T2

    def add_disto(self, p: np.ndarray) -> np.ndarray:
        p = np.asarray(p, dtype=np.float64)
        return p + self._disto_function(p)

    def remove_disto(self, p: np.ndarray) -> np.ndarray:
        """
        Remove distortion by fixed-point iteration on the distortion offset.

        Convergence is not guaranteed for extreme coefficients.
        """
        return fixed_point_undistort(self._disto_function, p)

    def _disto_function(self, p: np.ndarray) -> np.ndarray:
        """Distortion offset (radial and tangential) of an undistorted point."""
        k1, k2, k3, t1, t2 = self.disto
        x, y = p[0], p[1]
        r2 = x ** 2 + y ** 2
        r4 = r2 ** 2
        r6 = r2 ** 3
        k_diff = k1 * r2 + k2 * r4 + k3 * r6
        t_x = t2 * (r2 + 2 * x ** 2) + 2 * t1 * x * y
        t_y = t1 * (r2 + 2 * y ** 2) + 2 * t2 * x * y
        return np.array([x * k_diff + t_x, y * k_diff + t_y])


class PinholeIntrinsicFisheye(_DistortedPinhole):
    """
    Pinhole camera with equidistant fisheye distortion (4 coefficients).

        theta = atan(r)
        theta_d = theta + k1*theta³ + k2*theta⁵ + k3*theta⁷ + k4*theta⁹
        x_d = x * theta_d / r
    """

    TYPE_NAME = 'pinhole_fisheye'
    DISTO_NAMES = ('k1', 'k2', 'k3', 'k4')

    def __init__(
        self,
        width: int = 0,
        height: int = 0,
        fx: float = 0.0,
        fy: float = 0.0,
        ppx: float = 0.0,
        ppy: float = 0.0,
        k1: float = 0.0,
        k2: float = 0.0,
        k3: float = 0.0,
        k4: float = 0.0,
    ):
        super().__init__(width, height, fx, fy, ppx, ppy, [k1, k2, k3, k4])

    def get_type(self) -> EIntrinsic:
        return EIntrinsic.PINHOLE_CAMERA_FISHEYE

    def add_disto(self, p: np.ndarray) -> np.ndarray:
        p = np.asarray(p, dtype=np.float64)
        k1, k2, k3, k4 = self.disto
        r = np.hypot(p[0], p[1])
        if r <= FISHEYE_EPSILON:
            return p.copy()

        theta = np.arctan(r)
        theta2 = theta * theta
        theta_dist = theta * (1 + theta2 * (k1 + theta2 * (k2 + theta2 * (k3 + theta2 * k4))))
        return p * (theta_dist / r)

    def remove_disto(self, p: np.ndarray) -> np.ndarray:
        """
        Remove fisheye distortion.

        Refines theta from theta_d over a fixed number of iterations, then
        rescales by tan(theta) / theta_d.
        """
        p = np.asarray(p, dtype=np.float64)
        k1, k2, k3, k4 = self.disto
        theta_dist = np.hypot(p[0], p[1])
        if theta_dist <= FISHEYE_EPSILON:
            return p.copy()

        theta = theta_dist
        for _ in range(FISHEYE_ITERATIONS):
            theta2 = theta * theta
            theta4 = theta2 * theta2
            theta6 = theta4 * theta2
            theta8 = theta6 * theta2
            theta = theta_dist / (1 + k1 * theta2 + k2 * theta4 + k3 * theta6 + k4 * theta8)

        return p * (np.tan(theta) / theta_dist)
