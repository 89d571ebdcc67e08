"""
Rotation checks and repair for camera poses.

A camera rotation maps reference-frame directions into the camera frame
(X-right, Y-down, Z-forward along the optical axis). Rotations read from
files or chained through many compositions drift away from SO(3); these
helpers measure and remove that drift.
"""

import numpy as np
import logging

logger = logging.getLogger(__name__)


def rotation_drift(R: np.ndarray) -> float:
    """
    Distance of a 3x3 matrix from SO(3).

    Measured as the largest absolute entry of R @ R.T - I, combined with
    the deviation of det(R) from +1.

    Args:
        R: 3x3 matrix

    Returns:
        Drift, 0.0 for an exact rotation

    Raises:
        ValueError: If R is not 3x3
    """
    R = np.asarray(R, dtype=np.float64)
    if R.shape != (3, 3):
        raise ValueError(f"Rotation must be 3x3, got shape {R.shape}")
    orthogonality = np.max(np.abs(R @ R.T - np.eye(3)))
    return float(max(orthogonality, abs(np.linalg.det(R) - 1.0)))


def is_rotation(R: np.ndarray, tol: float = 1e-6) -> bool:
    """
    Whether R is a proper rotation: orthogonal with det = +1.

    Non 3x3 inputs are not rotations.
    """
    R = np.asarray(R, dtype=np.float64)
    if R.shape != (3, 3):
        return False
    return rotation_drift(R) <= tol


def orthonormalize_rotation(R: np.ndarray) -> np.ndarray:
    """
    Project a 3x3 matrix onto the nearest proper rotation.

    With R = U @ diag(S) @ Vt, the nearest orthonormal matrix in the
    Frobenius sense is U @ Vt. If that product is a reflection the last
    left-singular vector is negated so the result has det = +1.

    Args:
        R: 3x3 matrix, typically a rotation that drifted numerically

    Returns:
        3x3 rotation matrix
    """
    R = np.asarray(R, dtype=np.float64)
    if R.shape != (3, 3):
        raise ValueError(f"Rotation must be 3x3, got shape {R.shape}")

    U, _, Vt = np.linalg.svd(R)
    R_ortho = U @ Vt
    if np.linalg.det(R_ortho) < 0:
        U[:, -1] = -U[:, -1]
        R_ortho = U @ Vt

    logger.debug(f"Orthonormalized rotation, correction norm {np.linalg.norm(R_ortho - R):.3e}")
    return R_ortho
