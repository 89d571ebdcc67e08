"""
Numerical helpers used to invert distortion laws.

The distortion laws of the camera models are not analytically invertible,
so removing distortion is done numerically. The helpers here take the
distortion law as a callable so each model only supplies its functor:

    - bisection_radius_solve: radial models, 1D search on the squared radius
    - fixed_point_undistort: additive models, Picard iteration on the point
"""

import numpy as np
from typing import Callable
import logging

logger = logging.getLogger(__name__)

BISECTION_EPSILON = 1e-10
BRACKET_GROWTH = 1.05
MAX_BRACKET_STEPS = 2000

FIXED_POINT_EPSILON = 1e-10
MAX_FIXED_POINT_ITERATIONS = 1000


def bisection_radius_solve(
    functor: Callable[[float], float],
    r2: float,
    epsilon: float = BISECTION_EPSILON,
) -> float:
    """
    Solve functor(x) = r2 for x by bisection.

    `functor` maps an undistorted squared radius to the squared radius of
    the distorted point and must be increasing around the solution. The
    bracket starts at [r2, r2] and is widened geometrically (lower bound
    divided, upper bound multiplied by 1.05) until it contains the
    solution, then halved until narrower than `epsilon`.

    Args:
        functor: Squared-radius distortion law
        r2: Target squared radius (distorted)
        epsilon: Absolute width at which the bisection stops

    Returns:
        Midpoint of the final bracket
    """
    lower_bound = r2
    upper_bound = r2

    steps = 0
    while functor(lower_bound) > r2 and steps < MAX_BRACKET_STEPS:
        lower_bound /= BRACKET_GROWTH
        steps += 1

    steps = 0
    while functor(upper_bound) < r2 and steps < MAX_BRACKET_STEPS:
        upper_bound *= BRACKET_GROWTH
        steps += 1
    if steps == MAX_BRACKET_STEPS:
        logger.warning(
            f"Could not bracket squared radius {r2:.6g}; distortion law is not "
            f"increasing over [{lower_bound:.6g}, {upper_bound:.6g}]"
        )

    while epsilon < upper_bound - lower_bound:
        mid = 0.5 * (lower_bound + upper_bound)
        # bracket narrower than the float spacing at this magnitude
        if mid == lower_bound or mid == upper_bound:
            break
        if functor(mid) > r2:
            upper_bound = mid
        else:
            lower_bound = mid

    return 0.5 * (lower_bound + upper_bound)


def fixed_point_undistort(
    disto: Callable[[np.ndarray], np.ndarray],
    p: np.ndarray,
    epsilon: float = FIXED_POINT_EPSILON,
    max_iterations: int = MAX_FIXED_POINT_ITERATIONS,
) -> np.ndarray:
    """
    Invert an additive distortion p_d = p_u + disto(p_u) by fixed-point iteration.

    Starting from p_u = p_d, repeatedly set p_u = p_d - disto(p_u) until the
    Manhattan distance between p_u + disto(p_u) and p_d falls below
    `epsilon`. Convergence is not guaranteed for strong distortion; the
    last iterate is returned when the iteration budget runs out.

    Reference:
        Heikkila J (2000) Geometric Camera Calibration Using Circular Control
        Points. IEEE Trans. Pattern Anal. Mach. Intell., 22:1066-1077

    Args:
        disto: Distortion offset as a function of the undistorted point
        p: Distorted point (normalized camera plane)
        epsilon: L1 stopping threshold
        max_iterations: Iteration budget

    Returns:
        Undistorted point
    """
    p = np.asarray(p, dtype=np.float64)
    p_u = p.copy()
    d = disto(p_u)

    iterations = 0
    while np.sum(np.abs(p_u + d - p)) > epsilon:
        if iterations >= max_iterations:
            logger.warning(
                f"Undistortion of {p.tolist()} did not converge after {max_iterations} iterations"
            )
            break
        p_u = p - d
        d = disto(p_u)
        iterations += 1

    return p_u
