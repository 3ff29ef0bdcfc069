"""Tracking error estimation against the fitted reference path.

In the body frame the vehicle sits at the origin facing +x, so both errors are
evaluations of the path polynomial at x = 0.
"""

import math
from typing import Sequence, Tuple

from .path import polyderiv, polyeval


def cross_track_error(coeffs: Sequence[float]) -> float:
    """Lateral offset of the path at the vehicle: cte = f(0)."""
    return float(polyeval(coeffs, 0.0))


def heading_error(coeffs: Sequence[float]) -> float:
    """Heading error against the path tangent at the vehicle: epsi = -atan(f'(0))."""
    return -math.atan(float(polyeval(polyderiv(coeffs), 0.0)))


def tracking_errors(coeffs: Sequence[float]) -> Tuple[float, float]:
    """Compute (cte, epsi) for the current pose.

    Args:
        coeffs: Path coefficients in body frame, lowest-degree term first

    Returns:
        Tuple of (cte, epsi)
    """
    return cross_track_error(coeffs), heading_error(coeffs)
