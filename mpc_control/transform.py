"""World-to-body frame transformation of reference waypoints.

The controller formulates every problem in the vehicle's own frame: origin at
the vehicle, x axis along its heading. In that frame the current pose is
always (0, 0, 0), which keeps the fitted polynomial well conditioned and makes
cte and epsi direct evaluations of the path at x = 0.
"""

from typing import Sequence, Tuple

import numpy as np
import numpy.typing as npt


def to_body_frame(
    px: float,
    py: float,
    psi: float,
    ptsx: Sequence[float],
    ptsy: Sequence[float],
) -> Tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    """Express world-frame waypoints in the vehicle's body frame.

    Translates by -(px, py) and rotates by -psi:
        x' =  dx * cos(psi) + dy * sin(psi)
        y' = -dx * sin(psi) + dy * cos(psi)

    Args:
        px: Vehicle x position in world frame (m)
        py: Vehicle y position in world frame (m)
        psi: Vehicle heading in world frame (rad)
        ptsx: Waypoint x coordinates in world frame (m)
        ptsy: Waypoint y coordinates in world frame (m)

    Returns:
        Tuple of (x_body, y_body) arrays, same length and order as the input
    """
    dx = np.asarray(ptsx, dtype=float) - px
    dy = np.asarray(ptsy, dtype=float) - py

    cos_psi = np.cos(psi)
    sin_psi = np.sin(psi)

    x_body = dx * cos_psi + dy * sin_psi
    y_body = -dx * sin_psi + dy * cos_psi

    return x_body, y_body


def to_world_frame(
    px: float,
    py: float,
    psi: float,
    xs: Sequence[float],
    ys: Sequence[float],
) -> Tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    """Inverse of to_body_frame: map body-frame points back to world frame.

    Used by the run plots to draw predicted trajectories on the world map.
    """
    xs = np.asarray(xs, dtype=float)
    ys = np.asarray(ys, dtype=float)

    cos_psi = np.cos(psi)
    sin_psi = np.sin(psi)

    x_world = px + xs * cos_psi - ys * sin_psi
    y_world = py + xs * sin_psi + ys * cos_psi

    return x_world, y_world
