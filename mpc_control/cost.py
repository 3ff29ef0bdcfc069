"""MPC objective: tracking error, actuator effort and actuator smoothness.

    J = sum_t  w_cte*cte[t]^2 + w_epsi*epsi[t]^2 + w_v*(v[t] - v_ref)^2
      + sum_t  w_delta*delta[t]^2 + w_a*a[t]^2
      + sum_t  w_ddelta*(delta[t] - delta[t-1])^2 + w_da*(a[t] - a[t-1])^2

where delta[-1], a[-1] is the previously applied command, so the first planned
actuation is also penalized for jumping away from what the vehicle is doing.

Like the model equations, the cost only uses arithmetic operators and can be
evaluated on numpy arrays as well as on symbolic solver variables.
"""

from typing import Any

from .config import CostWeights
from .model import HorizonLayout


def horizon_cost(
    z: Any,
    layout: HorizonLayout,
    weights: CostWeights,
    ref_speed: float,
    prev_delta: Any = 0.0,
    prev_a: Any = 0.0,
) -> Any:
    """Evaluate the objective for decision vector z.

    Args:
        z: Decision vector (numeric or symbolic)
        layout: Index layout of z
        weights: Term weights
        ref_speed: Target cruising speed v_ref (m/s)
        prev_delta: Previously applied steering angle (rad)
        prev_a: Previously applied acceleration

    Returns:
        Scalar objective value or expression
    """
    cost = 0.0

    # Tracking
    for t in range(layout.horizon):
        _x, _y, _psi, v, cte, epsi = layout.state(z, t)
        cost += weights.cte * cte**2
        cost += weights.epsi * epsi**2
        cost += weights.v * (v - ref_speed) ** 2

    # Actuator magnitude
    for t in range(layout.n_actuations):
        delta, a = layout.actuation(z, t)
        cost += weights.delta * delta**2
        cost += weights.a * a**2

    # Actuator smoothness
    last_delta, last_a = prev_delta, prev_a
    for t in range(layout.n_actuations):
        delta, a = layout.actuation(z, t)
        cost += weights.ddelta * (delta - last_delta) ** 2
        cost += weights.da * (a - last_a) ** 2
        last_delta, last_a = delta, a

    return cost
