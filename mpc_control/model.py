"""Discrete kinematic bicycle model used across the prediction horizon.

The same equations serve two purposes:
- numeric propagation (warm-start rollouts, tests) with numpy math
- equality constraints of the NLP, instantiated with the solver's symbolic math

To make that possible every function here only uses +, -, *, / and the math
functions supplied through a MathOps backend.
"""

from typing import Any, Callable, List, NamedTuple, Sequence, Tuple

import numpy as np
import numpy.typing as npt

from .path import polyderiv, polyeval

STATE_NAMES = ("x", "y", "psi", "v", "cte", "epsi")
"""Order of the components of the state vector."""

STATE_SIZE = len(STATE_NAMES)

ACTUATION_SIZE = 2
"""Steering angle delta (rad) and acceleration a."""


class MathOps(NamedTuple):
    """Math functions of one numeric or symbolic backend."""

    sin: Callable[[Any], Any]
    cos: Callable[[Any], Any]
    atan: Callable[[Any], Any]


NUMPY_OPS = MathOps(sin=np.sin, cos=np.cos, atan=np.arctan)


class HorizonLayout:
    """Index layout of the decision vector for a horizon of N steps.

    The vector stacks one block per state component followed by the actuators:
        [x(N), y(N), psi(N), v(N), cte(N), epsi(N), delta(N-1), a(N-1)]

    Attributes:
        horizon: Number of states N
        n_vars: Length of the decision vector
    """

    def __init__(self, horizon: int):
        if horizon < 2:
            raise ValueError(f"Horizon must hold at least 2 states, got {horizon}")
        self.horizon = horizon
        self.state_starts = tuple(i * horizon for i in range(STATE_SIZE))
        self.delta_start = STATE_SIZE * horizon
        self.a_start = self.delta_start + horizon - 1
        self.n_vars = self.a_start + horizon - 1

    @property
    def n_actuations(self) -> int:
        return self.horizon - 1

    def state(self, z: Any, t: int) -> Tuple[Any, ...]:
        """State tuple (x, y, psi, v, cte, epsi) at step t."""
        return tuple(z[start + t] for start in self.state_starts)

    def actuation(self, z: Any, t: int) -> Tuple[Any, Any]:
        """Actuator pair (delta, a) at step t."""
        return z[self.delta_start + t], z[self.a_start + t]

    def pack(
        self, states: npt.ArrayLike, actuations: npt.ArrayLike
    ) -> npt.NDArray[np.float64]:
        """Build a decision vector from (N, 6) states and (N-1, 2) actuations."""
        states = np.asarray(states, dtype=float).reshape(self.horizon, STATE_SIZE)
        actuations = np.asarray(actuations, dtype=float).reshape(self.n_actuations, ACTUATION_SIZE)
        return np.concatenate([states.T.reshape(-1), actuations.T.reshape(-1)])

    def unpack(
        self, z: npt.ArrayLike
    ) -> Tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
        """Split a decision vector into (N, 6) states and (N-1, 2) actuations."""
        z = np.asarray(z, dtype=float)
        if z.shape != (self.n_vars,):
            raise ValueError(f"Expected decision vector of length {self.n_vars}, got {z.shape}")
        states = z[: self.delta_start].reshape(STATE_SIZE, self.horizon).T
        actuations = z[self.delta_start :].reshape(ACTUATION_SIZE, self.n_actuations).T
        return states, actuations


def kinematic_step(
    state: Sequence[Any],
    delta: Any,
    a: Any,
    coeffs: Sequence[Any],
    dt: float,
    lf: float,
    ops: MathOps = NUMPY_OPS,
) -> Tuple[Any, ...]:
    """Advance the state by one step of the kinematic bicycle model.

        x'    = x + v*cos(psi)*dt
        y'    = y + v*sin(psi)*dt
        psi'  = psi + v/Lf*delta*dt
        v'    = v + a*dt
        cte'  = f(x) - y + v*sin(epsi)*dt
        epsi' = psi - psi_des + v/Lf*delta*dt,  psi_des = atan(f'(x))

    Args:
        state: Current (x, y, psi, v, cte, epsi)
        delta: Steering angle (rad)
        a: Acceleration
        coeffs: Reference path coefficients, lowest-degree term first
        dt: Step duration (s)
        lf: Center of gravity to front axle distance (m)
        ops: Math backend

    Returns:
        Next state tuple
    """
    x, y, psi, v, _cte, epsi = state

    f_x = polyeval(coeffs, x)
    psi_des = ops.atan(polyeval(polyderiv(coeffs), x))
    yaw_change = v / lf * delta * dt

    return (
        x + v * ops.cos(psi) * dt,
        y + v * ops.sin(psi) * dt,
        psi + yaw_change,
        v + a * dt,
        f_x - y + v * ops.sin(epsi) * dt,
        psi - psi_des + yaw_change,
    )


def rollout(
    initial_state: Sequence[float],
    actuations: npt.ArrayLike,
    coeffs: Sequence[float],
    dt: float,
    lf: float,
) -> npt.NDArray[np.float64]:
    """Propagate the model numerically through a sequence of actuator pairs.

    Args:
        initial_state: State at t = 0
        actuations: (M, 2) array of (delta, a)
        coeffs: Reference path coefficients
        dt: Step duration (s)
        lf: Center of gravity to front axle distance (m)

    Returns:
        (M + 1, 6) array of states, starting with initial_state
    """
    actuations = np.asarray(actuations, dtype=float).reshape(-1, ACTUATION_SIZE)
    coeffs = [float(c) for c in coeffs]

    states = np.zeros((len(actuations) + 1, STATE_SIZE))
    states[0] = initial_state
    for t, (delta, a) in enumerate(actuations):
        states[t + 1] = kinematic_step(states[t], delta, a, coeffs, dt, lf)
    return states


def horizon_residuals(
    z: Any,
    layout: HorizonLayout,
    initial_state: Sequence[Any],
    coeffs: Sequence[Any],
    dt: float,
    lf: float,
    ops: MathOps = NUMPY_OPS,
) -> List[Any]:
    """Equality constraint residuals of the horizon (all must equal zero).

    The first six pin the initial state to the measured one; the remaining
    6 * (N - 1) tie each state to the model prediction from its predecessor.
    """
    residuals = [
        z[start] - value for start, value in zip(layout.state_starts, initial_state)
    ]

    for t in range(layout.horizon - 1):
        delta, a = layout.actuation(z, t)
        predicted = kinematic_step(layout.state(z, t), delta, a, coeffs, dt, lf, ops)
        actual = layout.state(z, t + 1)
        residuals.extend(actual[i] - predicted[i] for i in range(STATE_SIZE))

    return residuals
