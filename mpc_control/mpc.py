"""Model-predictive controller for path tracking.

Each call to MPCController.solve() formulates a finite-horizon problem in the
vehicle's body frame and resolves it into one actuation pair:

1. Build: bounds, parameters and a feasible warm-start guess
2. Solve: hand the fixed NLPProblem to the NLP solver
3. Extract: first free actuation pair plus the predicted trajectory

Actuation latency is handled by fixing the actuator pairs inside the latency
window to the previously applied command. The optimizer therefore cannot
pretend it controls the vehicle before a new command physically takes effect.

The controller owns its cross-cycle memory (previous command and warm-start
vector) and is meant to be driven by one sequential control loop.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
import numpy.typing as npt

from .config import MPCConfig
from .cost import horizon_cost
from .errors import InputError, SolveFailed
from .model import NUMPY_OPS, STATE_SIZE, HorizonLayout, horizon_residuals, rollout
from .solver import IpoptSolver, NLPProblem, NLPSolver, SolverResult, VariableBounds


@dataclass
class MPCSolution:
    """Result of one successful MPC solve.

    Attributes:
        steering: Commanded steering angle (rad), first free actuation
        acceleration: Commanded acceleration/throttle, first free actuation
        actuations: (N-1, 2) planned (delta, a) pairs, latency window included
        states: (N, 6) predicted states in body frame
        objective: Objective value of the returned plan
        initial_objective: Objective value of the warm-start guess
        status: Solver return status
        iterations: Solver iteration count, if reported
        solve_time: Solver wall-clock time (seconds)
    """

    steering: float
    acceleration: float
    actuations: npt.NDArray[np.float64]
    states: npt.NDArray[np.float64]
    objective: float
    initial_objective: float
    status: str
    iterations: Optional[int] = None
    solve_time: float = 0.0

    @property
    def trajectory_x(self) -> npt.NDArray[np.float64]:
        """Predicted body-frame x positions across the horizon."""
        return self.states[:, 0]

    @property
    def trajectory_y(self) -> npt.NDArray[np.float64]:
        """Predicted body-frame y positions across the horizon."""
        return self.states[:, 1]


class MPCController:
    """Finite-horizon MPC over the kinematic bicycle model.

    Attributes:
        config: Controller configuration
        layout: Decision vector layout
        solver: NLP solver in use
        problem: Fixed problem structure handed to the solver every cycle
        prev_steering: Last applied steering angle (rad)
        prev_acceleration: Last applied acceleration
        warm_start: Decision vector of the last successful solve, or None
    """

    def __init__(self, config: Optional[MPCConfig] = None, solver: Optional[NLPSolver] = None):
        """Initialize the controller.

        Args:
            config: Controller configuration. Defaults to MPCConfig().
            solver: NLP solver. Defaults to an IpoptSolver using the
                configured iteration and CPU time budget.

        Raises:
            ValueError: If the configuration is invalid.
        """
        if config is None:
            config = MPCConfig()
        config.validate()
        self.config = config

        self.layout = HorizonLayout(config.horizon)
        self.n_coeffs = config.path_degree + 1
        self.latency_steps = config.latency_steps

        if solver is None:
            solver = IpoptSolver(
                max_iter=config.solver_max_iter, max_cpu_time=config.solver_max_cpu_time
            )
        self.solver = solver
        self.problem = self._build_problem()

        self.prev_steering: float = 0.0
        self.prev_acceleration: float = 0.0
        self.warm_start: Optional[npt.NDArray[np.float64]] = None

    # ------------------------------------------------------------------
    # Problem formulation
    # ------------------------------------------------------------------

    def _build_problem(self) -> NLPProblem:
        """Assemble the fixed problem structure.

        Parameter vector: [x0, y0, psi0, v0, cte0, epsi0, c0..cn, prev_delta, prev_a]
        """
        layout = self.layout
        config = self.config
        n_coeffs = self.n_coeffs
        prev_index = STATE_SIZE + n_coeffs

        def cost(z, p, ops):
            return horizon_cost(
                z, layout, config.weights, config.ref_speed, p[prev_index], p[prev_index + 1]
            )

        def constraints(z, p, ops):
            initial_state = [p[i] for i in range(STATE_SIZE)]
            coeffs = [p[STATE_SIZE + i] for i in range(n_coeffs)]
            return horizon_residuals(z, layout, initial_state, coeffs, config.dt, config.lf, ops)

        return NLPProblem(
            n_vars=layout.n_vars,
            n_params=prev_index + 2,
            cost=cost,
            constraints=constraints,
            name="mpc_path_tracking",
        )

    def _actuator_bounds(self, prev_steering: float, prev_acceleration: float) -> VariableBounds:
        """Bounds on the decision vector.

        States are free. Steering and acceleration are limited to the physical
        actuator range; inside the latency window both are pinned to the
        previous command.
        """
        layout = self.layout
        config = self.config

        lower = np.full(layout.n_vars, -np.inf)
        upper = np.full(layout.n_vars, np.inf)

        delta_slice = slice(layout.delta_start, layout.a_start)
        a_slice = slice(layout.a_start, layout.n_vars)
        lower[delta_slice] = -config.max_steering
        upper[delta_slice] = config.max_steering
        lower[a_slice] = config.throttle_min
        upper[a_slice] = config.throttle_max

        for t in range(self.latency_steps):
            lower[layout.delta_start + t] = upper[layout.delta_start + t] = prev_steering
            lower[layout.a_start + t] = upper[layout.a_start + t] = prev_acceleration

        return VariableBounds(lower, upper)

    def _initial_guess(
        self,
        state: npt.NDArray[np.float64],
        coeffs: npt.NDArray[np.float64],
        bounds: VariableBounds,
    ) -> npt.NDArray[np.float64]:
        """Feasible starting point for the solver.

        The actuation plan is the previous solution shifted one step (last pair
        repeated), or zeros on the first cycle. It is projected onto the bounds,
        which also writes the previous command into the latency window, and the
        states are rolled out through the model from the current state.
        """
        layout = self.layout
        if self.warm_start is None:
            actuations = np.zeros((layout.n_actuations, 2))
        else:
            _, previous = layout.unpack(self.warm_start)
            actuations = np.vstack([previous[1:], previous[-1:]])

        lower = np.column_stack(
            [bounds.lower[layout.delta_start : layout.a_start], bounds.lower[layout.a_start :]]
        )
        upper = np.column_stack(
            [bounds.upper[layout.delta_start : layout.a_start], bounds.upper[layout.a_start :]]
        )
        actuations = np.clip(actuations, lower, upper)

        states = rollout(state, actuations, coeffs, self.config.dt, self.config.lf)
        return layout.pack(states, actuations)

    def objective(
        self,
        z: npt.ArrayLike,
        prev_steering: Optional[float] = None,
        prev_acceleration: Optional[float] = None,
    ) -> float:
        """Evaluate the MPC objective numerically for decision vector z."""
        if prev_steering is None:
            prev_steering = self.prev_steering
        if prev_acceleration is None:
            prev_acceleration = self.prev_acceleration
        return float(
            horizon_cost(
                np.asarray(z, dtype=float),
                self.layout,
                self.config.weights,
                self.config.ref_speed,
                prev_steering,
                prev_acceleration,
            )
        )

    def constraint_violation(
        self, z: npt.ArrayLike, state: Sequence[float], coeffs: Sequence[float]
    ) -> float:
        """Largest absolute equality-constraint residual of z."""
        residuals = horizon_residuals(
            np.asarray(z, dtype=float),
            self.layout,
            list(state),
            list(coeffs),
            self.config.dt,
            self.config.lf,
            NUMPY_OPS,
        )
        return float(np.max(np.abs(residuals)))

    # ------------------------------------------------------------------
    # Solve
    # ------------------------------------------------------------------

    def _validate_inputs(
        self, state: Sequence[float], coeffs: Sequence[float]
    ) -> tuple:
        state = np.asarray(state, dtype=float).reshape(-1)
        if state.shape != (STATE_SIZE,):
            raise InputError(f"State vector must have {STATE_SIZE} entries, got {state.size}")
        if not np.all(np.isfinite(state)):
            raise InputError("State vector contains non-finite values")

        coeffs = np.asarray(coeffs, dtype=float).reshape(-1)
        if coeffs.size == 0:
            raise InputError("Path coefficients must not be empty")
        if coeffs.size > self.n_coeffs:
            raise InputError(
                f"Expected at most {self.n_coeffs} path coefficients, got {coeffs.size}"
            )
        if not np.all(np.isfinite(coeffs)):
            raise InputError("Path coefficients contain non-finite values")

        # Lower-degree paths are padded with zero high-order terms
        padded = np.zeros(self.n_coeffs)
        padded[: coeffs.size] = coeffs
        return state, padded

    def solve(
        self,
        state: Sequence[float],
        coeffs: Sequence[float],
        prev_steering: Optional[float] = None,
        prev_acceleration: Optional[float] = None,
    ) -> MPCSolution:
        """Solve one control cycle.

        Only the warm start is stored. Callers report the command they
        actually send through apply(), which the next solve holds over the
        latency window.

        Args:
            state: Body-frame state (x, y, psi, v, cte, epsi); x, y and psi are
                zero by construction
            coeffs: Reference path coefficients, lowest-degree term first
            prev_steering: Previously applied steering angle (rad). Defaults to
                the controller's memory.
            prev_acceleration: Previously applied acceleration. Defaults to the
                controller's memory.

        Returns:
            MPCSolution with the command to apply and the predicted trajectory

        Raises:
            InputError: If state or coefficients are malformed
            SolveFailed: If the solver does not converge within its budget.
                Controller memory is left unchanged.
        """
        state, coeffs = self._validate_inputs(state, coeffs)
        config = self.config

        if prev_steering is None:
            prev_steering = self.prev_steering
        if prev_acceleration is None:
            prev_acceleration = self.prev_acceleration
        prev_steering = float(np.clip(prev_steering, -config.max_steering, config.max_steering))
        prev_acceleration = float(
            np.clip(prev_acceleration, config.throttle_min, config.throttle_max)
        )

        bounds = self._actuator_bounds(prev_steering, prev_acceleration)
        guess = self._initial_guess(state, coeffs, bounds)
        parameters = np.concatenate([state, coeffs, [prev_steering, prev_acceleration]])

        result: SolverResult = self.solver.solve(self.problem, bounds, guess, parameters)
        if not result.success or result.x is None:
            logging.warning(f"MPC solver did not converge: {result.status}")
            raise SolveFailed(result.status, result.iterations)

        z = bounds.clip(result.x)
        objective = self.objective(z, prev_steering, prev_acceleration)
        initial_objective = self.objective(guess, prev_steering, prev_acceleration)
        if not math.isfinite(objective) or objective > initial_objective:
            # The guess is feasible by construction, so never do worse than it
            logging.debug(
                f"Solver point worse than warm start ({objective:.4f} > {initial_objective:.4f}), "
                "keeping warm start"
            )
            z = guess
            objective = initial_objective

        states, actuations = self.layout.unpack(z)
        steering, acceleration = actuations[self.latency_steps]

        self.warm_start = z

        return MPCSolution(
            steering=float(steering),
            acceleration=float(acceleration),
            actuations=actuations,
            states=states,
            objective=objective,
            initial_objective=initial_objective,
            status=result.status,
            iterations=result.iterations,
            solve_time=result.solve_time,
        )

    def apply(self, steering: float, acceleration: float) -> None:
        """Record the command actually sent to the vehicle.

        The next solve pins its latency window to this command, so it must be
        the applied value (after any bias or clipping), not the computed one.
        """
        self.prev_steering = float(steering)
        self.prev_acceleration = float(acceleration)

    def reset(self) -> None:
        """Forget the previous command and warm start."""
        self.prev_steering = 0.0
        self.prev_acceleration = 0.0
        self.warm_start = None
