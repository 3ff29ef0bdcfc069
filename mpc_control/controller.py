"""Per-cycle control pipeline: telemetry in, actuation out.

PathTrackingController wraps the MPC with everything a control cycle needs
around it:

    telemetry -> body-frame waypoints -> polynomial fit -> (cte, epsi)
              -> MPC solve -> integrator bias -> clipping -> normalized command

It owns the state that has to survive between cycles besides the MPC memory:
the last good path coefficients (reused when a fit fails) and the integrator
bias. Fit and solve failures are recovered locally so that every accepted
telemetry sample yields a command; malformed telemetry raises InputError and
is left to the caller.
"""

import logging
from typing import Optional

import numpy as np

from .config import MPCConfig
from .errors import FitError, SolveFailed
from .estimator import tracking_errors
from .mpc import MPCController, MPCSolution
from .path import PathFitter, sample_path
from .solver import NLPSolver
from .telemetry import ControlOutput, Telemetry
from .transform import to_body_frame


class PathTrackingController:
    """Turns telemetry samples into actuation commands, one cycle at a time.

    Attributes:
        config: Controller configuration
        mpc: Underlying model-predictive controller
        fitter: Reference path fitter
        coefficients: Path coefficients of the last successful fit
        integrator_bias: Accumulated steering bias (rad)
        last_output: Output of the most recent completed cycle
        cycle_count: Number of completed cycles
        fit_failures: Number of cycles that reused previous coefficients
        solve_failures: Number of cycles that applied the fallback policy
    """

    def __init__(self, config: Optional[MPCConfig] = None, solver: Optional[NLPSolver] = None):
        if config is None:
            config = MPCConfig()
        self.mpc = MPCController(config, solver)
        self.config = self.mpc.config
        self.fitter = PathFitter(self.config.path_degree)

        # Straight-ahead path until the first good fit
        self.coefficients = np.zeros(self.config.path_degree + 1)
        self.integrator_bias = 0.0
        self.last_output: Optional[ControlOutput] = None

        self.cycle_count = 0
        self.fit_failures = 0
        self.solve_failures = 0

    def step(self, telemetry: Telemetry) -> ControlOutput:
        """Run one control cycle.

        Args:
            telemetry: Current telemetry sample

        Returns:
            ControlOutput with the command to send

        Raises:
            InputError: If the telemetry cannot be used. Nothing is updated.
        """
        config = self.config
        telemetry.validate(self.fitter.min_points)

        ptsx, ptsy = to_body_frame(
            telemetry.x, telemetry.y, telemetry.psi, telemetry.ptsx, telemetry.ptsy
        )

        fit_failed = False
        try:
            fitted = self.fitter.fit(ptsx, ptsy)
        except FitError as e:
            fit_failed = True
            self.fit_failures += 1
            logging.warning(f"Path fit failed, reusing previous coefficients: {e}")
        else:
            self.coefficients = fitted
        coeffs = self.coefficients

        cte, epsi = tracking_errors(coeffs)
        state = [0.0, 0.0, 0.0, telemetry.speed, cte, epsi]

        solution: Optional[MPCSolution] = None
        try:
            solution = self.mpc.solve(state, coeffs)
        except SolveFailed as e:
            self.solve_failures += 1
            steering, acceleration = self._fallback_command()
            status = f"fallback:{config.fallback_policy}"
            logging.warning(f"{e}; applying '{config.fallback_policy}' fallback")
        else:
            self.integrator_bias -= config.integrator_gain * cte * config.control_period
            steering = solution.steering + self.integrator_bias
            acceleration = solution.acceleration
            status = "converged"

        steering = float(np.clip(steering, -config.max_steering, config.max_steering))
        acceleration = float(np.clip(acceleration, config.throttle_min, config.throttle_max))

        # Memory only advances on a successful solve
        if solution is not None:
            self.mpc.apply(steering, acceleration)

        reference_x, reference_y = sample_path(
            coeffs, config.reference_points, config.reference_spacing
        )

        output = ControlOutput(
            steering=steering,
            acceleration=acceleration,
            steering_command=float(np.clip(steering / config.max_steering, -1.0, 1.0)),
            throttle_command=float(np.clip(acceleration / config.throttle_scale, -1.0, 1.0)),
            cte=cte,
            epsi=epsi,
            predicted_x=solution.trajectory_x.tolist() if solution is not None else [],
            predicted_y=solution.trajectory_y.tolist() if solution is not None else [],
            reference_x=reference_x.tolist(),
            reference_y=reference_y.tolist(),
            coefficients=[float(c) for c in coeffs],
            status=status,
            fit_failed=fit_failed,
            solve_failed=solution is None,
            iterations=solution.iterations if solution is not None else None,
            solve_time=solution.solve_time if solution is not None else 0.0,
            objective=solution.objective if solution is not None else float("nan"),
        )

        logging.debug(
            f"cte={cte:.3f} epsi={np.degrees(epsi):.2f}deg "
            f"steering={np.degrees(steering):.2f}deg throttle={acceleration:.3f} [{status}]"
        )

        self.last_output = output
        self.cycle_count += 1
        return output

    def _fallback_command(self):
        """Command applied when the solver fails.

        "hold" re-applies the previous command; "brake" centers the steering
        and decelerates within the throttle bounds.
        """
        config = self.config
        if config.fallback_policy == "brake":
            deceleration = -abs(config.fallback_deceleration)
            return 0.0, max(deceleration, config.throttle_min)
        return self.mpc.prev_steering, self.mpc.prev_acceleration

    def reset(self) -> None:
        """Clear all cross-cycle state."""
        self.mpc.reset()
        self.coefficients = np.zeros(self.config.path_degree + 1)
        self.integrator_bias = 0.0
        self.last_output = None
