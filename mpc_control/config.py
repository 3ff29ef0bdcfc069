"""Configuration parameters for the MPC path tracking controller.

This module centralizes all configuration parameters including:
- Vehicle and actuator parameters
- Prediction horizon and actuation latency
- Cost function weights
- Solver budget and failure fallback policy
- Visualization settings
- WebSocket server parameters

The module-level constants are the defaults. The controller itself never reads
them directly: it receives an MPCConfig, so every value can be overridden from
the command line or from code without touching the algorithm.
"""

import math
from dataclasses import dataclass, field, fields, replace
from typing import Any

# ============================================================================
# Vehicle Parameters
# ============================================================================

LF = 2.67
"""Distance from the vehicle's center of gravity to the front axle (meters).

Obtained by measuring the radius formed by driving the simulator vehicle in a
circle at constant steering angle and velocity on flat terrain. Together with
the steering limit it fixes the tightest turn the model can plan.
"""

MAX_STEERING_DEG = 25.0
"""Maximum physical steering angle (degrees)."""

MAX_STEERING = math.radians(MAX_STEERING_DEG)
"""Maximum physical steering angle (radians).

Steering commands sent to the vehicle are normalized by this value, so the
transport always sees a value in [-1, 1].
"""

THROTTLE_MIN = -1.0
"""Lower throttle/brake bound. Negative values brake."""

THROTTLE_MAX = 1.0
"""Upper throttle bound."""


# ============================================================================
# Horizon and Latency
# ============================================================================

HORIZON = 10
"""Number of discrete future steps N in the prediction horizon.

Tuning rationale:
- N * DT = 1s of look-ahead is enough to anticipate a curve at highway speed
- Longer horizons (20+) mostly add solve time: the fitted cubic is only valid
  over the span of the supplied waypoints
"""

DT = 0.1
"""Duration of one horizon step (seconds).

Matches the control period so that the warm start shifts by exactly one step
and a 100ms actuation latency covers exactly one actuator pair.
"""

LATENCY = 0.1
"""Actuation latency (seconds).

Commands take effect this long after they are issued. The actuator pairs
covering this window are fixed to the previously applied command instead of
being optimized.
"""

CONTROL_PERIOD = 0.1
"""Nominal time between two control cycles (seconds). Used by the integrator bias."""


# ============================================================================
# Cost Function
# ============================================================================

REF_SPEED = 20.0
"""Target cruising speed v_ref (m/s)."""

WEIGHT_CTE = 2000.0
"""Weight on squared cross-track error."""

WEIGHT_EPSI = 2000.0
"""Weight on squared heading error."""

WEIGHT_V = 1.0
"""Weight on squared deviation from REF_SPEED."""

WEIGHT_DELTA = 5.0
"""Weight on squared steering magnitude."""

WEIGHT_A = 5.0
"""Weight on squared acceleration magnitude."""

WEIGHT_DDELTA = 200.0
"""Weight on squared steering change between consecutive steps.

Tuning rationale:
- This is the main ride-comfort knob: higher values give smoother steering at
  the price of slower correction of cross-track error
- 200 keeps the vehicle from weaving at 20 m/s while still recovering a 1m
  offset within about two seconds
"""

WEIGHT_DA = 10.0
"""Weight on squared acceleration change between consecutive steps."""


# ============================================================================
# Reference Path
# ============================================================================

PATH_DEGREE = 3
"""Degree of the polynomial fitted to the body-frame waypoints."""

REFERENCE_POINTS = 100
"""Number of reference path samples returned for display."""

REFERENCE_SPACING = 1.0
"""Spacing along body-frame x between reference path samples (meters)."""


# ============================================================================
# Solver and Failure Handling
# ============================================================================

SOLVER_MAX_ITER = 150
"""Iteration cap for the NLP solver."""

SOLVER_MAX_CPU_TIME = 0.05
"""CPU time cap for one solve (seconds).

Keeps the whole cycle well under the 100ms control period. A solve that hits
the cap is reported as a failure and the fallback policy is applied.
"""

FALLBACK_POLICY = "hold"
"""Actuation applied when a solve fails.

- "hold": re-apply the previous command
- "brake": center the steering and decelerate with FALLBACK_DECELERATION
"""

FALLBACK_POLICIES = ("hold", "brake")

FALLBACK_DECELERATION = 0.2
"""Braking magnitude used by the "brake" fallback policy (throttle units)."""

INTEGRATOR_GAIN = 0.0
"""Gain of the optional integrator bias added to steering outside the optimizer.

The bias accumulates as bias -= INTEGRATOR_GAIN * cte * CONTROL_PERIOD.
Disabled by default: the gain and sign have not been validated on a vehicle.
A value around 0.001 was used during early simulator runs.
"""


# ============================================================================
# Visualization Colors
# ============================================================================

COLOR_ORANGE = "#f74823"
"""Primary color - actual values, measurements."""

COLOR_BLUE = "#2374f7"
"""Secondary color - reference, predictions."""

COLOR_CREAM = "#fffdee"
"""Light color for text and labels on dark backgrounds."""

COLOR_TAUPE = "#686a5f"
"""Neutral color for guides and grids."""

COLOR_DARK_BLUE = "#0d1b2a"
"""Dark background color."""

# Terminal color codes (ANSI escape sequences)
TERM_BLUE = "\033[38;2;35;116;247m"
"""Terminal color code for blue (RGB: 35, 116, 247)."""

TERM_RESET = "\033[0m"
"""Terminal color reset code."""


# ============================================================================
# WebSocket Server Configuration
# ============================================================================

SERVER_HOST = "127.0.0.1"
"""Interface the telemetry server binds to."""

SERVER_PORT = 4567
"""Port the simulator connects to."""

ACTUATION_DELAY = 0.1
"""Artificial delay before each reply (seconds).

Mimics real driving conditions where the car does not actuate commands
instantly. Should match LATENCY so the controller compensates for it.
"""

TELEMETRY_SPEED_SCALE = 0.44704
"""Factor converting reported telemetry speed to m/s (simulator reports mph)."""

RESEND_ON_INPUT_ERROR = True
"""Re-send the previous command when a telemetry message is rejected."""


# ============================================================================
# Configuration Objects
# ============================================================================


@dataclass(frozen=True)
class CostWeights:
    """Relative weights of the MPC objective terms."""

    cte: float = WEIGHT_CTE
    epsi: float = WEIGHT_EPSI
    v: float = WEIGHT_V
    delta: float = WEIGHT_DELTA
    a: float = WEIGHT_A
    ddelta: float = WEIGHT_DDELTA
    da: float = WEIGHT_DA


@dataclass(frozen=True)
class MPCConfig:
    """Complete configuration of one controller instance.

    Defaults come from the module-level constants above. Use with_overrides()
    to derive a validated variant.
    """

    horizon: int = HORIZON
    dt: float = DT
    lf: float = LF
    ref_speed: float = REF_SPEED
    max_steering: float = MAX_STEERING
    throttle_min: float = THROTTLE_MIN
    throttle_max: float = THROTTLE_MAX
    latency: float = LATENCY
    weights: CostWeights = field(default_factory=CostWeights)
    path_degree: int = PATH_DEGREE
    solver_max_iter: int = SOLVER_MAX_ITER
    solver_max_cpu_time: float = SOLVER_MAX_CPU_TIME
    fallback_policy: str = FALLBACK_POLICY
    fallback_deceleration: float = FALLBACK_DECELERATION
    integrator_gain: float = INTEGRATOR_GAIN
    control_period: float = CONTROL_PERIOD
    reference_points: int = REFERENCE_POINTS
    reference_spacing: float = REFERENCE_SPACING

    @property
    def latency_steps(self) -> int:
        """Number of leading actuator pairs covered by the actuation latency."""
        if self.latency <= 0.0:
            return 0
        # Tolerance keeps 0.1 / 0.1 from rounding up to 2
        return int(math.ceil(self.latency / self.dt - 1e-9))

    @property
    def throttle_scale(self) -> float:
        """Magnitude used to normalize acceleration into a [-1, 1] throttle command."""
        return max(abs(self.throttle_min), abs(self.throttle_max))

    def validate(self) -> None:
        """Check the configuration for values the controller cannot work with.

        Raises:
            ValueError: If any parameter is out of range.
        """
        if self.horizon < 3:
            raise ValueError(f"horizon must be at least 3, got {self.horizon}")
        if self.dt <= 0.0:
            raise ValueError(f"dt must be positive, got {self.dt}")
        if self.lf <= 0.0:
            raise ValueError(f"lf must be positive, got {self.lf}")
        if self.max_steering <= 0.0:
            raise ValueError(f"max_steering must be positive, got {self.max_steering}")
        if self.throttle_min >= self.throttle_max:
            raise ValueError(
                f"throttle_min ({self.throttle_min}) must be below throttle_max ({self.throttle_max})"
            )
        if self.latency < 0.0:
            raise ValueError(f"latency must be non-negative, got {self.latency}")
        if self.latency_steps > self.horizon - 2:
            raise ValueError(
                f"latency of {self.latency}s covers {self.latency_steps} steps, "
                f"leaving no free actuation in a horizon of {self.horizon}"
            )
        if self.path_degree < 1:
            raise ValueError(f"path_degree must be at least 1, got {self.path_degree}")
        if self.fallback_policy not in FALLBACK_POLICIES:
            raise ValueError(
                f"Unknown fallback policy: {self.fallback_policy}. "
                f"Available: {', '.join(FALLBACK_POLICIES)}"
            )
        if self.fallback_deceleration < 0.0:
            raise ValueError("fallback_deceleration must be non-negative")
        if self.solver_max_iter < 1 or self.solver_max_cpu_time <= 0.0:
            raise ValueError("solver budget must allow at least one iteration")
        for weight in fields(self.weights):
            if getattr(self.weights, weight.name) < 0.0:
                raise ValueError(f"cost weight '{weight.name}' must be non-negative")

    def with_overrides(self, **overrides: Any) -> "MPCConfig":
        """Return a validated copy with the given fields replaced.

        Cost weights can be overridden individually with a ``weight_`` prefix,
        e.g. ``with_overrides(weight_cte=500.0)``.

        Raises:
            ValueError: If a key is unknown or the result fails validation.
        """
        config_fields = {f.name for f in fields(self)}
        weight_fields = {f.name for f in fields(CostWeights)}

        weight_overrides = {}
        config_overrides = {}
        for key, value in overrides.items():
            if key.startswith("weight_") and key[len("weight_"):] in weight_fields:
                weight_overrides[key[len("weight_"):]] = value
            elif key in config_fields:
                config_overrides[key] = value
            else:
                raise ValueError(f"Unknown configuration parameter: {key}")

        if weight_overrides:
            base_weights = config_overrides.get("weights", self.weights)
            config_overrides["weights"] = replace(base_weights, **weight_overrides)

        config = replace(self, **config_overrides)
        config.validate()
        return config
