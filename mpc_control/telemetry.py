"""Telemetry input and actuation output of the controller.

Telemetry carries the vehicle pose, speed and the upcoming reference waypoints
in world frame. ControlOutput carries the normalized commands plus the
predicted trajectory and sampled reference path, both in body frame and both
for display only.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from .errors import InputError


def _as_float(data: Dict[str, Any], key: str) -> float:
    try:
        value = float(data[key])
    except KeyError:
        raise InputError(f"Telemetry is missing '{key}'") from None
    except (TypeError, ValueError):
        raise InputError(f"Telemetry field '{key}' is not numeric: {data[key]!r}") from None
    if not math.isfinite(value):
        raise InputError(f"Telemetry field '{key}' is not finite: {value}")
    return value


def _as_float_list(data: Dict[str, Any], key: str) -> List[float]:
    if key not in data:
        raise InputError(f"Telemetry is missing '{key}'")
    values = data[key]
    if isinstance(values, (str, bytes)) or not isinstance(values, Sequence):
        raise InputError(f"Telemetry field '{key}' must be a list of numbers")
    return [_as_float({key: v}, key) for v in values]


@dataclass
class Telemetry:
    """One telemetry sample.

    Attributes:
        x: Vehicle x position, world frame (m)
        y: Vehicle y position, world frame (m)
        psi: Vehicle heading, world frame (rad)
        speed: Vehicle speed (m/s)
        ptsx: Waypoint x coordinates, world frame (m)
        ptsy: Waypoint y coordinates, world frame (m)
    """

    x: float
    y: float
    psi: float
    speed: float
    ptsx: List[float] = field(default_factory=list)
    ptsy: List[float] = field(default_factory=list)

    @classmethod
    def from_message(cls, data: Dict[str, Any], speed_scale: float = 1.0) -> "Telemetry":
        """Build telemetry from a decoded message payload.

        Args:
            data: Message payload with keys x, y, psi, speed, ptsx, ptsy
            speed_scale: Factor converting the reported speed to m/s

        Raises:
            InputError: If a field is missing, non-numeric or non-finite, or the
                waypoint sequences differ in length
        """
        if not isinstance(data, dict):
            raise InputError(f"Telemetry payload must be an object, got {type(data).__name__}")

        telemetry = cls(
            x=_as_float(data, "x"),
            y=_as_float(data, "y"),
            psi=_as_float(data, "psi"),
            speed=_as_float(data, "speed") * speed_scale,
            ptsx=_as_float_list(data, "ptsx"),
            ptsy=_as_float_list(data, "ptsy"),
        )
        if len(telemetry.ptsx) != len(telemetry.ptsy):
            raise InputError(
                f"Waypoint sequences differ in length: {len(telemetry.ptsx)} x vs {len(telemetry.ptsy)} y"
            )
        return telemetry

    def validate(self, min_points: int) -> None:
        """Check that there are enough waypoints to fit the reference path.

        Raises:
            InputError: If the waypoint sequences are unequal or too short
        """
        if len(self.ptsx) != len(self.ptsy):
            raise InputError(
                f"Waypoint sequences differ in length: {len(self.ptsx)} x vs {len(self.ptsy)} y"
            )
        if len(self.ptsx) < min_points:
            raise InputError(f"Need at least {min_points} waypoints, got {len(self.ptsx)}")


@dataclass
class ControlOutput:
    """Outcome of one control cycle.

    Attributes:
        steering: Applied steering angle (rad)
        acceleration: Applied acceleration/throttle
        steering_command: Steering normalized to [-1, 1]
        throttle_command: Throttle normalized to [-1, 1]
        cte: Cross-track error at the start of the cycle (m)
        epsi: Heading error at the start of the cycle (rad)
        predicted_x, predicted_y: Predicted body-frame trajectory
        reference_x, reference_y: Sampled body-frame reference path
        coefficients: Path coefficients used this cycle
        status: "converged", or "fallback:<policy>" after a failed solve
        fit_failed: True if the previous path coefficients were reused
        solve_failed: True if the fallback policy was applied
        iterations: Solver iterations, if known
        solve_time: Solver wall-clock time (seconds)
        objective: Objective of the applied plan (nan after a failure)
    """

    steering: float
    acceleration: float
    steering_command: float
    throttle_command: float
    cte: float = 0.0
    epsi: float = 0.0
    predicted_x: List[float] = field(default_factory=list)
    predicted_y: List[float] = field(default_factory=list)
    reference_x: List[float] = field(default_factory=list)
    reference_y: List[float] = field(default_factory=list)
    coefficients: List[float] = field(default_factory=list)
    status: str = "converged"
    fit_failed: bool = False
    solve_failed: bool = False
    iterations: Optional[int] = None
    solve_time: float = 0.0
    objective: float = math.nan

    def to_message(self) -> Dict[str, Any]:
        """Encode the actuation reply sent back over the transport."""
        return {
            "message_type": "steer",
            "steering_angle": self.steering_command,
            "throttle": self.throttle_command,
            "mpc_x": list(self.predicted_x),
            "mpc_y": list(self.predicted_y),
            "next_x": list(self.reference_x),
            "next_y": list(self.reference_y),
        }
