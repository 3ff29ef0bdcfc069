"""Error taxonomy for the MPC path tracking controller.

Every failure inside a control cycle maps onto one of these exceptions, and each
one has a local recovery in the cycle pipeline (controller.py):

- InputError: malformed or insufficient telemetry. The cycle is skipped and the
  previous command may be re-sent by the transport.
- FitError: the reference polynomial could not be fitted. The previous
  coefficients are reused.
- SolveFailed: the NLP solver did not converge within its budget. The fallback
  actuation policy is applied.
"""

from typing import Optional


class MPCError(Exception):
    """Base class for all controller errors."""


class InputError(MPCError, ValueError):
    """Raised when telemetry or solver inputs are malformed or insufficient."""


class FitError(MPCError):
    """Raised when the reference path polynomial cannot be fitted."""


class SolveFailed(MPCError):
    """Raised when the optimizer fails to produce a usable solution.

    Attributes:
        status: Solver return status string (e.g. "Maximum_Iterations_Exceeded").
        iterations: Number of solver iterations performed, if known.
    """

    def __init__(self, status: str, iterations: Optional[int] = None) -> None:
        self.status = status
        self.iterations = iterations
        message = f"MPC solve failed: {status}"
        if iterations is not None:
            message += f" after {iterations} iterations"
        super().__init__(message)
