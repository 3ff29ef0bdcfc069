"""Reference path fitting for MPC path tracking.

This module fits a low-degree polynomial y = f(x) to the body-frame waypoints
and provides the evaluation helpers used by the error estimator, the cost
function and the display output. Coefficients are always ordered lowest-degree
term first: f(x) = c0 + c1*x + c2*x^2 + c3*x^3.
"""

from typing import Any, Sequence, Tuple

import numpy as np
import numpy.typing as npt

from .errors import FitError

RANK_TOLERANCE = 1e-10
"""Relative size below which a diagonal entry of R marks the fit as singular."""


def polyfit(
    xvals: Sequence[float], yvals: Sequence[float], degree: int
) -> npt.NDArray[np.float64]:
    """Least-squares polynomial fit through QR decomposition of the Vandermonde matrix.

    Solves min ||A c - y|| with A[i, j] = x_i^j by factoring A = QR and
    back-substituting R c = Q^T y.

    Args:
        xvals: Sample x coordinates
        yvals: Sample y coordinates (same length as xvals)
        degree: Polynomial degree (>= 1)

    Returns:
        Coefficient array of length degree + 1, lowest-degree term first

    Raises:
        FitError: If there are fewer than degree + 1 points, the inputs or the
            result are not finite, or the design matrix is rank deficient
            (e.g. repeated x)
    """
    x = np.asarray(xvals, dtype=float)
    y = np.asarray(yvals, dtype=float)

    if x.shape != y.shape or x.ndim != 1:
        raise FitError(f"x and y must be 1-D sequences of equal length, got {x.shape} and {y.shape}")
    if degree < 1:
        raise FitError(f"Fit degree must be at least 1, got {degree}")
    if len(x) < degree + 1:
        raise FitError(f"Need at least {degree + 1} points for a degree {degree} fit, got {len(x)}")
    if not (np.all(np.isfinite(x)) and np.all(np.isfinite(y))):
        raise FitError("Waypoints contain non-finite values")

    with np.errstate(over="ignore", invalid="ignore"):
        A = np.vander(x, degree + 1, increasing=True)
    if not np.all(np.isfinite(A)):
        raise FitError("Waypoints too far from the vehicle: fit matrix overflows")
    Q, R = np.linalg.qr(A)

    # Rank check on the triangular factor
    diag = np.abs(np.diag(R))
    if diag.max() == 0.0 or diag.min() < RANK_TOLERANCE * diag.max():
        raise FitError("Singular fit matrix: waypoints are degenerate for this degree")

    coeffs = np.linalg.solve(R, Q.T @ y)
    if not np.all(np.isfinite(coeffs)):
        raise FitError("Fit produced non-finite coefficients")
    return coeffs


def polyeval(coeffs: Sequence[Any], x: Any) -> Any:
    """Evaluate a polynomial with Horner's scheme.

    Works on floats, numpy arrays and symbolic solver expressions alike, since
    it only uses + and *.

    Args:
        coeffs: Coefficients, lowest-degree term first
        x: Evaluation point(s)

    Returns:
        f(x)
    """
    result = 0.0
    for c in reversed(list(coeffs)):
        result = result * x + c
    return result


def polyderiv(coeffs: Sequence[Any]) -> list:
    """Coefficients of the derivative polynomial, lowest-degree term first."""
    coeffs = list(coeffs)
    if len(coeffs) <= 1:
        return [0.0]
    return [i * coeffs[i] for i in range(1, len(coeffs))]


def sample_path(
    coeffs: Sequence[float], count: int, spacing: float
) -> Tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    """Sample the fitted path ahead of the vehicle for display.

    Args:
        coeffs: Path coefficients, lowest-degree term first
        count: Number of samples
        spacing: Distance between samples along body-frame x (m)

    Returns:
        Tuple of (x, y) arrays starting at x = 0
    """
    xs = np.arange(count, dtype=float) * spacing
    ys = np.asarray(polyeval(np.asarray(coeffs, dtype=float), xs), dtype=float)
    return xs, np.broadcast_to(ys, xs.shape).copy()


class PathFitter:
    """Fits the reference path polynomial to body-frame waypoints.

    Attributes:
        degree: Polynomial degree of the fit
    """

    def __init__(self, degree: int = 3):
        if degree < 1:
            raise ValueError(f"Fit degree must be at least 1, got {degree}")
        self.degree = degree

    @property
    def min_points(self) -> int:
        """Smallest number of waypoints this fitter accepts."""
        return self.degree + 1

    def fit(self, xvals: Sequence[float], yvals: Sequence[float]) -> npt.NDArray[np.float64]:
        """Fit the reference path.

        Raises:
            FitError: See polyfit()
        """
        return polyfit(xvals, yvals, self.degree)
