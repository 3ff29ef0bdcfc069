"""Tests for reference path fitting and evaluation."""

import math

import numpy as np
import pytest

from mpc_control.errors import FitError
from mpc_control.path import PathFitter, polyderiv, polyeval, polyfit, sample_path


def test_fit_recovers_cubic_coefficients():
    """Exact cubic data is reproduced to numerical precision."""
    coeffs = [0.5, -0.2, 0.03, -0.001]
    x = np.linspace(-5.0, 40.0, 8)
    y = coeffs[0] + coeffs[1] * x + coeffs[2] * x**2 + coeffs[3] * x**3

    fitted = polyfit(x, y, 3)

    assert fitted == pytest.approx(coeffs, rel=1e-6, abs=1e-9)


def test_fit_is_least_squares_for_noisy_data():
    """An overdetermined line fit matches numpy's least-squares solution."""
    rng = np.random.default_rng(0)
    x = np.linspace(0.0, 10.0, 30)
    y = 2.0 + 0.5 * x + rng.normal(0.0, 0.1, size=x.size)

    fitted = polyfit(x, y, 1)
    expected, *_ = np.linalg.lstsq(np.vander(x, 2, increasing=True), y, rcond=None)

    assert fitted == pytest.approx(expected)


def test_exact_point_count_interpolates():
    x = [0.0, 1.0, 2.0, 3.0]
    y = [1.0, 2.0, 0.0, 5.0]
    fitted = polyfit(x, y, 3)
    assert polyeval(fitted, np.array(x)) == pytest.approx(y)


def test_too_few_points_raises():
    with pytest.raises(FitError, match="at least 4 points"):
        polyfit([0.0, 1.0, 2.0], [0.0, 1.0, 4.0], 3)


def test_repeated_x_is_rank_deficient():
    """Waypoints stacked at one x cannot define y = f(x)."""
    with pytest.raises(FitError, match="Singular"):
        polyfit([5.0, 5.0, 5.0, 5.0], [0.0, 1.0, 2.0, 3.0], 3)


def test_non_finite_input_raises():
    with pytest.raises(FitError):
        polyfit([0.0, 1.0, math.nan, 3.0], [0.0, 1.0, 2.0, 3.0], 3)


def test_mismatched_lengths_raise():
    with pytest.raises(FitError):
        polyfit([0.0, 1.0, 2.0, 3.0], [0.0, 1.0], 1)


def test_polyeval_scalar_and_array():
    coeffs = [1.0, 2.0, 3.0]
    assert polyeval(coeffs, 2.0) == pytest.approx(17.0)
    assert polyeval(coeffs, np.array([0.0, 1.0])) == pytest.approx([1.0, 6.0])


def test_polyderiv():
    assert polyderiv([1.0, 2.0, 3.0, 4.0]) == [2.0, 6.0, 12.0]
    assert polyderiv([7.0]) == [0.0]


def test_sample_path():
    xs, ys = sample_path([1.0, 0.5, 0.0, 0.0], count=5, spacing=2.0)
    assert xs == pytest.approx([0.0, 2.0, 4.0, 6.0, 8.0])
    assert ys == pytest.approx([1.0, 2.0, 3.0, 4.0, 5.0])


def test_sample_constant_path_has_full_length():
    xs, ys = sample_path([3.0], count=4, spacing=1.0)
    assert len(ys) == 4
    assert ys == pytest.approx([3.0] * 4)


def test_fitter_min_points():
    assert PathFitter(3).min_points == 4
    assert PathFitter(1).min_points == 2
    with pytest.raises(ValueError):
        PathFitter(0)


def test_overflowing_fit_raises():
    """Waypoints so far away that x^3 overflows never yield NaN coefficients."""
    x = [1e110, 2e110, 3e110, 4e110]
    with pytest.raises(FitError, match="overflows"):
        polyfit(x, [0.0, 1.0, 2.0, 3.0], 3)
