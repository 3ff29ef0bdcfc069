"""Tests for cross-track and heading error estimation."""

import math

import pytest

from mpc_control.estimator import cross_track_error, heading_error, tracking_errors


def test_on_path_has_zero_errors():
    assert tracking_errors([0.0, 0.0, 0.0, 0.0]) == (0.0, 0.0)


def test_cross_track_error_is_path_offset_at_vehicle():
    assert cross_track_error([0.75, 0.1, -0.02, 0.001]) == pytest.approx(0.75)


def test_heading_error_is_negative_path_angle():
    """A path veering left (positive slope) gives a negative heading error."""
    epsi = heading_error([0.0, 0.2, 5.0, -3.0])
    assert epsi == pytest.approx(-math.atan(0.2))
    assert epsi < 0.0


def test_higher_order_terms_do_not_affect_errors():
    cte, epsi = tracking_errors([-1.5, -0.4, 10.0, 10.0])
    assert cte == pytest.approx(-1.5)
    assert epsi == pytest.approx(math.atan(0.4))
