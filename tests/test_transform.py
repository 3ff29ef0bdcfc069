"""Tests for world/body frame transforms."""

import math

import numpy as np
import pytest

from mpc_control.transform import to_body_frame, to_world_frame


def test_identity_pose_leaves_points_unchanged():
    """At the origin with zero heading the frames coincide."""
    x, y = to_body_frame(0.0, 0.0, 0.0, [1.0, 2.0, -3.0], [0.5, -1.0, 4.0])
    assert x == pytest.approx([1.0, 2.0, -3.0])
    assert y == pytest.approx([0.5, -1.0, 4.0])


def test_point_ahead_maps_to_positive_x():
    """A point straight along the heading lands on the body x axis."""
    x, y = to_body_frame(1.0, 2.0, math.pi / 2, [1.0], [5.0])
    assert x[0] == pytest.approx(3.0)
    assert y[0] == pytest.approx(0.0, abs=1e-12)


def test_point_to_the_left_maps_to_positive_y():
    """Facing +y in world frame, a point at smaller world x is on the left."""
    x, y = to_body_frame(1.0, 2.0, math.pi / 2, [0.0], [2.0])
    assert x[0] == pytest.approx(0.0, abs=1e-12)
    assert y[0] == pytest.approx(1.0)


def test_preserves_count_and_order():
    ptsx = np.linspace(-5.0, 20.0, 7)
    ptsy = np.sin(ptsx)
    x, y = to_body_frame(3.0, -1.0, 0.7, ptsx, ptsy)
    assert len(x) == len(y) == 7
    # Distances from the vehicle are invariant under the transform
    assert np.hypot(x, y) == pytest.approx(np.hypot(ptsx - 3.0, ptsy + 1.0))


def test_world_frame_inverts_body_frame():
    ptsx = [10.0, 12.0, 15.0]
    ptsy = [-2.0, 0.0, 3.5]
    bx, by = to_body_frame(4.0, 1.5, -2.3, ptsx, ptsy)
    wx, wy = to_world_frame(4.0, 1.5, -2.3, bx, by)
    assert wx == pytest.approx(ptsx)
    assert wy == pytest.approx(ptsy)


def test_empty_waypoints():
    x, y = to_body_frame(1.0, 1.0, 0.3, [], [])
    assert len(x) == 0 and len(y) == 0
