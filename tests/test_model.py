"""Tests for the kinematic bicycle model and decision vector layout."""

import math

import numpy as np
import pytest

from mpc_control.model import (
    NUMPY_OPS,
    HorizonLayout,
    horizon_residuals,
    kinematic_step,
    rollout,
)

LF = 2.67
DT = 0.1


def test_straight_line_step():
    """Zero steering on a straight path only advances x and v."""
    state = (0.0, 0.0, 0.0, 10.0, 0.0, 0.0)
    x, y, psi, v, cte, epsi = kinematic_step(state, 0.0, 1.0, [0.0, 0.0, 0.0, 0.0], DT, LF)

    assert x == pytest.approx(1.0)
    assert y == pytest.approx(0.0)
    assert psi == pytest.approx(0.0)
    assert v == pytest.approx(10.1)
    assert cte == pytest.approx(0.0)
    assert epsi == pytest.approx(0.0)


def test_positive_steering_increases_heading():
    state = (0.0, 0.0, 0.0, 10.0, 0.0, 0.0)
    _, _, psi, _, _, epsi = kinematic_step(state, 0.1, 0.0, [0.0, 0.0], DT, LF)

    expected = 10.0 / LF * 0.1 * DT
    assert psi == pytest.approx(expected)
    assert epsi == pytest.approx(expected)


def test_step_uses_path_offset_and_tangent():
    """cte' = f(x) - y + v*sin(epsi)*dt and epsi' = psi - atan(f'(x)) + yaw change."""
    coeffs = [1.0, 0.5, 0.0, 0.0]
    state = (2.0, 0.5, 0.1, 5.0, 0.3, 0.05)
    _, _, _, _, cte, epsi = kinematic_step(state, 0.0, 0.0, coeffs, DT, LF)

    assert cte == pytest.approx(2.0 - 0.5 + 5.0 * math.sin(0.05) * DT)
    assert epsi == pytest.approx(0.1 - math.atan(0.5))


def test_layout_sizes():
    layout = HorizonLayout(10)
    assert layout.n_vars == 6 * 10 + 2 * 9
    assert layout.n_actuations == 9
    assert layout.delta_start == 60
    assert layout.a_start == 69


def test_layout_pack_unpack_inverse():
    layout = HorizonLayout(4)
    states = np.arange(24, dtype=float).reshape(4, 6)
    actuations = -np.arange(6, dtype=float).reshape(3, 2)

    z = layout.pack(states, actuations)
    unpacked_states, unpacked_actuations = layout.unpack(z)

    assert unpacked_states == pytest.approx(states)
    assert unpacked_actuations == pytest.approx(actuations)
    assert layout.state(z, 2) == tuple(states[2])
    assert layout.actuation(z, 1) == tuple(actuations[1])


def test_layout_rejects_wrong_length():
    with pytest.raises(ValueError):
        HorizonLayout(4).unpack(np.zeros(5))


def test_rollout_satisfies_horizon_constraints():
    """A model rollout packed into a decision vector has zero residuals."""
    layout = HorizonLayout(6)
    coeffs = [0.5, 0.1, -0.01, 0.0005]
    initial = [0.0, 0.0, 0.0, 12.0, 0.5, -math.atan(0.1)]
    actuations = np.column_stack([np.linspace(-0.1, 0.1, 5), np.linspace(0.5, -0.5, 5)])

    states = rollout(initial, actuations, coeffs, DT, LF)
    z = layout.pack(states, actuations)
    residuals = horizon_residuals(z, layout, initial, coeffs, DT, LF, NUMPY_OPS)

    assert states.shape == (6, 6)
    assert len(residuals) == 6 * 6
    assert np.max(np.abs(residuals)) == pytest.approx(0.0, abs=1e-12)


def test_residuals_detect_wrong_initial_state():
    layout = HorizonLayout(3)
    initial = [0.0, 0.0, 0.0, 5.0, 0.0, 0.0]
    states = rollout(initial, np.zeros((2, 2)), [0.0, 0.0], DT, LF)
    z = layout.pack(states, np.zeros((2, 2)))

    residuals = horizon_residuals(z, layout, [0.0, 0.0, 0.0, 6.0, 0.0, 0.0], [0.0, 0.0], DT, LF)

    assert residuals[3] == pytest.approx(-1.0)
