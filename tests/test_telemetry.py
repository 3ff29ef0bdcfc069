"""Tests for telemetry parsing and reply messages."""

import math

import pytest

from mpc_control.errors import InputError
from mpc_control.telemetry import ControlOutput, Telemetry


def payload(**overrides):
    data = {
        "x": 10.0,
        "y": -5.0,
        "psi": 0.3,
        "speed": 25.0,
        "ptsx": [11.0, 15.0, 20.0, 25.0],
        "ptsy": [-5.0, -4.0, -2.5, 0.0],
    }
    data.update(overrides)
    return data


def test_from_message_parses_fields():
    telemetry = Telemetry.from_message(payload())
    assert telemetry.x == 10.0
    assert telemetry.y == -5.0
    assert telemetry.psi == 0.3
    assert telemetry.speed == 25.0
    assert telemetry.ptsx == [11.0, 15.0, 20.0, 25.0]


def test_speed_is_scaled():
    telemetry = Telemetry.from_message(payload(speed=10.0), speed_scale=0.44704)
    assert telemetry.speed == pytest.approx(4.4704)


def test_numeric_strings_are_accepted():
    telemetry = Telemetry.from_message(payload(x="1.5", ptsx=["1", "2", "3", "4"]))
    assert telemetry.x == 1.5
    assert telemetry.ptsx == [1.0, 2.0, 3.0, 4.0]


@pytest.mark.parametrize(
    "data, match",
    [
        ({k: v for k, v in payload().items() if k != "psi"}, "missing 'psi'"),
        (payload(speed="fast"), "not numeric"),
        (payload(x=math.inf), "not finite"),
        (payload(ptsx=[1.0, 2.0, None, 4.0]), "not numeric"),
        (payload(ptsx=[1.0, 2.0, 3.0]), "differ in length"),
        (payload(ptsy="1,2,3,4"), "list of numbers"),
    ],
)
def test_malformed_telemetry_raises(data, match):
    with pytest.raises(InputError, match=match):
        Telemetry.from_message(data)


def test_non_object_payload_raises():
    with pytest.raises(InputError):
        Telemetry.from_message([1, 2, 3])


def test_input_error_is_a_value_error():
    with pytest.raises(ValueError):
        Telemetry.from_message({})


def test_validate_requires_enough_waypoints():
    telemetry = Telemetry(x=0.0, y=0.0, psi=0.0, speed=1.0, ptsx=[1.0, 2.0, 3.0], ptsy=[0.0, 0.0, 0.0])
    telemetry.validate(3)
    with pytest.raises(InputError, match="at least 4 waypoints"):
        telemetry.validate(4)


def test_control_output_message():
    output = ControlOutput(
        steering=0.1,
        acceleration=0.5,
        steering_command=0.23,
        throttle_command=0.5,
        predicted_x=[0.0, 1.0],
        predicted_y=[0.0, 0.1],
        reference_x=[0.0, 1.0, 2.0],
        reference_y=[0.2, 0.2, 0.2],
    )

    message = output.to_message()

    assert message == {
        "message_type": "steer",
        "steering_angle": 0.23,
        "throttle": 0.5,
        "mpc_x": [0.0, 1.0],
        "mpc_y": [0.0, 0.1],
        "next_x": [0.0, 1.0, 2.0],
        "next_y": [0.2, 0.2, 0.2],
    }
