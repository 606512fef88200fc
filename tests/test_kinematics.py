import pytest

from rescuebot.kinematics import (
    ArmConfig,
    ArmError,
    ArmErrorCode,
    angle_to_pulse,
    calculate_angles,
    forward_kinematics,
)


@pytest.fixture
def config():
    return ArmConfig()


@pytest.mark.parametrize("x, y", [(200.0, 0.0), (150.0, 150.0), (50.0, 200.0), (200.0, 50.0)])
def test_inverse_then_forward_round_trip(config, x, y):
    angles = calculate_angles(config, x, y)
    pos = forward_kinematics(config, angles.theta1, angles.theta2)
    assert pos.x == pytest.approx(x, abs=1e-6)
    assert pos.y == pytest.approx(y, abs=1e-6)


@pytest.mark.parametrize("x, y", [(200.0, 0.0), (150.0, 150.0), (50.0, 200.0)])
def test_angles_within_servo_limits(config, x, y):
    angles = calculate_angles(config, x, y)
    assert config.servo1_min_angle <= angles.theta1 <= config.servo1_max_angle
    assert config.servo2_min_angle <= angles.theta2 <= config.servo2_max_angle


UNREACHABLE_CASES = [
    (ArmConfig(), 300.0, 50.0, ArmErrorCode.OUT_OF_RANGE),
    (ArmConfig(L1=150.0, L2=100.0), 10.0, 0.0, ArmErrorCode.TOO_CLOSE),
    (ArmConfig(), 0.0, 0.0, ArmErrorCode.AT_ORIGIN),
    (ArmConfig(), 100.0, -100.0, ArmErrorCode.JOINT1_LIMIT),
    (ArmConfig(), 0.0, 120.0, ArmErrorCode.JOINT2_LIMIT),
]


@pytest.mark.parametrize("cfg, x, y, code", UNREACHABLE_CASES)
def test_unreachable_points_raise(cfg, x, y, code):
    with pytest.raises(ArmError) as info:
        calculate_angles(cfg, x, y)
    assert info.value.code is code
    assert str(info.value) == code.description()


def test_error_messages_distinct():
    messages = []
    for cfg, x, y, _ in UNREACHABLE_CASES:
        with pytest.raises(ArmError) as info:
            calculate_angles(cfg, x, y)
        messages.append(str(info.value))
    assert len(set(messages)) == len(UNREACHABLE_CASES)
    assert all(messages)


@pytest.mark.parametrize("servo_id", [0, 1, 2])
def test_pulse_range_ends(config, servo_id):
    lo = angle_to_pulse(config, servo_id, -100.0, True)
    hi = angle_to_pulse(config, servo_id, 100.0, True)
    assert lo == pytest.approx(500.0)
    assert hi == pytest.approx(2500.0)


def test_pulse_is_monotonic(config):
    pulses = [angle_to_pulse(config, 1, a, True) for a in (-1.0, -0.5, 0.0, 0.5, 1.0)]
    assert pulses == sorted(pulses)
    assert len(set(pulses)) == len(pulses)


def test_claw_pulse(config):
    assert angle_to_pulse(config, 3, 0.0, True) == 1000.0
    assert angle_to_pulse(config, 3, 0.0, False) == 2000.0


def test_unknown_servo_rejected(config):
    with pytest.raises(ValueError):
        angle_to_pulse(config, 7, 0.0, True)


def test_forward_straight_arm(config):
    pos = forward_kinematics(config, 0.0, 0.0)
    assert pos.x == pytest.approx(config.L1 + config.L2)
    assert pos.y == pytest.approx(0.0)