import math

import pytest

from rescuebot.arm import Arm, ArmState, ClawState
from rescuebot.kinematics import (
    ArmConfig,
    ArmError,
    ArmErrorCode,
    angle_to_pulse,
    calculate_angles,
    forward_kinematics,
)
from rescuebot.sensor import SensorSystem
from rescuebot.servo import ServoBank


class FakeClock:
    def __init__(self) -> None:
        self.now = 0

    def __call__(self) -> int:
        return self.now


class Detector:
    def __init__(self, value: bool) -> None:
        self.value = value

    def __call__(self) -> bool:
        return self.value


def make_arm(detected=True, sensors=None):
    clock = FakeClock()
    servos = ServoBank(clock=clock)
    detector = Detector(detected)
    arm = Arm(servos=servos, sensors=sensors, object_detector=detector, clock=clock)
    return arm, clock, servos, detector


def run_until_idle(arm, clock, step=100, limit=200):
    for _ in range(limit):
        if not arm.is_moving():
            return
        clock.now += step
        arm.task()


def test_reset_heads_home_with_open_claw():
    arm, _, _, _ = make_arm()
    assert arm.state == ArmState.MOVING
    assert arm.claw_state == ClawState.OPENING
    assert (arm.target_pos.x, arm.target_pos.y) == (200.0, 0.0)
    assert arm.has_object is False
    assert arm.error_code == ArmErrorCode.NONE


def test_open_claw_commands_open_pulse():
    arm, _, servos, _ = make_arm()
    assert servos.servos[2].target_pulse == arm.config.claw_open_pulse


def test_move_reaches_home_target():
    arm, clock, _, _ = make_arm()
    target = calculate_angles(arm.config, 200.0, 0.0)
    run_until_idle(arm, clock)
    assert arm.state == ArmState.IDLE
    assert arm.is_at_position(200.0, 0.0, 5.0)
    assert arm.current_angles.theta1 == pytest.approx(target.theta1)
    assert arm.current_angles.theta2 == pytest.approx(target.theta2)


def test_move_times_out():
    arm, clock, _, _ = make_arm()
    clock.now += 6000
    arm.task()
    assert arm.has_error()
    assert arm.error_code == ArmErrorCode.MOVE_TIMEOUT
    assert arm.error_string() == ArmErrorCode.MOVE_TIMEOUT.description()


def test_move_to_out_of_range_raises():
    arm, _, _, _ = make_arm()
    with pytest.raises(ArmError) as info:
        arm.move_to(1000.0, 0.0)
    assert info.value.code == ArmErrorCode.OUT_OF_RANGE
    assert arm.error_code == ArmErrorCode.OUT_OF_RANGE
    assert (arm.target_pos.x, arm.target_pos.y) == (200.0, 0.0)


def test_move_to_angles_sets_forward_target():
    arm, _, _, _ = make_arm()
    arm.move_to_angles(0.2, 1.0)
    expected = forward_kinematics(arm.config, 0.2, 1.0)
    assert arm.target_pos.x == pytest.approx(expected.x)
    assert arm.target_pos.y == pytest.approx(expected.y)
    assert arm.is_moving()


def test_move_to_angles_out_of_range_raises():
    arm, _, _, _ = make_arm()
    with pytest.raises(ArmError) as info:
        arm.move_to_angles(0.0, -0.5)
    assert info.value.code == ArmErrorCode.ANGLE_LIMIT
    assert arm.error_code == ArmErrorCode.ANGLE_LIMIT


def test_stop_updates_position_from_joints():
    arm, _, _, _ = make_arm()
    arm.stop()
    assert arm.state == ArmState.IDLE
    expected = forward_kinematics(arm.config, 0.0, 0.0)
    assert arm.current_pos.x == pytest.approx(expected.x)
    assert arm.current_pos.y == pytest.approx(expected.y)


def test_grab_refused_while_moving():
    arm, _, _, _ = make_arm()
    assert arm.grab() is False
    assert arm.state == ArmState.MOVING


def test_grab_success_leads_to_holding():
    arm, clock, servos, _ = make_arm(detected=True)
    run_until_idle(arm, clock)
    assert arm.grab() is True
    assert arm.state == ArmState.GRABBING
    assert servos.servos[2].target_pulse == arm.config.claw_close_pulse
    assert arm.is_holding()
    clock.now += 600
    arm.task()
    assert arm.claw_state == ClawState.CLOSED
    assert arm.state == ArmState.HOLDING


def test_grab_without_object_returns_to_idle():
    arm, clock, _, _ = make_arm(detected=False)
    run_until_idle(arm, clock)
    arm.grab()
    clock.now += 600
    arm.task()
    assert arm.state == ArmState.IDLE
    assert arm.claw_state == ClawState.CLOSED
    assert arm.is_holding() is False


def test_object_lost_while_holding():
    arm, clock, _, detector = make_arm(detected=True)
    run_until_idle(arm, clock)
    arm.grab()
    clock.now += 600
    arm.task()
    detector.value = False
    clock.now += 100
    arm.task()
    assert arm.has_error()
    assert arm.error_code == ArmErrorCode.OBJECT_LOST
    assert arm.is_holding() is False


def test_release_without_object_is_refused():
    arm, clock, _, _ = make_arm(detected=False)
    run_until_idle(arm, clock)
    assert arm.release() is False


def test_release_cycle():
    arm, clock, _, _ = make_arm(detected=True)
    run_until_idle(arm, clock)
    arm.grab()
    clock.now += 2500
    arm.task()
    assert arm.state == ArmState.IDLE
    assert arm.is_holding()
    assert arm.release() is True
    assert arm.state == ArmState.RELEASING
    assert arm.claw_state == ClawState.OPENING
    clock.now += 2500
    arm.task()
    assert arm.state == ArmState.IDLE
    assert arm.claw_state == ClawState.OPEN
    assert arm.is_holding() is False


def test_rotate_out_of_range_raises():
    arm, _, _, _ = make_arm()
    with pytest.raises(ArmError) as info:
        arm.rotate(3.0)
    assert info.value.code == ArmErrorCode.BASE_ANGLE_LIMIT


def test_rotate_sets_target_and_moves():
    arm, clock, _, _ = make_arm()
    run_until_idle(arm, clock)
    arm.rotate(0.5)
    assert arm.target_angles.theta0 == 0.5
    assert arm.is_moving()


def test_rotate_to_angle_clamps():
    arm, _, _, _ = make_arm()
    arm.rotate_to_angle(5.0)
    assert arm.current_angles.theta0 == arm.config.servo0_max_angle
    assert arm.target_angles.theta0 == arm.config.servo0_max_angle


def test_rotate_to_degrees_converts():
    arm, _, _, _ = make_arm()
    arm.rotate_to_degrees(45.0)
    assert arm.current_angles.theta0 == pytest.approx(math.pi / 4)


def test_set_servo_angle_records_joint_and_pulse():
    arm, _, servos, _ = make_arm()
    arm.set_servo_angle(1, 0.3)
    assert arm.current_angles.theta1 == 0.3
    assert servos.servos[0].target_pulse == pytest.approx(
        angle_to_pulse(arm.config, 1, 0.3, True)
    )


def test_set_servo_angle_unknown_id():
    arm, _, _, _ = make_arm()
    with pytest.raises(ValueError):
        arm.set_servo_angle(7, 0.0)


def test_move_to_grab_position_reads_distance():
    sensors = SensorSystem(distance_reader=lambda: 120)
    arm, _, _, _ = make_arm(sensors=sensors)
    arm.move_to_grab_position()
    assert sensors.distance_mm == 120
    assert (arm.target_pos.x, arm.target_pos.y) == (200.0, 50.0)


def test_move_to_rest_target():
    arm, _, _, _ = make_arm()
    arm.move_to_rest()
    assert (arm.target_pos.x, arm.target_pos.y) == (100.0, 200.0)