"""State machine of the two-link arm with a rotating base and a claw."""

from __future__ import annotations

import math
import time
from collections.abc import Callable
from enum import IntEnum

from rescuebot.kinematics import (
    ArmAngles,
    ArmConfig,
    ArmError,
    ArmErrorCode,
    ArmPosition,
    angle_to_pulse,
    calculate_angles,
    forward_kinematics,
)
from rescuebot.sensor import SensorSystem
from rescuebot.servo import ServoBank

ARM_MOVE_TIMEOUT = 5000
ARM_GRAB_TIMEOUT = 2000
ARM_RELEASE_TIMEOUT = 2000
CLAW_ACTION_MS = 500

ARM_HOME = (200.0, 0.0)
ARM_REST = (100.0, 200.0)
ARM_GRAB = (200.0, 50.0)
ARM_PUT = (100.0, -100.0)

ARM_POSITION_TOLERANCE = 5.0
BASE_ANGLE_TOLERANCE = 0.01

BASE_SERVO = 0
CLAW_SERVO = 3


class ArmState(IntEnum):
    IDLE = 0
    MOVING = 1
    GRABBING = 2
    HOLDING = 3
    RELEASING = 4
    ERROR = 5


class ClawState(IntEnum):
    OPEN = 0
    CLOSING = 1
    CLOSED = 2
    OPENING = 3


def _monotonic_ms() -> int:
    return int(time.monotonic() * 1000)


def _step(delta: float, max_step: float) -> float:
    if abs(delta) > max_step:
        return max_step if delta > 0 else -max_step
    return delta


class Arm:
    """The arm and its claw, driven by :meth:`task` from the main loop.

    ``servos`` receives every pulse the arm commands, ``sensors`` supplies the
    range finder, ``object_detector`` reports whether the claw holds something
    and ``clock`` returns a millisecond tick count.
    """

    def __init__(
        self,
        config: ArmConfig | None = None,
        servos: ServoBank | None = None,
        sensors: SensorSystem | None = None,
        object_detector: Callable[[], bool] | None = None,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self.config = config or ArmConfig()
        self._servos = servos
        self._sensors = sensors
        self._object_detector = object_detector
        self._clock = clock or _monotonic_ms
        self.reset()

    # Hardware helpers

    def _send_pulse(self, servo_id: int, pulse: float) -> None:
        if self._servos is not None:
            self._servos.set_pulse(servo_id, pulse)

    def _object_detected(self) -> bool:
        return bool(self._object_detector()) if self._object_detector is not None else False

    def _claw_open(self) -> bool:
        return self.claw_state in (ClawState.OPEN, ClawState.OPENING)

    def _pulse_for(self, servo_id: int, angle: float) -> float:
        return angle_to_pulse(self.config, servo_id, angle, self._claw_open())

    def _update_position(self) -> None:
        pos = forward_kinematics(
            self.config, self.current_angles.theta1, self.current_angles.theta2
        )
        self.current_pos = ArmPosition(pos.x, pos.y)

    def _begin_action(self, state: ArmState, timeout: int) -> None:
        self.state = state
        self.action_start = self._clock()
        self.action_timeout = timeout

    def _fail(self, code: ArmErrorCode) -> ArmError:
        self.error_code = code
        return ArmError(code)

    # Setup

    def reset(self) -> None:
        """Restore the initial state, open the claw and head for home."""
        self.state = ArmState.IDLE
        self.claw_state = ClawState.OPEN
        self.has_object = False
        self.error_code = ArmErrorCode.NONE

        self.current_pos = ArmPosition()
        self.target_pos = ArmPosition()
        self.current_angles = ArmAngles()
        self.target_angles = ArmAngles()

        self.action_start = 0
        self.action_timeout = 0
        self.last_update = self._clock()

        self.open_claw()
        self.move_to_home()

    def set_servo_angle(self, servo_id: int, angle: float) -> None:
        """Command a servo to an angle and remember it for joints 1 and 2."""
        if not 0 <= servo_id <= CLAW_SERVO:
            raise ValueError(f"unknown servo id {servo_id}")
        self._send_pulse(servo_id, self._pulse_for(servo_id, angle))
        if servo_id == 1:
            self.current_angles.theta1 = angle
        elif servo_id == 2:
            self.current_angles.theta2 = angle

    # Motion

    def move_to(self, x: float, y: float) -> None:
        """Start moving the tip to ``(x, y)``; raises :class:`ArmError` if unreachable."""
        try:
            angles = calculate_angles(self.config, x, y)
        except ArmError as exc:
            self.error_code = exc.code
            raise
        self.target_pos = ArmPosition(x, y)
        self.target_angles = angles
        self._begin_action(ArmState.MOVING, ARM_MOVE_TIMEOUT)

    def move_to_angles(self, theta1: float, theta2: float) -> None:
        """Start moving to the given joint angles; raises :class:`ArmError` if out of range."""
        cfg = self.config
        if not (
            cfg.servo1_min_angle <= theta1 <= cfg.servo1_max_angle
            and cfg.servo2_min_angle <= theta2 <= cfg.servo2_max_angle
        ):
            raise self._fail(ArmErrorCode.ANGLE_LIMIT)
        self.target_angles.theta1 = theta1
        self.target_angles.theta2 = theta2
        pos = forward_kinematics(cfg, theta1, theta2)
        self.target_pos = ArmPosition(pos.x, pos.y)
        self._begin_action(ArmState.MOVING, ARM_MOVE_TIMEOUT)

    def stop(self) -> None:
        """Halt a move where the joints currently are."""
        if self.state == ArmState.MOVING:
            self._update_position()
            self.state = ArmState.IDLE

    # Claw

    def open_claw(self) -> None:
        self.claw_state = ClawState.OPENING
        self._send_pulse(CLAW_SERVO, self.config.claw_open_pulse)
        self.has_object = False

    def close_claw(self) -> None:
        self.claw_state = ClawState.CLOSING
        self._send_pulse(CLAW_SERVO, self.config.claw_close_pulse)
        if self.state == ArmState.GRABBING:
            self.has_object = self._object_detected()

    def grab(self) -> bool:
        """Start a grab; returns False when the arm is busy."""
        if self.state != ArmState.IDLE:
            return False
        self._begin_action(ArmState.GRABBING, ARM_GRAB_TIMEOUT)
        self.claw_state = ClawState.CLOSING
        self.close_claw()
        return True

    def release(self) -> bool:
        """Start a release; returns False when busy or holding nothing."""
        if self.state != ArmState.IDLE or not self.has_object:
            return False
        self._begin_action(ArmState.RELEASING, ARM_RELEASE_TIMEOUT)
        self.open_claw()
        return True

    # Queries

    def is_moving(self) -> bool:
        return self.state == ArmState.MOVING

    def is_holding(self) -> bool:
        return self.has_object

    def has_error(self) -> bool:
        return self.state == ArmState.ERROR

    def is_at_position(self, x: float, y: float, tolerance: float) -> bool:
        return math.hypot(self.current_pos.x - x, self.current_pos.y - y) <= tolerance

    # Presets

    def move_to_home(self) -> None:
        self.move_to(*ARM_HOME)

    def move_to_rest(self) -> None:
        self.move_to(*ARM_REST)

    def move_to_grab_position(self) -> None:
        """Sample the range finder, then move to the grab position."""
        if self._sensors is not None:
            self._sensors.read_distance()
        self.move_to(*ARM_GRAB)

    def move_to_put_position(self) -> None:
        self.move_to(*ARM_PUT)

    # Control loop

    def task(self) -> None:
        """Advance the arm and claw state machines by the time since the last call."""
        now = self._clock()
        elapsed = (now - self.last_update) / 1000.0
        self.last_update = now

        if self.state == ArmState.MOVING:
            self._task_moving(now, elapsed)
        elif self.state == ArmState.GRABBING:
            if now - self.action_start > self.action_timeout:
                self.state = ArmState.IDLE
                self.has_object = self._object_detected()
                self.claw_state = ClawState.CLOSED if self.has_object else ClawState.OPEN
        elif self.state == ArmState.HOLDING:
            if not self._object_detected():
                self.has_object = False
                self.state = ArmState.ERROR
                self.error_code = ArmErrorCode.OBJECT_LOST
        elif self.state == ArmState.RELEASING:
            if now - self.action_start > self.action_timeout:
                self.state = ArmState.IDLE
                self.has_object = False
                self.claw_state = ClawState.OPEN

        if self.claw_state == ClawState.OPENING:
            if now - self.action_start > CLAW_ACTION_MS:
                self.claw_state = ClawState.OPEN
                self.has_object = False
        elif self.claw_state == ClawState.CLOSING:
            if now - self.action_start > CLAW_ACTION_MS:
                self.claw_state = ClawState.CLOSED
                if self.state == ArmState.GRABBING:
                    self.has_object = self._object_detected()
                    self.state = ArmState.HOLDING if self.has_object else ArmState.IDLE

    def _apply_angles(self, theta0: float, theta1: float, theta2: float) -> None:
        self._send_pulse(BASE_SERVO, self._pulse_for(BASE_SERVO, theta0))
        self.current_angles.theta0 = theta0
        self.set_servo_angle(1, theta1)
        self.set_servo_angle(2, theta2)
        self._update_position()

    def _task_moving(self, now: int, elapsed: float) -> None:
        if now - self.action_start > self.action_timeout:
            self.state = ArmState.ERROR
            self.error_code = ArmErrorCode.MOVE_TIMEOUT
            return

        current, target = self.current_angles, self.target_angles
        max_step = self.config.move_speed * elapsed
        max_rotate_step = self.config.rotate_speed * elapsed

        self._apply_angles(
            current.theta0 + _step(target.theta0 - current.theta0, max_rotate_step),
            current.theta1 + _step(target.theta1 - current.theta1, max_step),
            current.theta2 + _step(target.theta2 - current.theta2, max_step),
        )

        if (
            self.is_at_position(self.target_pos.x, self.target_pos.y, ARM_POSITION_TOLERANCE)
            and abs(self.current_angles.theta0 - target.theta0) < BASE_ANGLE_TOLERANCE
        ):
            self._apply_angles(target.theta0, target.theta1, target.theta2)
            self.state = ArmState.IDLE

    # Base rotation

    def rotate_to_angle(self, angle: float) -> None:
        """Turn the base straight to ``angle`` radians, clamped to its range."""
        angle = min(max(angle, self.config.servo0_min_angle), self.config.servo0_max_angle)
        self.target_angles.theta0 = angle
        self._send_pulse(BASE_SERVO, self._pulse_for(BASE_SERVO, angle))
        self.current_angles.theta0 = angle

    def rotate_to_degrees(self, degrees: float) -> None:
        self.rotate_to_angle(math.radians(degrees))

    def rotate(self, angle: float) -> None:
        """Start a smooth base rotation; raises :class:`ArmError` if out of range."""
        if not self.config.servo0_min_angle <= angle <= self.config.servo0_max_angle:
            raise self._fail(ArmErrorCode.BASE_ANGLE_LIMIT)
        self.target_angles.theta0 = angle
        self._begin_action(ArmState.MOVING, ARM_MOVE_TIMEOUT)

    def error_string(self) -> str:
        return ArmErrorCode(self.error_code).description()