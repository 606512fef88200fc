"""Two-link planar arm geometry: inverse and forward kinematics, pulse mapping."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import IntEnum


class ArmErrorCode(IntEnum):
    NONE = 0
    OUT_OF_RANGE = 1
    TOO_CLOSE = 2
    AT_ORIGIN = 3
    JOINT1_LIMIT = 4
    JOINT2_LIMIT = 5
    ANGLE_LIMIT = 6
    MOVE_TIMEOUT = 7
    BASE_ANGLE_LIMIT = 8
    OBJECT_LOST = 9
    GRAB_FAILED = 10

    def description(self) -> str:
        """Human-readable description of the error."""
        return _DESCRIPTIONS[self]


_DESCRIPTIONS = {
    ArmErrorCode.NONE: "no error",
    ArmErrorCode.OUT_OF_RANGE: "target point out of range",
    ArmErrorCode.TOO_CLOSE: "target point too close to the base",
    ArmErrorCode.AT_ORIGIN: "target point at the origin",
    ArmErrorCode.JOINT1_LIMIT: "first joint angle out of range",
    ArmErrorCode.JOINT2_LIMIT: "second joint angle out of range",
    ArmErrorCode.ANGLE_LIMIT: "angle out of range",
    ArmErrorCode.MOVE_TIMEOUT: "move timed out",
    ArmErrorCode.BASE_ANGLE_LIMIT: "base angle out of range",
    ArmErrorCode.OBJECT_LOST: "object lost",
    ArmErrorCode.GRAB_FAILED: "grab failed",
}


class ArmError(Exception):
    """An arm operation failed; ``code`` tells why."""

    def __init__(self, code: ArmErrorCode) -> None:
        self.code = ArmErrorCode(code)
        super().__init__(self.code.description())


@dataclass
class ArmConfig:
    """Link lengths (mm), servo ranges (us, rad) and speeds."""

    L1: float = 150.0
    L2: float = 150.0

    servo0_min_pulse: float = 500.0
    servo0_max_pulse: float = 2500.0
    servo0_min_angle: float = -1.57
    servo0_max_angle: float = 1.57

    servo1_min_pulse: float = 500.0
    servo1_max_pulse: float = 2500.0
    servo1_min_angle: float = -1.57
    servo1_max_angle: float = 1.57

    servo2_min_pulse: float = 500.0
    servo2_max_pulse: float = 2500.0
    servo2_min_angle: float = 0.0
    servo2_max_angle: float = 2.09

    claw_min_pulse: float = 500.0
    claw_max_pulse: float = 2500.0
    claw_open_pulse: float = 1000.0
    claw_close_pulse: float = 2000.0

    move_speed: float = 0.5
    grab_speed: float = 100.0
    rotate_speed: float = 0.5

    def _joint_range(self, servo_id: int) -> tuple[float, float, float, float]:
        if servo_id == 0:
            return (self.servo0_min_pulse, self.servo0_max_pulse,
                    self.servo0_min_angle, self.servo0_max_angle)
        if servo_id == 1:
            return (self.servo1_min_pulse, self.servo1_max_pulse,
                    self.servo1_min_angle, self.servo1_max_angle)
        if servo_id == 2:
            return (self.servo2_min_pulse, self.servo2_max_pulse,
                    self.servo2_min_angle, self.servo2_max_angle)
        raise ValueError(f"servo {servo_id} has no angle range")


@dataclass
class ArmAngles:
    """Base rotation and the two joint angles, in radians."""

    theta0: float = 0.0
    theta1: float = 0.0
    theta2: float = 0.0


@dataclass
class ArmPosition:
    """Point in millimetres."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0


def _clamp_unit(value: float) -> float:
    return max(-1.0, min(1.0, value))


def calculate_angles(config: ArmConfig, x: float, y: float) -> ArmAngles:
    """Elbow-up joint angles that put the arm tip at ``(x, y)``.

    Raises :class:`ArmError` when the point cannot be reached.
    """
    l1, l2 = config.L1, config.L2
    d_sq = x * x + y * y
    d = math.sqrt(d_sq)

    if d > l1 + l2:
        raise ArmError(ArmErrorCode.OUT_OF_RANGE)
    if d < abs(l1 - l2):
        raise ArmError(ArmErrorCode.TOO_CLOSE)
    if d == 0 and l1 + l2 > 0:
        raise ArmError(ArmErrorCode.AT_ORIGIN)

    theta2 = math.acos(_clamp_unit((d_sq - l1 * l1 - l2 * l2) / (2.0 * l1 * l2)))
    alpha = math.atan2(y, x)
    beta = math.acos(_clamp_unit((l1 * l1 + d_sq - l2 * l2) / (2.0 * l1 * d)))
    theta1 = alpha - beta

    if not config.servo1_min_angle <= theta1 <= config.servo1_max_angle:
        raise ArmError(ArmErrorCode.JOINT1_LIMIT)
    if not config.servo2_min_angle <= theta2 <= config.servo2_max_angle:
        raise ArmError(ArmErrorCode.JOINT2_LIMIT)

    return ArmAngles(theta1=theta1, theta2=theta2)


def forward_kinematics(config: ArmConfig, theta1: float, theta2: float) -> ArmPosition:
    """Position of the arm tip for the given joint angles."""
    l1, l2 = config.L1, config.L2
    return ArmPosition(
        x=l1 * math.cos(theta1) + l2 * math.cos(theta1 + theta2),
        y=l1 * math.sin(theta1) + l2 * math.sin(theta1 + theta2),
    )


def angle_to_pulse(config: ArmConfig, servo_id: int, angle: float, claw_open: bool) -> float:
    """Pulse width (us) for a servo angle.

    Servos 0-2 map their clamped angle linearly onto their pulse range; servo 3,
    the claw, only knows open and closed.
    """
    if servo_id == 3:
        return config.claw_open_pulse if claw_open else config.claw_close_pulse
    min_pulse, max_pulse, min_angle, max_angle = config._joint_range(servo_id)
    angle = min(max(angle, min_angle), max_angle)
    return min_pulse + (angle - min_angle) * (max_pulse - min_pulse) / (max_angle - min_angle)