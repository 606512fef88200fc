"""Mecanum chassis: line following, crossing detection and wheel references."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import IntEnum

from rescuebot.alg import PID, PIDParams, limit
from rescuebot.sensor import SensorSystem

FORWARD_BACK_SPEED_MAX = 1.0
LEFT_RIGHT_SPEED_MAX = 1.0
ROTATE_SPEED_MAX = 1.0

MOVE_SPEED = 100.0
TURN_SPEED = 100.0
CROSS_DEBOUNCE_MS = 100
TASK_LIST_LENGTH = 100

# Per-wheel speed factors: front left, front right, rear left, rear right.
MOTOR_SPEED_CONSTANTS = (1.0, 1.0, 1.0, 1.0)

DEFAULT_ROTATE_ANGLE_PID = (0.0, 0.0, 0.0, 0.0, 0.0)
DEFAULT_MOVING_DISTANCE_PID = (0.0, 0.0, 0.0, 0.0, 0.0)


class ChassisAction(IntEnum):
    STOP = 0
    MOVE = 1
    TURN_RIGHT = 2
    TURN_LEFT = 3
    GRAB = 4
    PUT = 5
    END = 6


@dataclass
class ChassisRef:
    """Body-frame speed reference: right, forward and counter-clockwise positive."""

    left_right: float = 0.0
    front_back: float = 0.0
    rotate: float = 0.0

    def clear(self) -> None:
        self.left_right = 0.0
        self.front_back = 0.0
        self.rotate = 0.0


@dataclass
class Motor:
    """References, feedback and output of one wheel motor."""

    angle_ref: float = 0.0
    angle_fdb: float = 0.0
    speed_ref: float = 0.0
    speed_fdb: float = 0.0
    output: float = 0.0


def _zero_clock() -> int:
    return 0


@dataclass
class _Hooks:
    turn_detector: Callable[[], bool] | None = None
    arm_link: Callable[[ChassisAction], None] | None = None
    motor_writer: Callable[[list[Motor]], None] | None = None


class Chassis:
    """The four-wheel mecanum base, driven by :meth:`task` from the main loop.

    ``sensors`` supplies the line tracker, ``task_list`` is the action plan the
    chassis walks through at crossings, ``turn_detector`` reports when a turn
    has reached the target line, ``arm_link`` is told about grab and put
    actions, ``motor_writer`` receives the motors on every output step and
    ``clock`` returns a millisecond tick count.
    """

    def __init__(
        self,
        sensors: SensorSystem | None = None,
        task_list: Sequence[ChassisAction] | None = None,
        clock: Callable[[], int] | None = None,
        turn_detector: Callable[[], bool] | None = None,
        arm_link: Callable[[ChassisAction], None] | None = None,
        motor_writer: Callable[[list[Motor]], None] | None = None,
        rotate_pid_params: Sequence[float] = DEFAULT_ROTATE_ANGLE_PID,
        moving_pid_params: Sequence[float] = DEFAULT_MOVING_DISTANCE_PID,
    ) -> None:
        self.sensors = sensors if sensors is not None else SensorSystem()
        if task_list is None:
            self.task_list = [ChassisAction.STOP] * TASK_LIST_LENGTH
        else:
            self.task_list = [ChassisAction(action) for action in task_list]
        self._clock = clock or _zero_clock
        self._hooks = _Hooks(turn_detector, arm_link, motor_writer)
        self._rotate_pid_values = tuple(rotate_pid_params)
        self._moving_pid_values = tuple(moving_pid_params)
        self.motors: list[Motor] = [Motor() for _ in range(4)]
        self.rotate_angle_pid = PID()
        self.moving_distance_pid = PID()
        self.reset()

    def reset(self) -> None:
        """Restore the initial state: stopped, enabled, at the first task."""
        self.control_state = True
        self.output_state = True
        self.pending_state = False

        self.act = ChassisAction.STOP
        self.raw_ref = ChassisRef()
        self.last_raw_ref = ChassisRef()
        self.moving_speed = 0.0
        self.rotate_speed = 0.0
        self.task_i = 0
        self.last_time = 0.0
        self.on_point = False

        self.rotate_angle_pid.clear()
        self.moving_distance_pid.clear()
        self.rotate_angle_params = PIDParams.from_sequence(self._rotate_pid_values)
        self.moving_distance_params = PIDParams.from_sequence(self._moving_pid_values)

    # Main loop

    def task(self) -> None:
        """Run one control step and push the result to the motors."""
        self.pending_state = True
        try:
            self.control()
            self.output()
        finally:
            self.pending_state = False

    def control(self) -> None:
        """Run the current action and recompute the wheel references."""
        if not self.control_state:
            return

        if self.act == ChassisAction.STOP:
            self.set_stop_ref()
        elif self.act == ChassisAction.MOVE:
            self.move()
        elif self.act in (ChassisAction.TURN_RIGHT, ChassisAction.TURN_LEFT):
            self.turn()
        elif self.act == ChassisAction.GRAB:
            self.grab()
        elif self.act == ChassisAction.PUT:
            self.put()

        self.set_forward_back_ref(self.moving_speed)
        self.set_rotate_ref(self.rotate_speed)
        self.calc_mecanum_ref()

    def output(self) -> None:
        """Hand the motors to the motor writer when output is enabled."""
        if not self.output_state:
            return
        if self._hooks.motor_writer is not None:
            self._hooks.motor_writer(self.motors)

    # References

    def set_forward_back_ref(self, ref: float) -> None:
        self.last_raw_ref.front_back = self.raw_ref.front_back
        self.raw_ref.front_back = limit(ref, FORWARD_BACK_SPEED_MAX, -FORWARD_BACK_SPEED_MAX)

    def set_left_right_ref(self, ref: float) -> None:
        self.last_raw_ref.left_right = self.raw_ref.left_right
        self.raw_ref.left_right = limit(ref, LEFT_RIGHT_SPEED_MAX, -LEFT_RIGHT_SPEED_MAX)

    def set_rotate_ref(self, ref: float) -> None:
        self.last_raw_ref.rotate = self.raw_ref.rotate
        self.raw_ref.rotate = limit(ref, ROTATE_SPEED_MAX, -ROTATE_SPEED_MAX)

    def set_stop_ref(self) -> None:
        self.set_forward_back_ref(0.0)
        self.set_left_right_ref(0.0)
        self.set_rotate_ref(0.0)
        self.raw_ref.clear()

    def calc_mecanum_ref(self) -> None:
        """Mix the body reference into the four wheel speed references.

        Wheels are counted counter-clockwise from the front left, seen from above.
        """
        fb = self.raw_ref.front_back
        lr = self.raw_ref.left_right
        rot = self.raw_ref.rotate
        wheel_speeds = (
            -fb + lr + rot,
            -fb - lr + rot,
            fb - lr + rot,
            fb + lr + rot,
        )
        for motor, speed, factor in zip(self.motors, wheel_speeds, MOTOR_SPEED_CONSTANTS):
            motor.speed_ref = speed * factor

    # Actions

    def _next_task(self) -> ChassisAction:
        self.task_i += 1
        if self.task_i < len(self.task_list):
            return self.task_list[self.task_i]
        return ChassisAction.STOP

    def follow_line(self) -> None:
        """Steer toward the centre of the line, except on a crossing."""
        if self.sensors.is_at_cross():
            return
        self.rotate_angle_pid.ref = 0.0
        self.rotate_angle_pid.fdb = self.sensors.deviation()
        self.rotate_speed = self.rotate_angle_pid.calc(self.rotate_angle_params)

    def move(self) -> None:
        """Follow the line forward and switch to the next task at a crossing."""
        self.follow_line()
        self.moving_speed = MOVE_SPEED

        now = self._clock()
        if (
            self.sensors.is_at_cross()
            and now - self.last_time >= CROSS_DEBOUNCE_MS
            and not self.on_point
        ):
            self.last_time = now
            self.on_point = True
            self.rotate_speed = 0.0
            self.act = self._next_task()
        else:
            self.on_point = False

    def turn(self) -> None:
        """Spin in place; clockwise for a right turn."""
        self.moving_speed = 0.0
        self.rotate_speed = TURN_SPEED
        if self.act == ChassisAction.TURN_RIGHT:
            self.rotate_speed = -self.rotate_speed

        if self._hooks.turn_detector is not None and self._hooks.turn_detector():
            self.task_i += 1

    def grab(self) -> None:
        """Keep on the line and tell the arm to grab."""
        self.follow_line()
        if self._hooks.arm_link is not None:
            self._hooks.arm_link(ChassisAction.GRAB)

    def put(self) -> None:
        """Tell the arm to put the object down."""
        if self._hooks.arm_link is not None:
            self._hooks.arm_link(ChassisAction.PUT)