"""Mission queue that drives the chassis and the arm, plus fire-position bookkeeping."""

from __future__ import annotations

import contextlib
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum, IntEnum, auto

from rescuebot.arm import Arm
from rescuebot.chassis import Chassis, ChassisAction
from rescuebot.kinematics import ArmError
from rescuebot.sensor import DISTANCE_GRAB_MIN, SensorSystem, TrackStatus
from rescuebot.servo import ServoBank

MAX_MISSION_QUEUE = 20
MAX_FIRE_POSITIONS = 8

TURN_MISSION_SPEED = 300.0
GRAB_APPROACH_SPEED = 100.0
GRAB_BACKOFF_SPEED = -50.0
GRAB_APPROACH_TIMEOUT_MS = 5000
GRAB_ACTION_MS = 1000

ARM_GRAB_TASK_TIMEOUT_MS = 10000
ARM_TASK_TIMEOUT_MS = 5000


class FireColor(IntEnum):
    NONE = 0
    RED = 1
    BLUE = 2


class MissionType(IntEnum):
    NONE = 0
    FOLLOW_LINE = 1
    TURN_LEFT = 2
    TURN_RIGHT = 3
    STOP = 4
    GRAB = 5
    PUT = 6
    ARM_MOVE_TO = 7
    ARM_GRAB = 8
    ARM_RELEASE = 9
    ARM_HOME = 10
    ARM_REST = 11
    GOTO_FIRE = 12
    PLACE_FIRE = 13

    @property
    def is_arm_task(self) -> bool:
        """Whether this mission is carried out by the arm rather than the chassis."""
        return MissionType.ARM_MOVE_TO <= self <= MissionType.ARM_REST


@dataclass
class Mission:
    """One queued mission with its optional parameters."""

    type: MissionType
    param: int = 0
    completed: bool = False
    x: float = 0.0
    y: float = 0.0
    color: FireColor = FireColor.NONE


@dataclass
class FirePosition:
    """A place where a fire token may be picked up."""

    x: float = 0.0
    y: float = 0.0
    color: FireColor = FireColor.NONE
    is_occupied: bool = False
    is_collected: bool = False


class MissionQueueFull(Exception):
    """The mission queue already holds the maximum number of missions."""


class _GrabState(Enum):
    INIT = auto()
    APPROACHING = auto()
    ADJUSTING = auto()
    GRABBING = auto()
    COMPLETE = auto()


def _monotonic_ms() -> int:
    return int(time.monotonic() * 1000)


class MissionController:
    """Runs a queue of missions one step per :meth:`task` call.

    Chassis missions set the chassis action and finish on sensor events; arm
    missions start an arm action and finish once it settles or times out.
    ``read_sensors`` is called at the start of every step to sample the
    hardware. Grab missions sample the range finder, so ``sensors`` needs a
    distance reader for them.
    """

    def __init__(
        self,
        sensors: SensorSystem | None = None,
        chassis: Chassis | None = None,
        arm: Arm | None = None,
        servos: ServoBank | None = None,
        clock: Callable[[], int] | None = None,
        read_sensors: Callable[[], None] | None = None,
    ) -> None:
        self._clock = clock or _monotonic_ms
        self.sensors = sensors if sensors is not None else SensorSystem(clock=self._clock)
        self.servos = servos if servos is not None else ServoBank(clock=self._clock)
        self.arm = (
            arm
            if arm is not None
            else Arm(servos=self.servos, sensors=self.sensors, clock=self._clock)
        )
        self.chassis = (
            chassis if chassis is not None else Chassis(sensors=self.sensors, clock=self._clock)
        )
        self._read_sensors = read_sensors

        self.fire_positions = [FirePosition() for _ in range(MAX_FIRE_POSITIONS)]
        self._fire_count = 0
        self._clear_queue()

    def _clear_queue(self) -> None:
        self.missions: list[Mission] = []
        self.current_index = 0
        self.running = False
        self._grab_state = _GrabState.INIT
        self._grab_timer = 0
        self._arm_task_active = False
        self._arm_task_start = 0

    # Queue management

    def reset(self) -> None:
        """Empty the queue and reinitialise sensors, chassis, servos and arm."""
        self._clear_queue()
        self.sensors.reset()
        self.chassis.reset()
        self.servos.reset()
        self.arm.reset()

    def add(self, mission_type: MissionType, param: int) -> None:
        """Queue a mission; raises :class:`MissionQueueFull` when there is no room."""
        if len(self.missions) >= MAX_MISSION_QUEUE:
            raise MissionQueueFull(f"mission queue holds at most {MAX_MISSION_QUEUE} missions")
        self.missions.append(Mission(type=MissionType(mission_type), param=param))

    def add_with_position(
        self, mission_type: MissionType, x: float, y: float, color: FireColor
    ) -> None:
        """Queue a mission with a target position; ignored when the queue is full."""
        if len(self.missions) >= MAX_MISSION_QUEUE:
            return
        self.missions.append(
            Mission(type=MissionType(mission_type), x=x, y=y, color=FireColor(color))
        )

    def start(self) -> None:
        """Begin running the queue from its first mission, if there is one."""
        if self.missions:
            self.current_index = 0
            self.running = True

    def stop(self) -> None:
        """Stop running missions and halt the chassis and the arm."""
        self.running = False
        self.chassis.act = ChassisAction.STOP
        self.arm.stop()

    def is_completed(self) -> bool:
        return self.current_index >= len(self.missions)

    # Main loop

    def task(self) -> None:
        """Advance the current mission by one step."""
        if not self.running or self.is_completed():
            return

        if self._read_sensors is not None:
            self._read_sensors()

        mission = self.missions[self.current_index]
        if mission.type.is_arm_task:
            done = self._handle_arm_task(mission)
        else:
            self._apply_chassis_action(mission.type)
            self.chassis.task()
            done = self._chassis_mission_done(mission)

        if done:
            mission.completed = True
            self.current_index += 1

        if self.is_completed():
            self.chassis.act = ChassisAction.STOP
            self.running = False

    def _apply_chassis_action(self, mission_type: MissionType) -> None:
        if mission_type == MissionType.FOLLOW_LINE:
            self.chassis.act = ChassisAction.MOVE
        elif mission_type == MissionType.TURN_LEFT:
            self.chassis.act = ChassisAction.TURN_LEFT
            self.chassis.rotate_speed = -TURN_MISSION_SPEED
        elif mission_type == MissionType.TURN_RIGHT:
            self.chassis.act = ChassisAction.TURN_RIGHT
            self.chassis.rotate_speed = TURN_MISSION_SPEED
        elif mission_type == MissionType.GRAB:
            self.chassis.act = ChassisAction.GRAB
        elif mission_type == MissionType.PUT:
            self.chassis.act = ChassisAction.PUT
        elif not mission_type.is_arm_task:
            self.chassis.act = ChassisAction.STOP

    def _chassis_mission_done(self, mission: Mission) -> bool:
        if mission.type == MissionType.FOLLOW_LINE:
            return mission.param > 0 and self.sensors.track_status() == TrackStatus.CROSS
        if mission.type in (MissionType.TURN_LEFT, MissionType.TURN_RIGHT):
            return self.sensors.track_status() == TrackStatus.NORMAL
        if mission.type == MissionType.GRAB:
            return self._handle_grab()
        return True

    def _handle_grab(self) -> bool:
        self.sensors.read_distance()
        state = self._grab_state

        if state is _GrabState.INIT:
            self._grab_timer = self._clock()
            self._grab_state = _GrabState.APPROACHING
            self.chassis.act = ChassisAction.MOVE
            self.chassis.moving_speed = GRAB_APPROACH_SPEED
            return False

        if state is _GrabState.APPROACHING:
            if self.sensors.is_object_detected():
                if self.sensors.is_grabbable():
                    self.chassis.act = ChassisAction.STOP
                    self._grab_state = _GrabState.ADJUSTING
                elif self.sensors.distance_mm < DISTANCE_GRAB_MIN:
                    self.chassis.act = ChassisAction.MOVE
                    self.chassis.moving_speed = GRAB_BACKOFF_SPEED
            if self._clock() - self._grab_timer > GRAB_APPROACH_TIMEOUT_MS:
                self._grab_state = _GrabState.COMPLETE
                return True
            return False

        if state is _GrabState.ADJUSTING:
            if self.sensors.is_grabbable():
                self._grab_state = _GrabState.GRABBING
                self.chassis.act = ChassisAction.GRAB
                self._grab_timer = self._clock()
            else:
                self._grab_state = _GrabState.APPROACHING
            return False

        if state is _GrabState.GRABBING:
            if self._clock() - self._grab_timer > GRAB_ACTION_MS:
                self._grab_state = _GrabState.COMPLETE
            return False

        self._grab_state = _GrabState.INIT
        return True

    def _start_arm_action(self, mission: Mission) -> None:
        arm = self.arm
        with contextlib.suppress(ArmError):
            if mission.type == MissionType.ARM_MOVE_TO:
                arm.move_to(mission.x, mission.y)
            elif mission.type == MissionType.ARM_GRAB:
                arm.move_to_grab_position()
            elif mission.type == MissionType.ARM_HOME:
                arm.move_to_home()
            elif mission.type == MissionType.ARM_REST:
                arm.move_to_rest()
        if mission.type == MissionType.ARM_GRAB:
            arm.grab()
        elif mission.type == MissionType.ARM_RELEASE:
            arm.release()

    def _handle_arm_task(self, mission: Mission) -> bool:
        if not self._arm_task_active:
            self._arm_task_start = self._clock()
            self._arm_task_active = True
            self._start_arm_action(mission)

        self.arm.task()
        self.servos.task()

        elapsed = self._clock() - self._arm_task_start
        if mission.type == MissionType.ARM_MOVE_TO:
            done = not self.arm.is_moving()
        elif mission.type == MissionType.ARM_GRAB:
            done = self.arm.is_holding() or elapsed > ARM_GRAB_TASK_TIMEOUT_MS
        elif mission.type == MissionType.ARM_RELEASE:
            done = not self.arm.is_holding() or elapsed > ARM_TASK_TIMEOUT_MS
        else:
            done = not self.arm.is_moving() or elapsed > ARM_TASK_TIMEOUT_MS

        if done:
            self._arm_task_active = False
        return done

    def set_default_sequence(self) -> None:
        """Replace the queue with the standard fetch-and-return sequence."""
        self.missions = []
        self.add(MissionType.FOLLOW_LINE, 1)
        self.add(MissionType.TURN_LEFT, 90)
        self.add(MissionType.FOLLOW_LINE, 2)
        self.add(MissionType.STOP, 500)
        self.add(MissionType.GRAB, 0)
        self.add(MissionType.TURN_RIGHT, 180)
        self.add(MissionType.FOLLOW_LINE, 2)
        self.add(MissionType.PUT, 0)
        self.add(MissionType.STOP, 0)

    # Fire positions

    def set_fire_position(self, index: int, x: float, y: float, color: FireColor) -> None:
        """Record a fire position; indexes outside the table are ignored."""
        if not 0 <= index < MAX_FIRE_POSITIONS:
            return
        self.fire_positions[index] = FirePosition(x=x, y=y, color=FireColor(color))
        self._fire_count = max(self._fire_count, index + 1)

    def clear_fire_positions(self) -> None:
        """Forget every fire position's colour and collection state."""
        self._fire_count = 0
        for position in self.fire_positions:
            position.is_occupied = False
            position.is_collected = False
            position.color = FireColor.NONE

    def next_available_fire_position(self) -> tuple[int, float, float] | None:
        """First uncollected fire as ``(index, x, y)``, or None if there is none."""
        for index, position in enumerate(self.fire_positions[: self._fire_count]):
            if not position.is_collected and position.color != FireColor.NONE:
                return index, position.x, position.y
        return None

    def mark_fire_position_collected(self, index: int) -> None:
        """Mark a known fire position as collected; unknown indexes are ignored."""
        if 0 <= index < self._fire_count:
            self.fire_positions[index].is_collected = True

    def fire_color(self, index: int) -> FireColor:
        if 0 <= index < self._fire_count:
            return self.fire_positions[index].color
        return FireColor.NONE

    def collected_fire_count(self) -> int:
        return sum(1 for p in self.fire_positions[: self._fire_count] if p.is_collected)

    def collected_fire_count_by_color(self, color: FireColor) -> int:
        return sum(
            1
            for p in self.fire_positions[: self._fire_count]
            if p.is_collected and p.color == color
        )