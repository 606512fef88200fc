"""Line tracker, range finder, grid navigation and flame bookkeeping."""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import IntEnum

GRID_SIZE_X = 8
GRID_SIZE_Y = 8
GRID_POINTS = GRID_SIZE_X * GRID_SIZE_Y

LINE_SENSOR_COUNT = 8
WHITE_LINE = 1
GREEN_BACKGROUND = 0

DISTANCE_DETECT_THRESHOLD = 300
DISTANCE_GRAB_MIN = 50
DISTANCE_GRAB_MAX = 150
POSITION_ADJUST_THRESHOLD = 20
CROSS_SENSOR_THRESHOLD = 6

FIRST_FLAME_ID = "A"
LAST_FLAME_ID = "O"
FLAME_GRID_WIDTH = 3


class Direction(IntEnum):
    NONE = 0
    FORWARD = 1
    BACKWARD = 2
    LEFT = 3
    RIGHT = 4
    CENTER = 5


class Heading(IntEnum):
    NORTH = 0
    EAST = 1
    SOUTH = 2
    WEST = 3


class TrackStatus(IntEnum):
    NORMAL = 0
    LOST = 1
    CROSS = 2


class TaskState(IntEnum):
    IDLE = 0
    RUNNING = 1
    COMPLETED = 2
    ERROR = 3
    PAUSED = 4


class ErrorStatus(IntEnum):
    NONE = 0
    SENSOR_FAILURE = 1
    PATH_BLOCKED = 2
    POSITION_LOST = 3
    TIMEOUT = 4
    HARDWARE_FAILURE = 5


class FlameColor(IntEnum):
    NONE = 0
    RED = 1
    BLUE = 2


@dataclass
class GridPosition:
    x: int = 0
    y: int = 0


@dataclass
class FlamePoint:
    id: str
    color: FlameColor = FlameColor.NONE
    is_collected: bool = False
    position: GridPosition = field(default_factory=GridPosition)


_HEADING_STEP = {
    Heading.NORTH: (0, -1),
    Heading.EAST: (1, 0),
    Heading.SOUTH: (0, 1),
    Heading.WEST: (-1, 0),
}


def _monotonic_ms() -> int:
    return int(time.monotonic() * 1000)


def _in_grid(x: int, y: int) -> bool:
    return 0 <= x < GRID_SIZE_X and 0 <= y < GRID_SIZE_Y


def _flame_index(point_id: str) -> int | None:
    if len(point_id) == 1 and FIRST_FLAME_ID <= point_id <= LAST_FLAME_ID:
        return ord(point_id) - ord(FIRST_FLAME_ID)
    return None


class SensorSystem:
    """All sensor state of the robot, fed by pluggable hardware readers.

    ``line_reader`` returns the eight line-tracker values (left to right),
    ``distance_reader`` returns the range-finder distance in millimetres and
    ``clock`` returns a millisecond tick count.
    """

    def __init__(
        self,
        line_reader: Callable[[], Sequence[int]] | None = None,
        distance_reader: Callable[[], int] | None = None,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self._line_reader = line_reader
        self._distance_reader = distance_reader
        self._clock = clock or _monotonic_ms
        self.reset()

    def reset(self) -> None:
        """Return every sensor, navigation and task value to its initial state."""
        self.sensors: list[int] = [GREEN_BACKGROUND] * LINE_SENSOR_COUNT
        self.cross_count = 0
        self.last_turn = Direction.NONE

        self.distance_mm = 0
        self.object_detected = False

        self.position = GridPosition(0, 0)
        self.heading = Heading.SOUTH

        self.task_state = TaskState.IDLE
        self.error_status = ErrorStatus.NONE
        self.retry_count = 0
        self.last_error_time = 0

        self.team_is_blue = False
        self.total_flames_collected = 0
        self.init_flame_points()

    # Line tracker

    def read_line_tracker(self) -> None:
        """Sample the eight line-tracker sensors."""
        if self._line_reader is None:
            raise RuntimeError("no line tracker reader configured")
        values = list(self._line_reader())
        if len(values) != LINE_SENSOR_COUNT:
            raise ValueError(
                f"line tracker must report {LINE_SENSOR_COUNT} values, got {len(values)}"
            )
        self.sensors = values

    def _active_count(self) -> int:
        return sum(1 for value in self.sensors if value == WHITE_LINE)

    def line_position(self) -> int:
        """Mean 1-based index of sensors on the line, or 0 if none are."""
        active = [index for index, value in enumerate(self.sensors, start=1) if value == WHITE_LINE]
        return sum(active) // len(active) if active else 0

    def deviation(self) -> float:
        """Offset of the line from the centre of the sensor bar."""
        position = self.line_position()
        return position - 4.5 if position else 0.0

    def track_status(self) -> TrackStatus:
        active = self._active_count()
        if active == 0:
            return TrackStatus.LOST
        if active >= CROSS_SENSOR_THRESHOLD:
            return TrackStatus.CROSS
        return TrackStatus.NORMAL

    def is_at_cross(self) -> bool:
        return self.track_status() is TrackStatus.CROSS

    def is_crossing(self) -> bool:
        return self._active_count() >= CROSS_SENSOR_THRESHOLD

    def reset_cross_count(self) -> None:
        self.cross_count = 0

    # Range finder

    def read_distance(self) -> None:
        """Sample the range finder and update object detection."""
        if self._distance_reader is None:
            raise RuntimeError("no distance reader configured")
        self.distance_mm = int(self._distance_reader())
        self.object_detected = self.distance_mm < DISTANCE_DETECT_THRESHOLD

    def is_object_detected(self) -> bool:
        return self.object_detected

    def is_grabbable(self) -> bool:
        return self.is_object_in_range(DISTANCE_GRAB_MIN, DISTANCE_GRAB_MAX)

    def is_object_in_range(self, min_dist: int, max_dist: int) -> bool:
        return min_dist <= self.distance_mm <= max_dist

    def optimal_grab_distance(self) -> int:
        return (DISTANCE_GRAB_MIN + DISTANCE_GRAB_MAX) // 2

    def need_adjust_position(self) -> bool:
        return abs(self.distance_mm - self.optimal_grab_distance()) > POSITION_ADJUST_THRESHOLD

    # Navigation

    def set_position(self, x: int, y: int) -> None:
        """Set the grid position; positions outside the grid are ignored."""
        if _in_grid(x, y):
            self.position = GridPosition(x, y)

    def set_heading(self, heading: int) -> None:
        """Set the heading; unknown headings are ignored."""
        try:
            self.heading = Heading(heading)
        except ValueError:
            pass

    def update_position(self, turn: Direction) -> None:
        """Apply a turn, then advance one cell if the grid allows it."""
        if turn == Direction.LEFT:
            self.heading = Heading((self.heading - 1) & 0x03)
        elif turn == Direction.RIGHT:
            self.heading = Heading((self.heading + 1) & 0x03)

        dx, dy = _HEADING_STEP[self.heading]
        new_x = self.position.x + dx
        new_y = self.position.y + dy
        if _in_grid(new_x, new_y):
            self.position = GridPosition(new_x, new_y)

    def turn_direction(self, target: GridPosition) -> Direction:
        """Turn needed from the current pose to head for ``target``."""
        dx = target.x - self.position.x
        dy = target.y - self.position.y
        if dx == 0 and dy == 0:
            return Direction.NONE

        if self.heading == Heading.NORTH:
            ahead, right, left = dy > 0, dx > 0, dx < 0
        elif self.heading == Heading.EAST:
            ahead, right, left = dx > 0, dy < 0, dy > 0
        elif self.heading == Heading.SOUTH:
            ahead, right, left = dy < 0, dx < 0, dx > 0
        else:
            ahead, right, left = dx < 0, dy > 0, dy < 0

        if ahead:
            return Direction.NONE
        if right:
            return Direction.RIGHT
        if left:
            return Direction.LEFT
        return Direction.BACKWARD

    # Flames

    def init_flame_points(self) -> None:
        """Reset every flame point to empty and uncollected."""
        self.flames = [
            FlamePoint(id=chr(ord(FIRST_FLAME_ID) + index)) for index in range(GRID_POINTS)
        ]

    def set_flame_point(self, point_id: str, color: FlameColor) -> None:
        """Set the colour of flame point ``A``..``O``; other ids are ignored."""
        index = _flame_index(point_id)
        if index is not None:
            self.flames[index].color = FlameColor(color)

    def set_team_color(self, is_blue: bool) -> None:
        self.team_is_blue = bool(is_blue)

    def nearest_flame(self) -> FlamePoint | None:
        """Closest uncollected flame of the team's colour, by Manhattan distance."""
        wanted = FlameColor.BLUE if self.team_is_blue else FlameColor.RED
        nearest: FlamePoint | None = None
        min_distance = GRID_SIZE_X * 2
        for index, flame in enumerate(self.flames):
            if flame.is_collected or flame.color != wanted:
                continue
            flame_x = index % FLAME_GRID_WIDTH
            flame_y = index // FLAME_GRID_WIDTH
            distance = abs(flame_x - self.position.x) + abs(flame_y - self.position.y)
            if distance < min_distance:
                min_distance = distance
                nearest = flame
        return nearest

    def mark_flame_collected(self, point_id: str) -> None:
        """Mark flame point ``A``..``O`` as collected; other ids are ignored."""
        index = _flame_index(point_id)
        if index is not None:
            self.flames[index].is_collected = True
            self.total_flames_collected += 1

    # Task management

    def set_task_state(self, state: TaskState) -> None:
        self.task_state = TaskState(state)
        self.retry_count = 0

    def set_error_status(self, error: ErrorStatus) -> None:
        self.error_status = ErrorStatus(error)
        if self.error_status != ErrorStatus.NONE:
            self.retry_count += 1
            self.last_error_time = self._clock()

    def reset_error(self) -> None:
        self.error_status = ErrorStatus.NONE
        self.retry_count = 0