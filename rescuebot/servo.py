"""Rate-limited pulse control for the arm's three hobby servos."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass

SERVO_CHANNEL_1 = 1
SERVO_CHANNEL_2 = 2
SERVO_CHANNEL_3 = 3

SERVO_MIN_PULSE = 500.0
SERVO_MAX_PULSE = 2500.0
SERVO_CENTER_PULSE = 1500.0
SERVO_FREQUENCY = 50

SERVO_COUNT = 3
DEFAULT_SPEED = 50.0
UPDATE_INTERVAL_MS = 20


def _monotonic_ms() -> int:
    return int(time.monotonic() * 1000)


@dataclass
class Servo:
    """One servo: its channel, pulse state and limits (pulses in microseconds)."""

    channel: int
    current_pulse: float = SERVO_CENTER_PULSE
    target_pulse: float = SERVO_CENTER_PULSE
    speed: float = DEFAULT_SPEED
    min_pulse: float = SERVO_MIN_PULSE
    max_pulse: float = SERVO_MAX_PULSE
    is_moving: bool = False


class ServoBank:
    """The three servos, stepped smoothly toward their targets.

    Servo ids run from 1 to 3; calls with any other id are ignored.
    ``on_pulse(channel, pulse)`` receives every pulse sent to the hardware,
    ``on_init()`` is called when the hardware is (re)initialised and
    ``clock`` returns a millisecond tick count.
    """

    def __init__(
        self,
        on_pulse: Callable[[int, float], None] | None = None,
        on_init: Callable[[], None] | None = None,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self._on_pulse = on_pulse
        self._on_init = on_init
        self._clock = clock or _monotonic_ms
        self._last_update = 0
        self.reset()

    def _emit(self, channel: int, pulse: float) -> None:
        if self._on_pulse is not None:
            self._on_pulse(channel, pulse)

    def _servo(self, servo_id: int) -> Servo | None:
        if 1 <= servo_id <= SERVO_COUNT:
            return self.servos[servo_id - 1]
        return None

    def reset(self) -> None:
        """Restore default parameters and centre every servo."""
        self.servos = [Servo(channel=index + 1) for index in range(SERVO_COUNT)]
        if self._on_init is not None:
            self._on_init()
        for servo in self.servos:
            self._emit(servo.channel, servo.current_pulse)

    def set_pulse(self, servo_id: int, pulse_width: float) -> None:
        """Set a servo's target pulse, clamped to its limits."""
        servo = self._servo(servo_id)
        if servo is None:
            return
        servo.target_pulse = min(max(pulse_width, servo.min_pulse), servo.max_pulse)
        servo.is_moving = True

    def set_speed(self, servo_id: int, speed: float) -> None:
        """Set a servo's step per update; negative speeds become zero."""
        servo = self._servo(servo_id)
        if servo is None:
            return
        servo.speed = max(speed, 0.0)

    def is_moving(self, servo_id: int) -> bool:
        servo = self._servo(servo_id)
        return servo.is_moving if servo is not None else False

    def stop(self, servo_id: int) -> None:
        """Hold a servo where it currently is."""
        servo = self._servo(servo_id)
        if servo is None:
            return
        servo.target_pulse = servo.current_pulse
        servo.is_moving = False

    def task(self) -> None:
        """Advance every moving servo one step, at most once per update interval."""
        now = self._clock()
        if now - self._last_update < UPDATE_INTERVAL_MS:
            return
        self._last_update = now

        for servo in self.servos:
            if not servo.is_moving:
                continue
            diff = servo.target_pulse - servo.current_pulse
            if abs(diff) <= servo.speed:
                servo.current_pulse = servo.target_pulse
                servo.is_moving = False
            elif diff > 0:
                servo.current_pulse += servo.speed
            else:
                servo.current_pulse -= servo.speed
            self._emit(servo.channel, servo.current_pulse)