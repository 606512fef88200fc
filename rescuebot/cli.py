"""Command-line simulation of the robot's mission loop."""

from __future__ import annotations

import argparse
import math
from collections.abc import Sequence

from rescuebot.arm import Arm
from rescuebot.chassis import Chassis
from rescuebot.kinematics import ArmConfig, ArmError, calculate_angles
from rescuebot.mission import FireColor, MissionController, MissionType
from rescuebot.sensor import SensorSystem
from rescuebot.servo import ServoBank

IK_TEST_POSITIONS = (
    (150.0, 150.0),
    (200.0, 0.0),
    (100.0, -100.0),
    (50.0, 200.0),
    (300.0, 50.0),
)
SIMULATED_DISTANCE_MM = 200
TICK_MS = 50
MAX_ITERATIONS = 100
REPORT_EVERY = 10


class SimulatedClock:
    """Millisecond tick counter advanced by hand."""

    def __init__(self, start: int = 0) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        """Move time forward by ``ms`` milliseconds and return the new time."""
        self.now += ms
        return self.now


def _print_pulse(channel: int, pulse: float) -> None:
    print(f"servo {channel} pulse width: {pulse:.2f} us")


def _build_controller(clock: SimulatedClock) -> MissionController:
    sensors = SensorSystem(distance_reader=lambda: SIMULATED_DISTANCE_MM, clock=clock)
    servos = ServoBank(
        on_pulse=_print_pulse,
        on_init=lambda: print("servo hardware initialised"),
        clock=clock,
    )
    arm = Arm(servos=servos, sensors=sensors, object_detector=lambda: True, clock=clock)
    chassis = Chassis(sensors=sensors, clock=clock)
    return MissionController(
        sensors=sensors,
        chassis=chassis,
        arm=arm,
        servos=servos,
        clock=clock,
        read_sensors=sensors.read_distance,
    )


def _report_inverse_kinematics(config: ArmConfig) -> None:
    print("\n===== arm inverse kinematics =====")
    for x, y in IK_TEST_POSITIONS:
        try:
            angles = calculate_angles(config, x, y)
        except ArmError as exc:
            print(f"target ({x:.1f}, {y:.1f}): unreachable, error {int(exc.code)}: {exc}")
        else:
            print(
                f"target ({x:.1f}, {y:.1f}): reachable, "
                f"theta1={math.degrees(angles.theta1):.2f} deg, "
                f"theta2={math.degrees(angles.theta2):.2f} deg"
            )


def setup_fire_positions(controller: MissionController) -> None:
    """Load the three known fire positions."""
    print("\n===== fire positions =====")
    controller.clear_fire_positions()
    controller.set_fire_position(0, 200.0, 150.0, FireColor.RED)
    controller.set_fire_position(1, 300.0, 150.0, FireColor.BLUE)
    controller.set_fire_position(2, 400.0, 150.0, FireColor.RED)
    print("fire positions set")


def setup_arm_mission_sequence(controller: MissionController) -> None:
    """Reset the controller, queue the arm demonstration sequence and start it."""
    print("\n===== arm mission sequence =====")
    controller.reset()

    print("adding mission: arm home")
    controller.add(MissionType.ARM_HOME, 0)

    fire = controller.next_available_fire_position()
    if fire is not None:
        index, x, y = fire
        print(f"adding mission: go to fire at ({x:.1f}, {y:.1f})")
        controller.add_with_position(MissionType.GOTO_FIRE, x, y, controller.fire_color(index))
        print("adding mission: place fire")
        controller.add(MissionType.PLACE_FIRE, index)

    print("adding mission: arm move to position")
    controller.add_with_position(MissionType.ARM_MOVE_TO, 150.0, 100.0, FireColor.NONE)
    print("adding mission: release object")
    controller.add(MissionType.ARM_RELEASE, 0)
    print("adding mission: arm rest")
    controller.add(MissionType.ARM_REST, 0)

    controller.start()


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="rescuebot", description="Simulate the rescue robot's mission loop."
    )
    parser.parse_args(argv)

    print("===== robot control system starting =====")
    clock = SimulatedClock()
    controller = _build_controller(clock)
    controller.reset()

    setup_fire_positions(controller)
    _report_inverse_kinematics(controller.arm.config)
    setup_arm_mission_sequence(controller)

    print("\n===== mission execution =====")
    for iteration in range(MAX_ITERATIONS):
        clock.advance(TICK_MS)
        controller.task()
        if iteration % REPORT_EVERY == 0:
            print(
                f"time: {clock.now}ms, mission: {controller.current_index}/"
                f"{len(controller.missions)}, arm state: {int(controller.arm.state)}"
            )
        if controller.is_completed():
            print("all missions completed!")
            break

    print("===== robot control system shutting down =====")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())