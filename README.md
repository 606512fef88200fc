# rescuebot

Control logic for a small rescue robot that follows lines on a grid, picks up
objects with a two-link arm and carries them to drop-off points. It is plain
Python with no dependencies. Hardware is reached only through callables you
pass in (sensor readers, pulse callbacks, a millisecond clock), so the logic
can be run on a desktop and driven by a simulated clock.

## Modules

- `rescuebot.alg`: `limit` (clamp a value), `slope_ctrl` (ramp a reference
  toward a target), and a `PID` controller whose `calc(params)` takes
  `PIDParams` (`kp`, `ki`, `kd`, `sum_max`, `output_max`; also built with
  `PIDParams.from_sequence`).
- `rescuebot.sensor`: `SensorSystem`, holding the eight-channel line tracker
  (`line_position`, `deviation`, `track_status`, `is_at_cross`), the range
  finder (`read_distance`, `is_object_detected`, `is_grabbable`), grid
  navigation on an 8 x 8 grid (`set_position`, `set_heading`,
  `update_position`, `turn_direction` with `GridPosition`, `Heading`,
  `Direction`), flame points `A` to `O` (`set_flame_point`, `set_team_color`,
  `nearest_flame`, `mark_flame_collected`) and task and error status. Its
  `line_reader`, `distance_reader` and `clock` arguments supply the readings.
- `rescuebot.servo`: `ServoBank`, three `Servo`s (ids 1 to 3) stepped toward
  their target pulse widths at most once every 20 ms by `task()`. Pulses are
  handed to an `on_pulse(channel, pulse)` callback.
- `rescuebot.kinematics`: `calculate_angles` (elbow-up inverse kinematics),
  `forward_kinematics` and `angle_to_pulse` for the two-link arm described by
  `ArmConfig`. Unreachable targets raise `ArmError`, whose `code` is an
  `ArmErrorCode` with a `description()`.
- `rescuebot.arm`: `Arm`, the state machine (`ArmState`, `ClawState`) for
  moving, rotating the base, grabbing, holding and releasing, advanced by
  `task()`. `move_to`, `move_to_angles` and `rotate` raise `ArmError` when the
  target is out of range; `grab` and `release` return `False` when the arm is
  busy.
- `rescuebot.chassis`: `Chassis`, a mecanum base that follows the line with a
  PID loop, switches to the next entry of its `task_list` at a crossing, and
  mixes the body reference (`ChassisRef`) into four `Motor` speed references.
  Each output step passes the motors to an optional `motor_writer`.
- `rescuebot.mission`: `MissionController`, which runs a queue of up to 20
  `Mission`s (`MissionType`) one step per `task()` call; `add` raises
  `MissionQueueFull` when the queue is full, `add_with_position` silently drops
  the mission. It also keeps up to 8 `FirePosition`s (`set_fire_position`,
  `next_available_fire_position`, `mark_fire_position_collected`,
  `collected_fire_count`, `collected_fire_count_by_color`).
- `rescuebot.cli`: the `rescuebot` command, plus `SimulatedClock`,
  `setup_fire_positions` and `setup_arm_mission_sequence`.

## Install

```
pip install .
```

Add the `test` extra to get pytest: `pip install .[test]`.

## Run the simulation

```
rescuebot
```

The command takes no options besides `--help`. It wires the controller to a
simulated clock and a range finder that always reads 200 mm, loads three fire
positions, prints the inverse-kinematics result for five sample targets,
queues a sequence of arm missions and steps the controller in 50 ms ticks,
reporting every tenth tick, until every mission has finished or 100 ticks have
passed. Servo pulses are printed as they are sent.

## Use it from Python

```python
from rescuebot.cli import SimulatedClock
from rescuebot.mission import FireColor, MissionController, MissionType

clock = SimulatedClock()
controller = MissionController(clock=clock)
controller.set_fire_position(0, 200.0, 150.0, FireColor.RED)
controller.add(MissionType.ARM_HOME, 0)
controller.start()
while not controller.is_completed():
    clock.advance(50)
    controller.task()
```

Without a `clock`, the controller and its parts use the monotonic system
clock in milliseconds.

## What it does not do

- It talks to no hardware. There is no GPIO, PWM, timer or ultrasonic driver;
  readings and outputs only pass through the callables given to
  `SensorSystem`, `ServoBank`, `Arm` and `Chassis`. The `rescuebot` command
  simulates only the range finder and the claw's object detector; the line
  tracker is never read there.
- `GOTO_FIRE`, `PLACE_FIRE` and `PUT` missions, and `STOP`, complete on the
  step they start; there is no path planning to fire positions and no placing
  routine.
- Turn missions finish on the line-tracker status alone; there is no odometry
  or gyroscope.