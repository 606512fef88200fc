"""Control logic for a line-following rescue robot: sensors, servos, arm, chassis, missions and a simulated run."""

__version__ = "0.1.0"

__all__ = ["alg", "sensor", "servo", "kinematics", "arm", "chassis", "mission", "cli"]