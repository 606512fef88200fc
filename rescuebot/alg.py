"""Clamping, ramping and PID control helpers."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass


def limit(value: float, upper: float, lower: float) -> float:
    """Clamp ``value`` into the closed range ``[lower, upper]``."""
    if value > upper:
        return upper
    if value < lower:
        return lower
    return value


def slope_ctrl(raw_ref: float, target_ref: float, acc: float, dec: float) -> float:
    """Move ``raw_ref`` one step toward ``target_ref`` using ramp rates.

    For a positive reference ``acc`` is the step when rising and ``dec`` the
    step when falling; for a non-positive reference the roles mirror. Once the
    reference lies within one step of the target, the target is returned.
    """
    if raw_ref > 0:
        if raw_ref < target_ref - acc:
            return raw_ref + acc
        if raw_ref > target_ref + dec:
            return raw_ref - dec
        return target_ref
    if raw_ref > target_ref + acc:
        return raw_ref - acc
    if raw_ref < target_ref - dec:
        return raw_ref + dec
    return target_ref


@dataclass
class PIDParams:
    """Gains and limits of a PID controller."""

    kp: float = 0.0
    ki: float = 0.0
    kd: float = 0.0
    sum_max: float = 0.0
    output_max: float = 0.0

    @classmethod
    def from_sequence(cls, values: Sequence[float]) -> PIDParams:
        """Build parameters from ``(kp, ki, kd, sum_max, output_max)``."""
        if len(values) != 5:
            raise ValueError(
                f"expected 5 PID parameters (kp, ki, kd, sum_max, output_max), got {len(values)}"
            )
        kp, ki, kd, sum_max, output_max = values
        return cls(kp, ki, kd, sum_max, output_max)


@dataclass
class PID:
    """State of a discrete PID controller."""

    ref: float = 0.0
    fdb: float = 0.0
    err: float = 0.0
    err_last: float = 0.0
    sum: float = 0.0
    output: float = 0.0

    def add_ref(self, inc: float) -> None:
        """Shift the reference by ``inc``."""
        self.ref += inc

    def clear(self) -> None:
        """Reset every value of the controller to zero."""
        self.ref = 0.0
        self.fdb = 0.0
        self.err = 0.0
        self.err_last = 0.0
        self.sum = 0.0
        self.output = 0.0

    def calc(self, params: PIDParams) -> float:
        """Run one control step and return the clamped output."""
        error = self.ref - self.fdb
        self.sum += error
        self.err_last = self.err
        self.err = error
        d_error = self.err - self.err_last

        self.sum = limit(self.sum, params.sum_max, -params.sum_max)
        raw = params.kp * error + params.ki * self.sum + params.kd * d_error
        self.output = limit(raw, params.output_max, -params.output_max)
        return self.output