"""
Double Pendulum State
State vector, physical parameters and the reference configuration
"""

from __future__ import annotations

import math
from dataclasses import dataclass, fields
from typing import Callable, NamedTuple

# Reference configuration
PI = 3.14159265359
ARM_LENGTH = 100.0
MASS = 1.0
GRAVITY = 9.8
TIME_STEP = 0.10159265359
NUM_PENDULUMS = 10000
NUM_TICKS = 1024


class PendulumState(NamedTuple):
    """Angles (rad, never wrapped) and angular velocities of both arms."""

    theta1: float
    theta2: float
    omega1: float
    omega2: float


@dataclass(frozen=True)
class SimulationParameters:
    """
    Physical constants shared by every member of an ensemble.

    Construction does not check values so that degenerate configurations can
    still be fed to the equations of motion; call validate() before running.
    """

    arm1_length: float = ARM_LENGTH
    arm2_length: float = ARM_LENGTH
    mass1: float = MASS
    mass2: float = MASS
    gravity: float = GRAVITY
    time_step: float = TIME_STEP

    def validate(self) -> None:
        """Raise ValueError on the first non-positive or non-finite field."""
        for field in fields(self):
            value = getattr(self, field.name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"{field.name} must be a real number, got {value!r}")
            if not math.isfinite(value) or value <= 0:
                raise ValueError(f"{field.name} must be positive and finite, got {value!r}")


def reference_initial_conditions(size: int = NUM_PENDULUMS) -> Callable[[int], PendulumState]:
    """
    Initial-condition generator spreading `size` pendulums around the
    inverted position, each offset by 0.1/size from its neighbour.
    """
    if size < 1:
        raise ValueError(f"size must be >= 1, got {size}")
    offset = 0.1 / size

    def initial_condition(index: int) -> PendulumState:
        return PendulumState(
            PI - index * offset / 3.0 + 0.2,
            PI + index * offset - 0.2,
            0.0,
            0.0,
        )

    return initial_condition
