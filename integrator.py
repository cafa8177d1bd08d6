"""
Fixed-step integration
Classical 4th-order Runge-Kutta step for any four-component state
"""

from __future__ import annotations

from typing import Callable

import numpy as np

from equations import derivative
from pendulum_state import PendulumState, SimulationParameters

RightHandSide = Callable[[PendulumState, SimulationParameters], PendulumState]


def _shift(state: PendulumState, k: PendulumState, weight: float) -> PendulumState:
    return PendulumState(*(y + weight * dy for y, dy in zip(state, k)))


def step(
    state: PendulumState,
    params: SimulationParameters,
    dt: float,
    rhs: RightHandSide = derivative,
) -> PendulumState:
    """
    Advance `state` by exactly `dt` with four evaluations of `rhs`.

    The right-hand side is opaque to the step, so any four-component ODE can
    be substituted for the double pendulum.
    """

    with np.errstate(all="ignore"):
        k1 = PendulumState(*(dt * v for v in rhs(state, params)))
        k2 = PendulumState(*(dt * v for v in rhs(_shift(state, k1, 0.5), params)))
        k3 = PendulumState(*(dt * v for v in rhs(_shift(state, k2, 0.5), params)))
        k4 = PendulumState(*(dt * v for v in rhs(_shift(state, k3, 1.0), params)))

        return PendulumState(
            *(
                float(y + (a + 2.0 * b + 2.0 * c + d) / 6.0)
                for y, a, b, c, d in zip(state, k1, k2, k3, k4)
            )
        )
