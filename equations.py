from __future__ import annotations

import numpy as np

from pendulum_state import PendulumState, SimulationParameters


def derivative(state: PendulumState, params: SimulationParameters) -> PendulumState:
    """
    equations of motion for a double pendulum with point masses on massless arms.

    Returns d(state)/dt. A vanishing coupling denominator or non-finite input
    yields NaN/Inf accelerations instead of raising.
    """

    theta1, theta2, omega1, omega2 = (np.float64(v) for v in state)
    l1 = params.arm1_length
    l2 = params.arm2_length
    m1 = params.mass1
    m2 = params.mass2
    g = params.gravity

    with np.errstate(all="ignore"):
        delta = theta1 - theta2
        sin_delta = np.sin(delta)
        cos_delta = np.cos(delta)

        denominator = 2.0 * m1 + m2 - m2 * np.cos(2.0 * theta1 - 2.0 * theta2)
        alpha1 = (
            -g * (2.0 * m1 + m2) * np.sin(theta1)
            - m2 * g * np.sin(theta1 - 2.0 * theta2)
            - 2.0 * sin_delta * m2 * (omega2**2 * l2 + omega1**2 * l1 * cos_delta)
        ) / (l1 * denominator)
        alpha2 = (
            2.0
            * sin_delta
            * (
                omega1**2 * l1 * (m1 + m2)
                + g * (m1 + m2) * np.cos(theta1)
                + omega2**2 * l2 * m2 * cos_delta
            )
            / (l2 * denominator)
        )

    return PendulumState(state[2], state[3], float(alpha1), float(alpha2))
