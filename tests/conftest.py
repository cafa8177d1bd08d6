"""Shared test fixtures for the pendulum ensemble."""

import math

import pytest

from pendulum_state import PendulumState, SimulationParameters


@pytest.fixture
def unit_params():
    """Unit arms and masses, earth gravity, millisecond step."""
    return SimulationParameters(
        arm1_length=1.0,
        arm2_length=1.0,
        mass1=1.0,
        mass2=1.0,
        gravity=9.8,
        time_step=0.001,
    )


@pytest.fixture
def chaotic_state():
    """Large-amplitude start well inside the chaotic regime."""
    return PendulumState(2.5, -1.0, 0.3, -0.7)


@pytest.fixture
def near_inverted():
    def f(i):
        return PendulumState(3.14 - i * 0.001, 3.14 + i * 0.001, 0.0, 0.0)

    return f


def total_energy(s, p):
    """Kinetic plus potential energy, angles measured from the downward vertical."""
    kinetic = 0.5 * p.mass1 * (p.arm1_length * s.omega1) ** 2 + 0.5 * p.mass2 * (
        (p.arm1_length * s.omega1) ** 2
        + (p.arm2_length * s.omega2) ** 2
        + 2 * p.arm1_length * p.arm2_length * s.omega1 * s.omega2 * math.cos(s.theta1 - s.theta2)
    )
    potential = -(p.mass1 + p.mass2) * p.gravity * p.arm1_length * math.cos(s.theta1) - (
        p.mass2 * p.gravity * p.arm2_length * math.cos(s.theta2)
    )
    return kinetic + potential


@pytest.fixture
def energy():
    return total_energy
