"""Tests for the state vector, parameters and reference configuration."""

import math

import pytest

from pendulum_state import (
    NUM_PENDULUMS,
    PI,
    PendulumState,
    SimulationParameters,
    reference_initial_conditions,
)


class TestPendulumState:
    def test_field_order(self):
        s = PendulumState(0.1, 0.2, 0.3, 0.4)
        assert s.theta1 == 0.1
        assert s.theta2 == 0.2
        assert s.omega1 == 0.3
        assert s.omega2 == 0.4
        assert tuple(s) == (0.1, 0.2, 0.3, 0.4)

    def test_angles_not_wrapped(self):
        s = PendulumState(12.0, -40.0, 0.0, 0.0)
        assert s.theta1 == 12.0
        assert s.theta2 == -40.0


class TestSimulationParameters:
    def test_reference_defaults(self):
        p = SimulationParameters()
        assert p.arm1_length == 100.0
        assert p.arm2_length == 100.0
        assert p.mass1 == 1.0
        assert p.mass2 == 1.0
        assert p.gravity == 9.8
        assert p.time_step == 0.10159265359
        p.validate()

    def test_immutable(self):
        p = SimulationParameters()
        with pytest.raises(AttributeError):
            p.gravity = 1.0

    def test_construction_does_not_validate(self):
        p = SimulationParameters(mass1=0.0)
        assert p.mass1 == 0.0

    @pytest.mark.parametrize(
        "field, value",
        [
            ("arm1_length", 0.0),
            ("arm2_length", -1.0),
            ("mass1", 0.0),
            ("mass2", -2.0),
            ("gravity", float("nan")),
            ("time_step", float("inf")),
        ],
    )
    def test_validate_rejects(self, field, value):
        p = SimulationParameters(**{field: value})
        with pytest.raises(ValueError, match=field):
            p.validate()

    def test_validate_rejects_non_numbers(self):
        with pytest.raises(ValueError, match="real number"):
            SimulationParameters(gravity="9.8").validate()


class TestReferenceInitialConditions:
    def test_first_member(self):
        f = reference_initial_conditions(NUM_PENDULUMS)
        s = f(0)
        assert s.theta1 == PI + 0.2
        assert s.theta2 == PI - 0.2
        assert s.omega1 == 0.0
        assert s.omega2 == 0.0

    def test_offsets_scale_with_size(self):
        f = reference_initial_conditions(10)
        offset = 0.1 / 10
        s = f(3)
        assert math.isclose(s.theta1, PI - 3 * offset / 3.0 + 0.2)
        assert math.isclose(s.theta2, PI + 3 * offset - 0.2)

    def test_members_are_distinct(self):
        f = reference_initial_conditions(100)
        states = {f(i) for i in range(100)}
        assert len(states) == 100

    @pytest.mark.parametrize("size", [0, -4])
    def test_rejects_empty_ensemble(self, size):
        with pytest.raises(ValueError, match="size"):
            reference_initial_conditions(size)
