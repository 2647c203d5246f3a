"""
Tests for the MPC problem builder.
"""

import numpy as np
import pytest

from mpc_control.estimator import VehicleState
from mpc_control.model import kinematic_step
from mpc_control.mpc import INF, MPCProblemBuilder, VariableLayout, shift_solution


def rollout(layout, state, deltas, accels, coeffs, dt, lf):
    """Pack a model-consistent trajectory into a decision vector."""
    w = np.zeros(layout.size)
    current = state.as_tuple()
    for t in range(layout.n):
        for start, value in zip(layout.state_starts, current):
            w[start + t] = value
        if t < layout.n - 1:
            w[layout.delta_start + t] = deltas[t]
            w[layout.a_start + t] = accels[t]
            current = kinematic_step(current, deltas[t], accels[t], coeffs, dt, lf)
    return w


class TestVariableLayout:
    def test_sizes(self):
        layout = VariableLayout(10)

        assert layout.size == 6 * 10 + 2 * 9
        assert layout.n_constraints == 60
        assert layout.state_starts == (0, 10, 20, 30, 40, 50)
        assert layout.delta_start == 60
        assert layout.a_start == 69

    def test_unpack(self):
        layout = VariableLayout(4)
        w = np.arange(layout.size, dtype=float)

        plan = layout.unpack(w)

        assert plan.x.tolist() == [0, 1, 2, 3]
        assert plan.epsi.tolist() == [20, 21, 22, 23]
        assert plan.delta.tolist() == [24, 25, 26]
        assert plan.a.tolist() == [27, 28, 29]

    def test_unpack_wrong_size(self):
        with pytest.raises(ValueError):
            VariableLayout(4).unpack(np.zeros(5))


def test_shift_solution_repeats_last_entry():
    layout = VariableLayout(3)
    w = np.arange(layout.size, dtype=float)

    shifted = shift_solution(w, layout)

    assert shifted[0:3].tolist() == [1, 2, 2]
    assert shifted[layout.delta_start : layout.delta_start + 2].tolist() == [19, 19]
    assert shifted[layout.a_start : layout.a_start + 2].tolist() == [21, 21]


class TestMPCProblemBuilder:
    @pytest.fixture
    def builder(self, config):
        return MPCProblemBuilder(config)

    @pytest.fixture
    def state(self):
        return VehicleState(0.5, 0.1, 0.02, 12.0, 0.4, -0.05)

    def test_variable_bounds(self, builder, state, config):
        problem = builder.build(state, [0.0, 0.0, 0.0, 0.0])
        lay = problem.layout

        delta = slice(lay.delta_start, lay.delta_start + lay.n - 1)
        accel = slice(lay.a_start, lay.a_start + lay.n - 1)
        assert np.all(problem.lbx[delta] == -config.max_steer)
        assert np.all(problem.ubx[delta] == config.max_steer)
        assert np.all(problem.lbx[accel] == config.throttle_min)
        assert np.all(problem.ubx[accel] == config.throttle_max)
        assert np.all(problem.lbx[: lay.delta_start] == -INF)
        assert np.all(problem.ubx[: lay.delta_start] == INF)

    def test_constraint_bounds_pin_initial_state(self, builder, state):
        problem = builder.build(state, [0.0, 0.0, 0.0, 0.0])
        lay = problem.layout

        starts = list(lay.state_starts)
        assert problem.lbg[starts].tolist() == list(state.as_tuple())
        assert problem.ubg[starts].tolist() == list(state.as_tuple())
        others = np.ones(lay.n_constraints, dtype=bool)
        others[starts] = False
        assert np.all(problem.lbg[others] == 0.0)
        assert np.all(problem.ubg[others] == 0.0)

    def test_model_rollout_satisfies_constraints(self, builder, state, config):
        coeffs = [0.3, 0.05, -0.01, 0.0005]
        n = config.horizon_steps
        deltas = np.linspace(-0.2, 0.2, n - 1)
        accels = np.linspace(0.5, -0.3, n - 1)
        w = rollout(VariableLayout(n), state, deltas, accels, coeffs, config.dt, config.lf)

        problem = builder.build(state, coeffs)
        g = problem.constraints(w)

        assert np.all(g >= problem.lbg - 1e-9)
        assert np.all(g <= problem.ubg + 1e-9)

    def test_perturbed_trajectory_violates_constraints(self, builder, state, config):
        coeffs = [0.0, 0.0, 0.0, 0.0]
        n = config.horizon_steps
        w = rollout(VariableLayout(n), state, np.zeros(n - 1), np.zeros(n - 1), coeffs, config.dt, config.lf)
        w[VariableLayout(n).y_start + 3] += 0.5

        g = builder.build(state, coeffs).constraints(w)

        assert np.max(np.abs(g - builder.build(state, coeffs).lbg)) == pytest.approx(0.5)

    def test_zero_cost_on_straight_path_at_reference_speed(self, builder, config):
        state = VehicleState(0.0, 0.0, 0.0, config.ref_v, 0.0, 0.0)
        coeffs = [0.0, 0.0, 0.0, 0.0]
        n = config.horizon_steps
        w = rollout(VariableLayout(n), state, np.zeros(n - 1), np.zeros(n - 1), coeffs, config.dt, config.lf)

        problem = builder.build(state, coeffs)

        assert problem.cost(w) == pytest.approx(0.0, abs=1e-9)

    def test_cost_penalizes_steering_change(self, builder, config):
        state = VehicleState(0.0, 0.0, 0.0, config.ref_v, 0.0, 0.0)
        problem = builder.build(state, [0.0, 0.0, 0.0, 0.0])
        lay = problem.layout

        smooth = np.zeros(lay.size)
        smooth[lay.delta_start : lay.delta_start + lay.n - 1] = 0.1
        jumpy = smooth.copy()
        jumpy[lay.delta_start + 1] = -0.1

        assert problem.cost(jumpy) > problem.cost(smooth)

    def test_cold_start_initial_guess(self, builder, state):
        problem = builder.build(state, [0.0, 0.0, 0.0, 0.0])
        lay = problem.layout

        for start, value in zip(lay.state_starts, state.as_tuple()):
            assert problem.x0[start] == value
        mask = np.ones(lay.size, dtype=bool)
        mask[list(lay.state_starts)] = False
        assert np.all(problem.x0[mask] == 0.0)

    def test_warm_start_initial_guess(self, builder, state):
        lay = builder.layout
        previous = np.arange(lay.size, dtype=float)

        problem = builder.build(state, [0.0, 0.0, 0.0, 0.0], previous=previous)

        assert problem.x0[1] == previous[2]
        assert problem.x0[lay.delta_start] == previous[lay.delta_start + 1]
        assert problem.x0[lay.v_start] == state.v

    def test_wrong_sized_previous_is_ignored(self, builder, state):
        problem = builder.build(state, [0.0, 0.0, 0.0, 0.0], previous=np.ones(3))

        assert problem.x0[1] == 0.0

    def test_rejects_wrong_coefficient_count(self, builder, state):
        with pytest.raises(ValueError):
            builder.build(state, [0.0, 1.0])

    def test_template_is_shared_between_cycles(self, builder, state):
        first = builder.build(state, [0.0, 0.0, 0.0, 0.0])
        second = builder.build(state, [1.0, 0.0, 0.0, 0.0])

        assert first.nlp is second.nlp
        assert second.p.tolist() == [1.0, 0.0, 0.0, 0.0]
