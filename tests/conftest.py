"""Shared fixtures for the MPC control tests."""

import json
from dataclasses import replace

import numpy as np
import pytest

from mpc_control.config import MPCConfig
from mpc_control.solver import Optimizer, OptimizerResult


class FakeOptimizer(Optimizer):
    """Optimizer double returning a fixed actuator sequence.

    The solution vector is the problem's initial guess with every delta and a
    entry overwritten, so its size always matches the layout.
    """

    def __init__(self, delta=0.1, a=0.5, success=True, status="Solve_Succeeded", cost=1.0, x=None):
        self.delta = delta
        self.a = a
        self.success = success
        self.status = status
        self.cost = cost
        self.x = x
        self.problems = []

    def minimize(self, problem):
        self.problems.append(problem)
        if self.x is not None:
            x = np.asarray(self.x, dtype=float)
        else:
            lay = problem.layout
            x = problem.x0.copy()
            x[lay.delta_start : lay.delta_start + lay.n - 1] = self.delta
            x[lay.a_start : lay.a_start + lay.n - 1] = self.a
        return OptimizerResult(
            success=self.success, status=self.status, x=x, cost=self.cost, iterations=1
        )


def telemetry_payload(ptsx, ptsy, x=0.0, y=0.0, psi=0.0, speed=10.0):
    return {"ptsx": list(ptsx), "ptsy": list(ptsy), "x": x, "y": y, "psi": psi, "speed": speed}


def telemetry_frame(payload):
    return '42["telemetry",' + json.dumps(payload) + "]"


@pytest.fixture
def config():
    """Default tuning with a generous solver time limit for slow CI machines."""
    return replace(MPCConfig(), solver_max_cpu_time=5.0)


@pytest.fixture
def fake_optimizer():
    """Factory for FakeOptimizer instances."""
    return FakeOptimizer


@pytest.fixture
def straight_payload():
    """Vehicle at (5, 2) heading along +x with waypoints on the line y = 2."""
    ptsx = [0.0, 10.0, 20.0, 30.0, 40.0, 50.0, 60.0]
    ptsy = [2.0] * len(ptsx)
    return telemetry_payload(ptsx, ptsy, x=5.0, y=2.0, psi=0.0, speed=10.0)


@pytest.fixture
def straight_frame(straight_payload):
    return telemetry_frame(straight_payload)


@pytest.fixture
def make_frame():
    """Factory building a telemetry frame from waypoints and pose."""

    def _make(ptsx, ptsy, x=0.0, y=0.0, psi=0.0, speed=10.0):
        return telemetry_frame(telemetry_payload(ptsx, ptsy, x, y, psi, speed))

    return _make
