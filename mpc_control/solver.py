"""Solver adapter between the MPC problem and a nonlinear optimizer.

This module provides:
- Optimizer: capability interface (problem in, status + solution vector out)
- IpoptOptimizer: CasADi nlpsol backend using IPOPT
- solve(): runs an optimizer, validates the result, and unpacks the first
  actuator pair and the predicted trajectory

A failed or numerically invalid solve is always raised as an error; no command
is ever derived from a partial solution.
"""

import logging
import math
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

import casadi as ca
import numpy as np

from .config import MPCConfig
from .errors import SolverInternalFailure, SolverNonConvergence
from .mpc import HorizonPlan, MPCProblem

# IPOPT return statuses that indicate a numerical or internal failure rather
# than an optimizer that simply ran out of iterations/time or found the
# problem infeasible.
INTERNAL_FAILURE_STATUSES = frozenset(
    {
        "Invalid_Number_Detected",
        "Error_In_Step_Computation",
        "Internal_Error",
        "Insufficient_Memory",
        "Unrecoverable_Exception",
        "NonIpopt_Exception_Thrown",
        "Invalid_Problem_Definition",
        "Invalid_Option",
        "NaN_Detected",
    }
)


@dataclass
class OptimizerResult:
    """Raw optimizer output.

    Attributes:
        success: True if the optimizer reports a (locally) optimal point.
        status: Backend status string.
        x: Solution vector (may be garbage when success is False).
        cost: Objective value at x.
        iterations: Iteration count, if reported.
    """

    success: bool
    status: str
    x: np.ndarray
    cost: float
    iterations: Optional[int] = None


class Optimizer(ABC):
    """Generic constrained nonlinear optimizer.

    Implementations minimize problem's cost subject to its constraint and
    variable bounds, starting from problem.x0. Swapping backends does not
    change the problem builder's contract.
    """

    @abstractmethod
    def minimize(self, problem: MPCProblem) -> OptimizerResult:
        """Solve the problem and report status and solution."""


class IpoptOptimizer(Optimizer):
    """IPOPT through casadi.nlpsol.

    The nlpsol instance is created lazily and reused for every problem built
    from the same symbolic template.
    """

    def __init__(self, config: MPCConfig, options: Optional[Dict[str, Any]] = None) -> None:
        self.plugin = config.solver_plugin
        self.options = config.solver_options()
        if options:
            self.options.update(options)
        self._solver: Optional[ca.Function] = None
        self._template_id: Optional[int] = None

    def _solver_for(self, problem: MPCProblem) -> ca.Function:
        if self._solver is None or self._template_id != id(problem.nlp):
            self._solver = ca.nlpsol("mpc_solver", self.plugin, problem.nlp, self.options)
            self._template_id = id(problem.nlp)
        return self._solver

    def minimize(self, problem: MPCProblem) -> OptimizerResult:
        solver = self._solver_for(problem)
        try:
            result = solver(
                x0=problem.x0,
                lbx=problem.lbx,
                ubx=problem.ubx,
                lbg=problem.lbg,
                ubg=problem.ubg,
                p=problem.p,
            )
        except RuntimeError as e:
            raise SolverInternalFailure(f"{self.plugin} raised: {e}", status="exception") from e

        stats = solver.stats()
        return OptimizerResult(
            success=bool(stats.get("success", False)),
            status=str(stats.get("return_status", "unknown")),
            x=np.asarray(result["x"].full(), dtype=float).ravel(),
            cost=float(result["f"]),
            iterations=stats.get("iter_count"),
        )


@dataclass
class MPCSolution:
    """Validated outcome of one solve.

    Attributes:
        plan: Full predicted horizon.
        x: Raw solution vector (kept for warm starting the next cycle).
        cost: Objective value.
        status: Backend status string.
        solve_time: Wall-clock time spent in the optimizer (seconds).
    """

    plan: HorizonPlan
    x: np.ndarray
    cost: float
    status: str
    solve_time: float

    @property
    def steering(self) -> float:
        """First steering angle (model sign convention, radians)."""
        return float(self.plan.delta[0])

    @property
    def throttle(self) -> float:
        """First acceleration / throttle value."""
        return float(self.plan.a[0])

    @property
    def mpc_x(self) -> list:
        """Predicted vehicle-frame x positions for t = 1..N-1."""
        return self.plan.x[1:].tolist()

    @property
    def mpc_y(self) -> list:
        """Predicted vehicle-frame y positions for t = 1..N-1."""
        return self.plan.y[1:].tolist()


def classify_failure(status: str) -> type:
    """Map a backend status to the error class it should be reported as."""
    if status in INTERNAL_FAILURE_STATUSES:
        return SolverInternalFailure
    return SolverNonConvergence


def solve(problem: MPCProblem, optimizer: Optimizer) -> MPCSolution:
    """Run the optimizer and unpack a validated solution.

    Args:
        problem: Problem built for the current cycle.
        optimizer: Optimizer backend.

    Returns:
        MPCSolution with the horizon plan.

    Raises:
        SolverNonConvergence: Optimizer did not reach an optimal point.
        SolverInternalFailure: Numerical failure, or a non-finite solution.
    """
    start = time.perf_counter()
    result = optimizer.minimize(problem)
    solve_time = time.perf_counter() - start

    if not result.success:
        error_cls = classify_failure(result.status)
        raise error_cls(
            f"Optimizer failed after {solve_time * 1000:.1f}ms: {result.status}",
            status=result.status,
        )

    x = np.asarray(result.x, dtype=float).ravel()
    if x.size != problem.layout.size:
        raise SolverInternalFailure(
            f"Solution has {x.size} entries, expected {problem.layout.size}",
            status=result.status,
        )
    if not np.all(np.isfinite(x)) or not math.isfinite(result.cost):
        raise SolverInternalFailure(
            "Solution contains NaN/Inf values", status=result.status
        )

    logging.debug(
        f"Solved in {solve_time * 1000:.1f}ms ({result.iterations} iterations), "
        f"cost={result.cost:.3f}, status={result.status}"
    )
    return MPCSolution(
        plan=problem.layout.unpack(x),
        x=x,
        cost=float(result.cost),
        status=result.status,
        solve_time=solve_time,
    )
