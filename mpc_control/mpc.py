"""MPC problem construction for the kinematic bicycle tracking controller.

This module encodes one receding-horizon planning problem as a constrained
nonlinear program in the generic form accepted by the solver adapter:

    minimize    cost(w)
    subject to  lbg <= g(w, p) <= ubg
                lbx <= w <= ubx

Decision vector w (6N + 2(N-1) entries):

    [ x_0..x_{N-1} | y | psi | v | cte | epsi | delta_0..delta_{N-2} | a_0..a_{N-2} ]

Parameters p are the reference polynomial coefficients c0..c3.

The symbolic template (cost, constraints) is built once per configuration with
CasADi; each cycle only fills in the numeric bounds, parameters, and initial
guess.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence, Tuple

import casadi as ca
import numpy as np

from .config import MPCConfig
from .estimator import VehicleState
from .model import kinematic_step
from .path import POLY_ORDER

INF = 1.0e19
"""Bound value IPOPT treats as infinite."""


@dataclass(frozen=True)
class VariableLayout:
    """Offsets of each state and actuator block within the decision vector."""

    n: int

    @property
    def x_start(self) -> int:
        return 0

    @property
    def y_start(self) -> int:
        return self.n

    @property
    def psi_start(self) -> int:
        return 2 * self.n

    @property
    def v_start(self) -> int:
        return 3 * self.n

    @property
    def cte_start(self) -> int:
        return 4 * self.n

    @property
    def epsi_start(self) -> int:
        return 5 * self.n

    @property
    def delta_start(self) -> int:
        return 6 * self.n

    @property
    def a_start(self) -> int:
        return 6 * self.n + self.n - 1

    @property
    def size(self) -> int:
        """Total number of decision variables."""
        return 6 * self.n + 2 * (self.n - 1)

    @property
    def n_constraints(self) -> int:
        return 6 * self.n

    @property
    def state_starts(self) -> Tuple[int, ...]:
        return (
            self.x_start,
            self.y_start,
            self.psi_start,
            self.v_start,
            self.cte_start,
            self.epsi_start,
        )

    def blocks(self) -> Tuple[Tuple[int, int], ...]:
        """(start, length) of every block, states first."""
        states = tuple((start, self.n) for start in self.state_starts)
        return states + ((self.delta_start, self.n - 1), (self.a_start, self.n - 1))

    def unpack(self, w: Sequence[float]) -> "HorizonPlan":
        """Split a solution vector into named trajectories."""
        w = np.asarray(w, dtype=float).ravel()
        if w.size != self.size:
            raise ValueError(f"Expected {self.size} decision variables, got {w.size}")
        n = self.n
        return HorizonPlan(
            x=w[self.x_start : self.x_start + n],
            y=w[self.y_start : self.y_start + n],
            psi=w[self.psi_start : self.psi_start + n],
            v=w[self.v_start : self.v_start + n],
            cte=w[self.cte_start : self.cte_start + n],
            epsi=w[self.epsi_start : self.epsi_start + n],
            delta=w[self.delta_start : self.delta_start + n - 1],
            a=w[self.a_start : self.a_start + n - 1],
        )


@dataclass(frozen=True)
class HorizonPlan:
    """Predicted states and actuators over one planning horizon."""

    x: np.ndarray
    y: np.ndarray
    psi: np.ndarray
    v: np.ndarray
    cte: np.ndarray
    epsi: np.ndarray
    delta: np.ndarray
    a: np.ndarray


@dataclass
class MPCProblem:
    """Fully specified nonlinear program for one control cycle.

    Attributes:
        nlp: Symbolic problem {"x", "p", "f", "g"} shared by all cycles of a builder.
        layout: Decision vector layout.
        x0: Initial guess.
        lbx, ubx: Decision variable bounds.
        lbg, ubg: Constraint bounds.
        p: Numeric parameters (polynomial coefficients).
    """

    nlp: Dict[str, Any]
    layout: VariableLayout
    x0: np.ndarray
    lbx: np.ndarray
    ubx: np.ndarray
    lbg: np.ndarray
    ubg: np.ndarray
    p: np.ndarray
    cost_function: ca.Function
    constraint_function: ca.Function

    def cost(self, w: Sequence[float]) -> float:
        """Evaluate the scalar cost at w."""
        return float(self.cost_function(np.asarray(w, dtype=float), self.p))

    def constraints(self, w: Sequence[float]) -> np.ndarray:
        """Evaluate the constraint residual vector g(w) at w."""
        g = self.constraint_function(np.asarray(w, dtype=float), self.p)
        return np.asarray(g.full(), dtype=float).ravel()


def shift_solution(previous: Sequence[float], layout: VariableLayout) -> np.ndarray:
    """Shift every block of a previous solution one step forward in time.

    The last entry of each block is repeated so the vector keeps its size.
    """
    previous = np.asarray(previous, dtype=float).ravel()
    shifted = np.empty_like(previous)
    for start, length in layout.blocks():
        block = previous[start : start + length]
        shifted[start : start + length - 1] = block[1:]
        shifted[start + length - 1] = block[-1]
    return shifted


class MPCProblemBuilder:
    """Builds the tracking NLP for a fixed configuration.

    The CasADi expressions for cost and constraints depend only on the
    configuration, so they are created once here. build() then produces a
    numeric MPCProblem per telemetry cycle.

    Attributes:
        config: Controller configuration.
        layout: Decision vector layout for config.horizon_steps.
        nlp: Symbolic problem dictionary for casadi.nlpsol.
    """

    def __init__(self, config: MPCConfig) -> None:
        self.config = config
        self.layout = VariableLayout(config.horizon_steps)

        w = ca.SX.sym("w", self.layout.size)
        p = ca.SX.sym("coeffs", POLY_ORDER + 1)
        cost = self._build_cost(w)
        g = self._build_constraints(w, p)

        self.nlp: Dict[str, Any] = {"x": w, "p": p, "f": cost, "g": g}
        self.cost_function = ca.Function("mpc_cost", [w, p], [cost])
        self.constraint_function = ca.Function("mpc_constraints", [w, p], [g])
        self._lbx, self._ubx = self._variable_bounds()

    def _build_cost(self, w: ca.SX) -> ca.SX:
        cfg = self.config
        lay = self.layout
        n = lay.n
        cost = 0

        # Tracking: stay on the path at the reference speed
        for t in range(n):
            cost += cfg.w_cte * w[lay.cte_start + t] ** 2
            cost += cfg.w_epsi * w[lay.epsi_start + t] ** 2
            cost += cfg.w_v * (w[lay.v_start + t] - cfg.ref_v) ** 2

        # Actuator magnitude
        for t in range(n - 1):
            cost += cfg.w_delta * w[lay.delta_start + t] ** 2
            cost += cfg.w_a * w[lay.a_start + t] ** 2

        # Actuator smoothness between consecutive steps
        for t in range(n - 2):
            cost += cfg.w_ddelta * (w[lay.delta_start + t + 1] - w[lay.delta_start + t]) ** 2
            cost += cfg.w_da * (w[lay.a_start + t + 1] - w[lay.a_start + t]) ** 2

        return cost

    def _build_constraints(self, w: ca.SX, p: ca.SX) -> ca.SX:
        lay = self.layout
        n = lay.n
        coeffs = [p[i] for i in range(POLY_ORDER + 1)]
        g = [None] * lay.n_constraints

        # Index-0 states; pinned to the current state through lbg == ubg
        for start in lay.state_starts:
            g[start] = w[start]

        # Kinematic model linking step t to step t + 1
        for t in range(n - 1):
            state = [w[start + t] for start in lay.state_starts]
            delta = w[lay.delta_start + t]
            a = w[lay.a_start + t]
            predicted = kinematic_step(
                state, delta, a, coeffs, self.config.dt, self.config.lf, ops=ca
            )
            for start, value in zip(lay.state_starts, predicted):
                g[start + t + 1] = w[start + t + 1] - value

        return ca.vertcat(*g)

    def _variable_bounds(self) -> Tuple[np.ndarray, np.ndarray]:
        lay = self.layout
        cfg = self.config
        lbx = np.full(lay.size, -INF)
        ubx = np.full(lay.size, INF)

        steer = slice(lay.delta_start, lay.delta_start + lay.n - 1)
        lbx[steer] = -cfg.max_steer
        ubx[steer] = cfg.max_steer

        throttle = slice(lay.a_start, lay.a_start + lay.n - 1)
        lbx[throttle] = cfg.throttle_min
        ubx[throttle] = cfg.throttle_max
        return lbx, ubx

    def initial_guess(
        self, state: VehicleState, previous: Optional[Sequence[float]] = None
    ) -> np.ndarray:
        """Zeros (or the shifted previous solution) with index-0 states set to state."""
        if previous is not None and np.size(previous) == self.layout.size:
            x0 = shift_solution(previous, self.layout)
        else:
            x0 = np.zeros(self.layout.size)
        for start, value in zip(self.layout.state_starts, state.as_tuple()):
            x0[start] = value
        return x0

    def build(
        self,
        state: VehicleState,
        coeffs: Sequence[float],
        previous: Optional[Sequence[float]] = None,
    ) -> MPCProblem:
        """Produce the nonlinear program for the current cycle.

        Args:
            state: Latency-compensated vehicle state.
            coeffs: Reference polynomial coefficients c0..c3.
            previous: Previous cycle's solution vector for warm starting.

        Returns:
            MPCProblem ready to be handed to an Optimizer.
        """
        coeffs = np.asarray(coeffs, dtype=float).ravel()
        if coeffs.size != POLY_ORDER + 1:
            raise ValueError(f"Expected {POLY_ORDER + 1} coefficients, got {coeffs.size}")

        starts = list(self.layout.state_starts)
        lbg = np.zeros(self.layout.n_constraints)
        ubg = np.zeros(self.layout.n_constraints)
        lbg[starts] = state.as_array()
        ubg[starts] = state.as_array()

        return MPCProblem(
            nlp=self.nlp,
            layout=self.layout,
            x0=self.initial_guess(state, previous),
            lbx=self._lbx.copy(),
            ubx=self._ubx.copy(),
            lbg=lbg,
            ubg=ubg,
            p=coeffs,
            cost_function=self.cost_function,
            constraint_function=self.constraint_function,
        )
