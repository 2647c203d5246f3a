"""Configuration parameters for the MPC path tracking controller.

This module centralizes all configuration parameters including:
- Vehicle model parameters
- Prediction horizon and timing
- Cost function weights
- Actuator limits
- Solver options
- Visualization settings
- WebSocket server parameters

All parameters are documented with their purpose, valid ranges, and tuning rationale.
The module-level constants are snapshotted into an immutable MPCConfig at startup;
nothing reads or mutates them at runtime after that.
"""

import math
from dataclasses import dataclass

# ============================================================================
# Vehicle Model Parameters
# ============================================================================

LF = 2.67
"""Distance from the front axle to the center of gravity (meters).

Scale factor of the kinematic bicycle heading update:
    psi_{t+1} = psi_t + (v_t / LF) * delta_t * dt

Origin: measured by driving the simulator vehicle in a constant-radius circle
with constant steering and speed, then tuning LF until the model radius matched.
"""

MAX_STEER = math.radians(25.0)
"""Maximum steering angle magnitude (radians). Hardware limit of 25 degrees.

Also used as the bound on the emitted steering command.
"""

THROTTLE_MIN = -1.0
"""Minimum throttle / acceleration actuator value (full brake)."""

THROTTLE_MAX = 1.0
"""Maximum throttle / acceleration actuator value (full throttle)."""

STEERING_SIGN = -1.0
"""Sign applied to the solved steering variable before emission.

The model treats positive delta as a counter-clockwise (left) turn while the
simulator's actuator treats positive steering as a right turn. Set to 1.0 for an
actuator that shares the model's convention.
"""


# ============================================================================
# Prediction Horizon
# ============================================================================

HORIZON_STEPS = 10
"""Number of predicted states N in the planning horizon (range: [3, 25]).

Tuning rationale:
- N * DT = 1.0s of preview is enough to anticipate curves at REF_V
- Larger horizons grow the NLP (6N + 2(N-1) variables) and the solve time
- Solve time must stay well inside one telemetry period
"""

DT = 0.1
"""Timestep between predicted states (seconds).

Tuning rationale:
- Matches the actuation latency so the latency step and the model step agree
- Smaller values make the discretization more accurate but shorten the preview
"""

REF_V = 40.0
"""Reference speed the cost function pulls the vehicle toward (simulator speed units)."""

LATENCY = 0.1
"""Actuation latency between command computation and execution (seconds).

The estimated state is propagated forward by this interval using the previous
command before the horizon is optimized. Set to 0.0 to disable the propagation.
"""


# ============================================================================
# Cost Function Weights
# ============================================================================

# Tracking weights
W_CTE = 2000.0
"""Weight on squared cross-track error (range: >= 0).

Tuning rationale:
- Dominant term: staying on the path is the primary objective
- Same order as W_EPSI so heading and lateral errors are corrected together
"""

W_EPSI = 2000.0
"""Weight on squared heading error (range: >= 0)."""

W_V = 1.0
"""Weight on squared speed error relative to REF_V (range: >= 0).

Kept small so the vehicle slows down rather than leaving the path in curves.
"""

# Actuator magnitude weights
W_DELTA = 5.0
"""Weight on squared steering magnitude (range: >= 0)."""

W_A = 5.0
"""Weight on squared acceleration magnitude (range: >= 0)."""

# Actuator smoothness weights
W_DDELTA = 200.0
"""Weight on squared change of steering between consecutive steps (range: >= 0).

Tuning rationale:
- Suppresses high-frequency steering chatter between solves
- Too large makes the controller lag behind curve entries
"""

W_DA = 10.0
"""Weight on squared change of acceleration between consecutive steps (range: >= 0)."""


# ============================================================================
# Solver Parameters (IPOPT via CasADi)
# ============================================================================

SOLVER_PLUGIN = "ipopt"
"""CasADi nlpsol plugin used for the nonlinear program."""

SOLVER_MAX_CPU_TIME = 0.5
"""Maximum CPU time per solve (seconds).

A solve exceeding this limit is reported as non-convergence and the cycle is
skipped instead of blocking the session indefinitely.
"""

SOLVER_MAX_ITER = 200
"""Maximum number of IPOPT iterations per solve."""

SOLVER_TOL = 1e-6
"""IPOPT convergence tolerance."""

SOLVER_PRINT_LEVEL = 0
"""IPOPT console verbosity (0 = silent, 5 = default IPOPT output)."""

WARM_START = True
"""Seed each solve with the previous solution shifted by one step."""


# ============================================================================
# Visualization Colors
# ============================================================================

PLOT_ORANGE = "#f74823"
"""Primary color - used for measured data and actual trajectory."""

PLOT_BLUE = "#2374f7"
"""Secondary color - used for reference and predicted paths."""

PLOT_CREAM = "#fffdee"
"""Light color for text and labels on dark backgrounds."""

PLOT_TAUPE = "#686a5f"
"""Neutral color for guides, grids, and secondary elements."""

PLOT_YELLOW_ORANGE = "#ffa726"
"""Accent color for highlights such as skipped cycles."""

PLOT_DARK_BLUE = "#0d1b2a"
"""Dark background color for plots."""

# Terminal color codes (ANSI escape sequences)
TERM_ORANGE = "\033[38;2;247;72;35m"
"""Terminal color code for orange (RGB: 247, 72, 35)."""

TERM_BLUE = "\033[38;2;35;116;247m"
"""Terminal color code for blue (RGB: 35, 116, 247)."""

TERM_RESET = "\033[0m"
"""Terminal color reset code."""


# ============================================================================
# WebSocket Configuration
# ============================================================================

WS_HOST = "0.0.0.0"
"""Interface the controller server listens on."""

WS_PORT = 4567
"""Port the simulator connects to."""

WS_SEND_DELAY_SECONDS = 0.1
"""Artificial delay before each command is sent (seconds).

Mimics real driving conditions where the vehicle does not actuate commands
instantly. Should match LATENCY so the compensation is meaningful.
"""


# ============================================================================
# Immutable runtime configuration
# ============================================================================


@dataclass(frozen=True)
class MPCConfig:
    """Immutable snapshot of the controller tuning.

    Constructed once at startup and passed by reference into every component.
    Use dataclasses.replace() to derive a variant (e.g. in tests).
    """

    horizon_steps: int = HORIZON_STEPS
    dt: float = DT
    ref_v: float = REF_V
    lf: float = LF
    latency: float = LATENCY
    max_steer: float = MAX_STEER
    throttle_min: float = THROTTLE_MIN
    throttle_max: float = THROTTLE_MAX
    steering_sign: float = STEERING_SIGN

    w_cte: float = W_CTE
    w_epsi: float = W_EPSI
    w_v: float = W_V
    w_delta: float = W_DELTA
    w_a: float = W_A
    w_ddelta: float = W_DDELTA
    w_da: float = W_DA

    solver_plugin: str = SOLVER_PLUGIN
    solver_max_cpu_time: float = SOLVER_MAX_CPU_TIME
    solver_max_iter: int = SOLVER_MAX_ITER
    solver_tol: float = SOLVER_TOL
    solver_print_level: int = SOLVER_PRINT_LEVEL
    warm_start: bool = WARM_START

    def __post_init__(self) -> None:
        if self.horizon_steps < 3:
            raise ValueError(f"horizon_steps must be >= 3, got {self.horizon_steps}")
        if self.dt <= 0:
            raise ValueError(f"dt must be positive, got {self.dt}")
        if self.lf <= 0:
            raise ValueError(f"lf must be positive, got {self.lf}")
        if self.latency < 0:
            raise ValueError(f"latency must be non-negative, got {self.latency}")
        if self.max_steer <= 0:
            raise ValueError(f"max_steer must be positive, got {self.max_steer}")
        if self.throttle_min >= self.throttle_max:
            raise ValueError("throttle_min must be below throttle_max")
        for name, value in self.weights().items():
            if value < 0:
                raise ValueError(f"Cost weight {name} must be non-negative, got {value}")

    def weights(self) -> dict:
        """Cost weights keyed by name (for logging and validation)."""
        return {
            "w_cte": self.w_cte,
            "w_epsi": self.w_epsi,
            "w_v": self.w_v,
            "w_delta": self.w_delta,
            "w_a": self.w_a,
            "w_ddelta": self.w_ddelta,
            "w_da": self.w_da,
        }

    def solver_options(self) -> dict:
        """Options passed to casadi.nlpsol for the configured plugin."""
        return {
            "ipopt.print_level": self.solver_print_level,
            "ipopt.max_cpu_time": self.solver_max_cpu_time,
            "ipopt.max_iter": self.solver_max_iter,
            "ipopt.tol": self.solver_tol,
            "ipopt.sb": "yes",
            "print_time": False,
            "error_on_fail": False,
        }
