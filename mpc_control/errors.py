"""Error kinds raised by a control cycle.

None of these is fatal to the process or the session: the control loop logs
them, withholds the command for the current telemetry message, and waits for
the next one.
"""

from typing import Optional


class MPCError(Exception):
    """Base class for errors that skip a single control cycle."""

    kind = "error"


class MalformedTelemetry(MPCError):
    """Inbound message has missing or invalid fields."""

    kind = "malformed_telemetry"


class DegenerateFit(MPCError):
    """Reference polynomial cannot be fitted (too few or rank-deficient samples)."""

    kind = "degenerate_fit"


class SolverError(MPCError):
    """Optimizer did not produce a usable solution.

    Attributes:
        status: Backend diagnostic status (e.g. IPOPT return status).
    """

    kind = "solver_error"

    def __init__(self, message: str, status: Optional[str] = None) -> None:
        super().__init__(message)
        self.status = status


class SolverNonConvergence(SolverError):
    """Optimizer stopped before reaching a feasible/optimal point."""

    kind = "solver_non_convergence"


class SolverInternalFailure(SolverError):
    """Numerical failure inside the optimizer (NaN/Inf, step computation, crash)."""

    kind = "solver_internal_failure"
