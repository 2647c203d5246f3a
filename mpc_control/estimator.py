"""State estimation and latency compensation for the MPC controller.

This module provides the vehicle state handed to the MPC problem builder:
- Tracking errors (cross-track and heading error) from the reference polynomial
- Forward propagation of the state by the actuation latency, using the command
  issued on the previous cycle and the kinematic bicycle model

In the vehicle frame the vehicle sits at the origin with zero heading, so the
raw state is always (0, 0, 0, v, cte, epsi).
"""

import logging
import math
from dataclasses import astuple, dataclass
from typing import Optional, Sequence, Tuple

import numpy as np

from .config import MPCConfig
from .model import kinematic_step
from .path import polyeval


@dataclass(frozen=True)
class VehicleState:
    """Vehicle-frame state at the start of the planning horizon."""

    x: float
    y: float
    psi: float
    v: float
    cte: float
    epsi: float

    def as_tuple(self) -> Tuple[float, float, float, float, float, float]:
        return astuple(self)

    def as_array(self) -> np.ndarray:
        return np.array(self.as_tuple(), dtype=float)


def tracking_errors(coeffs: Sequence[float]) -> Tuple[float, float]:
    """Compute cross-track and heading error of a vehicle at the origin.

    cte  = f(0) - y = f(0)       (y is 0 in the vehicle frame)
    epsi = psi - atan(f'(0)) = -atan(c1)

    Args:
        coeffs: Reference polynomial coefficients c0..c3.

    Returns:
        Tuple of (cte, epsi).
    """
    cte = float(polyeval(coeffs, 0.0))
    epsi = -math.atan(coeffs[1])
    return cte, epsi


class StateEstimator:
    """Latency-compensating state estimator for one vehicle session.

    Remembers the raw (model sign convention) actuator pair issued on the
    previous cycle. Until a command has been issued, the raw state is returned
    unchanged.

    Attributes:
        config: Controller configuration (latency, Lf).
        compensate_latency: If False, always return the raw state.
        previous_command: Raw (delta, a) issued on the previous cycle, if any.
    """

    def __init__(self, config: MPCConfig, compensate_latency: bool = True) -> None:
        self.config = config
        self.compensate_latency = compensate_latency
        self.previous_command: Optional[Tuple[float, float]] = None

    def estimate(self, coeffs: Sequence[float], speed: float) -> VehicleState:
        """Compute the state the optimizer should plan from.

        Args:
            coeffs: Reference polynomial coefficients c0..c3.
            speed: Current vehicle speed from telemetry.

        Returns:
            Raw state on the first cycle (or with compensation disabled),
            otherwise the state propagated by one latency interval.
        """
        cte, epsi = tracking_errors(coeffs)
        raw = (0.0, 0.0, 0.0, float(speed), cte, epsi)

        if (
            not self.compensate_latency
            or self.previous_command is None
            or self.config.latency <= 0.0
        ):
            return VehicleState(*raw)

        delta, a = self.previous_command
        propagated = kinematic_step(
            raw, delta, a, coeffs, self.config.latency, self.config.lf
        )
        logging.debug(
            f"Latency compensation ({self.config.latency * 1000:.0f}ms): "
            f"cte {cte:.3f} -> {propagated[4]:.3f}, epsi {epsi:.3f} -> {propagated[5]:.3f}"
        )
        return VehicleState(*(float(value) for value in propagated))

    def record_command(self, delta: float, a: float) -> None:
        """Remember the raw actuator pair issued this cycle."""
        self.previous_command = (float(delta), float(a))

    def reset(self) -> None:
        """Forget the previous command (next estimate is uncompensated)."""
        self.previous_command = None
