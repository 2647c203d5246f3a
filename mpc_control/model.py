"""
Kinematic bicycle model in the vehicle frame.

This module provides the discrete state update shared by the latency compensator
(numeric, one latency interval) and the MPC problem builder (symbolic, one
horizon step per constraint).

State:      (x, y, psi, v, cte, epsi)
Actuators:  (delta, a) - steering angle (rad), acceleration / throttle
"""

import math
from typing import Sequence, Tuple

from .path import polyderiv, polyeval


def kinematic_step(
    state: Sequence,
    delta,
    a,
    coeffs: Sequence,
    dt: float,
    lf: float,
    ops=math,
) -> Tuple:
    """
    Advance the vehicle state by one timestep.

        x_{t+1}    = x_t + v_t * cos(psi_t) * dt
        y_{t+1}    = y_t + v_t * sin(psi_t) * dt
        psi_{t+1}  = psi_t + (v_t / Lf) * delta_t * dt
        v_{t+1}    = v_t + a_t * dt
        cte_{t+1}  = (f(x_t) - y_t) + v_t * sin(epsi_t) * dt
        epsi_{t+1} = (psi_t - psides_t) + (v_t / Lf) * delta_t * dt

    where f is the reference polynomial and psides_t = atan(f'(x_t)).

    Args:
        state: Current (x, y, psi, v, cte, epsi).
        delta: Steering angle (rad), positive turns counter-clockwise.
        a: Acceleration (throttle).
        coeffs: Reference polynomial coefficients c0..c3.
        dt: Timestep (seconds).
        lf: Front axle to center of gravity distance (meters).
        ops: Namespace providing cos, sin and atan. Pass ``casadi`` to build
             symbolic expressions; defaults to ``math`` for floats.

    Returns:
        Tuple with the next (x, y, psi, v, cte, epsi).

    Example:
        >>> kinematic_step((0, 0, 0, 10, 0, 0), 0.0, 0.0, (0, 0, 0, 0), 0.1, 2.67)
        (1.0, 0.0, 0.0, 10.0, 0.0, 0.0)
    """
    x, y, psi, v, cte, epsi = state

    f = polyeval(coeffs, x)
    psides = ops.atan(polyderiv(coeffs, x))

    x_next = x + v * ops.cos(psi) * dt
    y_next = y + v * ops.sin(psi) * dt
    psi_next = psi + v / lf * delta * dt
    v_next = v + a * dt
    cte_next = (f - y) + v * ops.sin(epsi) * dt
    epsi_next = (psi - psides) + v / lf * delta * dt

    return x_next, y_next, psi_next, v_next, cte_next, epsi_next
