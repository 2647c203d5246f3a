"""Reference path fitting in the vehicle frame.

This module re-expresses map-frame waypoints relative to the vehicle (origin at
the vehicle, x-axis along its heading) and fits a degree-3 polynomial y = f(x)
to them by least squares.

The polynomial helpers are written with plain arithmetic so they evaluate on
floats, numpy arrays, and CasADi symbols alike.
"""

import math
from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np
import numpy.typing as npt

from .errors import DegenerateFit

POLY_ORDER = 3
"""Degree of the reference polynomial."""


@dataclass(frozen=True)
class ReferencePath:
    """Waypoints in the vehicle frame and the polynomial fitted to them.

    Attributes:
        xs: Vehicle-frame x coordinates of the waypoints.
        ys: Vehicle-frame y coordinates of the waypoints.
        coeffs: Polynomial coefficients c0..c3, constant term first.
    """

    xs: npt.NDArray[np.float64]
    ys: npt.NDArray[np.float64]
    coeffs: npt.NDArray[np.float64]


def to_vehicle_frame(
    ptsx: Sequence[float], ptsy: Sequence[float], px: float, py: float, psi: float
) -> Tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    """Transform map-frame points into the vehicle frame.

    x' = (x - px) * cos(psi) + (y - py) * sin(psi)
    y' = (y - py) * cos(psi) - (x - px) * sin(psi)

    Args:
        ptsx: Map-frame x coordinates.
        ptsy: Map-frame y coordinates.
        px: Vehicle map-frame x position.
        py: Vehicle map-frame y position.
        psi: Vehicle heading (radians).

    Returns:
        Tuple of (xs, ys) arrays in the vehicle frame.
    """
    dx = np.asarray(ptsx, dtype=float) - px
    dy = np.asarray(ptsy, dtype=float) - py
    cos_psi = math.cos(psi)
    sin_psi = math.sin(psi)
    xs = dx * cos_psi + dy * sin_psi
    ys = dy * cos_psi - dx * sin_psi
    return xs, ys


def to_map_frame(
    xs: Sequence[float], ys: Sequence[float], px: float, py: float, psi: float
) -> Tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    """Inverse of to_vehicle_frame (used for logging predicted trajectories)."""
    xs = np.asarray(xs, dtype=float)
    ys = np.asarray(ys, dtype=float)
    cos_psi = math.cos(psi)
    sin_psi = math.sin(psi)
    map_x = px + xs * cos_psi - ys * sin_psi
    map_y = py + xs * sin_psi + ys * cos_psi
    return map_x, map_y


def polyfit(
    xs: Sequence[float], ys: Sequence[float], order: int = POLY_ORDER
) -> npt.NDArray[np.float64]:
    """Least-squares polynomial fit via QR decomposition of the design matrix.

    Args:
        xs: Sample x values (need not be monotonic).
        ys: Sample y values.
        order: Polynomial degree.

    Returns:
        Coefficients c0..c_order, constant term first.

    Raises:
        ValueError: If xs and ys differ in length or order < 1.
        DegenerateFit: If there are fewer than order + 1 samples or the design
            matrix is rank-deficient (e.g. repeated x values) or overflows.
    """
    xs = np.asarray(xs, dtype=float)
    ys = np.asarray(ys, dtype=float)
    if xs.shape != ys.shape:
        raise ValueError(f"x and y sample counts differ: {xs.size} != {ys.size}")
    if order < 1:
        raise ValueError(f"Polynomial order must be >= 1, got {order}")
    if xs.size < order + 1:
        raise DegenerateFit(
            f"Need at least {order + 1} waypoints for an order-{order} fit, got {xs.size}"
        )

    # Columns 1, x, x^2, ..., x^order
    with np.errstate(over="ignore"):
        design = np.vander(xs, order + 1, increasing=True)
    if not np.isfinite(design).all():
        raise DegenerateFit(
            f"Waypoint x values too large for an order-{order} fit "
            f"(max |x| = {np.max(np.abs(xs)):.3g}); powers overflow"
        )
    rank = np.linalg.matrix_rank(design)
    if rank < order + 1:
        raise DegenerateFit(
            f"Design matrix is rank-deficient (rank {rank} < {order + 1}); "
            f"waypoints have too few distinct x values"
        )

    q, r = np.linalg.qr(design)
    return np.linalg.solve(r, q.T @ ys)


def polyeval(coeffs, x):
    """Evaluate sum(c_i * x^i). Works for floats, arrays and CasADi symbols."""
    result = 0.0
    for i in range(len(coeffs)):
        result = result + coeffs[i] * x**i
    return result


def polyderiv(coeffs, x):
    """Evaluate the first derivative sum(i * c_i * x^(i-1))."""
    result = 0.0
    for i in range(1, len(coeffs)):
        result = result + i * coeffs[i] * x ** (i - 1)
    return result


def fit_reference(
    ptsx: Sequence[float], ptsy: Sequence[float], px: float, py: float, psi: float
) -> ReferencePath:
    """Transform waypoints into the vehicle frame and fit the reference polynomial.

    Raises:
        DegenerateFit: If the transformed waypoints cannot support the fit.
    """
    xs, ys = to_vehicle_frame(ptsx, ptsy, px, py, psi)
    coeffs = polyfit(xs, ys, POLY_ORDER)
    return ReferencePath(xs=xs, ys=ys, coeffs=coeffs)
