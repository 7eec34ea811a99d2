"""Continuous-to-discrete utilities: Tauchen shock chains and capital grids."""

from __future__ import annotations

import logging
import math

import numpy as np
from scipy.stats import norm

from quantal_dp.core.errors import MalformedTransitionMatrixError

logger = logging.getLogger(__name__)

# Row sums of a transition matrix must match 1 within this tolerance.
ROW_SUM_TOL = 1e-8


def tauchen(
    n: int,
    rho: float,
    nu: float,
    n_std: float = 3.0,
) -> tuple[np.ndarray, np.ndarray]:
    """Discretize ``log z' = rho * log z + nu * eps`` with Tauchen's method.

    The log grid is equally spaced over ``±n_std`` unconditional standard
    deviations; interior transition probabilities are the Gaussian mass of the
    bin around each grid point and the two end bins absorb the tails.

    Args:
        n: Number of shock states.
        rho: AR(1) persistence in (-1, 1).
        nu: Innovation standard deviation.
        n_std: Grid half-width in unconditional standard deviations.

    Returns:
        ``(z_grid, transition)`` where ``z_grid`` holds the exponentiated shock
        levels and ``transition[j, k] = P(z' = z_k | z = z_j)``.
    """
    if n < 1:
        raise ValueError("n must be positive.")
    if not (-1.0 < rho < 1.0):
        raise ValueError("rho must be in (-1, 1).")
    if nu < 0.0:
        raise ValueError("nu must be non-negative.")

    if n == 1:
        return np.ones(1), np.ones((1, 1))
    if nu == 0.0:
        raise ValueError("nu must be positive when n > 1.")

    x_std = nu / math.sqrt(1.0 - rho**2)
    x_max = n_std * x_std
    x_grid = np.linspace(-x_max, x_max, n)
    half_step = 0.5 * (x_grid[1] - x_grid[0])

    conditional_mean = rho * x_grid[:, np.newaxis]
    upper = norm.cdf((x_grid[np.newaxis, :] - conditional_mean + half_step) / nu)
    lower = norm.cdf((x_grid[np.newaxis, :] - conditional_mean - half_step) / nu)

    transition = upper - lower
    transition[:, 0] = upper[:, 0]
    transition[:, -1] = 1.0 - lower[:, -1]

    validate_transition_matrix(transition)
    logger.debug(
        "Tauchen chain: n=%d rho=%.3f nu=%.4f, log-grid [%.4f, %.4f]",
        n,
        rho,
        nu,
        x_grid[0],
        x_grid[-1],
    )
    return np.exp(x_grid), transition


def validate_transition_matrix(transition: np.ndarray, atol: float = ROW_SUM_TOL) -> None:
    """Raise :class:`MalformedTransitionMatrixError` unless row-stochastic."""
    matrix = np.asarray(transition, dtype=np.float64)
    if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
        raise MalformedTransitionMatrixError(
            f"Transition matrix must be square, got shape {matrix.shape}."
        )
    if not np.all(np.isfinite(matrix)):
        raise MalformedTransitionMatrixError("Transition matrix has non-finite entries.")
    if np.any(matrix < 0.0):
        row = int(np.argwhere(matrix < 0.0)[0, 0])
        raise MalformedTransitionMatrixError(
            f"Transition matrix has a negative entry in row {row}."
        )
    row_sums = matrix.sum(axis=1)
    bad = np.flatnonzero(np.abs(row_sums - 1.0) > atol)
    if bad.size:
        row = int(bad[0])
        raise MalformedTransitionMatrixError(
            f"Transition matrix row {row} sums to {row_sums[row]:.12f}, expected 1."
        )


def capital_grid(
    k_min: float,
    k_max: float,
    n_k: int,
    spacing: str = "linear",
) -> np.ndarray:
    """Build a strictly increasing capital grid."""
    if n_k < 2:
        raise ValueError("n_k must be at least 2.")
    if not (0.0 < k_min < k_max):
        raise ValueError("capital bounds must satisfy 0 < k_min < k_max.")
    if spacing == "linear":
        grid = np.linspace(k_min, k_max, n_k)
    elif spacing == "log":
        grid = np.exp(np.linspace(math.log(k_min), math.log(k_max), n_k))
    else:
        raise ValueError(f"Unknown grid spacing: {spacing!r}.")
    validate_grid(grid, name="capital grid")
    return grid


def validate_grid(grid: np.ndarray, *, name: str = "grid") -> None:
    values = np.asarray(grid, dtype=np.float64)
    if values.ndim != 1 or values.size == 0:
        raise ValueError(f"{name} must be a non-empty 1-D array.")
    if not np.all(np.isfinite(values)):
        raise ValueError(f"{name} must contain only finite values.")
    if np.any(np.diff(values) <= 0.0):
        raise ValueError(f"{name} must be strictly increasing.")


def snap_to_grid(value: float, grid: np.ndarray) -> int:
    """Return the index of the grid point nearest to ``value``.

    Ties in absolute distance go to the lower index (first minimum).
    """
    return int(snap_indices(np.asarray([value], dtype=np.float64), grid)[0])


def snap_indices(values: np.ndarray, grid: np.ndarray) -> np.ndarray:
    """Vectorised :func:`snap_to_grid` over a sorted grid."""
    points = np.asarray(values, dtype=np.float64)
    if grid.size == 1:
        return np.zeros(points.shape, dtype=np.int64)
    upper = np.clip(np.searchsorted(grid, points, side="left"), 1, grid.size - 1)
    lower = upper - 1
    take_lower = np.abs(points - grid[lower]) <= np.abs(grid[upper] - points)
    return np.where(take_lower, lower, upper).astype(np.int64)


def stationary_shock_distribution(transition: np.ndarray) -> np.ndarray:
    """Ergodic distribution of the exogenous chain (unit left eigenvector)."""
    eigvals, eigvecs = np.linalg.eig(np.asarray(transition).T)
    idx = int(np.argmin(np.abs(eigvals - 1.0)))
    vector = np.real(eigvecs[:, idx])
    vector = np.abs(vector)
    return vector / vector.sum()
