"""Forward Chapman-Kolmogorov iteration of a capital transition kernel."""

from __future__ import annotations

import numpy as np
from scipy.ndimage import uniform_filter1d

from quantal_dp.dp.model import ModelConfig


def stationary_density(
    kernel: np.ndarray,
    initial_index: int,
    shock_index: int,
    iterations: int,
    smoothing_window: int = 1,
) -> np.ndarray:
    """History of capital densities under ``kernel[:, shock_index, :]``.

    Column 0 is the kernel row of ``initial_index``; column ``h`` is
    ``sum_s kernel[s, shock_index, :] * Tp[s, h - 1]``. A ``smoothing_window``
    above 1 applies a centered moving average to every column and rescales it
    to unit mass.

    Args:
        kernel: Probability kernel of shape ``(n_k, n_z, n_k)``.
        initial_index: Capital index the chain starts from.
        shock_index: Shock level the kernel is conditioned on.
        iterations: Number of columns ``H`` to compute.
        smoothing_window: Moving-average width; 1 disables smoothing.

    Returns:
        Array of shape ``(n_k, H)``.
    """
    probs = np.asarray(kernel, dtype=np.float64)
    if probs.ndim != 3 or probs.shape[0] != probs.shape[2]:
        raise ValueError(f"Kernel must have shape (n_k, n_z, n_k), got {probs.shape}.")
    n_k, n_z, _ = probs.shape
    if not (0 <= initial_index < n_k):
        raise ValueError(f"initial_index {initial_index} out of range [0, {n_k - 1}].")
    if not (0 <= shock_index < n_z):
        raise ValueError(f"shock_index {shock_index} out of range [0, {n_z - 1}].")
    if iterations < 1:
        raise ValueError("iterations must be positive.")
    if smoothing_window < 1:
        raise ValueError("smoothing_window must be at least 1.")

    step = probs[:, shock_index, :]
    density = np.empty((n_k, iterations), dtype=np.float64)
    density[:, 0] = _smooth(step[initial_index], smoothing_window)
    for h in range(1, iterations):
        density[:, h] = _smooth(step.T @ density[:, h - 1], smoothing_window)
    return density


def density_increments(density: np.ndarray) -> np.ndarray:
    """Sup-norm change between consecutive columns, length ``H - 1``."""
    return np.max(np.abs(np.diff(density, axis=1)), axis=0)


def stationary_capital_moments(config: ModelConfig, density: np.ndarray) -> tuple[float, float]:
    """Mean and standard deviation of capital under the last density column."""
    weights = np.asarray(density)[:, -1]
    mean = float(np.dot(weights, config.k_grid))
    variance = float(np.dot(weights, (config.k_grid - mean) ** 2))
    return mean, float(np.sqrt(max(variance, 0.0)))


def _smooth(column: np.ndarray, window: int) -> np.ndarray:
    if window == 1:
        return column
    smoothed = uniform_filter1d(column, size=window, mode="nearest")
    total = smoothed.sum()
    if total <= 0.0:
        raise ValueError("Smoothed density has no mass.")
    return smoothed / total
