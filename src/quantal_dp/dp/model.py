"""Immutable grid/parameter bundle shared by every DP component."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from quantal_dp.core.params import GridSpec, ModelParams
from quantal_dp.dp.discretization import (
    capital_grid,
    snap_indices,
    tauchen,
    validate_grid,
    validate_transition_matrix,
)


@dataclass(frozen=True)
class ModelConfig:
    """Economic parameters plus the capital grid, shock grid and shock chain.

    All arrays are read-only. ``snap_index[i]`` is the grid index nearest to
    the post-depreciation capital ``(1 - delta) * k_grid[i]``; it is the
    continuation state of the inaction branch.
    """

    params: ModelParams
    k_grid: np.ndarray
    z_grid: np.ndarray
    transition: np.ndarray
    snap_index: np.ndarray

    @property
    def n_k(self) -> int:
        return int(self.k_grid.shape[0])

    @property
    def n_z(self) -> int:
        return int(self.z_grid.shape[0])

    @property
    def shape(self) -> tuple[int, int]:
        """Shape of a value array, ``(n_k, n_z)``."""
        return self.n_k, self.n_z

    def zero_values(self) -> np.ndarray:
        return np.zeros(self.shape, dtype=np.float64)


def build_model_config(params: ModelParams, grid: GridSpec) -> ModelConfig:
    """Validate inputs, discretize the shock and freeze the resulting arrays."""
    params.validate()
    grid.validate()
    z_grid, transition = tauchen(n=grid.n_z, rho=grid.rho, nu=grid.nu, n_std=grid.n_std)
    k_grid = capital_grid(grid.k_min, grid.k_max, grid.n_k, spacing=grid.spacing)
    return model_config_from_arrays(
        params=params,
        k_grid=k_grid,
        z_grid=z_grid,
        transition=transition,
    )


def model_config_from_arrays(
    *,
    params: ModelParams,
    k_grid: np.ndarray,
    z_grid: np.ndarray,
    transition: np.ndarray,
) -> ModelConfig:
    """Assemble a config from explicit arrays (e.g. a hand-written chain)."""
    params.validate()
    k_values = np.array(k_grid, dtype=np.float64)
    z_values = np.array(z_grid, dtype=np.float64)
    matrix = np.array(transition, dtype=np.float64)
    validate_grid(k_values, name="capital grid")
    if k_values[0] <= 0.0:
        raise ValueError("capital grid must be strictly positive.")
    validate_grid(z_values, name="shock grid")
    validate_transition_matrix(matrix)
    if matrix.shape[0] != z_values.shape[0]:
        raise ValueError(
            f"Transition matrix size {matrix.shape[0]} does not match "
            f"shock grid size {z_values.shape[0]}."
        )

    snap = snap_indices((1.0 - params.delta) * k_values, k_values)
    for array in (k_values, z_values, matrix, snap):
        array.flags.writeable = False
    return ModelConfig(
        params=params,
        k_grid=k_values,
        z_grid=z_values,
        transition=matrix,
        snap_index=snap,
    )
