"""Monte Carlo simulation of the Markov dynamics induced by a solved policy.

The exogenous shock always follows its transition matrix. The endogenous
capital index follows either a deterministic policy or a probability kernel,
conditioned on the simulated shock or on a fixed scenario shock index.
Randomness comes only from ``numpy.random.default_rng(seed)``.
"""

from __future__ import annotations

import numpy as np

from quantal_dp.core.types import SimulatedPath
from quantal_dp.dp.model import ModelConfig
from quantal_dp.dp.rewards import flow_variable

Seed = int | np.random.SeedSequence | None


def sample_index(cdf_row: np.ndarray, u: float) -> int:
    """Inverse-CDF draw: first index whose cumulative mass exceeds ``u``.

    The row is scaled by its last entry, so rounding in ``cumsum`` never
    selects a trailing zero-probability index.
    """
    return int(np.searchsorted(cdf_row, u * cdf_row[-1], side="right"))


def simulate_shock_path(
    transition: np.ndarray,
    length: int,
    initial_index: int,
    rng: np.random.Generator,
) -> np.ndarray:
    """Draw a shock-index path of ``length`` periods starting at ``initial_index``."""
    _validate_length(length)
    _validate_index(initial_index, transition.shape[0], name="initial shock index")
    cdf = np.cumsum(transition, axis=1)
    draws = rng.random(length - 1)
    path = np.empty(length, dtype=np.int64)
    path[0] = initial_index
    for t in range(length - 1):
        path[t + 1] = sample_index(cdf[path[t]], draws[t])
    return path


def simulate_policy_path(
    config: ModelConfig,
    policy: np.ndarray,
    length: int,
    initial_index: int,
    shock_index: int | None = None,
    initial_shock: int = 0,
    seed: Seed = None,
) -> SimulatedPath:
    """Simulate capital under a deterministic next-index policy.

    With ``shock_index`` set, capital moves by ``policy[k, shock_index]``
    regardless of the simulated shock path.
    """
    actions = np.asarray(policy, dtype=np.int64)
    if actions.shape != config.shape:
        raise ValueError(f"Policy must have shape {config.shape}, got {actions.shape}.")
    rng = np.random.default_rng(seed)
    shocks = simulate_shock_path(config.transition, length, initial_shock, rng)
    driving = _driving_shocks(shocks, shock_index, config.n_z)
    _validate_index(initial_index, config.n_k, name="initial capital index")

    capital = np.empty(length, dtype=np.int64)
    capital[0] = initial_index
    for t in range(length - 1):
        capital[t + 1] = actions[capital[t], driving[t]]
    return _build_path(config, shocks, capital, driving, shock_index)


def simulate_kernel_path(
    config: ModelConfig,
    kernel: np.ndarray,
    length: int,
    initial_index: int,
    shock_index: int | None = None,
    initial_shock: int = 0,
    seed: Seed = None,
) -> SimulatedPath:
    """Simulate capital by sampling next indices from a quantal kernel."""
    probs = np.asarray(kernel, dtype=np.float64)
    if probs.shape != config.shape + (config.n_k,):
        raise ValueError(
            f"Kernel must have shape {config.shape + (config.n_k,)}, got {probs.shape}."
        )
    rng = np.random.default_rng(seed)
    shocks = simulate_shock_path(config.transition, length, initial_shock, rng)
    driving = _driving_shocks(shocks, shock_index, config.n_z)
    _validate_index(initial_index, config.n_k, name="initial capital index")

    cdf = np.cumsum(probs, axis=-1)
    draws = rng.random(length - 1)
    capital = np.empty(length, dtype=np.int64)
    capital[0] = initial_index
    for t in range(length - 1):
        capital[t + 1] = sample_index(cdf[capital[t], driving[t]], draws[t])
    return _build_path(config, shocks, capital, driving, shock_index)


def simulate_scenarios(
    config: ModelConfig,
    policy_or_kernel: np.ndarray,
    length: int,
    initial_index: int,
    shock_indices: tuple[int, ...] | list[int],
    seed: int | None = None,
) -> dict[int, SimulatedPath]:
    """One independent path per scenario shock level, keyed by shock index."""
    rule = np.asarray(policy_or_kernel)
    children = np.random.SeedSequence(seed).spawn(len(shock_indices))
    paths: dict[int, SimulatedPath] = {}
    for scenario, child in zip(shock_indices, children):
        if rule.ndim == 2:
            paths[int(scenario)] = simulate_policy_path(
                config, rule, length, initial_index, shock_index=int(scenario), seed=child
            )
        elif rule.ndim == 3:
            paths[int(scenario)] = simulate_kernel_path(
                config, rule, length, initial_index, shock_index=int(scenario), seed=child
            )
        else:
            raise ValueError("Expected a 2-D policy or a 3-D probability kernel.")
    return paths


def derived_flow(
    config: ModelConfig,
    capital_values: np.ndarray,
    shock_values: np.ndarray,
) -> tuple[str, np.ndarray]:
    """Flow between consecutive capital values (consumption or investment)."""
    k = np.asarray(capital_values, dtype=np.float64)
    z = np.asarray(shock_values, dtype=np.float64)
    return flow_variable(config.params, k[:-1], z[:-1], k[1:])


def empirical_distribution(
    indices: np.ndarray,
    n_states: int,
    burn_in: int = 0,
) -> np.ndarray:
    """Histogram density of visited state indices after ``burn_in`` periods."""
    kept = np.asarray(indices, dtype=np.int64)[burn_in:]
    if kept.size == 0:
        raise ValueError("No observations left after burn-in.")
    return np.bincount(kept, minlength=n_states).astype(np.float64) / kept.size


def _driving_shocks(shocks: np.ndarray, shock_index: int | None, n_z: int) -> np.ndarray:
    if shock_index is None:
        return shocks
    _validate_index(shock_index, n_z, name="scenario shock index")
    return np.full_like(shocks, shock_index)


def _build_path(
    config: ModelConfig,
    shocks: np.ndarray,
    capital: np.ndarray,
    driving: np.ndarray,
    shock_index: int | None,
) -> SimulatedPath:
    capital_values = config.k_grid[capital]
    flow_name, flow = derived_flow(config, capital_values, config.z_grid[driving])
    return SimulatedPath(
        shock_indices=shocks,
        capital_indices=capital,
        shock_values=config.z_grid[shocks],
        capital_values=capital_values,
        flow=flow,
        flow_name=flow_name,
        scenario_shock=shock_index,
    )


def _validate_length(length: int) -> None:
    if length < 1:
        raise ValueError("length must be positive.")


def _validate_index(index: int, size: int, *, name: str) -> None:
    if not (0 <= index < size):
        raise ValueError(f"{name} {index} out of range [0, {size - 1}].")
