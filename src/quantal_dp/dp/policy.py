"""Policy extraction and inspection helpers."""

from __future__ import annotations

import numpy as np
import pandas as pd

from quantal_dp.core.types import validate_operator_kind
from quantal_dp.dp.bellman import (
    feasible_mask,
    inaction_probability,
    quantal_value,
    require_feasible,
    softmax_weights,
)
from quantal_dp.dp.model import ModelConfig
from quantal_dp.dp.rewards import flow_variable, reward_kernel_for


def extract_greedy_policy(config: ModelConfig, values: np.ndarray) -> np.ndarray:
    """Extract the deterministic greedy policy against a value array.

    Returns next-capital indices of shape ``(n_k, n_z)``. Ties go to the lowest
    index. Where the model waits, the entry is the snapped post-depreciation
    index; waiting wins ties against active investment.
    """
    kernel = reward_kernel_for(config.params)
    action_values = kernel.action_values(config, values)
    feasible = feasible_mask(action_values)
    if not kernel.has_inaction:
        require_feasible(feasible)
    policy = np.argmax(action_values, axis=-1).astype(np.int64)
    if not kernel.has_inaction:
        return policy

    wait = _inaction_mask(config, values, action_values)
    snapped = np.broadcast_to(config.snap_index[:, np.newaxis], config.shape)
    return np.where(wait, snapped, policy)


def extract_inaction_mask(config: ModelConfig, values: np.ndarray) -> np.ndarray:
    """Boolean ``(n_k, n_z)`` mask of states where waiting beats investing."""
    kernel = reward_kernel_for(config.params)
    if not kernel.has_inaction:
        raise ValueError(f"Model {config.params.model!r} has no inaction branch.")
    return _inaction_mask(config, values, kernel.action_values(config, values))


def extract_quantal_kernel(
    config: ModelConfig,
    values: np.ndarray,
    temperature: float,
    investment_temperature: float | None = None,
) -> np.ndarray:
    """Stochastic policy ``K[i, j, h] = P(k' = k_h | k_i, z_j)``.

    For the investment model the waiting probability is placed on the snapped
    post-depreciation index and the rest follows the active softmax.
    """
    kernel = reward_kernel_for(config.params)
    action_values = kernel.action_values(config, values)
    weights = softmax_weights(action_values, temperature)
    if not kernel.has_inaction:
        return weights

    p_wait = _inaction_probability(
        config, values, action_values, weights, temperature, investment_temperature
    )
    out = (1.0 - p_wait)[:, :, np.newaxis] * weights
    rows = np.arange(config.n_k)[:, np.newaxis]
    cols = np.arange(config.n_z)[np.newaxis, :]
    out[rows, cols, config.snap_index[:, np.newaxis]] += p_wait
    return out


def extract_inaction_probability(
    config: ModelConfig,
    values: np.ndarray,
    temperature: float,
    investment_temperature: float | None = None,
) -> np.ndarray:
    """Quantal probability of waiting at each state, shape ``(n_k, n_z)``."""
    kernel = reward_kernel_for(config.params)
    if not kernel.has_inaction:
        raise ValueError(f"Model {config.params.model!r} has no inaction branch.")
    action_values = kernel.action_values(config, values)
    weights = softmax_weights(action_values, temperature)
    return _inaction_probability(
        config, values, action_values, weights, temperature, investment_temperature
    )


def extract_policy(
    config: ModelConfig,
    values: np.ndarray,
    kind: str,
    temperature: float | None = None,
    investment_temperature: float | None = None,
) -> np.ndarray:
    """Greedy index array for ``"deterministic"``, probability kernel for ``"quantal"``."""
    validate_operator_kind(kind)
    if kind == "deterministic":
        return extract_greedy_policy(config, values)
    if temperature is None:
        raise ValueError("temperature is required for the quantal policy.")
    return extract_quantal_kernel(
        config,
        values,
        temperature=temperature,
        investment_temperature=investment_temperature,
    )


def policy_to_kernel(policy: np.ndarray, n_k: int) -> np.ndarray:
    """One-hot transition kernel of a deterministic policy."""
    actions = np.asarray(policy, dtype=np.int64)
    out = np.zeros(actions.shape + (n_k,), dtype=np.float64)
    np.put_along_axis(out, actions[..., np.newaxis], 1.0, axis=-1)
    return out


def policy_summary(config: ModelConfig, policy: np.ndarray) -> pd.DataFrame:
    """Flat table of a deterministic policy, one row per state."""
    actions = np.asarray(policy, dtype=np.int64)
    k_now = np.repeat(config.k_grid, config.n_z)
    z_now = np.tile(config.z_grid, config.n_k)
    k_next = config.k_grid[actions.reshape(-1)]
    flow_name, flow = flow_variable(config.params, k_now, z_now, k_next)
    return pd.DataFrame(
        {
            "capital_index": np.repeat(np.arange(config.n_k), config.n_z),
            "shock_index": np.tile(np.arange(config.n_z), config.n_k),
            "capital": k_now,
            "shock": z_now,
            "next_capital_index": actions.reshape(-1),
            "next_capital": k_next,
            flow_name: flow,
        }
    )


def _inaction_mask(
    config: ModelConfig,
    values: np.ndarray,
    action_values: np.ndarray,
) -> np.ndarray:
    kernel = reward_kernel_for(config.params)
    wait_values = kernel.inaction_values(config, values)
    return wait_values >= np.max(action_values, axis=-1)


def _inaction_probability(
    config: ModelConfig,
    values: np.ndarray,
    action_values: np.ndarray,
    weights: np.ndarray,
    temperature: float,
    investment_temperature: float | None,
) -> np.ndarray:
    kernel = reward_kernel_for(config.params)
    active = quantal_value(action_values, weights)
    lam_inv = temperature if investment_temperature is None else investment_temperature
    return inaction_probability(active, kernel.inaction_values(config, values), lam_inv)
