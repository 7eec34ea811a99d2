"""Deterministic (hard max) and quantal (softmax) Bellman operators.

Both operators map a value array of shape ``(n_k, n_z)`` to a freshly
allocated array of the same shape; the input is never written to.
"""

from __future__ import annotations

from typing import Callable

import numpy as np
from scipy.special import expit, softmax

from quantal_dp.core.errors import NumericalInstabilityError
from quantal_dp.core.types import validate_operator_kind
from quantal_dp.dp.model import ModelConfig
from quantal_dp.dp.rewards import RewardKernel, reward_kernel_for

Operator = Callable[[np.ndarray], np.ndarray]


def feasible_mask(action_values: np.ndarray) -> np.ndarray:
    """Actions with a finite value; ``-inf`` marks an infeasible choice."""
    if np.any(np.isnan(action_values)) or np.any(action_values == np.inf):
        raise NumericalInstabilityError("Action values contain NaN or +inf.")
    return np.isfinite(action_values)


def softmax_weights(action_values: np.ndarray, temperature: float) -> np.ndarray:
    """Quantal-response probabilities over the last axis.

    ``P[h] = exp(B[h] / lam) / sum_feasible exp(B[h'] / lam)``; infeasible
    entries are left out of the normalisation and get exactly zero weight.
    """
    _validate_temperature(temperature, name="temperature")
    feasible = feasible_mask(action_values)
    require_feasible(feasible)
    scaled = np.where(feasible, action_values / temperature, -np.inf)
    weights = softmax(scaled, axis=-1)
    if not np.all(np.isfinite(weights)):
        raise NumericalInstabilityError("Softmax produced non-finite weights.")
    return weights


def quantal_value(action_values: np.ndarray, weights: np.ndarray) -> np.ndarray:
    """Probability-weighted action value, ``sum_h P[h] * B[h]`` over feasible h."""
    feasible = np.isfinite(action_values)
    return np.sum(weights * np.where(feasible, action_values, 0.0), axis=-1)


def inaction_probability(
    active: np.ndarray,
    inaction: np.ndarray,
    temperature: float,
) -> np.ndarray:
    """Two-alternative logit: ``1 / (1 + exp((V_active - V_inaction) / lam))``."""
    _validate_temperature(temperature, name="investment_temperature")
    return expit((np.asarray(inaction) - np.asarray(active)) / temperature)


def deterministic_operator(
    config: ModelConfig,
    values: np.ndarray,
    kernel: RewardKernel | None = None,
) -> np.ndarray:
    """``T(V)``: best feasible action, and the better of act / wait if modelled."""
    kernel = kernel or reward_kernel_for(config.params)
    action_values = kernel.action_values(config, values)
    feasible = feasible_mask(action_values)
    inaction = kernel.inaction_values(config, values)
    if inaction is None:
        require_feasible(feasible)
        return np.max(action_values, axis=-1)
    return np.maximum(inaction, np.max(action_values, axis=-1))


def quantal_operator(
    config: ModelConfig,
    values: np.ndarray,
    temperature: float,
    investment_temperature: float | None = None,
    kernel: RewardKernel | None = None,
) -> np.ndarray:
    """``T_QR(lam, V)``: softmax-weighted action value.

    For models with an inaction branch the active value is the softmax value
    at ``temperature`` and the act/wait choice is a logit at
    ``investment_temperature`` (defaults to ``temperature``).
    """
    kernel = kernel or reward_kernel_for(config.params)
    action_values = kernel.action_values(config, values)
    weights = softmax_weights(action_values, temperature)
    active = quantal_value(action_values, weights)
    inaction = kernel.inaction_values(config, values)
    if inaction is None:
        return active
    lam_inv = temperature if investment_temperature is None else investment_temperature
    p_wait = inaction_probability(active, inaction, lam_inv)
    return p_wait * inaction + (1.0 - p_wait) * active


def make_operator(
    config: ModelConfig,
    kind: str,
    temperature: float | None = None,
    investment_temperature: float | None = None,
) -> Operator:
    """Bind an operator kind and its temperatures to one model."""
    validate_operator_kind(kind)
    kernel = reward_kernel_for(config.params)
    if kind == "deterministic":
        return lambda values: deterministic_operator(config, values, kernel=kernel)

    if temperature is None:
        raise ValueError("temperature is required for the quantal operator.")
    _validate_temperature(temperature, name="temperature")
    if investment_temperature is not None:
        _validate_temperature(investment_temperature, name="investment_temperature")
    return lambda values: quantal_operator(
        config,
        values,
        temperature=temperature,
        investment_temperature=investment_temperature,
        kernel=kernel,
    )


def bellman_residual(
    config: ModelConfig,
    values: np.ndarray,
    kind: str,
    temperature: float | None = None,
    investment_temperature: float | None = None,
) -> float:
    """Sup-norm distance between ``V`` and its image under the operator."""
    operator = make_operator(
        config,
        kind,
        temperature=temperature,
        investment_temperature=investment_temperature,
    )
    return float(np.max(np.abs(operator(values) - values)))


def require_feasible(feasible: np.ndarray) -> None:
    has_action = np.any(feasible, axis=-1)
    if not np.all(has_action):
        state = tuple(int(v) for v in np.argwhere(~has_action)[0])
        raise NumericalInstabilityError(
            f"No feasible action at state {state}; capital grid bounds are too tight."
        )


def _validate_temperature(value: float, *, name: str) -> None:
    if not (value > 0.0 and np.isfinite(value)):
        raise ValueError(f"{name} must be a positive finite number.")
