"""One-step payoff plus continuation value for each candidate next capital.

Every kernel evaluates ``B(i, j, h, V)``: the value of moving from capital
``k_i`` under shock ``z_j`` to next capital ``k_h`` given the value array
``V``. Infeasible actions are ``-inf``; they never win a max and carry no
softmax mass.
"""

from __future__ import annotations

from dataclasses import dataclass
import math
from typing import ClassVar, Protocol

import numpy as np

from quantal_dp.core.params import ModelParams
from quantal_dp.dp.model import ModelConfig


class RewardKernel(Protocol):
    """Capability shared by the growth and investment payoffs."""

    has_inaction: ClassVar[bool]

    def action_value(
        self, config: ModelConfig, i: int, j: int, h: int, values: np.ndarray
    ) -> float:
        ...

    def action_values(self, config: ModelConfig, values: np.ndarray) -> np.ndarray:
        ...

    def inaction_values(self, config: ModelConfig, values: np.ndarray) -> np.ndarray | None:
        ...


def expected_continuation(config: ModelConfig, values: np.ndarray) -> np.ndarray:
    """``EV[h, j] = sum_z' P[j, z'] * V[h, z']``, shape ``(n_k, n_z)``."""
    return np.asarray(values, dtype=np.float64) @ config.transition.T


def crra_utility(consumption: np.ndarray | float, sigma: float) -> np.ndarray:
    """CRRA utility ``(c^(1-sigma) - 1) / (1 - sigma)``, log when ``sigma == 1``.

    Negative consumption maps to ``-inf``. Zero consumption maps to the
    limit, which is finite only for ``sigma < 1``.
    """
    c = np.asarray(consumption, dtype=np.float64)
    positive = c > 0.0
    c_safe = np.where(positive, c, 1.0)
    if sigma == 1.0:
        utility = np.log(c_safe)
        at_zero = -np.inf
    else:
        utility = (c_safe ** (1.0 - sigma) - 1.0) / (1.0 - sigma)
        at_zero = -1.0 / (1.0 - sigma) if sigma < 1.0 else -np.inf
    utility = np.where(positive, utility, at_zero)
    return np.where(c < 0.0, -np.inf, utility)


@dataclass(frozen=True)
class GrowthReward:
    """Stochastic growth: ``u(z k^alpha + (1 - delta) k - k') + beta E[V]``."""

    has_inaction: ClassVar[bool] = False

    def resources(self, config: ModelConfig) -> np.ndarray:
        """Output plus undepreciated capital, shape ``(n_k, n_z)``."""
        params = config.params
        k_col = config.k_grid[:, np.newaxis]
        return config.z_grid[np.newaxis, :] * k_col**params.alpha + (1.0 - params.delta) * k_col

    def action_value(
        self, config: ModelConfig, i: int, j: int, h: int, values: np.ndarray
    ) -> float:
        params = config.params
        k_now = float(config.k_grid[i])
        consumption = (
            float(config.z_grid[j]) * k_now**params.alpha
            + (1.0 - params.delta) * k_now
            - float(config.k_grid[h])
        )
        utility = float(crra_utility(consumption, params.sigma))
        if not math.isfinite(utility):
            return -math.inf
        continuation = float(np.dot(config.transition[j], values[h]))
        return utility + params.beta * continuation

    def action_values(self, config: ModelConfig, values: np.ndarray) -> np.ndarray:
        consumption = (
            self.resources(config)[:, :, np.newaxis] - config.k_grid[np.newaxis, np.newaxis, :]
        )
        utility = crra_utility(consumption, config.params.sigma)
        ev = expected_continuation(config, values)
        return utility + config.params.beta * ev.T[np.newaxis, :, :]

    def inaction_values(self, config: ModelConfig, values: np.ndarray) -> None:
        return None


@dataclass(frozen=True)
class InvestmentReward:
    """Firm investment with asymmetric prices, convex and fixed adjustment costs.

    Active investment ``I = k' - (1 - delta) k`` costs
    ``p(I) I + gamma0 / 2 * I^2 / k + gamma1 * k * 1{I != 0}`` where ``p`` is
    ``p_buy`` for purchases and ``p_sell`` for sales. Inaction lets capital
    depreciate, snapped to the nearest grid point, at no cost.
    """

    has_inaction: ClassVar[bool] = True

    def profit(self, config: ModelConfig) -> np.ndarray:
        """Operating profit ``z k^theta``, shape ``(n_k, n_z)``."""
        return config.z_grid[np.newaxis, :] * config.k_grid[:, np.newaxis] ** config.params.theta

    def adjustment_cost(self, config: ModelConfig) -> np.ndarray:
        """Cost of moving from ``k_i`` to ``k_h``, shape ``(n_k, n_k)``."""
        return _adjustment_cost(
            config.params,
            k_now=config.k_grid[:, np.newaxis],
            k_next=config.k_grid[np.newaxis, :],
        )

    def action_value(
        self, config: ModelConfig, i: int, j: int, h: int, values: np.ndarray
    ) -> float:
        params = config.params
        k_next = float(config.k_grid[h])
        k_now = float(config.k_grid[i])
        profit = float(config.z_grid[j]) * k_now**params.theta
        cost = float(_adjustment_cost(params, k_now=np.float64(k_now), k_next=np.float64(k_next)))
        continuation = float(np.dot(config.transition[j], values[h]))
        return profit - cost + params.beta * continuation

    def action_values(self, config: ModelConfig, values: np.ndarray) -> np.ndarray:
        ev = expected_continuation(config, values)
        return (
            self.profit(config)[:, :, np.newaxis]
            - self.adjustment_cost(config)[:, np.newaxis, :]
            + config.params.beta * ev.T[np.newaxis, :, :]
        )

    def inaction_value(
        self, config: ModelConfig, i: int, j: int, values: np.ndarray
    ) -> float:
        k_now = float(config.k_grid[i])
        snapped = int(config.snap_index[i])
        continuation = float(np.dot(config.transition[j], values[snapped]))
        return float(config.z_grid[j]) * k_now**config.params.theta + (
            config.params.beta * continuation
        )

    def inaction_values(self, config: ModelConfig, values: np.ndarray) -> np.ndarray:
        ev = expected_continuation(config, values)
        return self.profit(config) + config.params.beta * ev[config.snap_index, :]


def _adjustment_cost(params: ModelParams, *, k_now: np.ndarray, k_next: np.ndarray) -> np.ndarray:
    investment = k_next - (1.0 - params.delta) * k_now
    price = np.where(investment > 0.0, params.p_buy, params.p_sell)
    convex = 0.5 * params.gamma0 * investment**2 / k_now
    fixed = params.gamma1 * k_now * (investment != 0.0)
    return price * investment + convex + fixed


def flow_variable(
    params: ModelParams,
    k_now: np.ndarray,
    z_now: np.ndarray,
    k_next: np.ndarray,
) -> tuple[str, np.ndarray]:
    """Consumption (growth) or investment (investment) implied by a move."""
    k_now = np.asarray(k_now, dtype=np.float64)
    k_next = np.asarray(k_next, dtype=np.float64)
    if params.model == "growth":
        output = np.asarray(z_now, dtype=np.float64) * k_now**params.alpha
        return "consumption", output + (1.0 - params.delta) * k_now - k_next
    return "investment", k_next - (1.0 - params.delta) * k_now


def reward_kernel_for(params: ModelParams) -> RewardKernel:
    """Pick the reward variant named by ``params.model``."""
    if params.model == "growth":
        return GrowthReward()
    if params.model == "investment":
        return InvestmentReward()
    raise ValueError(f"Unknown model kind: {params.model!r}.")
