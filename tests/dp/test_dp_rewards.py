"""Reward kernel tests for the growth and investment variants."""

from __future__ import annotations

import math

import numpy as np
import pytest

from quantal_dp.core.params import GridSpec, ModelParams
from quantal_dp.dp.model import build_model_config, model_config_from_arrays
from quantal_dp.dp.rewards import (
    GrowthReward,
    InvestmentReward,
    crra_utility,
    expected_continuation,
    flow_variable,
    reward_kernel_for,
)


def _growth_config():
    params = ModelParams(model="growth", beta=0.9, delta=0.06, sigma=0.9, alpha=0.4)
    grid = GridSpec(k_min=0.05, k_max=10.0, n_k=7, n_z=3, rho=0.9, nu=0.01)
    return build_model_config(params, grid)


def _investment_config(**overrides):
    payload = dict(
        model="investment",
        beta=0.9,
        delta=0.1,
        theta=0.5,
        gamma0=0.4,
        gamma1=0.05,
        p_buy=1.0,
        p_sell=0.7,
    )
    payload.update(overrides)
    params = ModelParams(**payload)
    grid = GridSpec(k_min=0.5, k_max=8.0, n_k=9, n_z=3, rho=0.8, nu=0.05)
    return build_model_config(params, grid)


def test_crra_utility_matches_closed_form() -> None:
    assert float(crra_utility(2.0, 0.5)) == pytest.approx((2.0**0.5 - 1.0) / 0.5)
    assert float(crra_utility(2.0, 1.0)) == pytest.approx(math.log(2.0))
    assert float(crra_utility(1.0, 3.0)) == pytest.approx(0.0)
    assert float(crra_utility(-0.1, 0.5)) == -math.inf
    # Zero consumption is finite only when sigma < 1.
    assert float(crra_utility(0.0, 0.9)) == pytest.approx(-10.0)
    assert float(crra_utility(0.0, 2.0)) == -math.inf


def test_expected_continuation_averages_over_next_shock() -> None:
    config = _growth_config()
    values = np.arange(config.n_k * config.n_z, dtype=float).reshape(config.shape)

    ev = expected_continuation(config, values)
    assert ev.shape == config.shape
    assert ev[2, 1] == pytest.approx(float(np.dot(config.transition[1], values[2])))


@pytest.mark.parametrize("builder", [_growth_config, _investment_config])
def test_scalar_and_vectorised_action_values_agree(builder) -> None:
    config = builder()
    kernel = reward_kernel_for(config.params)
    values = np.random.default_rng(0).normal(size=config.shape)

    table = kernel.action_values(config, values)
    assert table.shape == (config.n_k, config.n_z, config.n_k)
    for i in range(config.n_k):
        for j in range(config.n_z):
            for h in range(config.n_k):
                scalar = kernel.action_value(config, i, j, h, values)
                if math.isinf(scalar):
                    assert table[i, j, h] == -np.inf
                else:
                    assert table[i, j, h] == pytest.approx(scalar, rel=1e-12, abs=1e-12)


def test_growth_infeasible_consumption_is_negative_infinity() -> None:
    config = _growth_config()
    table = GrowthReward().action_values(config, config.zero_values())

    # Lowest capital cannot afford the highest next capital.
    assert table[0, 0, -1] == -np.inf
    # Staying at the lowest capital is always affordable.
    assert np.all(np.isfinite(table[:, :, 0]))


def test_action_values_do_not_alias_input() -> None:
    config = _growth_config()
    values = config.zero_values()
    before = values.copy()

    table = GrowthReward().action_values(config, values)
    table[:] = 1.0
    assert np.array_equal(values, before)
    assert not np.shares_memory(table, values)


def test_investment_cost_is_asymmetric_in_price() -> None:
    config = _investment_config(gamma0=0.0, gamma1=0.0)
    kernel = InvestmentReward()
    cost = kernel.adjustment_cost(config)
    k = config.k_grid
    depreciated = 0.9 * k

    buy = cost[0, 5]
    sell = cost[8, 0]
    assert buy == pytest.approx(1.0 * (k[5] - depreciated[0]))
    assert sell == pytest.approx(0.7 * (k[0] - depreciated[8]))
    assert sell < 0.0


def test_investment_fixed_cost_scales_with_capital() -> None:
    base = _investment_config(gamma0=0.0, gamma1=0.0)
    fixed = _investment_config(gamma0=0.0, gamma1=0.05)
    kernel = InvestmentReward()

    diff = kernel.adjustment_cost(fixed) - kernel.adjustment_cost(base)
    assert np.allclose(diff, 0.05 * base.k_grid[:, np.newaxis] * np.ones((1, base.n_k)))


def test_inaction_uses_snapped_depreciated_capital_without_cost() -> None:
    config = _investment_config()
    kernel = InvestmentReward()
    values = np.random.default_rng(1).normal(size=config.shape)

    wait = kernel.inaction_values(config, values)
    for i in range(config.n_k):
        for j in range(config.n_z):
            snapped = int(np.argmin(np.abs(config.k_grid - 0.9 * config.k_grid[i])))
            expected = config.z_grid[j] * config.k_grid[i] ** 0.5 + 0.9 * float(
                np.dot(config.transition[j], values[snapped])
            )
            assert wait[i, j] == pytest.approx(expected)
            assert kernel.inaction_value(config, i, j, values) == pytest.approx(expected)


def test_growth_kernel_has_no_inaction_branch() -> None:
    config = _growth_config()
    assert GrowthReward().inaction_values(config, config.zero_values()) is None
    assert reward_kernel_for(config.params).has_inaction is False
    assert reward_kernel_for(_investment_config().params).has_inaction is True


def test_flow_variable_by_model() -> None:
    growth = ModelParams(model="growth", beta=0.9, delta=0.1, alpha=0.5)
    name, flow = flow_variable(growth, np.array([4.0]), np.array([1.0]), np.array([3.0]))
    assert name == "consumption"
    assert flow[0] == pytest.approx(2.0 + 3.6 - 3.0)

    invest = ModelParams(model="investment", beta=0.9, delta=0.1)
    name, flow = flow_variable(invest, np.array([4.0]), np.array([1.0]), np.array([3.0]))
    assert name == "investment"
    assert flow[0] == pytest.approx(3.0 - 3.6)


def test_non_positive_capital_grid_is_rejected() -> None:
    params = ModelParams(model="investment", beta=0.9, delta=0.1)
    for k_grid in (np.array([-1.0, 0.0, 1.0, 2.0]), np.array([0.0, 1.0, 2.0])):
        with pytest.raises(ValueError, match="strictly positive"):
            model_config_from_arrays(
                params=params,
                k_grid=k_grid,
                z_grid=np.array([1.0]),
                transition=np.array([[1.0]]),
            )


def test_every_grid_action_is_finite_for_investment() -> None:
    config = _investment_config()
    table = InvestmentReward().action_values(config, config.zero_values())

    assert np.all(np.isfinite(table))
