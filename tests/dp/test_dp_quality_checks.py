"""DP quality-check tests."""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path

import numpy as np

from quantal_dp.core.params import load_model_spec
from quantal_dp.dp.model import build_model_config
from quantal_dp.dp.policy import extract_greedy_policy, extract_quantal_kernel
from quantal_dp.dp.quality_checks import run_quality_checks
from quantal_dp.dp.value_iteration import ValueIterationConfig, solve_value_iteration

FIXTURES = Path(__file__).resolve().parents[1] / "fixtures"


def _solved_fixture():
    params, grid = load_model_spec(FIXTURES / "growth_small.yaml")
    model = build_model_config(params, grid)
    result = solve_value_iteration(
        model,
        config=ValueIterationConfig(epsilon=1e-8, max_iters=2000),
    )
    return model, result


def test_solved_fixture_passes_all_checks() -> None:
    model, result = _solved_fixture()
    policy = extract_greedy_policy(model, result.values)
    kernel = extract_quantal_kernel(model, result.values, temperature=0.1)

    report = run_quality_checks(model=model, result=result, policy=policy, kernel=kernel)
    assert report.hard_failures == ()
    assert report.passed is True
    names = {check.name for check in report.hard_checks}
    assert {"bellman_residual", "contraction_modulus", "kernel_rows"} <= names


def test_hard_checks_fail_on_invalid_parameter_domain() -> None:
    model, result = _solved_fixture()
    invalid = replace(model, params=replace(model.params, delta=1.2))

    report = run_quality_checks(
        model=invalid,
        result=result,
        policy=extract_greedy_policy(model, result.values),
        strict_conceptual=False,
    )
    assert report.passed is False
    assert any(check.name == "parameter_domains" for check in report.hard_failures)


def test_hard_checks_fail_on_unconverged_values() -> None:
    model, result = _solved_fixture()
    rough = replace(result, values=np.zeros(model.shape))

    report = run_quality_checks(
        model=model,
        result=rough,
        policy=extract_greedy_policy(model, result.values),
    )
    failed = {check.name for check in report.hard_failures}
    assert "bellman_residual" in failed


def test_hard_checks_fail_on_out_of_range_policy() -> None:
    model, result = _solved_fixture()
    policy = extract_greedy_policy(model, result.values)
    policy[0, 0] = model.n_k

    report = run_quality_checks(model=model, result=result, policy=policy)
    failed = {check.name: check for check in report.hard_failures}
    assert "policy_index_range" in failed
    assert "(0, 0)" in failed["policy_index_range"].details


def test_conceptual_warnings_do_not_fail_by_default() -> None:
    model, result = _solved_fixture()
    inverted_policy = np.zeros(model.shape, dtype=np.int64)
    inverted_policy[:, 0] = model.n_k - 1

    report = run_quality_checks(
        model=model,
        result=result,
        policy=inverted_policy,
        strict_conceptual=False,
    )
    assert report.hard_failures == ()
    assert len(report.conceptual_warnings) >= 1
    assert report.passed is True


def test_strict_mode_escalates_conceptual_warnings_to_failure() -> None:
    model, result = _solved_fixture()
    inverted_policy = np.zeros(model.shape, dtype=np.int64)
    inverted_policy[:, 0] = model.n_k - 1

    report = run_quality_checks(
        model=model,
        result=result,
        policy=inverted_policy,
        strict_conceptual=True,
    )
    assert len(report.conceptual_warnings) >= 1
    assert report.passed is False
    assert report.to_dict()["passed"] is False
