"""Quality checks for solved capital-accumulation models."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from quantal_dp.core.errors import MalformedTransitionMatrixError
from quantal_dp.dp.bellman import bellman_residual, deterministic_operator
from quantal_dp.dp.discretization import validate_transition_matrix
from quantal_dp.dp.model import ModelConfig
from quantal_dp.dp.value_iteration import ValueIterationResult

KERNEL_ROW_TOL = 1e-8


@dataclass(frozen=True)
class CheckResult:
    """One quality-check result."""

    name: str
    passed: bool
    details: str
    metric: float | None = None

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "name": self.name,
            "passed": self.passed,
            "details": self.details,
        }
        if self.metric is not None:
            payload["metric"] = self.metric
        return payload


@dataclass(frozen=True)
class QualityReport:
    """Aggregated hard/conceptual checks."""

    hard_checks: tuple[CheckResult, ...]
    conceptual_checks: tuple[CheckResult, ...]
    strict_conceptual: bool

    @property
    def hard_failures(self) -> tuple[CheckResult, ...]:
        return tuple(check for check in self.hard_checks if not check.passed)

    @property
    def conceptual_warnings(self) -> tuple[CheckResult, ...]:
        return tuple(check for check in self.conceptual_checks if not check.passed)

    @property
    def passed(self) -> bool:
        if self.hard_failures:
            return False
        if self.strict_conceptual and self.conceptual_warnings:
            return False
        return True

    def to_dict(self) -> dict[str, object]:
        return {
            "hard_checks": [check.to_dict() for check in self.hard_checks],
            "conceptual_checks": [check.to_dict() for check in self.conceptual_checks],
            "hard_failures": [check.to_dict() for check in self.hard_failures],
            "conceptual_warnings": [
                check.to_dict() for check in self.conceptual_warnings
            ],
            "strict_conceptual": self.strict_conceptual,
            "passed": self.passed,
        }


def run_quality_checks(
    *,
    model: ModelConfig,
    result: ValueIterationResult,
    policy: np.ndarray,
    kernel: np.ndarray | None = None,
    bellman_atol: float = 1e-5,
    strict_conceptual: bool = False,
    seed: int = 0,
) -> QualityReport:
    """Run hard + conceptual checks against a solve and its policy."""
    hard: list[CheckResult] = [
        _check_parameter_domains(model),
        _check_transition_probabilities(model),
        _check_policy_index_range(policy=policy, n_k=model.n_k),
        _check_bellman_residual(model=model, result=result, bellman_atol=bellman_atol),
        _check_contraction(model=model, seed=seed),
    ]
    if kernel is not None:
        hard.append(_check_kernel_rows(kernel))

    conceptual = (
        _check_value_monotone_in_capital(result.values),
        _check_policy_monotone_in_shock(policy),
    )
    return QualityReport(
        hard_checks=tuple(hard),
        conceptual_checks=conceptual,
        strict_conceptual=strict_conceptual,
    )


def _check_parameter_domains(model: ModelConfig) -> CheckResult:
    try:
        model.params.validate()
    except ValueError as exc:
        return CheckResult(name="parameter_domains", passed=False, details=str(exc))
    return CheckResult(name="parameter_domains", passed=True, details="parameter domains valid")


def _check_transition_probabilities(model: ModelConfig) -> CheckResult:
    try:
        validate_transition_matrix(model.transition)
    except MalformedTransitionMatrixError as exc:
        return CheckResult(name="transition_probabilities", passed=False, details=str(exc))
    return CheckResult(
        name="transition_probabilities",
        passed=True,
        details=f"validated {model.n_z} shock transition rows",
    )


def _check_policy_index_range(policy: np.ndarray, n_k: int) -> CheckResult:
    actions = np.asarray(policy)
    invalid = np.argwhere((actions < 0) | (actions >= n_k))
    if invalid.size:
        state = tuple(int(v) for v in invalid[0])
        return CheckResult(
            name="policy_index_range",
            passed=False,
            details=f"invalid next index {int(actions[state])} at state {state} "
            f"(expected 0..{n_k - 1})",
        )
    return CheckResult(
        name="policy_index_range",
        passed=True,
        details=f"all policy indices in [0, {n_k - 1}]",
    )


def _check_bellman_residual(
    *,
    model: ModelConfig,
    result: ValueIterationResult,
    bellman_atol: float,
) -> CheckResult:
    residual = bellman_residual(
        model,
        result.values,
        result.kind,
        temperature=result.temperature,
        investment_temperature=result.investment_temperature,
    )
    passed = residual <= bellman_atol
    details = (
        f"bellman residual {residual:.3e} <= atol {bellman_atol:.3e}"
        if passed
        else f"bellman residual {residual:.3e} exceeds atol {bellman_atol:.3e}"
    )
    return CheckResult(name="bellman_residual", passed=passed, details=details, metric=residual)


def _check_contraction(*, model: ModelConfig, seed: int) -> CheckResult:
    rng = np.random.default_rng(seed)
    v1 = rng.normal(size=model.shape)
    v2 = rng.normal(size=model.shape)
    before = float(np.max(np.abs(v1 - v2)))
    after = float(
        np.max(np.abs(deterministic_operator(model, v1) - deterministic_operator(model, v2)))
    )
    ratio = after / before
    passed = ratio <= model.params.beta + 1e-10
    return CheckResult(
        name="contraction_modulus",
        passed=passed,
        details=f"observed modulus {ratio:.6f} vs beta {model.params.beta:.6f}",
        metric=ratio,
    )


def _check_kernel_rows(kernel: np.ndarray) -> CheckResult:
    probs = np.asarray(kernel)
    if np.any(probs < 0.0):
        return CheckResult(name="kernel_rows", passed=False, details="negative kernel entry")
    error = float(np.max(np.abs(probs.sum(axis=-1) - 1.0)))
    passed = error <= KERNEL_ROW_TOL
    return CheckResult(
        name="kernel_rows",
        passed=passed,
        details=f"max kernel row-sum error {error:.3e}",
        metric=error,
    )


def _check_value_monotone_in_capital(values: np.ndarray) -> CheckResult:
    steps = np.diff(values, axis=0)
    violations = int(np.sum(steps < -1e-9))
    comparisons = int(steps.size)
    rate = violations / comparisons if comparisons else 0.0
    return CheckResult(
        name="value_monotone_in_capital",
        passed=violations == 0,
        details=f"{violations}/{comparisons} decreasing capital steps",
        metric=rate,
    )


def _check_policy_monotone_in_shock(policy: np.ndarray) -> CheckResult:
    actions = np.asarray(policy)
    if actions.shape[1] < 2:
        return CheckResult(
            name="policy_monotone_in_shock",
            passed=True,
            details="single shock state; monotonicity check skipped",
        )
    violations = int(np.sum(actions[:, -1] < actions[:, 0]))
    return CheckResult(
        name="policy_monotone_in_shock",
        passed=violations == 0,
        details=f"{violations}/{actions.shape[0]} capital states where the high-shock "
        "policy is below the low-shock policy",
        metric=float(violations),
    )
