"""Successive-approximation solver for the classical and quantal Bellman equations."""

from __future__ import annotations

from dataclasses import dataclass
import logging

import numpy as np

from quantal_dp.core.errors import NonConvergenceError
from quantal_dp.core.types import validate_operator_kind
from quantal_dp.dp.bellman import Operator, bellman_residual, make_operator
from quantal_dp.dp.model import ModelConfig
from quantal_dp.dp.rewards import reward_kernel_for

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValueIterationConfig:
    """Configuration for successive approximation."""

    epsilon: float
    max_iters: int
    show_progress: bool = False
    progress_desc: str = "Value Iteration"

    def validate(self) -> None:
        if self.epsilon <= 0.0:
            raise ValueError("epsilon must be positive.")
        if self.max_iters <= 0:
            raise ValueError("max_iters must be positive.")


@dataclass(frozen=True)
class FixedPointResult:
    """Final iterate of a converged fixed-point iteration."""

    values: np.ndarray
    iterations: int
    max_delta_history: tuple[float, ...]


@dataclass(frozen=True)
class ValueIterationResult:
    """Outputs from a model solve."""

    values: np.ndarray
    kind: str
    temperature: float | None
    investment_temperature: float | None
    iterations: int
    max_delta_history: tuple[float, ...]
    final_bellman_residual: float


def successive_approximation(
    operator: Operator,
    initial: np.ndarray,
    config: ValueIterationConfig,
) -> FixedPointResult:
    """Apply ``operator`` until consecutive iterates are within ``epsilon``.

    Raises:
        NonConvergenceError: ``max_iters`` applications did not reach the
            tolerance. The error carries the last iterate and residual.
    """
    config.validate()
    values = np.array(initial, dtype=np.float64)
    max_delta_history: list[float] = []
    max_delta = np.inf

    iterator = range(1, config.max_iters + 1)
    show_tqdm = config.show_progress
    progress = iterator
    if show_tqdm:
        # Import tqdm lazily to avoid notebook-side effects when progress is disabled.
        from tqdm.auto import tqdm

        progress = tqdm(
            iterator,
            desc=config.progress_desc,
            dynamic_ncols=True,
            leave=False,
        )

    try:
        for iteration in progress:
            next_values = operator(values)
            if next_values is values:
                raise RuntimeError("Operator must return a new array, not its input.")
            max_delta = float(np.max(np.abs(next_values - values)))
            values = next_values
            max_delta_history.append(max_delta)

            if show_tqdm:
                progress.set_postfix({"delta": f"{max_delta:.3e}"}, refresh=False)

            if max_delta < config.epsilon:
                logger.info(
                    "%s converged in %d iterations (delta=%.2e).",
                    config.progress_desc,
                    iteration,
                    max_delta,
                )
                return FixedPointResult(
                    values=values,
                    iterations=iteration,
                    max_delta_history=tuple(max_delta_history),
                )
    finally:
        if show_tqdm:
            progress.close()

    logger.warning(
        "%s did not converge after %d iterations (delta=%.2e).",
        config.progress_desc,
        config.max_iters,
        max_delta,
    )
    raise NonConvergenceError(
        last_values=values,
        residual=max_delta,
        iterations=config.max_iters,
        epsilon=config.epsilon,
        label=config.progress_desc,
    )


def solve_value_iteration(
    model: ModelConfig,
    kind: str = "deterministic",
    temperature: float | None = None,
    investment_temperature: float | None = None,
    config: ValueIterationConfig | None = None,
    initial: np.ndarray | None = None,
) -> ValueIterationResult:
    """Solve the classical (``"deterministic"``) or ``"quantal"`` Bellman equation."""
    validate_operator_kind(kind)
    config = config or ValueIterationConfig(epsilon=1e-6, max_iters=2000)
    operator = make_operator(
        model,
        kind,
        temperature=temperature,
        investment_temperature=investment_temperature,
    )
    start = model.zero_values() if initial is None else np.asarray(initial, dtype=np.float64)
    if start.shape != model.shape:
        raise ValueError(f"initial values must have shape {model.shape}, got {start.shape}.")

    fixed_point = successive_approximation(operator, start, config)
    residual = bellman_residual(
        model,
        fixed_point.values,
        kind,
        temperature=temperature,
        investment_temperature=investment_temperature,
    )
    return ValueIterationResult(
        values=fixed_point.values,
        kind=kind,
        temperature=temperature,
        investment_temperature=investment_temperature,
        iterations=fixed_point.iterations,
        max_delta_history=fixed_point.max_delta_history,
        final_bellman_residual=residual,
    )


def evaluate_policy(
    model: ModelConfig,
    policy: np.ndarray,
    config: ValueIterationConfig,
    inaction: np.ndarray | None = None,
) -> np.ndarray:
    """Compute V^pi for a fixed deterministic policy.

    Instead of max_h B(i, j, h), each step evaluates B(i, j, policy[i, j]),
    giving the long-run value of always following the given policy. For the
    investment model ``inaction`` marks states where the policy waits.

    Args:
        model: Model whose payoff is evaluated.
        policy: Next-capital indices, shape ``(n_k, n_z)``.
        config: Solver configuration (epsilon, max_iters).
        inaction: Optional boolean mask of waiting states.

    Returns:
        Converged value array of the policy.
    """
    actions = _validate_policy_array(policy, model)
    kernel = reward_kernel_for(model.params)
    if inaction is not None and not kernel.has_inaction:
        raise ValueError("inaction mask given for a model without an inaction branch.")

    def policy_operator(values: np.ndarray) -> np.ndarray:
        chosen = np.take_along_axis(
            kernel.action_values(model, values),
            actions[:, :, np.newaxis],
            axis=-1,
        )[:, :, 0]
        if inaction is None:
            return chosen
        return np.where(inaction, kernel.inaction_values(model, values), chosen)

    eval_config = ValueIterationConfig(
        epsilon=config.epsilon,
        max_iters=config.max_iters,
        show_progress=config.show_progress,
        progress_desc="Policy evaluation",
    )
    return successive_approximation(policy_operator, model.zero_values(), eval_config).values


def _validate_policy_array(policy: np.ndarray, model: ModelConfig) -> np.ndarray:
    actions = np.asarray(policy)
    if actions.shape != model.shape:
        raise ValueError(f"Policy must have shape {model.shape}, got {actions.shape}.")
    if not np.issubdtype(actions.dtype, np.integer):
        raise ValueError("Policy must hold integer next-capital indices.")
    if np.any(actions < 0) or np.any(actions >= model.n_k):
        bad = tuple(int(v) for v in np.argwhere((actions < 0) | (actions >= model.n_k))[0])
        raise ValueError(
            f"Invalid action {int(actions[bad])} for state {bad}; "
            f"expected index in [0, {model.n_k - 1}]"
        )
    return actions.astype(np.int64)
