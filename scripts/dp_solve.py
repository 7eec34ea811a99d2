"""Solve a capital model classically and under quantal response, then compare."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

import numpy as np

from quantal_dp.core.params import load_model_spec, load_solver_settings
from quantal_dp.dp.model import build_model_config
from quantal_dp.dp.policy import (
    extract_greedy_policy,
    extract_inaction_probability,
    extract_quantal_kernel,
)
from quantal_dp.dp.quality_checks import run_quality_checks
from quantal_dp.dp.simulation import empirical_distribution, simulate_kernel_path
from quantal_dp.dp.stationary import (
    density_increments,
    stationary_capital_moments,
    stationary_density,
)
from quantal_dp.dp.value_iteration import ValueIterationConfig, solve_value_iteration


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Solve a capital model via classical and quantal value iteration."
    )
    parser.add_argument(
        "--params-path",
        type=Path,
        default=Path("configs/dp/growth.yaml"),
        help="Path to model YAML with 'params' and 'grid' mappings.",
    )
    parser.add_argument(
        "--solver-config",
        type=Path,
        default=Path("configs/dp/solver.yaml"),
        help="Path to DP solver config YAML.",
    )
    parser.add_argument("--temperature", type=float, default=None)
    parser.add_argument("--investment-temperature", type=float, default=None)
    parser.add_argument("--epsilon", type=float, default=None)
    parser.add_argument("--max-iters", type=int, default=None)
    parser.add_argument("--bellman-atol", type=float, default=1.0e-5)
    parser.add_argument(
        "--simulate-steps",
        type=int,
        default=0,
        help="Length of a quantal-policy simulation (0 disables it).",
    )
    parser.add_argument("--stationary-iters", type=int, default=100)
    parser.add_argument("--shock-index", type=int, default=None)
    parser.add_argument("--seed", type=int, default=0)
    parser.add_argument(
        "--no-progress",
        action="store_true",
        help="Disable tqdm progress bar with current Bellman delta.",
    )
    parser.add_argument("--log-level", default="WARNING")
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.WARNING),
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
    )

    params, grid = load_model_spec(args.params_path)
    settings = load_solver_settings(args.solver_config)
    model = build_model_config(params, grid)
    temperature = float(args.temperature if args.temperature is not None else settings.temperature)
    investment_temperature = (
        args.investment_temperature
        if args.investment_temperature is not None
        else settings.investment_temperature
    )
    epsilon = float(args.epsilon if args.epsilon is not None else settings.epsilon)
    max_iters = int(args.max_iters if args.max_iters is not None else settings.max_iters)
    show_progress = settings.show_progress and not args.no_progress
    shock_index = args.shock_index if args.shock_index is not None else model.n_z // 2

    classical = solve_value_iteration(
        model,
        kind="deterministic",
        config=ValueIterationConfig(
            epsilon=epsilon,
            max_iters=max_iters,
            show_progress=show_progress,
            progress_desc="Classical VFI",
        ),
    )
    quantal = solve_value_iteration(
        model,
        kind="quantal",
        temperature=temperature,
        investment_temperature=investment_temperature,
        config=ValueIterationConfig(
            epsilon=epsilon,
            max_iters=max_iters,
            show_progress=show_progress,
            progress_desc=f"Quantal VFI (lambda={temperature:g})",
        ),
        initial=classical.values,
    )
    policy = extract_greedy_policy(model, classical.values)
    kernel = extract_quantal_kernel(
        model,
        quantal.values,
        temperature=temperature,
        investment_temperature=investment_temperature,
    )
    quality = run_quality_checks(
        model=model,
        result=classical,
        policy=policy,
        kernel=kernel,
        bellman_atol=args.bellman_atol,
    )

    initial_index = model.n_k // 2
    density = stationary_density(
        kernel,
        initial_index=initial_index,
        shock_index=shock_index,
        iterations=args.stationary_iters,
    )
    mean_k, std_k = stationary_capital_moments(model, density)
    increments = density_increments(density)
    last_increment = float(increments[-1]) if increments.size else 0.0

    print(f"Model: {params.model} (n_k={model.n_k}, n_z={model.n_z})")
    print(
        f"Classical: iterations={classical.iterations}, "
        f"residual={classical.final_bellman_residual:.3e}"
    )
    print(
        f"Quantal (lambda={temperature:g}): iterations={quantal.iterations}, "
        f"residual={quantal.final_bellman_residual:.3e}"
    )
    print(
        "Value gap (classical - quantal): "
        f"max={float(np.max(classical.values - quantal.values)):.4f}, "
        f"mean={float(np.mean(classical.values - quantal.values)):.4f}"
    )
    print(
        f"Stationary capital at shock {shock_index}: mean={mean_k:.4f}, std={std_k:.4f}, "
        f"last increment={last_increment:.3e}"
    )
    if params.model == "investment":
        p_wait = extract_inaction_probability(
            model,
            quantal.values,
            temperature=temperature,
            investment_temperature=investment_temperature,
        )
        print(f"Mean inaction probability: {float(np.mean(p_wait)):.4f}")

    if args.simulate_steps > 0:
        path = simulate_kernel_path(
            model,
            kernel,
            length=args.simulate_steps,
            initial_index=initial_index,
            shock_index=shock_index,
            seed=args.seed,
        )
        empirical = empirical_distribution(path.capital_indices, model.n_k)
        gap = float(np.max(np.abs(empirical - density[:, -1])))
        frame = path.to_frame()
        print(
            f"Simulation: steps={len(path)}, mean capital={frame['capital'].mean():.4f}, "
            f"mean {path.flow_name}={frame[path.flow_name].mean():.4f}, "
            f"max density gap={gap:.4f}"
        )

    if quality.conceptual_warnings:
        print(
            "Conceptual warnings: "
            + ", ".join(warning.name for warning in quality.conceptual_warnings)
        )
    if quality.hard_failures:
        print(
            "Hard quality checks failed: "
            + ", ".join(failure.name for failure in quality.hard_failures)
        )
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
