"""Dynamic Programming components: classical and quantal value iteration."""

from quantal_dp.dp.model import ModelConfig, build_model_config
from quantal_dp.dp.policy import extract_policy
from quantal_dp.dp.simulation import simulate_kernel_path, simulate_policy_path
from quantal_dp.dp.stationary import stationary_density
from quantal_dp.dp.value_iteration import (
    ValueIterationConfig,
    ValueIterationResult,
    solve_value_iteration,
)

__all__ = [
    "ModelConfig",
    "ValueIterationConfig",
    "ValueIterationResult",
    "build_model_config",
    "extract_policy",
    "simulate_kernel_path",
    "simulate_policy_path",
    "solve_value_iteration",
    "stationary_density",
]
