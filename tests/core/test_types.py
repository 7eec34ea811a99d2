"""Tests for shared value types."""

from __future__ import annotations

import numpy as np
import pytest

from quantal_dp.core.errors import (
    MalformedTransitionMatrixError,
    NonConvergenceError,
    NumericalInstabilityError,
    QuantalDPError,
)
from quantal_dp.core.types import SimulatedPath, validate_operator_kind


def _path() -> SimulatedPath:
    return SimulatedPath(
        shock_indices=np.array([0, 1, 1]),
        capital_indices=np.array([2, 3, 3]),
        shock_values=np.array([0.9, 1.1, 1.1]),
        capital_values=np.array([1.0, 1.5, 1.5]),
        flow=np.array([0.4, 0.2]),
        flow_name="investment",
        scenario_shock=1,
    )


def test_simulated_path_frame_has_one_row_per_period() -> None:
    path = _path()
    frame = path.to_frame()

    assert len(path) == 3
    assert len(frame) == 3
    assert frame["investment"].iloc[0] == pytest.approx(0.4)
    assert np.isnan(frame["investment"].iloc[-1])
    assert frame["capital_index"].tolist() == [2, 3, 3]


def test_operator_kind_validation() -> None:
    validate_operator_kind("deterministic")
    validate_operator_kind("quantal")
    with pytest.raises(ValueError, match="kind must be one of"):
        validate_operator_kind("boltzmann")


def test_error_hierarchy_keeps_builtin_bases() -> None:
    assert issubclass(MalformedTransitionMatrixError, ValueError)
    assert issubclass(NumericalInstabilityError, FloatingPointError)
    assert issubclass(NonConvergenceError, RuntimeError)
    for error in (MalformedTransitionMatrixError, NumericalInstabilityError, NonConvergenceError):
        assert issubclass(error, QuantalDPError)


def test_non_convergence_error_carries_last_iterate() -> None:
    last = np.ones((2, 2))
    error = NonConvergenceError(last_values=last, residual=0.5, iterations=10, epsilon=1e-6)

    assert error.last_values is last
    assert error.residual == 0.5
    assert "max_iters=10" in str(error)
    assert str(error).startswith("Value iteration did not converge")
