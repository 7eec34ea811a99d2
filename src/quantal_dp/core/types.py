"""Shared value types used across the DP modules."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

import numpy as np
import pandas as pd


OperatorKind = Literal["deterministic", "quantal"]
OPERATOR_KINDS: tuple[str, ...] = ("deterministic", "quantal")


def validate_operator_kind(kind: str) -> None:
    if kind not in OPERATOR_KINDS:
        raise ValueError(f"kind must be one of {OPERATOR_KINDS}, got {kind!r}.")


@dataclass(frozen=True)
class SimulatedPath:
    """One simulated trajectory of the induced Markov dynamics.

    Attributes:
        shock_indices: Exogenous state index per period, length ``m``.
        capital_indices: Endogenous state index per period, length ``m``.
        shock_values: Productivity level per period.
        capital_values: Capital level per period.
        flow: Flow variable between consecutive periods, length ``m - 1``.
        flow_name: ``"consumption"`` or ``"investment"``.
        scenario_shock: Shock index the endogenous transition was conditioned
            on, or ``None`` when it followed the simulated shock path.
    """

    shock_indices: np.ndarray
    capital_indices: np.ndarray
    shock_values: np.ndarray
    capital_values: np.ndarray
    flow: np.ndarray
    flow_name: str
    scenario_shock: int | None = None

    def __len__(self) -> int:
        return int(self.capital_indices.shape[0])

    def to_frame(self) -> pd.DataFrame:
        """Tabulate the path with one row per period; the last flow is NaN."""
        flow = np.append(self.flow, np.nan)
        return pd.DataFrame(
            {
                "shock_index": self.shock_indices,
                "capital_index": self.capital_indices,
                "shock": self.shock_values,
                "capital": self.capital_values,
                self.flow_name: flow,
            }
        )
