"""Parameter schema and YAML helpers for capital-accumulation models."""

from __future__ import annotations

from dataclasses import asdict, dataclass
import math
from pathlib import Path
from typing import Any

import yaml

MODEL_KINDS: tuple[str, ...] = ("growth", "investment")
GRID_SPACINGS: tuple[str, ...] = ("linear", "log")


@dataclass(frozen=True)
class ModelParams:
    """Economic parameters shared by both reward variants.

    Attributes:
        model: ``"growth"`` (CRRA consumption) or ``"investment"`` (profit with
            asymmetric adjustment costs and an inaction branch).
        beta: Discount factor in (0, 1).
        delta: Depreciation rate in [0, 1].
        sigma: CRRA curvature; ``sigma == 1`` is log utility.
        alpha: Production elasticity of capital (growth variant).
        theta: Profit curvature in capital (investment variant).
        gamma0: Convex adjustment-cost coefficient.
        gamma1: Fixed adjustment cost, proportional to current capital.
        p_buy: Unit price paid for purchased capital.
        p_sell: Unit price received for sold capital.
    """

    model: str
    beta: float
    delta: float
    sigma: float = 1.0
    alpha: float = 0.33
    theta: float = 0.7
    gamma0: float = 0.0
    gamma1: float = 0.0
    p_buy: float = 1.0
    p_sell: float = 1.0

    def validate(self) -> None:
        if self.model not in MODEL_KINDS:
            raise ValueError(f"model must be one of {MODEL_KINDS}, got {self.model!r}.")
        if not (0.0 < self.beta < 1.0):
            raise ValueError("beta must be in (0, 1).")
        if not (0.0 <= self.delta <= 1.0):
            raise ValueError("delta must be in [0, 1].")
        if self.sigma <= 0.0:
            raise ValueError("sigma must be positive.")
        if self.gamma0 < 0.0 or self.gamma1 < 0.0:
            raise ValueError("adjustment-cost coefficients must be non-negative.")
        if self.p_buy < self.p_sell:
            raise ValueError("p_buy must be greater than or equal to p_sell.")

    def to_dict(self) -> dict[str, Any]:
        """Convert parameter object to a plain dict."""
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "ModelParams":
        """Create parameter object from a plain dict."""
        optional = {
            name: float(payload[name])
            for name in ("sigma", "alpha", "theta", "gamma0", "gamma1", "p_buy", "p_sell")
            if name in payload
        }
        return cls(
            model=str(payload["model"]),
            beta=float(payload["beta"]),
            delta=float(payload["delta"]),
            **optional,
        )


@dataclass(frozen=True)
class GridSpec:
    """Capital grid bounds and AR(1) shock discretization settings."""

    k_min: float
    k_max: float
    n_k: int
    n_z: int
    rho: float
    nu: float
    n_std: float = 3.0
    spacing: str = "linear"

    def validate(self) -> None:
        if not (math.isfinite(self.k_min) and math.isfinite(self.k_max)):
            raise ValueError("capital bounds must be finite.")
        if not (0.0 < self.k_min < self.k_max):
            raise ValueError("capital bounds must satisfy 0 < k_min < k_max.")
        if self.n_k < 2:
            raise ValueError("n_k must be at least 2.")
        if self.n_z < 1:
            raise ValueError("n_z must be positive.")
        if not (-1.0 < self.rho < 1.0):
            raise ValueError("rho must be in (-1, 1).")
        if self.nu < 0.0:
            raise ValueError("nu must be non-negative.")
        if self.n_std <= 0.0:
            raise ValueError("n_std must be positive.")
        if self.spacing not in GRID_SPACINGS:
            raise ValueError(f"spacing must be one of {GRID_SPACINGS}.")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "GridSpec":
        return cls(
            k_min=float(payload["k_min"]),
            k_max=float(payload["k_max"]),
            n_k=int(payload["n_k"]),
            n_z=int(payload["n_z"]),
            rho=float(payload["rho"]),
            nu=float(payload["nu"]),
            n_std=float(payload.get("n_std", 3.0)),
            spacing=str(payload.get("spacing", "linear")),
        )


@dataclass(frozen=True)
class SolverSettings:
    """Defaults for a solve run, usually read from ``configs/dp/solver.yaml``."""

    epsilon: float = 1.0e-6
    max_iters: int = 2000
    temperature: float = 0.05
    investment_temperature: float | None = None
    show_progress: bool = False

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "SolverSettings":
        raw_inv = payload.get("investment_temperature")
        return cls(
            epsilon=float(payload.get("epsilon", 1.0e-6)),
            max_iters=int(payload.get("max_iters", 2000)),
            temperature=float(payload.get("temperature", 0.05)),
            investment_temperature=None if raw_inv is None else float(raw_inv),
            show_progress=bool(payload.get("show_progress", False)),
        )


def save_model_spec(params: ModelParams, grid: GridSpec, output_path: Path) -> None:
    """Serialize model parameters and grid settings to one YAML file."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    payload = {"params": params.to_dict(), "grid": grid.to_dict()}
    output_path.write_text(yaml.safe_dump(payload, sort_keys=False))


def load_model_spec(path: Path) -> tuple[ModelParams, GridSpec]:
    """Load ``params`` and ``grid`` mappings from YAML."""
    payload = yaml.safe_load(path.read_text())
    if not isinstance(payload, dict):
        raise ValueError("Expected a mapping in model YAML.")
    if not isinstance(payload.get("params"), dict):
        raise ValueError("Model YAML missing 'params' mapping.")
    if not isinstance(payload.get("grid"), dict):
        raise ValueError("Model YAML missing 'grid' mapping.")
    return ModelParams.from_dict(payload["params"]), GridSpec.from_dict(payload["grid"])


def load_solver_settings(path: Path) -> SolverSettings:
    """Load solver defaults; a missing or empty file gives the defaults."""
    if not path.exists():
        return SolverSettings()
    raw = yaml.safe_load(path.read_text())
    if raw is None:
        return SolverSettings()
    if not isinstance(raw, dict):
        raise ValueError(f"Expected mapping in solver config: {path}")
    return SolverSettings.from_dict(raw)
