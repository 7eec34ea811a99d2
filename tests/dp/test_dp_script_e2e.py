"""DP script end-to-end tests."""

from __future__ import annotations

import os
from pathlib import Path
import subprocess
import sys

import yaml


def _run_script(
    *,
    project_root: Path,
    env: dict[str, str],
    script_name: str,
    args: list[str],
) -> subprocess.CompletedProcess[str]:
    cmd = [sys.executable, str(project_root / "scripts" / script_name), *args]
    return subprocess.run(cmd, check=False, env=env, capture_output=True, text=True)


def _env(project_root: Path) -> dict[str, str]:
    env = dict(os.environ)
    env["PYTHONPATH"] = str(project_root / "src")
    return env


def test_dp_solve_script_reports_classical_and_quantal_solves() -> None:
    project_root = Path(__file__).resolve().parents[2]
    params_path = project_root / "tests" / "fixtures" / "growth_small.yaml"

    result = _run_script(
        project_root=project_root,
        env=_env(project_root),
        script_name="dp_solve.py",
        args=[
            "--params-path",
            str(params_path),
            "--solver-config",
            str(project_root / "configs" / "dp" / "solver.yaml"),
            "--no-progress",
            "--simulate-steps",
            "2000",
        ],
    )

    assert result.returncode == 0, result.stderr
    assert "Model: growth (n_k=5, n_z=3)" in result.stdout
    assert "Classical:" in result.stdout
    assert "Quantal (lambda=0.05)" in result.stdout
    assert "Simulation: steps=2000" in result.stdout
    assert "Hard quality checks failed" not in result.stdout


def test_dp_solve_investment_reports_inaction_probability(tmp_path: Path) -> None:
    project_root = Path(__file__).resolve().parents[2]
    params_path = project_root / "tests" / "fixtures" / "investment_small.yaml"
    solver_path = tmp_path / "solver_override.yaml"
    solver_payload = {
        "epsilon": 1.0e-7,
        "max_iters": 5000,
        "temperature": 0.1,
        "investment_temperature": 0.05,
        "show_progress": False,
    }
    solver_path.write_text(yaml.safe_dump(solver_payload, sort_keys=False), encoding="utf-8")

    result = _run_script(
        project_root=project_root,
        env=_env(project_root),
        script_name="dp_solve.py",
        args=[
            "--params-path",
            str(params_path),
            "--solver-config",
            str(solver_path),
            "--stationary-iters",
            "50",
        ],
    )

    assert result.returncode == 0, result.stderr
    assert "Quantal (lambda=0.1)" in result.stdout
    assert "Mean inaction probability:" in result.stdout
    assert "Simulation:" not in result.stdout


def test_dp_solve_reports_non_convergence(tmp_path: Path) -> None:
    project_root = Path(__file__).resolve().parents[2]
    params_path = project_root / "tests" / "fixtures" / "growth_small.yaml"

    result = _run_script(
        project_root=project_root,
        env=_env(project_root),
        script_name="dp_solve.py",
        args=[
            "--params-path",
            str(params_path),
            "--solver-config",
            str(tmp_path / "missing.yaml"),
            "--no-progress",
            "--max-iters",
            "2",
        ],
    )

    assert result.returncode != 0
    assert "did not converge within max_iters" in result.stderr
