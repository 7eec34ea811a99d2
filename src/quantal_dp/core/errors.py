"""Error taxonomy for the numerical kernel.

Infeasible actions are not errors: they are carried as ``-inf`` action values
and dropped from every max/softmax reduction.
"""

from __future__ import annotations

import numpy as np


class QuantalDPError(Exception):
    """Base class for solver errors."""


class MalformedTransitionMatrixError(QuantalDPError, ValueError):
    """A transition matrix is not square, has negative entries, or rows off 1."""


class NumericalInstabilityError(QuantalDPError, FloatingPointError):
    """Softmax normalisation failed (no feasible action or non-finite weights).

    Usually means the capital grid bounds are too tight for the parameters.
    """


class NonConvergenceError(QuantalDPError, RuntimeError):
    """Successive approximation hit its iteration cap.

    The last iterate and the observed sup-norm residual are kept so the caller
    can decide whether to relax the tolerance or raise the cap.
    """

    def __init__(
        self,
        *,
        last_values: np.ndarray,
        residual: float,
        iterations: int,
        epsilon: float,
        label: str = "Value iteration",
    ) -> None:
        self.last_values = last_values
        self.residual = float(residual)
        self.iterations = int(iterations)
        self.epsilon = float(epsilon)
        super().__init__(
            f"{label} did not converge within max_iters "
            f"(max_iters={self.iterations}, epsilon={self.epsilon:.3e}, "
            f"final_delta={self.residual:.3e})."
        )
