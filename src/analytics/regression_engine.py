"""
Regression Engine
=================
Ordinary least squares of daily mood on habit / biometric predictors,
solved through the normal equations:

    y = Xβ + ε          X = [1 | predictors]   (n observations × p columns)
    (XᵗX) β = Xᵗy

Pipeline for one fit:
  1. Design matrix with a leading all-ones intercept column.
  2. XᵗX (pairwise dot products, upper triangle mirrored) and Xᵗy.
  3. Gaussian elimination with partial pivoting.  Any pivot below 1e-12
     means residual multicollinearity (or too few days for the number of
     predictors) → SingularSystem, never an unstable coefficient.
  4. Back substitution → β.
  5. R² = 1 − SSres / SStot, 0 when SStot ≈ 0, clamped to [0, 1].
  6. σ² = SSres / (n − p).  When n ≤ p every p-value is 1.0 but the
     coefficients are still returned.
  7. (XᵗX)⁻¹ by Gauss-Jordan, SE(βᵢ) = √(σ² · (XᵗX)⁻¹ᵢᵢ).
  8. t = |βᵢ| / SE(βᵢ),  p ≈ erfc(t / √2)  (normal approximation to the
     t-distribution; indicative near the 14-day minimum).
  9. Direction from the ±0.01 deadband, baseline rate attached.

The engine is pure: no I/O, no shared state.  Identical inputs give
bit-identical outputs.  Picking the "force multiplier" is left to callers.
"""

from __future__ import annotations

import logging
import math
from typing import List, Optional, Union

import numpy as np
from scipy.special import erfc

from analytics.linear_algebra import (
    SingularMatrixError,
    cross_product,
    gram_matrix,
    invert_gauss_jordan,
    solve_gaussian,
)
from constants import (
    MIN_HABITS_WITH_VARIANCE,
    MIN_OBSERVATIONS,
    PIVOT_TOLERANCE,
    SE_VARIANCE_TOLERANCE,
    SS_TOTAL_TOLERANCE,
)
from models import (
    Coefficient,
    Direction,
    FailureReason,
    FitFailure,
    RegressionInput,
    RegressionOutput,
)

log = logging.getLogger("regression_engine")

FitResult = Union[RegressionOutput, FitFailure]

_SQRT2 = math.sqrt(2.0)


def design_matrix(regression_input: RegressionInput) -> np.ndarray:
    """Intercept column of ones followed by one column per predictor."""
    predictors = regression_input.predictor_matrix()
    ones = np.ones((regression_input.n_observations, 1), dtype=np.float64)
    return np.hstack([ones, predictors])


def r_squared(y: np.ndarray, residuals: np.ndarray) -> float:
    """Variance explained, clamped to [0, 1]; 0 when y is flat."""
    deviations = y - y.mean()
    ss_tot = float(np.dot(deviations, deviations))
    if ss_tot <= SS_TOTAL_TOLERANCE:
        return 0.0
    ss_res = float(np.dot(residuals, residuals))
    r2 = 1.0 - ss_res / ss_tot
    return max(0.0, min(1.0, r2))


def normal_p_value(t_stat: float) -> float:
    """Two-sided p-value of |t| under a standard normal."""
    p = float(erfc(abs(t_stat) / _SQRT2))
    return max(0.0, min(1.0, p))


class RegressionEngine:
    """Stateless OLS fitter.  One instance may be shared across threads."""

    def __init__(self, pivot_tolerance: float = PIVOT_TOLERANCE):
        self.pivot_tolerance = pivot_tolerance

    def fit(self, regression_input: RegressionInput) -> FitResult:
        n = regression_input.n_observations
        k = regression_input.n_predictors

        if n < MIN_OBSERVATIONS:
            log.info("   Regression: %d observations, need >= %d", n, MIN_OBSERVATIONS)
            return FitFailure(
                FailureReason.INSUFFICIENT_OBSERVATIONS,
                f"{n} observations, need at least {MIN_OBSERVATIONS}",
            )

        x = design_matrix(regression_input)
        y = regression_input.target_vector()
        if not (np.all(np.isfinite(x)) and np.all(np.isfinite(y))):
            raise ValueError("Regression input contains non-finite values")

        n_varying = sum(1 for j in range(1, x.shape[1]) if np.ptp(x[:, j]) > 0.0)
        if n_varying < MIN_HABITS_WITH_VARIANCE:
            log.info("   Regression: %d/%d predictors vary, need >= %d",
                     n_varying, k, MIN_HABITS_WITH_VARIANCE)
            return FitFailure(
                FailureReason.INSUFFICIENT_VARIANCE,
                f"{n_varying} predictors with variance, need at least {MIN_HABITS_WITH_VARIANCE}",
            )

        p = x.shape[1]
        xtx = gram_matrix(x)
        xty = cross_product(x, y)

        try:
            beta = solve_gaussian(xtx, xty, tol=self.pivot_tolerance)
        except SingularMatrixError as e:
            name = self._column_name(regression_input, e.column)
            log.warning("   Regression: singular normal equations at %s (%s)", name, e)
            return FitFailure(
                FailureReason.SINGULAR_SYSTEM,
                f"normal equations are singular near '{name}': {e}",
            )

        residuals = y - x @ beta
        r2 = r_squared(y, residuals)
        dof = n - p

        std_errors: List[Optional[float]] = [None] * k
        p_values: List[float] = [1.0] * k
        if dof <= 0:
            log.info("   Regression: %d observations for %d columns, p-values defaulted to 1.0", n, p)
        else:
            sigma2 = float(np.dot(residuals, residuals)) / dof
            try:
                xtx_inv = invert_gauss_jordan(xtx, tol=self.pivot_tolerance)
            except SingularMatrixError as e:
                name = self._column_name(regression_input, e.column)
                log.warning("   Regression: XᵗX not invertible at %s (%s)", name, e)
                return FitFailure(
                    FailureReason.SINGULAR_SYSTEM,
                    f"XᵗX is not invertible near '{name}': {e}",
                )
            for i in range(k):
                variance = sigma2 * float(xtx_inv[i + 1, i + 1])
                if variance <= SE_VARIANCE_TOLERANCE:
                    std_errors[i] = math.sqrt(max(variance, 0.0))
                    continue
                se = math.sqrt(variance)
                std_errors[i] = se
                p_values[i] = normal_p_value(abs(float(beta[i + 1])) / se)

        coefficients = tuple(
            Coefficient(
                name=col.name,
                label=col.label,
                kind=col.kind,
                coefficient=float(beta[i + 1]),
                p_value=p_values[i],
                baseline=col.baseline,
                direction=Direction.classify(float(beta[i + 1])),
                standard_error=std_errors[i],
            )
            for i, col in enumerate(regression_input.columns)
        )

        log.info("   Regression: n=%d, p=%d, R²=%.3f, intercept=%.3f", n, p, r2, float(beta[0]))
        return RegressionOutput(
            intercept=float(beta[0]),
            r_squared=r2,
            coefficients=coefficients,
            n_observations=n,
            degrees_of_freedom=max(dof, 0),
        )

    @staticmethod
    def _column_name(regression_input: RegressionInput, design_col: int) -> str:
        if design_col == 0:
            return "intercept"
        idx = design_col - 1
        if idx < len(regression_input.columns):
            return regression_input.columns[idx].name
        return f"column {design_col}"


_default_engine = RegressionEngine()


def fit(regression_input: RegressionInput) -> FitResult:
    """Fit with the default engine."""
    return _default_engine.fit(regression_input)
