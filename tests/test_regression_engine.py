"""
Tests for the regression engine.

Covers: determinism, minimum-observation guard, sign recovery,
collinearity rejection, R² bounds, thin degrees of freedom, the
deadband, and agreement with statsmodels OLS.
"""
from datetime import date, timedelta

import numpy as np
import pytest
import statsmodels.api as sm
from scipy import stats as sp_stats

from analytics.linear_algebra import SingularMatrixError
from analytics.regression_engine import RegressionEngine, design_matrix, fit, normal_p_value
from models import (
    Direction,
    FailureReason,
    FitFailure,
    PredictorColumn,
    PredictorKind,
    RegressionInput,
    RegressionOutput,
)

START = date(2026, 1, 1)


def _make_input(targets, columns, kinds=None) -> RegressionInput:
    """RegressionInput from a target list and {name: values} columns."""
    kinds = kinds or {}
    days = [START + timedelta(days=i) for i in range(len(targets))]
    cols = []
    for name, vals in columns.items():
        vals = tuple(float(v) for v in vals)
        cols.append(PredictorColumn(
            name=name,
            label=name.title(),
            kind=kinds.get(name, PredictorKind.HABIT),
            values=vals,
            present=tuple(True for _ in vals),
            baseline=sum(vals) / len(vals),
        ))
    return RegressionInput.from_columns(days, targets, cols)


def _random_input(seed: int, n: int = 25) -> RegressionInput:
    rng = np.random.default_rng(seed)
    a = rng.integers(0, 2, size=n)
    b = rng.integers(0, 2, size=n)
    c = rng.integers(0, 2, size=n)
    sleep = rng.normal(70, 8, size=n)
    a[:2] = [0, 1]
    b[:2] = [0, 1]
    c[:2] = [1, 0]
    y = np.clip(0.4 * a - 0.3 * c + 0.01 * (sleep - 70) + rng.normal(0, 0.2, size=n), -1, 1)
    return _make_input(
        y.tolist(),
        {"a": a, "b": b, "c": c, "sleep": sleep},
        kinds={"sleep": PredictorKind.BIOMETRIC},
    )


# ─── Determinism ──────────────────────────────────────────────


class TestDeterminism:

    def test_repeated_fits_are_identical(self):
        inp = _random_input(1)
        first = RegressionEngine().fit(inp)
        second = RegressionEngine().fit(inp)
        assert isinstance(first, RegressionOutput)
        assert first == second

    def test_module_fit_matches_engine(self):
        inp = _random_input(2)
        assert fit(inp) == RegressionEngine().fit(inp)


# ─── Guards ───────────────────────────────────────────────────


class TestGuards:

    def test_thirteen_observations_rejected(self):
        a = [i % 2 for i in range(13)]
        b = [1 if i % 3 == 0 else 0 for i in range(13)]
        result = fit(_make_input([0.1 * i for i in range(13)], {"a": a, "b": b}))
        assert isinstance(result, FitFailure)
        assert result.reason == FailureReason.INSUFFICIENT_OBSERVATIONS

    def test_fourteen_observations_fit(self):
        a = [i % 2 for i in range(14)]
        b = [1 if i % 3 == 0 else 0 for i in range(14)]
        result = fit(_make_input([0.05 * i - 0.3 for i in range(14)], {"a": a, "b": b}))
        assert isinstance(result, RegressionOutput)
        assert result.n_observations == 14

    def test_single_varying_predictor_rejected(self):
        a = [i % 2 for i in range(20)]
        result = fit(_make_input([0.0] * 20, {"a": a, "water": [1] * 20}))
        assert isinstance(result, FitFailure)
        assert result.reason == FailureReason.INSUFFICIENT_VARIANCE

    def test_non_finite_values_raise(self):
        a = [i % 2 for i in range(20)]
        b = [1 if i % 3 == 0 else 0 for i in range(20)]
        targets = [0.0] * 20
        targets[5] = float("nan")
        with pytest.raises(ValueError):
            fit(_make_input(targets, {"a": a, "b": b}))

    def test_length_mismatch_raises(self):
        with pytest.raises(ValueError):
            _make_input([0.0] * 20, {"a": [0, 1] * 5})


# ─── Sign recovery ────────────────────────────────────────────


class TestSignRecovery:

    def test_habit_tracking_mood_beats_random_habit(self):
        """9/10 on good days, 1/10 on bad days vs a 50% habit unrelated to mood."""
        targets = [0.5, 0.7] * 5 + [-0.5, -0.3] * 5
        tracker = [1] * 9 + [0] + [1] + [0] * 9
        noise = [1, 0] * 10
        out = fit(_make_input(targets, {"tracker": tracker, "noise": noise}))
        assert isinstance(out, RegressionOutput)
        t = out.coefficient_for("tracker")
        n = out.coefficient_for("noise")
        assert t.coefficient > 0
        assert t.direction == Direction.POSITIVE
        assert abs(t.coefficient) > abs(n.coefficient)

    def test_negative_habit(self):
        days = 20
        exercise = [1 if i % 2 == 0 else 0 for i in range(days)]
        alcohol = [1 if i % 3 == 0 else 0 for i in range(days)]
        targets = [0.3 + e * 0.2 - a * 0.5 for e, a in zip(exercise, alcohol)]
        out = fit(_make_input(targets, {"exercise": exercise, "alcohol": alcohol}))
        alc = out.coefficient_for("alcohol")
        assert alc.coefficient == pytest.approx(-0.5, abs=1e-9)
        assert alc.direction == Direction.NEGATIVE
        assert out.coefficient_for("exercise").coefficient == pytest.approx(0.2, abs=1e-9)
        assert out.intercept == pytest.approx(0.3, abs=1e-9)


# ─── Collinearity ─────────────────────────────────────────────


class TestCollinearity:

    def test_identical_columns_are_singular(self):
        a = [i % 2 for i in range(20)]
        b = [1 if i % 3 == 0 else 0 for i in range(20)]
        targets = [0.1 * (i % 5) - 0.2 for i in range(20)]
        result = fit(_make_input(targets, {"a": a, "b": b, "a_copy": list(a)}))
        assert isinstance(result, FitFailure)
        assert result.reason == FailureReason.SINGULAR_SYSTEM

    def test_complementary_columns_are_singular(self):
        """a + not_a == intercept column."""
        a = [i % 2 for i in range(20)]
        not_a = [1 - v for v in a]
        b = [1 if i % 3 == 0 else 0 for i in range(20)]
        result = fit(_make_input([0.0] * 19 + [0.5], {"a": a, "not_a": not_a, "b": b}))
        assert isinstance(result, FitFailure)
        assert result.reason == FailureReason.SINGULAR_SYSTEM


# ─── R² ───────────────────────────────────────────────────────


class TestRSquared:

    @pytest.mark.parametrize("seed", range(10))
    def test_bounds(self, seed):
        out = fit(_random_input(seed))
        assert isinstance(out, RegressionOutput)
        assert 0.0 <= out.r_squared <= 1.0

    def test_flat_target_gives_zero(self):
        a = [i % 2 for i in range(20)]
        b = [1 if i % 3 == 0 else 0 for i in range(20)]
        out = fit(_make_input([0.25] * 20, {"a": a, "b": b}))
        assert out.r_squared == 0.0

    def test_exact_fit_gives_one(self):
        a = [i % 2 for i in range(20)]
        b = [1 if i % 3 == 0 else 0 for i in range(20)]
        targets = [0.1 + 0.4 * x - 0.2 * y for x, y in zip(a, b)]
        out = fit(_make_input(targets, {"a": a, "b": b}))
        assert out.r_squared == pytest.approx(1.0)
        assert out.r_squared <= 1.0


# ─── Thin degrees of freedom ──────────────────────────────────


class TestThinDegreesOfFreedom:

    def test_n_equals_p_defaults_p_values(self):
        """14 days, 13 one-day habits: the fit is exact and p-values are 1.0."""
        n = 14
        columns = {f"h{j}": [1 if i == j else 0 for i in range(n)] for j in range(n - 1)}
        targets = [0.05 * i - 0.3 for i in range(n)]
        out = fit(_make_input(targets, columns))
        assert isinstance(out, RegressionOutput)
        assert out.degrees_of_freedom == 0
        assert len(out.coefficients) == n - 1
        assert all(c.p_value == 1.0 for c in out.coefficients)
        assert all(c.standard_error is None for c in out.coefficients)
        assert out.intercept == pytest.approx(targets[-1])
        assert out.coefficient_for("h0").coefficient == pytest.approx(targets[0] - targets[-1])

    def test_zero_residual_keeps_p_at_one(self):
        a = [i % 2 for i in range(20)]
        b = [1 if i % 3 == 0 else 0 for i in range(20)]
        targets = [0.4 * x - 0.2 * y for x, y in zip(a, b)]
        out = fit(_make_input(targets, {"a": a, "b": b}))
        assert all(c.p_value == 1.0 for c in out.coefficients)


# ─── Deadband + output fields ─────────────────────────────────


class TestCoefficientFields:

    def test_deadband_classification(self):
        assert Direction.classify(0.011) == Direction.POSITIVE
        assert Direction.classify(0.01) == Direction.NEUTRAL
        assert Direction.classify(-0.01) == Direction.NEUTRAL
        assert Direction.classify(-0.0100001) == Direction.NEGATIVE

    def test_fields_populated(self):
        inp = _random_input(4)
        out = fit(inp)
        assert [c.name for c in out.coefficients] == ["a", "b", "c", "sleep"]
        for c, col in zip(out.coefficients, inp.columns):
            assert 0.0 <= c.p_value <= 1.0
            assert c.baseline == col.baseline
            assert c.kind == col.kind
            assert c.direction == Direction.classify(c.coefficient)
        assert out.coefficient_for("sleep").kind == PredictorKind.BIOMETRIC

    def test_design_matrix_has_intercept(self):
        inp = _random_input(5)
        x = design_matrix(inp)
        assert x.shape == (25, 5)
        assert np.all(x[:, 0] == 1.0)

    def test_normal_p_value(self):
        assert normal_p_value(0.0) == 1.0
        assert normal_p_value(1.959963984540054) == pytest.approx(0.05, rel=1e-6)
        assert normal_p_value(-3.0) == normal_p_value(3.0)


# ─── Cross-check against statsmodels ──────────────────────────


class TestAgainstStatsmodels:

    @pytest.mark.parametrize("seed", [10, 20, 30])
    def test_coefficients_and_standard_errors(self, seed):
        inp = _random_input(seed, n=28)
        out = fit(inp)
        assert isinstance(out, RegressionOutput)

        x = design_matrix(inp)
        ref = sm.OLS(inp.target_vector(), x).fit()

        assert out.intercept == pytest.approx(ref.params[0], abs=1e-8)
        for i, c in enumerate(out.coefficients, start=1):
            assert c.coefficient == pytest.approx(ref.params[i], abs=1e-8)
            assert c.standard_error == pytest.approx(ref.bse[i], rel=1e-6)
            expected_p = 2 * sp_stats.norm.sf(abs(ref.params[i] / ref.bse[i]))
            assert c.p_value == pytest.approx(expected_p, rel=1e-6, abs=1e-12)
        assert out.r_squared == pytest.approx(max(0.0, ref.rsquared), abs=1e-9)
        assert out.degrees_of_freedom == int(ref.df_resid)


# ─── Inverse failure after a successful solve ─────────────────


class TestInverseFailure:

    def test_singular_inverse_is_a_failure(self, monkeypatch):
        def _raise(a, tol):
            raise SingularMatrixError(2, 0.0)

        monkeypatch.setattr("analytics.regression_engine.invert_gauss_jordan", _raise)
        result = fit(_random_input(6))
        assert isinstance(result, FitFailure)
        assert result.reason == FailureReason.SINGULAR_SYSTEM
        assert "'b'" in result.detail
