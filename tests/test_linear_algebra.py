"""
Tests for the normal-equation kernels.

Covers: gram_matrix symmetry, Gaussian elimination with partial pivoting,
Gauss-Jordan inversion, and the singular-pivot guard.
"""
import numpy as np
import pytest

from analytics.linear_algebra import (
    SingularMatrixError,
    cross_product,
    gram_matrix,
    invert_gauss_jordan,
    solve_gaussian,
)


# ─── gram_matrix / cross_product ──────────────────────────────


class TestGramMatrix:

    def test_matches_numpy(self):
        rng = np.random.default_rng(7)
        x = rng.normal(size=(20, 4))
        np.testing.assert_allclose(gram_matrix(x), x.T @ x, rtol=1e-12)

    def test_is_symmetric(self):
        rng = np.random.default_rng(8)
        x = rng.integers(0, 2, size=(15, 5)).astype(float)
        g = gram_matrix(x)
        assert np.array_equal(g, g.T)

    def test_cross_product_matches_numpy(self):
        rng = np.random.default_rng(9)
        x = rng.normal(size=(12, 3))
        y = rng.normal(size=12)
        np.testing.assert_allclose(cross_product(x, y), x.T @ y, rtol=1e-12)


# ─── solve_gaussian ───────────────────────────────────────────


class TestSolveGaussian:

    def test_solves_known_system(self):
        a = np.array([[2.0, 1.0, -1.0], [-3.0, -1.0, 2.0], [-2.0, 1.0, 2.0]])
        b = np.array([8.0, -11.0, -3.0])
        x = solve_gaussian(a, b)
        np.testing.assert_allclose(x, [2.0, 3.0, -1.0], atol=1e-12)

    def test_needs_pivoting(self):
        """Zero in the (0, 0) position must be handled by a row swap."""
        a = np.array([[0.0, 1.0], [1.0, 0.0]])
        b = np.array([3.0, 5.0])
        np.testing.assert_allclose(solve_gaussian(a, b), [5.0, 3.0])

    def test_matches_numpy_on_random_spd(self):
        rng = np.random.default_rng(11)
        m = rng.normal(size=(30, 6))
        a = m.T @ m
        b = rng.normal(size=6)
        np.testing.assert_allclose(solve_gaussian(a, b), np.linalg.solve(a, b), rtol=1e-9)

    def test_singular_raises(self):
        a = np.array([[1.0, 2.0], [2.0, 4.0]])
        with pytest.raises(SingularMatrixError) as exc:
            solve_gaussian(a, np.array([1.0, 2.0]))
        assert exc.value.column == 1

    def test_does_not_mutate_input(self):
        a = np.array([[4.0, 1.0], [1.0, 3.0]])
        before = a.copy()
        solve_gaussian(a, np.array([1.0, 2.0]))
        assert np.array_equal(a, before)

    def test_shape_mismatch(self):
        with pytest.raises(ValueError):
            solve_gaussian(np.eye(3), np.ones(2))


# ─── invert_gauss_jordan ──────────────────────────────────────


class TestInvertGaussJordan:

    def test_inverse_times_matrix_is_identity(self):
        rng = np.random.default_rng(3)
        m = rng.normal(size=(25, 5))
        a = m.T @ m
        inv = invert_gauss_jordan(a)
        np.testing.assert_allclose(a @ inv, np.eye(5), atol=1e-9)

    def test_singular_raises(self):
        a = np.array([[1.0, 1.0, 0.0], [1.0, 1.0, 0.0], [0.0, 0.0, 1.0]])
        with pytest.raises(SingularMatrixError):
            invert_gauss_jordan(a)

    def test_non_square_rejected(self):
        with pytest.raises(ValueError):
            invert_gauss_jordan(np.ones((2, 3)))
