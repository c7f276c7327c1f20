"""Small dense linear-algebra kernels for the normal-equation solver.

The systems solved here are (predictors + 1) square, so plain row
operations on a NumPy array are fast enough and keep the pivoting and
singularity rules explicit:

  • gram_matrix:         XᵗX from pairwise column dot products (upper triangle
                         computed, lower triangle mirrored).
  • solve_gaussian:      Gaussian elimination with partial pivoting + back
                         substitution.
  • invert_gauss_jordan: Gauss-Jordan on [A | I].

Both elimination routines raise SingularMatrixError as soon as the
largest available pivot in a column has magnitude below ``tol``.
"""

from __future__ import annotations

import numpy as np

from constants import PIVOT_TOLERANCE


class SingularMatrixError(ValueError):
    """Raised when elimination meets a pivot below tolerance."""

    def __init__(self, column: int, pivot: float):
        self.column = column
        self.pivot = pivot
        super().__init__(f"pivot {pivot:.3e} in column {column} is below tolerance")


def _as_square(a: np.ndarray) -> np.ndarray:
    a = np.array(a, dtype=np.float64)
    if a.ndim != 2 or a.shape[0] != a.shape[1]:
        raise ValueError(f"expected a square matrix, got shape {a.shape}")
    return a


def gram_matrix(x: np.ndarray) -> np.ndarray:
    """XᵗX for a column-oriented design matrix."""
    x = np.asarray(x, dtype=np.float64)
    p = x.shape[1]
    xtx = np.zeros((p, p), dtype=np.float64)
    for i in range(p):
        for j in range(i, p):
            dot = float(np.dot(x[:, i], x[:, j]))
            xtx[i, j] = dot
            xtx[j, i] = dot
    return xtx


def cross_product(x: np.ndarray, y: np.ndarray) -> np.ndarray:
    """Xᵗy, one dot product per design column."""
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    return np.array([float(np.dot(x[:, i], y)) for i in range(x.shape[1])])


def _pivot_row(aug: np.ndarray, col: int, tol: float) -> int:
    candidates = np.abs(aug[col:, col])
    offset = int(np.argmax(candidates))
    pivot = float(candidates[offset])
    if pivot < tol:
        raise SingularMatrixError(col, pivot)
    return col + offset


def solve_gaussian(a: np.ndarray, b: np.ndarray, tol: float = PIVOT_TOLERANCE) -> np.ndarray:
    """Solve ``a @ x = b`` by Gaussian elimination with partial pivoting."""
    a = _as_square(a)
    b = np.asarray(b, dtype=np.float64).reshape(-1)
    n = a.shape[0]
    if b.shape[0] != n:
        raise ValueError(f"right-hand side has {b.shape[0]} rows, expected {n}")

    aug = np.column_stack([a, b])

    # Forward elimination
    for col in range(n):
        pivot_row = _pivot_row(aug, col, tol)
        if pivot_row != col:
            aug[[col, pivot_row]] = aug[[pivot_row, col]]
        pivot = aug[col, col]
        for row in range(col + 1, n):
            factor = aug[row, col] / pivot
            aug[row, col:] -= factor * aug[col, col:]

    # Back substitution
    x = np.zeros(n, dtype=np.float64)
    for row in range(n - 1, -1, -1):
        rest = float(np.dot(aug[row, row + 1:n], x[row + 1:]))
        x[row] = (aug[row, n] - rest) / aug[row, row]
    return x


def invert_gauss_jordan(a: np.ndarray, tol: float = PIVOT_TOLERANCE) -> np.ndarray:
    """Invert ``a`` by Gauss-Jordan elimination on ``[a | I]``."""
    a = _as_square(a)
    n = a.shape[0]
    aug = np.hstack([a, np.eye(n, dtype=np.float64)])

    for col in range(n):
        pivot_row = _pivot_row(aug, col, tol)
        if pivot_row != col:
            aug[[col, pivot_row]] = aug[[pivot_row, col]]
        aug[col] /= aug[col, col]
        for row in range(n):
            if row == col:
                continue
            factor = aug[row, col]
            if factor != 0.0:
                aug[row] -= factor * aug[col]

    return aug[:, n:].copy()
