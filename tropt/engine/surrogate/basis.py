"""Polynomial bases for local surrogate models."""

from __future__ import annotations

import numpy as np

from tropt.engine.types import ModelDegree


def basis_size(n: int, degree: ModelDegree) -> int:
    """Number of coefficients: ``n + 1`` (linear) or ``(n + 1)(n + 2) / 2`` (quadratic)."""
    if degree is ModelDegree.LINEAR:
        return n + 1
    return (n + 1) * (n + 2) // 2


def polynomial_basis(Y: np.ndarray, degree: ModelDegree) -> np.ndarray:
    """Evaluate the monomial basis at the rows of ``Y``.

    Columns are ordered constant, linear terms, then (quadratic only) the
    halved squares ``y_i**2 / 2`` followed by cross terms ``y_i * y_j`` for
    ``i < j``. With this scaling the quadratic coefficients are exactly the
    Hessian entries.

    Parameters
    ----------
    Y : np.ndarray
        Array of shape (m, n) with displacements from the model center.
    degree : ModelDegree
        Linear or quadratic basis.

    Returns
    -------
    np.ndarray
        Basis matrix of shape (m, basis_size(n, degree)).
    """
    if not isinstance(Y, np.ndarray) or Y.ndim != 2:
        raise ValueError("Y must be a 2D NumPy array")
    m, n = Y.shape
    if n == 0:
        raise ValueError("Y must have at least one column")

    cols = [np.ones((m, 1), dtype=np.float64), Y]
    if degree is ModelDegree.QUADRATIC:
        cols.append(0.5 * Y**2)
        iu, ju = np.triu_indices(n, k=1)
        if iu.size:
            cols.append(Y[:, iu] * Y[:, ju])
    return np.hstack(cols)


def unpack_coefficients(
    coef: np.ndarray, n: int, degree: ModelDegree
) -> tuple[float, np.ndarray, np.ndarray]:
    """Split a coefficient vector into ``(constant, gradient, hessian)``."""
    constant = float(coef[0])
    gradient = np.asarray(coef[1 : n + 1], dtype=np.float64)
    hessian = np.zeros((n, n), dtype=np.float64)
    if degree is ModelDegree.QUADRATIC:
        hessian[np.diag_indices(n)] = coef[n + 1 : 2 * n + 1]
        iu, ju = np.triu_indices(n, k=1)
        hessian[iu, ju] = coef[2 * n + 1 :]
        hessian[ju, iu] = coef[2 * n + 1 :]
    return constant, gradient, hessian
