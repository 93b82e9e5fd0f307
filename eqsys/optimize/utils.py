"""Sparse linear algebra helpers for the damped normal equations."""

from __future__ import annotations

from typing import Callable, Optional

import numpy as np
import scipy.sparse as sp
import scipy.sparse.linalg as spla

from eqsys.logging import get_logger

from .core import Array

logger = get_logger(__name__)

# solver(A, b) -> x with A x = b; may raise RuntimeError for singular A
LinearSolver = Callable[[sp.spmatrix, Array], Array]


def splu_solve(matrix: sp.spmatrix, rhs: Array) -> Array:
    """Solve ``matrix @ x = rhs`` with a sparse LU factorization."""
    return spla.splu(sp.csc_matrix(matrix)).solve(np.asarray(rhs, dtype=float))


def is_finite(*values: Optional[object]) -> bool:
    """Return True if every scalar, array or sparse matrix given is finite."""
    for value in values:
        if value is None:
            continue
        if sp.issparse(value):
            value = value.data
        if not np.all(np.isfinite(value)):
            return False
    return True


def normal_equations(jac: sp.spmatrix, residual: Array) -> tuple[sp.csc_matrix, Array]:
    """Return ``(J^T J, -J^T r)``."""
    jac = sp.csr_matrix(jac)
    jtj = (jac.T @ jac).tocsc()
    rhs = -(jac.T @ residual)
    return jtj, np.asarray(rhs, dtype=float).ravel()


def solve_damped(
    jtj: sp.spmatrix,
    rhs: Array,
    mu: float,
    solver: LinearSolver = splu_solve,
    factor: float = 10.0,
    max_attempts: int = 20,
) -> tuple[Array, float]:
    """
    Solve ``(J^T J + mu I) d = rhs``, raising ``mu`` while the system is singular.

    Returns the step and the damping that was finally used.

    Raises
    ------
    np.linalg.LinAlgError
        If no finite solution was found within ``max_attempts``.
    """
    n = jtj.shape[0]
    eye = sp.identity(n, format="csc")
    mu = float(mu) if mu > 0 else np.finfo(float).eps
    for _ in range(max_attempts):
        try:
            step = solver(jtj + mu * eye, rhs)
        except RuntimeError as exc:
            logger.debug("Damped system singular at mu=%g (%s)", mu, exc)
        else:
            step = np.asarray(step, dtype=float)
            if is_finite(step):
                return step, mu
            logger.debug("Damped system ill-conditioned at mu=%g", mu)
        mu *= factor
    raise np.linalg.LinAlgError(
        f"Damped normal equations could not be solved (mu reached {mu:g})"
    )


__all__ = [
    "LinearSolver",
    "is_finite",
    "normal_equations",
    "solve_damped",
    "splu_solve",
]
