"""Helpers connecting :class:`SparsePattern` to SciPy and to contributor dof lists."""

from __future__ import annotations

from typing import Iterable, Sequence, Union

import numpy as np
import scipy.sparse as sp

from .pattern import SparsePattern

ScipySparse = Union[sp.csr_matrix, sp.csc_matrix]


def to_scipy(pattern: SparsePattern, values: np.ndarray) -> ScipySparse:
    """
    Wrap ``values`` laid out in the slot order of ``pattern`` as a SciPy matrix.

    Row-major patterns produce a CSR matrix, column-major patterns a CSC
    matrix. The index arrays are shared with the pattern.
    """
    values = np.asarray(values, dtype=float)
    if values.shape != (pattern.nb_nonzeros,):
        raise ValueError(
            f"values must have shape ({pattern.nb_nonzeros},), got {values.shape}"
        )
    matrix_type = sp.csr_matrix if pattern.row_major else sp.csc_matrix
    return matrix_type((values, pattern.ja, pattern.ia), shape=pattern.shape)


def from_scipy(matrix: sp.spmatrix, index_map: bool = True) -> SparsePattern:
    """
    Extract the nonzero pattern of a CSR or CSC matrix.

    Other formats are converted to CSR first. Explicitly stored zeros are
    kept as slots.
    """
    if getattr(matrix, "format", None) not in ("csr", "csc"):
        matrix = sp.csr_matrix(matrix)
    rows, cols = matrix.shape
    return SparsePattern(
        rows,
        cols,
        matrix.indptr,
        matrix.indices,
        row_major=matrix.format == "csr",
        index_map=index_map,
    )


def upper_triangle_pattern(
    n: int, dof_groups: Iterable[Sequence[int]]
) -> list[list[int]]:
    """
    Collect the upper-triangular columns coupled by groups of dofs.

    Every group couples all of its members, as the dofs of one element do.
    The returned per-row lists are sorted and contain the diagonal, ready for
    :meth:`SparsePattern.from_pattern`.

    Example
    -------
    >>> upper_triangle_pattern(3, [[0, 2], [1]])
    [[0, 2], [1], [2]]
    """
    rows: list[set] = [{i} for i in range(n)]
    for group in dof_groups:
        for a in group:
            for b in group:
                if a <= b:
                    rows[a].add(b)
    return [sorted(row) for row in rows]


__all__ = ["ScipySparse", "from_scipy", "to_scipy", "upper_triangle_pattern"]
