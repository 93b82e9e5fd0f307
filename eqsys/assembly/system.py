"""Reference assembly oracle built from a list of elements."""

from __future__ import annotations

import time
from typing import Any, Mapping, Optional, Sequence

import numpy as np
import scipy.sparse as sp

from eqsys.config import SolverOptions
from eqsys.diagnostics import is_debug_enabled
from eqsys.logging import get_logger
from eqsys.optimize.core import Order
from eqsys.sparse import SparsePattern, to_scipy, upper_triangle_pattern

from .buffer import AccumulationBuffer
from .element import Element
from .parallel import ForkJoin

logger = get_logger(__name__)


class _ElementIndex:
    """Dofs of one element and the Hessian slots its local entries land in."""

    __slots__ = ("dofs", "local_rows", "local_cols", "slots")

    def __init__(self, dofs: np.ndarray, pattern: SparsePattern) -> None:
        local_rows: list[int] = []
        local_cols: list[int] = []
        slots: list[int] = []
        for a, i in enumerate(dofs.tolist()):
            for b, j in enumerate(dofs.tolist()):
                if i > j:
                    continue
                slot = pattern.get_index(i, j)
                if slot is None:
                    raise KeyError(f"Entry ({i}, {j}) is missing from the Hessian pattern")
                local_rows.append(a)
                local_cols.append(b)
                slots.append(slot)
        self.dofs = dofs
        self.local_rows = np.asarray(local_rows, dtype=np.int64)
        self.local_cols = np.asarray(local_cols, dtype=np.int64)
        self.slots = np.asarray(slots, dtype=np.int64)


class System:
    """
    Global objective assembled from independent elements.

    The Hessian is stored as the upper triangle of a row-major
    :class:`~eqsys.sparse.SparsePattern`; slot indices for every element are
    resolved once at construction. :meth:`assemble` fans the elements out over
    ``n_workers`` worker-local buffers, merges them, and expands the triangle
    to the full symmetric matrix through a cached slot permutation.

    Parameters
    ----------
    elements:
        The local contributors.
    dimension:
        Number of global dofs. Defaults to one past the largest dof index.
    x:
        Initial position. Defaults to zeros.
    n_workers:
        Number of assembly workers.
    index_map:
        Lookup strategy of the Hessian pattern (see :class:`SparsePattern`).
    """

    def __init__(
        self,
        elements: Sequence[Element],
        dimension: Optional[int] = None,
        x: Optional[np.ndarray] = None,
        n_workers: int = 1,
        index_map: bool = True,
    ) -> None:
        self._elements = list(elements)
        dof_lists = [np.asarray(element.dofs(), dtype=np.int64) for element in self._elements]

        if dimension is None:
            dimension = max((int(d.max()) + 1 for d in dof_lists if d.size), default=0)
        self._n = int(dimension)

        for index, dofs in enumerate(dof_lists):
            if dofs.size and (dofs.min() < 0 or dofs.max() >= self._n):
                raise ValueError(f"Element {index} references dofs outside [0, {self._n})")
            if np.unique(dofs).size != dofs.size:
                raise ValueError(f"Element {index} references a dof more than once")

        self._x = np.zeros(self._n) if x is None else np.array(x, dtype=float)
        if self._x.shape != (self._n,):
            raise ValueError(f"x must have shape ({self._n},), got {self._x.shape}")

        start = time.perf_counter()

        rows = upper_triangle_pattern(self._n, (d.tolist() for d in dof_lists))
        self._pattern = SparsePattern.from_pattern(self._n, self._n, rows, index_map=index_map)
        self._full_pattern, self._value_indices = self._pattern.to_general()
        self._index = [_ElementIndex(dofs, self._pattern) for dofs in dof_lists]

        max_element_n = max((d.size for d in dof_lists), default=0)

        self._buffer = AccumulationBuffer()
        self._buffer.resize(self._n, 0, 0, self._pattern.nb_nonzeros, max_element_n, 0)

        self._fork_join = ForkJoin(n_workers)
        self._fork_join.prepare(self._buffer)

        logger.debug(
            "System with %d dofs, %d elements and %d Hessian nonzeros built in %.3f sec",
            self._n,
            len(self._elements),
            self._pattern.nb_nonzeros,
            time.perf_counter() - start,
        )

    @classmethod
    def from_options(
        cls,
        elements: Sequence[Element],
        options: Optional[Mapping[str, Any]] = None,
        dimension: Optional[int] = None,
        x: Optional[np.ndarray] = None,
    ) -> "System":
        """Build a system taking ``n_workers`` and ``index_map`` from an options mapping."""
        settings = SolverOptions.from_dict(options)
        return cls(
            elements,
            dimension=dimension,
            x=x,
            n_workers=settings.n_workers,
            index_map=settings.index_map,
        )

    # ------------------------------------------------------------------
    # oracle interface

    def dimension(self) -> int:
        return self._n

    def position(self) -> np.ndarray:
        return self._x.copy()

    def set_position(self, x: np.ndarray) -> None:
        x = np.asarray(x, dtype=float)
        if x.shape != (self._n,):
            raise ValueError(f"x must have shape ({self._n},), got {x.shape}")
        self._x[:] = x

    def assemble(
        self, order: Order = Order.HESSIAN
    ) -> tuple[float, Optional[np.ndarray], Optional[sp.csr_matrix]]:
        """
        Evaluate all elements at the current position.

        Returns
        -------
        (f, g, H)
            The objective, a copy of the gradient (None for ``Order.VALUE``)
            and the full symmetric Hessian as CSR (None below
            ``Order.HESSIAN``).
        """
        order = Order(order)

        def work(begin: int, end: int, buffer: AccumulationBuffer) -> None:
            for k in range(begin, end):
                self._accumulate(k, order, buffer)

        self._fork_join.run(len(self._elements), work, self._buffer)

        f = self._buffer.f
        g = self._buffer.df.copy() if order >= Order.GRADIENT else None
        h = self.hessian() if order >= Order.HESSIAN else None
        return f, g, h

    # ------------------------------------------------------------------
    # accessors

    @property
    def elements(self) -> list[Element]:
        return list(self._elements)

    @property
    def pattern(self) -> SparsePattern:
        """Upper-triangular Hessian pattern."""
        return self._pattern

    @property
    def full_pattern(self) -> SparsePattern:
        return self._full_pattern

    @property
    def buffer(self) -> AccumulationBuffer:
        """Global buffer of the last assembly pass."""
        return self._buffer

    @property
    def n_workers(self) -> int:
        return self._fork_join.n_workers

    def close(self) -> None:
        """Stop the assembly worker threads."""
        self._fork_join.shutdown()

    def __enter__(self) -> "System":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def hessian(self) -> sp.csr_matrix:
        """Full symmetric Hessian of the last pass."""
        values = self._buffer.hm_values[self._value_indices]
        return to_scipy(self._full_pattern, values)

    # ------------------------------------------------------------------

    def _accumulate(self, k: int, order: Order, buffer: AccumulationBuffer) -> None:
        index = self._index[k]
        n = index.dofs.size

        start = time.perf_counter()
        g, h = buffer.local_arrays(n)
        f = self._elements[k].compute(
            self._x[index.dofs],
            g if order >= Order.GRADIENT else None,
            h if order >= Order.HESSIAN else None,
        )
        computed = time.perf_counter()

        buffer.f += f
        if order >= Order.GRADIENT:
            buffer.df[index.dofs] += g
        if order >= Order.HESSIAN:
            if is_debug_enabled():
                assert np.allclose(h, h.T), f"Element {k} returned a non-symmetric Hessian"
            buffer.hm_values[index.slots] += h[index.local_rows, index.local_cols]

        buffer.computation_time += computed - start
        buffer.assemble_time += time.perf_counter() - computed


__all__ = ["System"]
