"""
Flat accumulation storage for one assembly pass.

An :class:`AccumulationBuffer` owns a single ``float64`` vector laid out as::

    [ f | g (m) | df (n) | dg values (nnz_dg) | hm values (nnz_hm) ]

where ``f`` is the objective, ``g`` the constraint values, ``df`` the
gradient, and the two trailing segments hold the nonzero values of the
constraint Jacobian and of the Hessian in the slot order of their
:class:`~eqsys.sparse.SparsePattern`. Segment boundaries are stored as integer
offsets and views are sliced on demand, so a resize can never leave a stale
view bound to a segment.

A separate scratch vector, never merged, holds the dense local gradient and
local Hessian of one contributor at a time.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from eqsys.diagnostics import is_debug_enabled


class AccumulationBuffer:
    """
    Reduction-safe storage for the global objective, gradient and sparse values.

    Instances filled independently (one per worker) are combined with
    :meth:`merge`; the result only depends on addition order through
    floating-point rounding.
    """

    def __init__(self) -> None:
        self._n = 0
        self._m = 0
        self._nb_nonzeros_dg = 0
        self._nb_nonzeros_hm = 0
        self._max_element_n = 0
        self._max_element_m = 0
        self._offsets = (1, 1, 1, 1, 1)
        self._values = np.zeros(1)
        self._scratch = np.zeros(0)
        self.computation_time = 0.0
        self.assemble_time = 0.0

    def resize(
        self,
        n: int,
        m: int,
        nb_nonzeros_dg: int,
        nb_nonzeros_hm: int,
        max_element_n: int,
        max_element_m: int = 0,
    ) -> None:
        """
        Recompute the segment layout and reallocate all storage.

        Views obtained before the call refer to the released arrays and must
        not be used afterwards. Everything is zeroed.
        """
        if min(n, m, nb_nonzeros_dg, nb_nonzeros_hm, max_element_n, max_element_m) < 0:
            raise ValueError("Buffer dimensions must be non-negative")

        self._n = n
        self._m = m
        self._nb_nonzeros_dg = nb_nonzeros_dg
        self._nb_nonzeros_hm = nb_nonzeros_hm
        self._max_element_n = max_element_n
        self._max_element_m = max_element_m

        g_begin = 1
        df_begin = g_begin + m
        dg_begin = df_begin + n
        hm_begin = dg_begin + nb_nonzeros_dg
        end = hm_begin + nb_nonzeros_hm
        self._offsets = (g_begin, df_begin, dg_begin, hm_begin, end)

        self._values = np.zeros(end)

        local_m = max(1, max_element_m)
        self._scratch = np.zeros(
            local_m * max_element_n + local_m * max_element_n * max_element_n
        )

        self.set_zero()

    def set_zero(self) -> None:
        """Clear the main buffer, the scratch buffer and the timings."""
        self._values.fill(0.0)
        self._scratch.fill(0.0)
        self.computation_time = 0.0
        self.assemble_time = 0.0

    def empty_like(self) -> "AccumulationBuffer":
        """Return a zeroed buffer with the same layout."""
        other = AccumulationBuffer()
        other.resize(*self.layout)
        return other

    # ------------------------------------------------------------------
    # dimensions

    @property
    def n(self) -> int:
        return self._n

    @property
    def m(self) -> int:
        return self._m

    @property
    def nb_nonzeros_dg(self) -> int:
        return self._nb_nonzeros_dg

    @property
    def nb_nonzeros_hm(self) -> int:
        return self._nb_nonzeros_hm

    @property
    def layout(self) -> tuple[int, int, int, int, int, int]:
        """The arguments of the last :meth:`resize` call."""
        return (
            self._n,
            self._m,
            self._nb_nonzeros_dg,
            self._nb_nonzeros_hm,
            self._max_element_n,
            self._max_element_m,
        )

    # ------------------------------------------------------------------
    # segments

    @property
    def f(self) -> float:
        return float(self._values[0])

    @f.setter
    def f(self, value: float) -> None:
        self._values[0] = value

    @property
    def g(self) -> np.ndarray:
        """Constraint values (length ``m``)."""
        g_begin, df_begin = self._offsets[0], self._offsets[1]
        return self._values[g_begin:df_begin]

    @property
    def df(self) -> np.ndarray:
        """Gradient of the objective (length ``n``)."""
        df_begin, dg_begin = self._offsets[1], self._offsets[2]
        return self._values[df_begin:dg_begin]

    @property
    def dg_values(self) -> np.ndarray:
        """Nonzero values of the constraint Jacobian."""
        dg_begin, hm_begin = self._offsets[2], self._offsets[3]
        return self._values[dg_begin:hm_begin]

    @property
    def hm_values(self) -> np.ndarray:
        """Nonzero values of the Hessian."""
        hm_begin, end = self._offsets[3], self._offsets[4]
        return self._values[hm_begin:end]

    @property
    def values(self) -> np.ndarray:
        """The whole main buffer."""
        return self._values

    @property
    def scratch(self) -> np.ndarray:
        return self._scratch

    def add_df(self, index: int, value: float) -> None:
        if is_debug_enabled():
            assert 0 <= index < self._n, f"gradient index {index} out of range"
        self._values[self._offsets[1] + index] += value

    def add_hm_value(self, slot: int, value: float) -> None:
        if is_debug_enabled():
            assert 0 <= slot < self._nb_nonzeros_hm, f"hessian slot {slot} out of range"
        self._values[self._offsets[3] + slot] += value

    def local_arrays(self, n: int) -> tuple[np.ndarray, np.ndarray]:
        """
        Carve a zeroed local gradient ``(n,)`` and Hessian ``(n, n)`` from scratch.

        Both arrays alias the scratch buffer and are overwritten by the next
        call.
        """
        if is_debug_enabled():
            assert n <= self._max_element_n, f"local size {n} exceeds scratch bound"
        local = self._scratch[: n + n * n]
        local.fill(0.0)
        return local[:n], local[n:].reshape(n, n)

    # ------------------------------------------------------------------
    # reduction

    def merge(self, other: "AccumulationBuffer") -> "AccumulationBuffer":
        """Add the main buffer and timings of ``other`` into this buffer."""
        if len(self._values) != len(other._values):
            raise ValueError(
                f"Cannot merge buffers of size {len(self._values)} and {len(other._values)}"
            )
        self._values += other._values
        self.computation_time += other.computation_time
        self.assemble_time += other.assemble_time
        return self

    def __iadd__(self, other: "AccumulationBuffer") -> "AccumulationBuffer":
        return self.merge(other)

    def __repr__(self) -> str:
        return (
            f"AccumulationBuffer(n={self._n}, m={self._m}, "
            f"nnz_dg={self._nb_nonzeros_dg}, nnz_hm={self._nb_nonzeros_hm})"
        )


def merge_all(buffers, target: Optional[AccumulationBuffer] = None) -> AccumulationBuffer:
    """Sum ``buffers`` in order into ``target``, or into a new zeroed buffer."""
    buffers = list(buffers)
    if not buffers:
        raise ValueError("Cannot merge an empty list of buffers")
    if target is None:
        target = buffers[0].empty_like()
    for buffer in buffers:
        target.merge(buffer)
    return target


__all__ = ["AccumulationBuffer", "merge_all"]
