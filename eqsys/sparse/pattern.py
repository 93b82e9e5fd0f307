"""
Immutable compressed sparse index structures.

A :class:`SparsePattern` stores the nonzero locations of a sparse matrix in
compressed form: an offset array ``ia`` with one entry per leading index plus
one, and a parallel array ``ja`` holding the secondary index of every slot.
With ``row_major=True`` the leading index is the row (CSR layout), otherwise
it is the column (CSC layout). Values never live in the pattern; callers keep
them in flat arrays indexed by slot, which is what makes repeated numeric
assembly allocation free.

Complexity:
    - construction: O(nnz)
    - get_index: O(1) average with the hashed lookup, O(log k) with binary
      search over a range of length k
    - to_general: O(nnz)
    - convert_from: O(nnz + n) time, O(nnz + n) extra space
"""

from __future__ import annotations

from bisect import bisect_left
from itertools import chain
from typing import Callable, Iterable, Iterator, Optional, Sequence

import numpy as np

from eqsys.diagnostics import is_debug_enabled
from eqsys.errors import InvalidStructure

IndexArray = np.ndarray


class _HashLookup:
    """Per leading index mapping from secondary index to slot."""

    def __init__(self, ia: list[int], ja: list[int]) -> None:
        self._maps: list[dict] = []
        for i in range(len(ia) - 1):
            lo, hi = ia[i], ia[i + 1]
            mapping = {j: k for k, j in enumerate(ja[lo:hi], start=lo)}
            if len(mapping) != hi - lo:
                raise InvalidStructure(f"Vector ja has duplicate entries in range {i}")
            self._maps.append(mapping)

    def __call__(self, i: int, j: int) -> Optional[int]:
        return self._maps[i].get(j)


class _SortedLookup:
    """Binary search over the strictly increasing ranges of ``ja``."""

    def __init__(self, ia: list[int], ja: list[int]) -> None:
        for i in range(len(ia) - 1):
            for k in range(ia[i] + 1, ia[i + 1]):
                if ja[k] <= ja[k - 1]:
                    raise InvalidStructure(
                        f"Vector ja must be strictly increasing in range {i} "
                        "when no index map is built"
                    )
        self._ia = ia
        self._ja = ja

    def __call__(self, i: int, j: int) -> Optional[int]:
        lo, hi = self._ia[i], self._ia[i + 1]
        k = bisect_left(self._ja, j, lo, hi)
        if k < hi and self._ja[k] == j:
            return k
        return None


def _as_index_array(values: Iterable[int], name: str) -> IndexArray:
    arr = np.array(values, dtype=np.int64)
    if arr.ndim != 1:
        raise InvalidStructure(f"Vector {name} must be one-dimensional")
    return arr


class SparsePattern:
    """
    Immutable nonzero structure of a ``rows x cols`` sparse matrix.

    Parameters
    ----------
    rows, cols:
        Matrix dimensions.
    ia:
        Offsets of length ``leading + 1``; slots of leading index ``i`` are
        ``range(ia[i], ia[i + 1])``.
    ja:
        Secondary index of every slot.
    row_major:
        True for CSR orientation (leading index = row), False for CSC.
    index_map:
        Lookup strategy fixed at construction. True builds hashed maps for
        O(1) average lookup; False uses binary search and requires every range
        of ``ja`` to be strictly increasing.

    Raises
    ------
    InvalidStructure
        If the arrays do not describe a valid compressed structure.
    """

    def __init__(
        self,
        rows: int,
        cols: int,
        ia: Sequence[int],
        ja: Sequence[int],
        row_major: bool = True,
        index_map: bool = True,
    ) -> None:
        if rows < 0 or cols < 0:
            raise InvalidStructure("Pattern dimensions must be non-negative")
        self._rows = int(rows)
        self._cols = int(cols)
        self._row_major = bool(row_major)
        self._index_map = bool(index_map)

        size_i, size_j = self._sizes()

        ia_arr = _as_index_array(ia, "ia")
        ja_arr = _as_index_array(ja, "ja")

        if ia_arr.size != size_i + 1:
            raise InvalidStructure("Vector ia has an invalid size")
        if ia_arr[0] != 0:
            raise InvalidStructure("Vector ia must start at 0")
        if np.any(np.diff(ia_arr) < 0):
            raise InvalidStructure("Vector ia must be non-decreasing")
        if ia_arr[-1] != ja_arr.size:
            raise InvalidStructure("Vector ia does not match the size of ja")
        if ja_arr.size > 0 and (ja_arr.min() < 0 or ja_arr.max() >= size_j):
            raise InvalidStructure("Vector ja has invalid entries")

        ia_arr.setflags(write=False)
        ja_arr.setflags(write=False)
        self._ia = ia_arr
        self._ja = ja_arr

        ia_list = ia_arr.tolist()
        ja_list = ja_arr.tolist()
        if self._index_map:
            self._lookup: Callable[[int, int], Optional[int]] = _HashLookup(ia_list, ja_list)
        else:
            self._lookup = _SortedLookup(ia_list, ja_list)

    def _sizes(self) -> tuple[int, int]:
        if self._row_major:
            return self._rows, self._cols
        return self._cols, self._rows

    # ------------------------------------------------------------------
    # properties

    @property
    def rows(self) -> int:
        return self._rows

    @property
    def cols(self) -> int:
        return self._cols

    @property
    def shape(self) -> tuple[int, int]:
        return self._rows, self._cols

    @property
    def row_major(self) -> bool:
        return self._row_major

    @property
    def has_index_map(self) -> bool:
        return self._index_map

    @property
    def ia(self) -> IndexArray:
        """Read-only offset array."""
        return self._ia

    @property
    def ja(self) -> IndexArray:
        """Read-only secondary index array."""
        return self._ja

    @property
    def nb_nonzeros(self) -> int:
        return int(self._ia[-1])

    @property
    def density(self) -> float:
        if self._rows == 0 or self._cols == 0:
            return 0.0
        return self.nb_nonzeros / self._rows / self._cols

    def __len__(self) -> int:
        return self.nb_nonzeros

    def __repr__(self) -> str:
        layout = "row-major" if self._row_major else "column-major"
        return (
            f"SparsePattern(rows={self._rows}, cols={self._cols}, "
            f"nnz={self.nb_nonzeros}, {layout})"
        )

    # ------------------------------------------------------------------
    # construction

    @classmethod
    def from_pattern(
        cls,
        rows: int,
        cols: int,
        pattern: Sequence[Iterable[int]],
        row_major: bool = True,
        index_map: bool = True,
    ) -> "SparsePattern":
        """
        Build a pattern from one collection of secondary indices per leading index.

        Slot order follows the iteration order of each collection, so pass
        sorted sequences when a sorted layout is required.

        Example
        -------
        >>> p = SparsePattern.from_pattern(2, 3, [[0, 2], [1]])
        >>> p.ia.tolist(), p.ja.tolist()
        ([0, 2, 3], [0, 2, 1])
        """
        size_i = rows if row_major else cols
        if len(pattern) != size_i:
            raise InvalidStructure(
                f"Pattern must have {size_i} entries, got {len(pattern)}"
            )

        groups = [list(entry) for entry in pattern]

        ia = np.zeros(size_i + 1, dtype=np.int64)
        ia[1:] = np.cumsum([len(group) for group in groups])

        ja = np.fromiter(chain.from_iterable(groups), dtype=np.int64, count=int(ia[-1]))

        return cls(rows, cols, ia, ja, row_major=row_major, index_map=index_map)

    @classmethod
    def convert_from(cls, other: "SparsePattern", values: np.ndarray) -> "SparsePattern":
        """
        Convert ``other`` to the opposite orientation in linear time.

        The result describes the same matrix as ``other``. ``values`` holds one
        entry per slot of ``other`` and is permuted in place so that it matches
        the slot order of the returned pattern.

        The conversion is a counting sort on the secondary index: a histogram
        of ``other.ja`` turned into offsets by an exclusive prefix sum, a single
        scatter pass that advances one write cursor per bucket, and a final
        shift that restores the offsets from the cursors.
        """
        nb_nonzeros = other.nb_nonzeros
        if values.shape != (nb_nonzeros,):
            raise ValueError(
                f"values must have shape ({nb_nonzeros},), got {values.shape}"
            )

        n, m = other._sizes()

        other_ia = other.ia.tolist()
        other_ja = other.ja.tolist()

        ia = [0] * (m + 1)
        for j in other_ja:
            ia[j] += 1

        cumsum = 0
        for j in range(m):
            count = ia[j]
            ia[j] = cumsum
            cumsum += count
        ia[m] = nb_nonzeros

        ja = [0] * nb_nonzeros
        source = values.copy()

        for i in range(n):
            for k in range(other_ia[i], other_ia[i + 1]):
                j = other_ja[k]
                dest = ia[j]
                ja[dest] = i
                values[dest] = source[k]
                ia[j] += 1

        last = 0
        for j in range(m + 1):
            cursor = ia[j]
            ia[j] = last
            last = cursor

        return cls(
            other.rows,
            other.cols,
            ia,
            ja,
            row_major=not other.row_major,
            index_map=other.has_index_map,
        )

    # ------------------------------------------------------------------
    # queries

    def get_index(self, row: int, col: int) -> Optional[int]:
        """
        Return the slot storing ``(row, col)``, or None if it is not stored.

        A missing entry is an expected outcome, not an error.
        """
        if is_debug_enabled():
            assert 0 <= row < self._rows, f"row {row} out of range"
            assert 0 <= col < self._cols, f"col {col} out of range"
        if self._row_major:
            return self._lookup(row, col)
        return self._lookup(col, row)

    def entries(self) -> Iterator[tuple[int, int, int]]:
        """Yield ``(row, col, slot)`` for every stored entry in storage order."""
        size_i = len(self._ia) - 1
        ia = self._ia.tolist()
        ja = self._ja.tolist()
        for i in range(size_i):
            for k in range(ia[i], ia[i + 1]):
                if self._row_major:
                    yield i, ja[k], k
                else:
                    yield ja[k], i, k

    def __iter__(self) -> Iterator[tuple[int, int, int]]:
        return self.entries()

    def for_each(self, action: Callable[[int, int, int], None]) -> None:
        """Call ``action(row, col, slot)`` for every stored entry."""
        for row, col, slot in self.entries():
            action(row, col, slot)

    # ------------------------------------------------------------------
    # transformations

    def to_general(
        self, values: Optional[np.ndarray] = None
    ) -> tuple["SparsePattern", np.ndarray]:
        """
        Expand a triangular pattern of a symmetric matrix to the full pattern.

        The pattern must hold one triangle including the diagonal. Off-diagonal
        entries appear in both triangles of the result, diagonal entries once.

        Returns
        -------
        (SparsePattern, np.ndarray)
            Without ``values``: the full pattern and, for every full slot, the
            triangular slot it originates from (length ``2 * nnz - n``).
            With ``values``: the full pattern and the values scattered through
            that permutation.
        """
        if self._rows != self._cols:
            raise InvalidStructure("to_general requires a square pattern")

        n = self._rows
        pattern: list[list[int]] = [[] for _ in range(n)]
        indices: list[list[int]] = [[] for _ in range(n)]

        ia = self._ia.tolist()
        ja = self._ja.tolist()

        for i in range(n):
            for k in range(ia[i], ia[i + 1]):
                j = ja[k]

                pattern[i].append(j)
                indices[i].append(k)

                if i == j:
                    continue

                pattern[j].append(i)
                indices[j].append(k)

        result = SparsePattern.from_pattern(
            n, n, pattern, row_major=self._row_major, index_map=self._index_map
        )

        value_indices = np.fromiter(
            chain.from_iterable(indices), dtype=np.int64, count=result.nb_nonzeros
        )

        if values is None:
            return result, value_indices

        values = np.asarray(values)
        if values.shape != (self.nb_nonzeros,):
            raise ValueError(
                f"values must have shape ({self.nb_nonzeros},), got {values.shape}"
            )
        return result, values[value_indices]


__all__ = ["SparsePattern"]
