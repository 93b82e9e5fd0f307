import numpy as np
import pytest
import scipy.sparse as sp

from eqsys.sparse import SparsePattern, from_scipy, to_scipy, upper_triangle_pattern


def test_to_scipy_row_major():
    pattern = SparsePattern(2, 3, [0, 2, 3], [0, 2, 1])
    matrix = to_scipy(pattern, np.array([1.0, 2.0, 3.0]))
    assert matrix.format == "csr"
    np.testing.assert_allclose(matrix.toarray(), [[1.0, 0.0, 2.0], [0.0, 3.0, 0.0]])


def test_to_scipy_column_major():
    pattern = SparsePattern(2, 3, [0, 1, 2, 3], [0, 1, 0], row_major=False)
    matrix = to_scipy(pattern, np.array([1.0, 3.0, 2.0]))
    assert matrix.format == "csc"
    np.testing.assert_allclose(matrix.toarray(), [[1.0, 0.0, 2.0], [0.0, 3.0, 0.0]])


def test_to_scipy_rejects_wrong_values():
    pattern = SparsePattern(2, 3, [0, 2, 3], [0, 2, 1])
    with pytest.raises(ValueError):
        to_scipy(pattern, np.zeros(2))


@pytest.mark.parametrize("fmt", ["csr", "csc", "coo"])
def test_from_scipy(rng, fmt):
    dense = rng.normal(size=(4, 5)) * (rng.random((4, 5)) < 0.5)
    matrix = sp.csr_matrix(dense).asformat(fmt)

    pattern = from_scipy(matrix)

    assert pattern.shape == (4, 5)
    assert pattern.row_major == (fmt != "csc")
    assert pattern.nb_nonzeros == np.count_nonzero(dense)
    for i in range(4):
        for j in range(5):
            assert (pattern.get_index(i, j) is not None) == (dense[i, j] != 0)


def test_from_scipy_values_line_up(rng):
    dense = rng.normal(size=(3, 3)) * (rng.random((3, 3)) < 0.6)
    matrix = sp.csc_matrix(dense)
    pattern = from_scipy(matrix, index_map=False)
    np.testing.assert_allclose(to_scipy(pattern, matrix.data).toarray(), dense)


def test_upper_triangle_pattern():
    rows = upper_triangle_pattern(4, [[0, 2], [2, 1], [3]])
    assert rows == [[0, 2], [1, 2], [2], [3]]


def test_upper_triangle_pattern_always_has_diagonal():
    assert upper_triangle_pattern(3, []) == [[0], [1], [2]]
