import numpy as np
import pytest
import scipy.sparse as sp

from eqsys.optimize import check_convergence, is_finite, normal_equations, solve_damped, splu_solve


def test_normal_equations():
    jac = sp.csr_matrix(np.array([[1.0, 2.0], [0.0, 3.0]]))
    residual = np.array([1.0, -1.0])
    jtj, rhs = normal_equations(jac, residual)
    np.testing.assert_allclose(jtj.toarray(), [[1.0, 2.0], [2.0, 13.0]])
    np.testing.assert_allclose(rhs, [-1.0, 1.0])


def test_splu_solve(rng):
    a = rng.normal(size=(4, 4)) + 4 * np.eye(4)
    b = rng.normal(size=4)
    np.testing.assert_allclose(splu_solve(sp.csr_matrix(a), b), np.linalg.solve(a, b))


def test_solve_damped():
    jtj = sp.csc_matrix(np.diag([1.0, 3.0]))
    step, mu = solve_damped(jtj, np.array([2.0, 4.0]), 1.0)
    assert mu == 1.0
    np.testing.assert_allclose(step, [1.0, 1.0])


def test_solve_damped_raises_mu_on_singular_factorization():
    calls = []

    def flaky(matrix, rhs):
        calls.append(matrix.diagonal().copy())
        if len(calls) < 3:
            raise RuntimeError("Factor is exactly singular")
        return splu_solve(matrix, rhs)

    jtj = sp.csc_matrix((2, 2))
    step, mu = solve_damped(jtj, np.array([1.0, 1.0]), 0.5, solver=flaky)
    assert mu == pytest.approx(50.0)
    np.testing.assert_allclose(step, [0.02, 0.02])
    np.testing.assert_allclose(calls[1], [5.0, 5.0])


def test_solve_damped_gives_up():
    def singular(matrix, rhs):
        raise RuntimeError("Factor is exactly singular")

    with pytest.raises(np.linalg.LinAlgError):
        solve_damped(sp.csc_matrix((2, 2)), np.ones(2), 1.0, solver=singular, max_attempts=3)


def test_is_finite():
    assert is_finite(1.0, np.ones(3), None, sp.csr_matrix(np.eye(2)))
    assert not is_finite(np.nan)
    assert not is_finite(1.0, np.array([1.0, np.inf]))
    assert not is_finite(sp.csr_matrix(np.array([[np.nan, 0.0], [0.0, 1.0]])))


def test_check_convergence():
    assert check_convergence(1e-7, 0.5, 1e-6)
    assert not check_convergence(1e-5, 0.5, 1e-6)
    assert check_convergence(1e-5, 100.0, 1e-6)
