import numpy as np
import pytest
import torch

from eqsys.assembly import System
from eqsys.optimize import LevenbergMarquardt
from eqsys.torch import TorchElement, as_float_tensor


def test_as_float_tensor():
    tensor = as_float_tensor(np.array([1, 2]))
    assert tensor.dtype == torch.float64
    assert tensor.tolist() == [1.0, 2.0]


def test_derivatives_match_analytic(rng):
    def energy(u):
        return torch.sin(u[0]) * u[1] ** 2 + u[2] ** 3

    element = TorchElement([0, 1, 2], energy)
    x = rng.normal(size=3)
    g = np.zeros(3)
    h = np.zeros((3, 3))

    f = element.compute(x, g, h)

    a, b, c = x
    assert f == pytest.approx(np.sin(a) * b**2 + c**3)
    np.testing.assert_allclose(g, [np.cos(a) * b**2, 2 * np.sin(a) * b, 3 * c**2])
    expected_h = np.array(
        [
            [-np.sin(a) * b**2, 2 * np.cos(a) * b, 0.0],
            [2 * np.cos(a) * b, 2 * np.sin(a), 0.0],
            [0.0, 0.0, 6 * c],
        ]
    )
    np.testing.assert_allclose(h, expected_h, atol=1e-12)


def test_value_only(rng):
    element = TorchElement([0], lambda u: (u**2).sum())
    assert element.compute(np.array([3.0]), None, None) == 9.0


def test_non_scalar_energy_rejected():
    element = TorchElement([0, 1], lambda u: u * 2)
    with pytest.raises(ValueError):
        element.compute(np.zeros(2), None, None)


def test_springs_minimized_through_system():
    elements = [TorchElement([0], lambda u: u[0] ** 2)]
    elements += [
        TorchElement([i, i + 1], lambda u: (u[1] - u[0] - 1.0) ** 2) for i in range(4)
    ]
    system = System(elements)
    result = LevenbergMarquardt(system).minimize(
        relative_tolerance=1e-10, step_tolerance=1e-12
    )
    assert result.success
    np.testing.assert_allclose(result.x, np.arange(5.0), atol=1e-6)
