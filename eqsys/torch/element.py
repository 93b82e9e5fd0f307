"""Elements whose local derivatives come from PyTorch autograd."""

from __future__ import annotations

from typing import Callable, Optional, Sequence

import numpy as np
import torch
from torch.autograd.functional import hessian, jacobian

from eqsys.assembly.element import Element

Energy = Callable[[torch.Tensor], torch.Tensor]


def as_float_tensor(x: np.ndarray, device: Optional[torch.device] = None) -> torch.Tensor:
    """
    Convert local dof values to a float64 tensor.

    Parameters
    ----------
    x:
        Local dof values.
    device:
        Target device; CPU when None.
    """
    return torch.as_tensor(np.asarray(x, dtype=float), dtype=torch.float64, device=device)


class TorchElement(Element):
    """
    Element defined by a scalar energy of its local dofs.

    The gradient and Hessian written during assembly are obtained by
    differentiating ``energy`` with ``torch.autograd.functional``, so only the
    energy itself has to be implemented.

    Example
    -------
    >>> spring = TorchElement([0, 1], lambda u: 0.5 * (u[1] - u[0] - 1.0) ** 2)
    """

    def __init__(
        self,
        dofs: Sequence[int],
        energy: Energy,
        device: Optional[torch.device] = None,
    ) -> None:
        self._dofs = [int(dof) for dof in dofs]
        self._energy = energy
        self._device = device

    def dofs(self) -> Sequence[int]:
        return self._dofs

    def _scalar_energy(self, u: torch.Tensor) -> torch.Tensor:
        value = self._energy(u)
        if value.numel() != 1:
            raise ValueError(f"energy must return a scalar, got shape {tuple(value.shape)}")
        return value.reshape(())

    def compute(
        self,
        x: np.ndarray,
        g: Optional[np.ndarray],
        h: Optional[np.ndarray],
    ) -> float:
        u = as_float_tensor(x, self._device)

        with torch.no_grad():
            f = float(self._scalar_energy(u))

        if g is not None:
            g[:] = jacobian(self._scalar_energy, u).detach().cpu().numpy()
        if h is not None:
            h[:, :] = hessian(self._scalar_energy, u).detach().cpu().numpy()
        return f


__all__ = ["Energy", "TorchElement", "as_float_tensor"]
