"""Local contributors to a global system."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional, Sequence

import numpy as np


class Element(ABC):
    """
    A local contribution to the objective of a :class:`~eqsys.assembly.System`.

    An element couples a small set of global degrees of freedom. During
    assembly it receives the current values of those dofs and adds its
    objective, local gradient and dense local Hessian. The gradient and
    Hessian arrays are zeroed views into the worker's scratch buffer and are
    None when the pass does not request them.
    """

    @abstractmethod
    def dofs(self) -> Sequence[int]:
        """Global indices of the dofs this element depends on, without repeats."""

    @abstractmethod
    def compute(
        self,
        x: np.ndarray,
        g: Optional[np.ndarray],
        h: Optional[np.ndarray],
    ) -> float:
        """
        Evaluate the element at the local values ``x``.

        Parameters
        ----------
        x:
            Values of ``dofs()`` in the same order.
        g:
            Local gradient to fill in, shape ``(k,)``, or None.
        h:
            Local Hessian to fill in, shape ``(k, k)``, or None. Only the
            entries coupling a dof with itself or with a dof of larger global
            index are read, so filling the full symmetric matrix is fine.

        Returns
        -------
        float
            The element's contribution to the objective.
        """


__all__ = ["Element"]
