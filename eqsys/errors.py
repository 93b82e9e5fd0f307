"""Exception types raised by eqsys."""

from __future__ import annotations

from typing import Optional

import numpy as np


class EqsysError(Exception):
    """Base class for all eqsys errors."""


class InvalidStructure(EqsysError, ValueError):
    """Raised when a sparse pattern is built from malformed index arrays."""


class NotADescentDirection(EqsysError, ValueError):
    """Raised when a line search receives a direction with ``g @ d >= 0``."""

    def __init__(self, message: str, slope: float) -> None:
        super().__init__(message)
        self.slope = slope


class NumericalFailure(EqsysError, RuntimeError):
    """
    Raised when assembly produces non-finite values during a minimization.

    Attributes:
        iteration: Iteration of the optimizer at which the failure occurred.
        position: Last position at which the system assembled to finite values,
            suitable for resuming or diagnosing the run.
    """

    def __init__(
        self,
        message: str,
        iteration: int = 0,
        position: Optional[np.ndarray] = None,
    ) -> None:
        super().__init__(message)
        self.iteration = iteration
        self.position = None if position is None else np.array(position, dtype=float)


__all__ = [
    "EqsysError",
    "InvalidStructure",
    "NotADescentDirection",
    "NumericalFailure",
]
