"""Core interfaces shared by the line searches and the Levenberg–Marquardt driver."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Callable, Optional, Protocol

import numpy as np
import scipy.sparse as sp

Array = np.ndarray


class Order(IntEnum):
    """Highest derivative an assembly pass has to provide."""

    VALUE = 0
    GRADIENT = 1
    HESSIAN = 2


class StoppingReason(Enum):
    """Why a minimization run ended."""

    SUCCESS = "success"
    NOT_CONVERGED = "not_converged"
    NUMERICAL_FAILURE = "numerical_failure"


class LineSearchStatus(IntEnum):
    """
    Exit codes of the line searches.

    The integer values follow the classical MINPACK ``info`` codes of the
    More–Thuente search: the step pinned at the upper bound ``stpmax`` and at
    the lower bound ``stpmin`` are reported separately.
    """

    RUNNING = 0
    SUCCESS = 1
    BRACKET_TOO_NARROW = 2
    EVALUATION_BUDGET_EXCEEDED = 3
    STEP_AT_MINIMUM = 4
    STEP_AT_MAXIMUM = 5
    ROUNDING_ERRORS = 6


class Oracle(Protocol):
    """
    Assembly collaborator driven by the optimizer.

    ``assemble(order)`` evaluates the system at the last position passed to
    ``set_position`` and returns ``(f, g, H)``; ``g`` is None for
    ``Order.VALUE`` and ``H`` (a SciPy sparse matrix) is None below
    ``Order.HESSIAN``.
    """

    def dimension(self) -> int:
        ...

    def set_position(self, x: Array) -> None:
        ...

    def assemble(
        self, order: Order
    ) -> tuple[float, Optional[Array], Optional[sp.spmatrix]]:
        ...


# evaluate(x, order) -> (f, g); g is None for Order.VALUE
Evaluate = Callable[[Array, Order], tuple[float, Optional[Array]]]


@dataclass
class LineSearchResult:
    """
    Outcome of a line search.

    Attributes:
        step: Accepted step length along the direction.
        status: Exit code; anything but SUCCESS means ``step`` is the best
            point known when the search stopped.
        nfev: Number of evaluations performed.
        fun: Objective at ``x + step * direction`` when known.
        grad: Gradient at ``x + step * direction`` when known.
        width_history: Bracket widths recorded after every bracketed update.
    """

    step: float
    status: LineSearchStatus
    nfev: int
    fun: Optional[float] = None
    grad: Optional[Array] = None
    width_history: list[float] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.status == LineSearchStatus.SUCCESS


@dataclass
class OptimizeResult:
    """Result returned by :meth:`LevenbergMarquardt.minimize`."""

    x: Array
    fun: float
    nit: int
    success: bool
    reason: StoppingReason
    message: str
    grad_norm: float
    nfev: int
    njev: int
    nhev: int
    elapsed: float = 0.0
    history: list[Array] = field(default_factory=list)


def check_convergence(grad_norm: float, reference: float, rtol: float) -> bool:
    """Return True if the gradient norm dropped below ``rtol`` relative to ``reference``."""
    return grad_norm <= rtol * max(1.0, reference)


__all__ = [
    "Array",
    "Evaluate",
    "LineSearchResult",
    "LineSearchStatus",
    "OptimizeResult",
    "Oracle",
    "Order",
    "StoppingReason",
    "check_convergence",
]
