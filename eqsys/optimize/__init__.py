"""Globalized Levenberg–Marquardt minimization over assembled sparse systems.

Example
-------
>>> import numpy as np
>>> from eqsys.assembly import Element, System
>>> from eqsys.optimize import LevenbergMarquardt
>>> class Offset(Element):
...     def dofs(self):
...         return [0]
...     def compute(self, x, g, h):
...         r = x[0] - 3.0
...         if g is not None:
...             g[0] = 2.0 * r
...         if h is not None:
...             h[0, 0] = 2.0
...         return r * r
>>> system = System([Offset()])
>>> res = LevenbergMarquardt(system, system.position()).minimize(20, 1e-6, 1e-6)
>>> bool(abs(res.x[0] - 3.0) < 1e-5)
True
"""

from .core import (
    LineSearchResult,
    LineSearchStatus,
    OptimizeResult,
    Oracle,
    Order,
    StoppingReason,
    check_convergence,
)
from .levenberg_marquardt import LevenbergMarquardt, levenberg_marquardt
from .line_search import LINE_SEARCHES, backtracking_armijo, more_thuente
from .utils import is_finite, normal_equations, solve_damped, splu_solve

__all__ = [
    "LINE_SEARCHES",
    "LevenbergMarquardt",
    "LineSearchResult",
    "LineSearchStatus",
    "OptimizeResult",
    "Oracle",
    "Order",
    "StoppingReason",
    "backtracking_armijo",
    "check_convergence",
    "is_finite",
    "levenberg_marquardt",
    "more_thuente",
    "normal_equations",
    "solve_damped",
    "splu_solve",
]
