"""eqsys - sparse nonlinear system assembly and Levenberg–Marquardt minimization."""

__version__ = "0.1.0"

# Sparse index structures
from .sparse import SparsePattern, from_scipy, to_scipy, upper_triangle_pattern

# Assembly
from .assembly import AccumulationBuffer, Element, ForkJoin, System, merge_all

# Optimization
from .optimize import (
    LevenbergMarquardt,
    LineSearchResult,
    LineSearchStatus,
    OptimizeResult,
    Oracle,
    Order,
    StoppingReason,
    backtracking_armijo,
    levenberg_marquardt,
    more_thuente,
)

# Configuration and errors
from .config import SolverOptions
from .errors import EqsysError, InvalidStructure, NotADescentDirection, NumericalFailure

# Diagnostics
from .diagnostics import debug_context, is_debug_enabled, set_debug_enabled
from .logging import configure_logging, get_logger, set_log_level

__all__ = [
    "__version__",
    "AccumulationBuffer",
    "Element",
    "EqsysError",
    "ForkJoin",
    "InvalidStructure",
    "LevenbergMarquardt",
    "LineSearchResult",
    "LineSearchStatus",
    "NotADescentDirection",
    "NumericalFailure",
    "OptimizeResult",
    "Oracle",
    "Order",
    "SolverOptions",
    "SparsePattern",
    "StoppingReason",
    "System",
    "backtracking_armijo",
    "configure_logging",
    "debug_context",
    "from_scipy",
    "get_logger",
    "is_debug_enabled",
    "levenberg_marquardt",
    "merge_all",
    "more_thuente",
    "set_debug_enabled",
    "set_log_level",
    "to_scipy",
    "upper_triangle_pattern",
]
