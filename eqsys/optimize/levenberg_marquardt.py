"""Globalized Levenberg–Marquardt minimization over an assembly oracle."""

from __future__ import annotations

import time
from typing import Any, Callable, Mapping, Optional, Union

import numpy as np
import scipy.sparse as sp

from eqsys.config import SolverOptions
from eqsys.errors import NotADescentDirection, NumericalFailure
from eqsys.logging import get_logger

from .core import (
    Array,
    LineSearchResult,
    LineSearchStatus,
    OptimizeResult,
    Oracle,
    Order,
    StoppingReason,
    check_convergence,
)
from .line_search import LINE_SEARCHES
from .utils import LinearSolver, is_finite, normal_equations, solve_damped, splu_solve

logger = get_logger(__name__)

LineSearch = Callable[..., LineSearchResult]

# minimum gain ratio for accepting a step
_ETA = 1e-4


class LevenbergMarquardt:
    """
    Levenberg–Marquardt driver for an :class:`~eqsys.optimize.core.Oracle`.

    Every iteration assembles ``(f, g, H)`` at the current point, solves the
    damped normal equations ``(H^T H + mu I) d = -H^T g``, validates the step
    length with a line search, and accepts or rejects the step from the
    ratio of actual to predicted decrease. ``mu`` shrinks on accepted steps
    and grows on rejected ones.

    Parameters
    ----------
    oracle:
        Assembly collaborator. Its position is moved by every trial
        evaluation.
    x0:
        Initial position; zeros when omitted.
    line_search:
        ``"more_thuente"``, ``"armijo"``, ``"none"``/None or a callable with
        the signature of :func:`~eqsys.optimize.line_search.more_thuente`.
        The built-in searches never see an ascent direction. A custom
        callable that raises :class:`~eqsys.errors.NotADescentDirection`
        is called once more along ``-g``.
    linear_solver:
        Decomposition used for the damped normal equations.
    damping:
        Initial ``mu`` relative to the largest diagonal entry of ``H^T H``.
    history:
        Record every accepted position.
    """

    def __init__(
        self,
        oracle: Oracle,
        x0: Optional[Array] = None,
        line_search: Union[str, LineSearch, None] = "more_thuente",
        linear_solver: LinearSolver = splu_solve,
        damping: float = 1e-3,
        history: bool = False,
    ) -> None:
        if damping <= 0:
            raise ValueError("damping must be positive")
        self._oracle = oracle
        n = oracle.dimension()
        self._x0 = np.zeros(n) if x0 is None else np.array(x0, dtype=float)
        if self._x0.shape != (n,):
            raise ValueError(f"x0 must have shape ({n},), got {self._x0.shape}")

        if isinstance(line_search, str):
            if line_search == "none":
                line_search = None
            elif line_search in LINE_SEARCHES:
                line_search = LINE_SEARCHES[line_search]
            else:
                raise ValueError(f"Unknown line search {line_search!r}")
        self._line_search = line_search
        self._linear_solver = linear_solver
        self._damping = float(damping)
        self._record_history = history
        self.options = SolverOptions()

        self.stopping_reason: Optional[StoppingReason] = None
        self._nit = 0
        self._nfev = 0
        self._njev = 0
        self._nhev = 0
        self._x_valid = self._x0.copy()

    @classmethod
    def from_options(
        cls,
        oracle: Oracle,
        options: Optional[Mapping[str, Any]] = None,
        x0: Optional[Array] = None,
    ) -> "LevenbergMarquardt":
        """Build a driver from an options mapping (see :class:`SolverOptions`)."""
        settings = SolverOptions.from_dict(options)
        solver = cls(oracle, x0=x0, line_search=settings.line_search, damping=settings.damping)
        solver.options = settings
        return solver

    # ------------------------------------------------------------------

    def _evaluate(
        self, x: Array, order: Order
    ) -> tuple[float, Optional[Array], Optional[sp.spmatrix]]:
        self._oracle.set_position(x)
        f, g, h = self._oracle.assemble(order)
        self._nfev += 1
        if order >= Order.GRADIENT:
            self._njev += 1
        if order >= Order.HESSIAN:
            self._nhev += 1
        if not is_finite(f, g, h):
            self.stopping_reason = StoppingReason.NUMERICAL_FAILURE
            logger.error(
                "Assembly returned non-finite values at iteration %d", self._nit
            )
            raise NumericalFailure(
                f"Assembly returned non-finite values at iteration {self._nit}",
                iteration=self._nit,
                position=self._x_valid,
            )
        return float(f), g, h

    def _evaluate_line(self, x: Array, order: Order) -> tuple[float, Optional[Array]]:
        f, g, _ = self._evaluate(x, order)
        return f, g

    def _search(
        self, x: Array, f: float, g: Array, direction: Array
    ) -> tuple[Array, LineSearchResult]:
        if not is_finite(direction) or float(g @ direction) >= 0.0:
            logger.debug("Damped step is not a descent direction, using steepest descent")
            direction = -g

        if self._line_search is None:
            return direction, LineSearchResult(step=1.0, status=LineSearchStatus.SUCCESS, nfev=0)

        # custom searches may apply their own descent test
        try:
            result = self._line_search(self._evaluate_line, x, direction, f0=f, g0=g)
        except NotADescentDirection as exc:
            logger.warning("%s; retrying along steepest descent", exc)
            direction = -g
            result = self._line_search(self._evaluate_line, x, direction, f0=f, g0=g)
        return direction, result

    # ------------------------------------------------------------------

    def minimize(
        self,
        max_iterations: Optional[int] = None,
        relative_tolerance: Optional[float] = None,
        step_tolerance: Optional[float] = None,
    ) -> OptimizeResult:
        """
        Minimize the oracle's objective starting from ``x0``.

        Stops with SUCCESS when the gradient norm drops below
        ``relative_tolerance`` times the initial gradient norm (at least 1) or
        when an accepted step is shorter than ``step_tolerance`` relative to the
        position, and with NOT_CONVERGED once ``max_iterations`` is used up.
        Missing arguments are taken from :attr:`options`.

        Raises
        ------
        NumericalFailure
            If an assembly returns non-finite values. The exception carries
            the iteration and the last position with finite values.
        """
        if max_iterations is None:
            max_iterations = self.options.max_iterations
        if relative_tolerance is None:
            relative_tolerance = self.options.relative_tolerance
        if step_tolerance is None:
            step_tolerance = self.options.step_tolerance

        logger.info("==> Minimizing nonlinear system...")
        timer = time.perf_counter()

        self.stopping_reason = None
        self._nit = 0
        self._nfev = self._njev = self._nhev = 0

        x = self._x0.copy()
        self._x_valid = x.copy()
        hist = [x.copy()] if self._record_history else []

        f, g, h = self._evaluate(x, Order.HESSIAN)
        initial_grad_norm = float(np.linalg.norm(g))

        mu: Optional[float] = None
        nu = 2.0
        reason = StoppingReason.NOT_CONVERGED
        message = "Maximum iterations reached."

        while True:
            grad_norm = float(np.linalg.norm(g))
            if check_convergence(grad_norm, initial_grad_norm, relative_tolerance):
                reason = StoppingReason.SUCCESS
                message = "Gradient tolerance satisfied."
                break
            if self._nit >= max_iterations:
                break

            self._nit += 1

            jtj, rhs = normal_equations(h, g)
            if mu is None:
                mu = self._damping * max(float(jtj.diagonal().max(initial=0.0)), 1.0)
            try:
                direction, mu = solve_damped(jtj, rhs, mu, solver=self._linear_solver)
            except np.linalg.LinAlgError as exc:
                logger.warning("%s; falling back to steepest descent", exc)
                direction = -g

            direction, line = self._search(x, f, g, direction)
            step = line.step * direction
            step_norm = float(np.linalg.norm(step))

            logger.debug(
                "Iteration %d: f = %.6e, |g| = %.3e, mu = %.3e, alpha = %.3e (%s)",
                self._nit,
                f,
                grad_norm,
                mu,
                line.step,
                line.status.name,
            )

            if step_norm == 0.0:
                mu *= nu
                nu *= 2.0
                continue

            x_new = x + step
            f_new, g_new, h_new = self._evaluate(x_new, Order.HESSIAN)

            actual = f - f_new
            predicted = -(float(g @ step) + 0.5 * float(step @ (h @ step)))
            rho = actual / predicted if predicted > 0.0 else 0.0

            if actual > 0.0 and (rho > _ETA or predicted <= 0.0):
                x, f, g, h = x_new, f_new, g_new, h_new
                self._x_valid = x.copy()
                if self._record_history:
                    hist.append(x.copy())
                mu *= max(1.0 / 3.0, 1.0 - (2.0 * min(rho, 1.0) - 1.0) ** 3)
                nu = 2.0
                if step_norm <= step_tolerance * (float(np.linalg.norm(x)) + step_tolerance):
                    reason = StoppingReason.SUCCESS
                    message = "Step tolerance satisfied."
                    break
            else:
                logger.debug("Step rejected (rho = %.3e)", rho)
                mu *= nu
                nu *= 2.0

        self._oracle.set_position(x)
        self.stopping_reason = reason

        elapsed = time.perf_counter() - timer
        if reason == StoppingReason.SUCCESS:
            logger.info("System minimized in %.3f sec (%s)", elapsed, message)
        else:
            logger.warning(
                "Minimization stopped after %d iterations without convergence", self._nit
            )

        return OptimizeResult(
            x=x,
            fun=f,
            nit=self._nit,
            success=reason == StoppingReason.SUCCESS,
            reason=reason,
            message=message,
            grad_norm=float(np.linalg.norm(g)),
            nfev=self._nfev,
            njev=self._njev,
            nhev=self._nhev,
            elapsed=elapsed,
            history=hist,
        )


def levenberg_marquardt(
    oracle: Oracle,
    x0: Optional[Array] = None,
    max_iterations: int = 100,
    relative_tolerance: float = 1e-6,
    step_tolerance: float = 1e-6,
    line_search: Union[str, LineSearch, None] = "more_thuente",
    damping: float = 1e-3,
    history: bool = False,
) -> OptimizeResult:
    """Functional wrapper around :class:`LevenbergMarquardt`."""
    solver = LevenbergMarquardt(
        oracle, x0=x0, line_search=line_search, damping=damping, history=history
    )
    return solver.minimize(max_iterations, relative_tolerance, step_tolerance)


__all__ = ["LevenbergMarquardt", "levenberg_marquardt"]
