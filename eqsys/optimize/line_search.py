"""Line searches used to globalize the Levenberg–Marquardt step.

Both searches share one signature: they take an ``evaluate(x, order)``
callable returning ``(f, g)``, the current point and a search direction, and
return a :class:`~eqsys.optimize.core.LineSearchResult`.

References:
    - J. J. Moré and D. J. Thuente, "Line search algorithms with guaranteed
      sufficient decrease", ACM TOMS 20 (1994).
    - Nocedal & Wright, *Numerical Optimization* (2006), chapter 3.
"""

from __future__ import annotations

import math
from typing import Optional

import numpy as np

from eqsys.errors import NotADescentDirection
from eqsys.logging import get_logger

from .core import Array, Evaluate, LineSearchResult, LineSearchStatus, Order

logger = get_logger(__name__)


def backtracking_armijo(
    evaluate: Evaluate,
    x: Array,
    direction: Array,
    alpha0: float = 1.0,
    f0: Optional[float] = None,
    g0: Optional[Array] = None,
    c: float = 0.2,
    rho: float = 0.9,
    max_iter: int = 200,
    min_step: float = 1e-15,
) -> LineSearchResult:
    """
    Armijo backtracking: shrink ``alpha`` by ``rho`` until sufficient decrease.

    Only the sufficient-decrease condition ``f(x + a d) <= f(x) + c a g.d`` is
    enforced. The search gives up after ``max_iter`` shrinks
    (EVALUATION_BUDGET_EXCEEDED) or when the next step would fall below
    ``min_step`` (STEP_AT_MINIMUM), returning the last step tried.
    """
    if not (0 < c < 1):
        raise ValueError("Armijo constant c must lie in (0, 1)")
    if not (0 < rho < 1):
        raise ValueError("rho must lie in (0, 1)")

    x = np.asarray(x, dtype=float)
    direction = np.asarray(direction, dtype=float)
    alpha = float(alpha0)

    f_trial, _ = evaluate(x + alpha * direction, Order.VALUE)
    nfev = 1

    if f0 is None or g0 is None:
        f0, g0 = evaluate(x, Order.GRADIENT)
        nfev += 1

    slope = c * float(np.dot(g0, direction))
    status = LineSearchStatus.SUCCESS

    shrinks = 0
    while f_trial > f0 + alpha * slope:
        if shrinks >= max_iter:
            status = LineSearchStatus.EVALUATION_BUDGET_EXCEEDED
            break
        if alpha * rho < min_step:
            status = LineSearchStatus.STEP_AT_MINIMUM
            break
        alpha *= rho
        f_trial, _ = evaluate(x + alpha * direction, Order.VALUE)
        nfev += 1
        shrinks += 1

    if status != LineSearchStatus.SUCCESS:
        logger.debug("Armijo search stopped with %s at alpha=%g", status.name, alpha)

    return LineSearchResult(step=alpha, status=status, nfev=nfev, fun=float(f_trial))


def more_thuente(
    evaluate: Evaluate,
    x: Array,
    direction: Array,
    alpha0: float = 1.0,
    f0: Optional[float] = None,
    g0: Optional[Array] = None,
    ftol: float = 1e-4,
    gtol: float = 1e-2,
    xtol: float = 1e-15,
    stpmin: float = 1e-15,
    stpmax: float = 1e15,
    max_evals: int = 20,
    xtrapf: float = 4.0,
) -> LineSearchResult:
    """
    Safeguarded interpolation search for a step satisfying the strong Wolfe conditions.

    A bracket ``[stx, sty]`` around a minimizer of ``phi(a) = f(x + a d)`` is
    maintained and refined with :func:`_cstep`. The stopping codes are
    assigned in a fixed sequence in which later checks override earlier
    ones; SUCCESS always wins.

    Raises
    ------
    NotADescentDirection
        If ``g0 @ direction >= 0``.
    """
    x = np.asarray(x, dtype=float)
    direction = np.asarray(direction, dtype=float)

    initial_evals = 0
    if f0 is None or g0 is None:
        f0, g0 = evaluate(x, Order.GRADIENT)
        initial_evals = 1

    dginit = float(np.dot(g0, direction))
    if dginit >= 0.0:
        raise NotADescentDirection(
            f"Search direction is not a descent direction (g.d = {dginit:g})", dginit
        )

    info = LineSearchStatus.RUNNING
    infoc = 1
    nfev = 0
    stp = float(alpha0)

    brackt = False
    stage1 = True

    finit = float(f0)
    dgtest = ftol * dginit
    width = stpmax - stpmin
    width1 = 2 * width

    stx, fx, dgx = 0.0, finit, dginit
    sty, fy, dgy = 0.0, finit, dginit
    best_f, best_g = finit, g0

    widths = []
    f, g = finit, g0

    while True:
        if brackt:
            stmin = min(stx, sty)
            stmax = max(stx, sty)
        else:
            stmin = stx
            stmax = stp + xtrapf * (stp - stx)

        stp = max(stp, stpmin)
        stp = min(stp, stpmax)

        # fall back to the best point when no further progress is possible
        if (
            (brackt and (stp <= stmin or stp >= stmax))
            or nfev >= max_evals - 1
            or infoc == 0
            or (brackt and stmax - stmin <= xtol * stmax)
        ):
            stp = stx

        f, g = evaluate(x + stp * direction, Order.GRADIENT)
        nfev += 1

        dg = float(np.dot(g, direction))
        ftest1 = finit + stp * dgtest

        if (brackt and (stp <= stmin or stp >= stmax)) or infoc == 0:
            info = LineSearchStatus.ROUNDING_ERRORS
        if stp == stpmax and f <= ftest1 and dg <= dgtest:
            info = LineSearchStatus.STEP_AT_MAXIMUM
        if stp == stpmin and (f > ftest1 or dg >= dgtest):
            info = LineSearchStatus.STEP_AT_MINIMUM
        if nfev >= max_evals:
            info = LineSearchStatus.EVALUATION_BUDGET_EXCEEDED
        if brackt and stmax - stmin <= xtol * stmax:
            info = LineSearchStatus.BRACKET_TOO_NARROW
        if f <= ftest1 and abs(dg) <= gtol * (-dginit):
            info = LineSearchStatus.SUCCESS

        if info != LineSearchStatus.RUNNING:
            break

        if stage1 and f <= ftest1 and dg >= min(ftol, gtol) * dginit:
            stage1 = False

        trial = stp

        if stage1 and f <= fx and f > ftest1:
            # work on the function shifted by the sufficient-decrease line
            fm = f - stp * dgtest
            fxm = fx - stx * dgtest
            fym = fy - sty * dgtest
            dgm = dg - dgtest
            dgxm = dgx - dgtest
            dgym = dgy - dgtest

            stx, fxm, dgxm, sty, fym, dgym, stp, brackt, infoc = _cstep(
                stx, fxm, dgxm, sty, fym, dgym, stp, fm, dgm, brackt, stmin, stmax
            )

            fx = fxm + stx * dgtest
            fy = fym + sty * dgtest
            dgx = dgxm + dgtest
            dgy = dgym + dgtest
        else:
            stx, fx, dgx, sty, fy, dgy, stp, brackt, infoc = _cstep(
                stx, fx, dgx, sty, fy, dgy, stp, f, dg, brackt, stmin, stmax
            )

        if stx == trial:
            best_f, best_g = f, g

        if brackt:
            if abs(sty - stx) >= 0.66 * width1:
                stp = stx + 0.5 * (sty - stx)
            width1 = width
            width = abs(sty - stx)
            widths.append(width)

    nfev += initial_evals

    if info == LineSearchStatus.SUCCESS:
        return LineSearchResult(
            step=stp, status=info, nfev=nfev, fun=float(f), grad=g, width_history=widths
        )

    logger.debug("More-Thuente search stopped with %s, falling back to step %g", info.name, stx)
    return LineSearchResult(
        step=stx,
        status=info,
        nfev=nfev,
        fun=float(best_f),
        grad=best_g,
        width_history=widths,
    )


def _cubic_gamma(theta: float, a: float, b: float) -> float:
    s = max(abs(theta), abs(a), abs(b))
    if s == 0.0:
        return 0.0
    return s * math.sqrt(max(0.0, (theta / s) ** 2 - (a / s) * (b / s)))


def _ratio(p: float, q: float) -> float:
    return p / q if q != 0.0 else 0.0


def _cstep(
    stx: float,
    fx: float,
    dx: float,
    sty: float,
    fy: float,
    dy: float,
    stp: float,
    fp: float,
    dp: float,
    brackt: bool,
    stpmin: float,
    stpmax: float,
) -> tuple[float, float, float, float, float, float, float, bool, int]:
    """
    Safeguarded step of the More–Thuente search.

    Updates the interval ``(stx, sty)`` with the trial ``(stp, fp, dp)`` and
    computes the next trial step. Returns
    ``(stx, fx, dx, sty, fy, dy, stp, brackt, info)`` where ``info`` is the
    case that was applied (1-4) or 0 when the inputs were inconsistent, in
    which case the state is returned unchanged.
    """
    if (
        (brackt and (stp <= min(stx, sty) or stp >= max(stx, sty)))
        or dx * (stp - stx) >= 0.0
        or stpmax < stpmin
    ):
        return stx, fx, dx, sty, fy, dy, stp, brackt, 0

    sgnd = dp * float(np.sign(dx))

    if fp > fx:
        # higher function value: the minimum is bracketed
        info = 1
        bound = True
        theta = 3.0 * (fx - fp) / (stp - stx) + dx + dp
        gamma = _cubic_gamma(theta, dx, dp)
        if stp < stx:
            gamma = -gamma
        p = (gamma - dx) + theta
        q = ((gamma - dx) + gamma) + dp
        stpc = stx + _ratio(p, q) * (stp - stx)
        stpq = stx + (_ratio(dx, (fx - fp) / (stp - stx) + dx) / 2.0) * (stp - stx)
        if abs(stpc - stx) < abs(stpq - stx):
            stpf = stpc
        else:
            stpf = stpc + (stpq - stpc) / 2.0
        brackt = True
    elif sgnd < 0.0:
        # derivatives of opposite sign: the minimum is bracketed
        info = 2
        bound = False
        theta = 3.0 * (fx - fp) / (stp - stx) + dx + dp
        gamma = _cubic_gamma(theta, dx, dp)
        if stp > stx:
            gamma = -gamma
        p = (gamma - dp) + theta
        q = ((gamma - dp) + gamma) + dx
        stpc = stp + _ratio(p, q) * (stx - stp)
        stpq = stp + (dp / (dp - dx)) * (stx - stp)
        if abs(stpc - stp) > abs(stpq - stp):
            stpf = stpc
        else:
            stpf = stpq
        brackt = True
    elif abs(dp) < abs(dx):
        # same sign, derivative magnitude decreases
        info = 3
        bound = True
        theta = 3.0 * (fx - fp) / (stp - stx) + dx + dp
        gamma = _cubic_gamma(theta, dx, dp)
        if stp > stx:
            gamma = -gamma
        p = (gamma - dp) + theta
        q = (gamma + (dx - dp)) + gamma
        r = _ratio(p, q)
        if r < 0.0 and gamma != 0.0:
            stpc = stp + r * (stx - stp)
        elif stp > stx:
            stpc = stpmax
        else:
            stpc = stpmin
        stpq = stp + (dp / (dp - dx)) * (stx - stp)
        if brackt:
            stpf = stpc if abs(stp - stpc) < abs(stp - stpq) else stpq
        else:
            stpf = stpc if abs(stp - stpc) > abs(stp - stpq) else stpq
    else:
        # same sign, derivative magnitude does not decrease
        info = 4
        bound = False
        if brackt:
            theta = 3.0 * (fp - fy) / (sty - stp) + dy + dp
            gamma = _cubic_gamma(theta, dy, dp)
            if stp > sty:
                gamma = -gamma
            p = (gamma - dp) + theta
            q = ((gamma - dp) + gamma) + dy
            stpf = stp + _ratio(p, q) * (sty - stp)
        elif stp > stx:
            stpf = stpmax
        else:
            stpf = stpmin

    if fp > fx:
        sty, fy, dy = stp, fp, dp
    else:
        if sgnd < 0.0:
            sty, fy, dy = stx, fx, dx
        stx, fx, dx = stp, fp, dp

    stpf = min(stpmax, stpf)
    stpf = max(stpmin, stpf)
    stp = stpf

    if brackt and bound:
        if sty > stx:
            stp = min(stx + 0.66 * (sty - stx), stp)
        else:
            stp = max(stx + 0.66 * (sty - stx), stp)

    return stx, fx, dx, sty, fy, dy, stp, brackt, info


LINE_SEARCHES = {
    "armijo": backtracking_armijo,
    "more_thuente": more_thuente,
}


__all__ = ["LINE_SEARCHES", "backtracking_armijo", "more_thuente"]
