"""Solver options with get-or-default lookup from plain dictionaries."""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Mapping, Optional

from eqsys.logging import get_logger

logger = get_logger(__name__)

LINE_SEARCH_NAMES = ("more_thuente", "armijo", "none")


@dataclass(frozen=True)
class SolverOptions:
    """
    Options of a minimization run.

    Attributes:
        max_iterations: Iteration budget of the optimizer.
        relative_tolerance: Gradient norm tolerance relative to the initial
            gradient norm.
        step_tolerance: Step norm tolerance relative to the position norm.
        line_search: ``"more_thuente"``, ``"armijo"`` or ``"none"``.
        damping: Initial damping relative to the largest diagonal entry of
            ``J^T J``.
        n_workers: Number of assembly workers.
        index_map: Use hashed slot lookup (True) or binary search (False).
    """

    max_iterations: int = 100
    relative_tolerance: float = 1e-6
    step_tolerance: float = 1e-6
    line_search: str = "more_thuente"
    damping: float = 1e-3
    n_workers: int = 1
    index_map: bool = True

    def __post_init__(self) -> None:
        if self.max_iterations < 0:
            raise ValueError("max_iterations must be non-negative")
        if self.relative_tolerance < 0 or self.step_tolerance < 0:
            raise ValueError("tolerances must be non-negative")
        if self.line_search not in LINE_SEARCH_NAMES:
            raise ValueError(
                f"Unknown line search {self.line_search!r}; expected one of {LINE_SEARCH_NAMES}"
            )
        if self.damping <= 0:
            raise ValueError("damping must be positive")
        if self.n_workers < 1:
            raise ValueError("n_workers must be positive")

    @classmethod
    def from_dict(cls, options: Optional[Mapping[str, Any]] = None) -> "SolverOptions":
        """
        Build options from a mapping, using the default for every missing key.

        Unknown keys are ignored with a warning.

        Example
        -------
        >>> SolverOptions.from_dict({"max_iterations": 20}).max_iterations
        20
        """
        options = dict(options or {})
        known = [f.name for f in fields(cls)]
        for key in sorted(set(options) - set(known)):
            logger.warning("Ignoring unknown solver option %r", key)

        values = {}
        for name in known:
            if name not in options:
                continue
            default = getattr(cls, name)
            value = options[name]
            if isinstance(default, bool) and isinstance(value, str):
                value = value.lower() in ("1", "true", "yes", "on")
            values[name] = type(default)(value)
        return cls(**values)

    def to_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}


__all__ = ["LINE_SEARCH_NAMES", "SolverOptions"]
