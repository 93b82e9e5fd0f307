"""Sparse index structures used as the backbone of numeric assembly."""

from .pattern import SparsePattern
from .utils import from_scipy, to_scipy, upper_triangle_pattern

__all__ = ["SparsePattern", "from_scipy", "to_scipy", "upper_triangle_pattern"]
