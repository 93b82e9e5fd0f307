"""Assembly of global systems from local contributions."""

from .buffer import AccumulationBuffer, merge_all
from .element import Element
from .parallel import ForkJoin, partition
from .system import System

__all__ = [
    "AccumulationBuffer",
    "Element",
    "ForkJoin",
    "System",
    "merge_all",
    "partition",
]
