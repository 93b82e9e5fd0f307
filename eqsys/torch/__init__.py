"""PyTorch integration for eqsys."""

from .element import Energy, TorchElement, as_float_tensor

__all__ = ["Energy", "TorchElement", "as_float_tensor"]
