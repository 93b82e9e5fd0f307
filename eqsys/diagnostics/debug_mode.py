"""Debug mode for eqsys.

With debug mode on, the hot assembly paths check their contracts with
``assert``: pattern coordinates, buffer indices, the scratch bound, and the
symmetry of local Hessians. The flag starts from the ``EQSYS_DEBUG``
environment variable.
"""

from __future__ import annotations

import os
from contextlib import contextmanager
from typing import Iterator

ENV_VAR = "EQSYS_DEBUG"
_TRUTHY = frozenset({"1", "true", "yes", "on"})


def _flag_from_env() -> bool:
    return os.environ.get(ENV_VAR, "").strip().lower() in _TRUTHY


_enabled = _flag_from_env()


def is_debug_enabled() -> bool:
    """Return whether contract assertions are active."""
    return _enabled


def set_debug_enabled(enabled: bool) -> None:
    """
    Switch debug mode on or off for the whole process.

    Parameters
    ----------
    enabled:
        New value of the flag.
    """
    global _enabled
    _enabled = bool(enabled)


@contextmanager
def debug_context(enabled: bool = True) -> Iterator[None]:
    """
    Set debug mode for the duration of a ``with`` block.

    The previous value is restored on exit, also when the block raises.

    Example
    -------
    >>> with debug_context(True):
    ...     pattern.get_index(0, 0)
    """
    previous = is_debug_enabled()
    set_debug_enabled(enabled)
    try:
        yield
    finally:
        set_debug_enabled(previous)


__all__ = ["ENV_VAR", "debug_context", "is_debug_enabled", "set_debug_enabled"]
