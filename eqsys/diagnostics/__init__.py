"""Diagnostics helpers for eqsys."""

from .debug_mode import debug_context, is_debug_enabled, set_debug_enabled

__all__ = ["debug_context", "is_debug_enabled", "set_debug_enabled"]
