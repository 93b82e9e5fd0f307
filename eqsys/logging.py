"""Logging utilities for eqsys.

Every module obtains its logger through :func:`get_logger`, so all output
lives under the ``eqsys`` namespace, goes to one stream with one format, and
does not propagate to the root logger. :func:`configure_logging` changes the
level, format and stream of loggers created before and after the call.
"""

from __future__ import annotations

import logging
import sys
from typing import IO, Optional

ROOT = "eqsys"
DEFAULT_FORMAT = "[%(levelname)s] %(name)s: %(message)s"

# settings applied to loggers created from now on
_level = logging.WARNING
_format = DEFAULT_FORMAT
_stream: Optional[IO[str]] = None

_loggers: dict[str, logging.Logger] = {}


def _coerce_level(level: int | str) -> int:
    if isinstance(level, str):
        return getattr(logging, level.upper(), logging.WARNING)
    return level


def _qualified(name: Optional[str]) -> str:
    if not name or name == ROOT:
        return ROOT
    if name.startswith(ROOT + "."):
        return name
    return f"{ROOT}.{name}"


def _attach_handler(logger: logging.Logger) -> None:
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
    handler = logging.StreamHandler(_stream if _stream is not None else sys.stderr)
    handler.setLevel(_level)
    handler.setFormatter(logging.Formatter(_format))
    logger.addHandler(handler)
    logger.setLevel(_level)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get or create the eqsys logger for a module.

    Names outside the package namespace are prefixed with ``eqsys.``; the
    package logger itself is returned for None. Loggers are cached, so every
    call with the same name returns the same object with a single handler.

    Args:
        name: Usually ``__name__`` of the calling module.

    Example:
        >>> from eqsys.logging import get_logger
        >>> logger = get_logger(__name__)
        >>> logger.debug("Hessian has %d nonzeros", 12)
    """
    qualified = _qualified(name)
    logger = _loggers.get(qualified)
    if logger is None:
        logger = logging.getLogger(qualified)
        _attach_handler(logger)
        logger.propagate = False
        _loggers[qualified] = logger
    return logger


def set_log_level(level: int | str) -> None:
    """Set the level of every eqsys logger and of loggers created later.

    Args:
        level: ``logging.DEBUG``, ``logging.INFO``, ... or the level name.
    """
    global _level
    _level = _coerce_level(level)
    for logger in _loggers.values():
        logger.setLevel(_level)
        for handler in logger.handlers:
            handler.setLevel(_level)


def configure_logging(
    level: int | str = logging.WARNING,
    format_string: Optional[str] = None,
    stream: Optional[IO[str]] = None,
) -> None:
    """Reconfigure eqsys logging, typically once at startup.

    Every existing logger gets a fresh handler; later loggers are created
    with the same settings.

    Args:
        level: Logging level (default: WARNING).
        format_string: Record format; ``DEFAULT_FORMAT`` when None.
        stream: Output stream; ``sys.stderr`` when None.

    Example:
        >>> import logging
        >>> from eqsys.logging import configure_logging
        >>> configure_logging(level=logging.INFO)
    """
    global _level, _format, _stream
    _level = _coerce_level(level)
    _format = format_string or DEFAULT_FORMAT
    _stream = stream
    for logger in _loggers.values():
        _attach_handler(logger)


__all__ = ["configure_logging", "get_logger", "set_log_level"]
