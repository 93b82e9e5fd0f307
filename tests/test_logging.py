"""Tests for logging utilities."""

import logging
from io import StringIO

from eqsys.logging import (
    configure_logging,
    get_logger,
    set_log_level,
)


def test_get_logger_returns_namespaced_logger():
    """Loggers live under the eqsys namespace."""
    logger = get_logger("test_module")
    assert isinstance(logger, logging.Logger)
    assert logger.name == "eqsys.test_module"


def test_get_logger_keeps_package_names():
    assert get_logger("eqsys.sparse.pattern").name == "eqsys.sparse.pattern"
    assert get_logger().name == "eqsys"


def test_get_logger_caching():
    """get_logger caches loggers."""
    assert get_logger("test_module") is get_logger("test_module")


def test_repeated_calls_keep_a_single_handler():
    for _ in range(3):
        logger = get_logger("eqsys.assembly.system")
    assert len(logger.handlers) == 1


def test_logger_does_not_propagate():
    assert get_logger("test_module").propagate is False


def test_set_log_level():
    """set_log_level updates every cached logger and accepts names."""
    logger = get_logger("test_module")
    try:
        set_log_level(logging.INFO)
        assert logger.level == logging.INFO

        set_log_level("DEBUG")
        assert logger.level == logging.DEBUG
        assert all(handler.level == logging.DEBUG for handler in logger.handlers)
    finally:
        set_log_level(logging.WARNING)


def test_configure_logging_writes_formatted_output():
    stream = StringIO()
    try:
        configure_logging(level=logging.DEBUG, stream=stream)
        get_logger("test_module").debug("Debug message")
        assert "[DEBUG] eqsys.test_module: Debug message" in stream.getvalue()
    finally:
        configure_logging(level=logging.WARNING)


def test_configure_logging_custom_format():
    stream = StringIO()
    try:
        configure_logging(level=logging.INFO, format_string="%(message)s!", stream=stream)
        get_logger("test_module").info("hello")
        assert stream.getvalue() == "hello!\n"
    finally:
        configure_logging(level=logging.WARNING)


def test_configure_logging_applies_to_later_loggers():
    stream = StringIO()
    try:
        configure_logging(level=logging.ERROR, stream=stream)
        logger = get_logger("created_after_configure")
        assert logger.level == logging.ERROR
        logger.warning("dropped")
        logger.error("kept")
        assert stream.getvalue() == "[ERROR] eqsys.created_after_configure: kept\n"
    finally:
        configure_logging(level=logging.WARNING)
