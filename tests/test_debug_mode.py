"""Tests for debug mode functionality."""

import numpy as np
import pytest

import eqsys.diagnostics.debug_mode as debug_mode
from eqsys.assembly import AccumulationBuffer
from eqsys.diagnostics import (
    debug_context,
    is_debug_enabled,
    set_debug_enabled,
)
from eqsys.sparse import SparsePattern


@pytest.mark.parametrize("outer", [True, False])
def test_context_overrides_and_restores(outer: bool) -> None:
    previous = is_debug_enabled()
    set_debug_enabled(outer)
    try:
        with debug_context(not outer):
            assert is_debug_enabled() is (not outer)
            with debug_context(outer):
                assert is_debug_enabled() is outer
            assert is_debug_enabled() is (not outer)
        assert is_debug_enabled() is outer
    finally:
        set_debug_enabled(previous)


@pytest.mark.parametrize(
    "value, expected",
    [("1", True), ("on", True), (" TRUE ", True), ("0", False), ("", False), ("off", False)],
)
def test_flag_read_from_environment(monkeypatch, value: str, expected: bool) -> None:
    monkeypatch.setenv(debug_mode.ENV_VAR, value)
    assert debug_mode._flag_from_env() is expected


def test_debug_context_restores_on_error() -> None:
    original = is_debug_enabled()
    with pytest.raises(RuntimeError):
        with debug_context(not original):
            raise RuntimeError("boom")
    assert is_debug_enabled() == original


def test_pattern_bounds_only_checked_in_debug_mode() -> None:
    pattern = SparsePattern.from_pattern(2, 2, [[0], [1]])

    with debug_context(True):
        with pytest.raises(AssertionError):
            pattern.get_index(0, 2)

    with debug_context(False):
        # row 0 exists, column 2 is simply not stored
        assert pattern.get_index(0, 2) is None


def test_buffer_bounds_only_checked_in_debug_mode() -> None:
    buffer = AccumulationBuffer()
    buffer.resize(2, 0, 0, 3, 1)

    with debug_context(True):
        with pytest.raises(AssertionError):
            buffer.add_df(2, 1.0)

    with debug_context(False):
        # lands in the first Hessian slot
        buffer.add_df(2, 1.0)
    np.testing.assert_array_equal(buffer.hm_values, [1.0, 0.0, 0.0])
