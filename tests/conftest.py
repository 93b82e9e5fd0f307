"""Pytest configuration and shared fixtures for eqsys tests.

This module provides:
- Deterministic RNG fixtures for numpy and torch
- Debug mode enabled for every test so contract assertions are checked
"""

import os
from typing import Iterator

import numpy as np
import pytest
import torch

from eqsys.diagnostics import debug_context


def _seed() -> int:
    return int(os.environ.get("TEST_RNG_SEED", "0"))


@pytest.fixture(scope="function")
def rng() -> np.random.Generator:
    """Provide a deterministic numpy RNG for tests.

    Uses seed from TEST_RNG_SEED environment variable (default: 0).
    """
    return np.random.default_rng(_seed())


@pytest.fixture(scope="function")
def torch_rng() -> torch.Generator:
    """Provide a deterministic CPU torch RNG for tests."""
    generator = torch.Generator()
    generator.manual_seed(_seed())
    return generator


@pytest.fixture(scope="function", autouse=True)
def set_random_seeds() -> None:
    """Set global numpy and torch seeds before every test."""
    np.random.seed(_seed())
    torch.manual_seed(_seed())


@pytest.fixture(scope="function", autouse=True)
def debug_mode() -> Iterator[None]:
    """Run every test with debug assertions enabled."""
    with debug_context(True):
        yield
