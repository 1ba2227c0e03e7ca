"""Shared fixtures for the flushplan test suite."""

from __future__ import annotations

from typing import Callable, List

import numpy as np
import pytest

from flushplan.logging import reset_logging


@pytest.fixture
def uniform_flush() -> np.ndarray:
    """Three filaments, every change costs 1."""
    return np.ones((3, 3)) - np.eye(3)


@pytest.fixture
def cyclic_flush() -> List[List[float]]:
    """Three filaments where 0 -> 1 -> 2 -> 0 is cheap and the reverse is not."""
    return [
        [0, 1, 5],
        [5, 0, 1],
        [1, 5, 0],
    ]


@pytest.fixture
def random_flush() -> Callable[..., np.ndarray]:
    """Factory for seeded asymmetric flush matrices with a zero diagonal."""

    def _make(size: int, seed: int = 0, high: int = 500) -> np.ndarray:
        rng = np.random.default_rng(seed)
        matrix = rng.integers(1, high, size=(size, size)).astype(float)
        np.fill_diagonal(matrix, 0.0)
        return matrix

    return _make


@pytest.fixture
def clean_logging():
    """Reset flushplan logging before and after a test."""
    reset_logging()
    yield
    reset_logging()
