"""Flush (purge) cost matrices.

A flush matrix is a square table where ``flush[a][b]`` is the purge volume
needed to switch the feed path from filament ``a`` to filament ``b``. Values
are calibrated elsewhere; this module only normalizes and evaluates them.
"""

from __future__ import annotations

from typing import Any, Iterable, List, Optional, Sequence, Union

import numpy as np

FlushMatrixLike = Union[np.ndarray, Sequence[Sequence[float]]]


def as_flush_matrix(data: FlushMatrixLike) -> np.ndarray:
    """Return ``data`` as a 2-D float array, validating its shape.

    Raises:
        ValueError: If the input is not a square 2-D table.
    """
    matrix = np.asarray(data, dtype=float)
    if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
        raise ValueError(f"Flush matrix must be square, got shape {matrix.shape}")
    return matrix


def as_flush_matrices(data: Any) -> Union[np.ndarray, List[np.ndarray]]:
    """Normalize one shared matrix or a per-index list of matrices.

    Returns:
        A single 2-D array when ``data`` is one matrix (shared by every
        group), otherwise a list of 2-D arrays indexed by group/extruder id.
    """
    if _is_matrix_list(data):
        return [as_flush_matrix(m) for m in data]
    return as_flush_matrix(data)


def matrix_for(matrices: Union[np.ndarray, List[np.ndarray]], index: int) -> np.ndarray:
    """Matrix used by group/extruder ``index``.

    Raises:
        ValueError: If a per-index list has no entry for ``index``.
    """
    if isinstance(matrices, np.ndarray):
        return matrices
    if not 0 <= index < len(matrices):
        raise ValueError(
            f"No flush matrix for index {index}; {len(matrices)} matrices given"
        )
    return matrices[index]


def _is_matrix_list(data: Any) -> bool:
    # Inspect only the first entry: matrices of different sizes are ragged
    if isinstance(data, np.ndarray):
        return data.ndim == 3
    return len(data) > 0 and np.ndim(data[0]) == 2


def check_filaments(matrix: np.ndarray, filaments: Iterable[int]) -> None:
    """Raise ``ValueError`` if any filament id falls outside ``matrix``."""
    size = matrix.shape[0]
    bad = sorted(f for f in filaments if not 0 <= f < size)
    if bad:
        raise ValueError(
            f"Filament ids {bad} are outside the {size}x{size} flush matrix"
        )


def sequence_cost(
    sequence: Sequence[int],
    prev: Optional[int],
    flush: Union[np.ndarray, List[List[float]]],
) -> float:
    """Total purge volume of loading ``sequence`` after ``prev``.

    An undefined ``prev`` contributes nothing for the first load.
    """
    cost = 0.0
    last = prev
    for filament in sequence:
        if last is not None:
            cost += float(flush[last][filament])
        last = filament
    return cost
