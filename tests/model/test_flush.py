import numpy as np
import pytest

from flushplan.model.flush import (
    as_flush_matrices,
    as_flush_matrix,
    check_filaments,
    matrix_for,
    sequence_cost,
)


def test_as_flush_matrix_converts_lists():
    matrix = as_flush_matrix([[0, 1], [2, 0]])
    assert isinstance(matrix, np.ndarray)
    assert matrix.dtype == float
    assert matrix.shape == (2, 2)


@pytest.mark.parametrize("data", [[[0, 1, 2], [1, 0, 2]], [0, 1], [[[0]]]])
def test_as_flush_matrix_rejects_non_square(data):
    with pytest.raises(ValueError, match="square"):
        as_flush_matrix(data)


def test_as_flush_matrices_single_matrix_is_shared():
    matrices = as_flush_matrices([[0, 1], [1, 0]])
    assert isinstance(matrices, np.ndarray)
    assert matrix_for(matrices, 0) is matrices
    assert matrix_for(matrices, 7) is matrices


def test_as_flush_matrices_list_of_different_sizes():
    matrices = as_flush_matrices([[[0, 1], [1, 0]], [[0, 1, 1], [1, 0, 1], [1, 1, 0]]])
    assert isinstance(matrices, list)
    assert [m.shape for m in matrices] == [(2, 2), (3, 3)]
    assert matrix_for(matrices, 1).shape == (3, 3)


def test_as_flush_matrices_from_3d_array():
    matrices = as_flush_matrices(np.zeros((2, 4, 4)))
    assert isinstance(matrices, list)
    assert len(matrices) == 2


def test_matrix_for_missing_index():
    matrices = as_flush_matrices([np.zeros((2, 2))])
    with pytest.raises(ValueError, match="No flush matrix for index 1"):
        matrix_for(matrices, 1)


def test_check_filaments():
    matrix = np.zeros((3, 3))
    check_filaments(matrix, [0, 2])
    with pytest.raises(ValueError, match=r"\[-1, 3\]"):
        check_filaments(matrix, [3, 1, -1])


def test_sequence_cost():
    flush = [[0, 1, 5], [5, 0, 1], [1, 5, 0]]
    assert sequence_cost([], 0, flush) == 0.0
    assert sequence_cost([0, 1, 2], None, flush) == 2.0
    assert sequence_cost([0, 1, 2], 2, flush) == 3.0
    assert sequence_cost([1], 1, flush) == 0.0
