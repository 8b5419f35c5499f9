import numpy as np
import pytest

from binarize import binarize, binarize_inplace
from errors import DimensionMismatchError


def test_binarize_whole_matrix_returns_copy():
    data = np.array([[0.5, -1.0, 2.0], [0.0, 3.0, 0.1]])

    out = binarize(data, threshold=0.1)

    np.testing.assert_array_equal(out, [[1.0, 0.0, 1.0], [0.0, 1.0, 0.0]])
    assert data[0, 0] == 0.5


def test_binarize_single_dimension_leaves_other_columns():
    data = np.array([[0.5, -1.0], [0.0, 3.0], [2.0, 0.2]])

    out = binarize(data, threshold=0.3, dimension=0)

    np.testing.assert_array_equal(out[:, 0], [1.0, 0.0, 1.0])
    np.testing.assert_array_equal(out[:, 1], data[:, 1])


def test_binarize_inplace_mutates_input():
    data = np.array([[1.0, 5.0], [-2.0, 0.0]])

    result = binarize_inplace(data, threshold=0.0, dimension=1)

    assert result is data
    np.testing.assert_array_equal(data, [[1.0, 1.0], [-2.0, 0.0]])


def test_binarize_rejects_out_of_range_dimension():
    with pytest.raises(DimensionMismatchError):
        binarize(np.zeros((2, 2)), threshold=0.0, dimension=2)
