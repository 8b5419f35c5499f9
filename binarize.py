import numpy as np

from errors import DimensionMismatchError


def _check_dimension(data: np.ndarray, dimension: int | None) -> None:
    if data.ndim != 2:
        raise ValueError("data must be a 2D array")
    if dimension is not None and not (0 <= dimension < data.shape[1]):
        raise DimensionMismatchError(
            f"dimension {dimension} is out of range for data with {data.shape[1]} columns"
        )


def binarize(
    data: np.ndarray,
    threshold: float,
    dimension: int | None = None,
) -> np.ndarray:
    """Return a copy of ``data`` with values above ``threshold`` set to 1 and the rest to 0.

    Rows are samples and columns are dimensions. When ``dimension`` is given only
    that column is recoded; the other columns are copied unchanged.
    """
    data = np.array(data, dtype=np.float64, copy=True)
    binarize_inplace(data, threshold, dimension=dimension)
    return data


def binarize_inplace(
    data: np.ndarray,
    threshold: float,
    dimension: int | None = None,
) -> np.ndarray:
    _check_dimension(data, dimension)

    if dimension is None:
        data[...] = data > threshold
    else:
        data[:, dimension] = data[:, dimension] > threshold
    return data
