import numpy as np


def build_thresholds(values: np.ndarray, num_bins: int = 10) -> np.ndarray:
    """Build ascending bin thresholds for one numeric dimension.

    ``num_bins`` bins need at most ``num_bins - 1`` thresholds. Non-finite values
    are ignored.
    """
    if num_bins < 2:
        raise ValueError("num_bins must be at least 2")

    values = np.asarray(values, dtype=np.float64).ravel()
    values = values[np.isfinite(values)]
    if values.size == 0:
        return np.array([], dtype=np.float64)

    unique = np.unique(values)
    if unique.size <= 1:
        return np.array([], dtype=np.float64)

    if unique.size <= num_bins:
        # Midpoints between adjacent unique values define exact ordered bins.
        mids = (unique[:-1] + unique[1:]) * 0.5
    else:
        quantiles = np.linspace(0.0, 1.0, num_bins + 1)[1:-1]
        mids = np.unique(np.quantile(values, quantiles, method="linear"))

    return np.asarray(mids, dtype=np.float64)


def bin_index(thresholds: np.ndarray, value: float) -> int:
    """Map a finite value to its bin; values equal to a threshold fall left."""
    if thresholds.size == 0:
        return 0
    return int(np.searchsorted(thresholds, value, side="left"))


def bin_indices(thresholds: np.ndarray, values: np.ndarray) -> np.ndarray:
    """Vectorised ``bin_index``; non-finite values are encoded as -1."""
    values = np.asarray(values, dtype=np.float64).ravel()
    out = np.full(values.size, -1, dtype=np.int64)
    finite_mask = np.isfinite(values)
    if thresholds.size == 0:
        out[finite_mask] = 0
    else:
        out[finite_mask] = np.searchsorted(thresholds, values[finite_mask], side="left")
    return out
