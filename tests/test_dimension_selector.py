import math

import numpy as np
import pytest

from dimension_selector import DimensionSelector, resolve_subset_size
from errors import ConfigurationError


def test_resolve_subset_size_policies():
    assert resolve_subset_size("sqrt", 10) == math.ceil(math.sqrt(10))
    assert resolve_subset_size("all", 7) == 7
    assert resolve_subset_size(0.5, 7) == 4
    assert resolve_subset_size(3, 7) == 3


@pytest.mark.parametrize("subset_size", [0, -1, 0.0, 1.5, "log2", True])
def test_invalid_subset_sizes_raise(subset_size):
    with pytest.raises(ConfigurationError):
        DimensionSelector(subset_size=subset_size)


def test_zero_dimensions_raise():
    selector = DimensionSelector(subset_size=2)
    with pytest.raises(ConfigurationError):
        selector.select(np.zeros(0, dtype=np.int64), np.random.default_rng(0))


def test_subset_larger_than_dimensions_takes_everything_without_draws():
    selector = DimensionSelector(subset_size=10)
    counts = np.zeros(4, dtype=np.int64)
    rng = np.random.default_rng(5)
    state_before = rng.bit_generator.state

    chosen = selector.select(counts, rng)

    np.testing.assert_array_equal(chosen, [0, 1, 2, 3])
    np.testing.assert_array_equal(counts, [1, 1, 1, 1])
    assert rng.bit_generator.state == state_before


def test_balanced_weighting_prefers_unused_dimensions():
    selector = DimensionSelector(subset_size=2, weighting="balanced")
    counts = np.array([1, 1, 0, 0], dtype=np.int64)

    chosen = selector.select(counts, np.random.default_rng(0))

    np.testing.assert_array_equal(chosen, [2, 3])
    np.testing.assert_array_equal(counts, [1, 1, 1, 1])


def test_balanced_weighting_covers_every_dimension():
    selector = DimensionSelector(subset_size=3, weighting="balanced")
    counts = np.zeros(11, dtype=np.int64)
    rng = np.random.default_rng(1)

    subsets = [selector.select(counts, rng) for _ in range(4)]

    assert np.all(counts >= 1)
    assert counts.sum() == 12
    for subset in subsets:
        assert subset.size == 3
        assert np.unique(subset).size == 3
        assert np.all(np.diff(subset) > 0)


@pytest.mark.parametrize("weighting", ["inverse", "uniform"])
def test_weighted_sampling_returns_unique_valid_subsets(weighting):
    selector = DimensionSelector(subset_size=3, weighting=weighting)
    counts = np.zeros(9, dtype=np.int64)
    rng = np.random.default_rng(2)

    for _ in range(6):
        subset = selector.select(counts, rng)
        assert subset.size == 3
        assert np.unique(subset).size == 3
        assert subset.min() >= 0 and subset.max() < 9

    assert counts.sum() == 18


def test_inverse_weighting_prefers_rarely_used_dimensions():
    selector = DimensionSelector(subset_size=1, weighting="inverse")
    usage = np.array([50, 50, 50, 50, 0, 0], dtype=np.int64)
    rng = np.random.default_rng(17)

    chosen = np.zeros(6, dtype=np.int64)
    for _ in range(2000):
        subset = selector.select(usage.copy(), rng)
        chosen[subset] += 1

    # Weights 1/51 against 1 put about 96% of the picks on the two unused dimensions.
    assert chosen[4:].sum() / chosen.sum() > 0.9
    assert chosen[4] > 10 * chosen[:4].max()
    assert chosen[5] > 10 * chosen[:4].max()
