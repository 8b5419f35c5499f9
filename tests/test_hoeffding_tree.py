import math

import numpy as np
import pytest

from dataset_info import CATEGORICAL, NUMERIC, DatasetInfo
from errors import ConfigurationError, DimensionMismatchError, LabelRangeError
from hoeffding_tree import HoeffdingTree, HoeffdingTreeParams, gini_impurity, split_gain


def _informative_stream(rng, n):
    labels = rng.integers(0, 2, size=n)
    X = np.column_stack(
        [
            labels * 10.0 + rng.normal(size=n),
            rng.normal(size=n),
        ]
    )
    return X, labels


def _collect_splits(node):
    if node.is_leaf:
        return []
    splits = [(node.depth, node.split_dimension, node.split_kind)]
    for child in node.children:
        splits.extend(_collect_splits(child))
    return splits


def test_split_gain_matches_gini_decrease():
    branch_counts = np.array([[4, 0], [0, 4]])

    assert gini_impurity(np.array([4, 4])) == pytest.approx(0.5)
    assert split_gain(branch_counts, "gini") == pytest.approx(0.5)
    assert split_gain(branch_counts, "info_gain") == pytest.approx(1.0)


def test_hoeffding_bound_value():
    tree = HoeffdingTree(2, DatasetInfo.numeric(1))

    expected = math.sqrt(math.log(1.0 / 0.05) / (2.0 * 100))
    assert tree.hoeffding_bound(100) == pytest.approx(expected)


def test_splits_on_informative_numeric_dimension():
    rng = np.random.default_rng(0)
    X, y = _informative_stream(rng, 200)
    params = HoeffdingTreeParams(
        min_samples=50, check_interval=50, observations_before_binning=50, num_bins=64
    )
    tree = HoeffdingTree(2, DatasetInfo.numeric(2), params)

    for point, label in zip(X, y):
        tree.train(point, label)

    assert _collect_splits(tree.root)[0] == (0, 0, "numeric")
    assert 0.0 < tree.root.split_threshold < 10.0
    assert tree.classify([10.0, 0.0]) == 1
    assert tree.classify([0.0, 0.0]) == 0


def test_splits_on_categorical_dimension():
    rng = np.random.default_rng(1)
    info = DatasetInfo(dimension_types=(CATEGORICAL,), num_categories=(3,))
    params = HoeffdingTreeParams(min_samples=50, check_interval=50)
    tree = HoeffdingTree(2, info, params)

    categories = rng.integers(0, 3, size=120)
    for category in categories:
        tree.train([category], int(category) % 2)

    assert tree.root.split_kind == "categorical"
    assert len(tree.root.children) == 3
    assert tree.classify([1]) == 1
    assert tree.classify([2]) == 0


def test_identical_dimensions_need_forced_split():
    rng = np.random.default_rng(2)
    labels = rng.integers(0, 2, size=60)
    X = np.column_stack([labels * 5.0, labels * 5.0])
    base = dict(min_samples=20, check_interval=20, observations_before_binning=20)

    unforced = HoeffdingTree(2, DatasetInfo.numeric(2), HoeffdingTreeParams(**base))
    forced = HoeffdingTree(2, DatasetInfo.numeric(2), HoeffdingTreeParams(max_samples=30, **base))
    for point, label in zip(X, labels):
        unforced.train(point, label)
        forced.train(point, label)

    assert unforced.root.is_leaf
    assert not forced.root.is_leaf
    assert forced.root.split_dimension == 0


def test_probabilities_follow_leaf_counts():
    tree = HoeffdingTree(3, DatasetInfo.numeric(2))

    np.testing.assert_allclose(tree.class_probabilities([0.0, 0.0]), [1 / 3, 1 / 3, 1 / 3])
    assert tree.classify([0.0, 0.0]) == 0

    for label in [2, 2, 1, 2]:
        tree.train([0.5, 0.5], label)

    label, probability = tree.classify_with_probability([0.0, 0.0])
    assert label == 2
    assert probability == pytest.approx(0.75)


def test_non_finite_values_are_ignored_by_statistics():
    params = HoeffdingTreeParams(observations_before_binning=5)
    tree = HoeffdingTree(2, DatasetInfo.numeric(1), params)

    tree.train([np.nan], 1)
    tree.train([1.0], 0)

    assert tree.root.stats[0].buffer_values == [1.0]
    assert tree.root.class_counts.tolist() == [1, 1]


def test_invalid_inputs_raise():
    tree = HoeffdingTree(2, DatasetInfo.numeric(2))

    with pytest.raises(LabelRangeError):
        tree.train([0.0, 0.0], 2)
    with pytest.raises(LabelRangeError):
        tree.train([0.0, 0.0], -1)
    with pytest.raises(DimensionMismatchError):
        tree.train([0.0], 0)
    with pytest.raises(DimensionMismatchError):
        tree.classify([0.0, 0.0, 0.0])
    with pytest.raises(ConfigurationError):
        HoeffdingTree(1, DatasetInfo.numeric(2))
    with pytest.raises(ConfigurationError):
        HoeffdingTreeParams(success_probability=1.0)
    with pytest.raises(ConfigurationError):
        HoeffdingTreeParams(split_criterion="gain_ratio")


def test_dict_round_trip_preserves_state_and_behaviour():
    rng = np.random.default_rng(4)
    X, y = _informative_stream(rng, 150)
    info = DatasetInfo(dimension_types=(NUMERIC, NUMERIC), num_categories=(0, 0))
    params = HoeffdingTreeParams(
        min_samples=40,
        check_interval=40,
        observations_before_binning=30,
        split_criterion="info_gain",
    )
    tree = HoeffdingTree(2, info, params)
    for point, label in zip(X[:100], y[:100]):
        tree.train(point, label)

    restored = HoeffdingTree.from_dict(tree.to_dict(), info)

    assert restored.to_dict() == tree.to_dict()
    assert restored.num_nodes == tree.num_nodes
    for point, label in zip(X[100:], y[100:]):
        tree.train(point, label)
        restored.train(point, label)
    assert restored.to_dict() == tree.to_dict()
