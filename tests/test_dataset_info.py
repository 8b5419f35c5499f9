import numpy as np
import pytest

from dataset_info import CATEGORICAL, NUMERIC, DatasetInfo
from errors import ConfigurationError


def test_numeric_descriptor():
    info = DatasetInfo.numeric(3)

    assert info.num_dimensions == 3
    assert info.dimension_type(2) == NUMERIC
    assert not info.is_categorical(0)
    assert info.category_count(1) == 0


def test_from_data_infers_categorical_cardinality():
    data = np.array([[0.1, 2.0], [0.7, 0.0], [1.5, 1.0]])

    info = DatasetInfo.from_data(data, categorical=[1])

    assert info.dimension_types == (NUMERIC, CATEGORICAL)
    assert info.category_count(1) == 3


def test_from_data_rejects_non_integer_categories():
    with pytest.raises(ConfigurationError):
        DatasetInfo.from_data(np.array([[0.5], [1.0]]), categorical=[0])


def test_view_maps_local_to_parent_dimensions():
    info = DatasetInfo(
        dimension_types=(NUMERIC, CATEGORICAL, NUMERIC, CATEGORICAL),
        num_categories=(0, 4, 0, 2),
    )

    view = info.view([3, 1])

    assert view.parent is info
    assert view.num_dimensions == 2
    assert view.is_categorical(0)
    assert view.category_count(0) == 2
    assert view.category_count(1) == 4


def test_view_rejects_invalid_subsets():
    info = DatasetInfo.numeric(2)
    with pytest.raises(ConfigurationError):
        info.view([])
    with pytest.raises(ConfigurationError):
        info.view([0, 2])


def test_invalid_descriptors_raise():
    with pytest.raises(ConfigurationError):
        DatasetInfo(dimension_types=("ordinal",))
    with pytest.raises(ConfigurationError):
        DatasetInfo(dimension_types=(CATEGORICAL,))
    with pytest.raises(ConfigurationError):
        DatasetInfo(dimension_types=(CATEGORICAL,), num_categories=(0,))
    with pytest.raises(ConfigurationError):
        DatasetInfo.numeric(2).dimension_type(5)


def test_dict_round_trip():
    info = DatasetInfo(dimension_types=(NUMERIC, CATEGORICAL), num_categories=(0, 5))

    assert DatasetInfo.from_dict(info.to_dict()) == info
