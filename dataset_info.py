from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from errors import ConfigurationError

NUMERIC = "numeric"
CATEGORICAL = "categorical"
_DIMENSION_TYPES = {NUMERIC, CATEGORICAL}


@dataclass(frozen=True)
class DatasetInfo:
    """Immutable per-dimension type description of a dataset.

    ``num_categories`` holds the cardinality of each categorical dimension and 0
    for numeric ones. Categorical values are expected to be integer codes in
    ``[0, num_categories)``.
    """

    dimension_types: tuple[str, ...]
    num_categories: tuple[int, ...] | None = None

    def __post_init__(self) -> None:
        types = tuple(str(t) for t in self.dimension_types)
        unknown = set(types) - _DIMENSION_TYPES
        if unknown:
            raise ConfigurationError(f"Unknown dimension types: {sorted(unknown)}")

        if self.num_categories is None:
            if CATEGORICAL in types:
                raise ConfigurationError(
                    "num_categories must be given when categorical dimensions are present"
                )
            categories = (0,) * len(types)
        else:
            categories = tuple(int(c) for c in self.num_categories)
            if len(categories) != len(types):
                raise ConfigurationError(
                    "num_categories length must match number of dimensions"
                )

        for dim, (kind, count) in enumerate(zip(types, categories)):
            if kind == CATEGORICAL and count < 1:
                raise ConfigurationError(
                    f"categorical dimension {dim} must have at least one category"
                )
            if kind == NUMERIC and count != 0:
                raise ConfigurationError(f"numeric dimension {dim} cannot have categories")

        object.__setattr__(self, "dimension_types", types)
        object.__setattr__(self, "num_categories", categories)

    @classmethod
    def numeric(cls, num_dimensions: int) -> DatasetInfo:
        return cls(dimension_types=(NUMERIC,) * int(num_dimensions))

    @classmethod
    def from_data(cls, data: np.ndarray, categorical=()) -> DatasetInfo:
        """Describe ``data`` (rows are samples); listed columns become categorical.

        The cardinality of a categorical column is its maximum value plus one.
        """
        data = np.asarray(data, dtype=np.float64)
        if data.ndim != 2:
            raise ValueError("data must be a 2D array")

        categorical = {int(dim) for dim in categorical}
        types = []
        categories = []
        for dim in range(data.shape[1]):
            if dim in categorical:
                column = data[:, dim]
                column = column[np.isfinite(column)]
                if column.size and (np.any(column < 0) or np.any(column != np.floor(column))):
                    raise ConfigurationError(
                        f"categorical dimension {dim} must hold non-negative integer codes"
                    )
                types.append(CATEGORICAL)
                categories.append(int(column.max()) + 1 if column.size else 1)
            else:
                types.append(NUMERIC)
                categories.append(0)

        out_of_range = categorical - set(range(data.shape[1]))
        if out_of_range:
            raise ConfigurationError(f"categorical dimensions out of range: {sorted(out_of_range)}")

        return cls(dimension_types=tuple(types), num_categories=tuple(categories))

    @property
    def num_dimensions(self) -> int:
        return len(self.dimension_types)

    def _check_index(self, dim: int) -> None:
        if not (0 <= dim < self.num_dimensions):
            raise ConfigurationError(
                f"dimension {dim} is out of range for {self.num_dimensions} dimensions"
            )

    def dimension_type(self, dim: int) -> str:
        self._check_index(dim)
        return self.dimension_types[dim]

    def is_categorical(self, dim: int) -> bool:
        return self.dimension_type(dim) == CATEGORICAL

    def category_count(self, dim: int) -> int:
        self._check_index(dim)
        return self.num_categories[dim]

    def view(self, dimensions) -> DatasetInfoView:
        return DatasetInfoView(self, dimensions)

    def to_dict(self) -> dict:
        return {
            "dimension_types": list(self.dimension_types),
            "num_categories": list(self.num_categories),
        }

    @classmethod
    def from_dict(cls, state: dict) -> DatasetInfo:
        return cls(
            dimension_types=tuple(state["dimension_types"]),
            num_categories=tuple(state["num_categories"]),
        )


class DatasetInfoView:
    """Read-only projection of a shared ``DatasetInfo`` onto a dimension subset.

    Local index ``i`` refers to parent dimension ``dimensions[i]``. The parent
    descriptor is held by reference, not copied.
    """

    def __init__(self, parent: DatasetInfo, dimensions) -> None:
        dimensions = np.asarray(dimensions, dtype=np.int64)
        if dimensions.ndim != 1 or dimensions.size == 0:
            raise ConfigurationError("a dimension subset must be a non-empty 1D sequence")
        if np.any(dimensions < 0) or np.any(dimensions >= parent.num_dimensions):
            raise ConfigurationError(
                f"dimension subset must index into [0, {parent.num_dimensions})"
            )

        self.parent = parent
        self.dimensions = tuple(int(d) for d in dimensions)

    @property
    def num_dimensions(self) -> int:
        return len(self.dimensions)

    def _parent_index(self, dim: int) -> int:
        if not (0 <= dim < self.num_dimensions):
            raise ConfigurationError(
                f"dimension {dim} is out of range for {self.num_dimensions} dimensions"
            )
        return self.dimensions[dim]

    def dimension_type(self, dim: int) -> str:
        return self.parent.dimension_type(self._parent_index(dim))

    def is_categorical(self, dim: int) -> bool:
        return self.dimension_type(dim) == CATEGORICAL

    def category_count(self, dim: int) -> int:
        return self.parent.category_count(self._parent_index(dim))

    def __repr__(self) -> str:
        return f"DatasetInfoView(dimensions={list(self.dimensions)})"
