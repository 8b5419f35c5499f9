from __future__ import annotations

from typing import Callable, Protocol, runtime_checkable

import numpy as np

from dataset_info import DatasetInfoView


@runtime_checkable
class StreamingLearner(Protocol):
    """Incrementally trained classifier used as a forest member.

    Points passed to a member are already projected onto its dimension subset,
    so local dimension ``i`` is described by ``dataset_info.dimension_type(i)``.
    Learners that can also report a full class-probability vector expose
    ``class_probabilities(point)``; see ``has_class_probabilities``.
    """

    num_classes: int

    def train(self, point: np.ndarray, label: int) -> None: ...

    def classify(self, point: np.ndarray) -> int: ...

    def classify_with_probability(self, point: np.ndarray) -> tuple[int, float]: ...

    def to_dict(self) -> dict: ...

    @classmethod
    def from_dict(cls, state: dict, dataset_info: DatasetInfoView) -> StreamingLearner: ...


LearnerFactory = Callable[[int, DatasetInfoView], StreamingLearner]


def has_class_probabilities(learner) -> bool:
    return callable(getattr(learner, "class_probabilities", None))
