from __future__ import annotations

from dataclasses import asdict, dataclass
import json
import logging
from pathlib import Path

import numpy as np

from dataset_info import DatasetInfo
from dimension_selector import DimensionSelector, resolve_subset_size
from errors import ConfigurationError, DimensionMismatchError, LabelRangeError
from hoeffding_tree import HoeffdingTree, HoeffdingTreeParams, plain_scalars
from online_bagging import OnlineBagging
from streaming_learner import LearnerFactory, StreamingLearner, has_class_probabilities

logger = logging.getLogger(__name__)

STATE_VERSION = 1


def _plain(value):
    """Convert numpy scalars and arrays inside nested state dicts to JSON types."""
    if isinstance(value, dict):
        return {key: _plain(item) for key, item in value.items()}
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, np.generic):
        return value.item()
    return value


@dataclass
class HoeffdingForestParams:
    subset_size: int | float | str = "sqrt"  # sqrt, all, a count, or a fraction of D
    dimension_weighting: str = "balanced"  # one of: balanced, inverse, uniform
    bagging_rate: float = 1.0
    aggregation: str = "vote"  # one of: vote, probability
    random_state: int = 0

    def __post_init__(self) -> None:
        plain_scalars(self)
        if self.aggregation not in {"vote", "probability"}:
            raise ConfigurationError("aggregation must be one of: vote, probability")
        # Construct once so invalid policies fail with the params, not later.
        DimensionSelector(self.subset_size, self.dimension_weighting)
        OnlineBagging(self.bagging_rate)


@dataclass(frozen=True)
class Owned:
    info: DatasetInfo


@dataclass(frozen=True)
class Borrowed:
    info: DatasetInfo


@dataclass
class ForestMember:
    handle: int
    dimensions: np.ndarray
    learner: StreamingLearner


class HoeffdingForest:
    """Online-bagged forest of streaming trees over per-tree dimension subsets.

    Every member sees a fixed subset of the input dimensions chosen at
    construction. Each training sample is presented to each member
    ``Poisson(bagging_rate)`` times; predictions are combined by plurality vote
    (ties go to the lowest label) or by averaging class probabilities.
    """

    def __init__(
        self,
        forest_size: int,
        num_classes: int,
        dataset_info: DatasetInfo | Owned | Borrowed,
        params: HoeffdingForestParams | None = None,
        tree_params: HoeffdingTreeParams | None = None,
        rng: np.random.Generator | None = None,
        learner_factory: LearnerFactory | None = None,
    ) -> None:
        if forest_size < 1:
            raise ConfigurationError("forest_size must be at least 1")
        if num_classes < 2:
            raise ConfigurationError("num_classes must be at least 2")

        if not isinstance(dataset_info, (Owned, Borrowed)):
            dataset_info = Borrowed(dataset_info)
        if dataset_info.info.num_dimensions == 0:
            raise ConfigurationError("dataset_info must describe at least one dimension")

        self.params = params or HoeffdingForestParams()
        self.tree_params = tree_params or HoeffdingTreeParams()
        self.rng = rng if rng is not None else np.random.default_rng(self.params.random_state)
        self.num_classes = int(num_classes)
        self._ownership = dataset_info
        self._released = False
        self._learner_factory = learner_factory or self._default_learner_factory

        self.selector = DimensionSelector(
            subset_size=self.params.subset_size,
            weighting=self.params.dimension_weighting,
        )
        self.bagging = OnlineBagging(rate=self.params.bagging_rate)

        num_dimensions = self.dataset_info.num_dimensions
        self.dimension_counts = np.zeros(num_dimensions, dtype=np.int64)
        self.members: list[ForestMember] = []
        for handle in range(forest_size):
            dimensions = self.selector.select(self.dimension_counts, self.rng)
            learner = self._learner_factory(self.num_classes, self.dataset_info.view(dimensions))
            self.members.append(ForestMember(handle, dimensions, learner))

        if self.params.aggregation == "probability" and not all(
            has_class_probabilities(member.learner) for member in self.members
        ):
            raise ConfigurationError(
                "probability aggregation needs members that expose class_probabilities"
            )

        logger.debug(
            "built forest trees=%d classes=%d dimensions=%d subset_size=%d owned=%s",
            forest_size,
            self.num_classes,
            num_dimensions,
            min(resolve_subset_size(self.params.subset_size, num_dimensions), num_dimensions),
            self.owns_dataset_info,
        )

    def _default_learner_factory(self, num_classes: int, info_view) -> HoeffdingTree:
        return HoeffdingTree(num_classes, info_view, self.tree_params)

    @classmethod
    def from_exemplar(
        cls,
        tree: HoeffdingTree,
        forest_size: int,
        params: HoeffdingForestParams | None = None,
        rng: np.random.Generator | None = None,
    ) -> HoeffdingForest:
        """Build ``forest_size`` fresh trees with the class count and parameters of ``tree``.

        The exemplar's descriptor is borrowed; when the exemplar was built on a
        subset view, the full descriptor behind the view is used.
        """
        info = getattr(tree.dataset_info, "parent", tree.dataset_info)
        return cls(
            forest_size=forest_size,
            num_classes=tree.num_classes,
            dataset_info=Borrowed(info),
            params=params,
            tree_params=tree.params,
            rng=rng,
        )

    @classmethod
    def from_data(
        cls,
        data: np.ndarray,
        labels: np.ndarray,
        num_classes: int,
        forest_size: int,
        categorical=(),
        params: HoeffdingForestParams | None = None,
        tree_params: HoeffdingTreeParams | None = None,
        rng: np.random.Generator | None = None,
    ) -> HoeffdingForest:
        """Describe ``data`` with an owned descriptor and train a new forest on it."""
        info = DatasetInfo.from_data(data, categorical=categorical)
        forest = cls(
            forest_size=forest_size,
            num_classes=num_classes,
            dataset_info=Owned(info),
            params=params,
            tree_params=tree_params,
            rng=rng,
        )
        forest.train_batch(data, labels, batch_training=True)
        return forest

    @property
    def dataset_info(self) -> DatasetInfo:
        if self._ownership is None:
            raise RuntimeError("forest has been released")
        return self._ownership.info

    @property
    def owns_dataset_info(self) -> bool:
        return isinstance(self._ownership, Owned)

    @property
    def num_trees(self) -> int:
        return len(self.members)

    @property
    def dimensions(self) -> list[np.ndarray]:
        return [member.dimensions for member in self.members]

    def member(self, handle: int) -> ForestMember:
        return self.members[handle]

    def release(self) -> None:
        """Drop all members and, when owned, the descriptor.

        Training, classification and serialization raise ``RuntimeError`` afterwards.
        """
        self.members = []
        self._released = True
        if isinstance(self._ownership, Owned):
            self._ownership = None
            logger.debug("released owned dataset info")

    def _check_active(self) -> None:
        if self._released:
            raise RuntimeError("forest has been released")

    def _check_point(self, point) -> np.ndarray:
        self._check_active()
        point = np.asarray(point, dtype=np.float64)
        num_dimensions = self.dataset_info.num_dimensions
        if point.ndim != 1 or point.shape[0] != num_dimensions:
            raise DimensionMismatchError(
                f"point has shape {point.shape}, expected ({num_dimensions},)"
            )
        return point

    def _check_data(self, data) -> np.ndarray:
        self._check_active()
        data = np.asarray(data, dtype=np.float64)
        num_dimensions = self.dataset_info.num_dimensions
        if data.ndim != 2 or data.shape[1] != num_dimensions:
            raise DimensionMismatchError(
                f"data has shape {data.shape}, expected (n, {num_dimensions})"
            )
        return data

    def _check_labels(self, labels) -> np.ndarray:
        labels = np.asarray(labels)
        invalid = (np.mod(labels, 1) != 0) | (labels < 0) | (labels >= self.num_classes)
        if np.any(invalid):
            raise LabelRangeError(
                f"labels {labels[invalid][:5].tolist()} are outside [0, {self.num_classes})"
            )
        return labels.astype(np.int64)

    def _train_counts(self, point: np.ndarray, label: int, counts: np.ndarray) -> None:
        for member, count in zip(self.members, counts):
            if count == 0:
                continue
            projected = point[member.dimensions]
            for _ in range(count):
                member.learner.train(projected, label)

    def train(self, point, label: int) -> None:
        point = self._check_point(point)
        label = int(self._check_labels(np.asarray([label]))[0])

        counts = self.bagging.draw(self.rng, self.num_trees)
        self._train_counts(point, label, counts)

    def train_batch(self, data, labels, batch_training: bool = True) -> None:
        """Train on rows of ``data`` in order, one sample at a time.

        With ``batch_training`` the replication counts of the whole batch are drawn
        in one call; the draws are identical to per-sample training either way.
        """
        data = self._check_data(data)
        labels = np.asarray(labels)
        if labels.ndim != 1 or labels.shape[0] != data.shape[0]:
            raise DimensionMismatchError(
                f"labels has shape {labels.shape}, expected ({data.shape[0]},)"
            )
        labels = self._check_labels(labels)

        if batch_training:
            all_counts = self.bagging.draw_batch(self.rng, data.shape[0], self.num_trees)
            for point, label, counts in zip(data, labels, all_counts):
                self._train_counts(point, int(label), counts)
        else:
            for point, label in zip(data, labels):
                counts = self.bagging.draw(self.rng, self.num_trees)
                self._train_counts(point, int(label), counts)

    def _aggregate(self, point: np.ndarray) -> tuple[int, float, np.ndarray]:
        if self.params.aggregation == "probability":
            scores = np.zeros(self.num_classes, dtype=np.float64)
            for member in self.members:
                scores += member.learner.class_probabilities(point[member.dimensions])
            scores /= self.num_trees
        else:
            votes = np.zeros(self.num_classes, dtype=np.float64)
            for member in self.members:
                votes[member.learner.classify(point[member.dimensions])] += 1.0
            scores = votes / self.num_trees

        # argmax returns the first maximum, so ties resolve to the lowest label.
        label = int(np.argmax(scores))
        return label, float(scores[label]), scores

    def classify(self, point) -> int:
        return self._aggregate(self._check_point(point))[0]

    def classify_with_probability(self, point) -> tuple[int, float]:
        label, probability, _ = self._aggregate(self._check_point(point))
        return label, probability

    def class_scores(self, point) -> np.ndarray:
        """Vote fractions or averaged class probabilities, depending on ``aggregation``."""
        return self._aggregate(self._check_point(point))[2]

    def classify_batch(self, data) -> np.ndarray:
        return self.classify_batch_with_probabilities(data)[0]

    def classify_batch_with_probabilities(self, data) -> tuple[np.ndarray, np.ndarray]:
        data = self._check_data(data)
        predictions = np.zeros(data.shape[0], dtype=np.int64)
        probabilities = np.zeros(data.shape[0], dtype=np.float64)
        for i, point in enumerate(data):
            predictions[i], probabilities[i], _ = self._aggregate(point)
        return predictions, probabilities

    def to_dict(self) -> dict:
        self._check_active()
        if self.owns_dataset_info:
            info_state = {"owned": True, "info": self.dataset_info.to_dict()}
        else:
            info_state = {
                "owned": False,
                "num_dimensions": self.dataset_info.num_dimensions,
            }

        return {
            "version": STATE_VERSION,
            "num_classes": self.num_classes,
            "dataset_info": info_state,
            "params": _plain(asdict(self.params)),
            "tree_params": _plain(asdict(self.tree_params)),
            "dimensions": [member.dimensions.tolist() for member in self.members],
            "dimension_counts": self.dimension_counts.tolist(),
            "rng_state": _plain(self.rng.bit_generator.state),
            "members": [member.learner.to_dict() for member in self.members],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True)

    def save(self, path) -> None:
        Path(path).write_text(self.to_json(), encoding="utf-8")

    @classmethod
    def from_dict(
        cls,
        state: dict,
        dataset_info: DatasetInfo | None = None,
        learner_cls=HoeffdingTree,
    ) -> HoeffdingForest:
        """Rebuild a forest from ``to_dict`` output.

        A state saved from a forest that borrowed its descriptor only records the
        dimension count, so the descriptor must be passed in again.
        """
        if state.get("version") != STATE_VERSION:
            raise ConfigurationError(f"Unsupported forest state version: {state.get('version')}")

        info_state = state["dataset_info"]
        if info_state["owned"]:
            ownership = Owned(DatasetInfo.from_dict(info_state["info"]))
        else:
            if dataset_info is None:
                raise ConfigurationError(
                    "this forest borrowed its dataset info; pass dataset_info to restore it"
                )
            if dataset_info.num_dimensions != info_state["num_dimensions"]:
                raise ConfigurationError(
                    f"dataset_info has {dataset_info.num_dimensions} dimensions, "
                    f"saved forest expects {info_state['num_dimensions']}"
                )
            ownership = Borrowed(dataset_info)

        forest = cls.__new__(cls)
        forest.params = HoeffdingForestParams(**state["params"])
        forest.tree_params = HoeffdingTreeParams(**state["tree_params"])
        forest.num_classes = int(state["num_classes"])
        forest._ownership = ownership
        forest._released = False
        forest._learner_factory = forest._default_learner_factory
        forest.selector = DimensionSelector(
            subset_size=forest.params.subset_size,
            weighting=forest.params.dimension_weighting,
        )
        forest.bagging = OnlineBagging(rate=forest.params.bagging_rate)
        forest.dimension_counts = np.asarray(state["dimension_counts"], dtype=np.int64)

        bit_generator = getattr(np.random, state["rng_state"]["bit_generator"])()
        bit_generator.state = state["rng_state"]
        forest.rng = np.random.Generator(bit_generator)

        forest.members = []
        for handle, (dimensions, learner_state) in enumerate(
            zip(state["dimensions"], state["members"])
        ):
            dimensions = np.asarray(dimensions, dtype=np.int64)
            learner = learner_cls.from_dict(learner_state, ownership.info.view(dimensions))
            forest.members.append(ForestMember(handle, dimensions, learner))

        logger.debug(
            "restored forest trees=%d classes=%d owned=%s",
            forest.num_trees,
            forest.num_classes,
            forest.owns_dataset_info,
        )
        return forest

    @classmethod
    def from_json(
        cls,
        text: str,
        dataset_info: DatasetInfo | None = None,
        learner_cls=HoeffdingTree,
    ) -> HoeffdingForest:
        return cls.from_dict(json.loads(text), dataset_info=dataset_info, learner_cls=learner_cls)

    @classmethod
    def load(
        cls,
        path,
        dataset_info: DatasetInfo | None = None,
        learner_cls=HoeffdingTree,
    ) -> HoeffdingForest:
        return cls.from_json(
            Path(path).read_text(encoding="utf-8"),
            dataset_info=dataset_info,
            learner_cls=learner_cls,
        )
