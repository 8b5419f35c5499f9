from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
import logging
import math

import numpy as np

from binning import bin_index, bin_indices, build_thresholds
from dataset_info import DatasetInfo, DatasetInfoView
from errors import ConfigurationError, DimensionMismatchError, LabelRangeError

logger = logging.getLogger(__name__)


def plain_scalars(params) -> None:
    """Replace numpy scalar fields of a params dataclass with Python values."""
    for f in fields(params):
        value = getattr(params, f.name)
        if isinstance(value, np.generic):
            setattr(params, f.name, value.item())


@dataclass
class HoeffdingTreeParams:
    success_probability: float = 0.95
    max_samples: int = 0  # 0 disables forced splits
    check_interval: int = 100
    min_samples: int = 100
    num_bins: int = 10
    observations_before_binning: int = 100
    split_criterion: str = "gini"  # one of: gini, info_gain
    tie_threshold: float = 0.05

    def __post_init__(self) -> None:
        plain_scalars(self)
        if not (0.0 < self.success_probability < 1.0):
            raise ConfigurationError("success_probability must be in (0, 1)")
        if self.max_samples < 0:
            raise ConfigurationError("max_samples must be >= 0")
        if self.check_interval <= 0:
            raise ConfigurationError("check_interval must be positive")
        if self.min_samples < 0:
            raise ConfigurationError("min_samples must be >= 0")
        if self.num_bins < 2:
            raise ConfigurationError("num_bins must be at least 2")
        if self.observations_before_binning <= 0:
            raise ConfigurationError("observations_before_binning must be positive")
        if self.split_criterion not in {"gini", "info_gain"}:
            raise ConfigurationError("split_criterion must be one of: gini, info_gain")
        if self.tie_threshold < 0.0:
            raise ConfigurationError("tie_threshold must be >= 0")


def gini_impurity(counts: np.ndarray) -> float:
    total = float(counts.sum())
    if total <= 0.0:
        return 0.0
    p = counts / total
    return float(1.0 - np.sum(p * p))


def entropy(counts: np.ndarray) -> float:
    total = float(counts.sum())
    if total <= 0.0:
        return 0.0
    p = counts[counts > 0] / total
    return float(-np.sum(p * np.log2(p)))


_IMPURITY = {"gini": gini_impurity, "info_gain": entropy}


def split_gain(branch_counts: np.ndarray, criterion: str) -> float:
    """Impurity decrease of splitting the summed class counts into ``branch_counts`` rows."""
    impurity = _IMPURITY[criterion]
    parent = branch_counts.sum(axis=0)
    total = float(parent.sum())
    if total <= 0.0:
        return 0.0

    children = 0.0
    for counts in branch_counts:
        n_branch = float(counts.sum())
        if n_branch > 0.0:
            children += (n_branch / total) * impurity(counts)
    return impurity(parent) - children


def criterion_range(criterion: str, num_classes: int) -> float:
    if criterion == "gini":
        return 1.0
    return math.log2(num_classes)


@dataclass
class SplitCandidate:
    gain: float
    branch_counts: np.ndarray
    threshold: float | None = None


class CategoricalSplitStats:
    """Per-category class counts for one categorical dimension."""

    kind = "categorical"

    def __init__(self, num_categories: int, num_classes: int) -> None:
        self.counts = np.zeros((num_categories, num_classes), dtype=np.int64)

    def update(self, value: float, label: int) -> None:
        if not np.isfinite(value):
            return
        category = int(value)
        if 0 <= category < self.counts.shape[0]:
            self.counts[category, label] += 1

    def best_split(self, criterion: str) -> SplitCandidate | None:
        non_empty = np.count_nonzero(self.counts.sum(axis=1))
        if non_empty < 2:
            return None
        return SplitCandidate(
            gain=split_gain(self.counts, criterion),
            branch_counts=self.counts.copy(),
        )

    def to_dict(self) -> dict:
        return {"kind": self.kind, "counts": self.counts.tolist()}

    @classmethod
    def from_dict(cls, state: dict) -> CategoricalSplitStats:
        counts = np.asarray(state["counts"], dtype=np.int64)
        stats = cls(counts.shape[0], counts.shape[1])
        stats.counts = counts
        return stats


class NumericSplitStats:
    """Binned class counts for one numeric dimension.

    The first ``observations_before_binning`` finite values are buffered; the
    bin thresholds are then fixed from their quantiles and later values are only
    counted.
    """

    kind = "numeric"

    def __init__(self, num_classes: int, num_bins: int, observations_before_binning: int) -> None:
        self.num_classes = num_classes
        self.num_bins = num_bins
        self.observations_before_binning = observations_before_binning
        self.buffer_values: list[float] = []
        self.buffer_labels: list[int] = []
        self.thresholds: np.ndarray | None = None
        self.counts: np.ndarray | None = None

    def _binned_counts(self, thresholds: np.ndarray) -> np.ndarray:
        counts = np.zeros((thresholds.size + 1, self.num_classes), dtype=np.int64)
        if self.buffer_values:
            bins = bin_indices(thresholds, np.asarray(self.buffer_values))
            np.add.at(counts, (bins, np.asarray(self.buffer_labels, dtype=np.int64)), 1)
        return counts

    def _fix_bins(self) -> None:
        self.thresholds = build_thresholds(np.asarray(self.buffer_values), self.num_bins)
        self.counts = self._binned_counts(self.thresholds)
        self.buffer_values = []
        self.buffer_labels = []

    def update(self, value: float, label: int) -> None:
        if not np.isfinite(value):
            return
        if self.thresholds is None:
            self.buffer_values.append(float(value))
            self.buffer_labels.append(int(label))
            if len(self.buffer_values) >= self.observations_before_binning:
                self._fix_bins()
        else:
            self.counts[bin_index(self.thresholds, value), label] += 1

    def best_split(self, criterion: str) -> SplitCandidate | None:
        if self.thresholds is None:
            thresholds = build_thresholds(np.asarray(self.buffer_values), self.num_bins)
            counts = self._binned_counts(thresholds)
        else:
            thresholds, counts = self.thresholds, self.counts

        if thresholds.size == 0:
            return None

        total = counts.sum(axis=0)
        left = np.cumsum(counts, axis=0)
        best = None
        for j in range(thresholds.size):
            branch_counts = np.vstack([left[j], total - left[j]])
            if branch_counts[0].sum() == 0 or branch_counts[1].sum() == 0:
                continue
            gain = split_gain(branch_counts, criterion)
            if best is None or gain > best.gain:
                best = SplitCandidate(
                    gain=gain,
                    branch_counts=branch_counts,
                    threshold=float(thresholds[j]),
                )
        return best

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "num_bins": self.num_bins,
            "observations_before_binning": self.observations_before_binning,
            "buffer_values": list(self.buffer_values),
            "buffer_labels": list(self.buffer_labels),
            "thresholds": None if self.thresholds is None else self.thresholds.tolist(),
            "counts": None if self.counts is None else self.counts.tolist(),
        }

    @classmethod
    def from_dict(cls, state: dict, num_classes: int) -> NumericSplitStats:
        stats = cls(num_classes, state["num_bins"], state["observations_before_binning"])
        stats.buffer_values = [float(v) for v in state["buffer_values"]]
        stats.buffer_labels = [int(v) for v in state["buffer_labels"]]
        if state["thresholds"] is not None:
            stats.thresholds = np.asarray(state["thresholds"], dtype=np.float64)
            stats.counts = np.asarray(state["counts"], dtype=np.int64).reshape(
                stats.thresholds.size + 1, num_classes
            )
        return stats


@dataclass
class HoeffdingNode:
    class_counts: np.ndarray
    depth: int = 0
    num_samples: int = 0
    split_dimension: int | None = None
    split_kind: str | None = None
    split_threshold: float | None = None
    missing_child: int = 0
    children: list[HoeffdingNode] = field(default_factory=list)
    stats: list = field(default_factory=list)

    @property
    def is_leaf(self) -> bool:
        return not self.children


class HoeffdingTree:
    """Streaming decision tree that splits a leaf once the Hoeffding bound
    separates the best split from the runner-up."""

    def __init__(
        self,
        num_classes: int,
        dataset_info: DatasetInfo | DatasetInfoView,
        params: HoeffdingTreeParams | None = None,
    ) -> None:
        if num_classes < 2:
            raise ConfigurationError("num_classes must be at least 2")
        if dataset_info.num_dimensions == 0:
            raise ConfigurationError("dataset_info must describe at least one dimension")

        self.num_classes = int(num_classes)
        self.dataset_info = dataset_info
        self.params = params or HoeffdingTreeParams()
        self.root = self._new_node(depth=0)

    def _new_stats(self):
        stats = []
        for dim in range(self.dataset_info.num_dimensions):
            if self.dataset_info.is_categorical(dim):
                stats.append(
                    CategoricalSplitStats(self.dataset_info.category_count(dim), self.num_classes)
                )
            else:
                stats.append(
                    NumericSplitStats(
                        self.num_classes,
                        self.params.num_bins,
                        self.params.observations_before_binning,
                    )
                )
        return stats

    def _new_node(self, depth: int, prior: np.ndarray | None = None) -> HoeffdingNode:
        if prior is None:
            prior = np.zeros(self.num_classes, dtype=np.int64)
        return HoeffdingNode(
            class_counts=np.array(prior, dtype=np.int64),
            depth=depth,
            stats=self._new_stats(),
        )

    def _check_point(self, point) -> np.ndarray:
        point = np.asarray(point, dtype=np.float64)
        if point.ndim != 1 or point.shape[0] != self.dataset_info.num_dimensions:
            raise DimensionMismatchError(
                f"point has shape {point.shape}, expected ({self.dataset_info.num_dimensions},)"
            )
        return point

    def _check_label(self, label) -> int:
        if int(label) != label or not (0 <= label < self.num_classes):
            raise LabelRangeError(f"label {label} is outside [0, {self.num_classes})")
        return int(label)

    def _child_index(self, node: HoeffdingNode, value: float) -> int:
        if not np.isfinite(value):
            return node.missing_child
        if node.split_kind == "categorical":
            category = int(value)
            if 0 <= category < len(node.children):
                return category
            return node.missing_child
        return 0 if value <= node.split_threshold else 1

    def _leaf_for(self, point: np.ndarray) -> HoeffdingNode:
        node = self.root
        while not node.is_leaf:
            node = node.children[self._child_index(node, point[node.split_dimension])]
        return node

    def train(self, point, label: int) -> None:
        point = self._check_point(point)
        label = self._check_label(label)

        leaf = self._leaf_for(point)
        leaf.class_counts[label] += 1
        leaf.num_samples += 1
        for dim, stats in enumerate(leaf.stats):
            stats.update(point[dim], label)

        forced = self.params.max_samples > 0 and leaf.num_samples >= self.params.max_samples
        periodic = leaf.num_samples % self.params.check_interval == 0
        if forced and (leaf.num_samples == self.params.max_samples or periodic):
            self._try_split(leaf, forced=True)
        elif leaf.num_samples >= self.params.min_samples and periodic:
            self._try_split(leaf, forced=False)

    def hoeffding_bound(self, num_samples: int) -> float:
        value_range = criterion_range(self.params.split_criterion, self.num_classes)
        delta = 1.0 - self.params.success_probability
        return math.sqrt(value_range * value_range * math.log(1.0 / delta) / (2.0 * num_samples))

    def _try_split(self, leaf: HoeffdingNode, forced: bool) -> bool:
        candidates = []
        for dim, stats in enumerate(leaf.stats):
            candidate = stats.best_split(self.params.split_criterion)
            if candidate is not None:
                candidates.append((dim, candidate))
        if not candidates:
            return False

        # Stable sort keeps the lowest dimension first among equal gains.
        candidates.sort(key=lambda item: -item[1].gain)
        best_dim, best = candidates[0]
        second_gain = candidates[1][1].gain if len(candidates) > 1 else 0.0
        if best.gain <= 0.0:
            return False

        epsilon = self.hoeffding_bound(leaf.num_samples)
        if not (
            forced
            or best.gain - second_gain > epsilon
            or epsilon < self.params.tie_threshold
        ):
            return False

        self._split(leaf, best_dim, best)
        logger.debug(
            "split depth=%d dimension=%d gain=%.4f epsilon=%.4f samples=%d forced=%s",
            leaf.depth,
            best_dim,
            best.gain,
            epsilon,
            leaf.num_samples,
            forced,
        )
        return True

    def _split(self, leaf: HoeffdingNode, dim: int, candidate: SplitCandidate) -> None:
        leaf.split_dimension = dim
        leaf.split_kind = leaf.stats[dim].kind
        leaf.split_threshold = candidate.threshold
        leaf.missing_child = int(np.argmax(candidate.branch_counts.sum(axis=1)))
        leaf.children = [
            self._new_node(depth=leaf.depth + 1, prior=branch)
            for branch in candidate.branch_counts
        ]
        leaf.stats = []

    def class_probabilities(self, point) -> np.ndarray:
        point = self._check_point(point)
        counts = self._leaf_for(point).class_counts
        total = float(counts.sum())
        if total <= 0.0:
            return np.full(self.num_classes, 1.0 / self.num_classes)
        return counts / total

    def classify_with_probability(self, point) -> tuple[int, float]:
        probabilities = self.class_probabilities(point)
        label = int(np.argmax(probabilities))
        return label, float(probabilities[label])

    def classify(self, point) -> int:
        return self.classify_with_probability(point)[0]

    def _nodes(self):
        stack = [self.root]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(node.children)

    @property
    def num_nodes(self) -> int:
        return sum(1 for _ in self._nodes())

    @property
    def depth(self) -> int:
        return max(node.depth for node in self._nodes())

    def _node_to_dict(self, node: HoeffdingNode) -> dict:
        return {
            "class_counts": node.class_counts.tolist(),
            "depth": node.depth,
            "num_samples": node.num_samples,
            "split_dimension": node.split_dimension,
            "split_kind": node.split_kind,
            "split_threshold": node.split_threshold,
            "missing_child": node.missing_child,
            "stats": [stats.to_dict() for stats in node.stats],
            "children": [self._node_to_dict(child) for child in node.children],
        }

    def _node_from_dict(self, state: dict) -> HoeffdingNode:
        stats = []
        for stats_state in state["stats"]:
            if stats_state["kind"] == "categorical":
                stats.append(CategoricalSplitStats.from_dict(stats_state))
            else:
                stats.append(NumericSplitStats.from_dict(stats_state, self.num_classes))

        return HoeffdingNode(
            class_counts=np.asarray(state["class_counts"], dtype=np.int64),
            depth=state["depth"],
            num_samples=state["num_samples"],
            split_dimension=state["split_dimension"],
            split_kind=state["split_kind"],
            split_threshold=state["split_threshold"],
            missing_child=state["missing_child"],
            children=[self._node_from_dict(child) for child in state["children"]],
            stats=stats,
        )

    def to_dict(self) -> dict:
        return {
            "num_classes": self.num_classes,
            "params": asdict(self.params),
            "root": self._node_to_dict(self.root),
        }

    @classmethod
    def from_dict(cls, state: dict, dataset_info: DatasetInfo | DatasetInfoView) -> HoeffdingTree:
        tree = cls(
            num_classes=state["num_classes"],
            dataset_info=dataset_info,
            params=HoeffdingTreeParams(**state["params"]),
        )
        tree.root = tree._node_from_dict(state["root"])
        return tree
