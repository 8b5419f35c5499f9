import argparse
import logging
import time
import sys
from pathlib import Path

import numpy as np

# Allow running as: python experiments/quick_forest_stream_eval.py
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from binarize import binarize
from dataset_info import DatasetInfo
from hoeffding_forest import HoeffdingForest, HoeffdingForestParams
from hoeffding_tree import HoeffdingTreeParams


def _parse_subset_size(value):
    if value in {"sqrt", "all"}:
        return value
    if "." in value:
        return float(value)
    return int(value)


def _train_test_split(X, y, test_size, random_state):
    rng = np.random.default_rng(random_state)
    idx = np.arange(X.shape[0])
    rng.shuffle(idx)
    n_test = max(1, int(round(X.shape[0] * test_size)))
    test_idx = idx[:n_test]
    train_idx = idx[n_test:]
    return X[train_idx], X[test_idx], y[train_idx], y[test_idx]


def _load_sklearn_dataset(name):
    try:
        if name == "breast_cancer":
            from sklearn.datasets import load_breast_cancer

            ds = load_breast_cancer()
            return ds.data.astype(np.float64), ds.target.astype(np.int64)

    except ModuleNotFoundError as e:
        raise ModuleNotFoundError(
            "Dataset requires scikit-learn, which is not installed. "
            "Use gaussian_blobs/synthetic_clf or install dependencies."
        ) from e

    raise ValueError("Unsupported sklearn dataset")


def load_dataset(name: str, random_state: int, n_samples: int):
    rng = np.random.default_rng(random_state)
    key = name.lower()

    if key == "breast_cancer":
        X, y = _load_sklearn_dataset(key)
    elif key == "gaussian_blobs":
        n_features = 8
        y = rng.integers(0, 3, size=n_samples)
        centers = rng.normal(scale=4.0, size=(3, n_features))
        X = centers[y] + rng.normal(size=(n_samples, n_features))
    elif key == "synthetic_clf":
        n_features = 25
        X = rng.normal(size=(n_samples, n_features))
        w = rng.normal(size=n_features)
        logits = X @ w + 0.5 * rng.normal(size=n_samples)
        probs = 1.0 / (1.0 + np.exp(-logits))
        y = (rng.uniform(size=n_samples) < probs).astype(np.int64)
    else:
        raise ValueError(
            f"Unknown dataset '{name}'. Choose from: gaussian_blobs, synthetic_clf, breast_cancer"
        )

    return X.astype(np.float64), y.astype(np.int64)


def evaluate_one(X, y, forest_size, subset_size, bagging_rate, aggregation, tree_params, random_state):
    X_train, X_test, y_train, y_test = _train_test_split(
        X,
        y,
        test_size=0.2,
        random_state=random_state,
    )
    num_classes = int(y.max()) + 1

    forest = HoeffdingForest(
        forest_size=forest_size,
        num_classes=num_classes,
        dataset_info=DatasetInfo.numeric(X.shape[1]),
        params=HoeffdingForestParams(
            subset_size=subset_size,
            bagging_rate=bagging_rate,
            aggregation=aggregation,
            random_state=random_state,
        ),
        tree_params=tree_params,
    )

    # Prequential (test-then-train) accuracy over the training stream.
    correct = 0
    t0 = time.perf_counter()
    for point, label in zip(X_train, y_train):
        correct += int(forest.classify(point) == label)
        forest.train(point, label)
    train_time = time.perf_counter() - t0

    predictions, probabilities = forest.classify_batch_with_probabilities(X_test)
    return {
        "train_time_sec": train_time,
        "prequential_accuracy": correct / max(len(y_train), 1),
        "holdout_accuracy": float(np.mean(predictions == y_test)),
        "mean_confidence": float(np.mean(probabilities)),
        "tree_nodes": [member.learner.num_nodes for member in forest.members],
        "tree_depths": [member.learner.depth for member in forest.members],
    }


def main():
    parser = argparse.ArgumentParser(description="Quick streaming Hoeffding forest checks")
    parser.add_argument(
        "--datasets",
        type=str,
        default="gaussian_blobs,synthetic_clf",
        help="Comma-separated: gaussian_blobs, synthetic_clf, breast_cancer",
    )
    parser.add_argument("--n-samples", type=int, default=3000)
    parser.add_argument("--forest-size", type=int, default=10)
    parser.add_argument(
        "--subset-size",
        type=str,
        default="sqrt",
        help="sqrt, all, a dimension count, or a fraction such as 0.5",
    )
    parser.add_argument("--bagging-rate", type=float, default=1.0)
    parser.add_argument("--aggregation", type=str, default="vote", choices=["vote", "probability"])
    parser.add_argument("--check-interval", type=int, default=100)
    parser.add_argument("--min-samples", type=int, default=100)
    parser.add_argument("--max-samples", type=int, default=0)
    parser.add_argument("--num-bins", type=int, default=10)
    parser.add_argument("--split-criterion", type=str, default="gini", choices=["gini", "info_gain"])
    parser.add_argument(
        "--binarize-threshold",
        type=float,
        default=None,
        help="Binarize every feature at this threshold before training.",
    )
    parser.add_argument("--random-state", type=int, default=42)
    parser.add_argument("--verbose", action="store_true", help="Log tree splits.")

    args = parser.parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    )

    datasets = [d.strip() for d in args.datasets.split(",") if d.strip()]
    if not datasets:
        raise ValueError("No datasets provided")

    tree_params = HoeffdingTreeParams(
        check_interval=args.check_interval,
        min_samples=args.min_samples,
        max_samples=args.max_samples,
        num_bins=args.num_bins,
        split_criterion=args.split_criterion,
    )

    for ds_name in datasets:
        X, y = load_dataset(ds_name, args.random_state, args.n_samples)
        if args.binarize_threshold is not None:
            X = binarize(X, args.binarize_threshold)
        print(f"\nDataset={ds_name} n={X.shape[0]} d={X.shape[1]} classes={int(y.max()) + 1}")

        out = evaluate_one(
            X,
            y,
            forest_size=args.forest_size,
            subset_size=_parse_subset_size(args.subset_size),
            bagging_rate=args.bagging_rate,
            aggregation=args.aggregation,
            tree_params=tree_params,
            random_state=args.random_state,
        )
        print(
            "HoeffdingForest"
            f" time={out['train_time_sec']:.3f}s"
            f" prequential_acc={out['prequential_accuracy']:.3f}"
            f" holdout_acc={out['holdout_accuracy']:.3f}"
            f" mean_confidence={out['mean_confidence']:.3f}"
        )
        print(f"  tree_nodes={out['tree_nodes']} tree_depths={out['tree_depths']}")


if __name__ == "__main__":
    main()
