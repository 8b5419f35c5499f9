from __future__ import annotations

from dataclasses import dataclass
import math

import numpy as np

from errors import ConfigurationError

_WEIGHTINGS = {"balanced", "inverse", "uniform"}


def resolve_subset_size(subset_size, num_dimensions: int) -> int:
    """Turn a subset-size policy into a dimension count for ``num_dimensions`` dimensions.

    ``"sqrt"`` gives ``ceil(sqrt(D))``, ``"all"`` gives ``D``, a float in ``(0, 1]``
    is a fraction of ``D`` (rounded up) and a positive int is used as is.
    """
    if num_dimensions <= 0:
        raise ConfigurationError("the dataset must have at least one dimension")

    if isinstance(subset_size, str):
        if subset_size == "sqrt":
            return int(math.ceil(math.sqrt(num_dimensions)))
        if subset_size == "all":
            return num_dimensions
        raise ConfigurationError(f"Unknown subset_size policy: {subset_size!r}")

    if isinstance(subset_size, bool):
        raise ConfigurationError("subset_size cannot be a boolean")
    if isinstance(subset_size, (int, np.integer)):
        if subset_size <= 0:
            raise ConfigurationError("subset_size must be positive")
        return int(subset_size)
    if isinstance(subset_size, float):
        if not (0.0 < subset_size <= 1.0):
            raise ConfigurationError("a fractional subset_size must be in (0, 1]")
        return max(1, int(math.ceil(subset_size * num_dimensions)))

    raise ConfigurationError(f"Unsupported subset_size: {subset_size!r}")


@dataclass
class DimensionSelector:
    """Chooses each forest member's dimension subset, favouring under-used dimensions.

    ``weighting`` controls the bias toward dimensions with low usage counts:

    - ``"balanced"`` fills the subset from the least-used dimensions first and
      samples uniformly within a usage tier, so every dimension is used once
      ``forest_size * k >= D``.
    - ``"inverse"`` samples without replacement with weight ``1 / (1 + count)``.
    - ``"uniform"`` ignores the usage counts.
    """

    subset_size: int | float | str = "sqrt"
    weighting: str = "balanced"

    def __post_init__(self) -> None:
        if self.weighting not in _WEIGHTINGS:
            raise ConfigurationError("weighting must be one of: balanced, inverse, uniform")
        # Validate the policy itself; D=1 resolves every valid policy.
        resolve_subset_size(self.subset_size, 1)

    def _balanced(self, usage_counts: np.ndarray, k: int, rng: np.random.Generator) -> np.ndarray:
        chosen = []
        remaining = k
        for count in np.unique(usage_counts):
            tier = np.flatnonzero(usage_counts == count)
            if tier.size <= remaining:
                chosen.append(tier)
                remaining -= tier.size
            else:
                chosen.append(rng.choice(tier, size=remaining, replace=False))
                remaining = 0
            if remaining == 0:
                break
        return np.concatenate(chosen)

    def select(self, usage_counts: np.ndarray, rng: np.random.Generator) -> np.ndarray:
        """Pick one member's subset and increment ``usage_counts`` in place."""
        num_dimensions = int(usage_counts.shape[0])
        k = resolve_subset_size(self.subset_size, num_dimensions)

        if k >= num_dimensions:
            chosen = np.arange(num_dimensions, dtype=np.int64)
        elif self.weighting == "balanced":
            chosen = self._balanced(usage_counts, k, rng)
        else:
            if self.weighting == "inverse":
                weights = 1.0 / (1.0 + usage_counts.astype(np.float64))
                p = weights / weights.sum()
            else:
                p = None
            chosen = rng.choice(num_dimensions, size=k, replace=False, p=p)

        chosen = np.sort(np.asarray(chosen, dtype=np.int64))
        usage_counts[chosen] += 1
        return chosen
