from dataclasses import dataclass

import numpy as np

from errors import ConfigurationError


@dataclass
class OnlineBagging:
    """Poisson replication counts approximating bootstrap resampling on a stream.

    Under classical bagging a sample appears Binomial(n, 1/n) times in a
    bootstrap replicate, which tends to Poisson(1) as n grows; each member
    therefore trains ``Poisson(rate)`` times on every incoming sample.
    """

    rate: float = 1.0

    def __post_init__(self) -> None:
        if not (self.rate > 0.0):
            raise ConfigurationError("bagging rate must be positive")

    def draw(self, rng: np.random.Generator, num_members: int) -> np.ndarray:
        return rng.poisson(self.rate, size=num_members).astype(np.int64)

    def draw_batch(
        self,
        rng: np.random.Generator,
        num_samples: int,
        num_members: int,
    ) -> np.ndarray:
        """Counts for a whole batch, one row per sample.

        Rows are filled in order, so row ``i`` equals the ``i``-th of
        ``num_samples`` consecutive ``draw`` calls on the same generator.
        """
        return rng.poisson(self.rate, size=(num_samples, num_members)).astype(np.int64)
