"""Injectable process-noise sources for the simulator."""

from __future__ import annotations

import numpy as np

from resilience.config import NoiseConfig
from resilience.errors import InvalidParameter


class UniformNoise:
    """Independent uniform draws on ``[low, high]``.

    The simulator calls :meth:`sample` once per right-hand-side evaluation.
    Two instances built with the same seed produce identical sequences.

    Parameters
    ----------
    low, high : float
        Bounds of the uniform distribution.
    seed : int, optional
        Seed for ``np.random.default_rng``.  Ignored when ``rng`` is given.
    rng : numpy Generator, optional
        Externally owned generator to draw from.
    """

    def __init__(
        self,
        low: float = -1.0,
        high: float = 1.0,
        seed: int | None = None,
        rng: np.random.Generator | None = None,
    ) -> None:
        if high < low:
            raise InvalidParameter(
                f"noise range must satisfy low <= high, got [{low}, {high}]"
            )
        self.low = float(low)
        self.high = float(high)
        self.seed = seed
        self._rng = rng if rng is not None else np.random.default_rng(seed)

    @classmethod
    def from_config(cls, config: NoiseConfig, seed: int | None = None) -> "UniformNoise | None":
        """Noise source for ``config``; ``None`` when noise is disabled."""
        if not config.enabled:
            return None
        return cls(config.low, config.high, seed=seed)

    def sample(self) -> float:
        return float(self._rng.uniform(self.low, self.high))

    def reset(self) -> None:
        """Restart the sequence from ``seed``."""
        if self.seed is None:
            raise InvalidParameter("cannot reset an unseeded noise source")
        self._rng = np.random.default_rng(self.seed)

    def __repr__(self) -> str:
        return f"UniformNoise(low={self.low}, high={self.high}, seed={self.seed})"
