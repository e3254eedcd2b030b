"""Tests for the injectable process-noise source."""

from __future__ import annotations

import numpy as np
import pytest

from resilience.config import NoiseConfig
from resilience.errors import InvalidParameter
from resilience.noise import UniformNoise


class TestUniformNoise:

    def test_same_seed_same_sequence(self):
        a = UniformNoise(-1, 1, seed=5)
        b = UniformNoise(-1, 1, seed=5)
        assert [a.sample() for _ in range(20)] == [b.sample() for _ in range(20)]

    def test_draws_within_bounds(self):
        noise = UniformNoise(-0.5, 2.0, seed=1)
        draws = np.array([noise.sample() for _ in range(1000)])
        assert draws.min() >= -0.5
        assert draws.max() <= 2.0

    def test_reset_restarts_sequence(self):
        noise = UniformNoise(seed=9)
        first = [noise.sample() for _ in range(5)]
        noise.reset()
        assert [noise.sample() for _ in range(5)] == first

    def test_reset_requires_seed(self):
        with pytest.raises(InvalidParameter):
            UniformNoise(rng=np.random.default_rng(1)).reset()

    def test_injected_generator(self):
        noise = UniformNoise(0, 1, rng=np.random.default_rng(3))
        expected = np.random.default_rng(3).uniform(0, 1)
        assert noise.sample() == expected

    def test_invalid_range(self):
        with pytest.raises(InvalidParameter):
            UniformNoise(1.0, -1.0)

    def test_from_config(self):
        noise = UniformNoise.from_config(NoiseConfig(low=-2, high=2), seed=4)
        assert (noise.low, noise.high, noise.seed) == (-2.0, 2.0, 4)
        assert UniformNoise.from_config(NoiseConfig(enabled=False), seed=4) is None

    def test_from_config_seed_reproducible(self):
        cfg = NoiseConfig(low=-1, high=1)
        a = UniformNoise.from_config(cfg, seed=7)
        b = UniformNoise.from_config(cfg, seed=7)
        assert [a.sample() for _ in range(10)] == [b.sample() for _ in range(10)]
