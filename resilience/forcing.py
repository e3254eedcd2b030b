"""Time-varying forcing of the harvest rate.

A :class:`ForcingFunction` maps time to a parameter value by piecewise-linear
interpolation over a table of ``(time, value)`` pairs.
"""

from __future__ import annotations

from typing import Iterable

import numpy as np

from resilience.errors import ForcingOutOfRange, InvalidParameter
from resilience.types import ForcingPolicy


class ForcingFunction:
    """Piecewise-linear interpolation over a ``(time, value)`` table.

    Parameters
    ----------
    times : array of shape (n,)
        Strictly increasing table times.
    values : array of shape (n,)
        Harvest rate at each table time; must be non-negative.
    policy : ForcingPolicy or str
        ``"clamp"`` (default) returns the boundary value outside the table;
        ``"strict"`` raises :class:`ForcingOutOfRange`.
    """

    def __init__(
        self,
        times: Iterable[float],
        values: Iterable[float],
        policy: ForcingPolicy | str = ForcingPolicy.CLAMP,
    ) -> None:
        times = np.asarray(list(times), dtype=float)
        values = np.asarray(list(values), dtype=float)
        if times.ndim != 1 or times.size == 0:
            raise InvalidParameter("forcing table needs at least one (time, value) pair")
        if times.shape != values.shape:
            raise InvalidParameter(
                f"forcing table has {times.size} times but {values.size} values"
            )
        if not (np.all(np.isfinite(times)) and np.all(np.isfinite(values))):
            raise InvalidParameter("forcing table contains non-finite entries")
        if np.any(np.diff(times) <= 0):
            raise InvalidParameter("forcing table times must be strictly increasing")
        if np.any(values < 0):
            # np.interp stays within the table values, so every query is >= 0 too
            raise InvalidParameter(
                f"forcing table values must be non-negative, got min {values.min():g}"
            )
        self.times = times
        self.values = values
        self.policy = ForcingPolicy(policy)

    @classmethod
    def from_pairs(
        cls,
        pairs: Iterable[tuple[float, float]],
        policy: ForcingPolicy | str = ForcingPolicy.CLAMP,
    ) -> "ForcingFunction":
        """Build from ``[(t0, v0), (t1, v1), ...]``."""
        pairs = list(pairs)
        if not pairs:
            raise InvalidParameter("forcing table needs at least one (time, value) pair")
        times, values = zip(*pairs)
        return cls(times, values, policy=policy)

    @classmethod
    def ramp(
        cls,
        t_start: float,
        t_end: float,
        v_start: float,
        v_end: float,
        policy: ForcingPolicy | str = ForcingPolicy.CLAMP,
    ) -> "ForcingFunction":
        """Linear ramp from ``v_start`` at ``t_start`` to ``v_end`` at ``t_end``."""
        return cls([t_start, t_end], [v_start, v_end], policy=policy)

    @property
    def domain(self) -> tuple[float, float]:
        return float(self.times[0]), float(self.times[-1])

    def __call__(self, t: float) -> float:
        t_min, t_max = self.domain
        if self.policy is ForcingPolicy.STRICT and not t_min <= t <= t_max:
            raise ForcingOutOfRange(t, t_min, t_max)
        # np.interp holds the boundary values outside the table
        return float(np.interp(t, self.times, self.values))

    def sample(self, t: np.ndarray) -> np.ndarray:
        """Vectorised lookup, mainly for plotting the forcing over a grid."""
        t = np.asarray(t, dtype=float)
        if self.policy is ForcingPolicy.STRICT:
            t_min, t_max = self.domain
            outside = (t < t_min) | (t > t_max)
            if np.any(outside):
                raise ForcingOutOfRange(float(t[outside][0]), t_min, t_max)
        return np.interp(t, self.times, self.values)

    def __repr__(self) -> str:
        return (
            f"ForcingFunction(n_points={self.times.size}, domain={self.domain}, "
            f"policy={self.policy.value!r})"
        )
