"""Core data types for the resilience lab."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import numpy as np
import pandas as pd

from resilience.config import ModelParams
from resilience.errors import InvalidGrid, InvalidParameter


# --- Enums ---

class DetrendMethod(Enum):
    NONE = "none"
    LINEAR = "linear"
    GAUSSIAN = "gaussian"


class ForcingPolicy(Enum):
    CLAMP = "clamp"    # Out-of-range queries return the boundary value
    STRICT = "strict"  # Out-of-range queries raise ForcingOutOfRange


def _readonly(values: Any, dtype: Any = None) -> np.ndarray:
    arr = np.array(values, dtype=dtype)
    arr.setflags(write=False)
    return arr


# --- Core Data Types ---

@dataclass(frozen=True, eq=False)
class TimeGrid:
    """Strictly increasing time points owned by the caller of the simulator."""
    points: np.ndarray

    def __post_init__(self):
        try:
            pts = np.array(self.points, dtype=float)
        except (TypeError, ValueError) as exc:
            raise InvalidGrid(f"time grid is not numeric: {exc}") from exc
        if pts.ndim != 1:
            raise InvalidGrid(f"time grid must be 1-D, got shape {pts.shape}")
        if pts.size < 2:
            raise InvalidGrid(f"time grid needs at least 2 points, got {pts.size}")
        if not np.all(np.isfinite(pts)):
            raise InvalidGrid("time grid contains non-finite values")
        if np.any(np.diff(pts) <= 0):
            raise InvalidGrid("time grid must be strictly increasing")
        pts.setflags(write=False)
        object.__setattr__(self, "points", pts)

    @classmethod
    def from_range(cls, start: float, stop: float, step: float) -> "TimeGrid":
        """Uniform grid from ``start`` to ``stop`` (inclusive) with spacing ``step``."""
        if not step > 0:
            raise InvalidGrid(f"step must be positive, got {step}")
        n_steps = int(np.floor((stop - start) / step + 0.5))
        if n_steps < 1:
            raise InvalidGrid(
                f"range [{start}, {stop}] holds fewer than 2 points at step {step}"
            )
        return cls(start + step * np.arange(n_steps + 1))

    @classmethod
    def coerce(cls, grid: "TimeGrid | Any") -> "TimeGrid":
        return grid if isinstance(grid, TimeGrid) else cls(grid)

    def __len__(self) -> int:
        return len(self.points)

    @property
    def step(self) -> float:
        return float(self.points[1] - self.points[0])

    @property
    def is_uniform(self) -> bool:
        steps = np.diff(self.points)
        return bool(np.allclose(steps, steps[0], rtol=1e-9, atol=0.0))


def _index_bound(bound: Any, index: np.ndarray) -> Any:
    """Convert a range bound to something comparable with ``index``.

    Lets a CLI string such as ``"2004-06-01"`` or ``"120"`` select from a
    datetime or numeric index.
    """
    if index.dtype.kind == "M":
        return pd.Timestamp(bound).to_datetime64()
    if index.dtype.kind in "iuf":
        return float(bound)
    return bound


@dataclass
class ScalarSeries:
    """Ordered observations with an optional parallel index of timestamps."""
    values: np.ndarray
    index: np.ndarray | None = None
    name: str = "x"

    def __post_init__(self):
        values = np.asarray(self.values, dtype=float)
        if values.ndim != 1:
            raise InvalidParameter(f"series must be 1-D, got shape {values.shape}")
        index = np.arange(len(values)) if self.index is None else np.asarray(self.index)
        if index.shape != values.shape:
            raise InvalidParameter(
                f"index length {len(index)} does not match {len(values)} values"
            )
        self.values = values
        self.index = index

    def __len__(self) -> int:
        return len(self.values)

    @classmethod
    def from_pandas(cls, series: pd.Series) -> "ScalarSeries":
        name = "x" if series.name is None else str(series.name)
        return cls(series.to_numpy(dtype=float), series.index.to_numpy(), name=name)

    def to_pandas(self) -> pd.Series:
        return pd.Series(self.values, index=self.index, name=self.name)

    def between(self, start: Any = None, end: Any = None) -> "ScalarSeries":
        """Subset to ``start <= index <= end`` (either bound may be None).

        Bounds are converted to the index type first, so strings work for
        both datetime and numeric indexes.
        """
        mask = np.ones(len(self), dtype=bool)
        if start is not None:
            mask &= self.index >= _index_bound(start, self.index)
        if end is not None:
            mask &= self.index <= _index_bound(end, self.index)
        return ScalarSeries(self.values[mask], self.index[mask], name=self.name)


@dataclass
class StateTrajectory:
    """(time, state) pairs produced by the simulator; read-only once built."""
    times: np.ndarray
    states: np.ndarray
    params: ModelParams | None = None
    forced: bool = False

    def __post_init__(self):
        self.times = _readonly(self.times, dtype=float)
        self.states = _readonly(self.states, dtype=float)
        if self.times.shape != self.states.shape:
            raise InvalidParameter(
                f"times {self.times.shape} and states {self.states.shape} differ"
            )

    def __len__(self) -> int:
        return len(self.times)

    @property
    def final_state(self) -> float:
        return float(self.states[-1])

    def to_series(self) -> ScalarSeries:
        return ScalarSeries(self.states.copy(), self.times.copy(), name="x")

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({"time": self.times, "x": self.states})

    def between(self, start: float | None = None, end: float | None = None) -> "StateTrajectory":
        """Trajectory restricted to ``start <= t <= end``."""
        mask = np.ones(len(self), dtype=bool)
        if start is not None:
            mask &= self.times >= start
        if end is not None:
            mask &= self.times <= end
        return StateTrajectory(
            self.times[mask], self.states[mask], params=self.params, forced=self.forced,
        )


@dataclass
class EWSResult:
    """Per-window leading-indicator statistics.

    ``statistics[name][j]`` belongs to the window ending at input position
    ``j + window_size - 1``; ``timeindex[j]`` is the input index there.
    """
    timeindex: np.ndarray
    statistics: dict[str, np.ndarray] = field(default_factory=dict)
    window_size: int = 0
    detrend_method: str = "none"
    trend: np.ndarray | None = None     # Full-length trend removed before rolling
    residual: np.ndarray | None = None  # Full-length detrended series

    def __post_init__(self):
        self.timeindex = np.asarray(self.timeindex)
        for name, values in self.statistics.items():
            if len(values) != len(self.timeindex):
                raise InvalidParameter(
                    f"statistic {name!r} has {len(values)} values, "
                    f"expected {len(self.timeindex)}"
                )

    def __getitem__(self, name: str) -> np.ndarray:
        return self.statistics[name]

    @property
    def names(self) -> list[str]:
        return list(self.statistics)

    @property
    def n_windows(self) -> int:
        return len(self.timeindex)

    @property
    def is_empty(self) -> bool:
        return self.n_windows == 0

    def to_frame(self) -> pd.DataFrame:
        frame = pd.DataFrame(self.statistics, index=self.timeindex)
        frame.index.name = "timeindex"
        return frame


@dataclass
class Equilibrium:
    """Fixed point of the harvest model with its linearisation."""
    state: float
    eigenvalue: float  # d(dx/dt)/dx at the fixed point

    @property
    def stable(self) -> bool:
        return self.eigenvalue < 0.0
