"""Configuration management for the resilience lab."""

from __future__ import annotations

import math
from dataclasses import dataclass, field

from resilience.errors import InvalidParameter


# Indicator names produced by the EWS engine, in output order.
EWS_INDICATORS: tuple[str, ...] = (
    "variance",
    "std",
    "autocorrelation_lag1",
    "skewness",
    "kurtosis",
    "coefficient_of_variation",
    "return_rate",
)

DETREND_METHODS: tuple[str, ...] = ("none", "linear", "gaussian")


@dataclass
class ModelParams:
    """Parameters of the harvested logistic model.

    dx/dt = x * (1 - x/K) - c * x^2 / (x^2 + 1)
    """
    K: float = 10.0  # Carrying capacity
    c: float = 1.0   # Maximum harvest rate (ignored when a forcing is supplied)

    def __post_init__(self):
        if not math.isfinite(self.K) or self.K <= 0:
            raise InvalidParameter(f"K must be positive, got {self.K}")
        if not math.isfinite(self.c) or self.c < 0:
            raise InvalidParameter(f"c must be non-negative, got {self.c}")


@dataclass
class SimulationConfig:
    """Time grid and initial condition for one simulation."""
    t_start: float = 0.0
    t_end: float = 500.0
    dt: float = 0.1   # Fixed RK4 step
    y0: float = 8.0   # Initial population

    def __post_init__(self):
        if self.dt <= 0:
            raise InvalidParameter(f"dt must be positive, got {self.dt}")
        if self.t_end <= self.t_start:
            raise InvalidParameter(
                f"t_end must exceed t_start, got [{self.t_start}, {self.t_end}]"
            )
        if not math.isfinite(self.y0):
            raise InvalidParameter(f"y0 must be finite, got {self.y0}")


@dataclass
class NoiseConfig:
    """Uniform process noise added to dx/dt at every RHS evaluation.

    Seeded from :attr:`ResilienceConfig.random_seed`.
    """
    low: float = -1.0
    high: float = 1.0
    enabled: bool = True

    def __post_init__(self):
        if self.high < self.low:
            raise InvalidParameter(
                f"noise range must satisfy low <= high, got [{self.low}, {self.high}]"
            )


@dataclass
class EWSConfig:
    """Configuration for the early-warning-signal engine."""
    window_size: int = 500  # Rolling window length (samples)
    detrend: str = "gaussian"
    # Gaussian kernel standard deviation in samples; None -> 10% of series length
    bandwidth: float | None = None
    indicators: tuple[str, ...] = EWS_INDICATORS

    def __post_init__(self):
        if self.detrend not in DETREND_METHODS:
            raise InvalidParameter(
                f"detrend must be one of {DETREND_METHODS}, got {self.detrend!r}"
            )
        if self.bandwidth is not None and self.bandwidth <= 0:
            raise InvalidParameter(f"bandwidth must be positive, got {self.bandwidth}")
        unknown = [name for name in self.indicators if name not in EWS_INDICATORS]
        if unknown:
            raise InvalidParameter(f"Unknown indicators: {unknown}")
        self.indicators = tuple(self.indicators)


@dataclass
class ResilienceConfig:
    """Master configuration for one exercise run."""
    model: ModelParams = field(default_factory=ModelParams)
    simulation: SimulationConfig = field(default_factory=SimulationConfig)
    noise: NoiseConfig = field(default_factory=NoiseConfig)
    ews: EWSConfig = field(default_factory=EWSConfig)
    random_seed: int | None = 42  # Seeds the noise source; None draws fresh entropy
