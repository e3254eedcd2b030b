"""Resilience lab - harvested fish population model and early-warning signals."""

from resilience.types import (
    TimeGrid,
    ScalarSeries,
    StateTrajectory,
    EWSResult,
    Equilibrium,
    DetrendMethod,
    ForcingPolicy,
)
