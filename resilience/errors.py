"""Error taxonomy for the resilience core.

Structural problems (bad grids, bad parameters, strict forcing lookups out of
range) are raised.  Numeric degeneracies are reported as warnings and show
up as NaN in the output instead of aborting a computation.
"""

from __future__ import annotations


class ResilienceError(Exception):
    """Base class for errors raised by the resilience core."""


class InvalidParameter(ResilienceError, ValueError):
    """A configuration value or argument is outside its valid domain."""


class InvalidGrid(InvalidParameter):
    """A time grid is not strictly increasing or has fewer than 2 points."""


class ForcingOutOfRange(ResilienceError, ValueError):
    """A strict forcing function was queried outside its table."""

    def __init__(self, t: float, t_min: float, t_max: float) -> None:
        self.t = t
        self.t_min = t_min
        self.t_max = t_max
        super().__init__(
            f"forcing queried at t={t!r} outside table range "
            f"[{t_min!r}, {t_max!r}]"
        )


# --- Warning categories ---

class InvalidWindow(UserWarning):
    """Window size is non-positive; the EWS result is empty."""


class DegenerateWindow(RuntimeWarning):
    """At least one rolling window had zero variance; moments are NaN."""
