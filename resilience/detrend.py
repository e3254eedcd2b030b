"""Detrending applied once before rolling early-warning statistics.

Variance and autocorrelation are only interpretable on a stationary
residual, so the slow drift of a system approaching a transition is removed
first.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray
from scipy.ndimage import gaussian_filter1d
from sklearn.linear_model import LinearRegression

from resilience.errors import InvalidParameter
from resilience.types import DetrendMethod

# Default Gaussian bandwidth as a fraction of the series length.
DEFAULT_BANDWIDTH_FRACTION = 0.1


def linear_trend(values: NDArray) -> NDArray:
    """Ordinary-least-squares line through ``values`` against their position."""
    values = np.asarray(values, dtype=float)
    if len(values) == 0:
        return values.copy()
    positions = np.arange(len(values), dtype=float).reshape(-1, 1)
    model = LinearRegression().fit(positions, values)
    return model.predict(positions)


def gaussian_trend(values: NDArray, bandwidth: float | None = None) -> NDArray:
    """Gaussian-kernel smoothing of ``values``.

    Parameters
    ----------
    values : array of shape (n,)
    bandwidth : float, optional
        Kernel standard deviation in samples.  Defaults to 10% of ``n``
        (at least one sample).
    """
    values = np.asarray(values, dtype=float)
    if bandwidth is None:
        bandwidth = max(1.0, DEFAULT_BANDWIDTH_FRACTION * len(values))
    if bandwidth <= 0:
        raise InvalidParameter(f"bandwidth must be positive, got {bandwidth}")
    if len(values) == 0:
        return values.copy()
    return gaussian_filter1d(values, sigma=bandwidth, mode="nearest")


def detrend(
    values: NDArray,
    method: DetrendMethod | str = DetrendMethod.GAUSSIAN,
    bandwidth: float | None = None,
) -> tuple[NDArray, NDArray]:
    """Split ``values`` into ``(trend, residual)`` with ``residual = values - trend``.

    With ``method="none"`` the trend is zero and the residual is an exact
    copy of the input.
    """
    try:
        method = DetrendMethod(method)
    except ValueError as exc:
        valid = [m.value for m in DetrendMethod]
        raise InvalidParameter(
            f"Unknown detrend method {method!r}; expected one of {valid}"
        ) from exc

    values = np.asarray(values, dtype=float)
    if method is DetrendMethod.NONE:
        return np.zeros_like(values), values.copy()
    if method is DetrendMethod.LINEAR:
        trend = linear_trend(values)
    else:
        trend = gaussian_trend(values, bandwidth)
    return trend, values - trend
