"""Early-warning-signal engine.

Detrends a scalar series once, then computes leading-indicator statistics
over every full rolling window of the residual.  Rising variance and lag-1
autocorrelation indicate a shrinking basin of attraction (critical slowing
down).
"""

from __future__ import annotations

import logging
import warnings
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Hashable, Iterable

import numpy as np
import pandas as pd
from numpy.lib.stride_tricks import sliding_window_view
from numpy.typing import NDArray
from scipy.stats import kendalltau

from resilience.config import EWS_INDICATORS, EWSConfig
from resilience.detrend import detrend
from resilience.errors import DegenerateWindow, InvalidParameter, InvalidWindow
from resilience.types import DetrendMethod, EWSResult, ScalarSeries, StateTrajectory

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Rolling windows
# ---------------------------------------------------------------------------

def rolling_windows(values: NDArray, window_size: int) -> NDArray:
    """Read-only view of every full window, shape ``(n - w + 1, w)``.

    Row ``j`` covers input positions ``j .. j + w - 1``.  Returns an empty
    ``(0, max(w, 0))`` array when the series is shorter than the window or
    the window is non-positive.
    """
    values = np.asarray(values, dtype=float)
    if window_size <= 0 or len(values) < window_size:
        return np.empty((0, max(window_size, 0)))
    return sliding_window_view(values, window_size)


def window_from_fraction(n: int, fraction: float) -> int:
    """Window length covering ``fraction`` of a series of length ``n``."""
    if not 0.0 < fraction <= 1.0:
        raise InvalidParameter(f"fraction must be in (0, 1], got {fraction}")
    return max(1, int(n * fraction))


# ---------------------------------------------------------------------------
# Per-window statistics
# ---------------------------------------------------------------------------

def _constant_rows(windows: NDArray) -> NDArray:
    if windows.shape[0] == 0:
        return np.zeros(0, dtype=bool)
    return np.ptp(windows, axis=1) == 0


def window_variance(windows: NDArray) -> NDArray:
    """Sample variance (ddof=1) of each window; exactly 0 for constant windows."""
    n_windows, w = windows.shape
    if w < 2:
        return np.full(n_windows, np.nan)
    var = np.var(windows, axis=1, ddof=1)
    var[_constant_rows(windows)] = 0.0
    return var


def window_autocorrelation_lag1(windows: NDArray) -> NDArray:
    """Pearson correlation between ``x[:-1]`` and ``x[1:]`` inside each window.

    Each half is centred on its own mean, so only the overlapping pairs
    contribute.  NaN where either half is constant or ``w < 3``.
    """
    n_windows, w = windows.shape
    if w < 3:
        return np.full(n_windows, np.nan)
    lead = windows[:, :-1] - windows[:, :-1].mean(axis=1, keepdims=True)
    lag = windows[:, 1:] - windows[:, 1:].mean(axis=1, keepdims=True)
    num = np.sum(lead * lag, axis=1)
    den = np.sqrt(np.sum(lead ** 2, axis=1) * np.sum(lag ** 2, axis=1))
    defined = (den > 0) & ~_constant_rows(windows[:, :-1]) & ~_constant_rows(windows[:, 1:])
    with np.errstate(divide="ignore", invalid="ignore"):
        ar1 = np.where(defined, num / den, np.nan)
    return ar1


def _central_moments(windows: NDArray) -> tuple[NDArray, NDArray, NDArray]:
    dev = windows - windows.mean(axis=1, keepdims=True)
    return (
        np.mean(dev ** 2, axis=1),
        np.mean(dev ** 3, axis=1),
        np.mean(dev ** 4, axis=1),
    )


def window_skewness(windows: NDArray) -> NDArray:
    """Biased standardized third moment ``m3 / m2**1.5``; NaN for constant windows."""
    if windows.shape[0] == 0:
        return np.zeros(0)
    m2, m3, _ = _central_moments(windows)
    degenerate = _constant_rows(windows) | (m2 <= 0)
    with np.errstate(divide="ignore", invalid="ignore"):
        skew = m3 / m2 ** 1.5
    skew[degenerate] = np.nan
    return skew


def window_kurtosis(windows: NDArray) -> NDArray:
    """Biased standardized fourth moment ``m4 / m2**2`` (non-excess).

    A Gaussian window gives about 3.  NaN for constant windows.
    """
    if windows.shape[0] == 0:
        return np.zeros(0)
    m2, _, m4 = _central_moments(windows)
    degenerate = _constant_rows(windows) | (m2 <= 0)
    with np.errstate(divide="ignore", invalid="ignore"):
        kurt = m4 / m2 ** 2
    kurt[degenerate] = np.nan
    return kurt


def window_coefficient_of_variation(residual_windows: NDArray, raw_windows: NDArray) -> NDArray:
    """Residual standard deviation over the absolute mean of the raw window."""
    std = np.sqrt(window_variance(residual_windows))
    level = np.abs(raw_windows.mean(axis=1)) if raw_windows.shape[0] else np.zeros(0)
    with np.errstate(divide="ignore", invalid="ignore"):
        cv = np.where(level > 0, std / level, np.nan)
    return cv


def return_rate_from_ar1(ar1: NDArray) -> NDArray:
    """Return rate as ``1 / AR1``; NaN where AR1 is zero or undefined."""
    ar1 = np.asarray(ar1, dtype=float)
    with np.errstate(divide="ignore", invalid="ignore"):
        return np.where(np.isfinite(ar1) & (ar1 != 0), 1.0 / ar1, np.nan)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

def _as_series(series: Any) -> ScalarSeries:
    if isinstance(series, ScalarSeries):
        return series
    if isinstance(series, StateTrajectory):
        return series.to_series()
    if isinstance(series, pd.Series):
        return ScalarSeries.from_pandas(series)
    return ScalarSeries(np.asarray(series, dtype=float))


def _resolve_indicators(indicators: Iterable[str] | None) -> tuple[str, ...]:
    if indicators is None:
        return EWS_INDICATORS
    indicators = tuple(indicators)
    unknown = [name for name in indicators if name not in EWS_INDICATORS]
    if unknown:
        raise InvalidParameter(
            f"Unknown indicators: {unknown}; expected a subset of {EWS_INDICATORS}"
        )
    return indicators


def compute_ews(
    series: ScalarSeries | pd.Series | StateTrajectory | NDArray,
    window_size: int,
    detrend_method: DetrendMethod | str = DetrendMethod.GAUSSIAN,
    bandwidth: float | None = None,
    indicators: Iterable[str] | None = None,
) -> EWSResult:
    """Rolling early-warning statistics of a detrended series.

    Parameters
    ----------
    series : ScalarSeries, pandas Series, StateTrajectory or array of shape (n,)
        Input observations.  The index (timestamps) labels the output.
    window_size : int
        Rolling window length in samples.
    detrend_method : {"none", "linear", "gaussian"}
        Trend removed once before the rolling statistics.
    bandwidth : float, optional
        Gaussian kernel standard deviation in samples (``gaussian`` only).
    indicators : iterable of str, optional
        Subset of :data:`resilience.config.EWS_INDICATORS`; all by default.

    Returns
    -------
    EWSResult
        ``max(0, n - window_size + 1)`` values per statistic.  Statistic
        ``j`` belongs to the window ending at input position
        ``j + window_size - 1``; ``timeindex[j]`` is the input index there.
    """
    series = _as_series(series)
    names = _resolve_indicators(indicators)
    if isinstance(window_size, bool) or not isinstance(window_size, (int, np.integer)):
        raise InvalidParameter(f"window_size must be an integer, got {window_size!r}")
    window_size = int(window_size)

    trend, residual = detrend(series.values, detrend_method, bandwidth=bandwidth)
    method_name = DetrendMethod(detrend_method).value

    if window_size <= 0:
        warnings.warn(
            f"window_size={window_size} is not positive; no windows to evaluate",
            InvalidWindow,
            stacklevel=2,
        )
    elif len(series) < window_size:
        logger.debug(
            "Series of length %d is shorter than window %d; empty result",
            len(series), window_size,
        )

    res_windows = rolling_windows(residual, window_size)
    raw_windows = rolling_windows(series.values, window_size)
    n_windows = res_windows.shape[0]
    timeindex = series.index[window_size - 1:] if n_windows else series.index[:0]

    stats: dict[str, NDArray] = {}
    ar1 = None
    for name in names:
        if name == "variance":
            stats[name] = window_variance(res_windows)
        elif name == "std":
            stats[name] = np.sqrt(window_variance(res_windows))
        elif name == "autocorrelation_lag1":
            ar1 = window_autocorrelation_lag1(res_windows) if ar1 is None else ar1
            stats[name] = ar1
        elif name == "skewness":
            stats[name] = window_skewness(res_windows)
        elif name == "kurtosis":
            stats[name] = window_kurtosis(res_windows)
        elif name == "coefficient_of_variation":
            stats[name] = window_coefficient_of_variation(res_windows, raw_windows)
        elif name == "return_rate":
            ar1 = window_autocorrelation_lag1(res_windows) if ar1 is None else ar1
            stats[name] = return_rate_from_ar1(ar1)

    n_degenerate = int(_constant_rows(res_windows).sum())
    if n_degenerate:
        warnings.warn(
            f"{n_degenerate} of {n_windows} windows have zero variance; "
            "higher moments are NaN there",
            DegenerateWindow,
            stacklevel=2,
        )

    logger.debug(
        "EWS over %d windows (w=%d, detrend=%s, indicators=%s)",
        n_windows, window_size, method_name, ",".join(names),
    )
    return EWSResult(
        timeindex=timeindex,
        statistics=stats,
        window_size=window_size,
        detrend_method=method_name,
        trend=trend,
        residual=residual,
    )


def compute_ews_from_config(
    series: ScalarSeries | pd.Series | StateTrajectory | NDArray,
    config: EWSConfig,
) -> EWSResult:
    """:func:`compute_ews` with every knob taken from ``config``."""
    return compute_ews(
        series,
        config.window_size,
        detrend_method=config.detrend,
        bandwidth=config.bandwidth,
        indicators=config.indicators,
    )


# ---------------------------------------------------------------------------
# Trend summary
# ---------------------------------------------------------------------------

def kendall_trend(
    result: EWSResult,
    statistics: Iterable[str] | None = None,
) -> dict[str, float]:
    """Kendall tau of each statistic against window position.

    Positive tau means the indicator rises over time.  NaN windows are
    dropped; a statistic with fewer than two finite values gets NaN.
    """
    names = list(statistics) if statistics is not None else result.names
    taus: dict[str, float] = {}
    for name in names:
        values = np.asarray(result[name], dtype=float)
        finite = np.isfinite(values)
        if finite.sum() < 2:
            taus[name] = float("nan")
            continue
        positions = np.arange(len(values))[finite]
        tau, _ = kendalltau(positions, values[finite])
        taus[name] = float(tau)
    return taus


# ---------------------------------------------------------------------------
# Many independent series
# ---------------------------------------------------------------------------

def compute_ews_columns(
    matrix: pd.DataFrame | NDArray,
    window_size: int,
    detrend_method: DetrendMethod | str = DetrendMethod.GAUSSIAN,
    bandwidth: float | None = None,
    indicators: Iterable[str] | None = None,
    index: NDArray | None = None,
    max_workers: int | None = None,
) -> dict[Hashable, EWSResult]:
    """Run :func:`compute_ews` on every column of ``matrix`` independently.

    Rows are time steps.  Non-finite entries are dropped per column before
    detrending, so each result is indexed by that column's surviving
    timestamps.  Results are keyed by column label (DataFrame) or column
    position (array), in column order.
    """
    if isinstance(matrix, pd.DataFrame):
        frame = matrix
    else:
        arr = np.asarray(matrix, dtype=float)
        if arr.ndim != 2:
            raise InvalidParameter(f"matrix must be 2-D, got shape {arr.shape}")
        frame = pd.DataFrame(arr)
    if index is not None:
        frame = frame.set_axis(np.asarray(index), axis=0)

    indicators = _resolve_indicators(indicators)

    def _one(label: Hashable) -> EWSResult:
        column = frame[label]
        column = column[np.isfinite(column.to_numpy(dtype=float))]
        return compute_ews(
            ScalarSeries(column.to_numpy(dtype=float), column.index.to_numpy(), name=str(label)),
            window_size,
            detrend_method=detrend_method,
            bandwidth=bandwidth,
            indicators=indicators,
        )

    results: dict[Hashable, EWSResult] = {}
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = {pool.submit(_one, label): label for label in frame.columns}
        for future in as_completed(futures):
            results[futures[future]] = future.result()

    logger.info("Computed EWS for %d columns", len(results))
    return {label: results[label] for label in frame.columns}
