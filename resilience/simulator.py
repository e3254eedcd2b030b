"""ODE simulator for the harvested fish population.

    dx/dt = x * (1 - x/K) - c * x^2 / (x^2 + 1) + noise

Integration is classical fixed-step RK4 on the caller's time grid, so the
output is sampled exactly where the early-warning engine expects it.  The
state is clamped to zero after every step: a population cannot go negative
and the harvest term misbehaves for x < 0.
"""

from __future__ import annotations

import logging
import math
from typing import Callable, Sequence

import numpy as np
import pandas as pd

from resilience.config import ModelParams, ResilienceConfig, SimulationConfig
from resilience.errors import InvalidParameter, ResilienceError
from resilience.forcing import ForcingFunction
from resilience.noise import UniformNoise
from resilience.types import Equilibrium, StateTrajectory, TimeGrid

logger = logging.getLogger(__name__)

# model(t, y, params, forcing_value, noise_value) -> dy/dt
ModelFn = Callable[[float, float, ModelParams, "float | None", float], float]


# ---------------------------------------------------------------------------
# Right-hand side
# ---------------------------------------------------------------------------

def fisheries_rhs(
    t: float,
    y: float,
    params: ModelParams,
    forcing_value: float | None = None,
    noise_value: float = 0.0,
) -> float:
    """Logistic growth minus a sigmoidal (Holling type III) harvest.

    ``forcing_value`` replaces ``params.c`` when given.
    """
    c = params.c if forcing_value is None else forcing_value
    return y * (1.0 - y / params.K) - c * (y ** 2 / (y ** 2 + 1.0)) + noise_value


def rhs_derivative(K: float, c: float, x: float) -> float:
    """d(dx/dt)/dx of the noise-free model at ``x``."""
    return 1.0 - 2.0 * x / K - c * 2.0 * x / (x ** 2 + 1.0) ** 2


# ---------------------------------------------------------------------------
# Integration
# ---------------------------------------------------------------------------

def integrate(
    model: ModelFn,
    y0: float,
    t_grid: TimeGrid | Sequence[float] | np.ndarray,
    params: ModelParams,
    forcing: ForcingFunction | Callable[[float], float] | None = None,
    noise: UniformNoise | None = None,
) -> StateTrajectory:
    """Integrate ``model`` over ``t_grid`` with RK4 and a non-negativity clamp.

    Parameters
    ----------
    model : callable
        ``model(t, y, params, forcing_value, noise_value) -> dy/dt``.
    y0 : float
        Initial state.
    t_grid : TimeGrid or array-like
        Strictly increasing time points; each RK4 step spans two
        consecutive points.
    params : ModelParams
    forcing : callable, optional
        ``forcing(t) -> c``.  Queried at every RK4 stage time, not only at
        grid points.
    noise : UniformNoise, optional
        One draw per RHS evaluation, added to dy/dt.

    Returns
    -------
    StateTrajectory
        One state per grid point, all ``>= 0``.

    Raises
    ------
    InvalidGrid
        If ``t_grid`` is malformed.
    ForcingOutOfRange
        If a strict forcing function is queried outside its table.
    """
    grid = TimeGrid.coerce(t_grid)
    y0 = float(y0)
    if not math.isfinite(y0):
        raise InvalidParameter(f"y0 must be finite, got {y0}")
    if y0 < 0.0:
        logger.warning("Initial state %g is negative; clamped to 0", y0)
        y0 = 0.0

    times = grid.points
    states = np.empty(len(times))
    states[0] = y0

    def rhs(t: float, y: float) -> float:
        forcing_value = forcing(t) if forcing is not None else None
        noise_value = noise.sample() if noise is not None else 0.0
        return model(t, y, params, forcing_value, noise_value)

    logger.debug(
        "Integrating %d steps from t=%g to t=%g (K=%g, c=%s, noise=%s)",
        len(times) - 1, times[0], times[-1], params.K,
        "forced" if forcing is not None else params.c, noise,
    )

    y = y0
    n_clamped = 0
    for i in range(len(times) - 1):
        t = times[i]
        h = times[i + 1] - t
        k1 = rhs(t, y)
        k2 = rhs(t + h / 2, y + h / 2 * k1)
        k3 = rhs(t + h / 2, y + h / 2 * k2)
        k4 = rhs(t + h, y + h * k3)
        y = y + h / 6 * (k1 + 2 * k2 + 2 * k3 + k4)
        if not math.isfinite(y):
            raise ResilienceError(f"integration diverged at t={times[i + 1]:g}")
        if y < 0.0:
            y = 0.0
            n_clamped += 1
        states[i + 1] = y

    if n_clamped:
        logger.debug("State clamped to zero at %d grid points", n_clamped)

    return StateTrajectory(times, states, params=params, forced=forcing is not None)


def simulate_fisheries(
    params: ModelParams | None = None,
    simulation: SimulationConfig | None = None,
    forcing: ForcingFunction | None = None,
    noise: UniformNoise | None = None,
) -> StateTrajectory:
    """Run :func:`fisheries_rhs` on the uniform grid described by ``simulation``."""
    params = params or ModelParams()
    simulation = simulation or SimulationConfig()
    grid = TimeGrid.from_range(simulation.t_start, simulation.t_end, simulation.dt)
    return integrate(fisheries_rhs, simulation.y0, grid, params, forcing=forcing, noise=noise)


def simulate_from_config(
    config: ResilienceConfig,
    forcing: ForcingFunction | None = None,
) -> StateTrajectory:
    """Run the model described by ``config``.

    The noise source is built from ``config.noise`` and seeded with
    ``config.random_seed``, so equal configs give identical trajectories.
    """
    noise = UniformNoise.from_config(config.noise, seed=config.random_seed)
    return simulate_fisheries(config.model, config.simulation, forcing=forcing, noise=noise)


# ---------------------------------------------------------------------------
# Equilibria and folds
# ---------------------------------------------------------------------------

def _positive_real_roots(coefficients: Sequence[float], tol: float = 1e-7) -> list[float]:
    roots = np.roots(coefficients)
    real = roots[np.abs(roots.imag) <= tol * np.maximum(1.0, np.abs(roots.real))].real
    return sorted(float(r) for r in real if r > 0.0)


def find_equilibria(K: float, c: float) -> list[Equilibrium]:
    """Non-negative fixed points of the noise-free model, in increasing order.

    ``x = 0`` is always a fixed point.  The others solve
    ``x^3 - K x^2 + (1 + cK) x - K = 0``.
    """
    ModelParams(K=K, c=c)  # validates
    states = [0.0] + _positive_real_roots([1.0, -K, 1.0 + c * K, -K])
    return [Equilibrium(state=x, eigenvalue=rhs_derivative(K, c, x)) for x in states]


def stable_equilibria(K: float, c: float) -> list[Equilibrium]:
    return [eq for eq in find_equilibria(K, c) if eq.stable]


def fold_points(K: float) -> list[tuple[float, float]]:
    """``(c, x)`` pairs where two equilibria collide, sorted by ``c``.

    Along the equilibrium curve ``c(x) = x + 1/x - x^2/K - 1/K``; folds sit
    at ``dc/dx = 0``, i.e. the positive roots of ``2x^3 - K x^2 + K = 0``.
    Empty when there is no bistable range for this ``K``.
    """
    ModelParams(K=K)
    folds = []
    for x in _positive_real_roots([2.0, -K, 0.0, K]):
        c = x + 1.0 / x - x ** 2 / K - 1.0 / K
        if c >= 0.0:
            folds.append((c, x))
    return sorted(folds)


def recovery_rate(K: float, c: float, x: float) -> float:
    """Return rate ``-f'(x)`` after a small perturbation away from ``x``."""
    return -rhs_derivative(K, c, x)


def equilibrium_branches(K: float, c_values: Sequence[float]) -> pd.DataFrame:
    """Equilibria over a sweep of ``c``: columns ``c``, ``x``, ``stable``."""
    rows = []
    for c in c_values:
        for eq in find_equilibria(K, float(c)):
            rows.append({"c": float(c), "x": eq.state, "stable": eq.stable})
    return pd.DataFrame(rows, columns=["c", "x", "stable"])
