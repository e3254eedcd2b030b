"""Fisheries resilience exercises -- critical slowing down before a fold.

HYPOTHESIS
----------
As the harvest rate c approaches the fold of the harvested logistic model

    dx/dt = x (1 - x/K) - c x^2 / (x^2 + 1)

the basin of attraction of the high-population state shrinks, recovery
from perturbations slows down, and the lag-1 autocorrelation and variance
of the fluctuations rise.

APPROACH
--------
1. Equilibrium convergence -- noise off, constant c below the fold; the
   trajectory settles on the stable equilibrium.
2. Resilience comparison -- K=10, c=1 vs c=2.5, same noise seed, y0=8;
   AR(1) and variance on the stationary segment are higher for c=2.5.
3. Forced transition -- c ramps linearly through the fold; EWS on the
   pre-transition segment trend upwards (positive Kendall tau).
4. Real data -- EWS on one longitude column of the remote-sensing matrix
   (only when a dataset is supplied).

Run:
    python experiments/fisheries_resilience.py
"""

from __future__ import annotations

import sys
import time
from pathlib import Path

# Ensure project root is on the path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

import numpy as np

from resilience.config import ModelParams, ResilienceConfig, SimulationConfig
from resilience.datasets import RemoteSensingDataset, select_longitude
from resilience.early_warning import (
    compute_ews,
    compute_ews_from_config,
    kendall_trend,
    window_from_fraction,
)
from resilience.forcing import ForcingFunction
from resilience.noise import UniformNoise
from resilience.simulator import (
    fold_points,
    recovery_rate,
    simulate_fisheries,
    simulate_from_config,
    stable_equilibria,
)


# =====================================================================
# 1. Equilibrium convergence
# =====================================================================

def run_equilibrium_convergence(
    K: float = 10.0,
    c: float = 1.0,
    y0: float = 8.0,
    t_end: float = 100.0,
    dt: float = 0.1,
    tail_start: float = 50.0,
) -> dict:
    """Deterministic run towards the stable equilibrium reached from ``y0``.

    Returns
    -------
    dict with keys:
        trajectory     : StateTrajectory
        equilibrium    : float, stable equilibrium nearest to the final state
        final_error    : |x(t_end) - x*|
        max_tail_error : max |x(t) - x*| for t >= tail_start
    """
    params = ModelParams(K=K, c=c)
    traj = simulate_fisheries(params, SimulationConfig(t_end=t_end, dt=dt, y0=y0))
    candidates = [eq.state for eq in stable_equilibria(K, c)]
    x_star = min(candidates, key=lambda x: abs(x - traj.final_state))
    tail = traj.between(tail_start, None).states
    return {
        "trajectory": traj,
        "equilibrium": x_star,
        "final_error": abs(traj.final_state - x_star),
        "max_tail_error": float(np.max(np.abs(tail - x_star))),
    }


# =====================================================================
# 2. Resilience comparison (c = 1 vs c = 2.5)
# =====================================================================

def run_resilience_comparison(
    K: float = 10.0,
    harvest_rates: tuple[float, ...] = (1.0, 2.5),
    y0: float = 8.0,
    t_end: float = 500.0,
    dt: float = 0.1,
    burn_in: float = 200.0,
    noise_range: tuple[float, float] = (-1.0, 1.0),
    seed: int = 42,
    window_fraction: float = 0.5,
    detrend_method: str = "linear",
) -> dict[float, dict]:
    """Simulate each harvest rate with the same noise seed and compare EWS.

    The segment after ``burn_in`` is treated as stationary.

    Returns
    -------
    dict mapping c -> dict with keys:
        trajectory, segment, ews, ar1, variance, recovery_rate, equilibrium
    """
    results: dict[float, dict] = {}
    for c in harvest_rates:
        params = ModelParams(K=K, c=c)
        noise = UniformNoise(*noise_range, seed=seed)
        traj = simulate_fisheries(
            params, SimulationConfig(t_end=t_end, dt=dt, y0=y0), noise=noise,
        )
        segment = traj.between(burn_in, None)
        window = window_from_fraction(len(segment), window_fraction)
        ews = compute_ews(
            segment, window, detrend_method=detrend_method,
            indicators=("variance", "autocorrelation_lag1"),
        )
        x_star = min(
            (eq.state for eq in stable_equilibria(K, c)),
            key=lambda x: abs(x - float(np.mean(segment.states))),
        )
        results[c] = {
            "trajectory": traj,
            "segment": segment,
            "ews": ews,
            "ar1": float(np.nanmean(ews["autocorrelation_lag1"])),
            "variance": float(np.nanmean(ews["variance"])),
            "equilibrium": x_star,
            "recovery_rate": recovery_rate(K, c, x_star),
        }
    return results


# =====================================================================
# 3. Forced transition through the fold
# =====================================================================

def run_forced_transition(
    K: float = 10.0,
    forcing_table: tuple[tuple[float, float], ...] = ((0.0, 0.0), (1000.0, 5.0)),
    y0: float = 8.0,
    t_end: float = 1000.0,
    dt: float = 0.2,
    noise_range: tuple[float, float] = (-1.0, 1.0),
    seed: int = 42,
    window_fraction: float = 0.5,
    detrend_method: str = "gaussian",
    bandwidth: float | None = None,
) -> dict:
    """Ramp c through the upper fold and compute EWS before the collapse.

    The transition time is the first time the population falls below the
    state at which the upper branch disappears.

    Returns
    -------
    dict with keys:
        trajectory, forcing, fold_c, fold_x, transition_time,
        pre_transition, ews, kendall
    """
    forcing = ForcingFunction.from_pairs(forcing_table)
    noise = UniformNoise(*noise_range, seed=seed)
    traj = simulate_fisheries(
        ModelParams(K=K, c=float(forcing(0.0))),
        SimulationConfig(t_end=t_end, dt=dt, y0=y0),
        forcing=forcing,
        noise=noise,
    )

    folds = fold_points(K)
    if folds:
        fold_c, fold_x = folds[-1]
    else:
        fold_c, fold_x = float("nan"), 0.0

    below = np.nonzero(traj.states[1:] < fold_x)[0] + 1
    if below.size:
        transition_time = float(traj.times[below[0]])
        pre = traj.between(None, float(traj.times[below[0] - 1]))
    else:
        transition_time = None
        pre = traj
    window = window_from_fraction(len(pre), window_fraction)
    ews = compute_ews(pre, window, detrend_method=detrend_method, bandwidth=bandwidth)
    return {
        "trajectory": traj,
        "forcing": forcing,
        "fold_c": fold_c,
        "fold_x": fold_x,
        "transition_time": transition_time,
        "pre_transition": pre,
        "ews": ews,
        "kendall": kendall_trend(ews, ("variance", "autocorrelation_lag1")),
    }


# =====================================================================
# Single configured run
# =====================================================================

def run_configured(
    config: ResilienceConfig | None = None,
    forcing: ForcingFunction | None = None,
) -> dict:
    """Simulate and compute EWS with every setting taken from ``config``.

    Returns
    -------
    dict with keys:
        config, trajectory, ews, kendall
    """
    config = config or ResilienceConfig()
    traj = simulate_from_config(config, forcing=forcing)
    ews = compute_ews_from_config(traj, config.ews)
    return {
        "config": config,
        "trajectory": traj,
        "ews": ews,
        "kendall": kendall_trend(ews),
    }


# =====================================================================
# 4. Real data
# =====================================================================

def run_real_data(
    dataset: RemoteSensingDataset,
    lon: float,
    start: float | str | None = None,
    end: float | str | None = None,
    window_fraction: float = 0.5,
    detrend_method: str = "gaussian",
    bandwidth: float | None = None,
) -> dict:
    """EWS for the longitude column nearest ``lon`` within ``[start, end]``."""
    series = select_longitude(dataset, lon).between(start, end)
    window = window_from_fraction(max(len(series), 1), window_fraction)
    ews = compute_ews(series, window, detrend_method=detrend_method, bandwidth=bandwidth)
    return {
        "series": series,
        "ews": ews,
        "kendall": kendall_trend(ews, ("variance", "autocorrelation_lag1")),
    }


# =====================================================================
# Main
# =====================================================================

def main():
    print("=" * 72)
    print("FISHERIES RESILIENCE: critical slowing down before a fold")
    print("  Model : dx/dt = x(1 - x/K) - c x^2/(x^2 + 1) + noise")
    print("  Solver: RK4, fixed step, state clamped at 0")
    print("=" * 72)
    start_time = time.time()

    print("\n[1/3] Equilibrium convergence (K=10, c=1, no noise) ...")
    conv = run_equilibrium_convergence()
    print(f"  x*                 = {conv['equilibrium']:.4f}")
    print(f"  |x(T) - x*|        = {conv['final_error']:.2e}")
    print(f"  max tail deviation = {conv['max_tail_error']:.2e}")

    print("\n[2/3] Resilience comparison (K=10, y0=8, same seed) ...")
    comp = run_resilience_comparison()
    print(f"  {'c':>5s} {'x*':>8s} {'recovery':>9s} {'AR(1)':>8s} {'variance':>10s}")
    print(f"  {'-' * 44}")
    for c, res in comp.items():
        print(
            f"  {c:5.2f} {res['equilibrium']:8.3f} {res['recovery_rate']:9.4f} "
            f"{res['ar1']:8.4f} {res['variance']:10.5f}"
        )

    print("\n[3/3] Forced transition (c ramps 0 -> 5 over t in [0, 1000]) ...")
    forced = run_forced_transition()
    print(f"  upper fold         : c = {forced['fold_c']:.3f}, x = {forced['fold_x']:.3f}")
    if forced["transition_time"] is None:
        print("  no transition within the simulated horizon")
    else:
        print(f"  transition at t    = {forced['transition_time']:.1f}")
    for name, tau in forced["kendall"].items():
        print(f"  Kendall tau {name:<22s} = {tau:+.3f}")

    elapsed = time.time() - start_time
    print()
    print(f"Total experiment time: {elapsed:.1f}s")

    return {
        "convergence": conv,
        "comparison": comp,
        "forced": forced,
        "elapsed": elapsed,
    }


if __name__ == "__main__":
    main()
