"""Matplotlib figures for trajectories, forcing and early-warning signals.

Every function returns the ``Figure`` it drew on; nothing is shown
interactively.
"""

from __future__ import annotations

from pathlib import Path
from typing import Sequence

import matplotlib
matplotlib.use("Agg")  # non-interactive backend for headless rendering
import matplotlib.pyplot as plt
import numpy as np

from resilience.forcing import ForcingFunction
from resilience.simulator import equilibrium_branches
from resilience.types import EWSResult, StateTrajectory

STAT_LABELS = {
    "variance": "Variance",
    "std": "Standard deviation",
    "autocorrelation_lag1": "AR(1)",
    "skewness": "Skewness",
    "kurtosis": "Kurtosis",
    "coefficient_of_variation": "CV",
    "return_rate": "Return rate",
}


def save_figure(fig: plt.Figure, path: str | Path) -> Path:
    """Save ``fig`` to ``path`` (format from the suffix) and close it."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(str(path), bbox_inches="tight")
    plt.close(fig)
    return path


def plot_trajectory(
    trajectories: StateTrajectory | Sequence[StateTrajectory],
    labels: Sequence[str] | None = None,
    title: str = "Fish population",
) -> plt.Figure:
    """Population against time, one line per trajectory."""
    if isinstance(trajectories, StateTrajectory):
        trajectories = [trajectories]
    labels = list(labels) if labels is not None else [None] * len(trajectories)
    fig, ax = plt.subplots(figsize=(7, 3.5))
    for traj, label in zip(trajectories, labels):
        ax.plot(traj.times, traj.states, lw=1.0, label=label)
    ax.set_xlabel("Time")
    ax.set_ylabel("Population x")
    ax.set_title(title)
    if any(label is not None for label in labels):
        ax.legend(frameon=False)
    fig.tight_layout()
    return fig


def plot_forcing(forcing: ForcingFunction, times: np.ndarray) -> plt.Figure:
    """Harvest rate c(t) over ``times``."""
    fig, ax = plt.subplots(figsize=(7, 2.5))
    ax.plot(times, forcing.sample(times), color="#d62728", lw=1.2)
    ax.set_xlabel("Time")
    ax.set_ylabel("Harvest rate c")
    fig.tight_layout()
    return fig


def plot_ews(
    result: EWSResult,
    statistics: Sequence[str] | None = None,
    series: StateTrajectory | None = None,
) -> plt.Figure:
    """One panel per statistic, sharing the time axis.

    When ``series`` is given it is drawn in a top panel together with the
    trend that was removed before the rolling statistics.
    """
    names = list(statistics) if statistics is not None else result.names
    n_panels = len(names) + (1 if series is not None else 0)
    fig, axes = plt.subplots(
        n_panels, 1, figsize=(7, 1.8 * max(n_panels, 1)), sharex=True, squeeze=False,
    )
    axes = axes[:, 0]
    offset = 0
    if series is not None:
        ax = axes[0]
        ax.plot(series.times, series.states, lw=0.8, color="0.3", label="state")
        if result.trend is not None and len(result.trend) == len(series):
            ax.plot(series.times, result.trend, lw=1.2, color="#ff7f0e", label="trend")
        ax.legend(frameon=False, fontsize=8)
        offset = 1
    for ax, name in zip(axes[offset:], names):
        ax.plot(result.timeindex, result[name], lw=1.0)
        ax.set_ylabel(STAT_LABELS.get(name, name))
    axes[-1].set_xlabel("Time")
    fig.suptitle(f"Early-warning signals (window={result.window_size}, "
                 f"detrend={result.detrend_method})")
    fig.tight_layout()
    return fig


def plot_bifurcation(K: float, c_values: np.ndarray) -> plt.Figure:
    """Equilibria against harvest rate; dots stable, crosses unstable."""
    branches = equilibrium_branches(K, c_values)
    fig, ax = plt.subplots(figsize=(6, 4))
    stable = branches[branches["stable"]]
    unstable = branches[~branches["stable"]]
    ax.scatter(stable["c"], stable["x"], s=4, color="#1f77b4", label="stable")
    ax.scatter(unstable["c"], unstable["x"], s=4, color="#d62728", marker="x", label="unstable")
    ax.set_xlabel("Harvest rate c")
    ax.set_ylabel("Equilibrium x*")
    ax.set_title(f"Fold bifurcation (K={K:g})")
    ax.legend(frameon=False)
    fig.tight_layout()
    return fig
