"""Tests for the fisheries resilience exercises.

Covers: equilibrium convergence, the c=1 vs c=2.5 resilience comparison,
the forced transition through the fold, and the real-data exercise.
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure project root on path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

import numpy as np
import pytest

from experiments.fisheries_resilience import (
    run_configured,
    run_equilibrium_convergence,
    run_forced_transition,
    run_real_data,
    run_resilience_comparison,
)
from resilience.config import EWSConfig, ModelParams, ResilienceConfig, SimulationConfig
from resilience.datasets import RemoteSensingDataset


# ============================================================
# 1. Equilibrium convergence
# ============================================================

class TestEquilibriumConvergence:

    def test_settles_on_equilibrium(self):
        res = run_equilibrium_convergence(K=10.0, c=1.0, y0=8.0, t_end=80.0, dt=0.05)
        assert res["equilibrium"] == pytest.approx(8.889, abs=1e-3)
        assert res["final_error"] < 1e-8
        assert res["max_tail_error"] < 1e-6

    def test_low_start_in_bistable_range_finds_low_branch(self):
        res = run_equilibrium_convergence(K=10.0, c=2.5, y0=0.3, t_end=100.0, dt=0.05)
        assert res["equilibrium"] < 1.0
        assert res["max_tail_error"] < 1e-4


# ============================================================
# 2. Resilience comparison
# ============================================================

@pytest.fixture(scope="module")
def comparison():
    return run_resilience_comparison(
        K=10.0, harvest_rates=(1.0, 2.5), y0=8.0,
        t_end=400.0, dt=0.1, burn_in=150.0, seed=42,
    )


class TestResilienceComparison:

    def test_ar1_higher_closer_to_fold(self, comparison):
        assert comparison[2.5]["ar1"] > comparison[1.0]["ar1"]

    def test_variance_higher_closer_to_fold(self, comparison):
        assert comparison[2.5]["variance"] > comparison[1.0]["variance"]

    def test_recovery_slower_closer_to_fold(self, comparison):
        assert comparison[2.5]["recovery_rate"] < comparison[1.0]["recovery_rate"]

    def test_stays_on_upper_branch(self, comparison):
        for res in comparison.values():
            assert np.all(res["segment"].states > 3.0)
            assert np.all(res["trajectory"].states >= 0.0)

    def test_segment_starts_after_burn_in(self, comparison):
        assert comparison[1.0]["segment"].times[0] >= 150.0

    def test_reproducible(self, comparison):
        again = run_resilience_comparison(
            K=10.0, harvest_rates=(1.0,), y0=8.0,
            t_end=400.0, dt=0.1, burn_in=150.0, seed=42,
        )
        assert np.array_equal(
            again[1.0]["trajectory"].states, comparison[1.0]["trajectory"].states,
        )


# ============================================================
# 3. Forced transition
# ============================================================

@pytest.fixture(scope="module")
def forced():
    return run_forced_transition(seed=42)


class TestForcedTransition:

    def test_transition_after_fold_region(self, forced):
        assert forced["fold_c"] == pytest.approx(2.604, abs=0.01)
        assert forced["transition_time"] is not None
        # c(t) = t / 200 crosses the fold near t = 521
        assert 400.0 < forced["transition_time"] < 700.0

    def test_pre_transition_segment_precedes_collapse(self, forced):
        pre = forced["pre_transition"]
        assert pre.times[-1] < forced["transition_time"]
        assert np.all(pre.states >= forced["fold_x"])

    def test_collapse_after_transition(self, forced):
        traj = forced["trajectory"]
        assert traj.final_state < 1.0

    def test_autocorrelation_rises_before_collapse(self, forced):
        assert forced["kendall"]["autocorrelation_lag1"] > 0.0

    def test_ews_aligned_with_pre_transition(self, forced):
        ews = forced["ews"]
        pre = forced["pre_transition"]
        assert ews.timeindex[-1] == pre.times[-1]
        assert ews.n_windows == len(pre) - ews.window_size + 1


# ============================================================
# Configured run
# ============================================================

class TestConfiguredRun:

    @pytest.fixture
    def config(self):
        return ResilienceConfig(
            model=ModelParams(K=10.0, c=1.0),
            simulation=SimulationConfig(t_end=50.0, dt=0.1, y0=8.0),
            ews=EWSConfig(window_size=100, detrend="linear",
                          indicators=("variance", "autocorrelation_lag1")),
            random_seed=11,
        )

    def test_ews_follows_config(self, config):
        res = run_configured(config)
        assert res["ews"].window_size == 100
        assert res["ews"].detrend_method == "linear"
        assert res["ews"].names == ["variance", "autocorrelation_lag1"]
        assert res["ews"].n_windows == len(res["trajectory"]) - 100 + 1
        assert set(res["kendall"]) == {"variance", "autocorrelation_lag1"}

    def test_same_seed_same_run(self, config):
        a = run_configured(config)["trajectory"]
        b = run_configured(config)["trajectory"]
        assert np.array_equal(a.states, b.states)


# ============================================================
# 4. Real data
# ============================================================

class TestRealData:

    def test_runs_on_selected_column(self):
        rng = np.random.default_rng(0)
        n = 200
        matrix = np.column_stack([
            rng.standard_normal(n),
            rng.standard_normal(n) * np.linspace(0.5, 2.0, n),
        ])
        dataset = RemoteSensingDataset(matrix, [0.0], [10.0, 20.0], np.arange(n) * 7.0)
        res = run_real_data(dataset, lon=19.0, detrend_method="none")
        assert res["series"].name == "lon=20"
        assert res["ews"].n_windows == n - 100 + 1
        assert res["kendall"]["variance"] > 0.0

    def test_time_range_selection(self):
        matrix = np.random.default_rng(1).standard_normal((100, 1))
        dataset = RemoteSensingDataset(matrix, [0.0], [0.0], np.arange(100.0))
        res = run_real_data(dataset, lon=0.0, start=20.0, end=59.0)
        assert len(res["series"]) == 40
        assert res["ews"].timeindex[0] == 20.0 + 20 - 1
