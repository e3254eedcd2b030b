"""Tests for the RK4 simulator and the fold analysis of the harvest model."""

from __future__ import annotations

import numpy as np
import numpy.testing as npt
import pytest

from resilience.config import ModelParams, NoiseConfig, ResilienceConfig, SimulationConfig
from resilience.errors import ForcingOutOfRange, InvalidGrid, InvalidParameter
from resilience.forcing import ForcingFunction
from resilience.noise import UniformNoise
from resilience.simulator import (
    equilibrium_branches,
    find_equilibria,
    fisheries_rhs,
    fold_points,
    integrate,
    recovery_rate,
    simulate_fisheries,
    simulate_from_config,
    stable_equilibria,
)
from resilience.types import StateTrajectory, TimeGrid


# ============================================================
# Helpers
# ============================================================

class ConstantNoise:
    """Noise source that always returns the same value and counts draws."""

    def __init__(self, value: float) -> None:
        self.value = value
        self.draws = 0

    def sample(self) -> float:
        self.draws += 1
        return self.value


def growth_only(t, y, params, forcing_value, noise_value):
    return y


def noise_only(t, y, params, forcing_value, noise_value):
    return noise_value


@pytest.fixture
def params():
    return ModelParams(K=10.0, c=1.0)


@pytest.fixture
def grid():
    return TimeGrid.from_range(0.0, 50.0, 0.1)


# ============================================================
# Right-hand side
# ============================================================

class TestFisheriesRHS:

    def test_zero_is_fixed_point(self, params):
        assert fisheries_rhs(0.0, 0.0, params) == 0.0

    def test_known_value(self, params):
        # x=1: 1*(1 - 0.1) - 1 * 1/2 = 0.4
        assert fisheries_rhs(0.0, 1.0, params) == pytest.approx(0.4)

    def test_forcing_value_replaces_c(self, params):
        forced = fisheries_rhs(0.0, 1.0, params, forcing_value=0.0)
        assert forced == pytest.approx(0.9)

    def test_noise_added_to_derivative(self, params):
        base = fisheries_rhs(0.0, 2.0, params)
        assert fisheries_rhs(0.0, 2.0, params, noise_value=0.25) == pytest.approx(base + 0.25)


# ============================================================
# integrate
# ============================================================

class TestIntegrate:

    def test_returns_one_state_per_grid_point(self, params, grid):
        traj = integrate(fisheries_rhs, 8.0, grid, params)
        assert isinstance(traj, StateTrajectory)
        assert len(traj) == len(grid)
        npt.assert_array_equal(traj.times, grid.points)
        assert traj.states[0] == 8.0

    def test_rk4_accuracy_on_exponential(self, params):
        traj = integrate(growth_only, 1.0, TimeGrid.from_range(0.0, 1.0, 0.1), params)
        assert traj.final_state == pytest.approx(np.e, abs=1e-5)

    def test_accepts_plain_sequence_grid(self, params):
        traj = integrate(fisheries_rhs, 8.0, [0.0, 0.1, 0.3, 0.6], params)
        assert len(traj) == 4

    def test_non_uniform_steps_follow_grid(self, params):
        noise = ConstantNoise(1.0)
        traj = integrate(noise_only, 0.0, [0.0, 0.5, 2.0, 2.25], params, noise=noise)
        npt.assert_allclose(traj.states, [0.0, 0.5, 2.0, 2.25])

    def test_converges_to_stable_equilibrium_without_noise(self, params):
        x_star = stable_equilibria(10.0, 1.0)[-1].state
        traj = integrate(
            fisheries_rhs, x_star - 0.5, TimeGrid.from_range(0.0, 60.0, 0.01), params,
        )
        tail = traj.between(30.0, None).states
        assert np.max(np.abs(tail - x_star)) < 1e-4

    def test_states_never_negative_under_strong_negative_noise(self, params, grid):
        noise = UniformNoise(-50.0, -10.0, seed=3)
        traj = integrate(fisheries_rhs, 8.0, grid, params, noise=noise)
        assert np.all(traj.states >= 0.0)
        assert np.any(traj.states == 0.0)

    @pytest.mark.parametrize("c", [0.0, 1.0, 2.0, 2.5, 3.0, 5.0])
    def test_states_never_negative_across_harvest_rates(self, c, grid):
        noise = UniformNoise(-3.0, 3.0, seed=11)
        traj = integrate(fisheries_rhs, 0.5, grid, ModelParams(K=10.0, c=c), noise=noise)
        assert np.all(traj.states >= 0.0)

    def test_negative_initial_state_is_clamped(self, params, grid):
        traj = integrate(fisheries_rhs, -2.0, grid, params)
        assert traj.states[0] == 0.0
        npt.assert_array_equal(traj.states, 0.0)

    def test_trajectory_is_read_only(self, params, grid):
        traj = integrate(fisheries_rhs, 8.0, grid, params)
        with pytest.raises(ValueError):
            traj.states[0] = 1.0

    def test_non_finite_initial_state_rejected(self, params, grid):
        with pytest.raises(InvalidParameter):
            integrate(fisheries_rhs, float("nan"), grid, params)


class TestIntegrateGridValidation:

    @pytest.mark.parametrize("points", [
        [0.0],
        [],
        [0.0, 1.0, 1.0],
        [0.0, 2.0, 1.0],
        [[0.0, 1.0], [2.0, 3.0]],
        [0.0, float("inf")],
    ])
    def test_invalid_grid(self, params, points):
        with pytest.raises(InvalidGrid):
            integrate(fisheries_rhs, 8.0, points, params)

    def test_invalid_grid_is_a_value_error(self, params):
        with pytest.raises(ValueError):
            integrate(fisheries_rhs, 8.0, [1.0, 0.0], params)


class TestNoiseInjection:

    def test_one_draw_per_rhs_evaluation(self, params):
        noise = ConstantNoise(0.0)
        integrate(fisheries_rhs, 8.0, TimeGrid.from_range(0.0, 1.0, 0.1), params, noise=noise)
        assert noise.draws == 4 * 10

    def test_constant_noise_integrates_over_step(self, params):
        noise = ConstantNoise(2.0)
        traj = integrate(noise_only, 1.0, TimeGrid.from_range(0.0, 1.0, 0.25), params, noise=noise)
        npt.assert_allclose(traj.states, 1.0 + 2.0 * traj.times)

    def test_same_seed_is_bit_for_bit_identical(self, params, grid):
        a = integrate(fisheries_rhs, 8.0, grid, params, noise=UniformNoise(-1, 1, seed=7))
        b = integrate(fisheries_rhs, 8.0, grid, params, noise=UniformNoise(-1, 1, seed=7))
        assert np.array_equal(a.states, b.states)

    def test_different_seeds_differ(self, params, grid):
        a = integrate(fisheries_rhs, 8.0, grid, params, noise=UniformNoise(-1, 1, seed=7))
        b = integrate(fisheries_rhs, 8.0, grid, params, noise=UniformNoise(-1, 1, seed=8))
        assert not np.array_equal(a.states, b.states)


class TestForcing:

    def test_forcing_queried_at_stage_times(self, params):
        calls: list[float] = []

        def forcing(t):
            calls.append(t)
            return 1.0

        integrate(fisheries_rhs, 8.0, [0.0, 1.0, 2.0], params, forcing=forcing)
        npt.assert_allclose(calls, [0.0, 0.5, 0.5, 1.0, 1.0, 1.5, 1.5, 2.0])

    def test_forcing_overrides_constant_c(self, grid):
        no_harvest = ForcingFunction.from_pairs([(0.0, 0.0), (50.0, 0.0)])
        traj = integrate(
            fisheries_rhs, 8.0, grid, ModelParams(K=10.0, c=3.0), forcing=no_harvest,
        )
        assert traj.forced
        assert traj.final_state == pytest.approx(10.0, abs=1e-3)

    def test_strict_forcing_out_of_range_raises(self, params, grid):
        forcing = ForcingFunction.from_pairs([(0.0, 1.0), (10.0, 1.0)], policy="strict")
        with pytest.raises(ForcingOutOfRange):
            integrate(fisheries_rhs, 8.0, grid, params, forcing=forcing)

    def test_strict_forcing_covering_grid_is_fine(self, params):
        forcing = ForcingFunction.from_pairs([(0.0, 1.0), (10.0, 1.0)], policy="strict")
        traj = integrate(
            fisheries_rhs, 8.0, TimeGrid.from_range(0.0, 10.0, 0.5), params, forcing=forcing,
        )
        assert len(traj) == 21

    def test_clamped_forcing_extends_boundary_value(self, params, grid):
        forcing = ForcingFunction.from_pairs([(0.0, 1.0), (10.0, 1.0)])
        forced = integrate(fisheries_rhs, 8.0, grid, params, forcing=forcing)
        constant = integrate(fisheries_rhs, 8.0, grid, params)
        npt.assert_allclose(forced.states, constant.states)


class TestSimulateFisheries:

    def test_uses_simulation_config(self):
        traj = simulate_fisheries(
            ModelParams(K=10.0, c=1.0), SimulationConfig(t_end=10.0, dt=0.5, y0=3.0),
        )
        assert len(traj) == 21
        assert traj.states[0] == 3.0
        assert traj.times[-1] == pytest.approx(10.0)

    def test_defaults(self):
        traj = simulate_fisheries(simulation=SimulationConfig(t_end=5.0, dt=0.1))
        assert traj.params == ModelParams()


class TestSimulateFromConfig:

    @pytest.fixture
    def config(self):
        return ResilienceConfig(
            model=ModelParams(K=10.0, c=1.0),
            simulation=SimulationConfig(t_end=20.0, dt=0.1, y0=8.0),
            random_seed=3,
        )

    def test_random_seed_drives_noise(self, config):
        first = simulate_from_config(config)
        again = simulate_from_config(config)
        assert np.array_equal(first.states, again.states)

        config.random_seed = 4
        other = simulate_from_config(config)
        assert not np.array_equal(first.states, other.states)

    def test_matches_explicit_noise(self, config):
        explicit = simulate_fisheries(
            config.model, config.simulation, noise=UniformNoise(-1.0, 1.0, seed=3),
        )
        assert np.array_equal(simulate_from_config(config).states, explicit.states)

    def test_disabled_noise_is_deterministic(self, config):
        config.noise = NoiseConfig(enabled=False)
        traj = simulate_from_config(config)
        assert np.array_equal(traj.states, simulate_fisheries(config.model, config.simulation).states)


# ============================================================
# Equilibria and folds
# ============================================================

class TestEquilibria:

    def test_single_positive_equilibrium_below_fold(self):
        eqs = find_equilibria(10.0, 1.0)
        assert len(eqs) == 2
        assert eqs[0].state == 0.0 and not eqs[0].stable
        assert eqs[1].stable
        assert eqs[1].state == pytest.approx(8.89, abs=0.01)

    def test_bistable_range(self):
        eqs = find_equilibria(10.0, 2.5)
        assert [eq.stable for eq in eqs] == [False, True, False, True]
        params = ModelParams(K=10.0, c=2.5)
        for eq in eqs:
            assert fisheries_rhs(0.0, eq.state, params) == pytest.approx(0.0, abs=1e-9)

    def test_no_harvest_equilibrium_is_carrying_capacity(self):
        eqs = find_equilibria(10.0, 0.0)
        assert eqs[-1].state == pytest.approx(10.0)

    def test_fold_points(self):
        folds = fold_points(10.0)
        assert len(folds) == 2
        (c_low, x_low), (c_high, x_high) = folds
        assert c_low == pytest.approx(1.787, abs=0.01)
        assert c_high == pytest.approx(2.604, abs=0.01)
        assert x_low < x_high

    def test_no_fold_for_small_carrying_capacity(self):
        assert fold_points(4.0) == []

    def test_recovery_rate_falls_towards_fold(self):
        x1 = stable_equilibria(10.0, 1.0)[-1].state
        x2 = stable_equilibria(10.0, 2.5)[-1].state
        assert recovery_rate(10.0, 1.0, x1) > recovery_rate(10.0, 2.5, x2) > 0.0

    def test_equilibrium_branches_frame(self):
        frame = equilibrium_branches(10.0, [1.0, 2.5])
        assert list(frame.columns) == ["c", "x", "stable"]
        assert len(frame) == 2 + 4

    def test_invalid_parameters(self):
        with pytest.raises(InvalidParameter):
            find_equilibria(0.0, 1.0)
        with pytest.raises(InvalidParameter):
            find_equilibria(10.0, -1.0)
