"""Tests for simulated paths and path generators."""

import math

import numpy as np
import pytest

from drift.errors import UnknownModel
from drift.models import SimulationConfig, SimulationModel
from drift.paths import (
    DriftDiffusionGenerator,
    ResamplingGenerator,
    SimulatedPath,
    build_generator,
)


def _path(*values: float) -> SimulatedPath:
    return SimulatedPath(np.array(values, dtype=float))


def _gbm(horizon_days: int = 252, start_value: float = 100_000.0, **kwargs) -> DriftDiffusionGenerator:
    params = dict(mu=[0.07], sigma=[0.15], weights=[1.0])
    params.update(kwargs)
    return DriftDiffusionGenerator(horizon_days=horizon_days, start_value=start_value, **params)


# ------------------------------------------------------------------
# SimulatedPath
# ------------------------------------------------------------------


def test_final_of_empty_path_is_zero():
    assert _path().final == 0.0


def test_final_returns_last_element():
    assert _path(100).final == 100
    assert _path(100, 110, 95, 120).final == 120


@pytest.mark.parametrize(
    "values, expected",
    [
        ((), 0.0),
        ((100,), 0.0),
        ((100, 110), 0.0),
        ((100, 50), -0.5),
        ((100, 50, 200, 100), -0.5),
        ((100, 120, 60, 130, 65), -0.5),
    ],
)
def test_max_drawdown(values, expected):
    dd = _path(*values).max_drawdown
    assert abs(dd - expected) < 1e-9
    assert dd <= 0


def test_max_drawdown_ignores_non_positive_peak():
    assert _path(0, -10, -20).max_drawdown == 0.0


# ------------------------------------------------------------------
# Drift-diffusion
# ------------------------------------------------------------------


def test_gbm_path_shape_and_start():
    path = _gbm().generate(np.random.default_rng(0))
    assert len(path) == 253
    assert path.values[0] == 100_000.0
    assert path.final > 0


def test_gbm_path_deterministic():
    gen = _gbm(horizon_days=100, start_value=50_000.0, mu=[0.08], sigma=[0.20])
    p1 = gen.generate(np.random.default_rng(123))
    p2 = gen.generate(np.random.default_rng(123))
    np.testing.assert_array_equal(p1.values, p2.values)


def test_gbm_zero_volatility_grows_at_drift():
    path = _gbm(mu=[0.1], sigma=[0.0]).generate(np.random.default_rng(1))
    assert path.final == pytest.approx(100_000.0 * math.exp(0.1), rel=1e-9)


def test_gbm_weights_sum_asset_growth():
    gen = _gbm(mu=[0.1, 0.0], sigma=[0.0, 0.0], weights=[0.5, 0.5])
    path = gen.generate(np.random.default_rng(1))
    expected = 100_000.0 * (0.5 * math.exp(0.1) + 0.5)
    assert path.final == pytest.approx(expected, rel=1e-9)


def test_gbm_contribution_lands_on_anniversary_only():
    gen = _gbm(horizon_days=504, mu=[0.0], sigma=[0.0], annual_contribution=1000.0)
    values = gen.generate(np.random.default_rng(1)).values
    assert values[251] == pytest.approx(100_000.0)
    assert values[252] == pytest.approx(101_000.0)
    assert values[253] == pytest.approx(100_000.0)
    assert values[504] == pytest.approx(101_000.0)


def test_gbm_mismatched_lengths_raise():
    with pytest.raises(ValueError, match="same length"):
        _gbm(mu=[0.1, 0.2])


# ------------------------------------------------------------------
# Resampling
# ------------------------------------------------------------------


def test_resampling_path_shape_and_start():
    gen = ResamplingGenerator(
        pools=[[0.001, -0.001, 0.002, -0.002]],
        weights=[1.0],
        horizon_days=100,
        start_value=10_000.0,
    )
    path = gen.generate(np.random.default_rng(0))
    assert len(path) == 101
    assert path.values[0] == 10_000.0


def test_resampling_draws_only_from_pool():
    pool = [0.01, -0.02]
    gen = ResamplingGenerator(pools=[pool], weights=[1.0], horizon_days=50, start_value=100.0)
    values = gen.generate(np.random.default_rng(5)).values
    daily = np.log(values[1:] / values[:-1])
    for r in daily:
        assert min(abs(r - 0.01), abs(r + 0.02)) < 1e-12


def test_resampling_empty_pool_contributes_zero():
    gen = ResamplingGenerator(
        pools=[[], [0.01]],
        weights=[0.5, 0.5],
        horizon_days=10,
        start_value=1000.0,
    )
    path = gen.generate(np.random.default_rng(0))
    assert path.final == pytest.approx(1000.0 * math.exp(0.005 * 10), rel=1e-9)


def test_resampling_contribution_compounds():
    gen = ResamplingGenerator(
        pools=[[0.0]],
        weights=[1.0],
        horizon_days=300,
        start_value=1000.0,
        annual_contribution=500.0,
    )
    values = gen.generate(np.random.default_rng(0)).values
    assert values[251] == 1000.0
    assert values[252] == 1500.0
    assert values[300] == 1500.0


def test_resampling_deterministic():
    gen = ResamplingGenerator(pools=[[0.01, -0.01, 0.003]], weights=[1.0], horizon_days=60, start_value=1.0)
    p1 = gen.generate(np.random.default_rng(9))
    p2 = gen.generate(np.random.default_rng(9))
    np.testing.assert_array_equal(p1.values, p2.values)


# ------------------------------------------------------------------
# Dispatch
# ------------------------------------------------------------------


def _config(model) -> SimulationConfig:
    return SimulationConfig(model=model, num_paths=1, horizon_days=20, lookback_days=10, start_value=100.0)


def test_build_generator_gbm_estimates_params():
    returns = [np.array([0.01, 0.01, 0.01])]
    gen = build_generator(_config(SimulationModel.GBM), [1.0], returns)
    assert isinstance(gen, DriftDiffusionGenerator)
    assert gen.mu[0] == pytest.approx(2.52)
    assert gen.sigma[0] == pytest.approx(0.0)


@pytest.mark.parametrize("model", [SimulationModel.BOOTSTRAP, SimulationModel.BLOCK_BOOTSTRAP])
def test_build_generator_resampling_models(model):
    gen = build_generator(_config(model), [1.0], [np.array([0.01, -0.01])])
    assert isinstance(gen, ResamplingGenerator)


def test_block_bootstrap_matches_bootstrap():
    returns = [np.array([0.01, -0.01, 0.02])]
    a = build_generator(_config(SimulationModel.BOOTSTRAP), [1.0], returns)
    b = build_generator(_config(SimulationModel.BLOCK_BOOTSTRAP), [1.0], returns)
    np.testing.assert_array_equal(
        a.generate(np.random.default_rng(3)).values,
        b.generate(np.random.default_rng(3)).values,
    )


def test_build_generator_unknown_model():
    with pytest.raises(UnknownModel):
        build_generator(_config("garch"), [1.0], [np.array([0.01])])
