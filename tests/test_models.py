"""Tests for the domain model."""

import pytest

from drift.errors import UnknownModel
from drift.models import (
    Portfolio,
    PortfolioAsset,
    RebalanceFrequency,
    RunStatus,
    SimulationConfig,
    SimulationModel,
)


def _valid_config(**overrides) -> SimulationConfig:
    fields = dict(
        model=SimulationModel.GBM,
        num_paths=1000,
        horizon_days=252,
        lookback_days=756,
        start_value=100_000.0,
    )
    fields.update(overrides)
    return SimulationConfig(**fields)


def test_valid_config_has_no_message():
    assert _valid_config().validate() == ""


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"num_paths": 0}, "num_paths must be positive"),
        ({"num_paths": -1}, "num_paths must be positive"),
        ({"horizon_days": 0}, "horizon_days must be positive"),
        ({"horizon_days": -5}, "horizon_days must be positive"),
        ({"lookback_days": 0}, "lookback_days must be positive"),
        ({"start_value": 0.0}, "start_value must be positive"),
        ({"start_value": -1.0}, "start_value must be positive"),
    ],
)
def test_invalid_config_reports_violation(overrides, message):
    assert _valid_config(**overrides).validate() == message


def test_validate_does_not_correct_values():
    cfg = _valid_config(num_paths=0)
    cfg.validate()
    assert cfg.num_paths == 0


def test_horizon_years():
    assert _valid_config(horizon_days=504).horizon_years == 2.0


def test_total_weight():
    portfolio = Portfolio(assets=(
        PortfolioAsset("AAPL", 0.4),
        PortfolioAsset("GOOG", 0.35),
        PortfolioAsset("MSFT", 0.25),
    ))
    assert abs(portfolio.total_weight() - 1.0) < 1e-9


def test_total_weight_not_enforced():
    portfolio = Portfolio(assets=(PortfolioAsset("AAPL", 0.3), PortfolioAsset("GOOG", 0.3)))
    assert abs(portfolio.total_weight() - 0.6) < 1e-9
    assert Portfolio().total_weight() == 0.0


def test_parse_model():
    assert SimulationModel.parse("bootstrap") is SimulationModel.BOOTSTRAP
    assert SimulationModel.parse(SimulationModel.GBM) is SimulationModel.GBM


def test_parse_unknown_model_raises():
    with pytest.raises(UnknownModel, match="garch"):
        SimulationModel.parse("garch")


def test_config_from_dict_keeps_missing_fields_at_zero():
    cfg = SimulationConfig.from_dict({"model": "bootstrap", "num_paths": 10})
    assert cfg.model is SimulationModel.BOOTSTRAP
    assert cfg.seed is None
    assert cfg.validate() == "horizon_days must be positive"


def test_config_dict_round_trip_preserves_seed():
    cfg = _valid_config(seed=7, annual_contribution=5000.0)
    assert SimulationConfig.from_dict(cfg.to_dict()) == cfg


def test_portfolio_from_dict_defaults_rebalance():
    portfolio = Portfolio.from_dict({"assets": [{"symbol": "SPY", "weight": 1}]})
    assert portfolio.rebalance is RebalanceFrequency.NONE
    assert portfolio.symbols == ["SPY"]
    assert portfolio.weights == [1.0]


def test_run_status_terminal():
    assert not RunStatus.RUNNING.is_terminal
    assert RunStatus.COMPLETE.is_terminal
    assert RunStatus.FAILED.is_terminal
    assert RunStatus.CANCELLED.is_terminal


def test_unrecognised_model_name_is_kept_verbatim():
    cfg = _valid_config(model="garch")
    assert cfg.model_name == "garch"
    assert cfg.to_dict()["model"] == "garch"
    assert _valid_config().model_name == "gbm"
