"""Tests for CSV price and JSON experiment loading."""

import io
import json
from datetime import date

import pytest

from drift.data_loader import (
    load_experiment,
    load_price_csv,
    parse_experiment,
    parse_price_csv,
)
from drift.errors import UnknownModel
from drift.models import RebalanceFrequency, SimulationModel


def _make_config() -> dict:
    return {
        "version": "1",
        "experiment": {"name": "60/40", "description": "Balanced"},
        "portfolio": {
            "assets": [{"symbol": "SPY", "weight": 0.6}, {"symbol": "AGG", "weight": 0.4}],
            "rebalance": "quarterly",
        },
        "simulation": {
            "model": "bootstrap",
            "num_paths": 5000,
            "horizon_days": 2520,
            "lookback_days": 1260,
            "start_value": 100000,
            "seed": 42,
        },
        "parameters": {"annual_contribution": 6000, "withdrawal_rate": 0.04},
    }


def test_single_symbol_csv_uses_filename():
    csv = io.StringIO(
        "Date,Open,High,Low,Close,Volume,Adjusted_Close\n"
        "2024-01-02,99,101,98,100,12345,100.5\n"
        "2024-01-03,100,102,99,101,23456,101.5\n"
    )
    records = parse_price_csv(csv, "aapl.csv")
    assert len(records) == 2
    first = records[0]
    assert first.symbol == "AAPL"
    assert first.date == date(2024, 1, 2)
    assert first.adjusted_close == 100.5
    assert first.open == 99.0
    assert first.close == 100.0
    assert first.volume == 12345


def test_multi_symbol_csv():
    csv = io.StringIO(
        "symbol,date,adjusted_close\n"
        " spy ,2024-01-02,470.1\n"
        "agg,2024-01-02,98.2\n"
    )
    records = parse_price_csv(csv, "prices.csv")
    assert [r.symbol for r in records] == ["SPY", "AGG"]
    assert records[1].volume == 0


def test_invalid_rows_are_skipped():
    csv = io.StringIO(
        "date,adjusted_close\n"
        "2024-01-02,100\n"
        "2024-01-03,\n"
        "2024-01-04,0\n"
        "2024-01-05,-3\n"
        "not-a-date,101\n"
        "2024-01-08,abc\n"
        "2024-01-09,102\n"
    )
    records = parse_price_csv(csv, "x.csv")
    assert [r.adjusted_close for r in records] == [100.0, 102.0]


def test_missing_required_column_raises():
    csv = io.StringIO("date,close\n2024-01-02,100\n")
    with pytest.raises(ValueError, match="missing columns"):
        parse_price_csv(csv, "x.csv")


def test_symbol_required_without_filename():
    csv = io.StringIO("date,adjusted_close\n2024-01-02,100\n")
    with pytest.raises(ValueError, match="symbol"):
        parse_price_csv(csv)


def test_load_price_csv_from_disk(tmp_path):
    path = tmp_path / "msft.csv"
    path.write_text("date,adjusted_close\n2024-01-02,370.0\n")
    records = load_price_csv(path)
    assert records[0].symbol == "MSFT"


def test_load_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_price_csv(tmp_path / "missing.csv")


def test_parse_experiment():
    experiment = parse_experiment(_make_config())
    assert experiment.name == "60/40"
    assert experiment.description == "Balanced"
    assert experiment.portfolio.symbols == ["SPY", "AGG"]
    assert experiment.portfolio.rebalance is RebalanceFrequency.QUARTERLY
    cfg = experiment.config
    assert cfg.model is SimulationModel.BOOTSTRAP
    assert cfg.num_paths == 5000
    assert cfg.start_value == 100_000.0
    assert cfg.seed == 42
    assert cfg.annual_contribution == 6000.0
    assert cfg.withdrawal_rate == 0.04
    assert cfg.validate() == ""


def test_parse_experiment_defaults():
    data = _make_config()
    del data["simulation"]["model"]
    del data["simulation"]["seed"]
    del data["portfolio"]["rebalance"]
    del data["parameters"]
    experiment = parse_experiment(data)
    assert experiment.config.model is SimulationModel.GBM
    assert experiment.config.seed is None
    assert experiment.config.annual_contribution == 0.0
    assert experiment.portfolio.rebalance is RebalanceFrequency.NONE


def test_parse_experiment_unknown_model():
    data = _make_config()
    data["simulation"]["model"] = "garch"
    with pytest.raises(UnknownModel):
        parse_experiment(data)


def test_load_experiment_bad_json(tmp_path):
    path = tmp_path / "exp.json"
    path.write_text("{not json")
    with pytest.raises(ValueError, match="decode experiment JSON"):
        load_experiment(path)


def test_load_experiment(tmp_path):
    path = tmp_path / "exp.json"
    path.write_text(json.dumps(_make_config()))
    assert load_experiment(path).config.horizon_days == 2520
