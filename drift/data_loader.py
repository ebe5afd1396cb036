"""Load price history CSVs and experiment JSON configs."""

from __future__ import annotations

import json
from pathlib import Path
from typing import TextIO

import pandas as pd

from drift.models import (
    Experiment,
    Portfolio,
    PriceRecord,
    SimulationConfig,
)


def parse_price_csv(stream: TextIO, filename: str = "") -> list[PriceRecord]:
    """
    Parse a single- or multi-symbol price CSV.

    Headers are matched case-insensitively. Multi-symbol files carry a
    ``symbol`` column; otherwise the symbol is the upper-cased file stem
    (``aapl.csv`` -> ``AAPL``). Rows without a positive ``adjusted_close`` or a
    ``YYYY-MM-DD`` date are skipped.

    Args:
        stream: Text stream with a header row.
        filename: Name of the source file, used to derive the symbol.

    Returns:
        Parsed records in file order.
    """
    df = pd.read_csv(stream, dtype=str, keep_default_na=False, skipinitialspace=True)
    df.columns = [str(c).strip().lower() for c in df.columns]

    missing = {"date", "adjusted_close"} - set(df.columns)
    if missing:
        raise ValueError(f"Prices CSV missing columns: {sorted(missing)}")

    if "symbol" in df.columns:
        symbols = df["symbol"].str.strip().str.upper()
    else:
        stem = Path(filename).stem.strip()
        if not stem:
            raise ValueError("Prices CSV has no 'symbol' column and no filename to derive it from")
        symbols = pd.Series(stem.upper(), index=df.index)

    adjusted = pd.to_numeric(df["adjusted_close"].str.strip(), errors="coerce")
    dates = pd.to_datetime(df["date"].str.strip(), format="%Y-%m-%d", errors="coerce")
    keep = adjusted.notna() & (adjusted > 0) & dates.notna()

    def _column(name: str) -> pd.Series:
        if name not in df.columns:
            return pd.Series(0.0, index=df.index)
        return pd.to_numeric(df[name].str.strip(), errors="coerce").fillna(0.0)

    opens, highs, lows, closes = (_column(c) for c in ("open", "high", "low", "close"))
    volumes = _column("volume")

    return [
        PriceRecord(
            symbol=symbols[i],
            date=dates[i].date(),
            adjusted_close=float(adjusted[i]),
            open=float(opens[i]),
            high=float(highs[i]),
            low=float(lows[i]),
            close=float(closes[i]),
            volume=int(volumes[i]),
        )
        for i in df.index[keep.to_numpy()]
    ]


def load_price_csv(path: str | Path) -> list[PriceRecord]:
    """Parse a price CSV from disk; the file name supplies the default symbol."""
    path = _existing(path)
    with path.open(newline="") as fh:
        return parse_price_csv(fh, path.name)


def parse_experiment(data: dict) -> Experiment:
    """
    Build an Experiment from its JSON config::

        {"version": "1",
         "experiment": {"name": ..., "description": ...},
         "portfolio": {"assets": [{"symbol": ..., "weight": ...}], "rebalance": ...},
         "simulation": {"model": ..., "num_paths": ..., "horizon_days": ...,
                        "lookback_days": ..., "start_value": ..., "seed": ...},
         "parameters": {"annual_contribution": ..., "withdrawal_rate": ...}}

    Missing numeric fields stay at zero so that config validation reports
    them; an unrecognised model raises UnknownModel.
    """
    meta = data.get("experiment") or {}
    simulation = dict(data.get("simulation") or {})
    simulation.update(data.get("parameters") or {})
    return Experiment(
        name=meta.get("name", ""),
        description=meta.get("description", ""),
        portfolio=Portfolio.from_dict(data.get("portfolio") or {}),
        config=SimulationConfig.from_dict(simulation),
    )


def load_experiment(path: str | Path) -> Experiment:
    path = _existing(path)
    try:
        data = json.loads(path.read_text())
    except json.JSONDecodeError as exc:
        raise ValueError(f"decode experiment JSON {path}: {exc}") from exc
    return parse_experiment(data)


def _existing(path: str | Path) -> Path:
    """Resolve a path, raising a clear error if the file is missing."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Data file not found: {path}")
    return path
