"""In-memory and SQLite implementations of the repository ports."""

from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import replace
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Iterator, Sequence

from drift.errors import PersistenceError
from drift.models import (
    Asset,
    Experiment,
    Portfolio,
    PriceRecord,
    Run,
    RunStatus,
    SimulationConfig,
)
from drift.stats import ResultStats

logger = logging.getLogger(__name__)


def _latest(records: list[PriceRecord], limit: int) -> list[PriceRecord]:
    ordered = sorted(records, key=lambda r: r.date)
    if limit > 0:
        return ordered[-limit:]
    return ordered


class InMemoryStore:
    """Dictionary-backed store implementing the asset, experiment and run repositories."""

    def __init__(self) -> None:
        self._assets: dict[str, Asset] = {}
        self._prices: dict[str, dict[date, PriceRecord]] = {}
        self._experiments: dict[str, Experiment] = {}
        self._runs: dict[str, Run] = {}

    # ------------------------------------------------------------------
    # Assets and prices
    # ------------------------------------------------------------------

    def upsert_asset(self, asset: Asset) -> None:
        if not asset.id:
            asset = replace(asset, id=asset.symbol)
        self._assets[asset.symbol] = asset

    def get_asset(self, symbol: str) -> Asset:
        try:
            return self._assets[symbol]
        except KeyError:
            raise PersistenceError(f"asset not found: {symbol}") from None

    def list_assets(self) -> list[Asset]:
        return sorted(self._assets.values(), key=lambda a: a.symbol)

    def delete_asset(self, symbol: str) -> None:
        self._assets.pop(symbol, None)
        self._prices.pop(symbol, None)

    def upsert_price_records(self, records: Sequence[PriceRecord]) -> None:
        for r in records:
            self._prices.setdefault(r.symbol, {})[r.date] = r

    def get_price_records(self, symbol: str, limit: int = 0) -> list[PriceRecord]:
        return _latest(list(self._prices.get(symbol, {}).values()), limit)

    # ------------------------------------------------------------------
    # Experiments
    # ------------------------------------------------------------------

    def save_experiment(self, experiment: Experiment) -> None:
        self._experiments[experiment.id] = experiment

    def get_experiment(self, experiment_id: str) -> Experiment:
        try:
            return self._experiments[experiment_id]
        except KeyError:
            raise PersistenceError(f"experiment not found: {experiment_id}") from None

    def list_experiments(self) -> list[Experiment]:
        return sorted(
            self._experiments.values(),
            key=lambda e: e.created_at.isoformat() if e.created_at else "",
            reverse=True,
        )

    def delete_experiment(self, experiment_id: str) -> None:
        self._experiments.pop(experiment_id, None)
        for run_id in [r.id for r in self._runs.values() if r.experiment_id == experiment_id]:
            del self._runs[run_id]

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    def save_run(self, run: Run) -> None:
        self._runs[run.id] = run.snapshot()

    def get_run(self, run_id: str) -> Run:
        try:
            return self._runs[run_id].snapshot()
        except KeyError:
            raise PersistenceError(f"run not found: {run_id}") from None

    def list_runs(self, experiment_id: str) -> list[Run]:
        runs = [r.snapshot() for r in self._runs.values() if r.experiment_id == experiment_id]
        return sorted(runs, key=lambda r: r.started_at, reverse=True)


SCHEMA = """
CREATE TABLE IF NOT EXISTS assets (
    id      TEXT PRIMARY KEY,
    symbol  TEXT NOT NULL UNIQUE,
    name    TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS price_records (
    symbol         TEXT NOT NULL,
    date           TEXT NOT NULL,
    open           REAL,
    high           REAL,
    low            REAL,
    close          REAL,
    volume         INTEGER,
    adjusted_close REAL NOT NULL,
    PRIMARY KEY (symbol, date)
);

CREATE TABLE IF NOT EXISTS experiments (
    id          TEXT PRIMARY KEY,
    name        TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    portfolio   TEXT NOT NULL,
    config      TEXT NOT NULL,
    created_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS runs (
    id            TEXT PRIMARY KEY,
    experiment_id TEXT NOT NULL,
    started_at    TEXT NOT NULL,
    finished_at   TEXT,
    status        TEXT NOT NULL,
    error         TEXT NOT NULL DEFAULT '',
    stats         TEXT NOT NULL DEFAULT '{}'
);

CREATE INDEX IF NOT EXISTS idx_runs_experiment ON runs(experiment_id, started_at);
"""


class SQLiteStore:
    """
    SQLite-backed store implementing all three repositories.

    Portfolios, configs and stats are stored as JSON text; timestamps as
    ISO-8601 strings. Any ``sqlite3.Error`` surfaces as PersistenceError.
    """

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None

    def _ensure_connected(self) -> sqlite3.Connection:
        """Open the connection and apply the schema on first use."""
        if self._conn is not None:
            return self._conn
        with self._errors("open database"):
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self.db_path))
            conn.execute("PRAGMA journal_mode=WAL")
            conn.executescript(SCHEMA)
            conn.commit()
        self._conn = conn
        logger.debug("Opened SQLite store at %s", self.db_path)
        return conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> SQLiteStore:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    @staticmethod
    @contextmanager
    def _errors(action: str) -> Iterator[None]:
        try:
            yield
        except sqlite3.Error as exc:
            raise PersistenceError(f"{action}: {exc}") from exc

    # ------------------------------------------------------------------
    # Assets and prices
    # ------------------------------------------------------------------

    def upsert_asset(self, asset: Asset) -> None:
        conn = self._ensure_connected()
        with self._errors("upsert asset"), conn:
            conn.execute(
                """
                INSERT INTO assets (id, symbol, name) VALUES (?, ?, ?)
                ON CONFLICT(symbol) DO UPDATE SET name = excluded.name
                """,
                (asset.id or asset.symbol, asset.symbol, asset.name),
            )

    def get_asset(self, symbol: str) -> Asset:
        conn = self._ensure_connected()
        with self._errors("get asset"):
            row = conn.execute(
                "SELECT id, symbol, name FROM assets WHERE symbol = ?", (symbol,)
            ).fetchone()
        if row is None:
            raise PersistenceError(f"asset not found: {symbol}")
        return Asset(id=row[0], symbol=row[1], name=row[2])

    def list_assets(self) -> list[Asset]:
        conn = self._ensure_connected()
        with self._errors("list assets"):
            rows = conn.execute("SELECT id, symbol, name FROM assets ORDER BY symbol").fetchall()
        return [Asset(id=r[0], symbol=r[1], name=r[2]) for r in rows]

    def delete_asset(self, symbol: str) -> None:
        conn = self._ensure_connected()
        with self._errors("delete asset"), conn:
            conn.execute("DELETE FROM assets WHERE symbol = ?", (symbol,))
            conn.execute("DELETE FROM price_records WHERE symbol = ?", (symbol,))

    def upsert_price_records(self, records: Sequence[PriceRecord]) -> None:
        conn = self._ensure_connected()
        with self._errors("upsert price records"), conn:
            conn.executemany(
                """
                INSERT INTO price_records
                (symbol, date, open, high, low, close, volume, adjusted_close)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(symbol, date) DO UPDATE SET
                    open = excluded.open, high = excluded.high, low = excluded.low,
                    close = excluded.close, volume = excluded.volume,
                    adjusted_close = excluded.adjusted_close
                """,
                [
                    (
                        r.symbol, r.date.isoformat(), r.open, r.high, r.low,
                        r.close, r.volume, r.adjusted_close,
                    )
                    for r in records
                ],
            )

    def get_price_records(self, symbol: str, limit: int = 0) -> list[PriceRecord]:
        conn = self._ensure_connected()
        query = """
            SELECT symbol, date, open, high, low, close, volume, adjusted_close
            FROM price_records WHERE symbol = ? ORDER BY date DESC
        """
        params: tuple = (symbol,)
        if limit > 0:
            query += " LIMIT ?"
            params = (symbol, limit)
        with self._errors("get price records"):
            rows = conn.execute(query, params).fetchall()
        records = [
            PriceRecord(
                symbol=r[0],
                date=date.fromisoformat(r[1]),
                open=r[2] or 0.0,
                high=r[3] or 0.0,
                low=r[4] or 0.0,
                close=r[5] or 0.0,
                volume=r[6] or 0,
                adjusted_close=r[7],
            )
            for r in rows
        ]
        records.reverse()
        return records

    # ------------------------------------------------------------------
    # Experiments
    # ------------------------------------------------------------------

    def save_experiment(self, experiment: Experiment) -> None:
        conn = self._ensure_connected()
        created = experiment.created_at or datetime.now(timezone.utc)
        updated = experiment.updated_at or created
        with self._errors("save experiment"), conn:
            conn.execute(
                """
                INSERT INTO experiments
                (id, name, description, portfolio, config, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name = excluded.name, description = excluded.description,
                    portfolio = excluded.portfolio, config = excluded.config,
                    updated_at = excluded.updated_at
                """,
                (
                    experiment.id,
                    experiment.name,
                    experiment.description,
                    json.dumps(experiment.portfolio.to_dict()),
                    json.dumps(experiment.config.to_dict()),
                    created.isoformat(),
                    updated.isoformat(),
                ),
            )

    _EXPERIMENT_COLUMNS = "id, name, description, portfolio, config, created_at, updated_at"

    @staticmethod
    def _experiment_from_row(row: tuple) -> Experiment:
        return Experiment(
            id=row[0],
            name=row[1],
            description=row[2],
            portfolio=Portfolio.from_dict(json.loads(row[3])),
            config=SimulationConfig.from_dict(json.loads(row[4])),
            created_at=datetime.fromisoformat(row[5]),
            updated_at=datetime.fromisoformat(row[6]),
        )

    def get_experiment(self, experiment_id: str) -> Experiment:
        conn = self._ensure_connected()
        with self._errors("get experiment"):
            row = conn.execute(
                f"SELECT {self._EXPERIMENT_COLUMNS} FROM experiments WHERE id = ?",
                (experiment_id,),
            ).fetchone()
        if row is None:
            raise PersistenceError(f"experiment not found: {experiment_id}")
        return self._experiment_from_row(row)

    def list_experiments(self) -> list[Experiment]:
        conn = self._ensure_connected()
        with self._errors("list experiments"):
            rows = conn.execute(
                f"SELECT {self._EXPERIMENT_COLUMNS} FROM experiments ORDER BY created_at DESC"
            ).fetchall()
        return [self._experiment_from_row(r) for r in rows]

    def delete_experiment(self, experiment_id: str) -> None:
        conn = self._ensure_connected()
        with self._errors("delete experiment"), conn:
            conn.execute("DELETE FROM experiments WHERE id = ?", (experiment_id,))
            conn.execute("DELETE FROM runs WHERE experiment_id = ?", (experiment_id,))

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    def save_run(self, run: Run) -> None:
        conn = self._ensure_connected()
        finished = run.finished_at.isoformat() if run.finished_at else None
        with self._errors("save run"), conn:
            conn.execute(
                """
                INSERT INTO runs
                (id, experiment_id, started_at, finished_at, status, error, stats)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    finished_at = excluded.finished_at, status = excluded.status,
                    error = excluded.error, stats = excluded.stats
                """,
                (
                    run.id,
                    run.experiment_id,
                    run.started_at.isoformat(),
                    finished,
                    run.status.value,
                    run.error,
                    json.dumps(run.stats.to_dict()),
                ),
            )

    _RUN_COLUMNS = "id, experiment_id, started_at, finished_at, status, error, stats"

    @staticmethod
    def _run_from_row(row: tuple) -> Run:
        return Run(
            id=row[0],
            experiment_id=row[1],
            started_at=datetime.fromisoformat(row[2]),
            finished_at=datetime.fromisoformat(row[3]) if row[3] else None,
            status=RunStatus(row[4]),
            error=row[5],
            stats=ResultStats.from_dict(json.loads(row[6])),
        )

    def get_run(self, run_id: str) -> Run:
        conn = self._ensure_connected()
        with self._errors("get run"):
            row = conn.execute(
                f"SELECT {self._RUN_COLUMNS} FROM runs WHERE id = ?", (run_id,)
            ).fetchone()
        if row is None:
            raise PersistenceError(f"run not found: {run_id}")
        return self._run_from_row(row)

    def list_runs(self, experiment_id: str) -> list[Run]:
        conn = self._ensure_connected()
        with self._errors("list runs"):
            rows = conn.execute(
                f"SELECT {self._RUN_COLUMNS} FROM runs WHERE experiment_id = ? "
                "ORDER BY started_at DESC",
                (experiment_id,),
            ).fetchall()
        return [self._run_from_row(r) for r in rows]
