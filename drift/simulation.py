"""Services that sequence estimation, path generation, aggregation and persistence."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import TextIO

import numpy as np

from drift.data_loader import parse_price_csv
from drift.errors import (
    InsufficientHistory,
    PersistenceError,
    SimulationCancelled,
    ValidationError,
)
from drift.estimator import adjusted_closes, log_returns, usable_records
from drift.identity import new_id
from drift.models import (
    Asset,
    Experiment,
    Portfolio,
    PriceRecord,
    Run,
    RunStatus,
    SimulationConfig,
    SimulationModel,
)
from drift.paths import PathGenerator, SimulatedPath, build_generator
from drift.ports import AssetRepository, ExperimentRepository, PriceHistoryProvider, RunRepository
from drift.stats import ResultStats, compute_stats
from drift.worker_pool import WorkerPool

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class SimulationOutcome:
    paths: list[SimulatedPath]
    stats: ResultStats


class SimulationEngine:
    """Estimate per-asset returns, fan path generation out to a worker pool, aggregate."""

    def __init__(
        self,
        prices: PriceHistoryProvider,
        pool: WorkerPool | None = None,
    ) -> None:
        self.prices = prices
        self.pool = pool or WorkerPool()

    # ------------------------------------------------------------------
    # Estimation
    # ------------------------------------------------------------------

    def historical_returns(
        self,
        portfolio: Portfolio,
        config: SimulationConfig,
    ) -> list[np.ndarray]:
        """Log-return sample per asset over the lookback window."""
        returns = []
        for asset in portfolio.assets:
            records = self.prices.get_price_records(asset.symbol, config.lookback_days + 1)
            usable = usable_records(records)
            if usable < 2:
                raise InsufficientHistory(asset.symbol, usable)
            returns.append(log_returns(adjusted_closes(records)))
        return returns

    def prepare(self, portfolio: Portfolio, config: SimulationConfig) -> PathGenerator:
        """Validate the config and build a generator from freshly fetched history."""
        message = config.validate()
        if message:
            raise ValidationError(message)
        SimulationModel.parse(config.model)
        returns = self.historical_returns(portfolio, config)
        return build_generator(config, portfolio.weights, returns)

    # ------------------------------------------------------------------
    # Generation and aggregation
    # ------------------------------------------------------------------

    def generate(
        self,
        portfolio: Portfolio,
        config: SimulationConfig,
        cancel_event: threading.Event | None = None,
    ) -> list[SimulatedPath]:
        generator = self.prepare(portfolio, config)
        return self.pool.run(generator, config.num_paths, seed=config.seed, cancel_event=cancel_event)

    def simulate(
        self,
        portfolio: Portfolio,
        config: SimulationConfig,
        cancel_event: threading.Event | None = None,
    ) -> SimulationOutcome:
        paths = self.generate(portfolio, config, cancel_event=cancel_event)
        stats = compute_stats(paths, config.start_value, config.horizon_years)
        return SimulationOutcome(paths=paths, stats=stats)


class SimulationService:
    """
    Runs experiments and records each invocation as a Run.

    A run is written once as ``running`` before any work starts and once more
    with its terminal status. Errors are recorded on the run and re-raised;
    nothing is retried.
    """

    def __init__(
        self,
        assets: PriceHistoryProvider,
        runs: RunRepository,
        experiments: ExperimentRepository,
        pool: WorkerPool | None = None,
        keep_paths: bool = False,
    ) -> None:
        self.runs = runs
        self.experiments = experiments
        self.engine = SimulationEngine(assets, pool)
        self.keep_paths = keep_paths
        self._paths: dict[str, list[SimulatedPath]] = {}

    def run_experiment(
        self,
        experiment_id: str,
        cancel_event: threading.Event | None = None,
    ) -> Run:
        experiment = self.experiments.get_experiment(experiment_id)
        config = experiment.config

        run = Run(id=new_id("run"), experiment_id=experiment_id, started_at=_now())
        logger.info(
            "Run %s started for experiment %s (model=%s, paths=%d, horizon=%d)",
            run.id, experiment_id, config.model_name,
            config.num_paths, config.horizon_days,
        )
        self.runs.save_run(run)

        try:
            outcome = self.engine.simulate(experiment.portfolio, config, cancel_event=cancel_event)
        except SimulationCancelled as exc:
            logger.warning("Run %s cancelled", run.id)
            self._finish(run, RunStatus.CANCELLED, error=str(exc), cause=exc)
            raise
        except Exception as exc:
            logger.warning("Run %s failed: %s", run.id, exc)
            self._finish(run, RunStatus.FAILED, error=str(exc), cause=exc)
            raise

        self._finish(run, RunStatus.COMPLETE, stats=outcome.stats)
        if self.keep_paths:
            self._paths[run.id] = outcome.paths
        logger.info(
            "Run %s complete: p50=%.2f prob_loss=%.4f",
            run.id, outcome.stats.p50, outcome.stats.probability_of_loss,
        )
        return run

    def _finish(
        self,
        run: Run,
        status: RunStatus,
        error: str = "",
        stats: ResultStats | None = None,
        cause: BaseException | None = None,
    ) -> None:
        run.finished_at = _now()
        run.status = status
        run.error = error
        if stats is not None:
            run.stats = stats
        try:
            self.runs.save_run(run)
        except PersistenceError as exc:
            if cause is not None:
                raise exc from cause
            raise

    def get_run(self, run_id: str) -> Run:
        return self.runs.get_run(run_id)

    def get_run_paths(self, run_id: str) -> list[SimulatedPath]:
        """Paths of a run this service executed with ``keep_paths``; empty otherwise."""
        return self._paths.get(run_id, [])


class ResultsService:
    """Experiment bookkeeping and queries over completed runs."""

    def __init__(self, experiments: ExperimentRepository, runs: RunRepository) -> None:
        self.experiments = experiments
        self.runs = runs

    def create_experiment(self, experiment: Experiment) -> Experiment:
        now = _now()
        created = replace(
            experiment,
            id=experiment.id or new_id("exp"),
            created_at=now,
            updated_at=now,
        )
        self.experiments.save_experiment(created)
        logger.info("Created experiment %s (%s)", created.id, created.name)
        return created

    def get_experiment(self, experiment_id: str) -> Experiment:
        return self.experiments.get_experiment(experiment_id)

    def list_experiments(self) -> list[Experiment]:
        return self.experiments.list_experiments()

    def list_runs(self, experiment_id: str) -> list[Run]:
        return self.runs.list_runs(experiment_id)

    def get_run_stats(self, run_id: str) -> ResultStats:
        return self.runs.get_run(run_id).stats


class IngestionService:
    """Loads historical price files into the asset repository."""

    def __init__(self, assets: AssetRepository) -> None:
        self.assets = assets

    def ingest_csv(self, stream: TextIO, filename: str) -> int:
        """Parse a price CSV and upsert its assets and records. Returns the record count."""
        return self.ingest_records(parse_price_csv(stream, filename))

    def ingest_records(self, records: list[PriceRecord]) -> int:
        for symbol in dict.fromkeys(r.symbol for r in records):
            self.assets.upsert_asset(Asset(symbol=symbol, name=symbol))
        self.assets.upsert_price_records(records)
        logger.info("Ingested %d price records", len(records))
        return len(records)

    def list_assets(self) -> list[Asset]:
        return self.assets.list_assets()

    def get_asset_prices(self, symbol: str, limit: int = 0) -> list[PriceRecord]:
        return self.assets.get_price_records(symbol, limit)

    def delete_asset(self, symbol: str) -> None:
        self.assets.delete_asset(symbol)
