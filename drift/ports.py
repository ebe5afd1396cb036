"""Repository interfaces the services depend on."""

from __future__ import annotations

from typing import Protocol, Sequence

from drift.models import Asset, Experiment, PriceRecord, Run


class PriceHistoryProvider(Protocol):
    def get_price_records(self, symbol: str, limit: int = 0) -> list[PriceRecord]:
        """Up to ``limit`` most recent records in ascending date order; 0 means all."""
        ...


class AssetRepository(PriceHistoryProvider, Protocol):
    def upsert_asset(self, asset: Asset) -> None: ...

    def get_asset(self, symbol: str) -> Asset: ...

    def list_assets(self) -> list[Asset]: ...

    def delete_asset(self, symbol: str) -> None: ...

    def upsert_price_records(self, records: Sequence[PriceRecord]) -> None: ...


class ExperimentRepository(Protocol):
    def save_experiment(self, experiment: Experiment) -> None: ...

    def get_experiment(self, experiment_id: str) -> Experiment: ...

    def list_experiments(self) -> list[Experiment]: ...

    def delete_experiment(self, experiment_id: str) -> None: ...


class RunRepository(Protocol):
    def save_run(self, run: Run) -> None:
        """Insert or update a run by id."""
        ...

    def get_run(self, run_id: str) -> Run: ...

    def list_runs(self, experiment_id: str) -> list[Run]:
        """Runs of an experiment, most recent first."""
        ...
