"""Domain types: portfolios, price records, simulation configs, experiments and runs."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum

from drift.errors import UnknownModel
from drift.stats import ResultStats


class SimulationModel(str, Enum):
    """Stochastic model used to generate paths."""

    GBM = "gbm"
    BOOTSTRAP = "bootstrap"
    BLOCK_BOOTSTRAP = "block_bootstrap"

    @classmethod
    def parse(cls, value: str | SimulationModel) -> SimulationModel:
        try:
            return cls(value)
        except ValueError:
            raise UnknownModel(value) from None


class RebalanceFrequency(str, Enum):
    """How often a portfolio is rebalanced. Informational only."""

    NONE = "none"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUAL = "annual"


class RunStatus(str, Enum):
    RUNNING = "running"
    COMPLETE = "complete"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not RunStatus.RUNNING


@dataclass(frozen=True)
class Asset:
    symbol: str
    name: str = ""
    id: str = ""


@dataclass(frozen=True)
class PriceRecord:
    """One OHLCV row for a symbol on a trading day."""

    symbol: str
    date: date
    adjusted_close: float
    open: float = 0.0
    high: float = 0.0
    low: float = 0.0
    close: float = 0.0
    volume: int = 0


@dataclass(frozen=True)
class PortfolioAsset:
    symbol: str
    weight: float  # fraction of the portfolio, expected (not enforced) to sum to 1.0


@dataclass(frozen=True)
class Portfolio:
    """Ordered weighted assets that are simulated together."""

    assets: tuple[PortfolioAsset, ...] = ()
    rebalance: RebalanceFrequency = RebalanceFrequency.NONE

    @property
    def symbols(self) -> list[str]:
        return [a.symbol for a in self.assets]

    @property
    def weights(self) -> list[float]:
        return [a.weight for a in self.assets]

    def total_weight(self) -> float:
        """Sum of all asset weights (1.0 for a fully allocated portfolio)."""
        return float(sum(a.weight for a in self.assets))

    def to_dict(self) -> dict:
        return {
            "assets": [{"symbol": a.symbol, "weight": a.weight} for a in self.assets],
            "rebalance": self.rebalance.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Portfolio:
        return cls(
            assets=tuple(
                PortfolioAsset(symbol=a["symbol"], weight=float(a["weight"]))
                for a in data.get("assets", [])
            ),
            rebalance=RebalanceFrequency(data.get("rebalance") or "none"),
        )


@dataclass(frozen=True)
class SimulationConfig:
    """All parameters that define a single simulation run."""

    model: SimulationModel = SimulationModel.GBM
    num_paths: int = 0
    horizon_days: int = 0
    lookback_days: int = 0
    start_value: float = 0.0
    seed: int | None = None  # None means non-deterministic
    annual_contribution: float = 0.0
    withdrawal_rate: float = 0.0

    def validate(self) -> str:
        """Return the first violated constraint, or an empty string if valid."""
        if self.num_paths <= 0:
            return "num_paths must be positive"
        if self.horizon_days <= 0:
            return "horizon_days must be positive"
        if self.lookback_days <= 0:
            return "lookback_days must be positive"
        if self.start_value <= 0:
            return "start_value must be positive"
        return ""

    @property
    def model_name(self) -> str:
        """Model identifier as stored; unrecognised names are kept verbatim."""
        if isinstance(self.model, SimulationModel):
            return self.model.value
        return str(self.model)

    @property
    def horizon_years(self) -> float:
        return self.horizon_days / 252.0

    def to_dict(self) -> dict:
        return {
            "model": self.model_name,
            "num_paths": self.num_paths,
            "horizon_days": self.horizon_days,
            "lookback_days": self.lookback_days,
            "start_value": self.start_value,
            "seed": self.seed,
            "annual_contribution": self.annual_contribution,
            "withdrawal_rate": self.withdrawal_rate,
        }

    @classmethod
    def from_dict(cls, data: dict) -> SimulationConfig:
        seed = data.get("seed")
        return cls(
            model=SimulationModel.parse(data.get("model") or SimulationModel.GBM),
            num_paths=int(data.get("num_paths") or 0),
            horizon_days=int(data.get("horizon_days") or 0),
            lookback_days=int(data.get("lookback_days") or 0),
            start_value=float(data.get("start_value") or 0.0),
            seed=None if seed is None else int(seed),
            annual_contribution=float(data.get("annual_contribution") or 0.0),
            withdrawal_rate=float(data.get("withdrawal_rate") or 0.0),
        )


@dataclass(frozen=True)
class Experiment:
    """A named simulation setup that can be run one or many times."""

    name: str
    portfolio: Portfolio
    config: SimulationConfig
    description: str = ""
    id: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class Run:
    """A single execution of an Experiment."""

    id: str
    experiment_id: str
    started_at: datetime
    status: RunStatus = RunStatus.RUNNING
    finished_at: datetime | None = None
    error: str = ""
    stats: ResultStats = field(default_factory=ResultStats)

    def snapshot(self) -> Run:
        """Copy handed to repositories so later in-memory changes don't leak into storage."""
        return replace(self)
