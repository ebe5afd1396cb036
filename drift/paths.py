"""Simulated paths and the path generators for each simulation model."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from drift.errors import UnknownModel
from drift.estimator import drift_params_from_returns
from drift.models import SimulationConfig, SimulationModel

TRADING_DAYS = 252
DT = 1.0 / TRADING_DAYS


@dataclass(frozen=True)
class SimulatedPath:
    """Daily portfolio values from day 0 (the start value) through the horizon."""

    values: np.ndarray  # shape (horizon_days + 1,)

    def __len__(self) -> int:
        return len(self.values)

    @property
    def final(self) -> float:
        """Terminal portfolio value, 0 for an empty path."""
        if len(self.values) == 0:
            return 0.0
        return float(self.values[-1])

    @property
    def max_drawdown(self) -> float:
        """Worst peak-to-trough decline along the path as a negative fraction."""
        if len(self.values) < 2:
            return 0.0
        peak = self.values[0]
        max_dd = 0.0
        for v in self.values[1:]:
            if v > peak:
                peak = v
            # a non-positive peak has no meaningful drawdown
            if peak > 0:
                dd = (v - peak) / peak
                if dd < max_dd:
                    max_dd = dd
        return float(max_dd)


class PathGenerator(ABC):
    """Produces one simulated trajectory per call from a private random source."""

    def __init__(
        self,
        weights: Sequence[float],
        horizon_days: int,
        start_value: float,
        annual_contribution: float = 0.0,
    ) -> None:
        self.weights = np.asarray(weights, dtype=float)
        self.horizon_days = int(horizon_days)
        self.start_value = float(start_value)
        self.annual_contribution = float(annual_contribution)

    def _contribution_days(self) -> np.ndarray:
        """Boolean mask over days 1..horizon marking each 252-day anniversary."""
        days = np.arange(1, self.horizon_days + 1)
        if self.annual_contribution == 0:
            return np.zeros(self.horizon_days, dtype=bool)
        return days % TRADING_DAYS == 0

    @abstractmethod
    def generate(self, rng: np.random.Generator) -> SimulatedPath:
        ...


class DriftDiffusionGenerator(PathGenerator):
    """
    Geometric Brownian motion, one growth factor per asset.

    Each asset's shock is an independent standard-normal draw per day; assets
    are not cross-correlated.
    """

    def __init__(
        self,
        mu: Sequence[float],
        sigma: Sequence[float],
        weights: Sequence[float],
        horizon_days: int,
        start_value: float,
        annual_contribution: float = 0.0,
    ) -> None:
        super().__init__(weights, horizon_days, start_value, annual_contribution)
        self.mu = np.asarray(mu, dtype=float)
        self.sigma = np.asarray(sigma, dtype=float)
        if not (len(self.mu) == len(self.sigma) == len(self.weights)):
            raise ValueError("mu, sigma and weights must have the same length")

    def generate(self, rng: np.random.Generator) -> SimulatedPath:
        # shape (horizon, n_assets): row-major draw order is day by day, asset by asset
        z = rng.standard_normal((self.horizon_days, len(self.weights)))
        drift = (self.mu - 0.5 * self.sigma ** 2) * DT
        shocks = self.sigma * np.sqrt(DT) * z
        growth = np.cumprod(np.exp(drift + shocks), axis=0)

        values = np.empty(self.horizon_days + 1)
        values[0] = self.start_value
        values[1:] = self.start_value * (growth @ self.weights)
        # the contribution lands on that day's valuation only; growth factors are untouched
        values[1:][self._contribution_days()] += self.annual_contribution
        return SimulatedPath(values)


class ResamplingGenerator(PathGenerator):
    """
    Historical bootstrap: each day draws one past log-return per asset.

    Serves both ``bootstrap`` and ``block_bootstrap``; no contiguous block
    sampling is performed.
    """

    def __init__(
        self,
        pools: Sequence[Sequence[float]],
        weights: Sequence[float],
        horizon_days: int,
        start_value: float,
        annual_contribution: float = 0.0,
    ) -> None:
        super().__init__(weights, horizon_days, start_value, annual_contribution)
        if len(pools) != len(self.weights):
            raise ValueError("pools and weights must have the same length")
        self.pools = [np.asarray(p, dtype=float) for p in pools]

    def _daily_log_returns(self, rng: np.random.Generator) -> np.ndarray:
        sizes = np.array([len(p) for p in self.pools])
        # empty pools still consume a draw but contribute nothing
        idx = rng.integers(0, np.maximum(sizes, 1), size=(self.horizon_days, len(sizes)))
        sampled = np.zeros((self.horizon_days, len(sizes)))
        for i, pool in enumerate(self.pools):
            if len(pool) > 0:
                sampled[:, i] = pool[idx[:, i]]
        return sampled @ self.weights

    def generate(self, rng: np.random.Generator) -> SimulatedPath:
        growth = np.exp(self._daily_log_returns(rng))
        contribute = self._contribution_days()

        values = np.empty(self.horizon_days + 1)
        values[0] = self.start_value
        for day in range(1, self.horizon_days + 1):
            values[day] = values[day - 1] * growth[day - 1]
            if contribute[day - 1]:
                values[day] += self.annual_contribution
        return SimulatedPath(values)


def build_generator(
    config: SimulationConfig,
    weights: Sequence[float],
    returns: Sequence[np.ndarray],
) -> PathGenerator:
    """Pick the generator for ``config.model`` from per-asset log-return samples."""
    model = SimulationModel.parse(config.model)
    if model is SimulationModel.GBM:
        params = [drift_params_from_returns(r) for r in returns]
        return DriftDiffusionGenerator(
            mu=[p.mu for p in params],
            sigma=[p.sigma for p in params],
            weights=weights,
            horizon_days=config.horizon_days,
            start_value=config.start_value,
            annual_contribution=config.annual_contribution,
        )
    if model in (SimulationModel.BOOTSTRAP, SimulationModel.BLOCK_BOOTSTRAP):
        return ResamplingGenerator(
            pools=returns,
            weights=weights,
            horizon_days=config.horizon_days,
            start_value=config.start_value,
            annual_contribution=config.annual_contribution,
        )
    raise UnknownModel(model)
