"""Return-parameter estimation from ascending-date price series."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

import numpy as np

from drift.models import PriceRecord

TRADING_DAYS = 252


@dataclass(frozen=True)
class DriftParams:
    """Annualised drift and volatility of one asset."""

    mu: float
    sigma: float


def adjusted_closes(records: Iterable[PriceRecord]) -> np.ndarray:
    return np.array([r.adjusted_close for r in records], dtype=float)


def usable_records(records: Iterable[PriceRecord]) -> int:
    """Number of records with a positive adjusted close."""
    return sum(1 for r in records if r.adjusted_close > 0)


def log_returns(prices: Sequence[float] | np.ndarray) -> np.ndarray:
    """
    Per-step log returns ``ln(p_i / p_{i-1})``.

    Steps where either price is non-positive are skipped rather than
    producing inf/nan.
    """
    p = np.asarray(prices, dtype=float)
    if len(p) < 2:
        return np.empty(0)
    prev, curr = p[:-1], p[1:]
    valid = (prev > 0) & (curr > 0)
    return np.log(curr[valid] / prev[valid])


def drift_params_from_returns(returns: Sequence[float] | np.ndarray) -> DriftParams:
    """
    Annualise daily log returns into GBM parameters.

    ``mu = 252 m + 0.5 * 252 s^2`` and ``sigma = s sqrt(252)`` where ``m`` and
    ``s`` are the mean and population standard deviation of the sample. An
    empty sample yields zero drift and zero volatility.
    """
    r = np.asarray(returns, dtype=float)
    if len(r) == 0:
        return DriftParams(mu=0.0, sigma=0.0)
    m = float(np.mean(r))
    s = float(np.std(r))
    return DriftParams(
        mu=m * TRADING_DAYS + 0.5 * s * s * TRADING_DAYS,
        sigma=s * np.sqrt(TRADING_DAYS),
    )


def estimate_drift_params(prices: Sequence[float] | np.ndarray) -> DriftParams:
    return drift_params_from_returns(log_returns(prices))


def resampling_pool(prices: Sequence[float] | np.ndarray) -> np.ndarray:
    """The raw log-return sample, kept unsummarised for bootstrap draws."""
    return log_returns(prices)
