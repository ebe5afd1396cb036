"""Reduce a batch of simulated paths into percentile, drawdown and growth statistics."""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from typing import TYPE_CHECKING, Sequence

import numpy as np

if TYPE_CHECKING:
    from drift.paths import SimulatedPath


@dataclass(frozen=True)
class ResultStats:
    """Immutable aggregate statistics over all paths of one run."""

    p5: float = 0.0
    p25: float = 0.0
    p50: float = 0.0
    p75: float = 0.0
    p95: float = 0.0
    mean: float = 0.0
    std_dev: float = 0.0
    probability_of_loss: float = 0.0
    median_max_drawdown: float = 0.0
    p95_max_drawdown: float = 0.0
    median_cagr: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> ResultStats:
        known = {f.name for f in fields(cls)}
        return cls(**{k: float(v) for k, v in data.items() if k in known})


def _nearest_rank(sorted_values: np.ndarray, p: float) -> float:
    """Value at index ``floor(n * p)`` of an ascending sample, no interpolation."""
    return float(sorted_values[int(len(sorted_values) * p)])


def compute_stats(
    paths: Sequence[SimulatedPath],
    start_value: float,
    horizon_years: float,
) -> ResultStats:
    """
    Derive ResultStats from a completed set of paths.

    The median is the element at ``n // 2`` of the sorted sample, so for an
    even count it is the upper-middle value rather than an average. The
    standard deviation divides by ``n``.
    """
    if len(paths) == 0:
        return ResultStats()

    finals = np.array([p.final for p in paths], dtype=float)
    drawdowns = np.array([p.max_drawdown for p in paths], dtype=float)
    losses = int(np.count_nonzero(finals < start_value))

    finals.sort()
    drawdowns.sort()
    n = len(finals)

    mean = float(finals.sum() / n)
    variance = float(((finals - mean) ** 2).sum() / n)

    p50 = float(finals[n // 2])
    median_cagr = 0.0
    if start_value > 0 and horizon_years > 0 and p50 > 0:
        median_cagr = (p50 / start_value) ** (1.0 / horizon_years) - 1

    return ResultStats(
        p5=_nearest_rank(finals, 0.05),
        p25=_nearest_rank(finals, 0.25),
        p50=p50,
        p75=_nearest_rank(finals, 0.75),
        p95=_nearest_rank(finals, 0.95),
        mean=mean,
        std_dev=float(np.sqrt(variance)),
        probability_of_loss=losses / n,
        median_max_drawdown=float(drawdowns[n // 2]),
        p95_max_drawdown=_nearest_rank(drawdowns, 0.95),
        median_cagr=float(median_cagr),
    )
