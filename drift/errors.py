"""Exception hierarchy for the simulation engine."""

from __future__ import annotations


class DriftError(Exception):
    """Base class for all engine errors."""


class ValidationError(DriftError):
    """A simulation config violates one of its constraints."""


class InsufficientHistory(DriftError):
    """An asset has fewer than two usable price records."""

    def __init__(self, symbol: str, usable: int) -> None:
        self.symbol = symbol
        self.usable = usable
        super().__init__(
            f"need >=2 usable price records for {symbol}, got {usable}"
        )


class UnknownModel(DriftError):
    """The requested simulation model identifier is not recognised."""

    def __init__(self, model: object) -> None:
        self.model = model
        super().__init__(f"unknown model: {model}")


class PersistenceError(DriftError):
    """A storage collaborator failed to read or write."""


class IdentityError(DriftError):
    """The entropy source could not produce a new identifier."""


class SimulationCancelled(DriftError):
    """Path generation stopped because cancellation was requested."""
