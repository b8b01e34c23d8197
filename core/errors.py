"""Error taxonomy shared by the store, maintenance passes and statistics engine."""

from __future__ import annotations


class MarketDataError(Exception):
    """Base exception for market data errors."""


class ValidationError(MarketDataError, ValueError):
    """Malformed input: mismatched lengths, bad confidence level, bad timeframe pairing."""


class InsufficientDataError(MarketDataError):
    """Fewer data points than the operation requires."""

    def __init__(self, message: str, required: int | None = None, received: int | None = None):
        super().__init__(message)
        self.required = required
        self.received = received


class DegenerateInputError(MarketDataError):
    """Well-formed input with a mathematically undefined result (zero variance, zero price)."""


class StorageError(MarketDataError):
    """Underlying persistence failure. The failed unit of work has been rolled back."""
