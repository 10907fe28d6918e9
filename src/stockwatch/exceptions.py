"""Custom exceptions for the quote service.

Provider failures live here so that the provider adapters, the refresh
engine and the backfill reconciler can share them without circular imports.
"""


class StockwatchError(Exception):
    """Base exception for all stockwatch errors."""


class ProviderError(StockwatchError):
    """Base class for failures reported by a market-data provider."""

    def __init__(self, symbol: str, message: str) -> None:
        super().__init__(message)
        self.symbol = symbol


class SymbolNotFoundError(ProviderError):
    """Raised when the provider has no data for a symbol."""


class ProviderUnavailableError(ProviderError):
    """Raised on a transient network or provider fault, including timeouts."""
