"""Abstract market-data provider interface.

Defines the contract for all provider implementations. The refresh engine
and the backfill reconciler depend only on this interface, keeping
source-specific details isolated in the concrete adapters.
"""

from abc import ABC, abstractmethod
from datetime import date

from stockwatch.models import HistoricalBar, Quote


class QuoteProvider(ABC):
    """Abstract base class for market-data sources."""

    name: str = "provider"

    @abstractmethod
    async def connect(self) -> None:
        """Initialize connection / load reference data."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release network resources."""
        ...

    @abstractmethod
    async def get_quote(self, symbol: str) -> Quote:
        """Fetch the current quote for a symbol.

        Raises:
            SymbolNotFoundError: the source has no data for the symbol.
            ProviderUnavailableError: transient network or source failure.
        """
        ...

    @abstractmethod
    async def get_historical_bars(
        self, symbol: str, from_date: date, to_date: date
    ) -> list[HistoricalBar]:
        """Fetch daily bars in [from_date, to_date], oldest first.

        Raises:
            SymbolNotFoundError: the source has no data for the symbol.
            ProviderUnavailableError: transient network or source failure.
        """
        ...
