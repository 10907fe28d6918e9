"""Shared test fixtures for the quote service."""

from collections.abc import AsyncIterator
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from stockwatch.config import (
    AppSettings,
    BackfillSettings,
    DatabaseSettings,
    ProviderSettings,
    RefreshSettings,
)
from stockwatch.data.daily_store import DailyBarStore
from stockwatch.data.database import QuoteDatabase
from stockwatch.data.intraday_store import IntradayHistoryStore
from stockwatch.data.symbols import SymbolRegistry
from stockwatch.models import Quote
from stockwatch.provider.client import QuoteProvider


@pytest.fixture
def settings(tmp_path) -> AppSettings:  # type: ignore[no-untyped-def]
    """AppSettings with test defaults (temp database, fast retries)."""
    return AppSettings(
        log_level="DEBUG",
        tracked_symbols=["aapl", " msft "],
        database=DatabaseSettings(path=str(tmp_path / "stockwatch.db")),
        provider=ProviderSettings(source="yahoo", timeout_seconds=1.0, max_concurrency=4),
        refresh=RefreshSettings(interval_seconds=60, max_age_seconds=30, timezone="UTC"),
        backfill=BackfillSettings(lookback_days=5, max_retries=3, retry_base_delay=0.0),
    )


@pytest_asyncio.fixture
async def database(tmp_path) -> AsyncIterator[QuoteDatabase]:  # type: ignore[no-untyped-def]
    """Connected QuoteDatabase on a temp file."""
    async with QuoteDatabase(str(tmp_path / "quotes.db")) as db:
        yield db


@pytest.fixture
def intraday_store(database: QuoteDatabase) -> IntradayHistoryStore:
    return IntradayHistoryStore(database)


@pytest.fixture
def daily_store(database: QuoteDatabase) -> DailyBarStore:
    return DailyBarStore(database)


@pytest.fixture
def registry(database: QuoteDatabase) -> SymbolRegistry:
    return SymbolRegistry(database)


@pytest.fixture
def mock_provider() -> AsyncMock:
    """Mock QuoteProvider returning a fixed AAPL quote."""
    provider = AsyncMock(spec=QuoteProvider)
    provider.get_quote.return_value = Quote(
        symbol="AAPL", price=Decimal("100"), currency="USD"
    )
    provider.get_historical_bars.return_value = []
    return provider
