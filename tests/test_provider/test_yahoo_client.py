"""Tests for YahooQuoteProvider.

The yfinance Ticker is replaced by a MagicMock factory, so no network calls
are made. History frames are real pandas DataFrames, as yfinance returns.
"""

from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock

import pandas as pd
import pytest

from stockwatch.exceptions import ProviderUnavailableError, SymbolNotFoundError
from stockwatch.provider.yahoo_client import YahooQuoteProvider, _to_decimal


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


def _factory(fast_info=None, history=None, history_error=None) -> MagicMock:  # type: ignore[no-untyped-def]
    ticker = MagicMock()
    ticker.fast_info = fast_info if fast_info is not None else {}
    if history_error is not None:
        ticker.history.side_effect = history_error
    else:
        ticker.history.return_value = history
    return MagicMock(return_value=ticker)


def _frame(rows: list[tuple[str, float, float, float]]) -> pd.DataFrame:
    index = pd.DatetimeIndex([pd.Timestamp(day) for day, *_ in rows], name="Date")
    return pd.DataFrame(
        {
            "Open": [r[1] for r in rows],
            "High": [r[1] for r in rows],
            "Low": [r[2] for r in rows],
            "Close": [r[2] for r in rows],
            "Volume": [r[3] for r in rows],
        },
        index=index,
    )


# ---------------------------------------------------------------------------
# Quotes
# ---------------------------------------------------------------------------


class TestGetQuote:
    @pytest.mark.asyncio
    async def test_maps_fast_info(self) -> None:
        factory = _factory(
            fast_info={"lastPrice": 110.0, "previousClose": 100.0, "currency": "EUR"}
        )
        provider = YahooQuoteProvider(ticker_factory=factory)

        quote = await provider.get_quote("air.pa")

        factory.assert_called_once_with("AIR.PA")
        assert quote.symbol == "AIR.PA"
        assert quote.price == Decimal("110.0")
        assert quote.currency == "EUR"
        assert quote.change == Decimal("10.0")
        assert quote.change_percent == Decimal("10")

    @pytest.mark.asyncio
    async def test_missing_currency_defaults_to_usd(self) -> None:
        factory = _factory(fast_info={"lastPrice": 5.0, "previousClose": None, "currency": None})
        quote = await YahooQuoteProvider(ticker_factory=factory).get_quote("X")

        assert quote.currency == "USD"
        assert quote.change is None
        assert quote.change_percent is None

    @pytest.mark.asyncio
    async def test_missing_fields_mean_not_found(self) -> None:
        provider = YahooQuoteProvider(ticker_factory=_factory(fast_info={}))
        with pytest.raises(SymbolNotFoundError):
            await provider.get_quote("NOPE")

    @pytest.mark.asyncio
    async def test_nan_price_means_not_found(self) -> None:
        factory = _factory(
            fast_info={"lastPrice": float("nan"), "previousClose": 1.0, "currency": "USD"}
        )
        with pytest.raises(SymbolNotFoundError):
            await YahooQuoteProvider(ticker_factory=factory).get_quote("NOPE")

    @pytest.mark.asyncio
    async def test_network_error_is_unavailable(self) -> None:
        factory = MagicMock(side_effect=ConnectionError("reset by peer"))
        with pytest.raises(ProviderUnavailableError) as exc_info:
            await YahooQuoteProvider(ticker_factory=factory).get_quote("AAPL")
        assert exc_info.value.symbol == "AAPL"


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------


class TestGetHistoricalBars:
    @pytest.mark.asyncio
    async def test_maps_rows_oldest_first(self) -> None:
        frame = _frame(
            [
                ("2024-03-05", 101.0, 99.5, 2000.0),
                ("2024-03-04", 100.0, 101.0, 1000.0),
            ]
        )
        factory = _factory(history=frame)

        bars = await YahooQuoteProvider(ticker_factory=factory).get_historical_bars(
            "AAPL", date(2024, 3, 4), date(2024, 3, 5)
        )

        ticker = factory.return_value
        ticker.history.assert_called_once_with(
            start="2024-03-04", end="2024-03-06", interval="1d", auto_adjust=False
        )
        assert [b.date for b in bars] == [date(2024, 3, 4), date(2024, 3, 5)]
        assert bars[0].open == Decimal("100.0")
        assert bars[0].close == Decimal("101.0")
        assert bars[0].volume == 1000

    @pytest.mark.asyncio
    async def test_nan_values_become_none(self) -> None:
        frame = _frame([("2024-03-04", float("nan"), 101.0, float("nan"))])
        bars = await YahooQuoteProvider(ticker_factory=_factory(history=frame)).get_historical_bars(
            "AAPL", date(2024, 3, 4), date(2024, 3, 4)
        )

        assert bars[0].open is None
        assert bars[0].volume is None

    @pytest.mark.asyncio
    async def test_empty_frame_means_not_found(self) -> None:
        provider = YahooQuoteProvider(ticker_factory=_factory(history=pd.DataFrame()))
        with pytest.raises(SymbolNotFoundError):
            await provider.get_historical_bars("NOPE", date(2024, 3, 1), date(2024, 3, 5))

    @pytest.mark.asyncio
    async def test_fetch_error_is_unavailable(self) -> None:
        provider = YahooQuoteProvider(ticker_factory=_factory(history_error=TimeoutError()))
        with pytest.raises(ProviderUnavailableError):
            await provider.get_historical_bars("AAPL", date(2024, 3, 1), date(2024, 3, 5))

    @pytest.mark.asyncio
    async def test_inverted_range_rejected(self) -> None:
        provider = YahooQuoteProvider(ticker_factory=_factory())
        with pytest.raises(ValueError):
            await provider.get_historical_bars("AAPL", date(2024, 3, 5), date(2024, 3, 1))


@pytest.mark.parametrize(
    ("value", "expected"),
    [(None, None), (float("nan"), None), ("abc", None), (1.5, Decimal("1.5")), (3, Decimal("3"))],
)
def test_to_decimal(value, expected) -> None:  # type: ignore[no-untyped-def]
    assert _to_decimal(value) == expected
