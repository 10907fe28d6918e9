"""Yahoo Finance provider via yfinance.

yfinance is a synchronous library; each call runs in the default executor so
the event loop is never blocked. The awaiting coroutine can be cancelled
promptly even though the worker thread finishes on its own.
"""

import asyncio
import math
from collections.abc import Callable
from datetime import date, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any

import yfinance as yf

from stockwatch.exceptions import ProviderUnavailableError, SymbolNotFoundError
from stockwatch.logging import get_logger
from stockwatch.models import DEFAULT_CURRENCY, HistoricalBar, Quote, normalize_symbol
from stockwatch.provider.client import QuoteProvider

logger = get_logger(__name__)


def _to_decimal(value: Any) -> Decimal | None:
    """Convert a provider number to Decimal; None/NaN/garbage become None."""
    if value is None:
        return None
    try:
        if isinstance(value, float) and math.isnan(value):
            return None
        result = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        return None
    return None if result.is_nan() else result


def _to_volume(value: Any) -> int | None:
    volume = _to_decimal(value)
    return int(volume) if volume is not None else None


class YahooQuoteProvider(QuoteProvider):
    """Quotes and daily bars from Yahoo Finance."""

    name = "yahoo"

    def __init__(self, ticker_factory: Callable[[str], Any] | None = None) -> None:
        self._ticker_factory = ticker_factory or yf.Ticker

    async def connect(self) -> None:
        logger.info("yahoo_provider_ready")

    async def close(self) -> None:
        logger.info("yahoo_provider_closed")

    async def get_quote(self, symbol: str) -> Quote:
        symbol = normalize_symbol(symbol)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._fetch_quote, symbol)

    async def get_historical_bars(
        self, symbol: str, from_date: date, to_date: date
    ) -> list[HistoricalBar]:
        symbol = normalize_symbol(symbol)
        if from_date > to_date:
            raise ValueError(f"from_date {from_date} is after to_date {to_date}")
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, self._fetch_history, symbol, from_date, to_date
        )

    # ──────────────────────────────────────────────
    # Blocking helpers (executor threads)
    # ──────────────────────────────────────────────

    def _fetch_quote(self, symbol: str) -> Quote:
        try:
            info = self._ticker_factory(symbol).fast_info
            last_price = _to_decimal(info["lastPrice"])
            previous_close = _to_decimal(info["previousClose"])
            currency = info["currency"]
        except KeyError as e:
            raise SymbolNotFoundError(symbol, f"No quote data for {symbol}") from e
        except Exception as e:
            raise ProviderUnavailableError(symbol, f"Yahoo quote failed: {e}") from e

        if last_price is None:
            raise SymbolNotFoundError(symbol, f"No quote data for {symbol}")

        change = None
        change_percent = None
        if previous_close is not None:
            change = last_price - previous_close
            if previous_close != 0:
                change_percent = change / previous_close * Decimal("100")

        return Quote(
            symbol=symbol,
            price=last_price,
            currency=currency or DEFAULT_CURRENCY,
            change=change,
            change_percent=change_percent,
        )

    def _fetch_history(
        self, symbol: str, from_date: date, to_date: date
    ) -> list[HistoricalBar]:
        try:
            # yfinance treats `end` as exclusive
            frame = self._ticker_factory(symbol).history(
                start=from_date.isoformat(),
                end=(to_date + timedelta(days=1)).isoformat(),
                interval="1d",
                auto_adjust=False,
            )
        except Exception as e:
            raise ProviderUnavailableError(symbol, f"Yahoo history failed: {e}") from e

        if frame is None or frame.empty:
            raise SymbolNotFoundError(symbol, f"No historical data for {symbol}")

        bars = []
        for timestamp, row in frame.iterrows():
            bars.append(
                HistoricalBar(
                    date=timestamp.date(),
                    open=_to_decimal(row.get("Open")),
                    close=_to_decimal(row.get("Close")),
                    volume=_to_volume(row.get("Volume")),
                )
            )

        bars.sort(key=lambda b: b.date)
        logger.debug("yahoo_history_fetched", symbol=symbol, bars=len(bars))
        return bars
