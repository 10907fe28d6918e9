"""Crypto exchange provider implementation via ccxt async.

Wraps a ccxt.async_support exchange (Binance by default) so that spot pairs
such as ``BTC/USDT`` can be tracked alongside equities. The quote currency of
the market is reported as the quote's currency.
"""

from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal

import ccxt.async_support as ccxt_async

from stockwatch.config import ProviderSettings
from stockwatch.exceptions import ProviderUnavailableError, SymbolNotFoundError
from stockwatch.logging import get_logger
from stockwatch.models import DEFAULT_CURRENCY, HistoricalBar, Quote, normalize_symbol
from stockwatch.provider.client import QuoteProvider

logger = get_logger(__name__)

_DAY_MS = 86_400 * 1000


def _decimal_or_none(value) -> Decimal | None:  # type: ignore[no-untyped-def]
    return Decimal(str(value)) if value is not None else None


def _date_to_ms(day: date) -> int:
    return int(datetime.combine(day, time.min, tzinfo=timezone.utc).timestamp() * 1000)


class CcxtQuoteProvider(QuoteProvider):
    """Quotes and daily candles from a ccxt-supported exchange."""

    name = "ccxt"

    def __init__(
        self,
        settings: ProviderSettings,
        exchange: ccxt_async.Exchange | None = None,
    ) -> None:
        self._settings = settings
        if exchange is None:
            exchange_class = getattr(ccxt_async, settings.exchange_id)
            exchange = exchange_class(
                {
                    "enableRateLimit": True,
                    "timeout": int(settings.timeout_seconds * 1000),
                }
            )
        self._exchange = exchange
        self._markets: dict = {}

    @property
    def exchange(self) -> ccxt_async.Exchange:
        """Access the underlying ccxt exchange instance."""
        return self._exchange

    async def connect(self) -> None:
        """Initialize connection by loading markets."""
        logger.info("connecting_to_exchange", exchange=self._settings.exchange_id)
        self._markets = await self._exchange.load_markets()
        logger.info(
            "exchange_connected",
            exchange=self._settings.exchange_id,
            market_count=len(self._markets),
        )

    async def close(self) -> None:
        """Clean up ccxt async resources. CRITICAL: must be called to avoid resource leaks."""
        await self._exchange.close()
        logger.info("exchange_connection_closed", exchange=self._settings.exchange_id)

    def _quote_currency(self, symbol: str) -> str:
        market = self._markets.get(symbol) or {}
        return market.get("quote") or DEFAULT_CURRENCY

    async def get_quote(self, symbol: str) -> Quote:
        symbol = normalize_symbol(symbol)
        try:
            ticker = await self._exchange.fetch_ticker(symbol)
        except ccxt_async.BadSymbol as e:
            raise SymbolNotFoundError(symbol, f"Unknown market {symbol}") from e
        except ccxt_async.BaseError as e:
            raise ProviderUnavailableError(symbol, f"{type(e).__name__}: {e}") from e

        last = _decimal_or_none(ticker.get("last"))
        if last is None:
            raise SymbolNotFoundError(symbol, f"No last price for {symbol}")

        return Quote(
            symbol=symbol,
            price=last,
            currency=self._quote_currency(symbol),
            change=_decimal_or_none(ticker.get("change")),
            change_percent=_decimal_or_none(ticker.get("percentage")),
        )

    async def get_historical_bars(
        self, symbol: str, from_date: date, to_date: date
    ) -> list[HistoricalBar]:
        symbol = normalize_symbol(symbol)
        if from_date > to_date:
            raise ValueError(f"from_date {from_date} is after to_date {to_date}")

        days = (to_date - from_date).days + 1
        try:
            candles = await self._exchange.fetch_ohlcv(
                symbol,
                timeframe="1d",
                since=_date_to_ms(from_date),
                limit=days,
            )
        except ccxt_async.BadSymbol as e:
            raise SymbolNotFoundError(symbol, f"Unknown market {symbol}") from e
        except ccxt_async.BaseError as e:
            raise ProviderUnavailableError(symbol, f"{type(e).__name__}: {e}") from e

        until_ms = _date_to_ms(to_date + timedelta(days=1))
        bars = [
            HistoricalBar(
                date=datetime.fromtimestamp(c[0] / 1000, tz=timezone.utc).date(),
                open=_decimal_or_none(c[1]),
                close=_decimal_or_none(c[4]),
                volume=int(c[5]) if c[5] is not None else None,
            )
            for c in candles
            if c[0] < until_ms
        ]
        bars.sort(key=lambda b: b.date)
        logger.debug("ccxt_history_fetched", symbol=symbol, bars=len(bars))
        return bars
