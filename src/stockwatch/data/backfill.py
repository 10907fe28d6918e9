"""Daily bar backfill with retry and per-symbol isolation.

Pulls ``lookback_days`` of daily bars for every symbol from the provider and
upserts them into the daily bar table. Each symbol is an independent atomic
unit: its bars are committed together or not at all, and a failing symbol
is recorded in the result without affecting the others.
"""

import asyncio
import time
from collections.abc import Callable, Iterable
from datetime import date, timedelta
from decimal import Decimal

from stockwatch.config import BackfillSettings
from stockwatch.data.daily_store import DailyBarStore
from stockwatch.exceptions import ProviderError, ProviderUnavailableError
from stockwatch.logging import get_logger
from stockwatch.models import BackfillResult, DailyBar, HistoricalBar, normalize_symbol
from stockwatch.provider.client import QuoteProvider

logger = get_logger(__name__)

_HUNDRED = Decimal("100")


def to_daily_bar(symbol: str, bar: HistoricalBar, currency: str) -> DailyBar | None:
    """Convert a provider bar into a DailyBar, or None when open/close is missing or zero."""
    if not bar.open or not bar.close:
        return None
    if bar.open.is_nan() or bar.close.is_nan():
        return None
    return DailyBar(
        symbol=symbol,
        date=bar.date,
        open_price=bar.open,
        close_price=bar.close,
        currency=currency,
        day_change_percent=(bar.close - bar.open) / bar.open * _HUNDRED,
        volume=bar.volume,
    )


class BackfillReconciler:
    """Reconciles the daily bar table from provider history.

    Usage:
        reconciler = BackfillReconciler(provider, daily_store, settings)
        result = await reconciler.backfill(["AAPL", "MSFT"], lookback_days=50)
    """

    def __init__(
        self,
        provider: QuoteProvider,
        store: DailyBarStore,
        settings: BackfillSettings,
        today: Callable[[], date] | None = None,
    ) -> None:
        self._provider = provider
        self._store = store
        self._settings = settings
        self._today = today or date.today

    async def backfill(
        self,
        symbols: Iterable[str],
        lookback_days: int | None = None,
    ) -> BackfillResult:
        """Backfill every symbol; returns totals and per-symbol errors."""
        if lookback_days is None:
            lookback_days = self._settings.lookback_days
        if lookback_days < 1:
            raise ValueError(f"lookback_days must be >= 1, got {lookback_days}")

        unique = sorted({normalize_symbol(s) for s in symbols})
        to_date = self._today()
        from_date = to_date - timedelta(days=lookback_days)
        result = BackfillResult()
        start_time = time.monotonic()

        logger.info(
            "backfill_started",
            symbols=len(unique),
            from_date=from_date.isoformat(),
            to_date=to_date.isoformat(),
        )

        for i, symbol in enumerate(unique, 1):
            try:
                written = await self.backfill_symbol(symbol, from_date, to_date)
            except ProviderError as e:
                result.errors[symbol] = str(e)
                logger.warning(
                    "backfill_symbol_failed",
                    symbol=symbol,
                    error=str(e),
                    progress=f"{i}/{len(unique)}",
                )
                continue
            except Exception as e:
                result.errors[symbol] = f"{type(e).__name__}: {e}"
                logger.error("backfill_symbol_error", symbol=symbol, exc_info=True)
                continue

            result.bars_written[symbol] = written
            result.total_bars_written += written

        logger.info(
            "backfill_complete",
            symbols=len(unique),
            total_bars_written=result.total_bars_written,
            failed=len(result.errors),
            duration_seconds=round(time.monotonic() - start_time, 1),
        )
        return result

    async def backfill_symbol(self, symbol: str, from_date: date, to_date: date) -> int:
        """Fetch and upsert one symbol's bars. Returns the number of rows written."""
        symbol = normalize_symbol(symbol)
        currency = await self._resolve_currency(symbol)

        bars = await self._fetch_with_retry(symbol, from_date, to_date)

        rows = []
        for bar in bars:
            daily = to_daily_bar(symbol, bar, currency)
            if daily is not None:
                rows.append(daily)

        written = await self._store.upsert_bars(symbol, rows)
        logger.info(
            "backfill_symbol_done",
            symbol=symbol,
            bars_received=len(bars),
            bars_written=written,
            currency=currency,
        )
        return written

    async def _resolve_currency(self, symbol: str) -> str:
        """Carry forward the last currency seen for the symbol."""
        currency = await self._store.get_last_currency(symbol)
        return currency or self._settings.default_currency

    async def _fetch_with_retry(
        self, symbol: str, from_date: date, to_date: date
    ) -> list[HistoricalBar]:
        """Fetch bars with exponential backoff on transient provider failures.

        Only ProviderUnavailableError is retried; SymbolNotFoundError and
        anything else propagate immediately. Re-raises on final failure.
        """
        max_retries = max(1, self._settings.max_retries)
        base_delay = self._settings.retry_base_delay

        for attempt in range(max_retries):
            try:
                return await self._provider.get_historical_bars(symbol, from_date, to_date)
            except ProviderUnavailableError as e:
                if attempt == max_retries - 1:
                    logger.error(
                        "backfill_fetch_failed_permanently",
                        symbol=symbol,
                        error=str(e),
                        attempts=max_retries,
                    )
                    raise

                delay = base_delay * (2**attempt)
                logger.warning(
                    "backfill_fetch_retry",
                    symbol=symbol,
                    attempt=attempt + 1,
                    max_retries=max_retries,
                    delay=delay,
                    error=str(e),
                )
                await asyncio.sleep(delay)

        return []  # Unreachable, but satisfies type checker
