"""Quote refresh engine -- one refresh cycle across all tracked symbols.

Each cycle:
  1. FETCH: request a quote for every symbol concurrently (bounded by a
     semaphore, each call bounded by a timeout)
  2. RECORD: append successful quotes to the intraday history, inserting the
     day-open anchor on the first observation of the day
  3. TREND: compute the same-day trend against the day-open price
  4. SWAP: install the complete new mapping in the QuoteCache

A failing symbol becomes a None entry; it never aborts the cycle. Cycles are
serialized by a lock. Scheduling lives in the Orchestrator and the API, not
here.
"""

import asyncio
from collections.abc import Callable, Iterable
from datetime import datetime
from zoneinfo import ZoneInfo

import structlog

from stockwatch.analysis.trend import compute_daily_trend
from stockwatch.config import ProviderSettings, RefreshSettings
from stockwatch.data.intraday_store import IntradayHistoryStore
from stockwatch.exceptions import ProviderError, SymbolNotFoundError
from stockwatch.logging import get_logger
from stockwatch.market_data.quote_cache import QuoteCache
from stockwatch.models import (
    CacheSnapshot,
    QuoteResult,
    QuoteWithTrend,
    Unavailable,
    UnavailableReason,
    normalize_symbol,
)
from stockwatch.provider.client import QuoteProvider

logger = get_logger(__name__)


def local_clock(tz_name: str) -> Callable[[], datetime]:
    """Return a clock producing naive wall-clock time in ``tz_name`` at second precision."""
    tz = ZoneInfo(tz_name)

    def _now() -> datetime:
        return datetime.now(tz).replace(tzinfo=None, microsecond=0)

    return _now


class RefreshEngine:
    """Refreshes quotes for a set of symbols and owns the shared cache.

    Args:
        provider: Market-data source.
        history_store: Intraday snapshot store.
        cache: The cache this engine writes to (sole writer).
        provider_settings: Concurrency limit and per-call timeout.
        refresh_settings: Timezone of the calendar day and on-demand freshness.
        clock: Optional override returning the naive local "now".
    """

    def __init__(
        self,
        provider: QuoteProvider,
        history_store: IntradayHistoryStore,
        cache: QuoteCache,
        provider_settings: ProviderSettings,
        refresh_settings: RefreshSettings,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._provider = provider
        self._history = history_store
        self._cache = cache
        self._provider_settings = provider_settings
        self._refresh_settings = refresh_settings
        self._clock = clock or local_clock(refresh_settings.timezone)
        self._cycle_lock = asyncio.Lock()
        self._cycle_count = 0

    @property
    def cache(self) -> QuoteCache:
        return self._cache

    @property
    def is_refreshing(self) -> bool:
        return self._cycle_lock.locked()

    @property
    def cycle_count(self) -> int:
        return self._cycle_count

    # ──────────────────────────────────────────────
    # Public entry points
    # ──────────────────────────────────────────────

    async def refresh_all(self, symbols: Iterable[str]) -> CacheSnapshot:
        """Run one full refresh cycle and return the new cache snapshot."""
        async with self._cycle_lock:
            return await self._run_cycle(symbols)

    async def refresh_if_stale(
        self,
        symbols: Iterable[str],
        max_age_seconds: float | None = None,
    ) -> CacheSnapshot:
        """On-demand refresh for read paths.

        Refreshes only when the cache is older than ``max_age_seconds``
        (default: refresh.max_age_seconds). A caller arriving while a cycle is
        running waits for it and then reuses its result.
        """
        if max_age_seconds is None:
            max_age_seconds = self._refresh_settings.max_age_seconds

        async with self._cycle_lock:
            if not self._cache.is_stale(max_age_seconds):
                return self._cache.snapshot()
            return await self._run_cycle(symbols)

    # ──────────────────────────────────────────────
    # Cycle internals
    # ──────────────────────────────────────────────

    async def _run_cycle(self, symbols: Iterable[str]) -> CacheSnapshot:
        unique = sorted({normalize_symbol(s) for s in symbols})
        now = self._clock()
        semaphore = asyncio.Semaphore(self._provider_settings.max_concurrency)

        with structlog.contextvars.bound_contextvars(cycle=self._cycle_count + 1):
            # gather() cancels every child task if this cycle is cancelled
            results = await asyncio.gather(
                *(self._refresh_symbol(symbol, now, semaphore) for symbol in unique)
            )
        entries = dict(zip(unique, results))

        snapshot = self._cache.swap(entries, now)
        self._cycle_count += 1

        available = sum(1 for entry in results if entry is not None)
        logger.info(
            "quote_refresh_complete",
            symbols=len(unique),
            available=available,
            unavailable=len(unique) - available,
            refreshed_at=now.isoformat(),
        )
        return snapshot

    async def _refresh_symbol(
        self,
        symbol: str,
        now: datetime,
        semaphore: asyncio.Semaphore,
    ) -> QuoteWithTrend | None:
        """Fetch, record and compute the trend for one symbol."""
        async with semaphore:
            result = await self.fetch_quote(symbol)

        if isinstance(result, Unavailable):
            logger.info(
                "quote_unavailable",
                symbol=symbol,
                reason=result.reason.value,
                message=result.message,
            )
            return None

        try:
            snapshot = await self._history.record(
                symbol,
                result.price,
                result.currency,
                result.change,
                result.change_percent,
                now,
            )
            day_open = await self._history.get_day_open(symbol, now.date())
        except Exception:
            logger.error("quote_history_write_failed", symbol=symbol, exc_info=True)
            return None

        daily_trend = compute_daily_trend(
            snapshot.price, day_open.price if day_open is not None else None
        )
        return QuoteWithTrend(snapshot=snapshot, daily_trend=daily_trend, last_refresh=now)

    async def fetch_quote(self, symbol: str) -> QuoteResult:
        """Fetch one quote, translating every failure into an Unavailable result."""
        timeout = self._provider_settings.timeout_seconds
        try:
            return await asyncio.wait_for(self._provider.get_quote(symbol), timeout)
        except asyncio.TimeoutError:
            return Unavailable(
                symbol, UnavailableReason.TIMEOUT, f"No response within {timeout}s"
            )
        except SymbolNotFoundError as e:
            return Unavailable(symbol, UnavailableReason.NOT_FOUND, str(e))
        except ProviderError as e:
            return Unavailable(symbol, UnavailableReason.PROVIDER_ERROR, str(e))
        except Exception as e:
            logger.warning("quote_fetch_unexpected_error", symbol=symbol, exc_info=True)
            return Unavailable(symbol, UnavailableReason.PROVIDER_ERROR, str(e))
