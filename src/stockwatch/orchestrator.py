"""Scheduler -- drives periodic quote refreshes and daily backfills.

Runs two independent background loops:
  1. REFRESH: every refresh.interval_seconds, refresh all tracked symbols
  2. BACKFILL: every backfill.interval_hours, reconcile the daily bar table

Both read the current symbol list from the registry at the start of each
iteration. The loops may overlap in time; the stores serialize their writes.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

from stockwatch.config import AppSettings
from stockwatch.data.backfill import BackfillReconciler
from stockwatch.data.symbols import SymbolRegistry
from stockwatch.logging import get_logger
from stockwatch.market_data.refresh_engine import RefreshEngine
from stockwatch.models import BackfillResult

logger = get_logger(__name__)

_ERROR_BACKOFF_SECONDS = 10


class Orchestrator:
    """Owns the periodic refresh and backfill tasks.

    Args:
        settings: Application-wide settings.
        registry: Source of the tracked symbol list.
        engine: Quote refresh engine.
        reconciler: Daily bar backfill reconciler.
    """

    def __init__(
        self,
        settings: AppSettings,
        registry: SymbolRegistry,
        engine: RefreshEngine,
        reconciler: BackfillReconciler,
    ) -> None:
        self._settings = settings
        self._registry = registry
        self._engine = engine
        self._reconciler = reconciler
        self._running = False
        self._tasks: list[asyncio.Task] = []  # type: ignore[type-arg]
        self._backfill_lock = asyncio.Lock()
        self._last_backfill: BackfillResult | None = None
        self._last_backfill_at: datetime | None = None

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def last_backfill(self) -> BackfillResult | None:
        return self._last_backfill

    async def start(self) -> None:
        """Start the enabled background loops and return immediately."""
        if self._running:
            logger.warning("orchestrator_already_running")
            return
        self._running = True

        if self._settings.refresh.enabled:
            self._tasks.append(asyncio.create_task(self._refresh_loop()))
        if self._settings.backfill.enabled:
            self._tasks.append(asyncio.create_task(self._backfill_loop()))

        logger.info(
            "orchestrator_started",
            refresh_interval=self._settings.refresh.interval_seconds,
            backfill_interval_hours=self._settings.backfill.interval_hours,
            refresh_enabled=self._settings.refresh.enabled,
            backfill_enabled=self._settings.backfill.enabled,
        )

    async def stop(self) -> None:
        """Cancel the background loops; in-flight provider calls are cancelled too."""
        self._running = False
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks.clear()
        logger.info("orchestrator_stopped")

    async def wait(self) -> None:
        """Block until every background loop has finished."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def run_backfill(self, lookback_days: int | None = None) -> BackfillResult:
        """Run one backfill over all tracked symbols.

        Serialized so that the scheduled run and a manual trigger never
        reconcile concurrently.
        """
        async with self._backfill_lock:
            symbols = await self._registry.list_symbols()
            result = await self._reconciler.backfill(symbols, lookback_days)
            self._last_backfill = result
            self._last_backfill_at = datetime.now(timezone.utc)
            return result

    def get_status(self) -> dict:
        """Return a summary for the health endpoint."""
        last_refresh = self._engine.cache.snapshot().last_refresh
        return {
            "running": self._running,
            "refresh_cycles": self._engine.cycle_count,
            "last_refresh": last_refresh.isoformat() if last_refresh else None,
            "last_backfill": (
                self._last_backfill_at.isoformat() if self._last_backfill_at else None
            ),
            "last_backfill_bars": (
                self._last_backfill.total_bars_written if self._last_backfill else None
            ),
        }

    # ──────────────────────────────────────────────
    # Loops
    # ──────────────────────────────────────────────

    async def _refresh_loop(self) -> None:
        interval = self._settings.refresh.interval_seconds
        while self._running:
            try:
                symbols = await self._registry.list_symbols()
                await self._engine.refresh_all(symbols)
                await asyncio.sleep(interval)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("refresh_cycle_error", error=str(e), exc_info=True)
                await asyncio.sleep(_ERROR_BACKOFF_SECONDS)

    async def _backfill_loop(self) -> None:
        interval = self._settings.backfill.interval_hours * 3600
        while self._running:
            try:
                await self.run_backfill()
                await asyncio.sleep(interval)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("backfill_run_error", error=str(e), exc_info=True)
                await asyncio.sleep(_ERROR_BACKOFF_SECONDS)
