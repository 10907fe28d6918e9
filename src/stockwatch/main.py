"""Entry point for the stockwatch quote service.

Wires all components together, optionally embeds the FastAPI read API,
and starts the orchestrator. When the API is enabled (default), the
scheduler and the API share a single asyncio event loop via uvicorn's
programmatic API and FastAPI's lifespan context manager.

Subcommands:
    stockwatch serve              run the scheduler (+ API)
    stockwatch backfill [--days N] [SYMBOL ...]
                                  run one daily-bar reconciliation and exit

Component wiring order (in _build_components):
1. QuoteDatabase
2. QuoteProvider (Yahoo or ccxt)
3. SymbolRegistry, IntradayHistoryStore, DailyBarStore
4. QuoteCache + RefreshEngine
5. BackfillReconciler
6. Orchestrator
"""

import argparse
import asyncio
import signal
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import FastAPI

from stockwatch.config import AppSettings
from stockwatch.data.backfill import BackfillReconciler
from stockwatch.data.daily_store import DailyBarStore
from stockwatch.data.database import QuoteDatabase
from stockwatch.data.intraday_store import IntradayHistoryStore
from stockwatch.data.symbols import SymbolRegistry
from stockwatch.logging import get_logger, setup_logging
from stockwatch.market_data.quote_cache import QuoteCache
from stockwatch.market_data.refresh_engine import RefreshEngine
from stockwatch.orchestrator import Orchestrator
from stockwatch.provider import create_provider


def _build_components(settings: AppSettings) -> dict[str, Any]:
    """Build all components from settings.

    Note: Does NOT connect the database or the provider -- that happens in
    _connect() so the same graph serves both the server and the CLI.
    """
    database = QuoteDatabase(settings.database.path)
    provider = create_provider(settings.provider)

    registry = SymbolRegistry(database)
    intraday_store = IntradayHistoryStore(database)
    daily_store = DailyBarStore(database)

    cache = QuoteCache()
    refresh_engine = RefreshEngine(
        provider=provider,
        history_store=intraday_store,
        cache=cache,
        provider_settings=settings.provider,
        refresh_settings=settings.refresh,
    )
    reconciler = BackfillReconciler(provider, daily_store, settings.backfill)

    orchestrator = Orchestrator(
        settings=settings,
        registry=registry,
        engine=refresh_engine,
        reconciler=reconciler,
    )

    return {
        "database": database,
        "provider": provider,
        "registry": registry,
        "intraday_store": intraday_store,
        "daily_store": daily_store,
        "cache": cache,
        "refresh_engine": refresh_engine,
        "reconciler": reconciler,
        "orchestrator": orchestrator,
    }


async def _connect(settings: AppSettings, components: dict[str, Any]) -> None:
    await components["database"].connect()
    await components["provider"].connect()
    await components["registry"].seed(settings.tracked_symbols)


async def _disconnect(components: dict[str, Any]) -> None:
    await components["provider"].close()
    await components["database"].close()


def _setup_signal_handlers(orchestrator: Orchestrator) -> None:
    """SIGINT/SIGTERM trigger a graceful stop. Must run inside the event loop."""
    logger = get_logger("stockwatch.main")
    loop = asyncio.get_running_loop()

    def _graceful_handler() -> None:
        logger.info("graceful_shutdown_signal")
        asyncio.create_task(orchestrator.stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _graceful_handler)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage component lifecycle within the FastAPI application.

    On startup: stores components on app.state, connects storage and
    provider, starts the orchestrator loops.

    On shutdown: stops the orchestrator, then disconnects.
    """
    logger = get_logger("stockwatch.main")
    settings: AppSettings = app.state.settings
    components = app.state.components

    for name in ("registry", "refresh_engine", "intraday_store", "daily_store", "orchestrator"):
        setattr(app.state, name, components[name])

    await _connect(settings, components)
    await components["orchestrator"].start()
    logger.info("lifespan_started", provider=settings.provider.source)

    yield

    await components["orchestrator"].stop()
    await _disconnect(components)
    logger.info("stockwatch_stopped")


async def serve(settings: AppSettings) -> None:
    """Run the scheduler, with the read API when enabled."""
    logger = get_logger("stockwatch.main")
    components = _build_components(settings)

    if settings.api.enabled:
        from stockwatch.api.app import create_app

        app = create_app(lifespan=lifespan)
        app.state.settings = settings
        app.state.components = components

        logger.info(
            "starting_with_api",
            host=settings.api.host,
            port=settings.api.port,
            provider=settings.provider.source,
        )

        config = uvicorn.Config(
            app,
            host=settings.api.host,
            port=settings.api.port,
            log_level="warning",  # Suppress uvicorn access logs
        )
        server = uvicorn.Server(config)
        await server.serve()
        return

    orchestrator: Orchestrator = components["orchestrator"]
    logger.info("starting_without_api", provider=settings.provider.source)
    try:
        await _connect(settings, components)
        _setup_signal_handlers(orchestrator)
        await orchestrator.start()
        await orchestrator.wait()
    finally:
        await orchestrator.stop()
        await _disconnect(components)
        logger.info("stockwatch_stopped")


async def backfill(settings: AppSettings, symbols: list[str], days: int | None) -> int:
    """Run one backfill and print a per-symbol summary. Returns the exit code."""
    components = _build_components(settings)
    try:
        await _connect(settings, components)
        if not symbols:
            symbols = await components["registry"].list_symbols()
        if not symbols:
            print("No tracked symbols.")
            return 0

        result = await components["reconciler"].backfill(symbols, days)
    finally:
        await _disconnect(components)

    for symbol in sorted(set(result.bars_written) | set(result.errors)):
        if symbol in result.errors:
            print(f"  {symbol:<12} ERROR  {result.errors[symbol]}")
        else:
            print(f"  {symbol:<12} {result.bars_written[symbol]} days")
    print(f"Total: {result.total_bars_written} rows inserted/updated")
    if result.errors:
        print(f"Errors: {len(result.errors)}")
    return 1 if result.errors and not result.bars_written else 0


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="stockwatch", description="Quote tracking service")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("serve", help="Run the refresh scheduler and read API")

    backfill_parser = sub.add_parser("backfill", help="Reconcile daily bars once")
    backfill_parser.add_argument(
        "--days",
        type=int,
        default=None,
        help="Lookback window in days (default: BACKFILL_LOOKBACK_DAYS)",
    )
    backfill_parser.add_argument("symbols", nargs="*", help="Symbols (default: all tracked)")

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Synchronous entry point."""
    args = _parse_args(argv)
    settings = AppSettings()
    setup_logging(settings.log_level, settings.log_format)

    if args.command == "backfill":
        return asyncio.run(backfill(settings, args.symbols, args.days))

    asyncio.run(serve(settings))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
