"""JSON read endpoints: cached quotes, quote history, daily bars, trend sequences."""

from __future__ import annotations

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

from stockwatch.analysis.trend import trend_sequences_newest_first
from stockwatch.api import serializers
from stockwatch.logging import get_logger
from stockwatch.models import normalize_symbol

log = get_logger(__name__)

router = APIRouter()


@router.get("/health")
async def health(request: Request) -> JSONResponse:
    orchestrator = request.app.state.orchestrator
    return JSONResponse(content={"status": "ok", **orchestrator.get_status()})


@router.get("/quotes")
async def get_quotes(request: Request) -> JSONResponse:
    """Latest quote and same-day trend per tracked symbol.

    Triggers a refresh when the cache is older than refresh.max_age_seconds.
    Symbols whose quote is currently unavailable map to null.
    """
    registry = request.app.state.registry
    engine = request.app.state.refresh_engine

    symbols = await registry.list_symbols()
    if not symbols:
        return JSONResponse(content={})

    snapshot = await engine.refresh_if_stale(symbols)
    entries = {s: snapshot.entries.get(s) for s in symbols if s in snapshot.entries}
    return JSONResponse(content=serializers.quotes_to_dict(entries))


@router.get("/quotes/cached")
async def get_cached_quotes(request: Request) -> JSONResponse:
    """Current cache content without triggering a refresh."""
    snapshot = request.app.state.refresh_engine.cache.snapshot()
    return JSONResponse(
        content={
            "last_refresh": (
                snapshot.last_refresh.isoformat() if snapshot.last_refresh else None
            ),
            "quotes": serializers.quotes_to_dict(snapshot.entries),
        }
    )


@router.get("/symbols/{symbol:path}/history")
async def get_history(
    request: Request,
    symbol: str,
    limit: int | None = Query(default=None, ge=1),
) -> JSONResponse:
    """All intraday snapshots for a symbol, newest first."""
    store = request.app.state.intraday_store
    snapshots = await store.list_by_symbol(normalize_symbol(symbol), limit=limit)
    return JSONResponse(content=[serializers.snapshot_to_dict(s) for s in snapshots])


@router.get("/symbols/{symbol:path}/daily")
async def get_daily(
    request: Request,
    symbol: str,
    limit: int | None = Query(default=None, ge=1),
) -> JSONResponse:
    """All daily bars for a symbol, newest first."""
    store = request.app.state.daily_store
    bars = await store.list_by_symbol(normalize_symbol(symbol), limit=limit)
    return JSONResponse(content=[serializers.daily_bar_to_dict(b) for b in bars])


@router.get("/symbols/{symbol:path}/trends")
async def get_trends(request: Request, symbol: str) -> JSONResponse:
    """Trend sequences over the full intraday history, newest first."""
    store = request.app.state.intraday_store
    snapshots = await store.list_by_symbol(normalize_symbol(symbol))
    sequences = trend_sequences_newest_first(snapshots)
    return JSONResponse(content=[serializers.trend_to_dict(s) for s in sequences])


@router.post("/backfill")
async def run_backfill(
    request: Request,
    lookback_days: int | None = Query(default=None, ge=1),
) -> JSONResponse:
    """Reconcile the daily bar table for all tracked symbols now."""
    orchestrator = request.app.state.orchestrator
    result = await orchestrator.run_backfill(lookback_days)
    log.info(
        "manual_backfill_complete",
        total_bars_written=result.total_bars_written,
        failed=len(result.errors),
    )
    return JSONResponse(content=serializers.backfill_to_dict(result))
