"""JSON shapes for the read API. Decimals are rendered as strings."""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal
from typing import Any

from stockwatch.models import (
    BackfillResult,
    DailyBar,
    QuoteSnapshot,
    QuoteWithTrend,
    TrendSequence,
)


def _dec(value: Decimal | None) -> str | None:
    return str(value) if value is not None else None


def snapshot_to_dict(snapshot: QuoteSnapshot) -> dict[str, Any]:
    return {
        "symbol": snapshot.symbol,
        "price": _dec(snapshot.price),
        "currency": snapshot.currency,
        "change": _dec(snapshot.change),
        "change_percent": _dec(snapshot.change_percent),
        "refreshed_at": snapshot.refreshed_at.isoformat(),
        "is_day_open": snapshot.is_day_open,
    }


def quote_entry_to_dict(entry: QuoteWithTrend | None) -> dict[str, Any] | None:
    if entry is None:
        return None
    data = snapshot_to_dict(entry.snapshot)
    del data["is_day_open"]
    data["daily_trend"] = _dec(entry.daily_trend)
    data["last_refresh"] = entry.last_refresh.isoformat()
    return data


def quotes_to_dict(
    entries: Mapping[str, QuoteWithTrend | None],
) -> dict[str, dict[str, Any] | None]:
    return {symbol: quote_entry_to_dict(entry) for symbol, entry in entries.items()}


def daily_bar_to_dict(bar: DailyBar) -> dict[str, Any]:
    return {
        "symbol": bar.symbol,
        "date": bar.date.isoformat(),
        "open_price": _dec(bar.open_price),
        "close_price": _dec(bar.close_price),
        "currency": bar.currency,
        "day_change_percent": _dec(bar.day_change_percent),
        "volume": bar.volume,
    }


def trend_to_dict(sequence: TrendSequence) -> dict[str, Any]:
    return {
        "start_time": sequence.start_time.isoformat(),
        "end_time": sequence.end_time.isoformat(),
        "start_price": _dec(sequence.start_price),
        "end_price": _dec(sequence.end_price),
        "currency": sequence.currency,
        "percent": _dec(sequence.percent),
        "direction": sequence.direction.value,
    }


def backfill_to_dict(result: BackfillResult) -> dict[str, Any]:
    return {
        "total_bars_written": result.total_bars_written,
        "bars_written": dict(result.bars_written),
        "errors": dict(result.errors),
    }
