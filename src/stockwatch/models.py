"""Shared data models for the quote service.

CRITICAL: All monetary values use Decimal. Never use float for prices, changes or percentages.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Mapping

DEFAULT_CURRENCY = "USD"


def normalize_symbol(symbol: str) -> str:
    """Return the canonical (stripped, uppercase) form of a ticker symbol.

    Raises ValueError for an empty or blank symbol.
    """
    if not isinstance(symbol, str) or not symbol.strip():
        raise ValueError(f"Symbol must be a non-empty string, got {symbol!r}")
    return symbol.strip().upper()


class TrendDirection(str, Enum):
    """Direction of a run of consecutive snapshots."""

    UP = "up"
    DOWN = "down"


class UnavailableReason(str, Enum):
    """Why a quote could not be obtained for a symbol."""

    NOT_FOUND = "not_found"
    PROVIDER_ERROR = "provider_error"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class Quote:
    """Current quote returned by a provider for a single symbol."""

    symbol: str
    price: Decimal
    currency: str = DEFAULT_CURRENCY
    change: Decimal | None = None
    change_percent: Decimal | None = None


@dataclass(frozen=True)
class Unavailable:
    """Typed failure result of a quote fetch.

    Carried through the refresh cycle in place of a Quote so that a failing
    symbol is represented explicitly instead of by a swallowed exception.
    """

    symbol: str
    reason: UnavailableReason
    message: str = ""


QuoteResult = Quote | Unavailable


@dataclass(frozen=True)
class HistoricalBar:
    """A single daily bar as returned by a provider.

    open/close may be None when the provider has a hole in its data.
    """

    date: date
    open: Decimal | None
    close: Decimal | None
    volume: int | None = None


@dataclass(frozen=True)
class QuoteSnapshot:
    """One intraday observation stored in the quote history."""

    symbol: str
    price: Decimal
    refreshed_at: datetime
    currency: str = DEFAULT_CURRENCY
    change: Decimal | None = None
    change_percent: Decimal | None = None
    is_day_open: bool = False


@dataclass(frozen=True)
class DailyBar:
    """One reconciled row of the daily bar table, unique on (symbol, date)."""

    symbol: str
    date: date
    open_price: Decimal
    close_price: Decimal
    currency: str
    day_change_percent: Decimal
    volume: int | None = None


@dataclass(frozen=True)
class TrendSequence:
    """A maximal run of snapshots moving in one price direction.

    Derived on demand from the quote history; never persisted.
    """

    start_time: datetime
    end_time: datetime
    start_price: Decimal
    end_price: Decimal
    currency: str
    percent: Decimal
    direction: TrendDirection


@dataclass(frozen=True)
class QuoteWithTrend:
    """Cache entry: latest snapshot for a symbol plus its same-day trend."""

    snapshot: QuoteSnapshot
    daily_trend: Decimal | None
    last_refresh: datetime


@dataclass(frozen=True)
class CacheSnapshot:
    """Immutable view of the quote cache at one point in time.

    A symbol missing from ``entries`` has never been refreshed; a symbol
    mapped to None was refreshed but no quote could be obtained.
    """

    entries: Mapping[str, QuoteWithTrend | None] = field(
        default_factory=lambda: MappingProxyType({})
    )
    last_refresh: datetime | None = None


@dataclass
class BackfillResult:
    """Outcome of one backfill run across a set of symbols."""

    total_bars_written: int = 0
    bars_written: dict[str, int] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)
