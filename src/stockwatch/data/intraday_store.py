"""Append-only intraday quote history.

Every successful refresh appends one QuoteSnapshot per symbol. The first
observation of a calendar day is preceded by a synthetic day-open snapshot
stamped at midnight, which anchors the same-day trend.

CRITICAL: Prices are stored as TEXT in SQLite, restored as Decimal on read.
"""

from datetime import date, datetime, time
from decimal import Decimal

from stockwatch.data.database import QuoteDatabase
from stockwatch.logging import get_logger
from stockwatch.models import DEFAULT_CURRENCY, QuoteSnapshot, normalize_symbol

logger = get_logger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S"

_SELECT_COLUMNS = (
    "SELECT symbol, refreshed_at, price, currency, change, change_percent, is_day_open "
    "FROM quote_history"
)


def format_timestamp(at: datetime) -> str:
    """Serialize a naive local datetime at second precision.

    Raises ValueError for timezone-aware datetimes: the history stores local
    wall-clock time of the configured timezone only.
    """
    if not isinstance(at, datetime):
        raise ValueError(f"Expected a datetime, got {at!r}")
    if at.tzinfo is not None:
        raise ValueError("refreshed_at must be a naive local datetime")
    return at.strftime(TIMESTAMP_FORMAT)


def day_open_timestamp(day: date) -> datetime:
    """Midnight of ``day``, the timestamp of its synthetic day-open snapshot."""
    return datetime.combine(day, time.min)


def _to_text(value: Decimal | None) -> str | None:
    return str(value) if value is not None else None


def _to_decimal(value: str | None) -> Decimal | None:
    return Decimal(value) if value is not None else None


def _row_to_snapshot(row: tuple) -> QuoteSnapshot:
    return QuoteSnapshot(
        symbol=row[0],
        refreshed_at=datetime.strptime(row[1], TIMESTAMP_FORMAT),
        price=Decimal(row[2]),
        currency=row[3] or DEFAULT_CURRENCY,
        change=_to_decimal(row[4]),
        change_percent=_to_decimal(row[5]),
        is_day_open=bool(row[6]),
    )


class IntradayHistoryStore:
    """Async SQLite store for intraday quote snapshots.

    Snapshots are keyed by (symbol, refreshed_at). Both kinds of row use
    INSERT OR IGNORE, so a stored row is never rewritten: the first write in a
    given second wins, and the day-open anchor is written at most once per
    symbol and day. Because record() writes the anchor first, an observation
    stamped exactly at midnight never takes the anchor's slot.

    Usage:
        async with QuoteDatabase("data/stockwatch.db") as database:
            store = IntradayHistoryStore(database)
            snapshot = await store.record("AAPL", Decimal("187.2"), "USD", None, None, now)
    """

    def __init__(self, database: QuoteDatabase) -> None:
        self._database = database

    # ──────────────────────────────────────────────
    # Write methods
    # ──────────────────────────────────────────────

    async def append(
        self,
        symbol: str,
        price: Decimal,
        currency: str | None,
        change: Decimal | None,
        change_percent: Decimal | None,
        at: datetime,
    ) -> QuoteSnapshot:
        """Insert a single snapshot and commit."""
        symbol = normalize_symbol(symbol)
        async with self._database.write_lock:
            await self._insert_snapshot(symbol, price, currency, change, change_percent, at)
            await self._database.db.commit()
        return QuoteSnapshot(
            symbol=symbol,
            price=price,
            refreshed_at=at.replace(microsecond=0),
            currency=currency or DEFAULT_CURRENCY,
            change=change,
            change_percent=change_percent,
        )

    async def ensure_day_open(
        self,
        symbol: str,
        price: Decimal,
        currency: str | None,
        at: datetime,
    ) -> bool:
        """Insert the day-open anchor for ``at``'s date if it is missing.

        Returns True when a row was inserted, False when one already existed.
        """
        symbol = normalize_symbol(symbol)
        async with self._database.write_lock:
            inserted = await self._insert_day_open(symbol, price, currency, at.date())
            await self._database.db.commit()
        return inserted

    async def record(
        self,
        symbol: str,
        price: Decimal,
        currency: str | None,
        change: Decimal | None,
        change_percent: Decimal | None,
        at: datetime,
    ) -> QuoteSnapshot:
        """Record one refresh observation.

        Inserts the day-open anchor first when none exists yet for the day,
        using the same price as this (first) observation, then appends the
        snapshot. Both rows are committed together.
        """
        symbol = normalize_symbol(symbol)
        format_timestamp(at)
        db = self._database.db
        async with self._database.write_lock:
            try:
                inserted = await self._insert_day_open(symbol, price, currency, at.date())
                await self._insert_snapshot(symbol, price, currency, change, change_percent, at)
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        if inserted:
            logger.debug("day_open_inserted", symbol=symbol, day=at.date().isoformat())

        return QuoteSnapshot(
            symbol=symbol,
            price=price,
            refreshed_at=at.replace(microsecond=0),
            currency=currency or DEFAULT_CURRENCY,
            change=change,
            change_percent=change_percent,
        )

    async def _insert_snapshot(
        self,
        symbol: str,
        price: Decimal,
        currency: str | None,
        change: Decimal | None,
        change_percent: Decimal | None,
        at: datetime,
    ) -> None:
        await self._database.db.execute(
            "INSERT OR IGNORE INTO quote_history "
            "(symbol, refreshed_at, price, currency, change, change_percent, is_day_open) "
            "VALUES (?, ?, ?, ?, ?, ?, 0)",
            (
                symbol,
                format_timestamp(at),
                str(price),
                currency or DEFAULT_CURRENCY,
                _to_text(change),
                _to_text(change_percent),
            ),
        )

    async def _insert_day_open(
        self,
        symbol: str,
        price: Decimal,
        currency: str | None,
        day: date,
    ) -> bool:
        cursor = await self._database.db.execute(
            "INSERT OR IGNORE INTO quote_history "
            "(symbol, refreshed_at, price, currency, change, change_percent, is_day_open) "
            "VALUES (?, ?, ?, ?, NULL, NULL, 1)",
            (
                symbol,
                format_timestamp(day_open_timestamp(day)),
                str(price),
                currency or DEFAULT_CURRENCY,
            ),
        )
        return cursor.rowcount > 0

    # ──────────────────────────────────────────────
    # Read methods
    # ──────────────────────────────────────────────

    async def get_day_open(self, symbol: str, day: date) -> QuoteSnapshot | None:
        """Return the day-open anchor for ``symbol`` on ``day``, or None."""
        cursor = await self._database.db.execute(
            f"{_SELECT_COLUMNS} WHERE symbol = ? AND refreshed_at = ? AND is_day_open = 1",
            (normalize_symbol(symbol), format_timestamp(day_open_timestamp(day))),
        )
        row = await cursor.fetchone()
        return _row_to_snapshot(row) if row is not None else None

    async def list_by_symbol(
        self, symbol: str, limit: int | None = None
    ) -> list[QuoteSnapshot]:
        """Return snapshots for a symbol ordered by refreshed_at DESC."""
        query = f"{_SELECT_COLUMNS} WHERE symbol = ? ORDER BY refreshed_at DESC"
        params: list = [normalize_symbol(symbol)]
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        cursor = await self._database.db.execute(query, params)
        rows = await cursor.fetchall()
        return [_row_to_snapshot(row) for row in rows]

    async def latest(self, symbol: str) -> QuoteSnapshot | None:
        """Return the most recent snapshot for a symbol, or None."""
        snapshots = await self.list_by_symbol(symbol, limit=1)
        return snapshots[0] if snapshots else None
