"""Daily bar table: one row per (symbol, calendar date).

Rows are written only by the backfill reconciler, via full-row
INSERT OR REPLACE (last write wins, no merge).

CRITICAL: Prices are stored as TEXT in SQLite, restored as Decimal on read.
"""

from datetime import date
from decimal import Decimal

from stockwatch.data.database import QuoteDatabase
from stockwatch.logging import get_logger
from stockwatch.models import DailyBar, normalize_symbol

logger = get_logger(__name__)


class DailyBarStore:
    """Async SQLite store for reconciled daily bars.

    Usage:
        async with QuoteDatabase("data/stockwatch.db") as database:
            store = DailyBarStore(database)
            written = await store.upsert_bars("AAPL", bars)
    """

    def __init__(self, database: QuoteDatabase) -> None:
        self._database = database

    async def upsert_bars(self, symbol: str, bars: list[DailyBar]) -> int:
        """Insert or replace all bars of one symbol as a single transaction.

        Either every row is committed or, on error, none is. Returns the
        number of rows written.
        """
        symbol = normalize_symbol(symbol)
        if not bars:
            return 0

        data = []
        for bar in bars:
            if normalize_symbol(bar.symbol) != symbol:
                raise ValueError(
                    f"Bar for {bar.symbol} passed to upsert_bars({symbol!r})"
                )
            data.append(
                (
                    symbol,
                    bar.date.isoformat(),
                    str(bar.open_price),
                    str(bar.close_price),
                    bar.currency,
                    str(bar.day_change_percent),
                    bar.volume,
                )
            )

        db = self._database.db
        async with self._database.write_lock:
            try:
                await db.executemany(
                    "INSERT OR REPLACE INTO daily_history "
                    "(symbol, date, open_price, close_price, currency, day_change_percent, volume) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?)",
                    data,
                )
                await db.commit()
            except Exception:
                await db.rollback()
                raise

        logger.debug("daily_bars_upserted", symbol=symbol, rows=len(data))
        return len(data)

    async def get_last_currency(self, symbol: str) -> str | None:
        """Return the currency most recently recorded for a symbol, or None."""
        cursor = await self._database.db.execute(
            "SELECT currency FROM daily_history "
            "WHERE symbol = ? AND currency IS NOT NULL "
            "ORDER BY date DESC LIMIT 1",
            (normalize_symbol(symbol),),
        )
        row = await cursor.fetchone()
        return row[0] if row is not None else None

    async def list_by_symbol(
        self,
        symbol: str,
        since: date | None = None,
        limit: int | None = None,
    ) -> list[DailyBar]:
        """Return daily bars for a symbol ordered by date DESC."""
        conditions = ["symbol = ?"]
        params: list = [normalize_symbol(symbol)]

        if since is not None:
            conditions.append("date >= ?")
            params.append(since.isoformat())

        where = " AND ".join(conditions)
        query = (
            f"SELECT symbol, date, open_price, close_price, currency, day_change_percent, volume "
            f"FROM daily_history WHERE {where} ORDER BY date DESC"
        )
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        cursor = await self._database.db.execute(query, params)
        rows = await cursor.fetchall()
        return [
            DailyBar(
                symbol=row[0],
                date=date.fromisoformat(row[1]),
                open_price=Decimal(row[2]),
                close_price=Decimal(row[3]),
                currency=row[4],
                day_change_percent=Decimal(row[5]),
                volume=row[6],
            )
            for row in rows
        ]

    async def count(self, symbol: str | None = None) -> int:
        """Total number of stored bars, optionally for one symbol."""
        if symbol is None:
            cursor = await self._database.db.execute("SELECT COUNT(*) FROM daily_history")
        else:
            cursor = await self._database.db.execute(
                "SELECT COUNT(*) FROM daily_history WHERE symbol = ?",
                (normalize_symbol(symbol),),
            )
        return (await cursor.fetchone())[0]
