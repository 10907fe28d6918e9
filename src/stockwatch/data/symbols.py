"""Read access to the tracked symbol list.

The list itself is maintained by the surrounding application; the quote
engine only reads it. ``seed`` exists so that symbols named in configuration
are present on first start.
"""

import time

from stockwatch.data.database import QuoteDatabase
from stockwatch.logging import get_logger
from stockwatch.models import normalize_symbol

logger = get_logger(__name__)


class SymbolRegistry:
    """Tracked symbols stored in the ``tracked_symbols`` table."""

    def __init__(self, database: QuoteDatabase) -> None:
        self._database = database

    async def list_symbols(self) -> list[str]:
        """Return all tracked symbols, sorted."""
        cursor = await self._database.db.execute(
            "SELECT symbol FROM tracked_symbols ORDER BY symbol"
        )
        rows = await cursor.fetchall()
        return [row[0] for row in rows]

    async def seed(self, symbols: list[str]) -> int:
        """Insert symbols that are not tracked yet. Returns how many were added."""
        if not symbols:
            return 0

        created_at = time.strftime("%Y-%m-%d %H:%M:%S", time.gmtime())
        data = [(normalize_symbol(s), created_at) for s in symbols]

        async with self._database.write_lock:
            cursor = await self._database.db.executemany(
                "INSERT OR IGNORE INTO tracked_symbols (symbol, created_at) VALUES (?, ?)",
                data,
            )
            await self._database.db.commit()

        added = cursor.rowcount
        logger.info("symbols_seeded", requested=len(symbols), added=added)
        return added
