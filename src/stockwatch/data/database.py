"""Async SQLite database manager for quote history and daily bars.

Uses aiosqlite for non-blocking database operations with WAL mode
for concurrent read/write performance.
"""

import asyncio
import os
from typing import Self

import aiosqlite

from stockwatch.logging import get_logger

logger = get_logger(__name__)

SCHEMA_VERSION = 2

# Statements that bring a database at version (key - 1) up to version key.
_MIGRATIONS: dict[int, tuple[str, ...]] = {
    2: ("ALTER TABLE daily_history ADD COLUMN volume INTEGER",),
}

_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS tracked_symbols (
    symbol TEXT PRIMARY KEY,
    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS quote_history (
    symbol TEXT NOT NULL,
    refreshed_at TEXT NOT NULL,
    price TEXT NOT NULL,
    currency TEXT,
    change TEXT,
    change_percent TEXT,
    is_day_open INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (symbol, refreshed_at)
);

CREATE TABLE IF NOT EXISTS daily_history (
    symbol TEXT NOT NULL,
    date TEXT NOT NULL,
    open_price TEXT NOT NULL,
    close_price TEXT NOT NULL,
    currency TEXT,
    day_change_percent TEXT,
    volume INTEGER,
    PRIMARY KEY (symbol, date)
);
"""

_CREATE_INDEXES_SQL = """
CREATE INDEX IF NOT EXISTS idx_quote_history_day_open
    ON quote_history(symbol, is_day_open, refreshed_at);
"""


class QuoteDatabase:
    """Async SQLite connection manager for the quote service.

    Manages database lifecycle including schema creation, WAL mode
    configuration, and clean resource cleanup. Owns ``write_lock``: every
    store holds it for the span of one logical transaction so that commits
    from concurrent coroutines sharing this connection never interleave.

    Usage:
        async with QuoteDatabase("/path/to/db") as database:
            store = IntradayHistoryStore(database)
    """

    def __init__(self, db_path: str = "data/stockwatch.db") -> None:
        self._db_path = db_path
        self._connection: aiosqlite.Connection | None = None
        self.write_lock = asyncio.Lock()

    @property
    def db(self) -> aiosqlite.Connection:
        """Access the raw aiosqlite connection.

        Raises RuntimeError if not connected.
        """
        if self._connection is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._connection

    async def connect(self) -> None:
        """Open database connection, configure pragmas, and create schema.

        Creates the parent directory if it does not exist.
        """
        db_dir = os.path.dirname(self._db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

        self._connection = await aiosqlite.connect(self._db_path)

        await self._connection.execute("PRAGMA journal_mode=WAL")
        await self._connection.execute("PRAGMA synchronous=NORMAL")

        await self._bootstrap_schema()

        logger.info("quote_db_connected", db_path=self._db_path)

    async def close(self) -> None:
        """Close the database connection if open."""
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            logger.info("quote_db_closed", db_path=self._db_path)

    async def get_schema_version(self) -> int | None:
        cursor = await self.db.execute("SELECT MAX(version) FROM schema_version")
        row = await cursor.fetchone()
        return row[0] if row is not None else None

    async def _has_column(self, table: str, column: str) -> bool:
        cursor = await self.db.execute(f"PRAGMA table_info({table})")
        return any(row[1] == column for row in await cursor.fetchall())

    async def _bootstrap_schema(self) -> None:
        """Create missing tables, then stamp or migrate the schema version.

        A fresh database is created at SCHEMA_VERSION directly. An older one
        gets every pending migration applied in order. A database with no
        version row predates versioning; it counts as version 1 when
        daily_history is missing the volume column.
        """
        db = self.db
        await db.executescript(_CREATE_TABLES_SQL)
        await db.executescript(_CREATE_INDEXES_SQL)

        current = await self.get_schema_version()
        if current is None:
            if await self._has_column("daily_history", "volume"):
                await db.execute(
                    "INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,)
                )
                await db.commit()
                logger.info("schema_version_set", version=SCHEMA_VERSION)
                return
            current = 1
        if current >= SCHEMA_VERSION:
            await db.commit()
            return

        try:
            for version in range(current + 1, SCHEMA_VERSION + 1):
                for statement in _MIGRATIONS.get(version, ()):
                    await db.execute(statement)
            await db.execute("DELETE FROM schema_version")
            await db.execute("INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("schema_migrated", from_version=current, to_version=SCHEMA_VERSION)

    async def __aenter__(self) -> Self:
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # type: ignore[no-untyped-def]
        await self.close()
