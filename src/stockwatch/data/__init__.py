"""Persistence layer.

Provides SQLite database management, the intraday quote history, the daily
bar table, the tracked symbol registry, and the backfill reconciler.
"""

from stockwatch.data.backfill import BackfillReconciler
from stockwatch.data.daily_store import DailyBarStore
from stockwatch.data.database import QuoteDatabase
from stockwatch.data.intraday_store import IntradayHistoryStore
from stockwatch.data.symbols import SymbolRegistry

__all__ = [
    "BackfillReconciler",
    "DailyBarStore",
    "IntradayHistoryStore",
    "QuoteDatabase",
    "SymbolRegistry",
]
