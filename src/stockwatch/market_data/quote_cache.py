"""Shared in-memory quote cache with swap-on-write.

The refresh engine is the only writer. It builds a complete new mapping for
every cycle and installs it with a single reference assignment, so readers
always see either the previous full snapshot or the new one.
"""

import time
from collections.abc import Mapping
from datetime import datetime
from types import MappingProxyType

from stockwatch.logging import get_logger
from stockwatch.models import CacheSnapshot, QuoteWithTrend

logger = get_logger(__name__)


class QuoteCache:
    """Holds the current immutable CacheSnapshot.

    Readers call ``snapshot()`` and keep the returned object; later swaps
    never mutate it.
    """

    def __init__(self) -> None:
        self._snapshot = CacheSnapshot()
        self._swapped_at: float | None = None  # monotonic time of the last swap

    def snapshot(self) -> CacheSnapshot:
        """Return the snapshot valid at call time."""
        return self._snapshot

    def get(self, symbol: str) -> QuoteWithTrend | None:
        """Return the cached entry for a symbol (None if absent or unavailable)."""
        return self._snapshot.entries.get(symbol)

    def swap(
        self,
        entries: Mapping[str, QuoteWithTrend | None],
        refreshed_at: datetime,
    ) -> CacheSnapshot:
        """Replace the whole cache with a new mapping."""
        new_snapshot = CacheSnapshot(
            entries=MappingProxyType(dict(entries)),
            last_refresh=refreshed_at,
        )
        self._snapshot = new_snapshot
        self._swapped_at = time.monotonic()
        logger.debug("quote_cache_swapped", symbols=len(entries))
        return new_snapshot

    def age_seconds(self) -> float | None:
        """Seconds since the last swap, or None if never refreshed."""
        if self._swapped_at is None:
            return None
        return time.monotonic() - self._swapped_at

    def is_stale(self, max_age_seconds: float) -> bool:
        """True when the cache was never refreshed or is older than max_age_seconds."""
        age = self.age_seconds()
        if age is None:
            return True
        return age > max_age_seconds
