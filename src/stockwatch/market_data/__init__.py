"""Market data layer -- quote cache and refresh engine."""

from stockwatch.market_data.quote_cache import QuoteCache
from stockwatch.market_data.refresh_engine import RefreshEngine

__all__ = ["QuoteCache", "RefreshEngine"]
