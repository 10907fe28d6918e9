"""Market-data provider adapters."""

from stockwatch.config import ProviderSettings
from stockwatch.provider.client import QuoteProvider


def create_provider(settings: ProviderSettings) -> QuoteProvider:
    """Build the provider selected by ``settings.source``."""
    if settings.source == "ccxt":
        from stockwatch.provider.ccxt_client import CcxtQuoteProvider

        return CcxtQuoteProvider(settings)

    from stockwatch.provider.yahoo_client import YahooQuoteProvider

    return YahooQuoteProvider()


__all__ = ["QuoteProvider", "create_provider"]
