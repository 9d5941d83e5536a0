"""
Market Data Interface

The engine consumes ticker search and stock quotes; it never computes
market data. Any provider (a quotes API, a cache) implements this.
"""

from abc import ABC, abstractmethod
from typing import Optional

from networth.models.market import StockQuote, TickerSymbol


class MarketDataInterface(ABC):
    """Abstract interface for market data lookups."""

    @abstractmethod
    async def search_ticker_symbols(
        self,
        query: str,
        region: Optional[str] = None,
        limit: int = 10,
    ) -> list[TickerSymbol]:
        """
        Search tickers by symbol or company name.

        Args:
            query: What the user typed
            region: Market code to restrict results (e.g., 'US', 'SG')
            limit: Maximum number of results

        Raises:
            MarketDataError: If the provider fails
        """
        pass

    @abstractmethod
    async def get_stock_price(self, ticker: str) -> Optional[StockQuote]:
        """
        Latest quote for a ticker, or None when the provider has no price.

        Raises:
            MarketDataError: If the provider fails
        """
        pass


class MarketDataError(Exception):
    """Base exception for market data lookups."""
    pass


class MarketDataUnavailableError(MarketDataError):
    """The provider could not be reached. Safe to retry."""
    pass
