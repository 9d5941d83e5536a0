"""
Static Market Data

A fixed table of tickers and quotes. Used for tests and local runs.
"""

from typing import Optional

from networth.models.market import StockQuote, TickerSymbol
from networth.services.market.interface import MarketDataInterface


class StaticMarketData(MarketDataInterface):
    """Market data served from in-memory tables."""

    def __init__(
        self,
        symbols: Optional[dict[str, list[TickerSymbol]]] = None,
        quotes: Optional[dict[str, StockQuote]] = None,
    ):
        """
        Args:
            symbols: Region code -> tickers listed there
            quotes: Upper-cased ticker -> quote
        """
        self._symbols = symbols or {}
        self._quotes = {k.upper(): v for k, v in (quotes or {}).items()}

    async def search_ticker_symbols(
        self,
        query: str,
        region: Optional[str] = None,
        limit: int = 10,
    ) -> list[TickerSymbol]:
        needle = query.strip().lower()
        if not needle:
            return []

        if region is not None:
            pool = self._symbols.get(region, [])
        else:
            pool = [s for symbols in self._symbols.values() for s in symbols]

        matches = [
            s for s in pool
            if needle in s.symbol.lower() or needle in s.name.lower()
        ]
        return matches[:limit]

    async def get_stock_price(self, ticker: str) -> Optional[StockQuote]:
        return self._quotes.get(ticker.strip().upper())
