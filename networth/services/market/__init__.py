"""Market data services."""

from networth.services.market.interface import (
    MarketDataError,
    MarketDataInterface,
    MarketDataUnavailableError,
)
from networth.services.market.static import StaticMarketData

__all__ = [
    "MarketDataError",
    "MarketDataInterface",
    "MarketDataUnavailableError",
    "StaticMarketData",
]
