"""Services package."""

from networth.services.market import (
    MarketDataError,
    MarketDataInterface,
    MarketDataUnavailableError,
    StaticMarketData,
)
from networth.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    InMemoryAuditStorage,
    InMemoryPortfolioStorage,
    NotFoundError,
    PortfolioStorageInterface,
    StorageError,
)

__all__ = [
    # Market data
    "MarketDataError",
    "MarketDataInterface",
    "MarketDataUnavailableError",
    "StaticMarketData",
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "InMemoryAuditStorage",
    "InMemoryPortfolioStorage",
    "NotFoundError",
    "PortfolioStorageInterface",
    "StorageError",
]
