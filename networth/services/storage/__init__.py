"""
Storage Services Package

Provides abstract interfaces and an in-memory implementation for
portfolio and audit storage. Backends are swappable behind the interfaces.
"""

from networth.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    NotFoundError,
    PortfolioStorageInterface,
    StorageError,
)
from networth.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryPortfolioStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "PortfolioStorageInterface",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryPortfolioStorage",
]
