"""
Market Data Models

Shapes returned by the market-data collaborator (ticker search and quotes).
The engine only consumes these; it never computes prices itself.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class TickerSymbol(BaseModel):
    """One ticker search result."""

    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    symbol: str = Field(..., min_length=1)
    name: str = ""
    exchange: Optional[str] = None
    symbol_type: Optional[str] = Field(
        default=None,
        description="Security type reported by the provider (stock, etf, ...)"
    )


class StockQuote(BaseModel):
    """Latest price for a ticker."""

    model_config = ConfigDict(frozen=True)

    price: float = Field(..., ge=0)
    currency: str = "USD"
    change_percent: Optional[float] = None
    previous_close: Optional[float] = None
