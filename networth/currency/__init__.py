"""Currency conversion."""

from networth.currency.conversion import (
    DisplayAmount,
    MissingRateError,
    RateTable,
    convert,
    convert_for_display,
    normalize_currency,
)

__all__ = [
    "DisplayAmount",
    "MissingRateError",
    "RateTable",
    "convert",
    "convert_for_display",
    "normalize_currency",
]
