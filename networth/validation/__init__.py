"""Flow form validation."""

from networth.validation.validator import (
    RECURRING_ONLY_CATEGORIES,
    FlowFormValidator,
    is_ticker_invest,
    requires_maturity_choice,
)

__all__ = [
    "RECURRING_ONLY_CATEGORIES",
    "FlowFormValidator",
    "is_ticker_invest",
    "requires_maturity_choice",
]
