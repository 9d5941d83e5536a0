"""
Financial calculators.

All functions are pure. Out-of-domain input gives None, never an
exception and never a misleading 0.
"""

from networth.calculators.amortization import monthly_payment, total_interest
from networth.calculators.debt import balance_after_payment, is_payoff
from networth.calculators.interest import (
    PERIODS_PER_YEAR,
    InterestAnnualization,
    annualize_interest,
    expected_period_interest,
)
from networth.calculators.investments import (
    DEFAULT_WITHHOLDING_RATE,
    DividendSplit,
    average_cost_basis,
    dividend_withholding,
    realized_pnl,
)
from networth.calculators.numbers import parse_number
from networth.calculators.schedule import add_months, next_run_date

__all__ = [
    "DEFAULT_WITHHOLDING_RATE",
    "PERIODS_PER_YEAR",
    "DividendSplit",
    "InterestAnnualization",
    "add_months",
    "annualize_interest",
    "average_cost_basis",
    "balance_after_payment",
    "dividend_withholding",
    "expected_period_interest",
    "is_payoff",
    "monthly_payment",
    "next_run_date",
    "parse_number",
    "realized_pnl",
    "total_interest",
]
