"""
Interest annualization.

Turns one sub-annual interest payment into an APY using the account's
payment period, and back.
"""

from typing import NamedTuple, Optional

from networth.models.portfolio import PaymentPeriod


PERIODS_PER_YEAR: dict[PaymentPeriod, float] = {
    PaymentPeriod.WEEKLY: 52,
    PaymentPeriod.MONTHLY: 12,
    PaymentPeriod.QUARTERLY: 4,
    PaymentPeriod.SEMI_ANNUAL: 2,
    PaymentPeriod.ANNUAL: 1,
    PaymentPeriod.BIENNIAL: 0.5,
    PaymentPeriod.TRIENNIAL: 1 / 3,
    PaymentPeriod.QUINQUENNIAL: 0.2,
}


class InterestAnnualization(NamedTuple):
    period_rate: float
    apy: float
    periods_per_year: float


def annualize_interest(
    interest_amount: float,
    balance: float,
    period: PaymentPeriod,
) -> Optional[InterestAnnualization]:
    """
    Annualize one interest payment.

    period_rate = interest / balance
    apy = (1 + period_rate) ** periods_per_year - 1

    Returns None when balance or interest is not positive; callers
    treat that as "cannot display", not as zero.
    """
    if balance <= 0 or interest_amount <= 0:
        return None

    periods_per_year = PERIODS_PER_YEAR[PaymentPeriod(period)]
    period_rate = interest_amount / balance
    apy = (1 + period_rate) ** periods_per_year - 1
    return InterestAnnualization(period_rate, apy, periods_per_year)


def expected_period_interest(
    apy: float,
    balance: float,
    period: PaymentPeriod,
) -> Optional[float]:
    """Interest one period should pay on `balance` at a saved APY."""
    if apy <= 0 or balance <= 0:
        return None

    periods_per_year = PERIODS_PER_YEAR[PaymentPeriod(period)]
    return balance * ((1 + apy) ** (1 / periods_per_year) - 1)
