"""Loan amortization."""


def monthly_payment(principal: float, annual_rate: float, term_months: int) -> float:
    """
    Fixed monthly payment that repays `principal` over `term_months`.

    `annual_rate` is a decimal (0.065 for 6.5%). A zero or negative rate
    is treated as an interest-free loan. Returns 0 when there is nothing
    to amortize.
    """
    if term_months <= 0 or principal <= 0:
        return 0.0
    if annual_rate <= 0:
        return principal / term_months

    r = annual_rate / 12
    growth = (1 + r) ** term_months
    return principal * r * growth / (growth - 1)


def total_interest(principal: float, annual_rate: float, term_months: int) -> float:
    """Interest paid over the whole term at the fixed monthly payment."""
    payment = monthly_payment(principal, annual_rate, term_months)
    if payment == 0:
        return 0.0
    return payment * term_months - principal
