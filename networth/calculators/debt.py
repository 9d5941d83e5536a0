"""Debt payment helpers."""


def is_payoff(payment_amount: float, remaining_balance: float) -> bool:
    """A payment that covers the whole remaining balance pays the debt off."""
    return remaining_balance > 0 and payment_amount >= remaining_balance


def balance_after_payment(remaining_balance: float, payment_amount: float) -> float:
    """Remaining balance after a payment, clamped at exactly 0."""
    return max(0.0, remaining_balance - payment_amount)
