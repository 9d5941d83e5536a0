"""Tests for the financial calculators and currency conversion."""

import pytest
from datetime import date

from networth.calculators import (
    annualize_interest,
    average_cost_basis,
    balance_after_payment,
    dividend_withholding,
    expected_period_interest,
    is_payoff,
    monthly_payment,
    next_run_date,
    parse_number,
    realized_pnl,
    total_interest,
)
from networth.currency import (
    MissingRateError,
    RateTable,
    convert,
    convert_for_display,
    normalize_currency,
)
from networth.models.portfolio import (
    Flow,
    FlowType,
    PaymentPeriod,
    RecurringFrequency,
)


def _invest(asset_id: str, amount: float, shares: float) -> Flow:
    return Flow(
        type=FlowType.TRANSFER,
        category="invest",
        amount=amount,
        to_asset_id=asset_id,
        date=date(2024, 1, 1),
        metadata={"shares": shares},
    )


class TestAmortization:
    """Tests for loan payments."""

    def test_thirty_year_mortgage(self):
        """Test the standard 30-year fixed payment."""
        assert monthly_payment(300000, 0.065, 360) == pytest.approx(1896.20, abs=0.01)

    def test_zero_rate_is_straight_line(self):
        """Test that an interest-free loan splits the principal evenly."""
        assert monthly_payment(12000, 0, 12) == pytest.approx(1000)

    def test_no_term(self):
        """Test that a zero term has no payment."""
        assert monthly_payment(1000, 0.05, 0) == 0.0

    def test_total_interest(self):
        """Test interest over the life of the loan."""
        interest = total_interest(300000, 0.065, 360)
        assert interest == pytest.approx(1896.20 * 360 - 300000, abs=5)


class TestInterest:
    """Tests for interest annualization."""

    def test_monthly_interest_annualized(self):
        """Test APY from one monthly payment."""
        result = annualize_interest(100, 10000, PaymentPeriod.MONTHLY)
        assert result.period_rate == pytest.approx(0.01)
        assert result.apy == pytest.approx(0.126825, abs=1e-6)
        assert result.periods_per_year == 12

    def test_multi_year_period(self):
        """Test a period longer than a year."""
        result = annualize_interest(1000, 10000, PaymentPeriod.BIENNIAL)
        assert result.apy == pytest.approx(1.1 ** 0.5 - 1)

    @pytest.mark.parametrize("amount, balance", [(100, 0), (0, 10000), (-5, 100)])
    def test_cannot_annualize(self, amount, balance):
        """Test that non-positive inputs give None, not 0."""
        assert annualize_interest(amount, balance, PaymentPeriod.MONTHLY) is None

    def test_expected_period_interest_inverts_annualization(self):
        """Test that the expected payment reproduces the APY."""
        apy = annualize_interest(100, 10000, PaymentPeriod.MONTHLY).apy
        assert expected_period_interest(apy, 10000, PaymentPeriod.MONTHLY) == pytest.approx(100)

    def test_expected_period_interest_without_rate(self):
        """Test that a missing APY gives no suggestion."""
        assert expected_period_interest(0, 10000, PaymentPeriod.MONTHLY) is None


class TestInvestments:
    """Tests for cost basis, P/L and dividends."""

    def test_average_cost_basis(self):
        """Test the average over several purchases."""
        flows = [_invest("a1", 1000, 10), _invest("a1", 1200, 10)]
        assert average_cost_basis(flows, "a1") == pytest.approx(110)

    def test_cost_basis_ignores_flows_without_shares(self):
        """Test that purchases with no share count don't contribute."""
        flows = [_invest("a1", 1000, 10), _invest("a1", 500, 0), _invest("a2", 300, 3)]
        assert average_cost_basis(flows, "a1") == pytest.approx(100)

    def test_unknown_cost_basis(self):
        """Test that no purchases means unknown, not zero."""
        assert average_cost_basis([], "a1") is None

    def test_realized_profit(self):
        """Test P/L after buying 10 for 1000 and selling 5 at 150."""
        avg = average_cost_basis([_invest("a1", 1000, 10)], "a1")
        assert realized_pnl(5 * 150, avg, 5) == pytest.approx(250)

    def test_realized_pnl_unknown_basis(self):
        """Test that an unknown basis gives unknown P/L."""
        assert realized_pnl(750, None, 5) is None

    def test_dividend_withholding(self):
        """Test the gross/tax/net split."""
        split = dividend_withholding(100, 0.30)
        assert split.gross == 100
        assert split.tax_withheld == pytest.approx(30)
        assert split.net == pytest.approx(70)


class TestDebt:
    """Tests for debt payments."""

    def test_payoff(self):
        """Test payoff detection."""
        assert is_payoff(500, 400) is True
        assert is_payoff(400, 400) is True
        assert is_payoff(100, 400) is False
        assert is_payoff(100, 0) is False

    def test_balance_clamps_at_zero(self):
        """Test that overpaying leaves exactly zero."""
        assert balance_after_payment(400, 500) == 0.0
        assert balance_after_payment(400, 100) == 300


class TestParseNumber:
    """Tests for lenient number parsing."""

    @pytest.mark.parametrize("text, expected", [
        ("12.5", 12.5),
        ("1,234.50", 1234.5),
        ("  7 ", 7.0),
        ("", 0.0),
        ("1.", 1.0),
        ("-", 0.0),
        ("abc", 0.0),
        ("nan", 0.0),
        ("inf", 0.0),
        (None, 0.0),
        (3, 3.0),
    ])
    def test_parse_number(self, text, expected):
        """Test that partial and invalid input never raises."""
        assert parse_number(text) == expected


class TestSchedule:
    """Tests for recurring schedule dates."""

    def test_monthly_clamps_to_month_end(self):
        """Test Jan 31 + 1 month in a leap year."""
        assert next_run_date(date(2024, 1, 31), RecurringFrequency.MONTHLY) == date(2024, 2, 29)

    def test_weekly_and_biweekly(self):
        """Test day-based frequencies."""
        start = date(2024, 3, 1)
        assert next_run_date(start, RecurringFrequency.WEEKLY) == date(2024, 3, 8)
        assert next_run_date(start, RecurringFrequency.BIWEEKLY) == date(2024, 3, 15)

    def test_quarterly_and_yearly(self):
        """Test month-based frequencies crossing a year."""
        assert next_run_date(date(2024, 11, 15), RecurringFrequency.QUARTERLY) == date(2025, 2, 15)
        assert next_run_date(date(2024, 2, 29), RecurringFrequency.YEARLY) == date(2025, 2, 28)

    def test_one_time_has_no_next_run(self):
        """Test that NONE is rejected."""
        with pytest.raises(ValueError):
            next_run_date(date(2024, 1, 1), RecurringFrequency.NONE)


class TestCurrencyConversion:
    """Tests for currency conversion."""

    RATES = {"USD": 1.0, "SGD": 1.35, "EUR": 0.9}

    def test_convert(self):
        """Test conversion through the reference unit."""
        assert convert(135, "SGD", "USD", self.RATES) == pytest.approx(100)
        assert convert(100, "usd", "eur", self.RATES) == pytest.approx(90)

    def test_round_trip(self):
        """Test that converting there and back returns the amount."""
        there = convert(250, "EUR", "SGD", self.RATES)
        assert convert(there, "SGD", "EUR", self.RATES) == pytest.approx(250)

    def test_same_currency_needs_no_rate(self):
        """Test that same-currency conversion skips the rate table."""
        assert convert(42, "JPY", "jpy", {}) == 42

    def test_missing_rate(self):
        """Test that a missing rate raises."""
        with pytest.raises(MissingRateError) as exc_info:
            convert(10, "USD", "JPY", self.RATES)
        assert exc_info.value.currency == "JPY"

    def test_unusable_rate(self):
        """Test that a zero rate counts as missing."""
        table = RateTable({"USD": 1.0, "XAU": 0.0})
        assert table.has_rate("USD")
        assert not table.has_rate("XAU")

    def test_display_degrades(self):
        """Test that display falls back to the source amount, flagged."""
        display = convert_for_display(10, "USD", "JPY", self.RATES)
        assert display.value == 10
        assert display.currency == "USD"
        assert display.degraded is True

    def test_display_converts(self):
        """Test that display conversion is not degraded when rates exist."""
        display = convert_for_display(135, "SGD", "USD", self.RATES)
        assert display.value == pytest.approx(100)
        assert display.degraded is False

    def test_normalize_currency(self):
        """Test code normalization."""
        assert normalize_currency(" sgd ") == "SGD"
        with pytest.raises(ValueError):
            normalize_currency("US")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
