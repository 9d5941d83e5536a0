"""Tests for two-stage form validation."""

import pytest

from networth.form import SelectCategory, UpdateField, reduce
from networth.form.reducer import initial_state
from networth.models.form import DataSnapshot, EndpointMode
from networth.models.portfolio import Asset, AssetType, Debt, DebtType
from networth.presets import CategoryId, InvestmentType
from networth.validation import FlowFormValidator


@pytest.fixture
def validator():
    return FlowFormValidator()


@pytest.fixture
def cash():
    return Asset(name="Checking", type=AssetType.CASH, balance=1000)


@pytest.fixture
def savings():
    return Asset(name="Savings", type=AssetType.CASH, balance=200)


@pytest.fixture
def stock():
    return Asset(name="Apple", type=AssetType.STOCK, balance=10, ticker="AAPL")


@pytest.fixture
def deposit():
    return Asset(
        name="Fixed Deposit",
        type=AssetType.DEPOSIT,
        balance=10000,
        metadata={"interest_rate": 0.04, "payment_period": "annual"},
    )


@pytest.fixture
def debt():
    return Debt(
        name="Credit Card",
        debt_type=DebtType.CREDIT_CARD,
        principal=1000,
        current_balance=400,
    )


def _form(snapshot: DataSnapshot, category: CategoryId, **fields):
    state, _ = reduce(initial_state(snapshot), SelectCategory(category=category), snapshot)
    for name, value in fields.items():
        state, _ = reduce(state, UpdateField(field=name, value=value), snapshot)
    return state


class TestFieldValidation:
    """Stage 1 tests."""

    @pytest.mark.parametrize("category", [
        CategoryId.SALARY, CategoryId.EXPENSE, CategoryId.TRANSFER,
    ])
    @pytest.mark.parametrize("amount", ["0", "-5", "", "abc"])
    def test_amount_must_be_positive(self, validator, cash, savings, category, amount):
        """Test that non-positive amounts are rejected everywhere."""
        snapshot = DataSnapshot(assets=[cash, savings])
        state = _form(snapshot, category, amount=amount)

        result = validator.validate(state, snapshot)

        assert result.is_valid is False
        assert result.fields_valid is False
        assert result.errors_by_field["amount"] == "Amount must be greater than 0"

    def test_valid_salary(self, validator, cash):
        """Test a complete salary form."""
        snapshot = DataSnapshot(assets=[cash])
        state = _form(snapshot, CategoryId.SALARY, amount="2500")

        result = validator.validate(state, snapshot)

        assert result.is_valid is True
        assert result.issues == []

    def test_ticker_invest_needs_ticker_and_shares(self, validator, cash):
        """Test the ticker-driven invest requirements."""
        snapshot = DataSnapshot(assets=[cash])
        state = _form(snapshot, CategoryId.INVEST, amount="1500")

        errors = validator.validate(state, snapshot).errors_by_field

        assert errors["ticker"] == "Please select a stock"
        assert errors["shares"] == "Shares required"
        assert "to_asset" not in errors

    def test_other_invest_needs_destination(self, validator, cash):
        """Test that non-ticker invests need an investment asset."""
        snapshot = DataSnapshot(assets=[cash, Asset(name="Gold", type=AssetType.OTHER)])
        state = _form(
            snapshot, CategoryId.INVEST,
            investment_type=InvestmentType.OTHER, amount="100",
        )
        state = state.model_copy(update={"to_draft": None})

        errors = validator.validate(state, snapshot).errors_by_field

        assert "ticker" not in errors
        assert errors["to_asset"] == "Please select buy"

    def test_principal_label_for_debts(self, validator):
        """Test that debt origination talks about principal."""
        snapshot = DataSnapshot()
        state = _form(snapshot, CategoryId.ADD_LOAN)

        errors = validator.validate(state, snapshot).errors_by_field

        assert errors["amount"] == "Principal must be greater than 0"
        assert errors["debt_name"] == "Debt name is required"

    def test_recurring_only_needs_frequency(self, validator, cash):
        """Test that a schedule-only form must repeat."""
        snapshot = DataSnapshot(assets=[cash])
        state = _form(snapshot, CategoryId.SALARY, amount="100", recurring_only=True)

        errors = validator.validate(state, snapshot).errors_by_field
        assert "recurring_frequency" in errors

    def test_recurring_only_not_for_multi_write_categories(self, validator, cash, stock):
        """Test that a sale cannot be scheduled without recording it."""
        snapshot = DataSnapshot(assets=[cash, stock])
        state = _form(
            snapshot, CategoryId.SELL,
            from_asset_id=stock.id, amount="100",
            recurring_only=True, recurring_frequency="monthly",
        )

        errors = validator.validate(state, snapshot).errors_by_field
        assert "recurring_only" in errors

    @pytest.mark.parametrize("category", list(CategoryId))
    def test_negative_shares_rejected(self, validator, cash, stock, deposit, debt, category):
        """Test that a negative share count is a field error everywhere."""
        snapshot = DataSnapshot(assets=[cash, stock, deposit], debts=[debt])
        state = _form(snapshot, category, amount="100", shares="-5")

        result = validator.validate(state, snapshot)

        assert result.fields_valid is False
        assert result.errors_by_field["shares"] == "Shares cannot be negative"

    @pytest.mark.parametrize("category", list(CategoryId))
    def test_negative_price_rejected(self, validator, cash, stock, deposit, debt, category):
        """Test that a negative price per share is a field error everywhere."""
        snapshot = DataSnapshot(assets=[cash, stock, deposit], debts=[debt])
        state = _form(snapshot, category, amount="100", price_per_share="-1")

        result = validator.validate(state, snapshot)

        assert result.fields_valid is False
        assert result.errors_by_field["price_per_share"] == "Price per share cannot be negative"

    def test_share_sale_needs_shares(self, validator, cash, stock):
        """Test that selling a share-based holding needs a share count."""
        snapshot = DataSnapshot(assets=[cash, stock])
        state = _form(snapshot, CategoryId.SELL, from_asset_id=stock.id, amount="500")

        errors = validator.validate(state, snapshot).errors_by_field
        assert errors["shares"] == "Shares required"

    def test_property_sale_needs_no_shares(self, validator, cash):
        """Test that selling real estate is by amount only."""
        house = Asset(name="House", type=AssetType.REAL_ESTATE, balance=300000)
        snapshot = DataSnapshot(assets=[cash, house])
        state = _form(snapshot, CategoryId.SELL, from_asset_id=house.id, amount="350000")

        assert validator.validate(state, snapshot).is_valid is True

    def test_unnamed_draft(self, validator):
        """Test that an inline asset needs a name."""
        snapshot = DataSnapshot()
        state = _form(snapshot, CategoryId.SALARY, amount="100")

        assert state.to_draft is not None
        errors = validator.validate(state, snapshot).errors_by_field
        assert errors["to_new_asset"] == "Asset name is required"
        assert "to_asset" not in errors


class TestEndpointValidation:
    """Stage 2 tests."""

    def test_missing_destination(self, validator, cash, savings):
        """Test that salary with two accounts and no choice is rejected."""
        snapshot = DataSnapshot(assets=[cash, savings])
        state = _form(snapshot, CategoryId.SALARY, amount="100")

        result = validator.validate(state, snapshot)

        assert result.fields_valid is True
        assert result.endpoints_valid is False
        assert result.errors_by_field["to_asset"] == "Please select deposit to"

    def test_both_stages_reported_together(self, validator, cash, savings):
        """Test that field and endpoint errors are reported at once."""
        snapshot = DataSnapshot(assets=[cash, savings])
        state = _form(snapshot, CategoryId.SALARY)

        errors = validator.validate(state, snapshot).errors_by_field
        assert set(errors) == {"amount", "to_asset"}

    def test_pay_debt_requires_debt_and_source(self, validator, cash):
        """Test pay-debt requirements."""
        snapshot = DataSnapshot(assets=[cash])
        state = _form(snapshot, CategoryId.PAY_DEBT, amount="50")

        errors = validator.validate(state, snapshot).errors_by_field
        assert "debt_id" in errors
        assert errors["from_asset"] == "Please select pay from"

    def test_pay_debt_from_external_source(self, validator, debt):
        """Test that paying from outside needs no cash account."""
        snapshot = DataSnapshot(debts=[debt])
        state = _form(
            snapshot, CategoryId.PAY_DEBT,
            amount="50", debt_id=debt.id, from_mode=EndpointMode.EXTERNAL,
        )

        assert validator.validate(state, snapshot).is_valid is True

    def test_transfer_to_same_account(self, validator, cash, savings):
        """Test that a transfer needs two different accounts."""
        snapshot = DataSnapshot(assets=[cash, savings])
        state = _form(
            snapshot, CategoryId.TRANSFER,
            amount="10", from_asset_id=cash.id, to_asset_id=cash.id,
        )

        errors = validator.validate(state, snapshot).errors_by_field
        assert errors["to_asset"] == "Source and destination must be different"

    def test_asset_outside_filter(self, validator, cash, stock):
        """Test that an explicit choice must still fit the endpoint."""
        snapshot = DataSnapshot(assets=[cash, stock])
        state = _form(snapshot, CategoryId.SALARY, amount="10", to_asset_id=stock.id)

        errors = validator.validate(state, snapshot).errors_by_field
        assert "to_asset" in errors

    def test_matured_deposit_needs_cash_target(self, validator, deposit, cash):
        """Test that a matured deposit must be withdrawn into cash."""
        snapshot = DataSnapshot(assets=[deposit, cash])
        state = _form(
            snapshot, CategoryId.INTEREST,
            from_asset_id=deposit.id, amount="400", deposit_matured=True,
        )

        errors = validator.validate(state, snapshot).errors_by_field
        assert errors["to_asset"] == "Select cash account"

        state, _ = reduce(
            state, UpdateField(field="withdraw_to_asset_id", value=cash.id), snapshot,
        )
        assert validator.validate(state, snapshot).is_valid is True

    def test_deposit_interest_needs_maturity_choice(self, validator, deposit):
        """Test that deposit interest asks whether the deposit matured."""
        snapshot = DataSnapshot(assets=[deposit])
        state = _form(snapshot, CategoryId.INTEREST, amount="400")

        errors = validator.validate(state, snapshot).errors_by_field
        assert "deposit_matured" in errors

    def test_cash_interest_skips_maturity(self, validator, cash):
        """Test that savings interest never asks about maturity."""
        snapshot = DataSnapshot(assets=[cash])
        state = _form(snapshot, CategoryId.INTEREST, amount="4")

        assert validator.validate(state, snapshot).is_valid is True

    def test_no_category(self, validator):
        """Test that validating a blank form is a programming error."""
        with pytest.raises(ValueError):
            validator.validate(initial_state(DataSnapshot()), DataSnapshot())


class TestWarnings:
    """Tests for non-blocking warnings."""

    def test_payoff_warning(self, validator, cash, debt):
        """Test that covering the balance warns but still validates."""
        snapshot = DataSnapshot(assets=[cash], debts=[debt])
        state = _form(
            snapshot, CategoryId.PAY_DEBT,
            amount="500", debt_id=debt.id, from_asset_id=cash.id,
        )

        result = validator.validate(state, snapshot)

        assert result.is_valid is True
        assert result.is_payoff is True
        assert result.warnings == ["This payment pays off Credit Card"]

    def test_oversell_warning(self, validator, cash, stock):
        """Test that selling more than held warns."""
        snapshot = DataSnapshot(assets=[cash, stock])
        state = _form(
            snapshot, CategoryId.SELL,
            from_asset_id=stock.id, shares="15", price_per_share="100",
        )

        result = validator.validate(state, snapshot)
        assert result.is_valid is True
        assert any("only 10 are held" in w for w in result.warnings)

    def test_summary(self, validator, cash, savings):
        """Test the user-facing summary."""
        snapshot = DataSnapshot(assets=[cash, savings])
        state = _form(snapshot, CategoryId.SALARY)

        summary = validator.get_user_friendly_summary(validator.validate(state, snapshot))

        assert "❌" in summary
        assert "Amount must be greater than 0" in summary
        assert "Please fix the issues above" in summary

    def test_summary_ready(self, validator, cash):
        """Test the summary for a clean form."""
        snapshot = DataSnapshot(assets=[cash])
        state = _form(snapshot, CategoryId.SALARY, amount="1")
        assert validator.get_user_friendly_summary(validator.validate(state, snapshot)) == "✅ Ready to record."


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
