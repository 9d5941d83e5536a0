"""
Tests for Net Worth

Test strategy:
1. Unit tests for individual components (models, calculators, validators)
2. Integration tests for forms (against the in-memory repository)
3. No real market data calls in tests (static tables only)
"""

import pytest
from datetime import date
from uuid import uuid4

from pydantic import ValidationError

from networth.config import (
    EngineSettings,
    LoggingSettings,
    get_settings,
    validate_all_settings,
)
from networth.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from networth.models.form import (
    DataSnapshot,
    FormState,
    LookupField,
    NewAssetDraft,
    Side,
    ValidationIssue,
    ValidationResult,
)
from networth.models.portfolio import (
    Asset,
    AssetType,
    CreateFlowData,
    Currency,
    Debt,
    DebtType,
    Flow,
    FlowType,
    PaymentPeriod,
    RecurringFrequency,
    RecurringSchedule,
    TaxSettings,
)
from networth.presets import CategoryId


class TestPortfolioModels:
    """Tests for asset, debt and flow models."""

    def test_asset_creation(self):
        """Test Asset model creation."""
        asset = Asset(name="Checking", type=AssetType.CASH, balance=1000)
        assert asset.name == "Checking"
        assert asset.currency == "USD"
        assert asset.balance == 1000
        assert asset.id
        assert asset.created_at.tzinfo is not None

    def test_asset_strips_whitespace_and_normalizes_currency(self):
        """Test that names are stripped and currency codes upper-cased."""
        asset = Asset(name="  Savings  ", type=AssetType.CASH, currency=" sgd ")
        assert asset.name == "Savings"
        assert asset.currency == "SGD"

    def test_asset_rejects_bad_currency(self):
        """Test that malformed currency codes are rejected."""
        with pytest.raises(ValueError):
            Asset(name="Wallet", type=AssetType.CASH, currency="dollars")

    def test_share_based_types(self):
        """Test which asset types hold shares."""
        assert AssetType.STOCK.is_share_based
        assert AssetType.ETF.is_share_based
        assert AssetType.CRYPTO.is_share_based
        assert AssetType.BOND.is_share_based
        assert not AssetType.CASH.is_share_based
        assert not AssetType.REAL_ESTATE.is_share_based

    def test_debt_rejects_negative_balance(self):
        """Test that debts never go below zero."""
        with pytest.raises(ValueError):
            Debt(
                name="Card",
                debt_type=DebtType.CREDIT_CARD,
                principal=1000,
                current_balance=-1,
            )

    def test_flow_self_flow(self):
        """Test self-flow detection."""
        flow = Flow(
            type=FlowType.INCOME,
            amount=10,
            from_asset_id="a1",
            to_asset_id="a1",
            date=date(2024, 1, 1),
        )
        assert flow.is_self_flow is True

        other = flow.model_copy(update={"to_asset_id": "a2"})
        assert other.is_self_flow is False

    def test_create_flow_rejects_negative_shares(self):
        """Test that share counts in metadata are never negative."""
        with pytest.raises(ValueError):
            CreateFlowData(
                type=FlowType.TRANSFER,
                amount=100,
                date=date(2024, 1, 1),
                metadata={"shares": -5},
            )

    def test_recurring_schedule_requires_frequency(self):
        """Test that a schedule cannot be one-time."""
        template = CreateFlowData(type=FlowType.INCOME, amount=10, date=date(2024, 1, 1))
        with pytest.raises(ValueError):
            RecurringSchedule(
                frequency=RecurringFrequency.NONE,
                next_run_date=date(2024, 2, 1),
                flow_template=template,
            )

    def test_currency_rate_must_be_positive(self):
        """Test that a currency rate of zero is rejected."""
        with pytest.raises(ValueError):
            Currency(code="EUR", rate=0)

    def test_tax_settings_default(self):
        """Test the default dividend withholding rate."""
        assert TaxSettings().dividend_withholding_rate == 0.30


class TestFormModels:
    """Tests for the form state records."""

    def test_form_state_defaults(self):
        """Test that a new form waits for a category."""
        state = FormState()
        assert state.category is None
        assert state.amount == ""
        assert state.errors == {}
        assert state.generation(LookupField.STOCK_PRICE) == 0

    def test_form_state_validates_assignment(self):
        """Test that assignments are coerced like constructor input."""
        state = FormState()
        state.recurring_frequency = "monthly"
        assert state.recurring_frequency == RecurringFrequency.MONTHLY

        with pytest.raises(ValueError):
            state.recurring_frequency = "hourly"

    def test_draft_for_side(self):
        """Test per-side draft access."""
        draft = NewAssetDraft(name="Brokerage", type=AssetType.STOCK)
        state = FormState(to_draft=draft)
        assert state.draft_for(Side.TO) == draft
        assert state.draft_for(Side.FROM) is None

    def test_snapshot_lookup(self):
        """Test finding assets and debts in a snapshot."""
        asset = Asset(name="Checking", type=AssetType.CASH)
        snapshot = DataSnapshot(assets=[asset])
        assert snapshot.asset(asset.id) == asset
        assert snapshot.asset("missing") is None
        assert snapshot.asset(None) is None
        assert snapshot.debt("missing") is None


class TestAuditModels:
    """Tests for audit event models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.FLOW_CREATED,
            description="Test event",
        )
        assert event.event_type == AuditEventType.FLOW_CREATED
        assert event.severity == AuditSeverity.INFO
        assert event.event_id is not None

    def test_audit_event_log_dict(self):
        """Test flattening for structured logging."""
        event = AuditEvent(
            event_type=AuditEventType.ASSET_CREATED,
            description="Asset created",
            entity_type="asset",
            entity_id="a1",
            details={"name": "Checking"},
        )
        data = event.to_log_dict()
        assert data["event_type"] == "asset_created"
        assert data["severity"] == "info"
        assert data["entity_id"] == "a1"
        assert data["details"] == {"name": "Checking"}
        assert data["correlation_id"] is None
        assert "error_message" not in data

    def test_audit_event_builder_flow_created(self):
        """Test AuditEventBuilder.flow_created."""
        correlation_id = uuid4()
        event = AuditEventBuilder.flow_created(
            flow_id="f1",
            category="salary",
            amount=5000.0,
            currency="USD",
            correlation_id=correlation_id,
        )
        assert event.event_type == AuditEventType.FLOW_CREATED
        assert event.entity_id == "f1"
        assert event.correlation_id == correlation_id

    def test_audit_event_builder_rollback(self):
        """Test AuditEventBuilder.rollback_performed."""
        correlation_id = uuid4()
        event = AuditEventBuilder.rollback_performed(
            asset_ids=["a1"],
            flow_ids=["f1", "f2"],
            correlation_id=correlation_id,
        )
        assert event.event_type == AuditEventType.ROLLBACK_PERFORMED
        assert event.correlation_id == correlation_id
        assert event.details["flow_ids"] == ["f1", "f2"]

    def test_audit_event_builder_category_selected(self):
        """Test that category selection is a user action."""
        event = AuditEventBuilder.category_selected("salary")
        assert event.event_type == AuditEventType.CATEGORY_SELECTED
        assert event.is_user_action is True


class TestValidationResult:
    """Tests for ValidationResult model."""

    def test_validation_result_has_errors(self):
        """Test has_errors property."""
        result = ValidationResult(
            category=CategoryId.SALARY,
            fields_valid=False,
            endpoints_valid=True,
            is_valid=False,
            issues=[
                ValidationIssue(
                    field="amount",
                    issue_type="invalid_value",
                    message="Amount must be greater than 0",
                    severity="error",
                ),
            ],
        )
        assert result.has_errors is True
        assert result.error_count == 1
        assert result.validated_at.tzinfo is not None
        assert result.errors_by_field == {"amount": "Amount must be greater than 0"}

    def test_validation_result_warnings_only(self):
        """Test that warnings don't count as errors."""
        result = ValidationResult(
            category=CategoryId.PAY_DEBT,
            fields_valid=True,
            endpoints_valid=True,
            is_valid=True,
            issues=[
                ValidationIssue(
                    field="amount",
                    issue_type="payoff",
                    message="This payment pays off Card",
                    severity="warning",
                ),
            ],
        )
        assert result.has_errors is False
        assert result.error_count == 0
        assert result.is_payoff is True


class TestSettings:
    """Tests for environment-driven configuration."""

    def test_defaults(self, monkeypatch):
        """Test the out-of-the-box engine settings."""
        monkeypatch.delenv("NETWORTH_DEFAULT_CURRENCY", raising=False)
        settings = EngineSettings()
        assert settings.default_currency == "USD"
        assert settings.dividend_withholding_rate == 0.30
        assert settings.ticker_search_debounce_seconds == 0.3

    def test_env_override(self, monkeypatch):
        """Test NETWORTH_ variables and currency normalization."""
        monkeypatch.setenv("NETWORTH_DEFAULT_CURRENCY", " sgd ")
        monkeypatch.setenv("NETWORTH_TICKER_SEARCH_LIMIT", "5")
        settings = EngineSettings()
        assert settings.default_currency == "SGD"
        assert settings.ticker_search_limit == 5

    def test_invalid_values(self):
        """Test that out-of-range settings are rejected."""
        with pytest.raises(ValidationError):
            EngineSettings(default_currency="DOLLARS")
        with pytest.raises(ValidationError):
            EngineSettings(dividend_withholding_rate=1.5)
        with pytest.raises(ValidationError):
            LoggingSettings(level="chatty")

    def test_default_payment_period(self, monkeypatch):
        """Test the configurable interest payment period."""
        monkeypatch.setenv("NETWORTH_DEFAULT_PAYMENT_PERIOD", "quarterly")
        assert EngineSettings().default_payment_period == PaymentPeriod.QUARTERLY
        with pytest.raises(ValidationError):
            EngineSettings(default_payment_period="fortnightly")

    def test_validate_all_settings(self):
        """Test the startup report."""
        get_settings.cache_clear()
        results = validate_all_settings()
        assert results["engine"] is True
        assert results["logging"] is True


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
