"""
Flow Form Models

The complete state of one "record a transaction" form lives in a single
FormState record. Nothing about the form is kept anywhere else; the
reducer takes a FormState and returns a new one.

Numeric inputs are kept as the text the user typed. They are parsed
with parse_number() at the point of use so a half-typed value never
raises.
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from networth.models.market import StockQuote, TickerSymbol
from networth.models.portfolio import (
    Asset,
    AssetType,
    Currency,
    Debt,
    DebtType,
    PaymentPeriod,
    RecurringFrequency,
    TaxSettings,
)
from networth.presets.registry import CategoryId, InvestmentType


class FormPhase(str, Enum):
    """Where the form is in its lifecycle."""
    CATEGORY_SELECT = "category_select"
    FIELD_ENTRY = "field_entry"
    SUBMITTING = "submitting"
    SUCCESS = "success"
    VALIDATION_ERROR = "validation_error"
    SUBMISSION_ERROR = "submission_error"


class EndpointMode(str, Enum):
    """Whether an endpoint currently points at an asset or an outside party."""
    EXTERNAL = "external"
    ASSET = "asset"


class Side(str, Enum):
    FROM = "from"
    TO = "to"


class LookupField(str, Enum):
    """Fields whose values come from asynchronous lookups."""
    TICKER_SEARCH = "ticker_search"
    STOCK_PRICE = "stock_price"
    COST_BASIS = "cost_basis"
    TAX_SETTINGS = "tax_settings"


class LinkedLedger(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    ledger_id: str
    ledger_name: str = ""


class NewAssetDraft(BaseModel):
    """An asset the user is creating inline for one endpoint."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = ""
    type: AssetType = AssetType.CASH
    ticker: str = ""


class DataSnapshot(BaseModel):
    """
    The repository data a form works against.

    The controller refreshes it after every successful submission and
    whenever the caller reports that assets or debts changed.
    """

    assets: list[Asset] = Field(default_factory=list)
    debts: list[Debt] = Field(default_factory=list)
    currencies: list[Currency] = Field(default_factory=list)
    tax_settings: Optional[TaxSettings] = None
    default_currency: str = "USD"
    default_payment_period: PaymentPeriod = PaymentPeriod.MONTHLY

    def asset(self, asset_id: Optional[str]) -> Optional[Asset]:
        return next((a for a in self.assets if a.id == asset_id), None)

    def debt(self, debt_id: Optional[str]) -> Optional[Debt]:
        return next((d for d in self.debts if d.id == debt_id), None)


class FormState(BaseModel):
    """Everything one flow form knows."""

    model_config = ConfigDict(str_strip_whitespace=True, validate_assignment=True)

    phase: FormPhase = FormPhase.CATEGORY_SELECT
    category: Optional[CategoryId] = None

    # Core fields
    amount: str = ""
    currency: str = "USD"
    flow_date: date = Field(default_factory=date.today)
    description: str = ""

    # Endpoints
    from_mode: EndpointMode = EndpointMode.EXTERNAL
    from_external_name: str = ""
    from_asset_id: Optional[str] = None
    from_explicit: bool = False
    to_mode: EndpointMode = EndpointMode.ASSET
    to_external_name: str = ""
    to_asset_id: Optional[str] = None
    to_explicit: bool = False
    show_from: bool = True
    show_to: bool = True

    # Inline asset creation, independent per side
    from_draft: Optional[NewAssetDraft] = None
    to_draft: Optional[NewAssetDraft] = None

    # Shares and prices
    shares: str = ""
    price_per_share: str = ""

    # Recurrence
    recurring_frequency: RecurringFrequency = RecurringFrequency.NONE
    recurring_only: bool = False
    start_next_occurrence: bool = False

    # Expense
    expense_category_id: Optional[str] = None
    linked_ledgers: list[LinkedLedger] = Field(default_factory=list)

    # Investment
    investment_type: InvestmentType = InvestmentType.US_STOCK
    ticker_query: str = ""
    selected_ticker: str = ""
    selected_ticker_name: str = ""
    selected_ticker_type: Optional[str] = None
    ticker_results: list[TickerSymbol] = Field(default_factory=list)
    quote: Optional[StockQuote] = None

    # Dividend
    tax_rate: Optional[float] = None

    # Interest
    interest_payment_period: PaymentPeriod = PaymentPeriod.MONTHLY
    deposit_balance: str = ""
    interest_rate: str = ""
    deposit_matured: Optional[bool] = None
    withdraw_to_asset_id: Optional[str] = None
    interest_principal: str = ""
    no_linked_account: bool = False

    # Debt origination
    debt_name: str = ""
    debt_type: DebtType = DebtType.MORTGAGE
    debt_interest_rate: str = ""
    debt_term_months: str = ""
    debt_start_date: Optional[date] = None

    # Debt payment
    debt_id: Optional[str] = None

    # Sell
    sell_cost_basis: str = ""
    sell_fees: str = ""
    sell_mark_as_sold: bool = False
    average_cost: Optional[float] = None

    # Other
    is_passive_income: bool = False

    # Feedback
    errors: dict[str, str] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)
    submit_error: Optional[str] = None
    last_submitted_at: Optional[datetime] = None

    # Last dispatched generation per lookup field
    lookup_generations: dict[LookupField, int] = Field(default_factory=dict)

    def draft_for(self, side: Side) -> Optional[NewAssetDraft]:
        return self.from_draft if side == Side.FROM else self.to_draft

    def asset_id_for(self, side: Side) -> Optional[str]:
        return self.from_asset_id if side == Side.FROM else self.to_asset_id

    def generation(self, field: LookupField) -> int:
        return self.lookup_generations.get(field, 0)


# Fields a user may set through update_field
EDITABLE_FIELDS = frozenset({
    "amount", "currency", "flow_date", "description",
    "from_mode", "from_external_name", "from_asset_id",
    "to_mode", "to_external_name", "to_asset_id",
    "shares", "price_per_share",
    "recurring_frequency", "recurring_only", "start_next_occurrence",
    "expense_category_id", "linked_ledgers",
    "investment_type", "ticker_query", "selected_ticker", "selected_ticker_name",
    "selected_ticker_type",
    "interest_payment_period", "deposit_balance", "interest_rate",
    "deposit_matured", "withdraw_to_asset_id", "interest_principal",
    "no_linked_account",
    "debt_name", "debt_type", "debt_interest_rate", "debt_term_months",
    "debt_start_date", "debt_id",
    "sell_cost_basis", "sell_fees", "sell_mark_as_sold",
    "is_passive_income",
})


# Field errors cleared once the field gets a value
ERROR_KEYS_BY_FIELD: dict[str, str] = {
    "amount": "amount",
    "shares": "shares",
    "price_per_share": "price_per_share",
    "selected_ticker": "ticker",
    "from_asset_id": "from_asset",
    "to_asset_id": "to_asset",
    "withdraw_to_asset_id": "to_asset",
    "deposit_matured": "deposit_matured",
    "deposit_balance": "deposit_balance",
    "debt_name": "debt_name",
    "debt_id": "debt_id",
    "recurring_frequency": "recurring_frequency",
    "from_external_name": "from_external_name",
}


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Form field or error key with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'payoff')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """
    Result of the two-stage form validation.

    Stage 1: Field validation (amounts, required inputs)
    Stage 2: Endpoint validation (the assets and debts the flow touches)
    """

    category: CategoryId
    validated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    fields_valid: bool = Field(..., description="Did field validation pass?")
    endpoints_valid: bool = Field(..., description="Did endpoint validation pass?")
    is_valid: bool = Field(..., description="Overall validation result")

    issues: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[str] = Field(
        default_factory=list,
        description="Non-blocking warnings"
    )

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def errors_by_field(self) -> dict[str, str]:
        """First error message per field, for inline display."""
        errors: dict[str, str] = {}
        for issue in self.issues:
            if issue.severity == "error" and issue.field not in errors:
                errors[issue.field] = issue.message
        return errors

    @property
    def is_payoff(self) -> bool:
        return any(issue.issue_type == "payoff" for issue in self.issues)
