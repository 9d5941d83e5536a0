"""
Portfolio Models for Net Worth

These are the entities the flow engine reads and writes through the
repository: assets, debts, flows and recurring schedules.

DESIGN DECISION: Every flow moves value between at most two endpoints.
An endpoint is either one of the user's assets (an id) or external (None).
Balances are never written directly by the engine - the repository
applies them when a flow is created and reverses them when it is deleted.
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


def _new_id() -> str:
    return str(uuid4())


def _normalize_currency_code(v: str) -> str:
    normalized = v.strip().upper()
    if len(normalized) != 3 or not normalized.isalpha():
        raise ValueError(f"Invalid currency code: {v!r}")
    return normalized


# =============================================================================
# ENUMS
# =============================================================================

class AssetType(str, Enum):
    """Kinds of holdings a user can track."""
    CASH = "cash"
    DEPOSIT = "deposit"
    STOCK = "stock"
    ETF = "etf"
    BOND = "bond"
    REAL_ESTATE = "real_estate"
    CRYPTO = "crypto"
    OTHER = "other"

    @property
    def is_share_based(self) -> bool:
        """Share-based assets store a share count as their balance."""
        return self in SHARE_BASED_TYPES


SHARE_BASED_TYPES = frozenset({
    AssetType.STOCK,
    AssetType.ETF,
    AssetType.CRYPTO,
    AssetType.BOND,
})


class DebtType(str, Enum):
    """Kinds of liabilities."""
    MORTGAGE = "mortgage"
    PERSONAL_LOAN = "personal_loan"
    CREDIT_CARD = "credit_card"
    STUDENT_LOAN = "student_loan"
    AUTO_LOAN = "auto_loan"
    OTHER = "other"


class FlowType(str, Enum):
    """
    Direction of a flow.

    Income:   [External] -> [Your Asset]
    Expense:  [Your Asset] -> [External]
    Transfer: [Your Asset] -> [Your Asset]
    """
    INCOME = "income"
    EXPENSE = "expense"
    TRANSFER = "transfer"


class RecurringFrequency(str, Enum):
    """How often a recurring flow repeats. NONE means one-time."""
    NONE = "none"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class PaymentPeriod(str, Enum):
    """How often an interest-bearing account pays interest."""
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    SEMI_ANNUAL = "semi_annual"
    ANNUAL = "annual"
    BIENNIAL = "biennial"
    TRIENNIAL = "triennial"
    QUINQUENNIAL = "quinquennial"


# =============================================================================
# ENTITIES
# =============================================================================

class Asset(BaseModel):
    """
    A tracked holding.

    For share-based types (stock, etf, crypto, bond) `balance` is a share
    count, never a currency amount.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=_new_id)
    name: str = Field(..., min_length=1, max_length=200)
    type: AssetType
    currency: str = Field(default="USD")
    balance: float = Field(default=0.0)
    ticker: Optional[str] = None
    market: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("currency")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return _normalize_currency_code(v)

    @property
    def is_share_based(self) -> bool:
        return self.type.is_share_based


class Debt(BaseModel):
    """
    A tracked liability.

    `interest_rate` is a decimal (0.065 for 6.5%).
    `current_balance` only goes down through pay_debt flows or direct edits.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=_new_id)
    name: str = Field(..., min_length=1, max_length=200)
    debt_type: DebtType
    currency: str = Field(default="USD")
    principal: float = Field(..., ge=0)
    current_balance: float = Field(..., ge=0)
    interest_rate: Optional[float] = Field(default=None, ge=0)
    term_months: Optional[int] = Field(default=None, ge=0)
    start_date: Optional[date] = None
    monthly_payment: Optional[float] = Field(default=None, ge=0)
    property_asset_id: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("currency")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return _normalize_currency_code(v)


class Flow(BaseModel):
    """A single recorded movement between two endpoints."""

    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=_new_id)
    type: FlowType
    category: Optional[str] = None
    amount: float = Field(..., ge=0)
    currency: str = Field(default="USD")
    from_asset_id: Optional[str] = None
    to_asset_id: Optional[str] = None
    debt_id: Optional[str] = None
    date: date
    description: Optional[str] = None
    recurring_frequency: Optional[RecurringFrequency] = None
    expense_category_id: Optional[str] = None
    schedule_id: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("currency")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return _normalize_currency_code(v)

    @property
    def is_self_flow(self) -> bool:
        """Reinvest and in-place interest flows start and end on one asset."""
        return (
            self.from_asset_id is not None
            and self.from_asset_id == self.to_asset_id
        )


class RecurringSchedule(BaseModel):
    """A flow template that repeats on a fixed frequency."""

    id: str = Field(default_factory=_new_id)
    frequency: RecurringFrequency
    next_run_date: date
    flow_template: "CreateFlowData"
    is_active: bool = True

    @field_validator("frequency")
    @classmethod
    def must_repeat(cls, v: RecurringFrequency) -> RecurringFrequency:
        if v == RecurringFrequency.NONE:
            raise ValueError("A recurring schedule needs a repeating frequency")
        return v


class Currency(BaseModel):
    """A currency and its rate relative to the reference unit."""

    code: str
    rate: float = Field(..., gt=0)

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        return _normalize_currency_code(v)


class TaxSettings(BaseModel):
    """Per-user tax preferences."""

    dividend_withholding_rate: float = Field(default=0.30, ge=0, le=1)


# =============================================================================
# CREATE / UPDATE PAYLOADS
# =============================================================================

class CreateAssetData(BaseModel):
    """Payload for creating an asset."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=200)
    type: AssetType
    currency: str = Field(default="USD")
    ticker: Optional[str] = None
    market: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("currency")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return _normalize_currency_code(v)


class UpdateAssetData(BaseModel):
    """Partial update for an asset. Unset fields are left alone."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = None
    ticker: Optional[str] = None
    market: Optional[str] = None
    currency: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None


class CreateDebtData(BaseModel):
    """
    Payload for creating a debt.

    When `disburse_to_asset_id` is set the repository also records the
    loan proceeds as an income flow into that asset, atomically with the debt.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=200)
    debt_type: DebtType
    currency: str = Field(default="USD")
    principal: float = Field(..., gt=0)
    interest_rate: Optional[float] = Field(default=None, ge=0)
    term_months: Optional[int] = Field(default=None, ge=0)
    start_date: Optional[date] = None
    monthly_payment: Optional[float] = Field(default=None, ge=0)
    property_asset_id: Optional[str] = None
    disburse_to_asset_id: Optional[str] = None
    disbursement_description: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("currency")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return _normalize_currency_code(v)


class UpdateDebtData(BaseModel):
    """Partial update for a debt."""

    name: Optional[str] = None
    current_balance: Optional[float] = Field(default=None, ge=0)
    interest_rate: Optional[float] = Field(default=None, ge=0)
    monthly_payment: Optional[float] = Field(default=None, ge=0)
    metadata: Optional[dict[str, Any]] = None


class CreateFlowData(BaseModel):
    """Payload for creating a flow."""

    model_config = ConfigDict(str_strip_whitespace=True)

    type: FlowType
    category: Optional[str] = None
    amount: float = Field(..., ge=0)
    currency: str = Field(default="USD")
    from_asset_id: Optional[str] = None
    to_asset_id: Optional[str] = None
    debt_id: Optional[str] = None
    date: date
    description: Optional[str] = None
    recurring_frequency: Optional[RecurringFrequency] = None
    expense_category_id: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("currency")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return _normalize_currency_code(v)

    @model_validator(mode="after")
    def validate_metadata_numbers(self) -> "CreateFlowData":
        """Shares and prices are never negative."""
        for key in ("shares", "price_per_share"):
            value = self.metadata.get(key)
            if isinstance(value, (int, float)) and value < 0:
                raise ValueError(f"{key} cannot be negative")
        return self


class CreateRecurringScheduleData(BaseModel):
    """Payload for creating a recurring schedule."""

    frequency: RecurringFrequency
    next_run_date: date
    flow_template: CreateFlowData


class DebtFilter(BaseModel):
    """Filter for listing debts."""

    debt_type: Optional[DebtType] = None
    include_paid_off: bool = True


RecurringSchedule.model_rebuild()
