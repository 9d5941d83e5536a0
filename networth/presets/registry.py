"""
Category Preset Registry

Every transaction category is described by exactly one static Preset.
The form engine never branches on category names to decide which
endpoints exist or which assets qualify - it reads the preset.

DESIGN DECISION: CategoryId is a closed enum. String ids coming from
a UI or an API are parsed once at the boundary with parse_category();
inside the engine an unknown id is a programming error.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from networth.models.portfolio import Asset, AssetType, DebtType, FlowType


class UnknownCategoryError(LookupError):
    """Raised when a category id has no preset."""

    def __init__(self, category_id: object):
        self.category_id = category_id
        super().__init__(f"Unknown flow category: {category_id!r}")


class CategoryId(str, Enum):
    """All transaction categories the engine understands."""
    SALARY = "salary"
    BONUS = "bonus"
    FREELANCE = "freelance"
    RENTAL = "rental"
    GIFT = "gift"
    DIVIDEND = "dividend"
    INTEREST = "interest"
    INVEST = "invest"
    SELL = "sell"
    REINVEST = "reinvest"
    DEPOSIT = "deposit"
    TRANSFER = "transfer"
    PAY_DEBT = "pay_debt"
    ADD_MORTGAGE = "add_mortgage"
    ADD_LOAN = "add_loan"
    EXPENSE = "expense"
    OTHER = "other"


class EndpointKind(str, Enum):
    """How one side of a flow is chosen."""
    EXTERNAL = "external"
    ASSET = "asset"
    SAME_AS_FROM = "same_as_from"
    USER_SELECT = "user_select"


class ExtraField(str, Enum):
    """Category-specific inputs beyond amount/currency/date."""
    SHARES = "shares"
    PRICE_PER_SHARE = "price_per_share"
    TAX_WITHHELD = "tax_withheld"
    COST_BASIS = "cost_basis"
    LINKED_LEDGER = "linked_ledger"
    DEBT_ID = "debt_id"
    PROPERTY_ASSET_ID = "property_asset_id"
    DISBURSEMENT = "disbursement"


class InvestmentType(str, Enum):
    """Sub-types of the invest category."""
    US_STOCK = "us_stock"
    SGX_STOCK = "sgx_stock"
    OTHER = "other"


class InvestmentTypeInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    currency: Optional[str] = None
    market: Optional[str] = None
    ticker_driven: bool = False


INVESTMENT_TYPES: dict[InvestmentType, InvestmentTypeInfo] = {
    InvestmentType.US_STOCK: InvestmentTypeInfo(
        label="US Stock", currency="USD", market="US", ticker_driven=True,
    ),
    InvestmentType.SGX_STOCK: InvestmentTypeInfo(
        label="SGX Stock", currency="SGD", market="SG", ticker_driven=True,
    ),
    InvestmentType.OTHER: InvestmentTypeInfo(label="Other"),
}


class Endpoint(BaseModel):
    """Descriptor for one side (from or to) of a category."""

    model_config = ConfigDict(frozen=True)

    kind: EndpointKind
    default_name: str = ""
    editable: bool = False
    asset_filter: Optional[frozenset[AssetType]] = None
    # Asset endpoints may create a missing asset inline unless told otherwise
    allow_create: bool = True
    required: bool = True
    always_visible: bool = False
    # Type given to an asset created inline for this endpoint
    create_type: Optional[AssetType] = None
    # Open the inline creation form even when candidates exist
    prefer_create: bool = False

    @property
    def is_asset_typed(self) -> bool:
        return self.kind in (EndpointKind.ASSET, EndpointKind.USER_SELECT)

    def accepts(self, asset: Asset) -> bool:
        """Does this endpoint's filter admit the asset? No filter admits all."""
        if not self.is_asset_typed:
            return False
        return self.asset_filter is None or asset.type in self.asset_filter

    @property
    def can_create(self) -> bool:
        return self.is_asset_typed and self.allow_create

    @property
    def default_create_type(self) -> AssetType:
        """Type of an asset created inline when the user does not pick one."""
        if self.create_type is not None:
            return self.create_type
        if self.asset_filter is None or AssetType.CASH in self.asset_filter:
            return AssetType.CASH
        return min(self.asset_filter, key=lambda t: t.value)


class FieldLabels(BaseModel):
    model_config = ConfigDict(frozen=True)

    from_label: str = "From"
    to_label: str = "To"
    from_placeholder: str = "Source"
    to_placeholder: str = "Destination"
    button: str = "Record"


class Preset(BaseModel):
    """Static description of one transaction category."""

    model_config = ConfigDict(frozen=True)

    id: CategoryId
    label: str
    flow_type: FlowType
    from_endpoint: Endpoint
    to_endpoint: Endpoint
    extra_fields: tuple[ExtraField, ...] = ()
    labels: FieldLabels = Field(default_factory=FieldLabels)
    requires_debt: bool = False
    debt_type: Optional[DebtType] = None

    @property
    def is_debt_origination(self) -> bool:
        return self.debt_type is not None

    def has_extra(self, field: ExtraField) -> bool:
        return field in self.extra_fields


def _external(name: str = "", editable: bool = True) -> Endpoint:
    return Endpoint(kind=EndpointKind.EXTERNAL, default_name=name, editable=editable)


def _asset(*types: AssetType, **kwargs) -> Endpoint:
    return Endpoint(
        kind=EndpointKind.ASSET,
        asset_filter=frozenset(types) if types else None,
        **kwargs,
    )


_CASH = AssetType.CASH
_INVESTMENTS = (AssetType.STOCK, AssetType.ETF, AssetType.CRYPTO, AssetType.BOND)

_DEPOSIT_TO_LABELS = dict(to_label="Deposit To", to_placeholder="Select account")


PRESETS: dict[CategoryId, Preset] = {p.id: p for p in (
    # Income (External -> Asset)
    Preset(
        id=CategoryId.SALARY,
        label="Salary",
        flow_type=FlowType.INCOME,
        from_endpoint=_external("Work"),
        to_endpoint=_asset(_CASH),
        labels=FieldLabels(
            from_label="Source", from_placeholder="Employer name",
            button="Record Income", **_DEPOSIT_TO_LABELS,
        ),
    ),
    Preset(
        id=CategoryId.BONUS,
        label="Bonus",
        flow_type=FlowType.INCOME,
        from_endpoint=_external("Work"),
        to_endpoint=_asset(_CASH),
        labels=FieldLabels(
            from_label="Source", from_placeholder="Employer name",
            button="Record Bonus", **_DEPOSIT_TO_LABELS,
        ),
    ),
    Preset(
        id=CategoryId.FREELANCE,
        label="Freelance",
        flow_type=FlowType.INCOME,
        from_endpoint=_external("Client"),
        to_endpoint=_asset(_CASH),
        labels=FieldLabels(
            from_label="Client", from_placeholder="Client name",
            button="Record Income", **_DEPOSIT_TO_LABELS,
        ),
    ),
    Preset(
        id=CategoryId.RENTAL,
        label="Rental",
        flow_type=FlowType.INCOME,
        from_endpoint=_asset(AssetType.REAL_ESTATE, always_visible=True),
        to_endpoint=_asset(_CASH),
        labels=FieldLabels(
            from_label="Property", from_placeholder="Select property",
            button="Record Rental", **_DEPOSIT_TO_LABELS,
        ),
    ),
    Preset(
        id=CategoryId.GIFT,
        label="Gift",
        flow_type=FlowType.INCOME,
        from_endpoint=_external("Family"),
        to_endpoint=_asset(_CASH),
        labels=FieldLabels(
            from_label="From", from_placeholder="Gift from",
            button="Record Gift", **_DEPOSIT_TO_LABELS,
        ),
    ),

    # Investment income
    Preset(
        id=CategoryId.DIVIDEND,
        label="Dividend",
        flow_type=FlowType.TRANSFER,
        from_endpoint=_asset(AssetType.STOCK, AssetType.ETF, create_type=AssetType.STOCK),
        to_endpoint=_asset(_CASH),
        extra_fields=(ExtraField.TAX_WITHHELD,),
        labels=FieldLabels(
            from_label="From Stock", from_placeholder="Select stock/ETF",
            button="Record Dividend", **_DEPOSIT_TO_LABELS,
        ),
    ),
    Preset(
        id=CategoryId.INTEREST,
        label="Interest",
        flow_type=FlowType.TRANSFER,
        from_endpoint=_asset(
            _CASH, AssetType.DEPOSIT,
            create_type=AssetType.DEPOSIT,
        ),
        to_endpoint=Endpoint(kind=EndpointKind.SAME_AS_FROM),
        labels=FieldLabels(
            from_label="Account", to_label="To",
            from_placeholder="Select account", to_placeholder="Select account",
            button="Record Interest",
        ),
    ),

    # Investment
    Preset(
        id=CategoryId.INVEST,
        label="Invest",
        flow_type=FlowType.TRANSFER,
        from_endpoint=_asset(_CASH),
        to_endpoint=_asset(
            *_INVESTMENTS, create_type=AssetType.STOCK,
        ),
        extra_fields=(ExtraField.SHARES, ExtraField.PRICE_PER_SHARE),
        labels=FieldLabels(
            from_label="Pay With", to_label="Buy",
            from_placeholder="Select cash account",
            to_placeholder="Select investment", button="Buy",
        ),
    ),
    Preset(
        id=CategoryId.SELL,
        label="Sell",
        flow_type=FlowType.TRANSFER,
        from_endpoint=_asset(*_INVESTMENTS, AssetType.REAL_ESTATE, allow_create=False),
        to_endpoint=_asset(_CASH),
        extra_fields=(
            ExtraField.SHARES, ExtraField.PRICE_PER_SHARE, ExtraField.COST_BASIS,
        ),
        labels=FieldLabels(
            from_label="Sell", from_placeholder="Select investment",
            button="Record Sale", **_DEPOSIT_TO_LABELS,
        ),
    ),
    Preset(
        id=CategoryId.REINVEST,
        label="Reinvest",
        flow_type=FlowType.TRANSFER,
        from_endpoint=_asset(
            AssetType.STOCK, AssetType.ETF, AssetType.CRYPTO, allow_create=False,
        ),
        to_endpoint=Endpoint(kind=EndpointKind.SAME_AS_FROM),
        extra_fields=(ExtraField.SHARES,),
        labels=FieldLabels(
            from_label="From", to_label="Into",
            from_placeholder="Select investment",
            to_placeholder="Select investment", button="Record Reinvestment",
        ),
    ),
    Preset(
        id=CategoryId.DEPOSIT,
        label="Deposit",
        flow_type=FlowType.TRANSFER,
        from_endpoint=_asset(_CASH, required=False),
        to_endpoint=_asset(
            AssetType.DEPOSIT,
            create_type=AssetType.DEPOSIT, prefer_create=True,
        ),
        labels=FieldLabels(
            from_label="Fund From", to_label="Deposit Account",
            from_placeholder="Select cash account",
            to_placeholder="Select deposit", button="Record Deposit",
        ),
    ),

    # Transfer
    Preset(
        id=CategoryId.TRANSFER,
        label="Transfer",
        flow_type=FlowType.TRANSFER,
        from_endpoint=_asset(),
        to_endpoint=_asset(),
        labels=FieldLabels(
            from_placeholder="Select account", to_placeholder="Select account",
            button="Record Transfer",
        ),
    ),

    # Debt
    Preset(
        id=CategoryId.PAY_DEBT,
        label="Pay Debt",
        flow_type=FlowType.EXPENSE,
        from_endpoint=Endpoint(
            kind=EndpointKind.USER_SELECT, asset_filter=frozenset({_CASH}),
        ),
        to_endpoint=_external(editable=False),
        extra_fields=(ExtraField.DEBT_ID,),
        requires_debt=True,
        labels=FieldLabels(
            from_label="Pay From", to_label="Pay To",
            from_placeholder="Select account", to_placeholder="Select debt",
            button="Record Payment",
        ),
    ),
    Preset(
        id=CategoryId.ADD_MORTGAGE,
        label="Add Mortgage",
        flow_type=FlowType.INCOME,
        from_endpoint=_external("Lender"),
        to_endpoint=_asset(
            AssetType.REAL_ESTATE,
            required=False, create_type=AssetType.REAL_ESTATE,
        ),
        extra_fields=(ExtraField.PROPERTY_ASSET_ID,),
        debt_type=DebtType.MORTGAGE,
        labels=FieldLabels(
            from_label="Lender", to_label="Property",
            from_placeholder="Bank or lender name",
            to_placeholder="Select property", button="Add Mortgage",
        ),
    ),
    Preset(
        id=CategoryId.ADD_LOAN,
        label="Add Loan",
        flow_type=FlowType.INCOME,
        from_endpoint=_external("Lender"),
        to_endpoint=_asset(_CASH, required=False),
        extra_fields=(ExtraField.DISBURSEMENT,),
        debt_type=DebtType.PERSONAL_LOAN,
        labels=FieldLabels(
            from_label="Lender", to_label="Disburse To",
            from_placeholder="Bank or lender name",
            to_placeholder="Select account", button="Add Loan",
        ),
    ),

    # Expense (Asset -> External)
    Preset(
        id=CategoryId.EXPENSE,
        label="Expense",
        flow_type=FlowType.EXPENSE,
        from_endpoint=_asset(_CASH),
        to_endpoint=_external(editable=True),
        extra_fields=(ExtraField.LINKED_LEDGER,),
        labels=FieldLabels(
            from_label="Pay From", to_label="Spend On",
            from_placeholder="Select account",
            to_placeholder="What did you spend on?", button="Record Expense",
        ),
    ),

    # Other
    Preset(
        id=CategoryId.OTHER,
        label="Other",
        flow_type=FlowType.TRANSFER,
        from_endpoint=Endpoint(kind=EndpointKind.USER_SELECT),
        to_endpoint=Endpoint(
            kind=EndpointKind.USER_SELECT,
            create_type=AssetType.CASH,
        ),
    ),
)}

# Most common transactions, shown first by a category picker
QUICK_ACTIONS: tuple[CategoryId, ...] = (
    CategoryId.EXPENSE,
    CategoryId.SALARY,
    CategoryId.TRANSFER,
    CategoryId.INVEST,
)

CATEGORY_GROUPS: dict[str, tuple[CategoryId, ...]] = {
    "Income": (
        CategoryId.BONUS, CategoryId.FREELANCE, CategoryId.RENTAL,
        CategoryId.GIFT, CategoryId.DIVIDEND, CategoryId.INTEREST,
    ),
    "Investments": (CategoryId.SELL, CategoryId.REINVEST, CategoryId.DEPOSIT),
    "Debt": (CategoryId.PAY_DEBT, CategoryId.ADD_MORTGAGE, CategoryId.ADD_LOAN),
}


def preset_for(category_id: CategoryId) -> Preset:
    """
    Look up the preset for a category.

    Raises:
        UnknownCategoryError: If the id is not a known category
    """
    try:
        return PRESETS[category_id]
    except (KeyError, TypeError):
        raise UnknownCategoryError(category_id) from None


def parse_category(value: str) -> CategoryId:
    """Parse an external category string into a CategoryId."""
    try:
        return CategoryId(value.strip().lower())
    except (ValueError, AttributeError):
        raise UnknownCategoryError(value) from None
