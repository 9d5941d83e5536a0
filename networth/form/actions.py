"""
Form Actions and Effects

Actions describe something that happened to the form (the user typed,
a lookup came back, the submission finished). The reducer turns an
action into a new FormState plus a list of effects.

Effects are requests for asynchronous work. The reducer never performs
them; the controller hands them to the LookupCoordinator or the
submitter. Every lookup effect carries the generation it was issued
under so a late answer can be recognized and dropped.
"""

from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict

from networth.models.form import LookupField, Side
from networth.models.portfolio import AssetType
from networth.presets import CategoryId


class _Message(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)


# =============================================================================
# ACTIONS
# =============================================================================

class SelectCategory(_Message):
    category: CategoryId


class UpdateField(_Message):
    field: str
    value: Any = None


class BeginAssetCreation(_Message):
    side: Side
    asset_type: Optional[AssetType] = None


class UpdateNewAsset(_Message):
    side: Side
    field: str
    value: Any = None


class CancelAssetCreation(_Message):
    side: Side


class SnapshotChanged(_Message):
    """The asset/debt snapshot was replaced."""
    pass


class LookupResolved(_Message):
    field: LookupField
    generation: int
    value: Any = None


class LookupFailed(_Message):
    field: LookupField
    generation: int
    message: str


class SubmitRequested(_Message):
    pass


class SubmitSucceeded(_Message):
    pass


class SubmitFailed(_Message):
    message: str
    errors: dict[str, str] = {}
    # True when the repository writes were stopped by endpoint validation
    validation: bool = False


class Reset(_Message):
    pass


Action = Union[
    SelectCategory,
    UpdateField,
    BeginAssetCreation,
    UpdateNewAsset,
    CancelAssetCreation,
    SnapshotChanged,
    LookupResolved,
    LookupFailed,
    SubmitRequested,
    SubmitSucceeded,
    SubmitFailed,
    Reset,
]


# =============================================================================
# EFFECTS
# =============================================================================

class SearchTickers(_Message):
    query: str
    region: Optional[str] = None
    generation: int

    @property
    def field(self) -> LookupField:
        return LookupField.TICKER_SEARCH


class FetchStockPrice(_Message):
    ticker: str
    generation: int

    @property
    def field(self) -> LookupField:
        return LookupField.STOCK_PRICE


class FetchCostBasis(_Message):
    asset_id: str
    generation: int

    @property
    def field(self) -> LookupField:
        return LookupField.COST_BASIS


class LoadTaxSettings(_Message):
    generation: int

    @property
    def field(self) -> LookupField:
        return LookupField.TAX_SETTINGS


class ExecuteSubmission(_Message):
    """Validation passed; run the repository writes."""
    pass


LookupEffect = Union[SearchTickers, FetchStockPrice, FetchCostBasis, LoadTaxSettings]
Effect = Union[SearchTickers, FetchStockPrice, FetchCostBasis, LoadTaxSettings, ExecuteSubmission]
