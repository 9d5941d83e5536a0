"""
Flow form engine.

FlowFormController is the entry point; reduce() is the pure core it
wraps and can be used on its own.
"""

from networth.form.actions import (
    BeginAssetCreation,
    CancelAssetCreation,
    ExecuteSubmission,
    FetchCostBasis,
    FetchStockPrice,
    LoadTaxSettings,
    LookupFailed,
    LookupResolved,
    Reset,
    SearchTickers,
    SelectCategory,
    SnapshotChanged,
    SubmitFailed,
    SubmitRequested,
    SubmitSucceeded,
    UpdateField,
    UpdateNewAsset,
)
from networth.form.controller import FlowFormController
from networth.form.errors import (
    AssetCreationError,
    FlowFormError,
    FlowValidationError,
    SubmissionInProgressError,
)
from networth.form.lookups import LookupCoordinator
from networth.form.reducer import initial_state, reduce
from networth.form.submission import FlowSubmitter, SubmissionOutcome

__all__ = [
    # Actions
    "BeginAssetCreation",
    "CancelAssetCreation",
    "LookupFailed",
    "LookupResolved",
    "Reset",
    "SelectCategory",
    "SnapshotChanged",
    "SubmitFailed",
    "SubmitRequested",
    "SubmitSucceeded",
    "UpdateField",
    "UpdateNewAsset",
    # Effects
    "ExecuteSubmission",
    "FetchCostBasis",
    "FetchStockPrice",
    "LoadTaxSettings",
    "SearchTickers",
    # Engine
    "FlowFormController",
    "FlowSubmitter",
    "LookupCoordinator",
    "SubmissionOutcome",
    "initial_state",
    "reduce",
    # Errors
    "AssetCreationError",
    "FlowFormError",
    "FlowValidationError",
    "SubmissionInProgressError",
]
