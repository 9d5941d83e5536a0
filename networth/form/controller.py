"""
Flow Form Controller

The stateful shell around the pure reducer. It owns the current
FormState and DataSnapshot, runs the effects the reducer returns, and
writes the audit trail for everything the user does with the form.

FLOW:
1. select_category() seeds the form from the category preset
2. update_field() / inline asset actions edit it; lookups run in the background
3. submit() validates, writes through the FlowSubmitter, then refreshes
   the snapshot so the next form sees the new balances
"""

from typing import Any, Optional, Union

import structlog

from networth.audit import AuditLogger, create_correlation_id
from networth.calculators import parse_number
from networth.config import EngineSettings, get_settings
from networth.currency import DisplayAmount, RateTable, convert_for_display
from networth.form.actions import (
    Action,
    BeginAssetCreation,
    CancelAssetCreation,
    Effect,
    ExecuteSubmission,
    LookupFailed,
    LookupResolved,
    Reset,
    SelectCategory,
    SnapshotChanged,
    SubmitFailed,
    SubmitRequested,
    SubmitSucceeded,
    UpdateField,
    UpdateNewAsset,
)
from networth.form.errors import (
    AssetCreationError,
    FlowValidationError,
    SubmissionInProgressError,
)
from networth.form.lookups import LookupCoordinator
from networth.form.reducer import initial_state, reduce
from networth.form.submission import FlowSubmitter, SubmissionOutcome
from networth.models.form import (
    DataSnapshot,
    FormPhase,
    FormState,
    LookupField,
    Side,
)
from networth.models.portfolio import AssetType
from networth.presets import CategoryId, parse_category, preset_for
from networth.resolution import AssetResolution, resolve_assets
from networth.services.market import MarketDataInterface
from networth.services.storage import PortfolioStorageInterface, StorageError
from networth.validation import FlowFormValidator


logger = structlog.get_logger(__name__)


class FlowFormController:
    """
    One transaction form bound to a repository and a market data source.
    """

    def __init__(
        self,
        storage: PortfolioStorageInterface,
        market: MarketDataInterface,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[EngineSettings] = None,
        validator: Optional[FlowFormValidator] = None,
    ):
        self._storage = storage
        self._settings = settings or get_settings().engine
        self._audit = audit_logger or AuditLogger()
        self._validator = validator or FlowFormValidator()
        self._submitter = FlowSubmitter(
            storage=storage,
            audit_logger=self._audit,
            validator=self._validator,
            settings=self._settings,
        )
        self._lookups = LookupCoordinator(
            market=market,
            storage=storage,
            on_result=self._on_lookup_result,
            settings=self._settings,
        )
        self._snapshot = DataSnapshot(
            default_currency=self._settings.default_currency,
            default_payment_period=self._settings.default_payment_period,
        )
        self._state = initial_state(self._snapshot)
        self._submitting = False
        self.last_outcome: Optional[SubmissionOutcome] = None

    @property
    def state(self) -> FormState:
        return self._state

    @property
    def snapshot(self) -> DataSnapshot:
        return self._snapshot

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    async def refresh(self) -> DataSnapshot:
        """Reload assets, debts, currencies and tax settings from storage."""
        assets = await self._storage.list_assets()
        debts = await self._storage.list_debts()
        currencies = await self._storage.list_currencies()
        try:
            tax_settings = await self._storage.get_user_tax_settings()
        except StorageError as e:
            logger.warning("tax_settings_unavailable", error=str(e))
            tax_settings = self._snapshot.tax_settings

        await self.set_snapshot(DataSnapshot(
            assets=assets,
            debts=debts,
            currencies=currencies,
            tax_settings=tax_settings,
            default_currency=self._settings.default_currency,
            default_payment_period=self._settings.default_payment_period,
        ))
        return self._snapshot

    async def set_snapshot(self, snapshot: DataSnapshot) -> FormState:
        """Replace the snapshot and re-resolve endpoints against it."""
        self._snapshot = snapshot
        return await self._apply(SnapshotChanged())

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    async def select_category(self, category: Union[CategoryId, str]) -> FormState:
        if not isinstance(category, CategoryId):
            category = parse_category(category)
        if self._submitting or self._state.phase == FormPhase.SUBMITTING:
            return self._state
        self._lookups.cancel_all()
        await self._dispatch(SelectCategory(category=category))
        await self._audit.log_category_selected(category.value)
        return self._state

    async def update_field(self, field: str, value: Any) -> FormState:
        return await self._apply(UpdateField(field=field, value=value))

    async def begin_asset_creation(
        self,
        side: Side,
        asset_type: Optional[AssetType] = None,
    ) -> FormState:
        return await self._apply(BeginAssetCreation(side=side, asset_type=asset_type))

    async def update_new_asset(self, side: Side, field: str, value: Any) -> FormState:
        return await self._apply(UpdateNewAsset(side=side, field=field, value=value))

    async def cancel_asset_creation(self, side: Side) -> FormState:
        return await self._apply(CancelAssetCreation(side=side))

    def reset(self) -> FormState:
        if self._submitting or self._state.phase == FormPhase.SUBMITTING:
            return self._state
        self._lookups.cancel_all()
        self._state, _ = reduce(self._state, Reset(), self._snapshot)
        return self._state

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def candidates(self) -> AssetResolution:
        """Assets each endpoint of the current category may use."""
        if self._state.category is None:
            raise ValueError("No category selected")
        return resolve_assets(
            preset_for(self._state.category),
            self._snapshot.assets,
            chosen_from_id=self._state.from_asset_id,
        )

    def summary(self) -> str:
        """Human-readable validation summary of the current form."""
        result = self._validator.validate(self._state, self._snapshot)
        return self._validator.get_user_friendly_summary(result)

    async def display_amount(self, target_currency: str) -> DisplayAmount:
        """The entered amount in another currency, for display only."""
        amount = parse_number(self._state.amount)
        rates = RateTable.from_currencies(self._snapshot.currencies)
        display = convert_for_display(amount, self._state.currency, target_currency, rates)
        if display.degraded:
            await self._audit.log_conversion_degraded(
                self._state.currency, target_currency, amount,
            )
        return display

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    async def submit(self) -> FormState:
        """
        Validate and record the form.

        Validation and repository failures end up in the returned state
        (errors / submit_error); the form keeps every value the user typed.

        Raises:
            SubmissionInProgressError: If a submission is already running
        """
        if self._submitting or self._state.phase == FormPhase.SUBMITTING:
            raise SubmissionInProgressError("A submission is already in progress")
        if self._state.category is None:
            raise ValueError("No category selected")

        category = self._state.category.value
        effects = await self._dispatch(SubmitRequested())
        if not any(isinstance(e, ExecuteSubmission) for e in effects):
            await self._audit.log_validation_failed(
                category=category,
                issues=[{"field": k, "message": v} for k, v in self._state.errors.items()],
            )
            return self._state

        self._submitting = True
        correlation_id = create_correlation_id()
        try:
            outcome = await self._submitter.submit(self._state, self._snapshot, correlation_id)

        except FlowValidationError as e:
            await self._dispatch(SubmitFailed(
                message=str(e),
                errors=e.result.errors_by_field,
                validation=True,
            ))
            return self._state

        except AssetCreationError as e:
            errors = {f"{e.side.value}_new_asset": e.reason} if e.side is not None else {}
            await self._dispatch(SubmitFailed(message=str(e), errors=errors))
            return self._state

        except StorageError as e:
            await self._dispatch(SubmitFailed(message=f"Could not save: {e}"))
            return self._state

        except Exception as e:
            await self._dispatch(SubmitFailed(message=f"Unexpected error: {e}"))
            await self._audit.log_error(
                error_type=type(e).__name__,
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise

        finally:
            self._submitting = False

        self.last_outcome = outcome
        await self._dispatch(SubmitSucceeded())
        try:
            await self.refresh()
        except StorageError as e:
            logger.warning("snapshot_refresh_failed", error=str(e))
        return self._state

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def wait_for_lookups(self) -> FormState:
        """Let every running lookup finish. Mostly useful in tests."""
        await self._lookups.drain()
        return self._state

    def close(self) -> None:
        self._lookups.cancel_all()

    async def _on_lookup_result(
        self,
        field: LookupField,
        generation: int,
        value: Any,
        error: Optional[Exception],
    ) -> None:
        current = self._state.generation(field)
        if generation != current:
            await self._audit.log_lookup_discarded(field.value, generation, current)
            return

        if error is not None:
            await self._audit.log_external_service_error(
                service=field.value,
                error_message=str(error),
            )
            await self._dispatch(LookupFailed(
                field=field, generation=generation, message=str(error),
            ))
            return

        await self._dispatch(LookupResolved(field=field, generation=generation, value=value))

    async def _dispatch(self, action: Action) -> list[Effect]:
        self._state, effects = reduce(self._state, action, self._snapshot)
        for effect in effects:
            if not isinstance(effect, ExecuteSubmission):
                self._lookups.dispatch(effect)
        return effects

    async def _apply(self, action: Action) -> FormState:
        await self._dispatch(action)
        return self._state
