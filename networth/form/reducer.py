"""
Form Reducer

reduce(state, action, snapshot) -> (new_state, effects)

DESIGN DECISION: The reducer is a pure function. It never awaits, never
touches the repository and never mutates its input. Anything that needs
I/O is returned as an effect for the controller to run. That keeps every
form rule testable without an event loop.

Stale lookups: each lookup field carries a generation counter. Issuing
a lookup bumps the counter; a result whose generation no longer matches
is returned unchanged, so a slow answer can never overwrite a newer one.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Optional

from networth.calculators import expected_period_interest, parse_number
from networth.form.actions import (
    Action,
    BeginAssetCreation,
    CancelAssetCreation,
    Effect,
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
from networth.models.form import (
    EDITABLE_FIELDS,
    ERROR_KEYS_BY_FIELD,
    DataSnapshot,
    EndpointMode,
    FormPhase,
    FormState,
    LookupField,
    NewAssetDraft,
    Side,
)
from networth.models.portfolio import AssetType, PaymentPeriod
from networth.presets import (
    INVESTMENT_TYPES,
    CategoryId,
    Endpoint,
    EndpointKind,
    Preset,
    preset_for,
)
from networth.resolution import resolve_assets
from networth.validation import FlowFormValidator, is_ticker_invest


_validator = FlowFormValidator()

# Categories whose currency follows the asset picked on the from side
_CURRENCY_FOLLOWS_SOURCE = frozenset({
    CategoryId.RENTAL,
    CategoryId.DIVIDEND,
    CategoryId.INTEREST,
    CategoryId.SELL,
    CategoryId.REINVEST,
})

Handler = Callable[[FormState, Any, DataSnapshot], tuple[FormState, list[Effect]]]


# =============================================================================
# HELPERS
# =============================================================================

def _format_amount(value: float) -> str:
    return f"{value:.2f}"


def _bump(state: FormState, field: LookupField) -> int:
    """Start a new generation for a lookup field and return it."""
    generations = dict(state.lookup_generations)
    generations[field] = generations.get(field, 0) + 1
    state.lookup_generations = generations
    return generations[field]


def _invalidate_all(state: FormState) -> dict[LookupField, int]:
    return {field: state.generation(field) + 1 for field in LookupField}


def _endpoint(preset: Preset, side: Side) -> Endpoint:
    return preset.from_endpoint if side == Side.FROM else preset.to_endpoint


def _clear_error(state: FormState, key: str) -> None:
    if key in state.errors:
        state.errors = {k: v for k, v in state.errors.items() if k != key}


def _new_draft(endpoint: Endpoint, asset_type: Optional[AssetType] = None) -> NewAssetDraft:
    draft_type = asset_type or endpoint.default_create_type
    if endpoint.asset_filter is not None and draft_type not in endpoint.asset_filter:
        raise ValueError(f"Asset type {draft_type.value} is not allowed here")
    return NewAssetDraft(type=draft_type)


def _resolve_sides(
    state: FormState,
    preset: Preset,
    snapshot: DataSnapshot,
    open_missing: bool = True,
    open_preferred: bool = False,
) -> None:
    """
    Re-resolve both endpoints against the snapshot, in place.

    Explicit choices survive while the asset still qualifies. Everything
    else follows the auto-selection. An endpoint with nothing to choose
    from gets an inline creation draft when open_missing is set.
    """
    from_ep, to_ep = preset.from_endpoint, preset.to_endpoint
    assets = snapshot.assets
    known = {a.id for a in assets}

    if from_ep.is_asset_typed and state.from_mode == EndpointMode.ASSET and not state.no_linked_account:
        if state.from_explicit and state.from_asset_id not in known:
            state.from_asset_id = None
            state.from_explicit = False
        chosen = state.from_asset_id if state.from_explicit else None
        resolution = resolve_assets(preset, assets, chosen_from_id=chosen)
        if not state.from_explicit and state.from_draft is None:
            state.from_asset_id = resolution.auto_from
        state.show_from = resolution.show_from
        if (
            open_missing
            and resolution.from_needs_creation
            and from_ep.can_create
            and state.from_draft is None
        ):
            state.from_draft = _new_draft(from_ep)
    else:
        state.show_from = (
            from_ep.editable if from_ep.kind == EndpointKind.EXTERNAL
            else not state.no_linked_account
        )

    resolution = resolve_assets(preset, assets, chosen_from_id=state.from_asset_id)

    if to_ep.kind == EndpointKind.SAME_AS_FROM:
        state.to_asset_id = state.from_asset_id
        state.show_to = False
        return

    if is_ticker_invest(state):
        state.to_asset_id = None
        state.to_draft = None
        state.to_explicit = False
        state.show_to = False
        return

    if to_ep.is_asset_typed and state.to_mode == EndpointMode.ASSET:
        if state.to_explicit and state.to_asset_id not in resolution.to_ids():
            state.to_asset_id = None
            state.to_explicit = False
        if open_preferred and to_ep.prefer_create and state.to_draft is None:
            state.to_draft = _new_draft(to_ep)
        if not state.to_explicit and state.to_draft is None:
            state.to_asset_id = resolution.auto_to
        if state.to_draft is not None and not state.to_explicit:
            state.to_asset_id = None
        state.show_to = resolution.show_to or state.to_draft is not None
        if (
            open_missing
            and resolution.to_needs_creation
            and to_ep.can_create
            and state.to_draft is None
        ):
            state.to_draft = _new_draft(to_ep)
    else:
        state.show_to = resolution.show_to


def _on_from_changed(state: FormState, preset: Preset, snapshot: DataSnapshot) -> list[Effect]:
    """Side effects of a new asset on the from side."""
    effects: list[Effect] = []
    category = preset.id

    if category == CategoryId.SELL:
        state.price_per_share = ""
        state.sell_cost_basis = ""
        state.average_cost = None
        state.quote = None
        cost_generation = _bump(state, LookupField.COST_BASIS)
        price_generation = _bump(state, LookupField.STOCK_PRICE)

    asset = snapshot.asset(state.from_asset_id)
    if asset is None:
        return effects

    if category in _CURRENCY_FOLLOWS_SOURCE:
        state.currency = asset.currency

    if category == CategoryId.INTEREST:
        try:
            state.interest_payment_period = PaymentPeriod(asset.metadata.get("payment_period"))
        except ValueError:
            pass
        apy = asset.metadata.get("interest_rate")
        if not state.amount and isinstance(apy, (int, float)):
            expected = expected_period_interest(apy, asset.balance, state.interest_payment_period)
            if expected is not None:
                state.amount = _format_amount(expected)

    if category == CategoryId.SELL:
        state.sell_mark_as_sold = asset.type == AssetType.REAL_ESTATE
        if asset.is_share_based:
            effects.append(FetchCostBasis(asset_id=asset.id, generation=cost_generation))
            if asset.ticker:
                effects.append(FetchStockPrice(ticker=asset.ticker, generation=price_generation))

    return effects


def _sync_sale_amount(state: FormState, snapshot: DataSnapshot) -> None:
    """A share-based sale is worth shares * price until the user says otherwise."""
    source = snapshot.asset(state.from_asset_id)
    if source is None or not source.is_share_based:
        return
    shares = parse_number(state.shares)
    price = parse_number(state.price_per_share)
    if shares > 0 and price > 0:
        state.amount = _format_amount(shares * price)


def _back_to_entry(state: FormState) -> None:
    if state.phase in (FormPhase.VALIDATION_ERROR, FormPhase.SUBMISSION_ERROR):
        state.phase = FormPhase.FIELD_ENTRY
        state.submit_error = None


def _refresh_warnings(state: FormState, snapshot: DataSnapshot) -> None:
    state.warnings = _validator.warnings(state, snapshot)


def initial_state(snapshot: DataSnapshot) -> FormState:
    """A blank form waiting for a category."""
    return FormState(currency=snapshot.default_currency)


# =============================================================================
# ACTION HANDLERS
# =============================================================================

def _select_category(state: FormState, action: SelectCategory, snapshot: DataSnapshot):
    preset = preset_for(action.category)
    from_ep, to_ep = preset.from_endpoint, preset.to_endpoint

    new = FormState(
        phase=FormPhase.FIELD_ENTRY,
        category=preset.id,
        currency=state.currency,
        flow_date=state.flow_date,
        lookup_generations=_invalidate_all(state),
        from_mode=EndpointMode.EXTERNAL if from_ep.kind == EndpointKind.EXTERNAL else EndpointMode.ASSET,
        from_external_name=from_ep.default_name,
        to_mode=EndpointMode.EXTERNAL if to_ep.kind == EndpointKind.EXTERNAL else EndpointMode.ASSET,
        to_external_name=to_ep.default_name,
        interest_payment_period=snapshot.default_payment_period,
    )
    if preset.debt_type is not None:
        new.debt_type = preset.debt_type
    if preset.id == CategoryId.INVEST:
        new.currency = INVESTMENT_TYPES[new.investment_type].currency or new.currency

    _resolve_sides(new, preset, snapshot, open_missing=True, open_preferred=True)
    effects = _on_from_changed(new, preset, snapshot)

    if preset.id == CategoryId.DIVIDEND:
        if snapshot.tax_settings is not None:
            new.tax_rate = snapshot.tax_settings.dividend_withholding_rate
        effects.append(LoadTaxSettings(generation=_bump(new, LookupField.TAX_SETTINGS)))

    _refresh_warnings(new, snapshot)
    return new, effects


def _update_field(state: FormState, action: UpdateField, snapshot: DataSnapshot):
    if action.field not in EDITABLE_FIELDS:
        raise ValueError(f"Field cannot be edited: {action.field}")
    if state.category is None:
        raise ValueError("Select a category before editing fields")

    preset = preset_for(state.category)
    new = state.model_copy(deep=True)
    setattr(new, action.field, action.value)
    value = getattr(new, action.field)
    effects: list[Effect] = []

    error_key = ERROR_KEYS_BY_FIELD.get(action.field)
    if error_key and value is not None and value != "":
        _clear_error(new, error_key)
    _back_to_entry(new)

    field = action.field
    if field == "from_asset_id":
        new.from_explicit = value is not None
        if value is not None:
            new.from_draft = None
        _resolve_sides(new, preset, snapshot, open_missing=False)
        effects.extend(_on_from_changed(new, preset, snapshot))

    elif field == "to_asset_id":
        new.to_explicit = value is not None
        if value is not None:
            new.to_draft = None

    elif field in ("from_mode", "to_mode"):
        side = Side.FROM if field == "from_mode" else Side.TO
        if value == EndpointMode.EXTERNAL:
            if side == Side.FROM:
                new.from_asset_id, new.from_explicit, new.from_draft = None, False, None
            else:
                new.to_asset_id, new.to_explicit, new.to_draft = None, False, None
            _clear_error(new, f"{side.value}_asset")
        _resolve_sides(new, preset, snapshot, open_missing=False)

    elif field == "no_linked_account":
        if value:
            new.from_asset_id, new.from_explicit, new.from_draft = None, False, None
            new.deposit_matured = None
            new.withdraw_to_asset_id = None
            _clear_error(new, "from_asset")
        _resolve_sides(new, preset, snapshot, open_missing=False)
        if not value:
            effects.extend(_on_from_changed(new, preset, snapshot))

    elif field == "investment_type":
        info = INVESTMENT_TYPES[value]
        if info.currency:
            new.currency = info.currency
        new.ticker_query = ""
        new.ticker_results = []
        new.selected_ticker = ""
        new.selected_ticker_name = ""
        new.selected_ticker_type = None
        new.quote = None
        new.to_asset_id, new.to_explicit, new.to_draft = None, False, None
        _bump(new, LookupField.TICKER_SEARCH)
        _bump(new, LookupField.STOCK_PRICE)
        _resolve_sides(new, preset, snapshot, open_missing=False)

    elif field == "ticker_query":
        generation = _bump(new, LookupField.TICKER_SEARCH)
        if value:
            region = INVESTMENT_TYPES[new.investment_type].market
            effects.append(SearchTickers(query=value, region=region, generation=generation))
        else:
            new.ticker_results = []

    elif field == "selected_ticker":
        new.selected_ticker = value.upper()
        new.quote = None
        generation = _bump(new, LookupField.STOCK_PRICE)
        if value:
            effects.append(FetchStockPrice(ticker=new.selected_ticker, generation=generation))

    elif field == "debt_id":
        debt = snapshot.debt(value)
        if debt is not None:
            new.currency = debt.currency

    elif field == "deposit_matured":
        if not value:
            new.withdraw_to_asset_id = None

    elif field in ("shares", "price_per_share") and new.category == CategoryId.SELL:
        _sync_sale_amount(new, snapshot)

    _refresh_warnings(new, snapshot)
    return new, effects


def _begin_asset_creation(state: FormState, action: BeginAssetCreation, snapshot: DataSnapshot):
    if state.category is None:
        raise ValueError("Select a category before creating assets")
    preset = preset_for(state.category)
    endpoint = _endpoint(preset, action.side)
    if not endpoint.can_create:
        raise ValueError(f"{preset.label} cannot create a {action.side.value} asset")

    new = state.model_copy(deep=True)
    draft = _new_draft(endpoint, action.asset_type)
    if action.side == Side.FROM:
        new.from_draft, new.from_asset_id, new.from_explicit = draft, None, False
        new.show_from = True
        if preset.to_endpoint.kind == EndpointKind.SAME_AS_FROM:
            new.to_asset_id = None
    else:
        new.to_draft, new.to_asset_id, new.to_explicit = draft, None, False
        new.show_to = True
    _clear_error(new, f"{action.side.value}_asset")
    _back_to_entry(new)
    _refresh_warnings(new, snapshot)
    return new, []


def _update_new_asset(state: FormState, action: UpdateNewAsset, snapshot: DataSnapshot):
    draft = state.draft_for(action.side)
    if draft is None:
        raise ValueError(f"No new {action.side.value} asset is being created")
    if action.field not in NewAssetDraft.model_fields:
        raise ValueError(f"Unknown asset field: {action.field}")

    preset = preset_for(state.category)
    endpoint = _endpoint(preset, action.side)
    updated = NewAssetDraft(**{**draft.model_dump(), action.field: action.value})
    if endpoint.asset_filter is not None and updated.type not in endpoint.asset_filter:
        raise ValueError(f"Asset type {updated.type.value} is not allowed here")

    new = state.model_copy(deep=True)
    if action.side == Side.FROM:
        new.from_draft = updated
    else:
        new.to_draft = updated
    if updated.name:
        _clear_error(new, f"{action.side.value}_new_asset")
    _back_to_entry(new)
    _refresh_warnings(new, snapshot)
    return new, []


def _cancel_asset_creation(state: FormState, action: CancelAssetCreation, snapshot: DataSnapshot):
    if state.category is None or state.draft_for(action.side) is None:
        return state, []

    preset = preset_for(state.category)
    new = state.model_copy(deep=True)
    if action.side == Side.FROM:
        new.from_draft = None
        _clear_error(new, "from_new_asset")
        _clear_error(new, "deposit_balance")
    else:
        new.to_draft = None
        _clear_error(new, "to_new_asset")
    _resolve_sides(new, preset, snapshot, open_missing=False)
    effects = _on_from_changed(new, preset, snapshot) if action.side == Side.FROM else []
    _refresh_warnings(new, snapshot)
    return new, effects


def _snapshot_changed(state: FormState, action: SnapshotChanged, snapshot: DataSnapshot):
    if state.category is None:
        return state, []

    preset = preset_for(state.category)
    new = state.model_copy(deep=True)
    _resolve_sides(new, preset, snapshot, open_missing=True)

    if new.debt_id is not None and snapshot.debt(new.debt_id) is None:
        new.debt_id = None
    if new.withdraw_to_asset_id is not None and snapshot.asset(new.withdraw_to_asset_id) is None:
        new.withdraw_to_asset_id = None

    effects: list[Effect] = []
    if new.from_asset_id != state.from_asset_id:
        effects = _on_from_changed(new, preset, snapshot)
    _refresh_warnings(new, snapshot)
    return new, effects


def _lookup_resolved(state: FormState, action: LookupResolved, snapshot: DataSnapshot):
    if action.generation != state.generation(action.field):
        return state, []

    new = state.model_copy(deep=True)
    value = action.value

    if action.field == LookupField.TICKER_SEARCH:
        new.ticker_results = list(value or [])
    elif action.field == LookupField.STOCK_PRICE:
        new.quote = value
        if value is not None and new.category == CategoryId.SELL and not new.price_per_share:
            new.price_per_share = _format_amount(value.price)
            _sync_sale_amount(new, snapshot)
    elif action.field == LookupField.COST_BASIS:
        new.average_cost = value
        if value is not None and not new.sell_cost_basis:
            new.sell_cost_basis = f"{value:.4f}".rstrip("0").rstrip(".")
    elif action.field == LookupField.TAX_SETTINGS:
        if value is not None:
            new.tax_rate = value.dividend_withholding_rate

    return new, []


def _lookup_failed(state: FormState, action: LookupFailed, snapshot: DataSnapshot):
    if action.generation != state.generation(action.field):
        return state, []

    new = state.model_copy(deep=True)
    if action.field == LookupField.TICKER_SEARCH:
        new.ticker_results = []
    elif action.field == LookupField.STOCK_PRICE:
        new.quote = None
    elif action.field == LookupField.COST_BASIS:
        new.average_cost = None
    # A failed tax settings load keeps the default rate
    return new, []


def _submit_requested(state: FormState, action: SubmitRequested, snapshot: DataSnapshot):
    if state.phase == FormPhase.SUBMITTING:
        return state, []

    result = _validator.validate(state, snapshot)
    new = state.model_copy(deep=True)
    new.warnings = result.warnings

    if not result.is_valid:
        new.phase = FormPhase.VALIDATION_ERROR
        new.errors = result.errors_by_field
        return new, []

    new.phase = FormPhase.SUBMITTING
    new.errors = {}
    new.submit_error = None
    return new, [ExecuteSubmission()]


def _submit_succeeded(state: FormState, action: SubmitSucceeded, snapshot: DataSnapshot):
    return FormState(
        phase=FormPhase.SUCCESS,
        currency=snapshot.default_currency,
        lookup_generations=_invalidate_all(state),
        last_submitted_at=datetime.now(timezone.utc),
    ), []


def _submit_failed(state: FormState, action: SubmitFailed, snapshot: DataSnapshot):
    new = state.model_copy(deep=True)
    new.phase = FormPhase.VALIDATION_ERROR if action.validation else FormPhase.SUBMISSION_ERROR
    new.submit_error = action.message
    new.errors = {**new.errors, **action.errors}
    return new, []


def _reset(state: FormState, action: Reset, snapshot: DataSnapshot):
    return FormState(
        currency=snapshot.default_currency,
        lookup_generations=_invalidate_all(state),
    ), []


_HANDLERS: dict[type, Handler] = {
    SelectCategory: _select_category,
    UpdateField: _update_field,
    BeginAssetCreation: _begin_asset_creation,
    UpdateNewAsset: _update_new_asset,
    CancelAssetCreation: _cancel_asset_creation,
    SnapshotChanged: _snapshot_changed,
    LookupResolved: _lookup_resolved,
    LookupFailed: _lookup_failed,
    SubmitRequested: _submit_requested,
    SubmitSucceeded: _submit_succeeded,
    SubmitFailed: _submit_failed,
    Reset: _reset,
}

_USER_EDITS = (
    SelectCategory,
    UpdateField,
    BeginAssetCreation,
    UpdateNewAsset,
    CancelAssetCreation,
    Reset,
)


def reduce(
    state: FormState,
    action: Action,
    snapshot: DataSnapshot,
) -> tuple[FormState, list[Effect]]:
    """
    Apply one action to a form.

    User edits are ignored while a submission is in flight; only its
    outcome, lookups and snapshot changes move the form.

    Raises:
        TypeError: For an object that is not a form action
        ValueError: For an action the current form cannot accept
    """
    handler = _HANDLERS.get(type(action))
    if handler is None:
        raise TypeError(f"Not a form action: {type(action).__name__}")
    if state.phase == FormPhase.SUBMITTING and isinstance(action, _USER_EDITS):
        return state, []
    return handler(state, action, snapshot)
