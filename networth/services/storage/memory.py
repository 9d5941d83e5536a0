"""
In-Memory Storage Implementation

A complete PortfolioStorageInterface kept in dictionaries. Used by the
tests and for local runs without a backend.

Balance bookkeeping follows the same rules any backend must follow:
- A share-based asset (stock, etf, crypto, bond) moves by metadata.shares,
  never by the cash amount. Selling more than is held clamps at 0.
- Any other asset moves by the amount, converted into the asset's currency.
- Income flows only credit; their from side (a property paying rent,
  an account earning interest) is context and is never debited.
- mark_as_sold empties the source asset.
- A non-income flow with a debt_id pays the debt down, clamped at 0.
- realized_pl accumulates into the source asset's total_realized_pl.

Each flow remembers the exact deltas it applied, so deleting it
restores the previous balances even when a clamp kicked in.
"""

from datetime import date
from typing import Optional
from uuid import UUID

import structlog

from networth.calculators.debt import balance_after_payment
from networth.currency.conversion import MissingRateError, RateTable, convert
from networth.models.audit import AuditEvent
from networth.models.portfolio import (
    Asset,
    CreateAssetData,
    CreateDebtData,
    CreateFlowData,
    CreateRecurringScheduleData,
    Currency,
    Debt,
    DebtType,
    DebtFilter,
    Flow,
    FlowType,
    RecurringSchedule,
    TaxSettings,
    UpdateAssetData,
    UpdateDebtData,
)
from networth.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    NotFoundError,
    PortfolioStorageInterface,
    StorageError,
)


logger = structlog.get_logger(__name__)

# (entity kind, entity id, field, delta)
Movement = tuple[str, str, str, float]


class InMemoryPortfolioStorage(PortfolioStorageInterface):
    """
    Dictionary-backed portfolio storage.

    fail_next() makes the next call of one operation raise, which lets
    tests exercise rollback paths.
    """

    def __init__(
        self,
        assets: Optional[list[Asset]] = None,
        debts: Optional[list[Debt]] = None,
        currencies: Optional[list[Currency]] = None,
        tax_settings: Optional[TaxSettings] = None,
    ):
        self._assets: dict[str, Asset] = {a.id: a for a in assets or []}
        self._debts: dict[str, Debt] = {d.id: d for d in debts or []}
        self._flows: dict[str, Flow] = {}
        self._movements: dict[str, list[Movement]] = {}
        self._schedules: dict[str, RecurringSchedule] = {}
        self._currencies: dict[str, Currency] = {
            c.code: c for c in currencies or [Currency(code="USD", rate=1.0)]
        }
        self._tax_settings = tax_settings or TaxSettings()
        self._failures: dict[str, Exception] = {}

    # ------------------------------------------------------------------
    # Test helpers
    # ------------------------------------------------------------------

    def fail_next(self, operation: str, error: Optional[Exception] = None) -> None:
        """Make the next call to `operation` raise `error`."""
        self._failures[operation] = error or StorageError(f"{operation} failed")

    def _maybe_fail(self, operation: str) -> None:
        error = self._failures.pop(operation, None)
        if error is not None:
            raise error

    @property
    def assets(self) -> dict[str, Asset]:
        return dict(self._assets)

    @property
    def debts(self) -> dict[str, Debt]:
        return dict(self._debts)

    @property
    def flows(self) -> dict[str, Flow]:
        return dict(self._flows)

    @property
    def schedules(self) -> dict[str, RecurringSchedule]:
        return dict(self._schedules)

    # ------------------------------------------------------------------
    # Assets
    # ------------------------------------------------------------------

    async def list_assets(self) -> list[Asset]:
        self._maybe_fail("list_assets")
        return list(self._assets.values())

    async def create_asset(self, data: CreateAssetData) -> Asset:
        self._maybe_fail("create_asset")
        if any(a.name.lower() == data.name.lower() for a in self._assets.values()):
            raise DuplicateError(f"Asset already exists: {data.name}")

        asset = Asset(**data.model_dump())
        self._assets[asset.id] = asset
        logger.debug("asset_created", asset_id=asset.id, name=asset.name)
        return asset

    async def update_asset(self, asset_id: str, patch: UpdateAssetData) -> Asset:
        self._maybe_fail("update_asset")
        asset = self._get_asset(asset_id)
        changes = patch.model_dump(exclude_unset=True)
        if "metadata" in changes:
            changes["metadata"] = {**asset.metadata, **(changes["metadata"] or {})}
        updated = asset.model_copy(update=changes)
        self._assets[asset_id] = updated
        return updated

    async def delete_asset(self, asset_id: str) -> bool:
        self._maybe_fail("delete_asset")
        return self._assets.pop(asset_id, None) is not None

    # ------------------------------------------------------------------
    # Debts
    # ------------------------------------------------------------------

    async def list_debts(self, filter: Optional[DebtFilter] = None) -> list[Debt]:
        self._maybe_fail("list_debts")
        debts = list(self._debts.values())
        if filter is None:
            return debts
        if filter.debt_type is not None:
            debts = [d for d in debts if d.debt_type == filter.debt_type]
        if not filter.include_paid_off:
            debts = [d for d in debts if d.current_balance > 0]
        return debts

    async def create_debt(self, data: CreateDebtData) -> Debt:
        self._maybe_fail("create_debt")
        if data.property_asset_id is not None:
            self._get_asset(data.property_asset_id)
        disburse_to = None
        if data.disburse_to_asset_id is not None:
            disburse_to = self._get_asset(data.disburse_to_asset_id)

        debt = Debt(
            **data.model_dump(exclude={"disburse_to_asset_id", "disbursement_description"}),
            current_balance=data.principal,
        )

        disbursement = None
        if disburse_to is not None:
            disbursement = Flow(
                type=FlowType.INCOME,
                category="add_mortgage" if data.debt_type == DebtType.MORTGAGE else "add_loan",
                amount=data.principal,
                currency=data.currency,
                to_asset_id=disburse_to.id,
                debt_id=debt.id,
                date=data.start_date or date.today(),
                description=data.disbursement_description or f"Loan disbursement: {data.name}",
                metadata={"disbursement": True, **data.metadata},
            )
            # Applying first keeps the debt out of storage if conversion fails
            self._movements[disbursement.id] = self._apply(disbursement)
            self._flows[disbursement.id] = disbursement

        self._debts[debt.id] = debt
        logger.debug(
            "debt_created",
            debt_id=debt.id,
            disbursement_flow_id=disbursement.id if disbursement else None,
        )
        return debt

    async def update_debt(self, debt_id: str, patch: UpdateDebtData) -> Debt:
        self._maybe_fail("update_debt")
        debt = self._get_debt(debt_id)
        changes = patch.model_dump(exclude_unset=True)
        if "metadata" in changes:
            changes["metadata"] = {**debt.metadata, **(changes["metadata"] or {})}
        updated = debt.model_copy(update=changes)
        self._debts[debt_id] = updated
        return updated

    # ------------------------------------------------------------------
    # Flows
    # ------------------------------------------------------------------

    async def create_flow(self, data: CreateFlowData) -> Flow:
        self._maybe_fail("create_flow")
        flow = Flow(**data.model_dump())
        self._movements[flow.id] = self._apply(flow)
        self._flows[flow.id] = flow
        logger.debug("flow_created", flow_id=flow.id, category=flow.category)
        return flow

    async def delete_flow(self, flow_id: str) -> bool:
        self._maybe_fail("delete_flow")
        flow = self._flows.pop(flow_id, None)
        if flow is None:
            return False

        for kind, entity_id, field, delta in reversed(self._movements.pop(flow_id, [])):
            self._adjust(kind, entity_id, field, -delta)
        return True

    async def list_invest_flows_for_asset(
        self,
        asset_id: str,
        limit: int = 1000,
    ) -> list[Flow]:
        self._maybe_fail("list_invest_flows_for_asset")
        flows = [
            f for f in self._flows.values()
            if f.category == "invest" and f.to_asset_id == asset_id
        ]
        flows.sort(key=lambda f: f.date)
        return flows[:limit]

    # ------------------------------------------------------------------
    # Schedules and reference data
    # ------------------------------------------------------------------

    async def create_recurring_schedule(
        self,
        data: CreateRecurringScheduleData,
    ) -> RecurringSchedule:
        self._maybe_fail("create_recurring_schedule")
        schedule = RecurringSchedule(**data.model_dump())
        self._schedules[schedule.id] = schedule
        return schedule

    async def list_currencies(self) -> list[Currency]:
        self._maybe_fail("list_currencies")
        return list(self._currencies.values())

    async def get_user_tax_settings(self) -> TaxSettings:
        self._maybe_fail("get_user_tax_settings")
        return self._tax_settings

    # ------------------------------------------------------------------
    # Balance bookkeeping
    # ------------------------------------------------------------------

    def _get_asset(self, asset_id: str) -> Asset:
        try:
            return self._assets[asset_id]
        except KeyError:
            raise NotFoundError(f"Asset not found: {asset_id}") from None

    def _get_debt(self, debt_id: str) -> Debt:
        try:
            return self._debts[debt_id]
        except KeyError:
            raise NotFoundError(f"Debt not found: {debt_id}") from None

    def _in_currency(self, amount: float, source: str, target: str) -> float:
        try:
            return convert(amount, source, target, RateTable.from_currencies(self._currencies.values()))
        except MissingRateError as e:
            raise StorageError(str(e)) from e

    def _plan_movements(self, flow: Flow) -> list[Movement]:
        """Work out every delta a flow applies, without touching anything."""
        movements: list[Movement] = []
        shares = flow.metadata.get("shares") or 0

        if flow.from_asset_id and flow.type != FlowType.INCOME and not flow.is_self_flow:
            source = self._get_asset(flow.from_asset_id)
            if flow.metadata.get("mark_as_sold"):
                delta = -source.balance
            elif source.is_share_based:
                delta = -min(float(shares), source.balance)
            else:
                delta = -self._in_currency(flow.amount, flow.currency, source.currency)
            movements.append(("asset", source.id, "balance", delta))

            realized = flow.metadata.get("realized_pl")
            if isinstance(realized, (int, float)) and realized != 0:
                movements.append(("asset", source.id, "total_realized_pl", float(realized)))

        if flow.to_asset_id:
            target = self._get_asset(flow.to_asset_id)
            if target.is_share_based:
                delta = float(shares)
            else:
                delta = self._in_currency(flow.amount, flow.currency, target.currency)
            movements.append(("asset", target.id, "balance", delta))

        if flow.debt_id and flow.type != FlowType.INCOME:
            debt = self._get_debt(flow.debt_id)
            paid = self._in_currency(flow.amount, flow.currency, debt.currency)
            remaining = balance_after_payment(debt.current_balance, paid)
            movements.append(("debt", debt.id, "current_balance", remaining - debt.current_balance))

        return movements

    def _apply(self, flow: Flow) -> list[Movement]:
        movements = self._plan_movements(flow)
        for kind, entity_id, field, delta in movements:
            self._adjust(kind, entity_id, field, delta)
        return movements

    def _adjust(self, kind: str, entity_id: str, field: str, delta: float) -> None:
        if kind == "debt":
            debt = self._debts.get(entity_id)
            if debt is not None:
                balance = max(0.0, debt.current_balance + delta)
                self._debts[entity_id] = debt.model_copy(update={"current_balance": balance})
            return

        asset = self._assets.get(entity_id)
        if asset is None:
            return
        if field == "balance":
            self._assets[entity_id] = asset.model_copy(update={"balance": asset.balance + delta})
        else:
            metadata = dict(asset.metadata)
            metadata[field] = metadata.get(field, 0.0) + delta
            self._assets[entity_id] = asset.model_copy(update={"metadata": metadata})


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit log kept in a list."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        return [e for e in self._events if e.correlation_id == correlation_id]

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return list(reversed(self._events))[:limit]
