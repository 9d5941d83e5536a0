"""
Flow Submission

Turns a validated FormState into repository writes.

SUBMISSION SEQUENCE:
1. Settle endpoint ids (explicit choices kept, the rest re-resolved)
2. Create or reuse inline draft assets
3. Create or reuse the asset behind a chosen ticker
4. Re-check endpoints with the real ids
5. Run the category handler (flows, a debt, or a recurring schedule)

DESIGN DECISION: Every asset and flow created during one submission is
tracked. If any later step fails the submission is rolled back - flows
first, then assets - so a failed submit never leaves half a transaction
behind. Debt origination is a single repository call and needs no
rollback of its own.

Each submission gets a correlation id so the audit trail shows what was
created, reused and rolled back together.
"""

from typing import Any, Optional
from uuid import UUID

import structlog
from pydantic import BaseModel, Field

from networth.audit import AuditLogger
from networth.calculators import (
    annualize_interest,
    dividend_withholding,
    is_payoff,
    monthly_payment,
    next_run_date,
    parse_number,
    realized_pnl,
)
from networth.config import EngineSettings, get_settings
from networth.form.errors import AssetCreationError, FlowValidationError
from networth.models.form import (
    DataSnapshot,
    EndpointMode,
    FormState,
    NewAssetDraft,
    Side,
    ValidationResult,
)
from networth.models.portfolio import (
    Asset,
    AssetType,
    CreateAssetData,
    CreateDebtData,
    CreateFlowData,
    CreateRecurringScheduleData,
    DebtType,
    Flow,
    FlowType,
    RecurringFrequency,
    UpdateAssetData,
)
from networth.presets import (
    INVESTMENT_TYPES,
    CategoryId,
    EndpointKind,
    ExtraField,
    Preset,
    preset_for,
)
from networth.services.storage import PortfolioStorageInterface, StorageError
from networth.validation import (
    FlowFormValidator,
    is_ticker_invest,
    requires_maturity_choice,
)


logger = structlog.get_logger(__name__)


class SubmissionOutcome(BaseModel):
    """What one successful submission wrote."""

    correlation_id: UUID
    category: CategoryId
    flow_ids: list[str] = Field(default_factory=list)
    created_asset_ids: list[str] = Field(default_factory=list)
    reused_asset_ids: list[str] = Field(default_factory=list)
    debt_id: Optional[str] = None
    schedule_id: Optional[str] = None


class _Submission:
    """Working state of one submission."""

    def __init__(
        self,
        state: FormState,
        snapshot: DataSnapshot,
        correlation_id: UUID,
        assets: list[Asset],
    ):
        self.state = state
        self.snapshot = snapshot
        self.preset: Preset = preset_for(state.category)
        self.correlation_id = correlation_id
        self.assets = assets
        self.amount = parse_number(state.amount)
        self.from_id: Optional[str] = None
        self.to_id: Optional[str] = None
        self.created_assets: list[str] = []
        self.created_flows: list[str] = []
        self.outcome = SubmissionOutcome(
            correlation_id=correlation_id,
            category=self.preset.id,
        )

    def asset(self, asset_id: Optional[str]) -> Optional[Asset]:
        return next((a for a in self.assets if a.id == asset_id), None)

    def resolved_state(self) -> FormState:
        """The form with drafts replaced by the ids they resolved to."""
        return self.state.model_copy(update={
            "from_draft": None,
            "to_draft": None,
            "from_asset_id": self.from_id,
            "to_asset_id": self.to_id,
        })

    def resolved_snapshot(self) -> DataSnapshot:
        return self.snapshot.model_copy(update={"assets": self.assets})


def _compact(metadata: dict[str, Any]) -> dict[str, Any]:
    """Drop unset metadata. Booleans are kept whenever they were set."""
    return {
        key: value for key, value in metadata.items()
        if isinstance(value, bool)
        or (value is not None and value != "" and value != 0 and value != [] and value != {})
    }


class FlowSubmitter:
    """
    Executes form submissions against the portfolio repository.
    """

    _HANDLERS: dict[CategoryId, str] = {
        CategoryId.SALARY: "_record_simple",
        CategoryId.BONUS: "_record_simple",
        CategoryId.FREELANCE: "_record_simple",
        CategoryId.GIFT: "_record_simple",
        CategoryId.RENTAL: "_record_simple",
        CategoryId.TRANSFER: "_record_simple",
        CategoryId.EXPENSE: "_record_simple",
        CategoryId.DIVIDEND: "_record_dividend",
        CategoryId.INTEREST: "_record_interest",
        CategoryId.INVEST: "_record_invest",
        CategoryId.SELL: "_record_sell",
        CategoryId.REINVEST: "_record_reinvest",
        CategoryId.DEPOSIT: "_record_deposit",
        CategoryId.PAY_DEBT: "_record_pay_debt",
        CategoryId.ADD_MORTGAGE: "_record_debt",
        CategoryId.ADD_LOAN: "_record_debt",
        CategoryId.OTHER: "_record_other",
    }

    def __init__(
        self,
        storage: PortfolioStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[FlowFormValidator] = None,
        settings: Optional[EngineSettings] = None,
    ):
        self._storage = storage
        self._audit = audit_logger or AuditLogger()
        self._validator = validator or FlowFormValidator()
        self._settings = settings or get_settings().engine

    async def submit(
        self,
        state: FormState,
        snapshot: DataSnapshot,
        correlation_id: UUID,
    ) -> SubmissionOutcome:
        """
        Write one validated form to the repository.

        Raises:
            FlowValidationError: If the endpoints no longer validate
            AssetCreationError: If an inline asset could not be created
            StorageError: If a repository write fails
        """
        if state.category is None:
            raise ValueError("No category selected")

        assets = await self._storage.list_assets()
        submission = _Submission(state, snapshot, correlation_id, list(assets))
        category = submission.preset.id.value

        try:
            await self._settle_endpoints(submission)
            self._check_endpoints(submission)
            handler = getattr(self, self._HANDLERS[submission.preset.id])
            await handler(submission)

        except Exception as e:
            await self._rollback(submission)
            await self._audit.log_submission_failed(
                category=category,
                error_type=type(e).__name__,
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise

        await self._audit.log_submission_succeeded(category, correlation_id)
        return submission.outcome

    # ------------------------------------------------------------------
    # Endpoints and inline assets
    # ------------------------------------------------------------------

    async def _settle_endpoints(self, sub: _Submission) -> None:
        state = sub.state
        from_id, to_id = self._validator.effective_endpoints(state, sub.resolved_snapshot())

        if state.category == CategoryId.INTEREST and state.no_linked_account:
            from_id = to_id = None

        if state.from_draft is not None:
            from_id = await self._materialize_from_draft(sub, state.from_draft)
        if state.to_draft is not None:
            to_id = await self._materialize_to_draft(sub, state.to_draft)

        if sub.preset.to_endpoint.kind == EndpointKind.SAME_AS_FROM:
            to_id = from_id

        if is_ticker_invest(state):
            to_id = await self._ticker_asset(sub)

        sub.from_id, sub.to_id = from_id, to_id

    def _check_endpoints(self, sub: _Submission) -> None:
        issues = self._validator.check_endpoints(
            sub.resolved_state(), sub.resolved_snapshot(), sub.from_id, sub.to_id,
        )
        if issues:
            raise FlowValidationError(ValidationResult(
                category=sub.preset.id,
                fields_valid=True,
                endpoints_valid=False,
                is_valid=False,
                issues=issues,
            ))

    async def _materialize_from_draft(self, sub: _Submission, draft: NewAssetDraft) -> str:
        state = sub.state
        asset_id, created = await self._create_or_reuse(sub, Side.FROM, draft)

        # A deposit opened while recording its interest starts with its balance
        if created and sub.preset.id == CategoryId.INTEREST:
            await self._create_flow(sub, CreateFlowData(
                type=FlowType.INCOME,
                category=CategoryId.DEPOSIT.value,
                amount=parse_number(state.deposit_balance),
                currency=state.currency,
                to_asset_id=asset_id,
                date=state.flow_date,
                description=f"Initial deposit for {draft.name}",
            ))
        return asset_id

    async def _materialize_to_draft(self, sub: _Submission, draft: NewAssetDraft) -> str:
        state = sub.state
        metadata: dict[str, Any] = {}
        rate = parse_number(state.interest_rate)
        if sub.preset.id == CategoryId.DEPOSIT and rate > 0:
            metadata = {
                "interest_rate": rate / 100,
                "payment_period": state.interest_payment_period.value,
            }
        asset_id, _ = await self._create_or_reuse(sub, Side.TO, draft, metadata)
        return asset_id

    async def _create_or_reuse(
        self,
        sub: _Submission,
        side: Optional[Side],
        draft: NewAssetDraft,
        metadata: Optional[dict[str, Any]] = None,
    ) -> tuple[str, bool]:
        """Reuse an asset with the same name (case-insensitive) or create one."""
        wanted = draft.name.lower()
        existing = next((a for a in sub.assets if a.name.lower() == wanted), None)
        if existing is not None:
            sub.outcome.reused_asset_ids.append(existing.id)
            await self._audit.log_asset_reused(existing.id, existing.name, sub.correlation_id)
            return existing.id, False

        try:
            data = CreateAssetData(
                name=draft.name,
                type=draft.type,
                currency=sub.state.currency,
                ticker=draft.ticker or None,
                metadata=metadata or {},
            )
            asset = await self._storage.create_asset(data)
        except (StorageError, ValueError) as e:
            raise AssetCreationError(side, draft.name, str(e)) from e

        self._track_asset(sub, asset)
        await self._audit.log_asset_created(
            asset.id, asset.name, asset.type.value, sub.correlation_id,
        )
        return asset.id, True

    async def _ticker_asset(self, sub: _Submission) -> str:
        """The holding for the chosen ticker, created on first purchase."""
        state = sub.state
        ticker = state.selected_ticker.upper()
        existing = next(
            (a for a in sub.assets if a.ticker and a.ticker.upper() == ticker),
            None,
        )
        if existing is not None:
            sub.outcome.reused_asset_ids.append(existing.id)
            await self._audit.log_asset_reused(existing.id, existing.name, sub.correlation_id)
            return existing.id

        info = INVESTMENT_TYPES[state.investment_type]
        asset_type = AssetType.ETF if (state.selected_ticker_type or "").upper() == "ETF" else AssetType.STOCK
        name = state.selected_ticker_name or ticker
        try:
            asset = await self._storage.create_asset(CreateAssetData(
                name=name,
                type=asset_type,
                currency=info.currency or state.currency,
                ticker=ticker,
                market=info.market,
            ))
        except (StorageError, ValueError) as e:
            raise AssetCreationError(Side.TO, name, str(e)) from e

        self._track_asset(sub, asset)
        await self._audit.log_asset_created(
            asset.id, asset.name, asset.type.value, sub.correlation_id,
        )
        return asset.id

    def _track_asset(self, sub: _Submission, asset: Asset) -> None:
        sub.assets.append(asset)
        sub.created_assets.append(asset.id)
        sub.outcome.created_asset_ids.append(asset.id)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def _create_flow(self, sub: _Submission, data: CreateFlowData) -> Flow:
        flow = await self._storage.create_flow(data)
        sub.created_flows.append(flow.id)
        sub.outcome.flow_ids.append(flow.id)
        await self._audit.log_flow_created(
            flow_id=flow.id,
            category=flow.category or "",
            amount=flow.amount,
            currency=flow.currency,
            correlation_id=sub.correlation_id,
        )
        return flow

    async def _commit(self, sub: _Submission, data: CreateFlowData) -> None:
        """Record the flow now, or only schedule it for recurring-only forms."""
        state = sub.state
        if not state.recurring_only:
            await self._create_flow(sub, data)
            return

        first_run = state.flow_date
        if state.start_next_occurrence:
            first_run = next_run_date(state.flow_date, state.recurring_frequency)
        schedule = await self._storage.create_recurring_schedule(CreateRecurringScheduleData(
            frequency=state.recurring_frequency,
            next_run_date=first_run,
            flow_template=data,
        ))
        sub.outcome.schedule_id = schedule.id
        await self._audit.log_schedule_created(
            schedule_id=schedule.id,
            frequency=schedule.frequency.value,
            next_run_date=schedule.next_run_date.isoformat(),
            correlation_id=sub.correlation_id,
        )

    async def _rollback(self, sub: _Submission) -> None:
        """Undo what this submission created. Failures are logged, not raised."""
        if not sub.created_flows and not sub.created_assets:
            return

        failures: list[str] = []
        for flow_id in reversed(sub.created_flows):
            try:
                await self._storage.delete_flow(flow_id)
            except StorageError as e:
                logger.error("rollback_flow_failed", flow_id=flow_id, error=str(e))
                failures.append(f"flow {flow_id}: {e}")

        for asset_id in reversed(sub.created_assets):
            try:
                await self._storage.delete_asset(asset_id)
            except StorageError as e:
                logger.error("rollback_asset_failed", asset_id=asset_id, error=str(e))
                failures.append(f"asset {asset_id}: {e}")

        await self._audit.log_rollback(
            asset_ids=list(sub.created_assets),
            flow_ids=list(sub.created_flows),
            correlation_id=sub.correlation_id,
            failures=failures,
        )

    # ------------------------------------------------------------------
    # Flow payloads
    # ------------------------------------------------------------------

    def _flow_data(
        self,
        sub: _Submission,
        flow_type: FlowType,
        amount: float,
        from_id: Optional[str],
        to_id: Optional[str],
        metadata: dict[str, Any],
        description: Optional[str] = None,
        category: Optional[str] = None,
        debt_id: Optional[str] = None,
        currency: Optional[str] = None,
    ) -> CreateFlowData:
        state = sub.state
        frequency = state.recurring_frequency
        return CreateFlowData(
            type=flow_type,
            category=category or sub.preset.id.value,
            amount=amount,
            currency=currency or state.currency,
            from_asset_id=from_id,
            to_asset_id=to_id,
            debt_id=debt_id,
            date=state.flow_date,
            description=state.description or description,
            recurring_frequency=None if frequency == RecurringFrequency.NONE else frequency,
            expense_category_id=state.expense_category_id if flow_type == FlowType.EXPENSE else None,
            metadata=_compact(metadata),
        )

    def _base_metadata(self, sub: _Submission) -> dict[str, Any]:
        state, preset = sub.state, sub.preset
        metadata: dict[str, Any] = {}
        shares = parse_number(state.shares)
        metadata["shares"] = shares

        if (
            preset.flow_type == FlowType.INCOME
            and state.from_mode == EndpointMode.EXTERNAL
            and state.from_external_name
        ):
            metadata["source_name"] = state.from_external_name

        if preset.id == CategoryId.INVEST:
            if shares > 0:
                metadata["price_per_share"] = sub.amount / shares
            metadata["investment_type"] = state.investment_type.value
            metadata["ticker"] = state.selected_ticker or None
        else:
            metadata["price_per_share"] = parse_number(state.price_per_share)

        if preset.has_extra(ExtraField.LINKED_LEDGER):
            metadata["linked_ledgers"] = [l.model_dump() for l in state.linked_ledgers]
            metadata["payee"] = state.to_external_name

        return metadata

    def _endpoint_ids(self, sub: _Submission) -> tuple[Optional[str], Optional[str]]:
        """Endpoint ids honouring external modes."""
        state = sub.state
        from_id = sub.from_id if state.from_mode == EndpointMode.ASSET else None
        to_id = sub.to_id if state.to_mode == EndpointMode.ASSET else None
        return from_id, to_id

    # ------------------------------------------------------------------
    # Category handlers
    # ------------------------------------------------------------------

    async def _record_simple(self, sub: _Submission) -> None:
        from_id, to_id = self._endpoint_ids(sub)
        await self._commit(sub, self._flow_data(
            sub,
            sub.preset.flow_type,
            sub.amount,
            from_id,
            to_id,
            self._base_metadata(sub),
        ))

    async def _record_dividend(self, sub: _Submission) -> None:
        state = sub.state
        rate = state.tax_rate
        if rate is None and sub.snapshot.tax_settings is not None:
            rate = sub.snapshot.tax_settings.dividend_withholding_rate
        if rate is None:
            rate = self._settings.dividend_withholding_rate

        split = dividend_withholding(sub.amount, rate)
        metadata = self._base_metadata(sub)
        metadata.update(
            gross_amount=split.gross,
            tax_rate=split.rate,
            tax_withheld=split.tax_withheld,
        )
        await self._commit(sub, self._flow_data(
            sub, FlowType.TRANSFER, split.net, sub.from_id, sub.to_id, metadata,
        ))

    async def _record_interest(self, sub: _Submission) -> None:
        state = sub.state
        period = state.interest_payment_period

        if state.no_linked_account:
            metadata: dict[str, Any] = {
                "payment_period": period.value,
                "no_linked_account": True,
            }
            principal = parse_number(state.interest_principal)
            annualized = annualize_interest(sub.amount, principal, period)
            if annualized is not None:
                metadata.update(
                    principal=principal,
                    period_rate=annualized.period_rate,
                    annualized_rate=annualized.apy,
                )
            await self._create_flow(sub, self._flow_data(
                sub, FlowType.INCOME, sub.amount, None, None, metadata,
                description="Interest earned",
            ))
            return

        source = sub.asset(sub.from_id)
        if state.from_draft is not None:
            balance = parse_number(state.deposit_balance)
        else:
            balance = source.balance if source is not None else 0.0

        metadata = {"payment_period": period.value, "asset_balance": balance}
        annualized = annualize_interest(sub.amount, balance, period)
        if annualized is not None:
            metadata.update(
                period_rate=annualized.period_rate,
                annualized_rate=annualized.apy,
            )

        is_deposit = requires_maturity_choice(sub.resolved_state(), sub.resolved_snapshot())
        matured = is_deposit and state.deposit_matured is True
        if is_deposit and state.deposit_matured is not None:
            metadata["deposit_matured"] = state.deposit_matured

        await self._create_flow(sub, self._flow_data(
            sub, FlowType.INCOME, sub.amount, sub.from_id, sub.from_id,
            {**metadata, "interest_amount": sub.amount} if matured else metadata,
            description="Interest on deposit" if is_deposit else "Interest earned",
        ))

        if matured:
            await self._create_flow(sub, self._flow_data(
                sub,
                FlowType.TRANSFER,
                balance + sub.amount,
                sub.from_id,
                state.withdraw_to_asset_id,
                {
                    "deposit_matured": True,
                    "principal_amount": balance,
                    "interest_amount": sub.amount,
                    "mark_as_sold": True,
                },
                description="Matured deposit withdrawal",
            ))

        if annualized is not None:
            await self._save_interest_rate(sub, annualized.apy)

    async def _save_interest_rate(self, sub: _Submission, apy: float) -> None:
        """Remember the account's APY for next time. Not fatal on failure."""
        try:
            await self._storage.update_asset(sub.from_id, UpdateAssetData(metadata={
                "interest_rate": apy,
                "payment_period": sub.state.interest_payment_period.value,
            }))
        except StorageError as e:
            logger.warning(
                "interest_rate_save_failed",
                asset_id=sub.from_id,
                error=str(e),
                correlation_id=str(sub.correlation_id),
            )

    async def _record_invest(self, sub: _Submission) -> None:
        await self._create_flow(sub, self._flow_data(
            sub, FlowType.TRANSFER, sub.amount, sub.from_id, sub.to_id,
            self._base_metadata(sub),
        ))

    async def _record_sell(self, sub: _Submission) -> None:
        state = sub.state
        source = sub.asset(sub.from_id)
        shares = parse_number(state.shares)
        price = parse_number(state.price_per_share)
        cost = parse_number(state.sell_cost_basis) or (state.average_cost or 0.0)

        metadata = self._base_metadata(sub)
        metadata.update(
            fees=parse_number(state.sell_fees),
            cost_basis=cost,
            mark_as_sold=True if state.sell_mark_as_sold else None,
        )
        if shares > 0 and price > 0 and cost > 0:
            metadata["realized_pl"] = realized_pnl(shares * price, cost, shares)

        await self._create_flow(sub, self._flow_data(
            sub, FlowType.TRANSFER, sub.amount, sub.from_id, sub.to_id, metadata,
            description=f"Sold {source.name}" if source is not None else None,
        ))

    async def _record_reinvest(self, sub: _Submission) -> None:
        source = sub.asset(sub.from_id)
        shares = parse_number(sub.state.shares)
        label = (source.ticker or source.name) if source is not None else ""
        metadata = {
            "shares": shares,
            "price_per_share": sub.amount / shares if shares > 0 else None,
            "ticker": source.ticker if source is not None else None,
        }
        await self._create_flow(sub, self._flow_data(
            sub, FlowType.INCOME, sub.amount, sub.from_id, sub.from_id, metadata,
            description=f"DRIP - {label}",
            currency=source.currency if source is not None else None,
        ))

    async def _record_deposit(self, sub: _Submission) -> None:
        state = sub.state
        metadata = self._base_metadata(sub)
        rate = parse_number(state.interest_rate)
        if rate > 0:
            metadata.update(
                interest_rate=rate / 100,
                payment_period=state.interest_payment_period.value,
            )

        from_id = sub.from_id if state.from_mode == EndpointMode.ASSET else None
        flow_type = FlowType.TRANSFER if from_id else FlowType.INCOME
        await self._commit(sub, self._flow_data(
            sub, flow_type, sub.amount, from_id, sub.to_id, metadata,
            description="Transfer to deposit" if from_id else "Deposit",
        ))

    async def _record_pay_debt(self, sub: _Submission) -> None:
        state = sub.state
        debt = sub.snapshot.debt(state.debt_id)
        from_cash = state.from_mode == EndpointMode.ASSET
        from_id = sub.from_id if from_cash else None

        metadata = self._base_metadata(sub)
        metadata["payment_source"] = "cash" if from_cash else "external"
        if debt is not None and is_payoff(sub.amount, debt.current_balance):
            metadata["pays_off"] = True

        if from_cash:
            description = f"Payment to {debt.name}" if debt is not None else None
        else:
            description = f"Payment from {state.from_external_name or 'external source'}"

        await self._commit(sub, self._flow_data(
            sub, FlowType.EXPENSE, sub.amount, from_id, None, metadata,
            description=description,
            debt_id=state.debt_id,
        ))

    async def _record_debt(self, sub: _Submission) -> None:
        state, preset = sub.state, sub.preset
        principal = sub.amount
        rate = parse_number(state.debt_interest_rate) / 100
        term = int(parse_number(state.debt_term_months))
        payment = round(monthly_payment(principal, rate, term), 2) if term > 0 else None
        debt_type = DebtType.MORTGAGE if preset.debt_type == DebtType.MORTGAGE else state.debt_type
        lender = state.from_external_name

        data = CreateDebtData(
            name=state.debt_name,
            debt_type=debt_type,
            currency=state.currency,
            principal=principal,
            interest_rate=rate if rate > 0 else None,
            term_months=term if term > 0 else None,
            start_date=state.debt_start_date or state.flow_date,
            monthly_payment=payment,
            property_asset_id=sub.to_id if debt_type == DebtType.MORTGAGE else None,
            disburse_to_asset_id=sub.to_id,
            disbursement_description=(
                f"{'Mortgage' if debt_type == DebtType.MORTGAGE else 'Loan'} "
                f"disbursement from {lender or 'Lender'}"
            ),
            metadata={"lender": lender} if lender else {},
        )
        debt = await self._storage.create_debt(data)
        sub.outcome.debt_id = debt.id
        await self._audit.log_debt_created(
            debt_id=debt.id,
            name=debt.name,
            principal=debt.principal,
            correlation_id=sub.correlation_id,
        )

    async def _record_other(self, sub: _Submission) -> None:
        state = sub.state
        external = state.from_mode == EndpointMode.EXTERNAL
        metadata = self._base_metadata(sub)

        if external:
            metadata["source_name"] = state.from_external_name
            flow_type = FlowType.INCOME
            from_id = None
            source_name = state.from_external_name
        else:
            flow_type = FlowType.TRANSFER
            from_id = sub.from_id
            source = sub.asset(from_id)
            source_name = source.name if source is not None else ""

        category = "passive_other" if external and state.is_passive_income else None
        await self._commit(sub, self._flow_data(
            sub, flow_type, sub.amount, from_id, sub.to_id, metadata,
            description=f"From {source_name}",
            category=category,
        ))
