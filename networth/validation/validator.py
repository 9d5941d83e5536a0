"""
Two-Stage Form Validation

DESIGN DECISION: A form is validated in two distinct stages:

STAGE 1 - FIELD VALIDATION:
- Amount is positive
- Category-specific inputs are present (ticker, shares, debt name...)
- Inline asset drafts are named
- Recurring-only submissions have a frequency

STAGE 2 - ENDPOINT VALIDATION:
- Every required endpoint resolves to an existing asset, or to a draft
  that will be created on submit
- The debt being paid exists
- A matured deposit has somewhere to go

Both stages always run so the user sees every problem at once.
Warnings (paying a debt off, selling more shares than held, moving
a matured deposit across currencies) never block a submission.

IMPORTANT: Validation NEVER fixes the form. It reports issues keyed by
the field the user has to touch.
"""

from typing import Optional

from networth.calculators import is_payoff, parse_number
from networth.currency import normalize_currency
from networth.models.form import (
    DataSnapshot,
    EndpointMode,
    FormState,
    Side,
    ValidationIssue,
    ValidationResult,
)
from networth.models.portfolio import AssetType, RecurringFrequency
from networth.presets import (
    INVESTMENT_TYPES,
    CategoryId,
    EndpointKind,
    Preset,
    preset_for,
)
from networth.resolution import finalize_endpoints


# Categories whose submission is a single flow and can be scheduled instead
RECURRING_ONLY_CATEGORIES = frozenset({
    CategoryId.SALARY,
    CategoryId.BONUS,
    CategoryId.FREELANCE,
    CategoryId.RENTAL,
    CategoryId.GIFT,
    CategoryId.DIVIDEND,
    CategoryId.DEPOSIT,
    CategoryId.TRANSFER,
    CategoryId.PAY_DEBT,
    CategoryId.EXPENSE,
    CategoryId.OTHER,
})


def is_ticker_invest(state: FormState) -> bool:
    """Invest flows whose destination asset comes from the chosen ticker."""
    return (
        state.category == CategoryId.INVEST
        and INVESTMENT_TYPES[state.investment_type].ticker_driven
    )


def requires_maturity_choice(state: FormState, snapshot: DataSnapshot) -> bool:
    """Only interest paid on a term deposit asks whether it matured."""
    if state.category != CategoryId.INTEREST or state.no_linked_account:
        return False
    if state.from_draft is not None:
        return state.from_draft.type == AssetType.DEPOSIT
    source = snapshot.asset(state.from_asset_id)
    return source is not None and source.type == AssetType.DEPOSIT


def _error(field: str, message: str, issue_type: str = "missing", fix: Optional[str] = None) -> ValidationIssue:
    return ValidationIssue(
        field=field,
        issue_type=issue_type,
        message=message,
        severity="error",
        suggested_fix=fix,
    )


def _warning(field: str, issue_type: str, message: str) -> ValidationIssue:
    return ValidationIssue(
        field=field,
        issue_type=issue_type,
        message=message,
        severity="warning",
    )


class FlowFormValidator:
    """
    Validates a flow form against the data snapshot it was filled in with.

    Stage 1: Field validation (needs only the form)
    Stage 2: Endpoint validation (needs the asset and debt snapshot)
    """

    def _validate_fields(
        self,
        state: FormState,
        preset: Preset,
        snapshot: DataSnapshot,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: Field validation.

        Returns: (is_valid, list_of_issues)
        """
        issues: list[ValidationIssue] = []
        category = preset.id

        if parse_number(state.amount) <= 0:
            label = "Principal" if preset.is_debt_origination else "Amount"
            issues.append(_error(
                "amount",
                f"{label} must be greater than 0",
                issue_type="invalid_value",
            ))

        try:
            normalize_currency(state.currency)
        except ValueError:
            issues.append(_error(
                "currency",
                f"Unknown currency: {state.currency!r}",
                issue_type="invalid_value",
                fix="Use a 3-letter code such as USD",
            ))

        if is_ticker_invest(state) and not state.selected_ticker:
            issues.append(_error("ticker", "Please select a stock"))

        shares = parse_number(state.shares)
        if shares < 0:
            issues.append(_error(
                "shares", "Shares cannot be negative", issue_type="invalid_value",
            ))
        elif shares == 0 and self._requires_shares(state, snapshot):
            issues.append(_error("shares", "Shares required"))

        if parse_number(state.price_per_share) < 0:
            issues.append(_error(
                "price_per_share",
                "Price per share cannot be negative",
                issue_type="invalid_value",
            ))

        for side in (Side.FROM, Side.TO):
            draft = state.draft_for(side)
            if draft is not None and not draft.name:
                issues.append(_error(
                    f"{side.value}_new_asset",
                    "Asset name is required",
                ))

        if category == CategoryId.INTEREST and not state.no_linked_account:
            if state.from_draft is not None and parse_number(state.deposit_balance) <= 0:
                issues.append(_error(
                    "deposit_balance",
                    "Enter the balance held in the new deposit",
                ))
            if requires_maturity_choice(state, snapshot) and state.deposit_matured is None:
                issues.append(_error(
                    "deposit_matured",
                    "Select whether the deposit has matured",
                ))

        if preset.is_debt_origination and not state.debt_name:
            issues.append(_error("debt_name", "Debt name is required"))

        if (
            preset.from_endpoint.kind == EndpointKind.USER_SELECT
            and state.from_mode == EndpointMode.EXTERNAL
            and category == CategoryId.OTHER
            and not state.from_external_name
        ):
            issues.append(_error("from_external_name", "Source name required"))

        if state.recurring_only:
            if category not in RECURRING_ONLY_CATEGORIES:
                issues.append(_error(
                    "recurring_only",
                    f"{preset.label} cannot be scheduled without recording it",
                    issue_type="invalid_value",
                ))
            elif state.recurring_frequency == RecurringFrequency.NONE:
                issues.append(_error(
                    "recurring_frequency",
                    "Choose how often this repeats",
                ))

        return len(issues) == 0, issues

    def _requires_shares(self, state: FormState, snapshot: DataSnapshot) -> bool:
        """Ticker buys, DRIP and sales of share-based holdings move shares."""
        if is_ticker_invest(state) or state.category == CategoryId.REINVEST:
            return True
        if state.category == CategoryId.SELL:
            source = snapshot.asset(state.from_asset_id)
            return source is not None and source.type.is_share_based
        return False

    def _required_sides(self, state: FormState, preset: Preset) -> list[Side]:
        if state.category == CategoryId.INTEREST and state.no_linked_account:
            return []

        sides = []
        from_ep, to_ep = preset.from_endpoint, preset.to_endpoint
        if from_ep.is_asset_typed and from_ep.required and state.from_mode == EndpointMode.ASSET:
            sides.append(Side.FROM)
        if (
            to_ep.is_asset_typed
            and to_ep.required
            and state.to_mode == EndpointMode.ASSET
            and not is_ticker_invest(state)
        ):
            sides.append(Side.TO)
        return sides

    def check_endpoints(
        self,
        state: FormState,
        snapshot: DataSnapshot,
        from_id: Optional[str],
        to_id: Optional[str],
    ) -> list[ValidationIssue]:
        """
        Stage 2: Endpoint validation against explicit asset ids.

        A side with a pending inline draft counts as resolved.
        """
        preset = preset_for(state.category)
        issues: list[ValidationIssue] = []
        source = snapshot.asset(from_id)
        target = snapshot.asset(to_id)
        resolved = {
            Side.FROM: state.from_draft is not None or (
                source is not None and preset.from_endpoint.accepts(source)
            ),
            Side.TO: state.to_draft is not None or (
                target is not None and preset.to_endpoint.accepts(target)
            ),
        }

        for side in self._required_sides(state, preset):
            if resolved[side]:
                continue
            label = preset.labels.from_label if side == Side.FROM else preset.labels.to_label
            issues.append(_error(
                f"{side.value}_asset",
                f"Please select {label.lower()}",
                fix="Pick an existing account or create a new one",
            ))

        if (
            preset.to_endpoint.kind != EndpointKind.SAME_AS_FROM
            and from_id is not None
            and from_id == to_id
            and state.from_draft is None
            and state.to_draft is None
        ):
            issues.append(_error(
                "to_asset",
                "Source and destination must be different",
                issue_type="invalid_value",
            ))

        if preset.requires_debt and snapshot.debt(state.debt_id) is None:
            issues.append(_error("debt_id", "Select the debt you are paying"))

        if requires_maturity_choice(state, snapshot) and state.deposit_matured:
            target = snapshot.asset(state.withdraw_to_asset_id)
            if target is None or target.type != AssetType.CASH:
                issues.append(_error("to_asset", "Select cash account"))

        return issues

    def _collect_warnings(
        self,
        state: FormState,
        snapshot: DataSnapshot,
        from_id: Optional[str],
    ) -> list[ValidationIssue]:
        warnings: list[ValidationIssue] = []
        amount = parse_number(state.amount)

        if state.category == CategoryId.PAY_DEBT:
            debt = snapshot.debt(state.debt_id)
            if debt is not None and is_payoff(amount, debt.current_balance):
                warnings.append(_warning(
                    "amount",
                    "payoff",
                    f"This payment pays off {debt.name}",
                ))

        if state.category == CategoryId.SELL:
            source = snapshot.asset(from_id)
            shares = parse_number(state.shares)
            if source is not None and source.is_share_based and shares > source.balance:
                warnings.append(_warning(
                    "shares",
                    "oversell",
                    f"Selling {shares:g} shares but only {source.balance:g} are held",
                ))

        if requires_maturity_choice(state, snapshot) and state.deposit_matured:
            target = snapshot.asset(state.withdraw_to_asset_id)
            if target is not None and target.currency != state.currency.upper():
                warnings.append(_warning(
                    "to_asset",
                    "cross_currency",
                    f"The matured deposit will be converted from "
                    f"{state.currency.upper()} to {target.currency}",
                ))

        return warnings

    def effective_endpoints(
        self,
        state: FormState,
        snapshot: DataSnapshot,
    ) -> tuple[Optional[str], Optional[str]]:
        """The asset ids a submission of this form would use right now."""
        preset = preset_for(state.category)
        from_id, to_id = finalize_endpoints(
            preset,
            snapshot.assets,
            state.from_asset_id,
            state.to_asset_id,
            from_explicit=state.from_explicit,
            to_explicit=state.to_explicit,
        )
        if state.from_mode == EndpointMode.EXTERNAL:
            from_id = None
        if state.to_mode == EndpointMode.EXTERNAL:
            to_id = None
        return from_id, to_id

    def warnings(self, state: FormState, snapshot: DataSnapshot) -> list[str]:
        """Non-blocking warnings for live display while the form is edited."""
        if state.category is None:
            return []
        from_id, _ = self.effective_endpoints(state, snapshot)
        return [w.message for w in self._collect_warnings(state, snapshot, from_id)]

    def validate(
        self,
        state: FormState,
        snapshot: DataSnapshot,
    ) -> ValidationResult:
        """
        Run the full two-stage validation.

        Raises:
            ValueError: If no category has been selected
        """
        if state.category is None:
            raise ValueError("No category selected")

        preset = preset_for(state.category)
        all_issues: list[ValidationIssue] = []

        # Stage 1: Field validation
        fields_valid, field_issues = self._validate_fields(state, preset, snapshot)
        all_issues.extend(field_issues)

        # Stage 2: Endpoint validation
        from_id, to_id = self.effective_endpoints(state, snapshot)
        endpoint_issues = self.check_endpoints(state, snapshot, from_id, to_id)
        all_issues.extend(endpoint_issues)
        endpoints_valid = len(endpoint_issues) == 0

        all_issues.extend(self._collect_warnings(state, snapshot, from_id))
        warnings = [i.message for i in all_issues if i.severity == "warning"]

        return ValidationResult(
            category=preset.id,
            fields_valid=fields_valid,
            endpoints_valid=endpoints_valid,
            is_valid=fields_valid and endpoints_valid,
            issues=all_issues,
            warnings=warnings,
        )

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """
        Summarize a validation result for display next to the submit button.
        """
        if result.is_valid and not result.warnings:
            return "✅ Ready to record."

        lines = []

        if not result.is_valid:
            lines.append("❌ Some details are missing or invalid:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please note:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        if result.is_valid:
            lines.append("")
            lines.append("You can still record this transaction.")
        else:
            lines.append("")
            lines.append("Please fix the issues above before recording.")

        return "\n".join(lines)
