"""Tests for the in-memory repository and its balance bookkeeping."""

import asyncio
import pytest
from datetime import date

from networth.models.portfolio import (
    Asset,
    AssetType,
    CreateAssetData,
    CreateDebtData,
    CreateFlowData,
    CreateRecurringScheduleData,
    Currency,
    Debt,
    DebtFilter,
    DebtType,
    FlowType,
    RecurringFrequency,
    UpdateAssetData,
)
from networth.services.storage import (
    DuplicateError,
    InMemoryPortfolioStorage,
    NotFoundError,
    StorageError,
)


DAY = date(2024, 5, 1)


def _flow(**kwargs) -> CreateFlowData:
    kwargs.setdefault("date", DAY)
    return CreateFlowData(**kwargs)


@pytest.fixture
def cash():
    return Asset(name="Checking", type=AssetType.CASH, balance=1000)


@pytest.fixture
def sgd_cash():
    return Asset(name="DBS Savings", type=AssetType.CASH, currency="SGD", balance=0)


@pytest.fixture
def stock():
    return Asset(name="Apple", type=AssetType.STOCK, balance=10, ticker="AAPL")


@pytest.fixture
def house():
    return Asset(name="House", type=AssetType.REAL_ESTATE, balance=500000)


@pytest.fixture
def loan():
    return Debt(
        name="Car Loan",
        debt_type=DebtType.AUTO_LOAN,
        principal=10000,
        current_balance=300,
    )


@pytest.fixture
def repo(cash, sgd_cash, stock, house, loan):
    return InMemoryPortfolioStorage(
        assets=[cash, sgd_cash, stock, house],
        debts=[loan],
        currencies=[Currency(code="USD", rate=1.0), Currency(code="SGD", rate=1.35)],
    )


class TestAssets:
    """Tests for asset operations."""

    def test_create_asset_starts_at_zero(self, repo):
        """Test that new assets have no balance."""
        asset = asyncio.run(repo.create_asset(CreateAssetData(name="Wallet", type=AssetType.CASH)))
        assert asset.balance == 0
        assert asset.id in repo.assets

    def test_duplicate_name_rejected(self, repo):
        """Test that names are unique regardless of case."""
        with pytest.raises(DuplicateError):
            asyncio.run(repo.create_asset(CreateAssetData(name="checking", type=AssetType.CASH)))

    def test_update_asset_merges_metadata(self, repo, cash):
        """Test that metadata updates merge key by key."""
        async def run():
            await repo.update_asset(cash.id, UpdateAssetData(metadata={"a": 1}))
            return await repo.update_asset(cash.id, UpdateAssetData(metadata={"b": 2}))

        updated = asyncio.run(run())
        assert updated.metadata == {"a": 1, "b": 2}
        assert updated.name == "Checking"

    def test_update_missing_asset(self, repo):
        """Test that unknown ids raise NotFoundError."""
        with pytest.raises(NotFoundError):
            asyncio.run(repo.update_asset("missing", UpdateAssetData(name="x")))


class TestFlowBookkeeping:
    """Tests for balance movements applied by flows."""

    def test_income_credits_destination(self, repo, cash):
        """Test that salary lands in cash."""
        asyncio.run(repo.create_flow(_flow(
            type=FlowType.INCOME, category="salary", amount=2500, to_asset_id=cash.id,
        )))
        assert repo.assets[cash.id].balance == 3500

    def test_income_never_debits_source(self, repo, house, cash):
        """Test that rent does not reduce the property."""
        asyncio.run(repo.create_flow(_flow(
            type=FlowType.INCOME, category="rental", amount=2000,
            from_asset_id=house.id, to_asset_id=cash.id,
        )))
        assert repo.assets[house.id].balance == 500000
        assert repo.assets[cash.id].balance == 3000

    def test_invest_moves_cash_and_shares(self, repo, cash, stock):
        """Test that buying debits cash and adds shares."""
        asyncio.run(repo.create_flow(_flow(
            type=FlowType.TRANSFER, category="invest", amount=750,
            from_asset_id=cash.id, to_asset_id=stock.id, metadata={"shares": 5},
        )))
        assert repo.assets[cash.id].balance == 250
        assert repo.assets[stock.id].balance == 15

    def test_oversell_clamps_at_zero(self, repo, stock, cash):
        """Test that selling more shares than held empties the position."""
        asyncio.run(repo.create_flow(_flow(
            type=FlowType.TRANSFER, category="sell", amount=3000,
            from_asset_id=stock.id, to_asset_id=cash.id, metadata={"shares": 20},
        )))
        assert repo.assets[stock.id].balance == 0
        assert repo.assets[cash.id].balance == 4000

    def test_delete_flow_restores_clamped_balance(self, repo, stock, cash):
        """Test that deleting a clamped sale restores the exact prior balance."""
        async def run():
            flow = await repo.create_flow(_flow(
                type=FlowType.TRANSFER, category="sell", amount=3000,
                from_asset_id=stock.id, to_asset_id=cash.id, metadata={"shares": 20},
            ))
            return await repo.delete_flow(flow.id)

        assert asyncio.run(run()) is True
        assert repo.assets[stock.id].balance == 10
        assert repo.assets[cash.id].balance == 1000
        assert repo.flows == {}

    def test_self_flow_only_credits(self, repo, stock):
        """Test that a reinvestment adds shares without removing any."""
        asyncio.run(repo.create_flow(_flow(
            type=FlowType.INCOME, category="reinvest", amount=50,
            from_asset_id=stock.id, to_asset_id=stock.id, metadata={"shares": 0.5},
        )))
        assert repo.assets[stock.id].balance == 10.5

    def test_cross_currency_conversion(self, repo, cash, sgd_cash):
        """Test that each side moves in its own currency."""
        asyncio.run(repo.create_flow(_flow(
            type=FlowType.TRANSFER, category="transfer", amount=100, currency="USD",
            from_asset_id=cash.id, to_asset_id=sgd_cash.id,
        )))
        assert repo.assets[cash.id].balance == 900
        assert repo.assets[sgd_cash.id].balance == pytest.approx(135)

    def test_missing_rate_rejects_flow(self, repo, cash):
        """Test that an unknown currency never reaches a balance."""
        with pytest.raises(StorageError):
            asyncio.run(repo.create_flow(_flow(
                type=FlowType.INCOME, amount=100, currency="JPY", to_asset_id=cash.id,
            )))
        assert repo.assets[cash.id].balance == 1000
        assert repo.flows == {}

    def test_mark_as_sold_empties_source(self, repo, house, cash):
        """Test that selling a property removes all of its value."""
        asyncio.run(repo.create_flow(_flow(
            type=FlowType.TRANSFER, category="sell", amount=450000,
            from_asset_id=house.id, to_asset_id=cash.id,
            metadata={"mark_as_sold": True, "realized_pl": -50000},
        )))
        assert repo.assets[house.id].balance == 0
        assert repo.assets[house.id].metadata["total_realized_pl"] == -50000

    def test_debt_payment_clamps(self, repo, cash, loan):
        """Test that overpaying a debt leaves exactly zero."""
        asyncio.run(repo.create_flow(_flow(
            type=FlowType.EXPENSE, category="pay_debt", amount=500,
            from_asset_id=cash.id, debt_id=loan.id,
        )))
        assert repo.debts[loan.id].current_balance == 0
        assert repo.assets[cash.id].balance == 500

    def test_unknown_asset_rejected(self, repo):
        """Test that referencing a missing asset raises NotFoundError."""
        with pytest.raises(NotFoundError):
            asyncio.run(repo.create_flow(_flow(
                type=FlowType.INCOME, amount=10, to_asset_id="missing",
            )))


class TestDebts:
    """Tests for debt creation."""

    def test_create_debt_with_disbursement(self, repo, cash):
        """Test that loan proceeds land in the chosen account."""
        debt = asyncio.run(repo.create_debt(CreateDebtData(
            name="Personal Loan",
            debt_type=DebtType.PERSONAL_LOAN,
            principal=5000,
            disburse_to_asset_id=cash.id,
        )))
        assert debt.current_balance == 5000
        assert repo.assets[cash.id].balance == 6000

        disbursement = next(iter(repo.flows.values()))
        assert disbursement.debt_id == debt.id
        assert disbursement.category == "add_loan"
        assert disbursement.description == "Loan disbursement: Personal Loan"

    def test_create_debt_does_not_reduce_itself(self, repo, cash):
        """Test that the disbursement flow does not pay the new debt down."""
        debt = asyncio.run(repo.create_debt(CreateDebtData(
            name="Personal Loan",
            debt_type=DebtType.PERSONAL_LOAN,
            principal=5000,
            disburse_to_asset_id=cash.id,
        )))
        assert repo.debts[debt.id].current_balance == 5000

    def test_create_debt_missing_property(self, repo):
        """Test that a debt against an unknown property is rejected."""
        with pytest.raises(NotFoundError):
            asyncio.run(repo.create_debt(CreateDebtData(
                name="Mortgage",
                debt_type=DebtType.MORTGAGE,
                principal=300000,
                property_asset_id="missing",
            )))
        assert len(repo.debts) == 1

    def test_list_debts_filter(self, repo, loan):
        """Test filtering paid-off debts."""
        async def run():
            await repo.create_flow(_flow(
                type=FlowType.EXPENSE, amount=300, debt_id=loan.id,
            ))
            return await repo.list_debts(DebtFilter(include_paid_off=False))

        assert asyncio.run(run()) == []


class TestFailureInjection:
    """Tests for fail_next and schedules."""

    def test_fail_next_raises_once(self, repo):
        """Test that an injected failure only affects one call."""
        repo.fail_next("list_assets")
        with pytest.raises(StorageError):
            asyncio.run(repo.list_assets())
        assert len(asyncio.run(repo.list_assets())) == 4

    def test_create_schedule(self, repo, cash):
        """Test that schedules store their flow template."""
        template = _flow(type=FlowType.INCOME, amount=100, to_asset_id=cash.id)
        schedule = asyncio.run(repo.create_recurring_schedule(CreateRecurringScheduleData(
            frequency=RecurringFrequency.MONTHLY,
            next_run_date=date(2024, 6, 1),
            flow_template=template,
        )))
        assert schedule.id in repo.schedules
        assert schedule.flow_template.amount == 100
        # Scheduling alone never moves money
        assert repo.assets[cash.id].balance == 1000


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
