"""Shared fixtures: a small portfolio, a static market and a wired-up form."""

import pytest

from networth.audit import AuditLogger
from networth.config import EngineSettings
from networth.form import FlowFormController
from networth.models.market import StockQuote, TickerSymbol
from networth.models.portfolio import (
    Asset,
    AssetType,
    Currency,
    Debt,
    DebtType,
    TaxSettings,
)
from networth.services.market import StaticMarketData
from networth.services.storage import InMemoryAuditStorage, InMemoryPortfolioStorage


@pytest.fixture
def settings():
    return EngineSettings(
        ticker_search_debounce_ms=0,
        lookup_retry_wait_seconds=0,
    )


@pytest.fixture
def checking():
    return Asset(name="Checking", type=AssetType.CASH, currency="USD", balance=5000)


@pytest.fixture
def apple():
    return Asset(
        name="Apple Inc.",
        type=AssetType.STOCK,
        currency="USD",
        balance=10,
        ticker="AAPL",
        market="US",
    )


@pytest.fixture
def card_debt():
    return Debt(
        name="Credit Card",
        debt_type=DebtType.CREDIT_CARD,
        currency="USD",
        principal=1000,
        current_balance=400,
    )


@pytest.fixture
def currencies():
    return [
        Currency(code="USD", rate=1.0),
        Currency(code="SGD", rate=1.35),
        Currency(code="EUR", rate=0.9),
    ]


@pytest.fixture
def storage(checking, apple, card_debt, currencies):
    return InMemoryPortfolioStorage(
        assets=[checking, apple],
        debts=[card_debt],
        currencies=currencies,
        tax_settings=TaxSettings(dividend_withholding_rate=0.15),
    )


@pytest.fixture
def market():
    return StaticMarketData(
        symbols={
            "US": [
                TickerSymbol(symbol="AAPL", name="Apple Inc.", symbol_type="stock"),
                TickerSymbol(symbol="MSFT", name="Microsoft Corporation", symbol_type="stock"),
                TickerSymbol(symbol="VOO", name="Vanguard S&P 500 ETF", symbol_type="ETF"),
            ],
            "SG": [
                TickerSymbol(symbol="D05", name="DBS Group", symbol_type="stock"),
            ],
        },
        quotes={
            "AAPL": StockQuote(price=150.0),
            "MSFT": StockQuote(price=400.0),
            "VOO": StockQuote(price=450.0),
        },
    )


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def make_form(storage, market, audit_storage, settings):
    """Build a controller; call `await form.refresh()` inside the test loop."""
    def _make(portfolio=None, market_data=None):
        return FlowFormController(
            storage=portfolio or storage,
            market=market_data or market,
            audit_logger=AuditLogger(audit_storage),
            settings=settings,
        )
    return _make
