"""
Data Models Package

This package contains all Pydantic models used by the Net Worth engine.
All data flowing through the engine must conform to these schemas.
"""

from networth.models.portfolio import (
    SHARE_BASED_TYPES,
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
    Flow,
    FlowType,
    PaymentPeriod,
    RecurringFrequency,
    RecurringSchedule,
    TaxSettings,
    UpdateAssetData,
    UpdateDebtData,
)
from networth.models.market import StockQuote, TickerSymbol
from networth.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Portfolio models
    "SHARE_BASED_TYPES",
    "Asset",
    "AssetType",
    "CreateAssetData",
    "CreateDebtData",
    "CreateFlowData",
    "CreateRecurringScheduleData",
    "Currency",
    "Debt",
    "DebtFilter",
    "DebtType",
    "Flow",
    "FlowType",
    "PaymentPeriod",
    "RecurringFrequency",
    "RecurringSchedule",
    "TaxSettings",
    "UpdateAssetData",
    "UpdateDebtData",
    # Market models
    "StockQuote",
    "TickerSymbol",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]

# Form models live in networth.models.form; they depend on the preset
# registry, which itself depends on the portfolio models above.
