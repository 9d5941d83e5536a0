"""
Main Orchestrator for Net Worth

This module ties the components together and exposes the end-to-end
flow for recording a transaction:

    open form -> pick category -> fill fields -> submit -> refreshed snapshot

DESIGN DECISION: Every form shares one repository, one market data
source and one audit logger, but gets its own controller. A form never
sees another form's half-typed state.
"""

from typing import Any, Optional, Union

import structlog

from networth.audit import AuditLogger
from networth.config import EngineSettings, get_settings
from networth.form import FlowFormController
from networth.models.form import FormPhase, FormState, Side
from networth.presets import CategoryId
from networth.services.market import MarketDataInterface, StaticMarketData
from networth.services.storage import (
    AuditStorageInterface,
    InMemoryAuditStorage,
    InMemoryPortfolioStorage,
    PortfolioStorageInterface,
)


logger = structlog.get_logger(__name__)


class NetWorthApp:
    """
    Entry point for recording transactions.

    Holds the shared services and hands out form controllers.
    """

    def __init__(
        self,
        storage: PortfolioStorageInterface,
        market: MarketDataInterface,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[EngineSettings] = None,
    ):
        self.storage = storage
        self.market = market
        self.audit_logger = audit_logger or AuditLogger()
        self.settings = settings or get_settings().engine

    def new_form(self) -> FlowFormController:
        """A blank form. Call refresh() on it before use."""
        return FlowFormController(
            storage=self.storage,
            market=self.market,
            audit_logger=self.audit_logger,
            settings=self.settings,
        )

    async def open_form(
        self,
        category: Union[CategoryId, str, None] = None,
    ) -> FlowFormController:
        """A form loaded with the current snapshot, optionally on a category."""
        form = self.new_form()
        await form.refresh()
        if category is not None:
            await form.select_category(category)
        return form

    async def record(
        self,
        category: Union[CategoryId, str],
        fields: dict[str, Any],
        new_assets: Optional[dict[Side, dict[str, Any]]] = None,
    ) -> FormState:
        """
        Fill and submit a form in one call.

        Args:
            category: Category id
            fields: Field name -> value, applied in order
            new_assets: Side -> draft fields for assets to create inline

        Returns:
            The form state after submission. Check `phase`, `errors` and
            `submit_error` to see whether it was recorded.
        """
        form = await self.open_form(category)
        try:
            for side, draft_fields in (new_assets or {}).items():
                if form.state.draft_for(side) is None:
                    await form.begin_asset_creation(side)
                for name, value in draft_fields.items():
                    await form.update_new_asset(side, name, value)

            for name, value in fields.items():
                await form.update_field(name, value)
            await form.wait_for_lookups()

            state = await form.submit()
        finally:
            form.close()

        logger.info(
            "transaction_recorded" if state.phase == FormPhase.SUCCESS
            else "transaction_not_recorded",
            category=str(category),
            phase=state.phase.value,
        )
        return state


def create_app_components(
    storage: Optional[PortfolioStorageInterface] = None,
    market: Optional[MarketDataInterface] = None,
    use_audit_storage: bool = True,
) -> tuple[NetWorthApp, Optional[AuditStorageInterface]]:
    """
    Factory function to create all application components.

    Args:
        storage: Portfolio repository. Defaults to an empty in-memory one.
        market: Market data source. Defaults to an empty static table.
        use_audit_storage: Whether audit events are also kept in storage.
                    Set to False to only log locally.

    Returns:
        (app, audit_storage)
    """
    audit_storage = InMemoryAuditStorage() if use_audit_storage else None
    audit_logger = AuditLogger(audit_storage)

    app = NetWorthApp(
        storage=storage or InMemoryPortfolioStorage(),
        market=market or StaticMarketData(),
        audit_logger=audit_logger,
    )
    return app, audit_storage
