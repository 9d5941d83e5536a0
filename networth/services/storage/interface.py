"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Plug in any persistence backend (a hosted database, a REST API)
2. Use in-memory storage for testing
3. Keep the flow engine decoupled from storage implementation

The repository owns balance bookkeeping: creating a flow applies its
movements to the assets and debt it touches, deleting a flow reverses
them. The engine never writes balances itself.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from networth.models.audit import AuditEvent
from networth.models.portfolio import (
    Asset,
    CreateAssetData,
    CreateDebtData,
    CreateFlowData,
    CreateRecurringScheduleData,
    Currency,
    Debt,
    DebtFilter,
    Flow,
    RecurringSchedule,
    TaxSettings,
    UpdateAssetData,
    UpdateDebtData,
)


class PortfolioStorageInterface(ABC):
    """
    Abstract interface for asset, debt and flow storage.

    Any storage implementation must implement these methods.
    """

    # ------------------------------------------------------------------
    # Assets
    # ------------------------------------------------------------------

    @abstractmethod
    async def list_assets(self) -> list[Asset]:
        """List all of the user's assets."""
        pass

    @abstractmethod
    async def create_asset(self, data: CreateAssetData) -> Asset:
        """
        Create an asset with a zero balance.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def update_asset(self, asset_id: str, patch: UpdateAssetData) -> Asset:
        """
        Update fields of an asset. Unset fields are left alone;
        metadata is merged key by key.

        Raises:
            NotFoundError: If the asset doesn't exist
        """
        pass

    @abstractmethod
    async def delete_asset(self, asset_id: str) -> bool:
        """
        Delete an asset. Used to roll back inline creations.

        Returns:
            True if an asset was deleted
        """
        pass

    # ------------------------------------------------------------------
    # Debts
    # ------------------------------------------------------------------

    @abstractmethod
    async def list_debts(self, filter: Optional[DebtFilter] = None) -> list[Debt]:
        """List debts, optionally filtered."""
        pass

    @abstractmethod
    async def create_debt(self, data: CreateDebtData) -> Debt:
        """
        Create a debt with current_balance = principal.

        When data.disburse_to_asset_id is set, the loan proceeds are
        recorded as an income flow into that asset in the same write.

        Raises:
            NotFoundError: If the disbursement or property asset doesn't exist
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def update_debt(self, debt_id: str, patch: UpdateDebtData) -> Debt:
        """
        Update fields of a debt.

        Raises:
            NotFoundError: If the debt doesn't exist
        """
        pass

    # ------------------------------------------------------------------
    # Flows
    # ------------------------------------------------------------------

    @abstractmethod
    async def create_flow(self, data: CreateFlowData) -> Flow:
        """
        Record a flow and apply its balance movements.

        Raises:
            NotFoundError: If a referenced asset or debt doesn't exist
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete_flow(self, flow_id: str) -> bool:
        """
        Delete a flow and reverse its balance movements.

        Returns:
            True if a flow was deleted
        """
        pass

    @abstractmethod
    async def list_invest_flows_for_asset(
        self,
        asset_id: str,
        limit: int = 1000,
    ) -> list[Flow]:
        """
        Invest flows whose destination is the asset, oldest first.

        Used to compute average cost basis.
        """
        pass

    # ------------------------------------------------------------------
    # Schedules and reference data
    # ------------------------------------------------------------------

    @abstractmethod
    async def create_recurring_schedule(
        self,
        data: CreateRecurringScheduleData,
    ) -> RecurringSchedule:
        """Create a recurring schedule from a flow template."""
        pass

    @abstractmethod
    async def list_currencies(self) -> list[Currency]:
        """All currencies with their rates relative to the reference unit."""
        pass

    @abstractmethod
    async def get_user_tax_settings(self) -> TaxSettings:
        """The user's tax preferences (defaults when never saved)."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Args:
            event: The audit event to log

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one submission).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
