"""
Audit Logger

Records what each form submission did: which assets it created or
reused, which flows, debts and schedules it wrote, and what it rolled
back when a later write failed. Discarded lookups and degraded currency
conversions are recorded too.

Audit logging never breaks a submission. A failed storage append is
logged and reported as False, nothing more.
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from networth.config import get_settings
from networth.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from networth.services.storage import AuditStorageInterface


def configure_logging() -> None:
    """Configure structlog for local logging from LoggingSettings."""
    settings = get_settings().logging

    logging.basicConfig(format="%(message)s", level=settings.level)

    renderer = (
        structlog.processors.JSONRenderer()
        if settings.json_output
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()


_LOG_METHODS = {
    AuditSeverity.DEBUG: "debug",
    AuditSeverity.INFO: "info",
    AuditSeverity.WARNING: "warning",
    AuditSeverity.ERROR: "error",
    AuditSeverity.CRITICAL: "critical",
}


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence), when one is configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("networth.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Write the event to the local log and, when configured, to storage.

        Returns False only when the storage append failed.
        """
        emit = getattr(self._logger, _LOG_METHODS[event.severity])
        emit("audit_event", **event.to_log_dict())

        if self._storage is None:
            return True
        try:
            return await self._storage.append_event(event)
        except Exception as e:
            self._logger.error(
                "audit_storage_failed",
                error=str(e),
                event_id=str(event.event_id),
            )
            return False

    async def log_category_selected(
        self,
        category: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log category selection."""
        await self.log(AuditEventBuilder.category_selected(category, correlation_id))

    async def log_validation_failed(
        self,
        category: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log validation failure."""
        event = AuditEventBuilder.validation_failed(
            category=category,
            issues=issues,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_asset_created(
        self,
        asset_id: str,
        name: str,
        asset_type: str,
        correlation_id: UUID,
    ) -> None:
        """Log inline asset creation."""
        event = AuditEventBuilder.asset_created(
            asset_id=asset_id,
            name=name,
            asset_type=asset_type,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_asset_reused(
        self,
        asset_id: str,
        name: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.asset_reused(asset_id, name, correlation_id))

    async def log_flow_created(
        self,
        flow_id: str,
        category: str,
        amount: float,
        currency: str,
        correlation_id: UUID,
    ) -> None:
        """Log flow creation."""
        event = AuditEventBuilder.flow_created(
            flow_id=flow_id,
            category=category,
            amount=amount,
            currency=currency,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_debt_created(
        self,
        debt_id: str,
        name: str,
        principal: float,
        correlation_id: UUID,
    ) -> None:
        """Log debt creation."""
        event = AuditEventBuilder.debt_created(
            debt_id=debt_id,
            name=name,
            principal=principal,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_schedule_created(
        self,
        schedule_id: str,
        frequency: str,
        next_run_date: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.schedule_created(
            schedule_id=schedule_id,
            frequency=frequency,
            next_run_date=next_run_date,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_submission_succeeded(self, category: str, correlation_id: UUID) -> None:
        await self.log(AuditEventBuilder.submission_succeeded(category, correlation_id))

    async def log_submission_failed(
        self,
        category: str,
        error_type: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log a failed submission."""
        event = AuditEventBuilder.submission_failed(
            category=category,
            error_type=error_type,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_rollback(
        self,
        asset_ids: list[str],
        flow_ids: list[str],
        correlation_id: UUID,
        failures: Optional[list[str]] = None,
    ) -> None:
        """Log a rollback of a failed submission."""
        event = AuditEventBuilder.rollback_performed(
            asset_ids=asset_ids,
            flow_ids=flow_ids,
            correlation_id=correlation_id,
            failures=failures,
        )
        await self.log(event)

    async def log_lookup_discarded(self, field: str, generation: int, current: int) -> None:
        await self.log(AuditEventBuilder.lookup_discarded(field, generation, current))

    async def log_conversion_degraded(self, source: str, target: str, amount: float) -> None:
        await self.log(AuditEventBuilder.conversion_degraded(source, target, amount))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        event = AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., one submission).
    Pass it through all subsequent operations.
    """
    return uuid4()
