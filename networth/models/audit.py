"""
Audit Models for Net Worth

Event types and a builder for every step of recording a flow: category
selection, validation, each write of a submission, rollbacks, stale
lookups and conversions shown without a rate.

Audit events are append-only.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Each step of recording a flow has its own event type.
    """
    # Form
    CATEGORY_SELECTED = "category_selected"
    VALIDATION_FAILED = "validation_failed"
    LOOKUP_DISCARDED = "lookup_discarded"

    # Persistence
    ASSET_CREATED = "asset_created"
    ASSET_REUSED = "asset_reused"
    FLOW_CREATED = "flow_created"
    DEBT_CREATED = "debt_created"
    SCHEDULE_CREATED = "schedule_created"
    SUBMISSION_SUCCEEDED = "submission_succeeded"
    SUBMISSION_FAILED = "submission_failed"
    ROLLBACK_PERFORMED = "rollback_performed"

    # Conversion
    CONVERSION_DEGRADED = "conversion_degraded"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    One entry in the audit trail.

    Events of a single submission share a correlation id, so the assets
    and flows it wrote (and any it rolled back) can be read together.
    """

    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Subject: 'asset', 'flow', 'debt' or 'schedule'
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    correlation_id: Optional[UUID] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    error_code: Optional[str] = None
    error_message: Optional[str] = None
    is_user_action: bool = False

    def to_log_dict(self) -> dict:
        """Flatten for structlog. Enums and ids become plain strings."""
        data = self.model_dump(mode="json", exclude_none=True)
        data.setdefault("correlation_id", None)
        return data


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.flow_created(flow_id, "salary", 5000.0, "USD", cid)
        event = AuditEventBuilder.rollback_performed(["a1"], ["f1"], cid)
    """

    @staticmethod
    def category_selected(category: str, correlation_id: Optional[UUID] = None) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_SELECTED,
            correlation_id=correlation_id,
            description=f"Category selected: {category}",
            details={"category": category},
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(
        category: str,
        issues: list[dict],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            correlation_id=correlation_id,
            description=f"Validation failed for {category} with {len(issues)} issues",
            details={
                "category": category,
                "issues": issues,
            },
        )

    @staticmethod
    def asset_created(
        asset_id: str,
        name: str,
        asset_type: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ASSET_CREATED,
            entity_type="asset",
            entity_id=asset_id,
            correlation_id=correlation_id,
            description=f"Asset created: {name}",
            details={"name": name, "type": asset_type},
        )

    @staticmethod
    def asset_reused(asset_id: str, name: str, correlation_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ASSET_REUSED,
            entity_type="asset",
            entity_id=asset_id,
            correlation_id=correlation_id,
            description=f"Using existing asset: {name}",
            details={"name": name},
        )

    @staticmethod
    def flow_created(
        flow_id: str,
        category: str,
        amount: float,
        currency: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FLOW_CREATED,
            entity_type="flow",
            entity_id=flow_id,
            correlation_id=correlation_id,
            description=f"Flow recorded: {category} {amount:,.2f} {currency}",
            details={
                "category": category,
                "amount": amount,
                "currency": currency,
            },
        )

    @staticmethod
    def debt_created(
        debt_id: str,
        name: str,
        principal: float,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DEBT_CREATED,
            entity_type="debt",
            entity_id=debt_id,
            correlation_id=correlation_id,
            description=f"Debt created: {name}",
            details={"name": name, "principal": principal},
        )

    @staticmethod
    def schedule_created(
        schedule_id: str,
        frequency: str,
        next_run_date: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SCHEDULE_CREATED,
            entity_type="schedule",
            entity_id=schedule_id,
            correlation_id=correlation_id,
            description=f"Recurring schedule created: {frequency}",
            details={"frequency": frequency, "next_run_date": next_run_date},
        )

    @staticmethod
    def submission_succeeded(category: str, correlation_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUBMISSION_SUCCEEDED,
            correlation_id=correlation_id,
            description=f"Submission succeeded: {category}",
            details={"category": category},
            is_user_action=True,
        )

    @staticmethod
    def submission_failed(
        category: str,
        error_type: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SUBMISSION_FAILED,
            severity=AuditSeverity.ERROR,
            correlation_id=correlation_id,
            description=f"Submission failed: {category}",
            error_code=error_type,
            error_message=error_message,
            details={"category": category},
        )

    @staticmethod
    def rollback_performed(
        asset_ids: list[str],
        flow_ids: list[str],
        correlation_id: UUID,
        failures: Optional[list[str]] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ROLLBACK_PERFORMED,
            severity=AuditSeverity.WARNING,
            correlation_id=correlation_id,
            description=(
                f"Rolled back {len(flow_ids)} flows and {len(asset_ids)} assets"
            ),
            details={
                "asset_ids": asset_ids,
                "flow_ids": flow_ids,
                "failures": failures or [],
            },
        )

    @staticmethod
    def lookup_discarded(field: str, generation: int, current: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOOKUP_DISCARDED,
            severity=AuditSeverity.DEBUG,
            description=f"Stale {field} lookup discarded",
            details={"field": field, "generation": generation, "current": current},
        )

    @staticmethod
    def conversion_degraded(source: str, target: str, amount: float) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CONVERSION_DEGRADED,
            severity=AuditSeverity.WARNING,
            description=f"No rate for {source}->{target}, showing unconverted amount",
            details={"source": source, "target": target, "amount": amount},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
