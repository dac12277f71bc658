"""
Audit Models for Expense Tracker

Every user action that touches stored expenses is logged as an audit event.
This provides:
1. Traceability of every write and destructive reset
2. Debugging information when the storage medium misbehaves
3. Correlation of the events produced by one user action

DESIGN DECISION: Audit events are emitted to the structured log only.
The expense database holds expenses and nothing else.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Persistence
    EXPENSE_ADDED = "expense_added"
    EXPENSE_UPDATED = "expense_updated"
    EXPENSE_DELETED = "expense_deleted"
    DATA_CLEARED = "data_cleared"

    # Validation
    VALIDATION_FAILED = "validation_failed"

    # Query operations
    QUERY_EXECUTED = "query_executed"

    # System events
    STORAGE_FAULT = "storage_fault"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - which expense is this about?
    expense_id: Optional[int] = Field(
        default=None,
        description="ID of the expense this event relates to"
    )
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate the events of one user action"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "expense_id": self.expense_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.expense_added(expense_id, name, amount, category, correlation_id)
        event = AuditEventBuilder.data_cleared(correlation_id)
    """

    @staticmethod
    def expense_added(
        expense_id: int,
        name: str,
        amount: str,
        category: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_ADDED,
            expense_id=expense_id,
            correlation_id=correlation_id,
            description=f"Expense added: {name} - {amount}",
            details={
                "name": name,
                "amount": amount,
                "category": category,
            },
            is_user_action=True,
        )

    @staticmethod
    def expense_updated(
        expense_id: int,
        amount: str,
        category: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_UPDATED,
            expense_id=expense_id,
            correlation_id=correlation_id,
            description=f"Expense {expense_id} updated",
            details={
                "amount": amount,
                "category": category,
            },
            is_user_action=True,
        )

    @staticmethod
    def expense_deleted(
        expense_id: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_DELETED,
            expense_id=expense_id,
            correlation_id=correlation_id,
            description=f"Expense {expense_id} deleted",
            is_user_action=True,
        )

    @staticmethod
    def data_cleared(correlation_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_CLEARED,
            severity=AuditSeverity.WARNING,
            correlation_id=correlation_id,
            description="All expense data erased",
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(
        issues: list[dict],
        correlation_id: UUID,
        expense_id: Optional[int] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            expense_id=expense_id,
            correlation_id=correlation_id,
            description=f"Validation failed with {len(issues)} issues",
            details={
                "issues": issues,
            },
        )

    @staticmethod
    def query_executed(
        timeframe: str,
        start: str,
        end: str,
        result_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.QUERY_EXECUTED,
            severity=AuditSeverity.DEBUG,
            correlation_id=correlation_id,
            description=f"Query executed: {timeframe} returned {result_count} results",
            details={
                "timeframe": timeframe,
                "start": start,
                "end": end,
                "result_count": result_count,
            },
        )

    @staticmethod
    def storage_fault(
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
        expense_id: Optional[int] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_FAULT,
            severity=AuditSeverity.ERROR,
            expense_id=expense_id,
            correlation_id=correlation_id,
            description=f"Storage fault during {operation}",
            error_message=error_message,
            details={
                "operation": operation,
            },
        )
