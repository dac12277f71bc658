"""
Audit Logger

DESIGN DECISION: Every user action that changes stored expenses is logged.
This provides:
1. Traceability of writes and destructive resets
2. Debugging capability when the storage medium faults
3. Correlation IDs to tie together the events of one action

The audit logger:
- Is async so callers await it the same way they await the store
- Never raises: a logging failure must not undo a completed write
- Writes to the structured log only
"""

import logging
import sys
from typing import Optional
from uuid import UUID, uuid4

import structlog

from expense_tracker.config import get_settings
from expense_tracker.models.audit import AuditEvent, AuditEventBuilder


def configure_logging(
    level: Optional[str] = None,
    json_logs: Optional[bool] = None,
    configure_root: bool = False,
) -> None:
    """
    Configure structlog on top of the stdlib logging module.

    Defaults come from AppSettings; explicit arguments win. The root stdlib
    logger belongs to the host application and is only touched when
    `configure_root` is set (create_app_components does this).
    """
    app_settings = get_settings().app
    level = level or app_settings.log_level
    json_logs = app_settings.log_json if json_logs is None else json_logs

    if configure_root:
        logging.basicConfig(
            format="%(message)s",
            stream=sys.stdout,
            level=getattr(logging, level.upper(), logging.INFO),
        )

    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
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


class AuditLogger:
    """
    Central audit logging service.

    Each event becomes one structured log line at the level matching its
    severity. Events are also kept in memory when `keep_history` is set,
    which the tests use to assert on what was audited.
    """

    def __init__(self, keep_history: bool = False):
        self._logger = structlog.get_logger("expense_tracker.audit")
        self._keep_history = keep_history
        self.history: list[AuditEvent] = []

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns True if the event was written.
        """
        log_dict = event.to_log_dict()

        try:
            severity = event.severity.value
            if severity in ("error", "critical"):
                self._logger.error("audit_event", **log_dict)
            elif severity == "warning":
                self._logger.warning("audit_event", **log_dict)
            elif severity == "debug":
                self._logger.debug("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception as e:
            # Don't raise; the action being audited already happened
            self._logger.error(
                "audit_log_failed",
                event_type=event.event_type.value,
                error=str(e),
            )
            return False

        if self._keep_history:
            self.history.append(event)
        return True

    async def log_expense_added(
        self,
        expense_id: int,
        name: str,
        amount: str,
        category: str,
        correlation_id: UUID,
    ) -> None:
        """Log a new expense."""
        event = AuditEventBuilder.expense_added(
            expense_id=expense_id,
            name=name,
            amount=amount,
            category=category,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_expense_updated(
        self,
        expense_id: int,
        amount: str,
        category: str,
        correlation_id: UUID,
    ) -> None:
        """Log an overwrite of an expense."""
        event = AuditEventBuilder.expense_updated(
            expense_id=expense_id,
            amount=amount,
            category=category,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_expense_deleted(
        self,
        expense_id: int,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.expense_deleted(
            expense_id=expense_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_data_cleared(self, correlation_id: UUID) -> None:
        event = AuditEventBuilder.data_cleared(correlation_id=correlation_id)
        await self.log(event)

    async def log_validation_failed(
        self,
        issues: list[dict],
        correlation_id: UUID,
        expense_id: Optional[int] = None,
    ) -> None:
        """Log a rejected write."""
        event = AuditEventBuilder.validation_failed(
            issues=issues,
            correlation_id=correlation_id,
            expense_id=expense_id,
        )
        await self.log(event)

    async def log_query_executed(
        self,
        timeframe: str,
        start: str,
        end: str,
        result_count: int,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.query_executed(
            timeframe=timeframe,
            start=start,
            end=end,
            result_count=result_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_storage_fault(
        self,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
        expense_id: Optional[int] = None,
    ) -> None:
        """Log a failure of the storage medium."""
        event = AuditEventBuilder.storage_fault(
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
            expense_id=expense_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., adding an expense).
    Pass it through all subsequent operations.
    """
    return uuid4()
