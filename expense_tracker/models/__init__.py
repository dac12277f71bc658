"""
Data Models Package

This package contains all Pydantic models used in the Expense Tracker.
All data flowing through the system must conform to these schemas.
"""

from expense_tracker.models.expense import (
    DailyPoint,
    Expense,
    ExpenseCategory,
    ExpenseQuery,
    ExpenseView,
    SortOption,
    SummaryStats,
    Timeframe,
    ValidationIssue,
    ValidationResult,
    from_cents,
    to_cents,
)
from expense_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Expense models
    "DailyPoint",
    "Expense",
    "ExpenseCategory",
    "ExpenseQuery",
    "ExpenseView",
    "SortOption",
    "SummaryStats",
    "Timeframe",
    "ValidationIssue",
    "ValidationResult",
    "from_cents",
    "to_cents",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
