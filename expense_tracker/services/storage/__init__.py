"""
Storage Services Package

Provides the abstract Expense Store interface and its SQLite implementation.
"""

from expense_tracker.services.storage.interface import (
    DateBound,
    ExpenseStorageInterface,
    InvalidRange,
    StorageError,
    StorageFault,
    resolve_date_range,
)
from expense_tracker.services.storage.sqlite import (
    ExpenseDatabase,
    SqliteExpenseStorage,
    get_expense_storage,
)

__all__ = [
    # Interfaces
    "DateBound",
    "ExpenseStorageInterface",
    "resolve_date_range",
    # Exceptions
    "InvalidRange",
    "StorageError",
    "StorageFault",
    # SQLite implementation
    "ExpenseDatabase",
    "SqliteExpenseStorage",
    "get_expense_storage",
]
