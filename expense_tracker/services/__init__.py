"""Services package."""

from expense_tracker.services.storage import (
    ExpenseDatabase,
    ExpenseStorageInterface,
    InvalidRange,
    SqliteExpenseStorage,
    StorageError,
    StorageFault,
    get_expense_storage,
)

__all__ = [
    "ExpenseDatabase",
    "ExpenseStorageInterface",
    "InvalidRange",
    "SqliteExpenseStorage",
    "StorageError",
    "StorageFault",
    "get_expense_storage",
]
