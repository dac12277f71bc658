"""Shared fixtures: a real SQLite store per test, in a temporary directory."""

from decimal import Decimal

import pytest
import pytest_asyncio

from expense_tracker.audit import AuditLogger
from expense_tracker.config import AppSettings, StorageSettings
from expense_tracker.models.expense import Expense, ExpenseCategory
from expense_tracker.orchestrator import ExpenseTracker
from expense_tracker.services.storage import ExpenseDatabase, SqliteExpenseStorage
from expense_tracker.validation import ExpenseValidator


def make_expense(**overrides) -> Expense:
    """Build a valid expense, overriding any field."""
    fields = {
        "name": "Groceries",
        "amount": Decimal("42.50"),
        "category": ExpenseCategory.FOOD,
        "date": "2024-01-01",
        "notes": None,
    }
    fields.update(overrides)
    return Expense(**fields)


@pytest.fixture
def storage_settings(tmp_path) -> StorageSettings:
    return StorageSettings(
        path=str(tmp_path / "expenses.db"),
        operation_timeout_seconds=5.0,
        open_retry_attempts=1,
    )


@pytest.fixture
def app_settings() -> AppSettings:
    return AppSettings(
        max_expense_amount=1000.0,
        future_date_tolerance_days=1,
    )


@pytest_asyncio.fixture
async def storage(storage_settings):
    store = SqliteExpenseStorage(ExpenseDatabase(storage_settings))
    yield store
    await store.close()


@pytest.fixture
def audit_logger() -> AuditLogger:
    return AuditLogger(keep_history=True)


@pytest_asyncio.fixture
async def tracker(storage, app_settings, audit_logger):
    return ExpenseTracker(
        storage=storage,
        validator=ExpenseValidator(app_settings),
        audit_logger=audit_logger,
    )
