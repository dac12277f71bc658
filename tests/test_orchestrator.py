"""
Tests for the ExpenseTracker facade.

Most tests use the real store; storage faults are simulated with an
AsyncMock standing in for the store interface.
"""

import logging
from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from pydantic import ValidationError

from expense_tracker.config import Settings
from expense_tracker.models.audit import AuditEventType
from expense_tracker.models.expense import ExpenseCategory, ExpenseQuery, Timeframe
from expense_tracker.orchestrator import ExpenseTracker, create_app_components
from expense_tracker.services.storage import ExpenseStorageInterface, StorageFault
from expense_tracker.validation import ExpenseValidationError, ExpenseValidator
from tests.conftest import make_expense


def _event_types(audit_logger):
    return [event.event_type for event in audit_logger.history]


class TestExpenseTracker:
    """Tests for validated, audited writes and reads."""

    async def test_add_expense(self, tracker, storage, audit_logger):
        """Test that a new expense is saved, returned with its id and audited."""
        expense = await tracker.add_expense(
            name="Electricity",
            amount="64.20",
            category="utilities",
            date=date(2024, 1, 3),
            notes="January bill",
        )

        assert expense.id is not None
        stored = await storage.get_by_id(expense.id)
        assert stored.name == "Electricity"
        assert stored.amount == Decimal("64.20")
        assert stored.category == ExpenseCategory.UTILITIES
        assert _event_types(audit_logger) == [AuditEventType.EXPENSE_ADDED]

    async def test_add_expense_blank_name_not_written(self, tracker, storage, audit_logger):
        """Test that validation errors stop the write and are audited."""
        with pytest.raises(ExpenseValidationError):
            await tracker.add_expense(
                name="  ",
                amount="5",
                category="food",
                date="2024-01-01",
            )

        assert await storage.get_all() == []
        assert _event_types(audit_logger) == [AuditEventType.VALIDATION_FAILED]

    async def test_add_expense_unknown_category(self, tracker, storage):
        with pytest.raises(ValidationError):
            await tracker.add_expense(
                name="Mystery",
                amount="5",
                category="gambling",
                date="2024-01-01",
            )
        assert await storage.get_all() == []

    async def test_update_expense(self, tracker, storage, audit_logger):
        expense = await tracker.add_expense(
            name="Cinema", amount="11", category="entertainment", date="2024-01-05"
        )

        await tracker.update_expense(expense.model_copy(update={"amount": Decimal("13.50")}))

        stored = await tracker.get_expense(expense.id)
        assert stored.amount == Decimal("13.50")
        assert _event_types(audit_logger)[-1] == AuditEventType.EXPENSE_UPDATED

    async def test_update_expense_requires_id(self, tracker):
        with pytest.raises(ValueError):
            await tracker.update_expense(make_expense())

    async def test_delete_expense_twice(self, tracker, audit_logger):
        """Test that deleting is idempotent through the facade too."""
        expense = await tracker.add_expense(
            name="Taxi", amount="20", category="transportation", date="2024-01-05"
        )

        await tracker.delete_expense(expense.id)
        await tracker.delete_expense(expense.id)

        assert await tracker.get_expense(expense.id) is None
        assert _event_types(audit_logger).count(AuditEventType.EXPENSE_DELETED) == 2

    async def test_load_expenses_and_summary(self, tracker):
        await tracker.add_expense(name="Bread", amount="3", category="food", date="2024-01-02")
        await tracker.add_expense(name="Gym", amount="40", category="health", date="2024-01-09")

        view = await tracker.load_expenses(
            ExpenseQuery(timeframe=Timeframe.MONTHLY),
            today=date(2024, 1, 10),
        )
        summary = await tracker.get_summary("2024-01-01", "2024-01-10")

        assert [e.name for e in view.expenses] == ["Gym", "Bread"]
        assert view.summary == summary
        assert summary.total == Decimal("43")

    async def test_clear_all_data(self, tracker, storage, audit_logger):
        await tracker.add_expense(name="Bread", amount="3", category="food", date="2024-01-02")

        await tracker.clear_all_data()

        assert await storage.get_all() == []
        assert _event_types(audit_logger)[-1] == AuditEventType.DATA_CLEARED


class TestStorageFaults:
    """Tests that storage faults are audited and re-raised."""

    @pytest.fixture
    def failing_storage(self):
        storage = AsyncMock(spec=ExpenseStorageInterface)
        storage.insert.side_effect = StorageFault("insert", "disk full")
        storage.clear.side_effect = StorageFault("clear", "database is locked")
        return storage

    async def test_insert_fault_propagates(self, failing_storage, app_settings, audit_logger):
        tracker = ExpenseTracker(
            storage=failing_storage,
            validator=ExpenseValidator(app_settings),
            audit_logger=audit_logger,
        )

        with pytest.raises(StorageFault, match="disk full"):
            await tracker.add_expense(name="Rent", amount="900", category="housing", date="2024-01-01")

        assert _event_types(audit_logger) == [AuditEventType.STORAGE_FAULT]
        assert audit_logger.history[0].details["operation"] == "insert"

    async def test_clear_fault_not_reported_as_cleared(self, failing_storage, app_settings, audit_logger):
        tracker = ExpenseTracker(
            storage=failing_storage,
            validator=ExpenseValidator(app_settings),
            audit_logger=audit_logger,
        )

        with pytest.raises(StorageFault):
            await tracker.clear_all_data()

        assert AuditEventType.DATA_CLEARED not in _event_types(audit_logger)


class TestCreateAppComponents:
    """Tests for application wiring."""

    def test_components_share_configured_store(self, monkeypatch, tmp_path):
        """Test that explicit settings drive the store and install logging."""
        calls = []
        monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))
        monkeypatch.setenv("EXPENSE_DB_PATH", str(tmp_path / "app.db"))
        monkeypatch.setenv("LOG_LEVEL", "warning")

        tracker, storage = create_app_components(Settings())

        assert tracker.storage is storage
        assert storage.database.settings.path == str(tmp_path / "app.db")
        assert storage.database.is_open is False
        assert calls[0]["level"] == logging.WARNING
