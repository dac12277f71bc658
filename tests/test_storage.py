"""
Tests for the SQLite Expense Store.

Every test runs against a real database file in tmp_path; nothing is mocked.
"""

import asyncio
from datetime import date, datetime
from decimal import Decimal

import pytest

from expense_tracker.config import StorageSettings
from expense_tracker.models.expense import ExpenseCategory
from expense_tracker.services.storage import (
    ExpenseDatabase,
    InvalidRange,
    SqliteExpenseStorage,
    StorageFault,
)
from tests.conftest import make_expense


class TestInsertAndLookup:
    """Identity assignment and point lookups."""

    async def test_insert_assigns_distinct_increasing_ids(self, storage):
        """Test that N inserts yield N distinct, increasing ids."""
        ids = [await storage.insert(make_expense(name=f"e{i}")) for i in range(5)]
        assert len(set(ids)) == 5
        assert ids == sorted(ids)

    async def test_ids_not_reused_after_delete(self, storage):
        """Test that deleting the newest row does not free its id."""
        first = await storage.insert(make_expense())
        second = await storage.insert(make_expense())
        await storage.delete(second)

        third = await storage.insert(make_expense())
        assert third > second > first

    async def test_ids_not_reused_after_clear(self, storage):
        """Test that clear() keeps the id sequence."""
        last = await storage.insert(make_expense())
        await storage.clear()

        assert await storage.insert(make_expense()) > last

    async def test_round_trip(self, storage):
        """Test that a stored expense reads back equal except id/created_at."""
        expense = make_expense(
            name="Train ticket",
            amount=Decimal("12.35"),
            category=ExpenseCategory.TRANSPORTATION,
            date="2024-03-02T08:15:00",
            notes="commute",
        )
        expense_id = await storage.insert(expense)

        stored = await storage.get_by_id(expense_id)
        assert stored is not None
        assert stored.id == expense_id
        assert stored.created_at is not None
        assert stored.model_dump(exclude={"id", "created_at"}) == expense.model_dump(
            exclude={"id", "created_at"}
        )

    async def test_get_by_id_missing_returns_none(self, storage):
        """Test that an unknown id is a normal 'not found', not an error."""
        assert await storage.get_by_id(999) is None

    async def test_get_all_empty_store(self, storage):
        assert await storage.get_all() == []

    async def test_get_all_is_ordered_by_id(self, storage):
        ids = [await storage.insert(make_expense(date=d)) for d in ("2024-01-03", "2024-01-01")]
        assert [e.id for e in await storage.get_all()] == ids

    async def test_get_by_category(self, storage):
        """Test exact-match category lookup."""
        await storage.insert(make_expense(category=ExpenseCategory.FOOD))
        await storage.insert(make_expense(category=ExpenseCategory.HOUSING))
        await storage.insert(make_expense(category=ExpenseCategory.FOOD))

        food = await storage.get_by_category(ExpenseCategory.FOOD)
        assert len(food) == 2
        assert all(e.category == ExpenseCategory.FOOD for e in food)
        assert await storage.get_by_category(ExpenseCategory.HEALTH) == []


class TestDateRange:
    """Inclusive range queries over the date index."""

    async def test_end_day_fully_included(self, storage):
        """Test that a range ending on a day includes that day's late expenses."""
        first = await storage.insert(make_expense(date="2024-01-01"))
        late = await storage.insert(make_expense(date="2024-01-05T23:00"))
        await storage.insert(make_expense(date="2024-01-06"))

        result = await storage.get_by_date_range("2024-01-01", "2024-01-05")
        assert [e.id for e in result] == [first, late]

    async def test_accepts_date_objects(self, storage):
        await storage.insert(make_expense(date="2024-02-10T12:00"))
        result = await storage.get_by_date_range(date(2024, 2, 10), date(2024, 2, 10))
        assert len(result) == 1

    async def test_empty_range_returns_empty_list(self, storage):
        """Test that no matches is an empty result, not an error."""
        await storage.insert(make_expense(date="2024-01-01"))
        assert await storage.get_by_date_range("2023-01-01", "2023-12-31") == []

    async def test_reversed_range_rejected(self, storage):
        """Test that start after end raises InvalidRange."""
        with pytest.raises(InvalidRange):
            await storage.get_by_date_range("2024-01-10", "2024-01-01")

    async def test_unparseable_bound_rejected(self, storage):
        with pytest.raises(InvalidRange):
            await storage.get_by_date_range("yesterday", "2024-01-01")

    async def test_invalid_range_is_value_error(self):
        assert issubclass(InvalidRange, ValueError)


class TestUpdateDelete:
    """Overwrite, upsert and idempotent delete."""

    async def test_update_overwrites_all_fields(self, storage):
        expense_id = await storage.insert(make_expense())
        replacement = make_expense(
            id=expense_id,
            name="Dinner",
            amount=Decimal("80.00"),
            category=ExpenseCategory.ENTERTAINMENT,
            date="2024-01-02",
            notes="birthday",
        )
        await storage.update(replacement)

        stored = await storage.get_by_id(expense_id)
        assert stored.name == "Dinner"
        assert stored.amount == Decimal("80.00")
        assert stored.category == ExpenseCategory.ENTERTAINMENT
        assert stored.date == datetime(2024, 1, 2)
        assert stored.notes == "birthday"

    async def test_update_keeps_created_at(self, storage):
        """Test that created_at survives a full overwrite."""
        expense_id = await storage.insert(make_expense())
        original = await storage.get_by_id(expense_id)

        await storage.update(original.model_copy(update={"name": "Renamed", "created_at": None}))

        stored = await storage.get_by_id(expense_id)
        assert stored.name == "Renamed"
        assert stored.created_at == original.created_at

    async def test_update_unknown_id_creates_record(self, storage):
        """Test upsert: updating a missing id creates it."""
        await storage.update(make_expense(id=42, name="Created by update"))

        stored = await storage.get_by_id(42)
        assert stored is not None
        assert stored.name == "Created by update"
        assert await storage.insert(make_expense()) > 42

    async def test_update_without_id_rejected(self, storage):
        with pytest.raises(ValueError):
            await storage.update(make_expense())

    async def test_delete_is_idempotent(self, storage):
        """Test that deleting twice succeeds both times."""
        expense_id = await storage.insert(make_expense())
        await storage.delete(expense_id)
        await storage.delete(expense_id)
        assert await storage.get_by_id(expense_id) is None


class TestSummary:
    """Aggregates over a date range."""

    async def test_summary_correctness(self, storage):
        """Test total, per-category, per-day and count over a range."""
        await storage.insert(make_expense(category=ExpenseCategory.FOOD, amount=Decimal("100"), date="2024-01-01"))
        await storage.insert(make_expense(category=ExpenseCategory.FOOD, amount=Decimal("50"), date="2024-01-02"))
        await storage.insert(make_expense(category=ExpenseCategory.TRANSPORTATION, amount=Decimal("30"), date="2024-01-02"))

        summary = await storage.get_summary("2024-01-01", "2024-01-02")

        assert summary.total == Decimal("180")
        assert summary.categories == {"food": Decimal("150"), "transportation": Decimal("30")}
        assert summary.daily_data == {"2024-01-01": Decimal("100"), "2024-01-02": Decimal("80")}
        assert summary.count == 3

    async def test_summary_sums_exactly(self, storage):
        """Test that cents never drift."""
        for _ in range(3):
            await storage.insert(make_expense(amount=Decimal("0.10")))
        await storage.insert(make_expense(amount=Decimal("0.20")))

        summary = await storage.get_summary("2024-01-01", "2024-01-01")
        assert summary.total == Decimal("0.50")

    async def test_summary_of_empty_range(self, storage):
        summary = await storage.get_summary("2024-01-01", "2024-01-31")
        assert summary.count == 0
        assert summary.total == 0
        assert summary.categories == {}
        assert summary.daily_data == {}

    async def test_clear_empties_store(self, storage):
        """Test that after clear() nothing is left to read or summarize."""
        await storage.insert(make_expense())
        await storage.insert(make_expense(date="2024-06-01"))
        await storage.clear()

        assert await storage.get_all() == []
        summary = await storage.get_summary("2000-01-01", "2100-01-01")
        assert summary.count == 0
        assert summary.total == 0


class TestLifecycle:
    """Lazy opening, persistence, faults and timeouts."""

    async def test_not_opened_until_first_use(self, storage):
        assert storage.database.is_open is False
        await storage.get_all()
        assert storage.database.is_open is True

    async def test_concurrent_first_calls_open_once(self, storage):
        """Test that racing first callers share one physical open."""
        await asyncio.gather(*(storage.get_all() for _ in range(10)))
        assert storage.database.open_count == 1

    async def test_close_during_open_disposes_engine(self, storage):
        """Test that closing while the first open is in flight leaves nothing open."""
        opening = asyncio.ensure_future(storage.database.open())
        await asyncio.sleep(0)

        await storage.close()
        await opening

        assert storage.database.open_count == 1
        assert storage.database.is_open is False
        assert storage.database._engine is None

    async def test_data_survives_reopen(self, storage_settings):
        """Test that opening an existing database keeps its rows."""
        first = SqliteExpenseStorage(ExpenseDatabase(storage_settings))
        expense_id = await first.insert(make_expense(name="Persisted"))
        await first.close()

        second = SqliteExpenseStorage(ExpenseDatabase(storage_settings))
        try:
            stored = await second.get_by_id(expense_id)
            assert stored is not None
            assert stored.name == "Persisted"
        finally:
            await second.close()

    async def test_unopenable_database_raises_storage_fault(self, tmp_path):
        """Test that a path the medium cannot open surfaces as StorageFault."""
        settings = StorageSettings(path=str(tmp_path), open_retry_attempts=1)
        store = SqliteExpenseStorage(ExpenseDatabase(settings))

        with pytest.raises(StorageFault) as exc_info:
            await store.get_all()

        assert exc_info.value.operation == "open"
        assert store.database.is_open is False
        await store.close()

    async def test_operation_timeout_raises_storage_fault(self, tmp_path):
        """Test that a hung operation is bounded by the timeout."""
        settings = StorageSettings(
            path=str(tmp_path / "slow.db"),
            operation_timeout_seconds=0.2,
        )
        store = SqliteExpenseStorage(ExpenseDatabase(settings))
        await store.database.open()

        async def hang(session):
            await asyncio.sleep(5)

        try:
            with pytest.raises(StorageFault, match="timed out"):
                await store._run("slow_read", hang)
        finally:
            await store.close()
