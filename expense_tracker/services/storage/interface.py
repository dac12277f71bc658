"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap the local SQLite file for another backend later
2. Keep the query layer and the facade decoupled from the medium
3. Migrate by exporting get_all() and re-inserting into a new backend

The interface is intentionally small: it is the whole surface the
presentation layer needs from the Expense Store.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, time, timezone
from typing import Optional, Union

from expense_tracker.models.expense import Expense, ExpenseCategory, SummaryStats


DateBound = Union[date, datetime, str]


class ExpenseStorageInterface(ABC):
    """
    Abstract interface for expense storage operations.

    Every operation runs as one atomic unit against the medium.
    Read operations that match nothing return empty results, never errors.
    """

    @abstractmethod
    async def insert(self, expense: Expense) -> int:
        """
        Persist a new expense.

        Args:
            expense: The expense to save; its id is ignored

        Returns:
            The id assigned by the store

        Raises:
            StorageFault: If the medium rejects the write
        """
        pass

    @abstractmethod
    async def get_all(self) -> list[Expense]:
        """Return every stored expense, ordered by id."""
        pass

    @abstractmethod
    async def get_by_date_range(
        self,
        start: DateBound,
        end: DateBound,
    ) -> list[Expense]:
        """
        Return expenses dated within [start, end].

        The end bound covers its whole calendar day.

        Raises:
            InvalidRange: If start is after end
        """
        pass

    @abstractmethod
    async def get_by_category(self, category: ExpenseCategory) -> list[Expense]:
        """Return expenses in exactly this category."""
        pass

    @abstractmethod
    async def get_by_id(self, expense_id: int) -> Optional[Expense]:
        """
        Retrieve an expense by its ID.

        Returns:
            The expense if found, None otherwise
        """
        pass

    @abstractmethod
    async def update(self, expense: Expense) -> int:
        """
        Overwrite the stored expense with the same id.

        Creates the record when the id does not exist yet (upsert).
        The original created_at of an existing record is kept.

        Returns:
            The id written

        Raises:
            ValueError: If expense.id is not set
            StorageFault: If the medium rejects the write
        """
        pass

    @abstractmethod
    async def delete(self, expense_id: int) -> None:
        """Delete an expense by ID. Deleting a missing id is not an error."""
        pass

    @abstractmethod
    async def get_summary(
        self,
        start: DateBound,
        end: DateBound,
    ) -> SummaryStats:
        """
        Aggregate the expenses of get_by_date_range(start, end).

        Raises:
            InvalidRange: If start is after end
        """
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Remove every expense. Irreversible."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class StorageFault(StorageError):
    """The storage medium could not complete an operation."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        super().__init__(f"{operation} failed: {message}")


class InvalidRange(StorageError, ValueError):
    """A date range whose start lies after its end, or that cannot be parsed."""
    pass


def _to_datetime(value: DateBound) -> datetime:
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.strip())
        except ValueError:
            raise InvalidRange(f"Not a valid date: {value!r}")
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    raise InvalidRange(f"Not a valid date: {value!r}")


def resolve_date_range(start: DateBound, end: DateBound) -> tuple[datetime, datetime]:
    """
    Turn caller bounds into the inclusive timestamps used for range scans.

    `start` is taken as given (plain dates mean midnight). `end` always
    extends to the last instant of its calendar day, so a range ending
    on 2024-01-05 includes an expense at 2024-01-05 23:00.
    """
    start_at = _to_datetime(start)
    end_at = datetime.combine(_to_datetime(end).date(), time.max)

    if start_at > end_at:
        raise InvalidRange(
            f"Range start {start_at.isoformat()} is after end {end_at.isoformat()}"
        )
    return start_at, end_at
