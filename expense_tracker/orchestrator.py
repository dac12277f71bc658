"""
Main Orchestrator for Expense Tracker

This module ties together the store, the validator, the query engine and
the audit logger behind one facade, ExpenseTracker. The presentation layer
(forms, list, chart) calls only this facade.

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing is written without passing validation first
- Every write and every storage fault is audited
- Storage faults are never swallowed; they reach the caller
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Awaitable, Optional, TypeVar, Union
from uuid import UUID

from expense_tracker.audit import AuditLogger, configure_logging, create_correlation_id
from expense_tracker.config import Settings
from expense_tracker.models.expense import (
    Expense,
    ExpenseCategory,
    ExpenseQuery,
    ExpenseView,
    SummaryStats,
)
from expense_tracker.queries import ExpenseQueryExecutor
from expense_tracker.services.storage import (
    DateBound,
    ExpenseDatabase,
    ExpenseStorageInterface,
    SqliteExpenseStorage,
    StorageFault,
    get_expense_storage,
)
from expense_tracker.validation import ExpenseValidationError, ExpenseValidator


T = TypeVar("T")


class ExpenseTracker:
    """
    Facade over the Expense Store for the presentation layer.

    Flow for writes:
    1. Build the Expense model (type-level validation)
    2. Semantic validation (blank name is an error)
    3. Persist
    4. Audit
    """

    def __init__(
        self,
        storage: Optional[ExpenseStorageInterface] = None,
        validator: Optional[ExpenseValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage or get_expense_storage()
        self._validator = validator or ExpenseValidator()
        self._audit_logger = audit_logger or AuditLogger()
        self._query_executor = ExpenseQueryExecutor(self._storage)

    @property
    def storage(self) -> ExpenseStorageInterface:
        return self._storage

    async def _guard(
        self,
        awaitable: Awaitable[T],
        correlation_id: Optional[UUID] = None,
        expense_id: Optional[int] = None,
    ) -> T:
        """Await a store call, auditing a StorageFault before re-raising it."""
        try:
            return await awaitable
        except StorageFault as e:
            await self._audit_logger.log_storage_fault(
                operation=e.operation,
                error_message=str(e),
                correlation_id=correlation_id,
                expense_id=expense_id,
            )
            raise

    async def _validate(self, expense: Expense, correlation_id: UUID) -> None:
        result = self._validator.validate(expense)
        if not result.is_valid:
            await self._audit_logger.log_validation_failed(
                issues=[issue.model_dump() for issue in result.issues],
                correlation_id=correlation_id,
                expense_id=expense.id,
            )
            raise ExpenseValidationError(result)

    async def add_expense(
        self,
        name: str,
        amount: Union[Decimal, int, float, str],
        category: Union[ExpenseCategory, str],
        date: Union[date, datetime, str],
        notes: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Expense:
        """
        Record a new expense.

        Returns:
            The expense with its assigned id

        Raises:
            pydantic.ValidationError: If a field has the wrong type or value
            ExpenseValidationError: If semantic validation finds errors
            StorageFault: If the store could not save it
        """
        correlation_id = correlation_id or create_correlation_id()

        expense = Expense(
            name=name,
            amount=amount,
            category=category,
            date=date,
            notes=notes,
        )
        await self._validate(expense, correlation_id)

        expense_id = await self._guard(
            self._storage.insert(expense),
            correlation_id=correlation_id,
        )

        await self._audit_logger.log_expense_added(
            expense_id=expense_id,
            name=expense.name,
            amount=str(expense.amount),
            category=expense.category.value,
            correlation_id=correlation_id,
        )

        return expense.model_copy(update={"id": expense_id})

    async def update_expense(
        self,
        expense: Expense,
        correlation_id: Optional[UUID] = None,
    ) -> Expense:
        """
        Overwrite a stored expense (creates it when the id is unknown).

        Raises:
            ValueError: If the expense has no id
            ExpenseValidationError: If semantic validation finds errors
            StorageFault: If the store could not save it
        """
        if expense.id is None:
            raise ValueError("Cannot update an expense without an id")

        correlation_id = correlation_id or create_correlation_id()
        await self._validate(expense, correlation_id)

        await self._guard(
            self._storage.update(expense),
            correlation_id=correlation_id,
            expense_id=expense.id,
        )

        await self._audit_logger.log_expense_updated(
            expense_id=expense.id,
            amount=str(expense.amount),
            category=expense.category.value,
            correlation_id=correlation_id,
        )
        return expense

    async def delete_expense(
        self,
        expense_id: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Delete an expense. Deleting an unknown id succeeds."""
        correlation_id = correlation_id or create_correlation_id()

        await self._guard(
            self._storage.delete(expense_id),
            correlation_id=correlation_id,
            expense_id=expense_id,
        )
        await self._audit_logger.log_expense_deleted(
            expense_id=expense_id,
            correlation_id=correlation_id,
        )

    async def get_expense(self, expense_id: int) -> Optional[Expense]:
        """Point lookup for the edit form; None when the id is unknown."""
        return await self._guard(
            self._storage.get_by_id(expense_id),
            expense_id=expense_id,
        )

    async def load_expenses(
        self,
        query: Optional[ExpenseQuery] = None,
        today: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> ExpenseView:
        """
        Build the dashboard view: list, summary and daily chart series.

        Raises:
            InvalidRange: If the query window cannot be resolved
            StorageFault: If the store read fails
        """
        query = query or ExpenseQuery()
        correlation_id = correlation_id or create_correlation_id()

        view = await self._guard(
            self._query_executor.execute(query, today=today),
            correlation_id=correlation_id,
        )

        await self._audit_logger.log_query_executed(
            timeframe=query.timeframe.value,
            start=view.start.isoformat(),
            end=view.end.isoformat(),
            result_count=len(view.expenses),
            correlation_id=correlation_id,
        )
        return view

    async def get_summary(self, start: DateBound, end: DateBound) -> SummaryStats:
        return await self._guard(self._storage.get_summary(start, end))

    async def clear_all_data(self, correlation_id: Optional[UUID] = None) -> None:
        """Erase every expense. Irreversible."""
        correlation_id = correlation_id or create_correlation_id()

        await self._guard(
            self._storage.clear(),
            correlation_id=correlation_id,
        )
        await self._audit_logger.log_data_cleared(correlation_id=correlation_id)


def create_app_components(
    settings: Optional[Settings] = None,
) -> tuple[ExpenseTracker, ExpenseStorageInterface]:
    """
    Factory function to create all application components.

    This is the application entry point, so it also installs the root
    log handler at the configured level.

    Args:
        settings: Explicit settings. When None, the process-wide store
                  from get_expense_storage() is used.

    Returns:
        (expense_tracker, storage)
    """
    if settings is None:
        configure_logging(configure_root=True)
        storage = get_expense_storage()
        validator = ExpenseValidator()
    else:
        configure_logging(
            level=settings.app.log_level,
            json_logs=settings.app.log_json,
            configure_root=True,
        )
        storage = SqliteExpenseStorage(ExpenseDatabase(settings.storage))
        validator = ExpenseValidator(settings.app)

    tracker = ExpenseTracker(
        storage=storage,
        validator=validator,
        audit_logger=AuditLogger(),
    )
    return tracker, storage
