"""
SQLite Storage Implementation

DESIGN DECISION: A local SQLite file is the storage medium because:
1. It is transactional: every operation below is one atomic unit
2. It serializes writers internally, so the store needs no locks
3. It lives next to the user's data, no server required
4. B-tree indexes give us range scans on date and equality on category

TRADEOFFS:
- One process at a time is the intended usage (no cross-process coordination)
- Aggregation has no native primitive here; summaries fold in Python
- Amounts are stored as integer cents to keep sums exact

Access goes through SQLAlchemy's asyncio extension with the aiosqlite
driver, so every call suspends the caller without blocking the event loop.
"""

import asyncio
from datetime import datetime
from functools import lru_cache
from pathlib import Path
from typing import Awaitable, Callable, Optional, TypeVar

import structlog
from sqlalchemy import DateTime, Integer, String, Text, delete, event, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from expense_tracker.config import StorageSettings, get_settings
from expense_tracker.models.expense import (
    Expense,
    ExpenseCategory,
    SummaryStats,
    from_cents,
)
from expense_tracker.services.storage.interface import (
    DateBound,
    ExpenseStorageInterface,
    StorageFault,
    resolve_date_range,
)


logger = structlog.get_logger(__name__)

T = TypeVar("T")


class Base(DeclarativeBase):
    pass


class ExpenseRecord(Base):
    """
    Row layout of the expenses table.

    AUTOINCREMENT keeps SQLite from handing out an id twice, even after
    the highest row was deleted or the table was cleared.
    """
    __tablename__ = "expenses"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False, index=True)  # cents
    category: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    date: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


expenses_table = ExpenseRecord.__table__

# Fields a full overwrite replaces; created_at is immutable
_MUTABLE_COLUMNS = ("name", "amount", "category", "date", "notes")


class ExpenseDatabase:
    """
    Owner of the single shared handle to the SQLite file.

    The handle is opened lazily on first use. Concurrent first callers
    all await the same opening task, so schema setup runs once.
    """

    def __init__(self, settings: Optional[StorageSettings] = None):
        self._settings = settings or get_settings().storage
        self._engine: Optional[AsyncEngine] = None
        self._sessionmaker: Optional[async_sessionmaker[AsyncSession]] = None
        self._open_task: Optional[asyncio.Task] = None
        self.open_count = 0

    @property
    def settings(self) -> StorageSettings:
        return self._settings

    @property
    def is_open(self) -> bool:
        return self._sessionmaker is not None

    async def open(self) -> async_sessionmaker[AsyncSession]:
        """Return the session factory, opening the database if needed."""
        if self._sessionmaker is not None:
            return self._sessionmaker

        if self._open_task is None:
            self._open_task = asyncio.ensure_future(self._open())
        task = self._open_task

        try:
            return await asyncio.shield(task)
        except StorageFault:
            # A failed open may be retried by a later call
            if self._open_task is task:
                self._open_task = None
            raise

    def _configure_connection(self, dbapi_connection, connection_record) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute(f"PRAGMA busy_timeout={int(self._settings.busy_timeout_ms)}")
        cursor.close()

    async def _open(self) -> async_sessionmaker[AsyncSession]:
        logger.info("expense_db_opening", path=self._settings.path)

        engine = create_async_engine(
            self._settings.database_url,
            echo=self._settings.echo_sql,
        )
        event.listen(engine.sync_engine, "connect", self._configure_connection)

        try:
            Path(self._settings.path).expanduser().parent.mkdir(
                parents=True, exist_ok=True
            )
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._settings.open_retry_attempts),
                wait=wait_exponential(multiplier=0.1, min=0.1, max=2),
                retry=retry_if_exception_type(OperationalError),
                reraise=True,
            ):
                with attempt:
                    async with engine.begin() as conn:
                        # checkfirst: existing tables and indexes are left alone
                        await conn.run_sync(Base.metadata.create_all)
        except (SQLAlchemyError, OSError) as e:
            await engine.dispose()
            logger.error("expense_db_open_failed", path=self._settings.path, error=str(e))
            raise StorageFault("open", str(e)) from e

        self._engine = engine
        self._sessionmaker = async_sessionmaker(engine, expire_on_commit=False)
        self.open_count += 1
        logger.info("expense_db_opened", path=self._settings.path)
        return self._sessionmaker

    async def close(self) -> None:
        """Dispose the handle. Intended for process shutdown and tests."""
        task = self._open_task
        if task is not None and not task.done():
            # Let an in-flight open finish so its engine is disposed below
            try:
                await asyncio.shield(task)
            except StorageFault:
                # The failed open already disposed its engine
                pass
        if self._engine is not None:
            await self._engine.dispose()
        self._engine = None
        self._sessionmaker = None
        self._open_task = None


class SqliteExpenseStorage(ExpenseStorageInterface):
    """
    SQLite implementation of the Expense Store.

    Each public method runs in exactly one transaction, bounded by the
    configured operation timeout. Medium failures and timeouts surface as
    StorageFault; nothing is retried here.
    """

    def __init__(self, database: Optional[ExpenseDatabase] = None):
        self._db = database or ExpenseDatabase()

    @property
    def database(self) -> ExpenseDatabase:
        return self._db

    async def _run(
        self,
        operation: str,
        work: Callable[[AsyncSession], Awaitable[T]],
    ) -> T:
        """Run `work` inside one transaction, with the operation timeout."""
        timeout = self._db.settings.operation_timeout_seconds

        async def _transaction() -> T:
            sessionmaker = await self._db.open()
            async with sessionmaker.begin() as session:
                return await work(session)

        try:
            return await asyncio.wait_for(_transaction(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.error("expense_store_timeout", operation=operation, timeout=timeout)
            raise StorageFault(operation, f"timed out after {timeout}s")
        except (SQLAlchemyError, OSError) as e:
            logger.error("expense_store_fault", operation=operation, error=str(e))
            raise StorageFault(operation, str(e)) from e

    def _record_to_expense(self, record: ExpenseRecord) -> Expense:
        return Expense(
            id=record.id,
            name=record.name,
            amount=from_cents(record.amount),
            category=ExpenseCategory(record.category),
            date=record.date,
            notes=record.notes,
            created_at=record.created_at,
        )

    async def _select(self, operation: str, stmt) -> list[Expense]:
        async def work(session: AsyncSession) -> list[Expense]:
            result = await session.scalars(stmt)
            return [self._record_to_expense(record) for record in result.all()]

        return await self._run(operation, work)

    async def insert(self, expense: Expense) -> int:
        """Persist a new expense and return its assigned id."""
        record = ExpenseRecord(
            name=expense.name,
            amount=expense.amount_cents,
            category=expense.category.value,
            date=expense.date,
            notes=expense.notes,
            created_at=datetime.utcnow(),
        )

        async def work(session: AsyncSession) -> int:
            session.add(record)
            await session.flush()
            return record.id

        expense_id = await self._run("insert", work)
        logger.debug("expense_inserted", expense_id=expense_id)
        return expense_id

    async def get_all(self) -> list[Expense]:
        stmt = select(ExpenseRecord).order_by(ExpenseRecord.id)
        return await self._select("get_all", stmt)

    async def get_by_date_range(
        self,
        start: DateBound,
        end: DateBound,
    ) -> list[Expense]:
        """Index scan over date, inclusive of the whole end day."""
        start_at, end_at = resolve_date_range(start, end)
        stmt = (
            select(ExpenseRecord)
            .where(ExpenseRecord.date.between(start_at, end_at))
            .order_by(ExpenseRecord.date, ExpenseRecord.id)
        )
        return await self._select("get_by_date_range", stmt)

    async def get_by_category(self, category: ExpenseCategory) -> list[Expense]:
        category = ExpenseCategory(category)
        stmt = (
            select(ExpenseRecord)
            .where(ExpenseRecord.category == category.value)
            .order_by(ExpenseRecord.id)
        )
        return await self._select("get_by_category", stmt)

    async def get_by_id(self, expense_id: int) -> Optional[Expense]:
        async def work(session: AsyncSession) -> Optional[Expense]:
            record = await session.get(ExpenseRecord, expense_id)
            return self._record_to_expense(record) if record else None

        return await self._run("get_by_id", work)

    async def update(self, expense: Expense) -> int:
        """Full overwrite by id; inserts the row when the id is new."""
        if expense.id is None:
            raise ValueError("update requires an expense with an id")

        stmt = sqlite_insert(expenses_table).values(
            id=expense.id,
            name=expense.name,
            amount=expense.amount_cents,
            category=expense.category.value,
            date=expense.date,
            notes=expense.notes,
            created_at=expense.created_at or datetime.utcnow(),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[expenses_table.c.id],
            set_={column: stmt.excluded[column] for column in _MUTABLE_COLUMNS},
        )

        async def work(session: AsyncSession) -> None:
            await session.execute(stmt)

        await self._run("update", work)
        logger.debug("expense_updated", expense_id=expense.id)
        return expense.id

    async def delete(self, expense_id: int) -> None:
        stmt = delete(expenses_table).where(expenses_table.c.id == expense_id)

        async def work(session: AsyncSession) -> None:
            await session.execute(stmt)

        await self._run("delete", work)
        logger.debug("expense_deleted", expense_id=expense_id)

    async def get_summary(
        self,
        start: DateBound,
        end: DateBound,
    ) -> SummaryStats:
        expenses = await self.get_by_date_range(start, end)
        return SummaryStats.from_expenses(expenses)

    async def clear(self) -> None:
        async def work(session: AsyncSession) -> None:
            await session.execute(delete(expenses_table))

        await self._run("clear", work)
        logger.warning("expense_store_cleared")

    async def close(self) -> None:
        await self._db.close()


@lru_cache()
def get_expense_storage() -> SqliteExpenseStorage:
    """
    Get the process-wide Expense Store (cached).

    The store opens its database lazily on first use.
    """
    return SqliteExpenseStorage()
