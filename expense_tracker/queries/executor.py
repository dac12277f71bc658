"""
Query Execution Engine

DESIGN DECISION: The dashboard never talks to the store directly.
It describes what it wants (an ExpenseQuery: timeframe, category filter,
sort order) and this engine turns that into one range read plus
deterministic post-processing:

1. Resolve the timeframe into a concrete inclusive date window
2. Read the window once from the store
3. Summarize the whole window (summary and chart ignore the category filter)
4. Filter by category and sort the list
5. Zero-fill the per-day series so every day in the window gets a bar
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Optional

from expense_tracker.models.expense import (
    DailyPoint,
    Expense,
    ExpenseQuery,
    ExpenseView,
    SortOption,
    SummaryStats,
    Timeframe,
)
from expense_tracker.services.storage import ExpenseStorageInterface, InvalidRange


def resolve_timeframe(
    timeframe: Timeframe,
    today: date,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> tuple[date, date]:
    """
    Turn a timeframe preset into an inclusive (start, end) window.

    - daily: the single day `start_date`, or today
    - weekly: Sunday of the current week through today
    - monthly: the first of the current month through today
    - custom: exactly `start_date` .. `end_date`
    """
    if timeframe == Timeframe.DAILY:
        day = start_date or today
        return day, day

    if timeframe == Timeframe.WEEKLY:
        # date.weekday(): Monday == 0 ... Sunday == 6
        days_since_sunday = (today.weekday() + 1) % 7
        return today - timedelta(days=days_since_sunday), today

    if timeframe == Timeframe.MONTHLY:
        return today.replace(day=1), today

    if start_date is None or end_date is None:
        raise InvalidRange("A custom timeframe needs both a start and an end date")
    if start_date > end_date:
        raise InvalidRange(f"Range start {start_date} is after end {end_date}")
    return start_date, end_date


def sort_expenses(
    expenses: Iterable[Expense],
    sort_by: SortOption = SortOption.DATE_DESC,
) -> list[Expense]:
    """Return a new, stably sorted list."""
    if sort_by == SortOption.DATE_DESC:
        return sorted(expenses, key=lambda e: e.date, reverse=True)
    if sort_by == SortOption.DATE_ASC:
        return sorted(expenses, key=lambda e: e.date)
    if sort_by == SortOption.AMOUNT_DESC:
        return sorted(expenses, key=lambda e: e.amount, reverse=True)
    if sort_by == SortOption.AMOUNT_ASC:
        return sorted(expenses, key=lambda e: e.amount)
    return list(expenses)


def build_daily_series(
    daily_data: dict[str, Decimal],
    start: date,
    end: date,
) -> list[DailyPoint]:
    """One point per calendar day in [start, end]; days without spending are zero."""
    series = []
    day = start
    while day <= end:
        series.append(DailyPoint(
            day=day,
            amount=daily_data.get(day.isoformat(), Decimal("0.00")),
        ))
        day += timedelta(days=1)
    return series


class ExpenseQueryExecutor:
    """
    Executes dashboard queries against the Expense Store.

    GUARANTEES:
    - One store read per query, so list, summary and chart agree
    - An empty window is a normal, empty view
    """

    def __init__(self, storage: ExpenseStorageInterface):
        self._storage = storage

    async def execute(
        self,
        query: ExpenseQuery,
        today: Optional[date] = None,
    ) -> ExpenseView:
        """
        Execute a query and assemble the view.

        Raises:
            InvalidRange: If the window cannot be resolved
            StorageFault: If the store read fails
        """
        today = today or date.today()
        start, end = resolve_timeframe(
            query.timeframe,
            today,
            start_date=query.start_date,
            end_date=query.end_date,
        )

        in_window = await self._storage.get_by_date_range(start, end)
        summary = SummaryStats.from_expenses(in_window)

        expenses = in_window
        if query.category is not None:
            expenses = [e for e in expenses if e.category == query.category]

        return ExpenseView(
            start=start,
            end=end,
            expenses=sort_expenses(expenses, query.sort_by),
            summary=summary,
            daily_series=build_daily_series(summary.daily_data, start, end),
        )
