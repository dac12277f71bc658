"""Query execution package."""

from expense_tracker.queries.executor import (
    ExpenseQueryExecutor,
    build_daily_series,
    resolve_timeframe,
    sort_expenses,
)

__all__ = [
    "ExpenseQueryExecutor",
    "build_daily_series",
    "resolve_timeframe",
    "sort_expenses",
]
