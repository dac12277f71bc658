"""
Core Data Models for Expense Tracker

These models define the strict schemas for all data flowing through the system.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Keep amounts exact (Decimal in, integer cents in storage)

DESIGN DECISION: Category validation lives here, not in the store.
An Expense cannot be built with a category outside ExpenseCategory,
so anything that reaches the store already has a valid category.
"""

from datetime import date as date_type, datetime, time, timezone
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Annotated, Any, Iterable, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


CENT = Decimal("0.01")


def to_cents(amount: Decimal) -> int:
    """Convert a currency amount to integer cents."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> Decimal:
    """Convert integer cents back to a two-place Decimal."""
    return (Decimal(cents) / 100).quantize(CENT)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class ExpenseCategory(str, Enum):
    """
    Supported expense categories.

    The set is closed: free-text categories are rejected at model construction.
    """
    FOOD = "food"
    TRANSPORTATION = "transportation"
    UTILITIES = "utilities"
    ENTERTAINMENT = "entertainment"
    SHOPPING = "shopping"
    HEALTH = "health"
    HOUSING = "housing"
    OTHER = "other"


# =============================================================================
# CORE EXPENSE MODEL
# =============================================================================

class Expense(BaseModel):
    """
    A single recorded spending event.

    `id` and `created_at` are assigned by the store on insert; callers
    leave them unset for new expenses.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[int] = Field(
        default=None,
        ge=1,
        description="Store-assigned identifier"
    )
    name: str = Field(
        ...,
        max_length=200,
        description="Free-form label"
    )
    amount: Annotated[
        Decimal,
        Field(ge=0, decimal_places=2, description="Amount spent")
    ]
    category: ExpenseCategory = Field(
        ...,
        description="Expense category"
    )
    date: datetime = Field(
        ...,
        description="When the money was spent (naive, day precision matters)"
    )
    notes: Optional[str] = Field(
        default=None,
        max_length=1000,
        description="Optional user notes"
    )
    created_at: Optional[datetime] = Field(
        default=None,
        description="Insertion timestamp, set by the store"
    )

    @field_validator('date', mode='before')
    @classmethod
    def normalize_date(cls, v: Any) -> Any:
        """Accept plain dates and ISO strings; store naive UTC timestamps."""
        if isinstance(v, str):
            try:
                v = datetime.fromisoformat(v.strip())
            except ValueError:
                return v  # let pydantic report the bad value
        if isinstance(v, date_type) and not isinstance(v, datetime):
            v = datetime.combine(v, time.min)
        if isinstance(v, datetime) and v.tzinfo is not None:
            v = v.astimezone(timezone.utc).replace(tzinfo=None)
        return v

    @field_validator('notes')
    @classmethod
    def empty_notes_to_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    @property
    def amount_cents(self) -> int:
        return to_cents(self.amount)

    @property
    def day(self) -> str:
        """Calendar day of the expense as YYYY-MM-DD."""
        return self.date.date().isoformat()


# =============================================================================
# AGGREGATES
# =============================================================================

class SummaryStats(BaseModel):
    """
    Aggregate statistics over a date range.

    Only categories and days that actually have expenses appear in the
    maps; there are no zero entries.
    """
    model_config = ConfigDict(populate_by_name=True)

    total: Decimal = Field(
        default=Decimal("0.00"),
        description="Sum of all amounts"
    )
    categories: dict[str, Decimal] = Field(
        default_factory=dict,
        description="Category value -> summed amount"
    )
    daily_data: dict[str, Decimal] = Field(
        default_factory=dict,
        alias="dailyData",
        description="YYYY-MM-DD -> summed amount"
    )
    count: int = Field(
        default=0,
        ge=0,
        description="Number of expenses summarized"
    )

    @classmethod
    def from_expenses(cls, expenses: Iterable[Expense]) -> "SummaryStats":
        """Fold expenses into totals in a single pass over integer cents."""
        total = 0
        count = 0
        categories: dict[str, int] = {}
        daily: dict[str, int] = {}

        for expense in expenses:
            cents = expense.amount_cents
            total += cents
            count += 1
            key = expense.category.value
            categories[key] = categories.get(key, 0) + cents
            daily[expense.day] = daily.get(expense.day, 0) + cents

        return cls(
            total=from_cents(total),
            categories={k: from_cents(v) for k, v in categories.items()},
            daily_data={k: from_cents(v) for k, v in daily.items()},
            count=count,
        )


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'future_date', 'suspicious_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = None


class ValidationResult(BaseModel):
    """Outcome of validating an expense before it is written."""

    validated_at: datetime = Field(
        default_factory=datetime.utcnow
    )
    is_valid: bool = Field(
        ...,
        description="True when no error-level issue was found"
    )
    issues: list[ValidationIssue] = Field(
        default_factory=list,
        description="All validation issues found"
    )

    # Warnings don't block but should be shown
    warnings: list[str] = Field(
        default_factory=list,
        description="Non-blocking warnings"
    )

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")


# =============================================================================
# QUERY MODELS (dashboard list, summary and chart)
# =============================================================================

class Timeframe(str, Enum):
    """Named date windows offered by the dashboard."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    CUSTOM = "custom"


class SortOption(str, Enum):
    """Orderings for the expense list."""
    DATE_DESC = "date-desc"
    DATE_ASC = "date-asc"
    AMOUNT_DESC = "amount-desc"
    AMOUNT_ASC = "amount-asc"


class ExpenseQuery(BaseModel):
    """
    What the dashboard wants to show.

    `start_date` anchors the daily view; `custom` needs both bounds.
    A `category` of None means all categories.
    """

    timeframe: Timeframe = Timeframe.MONTHLY
    start_date: Optional[date_type] = None
    end_date: Optional[date_type] = None
    category: Optional[ExpenseCategory] = None
    sort_by: SortOption = SortOption.DATE_DESC


class DailyPoint(BaseModel):
    """One bar of the per-day chart."""

    day: date_type
    amount: Decimal


class ExpenseView(BaseModel):
    """Everything the dashboard renders for one query."""

    start: date_type
    end: date_type
    expenses: list[Expense] = Field(default_factory=list)
    summary: SummaryStats = Field(default_factory=SummaryStats)
    daily_series: list[DailyPoint] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.expenses
