"""
Expense Validation

DESIGN DECISION: The store does not judge what it is asked to save.
Type-level rules (closed category set, non-negative amount with at most
two decimals, a real calendar date) are enforced by the Expense model.
The semantic checks below run in the caller, before any write:

- Blank names are errors (nothing to show in the list)
- Zero amounts, very large amounts and future dates are warnings

IMPORTANT: Validation NEVER silently fixes issues.
It reports them and lets the caller decide.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from expense_tracker.config import AppSettings, get_settings
from expense_tracker.models.expense import (
    Expense,
    ValidationIssue,
    ValidationResult,
)


class ExpenseValidationError(Exception):
    """Raised when an expense fails validation and must not be written."""

    def __init__(self, result: ValidationResult):
        self.result = result
        messages = "; ".join(
            issue.message for issue in result.issues if issue.severity == "error"
        )
        super().__init__(f"Expense failed validation: {messages}")


class ExpenseValidator:
    """Semantic checks for an expense about to be inserted or updated."""

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    def validate(
        self,
        expense: Expense,
        today: Optional[date] = None,
    ) -> ValidationResult:
        """
        Validate an expense.

        Args:
            expense: The expense to check
            today: Reference day for the future-date check (defaults to today)

        Returns:
            ValidationResult with all issues found
        """
        today = today or date.today()
        issues = []

        if not expense.name.strip():
            issues.append(ValidationIssue(
                field="name",
                issue_type="missing",
                message="Expense name is required",
                severity="error",
                suggested_fix="Describe what the money was spent on",
            ))

        if expense.amount == 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message="Amount is zero",
                severity="warning",
                suggested_fix="Please verify the amount",
            ))

        max_amount = Decimal(str(self._settings.max_expense_amount))
        if expense.amount > max_amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=f"Amount ({expense.amount:,.2f}) seems unusually high",
                severity="warning",
                suggested_fix="Please verify this amount is correct",
            ))

        max_future_date = today + timedelta(
            days=self._settings.future_date_tolerance_days
        )
        if expense.date.date() > max_future_date:
            issues.append(ValidationIssue(
                field="date",
                issue_type="future_date",
                message=f"Expense date ({expense.day}) is in the future",
                severity="warning",
                suggested_fix="Please verify the date is correct",
            ))

        warnings = [issue.message for issue in issues if issue.severity == "warning"]
        is_valid = not any(issue.severity == "error" for issue in issues)

        return ValidationResult(
            is_valid=is_valid,
            issues=issues,
            warnings=warnings,
        )
