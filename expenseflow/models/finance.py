"""
Core Finance Models for ExpenseFlow

Transactions, budgets, recurring transactions, goals and user settings.

DESIGN DECISION: Amounts are signed floats (negative = expense) because
that is what the document store persists. Reports convert to Decimal
before rounding so totals come out exact to the cent.
"""

from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

from pydantic import Field

from expenseflow.models.base import DocumentId, DocumentModel


# =============================================================================
# CATEGORIES
# =============================================================================

EXPENSE_CATEGORIES: tuple[str, ...] = (
    "Groceries",
    "Restaurants",
    "Bills",
    "Medicine",
    "Transportation",
    "Entertainment",
    "Shopping",
    "Other",
)

DEFAULT_CATEGORY = "Uncategorized"
INCOME_CATEGORY = "Income"


# =============================================================================
# ENUMS
# =============================================================================

class Ownership(str, Enum):
    """
    Which collection a record lives in.

    A record is personal (``users/{uid}/...``) or shared by a family
    (``families/{familyId}/...``), never both.
    """
    PERSONAL = "personal"
    FAMILY = "family"


class TransactionType(str, Enum):
    """Form-level direction of a transaction."""
    INCOME = "income"
    EXPENSE = "expense"


class RecurrenceFrequency(str, Enum):
    """How often a recurring transaction repeats (data only, nothing is scheduled)."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


# =============================================================================
# TRANSACTIONS
# =============================================================================

class Transaction(DocumentModel):
    """
    A single income (positive amount) or expense (negative amount).

    Owned by exactly one context: the user, or the family named by
    ``family_id``.
    """

    id: DocumentId = Field(
        default=None,
        description="Document id; None until the store assigns one"
    )
    text: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Description shown in lists and exports"
    )
    amount: float = Field(
        ...,
        description="Signed amount, negative for expenses"
    )
    date: datetime = Field(
        ...,
        description="When the transaction happened"
    )
    category: str = Field(
        default=DEFAULT_CATEGORY,
        description="Category name"
    )
    family_id: Optional[str] = None
    added_by: Optional[str] = None
    added_by_name: Optional[str] = None

    @property
    def ownership(self) -> Ownership:
        return Ownership.FAMILY if self.family_id else Ownership.PERSONAL

    @property
    def is_expense(self) -> bool:
        return self.amount < 0

    @property
    def is_income(self) -> bool:
        return self.amount > 0


# =============================================================================
# BUDGETS
# =============================================================================

class Budget(DocumentModel):
    """
    Spending limit for one category in one calendar month.

    Uniqueness by (category, month, year, is_family) is left to callers.
    """

    id: DocumentId = None
    category: str = Field(..., min_length=1)
    limit: float = Field(
        ...,
        gt=0,
        description="Maximum spend for the month"
    )
    month: int = Field(
        ...,
        ge=1,
        le=12,
        description="Calendar month (1-12)"
    )
    year: int = Field(..., ge=1970)
    is_family: bool = False
    family_id: Optional[str] = None

    @property
    def ownership(self) -> Ownership:
        return Ownership.FAMILY if self.is_family and self.family_id else Ownership.PERSONAL


# =============================================================================
# RECURRING TRANSACTIONS AND GOALS
# =============================================================================

class RecurringTransaction(DocumentModel):
    """A transaction template that repeats; recurrence is data only."""

    id: DocumentId = None
    text: str = Field(..., min_length=1, max_length=200)
    amount: float
    category: str = DEFAULT_CATEGORY
    frequency: RecurrenceFrequency = RecurrenceFrequency.MONTHLY
    next_date: Optional[date] = None
    family_id: Optional[str] = None


class Goal(DocumentModel):
    """A savings goal."""

    id: DocumentId = None
    name: str = Field(..., min_length=1, max_length=200)
    target_amount: float = Field(..., gt=0)
    current_amount: float = Field(default=0, ge=0)
    deadline: Optional[date] = None

    @property
    def progress(self) -> float:
        return min(self.current_amount / self.target_amount, 1.0)


# =============================================================================
# SETTINGS
# =============================================================================

class UserSettings(DocumentModel):
    """
    Per-user preferences.

    Stored as a single ``settings/preferences`` document and always
    merged on update, never replaced.
    """

    currency: str = "USD"
    theme: str = Field(default="dark", pattern="^(dark|light)$")
    default_category: str = DEFAULT_CATEGORY
    notifications: bool = True
    warning_threshold: int = Field(
        default=80,
        ge=1,
        le=100,
        description="Budget percentage at which a warning is shown"
    )
    timezone: str = "auto"

    def merged(self, changes: dict[str, Any]) -> "UserSettings":
        """
        Return a copy with ``changes`` shallow-merged in (validated).

        Keys may be camelCase (as stored) or snake_case; unknown keys are ignored.
        """
        names = {
            (field.alias or name): name
            for name, field in UserSettings.model_fields.items()
        }
        current = self.model_dump()
        for key, value in changes.items():
            name = names.get(key, key)
            if name in current:
                current[name] = value
        return UserSettings.model_validate(current)
