"""
Form Validation

DESIGN DECISION: Form input is validated before any store call. A form
that fails validation never reaches the repository or the state
container, so nothing has to be rolled back.

Validation NEVER silently fixes issues. It reports them so the form can
show them inline. ``build_transaction`` / ``build_budget`` only coerce
input that already passed validation.
"""

import re
from datetime import datetime
from typing import Iterable, Optional

from pydantic import BaseModel, Field

from expenseflow.models import (
    DEFAULT_CATEGORY,
    INCOME_CATEGORY,
    Budget,
    Transaction,
    TransactionType,
)
from expenseflow.utils.dates import parse_input_date


_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Form field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_format', 'duplicate')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning|info)$",
    )


class ValidationResult(BaseModel):
    """Outcome of validating one form."""

    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not any(issue.severity == "error" for issue in self.issues)

    @property
    def errors(self) -> list[str]:
        return [issue.message for issue in self.issues if issue.severity == "error"]

    def error_for(self, field: str) -> Optional[str]:
        for issue in self.issues:
            if issue.field == field and issue.severity == "error":
                return issue.message
        return None


class ValidationError(ValueError):
    """Raised when a form that failed validation is submitted anyway."""

    def __init__(self, result: ValidationResult):
        self.result = result
        super().__init__("; ".join(result.errors) or "Invalid input")


def _parse_amount(raw) -> Optional[float]:
    if raw is None or isinstance(raw, bool):
        return None
    try:
        return float(str(raw).strip())
    except ValueError:
        return None


def validate_transaction_form(
    text: Optional[str],
    amount,
    transaction_type: str = TransactionType.EXPENSE.value,
    date_text: Optional[str] = None,
    timezone: str = "auto",
) -> ValidationResult:
    """
    Check a transaction form.

    ``amount`` is the raw form value; its sign is ignored because the
    direction comes from ``transaction_type``.
    """
    issues = []

    if not text or not text.strip():
        issues.append(ValidationIssue(
            field="text",
            issue_type="missing",
            message="Description is required",
        ))
    elif len(text.strip()) > 200:
        issues.append(ValidationIssue(
            field="text",
            issue_type="too_long",
            message="Description must be at most 200 characters",
        ))

    value = _parse_amount(amount)
    if value is None:
        issues.append(ValidationIssue(
            field="amount",
            issue_type="invalid_format",
            message="Amount must be a number",
        ))
    elif value == 0:
        issues.append(ValidationIssue(
            field="amount",
            issue_type="invalid_value",
            message="Amount cannot be zero",
        ))

    if transaction_type not in {t.value for t in TransactionType}:
        issues.append(ValidationIssue(
            field="type",
            issue_type="invalid_value",
            message="Type must be income or expense",
        ))

    if date_text:
        try:
            parse_input_date(date_text, timezone)
        except ValueError:
            issues.append(ValidationIssue(
                field="date",
                issue_type="invalid_format",
                message=f"Unrecognised date: {date_text}",
            ))

    return ValidationResult(issues=issues)


def build_transaction(
    text: str,
    amount,
    transaction_type: str = TransactionType.EXPENSE.value,
    category: Optional[str] = None,
    date_text: Optional[str] = None,
    timezone: str = "auto",
    family_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Transaction:
    """
    Turn transaction form values into a ``Transaction``.

    Expenses get a negative amount; income is always filed under the
    "Income" category.

    Raises:
        ValidationError: the form does not validate
    """
    result = validate_transaction_form(text, amount, transaction_type, date_text, timezone)
    if not result.is_valid:
        raise ValidationError(result)

    magnitude = abs(_parse_amount(amount))
    is_expense = transaction_type == TransactionType.EXPENSE.value
    return Transaction(
        text=text.strip(),
        amount=-magnitude if is_expense else magnitude,
        date=parse_input_date(date_text, timezone, now=now),
        category=(category or DEFAULT_CATEGORY) if is_expense else INCOME_CATEGORY,
        family_id=family_id,
    )


def validate_budget_form(category: Optional[str], limit) -> ValidationResult:
    issues = []
    if not category or not category.strip():
        issues.append(ValidationIssue(
            field="category",
            issue_type="missing",
            message="Category is required",
        ))
    value = _parse_amount(limit)
    if value is None:
        issues.append(ValidationIssue(
            field="limit",
            issue_type="invalid_format",
            message="Limit must be a number",
        ))
    elif value <= 0:
        issues.append(ValidationIssue(
            field="limit",
            issue_type="invalid_value",
            message="Limit must be greater than zero",
        ))
    return ValidationResult(issues=issues)


def build_budget(
    category: str,
    limit,
    month: int,
    year: int,
    is_family: bool = False,
    family_id: Optional[str] = None,
) -> Budget:
    """
    Turn budget form values into a ``Budget`` for ``month`` (1-12) of ``year``.

    Raises:
        ValidationError: the form does not validate
    """
    result = validate_budget_form(category, limit)
    if not result.is_valid:
        raise ValidationError(result)
    return Budget(
        category=category.strip(),
        limit=_parse_amount(limit),
        month=month,
        year=year,
        is_family=is_family,
        family_id=family_id if is_family else None,
    )


def validate_category_name(name: Optional[str], existing: Iterable[str]) -> ValidationResult:
    """A category name must be non-empty and not already in the list."""
    issues = []
    trimmed = (name or "").strip()
    if not trimmed:
        issues.append(ValidationIssue(
            field="category",
            issue_type="missing",
            message="Category name cannot be empty",
        ))
    elif trimmed in set(existing):
        issues.append(ValidationIssue(
            field="category",
            issue_type="duplicate",
            message="Category already exists",
        ))
    return ValidationResult(issues=issues)


def validate_invitation_email(email: Optional[str]) -> ValidationResult:
    issues = []
    trimmed = (email or "").strip()
    if not trimmed:
        issues.append(ValidationIssue(
            field="email",
            issue_type="missing",
            message="Email is required",
        ))
    elif not _EMAIL_PATTERN.match(trimmed):
        issues.append(ValidationIssue(
            field="email",
            issue_type="invalid_format",
            message=f"'{trimmed}' is not a valid email address",
        ))
    return ValidationResult(issues=issues)
