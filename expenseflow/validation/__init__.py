"""Form validation."""

from expenseflow.validation.validator import (
    ValidationError,
    ValidationIssue,
    ValidationResult,
    build_budget,
    build_transaction,
    validate_budget_form,
    validate_category_name,
    validate_invitation_email,
    validate_transaction_form,
)

__all__ = [
    "ValidationError",
    "ValidationIssue",
    "ValidationResult",
    "build_budget",
    "build_transaction",
    "validate_budget_form",
    "validate_category_name",
    "validate_invitation_email",
    "validate_transaction_form",
]
