"""
Data Models Package

This package contains all Pydantic models used in ExpenseFlow.
All data flowing through the state container and the stores must
conform to these schemas.
"""

from expenseflow.models.base import DocumentId, DocumentModel
from expenseflow.models.finance import (
    DEFAULT_CATEGORY,
    EXPENSE_CATEGORIES,
    INCOME_CATEGORY,
    Budget,
    Goal,
    Ownership,
    RecurrenceFrequency,
    RecurringTransaction,
    Transaction,
    TransactionType,
    UserSettings,
)
from expenseflow.models.family import (
    Family,
    FamilyMember,
    Identity,
    Invitation,
    InvitationStatus,
    MemberInfo,
    MemberRole,
    UserProfile,
)
from expenseflow.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Base
    "DocumentId",
    "DocumentModel",
    # Finance models
    "DEFAULT_CATEGORY",
    "EXPENSE_CATEGORIES",
    "INCOME_CATEGORY",
    "Budget",
    "Goal",
    "Ownership",
    "RecurrenceFrequency",
    "RecurringTransaction",
    "Transaction",
    "TransactionType",
    "UserSettings",
    # Family models
    "Family",
    "FamilyMember",
    "Identity",
    "Invitation",
    "InvitationStatus",
    "MemberInfo",
    "MemberRole",
    "UserProfile",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
