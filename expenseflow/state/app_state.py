"""
Application State

One immutable snapshot of everything the presentation layer reads.
Collections are tuples and models are frozen, so a snapshot handed to a
reader can never change underneath it; the reducer always builds a new one.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from expenseflow.models import (
    EXPENSE_CATEGORIES,
    Budget,
    Family,
    FamilyMember,
    Goal,
    Invitation,
    RecurringTransaction,
    Transaction,
    UserSettings,
)


class AppState(BaseModel):
    """Snapshot of the state container."""

    model_config = ConfigDict(frozen=True)

    transactions: tuple[Transaction, ...] = ()
    budgets: tuple[Budget, ...] = ()
    recurring_transactions: tuple[RecurringTransaction, ...] = ()
    goals: tuple[Goal, ...] = ()
    categories: tuple[str, ...] = EXPENSE_CATEGORIES
    settings: UserSettings = Field(default_factory=UserSettings)

    family: Optional[Family] = None
    family_members: tuple[FamilyMember, ...] = ()
    family_invitations: tuple[Invitation, ...] = Field(
        default=(),
        description="Pending invitations addressed to the signed-in user"
    )
    sent_invitations: tuple[Invitation, ...] = Field(
        default=(),
        description="Pending invitations sent by the user's family"
    )
    family_transactions: tuple[Transaction, ...] = ()

    @property
    def has_family(self) -> bool:
        return self.family is not None


def initial_state() -> AppState:
    """Empty collections, built-in categories and default settings."""
    return AppState()
