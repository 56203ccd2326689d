"""
State Container Actions

DESIGN DECISION: Actions are a closed set of typed records, one class per
action kind, each with a literal ``type`` tag and a typed ``payload``.
``parse_action`` turns an untyped ``{"type": ..., "payload": ...}`` record
into the matching class (pydantic discriminated union), so malformed
actions are rejected at the boundary instead of reaching the reducer.
"""

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from expenseflow.models import (
    Budget,
    Family,
    FamilyMember,
    Goal,
    Invitation,
    RecurringTransaction,
    Transaction,
)


class _Action(BaseModel):
    model_config = ConfigDict(frozen=True)


# =============================================================================
# TRANSACTIONS
# =============================================================================

class AddTransaction(_Action):
    type: Literal["ADD_TRANSACTION"] = "ADD_TRANSACTION"
    payload: Transaction


class UpdateTransaction(_Action):
    type: Literal["UPDATE_TRANSACTION"] = "UPDATE_TRANSACTION"
    payload: Transaction


class DeleteTransaction(_Action):
    type: Literal["DELETE_TRANSACTION"] = "DELETE_TRANSACTION"
    payload: str


class SetTransactions(_Action):
    type: Literal["SET_TRANSACTIONS"] = "SET_TRANSACTIONS"
    payload: tuple[Transaction, ...]


# =============================================================================
# BUDGETS
# =============================================================================

class AddBudget(_Action):
    type: Literal["ADD_BUDGET"] = "ADD_BUDGET"
    payload: Budget


class UpdateBudget(_Action):
    type: Literal["UPDATE_BUDGET"] = "UPDATE_BUDGET"
    payload: Budget


class DeleteBudget(_Action):
    type: Literal["DELETE_BUDGET"] = "DELETE_BUDGET"
    payload: str


class SetBudgets(_Action):
    type: Literal["SET_BUDGETS"] = "SET_BUDGETS"
    payload: tuple[Budget, ...]


# =============================================================================
# RECURRING TRANSACTIONS
# =============================================================================

class AddRecurring(_Action):
    type: Literal["ADD_RECURRING"] = "ADD_RECURRING"
    payload: RecurringTransaction


class UpdateRecurring(_Action):
    type: Literal["UPDATE_RECURRING"] = "UPDATE_RECURRING"
    payload: RecurringTransaction


class DeleteRecurring(_Action):
    type: Literal["DELETE_RECURRING"] = "DELETE_RECURRING"
    payload: str


class SetRecurring(_Action):
    type: Literal["SET_RECURRING"] = "SET_RECURRING"
    payload: tuple[RecurringTransaction, ...]


# =============================================================================
# GOALS
# =============================================================================

class AddGoal(_Action):
    type: Literal["ADD_GOAL"] = "ADD_GOAL"
    payload: Goal


class UpdateGoal(_Action):
    type: Literal["UPDATE_GOAL"] = "UPDATE_GOAL"
    payload: Goal


class DeleteGoal(_Action):
    type: Literal["DELETE_GOAL"] = "DELETE_GOAL"
    payload: str


class SetGoals(_Action):
    type: Literal["SET_GOALS"] = "SET_GOALS"
    payload: tuple[Goal, ...]


# =============================================================================
# CATEGORIES AND SETTINGS
# =============================================================================

class AddCategory(_Action):
    type: Literal["ADD_CATEGORY"] = "ADD_CATEGORY"
    payload: str


class DeleteCategory(_Action):
    type: Literal["DELETE_CATEGORY"] = "DELETE_CATEGORY"
    payload: str


class SetCategories(_Action):
    type: Literal["SET_CATEGORIES"] = "SET_CATEGORIES"
    payload: tuple[str, ...]


class SetSettings(_Action):
    """Settings loaded from a store; merged into the current settings."""
    type: Literal["SET_SETTINGS"] = "SET_SETTINGS"
    payload: dict[str, Any]


class UpdateSettings(_Action):
    """User edit of one or more settings; merged into the current settings."""
    type: Literal["UPDATE_SETTINGS"] = "UPDATE_SETTINGS"
    payload: dict[str, Any]


# =============================================================================
# FAMILY
# =============================================================================

class SetFamily(_Action):
    type: Literal["SET_FAMILY"] = "SET_FAMILY"
    payload: Optional[Family] = None


class SetFamilyMembers(_Action):
    type: Literal["SET_FAMILY_MEMBERS"] = "SET_FAMILY_MEMBERS"
    payload: tuple[FamilyMember, ...]


class AddFamilyMember(_Action):
    type: Literal["ADD_FAMILY_MEMBER"] = "ADD_FAMILY_MEMBER"
    payload: FamilyMember


class RemoveFamilyMember(_Action):
    type: Literal["REMOVE_FAMILY_MEMBER"] = "REMOVE_FAMILY_MEMBER"
    payload: str


class SetFamilyTransactions(_Action):
    type: Literal["SET_FAMILY_TRANSACTIONS"] = "SET_FAMILY_TRANSACTIONS"
    payload: tuple[Transaction, ...]


class AddFamilyTransaction(_Action):
    type: Literal["ADD_FAMILY_TRANSACTION"] = "ADD_FAMILY_TRANSACTION"
    payload: Transaction


class UpdateFamilyTransaction(_Action):
    type: Literal["UPDATE_FAMILY_TRANSACTION"] = "UPDATE_FAMILY_TRANSACTION"
    payload: Transaction


class DeleteFamilyTransaction(_Action):
    type: Literal["DELETE_FAMILY_TRANSACTION"] = "DELETE_FAMILY_TRANSACTION"
    payload: str


# =============================================================================
# INVITATIONS
# =============================================================================

class SetInvitations(_Action):
    """Pending invitations addressed to the signed-in user."""
    type: Literal["SET_INVITATIONS"] = "SET_INVITATIONS"
    payload: tuple[Invitation, ...]


class DeleteInvitation(_Action):
    type: Literal["DELETE_INVITATION"] = "DELETE_INVITATION"
    payload: str


class SetSentInvitations(_Action):
    type: Literal["SET_SENT_INVITATIONS"] = "SET_SENT_INVITATIONS"
    payload: tuple[Invitation, ...]


class DeleteSentInvitation(_Action):
    type: Literal["DELETE_SENT_INVITATION"] = "DELETE_SENT_INVITATION"
    payload: str


# =============================================================================
# RESET
# =============================================================================

class ResetState(_Action):
    type: Literal["RESET_STATE"] = "RESET_STATE"
    payload: None = None


Action = Annotated[
    Union[
        AddTransaction,
        UpdateTransaction,
        DeleteTransaction,
        SetTransactions,
        AddBudget,
        UpdateBudget,
        DeleteBudget,
        SetBudgets,
        AddRecurring,
        UpdateRecurring,
        DeleteRecurring,
        SetRecurring,
        AddGoal,
        UpdateGoal,
        DeleteGoal,
        SetGoals,
        AddCategory,
        DeleteCategory,
        SetCategories,
        SetSettings,
        UpdateSettings,
        SetFamily,
        SetFamilyMembers,
        AddFamilyMember,
        RemoveFamilyMember,
        SetFamilyTransactions,
        AddFamilyTransaction,
        UpdateFamilyTransaction,
        DeleteFamilyTransaction,
        SetInvitations,
        DeleteInvitation,
        SetSentInvitations,
        DeleteSentInvitation,
        ResetState,
    ],
    Field(discriminator="type"),
]

_action_adapter = TypeAdapter(Action)


def parse_action(record: dict[str, Any]) -> Action:
    """
    Build a typed action from a ``{"type": ..., "payload": ...}`` record.

    Raises:
        pydantic.ValidationError: unknown type or payload of the wrong shape
    """
    return _action_adapter.validate_python(record)
