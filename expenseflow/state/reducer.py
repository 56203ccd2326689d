"""
State Reducer

A pure function ``(state, action) -> state``. Each handler returns a copy
of the state with exactly one field replaced. Unknown actions are logged
and ignored; the reducer never raises for them.
"""

from typing import Any, Callable, Optional, Union

from pydantic import ValidationError

from expenseflow.audit import get_logger
from expenseflow.state import actions as a
from expenseflow.state.app_state import AppState, initial_state


logger = get_logger(__name__)

Handler = Callable[[AppState, Any], AppState]


# =============================================================================
# COLLECTION HELPERS
# =============================================================================

def _replace(state: AppState, field: str, value: Any) -> AppState:
    return state.model_copy(update={field: value})


def _replace_by_id(items: tuple, item: Any, key: str = "id") -> tuple:
    item_id = getattr(item, key)
    return tuple(item if getattr(i, key) == item_id else i for i in items)


def _remove_by_id(items: tuple, item_id: Optional[str], key: str = "id") -> tuple:
    return tuple(i for i in items if getattr(i, key) != item_id)


def _upsert_by_id(items: tuple, item: Any, key: str = "id") -> tuple:
    item_id = getattr(item, key)
    if any(getattr(i, key) == item_id for i in items):
        return _replace_by_id(items, item, key)
    return items + (item,)


# =============================================================================
# HANDLERS
# =============================================================================

_HANDLERS: dict[type, Handler] = {
    # Transactions (newest first)
    a.AddTransaction: lambda s, act: _replace(
        s, "transactions", (act.payload,) + s.transactions
    ),
    a.UpdateTransaction: lambda s, act: _replace(
        s, "transactions", _replace_by_id(s.transactions, act.payload)
    ),
    a.DeleteTransaction: lambda s, act: _replace(
        s, "transactions", _remove_by_id(s.transactions, act.payload)
    ),
    a.SetTransactions: lambda s, act: _replace(s, "transactions", tuple(act.payload)),

    # Budgets
    a.AddBudget: lambda s, act: _replace(s, "budgets", s.budgets + (act.payload,)),
    a.UpdateBudget: lambda s, act: _replace(
        s, "budgets", _replace_by_id(s.budgets, act.payload)
    ),
    a.DeleteBudget: lambda s, act: _replace(
        s, "budgets", _remove_by_id(s.budgets, act.payload)
    ),
    a.SetBudgets: lambda s, act: _replace(s, "budgets", tuple(act.payload)),

    # Recurring transactions
    a.AddRecurring: lambda s, act: _replace(
        s, "recurring_transactions", s.recurring_transactions + (act.payload,)
    ),
    a.UpdateRecurring: lambda s, act: _replace(
        s, "recurring_transactions", _replace_by_id(s.recurring_transactions, act.payload)
    ),
    a.DeleteRecurring: lambda s, act: _replace(
        s, "recurring_transactions", _remove_by_id(s.recurring_transactions, act.payload)
    ),
    a.SetRecurring: lambda s, act: _replace(s, "recurring_transactions", tuple(act.payload)),

    # Goals
    a.AddGoal: lambda s, act: _replace(s, "goals", s.goals + (act.payload,)),
    a.UpdateGoal: lambda s, act: _replace(s, "goals", _replace_by_id(s.goals, act.payload)),
    a.DeleteGoal: lambda s, act: _replace(s, "goals", _remove_by_id(s.goals, act.payload)),
    a.SetGoals: lambda s, act: _replace(s, "goals", tuple(act.payload)),

    # Categories
    a.AddCategory: lambda s, act: _replace(s, "categories", s.categories + (act.payload,)),
    a.DeleteCategory: lambda s, act: _replace(
        s, "categories", tuple(c for c in s.categories if c != act.payload)
    ),
    a.SetCategories: lambda s, act: _replace(s, "categories", tuple(act.payload)),

    # Settings are merged, never replaced
    a.SetSettings: lambda s, act: _replace(s, "settings", s.settings.merged(act.payload)),
    a.UpdateSettings: lambda s, act: _replace(s, "settings", s.settings.merged(act.payload)),

    # Family
    a.SetFamily: lambda s, act: _replace(s, "family", act.payload),
    a.SetFamilyMembers: lambda s, act: _replace(s, "family_members", tuple(act.payload)),
    a.AddFamilyMember: lambda s, act: _replace(
        s, "family_members", _upsert_by_id(s.family_members, act.payload, key="uid")
    ),
    a.RemoveFamilyMember: lambda s, act: _replace(
        s, "family_members", _remove_by_id(s.family_members, act.payload, key="uid")
    ),

    # Family transactions (newest first)
    a.SetFamilyTransactions: lambda s, act: _replace(
        s, "family_transactions", tuple(act.payload)
    ),
    a.AddFamilyTransaction: lambda s, act: _replace(
        s, "family_transactions", (act.payload,) + s.family_transactions
    ),
    a.UpdateFamilyTransaction: lambda s, act: _replace(
        s, "family_transactions", _replace_by_id(s.family_transactions, act.payload)
    ),
    a.DeleteFamilyTransaction: lambda s, act: _replace(
        s, "family_transactions", _remove_by_id(s.family_transactions, act.payload)
    ),

    # Invitations
    a.SetInvitations: lambda s, act: _replace(s, "family_invitations", tuple(act.payload)),
    a.DeleteInvitation: lambda s, act: _replace(
        s, "family_invitations", _remove_by_id(s.family_invitations, act.payload)
    ),
    a.SetSentInvitations: lambda s, act: _replace(s, "sent_invitations", tuple(act.payload)),
    a.DeleteSentInvitation: lambda s, act: _replace(
        s, "sent_invitations", _remove_by_id(s.sent_invitations, act.payload)
    ),

    a.ResetState: lambda s, act: initial_state(),
}


def app_reducer(state: AppState, action: Union[a.Action, dict[str, Any]]) -> AppState:
    """
    Apply one action to a state snapshot.

    ``action`` may be a typed action or a raw ``{"type", "payload"}`` record.
    Anything that is not a known action returns ``state`` unchanged.
    """
    if isinstance(action, dict):
        try:
            action = a.parse_action(action)
        except ValidationError as e:
            logger.warning(
                "unknown_action_ignored",
                action_type=action.get("type"),
                error=str(e),
            )
            return state

    handler = _HANDLERS.get(type(action))
    if handler is None:
        logger.warning(
            "unknown_action_ignored",
            action_type=getattr(action, "type", type(action).__name__),
        )
        return state

    return handler(state, action)


def handled_action_types() -> frozenset[type]:
    """Action classes the reducer knows about."""
    return frozenset(_HANDLERS)
