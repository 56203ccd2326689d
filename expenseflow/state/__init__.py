"""Application state container package."""

from expenseflow.state.actions import Action, parse_action
from expenseflow.state.app_state import AppState, initial_state
from expenseflow.state.container import ContainerClosedError, StateContainer
from expenseflow.state.reducer import app_reducer, handled_action_types

__all__ = [
    "Action",
    "AppState",
    "ContainerClosedError",
    "StateContainer",
    "app_reducer",
    "handled_action_types",
    "initial_state",
    "parse_action",
]
