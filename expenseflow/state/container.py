"""
State Container

Holds the current ``AppState`` and is the only thing allowed to replace
it. Created explicitly when a session starts and closed when it ends;
there is no module-level instance.
"""

from typing import Any, Callable, Optional, Union

from expenseflow.audit import get_logger
from expenseflow.state.actions import Action
from expenseflow.state.app_state import AppState, initial_state
from expenseflow.state.reducer import app_reducer


logger = get_logger(__name__)

Listener = Callable[[AppState, AppState], None]
Reducer = Callable[[AppState, Any], AppState]


class ContainerClosedError(RuntimeError):
    """Dispatch was attempted on a container whose session has ended."""
    pass


class StateContainer:
    """
    Single owner of application state.

    ``dispatch`` runs the reducer and then notifies listeners with the
    previous and current snapshots. Listeners only run when the snapshot
    actually changed.
    """

    def __init__(
        self,
        initial: Optional[AppState] = None,
        reducer: Reducer = app_reducer,
    ):
        self._state = initial if initial is not None else initial_state()
        self._reducer = reducer
        self._listeners: list[Listener] = []
        self._closed = False

    @property
    def state(self) -> AppState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._closed

    def dispatch(self, action: Union[Action, dict[str, Any]]) -> AppState:
        """Apply an action and return the new snapshot."""
        if self._closed:
            raise ContainerClosedError("State container has been closed")

        previous = self._state
        self._state = self._reducer(previous, action)

        if self._state is not previous:
            for listener in list(self._listeners):
                try:
                    listener(previous, self._state)
                except Exception as e:
                    # A broken listener must not undo or block the state change
                    logger.error(
                        "state_listener_failed",
                        listener=getattr(listener, "__name__", repr(listener)),
                        error=str(e),
                    )
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def close(self) -> None:
        """End the container's lifecycle and drop all listeners."""
        self._listeners.clear()
        self._closed = True
