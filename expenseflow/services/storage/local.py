"""
Local Fallback Storage

While nobody is signed in, app data lives in a key-value storage holding
one JSON value per key. ``LocalStateStore`` turns those keys into state
container actions (hydration) and writes state changes back (mirroring).

DESIGN DECISION: A key holding malformed JSON (or JSON of the wrong
shape) is logged and falls back to its default. A corrupt file must
never stop the application from starting.
"""

import json
import re
from pathlib import Path
from typing import Any, Callable, Optional

from pydantic import TypeAdapter, ValidationError

from expenseflow.audit import AuditLogger, get_logger
from expenseflow.models import (
    AuditEvent,
    AuditEventType,
    AuditSeverity,
    Budget,
    Goal,
    RecurringTransaction,
    Transaction,
    UserSettings,
)
from expenseflow.services.storage.interface import (
    KeyValueStorageInterface,
    StorageError,
)
from expenseflow.state import actions as a
from expenseflow.state.app_state import AppState


logger = get_logger(__name__)


TRANSACTIONS_KEY = "transactions"
BUDGETS_KEY = "budgets"
RECURRING_KEY = "recurringTransactions"
GOALS_KEY = "goals"
CATEGORIES_KEY = "categories"
SETTINGS_KEY = "settings"
THEME_KEY = "theme"

# Keys hydrated into the container and removed by "clear all data".
# The theme key is a display preference and survives a clear.
APP_KEYS = (
    TRANSACTIONS_KEY,
    BUDGETS_KEY,
    RECURRING_KEY,
    GOALS_KEY,
    CATEGORIES_KEY,
    SETTINGS_KEY,
)

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


class JSONFileStorage(KeyValueStorageInterface):
    """
    Key-value storage backed by a directory with one ``<key>.json`` file
    per key.
    """

    def __init__(self, directory: str):
        self._directory = Path(directory)

    @property
    def directory(self) -> Path:
        return self._directory

    def _path(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise StorageError(f"Invalid storage key: {key!r}")
        return self._directory / f"{key}.json"

    def get_item(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"Failed to read {path}: {e}")

    def set_item(self, key: str, value: str) -> None:
        path = self._path(key)
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            path.write_text(value, encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Failed to write {path}: {e}")

    def remove_item(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to remove {path}: {e}")


# One (state field, action class, adapter) per hydrated key
_HYDRATION: dict[str, tuple[str, Callable[[Any], a.Action], TypeAdapter]] = {
    TRANSACTIONS_KEY: (
        "transactions",
        lambda v: a.SetTransactions(payload=v),
        TypeAdapter(tuple[Transaction, ...]),
    ),
    BUDGETS_KEY: (
        "budgets",
        lambda v: a.SetBudgets(payload=v),
        TypeAdapter(tuple[Budget, ...]),
    ),
    RECURRING_KEY: (
        "recurring_transactions",
        lambda v: a.SetRecurring(payload=v),
        TypeAdapter(tuple[RecurringTransaction, ...]),
    ),
    GOALS_KEY: (
        "goals",
        lambda v: a.SetGoals(payload=v),
        TypeAdapter(tuple[Goal, ...]),
    ),
    CATEGORIES_KEY: (
        "categories",
        lambda v: a.SetCategories(payload=v),
        TypeAdapter(tuple[str, ...]),
    ),
    SETTINGS_KEY: (
        "settings",
        lambda v: a.SetSettings(payload=v),
        TypeAdapter(dict[str, Any]),
    ),
}


def _serialize(value: Any) -> str:
    if isinstance(value, tuple):
        return json.dumps([
            item.to_record() if hasattr(item, "to_record") else item
            for item in value
        ])
    return json.dumps(value.to_record())


class LocalStateStore:
    """
    Reads and writes the app keys of a key-value storage.

    Usage:
        local = LocalStateStore(JSONFileStorage(".expenseflow"))
        for action in local.load_actions():
            container.dispatch(action)
        unsubscribe = container.subscribe(local.mirror)
    """

    def __init__(
        self,
        storage: KeyValueStorageInterface,
        audit: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit = audit or AuditLogger()

    @property
    def storage(self) -> KeyValueStorageInterface:
        return self._storage

    def _read(self, key: str, adapter: TypeAdapter) -> Any:
        raw = self._storage.get_item(key)
        if raw is None:
            return None
        try:
            value = adapter.validate_python(json.loads(raw))
            if key == SETTINGS_KEY:
                # Settings are merged in the reducer, so check them against the model here
                UserSettings().merged(value)
            return value
        except (json.JSONDecodeError, ValidationError) as e:
            self._audit.log(AuditEvent(
                event_type=AuditEventType.LOCAL_STORAGE_INVALID,
                severity=AuditSeverity.WARNING,
                entity_type=key,
                description=f"Ignoring unreadable local value for '{key}'",
                error_message=str(e),
            ))
            return None

    def load_actions(self) -> list[a.Action]:
        """
        Actions that hydrate a freshly reset container.

        Keys that are absent or invalid produce no action, which leaves the
        container at its default for that key.
        """
        loaded = []
        for key, (_, make_action, adapter) in _HYDRATION.items():
            value = self._read(key, adapter)
            if value is not None:
                loaded.append(make_action(value))

        theme = self.read_theme()
        if theme is not None:
            loaded.append(a.SetSettings(payload={"theme": theme}))

        self._audit.log(AuditEvent(
            event_type=AuditEventType.LOCAL_STATE_HYDRATED,
            description="Hydrated state from local storage",
            details={"keys": [act.type for act in loaded]},
        ))
        return loaded

    def read_theme(self) -> Optional[str]:
        raw = self._storage.get_item(THEME_KEY)
        if raw is None:
            return None
        try:
            theme = json.loads(raw)
        except json.JSONDecodeError:
            # Older versions stored the bare word
            theme = raw.strip()
        return theme if theme in ("dark", "light") else None

    def write_theme(self, theme: str) -> None:
        self._storage.set_item(THEME_KEY, json.dumps(theme))

    def save(self, state: AppState) -> None:
        """Write every app key from ``state``."""
        for key, (field, _, _) in _HYDRATION.items():
            self._storage.set_item(key, _serialize(getattr(state, field)))

    def mirror(self, previous: AppState, current: AppState) -> None:
        """State listener writing only the keys whose field changed."""
        for key, (field, _, _) in _HYDRATION.items():
            value = getattr(current, field)
            if value != getattr(previous, field):
                self._storage.set_item(key, _serialize(value))
        if current.settings.theme != previous.settings.theme:
            self.write_theme(current.settings.theme)

    def clear(self) -> None:
        """Remove the app keys (the theme key is kept)."""
        for key in APP_KEYS:
            self._storage.remove_item(key)
        logger.info("local_storage_cleared", keys=list(APP_KEYS))
