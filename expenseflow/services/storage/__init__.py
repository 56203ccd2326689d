"""Storage package: remote document stores, local fallback and repository."""

from expenseflow.services.storage.interface import (
    ConcurrentModificationError,
    ConnectionError,
    Document,
    DocumentSnapshot,
    DocumentStoreInterface,
    KeyValueStorageInterface,
    NotFoundError,
    PermissionDeniedError,
    StorageError,
)
from expenseflow.services.storage.local import (
    APP_KEYS,
    JSONFileStorage,
    LocalStateStore,
)
from expenseflow.services.storage.memory import (
    InMemoryDocumentStore,
    InMemoryKeyValueStorage,
)
from expenseflow.services.storage.repository import FinanceRepository

__all__ = [
    "APP_KEYS",
    "ConcurrentModificationError",
    "ConnectionError",
    "Document",
    "DocumentSnapshot",
    "DocumentStoreInterface",
    "FinanceRepository",
    "InMemoryDocumentStore",
    "InMemoryKeyValueStorage",
    "JSONFileStorage",
    "KeyValueStorageInterface",
    "LocalStateStore",
    "NotFoundError",
    "PermissionDeniedError",
    "StorageError",
]
