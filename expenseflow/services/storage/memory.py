"""
In-Memory Storage Implementations

Used by the test suite and when no Firebase credentials are configured.
Documents are deep-copied on the way in and out so callers can never
alias stored data.
"""

import copy
from typing import Any, Optional
from uuid import uuid4

from expenseflow.services.storage.interface import (
    ConcurrentModificationError,
    Document,
    DocumentSnapshot,
    DocumentStoreInterface,
    KeyValueStorageInterface,
    NotFoundError,
    PermissionDeniedError,
    StorageError,
)


def _parent(path: str) -> str:
    return path.rsplit("/", 1)[0] if "/" in path else ""


class InMemoryDocumentStore(DocumentStoreInterface):
    """
    Dict-backed document store.

    ``deny_reads`` simulates security rules rejecting reads under a path
    prefix; ``fail_writes`` makes every write raise ``StorageError``.
    """

    def __init__(self):
        self._documents: dict[str, Document] = {}
        self._denied_prefixes: set[str] = set()
        self._fail_writes = False
        self.write_count = 0

    # -- test controls ------------------------------------------------------

    def deny_reads(self, path_prefix: str) -> None:
        self._denied_prefixes.add(path_prefix)

    def allow_reads(self, path_prefix: str) -> None:
        self._denied_prefixes.discard(path_prefix)

    def fail_writes(self, enabled: bool = True) -> None:
        self._fail_writes = enabled

    def dump(self) -> dict[str, Document]:
        """Copy of every stored document keyed by path."""
        return copy.deepcopy(self._documents)

    # -- helpers ------------------------------------------------------------

    def _check_read(self, path: str) -> None:
        for prefix in self._denied_prefixes:
            if path.startswith(prefix):
                raise PermissionDeniedError(f"Permission denied: read {path}")

    def _check_write(self, path: str) -> None:
        if self._fail_writes:
            raise StorageError(f"Failed to write {path}: store unavailable")
        self.write_count += 1

    def _check_version(self, path: str, expected_version: Optional[int]) -> None:
        if expected_version is None:
            return
        stored = self._documents.get(path)
        if stored is None:
            raise NotFoundError(f"Document not found: {path}")
        if stored.get("version") != expected_version:
            raise ConcurrentModificationError(
                f"{path} is at version {stored.get('version')}, expected {expected_version}"
            )

    # -- interface ----------------------------------------------------------

    async def get_document(self, path: str) -> Optional[Document]:
        self._check_read(path)
        doc = self._documents.get(path)
        return copy.deepcopy(doc) if doc is not None else None

    async def set_document(self, path: str, data: Document, merge: bool = False) -> None:
        self._check_write(path)
        if merge and path in self._documents:
            merged = dict(self._documents[path])
            merged.update(copy.deepcopy(data))
            self._documents[path] = merged
        else:
            self._documents[path] = copy.deepcopy(data)

    async def add_document(self, collection_path: str, data: Document) -> str:
        doc_id = uuid4().hex[:20]
        path = f"{collection_path}/{doc_id}"
        self._check_write(path)
        self._documents[path] = copy.deepcopy(data)
        return doc_id

    async def update_document(
        self,
        path: str,
        data: Document,
        expected_version: Optional[int] = None,
    ) -> None:
        self._check_write(path)
        if path not in self._documents:
            raise NotFoundError(f"Document not found: {path}")
        self._check_version(path, expected_version)
        updated = dict(self._documents[path])
        updated.update(copy.deepcopy(data))
        self._documents[path] = updated

    async def delete_document(
        self,
        path: str,
        expected_version: Optional[int] = None,
    ) -> None:
        self._check_write(path)
        self._check_version(path, expected_version)
        self._documents.pop(path, None)

    async def list_documents(self, collection_path: str) -> list[DocumentSnapshot]:
        self._check_read(collection_path)
        return [
            (path.rsplit("/", 1)[1], copy.deepcopy(doc))
            for path, doc in self._documents.items()
            if _parent(path) == collection_path
        ]

    async def query_documents(
        self,
        collection_path: str,
        filters: dict[str, Any],
    ) -> list[DocumentSnapshot]:
        return [
            (doc_id, doc)
            for doc_id, doc in await self.list_documents(collection_path)
            if all(doc.get(field) == value for field, value in filters.items())
        ]


class InMemoryKeyValueStorage(KeyValueStorageInterface):
    """Dict-backed key-value storage."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._items: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._items)
