"""
Abstract Storage Interfaces

DESIGN DECISION: We define abstract interfaces for storage operations.
This allows us to:
1. Run against Firestore in production
2. Use in-memory storage for testing and offline development
3. Keep the sync and family logic decoupled from the storage backend

Two kinds of storage exist:
- A remote document store (collections of JSON-like documents addressed
  by slash-separated paths, e.g. ``users/{uid}/transactions/{id}``)
- A local key-value storage holding JSON strings, used while nobody is
  signed in
"""

from abc import ABC, abstractmethod
from typing import Any, Optional


Document = dict[str, Any]
DocumentSnapshot = tuple[str, Document]


class DocumentStoreInterface(ABC):
    """
    Abstract interface for a remote document store.

    Paths alternate collection and document segments. A document path has
    an even number of segments, a collection path an odd number.
    """

    @abstractmethod
    async def get_document(self, path: str) -> Optional[Document]:
        """
        Read one document.

        Returns:
            The document body, or None if it does not exist

        Raises:
            PermissionDeniedError: If security rules deny the read
            StorageError: For any other backend failure
        """
        pass

    @abstractmethod
    async def set_document(self, path: str, data: Document, merge: bool = False) -> None:
        """
        Create or overwrite a document.

        With ``merge=True`` fields missing from ``data`` are preserved.
        """
        pass

    @abstractmethod
    async def add_document(self, collection_path: str, data: Document) -> str:
        """
        Create a document with a store-assigned id.

        Returns:
            The new document id
        """
        pass

    @abstractmethod
    async def update_document(
        self,
        path: str,
        data: Document,
        expected_version: Optional[int] = None,
    ) -> None:
        """
        Update fields of an existing document.

        Top-level fields in ``data`` replace the stored values; other fields
        are kept. When ``expected_version`` is given the write only happens
        if the stored ``version`` field still equals it.

        Raises:
            NotFoundError: If the document does not exist
            ConcurrentModificationError: If the version no longer matches
        """
        pass

    @abstractmethod
    async def delete_document(
        self,
        path: str,
        expected_version: Optional[int] = None,
    ) -> None:
        """
        Delete a document. Deleting a missing document is not an error
        unless ``expected_version`` is given.
        """
        pass

    @abstractmethod
    async def list_documents(self, collection_path: str) -> list[DocumentSnapshot]:
        """List every document of a collection as (id, body) pairs."""
        pass

    @abstractmethod
    async def query_documents(
        self,
        collection_path: str,
        filters: dict[str, Any],
    ) -> list[DocumentSnapshot]:
        """
        List the documents of a collection whose fields equal all ``filters``.
        """
        pass


class KeyValueStorageInterface(ABC):
    """
    Abstract interface for local key-value storage.

    Values are strings (JSON in practice); this mirrors browser local
    storage semantics.
    """

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        """Return the stored value, or None if the key is absent."""
        pass

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one."""
        pass

    @abstractmethod
    def remove_item(self, key: str) -> None:
        """Remove a key; removing an absent key is a no-op."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class PermissionDeniedError(StorageError):
    """The backend's security rules rejected the operation."""
    pass


class ConcurrentModificationError(StorageError):
    """The document changed since it was read (version mismatch)."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
