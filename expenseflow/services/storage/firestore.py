"""
Firestore Storage Implementation

DESIGN DECISION: Firestore (through firebase-admin) is the remote store
because the persisted layout is a tree of user and family collections,
which maps directly onto Firestore document paths.

TRADEOFFS:
- No multi-document transactions are used (each write stands alone)
- Member-map edits are guarded by a version check plus a Firestore
  write precondition on the snapshot's update time
"""

from typing import Any, Optional

import firebase_admin
from firebase_admin import credentials, firestore_async
from google.api_core import exceptions as google_exceptions
from google.cloud.firestore_v1.base_query import FieldFilter
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from expenseflow.config import get_settings
from expenseflow.services.storage.interface import (
    ConcurrentModificationError,
    ConnectionError,
    Document,
    DocumentSnapshot,
    DocumentStoreInterface,
    NotFoundError,
    PermissionDeniedError,
    StorageError,
)


APP_NAME = "expenseflow"


class TransientStorageError(StorageError):
    """Backend temporarily unavailable; safe to retry."""
    pass


_retry_transient = retry(
    retry=retry_if_exception_type(TransientStorageError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


def _translate(error: Exception, operation: str) -> StorageError:
    """Map a Google API error onto the storage exception hierarchy."""
    if isinstance(error, google_exceptions.PermissionDenied):
        return PermissionDeniedError(f"Permission denied: {operation}")
    if isinstance(error, google_exceptions.NotFound):
        return NotFoundError(f"Not found: {operation}")
    if isinstance(error, google_exceptions.FailedPrecondition):
        return ConcurrentModificationError(f"Document changed during {operation}")
    if isinstance(
        error,
        (google_exceptions.ServiceUnavailable, google_exceptions.DeadlineExceeded),
    ):
        return TransientStorageError(f"Firestore unavailable during {operation}: {error}")
    return StorageError(f"Failed to {operation}: {error}")


class FirestoreClient:
    """
    Low-level Firestore client wrapper.

    Handles authentication and lazily creates the async client.
    """

    def __init__(self):
        self._db: Optional[firestore_async.AsyncClient] = None
        self._settings = get_settings().firebase

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> firestore_async.AsyncClient:
        """
        Establish connection to Firestore.

        Uses service account credentials for authentication.
        """
        if self._db is None:
            try:
                try:
                    app = firebase_admin.get_app(APP_NAME)
                except ValueError:
                    cred = credentials.Certificate(self._settings.credentials_path)
                    options = (
                        {"projectId": self._settings.project_id}
                        if self._settings.project_id
                        else None
                    )
                    app = firebase_admin.initialize_app(cred, options, name=APP_NAME)
                self._db = firestore_async.client(app)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Firebase credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Firestore: {e}")

        return self._db


class FirestoreDocumentStore(DocumentStoreInterface):
    """Firestore implementation of the document store."""

    def __init__(self, client: Optional[FirestoreClient] = None):
        self._client = client or FirestoreClient()

    @property
    def _db(self) -> firestore_async.AsyncClient:
        return self._client.connect()

    @_retry_transient
    async def get_document(self, path: str) -> Optional[Document]:
        try:
            snapshot = await self._db.document(path).get()
        except google_exceptions.GoogleAPICallError as e:
            raise _translate(e, f"read {path}")
        if not snapshot.exists:
            return None
        return snapshot.to_dict() or {}

    async def set_document(self, path: str, data: Document, merge: bool = False) -> None:
        try:
            await self._db.document(path).set(data, merge=merge)
        except google_exceptions.GoogleAPICallError as e:
            raise _translate(e, f"write {path}")

    async def add_document(self, collection_path: str, data: Document) -> str:
        try:
            _, doc_ref = await self._db.collection(collection_path).add(data)
        except google_exceptions.GoogleAPICallError as e:
            raise _translate(e, f"add to {collection_path}")
        return doc_ref.id

    async def update_document(
        self,
        path: str,
        data: Document,
        expected_version: Optional[int] = None,
    ) -> None:
        ref = self._db.document(path)
        try:
            option = None
            if expected_version is not None:
                snapshot = await ref.get()
                if not snapshot.exists:
                    raise NotFoundError(f"Document not found: {path}")
                stored = (snapshot.to_dict() or {}).get("version")
                if stored != expected_version:
                    raise ConcurrentModificationError(
                        f"{path} is at version {stored}, expected {expected_version}"
                    )
                option = self._db.write_option(last_update_time=snapshot.update_time)
            await ref.update(data, option=option)
        except google_exceptions.GoogleAPICallError as e:
            raise _translate(e, f"update {path}")

    async def delete_document(
        self,
        path: str,
        expected_version: Optional[int] = None,
    ) -> None:
        ref = self._db.document(path)
        try:
            option = None
            if expected_version is not None:
                snapshot = await ref.get()
                if not snapshot.exists:
                    raise NotFoundError(f"Document not found: {path}")
                stored = (snapshot.to_dict() or {}).get("version")
                if stored != expected_version:
                    raise ConcurrentModificationError(
                        f"{path} is at version {stored}, expected {expected_version}"
                    )
                option = self._db.write_option(last_update_time=snapshot.update_time)
            await ref.delete(option=option)
        except google_exceptions.GoogleAPICallError as e:
            raise _translate(e, f"delete {path}")

    @_retry_transient
    async def list_documents(self, collection_path: str) -> list[DocumentSnapshot]:
        try:
            return [
                (snapshot.id, snapshot.to_dict() or {})
                async for snapshot in self._db.collection(collection_path).stream()
            ]
        except google_exceptions.GoogleAPICallError as e:
            raise _translate(e, f"list {collection_path}")

    @_retry_transient
    async def query_documents(
        self,
        collection_path: str,
        filters: dict[str, Any],
    ) -> list[DocumentSnapshot]:
        query = self._db.collection(collection_path)
        for field, value in filters.items():
            query = query.where(filter=FieldFilter(field, "==", value))
        try:
            return [
                (snapshot.id, snapshot.to_dict() or {})
                async for snapshot in query.stream()
            ]
        except google_exceptions.GoogleAPICallError as e:
            raise _translate(e, f"query {collection_path}")
