"""
Finance Repository

Maps the finance models onto the remote document layout.

DESIGN DECISION: Collection routing is driven by the record's explicit
``ownership`` tag. FAMILY records go to ``families/{familyId}/...``,
everything else to ``users/{uid}/...``. Records without an ownership
concept (recurring transactions, goals) are always personal.

Writes are logged as audit events. Failed creates/updates are logged and
re-raised so the caller can leave the state container untouched.
"""

from typing import Optional, TypeVar, Union

from expenseflow.audit import AuditLogger
from expenseflow.models import (
    AuditEventBuilder,
    AuditEventType,
    Budget,
    Goal,
    Ownership,
    RecurringTransaction,
    Transaction,
    UserProfile,
    UserSettings,
)
from expenseflow.services.storage import paths
from expenseflow.services.storage.interface import (
    DocumentStoreInterface,
    StorageError,
)


FinanceRecord = Union[Transaction, Budget, RecurringTransaction, Goal]
RecordT = TypeVar("RecordT", Transaction, Budget, RecurringTransaction, Goal)

COLLECTIONS: dict[type, str] = {
    Transaction: paths.TRANSACTIONS,
    Budget: paths.BUDGETS,
    RecurringTransaction: paths.RECURRING,
    Goal: paths.GOALS,
}

ENTITY_NAMES: dict[type, str] = {
    Transaction: "transaction",
    Budget: "budget",
    RecurringTransaction: "recurring_transaction",
    Goal: "goal",
}


def ownership_of(record: FinanceRecord) -> Ownership:
    return getattr(record, "ownership", Ownership.PERSONAL)


def newest_first(transactions: list[Transaction]) -> list[Transaction]:
    return sorted(transactions, key=lambda t: t.date, reverse=True)


class FinanceRepository:
    """
    Reads and writes personal and family finance records.

    Usage:
        repo = FinanceRepository(store)
        saved = await repo.add("uid-1", Transaction(text="Milk", amount=-3, date=now))
        assert saved.id is not None
    """

    def __init__(
        self,
        store: DocumentStoreInterface,
        audit: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._audit = audit or AuditLogger()

    @property
    def store(self) -> DocumentStoreInterface:
        return self._store

    # =========================================================================
    # ROUTING
    # =========================================================================

    def collection_for(self, uid: str, record: FinanceRecord) -> str:
        """Collection path a record is stored in."""
        name = COLLECTIONS[type(record)]
        if ownership_of(record) == Ownership.FAMILY:
            return paths.family_collection(record.family_id, name)
        return paths.user_collection(uid, name)

    def _document_path(self, uid: str, record: FinanceRecord) -> str:
        if not record.id:
            raise StorageError(f"{ENTITY_NAMES[type(record)]} has no id")
        return paths.join(self.collection_for(uid, record), record.id)

    # =========================================================================
    # WRITES
    # =========================================================================

    async def add(self, uid: str, record: RecordT) -> RecordT:
        """
        Create a record and return it with the store-assigned id.

        Any client-side placeholder id on ``record`` is discarded.
        """
        entity = ENTITY_NAMES[type(record)]
        collection = self.collection_for(uid, record)
        try:
            doc_id = await self._store.add_document(collection, record.to_document())
        except StorageError as e:
            self._audit.log(AuditEventBuilder.write_failed(entity, "create", e, actor=uid))
            raise

        self._audit.log(AuditEventBuilder.record_written(
            AuditEventType.RECORD_CREATED, entity, doc_id, actor=uid, collection=collection
        ))
        return record.model_copy(update={"id": doc_id})

    async def update(self, uid: str, record: FinanceRecord) -> None:
        """Merge-write a record; fields missing from it are kept server-side."""
        entity = ENTITY_NAMES[type(record)]
        path = self._document_path(uid, record)
        try:
            await self._store.set_document(path, record.to_document(), merge=True)
        except StorageError as e:
            self._audit.log(AuditEventBuilder.write_failed(
                entity, "update", e, actor=uid, entity_id=record.id
            ))
            raise

        self._audit.log(AuditEventBuilder.record_written(
            AuditEventType.RECORD_UPDATED, entity, record.id, actor=uid, collection=path
        ))

    async def delete(
        self,
        uid: str,
        model: type,
        target: Union[str, FinanceRecord],
    ) -> None:
        """
        Delete a record given its id or the record itself.

        A bare id always targets the personal collection; a record is routed
        by its ownership.
        """
        entity = ENTITY_NAMES[model]
        if isinstance(target, str):
            record_id = target
            path = paths.join(paths.user_collection(uid, COLLECTIONS[model]), target)
        else:
            record_id = target.id
            path = self._document_path(uid, target)

        await self._store.delete_document(path)
        self._audit.log(AuditEventBuilder.record_written(
            AuditEventType.RECORD_DELETED, entity, record_id, actor=uid, collection=path
        ))

    async def save_settings(self, uid: str, changes: dict) -> None:
        """Merge changed settings into ``settings/preferences``."""
        path = paths.user_settings(uid)
        try:
            await self._store.set_document(path, changes, merge=True)
        except StorageError as e:
            self._audit.log(AuditEventBuilder.write_failed("settings", "update", e, actor=uid))
            raise
        self._audit.log(AuditEventBuilder.record_written(
            AuditEventType.RECORD_UPDATED, "settings", paths.SETTINGS_DOC, actor=uid
        ))

    async def save_categories(self, uid: str, categories: list[str]) -> None:
        """Overwrite the category list held in ``categories/list``."""
        path = paths.user_categories(uid)
        try:
            await self._store.set_document(path, {"list": list(categories)}, merge=True)
        except StorageError as e:
            self._audit.log(AuditEventBuilder.write_failed("categories", "update", e, actor=uid))
            raise
        self._audit.log(AuditEventBuilder.record_written(
            AuditEventType.RECORD_UPDATED, "categories", paths.CATEGORIES_DOC, actor=uid
        ))

    async def clear_personal_data(self, uid: str) -> int:
        """
        Delete every document of the user's personal collections.

        A collection that cannot be listed is logged and skipped so the
        others are still cleared. Returns the number of documents deleted.
        """
        deleted = 0
        for name in paths.PERSONAL_COLLECTIONS:
            collection = paths.user_collection(uid, name)
            try:
                documents = await self._store.list_documents(collection)
            except StorageError as e:
                self._audit.log(AuditEventBuilder.write_failed(
                    name, "clear", e, actor=uid
                ))
                continue
            for doc_id, _ in documents:
                await self._store.delete_document(paths.join(collection, doc_id))
                deleted += 1
        return deleted

    # =========================================================================
    # READS
    # =========================================================================

    async def list_records(
        self,
        model: type[RecordT],
        uid: Optional[str] = None,
        family_id: Optional[str] = None,
    ) -> list[RecordT]:
        """List a personal (``uid``) or family (``family_id``) collection."""
        name = COLLECTIONS[model]
        if family_id is not None:
            collection = paths.family_collection(family_id, name)
        elif uid is not None:
            collection = paths.user_collection(uid, name)
        else:
            raise ValueError("uid or family_id is required")

        records = [
            model.from_document(doc_id, data)
            for doc_id, data in await self._store.list_documents(collection)
        ]
        if model is Transaction:
            return newest_first(records)
        return records

    async def get_settings(self, uid: str) -> Optional[UserSettings]:
        data = await self._store.get_document(paths.user_settings(uid))
        return UserSettings.model_validate(data) if data is not None else None

    async def get_categories(self, uid: str) -> Optional[list[str]]:
        data = await self._store.get_document(paths.user_categories(uid))
        if data is None or not isinstance(data.get("list"), list):
            return None
        return [str(c) for c in data["list"]]

    async def get_profile(self, uid: str) -> Optional[UserProfile]:
        data = await self._store.get_document(paths.profile(uid))
        if data is None:
            return None
        return UserProfile.model_validate({**data, "uid": uid})
