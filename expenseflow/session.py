"""
Expense Session

This module ties together all the components and defines the write
paths the presentation layer uses:
1. Identity changes (sign-in / sign-out) -> sync
2. Record writes (add / update / delete) -> store, then container
3. Family operations -> family manager

DESIGN DECISION: The session enforces the boundaries:
- While signed in, remote writes happen first and the container only
  changes after they succeed (deletes follow the configured policy)
- While signed out, only the container changes and the local storage
  mirror persists it
- Local storage and the remote store are never both written for app data

Nothing here is a module-level singleton; build a session with
``create_session()`` (or the constructor) and ``close()`` it when done.
"""

from enum import Enum
from typing import Any, Callable, Optional, Union
from uuid import uuid4

from expenseflow.audit import AuditLogger, get_logger
from expenseflow.config import get_settings
from expenseflow.family import FamilyManager
from expenseflow.models import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    Budget,
    Family,
    Goal,
    Identity,
    Invitation,
    Ownership,
    RecurringTransaction,
    Transaction,
)
from expenseflow.services.storage import (
    DocumentStoreInterface,
    InMemoryDocumentStore,
    InMemoryKeyValueStorage,
    JSONFileStorage,
    KeyValueStorageInterface,
    LocalStateStore,
    StorageError,
)
from expenseflow.services.storage.firestore import FirestoreDocumentStore
from expenseflow.services.storage.repository import (
    ENTITY_NAMES,
    FinanceRecord,
    FinanceRepository,
    ownership_of,
)
from expenseflow.state import AppState, StateContainer
from expenseflow.state import actions as a
from expenseflow.sync import SyncOrchestrator
from expenseflow.utils.dates import utcnow
from expenseflow.validation import (
    ValidationError,
    validate_category_name,
    validate_invitation_email,
)


logger = get_logger(__name__)


class DeletePolicy(str, Enum):
    """
    How deletes treat the remote store.

    OPTIMISTIC: remove locally at once; a failed remote delete is logged
    and otherwise ignored, so local and remote state may diverge.
    PESSIMISTIC: delete remotely first; on failure the error propagates
    and the local state is untouched.
    """
    OPTIMISTIC = "optimistic"
    PESSIMISTIC = "pessimistic"


# (add, update, delete) action classes per record type and ownership
_ACTIONS: dict[tuple[type, Ownership], tuple[type, type, type]] = {
    (Transaction, Ownership.PERSONAL): (
        a.AddTransaction, a.UpdateTransaction, a.DeleteTransaction,
    ),
    (Transaction, Ownership.FAMILY): (
        a.AddFamilyTransaction, a.UpdateFamilyTransaction, a.DeleteFamilyTransaction,
    ),
    (Budget, Ownership.PERSONAL): (a.AddBudget, a.UpdateBudget, a.DeleteBudget),
    (Budget, Ownership.FAMILY): (a.AddBudget, a.UpdateBudget, a.DeleteBudget),
    (RecurringTransaction, Ownership.PERSONAL): (
        a.AddRecurring, a.UpdateRecurring, a.DeleteRecurring,
    ),
    (Goal, Ownership.PERSONAL): (a.AddGoal, a.UpdateGoal, a.DeleteGoal),
}


class ExpenseSession:
    """
    One user session over a state container.

    Usage:
        session = create_session()
        await session.set_identity(None)          # hydrate from local storage
        await session.add_transaction(tx)
        await session.set_identity(identity)      # sign-in: fetch remote data
    """

    def __init__(
        self,
        store: DocumentStoreInterface,
        local_storage: KeyValueStorageInterface,
        delete_policy: DeletePolicy = DeletePolicy.OPTIMISTIC,
        invitation_expiry_days: int = 7,
        audit: Optional[AuditLogger] = None,
        clock: Callable = utcnow,
    ):
        self.audit = audit or AuditLogger()
        self.container = StateContainer()
        self.repository = FinanceRepository(store, self.audit)
        self.local = LocalStateStore(local_storage, self.audit)
        self.sync = SyncOrchestrator(self.container, self.repository, self.local, self.audit)
        self.family = FamilyManager(
            self.repository,
            self.container,
            self.audit,
            invitation_expiry_days=invitation_expiry_days,
            clock=clock,
        )
        self.delete_policy = DeletePolicy(delete_policy)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    @property
    def state(self) -> AppState:
        return self.container.state

    @property
    def identity(self) -> Optional[Identity]:
        return self.sync.identity

    @property
    def signed_in(self) -> bool:
        return self.sync.identity is not None

    async def set_identity(self, identity: Optional[Identity]) -> bool:
        """Sign-in, sign-out or switch user; rebuilds the container."""
        return await self.sync.on_identity_changed(identity)

    def subscribe(self, listener) -> Callable[[], None]:
        return self.container.subscribe(listener)

    def close(self) -> None:
        """End the session; the container rejects further dispatches."""
        self.sync.close()
        self.container.close()

    # =========================================================================
    # GENERIC RECORD WRITES
    # =========================================================================

    def _actions(self, record_type: type, ownership: Ownership) -> tuple[type, type, type]:
        return _ACTIONS.get((record_type, ownership)) or _ACTIONS[(record_type, Ownership.PERSONAL)]

    def _stamp(self, record: FinanceRecord) -> FinanceRecord:
        if isinstance(record, Budget) and record.is_family and not record.family_id:
            family = self.state.family
            if family is not None:
                return record.model_copy(update={"family_id": family.family_id})
        if isinstance(record, Transaction) and self.identity and not record.added_by:
            return record.model_copy(update={
                "added_by": self.identity.uid,
                "added_by_name": self.identity.name,
            })
        return record

    async def _add(self, record: FinanceRecord) -> FinanceRecord:
        if self.signed_in:
            saved = await self.repository.add(self.identity.uid, self._stamp(record))
        else:
            saved = record if record.id else record.model_copy(update={"id": uuid4().hex})
        add_action, _, _ = self._actions(type(saved), ownership_of(saved))
        self.container.dispatch(add_action(payload=saved))
        return saved

    async def _update(self, record: FinanceRecord) -> FinanceRecord:
        _, update_action, _ = self._actions(type(record), ownership_of(record))
        if self.signed_in:
            await self.repository.update(self.identity.uid, record)
        self.container.dispatch(update_action(payload=record))
        return record

    async def _delete(self, record_type: type, target: Union[str, FinanceRecord]) -> None:
        if isinstance(target, str):
            record_id, ownership = target, Ownership.PERSONAL
        else:
            record_id, ownership = target.id, ownership_of(target)
        _, _, delete_action = self._actions(record_type, ownership)

        if not self.signed_in:
            self.container.dispatch(delete_action(payload=record_id))
            return

        uid = self.identity.uid
        if self.delete_policy == DeletePolicy.PESSIMISTIC:
            try:
                await self.repository.delete(uid, record_type, target)
            except StorageError as e:
                self.audit.log(AuditEventBuilder.write_failed(
                    ENTITY_NAMES[record_type], "delete", e, actor=uid, entity_id=record_id
                ))
                raise
            self.container.dispatch(delete_action(payload=record_id))
            return

        self.container.dispatch(delete_action(payload=record_id))
        try:
            await self.repository.delete(uid, record_type, target)
        except StorageError as e:
            self.audit.log(AuditEventBuilder.remote_delete_failed(
                ENTITY_NAMES[record_type], record_id, e, actor=uid
            ))

    # =========================================================================
    # TRANSACTIONS, BUDGETS, RECURRING, GOALS
    # =========================================================================

    async def add_transaction(self, transaction: Transaction) -> Transaction:
        return await self._add(transaction)

    async def update_transaction(self, transaction: Transaction) -> Transaction:
        return await self._update(transaction)

    async def delete_transaction(self, target: Union[str, Transaction]) -> None:
        await self._delete(Transaction, target)

    async def add_budget(self, budget: Budget) -> Budget:
        return await self._add(budget)

    async def update_budget(self, budget: Budget) -> Budget:
        return await self._update(budget)

    async def delete_budget(self, target: Union[str, Budget]) -> None:
        await self._delete(Budget, target)

    async def add_recurring(self, recurring: RecurringTransaction) -> RecurringTransaction:
        return await self._add(recurring)

    async def update_recurring(self, recurring: RecurringTransaction) -> RecurringTransaction:
        return await self._update(recurring)

    async def delete_recurring(self, target: Union[str, RecurringTransaction]) -> None:
        await self._delete(RecurringTransaction, target)

    async def add_goal(self, goal: Goal) -> Goal:
        return await self._add(goal)

    async def update_goal(self, goal: Goal) -> Goal:
        return await self._update(goal)

    async def delete_goal(self, target: Union[str, Goal]) -> None:
        await self._delete(Goal, target)

    # =========================================================================
    # CATEGORIES AND SETTINGS
    # =========================================================================

    async def add_category(self, name: str) -> str:
        """
        Raises:
            ValidationError: empty or duplicate name
        """
        result = validate_category_name(name, self.state.categories)
        if not result.is_valid:
            raise ValidationError(result)
        name = name.strip()
        if self.signed_in:
            await self.repository.save_categories(
                self.identity.uid, list(self.state.categories) + [name]
            )
        self.container.dispatch(a.AddCategory(payload=name))
        return name

    async def delete_category(self, name: str) -> None:
        if self.signed_in:
            await self.repository.save_categories(
                self.identity.uid, [c for c in self.state.categories if c != name]
            )
        self.container.dispatch(a.DeleteCategory(payload=name))

    async def update_settings(self, changes: dict[str, Any]) -> None:
        """
        Merge ``changes`` (camelCase or snake_case keys) into the settings.

        Raises:
            pydantic.ValidationError: a value is out of range
        """
        merged = self.state.settings.merged(changes)
        if self.signed_in:
            document = merged.to_document()
            changed = {
                key: value
                for key, value in document.items()
                if self.state.settings.to_document().get(key) != value
            }
            if changed:
                await self.repository.save_settings(self.identity.uid, changed)
        self.container.dispatch(a.UpdateSettings(payload=merged.to_record()))

    async def clear_all_data(self) -> int:
        """
        Delete the user's personal data everywhere and reset the container.

        Family data is untouched. Returns the number of remote documents
        deleted (0 while signed out).
        """
        deleted = 0
        uid = self.identity.uid if self.identity else None
        if uid:
            deleted = await self.repository.clear_personal_data(uid)

        theme = self.state.settings.theme
        self.container.dispatch(a.ResetState())
        # The display theme survives a clear
        self.container.dispatch(a.UpdateSettings(payload={"theme": theme}))
        self.local.clear()

        self.audit.log(AuditEvent(
            event_type=AuditEventType.DATA_CLEARED,
            actor=uid,
            description="All personal data cleared",
            details={"remote_documents": deleted},
        ))

        if uid:
            await self.family.refresh(self.identity)
        return deleted

    # =========================================================================
    # FAMILY
    # =========================================================================

    async def create_family(self, family_name: str) -> Family:
        return await self.family.create_family(self.identity, family_name)

    async def invite_member(self, email: str) -> Invitation:
        """
        Raises:
            ValidationError: not a valid email address
        """
        result = validate_invitation_email(email)
        if not result.is_valid:
            raise ValidationError(result)
        return await self.family.invite_member(self.identity, email)

    async def accept_invitation(self, invitation_id: str) -> Family:
        return await self.family.accept_invitation(self.identity, invitation_id)

    async def decline_invitation(self, invitation_id: str) -> None:
        await self.family.decline_invitation(self.identity, invitation_id)

    async def cancel_invitation(self, invitation_id: str) -> None:
        await self.family.cancel_invitation(self.identity, invitation_id)

    async def leave_family(self) -> None:
        await self.family.leave_family(self.identity)

    async def remove_member(self, member_uid: str) -> Family:
        return await self.family.remove_member(self.identity, member_uid)

    async def refresh_family(self) -> Optional[Family]:
        return await self.family.refresh(self.identity)


def create_session(
    use_firestore: Optional[bool] = None,
    delete_policy: Optional[DeletePolicy] = None,
) -> ExpenseSession:
    """
    Factory function to create a session from settings.

    Args:
        use_firestore: Force (True) or skip (False) Firestore. By default
                       Firestore is used when its settings load.

    Falls back to the in-memory document store when Firestore is not
    configured, and to in-memory local storage when the storage directory
    cannot be used.
    """
    settings = get_settings()
    app_settings = settings.app

    store: DocumentStoreInterface
    if use_firestore is False:
        store = InMemoryDocumentStore()
    else:
        try:
            _ = settings.firebase
            store = FirestoreDocumentStore()
        except Exception as e:
            if use_firestore:
                raise
            # Firestore not configured - continue without it
            logger.warning("firestore_not_configured", error=str(e))
            store = InMemoryDocumentStore()

    try:
        local_storage: KeyValueStorageInterface = JSONFileStorage(
            settings.local_storage.directory
        )
    except Exception as e:
        logger.warning("local_storage_not_configured", error=str(e))
        local_storage = InMemoryKeyValueStorage()

    return ExpenseSession(
        store=store,
        local_storage=local_storage,
        delete_policy=delete_policy or DeletePolicy(app_settings.delete_policy),
        invitation_expiry_days=app_settings.invitation_expiry_days,
    )
