"""
Sync Orchestrator

Rebuilds the state container whenever the signed-in identity changes.

Flow on sign-in:
1. Stop mirroring the container into local storage
2. Read every personal collection, the profile and received invitations
   concurrently
3. If the profile names a family, read the family document, its shared
   collections and its sent invitations concurrently
4. Reset the container and dispatch the snapshot

Flow on sign-out:
1. Reset the container
2. Hydrate it from local storage
3. Mirror every further change back into local storage

DESIGN DECISION: Each read is independent. A failed read is logged and
leaves its slice at the default; it never aborts the other reads.
Every identity change bumps a generation counter and a fetch only
dispatches if its generation is still current, so a slow fetch for an
earlier identity cannot overwrite a newer one.
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError

from expenseflow.audit import AuditLogger, get_logger
from expenseflow.models import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
    Budget,
    Family,
    Goal,
    Identity,
    Invitation,
    InvitationStatus,
    RecurringTransaction,
    Transaction,
    UserProfile,
)
from expenseflow.services.storage import paths
from expenseflow.services.storage.interface import (
    DocumentStoreInterface,
    PermissionDeniedError,
    StorageError,
)
from expenseflow.services.storage.local import LocalStateStore
from expenseflow.services.storage.repository import FinanceRepository
from expenseflow.state import StateContainer
from expenseflow.state import actions as a


logger = get_logger(__name__)

T = TypeVar("T")


class SyncSnapshot(BaseModel):
    """
    Everything read for one identity.

    A None slice was not read (or its read failed) and keeps the
    container default.
    """

    model_config = ConfigDict(frozen=True)

    transactions: Optional[tuple[Transaction, ...]] = None
    budgets: Optional[tuple[Budget, ...]] = None
    recurring_transactions: Optional[tuple[RecurringTransaction, ...]] = None
    goals: Optional[tuple[Goal, ...]] = None
    settings: Optional[dict[str, Any]] = None
    categories: Optional[tuple[str, ...]] = None
    profile: Optional[UserProfile] = None
    invitations: Optional[tuple[Invitation, ...]] = None

    family: Optional[Family] = None
    family_transactions: Optional[tuple[Transaction, ...]] = None
    family_budgets: Optional[tuple[Budget, ...]] = None
    sent_invitations: Optional[tuple[Invitation, ...]] = None

    def to_actions(self) -> list[a.Action]:
        """Actions that load this snapshot into a freshly reset container."""
        actions: list[a.Action] = []
        if self.transactions is not None:
            actions.append(a.SetTransactions(payload=self.transactions))

        budgets = (self.budgets or ()) + (self.family_budgets or ())
        if self.budgets is not None or self.family_budgets is not None:
            actions.append(a.SetBudgets(payload=budgets))

        if self.recurring_transactions is not None:
            actions.append(a.SetRecurring(payload=self.recurring_transactions))
        if self.goals is not None:
            actions.append(a.SetGoals(payload=self.goals))
        if self.settings is not None:
            actions.append(a.SetSettings(payload=self.settings))
        if self.categories is not None:
            actions.append(a.SetCategories(payload=self.categories))
        if self.invitations is not None:
            actions.append(a.SetInvitations(payload=self.invitations))

        if self.family is not None:
            actions.append(a.SetFamily(payload=self.family))
            actions.append(a.SetFamilyMembers(payload=tuple(self.family.member_list())))
        if self.family_transactions is not None:
            actions.append(a.SetFamilyTransactions(payload=self.family_transactions))
        if self.sent_invitations is not None:
            actions.append(a.SetSentInvitations(payload=self.sent_invitations))
        return actions


class SyncOrchestrator:
    """
    Reacts to identity transitions (none -> user, user A -> user B,
    user -> none) by rebuilding the container.
    """

    def __init__(
        self,
        container: StateContainer,
        repository: FinanceRepository,
        local: LocalStateStore,
        audit: Optional[AuditLogger] = None,
    ):
        self._container = container
        self._repo = repository
        self._store: DocumentStoreInterface = repository.store
        self._local = local
        self._audit = audit or AuditLogger()
        self._identity: Optional[Identity] = None
        self._generation = 0
        self._unsubscribe_mirror: Optional[Callable[[], None]] = None

    @property
    def identity(self) -> Optional[Identity]:
        return self._identity

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def mirroring(self) -> bool:
        """True while container changes are written to local storage."""
        return self._unsubscribe_mirror is not None

    async def on_identity_changed(self, identity: Optional[Identity]) -> bool:
        """
        Rebuild the container for ``identity`` (None means signed out).

        Returns False if a newer identity change superseded this one
        before its reads finished; nothing is dispatched in that case.
        """
        self._generation += 1
        generation = self._generation
        self._identity = identity

        if identity is None:
            self._hydrate_from_local()
            return True

        self._stop_mirroring()
        self._audit.log(AuditEvent(
            event_type=AuditEventType.SYNC_STARTED,
            actor=identity.uid,
            description="Fetching remote snapshot",
            details={"generation": generation},
        ))

        snapshot = await self.fetch_snapshot(identity)

        if generation != self._generation:
            self._audit.log(AuditEvent(
                event_type=AuditEventType.SYNC_DISCARDED,
                severity=AuditSeverity.WARNING,
                actor=identity.uid,
                description="Discarded snapshot for a superseded identity change",
                details={"generation": generation, "current": self._generation},
            ))
            return False

        self._container.dispatch(a.ResetState())
        for action in snapshot.to_actions():
            self._container.dispatch(action)

        self._audit.log(AuditEvent(
            event_type=AuditEventType.SYNC_COMPLETED,
            actor=identity.uid,
            description="Remote snapshot loaded",
            details={
                "generation": generation,
                "transactions": len(snapshot.transactions or ()),
                "family_id": snapshot.family.family_id if snapshot.family else None,
            },
        ))
        return True

    async def refresh(self) -> bool:
        """Re-run the sync for the current identity."""
        return await self.on_identity_changed(self._identity)

    def close(self) -> None:
        self._stop_mirroring()

    # =========================================================================
    # SIGNED OUT
    # =========================================================================

    def _hydrate_from_local(self) -> None:
        self._stop_mirroring()
        self._container.dispatch(a.ResetState())
        for action in self._local.load_actions():
            self._container.dispatch(action)
        self._unsubscribe_mirror = self._container.subscribe(self._local.mirror)

    def _stop_mirroring(self) -> None:
        if self._unsubscribe_mirror is not None:
            self._unsubscribe_mirror()
            self._unsubscribe_mirror = None

    # =========================================================================
    # SIGNED IN
    # =========================================================================

    async def _read(
        self,
        resource: str,
        read: Awaitable[T],
        actor: str,
    ) -> Optional[T]:
        try:
            return await read
        except PermissionDeniedError as e:
            if resource == "sent_invitations":
                # Security rules only let the family admin list sent invitations
                logger.debug("sent_invitations_denied", actor=actor, error=str(e))
                return ()
            self._audit.log(AuditEventBuilder.sync_read_failed(resource, e, actor))
            return None
        except (StorageError, ValidationError) as e:
            self._audit.log(AuditEventBuilder.sync_read_failed(resource, e, actor))
            return None

    async def _query_invitations(self, filters: dict[str, Any]) -> tuple[Invitation, ...]:
        documents = await self._store.query_documents(paths.FAMILY_INVITATIONS, filters)
        return tuple(
            Invitation.from_document(doc_id, data)
            for doc_id, data in documents
        )

    async def _received_invitations(self, email: str) -> tuple[Invitation, ...]:
        if not email:
            return ()
        return await self._query_invitations({
            "invitedEmail": email.strip().lower(),
            "status": InvitationStatus.PENDING.value,
        })

    async def _as_tuple(self, read: Awaitable[Optional[list[T]]]) -> Optional[tuple[T, ...]]:
        result = await read
        return tuple(result) if result is not None else None

    async def _read_settings(self, uid: str) -> Optional[dict[str, Any]]:
        settings = await self._repo.get_settings(uid)
        return settings.to_record() if settings is not None else None

    async def _read_family(self, family_id: str) -> Optional[Family]:
        data = await self._store.get_document(paths.family(family_id))
        if data is None:
            return None
        return Family.from_document(None, {**data, "familyId": family_id})

    async def fetch_snapshot(self, identity: Identity) -> SyncSnapshot:
        """Read everything belonging to ``identity`` without touching the container."""
        uid = identity.uid

        (
            transactions,
            budgets,
            recurring,
            goals,
            settings,
            categories,
            profile,
            invitations,
        ) = await asyncio.gather(
            self._read("transactions", self._as_tuple(self._repo.list_records(Transaction, uid=uid)), uid),
            self._read("budgets", self._as_tuple(self._repo.list_records(Budget, uid=uid)), uid),
            self._read(
                "recurring_transactions",
                self._as_tuple(self._repo.list_records(RecurringTransaction, uid=uid)),
                uid,
            ),
            self._read("goals", self._as_tuple(self._repo.list_records(Goal, uid=uid)), uid),
            self._read("settings", self._read_settings(uid), uid),
            self._read("categories", self._as_tuple(self._repo.get_categories(uid)), uid),
            self._read("profile", self._repo.get_profile(uid), uid),
            self._read("invitations", self._received_invitations(identity.email), uid),
        )

        snapshot = dict(
            transactions=transactions,
            budgets=budgets,
            recurring_transactions=recurring,
            goals=goals,
            settings=settings,
            categories=categories,
            profile=profile,
            invitations=invitations,
        )

        family_id = profile.family_id if profile else None
        if family_id:
            sent_filters = {
                "familyId": family_id,
                "status": InvitationStatus.PENDING.value,
            }
            family, family_transactions, family_budgets, sent = await asyncio.gather(
                self._read("family", self._read_family(family_id), uid),
                self._read(
                    "family_transactions",
                    self._as_tuple(self._repo.list_records(Transaction, family_id=family_id)),
                    uid,
                ),
                self._read(
                    "family_budgets",
                    self._as_tuple(self._repo.list_records(Budget, family_id=family_id)),
                    uid,
                ),
                self._read("sent_invitations", self._query_invitations(sent_filters), uid),
            )
            if family is not None:
                snapshot.update(
                    family=family,
                    family_transactions=family_transactions,
                    family_budgets=family_budgets,
                    sent_invitations=sent,
                )
            else:
                logger.warning("family_missing", actor=uid, family_id=family_id)

        return SyncSnapshot(**snapshot)

