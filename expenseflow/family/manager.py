"""
Family Membership Manager

Creates families and moves users in and out of them through invitations.

Invitation lifecycle:
    pending -> accepted | declined | expired

DESIGN DECISION: The member map is embedded in the family document and
every edit is a read-modify-write conditioned on the document's
``version``. A concurrent edit makes the write fail with
``ConcurrentModificationError`` rather than silently dropping the other
client's change; the caller can refresh and retry.

Business-rule violations raise ``FamilyError`` subclasses before anything
is written, so a rejected operation leaves both the store and the state
container untouched.
"""

import secrets
import string
from datetime import datetime, timedelta
from typing import Callable, Optional

from expenseflow.audit import AuditLogger, get_logger
from expenseflow.family.errors import (
    AlreadyInFamilyError,
    AlreadyInvitedError,
    AlreadyMemberError,
    FamilyError,
    FamilyNotFoundError,
    InsufficientPermissionsError,
    InvitationExpiredError,
    InvitationNotFoundError,
    InvitationNotPendingError,
    MemberNotFoundError,
    NotAuthenticatedError,
)
from expenseflow.models import (
    AuditEventBuilder,
    AuditEventType,
    Budget,
    Family,
    Identity,
    Invitation,
    InvitationStatus,
    MemberInfo,
    MemberRole,
    Ownership,
    Transaction,
)
from expenseflow.services.storage import paths
from expenseflow.services.storage.interface import (
    PermissionDeniedError,
    StorageError,
)
from expenseflow.services.storage.repository import FinanceRepository
from expenseflow.state import StateContainer
from expenseflow.state import actions as a
from expenseflow.utils.dates import utcnow


logger = get_logger(__name__)

_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


def generate_family_id(now: datetime) -> str:
    """``family_<epoch-ms>_<9 random base-36 chars>``."""
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(9))
    return f"family_{int(now.timestamp() * 1000)}_{suffix}"


class FamilyManager:
    """
    Family operations for the signed-in user.

    Every operation takes the acting ``Identity`` explicitly and refreshes
    the family slices of the state container when it succeeds.
    """

    def __init__(
        self,
        repository: FinanceRepository,
        container: StateContainer,
        audit: Optional[AuditLogger] = None,
        invitation_expiry_days: int = 7,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._repo = repository
        self._store = repository.store
        self._container = container
        self._audit = audit or AuditLogger()
        self._expiry = timedelta(days=invitation_expiry_days)
        self._clock = clock

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _reject(
        self,
        operation: str,
        error: FamilyError,
        actor: Optional[str],
        family_id: Optional[str] = None,
    ) -> FamilyError:
        self._audit.log(AuditEventBuilder.family_rejected(operation, error, actor, family_id))
        return error

    def _require(self, identity: Optional[Identity], operation: str) -> str:
        if identity is None:
            raise self._reject(operation, NotAuthenticatedError(), None)
        return identity.uid

    async def load_family(self, family_id: str) -> Optional[Family]:
        data = await self._store.get_document(paths.family(family_id))
        if data is None:
            return None
        return Family.from_document(None, {**data, "familyId": family_id})

    async def _family_of(self, uid: str, operation: str) -> Family:
        profile = await self._repo.get_profile(uid)
        if profile is None or not profile.family_id:
            raise self._reject(
                operation, FamilyNotFoundError("You are not a member of any family"), uid
            )
        family = await self.load_family(profile.family_id)
        if family is None or uid not in family.members:
            raise self._reject(operation, FamilyNotFoundError(), uid, profile.family_id)
        return family

    async def _load_invitation(self, invitation_id: str, uid: str, operation: str) -> Invitation:
        data = await self._store.get_document(paths.invitation(invitation_id))
        if data is None:
            raise self._reject(operation, InvitationNotFoundError(), uid)
        return Invitation.from_document(invitation_id, data)

    async def _write_members(self, family: Family, members: dict[str, MemberInfo]) -> Family:
        """Replace the member map if nobody else changed the family since it was read."""
        version = family.version + 1
        try:
            await self._store.update_document(
                paths.family(family.family_id),
                {
                    "members": {uid: info.to_document() for uid, info in members.items()},
                    "version": version,
                },
                expected_version=family.version,
            )
        except StorageError as e:
            logger.error(
                "member_map_write_failed",
                family_id=family.family_id,
                expected_version=family.version,
                error=str(e),
            )
            raise
        return family.model_copy(update={"members": members, "version": version})

    async def _set_profile(self, uid: str, **fields) -> None:
        await self._store.set_document(paths.profile(uid), fields, merge=True)

    async def _clear_profile(self, uid: str) -> None:
        await self._set_profile(uid, familyId=None, role=None)

    async def _sent_invitations(self, family_id: str) -> tuple[Invitation, ...]:
        try:
            documents = await self._store.query_documents(
                paths.FAMILY_INVITATIONS,
                {"familyId": family_id, "status": InvitationStatus.PENDING.value},
            )
        except PermissionDeniedError:
            return ()
        return tuple(Invitation.from_document(doc_id, data) for doc_id, data in documents)

    async def _received_invitations(self, email: str) -> tuple[Invitation, ...]:
        if not email:
            return ()
        documents = await self._store.query_documents(
            paths.FAMILY_INVITATIONS,
            {"invitedEmail": email.strip().lower(), "status": InvitationStatus.PENDING.value},
        )
        return tuple(Invitation.from_document(doc_id, data) for doc_id, data in documents)

    def _dispatch_family(self, family: Family) -> None:
        self._container.dispatch(a.SetFamily(payload=family))
        self._container.dispatch(a.SetFamilyMembers(payload=tuple(family.member_list())))

    def _clear_family_state(self) -> None:
        state = self._container.state
        self._container.dispatch(a.SetFamily(payload=None))
        self._container.dispatch(a.SetFamilyMembers(payload=()))
        self._container.dispatch(a.SetFamilyTransactions(payload=()))
        self._container.dispatch(a.SetSentInvitations(payload=()))
        self._container.dispatch(a.SetBudgets(payload=tuple(
            b for b in state.budgets if b.ownership != Ownership.FAMILY
        )))

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    async def refresh(self, identity: Optional[Identity]) -> Optional[Family]:
        """
        Reload the family, its members, shared transactions and both
        invitation views into the container.
        """
        uid = self._require(identity, "refresh")
        received = await self._received_invitations(identity.email)
        self._container.dispatch(a.SetInvitations(payload=received))

        profile = await self._repo.get_profile(uid)
        family = None
        if profile is not None and profile.family_id:
            family = await self.load_family(profile.family_id)

        if family is None or uid not in family.members:
            self._clear_family_state()
            return None

        transactions = await self._repo.list_records(Transaction, family_id=family.family_id)
        budgets = await self._repo.list_records(Budget, family_id=family.family_id)
        personal = tuple(
            b for b in self._container.state.budgets if b.ownership != Ownership.FAMILY
        )

        self._dispatch_family(family)
        self._container.dispatch(a.SetFamilyTransactions(payload=tuple(transactions)))
        self._container.dispatch(a.SetBudgets(payload=personal + tuple(budgets)))
        self._container.dispatch(
            a.SetSentInvitations(payload=await self._sent_invitations(family.family_id))
        )
        return family

    async def create_family(self, identity: Optional[Identity], family_name: str) -> Family:
        """Create a family with the caller as its only member and admin."""
        uid = self._require(identity, "create_family")
        profile = await self._repo.get_profile(uid)
        if profile is not None and profile.family_id:
            existing = await self.load_family(profile.family_id)
            if existing is not None and uid in existing.members:
                raise self._reject(
                    "create_family", AlreadyInFamilyError(), uid, profile.family_id
                )

        now = self._clock()
        family = Family(
            family_id=generate_family_id(now),
            family_name=family_name.strip(),
            created_by=uid,
            created_at=now,
            members={
                uid: MemberInfo(
                    role=MemberRole.ADMIN,
                    joined_at=now,
                    name=identity.name,
                    email=identity.email.strip().lower(),
                )
            },
            version=1,
        )

        await self._store.set_document(paths.family(family.family_id), family.to_document())
        await self._set_profile(
            uid,
            email=identity.email,
            displayName=identity.name,
            familyId=family.family_id,
            role=MemberRole.ADMIN.value,
        )

        self._dispatch_family(family)
        self._container.dispatch(a.SetFamilyTransactions(payload=()))
        self._container.dispatch(a.SetSentInvitations(payload=()))

        self._audit.log(AuditEventBuilder.family_event(
            AuditEventType.FAMILY_CREATED,
            family.family_id,
            uid,
            f"Family '{family.family_name}' created",
        ))
        return family

    async def invite_member(self, identity: Optional[Identity], email: str) -> Invitation:
        """
        Invite an email address to the caller's family (admin only).

        Raises:
            AlreadyInvitedError: a live pending invitation exists for this email
            AlreadyMemberError: the email already belongs to a member
        """
        uid = self._require(identity, "invite_member")
        family = await self._family_of(uid, "invite_member")
        if not family.is_admin(uid):
            raise self._reject(
                "invite_member", InsufficientPermissionsError(), uid, family.family_id
            )

        email = email.strip().lower()
        if family.has_member_email(email):
            raise self._reject("invite_member", AlreadyMemberError(email), uid, family.family_id)

        now = self._clock()
        existing = await self._store.query_documents(
            paths.FAMILY_INVITATIONS,
            {
                "familyId": family.family_id,
                "invitedEmail": email,
                "status": InvitationStatus.PENDING.value,
            },
        )
        for doc_id, data in existing:
            # Expired invitations no longer block a new one
            if not Invitation.from_document(doc_id, data).is_expired(now):
                raise self._reject(
                    "invite_member", AlreadyInvitedError(email), uid, family.family_id
                )

        invitation = Invitation(
            family_id=family.family_id,
            family_name=family.family_name,
            invited_by=uid,
            invited_by_name=identity.name,
            invited_email=email,
            status=InvitationStatus.PENDING,
            created_at=now,
            expires_at=now + self._expiry,
        )
        invitation_id = await self._store.add_document(
            paths.FAMILY_INVITATIONS, invitation.to_document()
        )
        invitation = invitation.model_copy(update={"id": invitation_id})

        self._container.dispatch(
            a.SetSentInvitations(payload=await self._sent_invitations(family.family_id))
        )
        self._audit.log(AuditEventBuilder.family_event(
            AuditEventType.INVITATION_SENT,
            family.family_id,
            uid,
            f"Invitation sent to {email}",
            invitation_id=invitation_id,
            expires_at=invitation.expires_at.isoformat(),
        ))
        return invitation

    async def accept_invitation(self, identity: Optional[Identity], invitation_id: str) -> Family:
        """
        Join the inviting family as a member.

        The invitation is re-read from the store; it must be pending,
        unexpired and addressed to the caller's email.
        """
        uid = self._require(identity, "accept_invitation")
        invitation = await self._load_invitation(invitation_id, uid, "accept_invitation")
        family_id = invitation.family_id

        if invitation.invited_email != identity.email.strip().lower():
            raise self._reject(
                "accept_invitation",
                InsufficientPermissionsError("This invitation was sent to a different email address"),
                uid,
                family_id,
            )
        if invitation.status != InvitationStatus.PENDING:
            raise self._reject(
                "accept_invitation",
                InvitationNotPendingError(invitation.status.value),
                uid,
                family_id,
            )
        now = self._clock()
        if invitation.is_expired(now):
            raise self._reject("accept_invitation", InvitationExpiredError(), uid, family_id)

        profile = await self._repo.get_profile(uid)
        if profile is not None and profile.family_id and profile.family_id != family_id:
            current = await self.load_family(profile.family_id)
            if current is not None and uid in current.members:
                raise self._reject(
                    "accept_invitation", AlreadyInFamilyError(), uid, profile.family_id
                )

        family = await self.load_family(family_id)
        if family is None:
            raise self._reject(
                "accept_invitation",
                FamilyNotFoundError("The family for this invitation no longer exists"),
                uid,
                family_id,
            )

        members = dict(family.members)
        if uid not in members:
            members[uid] = MemberInfo(
                role=MemberRole.MEMBER,
                joined_at=now,
                name=identity.name,
                email=identity.email.strip().lower(),
            )
            family = await self._write_members(family, members)

        await self._set_profile(
            uid,
            email=identity.email,
            displayName=identity.name,
            familyId=family_id,
            role=family.role_of(uid).value,
        )
        await self._store.update_document(
            paths.invitation(invitation_id),
            {"status": InvitationStatus.ACCEPTED.value},
        )

        self._audit.log(AuditEventBuilder.family_event(
            AuditEventType.INVITATION_ACCEPTED,
            family_id,
            uid,
            f"{identity.name} joined '{family.family_name}'",
            invitation_id=invitation_id,
        ))

        await self.refresh(identity)
        return family

    async def decline_invitation(self, identity: Optional[Identity], invitation_id: str) -> None:
        """Mark an invitation declined; membership is unchanged."""
        uid = self._require(identity, "decline_invitation")
        invitation = await self._load_invitation(invitation_id, uid, "decline_invitation")
        if invitation.invited_email != identity.email.strip().lower():
            raise self._reject(
                "decline_invitation",
                InsufficientPermissionsError("This invitation was sent to a different email address"),
                uid,
                invitation.family_id,
            )
        if invitation.status != InvitationStatus.PENDING:
            raise self._reject(
                "decline_invitation",
                InvitationNotPendingError(invitation.status.value),
                uid,
                invitation.family_id,
            )

        await self._store.update_document(
            paths.invitation(invitation_id),
            {"status": InvitationStatus.DECLINED.value},
        )
        self._container.dispatch(a.DeleteInvitation(payload=invitation_id))
        self._audit.log(AuditEventBuilder.family_event(
            AuditEventType.INVITATION_DECLINED,
            invitation.family_id,
            uid,
            "Invitation declined",
            invitation_id=invitation_id,
        ))

    async def cancel_invitation(self, identity: Optional[Identity], invitation_id: str) -> None:
        """Delete a still-pending invitation sent by the caller's family."""
        uid = self._require(identity, "cancel_invitation")
        invitation = await self._load_invitation(invitation_id, uid, "cancel_invitation")
        family = await self._family_of(uid, "cancel_invitation")

        if invitation.family_id != family.family_id or not (
            family.is_admin(uid) or invitation.invited_by == uid
        ):
            raise self._reject(
                "cancel_invitation",
                InsufficientPermissionsError("You can only cancel invitations your family sent"),
                uid,
                family.family_id,
            )
        if invitation.status != InvitationStatus.PENDING:
            raise self._reject(
                "cancel_invitation",
                InvitationNotPendingError(invitation.status.value),
                uid,
                family.family_id,
            )

        await self._store.delete_document(paths.invitation(invitation_id))
        self._container.dispatch(a.DeleteSentInvitation(payload=invitation_id))
        self._audit.log(AuditEventBuilder.family_event(
            AuditEventType.INVITATION_CANCELLED,
            family.family_id,
            uid,
            f"Invitation to {invitation.invited_email} cancelled",
            invitation_id=invitation_id,
        ))

    async def leave_family(self, identity: Optional[Identity]) -> None:
        """
        Leave the caller's family.

        The last member leaving deletes the family document. An admin
        leaving hands the role to the first remaining member.
        """
        uid = self._require(identity, "leave_family")
        family = await self._family_of(uid, "leave_family")

        members = dict(family.members)
        departed = members.pop(uid)

        if not members:
            await self._store.delete_document(
                paths.family(family.family_id), expected_version=family.version
            )
            self._audit.log(AuditEventBuilder.family_event(
                AuditEventType.FAMILY_DELETED,
                family.family_id,
                uid,
                f"Family '{family.family_name}' deleted after its last member left",
            ))
        else:
            promoted = None
            if departed.role == MemberRole.ADMIN:
                promoted = next(iter(members))
                members[promoted] = members[promoted].model_copy(
                    update={"role": MemberRole.ADMIN}
                )
            await self._write_members(family, members)

            if promoted is not None:
                await self._set_profile(promoted, role=MemberRole.ADMIN.value)
                self._audit.log(AuditEventBuilder.family_event(
                    AuditEventType.ADMIN_REASSIGNED,
                    family.family_id,
                    uid,
                    "Admin role handed to the first remaining member",
                    new_admin=promoted,
                ))

        await self._clear_profile(uid)
        self._clear_family_state()
        self._audit.log(AuditEventBuilder.family_event(
            AuditEventType.MEMBER_LEFT,
            family.family_id,
            uid,
            f"{departed.name or uid} left the family",
        ))

    async def remove_member(self, identity: Optional[Identity], member_uid: str) -> Family:
        """Remove another member from the caller's family (admin only)."""
        uid = self._require(identity, "remove_member")
        family = await self._family_of(uid, "remove_member")

        if not family.is_admin(uid):
            raise self._reject(
                "remove_member", InsufficientPermissionsError(), uid, family.family_id
            )
        if member_uid == uid:
            raise self._reject(
                "remove_member",
                FamilyError("You cannot remove yourself; leave the family instead"),
                uid,
                family.family_id,
            )
        if member_uid not in family.members:
            raise self._reject("remove_member", MemberNotFoundError(), uid, family.family_id)

        members = dict(family.members)
        removed = members.pop(member_uid)
        family = await self._write_members(family, members)
        await self._clear_profile(member_uid)

        self._container.dispatch(a.SetFamily(payload=family))
        self._container.dispatch(a.RemoveFamilyMember(payload=member_uid))
        self._audit.log(AuditEventBuilder.family_event(
            AuditEventType.MEMBER_REMOVED,
            family.family_id,
            uid,
            f"{removed.name or member_uid} removed from the family",
            member=member_uid,
        ))
        return family

