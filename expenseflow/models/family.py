"""
Family Sharing Models

A family is one document holding an embedded member map
(uid -> role/name/email/joined_at). Invitations live in a global
collection and are looked up by invited email or by family id.

DESIGN DECISION: The family document carries a ``version`` counter.
Every member-map edit is conditioned on the version it read, so two
admins editing at once cannot silently overwrite each other.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import Field, field_validator

from expenseflow.models.base import DocumentId, DocumentModel


class MemberRole(str, Enum):
    """Role of a user inside a family. Exactly one admin at a time."""
    ADMIN = "admin"
    MEMBER = "member"


class InvitationStatus(str, Enum):
    """
    Invitation lifecycle.

    Only PENDING, ACCEPTED and DECLINED are ever stored. EXPIRED is derived
    at read time from ``expires_at``; nothing sweeps old invitations.
    """
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    EXPIRED = "expired"


class MemberInfo(DocumentModel):
    """Value stored under a uid in the family member map."""

    role: MemberRole = MemberRole.MEMBER
    joined_at: datetime
    name: str = ""
    email: str = ""


class FamilyMember(DocumentModel):
    """A member map entry expanded with its uid, as shown in member lists."""

    uid: str
    role: MemberRole
    joined_at: datetime
    name: str = ""
    email: str = ""


class Family(DocumentModel):
    """The ``families/{familyId}`` document."""

    family_id: str
    family_name: str = Field(..., min_length=1, max_length=100)
    created_by: str
    created_at: datetime
    members: dict[str, MemberInfo] = Field(default_factory=dict)
    settings: dict[str, Any] = Field(default_factory=dict)
    version: int = Field(
        default=1,
        ge=0,
        description="Optimistic-concurrency token, bumped on every member-map edit"
    )

    def member_list(self) -> list[FamilyMember]:
        """Expand the member map into a list, preserving map order."""
        return [
            FamilyMember(uid=uid, **info.model_dump())
            for uid, info in self.members.items()
        ]

    def role_of(self, uid: str) -> Optional[MemberRole]:
        info = self.members.get(uid)
        return info.role if info else None

    def is_admin(self, uid: str) -> bool:
        return self.role_of(uid) == MemberRole.ADMIN

    @property
    def admin_uid(self) -> Optional[str]:
        for uid, info in self.members.items():
            if info.role == MemberRole.ADMIN:
                return uid
        return None

    def has_member_email(self, email: str) -> bool:
        email = email.strip().lower()
        return any(info.email.lower() == email for info in self.members.values())


class Invitation(DocumentModel):
    """A ``familyInvitations/{id}`` document."""

    id: DocumentId = None
    family_id: str
    family_name: str
    invited_by: str
    invited_by_name: str = ""
    invited_email: str
    status: InvitationStatus = InvitationStatus.PENDING
    created_at: datetime
    expires_at: datetime

    @field_validator("invited_email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    def effective_status(self, now: datetime) -> InvitationStatus:
        """Stored status, or EXPIRED for a pending invitation past its expiry."""
        if self.status == InvitationStatus.PENDING and self.is_expired(now):
            return InvitationStatus.EXPIRED
        return self.status


class UserProfile(DocumentModel):
    """The ``users/{uid}`` profile document."""

    uid: str
    email: str = ""
    display_name: str = ""
    family_id: Optional[str] = None
    role: Optional[MemberRole] = None


class Identity(DocumentModel):
    """
    The signed-in user as reported by the authentication provider.

    This layer never authenticates anyone; it only reacts to identity
    changes.
    """

    uid: str = Field(..., min_length=1)
    email: str = ""
    display_name: Optional[str] = None

    @property
    def name(self) -> str:
        """Display name, falling back to the local part of the email."""
        if self.display_name:
            return self.display_name
        return self.email.split("@")[0] if self.email else self.uid
