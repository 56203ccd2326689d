"""Family sharing: membership, invitations and their errors."""

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
from expenseflow.family.manager import FamilyManager, generate_family_id

__all__ = [
    "AlreadyInFamilyError",
    "AlreadyInvitedError",
    "AlreadyMemberError",
    "FamilyError",
    "FamilyManager",
    "FamilyNotFoundError",
    "InsufficientPermissionsError",
    "InvitationExpiredError",
    "InvitationNotFoundError",
    "InvitationNotPendingError",
    "MemberNotFoundError",
    "NotAuthenticatedError",
    "generate_family_id",
]
