"""
Family Sharing Errors

Business-rule failures of family operations. Messages are written for
the end user and are meant to be shown as-is.
"""


class FamilyError(Exception):
    """Base exception for family operations."""
    pass


class NotAuthenticatedError(FamilyError):
    """The operation needs a signed-in user."""

    def __init__(self, message: str = "You must be signed in to manage a family"):
        super().__init__(message)


class AlreadyInFamilyError(FamilyError):
    """The user already belongs to a family."""

    def __init__(self, message: str = "You already belong to a family"):
        super().__init__(message)


class FamilyNotFoundError(FamilyError):
    """The user has no family, or its document no longer exists."""

    def __init__(self, message: str = "Family not found"):
        super().__init__(message)


class InsufficientPermissionsError(FamilyError):
    """A non-admin attempted an admin-only operation."""

    def __init__(self, message: str = "Only the family admin can do this"):
        super().__init__(message)


class AlreadyInvitedError(FamilyError):
    """A pending invitation already targets the same (family, email) pair."""

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"{email} has already been invited to this family")


class AlreadyMemberError(FamilyError):
    """The invited email belongs to an existing member."""

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"{email} is already a member of this family")


class InvitationNotFoundError(FamilyError):
    def __init__(self, message: str = "Invitation not found"):
        super().__init__(message)


class InvitationExpiredError(FamilyError):
    def __init__(self, message: str = "This invitation has expired"):
        super().__init__(message)


class InvitationNotPendingError(FamilyError):
    """The invitation was already accepted or declined."""

    def __init__(self, status: str):
        self.status = status
        super().__init__(f"This invitation is no longer pending (status: {status})")


class MemberNotFoundError(FamilyError):
    """The target user is not in the family's member map."""

    def __init__(self, message: str = "That user is not a member of this family"):
        super().__init__(message)
