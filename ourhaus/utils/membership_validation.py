"""Membership errors and validation utilities."""
import re
from typing import List, Optional

from ourhaus.core.config import settings


class MembershipError(Exception):
    """Base class for every failure the membership and home services raise."""

    code = "membership_error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class MembershipValidationError(MembershipError):
    """Empty required field, malformed role or email."""
    code = "validation_error"
    status_code = 422


class NotAuthorizedError(MembershipError):
    code = "not_authorized"
    status_code = 403


class InvalidCredentialsError(MembershipError):
    code = "invalid_credentials"
    status_code = 401


class NotFoundError(MembershipError):
    code = "not_found"
    status_code = 404


class MemberNotFoundError(NotFoundError):
    code = "member_not_found"


class InvalidTokenError(MembershipError):
    code = "invalid_token"
    status_code = 404


class InvitationExpiredError(MembershipError):
    code = "invitation_expired"
    status_code = 410


class EmailMismatchError(MembershipError):
    code = "email_mismatch"
    status_code = 403


class InvitationNotPendingError(MembershipError):
    """The invitation was already accepted, cancelled or expired."""
    code = "invitation_not_pending"
    status_code = 409

    def __init__(self, message: str, status: str):
        super().__init__(message)
        self.status = status


class AlreadyMemberError(MembershipError):
    code = "already_member"
    status_code = 409


class SelfRemovalError(MembershipError):
    code = "self_removal"
    status_code = 400


class LastOwnerError(MembershipError):
    code = "last_owner"
    status_code = 400


class ConcurrentUpdateError(MembershipError):
    """The document changed between read and guarded write."""
    code = "concurrent_update"
    status_code = 409


class ImmutableRecordError(MembershipError):
    """Write attempted against a sealed snapshot or other frozen record."""
    code = "immutable_record"
    status_code = 409


class StoreUnavailableError(MembershipError):
    """The document store could not be reached. Safe to retry with backoff."""
    code = "store_unavailable"
    status_code = 503


class DuplicateDocumentError(MembershipError):
    code = "duplicate_document"
    status_code = 409


class MalformedRecordError(MembershipError):
    """A stored document failed to decode into its model."""
    code = "malformed_record"
    status_code = 500


class PartialFailureError(MembershipError):
    """
    A multi-document operation stopped part way.

    `completed` and `pending` name the steps so the caller can decide whether
    to resume. The store state is left as-is; nothing is rolled back.
    """
    code = "partial_failure"
    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        resource_id: str,
        completed: List[str],
        pending: List[str],
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.resource_id = resource_id
        self.completed = completed
        self.pending = pending
        self.cause = cause


ROLE_OWNER = "owner"
ROLE_EDITOR = "editor"
ROLE_VIEWER = "viewer"

VALID_ROLES = (ROLE_OWNER, ROLE_EDITOR, ROLE_VIEWER)

# Higher rank grants more
ROLE_RANK = {ROLE_VIEWER: 0, ROLE_EDITOR: 1, ROLE_OWNER: 2}

INVITER_ROLES = (ROLE_OWNER, ROLE_EDITOR)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def normalize_email(email: Optional[str]) -> str:
    """
    Trim and lower-case an email address.

    Raises MembershipValidationError when the result is empty or is not
    shaped like an address.
    """
    normalized = (email or "").strip().lower()
    if not normalized:
        raise MembershipValidationError("Email is required")
    if not _EMAIL_RE.match(normalized):
        raise MembershipValidationError(f"Invalid email address: {normalized}")
    return normalized


def validate_household_name(name: Optional[str]) -> str:
    """Return the trimmed household name."""
    trimmed = (name or "").strip()
    if not trimmed:
        raise MembershipValidationError("Household name is required")
    if len(trimmed) > settings.HOUSEHOLD_NAME_MAX_LENGTH:
        raise MembershipValidationError(
            f"Household name must be at most {settings.HOUSEHOLD_NAME_MAX_LENGTH} characters"
        )
    return trimmed


def validate_role(role: Optional[str]) -> str:
    if role not in VALID_ROLES:
        raise MembershipValidationError(
            f"Invalid role '{role}'. Expected one of: {', '.join(VALID_ROLES)}"
        )
    return role


def can_grant_role(inviter_role: str, granted_role: str) -> bool:
    """Whether an inviter may hand out `granted_role` when elevation is restricted."""
    return ROLE_RANK[granted_role] <= ROLE_RANK[inviter_role]
