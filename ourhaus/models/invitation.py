"""
Invitation model - Tokenized, single-use offers to join a household.

Status machine:
    pending -> accepted   (accept_invitation)
    pending -> expired    (observed lazily once now >= expires_at)
    pending -> cancelled  (cancel_invitation)
Every non-pending status is terminal.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from ourhaus.models.base import DocumentModel
from ourhaus.models.household import HouseholdRole


class InvitationStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class HouseholdInvitation(DocumentModel):
    household_id: str
    token: str
    email: str  # lower-cased
    role: HouseholdRole
    invited_by: str
    invited_at: datetime
    expires_at: datetime
    status: InvitationStatus = InvitationStatus.PENDING

    accepted_by: Optional[str] = None
    accepted_at: Optional[datetime] = None
    # Set once the accepter was added to the household; resume stops here
    membership_applied_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None
    cancelled_at: Optional[datetime] = None

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def effective_status(self, now: datetime) -> str:
        """Status as callers should see it, with lazy expiry applied."""
        if self.status == InvitationStatus.PENDING and self.is_expired(now):
            return InvitationStatus.EXPIRED.value
        return self.status
