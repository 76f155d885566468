"""
InvitationRepository - Top-level `invitations` collection.

Invitations are indexed by `token` (unique), so accepting one is a single
lookup rather than a scan over every household. Status changes are
compare-and-swap transitions out of `pending`.
"""

from datetime import datetime
from typing import List, Optional

from ourhaus.db.store import DocumentPatch, DocumentStore
from ourhaus.models.invitation import HouseholdInvitation, InvitationStatus


class InvitationRepository:
    """Invitation database operations."""

    def __init__(self, store: DocumentStore):
        self.store = store
        self.collection = "invitations"

    async def create_invitation(self, invitation: HouseholdInvitation) -> HouseholdInvitation:
        """Insert an invitation. A token collision raises DuplicateDocumentError."""
        await self.store.create(self.collection, invitation.to_document(), doc_id=invitation.id)
        return invitation

    async def get_invitation(self, invitation_id: str) -> Optional[HouseholdInvitation]:
        doc = await self.store.get(self.collection, invitation_id)
        if doc:
            return HouseholdInvitation.decode(doc)
        return None

    async def get_by_token(self, token: str) -> Optional[HouseholdInvitation]:
        """Get an invitation by its token."""
        doc = await self.store.find_one(self.collection, {"token": token})
        if doc:
            return HouseholdInvitation.decode(doc)
        return None

    async def list_for_household(
        self, household_id: str, status: Optional[str] = None
    ) -> List[HouseholdInvitation]:
        """List a household's invitations, newest first."""
        filters = {"household_id": household_id}
        if status:
            filters["status"] = status
        docs = await self.store.find(self.collection, filters, sort="invited_at", descending=True)
        return [HouseholdInvitation.decode(doc) for doc in docs]

    async def _leave_pending(self, invitation_id: str, patch: DocumentPatch) -> bool:
        return await self.store.patch(
            self.collection,
            invitation_id,
            patch.touch(),
            expect={"status": InvitationStatus.PENDING.value},
        )

    async def mark_accepted(self, invitation_id: str, accepted_by: str, accepted_at: datetime) -> bool:
        """pending -> accepted. False if another writer got there first."""
        patch = (
            DocumentPatch()
            .set_field("status", InvitationStatus.ACCEPTED.value)
            .set_field("accepted_by", accepted_by)
            .set_field("accepted_at", accepted_at)
        )
        return await self._leave_pending(invitation_id, patch)

    async def mark_membership_applied(
        self, invitation_id: str, accepted_by: str, applied_at: datetime
    ) -> bool:
        """Record that an accepted invitation's member was added. Happens once."""
        patch = DocumentPatch().set_field("membership_applied_at", applied_at).touch()
        return await self.store.patch(
            self.collection,
            invitation_id,
            patch,
            expect={
                "status": InvitationStatus.ACCEPTED.value,
                "accepted_by": accepted_by,
                "membership_applied_at": None,
            },
        )

    async def mark_expired(self, invitation_id: str) -> bool:
        """pending -> expired."""
        patch = DocumentPatch().set_field("status", InvitationStatus.EXPIRED.value)
        return await self._leave_pending(invitation_id, patch)

    async def mark_cancelled(self, invitation_id: str, cancelled_by: str, cancelled_at: datetime) -> bool:
        """pending -> cancelled."""
        patch = (
            DocumentPatch()
            .set_field("status", InvitationStatus.CANCELLED.value)
            .set_field("cancelled_by", cancelled_by)
            .set_field("cancelled_at", cancelled_at)
        )
        return await self._leave_pending(invitation_id, patch)
