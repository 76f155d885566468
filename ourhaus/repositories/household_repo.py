"""
HouseholdRepository - Household documents and their membership fields.

Every membership change touches `member_ids` and `members.<user_id>` in the
same patch, so the two never disagree. Every write also bumps `version`;
callers that decided on a change from a snapshot pass that snapshot's
version so the write fails if anything happened in between.
"""

from typing import List, Optional

from ourhaus.db.store import DocumentPatch, DocumentStore
from ourhaus.models.household import Household, HouseholdMember


class HouseholdRepository:
    """Household database operations."""

    def __init__(self, store: DocumentStore):
        self.store = store
        self.collection = "households"

    async def create_household(self, household: Household) -> Household:
        """Create a new household."""
        await self.store.create(self.collection, household.to_document(), doc_id=household.id)
        return household

    async def get_household(self, household_id: str) -> Optional[Household]:
        """Get a household by id."""
        doc = await self.store.get(self.collection, household_id)
        if doc:
            return Household.decode(doc)
        return None

    async def list_for_member(self, user_id: str) -> List[Household]:
        """Every household whose member set contains the user."""
        docs = await self.store.find(self.collection, {"member_ids": user_id}, sort="created_at")
        return [Household.decode(doc) for doc in docs]

    async def add_member(self, household_id: str, member: HouseholdMember) -> bool:
        """
        Add a member unless the user is already in the member set.

        Returns False when the household is gone or the user already belongs.
        """
        patch = (
            DocumentPatch()
            .add_to_set("member_ids", member.user_id)
            .set_field(f"members.{member.user_id}", member.model_dump())
            .increment("version")
            .touch()
        )
        return await self.store.patch(
            self.collection,
            household_id,
            patch,
            expect_not={"member_ids": member.user_id},
        )

    async def remove_member(
        self,
        household_id: str,
        user_id: str,
        expected_version: Optional[int] = None,
    ) -> bool:
        """
        Remove a member from both the member set and the membership map.

        Guarded by "user is still a member" and, when given, by the
        household's version as read by the caller.
        """
        patch = (
            DocumentPatch()
            .remove_from_set("member_ids", user_id)
            .delete_field(f"members.{user_id}")
            .increment("version")
            .touch()
        )
        expect = {"member_ids": user_id}
        if expected_version is not None:
            expect["version"] = expected_version
        return await self.store.patch(self.collection, household_id, patch, expect=expect)

    async def update_member_role(
        self,
        household_id: str,
        user_id: str,
        role: str,
        expected_version: int,
    ) -> bool:
        """Change a member's role if the household is unchanged since it was read."""
        patch = (
            DocumentPatch()
            .set_field(f"members.{user_id}.role", role)
            .increment("version")
            .touch()
        )
        return await self.store.patch(
            self.collection,
            household_id,
            patch,
            expect={"member_ids": user_id, "version": expected_version},
        )

    async def set_primary_contact(self, household_id: str, user_id: str) -> bool:
        """Point the primary contact at a current member."""
        patch = (
            DocumentPatch()
            .set_field("primary_contact_id", user_id)
            .increment("version")
            .touch()
        )
        return await self.store.patch(
            self.collection, household_id, patch, expect={"member_ids": user_id}
        )
