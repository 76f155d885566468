import logging
from datetime import datetime
from typing import Callable, Optional

from ourhaus.db.store import DocumentStore
from ourhaus.models.user import ProfilePreferences, UserProfile
from ourhaus.repositories.household_repo import HouseholdRepository
from ourhaus.repositories.user_repo import ProfileRepository
from ourhaus.utils.membership_validation import (
    DuplicateDocumentError,
    NotFoundError,
    normalize_email,
)

logger = logging.getLogger(__name__)


class ProfileService:
    """User profiles and their household lists."""

    def __init__(self, store: DocumentStore, clock: Optional[Callable[[], datetime]] = None):
        self.profiles = ProfileRepository(store)
        self.households = HouseholdRepository(store)
        self.clock = clock or store.now

    async def ensure_profile(
        self,
        user_id: str,
        email: str,
        display_name: Optional[str] = None,
        photo_url: Optional[str] = None,
    ) -> UserProfile:
        """
        Return the user's profile, creating it on first sight.

        Idempotent and safe to race: the profile id is the user id, so a
        concurrent create loses with a duplicate and reads the winner.
        """
        existing = await self.profiles.get_profile(user_id)
        if existing:
            return existing

        now = self.clock()
        profile = UserProfile(
            id=user_id,
            email=normalize_email(email),
            display_name=display_name,
            photo_url=photo_url,
            household_ids=[],
            preferences=ProfilePreferences(),
            created_at=now,
            updated_at=now,
        )
        try:
            await self.profiles.create_profile(profile)
        except DuplicateDocumentError:
            logger.debug("Profile %s created concurrently; using stored copy", user_id)
            return await self.get_profile(user_id)

        logger.info("Created profile for user %s", user_id)
        return profile

    async def get_profile(self, user_id: str) -> UserProfile:
        profile = await self.profiles.get_profile(user_id)
        if profile is None:
            raise NotFoundError("Profile not found")
        return profile

    async def update_profile(
        self,
        user_id: str,
        display_name: Optional[str] = None,
        photo_url: Optional[str] = None,
        preferences: Optional[ProfilePreferences] = None,
    ) -> UserProfile:
        """Update display fields and preferences. Household membership is not editable here."""
        update_data = {}
        if display_name is not None:
            update_data["display_name"] = display_name.strip() or None
        if photo_url is not None:
            update_data["photo_url"] = photo_url or None
        if preferences is not None:
            update_data["preferences"] = preferences.model_dump()

        if not update_data:
            return await self.get_profile(user_id)

        updated = await self.profiles.update_profile(user_id, update_data)
        if updated is None:
            raise NotFoundError("Profile not found")
        return updated

    async def sync_profile_households(self, user_id: str) -> UserProfile:
        """
        Make the profile's household list match the households that list the
        user as a member.

        This is the repair step after a PartialFailure left the two sides
        out of step.
        """
        profile = await self.get_profile(user_id)
        memberships = {h.id for h in await self.households.list_for_member(user_id)}
        listed = set(profile.household_ids)

        missing = sorted(memberships - listed)
        stale = sorted(listed - memberships)
        if missing:
            await self.profiles.add_households(user_id, missing)
        if stale:
            await self.profiles.remove_households(user_id, stale)

        if missing or stale:
            logger.info(
                "Synced households for user %s: added %d, removed %d",
                user_id, len(missing), len(stale),
            )
            return await self.get_profile(user_id)
        return profile
