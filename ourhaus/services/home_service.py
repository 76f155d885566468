"""
HomeService - Homes, access grants and the maintenance timeline.

Authorization always goes through a HomeAccess document for the caller's
household, plus the caller's role inside that household. An access whose
`expires_at` has passed grants nothing.
"""

import logging
from datetime import datetime
from typing import Callable, List, Optional

from ourhaus.db.store import DocumentStore
from ourhaus.models.base import new_id
from ourhaus.models.home import (
    AccessRole,
    Address,
    Event,
    EventType,
    Home,
    HomeAccess,
    Snapshot,
    access_id,
)
from ourhaus.models.household import HouseholdRole
from ourhaus.repositories.home_repo import HomeRepository, TimelineRepository
from ourhaus.repositories.household_repo import HouseholdRepository
from ourhaus.utils.membership_validation import (
    ConcurrentUpdateError,
    DuplicateDocumentError,
    ImmutableRecordError,
    MembershipValidationError,
    NotAuthorizedError,
    NotFoundError,
    PartialFailureError,
    StoreUnavailableError,
)

logger = logging.getLogger(__name__)

WRITE_ROLES = (AccessRole.OWNER.value, AccessRole.MEMBER.value)
HOUSEHOLD_WRITE_ROLES = (HouseholdRole.OWNER.value, HouseholdRole.EDITOR.value)


class HomeService:
    def __init__(self, store: DocumentStore, clock: Optional[Callable[[], datetime]] = None):
        self.homes = HomeRepository(store)
        self.timeline = TimelineRepository(store)
        self.households = HouseholdRepository(store)
        self.clock = clock or store.now

    # ===== ACCESS CHECKS =====

    async def _household_role(self, household_id: str, user_id: str) -> str:
        household = await self.households.get_household(household_id)
        if household is None or not household.is_member(user_id):
            raise NotFoundError("Household not found")
        return household.role_of(user_id)

    async def _require_access(
        self, home_id: str, household_id: str, user_id: str, roles=None
    ) -> HomeAccess:
        """
        Resolve the caller's access to a home.

        Unknown homes and missing or expired access both read as NotFound so
        a caller cannot discover homes it cannot see. When `roles` is given
        the call writes: the access role must be in `roles` and the caller
        must be an owner or editor of the acting household.
        """
        household_role = await self._household_role(household_id, user_id)
        access = await self.homes.get_access(home_id, household_id)
        if access is None or not access.is_active(self.clock()):
            raise NotFoundError("Home not found")
        if roles is not None:
            if access.role not in roles:
                raise NotAuthorizedError(f"{access.role} access cannot modify this home")
            if household_role not in HOUSEHOLD_WRITE_ROLES:
                raise NotAuthorizedError("Household viewers cannot modify homes")
        return access

    async def _require_owner(self, home_id: str, household_id: str, user_id: str) -> Home:
        """Caller must be an owner of the household that owns the home."""
        await self._require_access(home_id, household_id, user_id, roles=(AccessRole.OWNER.value,))
        if await self._household_role(household_id, user_id) != HouseholdRole.OWNER:
            raise NotAuthorizedError("Only household owners can manage home access")
        home = await self.homes.get_home(home_id)
        if home is None:
            raise NotFoundError("Home not found")
        if home.current_owner_household_id != household_id:
            raise NotAuthorizedError("Household does not own this home")
        return home

    # ===== HOMES =====

    async def create_home(
        self,
        household_id: str,
        acting_user_id: str,
        address: Address,
        nickname: Optional[str] = None,
        photo_url: Optional[str] = None,
    ) -> Home:
        """Create a home owned by the household and grant it owner access."""
        if await self._household_role(household_id, acting_user_id) not in HOUSEHOLD_WRITE_ROLES:
            raise NotAuthorizedError("Only owners and editors can add homes")

        now = self.clock()
        home = Home(
            id=new_id(),
            address=address,
            current_owner_household_id=household_id,
            nickname=nickname,
            photo_url=photo_url,
            created_at=now,
            updated_at=now,
        )
        await self.homes.create_home(home)
        logger.info("User %s created home %s for household %s", acting_user_id, home.id, household_id)

        try:
            await self.homes.create_access(
                self._new_access(home.id, household_id, AccessRole.OWNER, acting_user_id, now)
            )
        except StoreUnavailableError as e:
            raise PartialFailureError(
                "Home created but owner access was not granted",
                resource_id=home.id,
                completed=["home"],
                pending=["access"],
                cause=e,
            ) from e
        return home

    async def get_home(self, home_id: str, household_id: str, user_id: str) -> Home:
        await self._require_access(home_id, household_id, user_id)
        home = await self.homes.get_home(home_id)
        if home is None:
            raise NotFoundError("Home not found")
        return home

    # ===== ACCESS =====

    async def list_access(self, home_id: str, household_id: str, user_id: str) -> List[HomeAccess]:
        await self._require_owner(home_id, household_id, user_id)
        return await self.homes.list_access(home_id)

    async def grant_access(
        self,
        home_id: str,
        acting_user_id: str,
        acting_household_id: str,
        household_id: str,
        role: str,
        expires_at: Optional[datetime] = None,
    ) -> HomeAccess:
        """Give another household member or viewer access. Owner access moves only by transfer."""
        if role not in (AccessRole.MEMBER.value, AccessRole.VIEWER.value):
            raise MembershipValidationError("Access role must be member or viewer")
        await self._require_owner(home_id, acting_household_id, acting_user_id)
        if await self.households.get_household(household_id) is None:
            raise NotFoundError("Household not found")

        now = self.clock()
        if expires_at is not None and expires_at <= now:
            raise MembershipValidationError("Access expiry must be in the future")

        access = self._new_access(home_id, household_id, role, acting_user_id, now, expires_at)
        try:
            await self.homes.create_access(access)
        except DuplicateDocumentError as e:
            raise DuplicateDocumentError("Household already has access to this home") from e

        logger.info(
            "User %s granted %s access on home %s to household %s",
            acting_user_id, role, home_id, household_id,
        )
        return access

    async def revoke_access(
        self, home_id: str, acting_user_id: str, acting_household_id: str, household_id: str
    ) -> None:
        home = await self._require_owner(home_id, acting_household_id, acting_user_id)
        if household_id == home.current_owner_household_id:
            raise MembershipValidationError("The owning household's access can only change by transfer")
        if not await self.homes.delete_access(home_id, household_id):
            raise NotFoundError("Access not found")
        logger.info("User %s revoked access on home %s for household %s", acting_user_id, home_id, household_id)

    async def transfer_ownership(
        self, home_id: str, acting_user_id: str, acting_household_id: str, new_household_id: str
    ) -> Home:
        """
        Hand a home to another household.

        The owner pointer moves with a compare-and-swap on the previous owner.
        Every access document is then deleted and the new owner is granted
        owner access; the history stays with the home.
        """
        home = await self._require_owner(home_id, acting_household_id, acting_user_id)
        if new_household_id == home.current_owner_household_id:
            raise MembershipValidationError("Household already owns this home")
        if await self.households.get_household(new_household_id) is None:
            raise NotFoundError("Household not found")

        if not await self.homes.set_owner_household(home_id, new_household_id, home.current_owner_household_id):
            raise ConcurrentUpdateError("Home ownership changed; try again")
        logger.info(
            "User %s transferred home %s from household %s to %s",
            acting_user_id, home_id, acting_household_id, new_household_id,
        )

        now = self.clock()
        try:
            for access in await self.homes.list_access(home_id):
                await self.homes.delete_access(home_id, access.household_id)
            await self.homes.create_access(
                self._new_access(home_id, new_household_id, AccessRole.OWNER, acting_user_id, now)
            )
        except StoreUnavailableError as e:
            raise PartialFailureError(
                "Ownership moved but access documents were not rewritten",
                resource_id=home_id,
                completed=["owner"],
                pending=["access"],
                cause=e,
            ) from e

        return await self.homes.get_home(home_id)

    # ===== EVENTS =====

    async def append_event(self, home_id: str, household_id: str, user_id: str, event_in: dict) -> Event:
        """
        Record a timeline event. Events are never updated or deleted; a
        correction is a new event whose `corrects_event_id` names an event of
        the same home.
        """
        await self._require_access(home_id, household_id, user_id, roles=WRITE_ROLES)

        corrects_event_id = event_in.get("corrects_event_id")
        if event_in.get("type") == EventType.CORRECTION.value:
            if not corrects_event_id:
                raise MembershipValidationError("A correction must reference the event it corrects")
            original = await self.timeline.get_event(corrects_event_id)
            if original is None or original.home_id != home_id:
                raise NotFoundError("Corrected event not found")
        elif corrects_event_id:
            raise MembershipValidationError("Only correction events may reference another event")

        snapshot_id = event_in.get("snapshot_id")
        if snapshot_id:
            snapshot = await self.timeline.get_snapshot(snapshot_id)
            if snapshot is None or snapshot.home_id != home_id:
                raise NotFoundError("Snapshot not found")

        now = self.clock()
        event = Event(
            **event_in,
            id=new_id(),
            home_id=home_id,
            created_by=user_id,
            created_by_household_id=household_id,
            created_at=now,
            updated_at=now,
        )
        await self.timeline.append_event(event)
        logger.info("User %s added %s event %s to home %s", user_id, event.type, event.id, home_id)
        return event

    async def list_events(self, home_id: str, household_id: str, user_id: str) -> List[Event]:
        await self._require_access(home_id, household_id, user_id)
        return await self.timeline.list_events(home_id)

    # ===== SNAPSHOTS =====

    async def create_snapshot(self, home_id: str, household_id: str, user_id: str, snapshot_in: dict) -> Snapshot:
        await self._require_access(home_id, household_id, user_id, roles=WRITE_ROLES)
        now = self.clock()
        snapshot = Snapshot(
            **snapshot_in,
            id=new_id(),
            home_id=home_id,
            sealed=False,
            created_by=user_id,
            created_by_household_id=household_id,
            created_at=now,
            updated_at=now,
        )
        await self.timeline.create_snapshot(snapshot)
        logger.info("User %s created snapshot %s for home %s", user_id, snapshot.id, home_id)
        return snapshot

    async def list_snapshots(self, home_id: str, household_id: str, user_id: str) -> List[Snapshot]:
        await self._require_access(home_id, household_id, user_id)
        return await self.timeline.list_snapshots(home_id)

    async def update_snapshot(
        self, home_id: str, snapshot_id: str, household_id: str, user_id: str, update_data: dict
    ) -> Snapshot:
        """Edit an unsealed snapshot. Sealed snapshots raise ImmutableRecordError."""
        await self._require_access(home_id, household_id, user_id, roles=WRITE_ROLES)
        await self._get_snapshot(home_id, snapshot_id)

        if update_data and not await self.timeline.update_unsealed(snapshot_id, update_data):
            raise ImmutableRecordError("Snapshot is sealed")
        return await self._get_snapshot(home_id, snapshot_id)

    async def seal_snapshot(self, home_id: str, snapshot_id: str, household_id: str, user_id: str) -> Snapshot:
        await self._require_access(home_id, household_id, user_id, roles=WRITE_ROLES)
        await self._get_snapshot(home_id, snapshot_id)

        if not await self.timeline.seal(snapshot_id, user_id, self.clock()):
            raise ImmutableRecordError("Snapshot is already sealed")
        logger.info("User %s sealed snapshot %s", user_id, snapshot_id)
        return await self._get_snapshot(home_id, snapshot_id)

    # ===== PRIVATE HELPERS =====

    async def _get_snapshot(self, home_id: str, snapshot_id: str) -> Snapshot:
        snapshot = await self.timeline.get_snapshot(snapshot_id)
        if snapshot is None or snapshot.home_id != home_id:
            raise NotFoundError("Snapshot not found")
        return snapshot

    @staticmethod
    def _new_access(
        home_id: str,
        household_id: str,
        role,
        granted_by: str,
        now: datetime,
        expires_at: Optional[datetime] = None,
    ) -> HomeAccess:
        return HomeAccess(
            id=access_id(home_id, household_id),
            home_id=home_id,
            household_id=household_id,
            role=role,
            granted_by=granted_by,
            granted_at=now,
            expires_at=expires_at,
            created_at=now,
            updated_at=now,
        )
