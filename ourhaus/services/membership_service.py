"""
MembershipService - Households, invitations and membership consistency.

Core rules:
1. `Household.member_ids` and `Household.members` change together, in one
   atomic document patch.
2. A user's profile lists exactly the households whose member set holds
   the user. Profile writes follow household writes; when one fails the
   caller gets a PartialFailureError and repairs with
   `ProfileService.sync_profile_households` (or `resume_acceptance`).
3. An invitation leaves `pending` exactly once, through a compare-and-swap.
   Accepting claims the invitation before anything else is written, so a
   token can never add two members.
"""

import logging
import secrets
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Tuple

from ourhaus.core.config import settings
from ourhaus.db.store import DocumentStore
from ourhaus.models.base import new_id
from ourhaus.models.household import Household, HouseholdMember, HouseholdRole
from ourhaus.models.invitation import HouseholdInvitation, InvitationStatus
from ourhaus.models.user import UserProfile
from ourhaus.repositories.household_repo import HouseholdRepository
from ourhaus.repositories.invitation_repo import InvitationRepository
from ourhaus.repositories.user_repo import ProfileRepository
from ourhaus.services.profile_service import ProfileService
from ourhaus.utils.membership_validation import (
    INVITER_ROLES,
    AlreadyMemberError,
    ConcurrentUpdateError,
    DuplicateDocumentError,
    EmailMismatchError,
    InvalidTokenError,
    InvitationExpiredError,
    InvitationNotPendingError,
    LastOwnerError,
    MemberNotFoundError,
    MembershipValidationError,
    NotAuthorizedError,
    NotFoundError,
    PartialFailureError,
    SelfRemovalError,
    StoreUnavailableError,
    can_grant_role,
    normalize_email,
    validate_household_name,
    validate_role,
)

logger = logging.getLogger(__name__)


def generate_invitation_token() -> str:
    """URL-safe token from the OS CSPRNG."""
    return secrets.token_urlsafe(settings.INVITATION_TOKEN_BYTES)


class MembershipService:
    def __init__(
        self,
        store: DocumentStore,
        clock: Optional[Callable[[], datetime]] = None,
        token_factory: Callable[[], str] = generate_invitation_token,
    ):
        self.households = HouseholdRepository(store)
        self.invitations = InvitationRepository(store)
        self.profiles = ProfileRepository(store)
        self.clock = clock or store.now
        self.profile_service = ProfileService(store, clock=self.clock)
        self.token_factory = token_factory

    # ===== HOUSEHOLDS =====

    async def create_household(self, owner_id: str, name: str) -> Household:
        """
        Create a household owned by `owner_id` and list it on their profile.

        Writes the household first, then the profile. If the profile write
        fails the household is kept and PartialFailureError names the
        pending step.
        """
        name = validate_household_name(name)
        if await self.profiles.get_profile(owner_id) is None:
            raise NotFoundError("Profile not found")

        now = self.clock()
        household = Household(
            id=new_id(),
            name=name,
            member_ids=[owner_id],
            members={
                owner_id: HouseholdMember(user_id=owner_id, role=HouseholdRole.OWNER, joined_at=now)
            },
            primary_contact_id=owner_id,
            created_at=now,
            updated_at=now,
        )
        await self.households.create_household(household)
        logger.info("User %s created household %s", owner_id, household.id)

        await self._link_profile(owner_id, household.id, completed=["household"])
        return household

    async def get_household(self, household_id: str, user_id: str) -> Household:
        """Get a household the user belongs to."""
        household = await self.households.get_household(household_id)
        if household is None or not household.is_member(user_id):
            raise NotFoundError("Household not found")
        return household

    async def list_households(self, user_id: str) -> List[Household]:
        """Households listed on the user's profile that still count the user as a member."""
        profile = await self.profile_service.get_profile(user_id)
        households = []
        for household_id in profile.household_ids:
            household = await self.households.get_household(household_id)
            if household and household.is_member(user_id):
                households.append(household)
        return households

    async def list_members(
        self, household_id: str, user_id: str
    ) -> List[Tuple[HouseholdMember, Optional[UserProfile]]]:
        """Members of a household with their profiles, oldest member first."""
        household = await self.get_household(household_id, user_id)
        members = sorted(household.members.values(), key=lambda m: m.joined_at)
        return [(member, await self.profiles.get_profile(member.user_id)) for member in members]

    # ===== INVITATIONS =====

    async def invite_member(
        self, household_id: str, inviter_id: str, email: str, role: str
    ) -> HouseholdInvitation:
        """
        Issue a pending invitation for `email` to join with `role`.

        The returned invitation carries the token; delivering it to the
        invitee is up to the caller.
        """
        household = await self.households.get_household(household_id)
        if household is None:
            raise NotFoundError("Household not found")

        inviter_role = household.role_of(inviter_id)
        if inviter_role not in INVITER_ROLES:
            raise NotAuthorizedError("Only owners and editors can invite members")

        email = normalize_email(email)
        role = validate_role(role)

        if settings.RESTRICT_INVITE_ROLE_ELEVATION and not can_grant_role(inviter_role, role):
            raise NotAuthorizedError(f"An {inviter_role} cannot grant the {role} role")

        now = self.clock()
        for attempt in range(settings.INVITATION_TOKEN_ATTEMPTS):
            invitation = HouseholdInvitation(
                id=new_id(),
                household_id=household_id,
                token=self.token_factory(),
                email=email,
                role=role,
                invited_by=inviter_id,
                invited_at=now,
                expires_at=now + timedelta(days=settings.INVITATION_TTL_DAYS),
                status=InvitationStatus.PENDING,
                created_at=now,
                updated_at=now,
            )
            try:
                await self.invitations.create_invitation(invitation)
            except DuplicateDocumentError:
                logger.warning("Invitation token collision on attempt %d; regenerating", attempt + 1)
                continue
            logger.info(
                "User %s invited %s to household %s as %s (invitation %s)",
                inviter_id, email, household_id, role, invitation.id,
            )
            return invitation

        raise DuplicateDocumentError("Could not generate a unique invitation token")

    async def accept_invitation(self, token: str, accepter_id: str, accepter_email: str) -> Household:
        """
        Join a household with an invitation token.

        Checks, in order: token exists and is pending, not expired, email
        matches, accepter not already a member. Then claims the invitation
        (pending -> accepted), adds the member and updates the profile.
        """
        token = (token or "").strip()
        invitation = await self.invitations.get_by_token(token) if token else None
        if invitation is None:
            raise InvalidTokenError("Invalid invitation token")
        if invitation.status != InvitationStatus.PENDING:
            raise InvitationNotPendingError(
                f"Invitation is already {invitation.status}", invitation.status
            )

        now = self.clock()
        if invitation.is_expired(now):
            await self.invitations.mark_expired(invitation.id)
            raise InvitationExpiredError("This invitation has expired")

        if (accepter_email or "").strip().lower() != invitation.email:
            raise EmailMismatchError("This invitation was sent to a different email address")

        household = await self.households.get_household(invitation.household_id)
        if household is None:
            raise NotFoundError("Household not found")
        if household.is_member(accepter_id):
            raise AlreadyMemberError("You are already a member of this household")
        if await self.profiles.get_profile(accepter_id) is None:
            raise NotFoundError("Profile not found")

        if not await self.invitations.mark_accepted(invitation.id, accepter_id, now):
            current = await self.invitations.get_invitation(invitation.id)
            status = current.status if current else "missing"
            raise InvitationNotPendingError(f"Invitation is already {status}", status)

        logger.info("User %s accepted invitation %s", accepter_id, invitation.id)
        return await self._apply_acceptance(invitation, accepter_id, joined_at=now)

    async def resume_acceptance(self, token: str, accepter_id: str) -> Household:
        """
        Finish an acceptance that stopped with PartialFailureError.

        Only the user who claimed the invitation may resume; re-running the
        remaining steps is idempotent. Once the membership was recorded the
        token never adds the user again, so a member who left or was removed
        cannot rejoin with it.
        """
        invitation = await self.invitations.get_by_token((token or "").strip())
        if invitation is None:
            raise InvalidTokenError("Invalid invitation token")
        if invitation.status != InvitationStatus.ACCEPTED:
            raise MembershipValidationError("Invitation has not been accepted")
        if invitation.accepted_by != accepter_id:
            raise NotAuthorizedError("Invitation was accepted by another user")

        if invitation.membership_applied_at is not None:
            household = await self.households.get_household(invitation.household_id)
            if household is None:
                raise NotFoundError("Household not found")
            if not household.is_member(accepter_id):
                raise InvitationNotPendingError(
                    "Invitation has already been used", invitation.status
                )

        return await self._apply_acceptance(
            invitation, accepter_id, joined_at=invitation.accepted_at or self.clock()
        )

    async def cancel_invitation(self, invitation_id: str, acting_user_id: str) -> HouseholdInvitation:
        """Withdraw a pending invitation. Owners and editors only."""
        invitation = await self.invitations.get_invitation(invitation_id)
        if invitation is None:
            raise NotFoundError("Invitation not found")

        household = await self.households.get_household(invitation.household_id)
        if household is None:
            raise NotFoundError("Household not found")
        if household.role_of(acting_user_id) not in INVITER_ROLES:
            raise NotAuthorizedError("Only owners and editors can cancel invitations")

        if invitation.status != InvitationStatus.PENDING:
            raise InvitationNotPendingError(
                f"Invitation is already {invitation.status}", invitation.status
            )

        now = self.clock()
        if not await self.invitations.mark_cancelled(invitation.id, acting_user_id, now):
            current = await self.invitations.get_invitation(invitation.id)
            status = current.status if current else "missing"
            raise InvitationNotPendingError(f"Invitation is already {status}", status)

        logger.info("User %s cancelled invitation %s", acting_user_id, invitation.id)
        return await self.invitations.get_invitation(invitation.id)

    async def list_invitations(
        self, household_id: str, acting_user_id: str, status: Optional[str] = None
    ) -> List[HouseholdInvitation]:
        """
        A household's invitations as members should see them: pending ones
        past their expiry are reported as expired.
        """
        await self.get_household(household_id, acting_user_id)
        if status is not None and status not in {s.value for s in InvitationStatus}:
            raise MembershipValidationError(f"Invalid invitation status '{status}'")

        now = self.clock()
        invitations = []
        for invitation in await self.invitations.list_for_household(household_id):
            effective = invitation.effective_status(now)
            if status is None or effective == status:
                invitations.append(invitation.model_copy(update={"status": effective}))
        return invitations

    # ===== MEMBERS =====

    async def remove_member(self, household_id: str, acting_user_id: str, target_user_id: str) -> Household:
        """
        Owner removes another member. Owners leave through `leave_household`.

        The removal only applies to the household as read here, so the
        acting owner cannot be demoted or removed in between. Removing the
        primary contact hands the role to the longest-standing remaining
        owner.
        """
        household = await self.households.get_household(household_id)
        if household is None:
            raise NotFoundError("Household not found")
        if household.role_of(acting_user_id) != HouseholdRole.OWNER:
            raise NotAuthorizedError("Only owners can remove members")
        if target_user_id == acting_user_id:
            raise SelfRemovalError("You cannot remove yourself from the household")
        if not household.is_member(target_user_id):
            raise MemberNotFoundError("Member not found")

        if not await self.households.remove_member(
            household_id, target_user_id, expected_version=household.version
        ):
            current = await self._reload(household_id)
            if not current.is_member(target_user_id):
                raise MemberNotFoundError("Member not found")
            raise ConcurrentUpdateError("Household changed while removing member; try again")
        logger.info("User %s removed %s from household %s", acting_user_id, target_user_id, household_id)

        completed = ["household"]
        await self._hand_over_primary_contact(household, target_user_id, completed)
        await self._unlink_profile(target_user_id, household_id, completed=completed)
        return await self._reload(household_id)

    async def leave_household(self, household_id: str, user_id: str) -> None:
        """
        Remove yourself from a household.

        The last owner cannot leave. If the primary contact leaves, the
        longest-standing remaining owner takes over.
        """
        household = await self.households.get_household(household_id)
        if household is None:
            raise NotFoundError("Household not found")
        if not household.is_member(user_id):
            raise MemberNotFoundError("Member not found")

        owners = household.owner_ids()
        if owners == [user_id]:
            raise LastOwnerError("Assign another owner before leaving")

        if not await self.households.remove_member(
            household_id, user_id, expected_version=household.version
        ):
            raise ConcurrentUpdateError("Household changed while leaving; try again")
        logger.info("User %s left household %s", user_id, household_id)

        completed = ["household"]
        await self._hand_over_primary_contact(household, user_id, completed)
        await self._unlink_profile(user_id, household_id, completed=completed)

    async def change_member_role(
        self, household_id: str, acting_user_id: str, target_user_id: str, role: str
    ) -> Household:
        """Owner changes a member's role. The last owner cannot be demoted."""
        role = validate_role(role)
        household = await self.households.get_household(household_id)
        if household is None:
            raise NotFoundError("Household not found")
        if household.role_of(acting_user_id) != HouseholdRole.OWNER:
            raise NotAuthorizedError("Only owners can change roles")

        current_role = household.role_of(target_user_id)
        if current_role is None:
            raise MemberNotFoundError("Member not found")
        if current_role == role:
            return household
        if current_role == HouseholdRole.OWNER and household.owner_ids() == [target_user_id]:
            raise LastOwnerError("At least one owner required")

        if not await self.households.update_member_role(
            household_id, target_user_id, role, expected_version=household.version
        ):
            raise ConcurrentUpdateError("Household changed while updating role; try again")
        logger.info(
            "User %s changed role of %s in household %s to %s",
            acting_user_id, target_user_id, household_id, role,
        )
        return await self._reload(household_id)

    # ===== PRIVATE HELPERS =====

    async def _reload(self, household_id: str) -> Household:
        household = await self.households.get_household(household_id)
        if household is None:
            raise NotFoundError("Household not found")
        return household

    async def _apply_acceptance(
        self, invitation: HouseholdInvitation, accepter_id: str, joined_at: datetime
    ) -> Household:
        """Add the member and link the profile after the invitation was claimed."""
        completed = ["invitation"]
        if invitation.membership_applied_at is None:
            member = HouseholdMember(user_id=accepter_id, role=invitation.role, joined_at=joined_at)
            try:
                added = await self.households.add_member(invitation.household_id, member)
            except StoreUnavailableError as e:
                raise PartialFailureError(
                    "Invitation accepted but membership was not recorded",
                    resource_id=invitation.household_id,
                    completed=completed,
                    pending=["household", "profile"],
                    cause=e,
                ) from e

            if not added:
                # Either already added by an earlier attempt, or the household is gone
                household = await self.households.get_household(invitation.household_id)
                if household is None:
                    raise NotFoundError("Household not found")

            try:
                await self.invitations.mark_membership_applied(
                    invitation.id, accepter_id, self.clock()
                )
            except StoreUnavailableError as e:
                raise PartialFailureError(
                    "Membership recorded but invitation was not updated",
                    resource_id=invitation.household_id,
                    completed=completed + ["household"],
                    pending=["profile"],
                    cause=e,
                ) from e
        completed.append("household")

        await self._link_profile(accepter_id, invitation.household_id, completed=completed)
        return await self._reload(invitation.household_id)

    async def _hand_over_primary_contact(
        self, household: Household, departing_id: str, completed: List[str]
    ) -> None:
        """Pass the primary contact to the earliest-joined owner who stays."""
        if household.primary_contact_id != departing_id:
            return
        successor = min(
            (m for m in household.members.values()
             if m.user_id != departing_id and m.role == HouseholdRole.OWNER),
            key=lambda m: m.joined_at,
        )
        try:
            moved = await self.households.set_primary_contact(household.id, successor.user_id)
        except StoreUnavailableError as e:
            raise PartialFailureError(
                "Member left but primary contact was not reassigned",
                resource_id=household.id,
                completed=completed,
                pending=["primary_contact", "profile"],
                cause=e,
            ) from e
        if not moved:
            logger.warning(
                "Primary contact of household %s not moved to %s; no longer a member",
                household.id, successor.user_id,
            )
        completed.append("primary_contact")

    async def _link_profile(self, user_id: str, household_id: str, completed: List[str]) -> None:
        try:
            linked = await self.profiles.add_households(user_id, [household_id])
        except StoreUnavailableError as e:
            raise PartialFailureError(
                "Household updated but profile was not",
                resource_id=household_id,
                completed=completed,
                pending=["profile"],
                cause=e,
            ) from e
        if not linked:
            raise PartialFailureError(
                "Household updated but profile is missing",
                resource_id=household_id,
                completed=completed,
                pending=["profile"],
            )

    async def _unlink_profile(self, user_id: str, household_id: str, completed: List[str]) -> None:
        try:
            unlinked = await self.profiles.remove_households(user_id, [household_id])
        except StoreUnavailableError as e:
            raise PartialFailureError(
                "Member removed but profile still lists the household",
                resource_id=household_id,
                completed=completed,
                pending=["profile"],
                cause=e,
            ) from e
        if not unlinked:
            logger.warning("No profile for user %s while unlinking household %s", user_id, household_id)
