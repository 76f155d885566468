from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from ourhaus.api.deps import get_membership_service
from ourhaus.core.auth import CurrentUser, get_current_user
from ourhaus.models.household import Household
from ourhaus.schemas.household import (
    HouseholdCreate,
    HouseholdResponse,
    MemberResponse,
    MemberRoleUpdate,
)
from ourhaus.schemas.invitation import (
    InvitationCreate,
    InvitationCreatedResponse,
    InvitationResponse,
)
from ourhaus.services.membership_service import MembershipService

router = APIRouter()


def to_household_response(household: Household) -> HouseholdResponse:
    """Convert Household model to HouseholdResponse schema."""
    members = sorted(household.members.values(), key=lambda m: m.joined_at)
    return HouseholdResponse(
        id=household.id,
        name=household.name,
        member_ids=household.member_ids,
        members=[MemberResponse.model_validate(m) for m in members],
        primary_contact_id=household.primary_contact_id,
        created_at=household.created_at,
        updated_at=household.updated_at,
    )


@router.post("", response_model=HouseholdResponse, status_code=status.HTTP_201_CREATED)
async def create_household(
    household_in: HouseholdCreate,
    current_user: CurrentUser = Depends(get_current_user),
    service: MembershipService = Depends(get_membership_service),
):
    """
    Create a household with the caller as its only owner.

    - Name is trimmed and must be 1-100 characters
    - The caller becomes the primary contact
    """
    household = await service.create_household(current_user.user_id, household_in.name)
    return to_household_response(household)


@router.get("", response_model=List[HouseholdResponse])
async def list_households(
    current_user: CurrentUser = Depends(get_current_user),
    service: MembershipService = Depends(get_membership_service),
):
    """List the households on the caller's profile."""
    households = await service.list_households(current_user.user_id)
    return [to_household_response(h) for h in households]


@router.get("/{household_id}", response_model=HouseholdResponse)
async def get_household(
    household_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: MembershipService = Depends(get_membership_service),
):
    household = await service.get_household(household_id, current_user.user_id)
    return to_household_response(household)


@router.get("/{household_id}/members", response_model=List[MemberResponse])
async def list_members(
    household_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: MembershipService = Depends(get_membership_service),
):
    """Members with their profile email and display name."""
    members = await service.list_members(household_id, current_user.user_id)
    return [
        MemberResponse(
            user_id=member.user_id,
            role=member.role,
            joined_at=member.joined_at,
            email=profile.email if profile else None,
            display_name=profile.display_name if profile else None,
        )
        for member, profile in members
    ]


@router.post(
    "/{household_id}/invitations",
    response_model=InvitationCreatedResponse,
    status_code=status.HTTP_201_CREATED,
)
async def invite_member(
    household_id: str,
    invitation_in: InvitationCreate,
    current_user: CurrentUser = Depends(get_current_user),
    service: MembershipService = Depends(get_membership_service),
):
    """
    Invite someone by email (owners and editors).

    The token is returned only here; send it to the invitee yourself.
    """
    invitation = await service.invite_member(
        household_id, current_user.user_id, invitation_in.email, invitation_in.role
    )
    return InvitationCreatedResponse.model_validate(invitation)


@router.get("/{household_id}/invitations", response_model=List[InvitationResponse])
async def list_invitations(
    household_id: str,
    status_filter: Optional[str] = Query(None, alias="status"),
    current_user: CurrentUser = Depends(get_current_user),
    service: MembershipService = Depends(get_membership_service),
):
    invitations = await service.list_invitations(household_id, current_user.user_id, status_filter)
    return [InvitationResponse.model_validate(i) for i in invitations]


@router.patch("/{household_id}/members/{user_id}", response_model=HouseholdResponse)
async def change_member_role(
    household_id: str,
    user_id: str,
    role_in: MemberRoleUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    service: MembershipService = Depends(get_membership_service),
):
    """Change a member's role (owner only)."""
    household = await service.change_member_role(
        household_id, current_user.user_id, user_id, role_in.role
    )
    return to_household_response(household)


@router.delete("/{household_id}/members/{user_id}", response_model=HouseholdResponse)
async def remove_member(
    household_id: str,
    user_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: MembershipService = Depends(get_membership_service),
):
    """
    Remove a member (owner only).

    - Cannot remove yourself; use the leave endpoint
    """
    household = await service.remove_member(household_id, current_user.user_id, user_id)
    return to_household_response(household)


@router.post("/{household_id}/leave", status_code=status.HTTP_204_NO_CONTENT)
async def leave_household(
    household_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: MembershipService = Depends(get_membership_service),
):
    """Leave a household. The last owner must hand over ownership first."""
    await service.leave_household(household_id, current_user.user_id)
