from fastapi import APIRouter, Depends

from ourhaus.api.deps import get_membership_service
from ourhaus.api.v1.endpoints.households import to_household_response
from ourhaus.core.auth import CurrentUser, get_current_user
from ourhaus.schemas.household import HouseholdResponse
from ourhaus.schemas.invitation import InvitationAccept, InvitationResponse
from ourhaus.services.membership_service import MembershipService

router = APIRouter()


@router.post("/accept", response_model=HouseholdResponse)
async def accept_invitation(
    accept_in: InvitationAccept,
    current_user: CurrentUser = Depends(get_current_user),
    service: MembershipService = Depends(get_membership_service),
):
    """
    Join a household with an invitation token.

    - The invitation must be pending and unexpired
    - The signed-in email must match the invited email
    """
    household = await service.accept_invitation(
        accept_in.token, current_user.user_id, current_user.email
    )
    return to_household_response(household)


@router.post("/resume", response_model=HouseholdResponse)
async def resume_acceptance(
    accept_in: InvitationAccept,
    current_user: CurrentUser = Depends(get_current_user),
    service: MembershipService = Depends(get_membership_service),
):
    """Finish an acceptance that returned a partial failure."""
    household = await service.resume_acceptance(accept_in.token, current_user.user_id)
    return to_household_response(household)


@router.post("/{invitation_id}/cancel", response_model=InvitationResponse)
async def cancel_invitation(
    invitation_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: MembershipService = Depends(get_membership_service),
):
    invitation = await service.cancel_invitation(invitation_id, current_user.user_id)
    return InvitationResponse.model_validate(invitation)
