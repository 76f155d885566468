from fastapi import APIRouter, Depends

from ourhaus.api.deps import get_profile_service
from ourhaus.core.auth import CurrentUser, get_current_user
from ourhaus.schemas.profile import ProfileResponse, ProfileUpdate
from ourhaus.services.profile_service import ProfileService

router = APIRouter()


@router.get("/me", response_model=ProfileResponse)
async def get_my_profile(
    current_user: CurrentUser = Depends(get_current_user),
    profiles: ProfileService = Depends(get_profile_service),
):
    """Get the caller's profile, creating it if this is the first request."""
    profile = await profiles.ensure_profile(
        current_user.user_id, current_user.email, current_user.display_name
    )
    return ProfileResponse.model_validate(profile)


@router.patch("/me", response_model=ProfileResponse)
async def update_my_profile(
    update_data: ProfileUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    profiles: ProfileService = Depends(get_profile_service),
):
    profile = await profiles.update_profile(
        current_user.user_id,
        display_name=update_data.display_name,
        photo_url=update_data.photo_url,
        preferences=update_data.preferences,
    )
    return ProfileResponse.model_validate(profile)


@router.post("/me/sync", response_model=ProfileResponse)
async def sync_my_households(
    current_user: CurrentUser = Depends(get_current_user),
    profiles: ProfileService = Depends(get_profile_service),
):
    """
    Rebuild the profile's household list from household membership.

    Use after a partial failure response.
    """
    profile = await profiles.sync_profile_households(current_user.user_id)
    return ProfileResponse.model_validate(profile)
