"""
Home endpoints.

Every route acts on behalf of one of the caller's households, passed as the
`household_id` query parameter; access is checked against that household's
HomeAccess document.
"""

from typing import List

from fastapi import APIRouter, Depends, status

from ourhaus.api.deps import get_home_service
from ourhaus.core.auth import CurrentUser, get_current_user
from ourhaus.schemas.home import (
    AccessGrant,
    AccessResponse,
    EventCreate,
    EventResponse,
    HomeCreate,
    HomeResponse,
    OwnershipTransfer,
    SnapshotCreate,
    SnapshotResponse,
    SnapshotUpdate,
)
from ourhaus.services.home_service import HomeService

router = APIRouter()


@router.post("", response_model=HomeResponse, status_code=status.HTTP_201_CREATED)
async def create_home(
    home_in: HomeCreate,
    current_user: CurrentUser = Depends(get_current_user),
    service: HomeService = Depends(get_home_service),
):
    """Create a home owned by one of your households (owners and editors)."""
    home = await service.create_home(
        home_in.household_id,
        current_user.user_id,
        home_in.address,
        nickname=home_in.nickname,
        photo_url=home_in.photo_url,
    )
    return HomeResponse.model_validate(home)


@router.get("/{home_id}", response_model=HomeResponse)
async def get_home(
    home_id: str,
    household_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: HomeService = Depends(get_home_service),
):
    home = await service.get_home(home_id, household_id, current_user.user_id)
    return HomeResponse.model_validate(home)


# ===== ACCESS =====

@router.get("/{home_id}/access", response_model=List[AccessResponse])
async def list_access(
    home_id: str,
    household_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: HomeService = Depends(get_home_service),
):
    access = await service.list_access(home_id, household_id, current_user.user_id)
    return [AccessResponse.model_validate(a) for a in access]


@router.post("/{home_id}/access", response_model=AccessResponse, status_code=status.HTTP_201_CREATED)
async def grant_access(
    home_id: str,
    household_id: str,
    grant_in: AccessGrant,
    current_user: CurrentUser = Depends(get_current_user),
    service: HomeService = Depends(get_home_service),
):
    """
    Give another household access (owning household's owners only).

    - Role is member or viewer
    - Optional expiry must be in the future
    """
    access = await service.grant_access(
        home_id,
        current_user.user_id,
        household_id,
        grant_in.household_id,
        grant_in.role.value,
        expires_at=grant_in.expires_at,
    )
    return AccessResponse.model_validate(access)


@router.delete("/{home_id}/access/{target_household_id}", status_code=status.HTTP_204_NO_CONTENT)
async def revoke_access(
    home_id: str,
    target_household_id: str,
    household_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: HomeService = Depends(get_home_service),
):
    await service.revoke_access(home_id, current_user.user_id, household_id, target_household_id)


@router.post("/{home_id}/transfer", response_model=HomeResponse)
async def transfer_ownership(
    home_id: str,
    household_id: str,
    transfer_in: OwnershipTransfer,
    current_user: CurrentUser = Depends(get_current_user),
    service: HomeService = Depends(get_home_service),
):
    """Hand the home to another household. All existing access is removed."""
    home = await service.transfer_ownership(
        home_id, current_user.user_id, household_id, transfer_in.new_household_id
    )
    return HomeResponse.model_validate(home)


# ===== EVENTS =====

@router.post("/{home_id}/events", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def append_event(
    home_id: str,
    household_id: str,
    event_in: EventCreate,
    current_user: CurrentUser = Depends(get_current_user),
    service: HomeService = Depends(get_home_service),
):
    """
    Add an event to the home's timeline.

    - Events cannot be edited or deleted
    - To fix a mistake, post a `correction` event with `corrects_event_id`
    """
    event = await service.append_event(
        home_id, household_id, current_user.user_id, event_in.model_dump()
    )
    return EventResponse.model_validate(event)


@router.get("/{home_id}/events", response_model=List[EventResponse])
async def list_events(
    home_id: str,
    household_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: HomeService = Depends(get_home_service),
):
    events = await service.list_events(home_id, household_id, current_user.user_id)
    return [EventResponse.model_validate(e) for e in events]


# ===== SNAPSHOTS =====

@router.post("/{home_id}/snapshots", response_model=SnapshotResponse, status_code=status.HTTP_201_CREATED)
async def create_snapshot(
    home_id: str,
    household_id: str,
    snapshot_in: SnapshotCreate,
    current_user: CurrentUser = Depends(get_current_user),
    service: HomeService = Depends(get_home_service),
):
    snapshot = await service.create_snapshot(
        home_id, household_id, current_user.user_id, snapshot_in.model_dump()
    )
    return SnapshotResponse.model_validate(snapshot)


@router.get("/{home_id}/snapshots", response_model=List[SnapshotResponse])
async def list_snapshots(
    home_id: str,
    household_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: HomeService = Depends(get_home_service),
):
    snapshots = await service.list_snapshots(home_id, household_id, current_user.user_id)
    return [SnapshotResponse.model_validate(s) for s in snapshots]


@router.patch("/{home_id}/snapshots/{snapshot_id}", response_model=SnapshotResponse)
async def update_snapshot(
    home_id: str,
    snapshot_id: str,
    household_id: str,
    update_in: SnapshotUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    service: HomeService = Depends(get_home_service),
):
    """Edit a snapshot while it is unsealed."""
    snapshot = await service.update_snapshot(
        home_id,
        snapshot_id,
        household_id,
        current_user.user_id,
        update_in.model_dump(exclude_unset=True, exclude_none=True),
    )
    return SnapshotResponse.model_validate(snapshot)


@router.post("/{home_id}/snapshots/{snapshot_id}/seal", response_model=SnapshotResponse)
async def seal_snapshot(
    home_id: str,
    snapshot_id: str,
    household_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: HomeService = Depends(get_home_service),
):
    """Seal a snapshot. Sealed snapshots can no longer change."""
    snapshot = await service.seal_snapshot(home_id, snapshot_id, household_id, current_user.user_id)
    return SnapshotResponse.model_validate(snapshot)
