from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ourhaus.models.home import (
    AccessRole,
    Address,
    Attachment,
    Cost,
    EventType,
    RoomCondition,
    ServiceProvider,
    SnapshotFile,
    SnapshotType,
)


class HomeCreate(BaseModel):
    household_id: str
    address: Address
    nickname: Optional[str] = None
    photo_url: Optional[str] = None


class HomeResponse(BaseModel):
    id: str
    address: Address
    current_owner_household_id: str
    nickname: Optional[str] = None
    photo_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AccessGrant(BaseModel):
    household_id: str
    role: AccessRole
    expires_at: Optional[datetime] = None


class AccessResponse(BaseModel):
    home_id: str
    household_id: str
    role: str
    granted_by: str
    granted_at: datetime
    expires_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class OwnershipTransfer(BaseModel):
    new_household_id: str


class EventCreate(BaseModel):
    type: EventType
    category: Optional[str] = None
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    date: datetime
    attachments: List[Attachment] = Field(default_factory=list)
    corrects_event_id: Optional[str] = None
    snapshot_id: Optional[str] = None
    cost: Optional[Cost] = None
    service_provider: Optional[ServiceProvider] = None


class EventResponse(EventCreate):
    id: str
    type: str
    home_id: str
    created_by: str
    created_by_household_id: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class SnapshotCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    date: datetime
    type: SnapshotType
    files: List[SnapshotFile] = Field(default_factory=list)
    rooms: List[RoomCondition] = Field(default_factory=list)


class SnapshotUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    date: Optional[datetime] = None
    files: Optional[List[SnapshotFile]] = None
    rooms: Optional[List[RoomCondition]] = None


class SnapshotResponse(SnapshotCreate):
    id: str
    type: str
    home_id: str
    sealed: bool
    sealed_at: Optional[datetime] = None
    sealed_by: Optional[str] = None
    created_by: str
    created_by_household_id: str
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
