"""
Home models - Physical properties and their history.

Design principles:
- A home outlives any single owning household
- HomeAccess documents are the only link between a household and a home
- Events are create-only; corrections are new events pointing at the original
- Snapshots are mutable while unsealed and frozen once sealed
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from ourhaus.models.base import DocumentModel


class AccessRole(str, Enum):
    OWNER = "owner"
    MEMBER = "member"
    VIEWER = "viewer"


class EventType(str, Enum):
    MAINTENANCE = "maintenance"
    REPAIR = "repair"
    UPGRADE = "upgrade"
    INSPECTION = "inspection"
    DOCUMENT = "document"
    NOTE = "note"
    CORRECTION = "correction"


class SnapshotType(str, Enum):
    MOVE_IN = "move-in"
    INSPECTION = "inspection"
    TRANSFER = "transfer"
    ANNUAL = "annual"
    CUSTOM = "custom"


class Address(BaseModel):
    street: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str
    zip_code: str
    country: str = Field(..., min_length=1)


class Home(DocumentModel):
    address: Address
    current_owner_household_id: str
    nickname: Optional[str] = None
    photo_url: Optional[str] = None


class HomeAccess(DocumentModel):
    """Stored in `home_access` with id `<home_id>:<household_id>`."""
    home_id: str
    household_id: str
    role: AccessRole
    granted_by: str
    granted_at: datetime
    expires_at: Optional[datetime] = None

    def is_active(self, now: datetime) -> bool:
        return self.expires_at is None or now < self.expires_at


def access_id(home_id: str, household_id: str) -> str:
    return f"{home_id}:{household_id}"


class Attachment(BaseModel):
    name: str
    url: str
    content_type: str
    size: int = Field(..., ge=0)


class Cost(BaseModel):
    amount: float = Field(..., ge=0)
    currency: str = Field(..., min_length=3, max_length=3)


class ServiceProvider(BaseModel):
    name: str
    contact: Optional[str] = None


class Event(DocumentModel):
    """
    Timeline entry. There is no update path: `updated_at` always equals
    `created_at`.
    """
    home_id: str
    type: EventType
    category: Optional[str] = None
    title: str
    description: Optional[str] = None
    date: datetime
    created_by: str
    created_by_household_id: str
    attachments: List[Attachment] = Field(default_factory=list)
    corrects_event_id: Optional[str] = None
    snapshot_id: Optional[str] = None
    cost: Optional[Cost] = None
    service_provider: Optional[ServiceProvider] = None


class SnapshotFile(BaseModel):
    """Content-addressed file; `hash` is the SHA-256 of the content."""
    name: str
    url: str
    content_type: str
    size: int = Field(..., ge=0)
    hash: str = Field(..., pattern=r"^[0-9a-f]{64}$")


class RoomCondition(BaseModel):
    name: str
    condition: str
    notes: Optional[str] = None
    photos: List[str] = Field(default_factory=list)


class Snapshot(DocumentModel):
    home_id: str
    title: str
    description: Optional[str] = None
    date: datetime
    type: SnapshotType
    sealed: bool = False
    sealed_at: Optional[datetime] = None
    sealed_by: Optional[str] = None
    created_by: str
    created_by_household_id: str
    files: List[SnapshotFile] = Field(default_factory=list)
    rooms: List[RoomCondition] = Field(default_factory=list)
