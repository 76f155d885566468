from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class HouseholdCreate(BaseModel):
    name: str


class MemberResponse(BaseModel):
    user_id: str
    role: str  # "owner", "editor" or "viewer"
    joined_at: datetime
    email: Optional[str] = None
    display_name: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class MemberRoleUpdate(BaseModel):
    role: str


class HouseholdResponse(BaseModel):
    id: str
    name: str
    member_ids: List[str]
    members: List[MemberResponse]
    primary_contact_id: str
    created_at: datetime
    updated_at: datetime
