from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ourhaus.models.user import ProfilePreferences


class ProfileResponse(BaseModel):
    id: str
    email: str
    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    household_ids: List[str]
    preferences: ProfilePreferences
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProfileUpdate(BaseModel):
    """Only display fields and preferences are editable."""
    display_name: Optional[str] = Field(None, max_length=100)
    photo_url: Optional[str] = None
    preferences: Optional[ProfilePreferences] = None
