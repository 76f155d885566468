from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ourhaus.models.base import DocumentModel


class Theme(str, Enum):
    LIGHT = "light"
    DARK = "dark"
    AUTO = "auto"


class ProfilePreferences(BaseModel):
    notifications: bool = True
    theme: Theme = Theme.AUTO

    model_config = ConfigDict(use_enum_values=True, validate_default=True)


class UserProfile(DocumentModel):
    """
    Profile document in `users`, keyed by the identity provider's user id.

    `household_ids` has set semantics; it is only changed through
    add-to-set / remove-from-set patches.
    """
    email: str
    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    household_ids: List[str] = Field(default_factory=list)
    preferences: ProfilePreferences = Field(default_factory=ProfilePreferences)


class Account(DocumentModel):
    """Credential document in `accounts`. Its id is the user id."""
    email: str
    password_hash: str
    display_name: Optional[str] = None
    is_active: bool = True
    # Bumped on sign-out; tokens carrying an older version are rejected
    token_version: int = 0
