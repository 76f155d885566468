from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class InvitationCreate(BaseModel):
    # Normalized and validated by the membership service
    email: str
    role: str


class InvitationAccept(BaseModel):
    token: str


class InvitationResponse(BaseModel):
    """Invitation as listed to household members. Never includes the token."""
    id: str
    household_id: str
    email: str
    role: str
    invited_by: str
    invited_at: datetime
    expires_at: datetime
    status: str
    accepted_by: Optional[str] = None
    accepted_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None
    cancelled_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class InvitationCreatedResponse(InvitationResponse):
    """Returned once, to the inviter, who delivers the token out of band."""
    token: str
