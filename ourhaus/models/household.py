from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, model_validator

from ourhaus.models.base import DocumentModel


class HouseholdRole(str, Enum):
    OWNER = "owner"
    EDITOR = "editor"
    VIEWER = "viewer"


# Embedded documents don't need DocumentModel (no separate _id)
class HouseholdMember(BaseModel):
    user_id: str
    role: HouseholdRole
    joined_at: datetime

    model_config = ConfigDict(use_enum_values=True)


class Household(DocumentModel):
    """
    Household document in `households`.

    Invariant: `member_ids` and the keys of `members` are the same set.
    `version` goes up by one on every write and guards read-modify-write
    updates.
    """
    name: str
    member_ids: List[str]
    members: Dict[str, HouseholdMember]
    primary_contact_id: str
    version: int = 0

    @model_validator(mode="after")
    def _check_membership_bijection(self) -> "Household":
        if set(self.member_ids) != set(self.members):
            raise ValueError("member_ids and members map disagree")
        if len(set(self.member_ids)) != len(self.member_ids):
            raise ValueError("member_ids contains duplicates")
        for user_id, member in self.members.items():
            if member.user_id != user_id:
                raise ValueError(f"members[{user_id}] has user_id {member.user_id}")
        return self

    def role_of(self, user_id: str) -> Optional[str]:
        member = self.members.get(user_id)
        return member.role if member else None

    def is_member(self, user_id: str) -> bool:
        return user_id in self.members

    def owner_ids(self) -> List[str]:
        return [uid for uid, m in self.members.items() if m.role == HouseholdRole.OWNER]
