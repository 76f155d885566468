from typing import Iterable, Optional

from ourhaus.db.store import DocumentPatch, DocumentStore
from ourhaus.models.user import Account, UserProfile


class ProfileRepository:
    """User profile database operations."""

    def __init__(self, store: DocumentStore):
        self.store = store
        self.collection = "users"

    async def create_profile(self, profile: UserProfile) -> UserProfile:
        """Create a profile whose id is the identity provider's user id."""
        await self.store.create(self.collection, profile.to_document(), doc_id=profile.id)
        return profile

    async def get_profile(self, user_id: str) -> Optional[UserProfile]:
        """Get profile by user ID."""
        doc = await self.store.get(self.collection, user_id)
        if doc:
            return UserProfile.decode(doc)
        return None

    async def add_households(self, user_id: str, household_ids: Iterable[str]) -> bool:
        """Add household ids to the profile's household list (set semantics)."""
        ids = list(household_ids)
        if not ids:
            return True
        patch = DocumentPatch().add_to_set("household_ids", *ids).touch()
        return await self.store.patch(self.collection, user_id, patch)

    async def remove_households(self, user_id: str, household_ids: Iterable[str]) -> bool:
        """Remove household ids from the profile's household list."""
        ids = list(household_ids)
        if not ids:
            return True
        patch = DocumentPatch().remove_from_set("household_ids", *ids).touch()
        return await self.store.patch(self.collection, user_id, patch)

    async def update_profile(self, user_id: str, update_data: dict) -> Optional[UserProfile]:
        """Update plain profile fields."""
        patch = DocumentPatch()
        for field, value in update_data.items():
            patch.set_field(field, value)
        patch.touch()
        if not await self.store.patch(self.collection, user_id, patch):
            return None
        return await self.get_profile(user_id)


class AccountRepository:
    """Credential database operations."""

    def __init__(self, store: DocumentStore):
        self.store = store
        self.collection = "accounts"

    async def create_account(self, account: Account) -> Account:
        """Create a new account. Duplicate emails raise DuplicateDocumentError."""
        await self.store.create(self.collection, account.to_document(), doc_id=account.id)
        return account

    async def get_account_by_email(self, email: str) -> Optional[Account]:
        """Get account by email."""
        doc = await self.store.find_one(self.collection, {"email": email, "is_active": True})
        if doc:
            return Account.decode(doc)
        return None

    async def get_account_by_id(self, user_id: str) -> Optional[Account]:
        """Get account by ID."""
        doc = await self.store.get(self.collection, user_id)
        if doc and doc.get("is_active", False):
            return Account.decode(doc)
        return None

    async def bump_token_version(self, user_id: str, current_version: int) -> bool:
        """Invalidate issued tokens. False if the version moved since it was read."""
        patch = DocumentPatch().set_field("token_version", current_version + 1).touch()
        return await self.store.patch(
            self.collection,
            user_id,
            patch,
            expect={"is_active": True, "token_version": current_version},
        )
