from datetime import datetime
from typing import List, Optional

from ourhaus.db.store import DocumentPatch, DocumentStore
from ourhaus.models.home import Event, Home, HomeAccess, Snapshot, access_id


class HomeRepository:
    """Home and home access database operations."""

    def __init__(self, store: DocumentStore):
        self.store = store
        self.collection = "homes"
        self.access_collection = "home_access"

    async def create_home(self, home: Home) -> Home:
        await self.store.create(self.collection, home.to_document(), doc_id=home.id)
        return home

    async def get_home(self, home_id: str) -> Optional[Home]:
        doc = await self.store.get(self.collection, home_id)
        if doc:
            return Home.decode(doc)
        return None

    async def set_owner_household(self, home_id: str, household_id: str, previous_household_id: str) -> bool:
        """Move ownership if the owner is still the one the caller saw."""
        patch = DocumentPatch().set_field("current_owner_household_id", household_id).touch()
        return await self.store.patch(
            self.collection,
            home_id,
            patch,
            expect={"current_owner_household_id": previous_household_id},
        )

    async def create_access(self, access: HomeAccess) -> HomeAccess:
        """Create an access document. One per (home, household)."""
        await self.store.create(self.access_collection, access.to_document(), doc_id=access.id)
        return access

    async def get_access(self, home_id: str, household_id: str) -> Optional[HomeAccess]:
        doc = await self.store.get(self.access_collection, access_id(home_id, household_id))
        if doc:
            return HomeAccess.decode(doc)
        return None

    async def list_access(self, home_id: str) -> List[HomeAccess]:
        docs = await self.store.find(self.access_collection, {"home_id": home_id}, sort="granted_at")
        return [HomeAccess.decode(doc) for doc in docs]

    async def delete_access(self, home_id: str, household_id: str) -> bool:
        return await self.store.delete(self.access_collection, access_id(home_id, household_id))


class TimelineRepository:
    """
    Event and snapshot database operations.

    Events have no update or delete method; the only event write is
    `append_event`.
    """

    def __init__(self, store: DocumentStore):
        self.store = store
        self.events = "events"
        self.snapshots = "snapshots"

    async def append_event(self, event: Event) -> Event:
        await self.store.create(self.events, event.to_document(), doc_id=event.id)
        return event

    async def get_event(self, event_id: str) -> Optional[Event]:
        doc = await self.store.get(self.events, event_id)
        if doc:
            return Event.decode(doc)
        return None

    async def list_events(self, home_id: str) -> List[Event]:
        """Events for a home, most recent `date` first."""
        docs = await self.store.find(self.events, {"home_id": home_id}, sort="date", descending=True)
        return [Event.decode(doc) for doc in docs]

    async def create_snapshot(self, snapshot: Snapshot) -> Snapshot:
        await self.store.create(self.snapshots, snapshot.to_document(), doc_id=snapshot.id)
        return snapshot

    async def get_snapshot(self, snapshot_id: str) -> Optional[Snapshot]:
        doc = await self.store.get(self.snapshots, snapshot_id)
        if doc:
            return Snapshot.decode(doc)
        return None

    async def list_snapshots(self, home_id: str) -> List[Snapshot]:
        docs = await self.store.find(self.snapshots, {"home_id": home_id}, sort="date", descending=True)
        return [Snapshot.decode(doc) for doc in docs]

    async def update_unsealed(self, snapshot_id: str, update_data: dict) -> bool:
        """Apply field updates only while the snapshot is unsealed."""
        patch = DocumentPatch()
        for field, value in update_data.items():
            patch.set_field(field, value)
        patch.touch()
        return await self.store.patch(self.snapshots, snapshot_id, patch, expect={"sealed": False})

    async def seal(self, snapshot_id: str, sealed_by: str, sealed_at: datetime) -> bool:
        """sealed: false -> true. False if already sealed or missing."""
        patch = (
            DocumentPatch()
            .set_field("sealed", True)
            .set_field("sealed_by", sealed_by)
            .set_field("sealed_at", sealed_at)
            .touch()
        )
        return await self.store.patch(self.snapshots, snapshot_id, patch, expect={"sealed": False})
