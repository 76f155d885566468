import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import DuplicateKeyError, PyMongoError

from ourhaus.core.config import settings
from ourhaus.db.store import DocumentPatch, DocumentStore
from ourhaus.models.base import utcnow
from ourhaus.utils.membership_validation import DuplicateDocumentError, StoreUnavailableError

logger = logging.getLogger(__name__)


@contextmanager
def _store_errors(operation: str, collection: str):
    """Translate driver failures into store errors."""
    try:
        yield
    except DuplicateKeyError as e:
        raise DuplicateDocumentError(f"Duplicate document in {collection}") from e
    except PyMongoError as e:
        logger.warning("MongoDB %s on %s failed: %s", operation, collection, e)
        raise StoreUnavailableError(f"Document store unavailable during {operation}") from e


def build_update(patch: DocumentPatch) -> dict:
    """Translate a DocumentPatch into a MongoDB update document."""
    update: Dict[str, Any] = {}
    if patch.sets:
        update["$set"] = dict(patch.sets)
    if patch.unsets:
        update["$unset"] = {field: "" for field in patch.unsets}
    if patch.add_to_sets:
        update["$addToSet"] = {
            field: {"$each": values} for field, values in patch.add_to_sets.items()
        }
    if patch.pulls:
        update["$pull"] = {
            field: {"$in": values} for field, values in patch.pulls.items()
        }
    if patch.touches:
        update["$currentDate"] = {field: True for field in patch.touches}
    if patch.increments:
        update["$inc"] = dict(patch.increments)
    return update


def build_filter(
    doc_id: str,
    expect: Optional[Dict[str, Any]] = None,
    expect_not: Optional[Dict[str, Any]] = None,
) -> dict:
    """Match the document by id plus the caller's guard conditions."""
    query: Dict[str, Any] = {"_id": doc_id}
    if expect:
        query.update(expect)
    for field, value in (expect_not or {}).items():
        if field in query:
            query.setdefault("$and", []).append({field: {"$ne": value}})
        else:
            query[field] = {"$ne": value}
    return query


class MongoDocumentStore(DocumentStore):
    """DocumentStore backed by MongoDB through Motor."""

    def __init__(self, client: AsyncIOMotorClient, database_name: str):
        self.client = client
        self.db: AsyncIOMotorDatabase = client[database_name]

    @classmethod
    def from_settings(cls) -> "MongoDocumentStore":
        client = AsyncIOMotorClient(settings.MONGODB_URL, tz_aware=True)
        logger.info("Connected to MongoDB: %s", settings.DATABASE_NAME)
        return cls(client, settings.DATABASE_NAME)

    async def get(self, collection: str, doc_id: str) -> Optional[dict]:
        with _store_errors("get", collection):
            return await self.db[collection].find_one({"_id": doc_id})

    async def create(self, collection: str, document: dict, doc_id: Optional[str] = None) -> str:
        doc = dict(document)
        doc["_id"] = doc_id or doc.get("_id") or str(ObjectId())
        with _store_errors("create", collection):
            result = await self.db[collection].insert_one(doc)
        return str(result.inserted_id)

    async def patch(
        self,
        collection: str,
        doc_id: str,
        patch: DocumentPatch,
        expect: Optional[Dict[str, Any]] = None,
        expect_not: Optional[Dict[str, Any]] = None,
    ) -> bool:
        if patch.is_empty():
            return False
        with _store_errors("patch", collection):
            result = await self.db[collection].update_one(
                build_filter(doc_id, expect, expect_not),
                build_update(patch),
            )
        return result.matched_count > 0

    async def find_one(self, collection: str, filters: Dict[str, Any]) -> Optional[dict]:
        with _store_errors("find_one", collection):
            return await self.db[collection].find_one(filters)

    async def find(
        self,
        collection: str,
        filters: Dict[str, Any],
        sort: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[dict]:
        with _store_errors("find", collection):
            cursor = self.db[collection].find(filters)
            if sort:
                cursor = cursor.sort(sort, DESCENDING if descending else ASCENDING)
            if limit:
                cursor = cursor.limit(limit)
            return await cursor.to_list(None)

    async def delete(self, collection: str, doc_id: str) -> bool:
        with _store_errors("delete", collection):
            result = await self.db[collection].delete_one({"_id": doc_id})
        return result.deleted_count > 0

    async def delete_many(self, collection: str, filters: Dict[str, Any]) -> int:
        with _store_errors("delete_many", collection):
            result = await self.db[collection].delete_many(filters)
        return result.deleted_count

    async def ensure_unique(self, collection: str, field: str) -> None:
        with _store_errors("create_index", collection):
            await self.db[collection].create_index(field, unique=True)

    async def create_indexes(self) -> None:
        """Create database indexes."""
        await self.ensure_unique("accounts", "email")
        await self.ensure_unique("invitations", "token")
        with _store_errors("create_index", "indexes"):
            await self.db["households"].create_index("member_ids")
            await self.db["invitations"].create_index([("household_id", 1), ("status", 1)])
            await self.db["home_access"].create_index([("home_id", 1), ("household_id", 1)], unique=True)
            await self.db["events"].create_index([("home_id", 1), ("date", -1)])
            await self.db["snapshots"].create_index("home_id")

    def now(self) -> datetime:
        return utcnow()

    async def close(self) -> None:
        self.client.close()
        logger.info("Disconnected from MongoDB")
