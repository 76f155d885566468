"""In-process DocumentStore for tests and local development."""

import asyncio
import copy
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Set

from bson import ObjectId

from ourhaus.db.store import DocumentPatch, DocumentStore
from ourhaus.models.base import utcnow
from ourhaus.utils.membership_validation import DuplicateDocumentError

_MISSING = object()


def get_path(document: dict, path: str) -> Any:
    current: Any = document
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return _MISSING
        current = current[part]
    return current


def _parent(document: dict, path: str, create: bool) -> tuple[Optional[dict], str]:
    parts = path.split(".")
    current = document
    for part in parts[:-1]:
        nxt = current.get(part)
        if not isinstance(nxt, dict):
            if not create:
                return None, parts[-1]
            nxt = {}
            current[part] = nxt
        current = nxt
    return current, parts[-1]


def matches(document: dict, filters: Dict[str, Any]) -> bool:
    """MongoDB-style equality match, with array-contains for scalar filters."""
    for field, expected in filters.items():
        actual = get_path(document, field)
        if actual is _MISSING:
            if expected is not None:
                return False
            continue
        if isinstance(actual, list) and not isinstance(expected, list):
            if expected not in actual:
                return False
        elif actual != expected:
            return False
    return True


def apply_patch(document: dict, patch: DocumentPatch, now: datetime) -> None:
    for field, value in patch.sets.items():
        parent, key = _parent(document, field, create=True)
        parent[key] = copy.deepcopy(value)
    for field in patch.unsets:
        parent, key = _parent(document, field, create=False)
        if parent is not None:
            parent.pop(key, None)
    for field, values in patch.add_to_sets.items():
        parent, key = _parent(document, field, create=True)
        current = parent.setdefault(key, [])
        for value in values:
            if value not in current:
                current.append(copy.deepcopy(value))
    for field, values in patch.pulls.items():
        parent, key = _parent(document, field, create=False)
        if parent is not None and isinstance(parent.get(key), list):
            parent[key] = [item for item in parent[key] if item not in values]
    for field in patch.touches:
        parent, key = _parent(document, field, create=True)
        parent[key] = now
    for field, amount in patch.increments.items():
        parent, key = _parent(document, field, create=True)
        parent[key] = parent.get(key, 0) + amount


class MemoryDocumentStore(DocumentStore):
    """
    DocumentStore keeping collections in dictionaries.

    Every operation runs under one asyncio lock, so patches with `expect`
    conditions behave as compare-and-swap just like the MongoDB backend.
    """

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self._collections: Dict[str, Dict[str, dict]] = {}
        self._unique: Dict[str, Set[str]] = {}
        self._lock = asyncio.Lock()
        self._clock = clock
        self.closed = False

    def _collection(self, name: str) -> Dict[str, dict]:
        return self._collections.setdefault(name, {})

    def _check_unique(self, collection: str, document: dict) -> None:
        for field in self._unique.get(collection, ()):
            value = get_path(document, field)
            if value is _MISSING:
                continue
            for existing in self._collection(collection).values():
                if get_path(existing, field) == value:
                    raise DuplicateDocumentError(
                        f"Duplicate value for unique field '{field}' in {collection}"
                    )

    async def get(self, collection: str, doc_id: str) -> Optional[dict]:
        async with self._lock:
            doc = self._collection(collection).get(doc_id)
            return copy.deepcopy(doc) if doc is not None else None

    async def create(self, collection: str, document: dict, doc_id: Optional[str] = None) -> str:
        async with self._lock:
            docs = self._collection(collection)
            new_id = doc_id or document.get("_id") or str(ObjectId())
            if new_id in docs:
                raise DuplicateDocumentError(f"Document {new_id} already exists in {collection}")
            doc = copy.deepcopy(document)
            doc["_id"] = new_id
            self._check_unique(collection, doc)
            docs[new_id] = doc
            return new_id

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
        async with self._lock:
            doc = self._collection(collection).get(doc_id)
            if doc is None:
                return False
            if expect and not matches(doc, expect):
                return False
            for field, value in (expect_not or {}).items():
                if matches(doc, {field: value}):
                    return False
            updated = copy.deepcopy(doc)
            apply_patch(updated, patch, self._clock())
            self._collection(collection)[doc_id] = updated
            return True

    async def find_one(self, collection: str, filters: Dict[str, Any]) -> Optional[dict]:
        async with self._lock:
            for doc in self._collection(collection).values():
                if matches(doc, filters):
                    return copy.deepcopy(doc)
            return None

    async def find(
        self,
        collection: str,
        filters: Dict[str, Any],
        sort: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[dict]:
        async with self._lock:
            found = [
                copy.deepcopy(doc)
                for doc in self._collection(collection).values()
                if matches(doc, filters)
            ]
        if sort:
            found.sort(key=lambda d: get_path(d, sort), reverse=descending)
        if limit:
            found = found[:limit]
        return found

    async def delete(self, collection: str, doc_id: str) -> bool:
        async with self._lock:
            return self._collection(collection).pop(doc_id, None) is not None

    async def delete_many(self, collection: str, filters: Dict[str, Any]) -> int:
        async with self._lock:
            docs = self._collection(collection)
            doomed = [doc_id for doc_id, doc in docs.items() if matches(doc, filters)]
            for doc_id in doomed:
                del docs[doc_id]
            return len(doomed)

    async def ensure_unique(self, collection: str, field: str) -> None:
        self._unique.setdefault(collection, set()).add(field)

    async def create_indexes(self) -> None:
        await self.ensure_unique("accounts", "email")
        await self.ensure_unique("invitations", "token")

    def now(self) -> datetime:
        return self._clock()

    async def close(self) -> None:
        self.closed = True
