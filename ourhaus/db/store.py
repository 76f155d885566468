"""
Document store interface used by every repository.

A single store handle is created per process (see ``ourhaus.db.session``) and
passed into repositories and services. Two backends implement it:
``MongoDocumentStore`` (Motor) and ``MemoryDocumentStore`` (in-process).

Filter semantics (``find``/``find_one``/``expect``) follow MongoDB equality:
a scalar compared against an array field matches when the array contains it.
Dotted paths address nested fields, e.g. ``members.<user_id>.role``.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional


class DocumentPatch:
    """
    Field-level update applied atomically to one document.

    Patches never replace a whole document, so concurrent writers touching
    different fields do not lose each other's updates.
    """

    def __init__(self):
        self.sets: Dict[str, Any] = {}
        self.unsets: List[str] = []
        self.add_to_sets: Dict[str, List[Any]] = {}
        self.pulls: Dict[str, List[Any]] = {}
        self.touches: List[str] = []
        self.increments: Dict[str, int] = {}

    def set_field(self, field: str, value: Any) -> "DocumentPatch":
        self.sets[field] = value
        return self

    def delete_field(self, field: str) -> "DocumentPatch":
        self.unsets.append(field)
        return self

    def add_to_set(self, field: str, *values: Any) -> "DocumentPatch":
        self.add_to_sets.setdefault(field, []).extend(values)
        return self

    def remove_from_set(self, field: str, *values: Any) -> "DocumentPatch":
        self.pulls.setdefault(field, []).extend(values)
        return self

    def increment(self, field: str, amount: int = 1) -> "DocumentPatch":
        """Add `amount` to a numeric field; a missing field counts as 0."""
        self.increments[field] = self.increments.get(field, 0) + amount
        return self

    def touch(self, field: str = "updated_at") -> "DocumentPatch":
        """Stamp `field` with the store's current time."""
        self.touches.append(field)
        return self

    def is_empty(self) -> bool:
        return not (self.sets or self.unsets or self.add_to_sets or self.pulls or self.touches or self.increments)

    def __repr__(self) -> str:
        return (
            f"DocumentPatch(sets={list(self.sets)}, unsets={self.unsets}, "
            f"add_to_sets={list(self.add_to_sets)}, pulls={list(self.pulls)}, "
            f"touches={self.touches}, increments={list(self.increments)})"
        )


class DocumentStore(ABC):
    """Async document store capability used by the repositories."""

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Optional[dict]:
        """Fetch a document by id, or None."""

    @abstractmethod
    async def create(self, collection: str, document: dict, doc_id: Optional[str] = None) -> str:
        """
        Insert a new document and return its id.

        Raises DuplicateDocumentError if the id or a unique field already exists.
        """

    @abstractmethod
    async def patch(
        self,
        collection: str,
        doc_id: str,
        patch: DocumentPatch,
        expect: Optional[Dict[str, Any]] = None,
        expect_not: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Apply `patch` if the document exists and matches every `expect`
        condition and none of the `expect_not` conditions.

        Returns True when the document was updated. This is the
        compare-and-swap primitive.
        """

    @abstractmethod
    async def find_one(self, collection: str, filters: Dict[str, Any]) -> Optional[dict]:
        ...

    @abstractmethod
    async def find(
        self,
        collection: str,
        filters: Dict[str, Any],
        sort: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[dict]:
        ...

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> bool:
        ...

    @abstractmethod
    async def delete_many(self, collection: str, filters: Dict[str, Any]) -> int:
        ...

    @abstractmethod
    async def ensure_unique(self, collection: str, field: str) -> None:
        """Declare `field` unique across `collection`."""

    async def create_indexes(self) -> None:
        """Declare the indexes and unique constraints the repositories rely on."""

    @abstractmethod
    def now(self) -> datetime:
        """Current time as the store stamps it (timezone-aware UTC)."""

    @abstractmethod
    async def close(self) -> None:
        ...
