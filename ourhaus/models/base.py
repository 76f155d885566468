from datetime import datetime, timezone
from typing import Any, Type, TypeVar

from bson import ObjectId
from pydantic import BaseModel, Field, ConfigDict, ValidationError

from ourhaus.utils.membership_validation import MalformedRecordError

T = TypeVar("T", bound="DocumentModel")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(ObjectId())


class DocumentModel(BaseModel):
    """
    Base for every stored document.

    Timestamps have no defaults: a document missing one is malformed and
    `decode` says so instead of inventing a value.
    """
    id: str = Field(alias="_id")
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(
        populate_by_name=True,
        from_attributes=True,
        use_enum_values=True,
        validate_default=True,
    )

    @classmethod
    def decode(cls: Type[T], document: Any) -> T:
        """Validate a raw store document, raising MalformedRecordError on failure."""
        if document is None:
            raise MalformedRecordError(f"Missing {cls.__name__} document")
        try:
            return cls.model_validate(document)
        except ValidationError as e:
            doc_id = document.get("_id") if isinstance(document, dict) else None
            raise MalformedRecordError(
                f"Malformed {cls.__name__} record {doc_id}: {e.error_count()} invalid field(s)"
            ) from e

    def to_document(self) -> dict:
        """Serialize for the store (keeps `_id`, enums as values)."""
        return self.model_dump(by_alias=True, mode="python")
