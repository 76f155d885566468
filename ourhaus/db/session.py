from fastapi import Request

from ourhaus.core.config import settings
from ourhaus.db.memory import MemoryDocumentStore
from ourhaus.db.mongo import MongoDocumentStore
from ourhaus.db.store import DocumentStore


async def open_store() -> DocumentStore:
    """Create the process-wide store handle selected by STORE_BACKEND."""
    if settings.STORE_BACKEND == "memory":
        store: DocumentStore = MemoryDocumentStore()
    elif settings.STORE_BACKEND == "mongo":
        store = MongoDocumentStore.from_settings()
    else:
        raise ValueError(f"Unknown STORE_BACKEND: {settings.STORE_BACKEND}")
    await store.create_indexes()
    return store


async def get_store(request: Request) -> DocumentStore:
    """Return the store handle opened by the application lifespan."""
    return request.app.state.store
