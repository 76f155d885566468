from unittest.mock import AsyncMock, MagicMock

import pytest
from pymongo.errors import DuplicateKeyError, ServerSelectionTimeoutError

from ourhaus.db.mongo import MongoDocumentStore, build_filter, build_update
from ourhaus.db.store import DocumentPatch
from ourhaus.utils.membership_validation import DuplicateDocumentError, StoreUnavailableError


@pytest.fixture
def mock_collection():
    collection = MagicMock()
    collection.find_one = AsyncMock()
    collection.insert_one = AsyncMock()
    collection.update_one = AsyncMock()
    collection.delete_one = AsyncMock()
    collection.create_index = AsyncMock()
    return collection


@pytest.fixture
def mongo_store(mock_collection):
    client = MagicMock()
    db = MagicMock()
    db.__getitem__.return_value = mock_collection
    client.__getitem__.return_value = db
    return MongoDocumentStore(client, "ourhaus_test")


def test_build_update_maps_every_operation():
    patch = (
        DocumentPatch()
        .set_field("members.u2", {"role": "viewer"})
        .delete_field("members.u1")
        .add_to_set("member_ids", "u2")
        .remove_from_set("household_ids", "h1", "h2")
        .increment("version")
        .touch()
    )

    assert build_update(patch) == {
        "$set": {"members.u2": {"role": "viewer"}},
        "$unset": {"members.u1": ""},
        "$addToSet": {"member_ids": {"$each": ["u2"]}},
        "$pull": {"household_ids": {"$in": ["h1", "h2"]}},
        "$currentDate": {"updated_at": True},
        "$inc": {"version": 1},
    }


def test_build_filter_with_guards():
    query = build_filter("h1", expect={"member_ids": "u1"}, expect_not={"member_ids": "u2"})
    assert query == {"_id": "h1", "member_ids": "u1", "$and": [{"member_ids": {"$ne": "u2"}}]}

    query = build_filter("h1", expect_not={"member_ids": "u2"})
    assert query == {"_id": "h1", "member_ids": {"$ne": "u2"}}

    query = build_filter("i1", expect={"status": "pending"})
    assert query == {"_id": "i1", "status": "pending"}


@pytest.mark.asyncio
async def test_patch_reports_match(mongo_store, mock_collection):
    mock_collection.update_one.return_value = MagicMock(matched_count=1)
    assert await mongo_store.patch("invitations", "i1", DocumentPatch().set_field("status", "accepted"),
                                   expect={"status": "pending"})
    mock_collection.update_one.assert_awaited_once_with(
        {"_id": "i1", "status": "pending"},
        {"$set": {"status": "accepted"}},
    )

    mock_collection.update_one.return_value = MagicMock(matched_count=0)
    assert not await mongo_store.patch("invitations", "i1", DocumentPatch().set_field("status", "accepted"))


@pytest.mark.asyncio
async def test_create_translates_duplicate_key(mongo_store, mock_collection):
    mock_collection.insert_one.side_effect = DuplicateKeyError("E11000 duplicate key")
    with pytest.raises(DuplicateDocumentError):
        await mongo_store.create("invitations", {"token": "t"}, doc_id="i1")


@pytest.mark.asyncio
async def test_create_uses_given_id(mongo_store, mock_collection):
    mock_collection.insert_one.return_value = MagicMock(inserted_id="h1")
    assert await mongo_store.create("households", {"name": "Smiths"}, doc_id="h1") == "h1"
    inserted = mock_collection.insert_one.await_args.args[0]
    assert inserted == {"name": "Smiths", "_id": "h1"}


@pytest.mark.asyncio
async def test_driver_failure_becomes_store_unavailable(mongo_store, mock_collection):
    mock_collection.find_one.side_effect = ServerSelectionTimeoutError("no servers")
    with pytest.raises(StoreUnavailableError):
        await mongo_store.get("households", "h1")


@pytest.mark.asyncio
async def test_delete(mongo_store, mock_collection):
    mock_collection.delete_one.return_value = MagicMock(deleted_count=1)
    assert await mongo_store.delete("home_access", "x:1")
    mock_collection.delete_one.assert_awaited_once_with({"_id": "x:1"})


@pytest.mark.asyncio
async def test_ensure_unique(mongo_store, mock_collection):
    await mongo_store.ensure_unique("invitations", "token")
    mock_collection.create_index.assert_awaited_once_with("token", unique=True)
