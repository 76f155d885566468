import pytest

from ourhaus.db.memory import MemoryDocumentStore, matches
from ourhaus.db.store import DocumentPatch
from ourhaus.utils.membership_validation import DuplicateDocumentError
from tests.conftest import T0


@pytest.mark.asyncio
async def test_create_and_get_returns_copies(store):
    doc_id = await store.create("things", {"name": "a", "tags": ["x"]}, doc_id="t1")
    assert doc_id == "t1"

    doc = await store.get("things", "t1")
    doc["tags"].append("mutated")
    assert (await store.get("things", "t1"))["tags"] == ["x"]


@pytest.mark.asyncio
async def test_create_generates_id_and_rejects_duplicates(store):
    doc_id = await store.create("things", {"name": "a"})
    assert len(doc_id) == 24

    with pytest.raises(DuplicateDocumentError):
        await store.create("things", {"name": "b"}, doc_id=doc_id)


@pytest.mark.asyncio
async def test_unique_field(store):
    await store.ensure_unique("things", "code")
    await store.create("things", {"code": "abc"})
    with pytest.raises(DuplicateDocumentError):
        await store.create("things", {"code": "abc"})
    await store.create("things", {"code": "def"})


@pytest.mark.asyncio
async def test_patch_operations(store, clock):
    await store.create(
        "households", {"member_ids": ["u1"], "members": {"u1": {"role": "owner"}}}, doc_id="h1"
    )
    clock.advance(minutes=1)

    patch = (
        DocumentPatch()
        .add_to_set("member_ids", "u2", "u1")
        .set_field("members.u2", {"role": "viewer"})
        .set_field("members.u1.role", "editor")
        .touch()
    )
    assert await store.patch("households", "h1", patch)

    doc = await store.get("households", "h1")
    assert doc["member_ids"] == ["u1", "u2"]
    assert doc["members"] == {"u1": {"role": "editor"}, "u2": {"role": "viewer"}}
    assert doc["updated_at"] == clock.now

    removal = DocumentPatch().remove_from_set("member_ids", "u1").delete_field("members.u1")
    assert await store.patch("households", "h1", removal)
    doc = await store.get("households", "h1")
    assert doc["member_ids"] == ["u2"]
    assert list(doc["members"]) == ["u2"]


@pytest.mark.asyncio
async def test_patch_expect_is_compare_and_swap(store):
    await store.create("invitations", {"status": "pending"}, doc_id="i1")
    claim = DocumentPatch().set_field("status", "accepted")

    assert await store.patch("invitations", "i1", claim, expect={"status": "pending"})
    assert not await store.patch("invitations", "i1", claim, expect={"status": "pending"})
    assert not await store.patch("invitations", "missing", claim)


@pytest.mark.asyncio
async def test_version_counter_guards_same_instant_writes(store):
    await store.create("households", {"member_ids": ["u1", "u2"], "version": 0}, doc_id="h1")
    bump = DocumentPatch().increment("version").touch()

    # The clock does not move between these writes
    assert await store.patch("households", "h1", bump, expect={"version": 0})
    assert not await store.patch("households", "h1", bump, expect={"version": 0})
    assert (await store.get("households", "h1"))["version"] == 1

    await store.create("counters", {}, doc_id="c1")
    assert await store.patch("counters", "c1", DocumentPatch().increment("hits", 2))
    assert (await store.get("counters", "c1"))["hits"] == 2


@pytest.mark.asyncio
async def test_patch_expect_not_on_array_membership(store):
    await store.create("households", {"member_ids": ["u1"]}, doc_id="h1")
    add = DocumentPatch().add_to_set("member_ids", "u1")

    assert not await store.patch("households", "h1", add, expect_not={"member_ids": "u1"})
    assert await store.patch(
        "households", "h1", DocumentPatch().add_to_set("member_ids", "u2"),
        expect_not={"member_ids": "u2"},
    )


@pytest.mark.asyncio
async def test_empty_patch_is_rejected(store):
    await store.create("things", {"name": "a"}, doc_id="t1")
    assert not await store.patch("things", "t1", DocumentPatch())


@pytest.mark.asyncio
async def test_find_filters_sorts_and_limits(store):
    await store.create("events", {"home_id": "a", "date": 2}, doc_id="e1")
    await store.create("events", {"home_id": "a", "date": 3}, doc_id="e2")
    await store.create("events", {"home_id": "b", "date": 1}, doc_id="e3")

    found = await store.find("events", {"home_id": "a"}, sort="date", descending=True)
    assert [d["_id"] for d in found] == ["e2", "e1"]

    limited = await store.find("events", {}, sort="date", limit=1)
    assert [d["_id"] for d in limited] == ["e3"]

    assert (await store.find_one("events", {"date": 1}))["_id"] == "e3"
    assert await store.find_one("events", {"date": 99}) is None


@pytest.mark.asyncio
async def test_delete_and_delete_many(store):
    await store.create("home_access", {"home_id": "x"}, doc_id="x:1")
    await store.create("home_access", {"home_id": "x"}, doc_id="x:2")
    await store.create("home_access", {"home_id": "y"}, doc_id="y:1")

    assert await store.delete("home_access", "y:1")
    assert not await store.delete("home_access", "y:1")
    assert await store.delete_many("home_access", {"home_id": "x"}) == 2


@pytest.mark.asyncio
async def test_now_and_close():
    store = MemoryDocumentStore(clock=lambda: T0)
    assert store.now() == T0
    await store.close()
    assert store.closed


def test_matches_semantics():
    doc = {"member_ids": ["u1", "u2"], "members": {"u1": {"role": "owner"}}, "status": "pending"}

    assert matches(doc, {"member_ids": "u1"})
    assert not matches(doc, {"member_ids": "u3"})
    assert matches(doc, {"members.u1.role": "owner"})
    assert not matches(doc, {"members.u9.role": "owner"})
    assert matches(doc, {"missing": None})
    assert matches(doc, {"member_ids": ["u1", "u2"]})
