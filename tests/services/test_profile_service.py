import asyncio

import pytest

from ourhaus.models.user import ProfilePreferences
from ourhaus.utils.membership_validation import MembershipValidationError, NotFoundError
from tests.conftest import T0


@pytest.mark.asyncio
async def test_ensure_profile_creates_with_defaults(profiles):
    profile = await profiles.ensure_profile("u1", " Alice@Example.com ", "Alice", "https://img/a.png")

    assert profile.id == "u1"
    assert profile.email == "alice@example.com"
    assert profile.display_name == "Alice"
    assert profile.photo_url == "https://img/a.png"
    assert profile.household_ids == []
    assert profile.preferences.notifications is True
    assert profile.preferences.theme == "auto"
    assert profile.created_at == T0


@pytest.mark.asyncio
async def test_ensure_profile_returns_existing_unchanged(profiles, clock):
    first = await profiles.ensure_profile("u1", "alice@example.com", "Alice")
    clock.advance(hours=1)

    second = await profiles.ensure_profile("u1", "other@example.com", "Someone Else")

    assert second == first


@pytest.mark.asyncio
async def test_ensure_profile_concurrent_calls_yield_one_document(profiles, store):
    results = await asyncio.gather(
        *(profiles.ensure_profile("u1", "alice@example.com") for _ in range(5))
    )

    assert {p.id for p in results} == {"u1"}
    assert len(await store.find("users", {})) == 1


@pytest.mark.asyncio
async def test_ensure_profile_rejects_bad_email(profiles):
    with pytest.raises(MembershipValidationError):
        await profiles.ensure_profile("u1", "")


@pytest.mark.asyncio
async def test_get_profile_missing(profiles):
    with pytest.raises(NotFoundError):
        await profiles.get_profile("nobody")


@pytest.mark.asyncio
async def test_update_profile(profiles, clock):
    await profiles.ensure_profile("u1", "alice@example.com", "Alice")
    clock.advance(minutes=10)

    updated = await profiles.update_profile(
        "u1",
        display_name="  Ally ",
        preferences=ProfilePreferences(notifications=False, theme="dark"),
    )

    assert updated.display_name == "Ally"
    assert updated.preferences.notifications is False
    assert updated.preferences.theme == "dark"
    assert updated.updated_at == clock.now
    assert updated.created_at == T0


@pytest.mark.asyncio
async def test_update_profile_without_changes_returns_profile(profiles):
    created = await profiles.ensure_profile("u1", "alice@example.com")
    assert await profiles.update_profile("u1") == created

    with pytest.raises(NotFoundError):
        await profiles.update_profile("nobody", display_name="X")


@pytest.mark.asyncio
async def test_sync_profile_households_adds_and_removes(profiles, membership, users):
    kept = await membership.create_household("u1", "Smiths")
    missing = await membership.create_household("u1", "Cabin")

    # Simulate drift: one membership missing from the profile, one stale entry
    await profiles.profiles.remove_households("u1", [missing.id])
    await profiles.profiles.add_households("u1", ["deleted-household"])

    synced = await profiles.sync_profile_households("u1")

    assert sorted(synced.household_ids) == sorted([kept.id, missing.id])


@pytest.mark.asyncio
async def test_sync_profile_households_noop_when_consistent(profiles, membership, users):
    await membership.create_household("u1", "Smiths")
    before = await profiles.get_profile("u1")

    assert await profiles.sync_profile_households("u1") == before
