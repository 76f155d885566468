import pytest
from jose import jwt

from ourhaus.core.config import settings
from ourhaus.main import build_identity
from ourhaus.services.identity_service import SIGNED_IN, SIGNED_OUT, IdentityService
from ourhaus.utils.membership_validation import (
    DuplicateDocumentError,
    InvalidCredentialsError,
    NotFoundError,
)


@pytest.fixture
def identity(store):
    return IdentityService(store)


@pytest.mark.asyncio
async def test_sign_up_issues_token(identity):
    session = await identity.sign_up("Alice@Example.com", "secret-password", "Alice")

    assert session.email == "alice@example.com"
    assert session.display_name == "Alice"
    assert session.token_type == "bearer"

    payload = jwt.decode(session.access_token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    assert payload["sub"] == session.user_id
    assert payload["email"] == "alice@example.com"
    assert payload["ver"] == 0


@pytest.mark.asyncio
async def test_sign_up_duplicate_email(identity):
    await identity.sign_up("alice@example.com", "secret-password")
    with pytest.raises(DuplicateDocumentError):
        await identity.sign_up("ALICE@example.com", "another-password")


@pytest.mark.asyncio
async def test_sign_in(identity):
    created = await identity.sign_up("alice@example.com", "secret-password")

    session = await identity.sign_in(" alice@example.com ", "secret-password")
    assert session.user_id == created.user_id

    with pytest.raises(InvalidCredentialsError):
        await identity.sign_in("alice@example.com", "wrong-password")
    with pytest.raises(InvalidCredentialsError):
        await identity.sign_in("nobody@example.com", "secret-password")


@pytest.mark.asyncio
async def test_sign_out_bumps_token_version(identity):
    session = await identity.sign_up("alice@example.com", "secret-password")

    await identity.sign_out(session.user_id)

    account = await identity.accounts.get_account_by_id(session.user_id)
    assert account.token_version == 1
    again = await identity.sign_in("alice@example.com", "secret-password")
    payload = jwt.decode(again.access_token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    assert payload["ver"] == 1

    with pytest.raises(NotFoundError):
        await identity.sign_out("missing")


@pytest.mark.asyncio
async def test_on_auth_change_notifies_until_unsubscribed(identity):
    seen = []

    async def listener(change):
        seen.append((change.event, change.email))

    unsubscribe = identity.on_auth_change(listener)
    session = await identity.sign_up("alice@example.com", "secret-password")
    await identity.sign_out(session.user_id)
    unsubscribe()
    await identity.sign_in("alice@example.com", "secret-password")

    assert seen == [
        (SIGNED_IN, "alice@example.com"),
        (SIGNED_OUT, "alice@example.com"),
    ]


@pytest.mark.asyncio
async def test_sign_in_creates_profile(store, profiles):
    identity = build_identity(store)

    session = await identity.sign_up("alice@example.com", "secret-password", "Alice")

    profile = await profiles.get_profile(session.user_id)
    assert profile.email == "alice@example.com"
    assert profile.display_name == "Alice"
    assert profile.household_ids == []
