from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from ourhaus.db.memory import MemoryDocumentStore
from ourhaus.main import app, build_identity
from ourhaus.services.home_service import HomeService
from ourhaus.services.membership_service import MembershipService
from ourhaus.services.profile_service import ProfileService

T0 = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FrozenClock()


@pytest_asyncio.fixture
async def store(clock):
    """In-memory store sharing the frozen clock."""
    store = MemoryDocumentStore(clock=clock)
    await store.create_indexes()
    yield store
    await store.close()


@pytest.fixture
def profiles(store):
    return ProfileService(store)


@pytest.fixture
def membership(store):
    return MembershipService(store)


@pytest.fixture
def homes(store):
    return HomeService(store)


@pytest_asyncio.fixture
async def users(profiles):
    """Three users with profiles: u1 (alice), u2 (bob), u3 (carol)."""
    await profiles.ensure_profile("u1", "alice@example.com", "Alice")
    await profiles.ensure_profile("u2", "bob@example.com", "Bob")
    await profiles.ensure_profile("u3", "carol@example.com", "Carol")
    return {"u1": "alice@example.com", "u2": "bob@example.com", "u3": "carol@example.com"}


@pytest_asyncio.fixture
async def household(membership, users):
    """Household "Smiths" owned by u1."""
    return await membership.create_household("u1", "Smiths")


@pytest_asyncio.fixture
async def client():
    """API client against a fresh in-memory store."""
    store = MemoryDocumentStore()
    await store.create_indexes()
    app.state.store = store
    app.state.identity = build_identity(store)
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            yield client
    finally:
        app.state.store = None
        app.state.identity = None
        app.dependency_overrides.clear()


@pytest.fixture
def signup(client):
    """Sign up through the API; returns (user_id, auth headers)."""

    async def _signup(email: str, password: str = "secret-password", display_name: str = None):
        response = await client.post(
            "/api/v1/auth/signup",
            json={"email": email, "password": password, "display_name": display_name},
        )
        assert response.status_code == 201, response.text
        data = response.json()
        return data["user"]["id"], {"Authorization": f"Bearer {data['access_token']}"}

    return _signup
