import pytest


@pytest.mark.asyncio
async def test_signup_and_me(client, signup):
    user_id, headers = await signup("Alice@Example.com", display_name="Alice")

    response = await client.get("/api/v1/auth/me", headers=headers)
    assert response.status_code == 200
    assert response.json() == {"id": user_id, "email": "alice@example.com", "display_name": "Alice"}


@pytest.mark.asyncio
async def test_signup_duplicate_email(client, signup):
    await signup("alice@example.com")
    response = await client.post(
        "/api/v1/auth/signup", json={"email": "alice@example.com", "password": "other-password"}
    )
    assert response.status_code == 409
    assert response.json()["code"] == "duplicate_document"


@pytest.mark.asyncio
async def test_signup_validates_payload(client):
    response = await client.post("/api/v1/auth/signup", json={"email": "nope", "password": "short"})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_login(client, signup):
    user_id, _ = await signup("alice@example.com")

    response = await client.post(
        "/api/v1/auth/login", json={"email": "alice@example.com", "password": "secret-password"}
    )
    assert response.status_code == 200
    data = response.json()
    assert data["token_type"] == "bearer"
    assert data["user"]["id"] == user_id

    response = await client.post(
        "/api/v1/auth/login", json={"email": "alice@example.com", "password": "wrong-password"}
    )
    assert response.status_code == 401
    assert response.json() == {"detail": "Incorrect email or password", "code": "invalid_credentials"}


@pytest.mark.asyncio
async def test_logout_invalidates_token(client, signup):
    _, headers = await signup("alice@example.com")

    response = await client.post("/api/v1/auth/logout", headers=headers)
    assert response.status_code == 200

    response = await client.get("/api/v1/auth/me", headers=headers)
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_requests_without_valid_token_are_rejected(client):
    response = await client.get("/api/v1/auth/me")
    assert response.status_code in (401, 403)

    response = await client.get("/api/v1/auth/me", headers={"Authorization": "Bearer garbage"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
