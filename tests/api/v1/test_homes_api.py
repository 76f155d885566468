import pytest

ADDRESS = {
    "street": "1 Main St",
    "city": "Springfield",
    "state": "IL",
    "zip_code": "62701",
    "country": "US",
}


async def owned_home(client, signup):
    _, headers = await signup("alice@example.com")
    household = (await client.post("/api/v1/households", headers=headers, json={"name": "Smiths"})).json()
    response = await client.post(
        "/api/v1/homes",
        headers=headers,
        json={"household_id": household["id"], "address": ADDRESS, "nickname": "Main"},
    )
    assert response.status_code == 201, response.text
    return headers, household["id"], response.json()


@pytest.mark.asyncio
async def test_create_and_get_home(client, signup):
    headers, household_id, home = await owned_home(client, signup)
    assert home["current_owner_household_id"] == household_id

    response = await client.get(f"/api/v1/homes/{home['id']}?household_id={household_id}", headers=headers)
    assert response.status_code == 200
    assert response.json()["address"]["city"] == "Springfield"

    response = await client.get(
        f"/api/v1/homes/{home['id']}/access?household_id={household_id}", headers=headers
    )
    assert [a["role"] for a in response.json()] == ["owner"]


@pytest.mark.asyncio
async def test_events_are_append_only(client, signup):
    headers, household_id, home = await owned_home(client, signup)
    base = f"/api/v1/homes/{home['id']}/events?household_id={household_id}"

    response = await client.post(
        base,
        headers=headers,
        json={
            "type": "maintenance",
            "title": "Furnace service",
            "date": "2024-03-01T12:00:00Z",
            "cost": {"amount": 150.0, "currency": "USD"},
        },
    )
    assert response.status_code == 201
    original = response.json()

    response = await client.post(
        base,
        headers=headers,
        json={
            "type": "correction",
            "title": "Cost was 130",
            "date": "2024-03-02T12:00:00Z",
            "corrects_event_id": original["id"],
        },
    )
    assert response.status_code == 201

    response = await client.get(base, headers=headers)
    assert [e["type"] for e in response.json()] == ["correction", "maintenance"]

    response = await client.put(f"/api/v1/homes/{home['id']}/events/{original['id']}", headers=headers, json={})
    assert response.status_code in (404, 405)
    response = await client.delete(f"/api/v1/homes/{home['id']}/events/{original['id']}", headers=headers)
    assert response.status_code in (404, 405)


@pytest.mark.asyncio
async def test_sealed_snapshot_rejects_updates(client, signup):
    headers, household_id, home = await owned_home(client, signup)
    base = f"/api/v1/homes/{home['id']}/snapshots"
    query = f"?household_id={household_id}"

    response = await client.post(
        base + query,
        headers=headers,
        json={"title": "Move-in", "date": "2024-03-01T12:00:00Z", "type": "move-in"},
    )
    assert response.status_code == 201
    snapshot_id = response.json()["id"]

    response = await client.patch(f"{base}/{snapshot_id}{query}", headers=headers, json={"title": "Move-in day"})
    assert response.status_code == 200
    assert response.json()["title"] == "Move-in day"

    response = await client.post(f"{base}/{snapshot_id}/seal{query}", headers=headers)
    assert response.status_code == 200
    assert response.json()["sealed"] is True

    response = await client.patch(f"{base}/{snapshot_id}{query}", headers=headers, json={"title": "Changed"})
    assert response.status_code == 409
    assert response.json()["code"] == "immutable_record"


@pytest.mark.asyncio
async def test_grant_and_transfer(client, signup):
    headers, household_id, home = await owned_home(client, signup)
    _, buyer = await signup("bob@example.com")
    buyers = (await client.post("/api/v1/households", headers=buyer, json={"name": "Buyers"})).json()
    home_base = f"/api/v1/homes/{home['id']}"

    response = await client.get(f"{home_base}?household_id={buyers['id']}", headers=buyer)
    assert response.status_code == 404

    response = await client.post(
        f"{home_base}/access?household_id={household_id}",
        headers=headers,
        json={"household_id": buyers["id"], "role": "viewer"},
    )
    assert response.status_code == 201

    response = await client.get(f"{home_base}?household_id={buyers['id']}", headers=buyer)
    assert response.status_code == 200

    response = await client.post(
        f"{home_base}/transfer?household_id={household_id}",
        headers=headers,
        json={"new_household_id": buyers["id"]},
    )
    assert response.status_code == 200
    assert response.json()["current_owner_household_id"] == buyers["id"]

    response = await client.get(f"{home_base}?household_id={household_id}", headers=headers)
    assert response.status_code == 404

    response = await client.delete(
        f"{home_base}/access/{household_id}?household_id={buyers['id']}", headers=buyer
    )
    assert response.status_code == 404
    assert response.json()["code"] == "not_found"
