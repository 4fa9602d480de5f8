"""
Tests for user endpoints.
"""

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_create_user(client: AsyncClient):
    response = await client.post("/api/v1/users/", json={"name": "Grace Hopper", "email": "grace@example.com"})
    assert response.status_code == 201
    data = response.json()
    assert data["name"] == "Grace Hopper"
    assert data["email"] == "grace@example.com"
    assert "id" in data


@pytest.mark.asyncio
async def test_create_user_duplicate_email(client: AsyncClient, test_user):
    response = await client.post("/api/v1/users/", json={"name": "Impostor", "email": test_user.email})
    assert response.status_code == 409
    assert response.json()["detail"] == "Email already exists"


@pytest.mark.asyncio
async def test_create_user_invalid_email(client: AsyncClient):
    response = await client.post("/api/v1/users/", json={"name": "Nobody", "email": "not-an-email"})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_get_user(client: AsyncClient, test_user):
    response = await client.get(f"/api/v1/users/{test_user.id}")
    assert response.status_code == 200
    assert response.json()["email"] == "ada@example.com"


@pytest.mark.asyncio
async def test_get_user_not_found(client: AsyncClient):
    response = await client.get("/api/v1/users/99999")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_list_users(client: AsyncClient, test_user, other_user):
    response = await client.get("/api/v1/users/")
    assert response.status_code == 200
    assert {u["email"] for u in response.json()} == {"ada@example.com", "alan@example.com"}


@pytest.mark.asyncio
async def test_update_user(client: AsyncClient, test_user):
    response = await client.put(f"/api/v1/users/{test_user.id}", json={"name": "Augusta Ada King"})
    assert response.status_code == 200
    assert response.json()["name"] == "Augusta Ada King"
    assert response.json()["email"] == "ada@example.com"


@pytest.mark.asyncio
async def test_update_user_email_taken(client: AsyncClient, test_user, other_user):
    response = await client.put(f"/api/v1/users/{test_user.id}", json={"email": other_user.email})
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_user_bookings_ordered_by_event_date(client: AsyncClient, test_user, test_event):
    far = await client.post(
        "/api/v1/events/",
        json={"title": "Far Future", "event_date": "2099-01-01T10:00:00+00:00", "total_seats": 5},
    )
    # test_event is 30 days out, so it comes before the 2099 event
    for event_id in (far.json()["id"], test_event.id):
        await client.post(
            "/api/v1/bookings/",
            json={"event_id": event_id, "user_id": test_user.id, "seats_booked": 1},
        )

    response = await client.get(f"/api/v1/users/{test_user.id}/bookings")
    assert response.status_code == 200
    assert [b["event_title"] for b in response.json()] == ["Test Concert", "Far Future"]


@pytest.mark.asyncio
async def test_user_bookings_unknown_user(client: AsyncClient):
    response = await client.get("/api/v1/users/99999/bookings")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_delete_user(client: AsyncClient, test_user):
    response = await client.delete(f"/api/v1/users/{test_user.id}")
    assert response.status_code == 204

    response = await client.get(f"/api/v1/users/{test_user.id}")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_delete_user_not_found(client: AsyncClient):
    response = await client.delete("/api/v1/users/99999")
    assert response.status_code == 404
    assert response.json()["entity"] == "user"


@pytest.mark.asyncio
async def test_delete_user_with_bookings(client: AsyncClient, test_user, test_event):
    await client.post(
        "/api/v1/bookings/",
        json={"event_id": test_event.id, "user_id": test_user.id, "seats_booked": 1},
    )

    response = await client.delete(f"/api/v1/users/{test_user.id}")
    assert response.status_code == 409
    assert response.json()["detail"] == "Cannot delete user with existing bookings"

    response = await client.get(f"/api/v1/users/{test_user.id}")
    assert response.status_code == 200
