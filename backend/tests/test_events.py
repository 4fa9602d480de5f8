"""
Tests for event CRUD endpoints.
"""

import pytest
from datetime import datetime, timezone, timedelta
from httpx import AsyncClient


def _future(days: int = 30) -> str:
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat()


@pytest.mark.asyncio
async def test_create_event(client: AsyncClient):
    response = await client.post(
        "/api/v1/events/",
        json={
            "title": "Python Conference 2026",
            "description": "Annual Python gathering",
            "event_date": _future(),
            "total_seats": 500,
        },
    )
    assert response.status_code == 201
    data = response.json()
    assert data["title"] == "Python Conference 2026"
    assert data["total_seats"] == 500
    assert data["available_seats"] == 500  # All seats available initially


@pytest.mark.asyncio
async def test_create_event_past_date(client: AsyncClient):
    """Event with past date is rejected."""
    past_date = (datetime.now(timezone.utc) - timedelta(days=1)).isoformat()
    response = await client.post(
        "/api/v1/events/",
        json={"title": "Past Event", "event_date": past_date, "total_seats": 100},
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Event date must be in the future"


@pytest.mark.asyncio
async def test_create_event_negative_seats(client: AsyncClient):
    response = await client.post(
        "/api/v1/events/",
        json={"title": "Broken", "event_date": _future(), "total_seats": -1},
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_list_events(client: AsyncClient, test_event):
    """Listing is ordered by date and served from cache on the second call."""
    later = await client.post(
        "/api/v1/events/",
        json={"title": "Later Show", "event_date": _future(60), "total_seats": 5},
    )
    assert later.status_code == 201

    response = await client.get("/api/v1/events/")
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert [e["title"] for e in data["events"]] == ["Test Concert", "Later Show"]
    assert data["cached"] is False

    cached_response = await client.get("/api/v1/events/")
    assert cached_response.json()["cached"] is True
    assert cached_response.json()["events"] == data["events"]


@pytest.mark.asyncio
async def test_create_event_invalidates_list(client: AsyncClient, test_event):
    await client.get("/api/v1/events/")

    await client.post(
        "/api/v1/events/",
        json={"title": "New Show", "event_date": _future(5), "total_seats": 5},
    )

    response = await client.get("/api/v1/events/")
    assert response.json()["cached"] is False
    assert response.json()["total"] == 2


@pytest.mark.asyncio
async def test_get_event(client: AsyncClient, test_event):
    response = await client.get(f"/api/v1/events/{test_event.id}")
    assert response.status_code == 200
    data = response.json()
    assert data["id"] == test_event.id
    assert data["total_seats"] == 10
    assert data["available_seats"] == 10


@pytest.mark.asyncio
async def test_get_event_not_found(client: AsyncClient):
    response = await client.get("/api/v1/events/99999")
    assert response.status_code == 404
    assert response.json() == {"detail": "Event not found", "error": "not_found", "entity": "event"}


@pytest.mark.asyncio
async def test_get_availability(client: AsyncClient, test_user, test_event):
    await client.post(
        "/api/v1/bookings/",
        json={"event_id": test_event.id, "user_id": test_user.id, "seats_booked": 3},
    )

    response = await client.get(f"/api/v1/events/{test_event.id}/availability")
    assert response.status_code == 200
    assert response.json() == {
        "event_id": test_event.id,
        "total_seats": 10,
        "booked_seats": 3,
        "available_seats": 7,
        "cached": False,
    }


@pytest.mark.asyncio
async def test_update_event(client: AsyncClient, test_event):
    await client.get(f"/api/v1/events/{test_event.id}")

    response = await client.put(
        f"/api/v1/events/{test_event.id}",
        json={"title": "Renamed Concert", "total_seats": 20},
    )
    assert response.status_code == 200
    assert response.json()["title"] == "Renamed Concert"
    assert response.json()["available_seats"] == 20

    # The cached detail view was invalidated
    detail = await client.get(f"/api/v1/events/{test_event.id}")
    assert detail.json()["title"] == "Renamed Concert"


@pytest.mark.asyncio
async def test_update_event_below_booked_seats(client: AsyncClient, test_user, test_event):
    await client.post(
        "/api/v1/bookings/",
        json={"event_id": test_event.id, "user_id": test_user.id, "seats_booked": 6},
    )

    response = await client.put(f"/api/v1/events/{test_event.id}", json={"total_seats": 5})
    assert response.status_code == 400
    assert response.json()["error"] == "invalid_state"

    detail = await client.get(f"/api/v1/events/{test_event.id}")
    assert detail.json()["total_seats"] == 10


@pytest.mark.asyncio
async def test_delete_event(client: AsyncClient, test_event):
    response = await client.delete(f"/api/v1/events/{test_event.id}")
    assert response.status_code == 204

    response = await client.get(f"/api/v1/events/{test_event.id}")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_delete_event_with_bookings(client: AsyncClient, test_user, test_event):
    await client.post(
        "/api/v1/bookings/",
        json={"event_id": test_event.id, "user_id": test_user.id, "seats_booked": 1},
    )

    response = await client.delete(f"/api/v1/events/{test_event.id}")
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_list_event_bookings(client: AsyncClient, test_user, other_user, test_event):
    for user in (test_user, other_user):
        await client.post(
            "/api/v1/bookings/",
            json={"event_id": test_event.id, "user_id": user.id, "seats_booked": 2},
        )

    response = await client.get(f"/api/v1/events/{test_event.id}/bookings")
    assert response.status_code == 200
    assert {b["user_name"] for b in response.json()} == {"Ada Lovelace", "Alan Turing"}


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    response = await client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["notification_consumer"] == "stopped"
