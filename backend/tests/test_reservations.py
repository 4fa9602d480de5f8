"""
Tests for the reservation engine: capacity invariant, atomicity,
cancellation rules and post-commit side effects.
"""

import asyncio
from datetime import datetime, timezone, timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from eventbook.core.exceptions import (
    CapacityExceeded,
    InvalidState,
    NotFound,
    Unavailable,
    ValidationFailed,
)
from eventbook.models.booking import Booking
from eventbook.models.event import Event
from eventbook.models.user import User
from eventbook.services.domain_events import BOOKING_CANCELLED, BOOKING_CREATED, DomainEvent
from eventbook.services import event_service


async def _booked_seats(ctx, event_id: int) -> int:
    async with ctx.database.sessionmaker() as session:
        result = await session.execute(
            select(func.coalesce(func.sum(Booking.seats_booked), 0)).where(Booking.event_id == event_id)
        )
        return result.scalar_one()


async def _stream_entries(ctx, subject: str) -> list:
    return await ctx.bus.client.xrange(ctx.bus.stream_name(subject))


class SideEffectSpy:
    """Counts cache invalidations and bus publishes without stopping them."""

    def __init__(self, ctx, monkeypatch):
        self.invalidated = []
        self.published = []
        invalidate, publish = ctx.cache.invalidate_event, ctx.bus.publish

        async def spy_invalidate(event_id):
            self.invalidated.append(event_id)
            return await invalidate(event_id)

        async def spy_publish(subject, payload):
            self.published.append(subject)
            return await publish(subject, payload)

        monkeypatch.setattr(ctx.cache, "invalidate_event", spy_invalidate)
        monkeypatch.setattr(ctx.bus, "publish", spy_publish)


@pytest.mark.asyncio
async def test_create_booking(ctx, test_user, test_event):
    booking = await ctx.reservations.create_booking(test_event.id, test_user.id, 3)

    assert booking.id is not None
    assert booking.seats_booked == 3
    assert await _booked_seats(ctx, test_event.id) == 3


@pytest.mark.asyncio
async def test_concurrent_bookings_never_overbook(ctx, test_user, other_user, test_event):
    """Two 6-seat requests on a 10-seat event: exactly one wins."""
    results = await asyncio.gather(
        ctx.reservations.create_booking(test_event.id, test_user.id, 6),
        ctx.reservations.create_booking(test_event.id, other_user.id, 6),
        return_exceptions=True,
    )

    successes = [r for r in results if isinstance(r, Booking)]
    failures = [r for r in results if isinstance(r, CapacityExceeded)]
    assert len(successes) == 1
    assert len(failures) == 1
    assert failures[0].requested == 6
    assert failures[0].available == 4
    assert await _booked_seats(ctx, test_event.id) == 6


@pytest.mark.asyncio
async def test_many_concurrent_single_seat_bookings(ctx, test_user, test_event):
    """12 one-seat requests on 10 seats: 10 committed, 2 rejected, never more."""
    results = await asyncio.gather(
        *(ctx.reservations.create_booking(test_event.id, test_user.id, 1) for _ in range(12)),
        return_exceptions=True,
    )

    assert sum(isinstance(r, Booking) for r in results) == 10
    rejected = [r for r in results if isinstance(r, CapacityExceeded)]
    assert len(rejected) == 2
    assert all(r.available == 0 for r in rejected)
    assert await _booked_seats(ctx, test_event.id) == 10


@pytest.mark.asyncio
async def test_capacity_exceeded_is_atomic(ctx, monkeypatch, test_user, test_event):
    """A rejected request leaves no row, no invalidation and no published event."""
    spy = SideEffectSpy(ctx, monkeypatch)

    with pytest.raises(CapacityExceeded) as exc_info:
        await ctx.reservations.create_booking(test_event.id, test_user.id, 11)

    assert exc_info.value.available == 10
    assert await _booked_seats(ctx, test_event.id) == 0
    assert spy.invalidated == []
    assert spy.published == []
    assert await _stream_entries(ctx, BOOKING_CREATED) == []


@pytest.mark.asyncio
async def test_unknown_user_rolls_back(ctx, monkeypatch, test_event):
    spy = SideEffectSpy(ctx, monkeypatch)

    with pytest.raises(NotFound) as exc_info:
        await ctx.reservations.create_booking(test_event.id, 99999, 2)

    assert exc_info.value.entity == "user"
    assert await _booked_seats(ctx, test_event.id) == 0
    assert spy.invalidated == [] and spy.published == []


@pytest.mark.asyncio
async def test_unknown_event(ctx, test_user):
    with pytest.raises(NotFound) as exc_info:
        await ctx.reservations.create_booking(99999, test_user.id, 1)
    assert exc_info.value.entity == "event"


@pytest.mark.asyncio
@pytest.mark.parametrize("seats", [0, -3])
async def test_non_positive_seats_rejected(ctx, test_user, test_event, seats):
    with pytest.raises(ValidationFailed) as exc_info:
        await ctx.reservations.create_booking(test_event.id, test_user.id, seats)
    assert exc_info.value.field == "seats_booked"


@pytest.mark.asyncio
async def test_booking_past_event_rejected(ctx, test_user, past_event):
    with pytest.raises(InvalidState):
        await ctx.reservations.create_booking(past_event.id, test_user.id, 1)
    assert await _booked_seats(ctx, past_event.id) == 0


@pytest.mark.asyncio
async def test_create_publishes_full_snapshot(ctx, test_user, test_event):
    booking = await ctx.reservations.create_booking(test_event.id, test_user.id, 2)

    entries = await _stream_entries(ctx, BOOKING_CREATED)
    assert len(entries) == 1
    _message_id, fields = entries[0]
    event = DomainEvent.from_json(fields["payload"])
    assert event.kind == BOOKING_CREATED
    assert event.payload.booking_id == booking.id
    assert event.payload.user_name == "Ada Lovelace"
    assert event.payload.user_email == "ada@example.com"
    assert event.payload.event_title == "Test Concert"
    assert event.payload.seats == 2


@pytest.mark.asyncio
async def test_create_invalidates_event_views(ctx, test_user, test_event):
    await ctx.cache.put("events:all", [{"id": test_event.id}])
    await ctx.cache.put(f"event:{test_event.id}", {"id": test_event.id})
    await ctx.cache.put(f"event:{test_event.id}:availability", {"available_seats": 10}, 60)
    await ctx.cache.put("event:424242", {"id": 424242})

    await ctx.reservations.create_booking(test_event.id, test_user.id, 1)

    assert await ctx.cache.get("events:all") is None
    assert await ctx.cache.get(f"event:{test_event.id}") is None
    assert await ctx.cache.get(f"event:{test_event.id}:availability") is None
    # Unrelated events keep their entries
    assert await ctx.cache.get("event:424242") == {"id": 424242}


@pytest.mark.asyncio
async def test_publish_failure_does_not_undo_booking(ctx, monkeypatch, test_user, test_event):
    async def broken_publish(subject, payload):
        raise ConnectionError("bus down")

    monkeypatch.setattr(ctx.bus, "publish", broken_publish)

    booking = await ctx.reservations.create_booking(test_event.id, test_user.id, 4)

    assert booking.id is not None
    assert await _booked_seats(ctx, test_event.id) == 4


@pytest.mark.asyncio
async def test_cache_outage_does_not_fail_booking(ctx, monkeypatch, test_user, test_event):
    def broken_scan(*args, **kwargs):
        raise ConnectionError("cache down")

    monkeypatch.setattr(ctx.cache.client, "scan_iter", broken_scan)

    booking = await ctx.reservations.create_booking(test_event.id, test_user.id, 1)

    assert booking.id is not None
    assert len(await _stream_entries(ctx, BOOKING_CREATED)) == 1


@pytest.mark.asyncio
async def test_store_timeout_is_unavailable(ctx, monkeypatch, test_user, test_event):
    async def slow_reserve(db, event_id, user_id, seats):
        await asyncio.sleep(1)

    monkeypatch.setattr(ctx.reservations, "_reserve", slow_reserve)
    monkeypatch.setattr(ctx.reservations, "store_timeout", 0.05)

    with pytest.raises(Unavailable):
        await ctx.reservations.create_booking(test_event.id, test_user.id, 1)
    assert await _booked_seats(ctx, test_event.id) == 0


@pytest.mark.asyncio
async def test_driver_error_is_unavailable(ctx, monkeypatch, test_user, test_event):
    async def lost_connection(db, event_id, user_id, seats):
        raise OperationalError("SELECT 1", {}, Exception("server closed the connection"))

    monkeypatch.setattr(ctx.reservations, "_reserve", lost_connection)

    with pytest.raises(Unavailable) as exc_info:
        await ctx.reservations.create_booking(test_event.id, test_user.id, 1)
    assert exc_info.value.dependency == "database"
    assert not isinstance(exc_info.value, OperationalError)


@pytest.mark.asyncio
async def test_cancel_restores_availability(ctx, test_user, test_event):
    booking = await ctx.reservations.create_booking(test_event.id, test_user.id, 3)
    await ctx.reservations.cancel_booking(booking.id)

    async with ctx.database.sessionmaker() as session:
        availability = await event_service.get_availability(session, test_event.id)
    assert availability["available_seats"] == 10
    assert availability["booked_seats"] == 0


@pytest.mark.asyncio
async def test_cancel_publishes_released_seats(ctx, test_user, test_event):
    booking = await ctx.reservations.create_booking(test_event.id, test_user.id, 3)
    await ctx.reservations.cancel_booking(booking.id)

    entries = await _stream_entries(ctx, BOOKING_CANCELLED)
    assert len(entries) == 1
    event = DomainEvent.from_json(entries[0][1]["payload"])
    assert event.kind == BOOKING_CANCELLED
    assert event.payload.booking_id == booking.id
    assert event.payload.seats == 3


@pytest.mark.asyncio
async def test_cancel_unknown_booking(ctx):
    with pytest.raises(NotFound) as exc_info:
        await ctx.reservations.cancel_booking(99999)
    assert exc_info.value.entity == "booking"


@pytest.mark.asyncio
async def test_cancel_after_event_started_is_rejected(ctx, monkeypatch, test_user, test_event, move_event_to_past):
    booking = await ctx.reservations.create_booking(test_event.id, test_user.id, 2)
    await move_event_to_past(test_event.id)
    spy = SideEffectSpy(ctx, monkeypatch)

    with pytest.raises(InvalidState) as exc_info:
        await ctx.reservations.cancel_booking(booking.id)

    assert exc_info.value.reason == "event has already occurred"
    async with ctx.database.sessionmaker() as session:
        assert await session.get(Booking, booking.id) is not None
    assert spy.invalidated == [] and spy.published == []


@pytest.mark.asyncio
async def test_cancelled_seats_can_be_rebooked(ctx, test_user, other_user, test_event):
    first = await ctx.reservations.create_booking(test_event.id, test_user.id, 10)
    with pytest.raises(CapacityExceeded):
        await ctx.reservations.create_booking(test_event.id, other_user.id, 1)

    await ctx.reservations.cancel_booking(first.id)
    second = await ctx.reservations.create_booking(test_event.id, other_user.id, 10)

    assert second.seats_booked == 10
    assert await _booked_seats(ctx, test_event.id) == 10


@pytest.mark.asyncio
async def test_zero_capacity_event(ctx, test_user):
    async with ctx.database.sessionmaker() as session:
        event = Event(
            title="Invite only",
            event_date=datetime.now(timezone.utc) + timedelta(days=3),
            total_seats=0,
        )
        session.add(event)
        await session.commit()
        await session.refresh(event)

    with pytest.raises(CapacityExceeded) as exc_info:
        await ctx.reservations.create_booking(event.id, test_user.id, 1)
    assert exc_info.value.available == 0


@pytest.mark.asyncio
async def test_users_are_not_modified_by_bookings(ctx, test_user, test_event):
    await ctx.reservations.create_booking(test_event.id, test_user.id, 1)

    async with ctx.database.sessionmaker() as session:
        user = await session.get(User, test_user.id)
    assert user.name == test_user.name
    assert user.email == test_user.email
