"""
Event service handling CRUD operations and availability reads.

Available seats are never stored: every read derives them from the bookings
table with a correlated subquery. Write operations commit before returning so
the caller can invalidate cached views strictly after the commit.
"""

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from eventbook.models.event import Event
from eventbook.models.booking import Booking
from eventbook.schemas.event import EventCreate, EventUpdate
from eventbook.core.clock import ensure_utc, is_future
from eventbook.core.exceptions import InvalidState, NotFound
from eventbook.core.logging import get_logger

logger = get_logger(__name__)

EVENT_DATE_NOT_FUTURE = "Event date must be in the future"


def booked_seats_subquery():
    """Seats held by all bookings of the outer Event row."""
    return (
        select(func.coalesce(func.sum(Booking.seats_booked), 0))
        .where(Booking.event_id == Event.id)
        .correlate(Event)
        .scalar_subquery()
    )


def _event_view(event: Event, booked: int) -> dict:
    return {
        "id": event.id,
        "title": event.title,
        "description": event.description,
        "event_date": ensure_utc(event.event_date),
        "total_seats": event.total_seats,
        "available_seats": event.total_seats - booked,
        "created_at": ensure_utc(event.created_at),
        "updated_at": ensure_utc(event.updated_at),
    }


async def _booked_seats(db: AsyncSession, event_id: int) -> int:
    result = await db.execute(
        select(func.coalesce(func.sum(Booking.seats_booked), 0)).where(Booking.event_id == event_id)
    )
    return result.scalar_one()


async def create_event(db: AsyncSession, event_data: EventCreate) -> dict:
    """Create a new event with full seat availability."""
    if not is_future(event_data.event_date):
        raise InvalidState(EVENT_DATE_NOT_FUTURE)

    event = Event(
        title=event_data.title,
        description=event_data.description,
        event_date=ensure_utc(event_data.event_date),
        total_seats=event_data.total_seats,
    )
    db.add(event)
    await db.commit()
    await db.refresh(event)

    logger.info("event_created", event_id=event.id, title=event.title, seats=event.total_seats)
    return _event_view(event, 0)


async def get_event(db: AsyncSession, event_id: int) -> dict:
    """Get a single event by ID with its current availability."""
    result = await db.execute(select(Event, booked_seats_subquery()).where(Event.id == event_id))
    row = result.first()

    if not row:
        raise NotFound("event", event_id)
    return _event_view(*row)


async def list_events(db: AsyncSession) -> list[dict]:
    """All events ordered by date, each with its current availability."""
    result = await db.execute(
        select(Event, booked_seats_subquery()).order_by(Event.event_date.asc(), Event.id.asc())
    )
    return [_event_view(event, booked) for event, booked in result.all()]


async def get_availability(db: AsyncSession, event_id: int) -> dict:
    result = await db.execute(select(Event.total_seats, booked_seats_subquery()).where(Event.id == event_id))
    row = result.first()

    if not row:
        raise NotFound("event", event_id)
    total_seats, booked = row
    return {
        "event_id": event_id,
        "total_seats": total_seats,
        "booked_seats": booked,
        "available_seats": total_seats - booked,
    }


async def update_event(db: AsyncSession, event_id: int, changes: EventUpdate) -> dict:
    """
    Update an event. The row is locked like a reservation, so a capacity cut
    cannot race a booking into overbooking.
    """
    result = await db.execute(select(Event).where(Event.id == event_id).with_for_update())
    event = result.scalar_one_or_none()
    if not event:
        raise NotFound("event", event_id)

    data = changes.model_dump(exclude_unset=True)
    if data.get("event_date") is not None and not is_future(data["event_date"]):
        raise InvalidState(EVENT_DATE_NOT_FUTURE)

    booked = await _booked_seats(db, event_id)
    if data.get("total_seats") is not None and data["total_seats"] < booked:
        raise InvalidState(f"total_seats cannot be lower than seats already booked ({booked})")

    for field in ("title", "description", "event_date", "total_seats"):
        if field in data and (data[field] is not None or field == "description"):
            value = ensure_utc(data[field]) if field == "event_date" else data[field]
            setattr(event, field, value)

    await db.commit()
    await db.refresh(event)

    logger.info("event_updated", event_id=event_id, fields=sorted(data))
    return _event_view(event, booked)


async def delete_event(db: AsyncSession, event_id: int) -> None:
    """Delete an event that has no bookings."""
    result = await db.execute(select(Event).where(Event.id == event_id).with_for_update())
    event = result.scalar_one_or_none()
    if not event:
        raise NotFound("event", event_id)

    if await _booked_seats(db, event_id) > 0:
        raise InvalidState("Cannot delete event with existing bookings")

    await db.delete(event)
    await db.commit()
    logger.info("event_deleted", event_id=event_id)
