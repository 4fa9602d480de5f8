"""
Booking service: the reservation engine and booking reads.

CONCURRENCY STRATEGY: Pessimistic Row Lock per Event
====================================================

Problem:
  Two users try to book the last seats simultaneously.
  Both compute available=6, both insert a 6-seat booking, both succeed.
  Result: Overbooking.

Solution:
  Every reservation runs in one transaction that starts by locking the event row:

  1. SELECT ... FROM events WHERE id = :event_id FOR UPDATE
  2. SELECT COALESCE(SUM(seats_booked), 0) FROM bookings WHERE event_id = :event_id
     (a separate statement issued after the lock was granted, so it sees every
     booking committed by the previous lock holder)
  3. If total_seats - booked < requested -> rollback, CapacityExceeded
  4. INSERT the booking, COMMIT (releases the lock)

  Transactions against the same event are linearized by the lock; different
  events proceed in parallel. The lock lives in the database, so this holds
  across any number of API processes. No in-process locks are used.
  There is no fairness: whoever gets the lock next wins, and a request that
  does not fit fails immediately instead of being split or queued.

Side effects after commit:
  Cache invalidation and the domain event publish run only after the commit,
  outside the lock, as a sequential best-effort pipeline. A failure there is
  logged and never undoes the booking: the cache heals by TTL, and missed
  notifications can be replayed by hand.

Timeouts:
  The whole transaction, lock wait included, is bounded by
  STORE_TIMEOUT_SECONDS. Cancelling the task rolls the transaction back.
"""

import asyncio
import time
from typing import Awaitable, Callable, Optional

from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from eventbook.models.event import Event
from eventbook.models.booking import Booking
from eventbook.models.user import User
from eventbook.core.clock import ensure_utc, is_future, utcnow
from eventbook.core.config import Settings
from eventbook.core.exceptions import (
    CapacityExceeded,
    EventBookError,
    InvalidState,
    NotFound,
    Unavailable,
    ValidationFailed,
)
from eventbook.core.logging import get_logger
from eventbook.core.metrics import booking_latency, record_booking_attempt
from eventbook.services.cache_service import CacheService
from eventbook.services.domain_events import (
    BOOKING_CANCELLED,
    BOOKING_CREATED,
    BookingEventPayload,
    DomainEvent,
)
from eventbook.services.event_bus import EventBus

logger = get_logger(__name__)

EVENT_ALREADY_OCCURRED = "event has already occurred"


class ReservationEngine:
    """Creates and cancels bookings against the inventory store."""

    def __init__(
        self,
        sessionmaker: async_sessionmaker[AsyncSession],
        cache: CacheService,
        bus: EventBus,
        settings: Settings,
    ):
        self.sessionmaker = sessionmaker
        self.cache = cache
        self.bus = bus
        self.store_timeout = settings.STORE_TIMEOUT_SECONDS

    async def create_booking(self, event_id: int, user_id: int, seats_requested: int) -> Booking:
        if seats_requested is None or seats_requested <= 0:
            record_booking_attempt("create", ValidationFailed.kind)
            raise ValidationFailed("seats_booked", "must be greater than 0")

        booking, snapshot = await self._run("create", self._reserve, event_id, user_id, seats_requested)

        logger.info(
            "booking_created",
            booking_id=booking.id,
            user_id=user_id,
            event_id=event_id,
            seats=seats_requested,
        )
        await self._after_commit(event_id, DomainEvent(kind=BOOKING_CREATED, payload=snapshot))
        return booking

    async def cancel_booking(self, booking_id: int) -> Booking:
        booking, snapshot = await self._run("cancel", self._release, booking_id)

        logger.info(
            "booking_cancelled",
            booking_id=booking_id,
            user_id=booking.user_id,
            event_id=booking.event_id,
            seats_released=booking.seats_booked,
        )
        await self._after_commit(booking.event_id, DomainEvent(kind=BOOKING_CANCELLED, payload=snapshot))
        return booking

    async def _run(self, operation: str, work: Callable[..., Awaitable], *args):
        """Run work(session, *args) in one bounded transaction and translate every failure."""
        start = time.perf_counter()
        try:
            result = await asyncio.wait_for(self._transaction(work, *args), timeout=self.store_timeout)
        except EventBookError as e:
            record_booking_attempt(operation, e.kind)
            raise
        except asyncio.TimeoutError:
            logger.error("reservation_timeout", operation=operation, timeout=self.store_timeout)
            record_booking_attempt(operation, Unavailable.kind)
            raise Unavailable("database", "transaction timed out")
        except (SQLAlchemyError, OSError) as e:
            logger.error("reservation_store_error", operation=operation, error=str(e))
            record_booking_attempt(operation, Unavailable.kind)
            raise Unavailable("database") from e
        finally:
            booking_latency.labels(operation=operation).observe(time.perf_counter() - start)

        record_booking_attempt(operation, "success")
        return result

    async def _transaction(self, work: Callable[..., Awaitable], *args):
        async with self.sessionmaker() as session:
            async with session.begin():
                return await work(session, *args)

    async def _reserve(
        self, db: AsyncSession, event_id: int, user_id: int, seats_requested: int
    ) -> tuple[Booking, BookingEventPayload]:
        result = await db.execute(select(Event).where(Event.id == event_id).with_for_update())
        event = result.scalar_one_or_none()
        if not event:
            raise NotFound("event", event_id)

        if not is_future(event.event_date):
            logger.warning("booking_rejected_past_event", event_id=event_id)
            raise InvalidState(EVENT_ALREADY_OCCURRED)

        booked = (
            await db.execute(
                select(func.coalesce(func.sum(Booking.seats_booked), 0)).where(Booking.event_id == event_id)
            )
        ).scalar_one()
        available = event.total_seats - booked

        if available < seats_requested:
            logger.warning(
                "booking_rejected_no_seats",
                event_id=event_id,
                requested=seats_requested,
                available=available,
            )
            raise CapacityExceeded(requested=seats_requested, available=available)

        user = await db.get(User, user_id)
        if not user:
            raise NotFound("user", user_id)

        booking = Booking(user_id=user_id, event_id=event_id, seats_booked=seats_requested)
        db.add(booking)
        await db.flush()
        await db.refresh(booking)

        snapshot = BookingEventPayload(
            booking_id=booking.id,
            user_id=user.id,
            user_name=user.name,
            user_email=user.email,
            event_id=event.id,
            event_title=event.title,
            seats=booking.seats_booked,
            occurred_at=ensure_utc(booking.created_at) or utcnow(),
        )
        return booking, snapshot

    async def _release(self, db: AsyncSession, booking_id: int) -> tuple[Booking, BookingEventPayload]:
        result = await db.execute(
            select(Booking, Event, User)
            .join(Event, Booking.event_id == Event.id)
            .join(User, Booking.user_id == User.id)
            .where(Booking.id == booking_id)
            .with_for_update(of=Booking)
        )
        row = result.first()
        if not row:
            raise NotFound("booking", booking_id)
        booking, event, user = row

        if not is_future(event.event_date):
            logger.warning("cancellation_rejected_past_event", booking_id=booking_id, event_id=event.id)
            raise InvalidState(EVENT_ALREADY_OCCURRED)

        await db.delete(booking)
        await db.flush()

        snapshot = BookingEventPayload(
            booking_id=booking.id,
            user_id=user.id,
            user_name=user.name,
            user_email=user.email,
            event_id=event.id,
            event_title=event.title,
            seats=booking.seats_booked,
            occurred_at=utcnow(),
        )
        return booking, snapshot

    async def _after_commit(self, event_id: int, domain_event: DomainEvent) -> None:
        """Best-effort side effects of a committed mutation, in order, each failing alone."""
        steps = (
            ("cache_invalidation", lambda: self.cache.invalidate_event(event_id)),
            ("event_publish", lambda: self.bus.publish(domain_event.kind, domain_event.to_json())),
        )
        for name, step in steps:
            try:
                await step()
            except Exception as e:
                logger.error(
                    "post_commit_step_failed",
                    step=name,
                    event_id=event_id,
                    booking_id=domain_event.payload.booking_id,
                    kind=domain_event.kind,
                    error=str(e) or type(e).__name__,
                )


def _booking_detail(booking: Booking, user: User, event: Event) -> dict:
    return {
        "id": booking.id,
        "user_id": booking.user_id,
        "event_id": booking.event_id,
        "seats_booked": booking.seats_booked,
        "created_at": booking.created_at,
        "user_name": user.name,
        "user_email": user.email,
        "event_title": event.title,
        "event_date": event.event_date,
    }


def _detail_query():
    return (
        select(Booking, User, Event)
        .join(User, Booking.user_id == User.id)
        .join(Event, Booking.event_id == Event.id)
    )


async def get_booking(db: AsyncSession, booking_id: int) -> dict:
    """Get one booking with its user and event fields."""
    row = (await db.execute(_detail_query().where(Booking.id == booking_id))).first()
    if not row:
        raise NotFound("booking", booking_id)
    return _booking_detail(*row)


async def list_bookings(
    db: AsyncSession,
    user_id: Optional[int] = None,
    event_id: Optional[int] = None,
) -> list[dict]:
    """List bookings, newest first, optionally filtered by user and/or event."""
    query = _detail_query()
    if user_id is not None:
        query = query.where(Booking.user_id == user_id)
    if event_id is not None:
        query = query.where(Booking.event_id == event_id)

    result = await db.execute(query.order_by(Booking.created_at.desc(), Booking.id.desc()))
    return [_booking_detail(*row) for row in result.all()]


async def list_user_bookings(db: AsyncSession, user_id: int) -> list[dict]:
    """A user's bookings ordered by event date (soonest first)."""
    if not await db.get(User, user_id):
        raise NotFound("user", user_id)

    result = await db.execute(
        _detail_query()
        .where(Booking.user_id == user_id)
        .order_by(Event.event_date.asc(), Booking.id.asc())
    )
    return [_booking_detail(*row) for row in result.all()]


async def list_event_bookings(db: AsyncSession, event_id: int) -> list[dict]:
    if not await db.get(Event, event_id):
        raise NotFound("event", event_id)
    return await list_bookings(db, event_id=event_id)
