"""
Notification consumer: turns booking domain events into notification rows.

One task per subject reads the bus through a durable consumer group and handles
deliveries one at a time, in delivery order. The bus delivers at least once, so
inserts are idempotent on (booking_id, kind): the unique constraint rejects the
second insert and that conflict counts as success.

A delivery that cannot be processed (malformed payload, store down or slow, or
any unexpected error) is logged and acknowledged, i.e. dropped. There is no
dead-letter queue.
"""

import asyncio
from typing import Optional

from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from structlog.contextvars import bound_contextvars

from eventbook.core.config import Settings
from eventbook.core.logging import get_logger
from eventbook.core.metrics import record_notification
from eventbook.models.notification import Notification
from eventbook.services.domain_events import BOOKING_CREATED, BOOKING_SUBJECTS, DomainEvent
from eventbook.services.event_bus import Delivery, EventBus

logger = get_logger(__name__)


def build_message(event: DomainEvent) -> str:
    payload = event.payload
    if event.kind == BOOKING_CREATED:
        return (
            f'Your booking for "{payload.event_title}" has been confirmed. '
            f"{payload.seats} seat(s) reserved."
        )
    return (
        f'Your booking for "{payload.event_title}" has been cancelled. '
        f"{payload.seats} seat(s) released."
    )


class NotificationConsumer:
    def __init__(
        self,
        sessionmaker: async_sessionmaker[AsyncSession],
        bus: EventBus,
        settings: Settings,
        subjects: tuple[str, ...] = BOOKING_SUBJECTS,
    ):
        self.sessionmaker = sessionmaker
        self.bus = bus
        self.subjects = subjects
        self.group = settings.EVENT_BUS_CONSUMER_GROUP
        self.consumer_name = settings.EVENT_BUS_CONSUMER_NAME
        self.store_timeout = settings.STORE_TIMEOUT_SECONDS
        self._stop_event = asyncio.Event()
        self._tasks: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    async def handle(self, event: DomainEvent) -> Optional[Notification]:
        """
        Persist the notification for one domain event.
        Returns the new row, or None when it already existed (redelivery).
        """
        notification = Notification(
            booking_id=event.payload.booking_id,
            user_id=event.payload.user_id,
            kind=event.kind,
            message=build_message(event),
        )
        async with self.sessionmaker() as session:
            session.add(notification)
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                logger.info(
                    "notification_duplicate_ignored",
                    booking_id=event.payload.booking_id,
                    kind=event.kind,
                )
                return None
            await session.refresh(notification)

        logger.info(
            "notification_created",
            notification_id=notification.id,
            booking_id=notification.booking_id,
            kind=notification.kind,
        )
        return notification

    async def process(self, delivery: Delivery) -> None:
        """Handle one delivery; never raises. The caller acks afterwards."""
        with bound_contextvars(subject=delivery.subject, message_id=delivery.message_id):
            record_notification(delivery.subject, await self._process(delivery))

    async def _process(self, delivery: Delivery) -> str:
        try:
            event = DomainEvent.from_json(delivery.payload)
        except ValidationError as e:
            logger.error("notification_processing_failed", reason="invalid_payload", error=str(e))
            return "dropped"

        try:
            notification = await asyncio.wait_for(self.handle(event), timeout=self.store_timeout)
        except (asyncio.TimeoutError, SQLAlchemyError, OSError) as e:
            logger.error(
                "notification_processing_failed",
                booking_id=event.payload.booking_id,
                reason="store_unavailable",
                error=str(e) or type(e).__name__,
            )
            return "dropped"
        except Exception as e:
            # Anything else would end the subscription loop on a poison message
            logger.exception(
                "notification_processing_failed",
                booking_id=event.payload.booking_id,
                reason="unexpected_error",
                error=repr(e),
            )
            return "dropped"

        return "created" if notification else "duplicate"

    async def consume(self, subject: str) -> None:
        """Subscription loop for one subject; returns once stop() was requested."""
        logger.info("notification_consumer_subscribed", subject=subject, group=self.group)
        async for delivery in self.bus.subscribe(subject, self.group, self.consumer_name, self._stop_event):
            await self.process(delivery)
            try:
                await self.bus.ack(delivery)
            except Exception as e:
                # Left pending: it will be redelivered and deduplicated
                logger.error("notification_ack_failed", subject=subject, message_id=delivery.message_id, error=str(e))
        logger.info("notification_consumer_stopped", subject=subject)

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._tasks = [
            asyncio.create_task(self.consume(subject), name=f"notification-consumer:{subject}")
            for subject in self.subjects
        ]

    async def stop(self) -> None:
        self._stop_event.set()
        results = await asyncio.gather(*self._tasks, return_exceptions=True)
        for task, result in zip(self._tasks, results):
            if isinstance(result, BaseException) and not isinstance(result, asyncio.CancelledError):
                logger.error("notification_consumer_crashed", task=task.get_name(), error=repr(result))
        self._tasks = []

    async def wait(self) -> None:
        """Block until every subscription loop has ended."""
        await asyncio.gather(*self._tasks)
