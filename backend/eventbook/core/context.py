"""
Server context: every long-lived handle the service needs, built in one place.

open_context() connects the inventory store, the cache and the event bus,
verifies each one, and closes them in reverse order on exit. Any connection
failure at startup propagates, so the process never accepts traffic half-wired.
"""

from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from eventbook.core.config import Settings
from eventbook.core.logging import get_logger
from eventbook.db.session import Database
from eventbook.services.booking_service import ReservationEngine
from eventbook.services.cache_service import CacheService
from eventbook.services.event_bus import EventBus
from eventbook.services.notification_consumer import NotificationConsumer

logger = get_logger(__name__)


@dataclass
class AppContext:
    settings: Settings
    database: Database
    cache: CacheService
    bus: EventBus
    reservations: ReservationEngine
    notifications: NotificationConsumer


@asynccontextmanager
async def open_context(
    settings: Settings,
    database: Optional[Database] = None,
    cache: Optional[CacheService] = None,
    bus: Optional[EventBus] = None,
    run_consumer: Optional[bool] = None,
) -> AsyncIterator[AppContext]:
    """
    Build and connect all handles. Pre-built handles may be passed in
    (tests, alternative drivers); the context takes ownership and closes them.
    """
    if run_consumer is None:
        run_consumer = settings.RUN_NOTIFICATION_CONSUMER

    async with AsyncExitStack() as stack:
        database = database or Database(settings)
        stack.push_async_callback(database.close)
        await database.ping()

        cache = cache or CacheService.from_settings(settings)
        stack.push_async_callback(cache.close)
        await cache.ping()

        bus = bus or EventBus.from_settings(settings)
        stack.push_async_callback(bus.close)
        await bus.ping()

        ctx = AppContext(
            settings=settings,
            database=database,
            cache=cache,
            bus=bus,
            reservations=ReservationEngine(database.sessionmaker, cache, bus, settings),
            notifications=NotificationConsumer(database.sessionmaker, bus, settings),
        )

        if run_consumer:
            ctx.notifications.start()
            stack.push_async_callback(ctx.notifications.stop)
            logger.info("notification_consumer_started", subjects=list(ctx.notifications.subjects))

        yield ctx
