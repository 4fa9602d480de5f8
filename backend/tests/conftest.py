"""
Pytest fixtures for the server context, HTTP client and seed data.

Every test gets a fresh SQLite file database (transactions start with
BEGIN IMMEDIATE, which serializes writers the way the event row lock does on
PostgreSQL) and fresh in-memory Redis servers for the cache and the bus.
"""

from datetime import datetime, timezone, timedelta
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from fakeredis import FakeServer
from fakeredis.aioredis import FakeRedis
from httpx import AsyncClient, ASGITransport
from sqlalchemy import update

from eventbook.core.config import Settings
from eventbook.core.context import AppContext, open_context
from eventbook.db.base import Base
from eventbook.db.session import Database
from eventbook.main import create_app
from eventbook.models.user import User
from eventbook.models.event import Event
from eventbook.services.cache_service import CacheService
from eventbook.services.event_bus import EventBus


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        ENVIRONMENT="test",
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'eventbook_test.db'}",
        STORE_TIMEOUT_SECONDS=5.0,
        EVENT_BUS_BLOCK_MS=50,
        EVENT_BUS_CONSUMER_GROUP="notification-test",
        EVENT_BUS_CONSUMER_NAME="test-consumer",
        RUN_NOTIFICATION_CONSUMER=False,
    )


@pytest_asyncio.fixture
async def ctx(settings: Settings) -> AsyncGenerator[AppContext, None]:
    """Fully wired server context; the notification consumer is not started."""
    database = Database(settings)
    async with database.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    cache = CacheService(FakeRedis(server=FakeServer(), decode_responses=True), settings)
    bus = EventBus(FakeRedis(server=FakeServer(), decode_responses=True), settings)

    async with open_context(settings, database=database, cache=cache, bus=bus, run_consumer=False) as context:
        yield context


@pytest_asyncio.fixture
async def client(ctx: AppContext, settings: Settings) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against an app bound to the test context."""
    app = create_app(settings)
    app.state.ctx = ctx

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def _add(ctx: AppContext, obj):
    async with ctx.database.sessionmaker() as session:
        session.add(obj)
        await session.commit()
        await session.refresh(obj)
    return obj


@pytest_asyncio.fixture
async def test_user(ctx: AppContext) -> User:
    return await _add(ctx, User(name="Ada Lovelace", email="ada@example.com"))


@pytest_asyncio.fixture
async def other_user(ctx: AppContext) -> User:
    return await _add(ctx, User(name="Alan Turing", email="alan@example.com"))


@pytest_asyncio.fixture
async def test_event(ctx: AppContext) -> Event:
    """A future event with 10 seats."""
    return await _add(
        ctx,
        Event(
            title="Test Concert",
            description="A test event",
            event_date=datetime.now(timezone.utc) + timedelta(days=30),
            total_seats=10,
        ),
    )


@pytest_asyncio.fixture
async def past_event(ctx: AppContext) -> Event:
    return await _add(
        ctx,
        Event(
            title="Yesterday's Show",
            event_date=datetime.now(timezone.utc) - timedelta(days=1),
            total_seats=10,
        ),
    )


@pytest.fixture
def move_event_to_past(ctx: AppContext):
    """Simulate time passing: the event's date is now behind us."""

    async def _move(event_id: int) -> None:
        async with ctx.database.sessionmaker() as session:
            await session.execute(
                update(Event)
                .where(Event.id == event_id)
                .values(event_date=datetime.now(timezone.utc) - timedelta(hours=1))
            )
            await session.commit()

    return _move
