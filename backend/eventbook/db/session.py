"""
Async engine and session factory for the inventory store.

The Database object is built once by the server context and passed to every
component that needs it; nothing here is module-global.
"""

from typing import AsyncGenerator, Optional

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from eventbook.core.config import Settings
from eventbook.core.logging import get_logger

logger = get_logger(__name__)


def _engine_options(settings: Settings) -> dict:
    if settings.DATABASE_URL.startswith("sqlite"):
        return {}
    return {
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_MAX_OVERFLOW,
        "pool_timeout": settings.DB_POOL_TIMEOUT,
        "pool_recycle": settings.DB_POOL_RECYCLE,
        "pool_pre_ping": True,
    }


def _serialize_sqlite_writers(engine: AsyncEngine) -> None:
    """
    SQLite has no row locks and ignores FOR UPDATE. Starting every transaction
    with BEGIN IMMEDIATE takes the database write lock up front, which gives the
    same serialization the event row lock gives on PostgreSQL.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


class Database:
    """Owns the engine (connection pool) and hands out sessions."""

    def __init__(self, settings: Settings, engine: Optional[AsyncEngine] = None):
        self.url = settings.DATABASE_URL
        self.engine = engine or create_async_engine(
            settings.DATABASE_URL,
            echo=settings.DEBUG,
            **_engine_options(settings),
        )
        if self.engine.dialect.name == "sqlite":
            _serialize_sqlite_writers(self.engine)
        self.sessionmaker = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    async def ping(self) -> None:
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("database_connected", dialect=self.engine.dialect.name)

    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Request-scoped session: commit on success, rollback on error."""
        async with self.sessionmaker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def close(self) -> None:
        await self.engine.dispose()
        logger.info("database_closed")
