"""
FastAPI dependencies resolving the per-process handles from app.state.
"""

from typing import AsyncGenerator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from eventbook.core.context import AppContext
from eventbook.services.booking_service import ReservationEngine
from eventbook.services.cache_service import CacheService


def get_context(request: Request) -> AppContext:
    return request.app.state.ctx


async def get_db(ctx: AppContext = Depends(get_context)) -> AsyncGenerator[AsyncSession, None]:
    async for session in ctx.database.session():
        yield session


def get_cache(ctx: AppContext = Depends(get_context)) -> CacheService:
    return ctx.cache


def get_reservations(ctx: AppContext = Depends(get_context)) -> ReservationEngine:
    return ctx.reservations
