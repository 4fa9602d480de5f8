"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from eventbook.api.routes import users, events, bookings, notifications

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(users.router)
api_router.include_router(events.router)
api_router.include_router(bookings.router)
api_router.include_router(notifications.router)
api_router.include_router(notifications.user_router)
