"""
Event Booking API - Main Application Entry Point

- Seat reservations serialized on the event row, never overbooked
- Redis read-through cache with writer-side invalidation and TTL bound
- Booking events on Redis Streams, turned into notifications by a durable consumer
- Structured logging with request correlation
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from eventbook.core.config import Settings, get_settings
from eventbook.core.context import AppContext, open_context
from eventbook.core.logging import setup_logging, get_logger
from eventbook.core.metrics import metrics_endpoint
from eventbook.api.deps import get_context
from eventbook.api.errors import register_exception_handlers
from eventbook.api.router import api_router
from eventbook.api.middleware import RequestLoggingMiddleware


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Connect every dependency before serving; fail startup if one is unreachable."""
        setup_logging(settings)
        logger = get_logger(__name__)

        logger.info(
            "application_starting",
            app=settings.APP_NAME,
            version=settings.APP_VERSION,
            environment=settings.ENVIRONMENT,
        )

        async with open_context(settings) as ctx:
            app.state.ctx = ctx
            logger.info("application_ready")
            yield

        logger.info("application_shutdown")

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Event seat reservations with a read-through cache and booking notifications",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Restrict in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    register_exception_handlers(app)
    app.include_router(api_router)

    @app.get("/health", tags=["Health"])
    async def health_check(ctx: AppContext = Depends(get_context)):
        """Health check endpoint for Docker and load balancers."""
        return {
            "status": "healthy",
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
            "cache": await ctx.cache.stats(),
            "notification_consumer": "running" if ctx.notifications.running else "stopped",
        }

    @app.get("/metrics", tags=["Health"], include_in_schema=False)
    async def metrics():
        return metrics_endpoint()

    @app.get("/", tags=["Root"])
    async def root():
        return {
            "message": f"Welcome to {settings.APP_NAME}",
            "version": settings.APP_VERSION,
            "docs": "/docs",
        }

    return app


app = create_app()
