"""
Structured logging with structlog.

JSON lines in production, console rendering elsewhere. Every line carries the
process role ("api" or "worker") plus whatever is bound to the contextvars:
request_id/method/path inside an HTTP request, subject/message_id while the
notification consumer handles a delivery.
"""

import logging
import sys
from typing import Optional

import structlog

from eventbook.core.config import Settings, get_settings

_HANDLER_NAME = "eventbook"


def _role_processor(role: str):
    def add_role(logger, method_name, event_dict):
        event_dict.setdefault("role", role)
        return event_dict

    return add_role


def setup_logging(settings: Optional[Settings] = None, role: str = "api") -> None:
    settings = settings or get_settings()
    production = settings.ENVIRONMENT == "production"

    processors = [
        structlog.contextvars.merge_contextvars,
        _role_processor(role),
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]
    if production:
        processors.append(structlog.processors.format_exc_info)

    structlog.configure(
        processors=[*processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if production
        else structlog.dev.ConsoleRenderer(colors=settings.ENVIRONMENT == "development")
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root = logging.getLogger()
    # setup may run several times per interpreter (tests, reloads)
    for existing in [h for h in root.handlers if h.get_name() == _HANDLER_NAME]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    for noisy in ("uvicorn.access", "sqlalchemy.engine", "aiosqlite", "asyncio"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
