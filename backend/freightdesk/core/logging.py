"""
Structured logging for the dispatch service.

Log lines are rendered by structlog: coloured console output in development,
one JSON object per line elsewhere. The request ID and the dispatcher subject
are bound to structlog's context variables so every line written while a
request is handled carries them.
"""

import logging
import sys
import time
from contextlib import contextmanager
from typing import Iterator, Optional
from uuid import uuid4

import structlog
from structlog.types import Processor

from freightdesk.core.config import get_settings

# Maps calls and requests slower than this are logged at WARNING
SLOW_OPERATION_MS = 500


def configure_logging() -> None:
    """Configure structlog and route standard library logging to stdout."""
    settings = get_settings()

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.format_exc_info,
    ]
    if settings.is_development:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))
    else:
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level),
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def set_request_id(request_id: Optional[str] = None) -> str:
    """Bind the request ID, generating one when the client sent none."""
    request_id = request_id or str(uuid4())
    structlog.contextvars.bind_contextvars(request_id=request_id)
    return request_id


def get_request_id() -> str:
    return structlog.contextvars.get_contextvars().get("request_id", "")


def set_user_id(user_id: Optional[str]) -> None:
    """Bind the dispatcher subject taken from the bearer token."""
    structlog.contextvars.bind_contextvars(user_id=user_id)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


@contextmanager
def log_performance(
    logger: structlog.stdlib.BoundLogger, operation: str, **context
) -> Iterator[None]:
    """
    Log how long the ``with`` body took.

    Example:
        >>> with log_performance(logger, "maps_request", endpoint="geocode/json"):
        ...     response = await http.get(url)
    """
    started = time.perf_counter()
    try:
        yield
    except Exception as e:
        logger.error(
            "Operation failed",
            operation=operation,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
            error_type=type(e).__name__,
            **context,
        )
        raise

    duration_ms = round((time.perf_counter() - started) * 1000, 2)
    log = logger.warning if duration_ms > SLOW_OPERATION_MS else logger.info
    log("Operation completed", operation=operation, duration_ms=duration_ms, **context)
