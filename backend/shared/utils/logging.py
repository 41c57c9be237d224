"""
Structured JSON logging for the crickfeed service.
Uses structlog for context-rich, machine-parseable logs.
"""
from __future__ import annotations

import logging
import sys
import time
from typing import Any, Callable

import structlog
from shared.config import get_settings

KEY_PREVIEW_CHARS = 10


def setup_logging(service_name: str, extra_context: dict[str, Any] | None = None) -> None:
    """
    Configure structured logging for a service.

    Args:
        service_name: The service identifier (api, scheduler).
        extra_context: Additional static context fields bound to every log entry.
    """
    settings = get_settings()
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.environment.value == "dev":
        renderer: structlog.types.Processor = structlog.dev.ConsoleRenderer(colors=True)
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
        foreign_pre_chain=shared_processors,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(log_level)

    # Silence noisy libraries
    for noisy in ("uvicorn.access", "httpx", "httpcore", "asyncio"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    # Bind static service context
    structlog.contextvars.clear_contextvars()
    bound: dict[str, Any] = {"service": service_name, "instance_id": settings.instance_id}
    if extra_context:
        bound.update(extra_context)
    structlog.contextvars.bind_contextvars(**bound)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a named structured logger."""
    return structlog.get_logger(name)


def mask_key(token: str) -> str:
    """Loggable preview of a credential."""
    return f"{token[:KEY_PREVIEW_CHARS]}..."


def is_connection_reset(exc: BaseException | None) -> bool:
    """True for ECONNRESET-class failures, which are never worth a log line."""
    if exc is None:
        return False
    if isinstance(exc, ConnectionResetError):
        return True
    cause = exc.__cause__ or exc.__context__
    if isinstance(cause, ConnectionResetError):
        return True
    text = str(exc).lower()
    return "econnreset" in text or "connection reset" in text


class ErrorLogThrottle:
    """
    Allows one log line per error key per window.

    Connection resets are suppressed entirely.
    """

    def __init__(self, window_s: float = 300.0, now: Callable[[], float] = time.time) -> None:
        self._window_s = window_s
        self._now = now
        self._last_logged: dict[str, float] = {}

    def should_log(self, key: str, exc: BaseException | None = None) -> bool:
        if is_connection_reset(exc):
            return False
        now = self._now()
        last = self._last_logged.get(key)
        if last is not None and now - last < self._window_s:
            return False
        self._last_logged[key] = now
        return True
