"""Structured logging configuration for Hookline.

JSON output in production, colored console output in development. Every
event passes through :func:`redact_secrets`, so a subscription secret or a
signature that ends up in a log call is masked before it is rendered.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator, MutableMapping
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from structlog.typing import Processor

    from hookline.config import Settings

REDACTED = "[redacted]"

SENSITIVE_KEYS = frozenset(
    {
        "secret",
        "new_secret",
        "previous_secret",
        "signature",
        "api_key",
        "qdrant_api_key",
    }
)

_configured = False


def redact_secrets(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """structlog processor masking values stored under sensitive keys."""
    for key in SENSITIVE_KEYS.intersection(event_dict):
        if event_dict[key]:
            event_dict[key] = REDACTED
    return event_dict


def configure_logging(
    level: str = "INFO",
    format: str = "json",
) -> None:
    """Configure structured logging for Hookline.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL). Unknown
            names fall back to INFO.
        format: "json" for production, "text" for development.

    Example:
        ```python
        from hookline.logging import configure_logging, get_logger

        configure_logging(level="DEBUG", format="text")
        logger = get_logger(__name__)
        logger.info("Worker started", concurrency=10)
        ```
    """
    global _configured

    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        redact_secrets,
    ]

    if format.lower() == "json":
        processors: list[Processor] = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(colors=True),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    _configured = True


def configure_from_settings(settings: Settings) -> None:
    """Apply ``log_level`` and ``log_format`` from settings."""
    configure_logging(level=settings.log_level, format=settings.log_format)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger, configuring defaults on first use."""
    if not _configured:
        configure_logging()

    return structlog.get_logger(name)  # type: ignore[no-any-return]


def bind_context(**kwargs: object) -> None:
    """Bind context variables to all subsequent log messages."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all bound context variables."""
    structlog.contextvars.clear_contextvars()


def unbind_context(*keys: str) -> None:
    """Remove specific keys from the logging context."""
    structlog.contextvars.unbind_contextvars(*keys)


@contextmanager
def delivery_context(delivery_id: str, **extra: object) -> Iterator[None]:
    """Tag every line logged inside the block with ``delivery_id``.

    Keys bound here are removed on exit, even if the block raises. Keys
    bound outside the block are left alone.

    Example:
        ```python
        with delivery_context(task.delivery_id, worker_id="worker-3"):
            await dispatcher.run(task.delivery_id)
        ```
    """
    keys = ("delivery_id", *extra)
    bind_context(delivery_id=delivery_id, **extra)
    try:
        yield
    finally:
        unbind_context(*keys)


logger = get_logger("hookline")
