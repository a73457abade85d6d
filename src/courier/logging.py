"""Structured logging for Courier.

structlog on top of the standard library. Production renders JSON lines,
development a colored console. Every record passes through a redaction
step so signing secrets and credentials never reach the log stream.

Attempt tasks bind their delivery's identifiers with delivery_log_context(),
so every line logged during an attempt carries delivery_id and webhook_id.
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

REDACTED = "***"

# Keys whose values are replaced before rendering, compared lowercase
SENSITIVE_KEYS = frozenset(
    {"secret", "secret_key", "new_secret", "authorization", "api_key", "qdrant_api_key"}
)

_configured = False


def redact_sensitive(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Mask secret values, including inside a logged headers mapping."""
    for key in list(event_dict):
        if key.lower() in SENSITIVE_KEYS:
            event_dict[key] = REDACTED
    headers = event_dict.get("headers")
    if isinstance(headers, dict):
        event_dict["headers"] = {
            name: REDACTED if name.lower() in SENSITIVE_KEYS else value
            for name, value in headers.items()
        }
    return event_dict


def _processors(format: str) -> list[Processor]:
    shared: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        redact_sensitive,
    ]
    if format.lower() == "json":
        return [*shared, structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [*shared, structlog.dev.ConsoleRenderer(colors=True)]


def configure_logging(level: str = "INFO", format: str = "json") -> None:
    """Configure structured logging for Courier.

    Args:
        level: Log level name. Unknown names fall back to INFO.
        format: "json" for production, "text" for a development console.

    Example:
        ```python
        from courier.logging import configure_logging, get_logger

        configure_logging(level="DEBUG", format="text")
        get_logger(__name__).info("Dispatcher started", max_concurrent=10)
        ```
    """
    global _configured

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
    )
    structlog.configure(
        processors=_processors(format),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _configured = True


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger, configuring defaults on first use."""
    if not _configured:
        configure_logging()

    return structlog.get_logger(name)  # type: ignore[no-any-return]


@contextmanager
def delivery_log_context(
    delivery_id: str, webhook_id: str, event_type: str | None = None
) -> Iterator[None]:
    """Bind a delivery's identifiers for the duration of a block.

    Context variables are copied into each asyncio task, so binding inside
    an attempt task never leaks into other attempts.
    """
    bound: dict[str, str] = {"delivery_id": delivery_id, "webhook_id": webhook_id}
    if event_type is not None:
        bound["event_type"] = event_type
    with structlog.contextvars.bound_contextvars(**bound):
        yield


def bind_context(**kwargs: object) -> None:
    """Bind context variables to all subsequent log messages."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


logger = get_logger("courier")
