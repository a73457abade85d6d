"""Service context manager for Courier.

Provides an async context manager that owns a WebhookService for the
lifetime of a block, and a context variable to reach it from anywhere
inside that block.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from contextvars import ContextVar

import httpx

from courier.config import Settings
from courier.logging import bind_context, clear_context, configure_logging, get_logger
from courier.service import WebhookService

logger = get_logger(__name__)

_service_context: ContextVar[WebhookService | None] = ContextVar("courier_service", default=None)


def get_current_service() -> WebhookService | None:
    """Get the service opened by the innermost courier_context, if any."""
    return _service_context.get()


@asynccontextmanager
async def courier_context(
    settings: Settings | None = None,
    health_monitor: bool = False,
    http_transport: httpx.AsyncBaseTransport | None = None,
) -> AsyncIterator[WebhookService]:
    """Create, initialize and finally close a WebhookService.

    Args:
        settings: Optional settings. Uses defaults if None.
        health_monitor: Start the periodic health monitor.
        http_transport: Optional httpx transport for outgoing requests.

    Yields:
        Initialized WebhookService instance.

    Example:
        ```python
        async with courier_context(health_monitor=True) as courier:
            await courier.send_event("payment.completed", {"payment_id": "pay_1"})
        ```
    """
    if settings is None:
        settings = Settings()
    configure_logging(level=settings.log_level, format=settings.log_format)

    service = WebhookService.create(settings, http_transport=http_transport)
    await service.initialize()
    if health_monitor:
        service.start_health_monitor()

    bind_context(storage_backend=settings.storage_backend)
    token = _service_context.set(service)
    logger.info("Courier context opened", health_monitor=health_monitor)

    try:
        yield service
    finally:
        _service_context.reset(token)
        await service.close()
        clear_context()
        logger.info("Courier context closed")


__all__ = ["courier_context", "get_current_service"]
