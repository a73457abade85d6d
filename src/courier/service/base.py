"""Core Courier service layer.

This module provides the WebhookService that combines the endpoint
registry, event dispatch, the attempt pipeline, health checks, analytics
and bulk operations behind one async facade.

Example:
    ```python
    from courier.service import WebhookService

    async with WebhookService.create() as courier:
        endpoint = await courier.create_webhook(
            {
                "name": "Billing",
                "url": "https://example.com/hooks/billing",
                "events": ["invoice.paid"],
            }
        )
        result = await courier.send_event("invoice.paid", {"invoice_id": "inv_1"})
        print(f"Created {result.deliveries_created} deliveries")
    ```
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import httpx

from courier.config import Settings
from courier.logging import get_logger
from courier.storage import WebhookStore, get_store
from courier.webhooks.health import HealthMonitor
from courier.webhooks.locks import KeyedLocks
from courier.webhooks.scheduler import DeliveryScheduler
from courier.webhooks.transport import WebhookTransport

from .analytics import AnalyticsMixin
from .bulk import BulkMixin
from .deliveries import DeliveriesMixin
from .endpoints import EndpointsMixin
from .events import EventsMixin
from .health import HealthMixin
from .transfer import TransferMixin

logger = get_logger(__name__)


@dataclass
class WebhookService(
    EndpointsMixin,
    EventsMixin,
    DeliveriesMixin,
    HealthMixin,
    AnalyticsMixin,
    BulkMixin,
    TransferMixin,
):
    """High-level webhook delivery service.

    This service provides:
    - Endpoint registry: create/update/delete/toggle, secret rotation, listing
    - send_event(): Fan an event out to subscribed endpoints
    - test_webhook(): Synchronous test delivery
    - Delivery control: list, retry, cancel
    - Health checks, analytics, bulk operations, export/import

    Uses dependency injection for the store and HTTP transport, making it
    easy to test and configure.

    Attributes:
        store: Endpoint and delivery persistence.
        transport: HTTP transport for attempts and probes.
        settings: Configuration settings.
        scheduler: Runs attempts now or after a retry delay.
    """

    store: WebhookStore
    transport: WebhookTransport
    settings: Settings

    scheduler: DeliveryScheduler = field(init=False, repr=False)

    # Single-writer discipline: one lock per endpoint id and per delivery id
    _endpoint_locks: KeyedLocks = field(default_factory=KeyedLocks, init=False, repr=False)
    _delivery_locks: KeyedLocks = field(default_factory=KeyedLocks, init=False, repr=False)

    _health_monitor: HealthMonitor | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        """Wire the scheduler to the attempt pipeline."""
        self.scheduler = DeliveryScheduler(
            self.run_attempt,
            max_concurrent=self.settings.max_concurrent_deliveries,
        )

    @classmethod
    def create(
        cls,
        settings: Settings | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ) -> WebhookService:
        """Create a WebhookService with default dependencies.

        Args:
            settings: Optional settings. Uses defaults if None.
            http_transport: Optional httpx transport, e.g. httpx.MockTransport.

        Returns:
            Configured WebhookService instance.

        Example:
            ```python
            # Use default settings (COURIER_STORAGE_BACKEND env var)
            async with WebhookService.create() as courier:
                ...

            # Persist to Qdrant
            settings = Settings(storage_backend="qdrant")
            async with WebhookService.create(settings) as courier:
                ...
            ```
        """
        if settings is None:
            settings = Settings()

        return cls(
            store=get_store(settings),
            transport=WebhookTransport(
                user_agent=settings.user_agent,
                response_body_max_chars=settings.response_body_max_chars,
                transport=http_transport,
            ),
            settings=settings,
        )

    async def initialize(self) -> None:
        """Initialize the store and resume pending deliveries."""
        await self.store.initialize()
        await self.resume_pending_deliveries()

    async def close(self) -> None:
        """Stop background work and release resources.

        Retry timers are cancelled and in-flight attempts are awaited. Pending
        deliveries stay pending and are resumed by the next initialize().
        """
        await self.stop_health_monitor()
        await self.scheduler.shutdown()
        await self.transport.close()
        await self.store.close()
        logger.info("Webhook service closed")

    async def __aenter__(self) -> WebhookService:
        """Async context manager entry."""
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()


__all__ = ["WebhookService"]
