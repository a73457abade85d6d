"""Abstract store for endpoints and deliveries.

The engine treats persistence as an injected collaborator. Implementations
must hand out independent copies: mutating a returned model never changes
stored state until it is saved again.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from courier.models import DeliveryStatus, WebhookDelivery, WebhookEndpoint


class WebhookStore(ABC):
    """Async repository for WebhookEndpoint and WebhookDelivery records.

    Example:
        ```python
        async with InMemoryWebhookStore() as store:
            await store.save_endpoint(endpoint)
            pending = await store.list_deliveries(status="pending")
        ```
    """

    async def initialize(self) -> None:
        """Prepare the backend (connections, collections)."""

    async def close(self) -> None:
        """Release backend resources."""

    async def __aenter__(self) -> WebhookStore:
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    @abstractmethod
    async def save_endpoint(self, endpoint: WebhookEndpoint) -> str:
        """Insert or replace an endpoint. Returns its id."""
        ...

    @abstractmethod
    async def get_endpoint(self, endpoint_id: str) -> WebhookEndpoint | None:
        """Get an endpoint by id, or None."""
        ...

    @abstractmethod
    async def delete_endpoint(self, endpoint_id: str) -> bool:
        """Delete an endpoint. Returns False if it did not exist."""
        ...

    @abstractmethod
    async def list_endpoints(self) -> list[WebhookEndpoint]:
        """All endpoints, oldest first."""
        ...

    @abstractmethod
    async def save_delivery(self, delivery: WebhookDelivery) -> str:
        """Insert or replace a delivery. Returns its id."""
        ...

    @abstractmethod
    async def get_delivery(self, delivery_id: str) -> WebhookDelivery | None:
        """Get a delivery by id, or None."""
        ...

    @abstractmethod
    async def list_deliveries(
        self,
        webhook_id: str | None = None,
        status: DeliveryStatus | None = None,
        event_type: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[WebhookDelivery]:
        """Deliveries matching every given filter, newest first.

        Args:
            webhook_id: Only deliveries to this endpoint.
            status: Only deliveries in this status.
            event_type: Only deliveries of this event type.
            start: Only deliveries created at or after this time.
            end: Only deliveries created at or before this time.
        """
        ...


def matches_delivery(
    delivery: WebhookDelivery,
    webhook_id: str | None = None,
    status: DeliveryStatus | None = None,
    event_type: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> bool:
    """Check a delivery against list_deliveries filters."""
    if webhook_id is not None and delivery.endpoint.id != webhook_id:
        return False
    if status is not None and delivery.status != status:
        return False
    if event_type is not None and delivery.event.event_type != event_type:
        return False
    if start is not None and delivery.created_at < start:
        return False
    if end is not None and delivery.created_at > end:
        return False
    return True


__all__ = ["WebhookStore", "matches_delivery"]
