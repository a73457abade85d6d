"""In-process store backed by dictionaries.

Suitable for tests, development and single-process deployments that can
afford to lose history on restart.
"""

from __future__ import annotations

from datetime import datetime

from courier.models import DeliveryStatus, WebhookDelivery, WebhookEndpoint

from .base import WebhookStore, matches_delivery


class InMemoryWebhookStore(WebhookStore):
    """Dictionary-backed WebhookStore.

    Models are deep-copied on the way in and out, so callers never share
    state with the store.
    """

    def __init__(self) -> None:
        self._endpoints: dict[str, WebhookEndpoint] = {}
        self._deliveries: dict[str, WebhookDelivery] = {}

    async def save_endpoint(self, endpoint: WebhookEndpoint) -> str:
        self._endpoints[endpoint.id] = endpoint.model_copy(deep=True)
        return endpoint.id

    async def get_endpoint(self, endpoint_id: str) -> WebhookEndpoint | None:
        endpoint = self._endpoints.get(endpoint_id)
        return endpoint.model_copy(deep=True) if endpoint is not None else None

    async def delete_endpoint(self, endpoint_id: str) -> bool:
        return self._endpoints.pop(endpoint_id, None) is not None

    async def list_endpoints(self) -> list[WebhookEndpoint]:
        endpoints = sorted(self._endpoints.values(), key=lambda e: e.created_at)
        return [endpoint.model_copy(deep=True) for endpoint in endpoints]

    async def save_delivery(self, delivery: WebhookDelivery) -> str:
        self._deliveries[delivery.id] = delivery.model_copy(deep=True)
        return delivery.id

    async def get_delivery(self, delivery_id: str) -> WebhookDelivery | None:
        delivery = self._deliveries.get(delivery_id)
        return delivery.model_copy(deep=True) if delivery is not None else None

    async def list_deliveries(
        self,
        webhook_id: str | None = None,
        status: DeliveryStatus | None = None,
        event_type: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[WebhookDelivery]:
        deliveries = [
            delivery.model_copy(deep=True)
            for delivery in self._deliveries.values()
            if matches_delivery(delivery, webhook_id, status, event_type, start, end)
        ]
        deliveries.sort(key=lambda d: d.created_at, reverse=True)
        return deliveries
